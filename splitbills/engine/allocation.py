"""
Allocation Calculator

Pure functions from (snapshot, roster) to what everybody owes.

ALGORITHM:
1. Each item is split evenly among its assignees that are still on the
   roster. Items with nobody valid go to the unassigned remainder.
2. A person's subtotal is the sum of their split prices.
3. Tax and tip are shared in proportion to the receipt subtotal:
   ratio = tax / subtotal. With a zero subtotal the ratios are zero and
   nobody accrues tax or tip, even when the receipt shows some.
4. People are ordered by total owed, highest first. Ties keep the order in
   which people were first met walking the items.

Nothing here mutates or raises; a summary is recomputed on every read.
"""

from decimal import Decimal
from typing import Iterable, Optional

from splitbills.models.receipt import (
    PersonSummary,
    ReceiptItem,
    ReceiptSnapshot,
    SplitSummary,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def valid_assignees(item: ReceiptItem, roster: Iterable[str]) -> list[str]:
    """The item's assignees that are currently on the roster."""
    members = set(roster)
    return [name for name in item.assignees if name in members]


def coverage_percent(people: list[PersonSummary], total: Decimal) -> Decimal:
    """
    Share of the bill total attributed to somebody, in percent.

    Advisory only. 0 when the total is not positive.
    """
    if total <= 0:
        return ZERO
    assigned = sum((person.total_owed for person in people), ZERO)
    return HUNDRED * assigned / total


def compute_split(
    snapshot: Optional[ReceiptSnapshot],
    roster: Iterable[str],
) -> SplitSummary:
    """Derive per-person summaries for the snapshot."""
    if snapshot is None:
        return SplitSummary()

    members = set(roster)
    subtotals: dict[str, Decimal] = {}
    person_items: dict[str, list[ReceiptItem]] = {}
    unassigned: list[ReceiptItem] = []

    for item in snapshot.items:
        names = [name for name in item.assignees if name in members]
        if not names:
            unassigned.append(item)
            continue

        split_price = item.price / len(names)
        for name in names:
            if name not in subtotals:
                subtotals[name] = ZERO
                person_items[name] = []
            subtotals[name] += split_price
            person_items[name].append(item)

    if snapshot.subtotal > 0:
        tax_ratio = snapshot.tax / snapshot.subtotal
        tip_ratio = snapshot.tip / snapshot.subtotal
    else:
        # no usable subtotal: nobody accrues tax or tip
        tax_ratio = tip_ratio = ZERO

    people = []
    for name, subtotal in subtotals.items():
        tax_share = subtotal * tax_ratio
        tip_share = subtotal * tip_ratio
        people.append(PersonSummary(
            name=name,
            items=person_items[name],
            subtotal=subtotal,
            tax_share=tax_share,
            tip_share=tip_share,
            total_owed=subtotal + tax_share + tip_share,
        ))

    # sorted() is stable with reverse=True
    people = sorted(people, key=lambda p: p.total_owed, reverse=True)

    return SplitSummary(
        people=people,
        coverage_percent=coverage_percent(people, snapshot.total),
        unassigned_items=unassigned,
        unassigned_amount=sum((item.price for item in unassigned), ZERO),
        assigned_amount=sum((p.total_owed for p in people), ZERO),
        currency=snapshot.currency,
    )
