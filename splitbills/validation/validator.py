"""
Two-Stage Proposal Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SHAPE AND NUMBERS:
- Every amount (item prices, subtotal, tax, tip, total) is finite and >= 0
- Item ids are present and unique inside the proposal
- Needs nothing but the proposal itself

STAGE 2 - REFERENCES:
- Every item id must exist in the current snapshot (load excepted)
- Every assignee must be on the roster, matched exactly
- Needs the current snapshot and the roster

Errors reject a proposal wholesale. Unknown names are only warnings: the
merge gate drops them and applies the rest, because the assistant's name
matching is fallible and should not block the parts it got right.

IMPORTANT: Validation never edits a proposal. It reports; the merge gate acts.
"""

from decimal import Decimal
from typing import Iterable, Optional

from splitbills.models.receipt import (
    ItemAssignmentProposal,
    Proposal,
    ProposalIssue,
    ProposalValidation,
    ReceiptDraft,
    ReceiptLoadProposal,
    ReceiptSnapshot,
)


def is_sane_amount(value: Decimal) -> bool:
    """Finite and not negative."""
    return value.is_finite() and value >= 0


class ProposalValidator:
    """
    Validates proposals against the roster and the current snapshot.

    The roster is read at validation time, so names added or removed
    between two proposals are honoured.
    """

    def __init__(self, roster: Iterable[str]):
        """
        Initialize validator.

        Args:
            roster: Live collection of attendee names (usually a RosterManager).
        """
        self._roster = roster

    def split_names(self, names: Iterable[str]) -> tuple[list[str], list[str]]:
        """
        Partition names into (on roster, not on roster).

        Duplicates are collapsed; order is kept.
        """
        members = set(self._roster)
        kept: list[str] = []
        dropped: list[str] = []
        for name in dict.fromkeys(names):
            (kept if name in members else dropped).append(name)
        return kept, dropped

    def _validate_draft(self, draft: ReceiptDraft) -> list[ProposalIssue]:
        """
        Stage 1: amounts and ids of a whole-receipt draft.
        """
        issues = []

        for field in ("subtotal", "tax", "tip", "total"):
            value = getattr(draft, field)
            if not is_sane_amount(value):
                issues.append(ProposalIssue(
                    field=field,
                    issue_type="invalid_amount",
                    message=f"{field.capitalize()} must be a finite, non-negative amount (got {value})",
                    severity="error",
                ))

        seen: set[str] = set()
        for index, item in enumerate(draft.items):
            if not item.id:
                issues.append(ProposalIssue(
                    field=f"items[{index}].id",
                    issue_type="missing",
                    message=f"Item '{item.name}' has no id",
                    severity="error",
                ))
            elif item.id in seen:
                issues.append(ProposalIssue(
                    field=f"items[{index}].id",
                    issue_type="duplicate_item",
                    message=f"Item id '{item.id}' appears more than once",
                    severity="error",
                ))
            seen.add(item.id)

            if not is_sane_amount(item.price):
                issues.append(ProposalIssue(
                    field=f"items[{index}].price",
                    issue_type="invalid_amount",
                    message=f"Price of '{item.name}' must be a finite, non-negative amount (got {item.price})",
                    severity="error",
                ))

        if not draft.items:
            issues.append(ProposalIssue(
                field="items",
                issue_type="empty",
                message="The receipt has no items",
                severity="warning",
            ))

        return issues

    def _validate_references(
        self,
        proposal: Proposal,
        current: Optional[ReceiptSnapshot],
    ) -> tuple[list[ProposalIssue], list[str]]:
        """
        Stage 2: item ids against the snapshot, names against the roster.

        Returns: (issues, dropped_names)
        """
        issues = []

        if isinstance(proposal, ReceiptLoadProposal):
            # a fresh receipt starts with nobody assigned
            return issues, []

        if current is None:
            issues.append(ProposalIssue(
                field="receipt",
                issue_type="no_receipt",
                message="There is no receipt to change yet",
                severity="error",
            ))
            return issues, []

        known_ids = set(current.item_ids)

        if isinstance(proposal, ItemAssignmentProposal):
            referenced = [("item_id", proposal.item_id)]
            names = proposal.assignees
        else:
            referenced = [
                (f"items[{index}].id", item.id)
                for index, item in enumerate(proposal.receipt.items)
            ]
            names = [name for item in proposal.receipt.items for name in item.assignees]

        for field, item_id in referenced:
            if item_id not in known_ids:
                issues.append(ProposalIssue(
                    field=field,
                    issue_type="unknown_item",
                    message=f"Item id '{item_id}' is not on the receipt",
                    severity="error",
                ))

        _, dropped = self.split_names(names)
        for name in dropped:
            issues.append(ProposalIssue(
                field="assignees",
                issue_type="unknown_name",
                message=f"'{name}' is not on the attendee list and was ignored",
                severity="warning",
            ))

        return issues, dropped

    def validate(
        self,
        proposal: Proposal,
        current: Optional[ReceiptSnapshot],
    ) -> ProposalValidation:
        """
        Run both stages.

        Stage 2 runs even when stage 1 failed so the caller gets every
        problem in one pass.
        """
        issues: list[ProposalIssue] = []

        if isinstance(proposal, ItemAssignmentProposal):
            if not proposal.item_id:
                issues.append(ProposalIssue(
                    field="item_id",
                    issue_type="missing",
                    message="No item given",
                    severity="error",
                ))
        else:
            issues.extend(self._validate_draft(proposal.receipt))

        reference_issues, dropped = self._validate_references(proposal, current)
        issues.extend(reference_issues)

        return ProposalValidation(
            proposal_id=proposal.proposal_id,
            issues=issues,
            dropped_assignees=dropped,
        )

    def get_user_friendly_summary(self, result: ProposalValidation) -> str:
        """
        Short text for the person holding the phone.
        """
        if result.is_valid and not result.issues:
            return "All changes applied."

        lines = []

        if result.has_errors:
            lines.append("That change could not be applied, so nothing was updated:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")

        warnings = [i for i in result.issues if i.severity == "warning"]
        if warnings:
            if lines:
                lines.append("")
            lines.append("Please note:")
            for issue in warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)
