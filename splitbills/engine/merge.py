"""
Patch Merge Protocol

The single gate through which every change to the receipt passes:
- a freshly extracted receipt (load)
- a whole-receipt replacement proposed by the assistant (replace)
- a manual change to one item's assignees (assign)

FLOW:
1. Validate the proposal against the current snapshot and the roster
2. Reject wholesale on any error; the store is not touched
3. Otherwise build a new frozen snapshot, dropping unknown names
4. Commit it with SnapshotStore.replace()

CONCURRENCY: apply() is synchronous. Proposals commit in the order apply()
is called, and the last commit wins. An assistant reply that was in flight
while somebody tapped an item will overwrite that tap when it lands; there
are no version tokens on proposals.
"""

from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from splitbills.audit import AuditLogger
from splitbills.engine.allocation import valid_assignees
from splitbills.engine.roster import RosterManager
from splitbills.engine.store import SnapshotStore
from splitbills.models.receipt import (
    ItemAssignmentProposal,
    MergeOutcome,
    Proposal,
    ProposalIssue,
    ProposalOrigin,
    ProposalValidation,
    ReceiptDraft,
    ReceiptItem,
    ReceiptLoadProposal,
    ReceiptSnapshot,
    SnapshotReplacementProposal,
)
from splitbills.validation import ProposalValidator


class PatchMergeProtocol:
    """
    Validates and commits proposals.

    Also keeps items consistent with the roster: when an attendee is
    removed, their name is stripped from every item through a replacement
    proposal of the current state.
    """

    def __init__(
        self,
        store: SnapshotStore,
        roster: RosterManager,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._roster = roster
        self._validator = ProposalValidator(roster)
        self._audit_logger = audit_logger
        roster.subscribe(self._on_attendee_removed)

    @property
    def validator(self) -> ProposalValidator:
        return self._validator

    def apply(
        self,
        proposal: Proposal,
        correlation_id: Optional[UUID] = None,
    ) -> MergeOutcome:
        """
        Validate and commit a proposal.

        Returns:
            MergeOutcome with accepted=True and the committed snapshot, or
            accepted=False and a reason. A rejected proposal leaves the
            store exactly as it was.
        """
        current = self._store.current()
        validation = self._validator.validate(proposal, current)

        if validation.has_errors:
            return self._reject(proposal, validation, correlation_id)

        try:
            snapshot = self._build_snapshot(proposal, current)
        except ValidationError as e:
            validation.issues.append(ProposalIssue(
                field="receipt",
                issue_type="invalid_snapshot",
                message=f"Resulting receipt is invalid: {e.error_count()} problems",
                severity="error",
            ))
            return self._reject(proposal, validation, correlation_id)

        self._store.replace(snapshot)

        if self._audit_logger:
            self._audit_logger.log_proposal_accepted(
                proposal_id=proposal.proposal_id,
                kind=proposal.kind,
                origin=proposal.origin.value,
                version=self._store.version,
                correlation_id=correlation_id,
            )
            if validation.dropped_assignees:
                self._audit_logger.log_assignees_dropped(
                    proposal_id=proposal.proposal_id,
                    names=validation.dropped_assignees,
                    correlation_id=correlation_id,
                )

        return MergeOutcome(
            proposal_id=proposal.proposal_id,
            accepted=True,
            snapshot=snapshot,
            issues=validation.issues,
            dropped_assignees=validation.dropped_assignees,
            version=self._store.version,
        )

    def _reject(
        self,
        proposal: Proposal,
        validation: ProposalValidation,
        correlation_id: Optional[UUID],
    ) -> MergeOutcome:
        errors = [i for i in validation.issues if i.severity == "error"]
        reason = "; ".join(issue.message for issue in errors)

        if self._audit_logger:
            self._audit_logger.log_proposal_rejected(
                proposal_id=proposal.proposal_id,
                kind=proposal.kind,
                origin=proposal.origin.value,
                reason=reason,
                issues=[
                    {"field": i.field, "type": i.issue_type, "message": i.message}
                    for i in errors
                ],
                correlation_id=correlation_id,
            )

        return MergeOutcome(
            proposal_id=proposal.proposal_id,
            accepted=False,
            reason=reason,
            issues=validation.issues,
            version=self._store.version,
        )

    def _build_snapshot(
        self,
        proposal: Proposal,
        current: Optional[ReceiptSnapshot],
    ) -> ReceiptSnapshot:
        """Turn a validated proposal into the next canonical snapshot."""
        if isinstance(proposal, ItemAssignmentProposal):
            kept, _ = self._validator.split_names(proposal.assignees)
            return current.with_item_assignees(proposal.item_id, kept)

        draft = proposal.receipt
        draft_items = draft.items

        if isinstance(proposal, SnapshotReplacementProposal):
            # presentation order follows the current receipt
            position = {item_id: i for i, item_id in enumerate(current.item_ids)}
            draft_items = sorted(draft_items, key=lambda it: position[it.id])

        items = []
        for draft_item in draft_items:
            if isinstance(proposal, ReceiptLoadProposal):
                assignees: list[str] = []
            else:
                assignees, _ = self._validator.split_names(draft_item.assignees)
            items.append(ReceiptItem(
                id=draft_item.id,
                name=draft_item.name,
                price=draft_item.price,
                assignees=tuple(assignees),
            ))

        return ReceiptSnapshot(
            items=tuple(items),
            subtotal=draft.subtotal,
            tax=draft.tax,
            tip=draft.tip,
            total=draft.total,
            currency=draft.currency,
        )

    # -------------------------------------------------------------------------
    # Manual edits
    # -------------------------------------------------------------------------

    def assign(
        self,
        item_id: str,
        assignees: list[str],
        origin: ProposalOrigin = ProposalOrigin.MANUAL,
    ) -> MergeOutcome:
        """Set one item's assignees."""
        return self.apply(ItemAssignmentProposal(
            item_id=item_id,
            assignees=assignees,
            origin=origin,
        ))

    def toggle_assignee(self, item_id: str, name: str) -> MergeOutcome:
        """Add name to the item, or take it off if already there."""
        current = self._store.current()
        item = current.get_item(item_id) if current else None
        existing = list(item.assignees) if item else []

        if name in existing:
            assignees = [n for n in existing if n != name]
        else:
            assignees = existing + [name]
        return self.assign(item_id, assignees)

    def toggle_all(self, item_id: str) -> MergeOutcome:
        """
        Select everybody on the item, or clear it when everybody is
        already on it.
        """
        current = self._store.current()
        item = current.get_item(item_id) if current else None
        everyone = self._roster.names

        fully_assigned = (
            item is not None
            and bool(everyone)
            and set(valid_assignees(item, everyone)) == set(everyone)
        )
        return self.assign(item_id, [] if fully_assigned else everyone)

    # -------------------------------------------------------------------------
    # Roster cascade
    # -------------------------------------------------------------------------

    def _on_attendee_removed(self, name: str) -> None:
        current = self._store.current()
        if current is None:
            return
        if not any(name in item.assignees for item in current.items):
            return
        # the name is already off the roster, so re-validating the current
        # state strips it from every item
        self.apply(SnapshotReplacementProposal(
            origin=ProposalOrigin.ROSTER,
            receipt=ReceiptDraft.from_snapshot(current),
        ))
