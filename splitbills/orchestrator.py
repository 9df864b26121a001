"""
Session Orchestrator for splitbills

This module ties together all the components of one bill-splitting session:
1. Load (photo → assistant extraction → merge gate → snapshot)
2. Attendees (roster add/remove, with the removal cascade)
3. Split (manual toggles and chat commands → merge gate → snapshot)
4. Summary (allocation calculator, recomputed on every read)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the snapshot except through the merge gate
- Service failures leave the previous snapshot untouched
- Every step is audited

The presentation layer reads snapshot/summary/messages and writes only
through the methods below.
"""

import random
from typing import Optional
from uuid import UUID

from pydantic import ValidationError

from splitbills.agents import (
    AssistantError,
    MalformedServiceOutputError,
    ReceiptAssistant,
)
from splitbills.audit import AuditLogger, create_correlation_id
from splitbills.config import get_settings
from splitbills.engine import (
    PatchMergeProtocol,
    RosterManager,
    SnapshotStore,
    compute_split,
    generate_session_code,
)
from splitbills.models.receipt import (
    ChatMessage,
    MergeOutcome,
    MessageSender,
    ProposalValidation,
    ReceiptImage,
    ReceiptLoadProposal,
    ReceiptSnapshot,
    SnapshotReplacementProposal,
    SplitSummary,
)

EXTRACTION_RETRY_MESSAGE = "Failed to process receipt. Please try again."
CHAT_RETRY_MESSAGE = "Sorry, I had trouble processing that. Could you try again?"


class BillSplitSession:
    """
    One bill, one table, one process.

    Flow:
    1. load_receipt_image → snapshot with every item unassigned
    2. add_attendee / remove_attendee
    3. start_splitting → session code and greeting
    4. toggle_assignment / toggle_all / send_message
    5. summary() whenever the UI re-renders

    Chat commands may be awaited while manual edits keep committing.
    Whatever commits last wins.
    """

    def __init__(
        self,
        assistant: Optional[ReceiptAssistant] = None,
        audit_logger: Optional[AuditLogger] = None,
        rng: Optional[random.Random] = None,
    ):
        self._app_settings = get_settings().app
        self._assistant = assistant
        self._audit_logger = audit_logger or AuditLogger(
            history_limit=self._app_settings.audit_history_limit,
        )
        self._rng = rng

        self._store = SnapshotStore()
        self._roster = RosterManager()
        self._merger = PatchMergeProtocol(self._store, self._roster, self._audit_logger)

        self._messages: list[ChatMessage] = []
        self._session_code: Optional[str] = None

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def snapshot(self) -> Optional[ReceiptSnapshot]:
        return self._store.current()

    @property
    def version(self) -> int:
        return self._store.version

    @property
    def attendees(self) -> list[str]:
        return self._roster.names

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def session_code(self) -> Optional[str]:
        return self._session_code

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    def summary(self) -> SplitSummary:
        """Who owes what, computed fresh from the current state."""
        return compute_split(self._store.current(), self._roster)

    def _get_assistant(self) -> ReceiptAssistant:
        # built lazily so a session without credentials can still split by hand
        if self._assistant is None:
            self._assistant = ReceiptAssistant()
        return self._assistant

    # -------------------------------------------------------------------------
    # Receipt
    # -------------------------------------------------------------------------

    def _check_upload(self, image_bytes: bytes, mime_type: str) -> ReceiptImage:
        image = ReceiptImage(mime_type=mime_type, size_bytes=len(image_bytes))
        if image.mime_type not in self._app_settings.supported_formats_list:
            raise ValueError(
                f"Unsupported image type: {image.mime_type}. "
                f"Allowed: {', '.join(self._app_settings.supported_formats_list)}"
            )
        if image.size_bytes > self._app_settings.max_upload_size_bytes:
            raise ValueError(
                f"Image is larger than {self._app_settings.max_upload_size_mb} MB"
            )
        return image

    async def load_receipt_image(
        self,
        image_bytes: bytes,
        mime_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[bool, str]:
        """
        Turn a receipt photo into the session's snapshot.

        Returns:
            (ok, message). On failure the previous snapshot is kept and the
            message asks the user to try again.
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            image = self._check_upload(image_bytes, mime_type)
        except ValidationError:
            return False, "Please upload a photo of the receipt."
        except ValueError as e:
            return False, str(e)

        self._audit_logger.log_receipt_extraction_started(
            upload_id=image.upload_id,
            mime_type=image.mime_type,
            size_bytes=image.size_bytes,
            correlation_id=correlation_id,
        )

        try:
            draft = await self._get_assistant().parse_receipt_image(
                image_bytes, image.mime_type,
            )
        except AssistantError as e:
            self._log_assistant_failure("receipt_extraction", e, correlation_id)
            self._audit_logger.log_receipt_extraction_failed(
                upload_id=image.upload_id,
                reason=str(e),
                correlation_id=correlation_id,
            )
            return False, EXTRACTION_RETRY_MESSAGE

        outcome = self._merger.apply(
            ReceiptLoadProposal(receipt=draft),
            correlation_id=correlation_id,
        )
        if outcome.rejected:
            self._audit_logger.log_receipt_extraction_failed(
                upload_id=image.upload_id,
                reason=outcome.reason or "rejected",
                correlation_id=correlation_id,
            )
            return False, EXTRACTION_RETRY_MESSAGE

        self._audit_logger.log_receipt_extracted(
            upload_id=image.upload_id,
            item_count=len(outcome.snapshot.items),
            total=str(outcome.snapshot.total),
            correlation_id=correlation_id,
        )
        return True, f"Found {len(outcome.snapshot.items)} items on the receipt."

    # -------------------------------------------------------------------------
    # Attendees
    # -------------------------------------------------------------------------

    def add_attendee(self, name: str) -> bool:
        added = self._roster.add(name)
        if added:
            self._audit_logger.log_attendee_added(name)
        return added

    def remove_attendee(self, name: str) -> bool:
        """Remove name from the roster and from every item."""
        removed = self._roster.remove(name)
        if removed:
            self._audit_logger.log_attendee_removed(name)
        return removed

    # -------------------------------------------------------------------------
    # Splitting
    # -------------------------------------------------------------------------

    def start_splitting(self) -> str:
        """Generate the session code and greet the table."""
        self._session_code = generate_session_code(self._rng)
        self._audit_logger.log_session_started(self._session_code, len(self._roster))

        if self._store.current() is not None:
            self._post(
                MessageSender.BOT,
                f"Session {self._session_code} started! I see {len(self._roster)} people. "
                "Assign items on the left or tell me who had what.",
            )
        return self._session_code

    def assign_item(self, item_id: str, names: list[str]) -> MergeOutcome:
        return self._merger.assign(item_id, names)

    def toggle_assignment(self, item_id: str, name: str) -> MergeOutcome:
        return self._merger.toggle_assignee(item_id, name)

    def toggle_all(self, item_id: str) -> MergeOutcome:
        return self._merger.toggle_all(item_id)

    async def send_message(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> ChatMessage:
        """
        Hand a free-text instruction to the assistant.

        The reply's updated receipt, if any, is merged as a whole-receipt
        replacement once the assistant answers. Returns the bot's message.
        """
        current = self._store.current()
        if current is None:
            return self._post(MessageSender.BOT, "Upload a receipt first.")

        correlation_id = correlation_id or create_correlation_id()
        self._post(MessageSender.USER, text)
        self._audit_logger.log_command_received(text, correlation_id)

        try:
            reply = await self._get_assistant().interpret_command(
                current, text, self._roster.names,
            )
        except AssistantError as e:
            self._log_assistant_failure("command_interpretation", e, correlation_id)
            return self._post(MessageSender.BOT, CHAT_RETRY_MESSAGE)

        self._audit_logger.log_command_answered(
            has_update=reply.updated_receipt is not None,
            correlation_id=correlation_id,
        )

        bot_message = self._post(MessageSender.BOT, reply.message)

        if reply.updated_receipt is not None:
            # merged against whatever is current now, not what was sent
            outcome = self._merger.apply(
                SnapshotReplacementProposal(receipt=reply.updated_receipt),
                correlation_id=correlation_id,
            )
            if outcome.rejected:
                self._post(MessageSender.BOT, self._describe_outcome(outcome))

        return bot_message

    def reset(self) -> None:
        """Throw the whole session away."""
        self._audit_logger.log_session_reset(self._session_code)
        self._store.clear()
        self._roster.clear()
        self._messages.clear()
        self._session_code = None

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _post(self, sender: MessageSender, text: str) -> ChatMessage:
        message = ChatMessage(sender=sender, text=text)
        self._messages.append(message)
        return message

    def _describe_outcome(self, outcome: MergeOutcome) -> str:
        """Tell the table why the merge gate refused the update."""
        return self._merger.validator.get_user_friendly_summary(ProposalValidation(
            proposal_id=outcome.proposal_id,
            issues=outcome.issues,
            dropped_assignees=outcome.dropped_assignees,
        ))

    def _log_assistant_failure(
        self,
        service: str,
        error: AssistantError,
        correlation_id: UUID,
    ) -> None:
        if isinstance(error, MalformedServiceOutputError):
            self._audit_logger.log_malformed_output(
                service=service,
                error_message=str(error),
                raw_excerpt=error.raw_text,
                correlation_id=correlation_id,
            )
        else:
            self._audit_logger.log_external_service_error(
                service=service,
                error_message=str(error),
                correlation_id=correlation_id,
            )


def create_session(
    assistant: Optional[ReceiptAssistant] = None,
    rng: Optional[random.Random] = None,
) -> BillSplitSession:
    """
    Factory function to create a ready-to-use session.

    Args:
        assistant: Assistant to use. If None, one is built from settings
                   the first time it is needed.
        rng: Random source for the session code (seed it in tests).
    """
    return BillSplitSession(assistant=assistant, rng=rng)
