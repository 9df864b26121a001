"""
Core Data Models for splitbills

These models define the schemas for everything flowing through the
bill-splitting engine. There are two families:

1. CANONICAL models (ReceiptItem, ReceiptSnapshot) - frozen, strictly
   validated, only ever built by the merge gate.
2. DRAFT models (DraftItem, ReceiptDraft) - what an external service or a UI
   edit *proposes*. They parse loosely on purpose: a negative or non-finite
   number must reach the merge gate so it can be rejected as an invalid
   proposal instead of failing as unparseable output. Missing fields
   (item name, currency) are still a shape error: a draft always carries the
   whole receipt.

DESIGN DECISION: Money is Decimal everywhere. Service output arrives as JSON
floats and is converted on parse; totals are never recomputed from items.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _unique_names(names) -> list[str]:
    # first occurrence wins, order kept for display
    return list(dict.fromkeys(names))


# =============================================================================
# ENUMS
# =============================================================================

class ProposalOrigin(str, Enum):
    """Where a proposed change came from."""
    EXTRACTION = "extraction"   # receipt photo parsed by the assistant
    ASSISTANT = "assistant"     # free-text command interpreted by the assistant
    MANUAL = "manual"           # a tap in the UI
    ROSTER = "roster"           # cascade after an attendee was removed


class MessageSender(str, Enum):
    """Who wrote a chat message."""
    USER = "user"
    BOT = "bot"


# =============================================================================
# CANONICAL RECEIPT
# =============================================================================

class ReceiptItem(BaseModel):
    """
    One priced line on the bill.

    Assignees behave as a set: duplicates are collapsed on construction.
    Names that are no longer on the roster may linger here; the allocation
    calculator ignores them.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Identifier, unique within a snapshot"
    )
    name: str = Field(
        ...,
        description="Item name as printed on the receipt"
    )
    price: Decimal = Field(
        ...,
        ge=0,
        description="Line price"
    )
    assignees: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("assignees", "assignedTo"),
        serialization_alias="assignedTo",
        description="Participant names sharing this item"
    )

    @field_validator('assignees')
    @classmethod
    def collapse_duplicates(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(_unique_names(v))


class ReceiptSnapshot(BaseModel):
    """
    The canonical state of one bill-splitting session.

    CRITICAL: subtotal, tax, tip and total are independent of the items.
    They come from the extraction service or from an accepted replacement
    and are never resynced from the item prices.
    """
    model_config = ConfigDict(frozen=True)

    items: tuple[ReceiptItem, ...] = Field(default=())
    subtotal: Decimal = Field(default=Decimal("0"), ge=0)
    tax: Decimal = Field(default=Decimal("0"), ge=0)
    tip: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(default=Decimal("0"), ge=0)
    currency: str = Field(
        default="$",
        description="Display symbol or code, e.g. $, EUR"
    )

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]

    @property
    def items_total(self) -> Decimal:
        """Sum of item prices. Informational only."""
        return sum((item.price for item in self.items), Decimal("0"))

    def get_item(self, item_id: str) -> Optional[ReceiptItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def with_item_assignees(
        self,
        item_id: str,
        assignees: list[str],
    ) -> "ReceiptSnapshot":
        """Copy of this snapshot with one item's assignees replaced."""
        items = tuple(
            item.model_copy(update={"assignees": tuple(_unique_names(assignees))})
            if item.id == item_id else item
            for item in self.items
        )
        return self.model_copy(update={"items": items})

    def to_prompt_dict(self) -> dict:
        """
        Plain JSON-able dict in the shape the assistant speaks.

        Amounts go out as numbers, assignees as "assignedTo".
        """
        return {
            "items": [
                {
                    "id": item.id,
                    "name": item.name,
                    "price": float(item.price),
                    "assignedTo": list(item.assignees),
                }
                for item in self.items
            ],
            "subtotal": float(self.subtotal),
            "tax": float(self.tax),
            "tip": float(self.tip),
            "total": float(self.total),
            "currency": self.currency,
        }


# =============================================================================
# DRAFTS - untrusted proposed data
# =============================================================================

class DraftItem(BaseModel):
    """An item as proposed by a service or an edit. NOT validated."""
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    price: Decimal = Field(..., allow_inf_nan=True)
    assignees: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("assignees", "assignedTo"),
    )

    @field_validator('id', mode='before')
    @classmethod
    def coerce_id(cls, v):
        """Services sometimes number items with bare integers."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator('assignees', mode='before')
    @classmethod
    def none_means_nobody(cls, v):
        return [] if v is None else v


class ReceiptDraft(BaseModel):
    """
    A receipt as proposed by the extraction service or the assistant.

    CRITICAL: This is PROPOSED data. It only becomes a ReceiptSnapshot after
    the merge gate has validated it.
    """
    model_config = ConfigDict(extra="ignore")

    items: list[DraftItem]
    subtotal: Decimal = Field(..., allow_inf_nan=True)
    tax: Decimal = Field(..., allow_inf_nan=True)
    tip: Decimal = Field(default=Decimal("0"), allow_inf_nan=True)
    total: Decimal = Field(..., allow_inf_nan=True)
    currency: str = Field(
        ...,
        min_length=1,
        description="Display symbol or code, e.g. $, EUR"
    )

    @field_validator('tip', mode='before')
    @classmethod
    def missing_tip_is_zero(cls, v):
        return Decimal("0") if v is None else v

    @classmethod
    def from_snapshot(cls, snapshot: ReceiptSnapshot) -> "ReceiptDraft":
        """Draft carrying exactly the snapshot's content."""
        return cls(
            items=[
                DraftItem(
                    id=item.id,
                    name=item.name,
                    price=item.price,
                    assignees=list(item.assignees),
                )
                for item in snapshot.items
            ],
            subtotal=snapshot.subtotal,
            tax=snapshot.tax,
            tip=snapshot.tip,
            total=snapshot.total,
            currency=snapshot.currency,
        )


# =============================================================================
# PROPOSALS - the only way to change a snapshot
# =============================================================================

class ReceiptLoadProposal(BaseModel):
    """Start a session's snapshot from freshly extracted receipt data."""

    kind: Literal["load"] = "load"
    proposal_id: UUID = Field(default_factory=uuid4)
    origin: ProposalOrigin = ProposalOrigin.EXTRACTION
    receipt: ReceiptDraft


class SnapshotReplacementProposal(BaseModel):
    """Replace items, totals and currency in one step."""

    kind: Literal["replace"] = "replace"
    proposal_id: UUID = Field(default_factory=uuid4)
    origin: ProposalOrigin = ProposalOrigin.ASSISTANT
    receipt: ReceiptDraft


class ItemAssignmentProposal(BaseModel):
    """Replace the assignees of a single item. Nothing else changes."""

    kind: Literal["assign"] = "assign"
    proposal_id: UUID = Field(default_factory=uuid4)
    origin: ProposalOrigin = ProposalOrigin.MANUAL
    item_id: str
    assignees: list[str] = Field(default_factory=list)


Proposal = Annotated[
    Union[ReceiptLoadProposal, SnapshotReplacementProposal, ItemAssignmentProposal],
    Field(discriminator="kind"),
]


# =============================================================================
# VALIDATION / MERGE RESULTS
# =============================================================================

class ProposalIssue(BaseModel):
    """A single problem found while validating a proposal."""

    field: str = Field(
        ...,
        description="Field with the issue, e.g. 'items[2].price'"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'unknown_item', 'negative_amount', 'unknown_name')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ProposalValidation(BaseModel):
    """
    Result of validating a proposal against the current state.

    Errors reject the whole proposal. Warnings (dropped names) do not.
    """

    proposal_id: UUID
    issues: list[ProposalIssue] = Field(default_factory=list)
    dropped_assignees: list[str] = Field(
        default_factory=list,
        description="Names removed because they are not on the roster"
    )

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def is_valid(self) -> bool:
        return not self.has_errors


class MergeOutcome(BaseModel):
    """What the merge gate did with a proposal."""

    proposal_id: UUID
    accepted: bool
    snapshot: Optional[ReceiptSnapshot] = Field(
        default=None,
        description="The committed snapshot when accepted"
    )
    reason: Optional[str] = Field(
        default=None,
        description="Why the proposal was rejected"
    )
    issues: list[ProposalIssue] = Field(default_factory=list)
    dropped_assignees: list[str] = Field(default_factory=list)
    version: int = Field(
        ...,
        ge=0,
        description="Store version after the merge"
    )

    @property
    def rejected(self) -> bool:
        return not self.accepted


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class PersonSummary(BaseModel):
    """What one participant owes. Derived on every read, never stored."""

    name: str
    items: list[ReceiptItem] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0")
    tax_share: Decimal = Decimal("0")
    tip_share: Decimal = Decimal("0")
    total_owed: Decimal = Decimal("0")


class SplitSummary(BaseModel):
    """The whole split as the presentation layer sees it."""

    people: list[PersonSummary] = Field(default_factory=list)
    coverage_percent: Decimal = Decimal("0")
    unassigned_items: list[ReceiptItem] = Field(default_factory=list)
    unassigned_amount: Decimal = Decimal("0")
    assigned_amount: Decimal = Field(
        default=Decimal("0"),
        description="Sum of every person's total owed"
    )
    currency: str = "$"

    @property
    def is_fully_assigned(self) -> bool:
        return not self.unassigned_items


# =============================================================================
# CONVERSATION / SERVICE I/O
# =============================================================================

class ChatMessage(BaseModel):
    """One line of the conversation with the assistant."""

    id: UUID = Field(default_factory=uuid4)
    sender: MessageSender
    text: str
    timestamp: datetime = Field(default_factory=_utcnow)


class AssistantReply(BaseModel):
    """
    Output of the command-interpretation service.

    If updated_receipt is missing the instruction was a question and only
    the message is shown.
    """
    model_config = ConfigDict(extra="ignore")

    message: str = Field(..., min_length=1)
    updated_receipt: Optional[ReceiptDraft] = Field(
        default=None,
        validation_alias=AliasChoices("updated_receipt", "updatedReceipt"),
    )


class ReceiptImage(BaseModel):
    """A receipt photo handed to the extraction service."""

    upload_id: UUID = Field(default_factory=uuid4)
    uploaded_at: datetime = Field(default_factory=_utcnow)
    mime_type: str
    size_bytes: int = Field(..., gt=0)

    @field_validator('mime_type')
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only allow image types."""
        if not v.lower().startswith("image/"):
            raise ValueError(f"Unsupported media type: {v}. A photo is required")
        return v.lower()
