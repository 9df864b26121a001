"""
Data Models Package

This package contains all Pydantic models used by splitbills.
All data flowing through the engine must conform to these schemas.
"""

from splitbills.models.receipt import (
    AssistantReply,
    ChatMessage,
    DraftItem,
    ItemAssignmentProposal,
    MergeOutcome,
    MessageSender,
    PersonSummary,
    Proposal,
    ProposalIssue,
    ProposalOrigin,
    ProposalValidation,
    ReceiptDraft,
    ReceiptImage,
    ReceiptItem,
    ReceiptLoadProposal,
    ReceiptSnapshot,
    SnapshotReplacementProposal,
    SplitSummary,
)
from splitbills.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Receipt models
    "AssistantReply",
    "ChatMessage",
    "DraftItem",
    "ItemAssignmentProposal",
    "MergeOutcome",
    "MessageSender",
    "PersonSummary",
    "Proposal",
    "ProposalIssue",
    "ProposalOrigin",
    "ProposalValidation",
    "ReceiptDraft",
    "ReceiptImage",
    "ReceiptItem",
    "ReceiptLoadProposal",
    "ReceiptSnapshot",
    "SnapshotReplacementProposal",
    "SplitSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
