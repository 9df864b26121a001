"""
Snapshot Store

Holds the canonical ReceiptSnapshot. The only writer is the merge gate,
which validates before it calls replace(). Snapshots are frozen, so a swap of
the reference is the whole commit.
"""

from typing import Optional

from splitbills.models.receipt import ReceiptSnapshot


class SnapshotStore:
    """Current snapshot plus a version counter the UI can watch."""

    def __init__(self, snapshot: Optional[ReceiptSnapshot] = None):
        self._snapshot = snapshot
        self._version = 0 if snapshot is None else 1

    @property
    def version(self) -> int:
        """Bumped on every replace() and clear()."""
        return self._version

    @property
    def is_empty(self) -> bool:
        return self._snapshot is None

    def current(self) -> Optional[ReceiptSnapshot]:
        """The committed snapshot, or None before a receipt is loaded."""
        return self._snapshot

    def replace(self, snapshot: ReceiptSnapshot) -> ReceiptSnapshot:
        if not isinstance(snapshot, ReceiptSnapshot):
            raise TypeError(
                f"Expected ReceiptSnapshot, got {type(snapshot).__name__}"
            )
        self._snapshot = snapshot
        self._version += 1
        return snapshot

    def clear(self) -> None:
        """Discard the snapshot (session reset)."""
        self._snapshot = None
        self._version += 1
