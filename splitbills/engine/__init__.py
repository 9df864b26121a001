"""
Bill reconciliation and allocation engine.

Roster, snapshot store, allocation calculator, merge gate and session codes.
"""

from splitbills.engine.allocation import (
    compute_split,
    coverage_percent,
    valid_assignees,
)
from splitbills.engine.merge import PatchMergeProtocol
from splitbills.engine.roster import RosterManager
from splitbills.engine.session_code import (
    SESSION_CODE_ALPHABET,
    SESSION_CODE_LENGTH,
    generate_session_code,
    is_valid_session_code,
)
from splitbills.engine.store import SnapshotStore

__all__ = [
    "PatchMergeProtocol",
    "RosterManager",
    "SESSION_CODE_ALPHABET",
    "SESSION_CODE_LENGTH",
    "SnapshotStore",
    "compute_split",
    "coverage_percent",
    "generate_session_code",
    "is_valid_session_code",
    "valid_assignees",
]
