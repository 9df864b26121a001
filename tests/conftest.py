"""Shared fixtures for splitbills tests."""

import pytest

from splitbills.engine import PatchMergeProtocol, RosterManager, SnapshotStore
from splitbills.models.receipt import ReceiptLoadProposal

from support import burger_fries_draft


@pytest.fixture
def roster():
    return RosterManager(["Ana", "Ben"])


@pytest.fixture
def store():
    return SnapshotStore()


@pytest.fixture
def merger(store, roster):
    """Merge gate with the burger/fries receipt already loaded."""
    merger = PatchMergeProtocol(store, roster)
    outcome = merger.apply(ReceiptLoadProposal(receipt=burger_fries_draft()))
    assert outcome.accepted
    return merger
