"""
Test helpers for splitbills.

No real API calls: the Gemini model is replaced by FakeModel, which replays
canned responses (or raises) and records what it was asked.
"""

import asyncio
import json
from decimal import Decimal
from types import SimpleNamespace

from tenacity import wait_none

from splitbills.agents import ReceiptAssistant
from splitbills.models.receipt import (
    DraftItem,
    ReceiptDraft,
    ReceiptItem,
    ReceiptSnapshot,
)

EPSILON = Decimal("1e-9")


def close(a, b, epsilon: Decimal = EPSILON) -> bool:
    return abs(Decimal(a) - Decimal(b)) < epsilon


class FakeModel:
    """Stand-in for genai.GenerativeModel."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []
        self.configs = []

    async def generate_content_async(self, contents, generation_config=None):
        self.calls.append(contents)
        self.configs.append(generation_config)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, dict):
            response = json.dumps(response)
        return SimpleNamespace(text=response)


class GatedModel(FakeModel):
    """FakeModel that waits for release() before answering."""

    def __init__(self, *responses):
        super().__init__(*responses)
        self.started = asyncio.Event()
        self._gate = asyncio.Event()

    def release(self):
        self._gate.set()

    def hold(self):
        """Make the next call wait again."""
        self.started.clear()
        self._gate.clear()

    async def generate_content_async(self, contents, generation_config=None):
        self.started.set()
        await self._gate.wait()
        return await super().generate_content_async(contents, generation_config)


def make_assistant(model) -> ReceiptAssistant:
    return ReceiptAssistant(model=model, retry_wait=wait_none())


def burger_fries_draft() -> ReceiptDraft:
    """The two-item receipt used throughout the examples."""
    return ReceiptDraft(
        items=[
            DraftItem(id="1", name="Burger", price=Decimal("12.00")),
            DraftItem(id="2", name="Fries", price=Decimal("5.00")),
        ],
        subtotal=Decimal("17.00"),
        tax=Decimal("1.70"),
        tip=Decimal("0"),
        total=Decimal("18.70"),
        currency="$",
    )


BURGER_FRIES_JSON = {
    "items": [
        {"id": "1", "name": "Burger", "price": 12.0},
        {"id": "2", "name": "Fries", "price": 5.0},
    ],
    "subtotal": 17.0,
    "tax": 1.7,
    "total": 18.7,
    "currency": "$",
}


def snapshot_of(*items, subtotal="0", tax="0", tip="0", total="0") -> ReceiptSnapshot:
    """Build a snapshot from (id, name, price, assignees) tuples."""
    return ReceiptSnapshot(
        items=tuple(
            ReceiptItem(id=i, name=n, price=Decimal(p), assignees=tuple(a))
            for i, n, p, a in items
        ),
        subtotal=Decimal(subtotal),
        tax=Decimal(tax),
        tip=Decimal(tip),
        total=Decimal(total),
    )
