"""
Tests for the Gemini-backed receipt assistant.

The model is always a FakeModel; no request leaves the process.
"""

import asyncio
from decimal import Decimal

import pytest

from splitbills.agents import (
    MalformedServiceOutputError,
    ServiceUnavailableError,
)
from splitbills.agents.ai_agents import EXTRACTION_PROMPT, RECEIPT_SCHEMA, REPLY_SCHEMA

from support import BURGER_FRIES_JSON, FakeModel, make_assistant, snapshot_of


class TestParseReceiptImage:
    """Receipt photo to draft."""

    def test_parses_receipt(self):
        model = FakeModel(BURGER_FRIES_JSON)
        assistant = make_assistant(model)

        draft = asyncio.run(assistant.parse_receipt_image(b"jpeg", "image/jpeg"))

        assert [item.name for item in draft.items] == ["Burger", "Fries"]
        assert draft.items[0].price == Decimal("12.0")
        assert draft.subtotal == Decimal("17.0")
        assert draft.total == Decimal("18.7")
        assert draft.currency == "$"

    def test_missing_tip_defaults_to_zero(self):
        assistant = make_assistant(FakeModel(BURGER_FRIES_JSON))
        draft = asyncio.run(assistant.parse_receipt_image(b"jpeg", "image/jpeg"))
        assert draft.tip == 0

    def test_sends_image_and_prompt(self):
        model = FakeModel(BURGER_FRIES_JSON)
        asyncio.run(make_assistant(model).parse_receipt_image(b"raw", "image/png"))

        image_part, prompt = model.calls[0]
        assert image_part == {"mime_type": "image/png", "data": b"raw"}
        assert prompt == EXTRACTION_PROMPT
        assert model.configs[0] == {"response_schema": RECEIPT_SCHEMA}

    def test_json_inside_code_fence(self):
        text = '```json\n{"items": [], "subtotal": 0, "tax": 0, "total": 0, "currency": "$"}\n```'
        draft = asyncio.run(
            make_assistant(FakeModel(text)).parse_receipt_image(b"x", "image/jpeg")
        )
        assert draft.items == []

    def test_integer_ids_are_accepted(self):
        data = dict(BURGER_FRIES_JSON, items=[{"id": 1, "name": "Tea", "price": 3}])
        draft = asyncio.run(
            make_assistant(FakeModel(data)).parse_receipt_image(b"x", "image/jpeg")
        )
        assert draft.items[0].id == "1"

    def test_negative_amounts_still_parse(self):
        """Range checks belong to the merge gate, not the parser."""
        data = dict(BURGER_FRIES_JSON, tax=-1.0)
        draft = asyncio.run(
            make_assistant(FakeModel(data)).parse_receipt_image(b"x", "image/jpeg")
        )
        assert draft.tax == Decimal("-1.0")

    def test_not_json(self):
        assistant = make_assistant(FakeModel("I cannot read this receipt"))
        with pytest.raises(MalformedServiceOutputError) as exc_info:
            asyncio.run(assistant.parse_receipt_image(b"x", "image/jpeg"))
        assert exc_info.value.raw_text == "I cannot read this receipt"

    def test_broken_json(self):
        assistant = make_assistant(FakeModel('{"items": [}'))
        with pytest.raises(MalformedServiceOutputError):
            asyncio.run(assistant.parse_receipt_image(b"x", "image/jpeg"))

    def test_wrong_shape(self):
        assistant = make_assistant(FakeModel({"lines": ["Burger 12.00"]}))
        with pytest.raises(MalformedServiceOutputError):
            asyncio.run(assistant.parse_receipt_image(b"x", "image/jpeg"))

    def test_missing_currency_is_malformed(self):
        data = {k: v for k, v in BURGER_FRIES_JSON.items() if k != "currency"}
        with pytest.raises(MalformedServiceOutputError):
            asyncio.run(
                make_assistant(FakeModel(data)).parse_receipt_image(b"x", "image/jpeg")
            )

    def test_malformed_output_is_not_retried(self):
        model = FakeModel("nope", BURGER_FRIES_JSON)
        with pytest.raises(MalformedServiceOutputError):
            asyncio.run(make_assistant(model).parse_receipt_image(b"x", "image/jpeg"))
        assert len(model.calls) == 1


class TestRetries:
    """Transient failures are retried, then surfaced."""

    def test_recovers_after_failure(self):
        model = FakeModel(RuntimeError("503"), BURGER_FRIES_JSON)
        draft = asyncio.run(make_assistant(model).parse_receipt_image(b"x", "image/jpeg"))

        assert len(draft.items) == 2
        assert len(model.calls) == 2

    def test_empty_response_is_retried(self):
        model = FakeModel("", BURGER_FRIES_JSON)
        draft = asyncio.run(make_assistant(model).parse_receipt_image(b"x", "image/jpeg"))
        assert len(draft.items) == 2

    def test_gives_up_after_max_attempts(self):
        model = FakeModel(
            RuntimeError("down"), RuntimeError("down"), RuntimeError("down"),
        )
        with pytest.raises(ServiceUnavailableError):
            asyncio.run(make_assistant(model).parse_receipt_image(b"x", "image/jpeg"))
        assert len(model.calls) == 3


class TestInterpretCommand:
    """Free-text instructions to proposed receipts."""

    def _snapshot(self):
        return snapshot_of(
            ("1", "Burger", "12.00", []),
            ("2", "Fries", "5.00", []),
            subtotal="17.00", tax="1.70", total="18.70",
        )

    def test_reply_with_update(self):
        reply_json = {
            "message": "Done! Ana had the burger.",
            "updatedReceipt": {
                "items": [
                    {"id": "1", "name": "Burger", "price": 12.0, "assignedTo": ["Ana"]},
                    {"id": "2", "name": "Fries", "price": 5.0, "assignedTo": []},
                ],
                "subtotal": 17.0, "tax": 1.7, "tip": 0, "total": 18.7, "currency": "$",
            },
        }
        assistant = make_assistant(FakeModel(reply_json))

        reply = asyncio.run(
            assistant.interpret_command(self._snapshot(), "Ana had the burger", ["Ana", "Ben"])
        )

        assert reply.message == "Done! Ana had the burger."
        assert reply.updated_receipt.items[0].assignees == ["Ana"]

    def test_question_has_no_update(self):
        assistant = make_assistant(FakeModel({"message": "The total is $18.70."}))
        reply = asyncio.run(
            assistant.interpret_command(self._snapshot(), "What's the total?", ["Ana"])
        )
        assert reply.updated_receipt is None

    def test_prompt_carries_context(self):
        model = FakeModel({"message": "ok"})
        asyncio.run(make_assistant(model).interpret_command(
            self._snapshot(), "Ben had fries", ["Ana", "Ben"],
        ))

        prompt = model.calls[0]
        assert '["Ana", "Ben"]' in prompt
        assert '"assignedTo": []' in prompt
        assert '"Ben had fries"' in prompt

    def test_reply_without_message_is_malformed(self):
        assistant = make_assistant(FakeModel({"updatedReceipt": None}))
        with pytest.raises(MalformedServiceOutputError):
            asyncio.run(assistant.interpret_command(self._snapshot(), "hi", ["Ana"]))

    def test_update_without_names_or_currency_is_malformed(self):
        """An incomplete receipt must not blank names or reset the currency."""
        assistant = make_assistant(FakeModel({
            "message": "ok",
            "updatedReceipt": {
                "items": [
                    {"id": "1", "price": 12.0, "assignedTo": ["Ana"]},
                    {"id": "2", "price": 5.0},
                ],
                "subtotal": 17.0, "tax": 1.7, "total": 18.7,
            },
        }))
        with pytest.raises(MalformedServiceOutputError):
            asyncio.run(assistant.interpret_command(self._snapshot(), "Ana had the burger", ["Ana"]))

    def test_reply_is_constrained_by_schema(self):
        model = FakeModel({"message": "ok"})
        asyncio.run(make_assistant(model).interpret_command(self._snapshot(), "hi", ["Ana"]))
        assert model.configs[0] == {"response_schema": REPLY_SCHEMA}


class TestResponseSchemas:
    """Schemas sent to Gemini mirror the draft models' required fields."""

    def test_receipt_schema_requires_names_and_currency(self):
        assert "currency" in RECEIPT_SCHEMA.required
        assert "name" in RECEIPT_SCHEMA.properties["items"].items.required

    def test_reply_schema_requires_full_receipt(self):
        receipt = REPLY_SCHEMA.properties["updatedReceipt"]
        assert list(REPLY_SCHEMA.required) == ["message"]
        assert "currency" in receipt.required
        assert "name" in receipt.properties["items"].items.required
