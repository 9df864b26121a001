"""
AI Assistant for splitbills

One Gemini-backed assistant plays both external roles:

1. RECEIPT EXTRACTION:
   - CAN: Read a receipt photo into items, subtotal, tax, tip, total
   - CANNOT: Assign anybody to anything (the engine starts items empty)

2. COMMAND INTERPRETATION:
   - CAN: Turn "Tom and Jerry shared the fries" into a proposed receipt
   - CAN: Answer questions about the bill in plain text
   - CANNOT: Change the receipt directly

CRITICAL BOUNDARY: Everything the assistant returns is a PROPOSAL.
It goes through the same merge gate as a tap in the UI and is validated
exactly like one. The assistant is a TRANSLATOR, not an authority.
"""

import json
from typing import Any, Optional

import google.generativeai as genai
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from splitbills.config import GeminiSettings, get_settings
from splitbills.models.receipt import (
    AssistantReply,
    ReceiptDraft,
    ReceiptSnapshot,
)


class AssistantError(Exception):
    """Base exception for assistant errors."""
    pass


class ServiceUnavailableError(AssistantError):
    """The call failed or came back without usable content."""
    pass


class MalformedServiceOutputError(AssistantError):
    """The response could not be parsed into the expected shape."""

    def __init__(self, message: str, raw_text: Optional[str] = None):
        self.raw_text = raw_text
        super().__init__(message)


EXTRACTION_PROMPT = """Analyze this receipt image. Extract all line items with their prices.
Also extract the subtotal, tax, and total. If a tip is written or included, extract it (default to 0 if not found).
Detect the currency symbol used on the receipt (e.g. $, €, £).

Respond with ONLY a JSON object in this exact format:
{"items": [{"id": "1", "name": "Burger", "price": 12.0}], "subtotal": 12.0, "tax": 1.2, "tip": 0, "total": 13.2, "currency": "$"}

Assign a unique 'id' to each item ('1', '2', '3', ...)."""


COMMAND_PROMPT = """You are a helpful bill-splitting assistant.

Context - Attendees at the table:
{attendees}

Current Receipt State:
{receipt}

User Message:
"{message}"

Instructions:
1. Interpret the user's message to assign items to people from the attendees list.
2. Update the 'assignedTo' array for the relevant items in the receipt.
3. If a user says "Tom had the burger", add "Tom" to the burger's assignedTo list.
   (Match "Tom" to the closest name in the attendees list if possible.)
4. If multiple people shared an item (e.g., "Tom and Jerry shared the fries"), add both names.
5. If the user asks a question about the bill, just answer it in the 'message' field and leave out 'updatedReceipt'.
6. If the user explicitly sets a tip (e.g., "Add $10 tip" or "20% tip"), update the 'tip' field.
7. Keep every item id exactly as given. Never invent items.
8. Be smart about matching item names (fuzzy match).

Respond with ONLY a JSON object in this format:
{{"message": "response to the user", "updatedReceipt": {{...the full updated receipt...}}}}"""


def _schema(type_, **kwargs):
    return genai.protos.Schema(type=type_, **kwargs)


_STRING = genai.protos.Type.STRING
_NUMBER = genai.protos.Type.NUMBER
_ARRAY = genai.protos.Type.ARRAY
_OBJECT = genai.protos.Type.OBJECT

# Constrains the extraction answer to the draft shape; assignees are not asked for
RECEIPT_SCHEMA = _schema(
    _OBJECT,
    properties={
        "items": _schema(_ARRAY, items=_schema(
            _OBJECT,
            properties={
                "id": _schema(_STRING, description="Unique item id, e.g. 1, 2, 3"),
                "name": _schema(_STRING),
                "price": _schema(_NUMBER),
            },
            required=["id", "name", "price"],
        )),
        "subtotal": _schema(_NUMBER),
        "tax": _schema(_NUMBER),
        "tip": _schema(_NUMBER),
        "total": _schema(_NUMBER),
        "currency": _schema(_STRING, description="Currency symbol, e.g. $, €, £"),
    },
    required=["items", "subtotal", "tax", "total", "currency"],
)

REPLY_SCHEMA = _schema(
    _OBJECT,
    properties={
        "message": _schema(_STRING, description="A conversational response to the user."),
        "updatedReceipt": _schema(
            _OBJECT,
            description="The full updated receipt with modified assignments.",
            properties={
                "items": _schema(_ARRAY, items=_schema(
                    _OBJECT,
                    properties={
                        "id": _schema(_STRING),
                        "name": _schema(_STRING),
                        "price": _schema(_NUMBER),
                        "assignedTo": _schema(_ARRAY, items=_schema(_STRING)),
                    },
                    required=["id", "name", "price", "assignedTo"],
                )),
                "subtotal": _schema(_NUMBER),
                "tax": _schema(_NUMBER),
                "tip": _schema(_NUMBER),
                "total": _schema(_NUMBER),
                "currency": _schema(_STRING),
            },
            required=["items", "subtotal", "tax", "tip", "total", "currency"],
        ),
    },
    required=["message"],
)


class ReceiptAssistant:
    """
    Gemini client for receipt extraction and chat commands.

    BOUNDARIES:
    - NEVER touches the snapshot store
    - ALWAYS returns drafts for the merge gate to judge
    - Raises instead of guessing when the output is unusable
    """

    def __init__(
        self,
        model: Optional[Any] = None,
        settings: Optional[GeminiSettings] = None,
        retry_wait: Optional[wait_base] = None,
    ):
        """
        Initialize the assistant.

        Args:
            model: Anything with an async
                   generate_content_async(contents, generation_config).
                   If None, a Gemini model is configured from settings.
            settings: Gemini settings. Loaded from the environment when
                      a model has to be built and none are given.
            retry_wait: tenacity wait strategy between attempts.
        """
        if model is None:
            settings = settings or get_settings().gemini
            model = self._configure_genai(settings)
        self._settings = settings
        self._model = model
        self._max_attempts = settings.max_attempts if settings else 3
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=2, max=10)

    @staticmethod
    def _configure_genai(settings: GeminiSettings):
        """Configure Google Generative AI."""
        genai.configure(api_key=settings.api_key)
        return genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
                "response_mime_type": "application/json",
            },
        )

    async def _generate(self, contents, schema: genai.protos.Schema) -> str:
        """
        Call the model with retries, constraining the answer to schema.

        Only ServiceUnavailableError is retried; a malformed answer is
        not going to improve by asking again.
        """
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._retry_wait,
            retry=retry_if_exception_type(ServiceUnavailableError),
            reraise=True,
        ):
            with attempt:
                try:
                    response = await self._model.generate_content_async(
                        contents,
                        generation_config={"response_schema": schema},
                    )
                    text = response.text
                except Exception as e:
                    raise ServiceUnavailableError(f"Gemini call failed: {e}") from e

                if not text or not text.strip():
                    raise ServiceUnavailableError("No response from Gemini")
        return text.strip()

    @staticmethod
    def _parse_json(text: str) -> dict:
        """Find and decode the JSON object in a model response."""
        start = text.find("{")
        end = text.rfind("}") + 1
        if start < 0 or end <= start:
            raise MalformedServiceOutputError("No JSON object in response", raw_text=text)
        try:
            data = json.loads(text[start:end])
        except json.JSONDecodeError as e:
            raise MalformedServiceOutputError(f"Invalid JSON: {e}", raw_text=text) from e
        if not isinstance(data, dict):
            raise MalformedServiceOutputError("Response is not a JSON object", raw_text=text)
        return data

    async def parse_receipt_image(
        self,
        image_bytes: bytes,
        mime_type: str,
    ) -> ReceiptDraft:
        """
        Extract a receipt draft from a photo.

        Returns:
            ReceiptDraft with items, subtotal, tax, tip (0 if absent), total
            and currency. Assignees are not trusted from here; the merge
            gate starts every item empty.

        Raises:
            ServiceUnavailableError: the call failed or returned nothing
            MalformedServiceOutputError: the answer is not a receipt
        """
        text = await self._generate([
            {"mime_type": mime_type, "data": image_bytes},
            EXTRACTION_PROMPT,
        ], RECEIPT_SCHEMA)
        data = self._parse_json(text)

        try:
            return ReceiptDraft.model_validate(data)
        except ValidationError as e:
            raise MalformedServiceOutputError(
                f"Receipt has the wrong shape: {e.error_count()} problems",
                raw_text=text,
            ) from e

    async def interpret_command(
        self,
        snapshot: ReceiptSnapshot,
        message: str,
        attendees: list[str],
    ) -> AssistantReply:
        """
        Interpret a free-text instruction about the current receipt.

        Returns:
            AssistantReply. updated_receipt is None when the user only
            asked a question.
        """
        prompt = COMMAND_PROMPT.format(
            attendees=json.dumps(attendees),
            receipt=json.dumps(snapshot.to_prompt_dict(), indent=2),
            message=message,
        )
        text = await self._generate(prompt, REPLY_SCHEMA)
        data = self._parse_json(text)

        try:
            return AssistantReply.model_validate(data)
        except ValidationError as e:
            raise MalformedServiceOutputError(
                f"Reply has the wrong shape: {e.error_count()} problems",
                raw_text=text,
            ) from e
