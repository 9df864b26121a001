"""AI assistant package."""

from splitbills.agents.ai_agents import (
    AssistantError,
    MalformedServiceOutputError,
    ReceiptAssistant,
    ServiceUnavailableError,
)

__all__ = [
    "AssistantError",
    "MalformedServiceOutputError",
    "ReceiptAssistant",
    "ServiceUnavailableError",
]
