"""AI Agents package."""

from finwise.agents.interface import (
    ModelError,
    ModelTransactionItem,
    ReceiptImage,
    ReceiptParseResponse,
    TextParseResponse,
    TransactionModelInterface,
)
from finwise.agents.ai_agents import (
    GeminiTransactionAgent,
    create_model_agent,
)

__all__ = [
    "GeminiTransactionAgent",
    "ModelError",
    "ModelTransactionItem",
    "ReceiptImage",
    "ReceiptParseResponse",
    "TextParseResponse",
    "TransactionModelInterface",
    "create_model_agent",
]
