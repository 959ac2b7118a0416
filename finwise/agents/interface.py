"""
Generative Model Interface

The AI parsers talk to a model only through TransactionModelInterface.
The model is a TRANSLATOR, not an ORACLE: it turns free text or a receipt
photo into loosely structured items. Everything it returns is treated as
an untrusted guess and re-parsed, resolved and validated downstream.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from finwise.models.transaction import Category, PaymentMethod


class ModelError(Exception):
    """
    The model call failed, timed out or returned something unusable.

    The message is shown to the user verbatim.
    """

    def __init__(self, message: str, retryable: bool = False):
        self.retryable = retryable
        super().__init__(message)


class ReceiptImage(BaseModel):
    """A receipt photo as uploaded."""

    data: bytes = Field(..., repr=False)
    mime_type: str
    filename: str = "receipt"

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ModelTransactionItem(BaseModel):
    """
    One transaction as the model reported it.

    Every field is optional and loosely typed: the model may omit
    anything, send amounts as strings or use either naming style.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    date: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[Any] = None
    type: Optional[str] = None
    category_name_guess: Optional[str] = None
    payment_method_name_guess: Optional[str] = None
    expense_type_name_guess: Optional[str] = None
    source_guess: Optional[str] = None
    confidence_score: Optional[Any] = None
    error: Optional[str] = None


class TextParseResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    items: list[ModelTransactionItem] = Field(default_factory=list)
    summary_message: Optional[str] = None


class ReceiptParseResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    item: Optional[ModelTransactionItem] = None
    error: Optional[str] = None


class TransactionModelInterface(ABC):
    """Text and vision model collaborator used by the AI parsers."""

    @abstractmethod
    async def parse_transactions_from_text(
        self,
        text: str,
        categories: list[Category],
        payment_methods: list[PaymentMethod],
    ) -> TextParseResponse:
        """
        Interpret free-form text as zero or more transactions.

        Raises:
            ModelError: If the call fails or the reply is unusable
        """
        pass

    @abstractmethod
    async def parse_receipt_image(
        self,
        image: ReceiptImage,
        categories: list[Category],
        payment_methods: list[PaymentMethod],
    ) -> ReceiptParseResponse:
        """
        Read at most one expense from a receipt photo.

        Raises:
            ModelError: If the call fails or the reply is unusable
        """
        pass
