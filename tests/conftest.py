"""
Shared fixtures.

Everything runs against in-memory collaborators: no Sheets, no Gemini.
"""

import io

import pytest
from PIL import Image

from finwise.agents.interface import (
    ModelTransactionItem,
    ReceiptImage,
    ReceiptParseResponse,
    TextParseResponse,
    TransactionModelInterface,
)
from finwise.config import AppSettings
from finwise.models.transaction import CatalogSnapshot
from finwise.services.storage import (
    DEFAULT_CATEGORIES,
    DEFAULT_PAYMENT_METHODS,
    InMemoryReferenceCatalog,
    InMemoryTransactionStore,
)


class StubModel(TransactionModelInterface):
    """Returns canned responses and records what it was asked."""

    def __init__(self, text_response=None, receipt_response=None, error=None):
        self.text_response = text_response or TextParseResponse()
        self.receipt_response = receipt_response or ReceiptParseResponse()
        self.error = error
        self.calls = []

    async def parse_transactions_from_text(self, text, categories, payment_methods):
        self.calls.append(("text", text, categories, payment_methods))
        if self.error:
            raise self.error
        return self.text_response

    async def parse_receipt_image(self, image, categories, payment_methods):
        self.calls.append(("receipt", image, categories, payment_methods))
        if self.error:
            raise self.error
        return self.receipt_response


@pytest.fixture
def app_settings():
    return AppSettings(
        max_upload_size_mb=1,
        supported_image_formats="jpeg,png,webp",
        max_transaction_amount_inr=100000.0,
        future_date_tolerance_days=7,
        low_confidence_threshold=0.5,
    )


@pytest.fixture
def snapshot():
    return CatalogSnapshot(
        categories=tuple(DEFAULT_CATEGORIES),
        payment_methods=tuple(DEFAULT_PAYMENT_METHODS),
    )


@pytest.fixture
def catalog():
    return InMemoryReferenceCatalog()


@pytest.fixture
def store():
    return InMemoryTransactionStore()


@pytest.fixture
def stub_model():
    return StubModel


@pytest.fixture
def model_item():
    """Build a ModelTransactionItem from camelCase keys, as the model sends them."""
    def build(**fields):
        return ModelTransactionItem.model_validate(fields)
    return build


@pytest.fixture
def png_receipt():
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color="white").save(buffer, format="PNG")
    return ReceiptImage(data=buffer.getvalue(), mime_type="image/png", filename="receipt.png")
