"""
AI receipt parser.

One photo in, at most one expense candidate out. The image is checked
locally (type, size, decodable) before any model call is made.
"""

import io
from typing import Optional

from PIL import Image, UnidentifiedImageError

from finwise.agents.interface import ReceiptImage, TransactionModelInterface
from finwise.config import AppSettings, get_settings
from finwise.models.transaction import (
    CandidateOrigin,
    CatalogSnapshot,
    ParseResult,
    TransactionType,
)
from finwise.parsing.ai_text import candidate_from_model_item
from finwise.parsing.base import CandidateParser, ParseError
from finwise.parsing.normalize import clean_text


UNREADABLE_MESSAGE = "Could not read a transaction from this receipt. Please try a clearer photo."


class AIReceiptParser(CandidateParser):
    """Receipt photo → one expense candidate, via the vision model."""

    origin = CandidateOrigin.AI_RECEIPT

    def __init__(
        self,
        model: TransactionModelInterface,
        settings: Optional[AppSettings] = None,
    ):
        self._model = model
        self._settings = settings or get_settings().app

    def check_image(self, image: ReceiptImage) -> None:
        """
        Reject images the model should never see.

        Raises:
            ParseError: For an empty, oversized, unsupported or corrupt file
        """
        mime_type = image.mime_type.lower()
        if mime_type not in self._settings.supported_mime_types:
            allowed = ", ".join(sorted(self._settings.supported_formats_list))
            raise ParseError(f"Unsupported image type: {image.mime_type}. Allowed: {allowed}")

        if image.size_bytes == 0:
            raise ParseError("The uploaded image is empty.")

        if image.size_bytes > self._settings.max_upload_size_bytes:
            raise ParseError(
                f"Image is too large ({image.size_bytes / (1024 * 1024):.1f} MB). "
                f"Maximum is {self._settings.max_upload_size_mb} MB."
            )

        try:
            with Image.open(io.BytesIO(image.data)) as img:
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise ParseError(f"{image.filename} is not a readable image.") from e

    async def parse(
        self,
        raw: ReceiptImage,
        catalog: Optional[CatalogSnapshot] = None,
    ) -> ParseResult:
        """
        Raises:
            ParseError: If the image fails local checks
            ModelError: If the model call fails
        """
        self.check_image(raw)

        catalog = catalog or CatalogSnapshot()
        response = await self._model.parse_receipt_image(
            raw,
            catalog.categories_for(TransactionType.EXPENSE),
            list(catalog.payment_methods),
        )

        item = response.item
        unreadable = item is None or (
            not clean_text(item.description) and not clean_text(item.amount)
        )
        if unreadable:
            reason = clean_text(response.error) or (clean_text(item.error) if item else "")
            message = f"{UNREADABLE_MESSAGE} ({reason})" if reason else UNREADABLE_MESSAGE
            return ParseResult(
                origin=self.origin,
                summary_message=message,
                nothing_recognized=True,
            )

        candidate = candidate_from_model_item(
            item,
            position=0,
            origin=self.origin,
            forced_type=TransactionType.EXPENSE,
        )
        return ParseResult(origin=self.origin, candidates=[candidate])
