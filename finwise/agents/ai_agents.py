"""
AI Agents for FinWise

CRITICAL BOUNDARIES:

1. TEXT AGENT:
   - CAN: Split free text into transactions, guess names from the catalog
   - CAN: Resolve relative dates ("yesterday") against today's date
   - CANNOT: Persist anything
   - CANNOT: Invent transactions that aren't in the text

2. RECEIPT AGENT:
   - CAN: Read one expense from a receipt photo
   - MUST: Return no item when the photo is unreadable

Both replies are untrusted. The parsers re-check every field, and the
user reviews everything before it is saved.
"""

import json
from datetime import date
from typing import Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from finwise.agents.interface import (
    ModelError,
    ReceiptImage,
    ReceiptParseResponse,
    TextParseResponse,
    TransactionModelInterface,
)
from finwise.config import get_settings
from finwise.models.transaction import Category, PaymentMethod, TransactionType


logger = structlog.get_logger(__name__)


TEXT_PROMPT = """You are a financial assistant parsing raw text for transactions in Indian Rupees (INR).

Current date is {current_date}. Resolve relative dates ("yesterday", "last Tuesday") to YYYY-MM-DD.
If a transaction's date cannot be determined, leave "date" empty. Do not guess.

Available Expense Categories:
{expense_categories}

Available Income Categories:
{income_categories}

Available Payment Methods (for expenses):
{payment_methods}

For each transaction in the text, return an object with:
- date: YYYY-MM-DD
- description: short and specific (merchant plus a few key items for purchases)
- amount: positive number, no currency symbol
- type: "income" or "expense"
- categoryNameGuess: exactly one of the category names above
- paymentMethodNameGuess: (expenses only) exactly one of the payment method names above
- expenseTypeNameGuess: (expenses only) "need", "want" or "investment"; leave empty if unsure
- sourceGuess: (income only) brief income source
- confidenceScore: 0.0 to 1.0
- error: (optional, concise) what could not be read reliably

Respond with ONLY a JSON object in this exact format:
{{"items": [...], "summaryMessage": "optional concise note"}}

If the text contains no transactions, return {{"items": [], "summaryMessage": "why nothing was found"}}.
Do not invent or duplicate transactions.

Input Text:
```
{text}
```"""


RECEIPT_PROMPT = """You are reading a photographed shop receipt or bill from an Indian household.
Amounts are in Indian Rupees (INR). Current date is {current_date}.

Available Expense Categories:
{expense_categories}

Available Payment Methods:
{payment_methods}

Extract the single purchase on the receipt:
- date: YYYY-MM-DD as printed on the receipt; leave empty if not printed
- description: merchant name plus a few key items
- amount: the final total paid, positive number, no currency symbol
- categoryNameGuess: exactly one of the category names above
- paymentMethodNameGuess: one of the payment method names above if the receipt shows it
- expenseTypeNameGuess: "need", "want" or "investment"
- confidenceScore: 0.0 to 1.0
- error: (optional, concise) anything that could not be read

Respond with ONLY a JSON object in this exact format:
{{"item": {{...}}, "error": null}}

If the image is not a receipt or cannot be read, respond with
{{"item": null, "error": "short reason"}}."""


def _is_overloaded(exc: BaseException) -> bool:
    """True for 503/overload errors, the only failures worth retrying."""
    if isinstance(exc, google_exceptions.ServiceUnavailable):
        return True
    message = str(exc).lower()
    return (
        "503" in message
        or "overloaded" in message
        or "service unavailable" in message
    )


def _extract_json(text: str) -> dict:
    """Pull the outermost JSON object out of a model reply."""
    start = text.find("{")
    end = text.rfind("}") + 1
    if start < 0 or end <= start:
        raise ModelError("AI model returned a reply without any JSON.")
    try:
        return json.loads(text[start:end])
    except json.JSONDecodeError as e:
        raise ModelError(f"AI model returned malformed JSON: {e.msg}") from e


def _format_catalog(entries: list) -> str:
    return "\n".join(f"- {entry.name}" for entry in entries) or "- (none)"


class GeminiTransactionAgent(TransactionModelInterface):
    """
    Gemini-backed text and receipt reader.

    One model call per user action. Only overload/503 errors are retried;
    timeouts and everything else surface at once as ModelError.
    """

    def __init__(self, request_timeout: float = 60.0):
        self._settings = get_settings().gemini
        self._request_timeout = request_timeout
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
                "response_mime_type": "application/json",
            }
        )

    @retry(
        retry=retry_if_exception(_is_overloaded),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        reraise=True,
    )
    async def _generate(self, contents) -> str:
        response = await self._model.generate_content_async(
            contents,
            request_options={"timeout": self._request_timeout},
        )
        return response.text

    async def _call(self, contents, operation: str) -> dict:
        try:
            text = await self._generate(contents)
        except Exception as e:
            logger.error("model_call_failed", operation=operation, error=str(e))
            if _is_overloaded(e):
                raise ModelError(
                    f"AI model is currently overloaded: {e}. "
                    "Please try again in a few moments.",
                    retryable=True,
                ) from e
            raise ModelError(f"AI model failed to process the request: {e}") from e
        return _extract_json(text.strip())

    async def parse_transactions_from_text(
        self,
        text: str,
        categories: list[Category],
        payment_methods: list[PaymentMethod],
    ) -> TextParseResponse:
        prompt = TEXT_PROMPT.format(
            current_date=date.today().isoformat(),
            expense_categories=_format_catalog(
                [c for c in categories if c.type == TransactionType.EXPENSE]
            ),
            income_categories=_format_catalog(
                [c for c in categories if c.type == TransactionType.INCOME]
            ),
            payment_methods=_format_catalog(payment_methods),
            text=text,
        )

        data = await self._call(prompt, "parse_text")
        # Older prompt versions used "parsedTransactions"
        if "items" not in data and "parsedTransactions" in data:
            data["items"] = data.pop("parsedTransactions")

        try:
            return TextParseResponse.model_validate(data)
        except ValidationError as e:
            raise ModelError(
                f"AI model returned an unexpected data structure. Details: {e}"
            ) from e

    async def parse_receipt_image(
        self,
        image: ReceiptImage,
        categories: list[Category],
        payment_methods: list[PaymentMethod],
    ) -> ReceiptParseResponse:
        prompt = RECEIPT_PROMPT.format(
            current_date=date.today().isoformat(),
            expense_categories=_format_catalog(
                [c for c in categories if c.type == TransactionType.EXPENSE]
            ),
            payment_methods=_format_catalog(payment_methods),
        )

        contents = [prompt, {"mime_type": image.mime_type, "data": image.data}]
        data = await self._call(contents, "parse_receipt")

        try:
            return ReceiptParseResponse.model_validate(data)
        except ValidationError as e:
            raise ModelError(
                f"AI model returned an unexpected data structure. Details: {e}"
            ) from e


def create_model_agent() -> Optional[GeminiTransactionAgent]:
    """Build the Gemini agent, or None when no API key is configured."""
    try:
        return GeminiTransactionAgent()
    except ValidationError as e:
        logger.warning("gemini_not_configured", error=str(e))
        return None
