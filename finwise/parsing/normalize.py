"""
Shared field normalisation for every parser.

Each helper either returns a clean value or raises a NormalizationError
whose message is ready to show the user. Nothing here guesses: a value
that doesn't fit the expected format is rejected, never repaired.
"""

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from finwise.models.transaction import ExpenseType, TransactionType


DAY_MONTH_YEAR = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")
ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})(?:[T ].*)?$")
CURRENCY_PREFIX = re.compile(r"^(?:₹|rs\.?|inr|\$|€|£)\s*", re.IGNORECASE)

TWO_PLACES = Decimal("0.01")

# Older model prompts asked for "investment_expense"
_LEGACY_EXPENSE_TYPES = {"investment_expense": ExpenseType.INVESTMENT}


class NormalizationError(ValueError):
    """A raw field value could not be normalised."""


class DateFormatError(NormalizationError):
    pass


class AmountError(NormalizationError):
    pass


class ExpenseTypeError(NormalizationError):
    pass


def _calendar_date(year: int, month: int, day: int, raw: str) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise DateFormatError(f'Invalid date "{raw}": {e}') from e


def parse_day_month_year(text: Optional[str]) -> date:
    """Parse a strict DD/MM/YYYY date, as exported by the user's spreadsheet."""
    raw = (text or "").strip()
    match = DAY_MONTH_YEAR.match(raw)
    if not match:
        raise DateFormatError(f'Invalid date "{raw}": expected DD/MM/YYYY')
    day, month, year = (int(part) for part in match.groups())
    return _calendar_date(year, month, day, raw)


def parse_iso_date(text: Optional[str]) -> date:
    """Parse a YYYY-MM-DD date; a trailing time component is ignored."""
    raw = (text or "").strip()
    match = ISO_DATE.match(raw)
    if not match:
        raise DateFormatError(f'Invalid date "{raw}": expected YYYY-MM-DD')
    year, month, day = (int(part) for part in match.groups())
    return _calendar_date(year, month, day, raw)


def parse_amount(value: Any) -> Decimal:
    """
    Parse a positive amount rounded to paise.

    Accepts numbers or text with a leading currency glyph and comma
    thousands separators, e.g. "₹32,000.00" or "Rs. 1,250".
    """
    if value is None or isinstance(value, bool):
        raise AmountError("Amount is missing")

    if isinstance(value, Decimal):
        amount = value
        raw = str(value)
    elif isinstance(value, (int, float)):
        raw = str(value)
        amount = Decimal(raw)
    else:
        raw = str(value).strip()
        if not raw:
            raise AmountError("Amount is missing")
        cleaned = CURRENCY_PREFIX.sub("", raw).replace(",", "").replace(" ", "")
        try:
            amount = Decimal(cleaned)
        except InvalidOperation as e:
            raise AmountError(f'Invalid amount "{raw}"') from e

    if not amount.is_finite():
        raise AmountError(f'Invalid amount "{raw}"')

    try:
        amount = amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise AmountError(f'Amount "{raw}" is too large') from e

    if amount <= 0:
        raise AmountError(f'Amount must be greater than zero, got "{raw}"')
    return amount


def parse_expense_type(text: Optional[str], allow_legacy: bool = False) -> ExpenseType:
    """Case-insensitive match against need / want / investment."""
    raw = (text or "").strip()
    key = raw.lower()
    if not key:
        raise ExpenseTypeError("Expense type is missing")
    try:
        return ExpenseType(key)
    except ValueError:
        if allow_legacy and key in _LEGACY_EXPENSE_TYPES:
            return _LEGACY_EXPENSE_TYPES[key]
        raise ExpenseTypeError(
            f'Invalid expense type "{raw}": expected need, want or investment'
        ) from None


def parse_transaction_type(text: Optional[str]) -> TransactionType:
    raw = (text or "").strip()
    try:
        return TransactionType(raw.lower())
    except ValueError:
        raise NormalizationError(
            f'Unknown transaction type "{raw}": expected income or expense'
        ) from None


def clamp_confidence(value: Any) -> Optional[float]:
    """Coerce a model confidence into [0, 1], or None if it isn't a number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        score = float(value)
    except (TypeError, ValueError):
        return None
    if score != score:  # NaN
        return None
    return min(1.0, max(0.0, score))


def clean_text(value: Any) -> str:
    """Trimmed text, or "" for None."""
    if value is None:
        return ""
    return str(value).strip()
