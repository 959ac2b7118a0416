"""
Manual form parser.

The single-transaction form already works with catalog ids (the user
picks from dropdowns), so this parser only normalises the typed values
and drops fields that don't apply to the chosen type.
"""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from finwise.models.transaction import (
    Candidate,
    CandidateError,
    CandidateOrigin,
    CatalogSnapshot,
    ExpenseType,
    ParseResult,
    TransactionType,
)
from finwise.parsing.base import CandidateParser
from finwise.parsing.normalize import NormalizationError, clean_text, parse_amount


class ManualEntry(BaseModel):
    """Raw values from the manual transaction form."""
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_type: TransactionType = TransactionType.EXPENSE
    transaction_date: Optional[date] = None
    amount: Any = None
    description: str = ""
    category_id: Optional[str] = None
    payment_method_id: Optional[str] = None
    expense_type: Optional[ExpenseType] = None
    source: Optional[str] = None


class ManualFormParser(CandidateParser):
    origin = CandidateOrigin.MANUAL

    async def parse(
        self,
        raw: ManualEntry,
        catalog: Optional[CatalogSnapshot] = None,
    ) -> ParseResult:
        return ParseResult(origin=self.origin, candidates=[self.parse_entry(raw)])

    def parse_entry(self, entry: ManualEntry) -> Candidate:
        is_expense = entry.transaction_type == TransactionType.EXPENSE
        fields = {
            "origin": self.origin,
            "position": 0,
            "raw_text": entry.model_dump_json(exclude_none=True),
            "transaction_type": entry.transaction_type,
            "transaction_date": entry.transaction_date,
            "description": entry.description,
            "category_id": entry.category_id or None,
            "payment_method_id": (entry.payment_method_id or None) if is_expense else None,
            "expense_type": entry.expense_type if is_expense else None,
            "source": None if is_expense else (clean_text(entry.source) or None),
        }
        errors: list[CandidateError] = []

        try:
            fields["amount"] = parse_amount(entry.amount)
        except NormalizationError as e:
            errors.append(CandidateError(field="amount", message=str(e)))

        if entry.transaction_date is None:
            errors.append(CandidateError(field="transaction_date", message="Date is required"))
        if not entry.description:
            errors.append(CandidateError(field="description", message="Description is missing"))

        return Candidate(**fields, errors=tuple(errors))
