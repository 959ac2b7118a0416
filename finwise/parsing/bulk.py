"""
Bulk paste parser.

Reads tab-separated rows copied straight out of the user's spreadsheet.
Column order is fixed:

    description, category, amount, total (ignored), date (DD/MM/YYYY),
    expense type, payment method

Every row is an expense. Rows are parsed independently: a bad row gets
its own errors and never affects its neighbours.
"""

from typing import Optional

from finwise.models.transaction import (
    Candidate,
    CandidateError,
    CandidateOrigin,
    CatalogSnapshot,
    ParseResult,
    TransactionType,
)
from finwise.parsing.base import CandidateParser, ParseError
from finwise.parsing.normalize import (
    NormalizationError,
    parse_amount,
    parse_day_month_year,
    parse_expense_type,
)


DELIMITER = "\t"

BULK_COLUMNS = (
    "description",
    "category",
    "amount",
    "total",
    "date",
    "expense_type",
    "payment_method",
)

# Shown as the paste box placeholder; parses clean against the default catalog
BULK_EXAMPLE_ROW = "Monthly Rent\tRent\t₹15,000.00\t₹15,000.00\t01/01/2025\tNeed\tUPI (HDFC)"

SHORT_ROW_MESSAGE = "row has fewer than required columns"


class BulkRowParser(CandidateParser):
    """Parses a multi-line tab-separated paste into expense candidates."""

    origin = CandidateOrigin.BULK

    async def parse(
        self,
        raw: str,
        catalog: Optional[CatalogSnapshot] = None,
    ) -> ParseResult:
        return self.parse_text(raw)

    def parse_text(self, text: Optional[str]) -> ParseResult:
        """
        Parse every non-blank line. Positions are line indexes in the
        original paste, so blank lines leave gaps rather than renumbering.

        Raises:
            ParseError: If there is nothing to parse
        """
        if not text or not text.strip():
            raise ParseError("No data to parse. Paste at least one tab-separated row.")

        candidates = [
            self.parse_row(line, position)
            for position, line in enumerate(text.splitlines())
            if line.strip()
        ]

        clean = sum(1 for c in candidates if c.is_clean)
        return ParseResult(
            origin=self.origin,
            candidates=candidates,
            summary_message=f"Parsed {len(candidates)} rows, {clean} ready to submit.",
        )

    def parse_row(self, line: str, position: int) -> Candidate:
        """Parse a single row into a candidate with per-field errors."""
        columns = line.split(DELIMITER)
        fields = {
            "origin": self.origin,
            "position": position,
            "raw_text": line,
            "transaction_type": TransactionType.EXPENSE,
        }

        if len(columns) < len(BULK_COLUMNS):
            return Candidate(
                **fields,
                errors=(CandidateError(message=SHORT_ROW_MESSAGE),),
            )

        (
            description,
            category_name,
            amount_text,
            _total,
            date_text,
            expense_type_text,
            payment_method_name,
        ) = (column.strip() for column in columns[:len(BULK_COLUMNS)])

        errors: list[CandidateError] = []

        if description:
            fields["description"] = description
        else:
            errors.append(CandidateError(field="description", message="Description is missing"))

        if category_name:
            fields["category_name_guess"] = category_name
        else:
            errors.append(CandidateError(field="category_id", message="Category is missing"))

        try:
            fields["amount"] = parse_amount(amount_text)
        except NormalizationError as e:
            errors.append(CandidateError(field="amount", message=str(e)))

        try:
            fields["transaction_date"] = parse_day_month_year(date_text)
        except NormalizationError as e:
            errors.append(CandidateError(field="transaction_date", message=str(e)))

        if expense_type_text:
            fields["expense_type_guess"] = expense_type_text
        try:
            fields["expense_type"] = parse_expense_type(expense_type_text)
        except NormalizationError as e:
            errors.append(CandidateError(field="expense_type", message=str(e)))

        if payment_method_name:
            fields["payment_method_name_guess"] = payment_method_name
        else:
            errors.append(
                CandidateError(field="payment_method_id", message="Payment method is missing")
            )

        return Candidate(**fields, errors=tuple(errors))
