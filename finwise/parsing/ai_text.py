"""
AI text parser.

Sends free-form text ("paid 450 for groceries on UPI yesterday, got
salary 85k") to the text model and turns each returned item into a
candidate. The model's answers are guesses; every field is re-checked
here and anything unreadable becomes a field error for the user to fix.

An unreadable or missing date is left blank with an error. It is never
replaced with today's date.
"""

from typing import Optional

from finwise.agents.interface import ModelTransactionItem, TransactionModelInterface
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
    clamp_confidence,
    clean_text,
    parse_amount,
    parse_expense_type,
    parse_iso_date,
    parse_transaction_type,
)


NOTHING_RECOGNIZED_MESSAGE = "AI could not identify any valid transactions in the text."


def candidate_from_model_item(
    item: ModelTransactionItem,
    position: int,
    origin: CandidateOrigin,
    forced_type: Optional[TransactionType] = None,
) -> Candidate:
    """Convert one model item into a candidate, recording what didn't parse."""
    fields = {
        "origin": origin,
        "position": position,
        "raw_text": item.model_dump_json(by_alias=True, exclude_none=True),
        "confidence_score": clamp_confidence(item.confidence_score),
    }
    errors: list[CandidateError] = []

    transaction_type = forced_type
    if transaction_type is None:
        try:
            transaction_type = parse_transaction_type(item.type)
        except NormalizationError as e:
            errors.append(CandidateError(field="transaction_type", message=str(e)))
    fields["transaction_type"] = transaction_type

    date_text = clean_text(item.date)
    if not date_text:
        errors.append(CandidateError(
            field="transaction_date",
            message="No date found. Please confirm the date.",
        ))
    else:
        try:
            fields["transaction_date"] = parse_iso_date(date_text)
        except NormalizationError:
            errors.append(CandidateError(
                field="transaction_date",
                message=f'Could not read the date "{date_text}". Please confirm the date.',
            ))

    try:
        fields["amount"] = parse_amount(item.amount)
    except NormalizationError as e:
        errors.append(CandidateError(field="amount", message=str(e)))

    description = clean_text(item.description)
    if description:
        fields["description"] = description
    else:
        errors.append(CandidateError(field="description", message="Description is missing"))

    # Every guess is kept so a later type switch can re-resolve from it
    fields["category_name_guess"] = clean_text(item.category_name_guess) or None
    fields["payment_method_name_guess"] = clean_text(item.payment_method_name_guess) or None
    fields["source_guess"] = clean_text(item.source_guess) or None
    expense_type_guess = clean_text(item.expense_type_name_guess)
    if expense_type_guess:
        fields["expense_type_guess"] = expense_type_guess
        if transaction_type != TransactionType.INCOME:
            try:
                fields["expense_type"] = parse_expense_type(expense_type_guess, allow_legacy=True)
            except NormalizationError:
                # An unusable guess just leaves the selector blank
                pass

    model_error = clean_text(item.error)
    if model_error:
        errors.append(CandidateError(message=model_error))

    return Candidate(**fields, errors=tuple(errors))


def flag_duplicates(candidates: list[Candidate]) -> list[Candidate]:
    """
    Mark exact repeats (same type, date, description and amount).

    Repeats are kept so the user can decide, but they carry an error and
    so are left out of the default submission.
    """
    seen: dict[tuple, Candidate] = {}
    flagged = []
    for candidate in candidates:
        if (
            candidate.transaction_date is None
            or candidate.amount is None
            or not candidate.description
        ):
            flagged.append(candidate)
            continue

        key = (
            candidate.transaction_type,
            candidate.transaction_date,
            candidate.description.casefold(),
            candidate.amount,
        )
        first = seen.get(key)
        if first is None:
            seen[key] = candidate
            flagged.append(candidate)
        else:
            flagged.append(candidate.with_errors(CandidateError(
                message=f"Looks like a duplicate of item {first.position + 1}",
            )))
    return flagged


class AITextParser(CandidateParser):
    """Free-form text → candidates, via the text model."""

    origin = CandidateOrigin.AI_TEXT

    def __init__(self, model: TransactionModelInterface):
        self._model = model

    async def parse(
        self,
        raw: str,
        catalog: Optional[CatalogSnapshot] = None,
    ) -> ParseResult:
        """
        Raises:
            ParseError: If the text is empty
            ModelError: If the model call fails
        """
        if not raw or not raw.strip():
            raise ParseError("Input text was empty.")

        catalog = catalog or CatalogSnapshot()
        response = await self._model.parse_transactions_from_text(
            raw,
            list(catalog.categories),
            list(catalog.payment_methods),
        )

        if not response.items:
            return ParseResult(
                origin=self.origin,
                summary_message=clean_text(response.summary_message) or NOTHING_RECOGNIZED_MESSAGE,
                nothing_recognized=True,
            )

        candidates = [
            candidate_from_model_item(item, position, self.origin)
            for position, item in enumerate(response.items)
        ]
        return ParseResult(
            origin=self.origin,
            candidates=flag_duplicates(candidates),
            summary_message=clean_text(response.summary_message) or None,
        )
