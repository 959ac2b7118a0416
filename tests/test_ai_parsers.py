"""
Tests for the AI text and receipt parsers.

The model is stubbed; these tests pin down how its untrusted answers
become candidates.
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from finwise.agents.interface import (
    ModelError,
    ReceiptImage,
    ReceiptParseResponse,
    TextParseResponse,
)
from finwise.models.transaction import CandidateOrigin, ExpenseType, TransactionType
from finwise.parsing import AIReceiptParser, AITextParser, ParseError
from finwise.parsing.ai_receipt import UNREADABLE_MESSAGE
from finwise.parsing.ai_text import NOTHING_RECOGNIZED_MESSAGE
from finwise.resolution import NameResolver


class TestAITextParser:
    """Free text through the stubbed text model."""

    def test_items_become_candidates(self, stub_model, model_item, snapshot):
        model = stub_model(text_response=TextParseResponse(items=[
            model_item(
                date="2025-01-10",
                description="Groceries at DMart",
                amount="450",
                type="expense",
                categoryNameGuess="Groceries",
                paymentMethodNameGuess="Cash",
                expenseTypeNameGuess="need",
                confidenceScore=0.9,
            ),
            model_item(
                date="2025-01-01",
                description="January salary",
                amount=80000,
                type="income",
                categoryNameGuess="Salary",
                paymentMethodNameGuess="Cash",
                expenseTypeNameGuess="need",
                sourceGuess="Employer",
            ),
        ]))
        result = asyncio.run(AITextParser(model).parse("groceries 450, salary 80k", snapshot))

        expense, income = result.candidates
        assert expense.origin == CandidateOrigin.AI_TEXT
        assert expense.transaction_date == date(2025, 1, 10)
        assert expense.amount == Decimal("450.00")
        assert expense.expense_type == ExpenseType.NEED
        assert expense.confidence_score == 0.9
        assert expense.is_clean

        assert income.transaction_type == TransactionType.INCOME
        assert income.source_guess == "Employer"
        # Expense-only guesses are kept but not applied to income
        assert income.payment_method_name_guess == "Cash"
        assert income.expense_type_guess == "need"
        assert income.expense_type is None
        assert income.payment_method_id is None
        assert [c.position for c in result.candidates] == [0, 1]

    def test_model_sees_full_catalog(self, stub_model, model_item, snapshot):
        model = stub_model(text_response=TextParseResponse(items=[
            model_item(date="2025-01-10", description="Tea", amount=20, type="expense"),
        ]))
        asyncio.run(AITextParser(model).parse("tea 20", snapshot))

        _, text, categories, payment_methods = model.calls[0]
        assert text == "tea 20"
        assert len(categories) == len(snapshot.categories)
        assert len(payment_methods) == len(snapshot.payment_methods)

    def test_empty_items_is_nothing_recognized(self, stub_model, snapshot):
        model = stub_model(text_response=TextParseResponse(items=[]))
        result = asyncio.run(AITextParser(model).parse("hello there", snapshot))

        assert result.nothing_recognized
        assert result.candidates == []
        assert result.summary_message == NOTHING_RECOGNIZED_MESSAGE

    def test_model_summary_is_passed_through(self, stub_model, snapshot):
        model = stub_model(text_response=TextParseResponse(
            items=[], summary_message="No amounts mentioned."
        ))
        result = asyncio.run(AITextParser(model).parse("hello there", snapshot))
        assert result.summary_message == "No amounts mentioned."

    def test_unreadable_date_is_never_replaced_with_today(self, stub_model, model_item):
        model = stub_model(text_response=TextParseResponse(items=[
            model_item(date="sometime last week", description="Tea", amount=20, type="expense"),
            model_item(date="", description="Coffee", amount=30, type="expense"),
        ]))
        result = asyncio.run(AITextParser(model).parse("tea and coffee"))

        unreadable, missing = result.candidates
        assert unreadable.transaction_date is None
        assert unreadable.error_messages == [
            'Could not read the date "sometime last week". Please confirm the date.'
        ]
        assert missing.transaction_date is None
        assert missing.error_messages == ["No date found. Please confirm the date."]

    def test_bad_fields_become_field_errors(self, stub_model, model_item):
        model = stub_model(text_response=TextParseResponse(items=[
            model_item(
                date="2025-01-10",
                description="",
                amount="lots",
                type="transfer",
                expenseTypeNameGuess="luxury",
                confidenceScore="very",
                error="Amount unclear",
            ),
        ]))
        candidate = asyncio.run(AITextParser(model).parse("???")).candidates[0]

        fields = [e.field for e in candidate.errors]
        assert fields == ["transaction_type", "amount", "description", None]
        assert candidate.error_messages[-1] == "Amount unclear"
        assert candidate.expense_type is None
        assert candidate.expense_type_guess == "luxury"
        assert candidate.confidence_score is None

    def test_legacy_expense_type_is_accepted(self, stub_model, model_item):
        model = stub_model(text_response=TextParseResponse(items=[
            model_item(
                date="2025-01-10",
                description="SIP",
                amount=5000,
                type="expense",
                expenseTypeNameGuess="investment_expense",
            ),
        ]))
        candidate = asyncio.run(AITextParser(model).parse("sip 5000")).candidates[0]
        assert candidate.expense_type == ExpenseType.INVESTMENT

    def test_switching_income_to_expense_uses_model_guesses(self, stub_model, model_item, snapshot):
        """Guesses made for an income item still apply once it becomes an expense."""
        model = stub_model(text_response=TextParseResponse(items=[
            model_item(
                date="2025-01-05",
                description="Festival bonus",
                amount=5000,
                type="income",
                categoryNameGuess="Bonus",
                paymentMethodNameGuess="Cash",
                expenseTypeNameGuess="want",
            ),
        ]))
        candidate = asyncio.run(AITextParser(model).parse("bonus 5000 cash", snapshot)).candidates[0]
        resolver = NameResolver(snapshot)

        switched = resolver.apply_type_change(resolver.resolve(candidate), TransactionType.EXPENSE)

        assert switched.transaction_type == TransactionType.EXPENSE
        assert switched.payment_method_id == "pm_cash"
        assert switched.expense_type == ExpenseType.WANT

    def test_duplicates_are_flagged_not_dropped(self, stub_model, model_item):
        item = dict(date="2025-01-10", description="Tea", amount=20, type="expense")
        model = stub_model(text_response=TextParseResponse(items=[
            model_item(**item),
            model_item(**{**item, "description": "TEA"}),
            model_item(**{**item, "amount": 25}),
        ]))
        result = asyncio.run(AITextParser(model).parse("tea tea tea"))

        first, repeat, different = result.candidates
        assert first.is_clean
        assert repeat.error_messages == ["Looks like a duplicate of item 1"]
        assert different.is_clean

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_text_never_reaches_the_model(self, stub_model, text):
        model = stub_model()
        with pytest.raises(ParseError) as exc:
            asyncio.run(AITextParser(model).parse(text))
        assert str(exc.value) == "Input text was empty."
        assert model.calls == []

    def test_model_failure_propagates(self, stub_model):
        model = stub_model(error=ModelError("AI model is currently overloaded", retryable=True))
        with pytest.raises(ModelError) as exc:
            asyncio.run(AITextParser(model).parse("tea 20"))
        assert exc.value.retryable


class TestAIReceiptParser:
    """Receipt photos through the stubbed vision model."""

    def test_valid_receipt_gives_one_expense(self, stub_model, model_item, png_receipt, snapshot, app_settings):
        model = stub_model(receipt_response=ReceiptParseResponse(item=model_item(
            date="2025-02-14",
            description="Dinner at Truffles",
            amount="1,840.50",
            type="income",
            categoryNameGuess="Food & Dining",
            expenseTypeNameGuess="want",
            confidenceScore=0.8,
        )))
        parser = AIReceiptParser(model, app_settings)
        result = asyncio.run(parser.parse(png_receipt, snapshot))

        assert not result.nothing_recognized
        (candidate,) = result.candidates
        assert candidate.origin == CandidateOrigin.AI_RECEIPT
        assert candidate.transaction_type == TransactionType.EXPENSE
        assert candidate.amount == Decimal("1840.50")
        assert candidate.expense_type == ExpenseType.WANT

        # Only expense categories are offered for a receipt
        _, _, categories, _ = model.calls[0]
        assert categories and all(c.type == TransactionType.EXPENSE for c in categories)

    def test_unreadable_receipt(self, stub_model, png_receipt, app_settings):
        model = stub_model(receipt_response=ReceiptParseResponse(item=None, error="blurry"))
        result = asyncio.run(AIReceiptParser(model, app_settings).parse(png_receipt))

        assert result.nothing_recognized
        assert result.candidates == []
        assert result.summary_message == f"{UNREADABLE_MESSAGE} (blurry)"

    def test_item_without_description_or_amount_is_unreadable(
        self, stub_model, model_item, png_receipt, app_settings
    ):
        model = stub_model(receipt_response=ReceiptParseResponse(
            item=model_item(date="2025-02-14", confidenceScore=0.1)
        ))
        result = asyncio.run(AIReceiptParser(model, app_settings).parse(png_receipt))
        assert result.nothing_recognized
        assert result.summary_message == UNREADABLE_MESSAGE

    def test_rejects_unsupported_type(self, stub_model, png_receipt, app_settings):
        model = stub_model()
        image = png_receipt.model_copy(update={"mime_type": "application/pdf"})
        with pytest.raises(ParseError) as exc:
            asyncio.run(AIReceiptParser(model, app_settings).parse(image))
        assert "Unsupported image type" in str(exc.value)
        assert model.calls == []

    def test_rejects_empty_file(self, stub_model, app_settings):
        image = ReceiptImage(data=b"", mime_type="image/png")
        with pytest.raises(ParseError):
            AIReceiptParser(stub_model(), app_settings).check_image(image)

    def test_rejects_oversized_file(self, stub_model, app_settings):
        image = ReceiptImage(data=b"x" * (app_settings.max_upload_size_bytes + 1), mime_type="image/png")
        with pytest.raises(ParseError) as exc:
            AIReceiptParser(stub_model(), app_settings).check_image(image)
        assert "too large" in str(exc.value)

    def test_rejects_corrupt_image(self, stub_model, app_settings):
        image = ReceiptImage(data=b"not really a png", mime_type="image/png", filename="bad.png")
        with pytest.raises(ParseError) as exc:
            AIReceiptParser(stub_model(), app_settings).check_image(image)
        assert str(exc.value) == "bad.png is not a readable image."

    def test_jpg_alias_is_accepted(self, stub_model, png_receipt, app_settings):
        assert "image/jpg" in app_settings.supported_mime_types
        AIReceiptParser(stub_model(), app_settings).check_image(png_receipt)
