"""Tests for exact, type-scoped name resolution."""

from finwise.models.transaction import (
    Candidate,
    CandidateOrigin,
    CatalogSnapshot,
    Category,
    ExpenseType,
    PaymentMethod,
    TransactionType,
)
from finwise.resolution import NameResolver


def _candidate(**fields):
    return Candidate(origin=CandidateOrigin.AI_TEXT, **fields)


class TestNameResolver:

    def test_case_and_whitespace_insensitive(self, snapshot):
        resolver = NameResolver(snapshot)
        assert resolver.find_category("  groceries ", TransactionType.EXPENSE).id == "cat_groceries"
        assert resolver.find_payment_method("upi (hdfc)").id == "pm_upi_hdfc"

    def test_no_fuzzy_matching(self, snapshot):
        resolver = NameResolver(snapshot)
        assert resolver.find_category("Grocery", TransactionType.EXPENSE) is None
        assert resolver.find_payment_method("UPI") is None
        assert resolver.find_category("", TransactionType.EXPENSE) is None

    def test_categories_are_scoped_by_type(self):
        snapshot = CatalogSnapshot(categories=(
            Category(id="cat_bonus", name="Bonus", type=TransactionType.EXPENSE),
            Category(id="inc_bonus", name="Bonus", type=TransactionType.INCOME),
        ))
        resolver = NameResolver(snapshot)
        assert resolver.find_category("Bonus", TransactionType.EXPENSE).id == "cat_bonus"
        assert resolver.find_category("Bonus", TransactionType.INCOME).id == "inc_bonus"

    def test_resolves_expense_guesses(self, snapshot):
        candidate = _candidate(
            transaction_type=TransactionType.EXPENSE,
            category_name_guess="Rent",
            payment_method_name_guess="Cash",
            expense_type_guess="Need",
        )
        resolved = NameResolver(snapshot).resolve(candidate)

        assert resolved.category_id == "cat_rent"
        assert resolved.payment_method_id == "pm_cash"
        assert resolved.expense_type == ExpenseType.NEED

    def test_resolves_income_source(self, snapshot):
        candidate = _candidate(
            transaction_type=TransactionType.INCOME,
            category_name_guess="Salary",
            source_guess="Employer",
            payment_method_name_guess="Cash",
        )
        resolved = NameResolver(snapshot).resolve(candidate)

        assert resolved.category_id == "inc_salary"
        assert resolved.source == "Employer"
        assert resolved.payment_method_id is None

    def test_miss_leaves_id_blank_without_error(self, snapshot):
        candidate = _candidate(
            transaction_type=TransactionType.EXPENSE,
            category_name_guess="Cafe Stuff",
            payment_method_name_guess="CC Foo",
        )
        resolved = NameResolver(snapshot).resolve(candidate)

        assert resolved.category_id is None
        assert resolved.payment_method_id is None
        assert resolved.is_clean
        assert resolved == candidate

    def test_never_overwrites_existing_ids(self, snapshot):
        candidate = _candidate(
            transaction_type=TransactionType.EXPENSE,
            category_id="cat_groceries",
            category_name_guess="Rent",
        )
        assert NameResolver(snapshot).resolve(candidate).category_id == "cat_groceries"

    def test_untyped_candidate_is_left_alone(self, snapshot):
        candidate = _candidate(category_name_guess="Rent")
        assert NameResolver(snapshot).resolve(candidate) is candidate

    def test_type_change_to_income_clears_expense_fields(self, snapshot):
        candidate = _candidate(
            transaction_type=TransactionType.EXPENSE,
            category_id="cat_other",
            payment_method_id="pm_cash",
            expense_type=ExpenseType.WANT,
            category_name_guess="Bonus",
            source_guess="Employer",
        )
        changed = NameResolver(snapshot).apply_type_change(candidate, TransactionType.INCOME)

        assert changed.transaction_type == TransactionType.INCOME
        assert changed.category_id == "inc_bonus"
        assert changed.payment_method_id is None
        assert changed.expense_type is None
        assert changed.source == "Employer"

    def test_type_change_to_expense_clears_source(self, snapshot):
        candidate = _candidate(
            transaction_type=TransactionType.INCOME,
            category_id="inc_salary",
            source="Employer",
        )
        changed = NameResolver(snapshot).apply_type_change(candidate, TransactionType.EXPENSE)

        assert changed.source is None
        assert changed.category_id is None

    def test_same_type_is_a_no_op(self, snapshot):
        candidate = _candidate(transaction_type=TransactionType.EXPENSE, category_id="cat_rent")
        resolver = NameResolver(snapshot)
        assert resolver.apply_type_change(candidate, TransactionType.EXPENSE) is candidate

    def test_custom_payment_methods(self):
        snapshot = CatalogSnapshot(payment_methods=(
            PaymentMethod(id="pm_x", name="Wallet", type="Others"),
        ))
        assert NameResolver(snapshot).find_payment_method("WALLET").id == "pm_x"
