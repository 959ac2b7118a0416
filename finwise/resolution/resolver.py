"""
Name Resolver

Maps free-text name guesses onto Reference Catalog ids.

Matching is exact after trimming and case-folding, and only within the
list that applies to the candidate's type: "groceries" finds "Groceries",
"Grocery" finds nothing. A miss is not an error; the id simply stays
blank and the user picks one during review. No fuzzy matching.
"""

from typing import Iterable, Optional

from finwise.models.transaction import (
    Candidate,
    CatalogSnapshot,
    Category,
    PaymentMethod,
    TransactionType,
)
from finwise.parsing.normalize import NormalizationError, parse_expense_type


def _name_key(name: Optional[str]) -> str:
    return (name or "").strip().casefold()


class NameResolver:
    """Resolves candidate name guesses against one catalog snapshot."""

    def __init__(self, catalog: CatalogSnapshot):
        self._catalog = catalog
        self._categories: dict[TransactionType, dict[str, Category]] = {
            transaction_type: {
                _name_key(c.name): c for c in catalog.categories_for(transaction_type)
            }
            for transaction_type in TransactionType
        }
        self._payment_methods: dict[str, PaymentMethod] = {
            _name_key(pm.name): pm for pm in catalog.payment_methods
        }

    @property
    def catalog(self) -> CatalogSnapshot:
        return self._catalog

    def find_category(
        self,
        name: Optional[str],
        transaction_type: TransactionType,
    ) -> Optional[Category]:
        key = _name_key(name)
        if not key:
            return None
        return self._categories[transaction_type].get(key)

    def find_payment_method(self, name: Optional[str]) -> Optional[PaymentMethod]:
        key = _name_key(name)
        if not key:
            return None
        return self._payment_methods.get(key)

    def resolve(self, candidate: Candidate) -> Candidate:
        """
        Fill blank id fields from matching guesses.

        Ids the user (or the form) already set are never overwritten.
        """
        transaction_type = candidate.transaction_type
        if transaction_type is None:
            return candidate

        changes = {}

        if not candidate.category_id:
            category = self.find_category(candidate.category_name_guess, transaction_type)
            if category is not None:
                changes["category_id"] = category.id

        if transaction_type == TransactionType.EXPENSE:
            if not candidate.payment_method_id:
                method = self.find_payment_method(candidate.payment_method_name_guess)
                if method is not None:
                    changes["payment_method_id"] = method.id
            if candidate.expense_type is None and candidate.expense_type_guess:
                try:
                    changes["expense_type"] = parse_expense_type(
                        candidate.expense_type_guess, allow_legacy=True
                    )
                except NormalizationError:
                    pass  # stays blank for the user to pick
        elif not candidate.source and candidate.source_guess:
            changes["source"] = candidate.source_guess

        return candidate.with_changes(**changes) if changes else candidate

    def resolve_all(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        return [self.resolve(candidate) for candidate in candidates]

    def apply_type_change(
        self,
        candidate: Candidate,
        new_type: TransactionType,
    ) -> Candidate:
        """
        Switch a candidate's type, clearing what no longer applies.

        expense → income clears payment method and expense type;
        income → expense clears source. The category is always cleared
        (the lists are disjoint) and then re-resolved from the guess.
        """
        if candidate.transaction_type == new_type:
            return candidate

        changes = {"transaction_type": new_type, "category_id": None}
        if new_type == TransactionType.INCOME:
            changes["payment_method_id"] = None
            changes["expense_type"] = None
        else:
            changes["source"] = None

        return self.resolve(candidate.with_changes(**changes))
