"""Tests for the immutable review set."""

from decimal import Decimal

import pytest

from finwise.models.transaction import (
    Candidate,
    CandidateError,
    CandidateOrigin,
    TransactionType,
)
from finwise.resolution import NameResolver
from finwise.review import ReviewSet


def _review_set():
    return ReviewSet([
        Candidate(origin=CandidateOrigin.BULK, position=0, description="Rent"),
        Candidate(
            origin=CandidateOrigin.BULK,
            position=1,
            description="Tea",
            errors=(CandidateError(field="amount", message="Amount is missing"),),
        ),
        Candidate(origin=CandidateOrigin.BULK, position=2, description="Fuel"),
    ])


class TestReviewSet:

    def test_edits_return_new_sets(self):
        original = _review_set()
        edited = original.edit(1, amount=Decimal("20.00"))

        assert edited is not original
        assert original[1].amount is None
        assert edited[1].amount == Decimal("20.00")
        assert edited[1].is_clean
        assert edited[1].candidate_id == original[1].candidate_id

    def test_type_cannot_be_changed_by_a_plain_edit(self):
        """Type switches need the resolver, so edit refuses them."""
        with pytest.raises(ValueError) as exc:
            _review_set().edit(0, transaction_type=TransactionType.INCOME)
        assert "change_type" in str(exc.value)

    def test_clean_indices(self):
        assert _review_set().clean_indices() == [0, 2]

    def test_remove_keeps_order(self):
        review_set = _review_set().remove(0)
        assert [c.description for c in review_set] == ["Tea", "Fuel"]

    def test_out_of_range(self):
        review_set = _review_set()
        with pytest.raises(IndexError):
            review_set[3]
        with pytest.raises(IndexError):
            review_set.edit(-1, description="x")

    def test_clear_errors(self):
        review_set = _review_set().clear_errors(1)
        assert review_set[1].is_clean

    def test_annotate_appends_without_repeats(self):
        review_set = _review_set()
        candidate_id = review_set[0].candidate_id
        error = CandidateError(message="Save failed: quota exceeded")

        once = review_set.annotate(candidate_id, [error])
        twice = once.annotate(candidate_id, [error, error])

        assert once[0].error_messages == ["Save failed: quota exceeded"]
        assert twice[0].errors == once[0].errors

    def test_without_drops_by_id(self):
        review_set = _review_set()
        remaining = review_set.without([review_set[0].candidate_id, review_set[2].candidate_id])
        assert [c.description for c in remaining] == ["Tea"]

    def test_lookup_by_id(self):
        review_set = _review_set()
        candidate = review_set[2]
        assert review_set.index_of(candidate.candidate_id) == 2
        assert review_set.by_id(candidate.candidate_id) is candidate

        other = Candidate(origin=CandidateOrigin.MANUAL)
        assert review_set.by_id(other.candidate_id) is None
        with pytest.raises(KeyError):
            review_set.index_of(other.candidate_id)

    def test_replace(self):
        review_set = _review_set()
        updated = review_set[1].with_changes(description="Masala Tea")
        assert review_set.replace(updated)[1].description == "Masala Tea"

    def test_change_type_uses_resolver(self, snapshot):
        review_set = ReviewSet([
            Candidate(
                origin=CandidateOrigin.AI_TEXT,
                transaction_type=TransactionType.EXPENSE,
                category_name_guess="Salary",
            ),
        ])
        changed = review_set.change_type(0, TransactionType.INCOME, NameResolver(snapshot))
        assert changed[0].category_id == "inc_salary"

    def test_equality(self):
        review_set = _review_set()
        assert review_set == ReviewSet(review_set.candidates)
        assert len({review_set, ReviewSet(review_set.candidates)}) == 1
        assert ReviewSet() != review_set
