"""
Review Set

The candidates the user is currently reviewing, as an immutable value.
Every operation returns a new ReviewSet; the old one is untouched, so a
failed parse can fall back to the previous set and the UI never shares
a mutable list between widgets.
"""

from typing import Any, Iterable, Iterator, Optional
from uuid import UUID

from finwise.models.transaction import Candidate, CandidateError, TransactionType
from finwise.resolution.resolver import NameResolver


class ReviewSet:
    """Ordered, immutable collection of candidates pending review."""

    __slots__ = ("_candidates",)

    def __init__(self, candidates: Iterable[Candidate] = ()):
        self._candidates: tuple[Candidate, ...] = tuple(candidates)

    @property
    def candidates(self) -> tuple[Candidate, ...]:
        return self._candidates

    def __len__(self) -> int:
        return len(self._candidates)

    def __iter__(self) -> Iterator[Candidate]:
        return iter(self._candidates)

    def __getitem__(self, index: int) -> Candidate:
        return self._candidates[self._check_index(index)]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReviewSet):
            return NotImplemented
        return self._candidates == other._candidates

    def __hash__(self) -> int:
        return hash(self._candidates)

    def __repr__(self) -> str:
        return f"ReviewSet({len(self._candidates)} candidates)"

    def _check_index(self, index: int) -> int:
        if not 0 <= index < len(self._candidates):
            raise IndexError(f"No candidate at index {index}")
        return index

    def _with(self, index: int, candidate: Candidate) -> "ReviewSet":
        items = list(self._candidates)
        items[index] = candidate
        return ReviewSet(items)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def index_of(self, candidate_id: UUID) -> int:
        for index, candidate in enumerate(self._candidates):
            if candidate.candidate_id == candidate_id:
                return index
        raise KeyError(f"No candidate with id {candidate_id}")

    def by_id(self, candidate_id: UUID) -> Optional[Candidate]:
        for candidate in self._candidates:
            if candidate.candidate_id == candidate_id:
                return candidate
        return None

    def clean_indices(self) -> list[int]:
        """Indices selected for submission by default: candidates with no errors."""
        return [i for i, c in enumerate(self._candidates) if c.is_clean]

    # ------------------------------------------------------------------
    # Edits (each returns a new ReviewSet)
    # ------------------------------------------------------------------

    def edit(self, index: int, **changes: Any) -> "ReviewSet":
        """Override fields on one candidate; errors on edited fields are dropped."""
        if "transaction_type" in changes:
            raise ValueError("Use change_type to switch between income and expense")
        index = self._check_index(index)
        return self._with(index, self._candidates[index].with_changes(**changes))

    def change_type(
        self,
        index: int,
        new_type: TransactionType,
        resolver: NameResolver,
    ) -> "ReviewSet":
        """Switch income/expense and re-resolve names against the new lists."""
        index = self._check_index(index)
        updated = resolver.apply_type_change(self._candidates[index], new_type)
        return self._with(index, updated)

    def remove(self, index: int) -> "ReviewSet":
        index = self._check_index(index)
        return ReviewSet(self._candidates[:index] + self._candidates[index + 1:])

    def clear_errors(self, index: int) -> "ReviewSet":
        """Dismiss every error on one candidate, e.g. after the user checks it."""
        index = self._check_index(index)
        return self._with(index, self._candidates[index].with_changes(errors=()))

    def replace(self, candidate: Candidate) -> "ReviewSet":
        """Swap in a new version of a candidate with the same id."""
        return self._with(self.index_of(candidate.candidate_id), candidate)

    def annotate(self, candidate_id: UUID, errors: Iterable[CandidateError]) -> "ReviewSet":
        """Append errors to a candidate (e.g. a failed save), skipping repeats."""
        index = self.index_of(candidate_id)
        candidate = self._candidates[index]
        new_errors = []
        for error in errors:
            if error not in candidate.errors and error not in new_errors:
                new_errors.append(error)
        return self._with(index, candidate.with_errors(*new_errors))

    def without(self, candidate_ids: Iterable[UUID]) -> "ReviewSet":
        """Drop candidates by id (used after they are committed)."""
        drop = set(candidate_ids)
        return ReviewSet(c for c in self._candidates if c.candidate_id not in drop)
