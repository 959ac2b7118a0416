"""
Candidate parser contract.

Every input source sits behind the same `parse` coroutine and produces
the same Candidate shape, so review, validation and commit never need
to know where a candidate came from.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from finwise.models.transaction import CandidateOrigin, CatalogSnapshot, ParseResult


class ParseError(Exception):
    """
    The input as a whole could not be parsed (empty paste, bad image).

    Row- and item-level problems are never raised; they are recorded
    as CandidateErrors on the affected candidate.
    """


class CandidateParser(ABC):
    """Turns one raw input into a ParseResult."""

    origin: CandidateOrigin

    @abstractmethod
    async def parse(
        self,
        raw: Any,
        catalog: Optional[CatalogSnapshot] = None,
    ) -> ParseResult:
        """
        Parse raw input into candidates.

        Raises:
            ParseError: If the input cannot be decomposed at all
            ModelError: If a model collaborator fails (AI parsers only)
        """
        pass
