"""Candidate parsers: one per input source, one shared output shape."""

from finwise.parsing.base import CandidateParser, ParseError
from finwise.parsing.bulk import BulkRowParser
from finwise.parsing.ai_text import AITextParser
from finwise.parsing.ai_receipt import AIReceiptParser
from finwise.parsing.manual import ManualEntry, ManualFormParser

__all__ = [
    "AIReceiptParser",
    "AITextParser",
    "BulkRowParser",
    "CandidateParser",
    "ManualEntry",
    "ManualFormParser",
    "ParseError",
]
