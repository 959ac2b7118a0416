"""
FinWise - Transaction Ingestion Package

Turns untrusted input (a manual form, a tab-separated bulk paste,
free-form text read by a model, a receipt photo read by a vision model)
into reviewed, validated ledger transactions.

DESIGN PRINCIPLES:
1. Parse → Resolve → Human reviews → Validate → Commit
2. Fail per item, never per batch
3. No silent corrections (an unreadable date stays blank)
4. Every step is auditable
5. Storage and model collaborators are swappable
"""

__version__ = "1.0.0"
__author__ = "FinWise Team"
