"""Validation package."""

from finwise.validation.validator import TransactionValidator

__all__ = ["TransactionValidator"]
