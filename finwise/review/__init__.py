"""Review set package."""

from finwise.review.review_set import ReviewSet

__all__ = ["ReviewSet"]
