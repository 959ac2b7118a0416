"""Bulk commit package."""

from finwise.commit.committer import BulkCommitter, format_commit_message

__all__ = ["BulkCommitter", "format_commit_message"]
