"""Catalog name resolution."""

from finwise.resolution.resolver import NameResolver

__all__ = ["NameResolver"]
