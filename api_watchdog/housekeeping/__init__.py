"""Housekeeping of the uploaded image directory."""

from .janitor import FileJanitor
from .reference_store import PostgresReferenceStore, UnconfiguredReferenceStore

__all__ = ["FileJanitor", "PostgresReferenceStore", "UnconfiguredReferenceStore"]
