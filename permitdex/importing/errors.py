"""Exceptions raised by the CSV import pipeline."""

from __future__ import annotations

from collections.abc import Iterable


class CSVParseError(Exception):
    """The file could not be read as a UTF-8 CSV with a header row."""


class StoreError(Exception):
    """The target store rejected an upsert, insert or select."""

    def __init__(self, table: str, message: str):
        super().__init__(message)
        self.table = table
        self.message = message


class UnknownTableError(KeyError):
    """No schema is registered for the requested table."""

    def __init__(self, table: str, known: Iterable[str] = ()):
        self.table = table
        self.known = list(known)
        super().__init__(table)

    def __str__(self) -> str:
        known = ", ".join(self.known) or "none"
        return f"Unknown table '{self.table}' (importable: {known})"


class ImportStateError(Exception):
    """An import workflow action was attempted from the wrong stage."""


class UntranslatedNamesError(ImportStateError):
    """Arabic names without a curated translation need operator confirmation."""

    def __init__(self, names: Iterable[str]):
        self.names = sorted(names)
        super().__init__(
            f"{len(self.names)} Arabic name(s) have no curated translation; "
            "confirm to import them as-is or cancel"
        )
