from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "ImportCancelled",
    "InputError",
    "SentenceBuilderError",
    "StorageError",
]


class SentenceBuilderError(Exception):
    """Base class for every error raised by the corpus engine."""


class InputError(SentenceBuilderError):
    """The document could not be read; nothing was written to the store."""


class StorageError(SentenceBuilderError):
    """A driver error surfaced while reading or merging corpus statistics.

    ``rolled_back`` is True when the failing write ran inside a transaction
    that was rolled back, i.e. the corpus is exactly as it was before.
    """

    def __init__(self, message: str, *, rolled_back: bool = False) -> None:
        super().__init__(message)
        self.rolled_back = rolled_back


class ConfigurationError(StorageError):
    """The store is misconfigured or unreachable."""


class ImportCancelled(SentenceBuilderError):
    """An import was cancelled cooperatively and its transaction rolled back."""

    def __init__(self, filename: str) -> None:
        super().__init__(f"Import of '{filename}' was cancelled; corpus left unchanged")
        self.filename = filename
