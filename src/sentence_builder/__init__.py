"""
Corpus-driven sentence builder.

Plain-text documents are tokenized into word, bigram and trigram counts that
accumulate in a relational store (SQLite by default, MariaDB optionally).
Interchangeable strategies then read those counts to suggest the next word or
to grow a seed into a full sentence.

See pipeline.SentenceBuilderEngine for the high-level façade.
"""

from .db import DatabaseEnvironment, MariaDBEnvironment
from .errors import ConfigurationError, ImportCancelled, InputError, StorageError
from .pipeline import SentenceBuilderEngine

__all__ = [
    "ConfigurationError",
    "DatabaseEnvironment",
    "ImportCancelled",
    "InputError",
    "MariaDBEnvironment",
    "SentenceBuilderEngine",
    "StorageError",
]
