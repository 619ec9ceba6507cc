"""Error types raised by the core and translated to HTTP codes in app.py."""
from __future__ import annotations


class VocabListsError(Exception):
    pass


class NotFoundError(VocabListsError):
    """A list, word, or content record does not exist."""


class InsufficientContentError(VocabListsError):
    """The local content pool cannot satisfy a request."""

    def __init__(self, message: str, found: int = 0, required: int = 0):
        super().__init__(message)
        self.found = found
        self.required = required


class ProviderError(VocabListsError):
    """The external content provider failed."""


class ContentParseError(ProviderError):
    """The provider answered, but not with usable content."""
