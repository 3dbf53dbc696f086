"""Prompt normalization and digests.

Two prompts that differ only in case, Unicode width/compatibility forms,
whitespace or (optionally) volatile tokens such as timestamps normalize to the
same text and therefore the same hash.
"""

from __future__ import annotations

import hashlib
import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")
# Lone surrogates are valid in JSON strings but cannot be encoded as UTF-8
_SURROGATES = re.compile("[\ud800-\udfff]")

# Order matters: full ISO-8601 timestamps before bare clock times.
_VOLATILE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(
            r"\b\d{4}-\d{2}-\d{2}[t ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:z|[+-]\d{2}:?\d{2})?\b"
        ),
        "<ts>",
    ),
    (
        re.compile(
            r"\b[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\b"
        ),
        "<uuid>",
    ),
    (re.compile(r"\b\d{1,2}:\d{2}:\d{2}(?:\.\d+)?\b"), "<time>"),
    (re.compile(r"\b\d{4}-\d{2}-\d{2}\b"), "<date>"),
)


class PromptNormalizer:
    """Canonicalizes prompt text before hashing."""

    def __init__(self, strip_volatile_tokens: bool = True) -> None:
        self.strip_volatile_tokens = strip_volatile_tokens

    def normalize(self, text: str) -> str:
        text = _SURROGATES.sub("\ufffd", text)
        normalized = unicodedata.normalize("NFKC", text).casefold()
        if self.strip_volatile_tokens:
            for pattern, placeholder in _VOLATILE_PATTERNS:
                normalized = pattern.sub(placeholder, normalized)
        return _WHITESPACE.sub(" ", normalized).strip()


class ContentHasher:
    """Provides methods for generating hashes of content."""

    def hash(self, content: str) -> str:
        """Generates a SHA256 hash of the given content."""
        return hashlib.sha256(content.encode("utf-8", "surrogatepass")).hexdigest()

    def fingerprint(self, state: bytes | str) -> str:
        """Reduces caller-supplied agent state to a fixed-length digest."""
        if isinstance(state, str):
            state = state.encode("utf-8", "surrogatepass")
        return hashlib.sha256(state).hexdigest()
