"""Token counting with tiktoken."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache

import tiktoken

# Encoding shared by the gpt-3.5 and gpt-4 families
ENCODING_NAME = "cl100k_base"

# Prose is ~4 chars/token
CHARS_PER_TOKEN = 4.0

TokenEstimator = Callable[[str], int]

# Singleton encoder (loaded once on first use)
_encoder: tiktoken.Encoding | None = None


def _get_encoder() -> tiktoken.Encoding:
    """Get cached tiktoken encoder."""
    global _encoder
    if _encoder is None:
        _encoder = tiktoken.get_encoding(ENCODING_NAME)
    return _encoder


# Streaming re-counts growing prefixes; keep only the most recent ones
CACHE_SIZE = 1024


def count_tokens(text: str) -> int:
    """Count tokens with caching (uses tiktoken).

    Streaming output re-counts the same growing prefixes many times, so
    the most recent CACHE_SIZE counts are memoized by text.

    Args:
        text: The text content to count tokens for

    Returns:
        Number of tokens in the text
    """
    if not text:
        return 0
    return _count_cached(text)


@lru_cache(maxsize=CACHE_SIZE)
def _count_cached(text: str) -> int:
    return len(_get_encoder().encode(text, disallowed_special=()))


def count_tokens_heuristic(text: str) -> int:
    """Estimate tokens from character count, without loading an encoding."""
    return int(len(text) / CHARS_PER_TOKEN)


def invalidate_cache() -> None:
    """Clear token count cache."""
    _count_cached.cache_clear()


def cache_size() -> int:
    return _count_cached.cache_info().currsize
