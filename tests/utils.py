"""Shared test utilities."""

from __future__ import annotations


def word_count(text: str) -> int:
    """Deterministic token estimator: one token per whitespace-separated word."""
    return len(text.split())


def words(n: int) -> str:
    return " ".join(["word"] * n)
