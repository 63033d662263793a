"""Utility functions for handling ticker symbols."""

from typing import Iterable


def normalize_symbol(symbol: str) -> str:
    """Canonical cache/lookup form of a symbol: stripped and upper-cased."""
    return symbol.strip().upper()


def dedupe_symbols(symbols: Iterable[str]) -> list[str]:
    """Normalize symbols and drop blanks and repeats, keeping first-seen order."""
    seen: dict[str, None] = {}
    for symbol in symbols:
        if not symbol:
            continue
        normalized = normalize_symbol(symbol)
        if normalized:
            seen.setdefault(normalized, None)
    return list(seen)
