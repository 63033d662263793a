"""Shared query parameter parsing utilities."""

from fastapi import HTTPException

from utils.ticker import dedupe_symbols


def parse_symbols(symbols: str | None, max_count: int) -> list[str]:
    """Parse a comma-separated symbols string into a validated list.

    Args:
        symbols: Comma-separated ticker symbols, e.g. ``"aapl,MSFT"``.
        max_count: Maximum number of distinct symbols accepted.

    Returns:
        Upper-cased, de-duplicated symbols in request order.

    Raises:
        HTTPException: 400 if no symbols were given or too many were.
    """
    result = dedupe_symbols((symbols or "").split(","))
    if not result:
        raise HTTPException(status_code=400, detail="Missing symbols parameter")
    if len(result) > max_count:
        raise HTTPException(
            status_code=400,
            detail=f"Maximum {max_count} symbols per request",
        )
    return result
