"""Typed exception hierarchy for market data provider errors.

Lets callers tell a provider that is down (retry on the next poll) from
one that answered with something unusable.
"""


class MarketDataError(Exception):
    """Base exception for all market data provider errors.

    Carries the provider name so callers can identify which provider failed.
    """

    def __init__(self, message: str, provider_name: str = ""):
        self.provider_name = provider_name
        super().__init__(message)


class MarketDataConnectionError(MarketDataError):
    """Network failures: timeouts, DNS resolution, connection refused.

    Retriable by default.
    """

    def __init__(self, message: str, provider_name: str = "", retriable: bool = True):
        self.retriable = retriable
        super().__init__(message, provider_name)


class MarketDataAPIError(MarketDataError):
    """HTTP 4xx/5xx responses from the provider API."""

    def __init__(
        self,
        message: str,
        provider_name: str = "",
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, provider_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        if self.status_code is None:
            return False
        return self.status_code == 429 or self.status_code >= 500
