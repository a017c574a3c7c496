class HedgeflowError(Exception):
    """Base class for errors raised by hedgeflow."""


class ProviderError(HedgeflowError):
    """A data provider could not produce a chain."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class ProviderAuthError(ProviderError):
    """Credentials were rejected (HTTP 401/403 or equivalent)."""


class ProviderNotFoundError(ProviderError):
    """The provider has no options data for the ticker."""


class ProviderTransportError(ProviderError):
    """Network failure, timeout, server error or unreadable response."""


class ChainUnavailableError(HedgeflowError):
    """Every strategy, including the synthetic fallback, was exhausted."""

    def __init__(self, ticker: str, strategy: str, reason: str = "") -> None:
        detail = f" ({reason})" if reason else ""
        super().__init__(f"No options chain for {ticker!r} via {strategy}{detail}")
        self.ticker = ticker
        self.strategy = strategy
        self.reason = reason
