# shopwhiz/errors.py

"""Exception taxonomy for the discovery pipeline."""


class ShopWhizError(Exception):
    """Base class for all pipeline errors."""


class SourceUnavailable(ShopWhizError):
    """One adapter could not produce drafts (network or parse failure).

    Always recovered by isolation: the adapter contributes nothing.
    """

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"[{source}] {reason}")
        self.source = source
        self.reason = reason


class ProviderError(ShopWhizError):
    """A generative provider call failed."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderQuotaExceeded(ProviderError):
    """The provider signalled a quota or rate limit (HTTP 429)."""


class AllProvidersExhausted(ProviderError):
    """No provider is active, or every eligible provider failed."""


class MalformedUpstreamPayload(ProviderError):
    """Generated text did not decode or validate as the expected JSON."""
