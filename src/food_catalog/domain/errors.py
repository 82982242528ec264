"""Errors raised by product lookups."""


class ProductLookupError(Exception):
    """Base class for product lookup failures."""


class UpstreamError(ProductLookupError):
    """An external nutrition API failed."""

    def __init__(
        self, message: str, status_code: int | None = None, *, retryable: bool = False
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class FatSecretApiError(UpstreamError):
    """FatSecret returned an error or an unusable response."""


class FatSecretTimeoutError(FatSecretApiError):
    """A FatSecret request exceeded the configured timeout."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=True)


class FatSecretAuthError(UpstreamError):
    """The FatSecret OAuth token could not be obtained."""


class OpenFoodFactsError(UpstreamError):
    """Open Food Facts returned an error response."""


class ProductNormalizationError(ProductLookupError, ValueError):
    """A single upstream record could not be turned into a product."""


class ResolverConfigurationError(ProductLookupError):
    """The resolver was called without a required collaborator."""
