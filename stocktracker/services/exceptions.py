# stocktracker/services/exceptions.py
"""
Domain errors raised by the service layer.

Nothing here knows about HTTP. main.py maps each class to a status code
and an ErrorResponse body.

    ServiceError
    ├── ValidationError
    ├── NotFoundError
    │   ├── AccountNotFoundError
    │   └── TransactionNotFoundError
    ├── StoreError
    ├── MarketDataError
    │   ├── ProviderUnavailableError
    │   ├── TickerNotFoundError
    │   └── RateLimitError
    └── FXRateError
        ├── FXRateNotFoundError
        ├── FXRateNotAvailableError
        └── FXProviderError

Price lookups never let MarketDataError escape to callers; they degrade to
a stale quote or None. FX failures do escape, as FXRateNotAvailableError.
"""

from datetime import date


class ServiceError(Exception):
    """Root of the hierarchy. `message` is safe to show to API clients."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# INPUT
# =============================================================================


class ValidationError(ServiceError):
    """
    Bad input that got past request parsing, such as an unsupported
    currency code or a malformed symbol.

    Attributes:
        field: Name of the offending parameter, if known
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class NotFoundError(ServiceError):
    """A named thing (account, price) does not exist."""

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class AccountNotFoundError(NotFoundError):
    """The account id has neither an account record nor any transactions."""

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(
            f"Unknown account '{account_id}'",
            resource_type="Account",
            resource_id=account_id,
        )


class TransactionNotFoundError(NotFoundError):
    """No stored transaction has this id."""

    def __init__(self, transaction_id: str) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            f"Unknown transaction '{transaction_id}'",
            resource_type="Transaction",
            resource_id=transaction_id,
        )


class StoreError(ServiceError):
    """The portfolio document could not be loaded or saved."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


# =============================================================================
# PRICE PROVIDERS
# =============================================================================


class MarketDataError(ServiceError):
    """A price provider call failed. `provider` names the source."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    The provider answered badly or not at all: timeouts, 5xx, or a quote
    with no usable price.
    """

    def __init__(self, provider: str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"{provider} unavailable: {reason}", provider=provider)


class TickerNotFoundError(MarketDataError):
    """The provider has no listing for this ticker."""

    def __init__(self, ticker: str, exchange: str, provider: str) -> None:
        self.ticker = ticker
        self.exchange = exchange
        super().__init__(
            f"{provider} has no listing for {ticker} ({exchange})",
            provider=provider,
        )


class RateLimitError(MarketDataError):
    """
    The provider throttled us.

    Attributes:
        retry_after: Seconds the provider asked us to wait, when it said
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        message = f"{provider} rate limit hit"
        if retry_after:
            message = f"{message}, retry after {retry_after}s"
        super().__init__(message, provider=provider)


# =============================================================================
# FX
# =============================================================================


class FXRateError(ServiceError):
    def __init__(
            self,
            message: str,
            base_currency: str | None = None,
            quote_currency: str | None = None,
    ) -> None:
        self.base_currency = base_currency
        self.quote_currency = quote_currency
        super().__init__(message)


class FXRateNotFoundError(FXRateError):
    """A snapshot was found but one side of the pair is missing from it."""

    def __init__(
            self,
            base_currency: str,
            quote_currency: str,
            rate_date: date | None,
            message: str | None = None,
    ) -> None:
        self.date = rate_date
        when = rate_date.isoformat() if rate_date else "live rates"
        super().__init__(
            message or f"{base_currency}->{quote_currency} missing from {when}",
            base_currency=base_currency,
            quote_currency=quote_currency,
        )


class FXRateNotAvailableError(FXRateError):
    """
    No snapshot could be produced: the provider failed and nothing stored
    can stand in.

    Attributes:
        requested: "live" or the ISO date asked for
        reason: Provider failure text, if any
    """

    def __init__(self, requested: str, reason: str | None = None) -> None:
        self.requested = requested
        self.reason = reason
        message = f"FX rates for '{requested}' are unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class FXProviderError(FXRateError):
    """The FX source returned an error, bad JSON, or an unusable payload."""

    def __init__(self, provider: str, reason: str) -> None:
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider}: {reason}")


__all__ = [
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "AccountNotFoundError",
    "TransactionNotFoundError",
    "StoreError",
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    "FXRateError",
    "FXRateNotFoundError",
    "FXRateNotAvailableError",
    "FXProviderError",
]
