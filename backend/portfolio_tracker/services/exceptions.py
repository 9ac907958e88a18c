# backend/portfolio_tracker/services/exceptions.py
"""
Service layer exceptions.

These exceptions represent domain-specific errors and contain NO HTTP knowledge.
The global handlers in main.py are responsible for mapping these to HTTP responses.

Exception Hierarchy:
    ServiceError (base)
    ├── ValidationError
    │   └── InvalidPeriodError
    ├── NotFoundError
    │   ├── PortfolioNotFoundError
    │   ├── HoldingNotFoundError
    │   ├── TransactionNotFoundError
    │   └── AlertNotFoundError
    ├── MarketDataError
    │   ├── ProviderUnavailableError
    │   ├── TickerNotFoundError
    │   └── RateLimitError
    ├── AuthenticationError
    │   ├── InvalidCredentialsError
    │   └── TokenExpiredError
    └── AuthorizationError
        └── PermissionDeniedError
"""


class ServiceError(Exception):
    """
    Base exception for all service layer errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(ServiceError):
    """
    Raised when business validation fails.

    This is for domain rules the schemas cannot express (a sell with no
    quantity, a transaction dated in the future), NOT for request shape
    errors which Pydantic handles.

    Attributes:
        field: The field that failed validation (optional)
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class InvalidPeriodError(ValidationError):
    """
    Raised when an unknown performance or history period is requested.

    Attributes:
        period: The rejected period
        valid_periods: Accepted values
    """

    def __init__(self, period: str, valid_periods: tuple[str, ...] | list[str]) -> None:
        self.period = period
        self.valid_periods = tuple(valid_periods)
        super().__init__(
            f"Invalid period: '{period}'. Valid options: {', '.join(self.valid_periods)}",
            field="period",
        )


# =============================================================================
# NOT FOUND ERRORS
# =============================================================================


class NotFoundError(ServiceError):
    """
    Base exception for resource not found errors.

    Attributes:
        resource_type: Type of resource (e.g., "Portfolio", "Holding")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            message: str,
            resource_type: str | None = None,
            resource_id: int | str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(message)


class PortfolioNotFoundError(NotFoundError):
    """
    Raised when a portfolio cannot be found.

    Attributes:
        portfolio_id: ID of the portfolio that was not found
    """

    def __init__(self, portfolio_id: int) -> None:
        self.portfolio_id = portfolio_id
        super().__init__(
            f"Portfolio {portfolio_id} not found",
            resource_type="Portfolio",
            resource_id=portfolio_id,
        )


class HoldingNotFoundError(NotFoundError):
    """Raised when a holding does not exist within the given portfolio."""

    def __init__(self, holding_id: int | str, portfolio_id: int | None = None) -> None:
        self.holding_id = holding_id
        self.portfolio_id = portfolio_id
        message = f"Holding {holding_id} not found"
        if portfolio_id is not None:
            message += f" in portfolio {portfolio_id}"
        super().__init__(message, resource_type="Holding", resource_id=holding_id)


class TransactionNotFoundError(NotFoundError):
    def __init__(self, transaction_id: int) -> None:
        self.transaction_id = transaction_id
        super().__init__(
            f"Transaction {transaction_id} not found",
            resource_type="Transaction",
            resource_id=transaction_id,
        )


class AlertNotFoundError(NotFoundError):
    def __init__(self, alert_id: int) -> None:
        self.alert_id = alert_id
        super().__init__(
            f"Alert {alert_id} not found",
            resource_type="Alert",
            resource_id=alert_id,
        )


# =============================================================================
# MARKET DATA PROVIDER ERRORS
# =============================================================================


class MarketDataError(ServiceError):
    """
    Base exception for market data provider failures.

    Attributes:
        provider: Name of the provider that failed
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(message)


class ProviderUnavailableError(MarketDataError):
    """
    Raised when a market data provider is temporarily unavailable.

    Examples:
    - Network timeout
    - Server errors (500, 502, 503)
    - API maintenance

    This is a retryable error.
    """

    def __init__(self, provider: str, reason: str) -> None:
        message = f"Provider '{provider}' is unavailable: {reason}"
        super().__init__(message, provider=provider)
        self.reason = reason


class TickerNotFoundError(MarketDataError):
    """
    Raised when a ticker symbol is not found by the provider.

    This is NOT a retryable error.
    """

    def __init__(self, ticker: str, exchange: str, provider: str) -> None:
        where = f" on exchange '{exchange}'" if exchange else ""
        message = f"Ticker '{ticker}'{where} not found by {provider}"
        super().__init__(message, provider=provider)
        self.ticker = ticker
        self.exchange = exchange


class RateLimitError(MarketDataError):
    """
    Raised when a request budget has been exhausted.

    Raised both for the provider's own remote limit and for the local
    per-instance request budget.

    Attributes:
        retry_after: Seconds to wait before retrying (if known)
    """

    def __init__(self, provider: str, retry_after: int | None = None) -> None:
        message = f"Rate limit exceeded for provider '{provider}'"
        if retry_after:
            message += f" (retry after {retry_after}s)"
        super().__init__(message, provider=provider)
        self.retry_after = retry_after


# =============================================================================
# AUTHENTICATION / AUTHORIZATION ERRORS
# =============================================================================


class AuthenticationError(ServiceError):
    """Base exception for failures to establish who the caller is."""


class InvalidCredentialsError(AuthenticationError):
    def __init__(self, message: str = "Invalid authentication credentials") -> None:
        super().__init__(message)


class TokenExpiredError(AuthenticationError):
    def __init__(self, message: str = "Token has expired") -> None:
        super().__init__(message)


class AuthorizationError(ServiceError):
    """Base exception for an authenticated caller lacking access."""


class PermissionDeniedError(AuthorizationError):
    """
    Raised when a user accesses a resource they do not own.

    Attributes:
        resource_type: Type of resource (e.g., "Portfolio")
        resource_id: Identifier of the resource
    """

    def __init__(
            self,
            resource_type: str,
            resource_id: int | str,
            message: str | None = None,
    ) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message or f"You do not have access to {resource_type} {resource_id}"
        )


__all__ = [
    # Base
    "ServiceError",
    # Validation
    "ValidationError",
    "InvalidPeriodError",
    # Not Found
    "NotFoundError",
    "PortfolioNotFoundError",
    "HoldingNotFoundError",
    "TransactionNotFoundError",
    "AlertNotFoundError",
    # Market Data
    "MarketDataError",
    "ProviderUnavailableError",
    "TickerNotFoundError",
    "RateLimitError",
    # Auth
    "AuthenticationError",
    "InvalidCredentialsError",
    "TokenExpiredError",
    "AuthorizationError",
    "PermissionDeniedError",
]
