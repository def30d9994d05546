"""
Custom error classes for Lead Funnel Insights.
Structured error handling with error codes across all modules.

Hierarchy:
    AnalyticsError
    ├── InvalidRangeTokenError
    └── DataError
        ├── ConfigError
        └── DataFetchError
"""


class AnalyticsError(Exception):
    """Base exception for all Lead Funnel Insights errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


class InvalidRangeTokenError(AnalyticsError):
    """A dashboard range token that the range selector does not know."""

    def __init__(self, token: str, allowed: tuple = ()):
        self.token = token
        msg = f"Unknown range token: {token!r}"
        if allowed:
            msg += f" (expected one of: {', '.join(allowed)})"
        super().__init__(
            msg, code="INVALID_RANGE",
            details={"token": token, "allowed": list(allowed)},
        )


# --- Data Errors ---

class DataError(AnalyticsError):
    """Base class for data access and configuration errors."""
    pass


class ConfigError(DataError):
    """Configuration or environment error."""

    def __init__(self, message: str, config_path: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"config_path": config_path},
        )


class DataFetchError(DataError):
    """Failed to fetch records from the data store."""

    def __init__(self, message: str, source: str = None):
        self.source = source
        super().__init__(
            message, code="DATA_FETCH_FAILED", details={"source": source},
        )
