"""Exception hierarchy for firemock.

All firemock exceptions inherit from FiremockError so callers can catch
every mock-originated failure with a single ``except`` clause.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class FiremockError(Exception):
    """Base exception for all firemock errors."""

    pass


# ============================================================================
# Configuration & Validation Errors
# ============================================================================


class ConfigurationError(FiremockError):
    """Raised when configuration is invalid or missing.

    Examples
    --------
    Example usage::

        raise ConfigurationError("firemock.yaml", "expected 'kind: Config'")
    """

    def __init__(self, component: str, reason: str) -> None:
        """Initialize configuration error.

        Args
        ----
            component: Name of the config source or section that is invalid
            reason: Explanation of what's wrong
        """
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


class ValidationError(FiremockError):
    """Raised when an argument value fails validation.

    Examples
    --------
    Example usage::

        raise ValidationError("delay", "must not be negative", value=-1)
    """

    def __init__(self, field: str, constraint: str, value: object = None) -> None:
        """Initialize validation error.

        Args
        ----
            field: Name of the argument that failed validation
            constraint: Description of the validation constraint
            value: The invalid value (optional)
        """
        if value is not None:
            msg = f"Validation failed for '{field}': {constraint} (got {value!r})"
        else:
            msg = f"Validation failed for '{field}': {constraint}"
        super().__init__(msg)
        self.field = field
        self.constraint = constraint
        self.value = value


# ============================================================================
# Query Errors
# ============================================================================


class QueryUsageError(FiremockError):
    """Raised synchronously when a query is built in an invalid way.

    These are programmer errors, never runtime conditions: nothing is
    scheduled before the error is raised.

    Examples
    --------
    Example usage::

        raise QueryUsageError("start_after", "query must be ordered to paginate")
    """

    def __init__(self, method: str, reason: str) -> None:
        super().__init__(f"Invalid use of '{method}()': {reason}")
        self.method = method
        self.reason = reason


class InjectedError(FiremockError):
    """Carrier for an injected failure value that is not an exception.

    ``fail_next`` accepts any value; exceptions are delivered unchanged
    and everything else is wrapped so it can be set on a future.
    """

    def __init__(self, value: object) -> None:
        super().__init__(f"Injected failure: {value!r}")
        self.value = value
