"""
Custom exceptions for parcelsched.

This module defines the exception hierarchy for the package. Invalid
configuration and malformed requests are rejected when objects are
constructed so that scoring and eviction passes never fail mid-way.
"""

from __future__ import annotations

from typing import Any


class ParcelSchedError(Exception):
    """
    Base exception for all parcelsched errors.

    Attributes:
        message: Human-readable error description.
        details: Additional context about the error.

    Example:
        >>> try:
        ...     scheduler.restore(snapshot)
        ... except ParcelSchedError as e:
        ...     logger.error(f"Scheduler error: {e}")
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(ParcelSchedError):
    """
    Raised when a scheduler configuration value is invalid.

    Attributes:
        config_key: The configuration key that has an issue.
        expected: What was expected for this configuration.
        received: What was actually provided.

    Example:
        >>> raise ConfigurationError(
        ...     config_key="queue_capacity",
        ...     expected="a positive integer",
        ...     received=0,
        ... )
    """

    def __init__(
        self,
        config_key: str,
        expected: str | None = None,
        received: Any = None,
    ) -> None:
        self.config_key = config_key
        self.expected = expected
        self.received = received

        message = f"Configuration error for '{config_key}'"
        if expected:
            message += f": expected {expected}"
        if received is not None:
            message += f", got {received!r}"

        details = {
            "config_key": config_key,
            "expected": expected,
            "received": str(received) if received is not None else None,
        }
        super().__init__(message, details)


class InvalidTimeValueFunctionError(ParcelSchedError):
    """
    Raised when a time-value function is malformed.

    A saturation count larger than the step-flag sequence, a non-positive
    step interval or a non-positive tier multiplier are all rejected at
    construction time.

    Attributes:
        field_name: The offending field.
        received: The value that was provided.
    """

    def __init__(self, field_name: str, reason: str, received: Any = None) -> None:
        self.field_name = field_name
        self.received = received
        super().__init__(
            f"Invalid time-value function field '{field_name}': {reason}",
            {"field_name": field_name, "reason": reason, "received": received},
        )


class InvalidRequestError(ParcelSchedError):
    """Raised when a delivery request or its package metadata is invalid."""

    def __init__(self, field_name: str, reason: str, received: Any = None) -> None:
        self.field_name = field_name
        self.received = received
        super().__init__(
            f"Invalid delivery request field '{field_name}': {reason}",
            {"field_name": field_name, "reason": reason, "received": received},
        )


class SnapshotError(ParcelSchedError):
    """
    Raised when a queue snapshot cannot be read, written or validated.

    Attributes:
        source: Where the snapshot came from (path or store name).
    """

    def __init__(
        self,
        message: str,
        source: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        self.source = source
        self.errors = errors or []
        super().__init__(message, {"source": source, "errors": self.errors})


class SchedulerNotAvailableError(ParcelSchedError):
    """
    Raised when an unknown scheduling policy is requested.

    Attributes:
        policy: The requested policy name.
    """

    def __init__(self, message: str, policy: str | None = None) -> None:
        self.policy = policy
        super().__init__(message, {"policy": policy})


__all__ = [
    "ParcelSchedError",
    "ConfigurationError",
    "InvalidTimeValueFunctionError",
    "InvalidRequestError",
    "SnapshotError",
    "SchedulerNotAvailableError",
]
