"""
Structured error types for keel.

Provides a small hierarchy of typed errors carrying a category, structured
context and an optional chained cause, so callers can log them uniformly and
decide how to react without parsing messages.

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different concerns
    - **Rich Context:** Errors carry metadata for logging
    - **Error Chaining:** Preserve original exceptions while adding context

    The two primitives in keel have deliberately narrow error surfaces:
    ``InstanceGuard.claim()`` / ``exists()`` never raise (OS failures collapse
    to a boolean), and ``RecurringTask`` never swallows callback errors.  The
    errors below cover the remaining cases: invalid configuration, invalid
    arguments, and misuse of a task's state machine.

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        KeelError                                 │
        │  (category, context, cause)                                      │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ValidationError    ConfigError         SchedulingError          │
        │  (VALIDATION)       (CONFIG)            (SCHEDULING)             │
        │                          │                    │                  │
        │                     InvalidConfigError   TaskStateError          │
        │                                                                  │
        │  GuardError                                                      │
        │  (GUARD)                                                         │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = TaskStateError("task already stopped", state="stopped")
    >>> error.category
    <ErrorCategory.SCHEDULING: 'SCHEDULING'>
    >>> error.to_dict()["state"]
    'stopped'

Tags:
    error-handling, exception-hierarchy, error-context, keel

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    CONFIG = "CONFIG"
    VALIDATION = "VALIDATION"
    SCHEDULING = "SCHEDULING"
    GUARD = "GUARD"
    OS = "OS"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata context for errors.

    Typed fields cover what keel knows at the point of failure (the claim
    token, the task name); anything else goes into ``metadata``.

    Attributes:
        token: Single-instance token involved in the failure
        backend: Segment backend or loop executor name
        task: Name of the recurring task
        metadata: Additional key-value pairs
    """

    token: str | None = None
    backend: str | None = None
    task: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["token", "backend", "task"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class KeelError(Exception):
    """
    Base exception for all keel errors.

    Subclasses set ``default_category``; everything else is per-instance.

    Usage:
        raise ConfigError("unknown guard backend").with_context(backend="sysv")
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> KeelError:
        """Add context to this error (fluent API)."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(KeelError):
    """Invalid argument passed to a keel primitive."""

    default_category = ErrorCategory.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(KeelError):
    """Configuration error. Configuration must be fixed."""

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


# =============================================================================
# SCHEDULING ERRORS
# =============================================================================


class SchedulingError(KeelError):
    """A recurring task could not be scheduled."""

    default_category = ErrorCategory.SCHEDULING


class TaskStateError(SchedulingError):
    """Operation not allowed in the task's current state."""

    def __init__(self, message: str, *, state: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.state = state

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.state:
            result["state"] = self.state
        return result


# =============================================================================
# GUARD ERRORS
# =============================================================================


class GuardError(KeelError):
    """Single-instance guard failure.

    Never raised out of ``claim()`` or ``exists()``; used to describe probe
    failures in structured logs.
    """

    default_category = ErrorCategory.GUARD


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def categorize_error(error: Exception) -> ErrorCategory:
    """Get the category of an error."""
    if isinstance(error, KeelError):
        return error.category
    if isinstance(error, OSError):
        return ErrorCategory.OS
    if isinstance(error, ValueError):
        return ErrorCategory.VALIDATION
    return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "KeelError",
    "ValidationError",
    "ConfigError",
    "InvalidConfigError",
    "SchedulingError",
    "TaskStateError",
    "GuardError",
    "categorize_error",
]
