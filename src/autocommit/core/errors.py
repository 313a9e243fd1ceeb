"""
Structured error types for the autocommit engine.

Every failure the engine can observe is expressed as an ``AutocommitError``
subclass that carries a category, a retry decision, an optional provider
failure code, and structured context for logging.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure the scheduler reacts to
    - **Explicit Retry Semantics:** Each error knows if the next tick may retry
    - **Failure Codes:** Provider failures map onto a closed set of codes that
      are persisted on the attempt record
    - **Error Chaining:** The original exception is kept as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                       AutocommitError                            │
        │     (category, retryable, retry_after, context, cause, code)     │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ConfigError            ProviderError           PersistenceError │
        │  (CONFIG)               (PROVIDER)              (DATABASE)       │
        │       │                     │                                    │
        │  RuleValidationError   TransientProviderError   AuthError        │
        │                        ├ RateLimitError         └ AuthExpired... │
        │                        ├ ProviderTimeoutError                    │
        │                        └ UnknownProviderError   ConflictError    │
        │                                                 NotFoundError    │
        └─────────────────────────────────────────────────────────────────┘

Guardrails:
    ❌ DON'T: Retry an ``AuthExpiredError`` every tick
    ✅ DO: Flag the rule for re-authentication and stop attempting

    ❌ DON'T: Let a per-rule error escape the scheduler tick
    ✅ DO: Convert it into a failed attempt record plus a log entry

Tags:
    error-handling, exception-hierarchy, retry-logic, failure-codes

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories used for routing and log filtering."""

    CONFIG = "CONFIG"
    PROVIDER = "PROVIDER"
    AUTH = "AUTH"
    DATABASE = "DATABASE"
    INTERNAL = "INTERNAL"


class FailureCode(str, Enum):
    """Failure codes recorded on a failed commit attempt.

    The values are persisted verbatim in ``commit_attempts.error_code``.
    """

    AUTH_EXPIRED = "AuthExpired"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    RATE_LIMITED = "RateLimited"
    TIMEOUT = "Timeout"
    UNKNOWN = "Unknown"


@dataclass
class ErrorContext:
    """Structured metadata attached to an error.

    Attributes:
        rule_id: Automation rule being processed
        owner_id: Owner of the rule
        repository: ``owner/name`` of the target repository
        path: Target file path inside the repository
        http_status: Provider HTTP status, if any
        metadata: Additional key-value pairs
    """

    rule_id: str | None = None
    owner_id: str | None = None
    repository: str | None = None
    path: str | None = None
    http_status: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["rule_id", "owner_id", "repository", "path", "http_status"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class AutocommitError(Exception):
    """
    Base exception for all autocommit errors.

    Subclasses set ``default_category``, ``default_retryable`` and
    ``default_code`` so that raising sites only supply a message.

    Examples:
        >>> error = AutocommitError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.retryable
        False

        >>> error = RateLimitError(retry_after=30)
        >>> error.code
        <FailureCode.RATE_LIMITED: 'RateLimited'>
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    default_code: FailureCode = FailureCode.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        retry_after: int | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
        code: FailureCode | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.retry_after = retry_after
        self.context = context or ErrorContext()
        self.cause = cause
        self.code = code or self.default_code

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> AutocommitError:
        """
        Add context to this error (fluent API).

        Usage:
            raise NotFoundError("Missing repo").with_context(
                repository="octo/hello", path="README.md"
            )
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
            "code": self.code.value,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, code={self.code.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(AutocommitError):
    """Malformed rule or engine configuration."""

    default_category = ErrorCategory.CONFIG


class RuleValidationError(ConfigError):
    """A rule violates one of its structural invariants."""

    def __init__(self, field_name: str, message: str, **kwargs: Any):
        super().__init__(f"{field_name}: {message}", **kwargs)
        self.field_name = field_name


# =============================================================================
# PROVIDER ERRORS
# =============================================================================


class ProviderError(AutocommitError):
    """Any failure reported by the upstream version-control provider."""

    default_category = ErrorCategory.PROVIDER


class TransientProviderError(ProviderError):
    """Temporary provider failure, retried on the next tick."""

    default_retryable = True


class RateLimitError(TransientProviderError):
    """Provider rate limit exhausted."""

    default_code = FailureCode.RATE_LIMITED

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int | None = 60,
        **kwargs: Any,
    ):
        super().__init__(message, retry_after=retry_after, **kwargs)


class ProviderTimeoutError(TransientProviderError):
    """An upstream call did not complete within its timeout."""

    default_code = FailureCode.TIMEOUT


class UnknownProviderError(TransientProviderError):
    """Unclassified provider failure (5xx, malformed response, network)."""

    default_code = FailureCode.UNKNOWN


class ConflictError(ProviderError):
    """Optimistic write rejected because the file revision is stale."""

    default_retryable = True
    default_code = FailureCode.CONFLICT


class NotFoundError(ProviderError):
    """Repository or path does not exist."""

    default_code = FailureCode.NOT_FOUND


class AuthError(ProviderError):
    """Credential problem; never retried automatically."""

    default_category = ErrorCategory.AUTH
    default_code = FailureCode.AUTH_EXPIRED


class AuthExpiredError(AuthError):
    """Provider rejected the credential (expired or revoked)."""


# =============================================================================
# PERSISTENCE ERRORS
# =============================================================================


class PersistenceError(AutocommitError):
    """Rule, statistics or attempt-log write failed."""

    default_category = ErrorCategory.DATABASE


# =============================================================================
# HELPERS
# =============================================================================


def is_retryable(error: Exception) -> bool:
    """Check whether the next tick may retry after ``error``."""
    if isinstance(error, AutocommitError):
        return error.retryable
    return False


def failure_code_for(error: Exception) -> FailureCode:
    """Map any exception onto the persisted failure code."""
    if isinstance(error, AutocommitError):
        return error.code
    return FailureCode.UNKNOWN


__all__ = [
    "ErrorCategory",
    "FailureCode",
    "ErrorContext",
    "AutocommitError",
    "ConfigError",
    "RuleValidationError",
    "ProviderError",
    "TransientProviderError",
    "RateLimitError",
    "ProviderTimeoutError",
    "UnknownProviderError",
    "ConflictError",
    "NotFoundError",
    "AuthError",
    "AuthExpiredError",
    "PersistenceError",
    "is_retryable",
    "failure_code_for",
]
