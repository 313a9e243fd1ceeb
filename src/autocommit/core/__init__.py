"""Core primitives: errors, logging, settings, and database access."""

from .errors import (
    AutocommitError,
    AuthExpiredError,
    ConfigError,
    ConflictError,
    FailureCode,
    NotFoundError,
    PersistenceError,
    ProviderTimeoutError,
    RateLimitError,
    RuleValidationError,
    UnknownProviderError,
)
from .logging import configure_logging, get_logger
from .settings import AutocommitSettings, PacingMode, get_settings

__all__ = [
    "AutocommitError",
    "AuthExpiredError",
    "ConfigError",
    "ConflictError",
    "FailureCode",
    "NotFoundError",
    "PersistenceError",
    "ProviderTimeoutError",
    "RateLimitError",
    "RuleValidationError",
    "UnknownProviderError",
    "configure_logging",
    "get_logger",
    "AutocommitSettings",
    "PacingMode",
    "get_settings",
]
