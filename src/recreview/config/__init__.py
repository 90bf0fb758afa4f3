"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_float_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .service import ReviewServiceConfig, get_dispatcher_config, get_review_service_config

__all__ = [
    "ConfigurationError",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "ReviewServiceConfig",
    "configure_logging",
    "get_dispatcher_config",
    "get_review_service_config",
    "optional_float_env",
    "require_env_vars",
]
