"""Review service configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from recreview.domain.review import DEFAULT_TIMEOUT_SECONDS, DispatcherConfig

from .env import optional_float_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

BASE_URL_ENV = "RECREVIEW_API_BASE_URL"
TOKEN_ENV = "RECREVIEW_API_TOKEN"  # noqa: S105
TIMEOUT_ENV = "RECREVIEW_TIMEOUT_SECONDS"


@dataclass(frozen=True, slots=True)
class ReviewServiceConfig:
    """Holds the review service endpoint and credentials."""

    base_url: str
    api_token: str
    resilience: ResilienceConfig


def get_review_service_config(*, resilience: ResilienceConfig | None = None) -> ReviewServiceConfig:
    values = require_env_vars((BASE_URL_ENV, TOKEN_ENV))
    base_url = values[BASE_URL_ENV].rstrip("/") + "/"
    token = values[TOKEN_ENV]
    return ReviewServiceConfig(
        base_url=base_url,
        api_token=token,
        resilience=resilience
        or ResilienceConfig(
            name="recreview",
            base_url=base_url,
            timeout_seconds=optional_float_env(TIMEOUT_ENV, DEFAULT_TIMEOUT_SECONDS),
            retry=RetryPolicy(),
            ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
            default_headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
            },
        ),
    )


def get_dispatcher_config() -> DispatcherConfig:
    return DispatcherConfig(
        timeout_seconds=optional_float_env(TIMEOUT_ENV, DEFAULT_TIMEOUT_SECONDS)
    )
