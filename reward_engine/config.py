"""Configuration management for the reward engine."""

import os
from dataclasses import dataclass
from typing import Optional

from reward_engine.exceptions import ConfigurationError

ENV_PREFIX = "REWARD_ENGINE_"


@dataclass
class EngineConfig:
    """Runtime settings shared by the tool server and scripts."""

    database_url: str = "sqlite:///data/rewards.db"

    # Reference currency used to derive cross-rates when no direct edge exists
    base_currency_id: Optional[str] = None

    rate_cache_ttl_seconds: float = 15 * 60  # Rates are near-static
    store_timeout_seconds: float = 5.0
    max_concurrency: Optional[int] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from REWARD_ENGINE_* environment variables."""
        defaults = cls()

        max_concurrency = _read_number(
            "MAX_CONCURRENCY", defaults.max_concurrency, int
        )
        if max_concurrency is not None and max_concurrency < 1:
            raise ConfigurationError(
                f"{ENV_PREFIX}MAX_CONCURRENCY must be >= 1, got {max_concurrency}"
            )

        return cls(
            database_url=os.getenv(f"{ENV_PREFIX}DATABASE_URL", defaults.database_url),
            base_currency_id=os.getenv(f"{ENV_PREFIX}BASE_CURRENCY_ID") or None,
            rate_cache_ttl_seconds=_read_number(
                "RATE_CACHE_TTL", defaults.rate_cache_ttl_seconds, float
            ),
            store_timeout_seconds=_read_number(
                "STORE_TIMEOUT", defaults.store_timeout_seconds, float
            ),
            max_concurrency=max_concurrency,
            log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", defaults.log_level),
        )


def _read_number(name: str, default, cast):
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}") from e
