"""
Configuration management for the insider trade watcher.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@dataclass
class PolymarketConfig:
    """Configuration for Polymarket APIs."""
    # CLOB API serves trades, Gamma API serves market metadata
    clob_api_url: str = "https://clob.polymarket.com"
    gamma_api_url: str = "https://gamma-api.polymarket.com"

    # Rate limiting
    requests_per_second: int = 5

    # Per-request timeout in seconds
    timeout: float = 15.0


@dataclass(frozen=True)
class DetectionCriteria:
    """Thresholds driving the suspicion scoring rules.

    Frozen: to change thresholds build a new value with ``with_overrides``
    and hand it to subsequent analyses.
    """
    large_trade_threshold: float = 10000.0  # USDC
    extreme_price_threshold: float = 0.1  # prices <= 0.1 or >= 0.9
    close_to_end_hours: float = 24.0
    min_suspicion_score: float = 60.0  # out of 100

    def with_overrides(self, **changes) -> "DetectionCriteria":
        """Return a copy with the given thresholds replaced."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes)


@dataclass
class AggregatorConfig:
    """Configuration for collecting recent trades across markets."""
    market_limit: int = 20
    trades_per_market: int = 10
    max_concurrent_fetches: int = 5
    fetch_timeout: float = 20.0  # seconds, per market


@dataclass
class StorageConfig:
    """Configuration for data storage."""
    database_path: Path = field(default_factory=lambda: Path("data/insider_watch.db"))


@dataclass
class Config:
    """Main configuration container."""
    polymarket: PolymarketConfig = field(default_factory=PolymarketConfig)
    criteria: DetectionCriteria = field(default_factory=DetectionCriteria)
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    # Global settings
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        load_dotenv()

        config = cls()

        # API endpoints
        config.polymarket.clob_api_url = os.getenv("POLYMARKET_API_URL", config.polymarket.clob_api_url)
        config.polymarket.gamma_api_url = os.getenv("GAMMA_API_URL", config.polymarket.gamma_api_url)

        # Detection thresholds
        config.criteria = config.criteria.with_overrides(
            large_trade_threshold=_env_float("LARGE_TRADE_THRESHOLD"),
            extreme_price_threshold=_env_float("EXTREME_PRICE_THRESHOLD"),
            close_to_end_hours=_env_float("CLOSE_TO_END_HOURS"),
            min_suspicion_score=_env_float("MIN_SUSPICION_SCORE"),
        )

        # Debug mode
        config.debug = os.getenv("DEBUG", "false").lower() == "true"
        config.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Storage
        db_path = os.getenv("DATABASE_PATH")
        if db_path:
            config.storage.database_path = Path(db_path)

        return config


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config


def set_config(config: Config) -> None:
    """Replace the global configuration instance.

    Analyses already running keep the criteria they were started with.
    """
    global _config
    _config = config
