"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Series database location."""

    model_config = SettingsConfigDict(env_prefix="STORE_")

    db_path: str = "data/pricetrend.db"


class HistorySettings(BaseSettings):
    """Bulk historical import from a pre-reduced CSV file.

    The file has a header row followed by `timestamp,price` rows in
    ascending order, one per hour, price in major currency units.
    """

    model_config = SettingsConfigDict(env_prefix="HISTORY_")

    enabled: bool = True
    csv_path: str = "history/bitstamp.csv"
    batch_size: int = Field(default=1000, gt=0)


class FeedSettings(BaseSettings):
    """Live price feed (ccxt exchange ticker)."""

    model_config = SettingsConfigDict(env_prefix="FEED_")

    exchange_id: str = "bitstamp"
    symbol: str = "BTC/USD"
    price_field: str = "vwap"  # falls back to "last" when the exchange omits it
    timeout_ms: int = 10_000


class PollerSettings(BaseSettings):
    """Live poller schedule.

    Ticks are aligned to multiples of interval_seconds, which may not be
    coarser than one hour.
    """

    model_config = SettingsConfigDict(env_prefix="POLLER_")

    enabled: bool = True
    interval_seconds: int = Field(default=3600, gt=0, le=3600)
    offset_seconds: float = Field(default=30.0, ge=0)  # after the boundary, so the feed has rolled over


class QuerySettings(BaseSettings):
    """Range query engine and cache parameters."""

    model_config = SettingsConfigDict(env_prefix="QUERY_")

    max_points: int = Field(default=100, ge=2)
    cache_max_entries: int = Field(default=4096, ge=0)  # 0 disables caching
    cache_skip_open_hour: bool = False


class ApiSettings(BaseSettings):
    """HTTP server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production
    store: StoreSettings = StoreSettings()
    history: HistorySettings = HistorySettings()
    feed: FeedSettings = FeedSettings()
    poller: PollerSettings = PollerSettings()
    query: QuerySettings = QuerySettings()
    api: ApiSettings = ApiSettings()
