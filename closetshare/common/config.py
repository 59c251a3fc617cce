"""Central environment-driven settings for the marketplace order core.

Loaded once per process. Behavior is controlled by environment variables or a
local `.env` file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "marketplace"
    log_level: str = "INFO"
    database_dsn: str = "sqlite:///./closetshare.db"
    db_pool_pre_ping: bool = True
    sqlite_busy_timeout_seconds: float = 30.0
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    default_currency: str = "INR"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
