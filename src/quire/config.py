from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="QUIRE_", env_file=".env", extra="ignore", populate_by_name=True
    )

    app_name: str = "quire"
    env: str = "dev"
    host: str = "0.0.0.0"  # nosec B104 - intentional for container deployments
    port: int = 8090

    # Redis
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="REDIS_URL")
    queue_prefix: str = Field(default="quire", validation_alias="QUEUE_PREFIX")

    # Job retention and retries
    job_ttl_seconds: int = Field(default=86400 * 7, validation_alias="JOB_TTL_SECONDS")
    default_max_attempts: int = Field(default=3, validation_alias="JOB_MAX_ATTEMPTS")
    cleanup_retention_days: int = Field(default=7, validation_alias="JOB_RETENTION_DAYS")

    # Worker
    worker_name: str = Field(default="default", validation_alias="WORKER_NAME")
    worker_batch_size: int = Field(default=5, validation_alias="WORKER_BATCH_SIZE")
    worker_poll_interval: float = Field(default=5.0, validation_alias="WORKER_POLL_INTERVAL")
    worker_promote_interval: float = Field(
        default=30.0, validation_alias="WORKER_PROMOTE_INTERVAL"
    )
    worker_promote_batch_size: int = Field(
        default=100, validation_alias="WORKER_PROMOTE_BATCH_SIZE"
    )
    # Seconds; None disables the per-job timeout
    handler_timeout: float | None = Field(default=300.0, validation_alias="HANDLER_TIMEOUT")
    run_worker_in_app: bool = Field(default=False, validation_alias="RUN_WORKER_IN_APP")

    # Notifications
    base_url: str = Field(default="http://localhost:3000", validation_alias="PUBLIC_BASE_URL")
    notification_gateway_url: str | None = Field(
        default=None, validation_alias="NOTIFICATION_GATEWAY_URL"
    )
    journal_api_url: str | None = Field(default=None, validation_alias="JOURNAL_API_URL")
    http_timeout: float = Field(default=10.0, validation_alias="HTTP_TIMEOUT")

    # Observability
    enable_metrics: bool = Field(default=True, validation_alias="ENABLE_METRICS")
    log_level: str = "INFO"
    log_json: bool | None = None

    @property
    def use_json_logs(self) -> bool:
        """JSON logs everywhere except dev, unless set explicitly."""
        if self.log_json is not None:
            return self.log_json
        return self.env != "dev"


settings = Settings()
