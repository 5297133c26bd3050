from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from work_pipeline.errors import ConfigError


class Settings(BaseSettings):
    """Runtime configuration loaded from env vars and local env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = Field(default="local", alias="APP_ENV")
    log_level: str | None = Field(default=None, alias="LOG_LEVEL")
    environment: str = Field(default="unknown", alias="ENVIRONMENT")

    work_queue_url: str | None = Field(default=None, alias="WORK_QUEUE_URL")
    work_stream_name: str = Field(default="WORK", alias="WORK_STREAM_NAME")
    work_subject_prefix: str = Field(default="work", alias="WORK_SUBJECT_PREFIX")
    worker_consumer_durable: str = Field(default="work-pipeline-worker", alias="WORKER_CONSUMER_DURABLE")
    worker_batch_size: int = Field(default=10, alias="WORKER_BATCH_SIZE", ge=1)
    worker_fetch_timeout_seconds: float = Field(default=5.0, alias="WORKER_FETCH_TIMEOUT_SECONDS", gt=0)
    worker_invocation_timeout_seconds: float = Field(default=30.0, alias="WORKER_INVOCATION_TIMEOUT_SECONDS", gt=0)
    worker_concurrency: int = Field(default=1, alias="WORKER_CONCURRENCY", ge=1)
    simulate_handler_latency: bool = Field(default=True, alias="SIMULATE_HANDLER_LATENCY")

    metrics_url: str | None = Field(default=None, alias="METRICS_URL")
    metrics_org: str | None = Field(default=None, alias="METRICS_ORG")
    metrics_bucket: str | None = Field(default=None, alias="METRICS_BUCKET")
    metrics_subject_prefix: str = Field(default="metrics", alias="METRICS_SUBJECT_PREFIX")
    metrics_secret_id: str | None = Field(default=None, alias="METRICS_SECRET_ID")
    secrets_dir: str = Field(default="/run/secrets", alias="SECRETS_DIR")

    work_items_file: str | None = Field(default=None, alias="WORK_ITEMS_FILE")
    work_item_log_db_dsn: str | None = Field(default=None, alias="WORK_ITEM_LOG_DB_DSN")

    @property
    def effective_log_level(self) -> str:
        if self.log_level:
            return self.log_level.upper()
        return "DEBUG" if self.app_env.lower() == "local" else "INFO"

    @property
    def work_queue_subject(self) -> str:
        return f"{self.work_subject_prefix}.*.requested"

    @property
    def metrics_subject(self) -> str:
        return f"{self.metrics_subject_prefix}.{self.metrics_org}.{self.metrics_bucket}"

    def require(self, *names: str) -> None:
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            env_names = ", ".join(type(self).model_fields[name].alias or name.upper() for name in missing)
            raise ConfigError(f"missing required configuration: {env_names}")


REQUIRED_FOR_PRODUCER = ("work_queue_url", "metrics_url", "metrics_org", "metrics_bucket", "metrics_secret_id")
REQUIRED_FOR_WORKER = REQUIRED_FOR_PRODUCER


@lru_cache
def get_settings() -> Settings:
    return Settings()
