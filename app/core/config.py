from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    app_name: str = "Batch Ingestion API"
    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"
    port: int = 8000

    kafka_brokers: str = "localhost:19092"
    topic_prefix: str = "batch_"
    dlq_suffix: str = "_dlq"
    topic_partitions: int = 1
    topic_replication_factor: int = 1
    topic_retention_ms: int = 7 * 24 * 60 * 60 * 1000

    publish_timeout_seconds: float = 10.0
    dead_letter_read_timeout_seconds: float = 3.0
    cancel_stops_processing: bool = True

    upload_dir: str = "data/uploads"
    max_upload_bytes: int = 1 << 30

    def broker_list(self) -> list[str]:
        return [broker.strip() for broker in self.kafka_brokers.split(",") if broker.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
