"""Application configuration loading via Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import Field
from pydantic_settings import BaseSettings

if TYPE_CHECKING:  # pragma: no cover
    from tps_webhook.webhooks.loader import WebhookConfigFile


class Settings(BaseSettings):
    """Runtime configuration sourced from environment variables."""

    host: str = Field(default="localhost", alias="WEBHOOK_HOST")
    port: int = Field(default=8080, ge=1, le=65535, alias="WEBHOOK_PORT")
    config_file: Path = Field(default=Path("config.yaml"), alias="WEBHOOK_CONFIG_FILE")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: Path | None = Field(default=None, alias="LOG_FILE")
    log_format: Literal["json", "text"] = Field(default="json", alias="LOG_FORMAT")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    def with_file_defaults(self, file_config: "WebhookConfigFile | None") -> "Settings":
        """Fill fields not set in the environment from the config file sections."""

        if file_config is None:
            return self

        updates: dict[str, object] = {}
        explicit = self.model_fields_set
        server = file_config.server
        if "host" not in explicit and server.host:
            updates["host"] = server.host
        if "port" not in explicit and server.port:
            updates["port"] = server.port

        logging_section = file_config.logging
        if "log_level" not in explicit and logging_section.log_level:
            updates["log_level"] = logging_section.log_level
        if "log_file" not in explicit and logging_section.log_file:
            updates["log_file"] = Path(logging_section.log_file)
        if "log_format" not in explicit and logging_section.log_format in ("json", "text"):
            updates["log_format"] = logging_section.log_format

        return self.model_copy(update=updates) if updates else self


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()  # type: ignore[call-arg]
