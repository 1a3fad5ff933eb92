"""Startup config file loading and the built-in fallback webhooks.

The config file mirrors the layout operators already use::

    server:
      host: localhost
      port: 8080
    logging:
      log_file: webhook.log
      log_level: info
      log_format: text
    default_webhooks:
      - id: default
        name: Default Webhook
        path: /webhook
        config:
          status_code: 200
          content_type: application/json
          response_body: '{"message": "Request received"}'
          timeout: 0
          enable_logging: true

Files ending in ``.json`` are parsed as JSON, everything else as YAML.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator

from tps_webhook.lib.logger import get_logger
from tps_webhook.webhooks.errors import InvalidConfigError, WebhookError
from tps_webhook.webhooks.registry import WebhookRegistry
from tps_webhook.webhooks.schemas import WebhookConfig, validate_webhook_path

logger = get_logger(__name__)


class ServerSection(BaseModel):
    host: str | None = None
    port: int | None = Field(default=None, ge=1, le=65535)


class LoggingSection(BaseModel):
    log_file: str | None = None
    log_level: str | None = None
    log_format: str | None = None


class WebhookSeed(BaseModel):
    """One webhook declared in the config file."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    path: str | None = None
    config: WebhookConfig = Field(default_factory=WebhookConfig)

    @field_validator("path")
    @classmethod
    def check_path(cls, value: str | None) -> str | None:
        return validate_webhook_path(value)

    @field_validator("config", mode="before")
    @classmethod
    def default_config(cls, value: Any) -> Any:
        return {} if value is None else value


class WebhookConfigFile(BaseModel):
    server: ServerSection = Field(default_factory=ServerSection)
    logging: LoggingSection = Field(default_factory=LoggingSection)
    default_webhooks: list[WebhookSeed] = Field(default_factory=list)

    @field_validator("server", "logging", "default_webhooks", mode="before")
    @classmethod
    def empty_sections(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return [] if info.field_name == "default_webhooks" else {}
        return value


def builtin_webhooks() -> list[WebhookSeed]:
    """Webhooks served when no config file is available."""

    return [
        WebhookSeed(
            id="default",
            name="Default Webhook",
            path="/webhook",
            config=WebhookConfig(
                response_body='{"message": "Request received"}',
                enable_logging=True,
            ),
        ),
        WebhookSeed(
            id="fast",
            name="Fast Webhook",
            path="/webhook/fast",
            config=WebhookConfig(
                response_body='{"message": "Fast response", "delay": "0ms"}',
                enable_logging=False,
            ),
        ),
        WebhookSeed(
            id="slow",
            name="Slow Webhook",
            path="/webhook/slow",
            config=WebhookConfig(
                response_body='{"message": "Slow response", "delay": "2000ms"}',
                timeout_ms=2000,
                enable_logging=True,
            ),
        ),
    ]


def _parse(path: Path, text: str) -> Any:
    if path.suffix.lower() == ".json":
        return json.loads(text)
    return yaml.safe_load(text)


def load_config_file(path: Path) -> WebhookConfigFile | None:
    """Load the config file, returning None when it does not exist.

    A file that exists but cannot be parsed or validated raises
    ``InvalidConfigError`` so a typo never silently drops configured webhooks.
    """

    if not path.exists():
        logger.warning("config_file_missing", extra={"config_file": str(path)})
        return None

    try:
        raw = _parse(path, path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise InvalidConfigError(f"Could not parse {path}: {exc}") from exc

    try:
        config = WebhookConfigFile.model_validate(raw or {})
    except ValidationError as exc:
        raise InvalidConfigError(f"Invalid config file {path}: {exc}") from exc

    logger.info(
        "config_file_loaded",
        extra={"config_file": str(path), "webhook_count": len(config.default_webhooks)},
    )
    return config


def seed_registry(registry: WebhookRegistry, file_config: WebhookConfigFile | None) -> int:
    """Register the configured webhooks, or the built-in ones without a config file.

    Duplicate ids or paths in the file are reported as ``InvalidConfigError``.
    """

    seeds = file_config.default_webhooks if file_config is not None else builtin_webhooks()
    for seed in seeds:
        try:
            registry.register(seed.id, seed.name, seed.path, seed.config)
        except WebhookError as exc:
            raise InvalidConfigError(
                f"Invalid config file entry '{seed.id}': {exc}", webhook_id=seed.id
            ) from exc
    return len(seeds)
