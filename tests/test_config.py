"""Tests for config file loading, registry seeding and settings precedence."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tps_webhook.config import Settings
from tps_webhook.main import create_app
from tps_webhook.webhooks.errors import InvalidConfigError
from tps_webhook.webhooks.loader import builtin_webhooks, load_config_file, seed_registry
from tps_webhook.webhooks.registry import WebhookRegistry

_YAML_CONFIG = """
server:
  host: 0.0.0.0
  port: 9090
logging:
  log_level: debug
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
  - id: medium
    name: Medium Webhook
    path: webhook/medium
    config:
      timeout: 500
      headers:
        X-Env: staging
"""


def test_missing_file_falls_back_to_builtins(tmp_path: Path) -> None:
    assert load_config_file(tmp_path / "absent.yaml") is None

    registry = WebhookRegistry()
    assert seed_registry(registry, None) == 3

    paths = {webhook.id: webhook.path for webhook in registry.list()}
    assert paths == {"default": "/webhook", "fast": "/webhook/fast", "slow": "/webhook/slow"}
    assert registry.get("slow").config.timeout_ms == 2000
    assert registry.get("fast").config.enable_logging is False
    assert registry.get("default").config.enable_logging is True


def test_builtins_have_no_delay_except_slow() -> None:
    delays = {seed.id: seed.config.timeout_ms for seed in builtin_webhooks()}
    assert delays == {"default": 0, "fast": 0, "slow": 2000}


def test_yaml_file_seeds_registry(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(_YAML_CONFIG, encoding="utf-8")

    file_config = load_config_file(path)
    assert file_config is not None
    assert file_config.server.port == 9090

    registry = WebhookRegistry()
    seed_registry(registry, file_config)

    medium = registry.get("medium")
    assert medium.path == "/webhook/medium"
    assert medium.config.timeout_ms == 500
    assert medium.config.headers == {"X-Env": "staging"}
    assert medium.config.status_code == 200
    assert "slow" not in registry


def test_json_file_is_supported(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"default_webhooks": [{"id": "orders", "name": "Orders", "config": {"status_code": 202}}]}),
        encoding="utf-8",
    )

    registry = WebhookRegistry()
    seed_registry(registry, load_config_file(path))

    orders = registry.get("orders")
    assert orders.path == "/w/orders"
    assert orders.config.status_code == 202


def test_empty_file_registers_nothing(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    registry = WebhookRegistry()
    assert seed_registry(registry, load_config_file(path)) == 0
    assert len(registry) == 0


@pytest.mark.parametrize(
    "content",
    [
        "default_webhooks: [unclosed",
        "default_webhooks:\n  - id: bad\n    name: Bad\n    config:\n      timeout: -1\n",
        "default_webhooks:\n  - id: api\n    name: Shadow\n    path: /api/webhooks\n",
    ],
)
def test_malformed_file_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(InvalidConfigError):
        load_config_file(path)


@pytest.mark.parametrize(
    "content",
    [
        "default_webhooks:\n  - id: a\n    name: A\n  - id: a\n    name: Again\n",
        "default_webhooks:\n  - id: a\n    name: A\n    path: /hooks/same\n  - id: b\n    name: B\n    path: hooks/same\n",
    ],
)
def test_duplicate_entries_fail_seeding(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")

    registry = WebhookRegistry()
    with pytest.raises(InvalidConfigError, match="'a'|'b'"):
        seed_registry(registry, load_config_file(path))

    assert [webhook.id for webhook in registry.list()] == ["a"]
    assert "b" not in registry

    with pytest.raises(InvalidConfigError):
        create_app(Settings(WEBHOOK_CONFIG_FILE=str(path)))


def test_file_sections_fill_unset_settings(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(_YAML_CONFIG, encoding="utf-8")

    settings = Settings(WEBHOOK_CONFIG_FILE=str(path), WEBHOOK_PORT=7000)
    resolved = settings.with_file_defaults(load_config_file(path))

    assert resolved.port == 7000
    assert resolved.host == "0.0.0.0"
    assert resolved.log_level == "debug"


def test_settings_without_file_keep_defaults(tmp_path: Path) -> None:
    settings = Settings(WEBHOOK_CONFIG_FILE=str(tmp_path / "absent.yaml"))

    assert settings.with_file_defaults(None) is settings
    assert settings.port == 8080
