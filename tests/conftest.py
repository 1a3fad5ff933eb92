"""Pytest fixtures for the TPS webhook server tests."""

from collections.abc import AsyncIterator, Iterator
import os
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

_MISSING_CONFIG = Path(__file__).resolve().parent / "__no_config.yaml"
os.environ.setdefault("WEBHOOK_CONFIG_FILE", str(_MISSING_CONFIG))
os.environ.setdefault("LOG_FORMAT", "json")

from tps_webhook.config import Settings
from tps_webhook.lib.metrics import METRICS
from tps_webhook.main import create_app
from tps_webhook.webhooks.registry import WebhookRegistry


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at a config file that does not exist (built-in webhooks)."""
    return Settings(WEBHOOK_CONFIG_FILE=str(tmp_path / "config.yaml"))


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    """Return a freshly built application with its own registry."""
    return create_app(settings)


@pytest.fixture()
def registry(app: FastAPI) -> WebhookRegistry:
    return app.state.webhook_registry


@pytest_asyncio.fixture()
async def async_client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    """Provide an `httpx.AsyncClient` bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.fixture(autouse=True)
def reset_counters() -> Iterator[None]:
    """Service counters are process-wide; clear them around each test."""

    METRICS.reset()
    yield
    METRICS.reset()
