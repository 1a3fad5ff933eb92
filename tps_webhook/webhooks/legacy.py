"""Single-endpoint API kept for clients written against the ``default`` webhook."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from tps_webhook.lib import metrics
from tps_webhook.webhooks.errors import WebhookError
from tps_webhook.webhooks.registry import WebhookRegistry
from tps_webhook.webhooks.routes import get_registry
from tps_webhook.webhooks.schemas import WebhookConfig, WebhookConfigPatch, WebhookPatch

router = APIRouter()

LEGACY_WEBHOOK_ID = "default"


@router.get("/config")
async def get_config(registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    try:
        webhook = registry.get(LEGACY_WEBHOOK_ID)
    except WebhookError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return JSONResponse({"ok": True, "data": webhook.config.model_dump(mode="json")})


@router.post("/config")
async def replace_config(config: WebhookConfig, registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    patch = WebhookPatch(config=WebhookConfigPatch.from_config(config))
    try:
        registry.update(LEGACY_WEBHOOK_ID, patch, merge_headers=False)
    except WebhookError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    metrics.METRICS.increment(metrics.UPDATED)
    return JSONResponse({"ok": True, "data": {"message": "Configuration updated"}})


@router.post("/request")
async def record_request(registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    """Count one request against the default webhook without shaping a response."""

    try:
        registry.record_and_respond(LEGACY_WEBHOOK_ID)
    except WebhookError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    metrics.METRICS.increment(metrics.REQUEST)
    return JSONResponse(
        {"ok": True, "data": {"message": "Request recorded", "timestamp": datetime.now(tz=UTC).isoformat()}}
    )


@router.get("/metrics")
async def default_metrics(registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    try:
        snapshot = registry.snapshot(LEGACY_WEBHOOK_ID)
    except WebhookError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    return JSONResponse({"ok": True, "data": snapshot.model_dump(mode="json")})


@router.post("/reset")
async def reset_default(registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    try:
        registry.reset(LEGACY_WEBHOOK_ID)
    except WebhookError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    metrics.METRICS.increment(metrics.RESET)
    return JSONResponse({"ok": True, "data": {"message": "Metrics reset"}})
