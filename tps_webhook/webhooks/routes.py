"""Management API for creating, updating and inspecting webhooks."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from tps_webhook.lib import metrics
from tps_webhook.webhooks.errors import WebhookError
from tps_webhook.webhooks.registry import Webhook, WebhookRegistry
from tps_webhook.webhooks.schemas import (
    BulkUpdateRequest,
    WebhookCreateRequest,
    WebhookPatch,
    WebhookReplaceRequest,
    WebhookView,
)

router = APIRouter()


def get_registry(request: Request) -> WebhookRegistry:
    registry: WebhookRegistry | None = getattr(request.app.state, "webhook_registry", None)
    if registry is None:
        raise RuntimeError("Webhook registry not configured on application state")
    return registry


def _http_error(exc: WebhookError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


def _view(webhook: Webhook) -> dict[str, object]:
    return WebhookView.from_webhook(webhook).model_dump(mode="json")


@router.get("/webhooks", summary="List webhooks")
async def list_webhooks(registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    webhooks = sorted(registry.list(), key=lambda webhook: webhook.created_at)
    return JSONResponse({"ok": True, "data": [_view(webhook) for webhook in webhooks]})


@router.post("/webhooks", status_code=201, summary="Create webhook")
async def create_webhook(
    payload: WebhookCreateRequest,
    registry: WebhookRegistry = Depends(get_registry),
) -> JSONResponse:
    try:
        webhook = registry.create(payload.name, payload.path, payload.config)
    except WebhookError as exc:
        raise _http_error(exc) from exc
    metrics.METRICS.increment(metrics.CREATED)
    return JSONResponse({"ok": True, "data": _view(webhook)}, status_code=201)


@router.put("/webhooks/bulk", summary="Update several webhooks")
async def bulk_update_webhooks(
    payload: BulkUpdateRequest,
    registry: WebhookRegistry = Depends(get_registry),
) -> JSONResponse:
    patches = {webhook_id: entry.to_patch() for webhook_id, entry in payload.updates.items()}
    updated, failed = registry.bulk_update(patches)
    metrics.METRICS.increment(metrics.UPDATED, len(updated))
    data: dict[str, object] = {
        "message": "Bulk update completed",
        "updated": {webhook_id: _view(webhook) for webhook_id, webhook in updated.items()},
    }
    if failed:
        data["failed"] = failed
    return JSONResponse({"ok": True, "data": data})


@router.post("/webhooks/reset", summary="Reset metrics of every webhook")
async def reset_all_webhooks(registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    count = registry.reset_all()
    metrics.METRICS.increment(metrics.RESET, count)
    return JSONResponse({"ok": True, "data": {"message": "Metrics reset", "count": count}})


@router.get("/webhooks/{webhook_id}", summary="Get webhook")
async def get_webhook(webhook_id: str, registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    try:
        webhook = registry.get(webhook_id)
    except WebhookError as exc:
        raise _http_error(exc) from exc
    return JSONResponse({"ok": True, "data": _view(webhook)})


@router.put("/webhooks/{webhook_id}", summary="Replace webhook config")
async def replace_webhook(
    webhook_id: str,
    payload: WebhookReplaceRequest,
    registry: WebhookRegistry = Depends(get_registry),
) -> JSONResponse:
    try:
        webhook = registry.update(webhook_id, payload.to_patch(), merge_headers=False)
    except WebhookError as exc:
        raise _http_error(exc) from exc
    metrics.METRICS.increment(metrics.UPDATED)
    return JSONResponse({"ok": True, "data": _view(webhook)})


@router.patch("/webhooks/{webhook_id}", summary="Partially update webhook")
async def patch_webhook(
    webhook_id: str,
    payload: WebhookPatch,
    registry: WebhookRegistry = Depends(get_registry),
) -> JSONResponse:
    try:
        webhook = registry.update(webhook_id, payload)
    except WebhookError as exc:
        raise _http_error(exc) from exc
    metrics.METRICS.increment(metrics.UPDATED)
    return JSONResponse({"ok": True, "data": _view(webhook)})


@router.delete("/webhooks/{webhook_id}", summary="Delete webhook")
async def delete_webhook(webhook_id: str, registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    if registry.is_protected(webhook_id):
        raise HTTPException(status_code=403, detail="Built-in webhooks cannot be deleted")
    if not registry.delete(webhook_id):
        raise HTTPException(status_code=404, detail="Webhook not found")
    metrics.METRICS.increment(metrics.DELETED)
    return JSONResponse({"ok": True, "data": {"message": "Webhook deleted"}})


@router.get("/webhooks/{webhook_id}/metrics", summary="Webhook TPS metrics")
async def webhook_metrics(webhook_id: str, registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    try:
        snapshot = registry.snapshot(webhook_id)
    except WebhookError as exc:
        raise _http_error(exc) from exc
    return JSONResponse({"ok": True, "data": snapshot.model_dump(mode="json")})


@router.post("/webhooks/{webhook_id}/reset", summary="Reset webhook metrics")
async def reset_webhook(webhook_id: str, registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    try:
        registry.reset(webhook_id)
    except WebhookError as exc:
        raise _http_error(exc) from exc
    metrics.METRICS.increment(metrics.RESET)
    return JSONResponse({"ok": True, "data": {"message": "Metrics reset"}})


@router.get("/summary", summary="TPS summary for all webhooks")
async def summary(registry: WebhookRegistry = Depends(get_registry)) -> JSONResponse:
    rows = {webhook_id: row.model_dump(mode="json") for webhook_id, row in registry.summary().items()}
    return JSONResponse(
        {"ok": True, "data": {"summary": rows, "timestamp": datetime.now(tz=UTC).isoformat()}}
    )
