"""Catch-all route serving the configured webhook responses.

Paths are resolved against the registry on every request, so creating a webhook
or changing its path takes effect immediately without re-registering routes.
This router must be included after every other router.
"""

from __future__ import annotations

import asyncio
import re
import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from tps_webhook.lib import metrics
from tps_webhook.lib.logger import get_logger
from tps_webhook.webhooks.errors import WebhookNotFoundError
from tps_webhook.webhooks.registry import WebhookRegistry
from tps_webhook.webhooks.routes import get_registry
from tps_webhook.webhooks.schemas import WebhookConfig

logger = get_logger(__name__)
router = APIRouter()

WEBHOOK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]
_ID_FALLBACK_RE = re.compile(r"^/w/([^/]+)/?$")
_BODYLESS_STATUS = {204, 304}


def resolve_webhook_id(registry: WebhookRegistry, path: str) -> str | None:
    """Map a request path to a webhook id: exact path first, then ``/w/{id}``."""

    webhook_id = registry.find_by_path(path)
    if webhook_id is not None:
        return webhook_id
    match = _ID_FALLBACK_RE.match(path)
    return match.group(1) if match else None


def build_response(config: WebhookConfig) -> Response:
    headers = {key: value for key, value in config.headers.items() if key.lower() != "content-type"}
    headers["Content-Type"] = config.content_type
    content = config.response_body
    if config.status_code < 200 or config.status_code in _BODYLESS_STATUS:
        content = ""
    return Response(content=content, status_code=config.status_code, headers=headers)


@router.api_route("/{full_path:path}", methods=WEBHOOK_METHODS, include_in_schema=False)
async def handle_webhook_request(
    request: Request,
    full_path: str,
    registry: WebhookRegistry = Depends(get_registry),
) -> Response:
    started = time.perf_counter()
    path = request.url.path
    webhook_id = resolve_webhook_id(registry, path)
    try:
        if webhook_id is None:
            raise WebhookNotFoundError(path)
        config = registry.record_and_respond(webhook_id)
    except WebhookNotFoundError:
        metrics.METRICS.increment(metrics.NOT_FOUND)
        return JSONResponse({"error": "Webhook not found"}, status_code=404)

    metrics.METRICS.increment(metrics.REQUEST)

    if config.enable_logging:
        body = await request.body()
        client = request.client
        logger.info(
            "webhook_request_received",
            extra={
                "webhook_id": webhook_id,
                "method": request.method,
                "path": path,
                "query_params": request.url.query,
                "ip": client.host if client else None,
                "user_agent": request.headers.get("user-agent"),
                "request_headers": dict(request.headers),
                "request_body": body.decode("utf-8", errors="replace"),
                "content_length": len(body),
            },
        )

    if config.timeout_ms > 0:
        await asyncio.sleep(config.timeout_ms / 1000)

    response = build_response(config)

    if config.enable_logging:
        logger.info(
            "webhook_response_sent",
            extra={
                "webhook_id": webhook_id,
                "response_status": config.status_code,
                "response_headers": {key: value for key, value in response.headers.items()},
                "response_body": config.response_body,
                "processing_ms": round((time.perf_counter() - started) * 1000, 3),
            },
        )
    return response
