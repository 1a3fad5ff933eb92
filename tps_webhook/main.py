"""FastAPI application factory and console entrypoint for the TPS webhook server."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, FastAPI
from fastapi.requests import Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from fastapi.templating import Jinja2Templates

from tps_webhook.config import Settings, get_settings
from tps_webhook.lib.logger import configure_logging, get_logger
from tps_webhook.lib.metrics import METRICS
from tps_webhook.paths import TEMPLATES_DIR
from tps_webhook.webhooks.legacy import router as legacy_router
from tps_webhook.webhooks.loader import load_config_file, seed_registry
from tps_webhook.webhooks.registry import WebhookRegistry
from tps_webhook.webhooks.routes import get_registry, router as webhooks_router
from tps_webhook.webhooks.transport import router as transport_router

logger = get_logger(__name__)

system_router = APIRouter()


@system_router.get("/health", tags=["system"], summary="Health check")
async def health_check() -> JSONResponse:
    """Return liveness response for uptime monitoring."""
    payload = {"ok": True, "data": {"status": "healthy"}}
    return JSONResponse(content=payload)


@system_router.get("/metrics", tags=["system"], summary="Service counters")
async def metrics_endpoint(request: Request) -> JSONResponse:
    snapshot = request.app.state.metrics.snapshot()
    return JSONResponse({"ok": True, "data": snapshot})


@system_router.get("/", response_class=HTMLResponse, tags=["ui"], summary="Dashboard")
async def dashboard(request: Request, registry: WebhookRegistry = Depends(get_registry)) -> HTMLResponse:
    """Render the webhook overview with current TPS per webhook."""

    templates: Jinja2Templates = request.app.state.templates
    webhooks = sorted(registry.list(), key=lambda webhook: webhook.created_at)
    summary = registry.summary()
    rows = [(webhook, summary[webhook.id]) for webhook in webhooks if webhook.id in summary]
    context = {
        "page_title": "TPS Webhook Server",
        "rows": rows,
        "generated_at": datetime.now(tz=UTC),
    }
    return templates.TemplateResponse(request, "dashboard.html", context)


async def _recover_unhandled_errors(request: Request, call_next) -> Response:
    try:
        return await call_next(request)
    except Exception:
        logger.exception(
            "unhandled_request_error",
            extra={"method": request.method, "path": request.url.path},
        )
        return JSONResponse(
            {"error": "Internal server error", "message": "An unexpected error occurred"},
            status_code=500,
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application with a freshly seeded webhook registry."""

    settings = settings or get_settings()
    file_config = load_config_file(settings.config_file)
    settings = settings.with_file_defaults(file_config)
    configure_logging(
        settings.log_level,
        log_file=settings.log_file,
        log_format=settings.log_format,
        force=True,
    )

    registry = WebhookRegistry()
    seeded = seed_registry(registry, file_config)
    logger.info("webhooks_seeded", extra={"count": seeded, "from_file": file_config is not None})

    app = FastAPI(title="TPS Webhook Server", version="0.1.0")
    app.middleware("http")(_recover_unhandled_errors)

    app.state.settings = settings
    app.state.webhook_registry = registry
    app.state.metrics = METRICS
    app.state.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

    app.include_router(system_router)
    app.include_router(webhooks_router, prefix="/api", tags=["webhooks"])
    app.include_router(legacy_router, prefix="/api", tags=["legacy"])
    # Catch-all webhook route; must be registered last.
    app.include_router(transport_router)
    return app


def run() -> None:
    """Run the server with uvicorn on the configured host and port."""
    import uvicorn

    app = create_app()
    settings: Settings = app.state.settings
    base_url = f"http://{settings.host}:{settings.port}"
    for webhook in sorted(app.state.webhook_registry.list(), key=lambda item: item.created_at):
        logger.info(
            "webhook_available",
            extra={"webhook_id": webhook.id, "url": base_url + webhook.path, "delay_ms": webhook.config.timeout_ms},
        )
    logger.info("server_starting", extra={"base_url": base_url, "dashboard": base_url + "/"})

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
