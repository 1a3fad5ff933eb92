"""Pydantic schemas for webhook configuration, management payloads and metrics."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

if TYPE_CHECKING:  # pragma: no cover
    from tps_webhook.webhooks.registry import Webhook


DEFAULT_CONTENT_TYPE = "application/json"
DEFAULT_RESPONSE_BODY = '{"message": "Request received"}'

# Custom webhook paths may not shadow the management and system routes.
RESERVED_PATH_PREFIXES = ("/api", "/health", "/metrics")


def validate_webhook_path(value: str | None) -> str | None:
    """Reject paths that would collide with the server's own routes."""

    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        raise ValueError("Path must not be empty")
    if not candidate.startswith("/"):
        candidate = "/" + candidate
    if candidate == "/":
        raise ValueError("Path '/' is reserved for the dashboard")
    for prefix in RESERVED_PATH_PREFIXES:
        if candidate == prefix or candidate.startswith(prefix + "/"):
            raise ValueError(f"Path must not start with reserved prefix '{prefix}'")
    return value


class WebhookConfig(BaseModel):
    """Response shaping settings for a single webhook."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(default=200, ge=100, le=599)
    content_type: str = Field(default=DEFAULT_CONTENT_TYPE, min_length=1)
    response_body: str = Field(default=DEFAULT_RESPONSE_BODY)
    timeout_ms: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("timeout_ms", "timeout"),
        description="Artificial delay in milliseconds applied before responding",
    )
    headers: dict[str, str] = Field(default_factory=dict)
    enable_logging: bool = True

    @field_validator("headers", mode="before")
    @classmethod
    def default_headers(cls, value: Any) -> Any:
        return {} if value is None else value


class WebhookConfigPatch(BaseModel):
    """Partial config update; only explicitly supplied fields are applied."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int | None = Field(default=None, ge=100, le=599)
    content_type: str | None = Field(default=None, min_length=1)
    response_body: str | None = None
    timeout_ms: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("timeout_ms", "timeout"),
    )
    headers: dict[str, str] | None = None
    enable_logging: bool | None = None

    def supplied(self) -> dict[str, Any]:
        """Return fields present in the payload, treating explicit nulls as absent."""

        return {
            field: getattr(self, field)
            for field in self.model_fields_set
            if getattr(self, field) is not None
        }

    @classmethod
    def from_config(cls, config: WebhookConfig) -> "WebhookConfigPatch":
        """Build a patch that sets every field of ``config``."""

        return cls.model_validate(config.model_dump())


class WebhookPatch(BaseModel):
    """Partial webhook update (PATCH semantics)."""

    name: str | None = Field(default=None, min_length=1, max_length=128)
    path: str | None = None
    config: WebhookConfigPatch | None = None

    @field_validator("path")
    @classmethod
    def check_path(cls, value: str | None) -> str | None:
        return validate_webhook_path(value)


class WebhookCreateRequest(BaseModel):
    """Payload for creating a new webhook."""

    name: str = Field(..., min_length=1, max_length=128)
    path: str | None = None
    config: WebhookConfig = Field(default_factory=WebhookConfig)

    @field_validator("path")
    @classmethod
    def check_path(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return validate_webhook_path(value)

    @field_validator("config", mode="before")
    @classmethod
    def default_config(cls, value: Any) -> Any:
        return {} if value is None else value


class WebhookReplaceRequest(BaseModel):
    """Payload for PUT: optional identity fields plus a full config replacement."""

    name: str | None = Field(default=None, min_length=1, max_length=128)
    path: str | None = None
    config: WebhookConfig = Field(default_factory=WebhookConfig)

    @field_validator("path")
    @classmethod
    def check_path(cls, value: str | None) -> str | None:
        return validate_webhook_path(value)

    def to_patch(self) -> WebhookPatch:
        fields: dict[str, Any] = {"config": WebhookConfigPatch.from_config(self.config)}
        if self.name is not None:
            fields["name"] = self.name
        if self.path is not None:
            fields["path"] = self.path
        return WebhookPatch(**fields)


class BulkUpdateEntry(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    config: WebhookConfigPatch | None = None

    def to_patch(self) -> WebhookPatch:
        return WebhookPatch.model_validate(self.model_dump(exclude_unset=True))


class BulkUpdateRequest(BaseModel):
    """Payload for updating several webhooks at once."""

    updates: dict[str, BulkUpdateEntry] = Field(..., min_length=1)


class RateSnapshot(BaseModel):
    """Point-in-time throughput reading of one accumulator."""

    total_requests: int = 0
    duration_seconds: float = 0.0
    tps: float = 0.0
    start_time: datetime | None = None
    end_time: datetime | None = None


class WebhookView(BaseModel):
    """JSON representation of a webhook returned by the management API."""

    id: str
    name: str
    path: str
    config: WebhookConfig
    created_at: datetime
    last_request: datetime | None = None

    @classmethod
    def from_webhook(cls, webhook: "Webhook") -> "WebhookView":
        return cls(
            id=webhook.id,
            name=webhook.name,
            path=webhook.path,
            config=webhook.config,
            created_at=webhook.created_at,
            last_request=webhook.last_request_at,
        )


class WebhookSummary(BaseModel):
    """Per-webhook row in the summary endpoint and dashboard."""

    name: str
    path: str
    delay_ms: int
    total_requests: int
    tps: float
    duration_seconds: float
