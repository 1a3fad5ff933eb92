"""Domain errors raised by the webhook registry and config loader."""

from __future__ import annotations


class WebhookError(Exception):
    """Base class for webhook registry errors."""

    status_code = 400

    def __init__(self, message: str, *, webhook_id: str | None = None) -> None:
        super().__init__(message)
        self.webhook_id = webhook_id


class WebhookNotFoundError(WebhookError):
    status_code = 404

    def __init__(self, webhook_id: str) -> None:
        super().__init__(f"Webhook '{webhook_id}' not found", webhook_id=webhook_id)


class ProtectedWebhookError(WebhookError):
    """Attempted to delete or re-path one of the built-in webhooks."""

    status_code = 403


class DuplicatePathError(WebhookError):
    status_code = 409

    def __init__(self, path: str, *, owner_id: str) -> None:
        super().__init__(f"Path '{path}' is already used by webhook '{owner_id}'", webhook_id=owner_id)
        self.path = path


class DuplicateWebhookError(WebhookError):
    status_code = 409

    def __init__(self, webhook_id: str) -> None:
        super().__init__(f"Webhook '{webhook_id}' already exists", webhook_id=webhook_id)


class InvalidConfigError(WebhookError):
    """Malformed webhook configuration input."""

    status_code = 422
