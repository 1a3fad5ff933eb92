"""In-memory registry of virtual webhooks and their request accumulators."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Callable, Iterable, Mapping

from tps_webhook.lib.logger import get_logger
from tps_webhook.lib.rwlock import ReadWriteLock
from tps_webhook.webhooks.accumulator import RateAccumulator
from tps_webhook.webhooks.errors import (
    DuplicatePathError,
    DuplicateWebhookError,
    InvalidConfigError,
    ProtectedWebhookError,
    WebhookError,
    WebhookNotFoundError,
)
from tps_webhook.webhooks.schemas import RateSnapshot, WebhookConfig, WebhookPatch, WebhookSummary

logger = get_logger(__name__)

PROTECTED_WEBHOOK_IDS = frozenset({"default", "fast", "slow"})
GENERATED_PATH_PREFIX = "/w/"
_ID_LENGTH = 8


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def normalize_path(path: str) -> str:
    """Strip whitespace and ensure the path starts with a separator."""

    candidate = path.strip()
    if not candidate.startswith("/"):
        candidate = "/" + candidate
    return candidate


@dataclass
class Webhook:
    """A virtual endpoint. Instances handed out by the registry are copies."""

    id: str
    name: str
    path: str
    config: WebhookConfig
    created_at: datetime
    accumulator: RateAccumulator = field(default_factory=RateAccumulator, repr=False, compare=False)
    last_request_at: datetime | None = None

    @property
    def protected(self) -> bool:
        return self.id in PROTECTED_WEBHOOK_IDS


def _detached(webhook: Webhook) -> Webhook:
    """Copy a stored webhook so callers cannot reach its config or headers."""

    return replace(webhook, config=webhook.config.model_copy(deep=True))


class WebhookRegistry:
    """Map webhook ids to webhooks under a registry-wide reader/writer lock.

    The registry lock guards the id map, the path index and the identity fields
    of each webhook. Request counting goes through each webhook's own
    accumulator lock, which is never taken while the registry lock is held.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        protected_ids: Iterable[str] = PROTECTED_WEBHOOK_IDS,
    ) -> None:
        self._lock = ReadWriteLock()
        self._webhooks: dict[str, Webhook] = {}
        self._paths: dict[str, str] = {}
        self._clock = clock
        self._protected = frozenset(protected_ids)

    # ---- Lifecycle ----

    def create(self, name: str, path: str | None = None, config: WebhookConfig | None = None) -> Webhook:
        """Create a webhook with a generated id; defaults the path to ``/w/{id}``."""

        with self._lock.write():
            webhook_id = self._generate_id()
            final_path = normalize_path(path) if path else GENERATED_PATH_PREFIX + webhook_id
            self._ensure_path_free(final_path)
            webhook = self._insert(webhook_id, name, final_path, config or WebhookConfig())
            created = _detached(webhook)

        logger.info("webhook_created", extra={"webhook_id": webhook_id, "path": final_path, "webhook_name": name})
        return created

    def register(
        self,
        webhook_id: str,
        name: str,
        path: str | None = None,
        config: WebhookConfig | None = None,
    ) -> Webhook:
        """Insert a webhook under a caller-supplied id (used for config seeding)."""

        if not webhook_id or "/" in webhook_id:
            raise InvalidConfigError(f"Invalid webhook id '{webhook_id}'", webhook_id=webhook_id)

        with self._lock.write():
            if webhook_id in self._webhooks:
                raise DuplicateWebhookError(webhook_id)
            final_path = normalize_path(path) if path else GENERATED_PATH_PREFIX + webhook_id
            self._ensure_path_free(final_path)
            self._ensure_path_free(GENERATED_PATH_PREFIX + webhook_id, owner_id=webhook_id)
            webhook = self._insert(webhook_id, name, final_path, config or WebhookConfig())
            registered = _detached(webhook)

        logger.info("webhook_registered", extra={"webhook_id": webhook_id, "path": final_path})
        return registered

    def delete(self, webhook_id: str) -> bool:
        """Remove a webhook; protected or unknown ids leave the registry untouched."""

        if webhook_id in self._protected:
            return False
        with self._lock.write():
            webhook = self._webhooks.pop(webhook_id, None)
            if webhook is None:
                return False
            self._paths.pop(webhook.path, None)

        logger.info("webhook_deleted", extra={"webhook_id": webhook_id})
        return True

    # ---- Lookup ----

    def get(self, webhook_id: str) -> Webhook:
        with self._lock.read():
            return _detached(self._require(webhook_id))

    def list(self) -> list[Webhook]:
        """Return copies of all registered webhooks (unordered)."""

        with self._lock.read():
            return [_detached(webhook) for webhook in self._webhooks.values()]

    def find_by_path(self, path: str) -> str | None:
        """Return the id of the webhook bound to ``path``, if any."""

        with self._lock.read():
            return self._paths.get(path)

    def is_protected(self, webhook_id: str) -> bool:
        return webhook_id in self._protected

    def __contains__(self, webhook_id: object) -> bool:
        with self._lock.read():
            return webhook_id in self._webhooks

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._webhooks)

    # ---- Updates ----

    def update(self, webhook_id: str, patch: WebhookPatch, *, merge_headers: bool = True) -> Webhook:
        """Merge the fields present in ``patch`` into the stored webhook.

        Headers in the patch are merged into the existing ones unless
        ``merge_headers`` is False, in which case they replace them. Nothing is
        changed if any part of the patch is rejected.
        """

        with self._lock.write():
            updated = self._apply_patch(webhook_id, patch, merge_headers=merge_headers)

        logger.info("webhook_updated", extra={"webhook_id": webhook_id, "fields": sorted(patch.model_fields_set)})
        return updated

    def bulk_update(self, patches: Mapping[str, WebhookPatch]) -> tuple[dict[str, Webhook], dict[str, str]]:
        """Apply several patches atomically with respect to other registry writers.

        Returns the updated webhooks and a mapping of rejected ids to reasons.
        """

        updated: dict[str, Webhook] = {}
        failed: dict[str, str] = {}
        with self._lock.write():
            for webhook_id, patch in patches.items():
                try:
                    updated[webhook_id] = self._apply_patch(webhook_id, patch, merge_headers=True)
                except WebhookError as exc:
                    failed[webhook_id] = str(exc)

        logger.info("webhook_bulk_update", extra={"updated": sorted(updated), "failed": sorted(failed)})
        return updated, failed

    # ---- Request path ----

    def record_and_respond(self, webhook_id: str) -> WebhookConfig:
        """Count a request against ``webhook_id`` and return the config to answer with."""

        with self._lock.read():
            webhook = self._require(webhook_id)
            accumulator = webhook.accumulator
            config = webhook.config

        recorded_at = accumulator.record_event()

        with self._lock.write():
            if self._webhooks.get(webhook_id) is webhook and (
                webhook.last_request_at is None or recorded_at > webhook.last_request_at
            ):
                webhook.last_request_at = recorded_at
        return config.model_copy(deep=True)

    # ---- Metrics ----

    def snapshot(self, webhook_id: str) -> RateSnapshot:
        return self._accumulator(webhook_id).snapshot()

    def reset(self, webhook_id: str) -> None:
        self._accumulator(webhook_id).reset()
        logger.info("webhook_metrics_reset", extra={"webhook_id": webhook_id})

    def reset_all(self) -> int:
        """Reset every accumulator and return how many were reset."""

        with self._lock.read():
            accumulators = [webhook.accumulator for webhook in self._webhooks.values()]
        for accumulator in accumulators:
            accumulator.reset()
        return len(accumulators)

    def summary(self) -> dict[str, WebhookSummary]:
        rows: dict[str, WebhookSummary] = {}
        for webhook in self.list():
            snapshot = webhook.accumulator.snapshot()
            rows[webhook.id] = WebhookSummary(
                name=webhook.name,
                path=webhook.path,
                delay_ms=webhook.config.timeout_ms,
                total_requests=snapshot.total_requests,
                tps=snapshot.tps,
                duration_seconds=snapshot.duration_seconds,
            )
        return rows

    # ---- Internals (caller holds the registry lock) ----

    def _require(self, webhook_id: str) -> Webhook:
        webhook = self._webhooks.get(webhook_id)
        if webhook is None:
            raise WebhookNotFoundError(webhook_id)
        return webhook

    def _accumulator(self, webhook_id: str) -> RateAccumulator:
        with self._lock.read():
            return self._require(webhook_id).accumulator

    def _generate_id(self) -> str:
        while True:
            candidate = uuid.uuid4().hex[:_ID_LENGTH]
            if candidate not in self._webhooks and GENERATED_PATH_PREFIX + candidate not in self._paths:
                return candidate

    def _ensure_path_free(self, path: str, *, owner_id: str | None = None) -> None:
        current = self._paths.get(path)
        if current is None and path.startswith(GENERATED_PATH_PREFIX):
            # /w/{id} also answers for webhook ``id`` whatever its own path is
            fallback_id = path[len(GENERATED_PATH_PREFIX):].rstrip("/")
            if fallback_id in self._webhooks:
                current = fallback_id
        if current is not None and current != owner_id:
            raise DuplicatePathError(path, owner_id=current)

    def _insert(self, webhook_id: str, name: str, path: str, config: WebhookConfig) -> Webhook:
        webhook = Webhook(
            id=webhook_id,
            name=name,
            path=path,
            config=config.model_copy(deep=True),
            created_at=self._clock(),
        )
        self._webhooks[webhook_id] = webhook
        self._paths[path] = webhook_id
        return webhook

    def _apply_patch(self, webhook_id: str, patch: WebhookPatch, *, merge_headers: bool) -> Webhook:
        webhook = self._require(webhook_id)
        supplied = patch.model_fields_set

        new_path: str | None = None
        if "path" in supplied and patch.path is not None:
            candidate = normalize_path(patch.path)
            if candidate != webhook.path:
                if webhook_id in self._protected:
                    raise ProtectedWebhookError(
                        f"Path of built-in webhook '{webhook_id}' cannot be changed", webhook_id=webhook_id
                    )
                self._ensure_path_free(candidate, owner_id=webhook_id)
                new_path = candidate

        config = webhook.config
        if "config" in supplied and patch.config is not None:
            updates = patch.config.supplied()
            if "headers" in updates:
                base = dict(config.headers) if merge_headers else {}
                base.update(updates["headers"])
                updates["headers"] = base
            config = config.model_copy(update=updates, deep=True)

        if "name" in supplied and patch.name is not None:
            webhook.name = patch.name
        if new_path is not None:
            self._paths.pop(webhook.path, None)
            self._paths[new_path] = webhook_id
            webhook.path = new_path
        webhook.config = config
        return _detached(webhook)
