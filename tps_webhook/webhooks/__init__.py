"""Webhook package: rate accounting, registry and HTTP surfaces."""

from tps_webhook.webhooks.accumulator import RateAccumulator
from tps_webhook.webhooks.registry import PROTECTED_WEBHOOK_IDS, Webhook, WebhookRegistry

__all__ = ["PROTECTED_WEBHOOK_IDS", "RateAccumulator", "Webhook", "WebhookRegistry"]
