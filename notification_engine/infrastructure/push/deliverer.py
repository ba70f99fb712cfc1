"""Push transport that posts notification payloads to subscription endpoints."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from notification_engine.application.errors import PushDeliveryError
from notification_engine.config import Settings
from notification_engine.domain.entities import DeliveryOptions, PushSubscription

logger = logging.getLogger(__name__)


def _error_details(response: httpx.Response) -> str | None:
    """Return a readable description of a push service error answer."""

    text = response.text.strip()
    if not text:
        return None
    try:
        parsed = response.json()
    except ValueError:
        return text

    if isinstance(parsed, dict):
        errors = parsed.get("errors")
        if isinstance(errors, list):
            described: list[str] = []
            for item in errors:
                if not isinstance(item, dict) or not item.get("message"):
                    continue
                reason = item.get("reason")
                if reason:
                    described.append(f"{item['message']} (reason: {reason})")
                else:
                    described.append(str(item["message"]))
            if described:
                return "; ".join(described)
        for key in ("message", "error", "reason"):
            value = parsed.get(key)
            if isinstance(value, str) and value:
                return value
    return text


class HttpPushDeliverer:
    """Deliver payloads with one HTTP request per subscription endpoint.

    Web Push semantics are kept at the HTTP level: the ``TTL`` and ``Urgency``
    headers travel with every request and ``404``/``410`` answers mean the
    endpoint is gone for good.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._client = client or httpx.Client(timeout=timeout_seconds)
        self._timeout = timeout_seconds

    def send(
        self,
        subscription: PushSubscription,
        payload: dict[str, Any],
        options: DeliveryOptions,
    ) -> None:
        """Post ``payload`` to ``subscription`` or raise ``PushDeliveryError``."""

        headers = {
            "Content-Type": "application/json",
            "TTL": str(options.ttl_seconds),
            "Urgency": options.urgency,
        }
        try:
            response = self._client.post(
                subscription.endpoint,
                content=json.dumps(payload).encode("utf-8"),
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise PushDeliveryError(
                f"Push endpoint timed out after {self._timeout}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise PushDeliveryError(f"Push request failed: {exc}") from exc

        if 200 <= response.status_code < 300:
            return

        details = _error_details(response)
        if details:
            message = f"Push service responded with status {response.status_code}: {details}"
        else:
            message = f"Push service responded with status {response.status_code}"
        raise PushDeliveryError(
            message, status_code=response.status_code, details=details
        )

    def close(self) -> None:
        self._client.close()


def build_push_deliverer(settings: Settings) -> HttpPushDeliverer | None:
    """Return the configured deliverer, or ``None`` when push is disabled."""

    if not settings.push_enabled:
        logger.info("Push delivery disabled; notifications will be skipped")
        return None
    return HttpPushDeliverer(timeout_seconds=settings.push_timeout_seconds)


__all__ = ["HttpPushDeliverer", "build_push_deliverer"]
