"""Value objects describing what is handed to the push transport."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

URGENCY_NORMAL = "normal"
URGENCY_HIGH = "high"


@dataclass(frozen=True)
class NotificationAction:
    """Button rendered next to a notification."""

    action: str
    title: str


@dataclass
class NotificationPayload:
    """Transport-agnostic notification body."""

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)
    icon: str | None = None
    badge: str | None = None
    image: str | None = None
    tag: str | None = None
    actions: list[NotificationAction] = field(default_factory=list)
    require_interaction: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation expected by push clients."""

        payload: dict[str, Any] = {"title": self.title, "body": self.body}
        for key in ("icon", "badge", "image", "tag"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value
        payload["data"] = dict(self.data)
        if self.actions:
            payload["actions"] = [
                {"action": item.action, "title": item.title} for item in self.actions
            ]
        if self.require_interaction:
            payload["requireInteraction"] = True
        return payload


@dataclass(frozen=True)
class DeliveryOptions:
    """Transport hints attached to every endpoint request."""

    ttl_seconds: int = 86400
    urgency: str = URGENCY_NORMAL


@dataclass(frozen=True)
class DeliveryResult:
    """Aggregate outcome of delivering one notification to a user."""

    sent: int = 0
    failed: int = 0
    invalidated: int = 0
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    @property
    def is_failure(self) -> bool:
        """A delivery fails when nothing was sent and some endpoint may recover.

        Endpoints answering 404/410 are counted in ``invalidated``; they are
        deactivated and never make a delivery worth retrying.
        """

        return self.failed > 0 and self.sent == 0


__all__ = [
    "DeliveryOptions",
    "DeliveryResult",
    "NotificationAction",
    "NotificationPayload",
    "URGENCY_HIGH",
    "URGENCY_NORMAL",
]
