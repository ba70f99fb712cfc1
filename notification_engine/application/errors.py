"""Exceptions raised while processing notification jobs."""

from __future__ import annotations

# Transport answers meaning the endpoint will never accept messages again.
GONE_STATUS_CODES = frozenset({404, 410})


class PushDeliveryError(Exception):
    """The push transport rejected a message for one subscription."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details

    @property
    def is_gone(self) -> bool:
        """Return ``True`` when the subscription must be invalidated."""

        return self.status_code in GONE_STATUS_CODES


class NonRetryableJobError(Exception):
    """The job can never succeed; it is failed without retrying."""


class UnknownNotificationTypeError(NonRetryableJobError, ValueError):
    """The job carries a notification type the engine does not handle."""

    def __init__(self, notification_type: str) -> None:
        super().__init__(f"Unknown notification type: {notification_type}")
        self.notification_type = notification_type


class InvalidJobPayloadError(NonRetryableJobError, ValueError):
    """The job metadata lacks the facts required to render it."""


class DeliveryFailedError(RuntimeError):
    """Every push endpoint of the user rejected the notification."""

    def __init__(self, user_id: str, notification_type: str, failed: int) -> None:
        super().__init__(
            f"Delivery of {notification_type} to user {user_id} failed on "
            f"{failed} endpoint(s)"
        )
        self.user_id = user_id
        self.notification_type = notification_type
        self.failed = failed


__all__ = [
    "DeliveryFailedError",
    "GONE_STATUS_CODES",
    "InvalidJobPayloadError",
    "NonRetryableJobError",
    "PushDeliveryError",
    "UnknownNotificationTypeError",
]
