"""Gate, fan out and record push notifications for a single user."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from notification_engine.application.errors import PushDeliveryError
from notification_engine.application.ports import (
    HistoryRepository,
    PreferencesRepository,
    PushDeliverer,
    SubscriptionRepository,
)
from notification_engine.domain.entities import (
    HIGH_URGENCY_NOTIFICATION_TYPES,
    HISTORY_STATUS_FAILED,
    HISTORY_STATUS_SENT,
    DeliveryResult,
    NotificationHistory,
    NotificationPreferences,
    PushSubscription,
)
from notification_engine.utils import is_in_quiet_hours, now_utc

from .dedup import DedupCache
from .messages import (
    OutgoingNotification,
    build_achievement_unlock,
    build_challenge,
    build_leaderboard_update,
    build_personal_record,
    build_race_invite,
    build_race_starting,
    build_streak_milestone,
)

logger = logging.getLogger(__name__)

SKIP_NO_PREFERENCES = "no_preferences"
SKIP_DISABLED = "disabled"
SKIP_QUIET_HOURS = "quiet_hours"
SKIP_DUPLICATE = "duplicate"
SKIP_NO_TRANSPORT = "transport_unavailable"
SKIP_NO_SUBSCRIPTIONS = "no_subscriptions"
SKIP_NOT_IMPROVED = "not_improved"

# Skips meaning the user opted out; recurring jobs are not rescheduled after these.
OPT_OUT_SKIP_REASONS = frozenset({SKIP_NO_PREFERENCES, SKIP_DISABLED})


class DeliveryService:
    """Deliver rendered notifications to every active device of a user."""

    def __init__(
        self,
        *,
        subscriptions: SubscriptionRepository,
        preferences: PreferencesRepository,
        history: HistoryRepository,
        deliverer: PushDeliverer | None,
        dedup: DedupCache,
        clock: Callable[[], datetime] = now_utc,
        icon: str | None = None,
        badge: str | None = None,
    ) -> None:
        self._subscriptions = subscriptions
        self._preferences = preferences
        self._history = history
        self._deliverer = deliverer
        self._dedup = dedup
        self._clock = clock
        self._icon = icon
        self._badge = badge

    @property
    def dedup(self) -> DedupCache:
        return self._dedup

    def deliver(self, user_id: str, notification: OutgoingNotification) -> DeliveryResult:
        """Run the delivery gates and push ``notification`` to the user's devices."""

        notification_type = notification.notification_type
        preferences = self._preferences.get_for_user(user_id)
        if preferences is None:
            logger.debug("User %s has no notification preferences", user_id)
            return DeliveryResult(skipped_reason=SKIP_NO_PREFERENCES)
        if not preferences.is_enabled(notification_type):
            logger.debug("User %s disabled %s notifications", user_id, notification_type.value)
            return DeliveryResult(skipped_reason=SKIP_DISABLED)

        now = self._clock()
        if notification_type not in HIGH_URGENCY_NOTIFICATION_TYPES and self._is_quiet(
            preferences, now
        ):
            logger.info(
                "Skipping %s for user %s during quiet hours", notification_type.value, user_id
            )
            return DeliveryResult(skipped_reason=SKIP_QUIET_HOURS)

        if self._dedup.is_duplicate(user_id, notification_type.value, notification.payload.tag):
            logger.info(
                "Suppressing duplicate %s notification for user %s",
                notification_type.value,
                user_id,
            )
            return DeliveryResult(skipped_reason=SKIP_DUPLICATE)

        if self._deliverer is None:
            logger.warning("Push transport is not configured; %s not sent", notification_type.value)
            return DeliveryResult(skipped_reason=SKIP_NO_TRANSPORT)

        subscriptions = self._subscriptions.list_active_for_user(user_id)
        if not subscriptions:
            logger.debug("User %s has no active push subscriptions", user_id)
            return DeliveryResult(skipped_reason=SKIP_NO_SUBSCRIPTIONS)

        return self._fan_out(user_id, notification, subscriptions, now)

    def _is_quiet(self, preferences: NotificationPreferences, now: datetime) -> bool:
        return is_in_quiet_hours(
            preferences.quiet_hours_start,
            preferences.quiet_hours_end,
            preferences.timezone,
            now,
        )

    def _fan_out(
        self,
        user_id: str,
        notification: OutgoingNotification,
        subscriptions: list[PushSubscription],
        now: datetime,
    ) -> DeliveryResult:
        payload = replace(
            notification.payload,
            icon=notification.payload.icon or self._icon,
            badge=notification.payload.badge or self._badge,
        )
        body = payload.to_dict()
        sent = 0
        failed = 0
        invalidated = 0

        for subscription in subscriptions:
            try:
                self._deliverer.send(subscription, body, notification.options)
            except PushDeliveryError as exc:
                if exc.is_gone:
                    invalidated += 1
                    logger.info(
                        "Deactivating expired push subscription %s of user %s",
                        subscription.id,
                        user_id,
                    )
                    self._subscriptions.deactivate(subscription.id)
                else:
                    failed += 1
                    logger.warning(
                        "Push delivery to subscription %s failed: %s", subscription.id, exc
                    )
                self._record(user_id, notification, HISTORY_STATUS_FAILED, now, str(exc))
            except Exception as exc:
                failed += 1
                logger.exception("Unexpected error pushing to subscription %s", subscription.id)
                self._record(user_id, notification, HISTORY_STATUS_FAILED, now, str(exc))
            else:
                sent += 1
                self._subscriptions.mark_used(subscription.id, now)
                self._record(user_id, notification, HISTORY_STATUS_SENT, now)

        logger.info(
            "Delivered %s to user %s: %s sent, %s failed, %s invalidated",
            notification.notification_type.value,
            user_id,
            sent,
            failed,
            invalidated,
        )
        return DeliveryResult(sent=sent, failed=failed, invalidated=invalidated)

    def _record(
        self,
        user_id: str,
        notification: OutgoingNotification,
        status: str,
        sent_at: datetime,
        error: str | None = None,
    ) -> None:
        record = NotificationHistory(
            id=None,
            user_id=user_id,
            type=notification.notification_type.value,
            title=notification.payload.title,
            body=notification.payload.body,
            status=status,
            sent_at=sent_at,
            data=dict(notification.payload.data),
            error_message=error,
        )
        try:
            self._history.create(record)
        except Exception:
            logger.exception("Failed to record notification history for user %s", user_id)

    # One-shot events triggered by other parts of the product.

    def notify_achievement_unlock(
        self,
        user_id: str,
        *,
        name: str,
        description: str,
        tier: str,
        points: int,
        icon: str | None = None,
    ) -> DeliveryResult:
        return self.deliver(
            user_id,
            build_achievement_unlock(
                name=name, description=description, tier=tier, points=points, icon=icon
            ),
        )

    def notify_challenge(
        self,
        user_id: str,
        *,
        title: str,
        description: str,
        kind: str,
        progress: int | None = None,
        target: int | None = None,
        reward: int | None = None,
    ) -> DeliveryResult:
        return self.deliver(
            user_id,
            build_challenge(
                title=title,
                description=description,
                kind=kind,
                progress=progress,
                target=target,
                reward=reward,
            ),
        )

    def notify_leaderboard_update(
        self,
        user_id: str,
        *,
        category: str,
        old_rank: int,
        new_rank: int,
        total_users: int,
    ) -> DeliveryResult:
        """Notify only when the user climbed the leaderboard."""

        if new_rank >= old_rank:
            return DeliveryResult(skipped_reason=SKIP_NOT_IMPROVED)
        return self.deliver(
            user_id,
            build_leaderboard_update(
                category=category,
                old_rank=old_rank,
                new_rank=new_rank,
                total_users=total_users,
            ),
        )

    def notify_race_invite(
        self, user_id: str, *, inviter_name: str, room_code: str, mode: str
    ) -> DeliveryResult:
        return self.deliver(
            user_id,
            build_race_invite(inviter_name=inviter_name, room_code=room_code, mode=mode),
        )

    def notify_race_starting(
        self, user_id: str, *, room_code: str, starts_in: int, participants: int
    ) -> DeliveryResult:
        return self.deliver(
            user_id,
            build_race_starting(
                room_code=room_code, starts_in=starts_in, participants=participants
            ),
        )

    def notify_personal_record(
        self,
        user_id: str,
        *,
        wpm: float,
        previous_best: float,
        accuracy: float,
        mode: str,
    ) -> DeliveryResult:
        return self.deliver(
            user_id,
            build_personal_record(
                wpm=wpm, previous_best=previous_best, accuracy=accuracy, mode=mode
            ),
        )

    def notify_streak_milestone(
        self, user_id: str, *, streak: int, reward: int | None = None
    ) -> DeliveryResult:
        return self.deliver(user_id, build_streak_milestone(streak=streak, reward=reward))


__all__ = [
    "DeliveryService",
    "OPT_OUT_SKIP_REASONS",
    "SKIP_DISABLED",
    "SKIP_DUPLICATE",
    "SKIP_NOT_IMPROVED",
    "SKIP_NO_PREFERENCES",
    "SKIP_NO_SUBSCRIPTIONS",
    "SKIP_NO_TRANSPORT",
    "SKIP_QUIET_HOURS",
]
