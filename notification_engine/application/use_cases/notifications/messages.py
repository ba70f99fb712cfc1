"""Render notification payloads for every notification type."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from notification_engine.application.errors import InvalidJobPayloadError
from notification_engine.domain.entities import (
    URGENCY_HIGH,
    URGENCY_NORMAL,
    DeliveryOptions,
    NotificationAction,
    NotificationPayload,
    NotificationType,
    WeeklySummaryStats,
)

DEFAULT_TTL_SECONDS = 86400
RACE_INVITE_TTL_SECONDS = 3600
RACE_STARTING_TTL_SECONDS = 60

_TIER_EMOJIS = {
    "bronze": "🥉",
    "silver": "🥈",
    "gold": "🥇",
    "platinum": "💎",
    "diamond": "👑",
}
_MILESTONE_EMOJIS = {7: "🔥", 14: "⚡", 30: "💪", 50: "🌟", 100: "👑", 365: "🏆"}
_TIP_CATEGORY_EMOJIS = {
    "technique": "⌨️",
    "posture": "🧘",
    "speed": "⚡",
    "accuracy": "🎯",
    "practice": "📚",
    "motivation": "💪",
}

TYPING_TIPS: tuple[dict[str, str], ...] = (
    {"title": "Home Row Foundation", "content": "Keep your fingers on ASDF and JKL; keys. Return to home position after each keystroke for consistent speed.", "category": "technique"},
    {"title": "Look at the Screen", "content": "Train yourself to look at the screen, not your keyboard. This builds muscle memory faster.", "category": "technique"},
    {"title": "Posture Matters", "content": "Sit up straight with elbows at 90°. Your wrists should float slightly above the keyboard.", "category": "posture"},
    {"title": "Accuracy Over Speed", "content": "Focus on accuracy first. Speed naturally follows as your muscle memory improves.", "category": "accuracy"},
    {"title": "Regular Breaks", "content": "Take a 5-minute break every 30 minutes to prevent fatigue and maintain peak performance.", "category": "practice"},
    {"title": "Warm Up Daily", "content": "Start each session with a slow, accuracy-focused warm-up before pushing for speed.", "category": "practice"},
    {"title": "Use All Fingers", "content": "Each finger has assigned keys. Using the correct finger builds faster, more reliable muscle memory.", "category": "technique"},
    {"title": "Rhythm is Key", "content": "Type with a steady rhythm rather than bursts. Consistent tempo reduces errors.", "category": "speed"},
    {"title": "Practice Weak Spots", "content": "Identify your problem keys and practice them specifically. Targeted practice shows faster improvement.", "category": "practice"},
    {"title": "Stay Relaxed", "content": "Tension slows you down. Keep your hands, arms, and shoulders relaxed while typing.", "category": "technique"},
    {"title": "Track Your Progress", "content": "Review your analytics regularly. Seeing improvement is motivating and helps identify areas to work on.", "category": "motivation"},
    {"title": "Challenge Yourself", "content": "Once comfortable, try harder modes like punctuation, numbers, or code typing to level up.", "category": "practice"},
)


@dataclass
class OutgoingNotification:
    """A rendered payload together with the transport options it needs."""

    notification_type: NotificationType
    payload: NotificationPayload
    options: DeliveryOptions


def _outgoing(
    notification_type: NotificationType,
    payload: NotificationPayload,
    *,
    urgency: str = URGENCY_NORMAL,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
) -> OutgoingNotification:
    return OutgoingNotification(
        notification_type=notification_type,
        payload=payload,
        options=DeliveryOptions(ttl_seconds=ttl_seconds, urgency=urgency),
    )


def tip_for_day(day_of_year: int) -> dict[str, str]:
    """Return the curated tip shown on ``day_of_year``."""

    return TYPING_TIPS[day_of_year % len(TYPING_TIPS)]


def build_daily_reminder(*, streak: int, avg_wpm: float) -> OutgoingNotification:
    messages = (
        f"Keep your {streak}-day streak alive! Time for your daily practice. 🔥",
        f"Your typing skills are calling! Current streak: {streak} days. Let's go! 💪",
        f"Practice makes perfect! You're averaging {round(avg_wpm)} WPM. Ready to improve? ⌨️",
        f"{streak} days strong! Don't break your streak - practice now! 🎯",
    )
    payload = NotificationPayload(
        title="Daily Practice Reminder",
        body=messages[streak % len(messages)],
        data={"url": "/practice", "type": NotificationType.DAILY_REMINDER.value, "streak": streak},
        tag="daily-reminder",
        actions=[
            NotificationAction("practice", "Start Practicing"),
            NotificationAction("dismiss", "Maybe Later"),
        ],
    )
    return _outgoing(NotificationType.DAILY_REMINDER, payload)


def build_streak_warning(*, streak: int, hours_left: int) -> OutgoingNotification:
    payload = NotificationPayload(
        title=f"⚠️ Streak Alert: {streak} Days at Risk!",
        body=f"Only {hours_left} hours left to keep your {streak}-day streak! Practice now!",
        data={
            "url": "/practice",
            "type": NotificationType.STREAK_WARNING.value,
            "streak": streak,
            "hoursLeft": hours_left,
        },
        tag="streak-warning",
        require_interaction=True,
        actions=[
            NotificationAction("practice", "Save My Streak!"),
            NotificationAction("snooze", "Remind Me in 1 Hour"),
        ],
    )
    return _outgoing(NotificationType.STREAK_WARNING, payload, urgency=URGENCY_HIGH)


def build_weekly_summary(stats: WeeklySummaryStats) -> OutgoingNotification:
    if stats.improvement > 0:
        improvement_text = f"+{stats.improvement:.1f} WPM improvement! 📈"
    elif stats.improvement < 0:
        improvement_text = f"{stats.improvement:.1f} WPM this week 📊"
    else:
        improvement_text = "Steady progress! 📊"

    payload = NotificationPayload(
        title="📊 Your Weekly Typing Report",
        body=(
            f"{stats.tests_completed} tests completed | {round(stats.avg_wpm)} WPM avg | "
            f"{stats.avg_accuracy:.1f}% accuracy | {improvement_text}"
        ),
        image="/weekly-summary-chart.png",
        data={
            "url": "/analytics",
            "type": NotificationType.WEEKLY_SUMMARY.value,
            "summary": asdict(stats),
        },
        tag="weekly-summary",
        actions=[
            NotificationAction("view", "View Full Report"),
            NotificationAction("share", "Share Progress"),
        ],
    )
    return _outgoing(NotificationType.WEEKLY_SUMMARY, payload)


def build_tip_of_the_day(*, title: str, content: str, category: str) -> OutgoingNotification:
    emoji = _TIP_CATEGORY_EMOJIS.get(category, "💡")
    payload = NotificationPayload(
        title=f"{emoji} Tip: {title}",
        body=content,
        data={
            "url": "/learn",
            "type": NotificationType.TIP_OF_THE_DAY.value,
            "tip": {"title": title, "content": content, "category": category},
        },
        tag="tip-of-the-day",
        actions=[
            NotificationAction("learn", "Learn More"),
            NotificationAction("dismiss", "Dismiss"),
        ],
    )
    return _outgoing(NotificationType.TIP_OF_THE_DAY, payload)


def build_achievement_unlock(
    *, name: str, description: str, tier: str, points: int, icon: str | None = None
) -> OutgoingNotification:
    emoji = _TIER_EMOJIS.get(tier, "🏆")
    payload = NotificationPayload(
        title=f"{emoji} Achievement Unlocked!",
        body=f"{name}: {description} (+{points} points)",
        data={
            "url": "/profile?tab=achievements",
            "type": NotificationType.ACHIEVEMENT_UNLOCK.value,
            "achievement": {
                "name": name,
                "description": description,
                "tier": tier,
                "points": points,
                "icon": icon,
            },
        },
        tag=f"achievement-{name}",
        require_interaction=True,
        actions=[
            NotificationAction("view", "View Achievement"),
            NotificationAction("share", "Share"),
        ],
    )
    return _outgoing(NotificationType.ACHIEVEMENT_UNLOCK, payload, urgency=URGENCY_HIGH)


_CHALLENGE_TYPES = {
    "started": NotificationType.CHALLENGE_STARTED,
    "progress": NotificationType.CHALLENGE_PROGRESS,
    "completed": NotificationType.CHALLENGE_COMPLETED,
}


def build_challenge(
    *,
    title: str,
    description: str,
    kind: str,
    progress: int | None = None,
    target: int | None = None,
    reward: int | None = None,
) -> OutgoingNotification:
    """Render a challenge started/progress/completed notification."""

    try:
        notification_type = _CHALLENGE_TYPES[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown challenge update '{kind}'") from exc

    if kind == "started":
        heading = f"🎯 New Challenge: {title}"
        body = description
    elif kind == "progress":
        if not target:
            raise ValueError("Challenge progress requires a positive target")
        percent = round(((progress or 0) / target) * 100)
        heading = f"📊 Challenge Progress: {title}"
        body = f"{progress or 0}/{target} - Keep going! You're {percent}% there!"
    else:
        heading = f"🎉 Challenge Complete: {title}"
        body = f"Congratulations! You earned {reward or 0} points!"

    payload = NotificationPayload(
        title=heading,
        body=body,
        data={
            "url": "/challenges",
            "type": notification_type.value,
            "challenge": {
                "title": title,
                "description": description,
                "type": kind,
                "progress": progress,
                "target": target,
                "reward": reward,
            },
        },
        tag=f"challenge-{title}",
        actions=[NotificationAction("view", "View Challenge")],
    )
    urgency = URGENCY_HIGH if kind == "completed" else URGENCY_NORMAL
    return _outgoing(notification_type, payload, urgency=urgency)


def build_leaderboard_update(
    *, category: str, old_rank: int, new_rank: int, total_users: int
) -> OutgoingNotification:
    improved = new_rank < old_rank
    if improved:
        title = "🚀 You Moved Up the Leaderboard!"
        body = (
            f"You climbed {abs(new_rank - old_rank)} spots in {category}! "
            f"Now #{new_rank} of {total_users}"
        )
    else:
        title = "📊 Leaderboard Update"
        body = f"Your rank in {category}: #{new_rank} of {total_users}"

    payload = NotificationPayload(
        title=title,
        body=body,
        data={
            "url": "/leaderboard",
            "type": NotificationType.LEADERBOARD_UPDATE.value,
            "update": {
                "category": category,
                "oldRank": old_rank,
                "newRank": new_rank,
                "totalUsers": total_users,
            },
        },
        tag="leaderboard-update",
        actions=[NotificationAction("view", "View Leaderboard")],
    )
    return _outgoing(NotificationType.LEADERBOARD_UPDATE, payload)


def build_race_invite(*, inviter_name: str, room_code: str, mode: str) -> OutgoingNotification:
    payload = NotificationPayload(
        title="🏁 Race Invitation!",
        body=f"{inviter_name} invited you to a {mode} typing race. Room: {room_code}",
        data={
            "url": f"/race/{room_code}",
            "type": NotificationType.RACE_INVITE.value,
            "invite": {"inviterName": inviter_name, "roomCode": room_code, "mode": mode},
        },
        tag=f"race-invite-{room_code}",
        require_interaction=True,
        actions=[
            NotificationAction("join", "Join Race"),
            NotificationAction("decline", "Decline"),
        ],
    )
    return _outgoing(
        NotificationType.RACE_INVITE,
        payload,
        urgency=URGENCY_HIGH,
        ttl_seconds=RACE_INVITE_TTL_SECONDS,
    )


def build_race_starting(
    *, room_code: str, starts_in: int, participants: int
) -> OutgoingNotification:
    payload = NotificationPayload(
        title="🏁 Race Starting Soon!",
        body=f"Your race with {participants} participants starts in {starts_in} seconds!",
        data={
            "url": f"/race/{room_code}",
            "type": NotificationType.RACE_STARTING.value,
            "race": {"roomCode": room_code, "startsIn": starts_in, "participants": participants},
        },
        tag=f"race-starting-{room_code}",
        require_interaction=True,
        actions=[NotificationAction("join", "Join Now")],
    )
    return _outgoing(
        NotificationType.RACE_STARTING,
        payload,
        urgency=URGENCY_HIGH,
        ttl_seconds=RACE_STARTING_TTL_SECONDS,
    )


def build_personal_record(
    *, wpm: float, previous_best: float, accuracy: float, mode: str
) -> OutgoingNotification:
    improvement = wpm - previous_best
    payload = NotificationPayload(
        title="🏆 New Personal Record!",
        body=(
            f"{round(wpm)} WPM (+{round(improvement)} WPM) with {accuracy:.1f}% "
            f"accuracy in {mode} mode!"
        ),
        data={
            "url": "/profile",
            "type": NotificationType.PERSONAL_RECORD.value,
            "record": {
                "wpm": wpm,
                "previousBest": previous_best,
                "accuracy": accuracy,
                "mode": mode,
            },
        },
        tag="personal-record",
        require_interaction=True,
        actions=[
            NotificationAction("view", "View Stats"),
            NotificationAction("share", "Share"),
        ],
    )
    return _outgoing(NotificationType.PERSONAL_RECORD, payload, urgency=URGENCY_HIGH)


def build_streak_milestone(*, streak: int, reward: int | None = None) -> OutgoingNotification:
    emoji = _MILESTONE_EMOJIS.get(streak, "🎯")
    if reward:
        body = f"Amazing! You've maintained a {streak}-day streak! +{reward} bonus points!"
    else:
        body = f"Incredible dedication! You've typed for {streak} days straight!"
    payload = NotificationPayload(
        title=f"{emoji} {streak}-Day Streak Milestone!",
        body=body,
        data={
            "url": "/profile",
            "type": NotificationType.STREAK_MILESTONE.value,
            "milestone": {"streak": streak, "reward": reward},
        },
        tag=f"streak-milestone-{streak}",
        require_interaction=True,
        actions=[
            NotificationAction("view", "View Profile"),
            NotificationAction("share", "Share Achievement"),
        ],
    )
    return _outgoing(NotificationType.STREAK_MILESTONE, payload, urgency=URGENCY_HIGH)


def _require(meta: Mapping[str, Any], notification_type: NotificationType, *keys: str) -> dict[str, Any]:
    missing = [key for key in keys if meta.get(key) is None]
    if missing:
        msg = f"{notification_type.value} job is missing {', '.join(missing)}"
        raise InvalidJobPayloadError(msg)
    return {key: meta[key] for key in keys}


def _optional(meta: Mapping[str, Any], *keys: str) -> dict[str, Any]:
    return {key: meta[key] for key in keys if meta.get(key) is not None}


def build_from_event(
    notification_type: NotificationType, meta: Mapping[str, Any]
) -> OutgoingNotification:
    """Render a one-shot notification from the facts stored on a queued job."""

    if notification_type is NotificationType.ACHIEVEMENT_UNLOCK:
        return build_achievement_unlock(
            **_require(meta, notification_type, "name", "description", "tier", "points"),
            **_optional(meta, "icon"),
        )
    if notification_type in (
        NotificationType.CHALLENGE_STARTED,
        NotificationType.CHALLENGE_PROGRESS,
        NotificationType.CHALLENGE_COMPLETED,
    ):
        kind = notification_type.value.removeprefix("challenge_")
        try:
            return build_challenge(
                **_require(meta, notification_type, "title", "description"),
                kind=kind,
                **_optional(meta, "progress", "target", "reward"),
            )
        except ValueError as exc:
            if isinstance(exc, InvalidJobPayloadError):
                raise
            raise InvalidJobPayloadError(str(exc)) from exc
    if notification_type is NotificationType.LEADERBOARD_UPDATE:
        return build_leaderboard_update(
            **_require(meta, notification_type, "category", "old_rank", "new_rank", "total_users")
        )
    if notification_type is NotificationType.RACE_INVITE:
        return build_race_invite(
            **_require(meta, notification_type, "inviter_name", "room_code", "mode")
        )
    if notification_type is NotificationType.RACE_STARTING:
        return build_race_starting(
            **_require(meta, notification_type, "room_code", "starts_in", "participants")
        )
    if notification_type is NotificationType.PERSONAL_RECORD:
        return build_personal_record(
            **_require(meta, notification_type, "wpm", "previous_best", "accuracy", "mode")
        )
    if notification_type is NotificationType.STREAK_MILESTONE:
        return build_streak_milestone(
            **_require(meta, notification_type, "streak"), **_optional(meta, "reward")
        )
    raise InvalidJobPayloadError(
        f"{notification_type.value} cannot be rendered from stored event facts"
    )


__all__ = [
    "OutgoingNotification",
    "TYPING_TIPS",
    "build_achievement_unlock",
    "build_challenge",
    "build_daily_reminder",
    "build_from_event",
    "build_leaderboard_update",
    "build_personal_record",
    "build_race_invite",
    "build_race_starting",
    "build_streak_milestone",
    "build_streak_warning",
    "build_tip_of_the_day",
    "build_weekly_summary",
    "tip_for_day",
]
