"""Persistence helpers for notification jobs."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from notification_engine.domain.entities import (
    JOB_STATUS_CLAIMED,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_PENDING,
    TERMINAL_JOB_STATUSES,
    NotificationJob,
)
from notification_engine.infrastructure.models import NotificationJobModel
from notification_engine.utils import ensure_utc, ensure_utc_naive, now_utc

_jobs = NotificationJobModel.__table__


def _type_value(notification_type: Any) -> str:
    return str(getattr(notification_type, "value", notification_type))


class NotificationJobRepository:
    """Store jobs and perform their state transitions.

    Each method opens its own session from ``session_factory`` because the
    dispatcher calls the repository from several worker threads at once.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def claim_due_jobs(self, now: datetime, limit: int) -> list[NotificationJob]:
        """Move up to ``limit`` due pending jobs to ``claimed`` in one statement.

        The candidate rows are selected and updated by a single conditional
        ``UPDATE ... RETURNING``; backends with row locks additionally skip rows
        locked by a concurrent claimer.
        """

        if limit <= 0:
            return []

        claimed_at = ensure_utc_naive(now)
        due_ids = (
            select(_jobs.c.id)
            .where(_jobs.c.status == JOB_STATUS_PENDING)
            .where(_jobs.c.send_at_utc <= claimed_at)
            .order_by(_jobs.c.send_at_utc, _jobs.c.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        statement = (
            update(_jobs)
            .where(_jobs.c.id.in_(due_ids))
            .where(_jobs.c.status == JOB_STATUS_PENDING)
            .values(
                status=JOB_STATUS_CLAIMED,
                claimed_at=claimed_at,
                last_attempt_at=claimed_at,
            )
            .returning(*_jobs.c)
        )
        with self._session_factory() as session:
            rows = session.execute(statement).mappings().all()
            session.commit()

        jobs = [self._to_entity(row) for row in rows]
        jobs.sort(key=lambda job: (job.send_at_utc, job.id))
        return jobs

    def mark_completed(self, job_id: int) -> None:
        self._update(
            job_id,
            status=JOB_STATUS_COMPLETED,
            completed_at=ensure_utc_naive(now_utc()),
            error_message=None,
        )

    def reschedule_job(
        self, job_id: int, next_utc: datetime, *, error: str | None = None
    ) -> None:
        self._update(
            job_id,
            status=JOB_STATUS_PENDING,
            send_at_utc=ensure_utc_naive(next_utc),
            attempt_count=_jobs.c.attempt_count + 1,
            claimed_at=None,
            error_message=error,
        )

    def mark_failed(self, job_id: int, reason: str) -> None:
        self._update(
            job_id,
            status=JOB_STATUS_FAILED,
            completed_at=ensure_utc_naive(now_utc()),
            error_message=reason,
        )

    def create_jobs(self, jobs: Sequence[NotificationJob]) -> list[NotificationJob]:
        if not jobs:
            return []
        with self._session_factory() as session:
            models = []
            for job in jobs:
                model = NotificationJobModel()
                self._apply_entity_to_model(model, job)
                session.add(model)
                models.append(model)
            session.commit()
            return [self._to_entity(model) for model in models]

    def replace_pending_jobs(self, jobs: Sequence[NotificationJob]) -> int:
        """Upsert one pending job per ``(user_id, notification_type)``.

        An existing pending job is moved to the new instant and metadata; extra
        pending duplicates are removed. A pending job that is waiting for a
        retry keeps its instant and attempts, and the replacement is dropped.
        Returns the number of jobs written.
        """

        if not jobs:
            return 0
        written = 0
        with self._session_factory() as session:
            for job in jobs:
                existing = (
                    session.query(NotificationJobModel)
                    .filter(NotificationJobModel.user_id == job.user_id)
                    .filter(
                        NotificationJobModel.notification_type
                        == _type_value(job.notification_type)
                    )
                    .filter(NotificationJobModel.status == JOB_STATUS_PENDING)
                    .order_by(NotificationJobModel.id)
                    .all()
                )
                if any(model.attempt_count for model in existing):
                    continue
                if existing:
                    model, *duplicates = existing
                    for duplicate in duplicates:
                        session.delete(duplicate)
                else:
                    model = NotificationJobModel()
                    session.add(model)
                self._apply_entity_to_model(model, job)
                model.status = JOB_STATUS_PENDING
                model.attempt_count = 0
                model.error_message = None
                session.flush()
                written += 1
            session.commit()
        return written

    def release_stale_claims(self, older_than: datetime) -> int:
        statement = (
            update(_jobs)
            .where(_jobs.c.status == JOB_STATUS_CLAIMED)
            .where(_jobs.c.claimed_at < ensure_utc_naive(older_than))
            .values(
                status=JOB_STATUS_PENDING,
                attempt_count=_jobs.c.attempt_count + 1,
                claimed_at=None,
                error_message="Claim expired before the job finished",
            )
        )
        with self._session_factory() as session:
            result = session.execute(statement)
            session.commit()
            return result.rowcount or 0

    def cleanup_old_jobs(self, retention_days: int, now: datetime) -> int:
        cutoff = ensure_utc_naive(now - timedelta(days=retention_days))
        statement = (
            delete(_jobs)
            .where(_jobs.c.status.in_(sorted(TERMINAL_JOB_STATUSES)))
            .where(
                or_(
                    _jobs.c.completed_at < cutoff,
                    and_(_jobs.c.completed_at.is_(None), _jobs.c.created_at < cutoff),
                )
            )
        )
        with self._session_factory() as session:
            result = session.execute(statement)
            session.commit()
            return result.rowcount or 0

    def count_by_status(self) -> dict[str, int]:
        statement = select(_jobs.c.status, func.count()).group_by(_jobs.c.status)
        with self._session_factory() as session:
            return {status: count for status, count in session.execute(statement).all()}

    def list_jobs(
        self,
        *,
        status: str | None = None,
        user_id: str | None = None,
        limit: int = 100,
    ) -> list[NotificationJob]:
        with self._session_factory() as session:
            query = session.query(NotificationJobModel)
            if status is not None:
                query = query.filter(NotificationJobModel.status == status)
            if user_id is not None:
                query = query.filter(NotificationJobModel.user_id == user_id)
            query = query.order_by(
                NotificationJobModel.send_at_utc, NotificationJobModel.id
            ).limit(limit)
            return [self._to_entity(model) for model in query.all()]

    def get(self, job_id: int) -> NotificationJob | None:
        with self._session_factory() as session:
            model = session.get(NotificationJobModel, job_id)
            return self._to_entity(model) if model is not None else None

    def _update(self, job_id: int, **values: Any) -> None:
        with self._session_factory() as session:
            session.execute(update(_jobs).where(_jobs.c.id == job_id).values(**values))
            session.commit()

    @staticmethod
    def _apply_entity_to_model(model: NotificationJobModel, job: NotificationJob) -> None:
        model.user_id = job.user_id
        model.notification_type = _type_value(job.notification_type)
        model.send_at_utc = ensure_utc_naive(job.send_at_utc)
        model.status = job.status
        model.attempt_count = job.attempt_count
        model.payload_meta = dict(job.payload_meta or {})
        model.last_attempt_at = ensure_utc_naive(job.last_attempt_at)
        model.error_message = job.error_message
        model.claimed_at = ensure_utc_naive(job.claimed_at)
        model.completed_at = ensure_utc_naive(job.completed_at)
        if job.created_at is not None:
            model.created_at = ensure_utc_naive(job.created_at)

    @staticmethod
    def _to_entity(source: NotificationJobModel | Mapping[str, Any]) -> NotificationJob:
        if isinstance(source, Mapping):
            values = dict(source)
        else:
            values = {column.name: getattr(source, column.name) for column in _jobs.columns}
        return NotificationJob(
            id=values["id"],
            user_id=values["user_id"],
            notification_type=values["notification_type"],
            send_at_utc=ensure_utc(values["send_at_utc"]),
            status=values["status"],
            attempt_count=values["attempt_count"] or 0,
            payload_meta=dict(values["payload_meta"] or {}),
            last_attempt_at=ensure_utc(values["last_attempt_at"]),
            error_message=values["error_message"],
            claimed_at=ensure_utc(values["claimed_at"]),
            completed_at=ensure_utc(values["completed_at"]),
            created_at=ensure_utc(values["created_at"]),
        )


__all__ = ["NotificationJobRepository"]
