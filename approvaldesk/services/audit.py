"""Append-only audit trail for approval decisions, deletions and restorations."""
from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from approvaldesk.config import Settings, get_settings
from approvaldesk.core.logging import get_audit_logger
from approvaldesk.models.approval import Approval
from approvaldesk.models.audit import AuditAction, AuditLogEntry
from approvaldesk.schemas.approval import ApprovalSnapshot
from approvaldesk.schemas.audit import (
    AuditEntryCreate,
    AuditLogFilters,
    AuditLogRead,
    AuditStats,
    DeletionMetadata,
)
from approvaldesk.utils.time import ensure_utc, parse_period_bound, utcnow

logger = get_audit_logger()


@dataclass(frozen=True)
class Period:
    """Inclusive time window; ``None`` leaves a side open."""

    start: datetime | None = None
    end: datetime | None = None
    adjusted: bool = False

    @classmethod
    def from_bounds(cls, start: str | None, end: str | None) -> "Period":
        return cls(
            start=parse_period_bound(start) if start else None,
            end=parse_period_bound(end, end=True) if end else None,
        )


class AuditRetryQueue:
    """Process-local holding area for entries whose append failed."""

    def __init__(self) -> None:
        self._entries: deque[AuditEntryCreate] = deque()
        self._lock = threading.Lock()

    def push(self, entry: AuditEntryCreate) -> None:
        with self._lock:
            self._entries.append(entry)

    def drain(self) -> list[AuditEntryCreate]:
        with self._lock:
            entries = list(self._entries)
            self._entries.clear()
        return entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class AuditTrail:
    """Writes and reads audit entries through an injected session factory."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        *,
        retry_queue: AuditRetryQueue | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.retry_queue = retry_queue if retry_queue is not None else AuditRetryQueue()
        self._settings = settings or get_settings()

    # -- writes -----------------------------------------------------------

    def append(self, entry: AuditEntryCreate) -> AuditLogRead | None:
        """Persist ``entry``; on storage failure queue it and return ``None``.

        Callers append after their transition committed. A failure here is
        an operational problem, never a failure of that transition.
        """

        try:
            stored = self._insert(entry)
        except SQLAlchemyError as exc:
            self.retry_queue.push(entry)
            logger.error(
                "Audit append failed; entry queued for retry",
                extra={
                    "entry_id": entry.id,
                    "approval_id": entry.approval_id,
                    "audit_action": entry.action.value,
                    "entry": entry.model_dump(mode="json"),
                    "error": str(exc),
                },
            )
            return None

        logger.info(
            "Audit entry appended",
            extra={
                "entry_id": stored.id,
                "approver": stored.approver,
                "audit_action": stored.action.value,
                "approval_id": stored.approval_id,
                "has_metadata": stored.metadata is not None,
            },
        )
        return stored

    def _insert(self, entry: AuditEntryCreate) -> AuditLogRead:
        with self._session_factory() as session:
            row = entry.to_row()
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                existing = session.get(AuditLogEntry, entry.id)
                if existing is None:
                    raise
                # A previous attempt committed before reporting failure.
                return AuditLogRead.from_row(existing)
            return AuditLogRead.from_row(row)

    def retry_pending(self) -> int:
        """Re-append queued entries; return how many were delivered."""

        pending = self.retry_queue.drain()
        delivered = 0
        for entry in pending:
            try:
                self._insert(entry)
            except SQLAlchemyError as exc:
                self.retry_queue.push(entry)
                logger.warning(
                    "Audit retry failed",
                    extra={"entry_id": entry.id, "approval_id": entry.approval_id, "error": str(exc)},
                )
            else:
                delivered += 1
        if pending:
            logger.info(
                "Audit retry pass finished",
                extra={"delivered": delivered, "still_pending": len(self.retry_queue)},
            )
        return delivered

    # -- reads ------------------------------------------------------------

    def query(self, filters: AuditLogFilters | None = None, *, ascending: bool = False) -> list[AuditLogRead]:
        """Return entries inside the inclusive window matching the filters."""

        filters = filters or AuditLogFilters()
        period = Period.from_bounds(filters.start_date, filters.end_date)
        return self.query_period(
            period,
            approver_id=filters.approver_id,
            action=filters.action,
            ascending=ascending,
        )

    def query_period(
        self,
        period: Period,
        *,
        approver_id: str | None = None,
        action: AuditAction | None = None,
        ascending: bool = True,
    ) -> list[AuditLogRead]:
        stmt = select(AuditLogEntry)
        if period.start is not None:
            stmt = stmt.where(AuditLogEntry.timestamp >= ensure_utc(period.start))
        if period.end is not None:
            stmt = stmt.where(AuditLogEntry.timestamp <= ensure_utc(period.end))
        if approver_id:
            stmt = stmt.where(AuditLogEntry.approver == approver_id)
        if action is not None:
            stmt = stmt.where(AuditLogEntry.action == action)
        order = AuditLogEntry.timestamp.asc() if ascending else AuditLogEntry.timestamp.desc()
        stmt = stmt.order_by(order)

        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()
            return [AuditLogRead.from_row(row) for row in rows]

    def history(self, approval_id: str) -> list[AuditLogRead]:
        """Every entry recorded for one approval, oldest first."""

        stmt = (
            select(AuditLogEntry)
            .where(AuditLogEntry.approval_id == approval_id)
            .order_by(AuditLogEntry.timestamp.asc())
        )
        with self._session_factory() as session:
            return [AuditLogRead.from_row(row) for row in session.execute(stmt).scalars().all()]

    def latest_deletion_snapshot(self, approval_id: str) -> ApprovalSnapshot | None:
        stmt = (
            select(AuditLogEntry)
            .where(
                AuditLogEntry.approval_id == approval_id,
                AuditLogEntry.action == AuditAction.DELETED,
            )
            .order_by(AuditLogEntry.timestamp.desc())
            .limit(1)
        )
        with self._session_factory() as session:
            row = session.execute(stmt).scalar_one_or_none()
            if row is None:
                return None
            entry = AuditLogRead.from_row(row)
        if isinstance(entry.metadata, DeletionMetadata):
            return entry.metadata.snapshot
        return None

    def timestamp_range(self) -> tuple[datetime, datetime] | None:
        """Earliest and latest timestamps across the whole trail."""

        stmt = select(func.min(AuditLogEntry.timestamp), func.max(AuditLogEntry.timestamp))
        with self._session_factory() as session:
            first, last = session.execute(stmt).one()
        if first is None or last is None:
            return None
        return ensure_utc(first), ensure_utc(last)

    def count_period(self, period: Period) -> int:
        stmt = select(func.count(AuditLogEntry.id))
        if period.start is not None:
            stmt = stmt.where(AuditLogEntry.timestamp >= ensure_utc(period.start))
        if period.end is not None:
            stmt = stmt.where(AuditLogEntry.timestamp <= ensure_utc(period.end))
        with self._session_factory() as session:
            return int(session.execute(stmt).scalar_one())

    def adjust_period_to_include_data(self, start: str | None, end: str | None) -> Period:
        """Fit an empty requested window to the data actually recorded.

        A window holding entries is returned as requested. An empty window
        that overlaps the global timestamp range is clamped to that
        intersection; one with no overlap is returned unchanged.
        """

        requested = Period.from_bounds(start, end)
        if self.count_period(requested) > 0:
            return requested

        bounds = self.timestamp_range()
        if bounds is None:
            return requested
        first, last = bounds
        lower = max(requested.start, first) if requested.start is not None else first
        upper = min(requested.end, last) if requested.end is not None else last
        if lower > upper:
            logger.info(
                "Requested period does not overlap recorded data",
                extra={"start": start, "end": end},
            )
            return requested

        logger.info(
            "Requested period clamped to recorded data",
            extra={"start": start, "end": end, "adjusted_start": lower.isoformat(), "adjusted_end": upper.isoformat()},
        )
        return Period(start=lower, end=upper, adjusted=True)

    def resolve_subjects(self, entries: Iterable[AuditLogRead]) -> dict[str, ApprovalSnapshot]:
        """Describe the approvals behind ``entries``.

        Live rows win; an approval that is gone is described by its most
        recent deletion snapshot.
        """

        ids = {entry.approval_id for entry in entries}
        if not ids:
            return {}

        subjects: dict[str, ApprovalSnapshot] = {}
        with self._session_factory() as session:
            live = session.execute(select(Approval).where(Approval.id.in_(ids))).scalars().all()
            for approval in live:
                subjects[approval.id] = ApprovalSnapshot.model_validate(approval)

            missing = ids - subjects.keys()
            if missing:
                deletions = session.execute(
                    select(AuditLogEntry)
                    .where(
                        AuditLogEntry.approval_id.in_(missing),
                        AuditLogEntry.action == AuditAction.DELETED,
                    )
                    .order_by(AuditLogEntry.timestamp.desc())
                ).scalars().all()
                for row in deletions:
                    if row.approval_id in subjects:
                        continue
                    metadata = AuditLogRead.from_row(row).metadata
                    if isinstance(metadata, DeletionMetadata):
                        subjects[row.approval_id] = metadata.snapshot
        return subjects

    def stats(self, now: datetime | None = None) -> AuditStats:
        """Totals by action and approver plus recent activity."""

        now = ensure_utc(now or utcnow())
        since = now - timedelta(hours=self._settings.RECENT_ACTIVITY_HOURS)
        with self._session_factory() as session:
            total = session.execute(select(func.count(AuditLogEntry.id))).scalar_one()
            by_action = session.execute(
                select(AuditLogEntry.action, func.count(AuditLogEntry.id)).group_by(AuditLogEntry.action)
            ).all()
            by_approver = session.execute(
                select(AuditLogEntry.approver, func.count(AuditLogEntry.id)).group_by(AuditLogEntry.approver)
            ).all()
            recent = session.execute(
                select(func.count(AuditLogEntry.id)).where(AuditLogEntry.timestamp >= since)
            ).scalar_one()

        return AuditStats(
            total=int(total),
            by_action={action.value: int(count) for action, count in by_action},
            by_approver={approver: int(count) for approver, count in by_approver},
            recent_activity=int(recent),
        )


__all__ = ["AuditRetryQueue", "AuditTrail", "Period"]
