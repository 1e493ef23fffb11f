"""Periodic sweeps that draw due drawings and lock aging ones."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from sqlalchemy.orm import sessionmaker

from .adapters import (
    NotifierAdapter,
    VenueAdapter,
    call_venue,
    deliver_private_notice,
)
from .config import PolicyProvider, StaticPolicyProvider
from .db.utils import as_utc
from .draw import messages
from .draw.engine import DrawEngine
from .draw.locking import DEFAULT_DRAWING_LOCKS, KeyedLock
from .models import Drawing

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    """Result of one scheduler sweep."""

    processed: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    errors: dict[int, str] = field(default_factory=dict)
    ran: bool = True

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "errors": {str(k): v for k, v in self.errors.items()},
            "ran": self.ran,
            "success": self.success,
        }


class _PeriodicTask:
    """Shared run loop for the schedulers."""

    name = "task"

    def interval_seconds(self) -> float:  # pragma: no cover - overridden
        raise NotImplementedError

    def tick(self, now: Optional[datetime] = None) -> TickReport:  # pragma: no cover
        raise NotImplementedError

    def run_forever(self, stop_event: threading.Event) -> None:
        """Call :meth:`tick` until ``stop_event`` is set.

        A failing tick is logged and the loop keeps going.
        """
        logger.info(f"{self.name} scheduler started")
        while not stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception(f"{self.name} scheduler tick failed")
            stop_event.wait(self.interval_seconds())
        logger.info(f"{self.name} scheduler stopped")

    def start(self, stop_event: threading.Event) -> threading.Thread:
        thread = threading.Thread(
            target=self.run_forever,
            args=(stop_event,),
            name=f"gatedraw-{self.name}",
            daemon=True,
        )
        thread.start()
        return thread


class DrawScheduler(_PeriodicTask):
    """Find open drawings past their draw time and hand each to the engine."""

    name = "draw"

    def __init__(
        self,
        session_factory: sessionmaker,
        engine: DrawEngine,
        *,
        policy: Optional[PolicyProvider] = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine
        self._policy = policy or StaticPolicyProvider()

    def interval_seconds(self) -> float:
        return float(self._policy.current().draw_interval_seconds)

    def tick(self, now: Optional[datetime] = None) -> TickReport:
        """Draw every due drawing once; one failure never stops the sweep."""
        now = as_utc(now) or datetime.now(timezone.utc)
        report = TickReport()
        if not self._policy.current().enabled:
            logger.debug("Draw sweep skipped: drawings are disabled")
            report.ran = False
            return report

        with self._session_factory() as session:
            due_ids = [d.id for d in Drawing.due_for_draw(session, now)]

        for drawing_id in due_ids:
            try:
                outcome = self._engine.execute_draw(drawing_id, now=now)
            except Exception as e:
                logger.error(f"Draw sweep failed for drawing {drawing_id}: {e}")
                report.errors[drawing_id] = str(e)
                continue
            if outcome.executed:
                report.processed.append(drawing_id)
            else:
                report.skipped.append(drawing_id)

        if due_ids:
            logger.info(
                f"Draw sweep: {len(report.processed)} drawn, {len(report.skipped)} "
                f"skipped, {len(report.errors)} failed"
            )
        return report


class LockScheduler(_PeriodicTask):
    """Lock open drawings once they are older than the configured lock delay."""

    name = "lock"

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        venue: VenueAdapter,
        notifier: Optional[NotifierAdapter] = None,
        policy: Optional[PolicyProvider] = None,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        self._session_factory = session_factory
        self._venue = venue
        self._notifier = notifier
        self._policy = policy or StaticPolicyProvider()
        self._locks = locks or DEFAULT_DRAWING_LOCKS

    def interval_seconds(self) -> float:
        return float(self._policy.current().lock_interval_seconds)

    def tick(self, now: Optional[datetime] = None) -> TickReport:
        now = as_utc(now) or datetime.now(timezone.utc)
        report = TickReport()
        policy = self._policy.current()
        if not policy.enabled or policy.lock_delay_minutes <= 0:
            # A zero delay means drawings were locked at creation.
            logger.debug("Lock sweep skipped")
            report.ran = False
            return report

        cutoff = now - timedelta(minutes=policy.lock_delay_minutes)
        with self._session_factory() as session:
            candidate_ids = [d.id for d in Drawing.lockable(session, cutoff)]

        for drawing_id in candidate_ids:
            try:
                if self.lock_drawing(drawing_id, now=now):
                    report.processed.append(drawing_id)
                else:
                    report.skipped.append(drawing_id)
            except Exception as e:
                logger.error(f"Lock sweep failed for drawing {drawing_id}: {e}")
                report.errors[drawing_id] = str(e)

        if candidate_ids:
            logger.info(
                f"Lock sweep: {len(report.processed)} locked, {len(report.errors)} failed"
            )
        return report

    def lock_drawing(self, drawing_id: int, now: Optional[datetime] = None) -> bool:
        """Lock one drawing; return ``False`` when it is no longer lockable."""
        now = as_utc(now) or datetime.now(timezone.utc)
        timeout = self._policy.current().lock_timeout_seconds
        with self._locks.hold(drawing_id, timeout=timeout):
            with self._session_factory.begin() as session:
                drawing = Drawing.get_for_update(session, drawing_id)
                if drawing is None or not drawing.is_open or drawing.locked:
                    logger.info(f"Skipping lock for drawing {drawing_id}")
                    return False
                drawing.lock(now)
                scope_id = drawing.scope_id
                organizer_id = drawing.organizer_id
                title = messages.lock_notice_title(drawing)
                body = messages.lock_notice(drawing)

            logger.info(f"Drawing {drawing_id} locked")
            call_venue("freeze", self._venue.freeze_submissions, scope_id)
            call_venue("archive", self._venue.archive_scope, scope_id)
            deliver_private_notice(self._notifier, organizer_id, title, body)
        return True


__all__ = ["DrawScheduler", "LockScheduler", "TickReport"]
