"""Engine that resolves a due drawing into its terminal state."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session, sessionmaker

from . import messages
from .eligibility import collect_participants
from .locking import DEFAULT_DRAWING_LOCKS, KeyedLock
from .selection import DEFAULT_SELECTION_REGISTRY, SelectionParams, SelectionRegistry
from ..adapters import (
    IdentityAdapter,
    NotifierAdapter,
    TagAdapter,
    VenueAdapter,
    call_venue,
    deliver_announcement,
    deliver_private_notice,
    deliver_retag,
)
from ..config import PolicyProvider, StaticPolicyProvider
from ..db.utils import as_utc
from ..errors import DrawSystemError, NotFoundError
from ..models import BACKUP_CANCEL, STATUS_FINISHED, Drawing

logger = logging.getLogger(__name__)


@dataclass
class DrawOutcome:
    """Value object describing what :meth:`DrawEngine.execute_draw` did.

    Attributes
    ----------
    drawing_id : int
        Drawing that was examined.
    status : str
        Status observed after the call.
    executed : bool
        ``False`` when the call was a no-op (not due, or already resolved).
    winners : list[dict]
        Winner records written to the drawing (empty unless finished).
    cancellation_reason : Optional[str]
        Reason recorded when the drawing was cancelled.
    participant_count : int
        Number of eligible participants found during this attempt.
    """

    drawing_id: int
    status: str
    executed: bool
    winners: list[dict[str, Any]] = field(default_factory=list)
    cancellation_reason: Optional[str] = None
    participant_count: int = 0


@dataclass
class _PendingIntents:
    scope_id: str
    terminal_tag: str
    announcement: str
    notices: list[tuple[str, str, str]] = field(default_factory=list)


class DrawEngine:
    """Resolve drawings one at a time under a per-drawing lock."""

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        venue: VenueAdapter,
        notifier: Optional[NotifierAdapter] = None,
        identity: Optional[IdentityAdapter] = None,
        tagger: Optional[TagAdapter] = None,
        policy: Optional[PolicyProvider] = None,
        registry: Optional[SelectionRegistry] = None,
        rng: Optional[random.Random] = None,
        locks: Optional[KeyedLock] = None,
    ) -> None:
        """Create a draw engine.

        Parameters
        ----------
        session_factory : sessionmaker
            Factory used to open one transaction per draw attempt.
        venue : VenueAdapter
            Source of qualifying entries; also closed once the draw completes.
        notifier : Optional[NotifierAdapter], default: None
            Receives the announcement and per-winner notices.
        identity : Optional[IdentityAdapter], default: None
            Answers membership for the policy's excluded groups.
        tagger : Optional[TagAdapter], default: None
            Swaps the open tag for the terminal tag on the venue scope.
        policy : Optional[PolicyProvider], default: None
            Supplies the lock timeout and excluded groups. Defaults to
            :class:`DrawPolicy` defaults.
        registry : Optional[SelectionRegistry], default: None
            Selection rules; typically omitted to use the default registry.
        rng : Optional[random.Random], default: None
            Random source for the ``random`` rule. Inject a seeded instance for
            reproducible results.
        locks : Optional[KeyedLock], default: None
            Per-drawing lock shared with the cancel and edit workflows.
        """

        self._session_factory = session_factory
        self._venue = venue
        self._notifier = notifier
        self._tagger = tagger
        self._policy = policy or StaticPolicyProvider()
        self._registry = registry or DEFAULT_SELECTION_REGISTRY
        self._rng = rng or random.Random()
        self._locks = locks or DEFAULT_DRAWING_LOCKS
        self._identity = identity

    def execute_draw(self, drawing_id: int, now: Optional[datetime] = None) -> DrawOutcome:
        """Draw ``drawing_id`` if it is open and due.

        Parameters
        ----------
        drawing_id : int
            Identifier of the drawing to resolve.
        now : Optional[datetime], default: None
            Reference time for the due check; defaults to the current UTC time.

        Returns
        -------
        DrawOutcome
            Description of the resulting state. ``executed`` is ``False`` when
            the drawing was not due or had already been resolved.

        Notes
        -----
        The whole attempt runs while holding the drawing's lock:

        1. Reload the drawing with a row lock and skip it unless it can draw.
        2. Replace the participant set from the venue's current entries.
        3. Apply the minimum-participant threshold and the backup policy.
        4. Run the selection rule; a failure reason cancels the drawing.
        5. Commit, then close the venue scope, retag it, announce, and send
           per-winner notices. Delivery failures are logged only.

        Raises
        ------
        NotFoundError
            If no drawing has ``drawing_id``.
        StateConflictError
            If the drawing's lock cannot be acquired in time.
        DrawSystemError
            If resolution failed unexpectedly. The drawing has been cancelled
            with the error text before this is raised.
        """

        now = as_utc(now) or datetime.now(timezone.utc)
        timeout = self._policy.current().lock_timeout_seconds

        with self._locks.hold(drawing_id, timeout=timeout):
            try:
                with self._session_factory.begin() as session:
                    drawing = Drawing.get_for_update(session, drawing_id)
                    if drawing is None:
                        raise NotFoundError(
                            f"Drawing {drawing_id} not found", drawing_id=drawing_id
                        )
                    if not drawing.can_draw(now):
                        logger.warning(
                            f"Skipping draw for drawing {drawing_id}: status "
                            f"'{drawing.status}', draw time {drawing.draw_time.isoformat()}"
                        )
                        return DrawOutcome(
                            drawing_id=drawing_id,
                            status=drawing.status,
                            executed=False,
                            winners=list(drawing.winners or []),
                            cancellation_reason=drawing.cancellation_reason,
                            participant_count=drawing.effective_participants_count(),
                        )

                    logger.info(f"Starting draw for drawing {drawing_id} ({drawing.name})")
                    outcome, intents = self._resolve(session, drawing)
            except NotFoundError:
                raise
            except Exception as exc:
                logger.exception(f"Draw failed for drawing {drawing_id}: {exc}")
                self._force_cancel(drawing_id, exc)
                raise DrawSystemError(
                    f"Draw failed for drawing {drawing_id}: {exc}", drawing_id=drawing_id
                ) from exc

            logger.info(
                f"Draw completed for drawing {drawing_id}: status '{outcome.status}', "
                f"{len(outcome.winners)} winner(s), {outcome.participant_count} participant(s)"
            )
            self._emit(intents)
            return outcome

    def _resolve(
        self, session: Session, drawing: Drawing
    ) -> tuple[DrawOutcome, _PendingIntents]:
        entries = self._venue.list_qualifying_entries(drawing.scope_id)
        participants = collect_participants(
            drawing,
            entries,
            identity=self._identity,
            excluded_groups=self._policy.current().excluded_groups,
        )
        drawing.replace_participants(session, participants)
        participant_count = len(participants)

        reason: Optional[str] = None
        winners = []
        if (
            participant_count < drawing.min_participants
            and drawing.backup_policy == BACKUP_CANCEL
        ):
            reason = messages.insufficient_participants_reason(
                drawing.min_participants, participant_count
            )
        else:
            selection = self._registry.resolve(
                drawing.selection_rule,
                participants,
                SelectionParams(
                    winner_count=drawing.winner_count,
                    positions=tuple(drawing.positions),
                ),
                self._rng,
            )
            if selection.failed:
                reason = selection.failure_reason
            else:
                winners = selection.winners

        if reason is not None:
            drawing.cancel_with_reason(reason)
            intents = _PendingIntents(
                scope_id=drawing.scope_id,
                terminal_tag=messages.TAG_CANCELLED,
                announcement=messages.cancellation_announcement(drawing, participant_count),
            )
        else:
            for winner in winners:
                winner.is_winner = True
            drawing.finish_with_winners([w.winner_record() for w in winners])
            intents = _PendingIntents(
                scope_id=drawing.scope_id,
                terminal_tag=messages.TAG_FINISHED,
                announcement=messages.winners_announcement(
                    drawing, winners, participant_count
                ),
                notices=[
                    (
                        w.user_id,
                        messages.winner_notice_title(drawing),
                        messages.winner_notice(drawing, w),
                    )
                    for w in winners
                ],
            )
        session.flush()

        outcome = DrawOutcome(
            drawing_id=drawing.id,
            status=drawing.status,
            executed=True,
            winners=list(drawing.winners or []) if drawing.status == STATUS_FINISHED else [],
            cancellation_reason=drawing.cancellation_reason,
            participant_count=participant_count,
        )
        return outcome, intents

    def _force_cancel(self, drawing_id: int, error: BaseException) -> None:
        """Terminalize a drawing whose resolution blew up."""
        try:
            with self._session_factory.begin() as session:
                drawing = Drawing.get_for_update(session, drawing_id)
                if drawing is not None and drawing.is_open:
                    drawing.cancel_with_reason(messages.system_error_reason(error))
        except Exception as inner:
            logger.error(
                f"Failed to mark drawing {drawing_id} as cancelled after error: {inner}"
            )

    def _emit(self, intents: _PendingIntents) -> None:
        call_venue("close", self._venue.close_scope, intents.scope_id)
        deliver_retag(self._tagger, intents.scope_id, intents.terminal_tag, messages.TAG_OPEN)
        deliver_announcement(self._notifier, intents.scope_id, intents.announcement)
        for user, title, body in intents.notices:
            deliver_private_notice(self._notifier, user, title, body)


__all__ = ["DrawEngine", "DrawOutcome"]
