from typing import Any, Mapping, Optional, Union
from datetime import datetime, timezone
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from .adapters import (
    IdentityAdapter,
    NotifierAdapter,
    TagAdapter,
    VenueAdapter,
    call_venue,
    deliver_announcement,
    deliver_retag,
)
from .config import DrawPolicy, PolicyProvider
from .db.utils import as_utc
from .draw import messages
from .draw.locking import DEFAULT_DRAWING_LOCKS, KeyedLock
from .errors import DrawingError, NotFoundError, PermissionDeniedError, StateConflictError
from .models import Drawing, Participant
from .validation import validate_drawing_config

logger = logging.getLogger(__name__)


def _resolve_policy(policy: Union[DrawPolicy, PolicyProvider, None]) -> DrawPolicy:
    if policy is None:
        return DrawPolicy()
    if isinstance(policy, DrawPolicy):
        return policy
    return policy.current()


def _require_enabled(policy: DrawPolicy) -> None:
    if not policy.enabled:
        raise PermissionDeniedError("Drawings are disabled on this site")


def _get_or_404(session: Session, drawing_id: int, *, for_update: bool = False) -> Drawing:
    if for_update:
        drawing = Drawing.get_for_update(session, drawing_id)
    else:
        drawing = session.get(Drawing, drawing_id)
    if drawing is None:
        raise NotFoundError(f"Drawing {drawing_id} not found", drawing_id=drawing_id)
    return drawing


def create_drawing(
    session: Session,
    config: Mapping[str, Any],
    organizer: str,
    *,
    scope_id: str,
    policy: Union[DrawPolicy, PolicyProvider, None] = None,
    venue: Optional[VenueAdapter] = None,
    tagger: Optional[TagAdapter] = None,
    now: Optional[datetime] = None,
) -> Drawing:
    """Validate ``config`` and persist a new open drawing.

    The workflow performs the following steps:

    1. Reject the request when drawings are disabled by policy.
    2. Run the :class:`~gatedraw.validation.ValidationGate`; every violated
       rule is reported together and nothing is persisted on failure.
    3. Store the drawing with status ``open`` and tag its scope.
    4. When the policy's lock delay is zero, lock the drawing immediately and
       freeze submissions on the venue.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session. The new row is flushed, not committed.
    config : Mapping[str, Any]
        Raw configuration, see :meth:`ValidationGate.validate`.
    organizer : str
        Identity of the organizer creating the drawing.
    scope_id : str
        Venue scope whose entries will qualify.
    policy : DrawPolicy | PolicyProvider | None
        Global limits; defaults to :class:`DrawPolicy` defaults.
    venue : Optional[VenueAdapter]
        Needed only for the immediate lock.
    tagger : Optional[TagAdapter]
        Receives the ``drawing-open`` tag.
    now : Optional[datetime]
        Reference time for validation and locking.

    Returns
    -------
    Drawing
        The persisted drawing with a populated ``id``.

    Raises
    ------
    PermissionDeniedError
        If drawings are disabled.
    ValidationError
        If any field rule is violated.
    """

    resolved = _resolve_policy(policy)
    _require_enabled(resolved)
    now = as_utc(now) or datetime.now(timezone.utc)

    drawing_config = validate_drawing_config(config, resolved, now).raise_for_errors()

    drawing = Drawing(
        scope_id=scope_id,
        organizer_id=organizer,
        created_at=now,
        **drawing_config.drawing_kwargs(),
    )
    session.add(drawing)
    session.flush()
    logger.info(f"Drawing {drawing.id} created in scope {scope_id} by {organizer}")

    if resolved.lock_delay_minutes <= 0:
        drawing.lock(now)
        session.flush()
        if venue is not None:
            call_venue("freeze", venue.freeze_submissions, scope_id)
        logger.info(f"Drawing {drawing.id} locked at creation")

    deliver_retag(tagger, scope_id, messages.TAG_OPEN, None)
    return drawing


def edit_drawing(
    session: Session,
    drawing_id: int,
    config: Mapping[str, Any],
    *,
    policy: Union[DrawPolicy, PolicyProvider, None] = None,
    requester: Optional[str] = None,
    identity: Optional[IdentityAdapter] = None,
    locks: Optional[KeyedLock] = None,
    now: Optional[datetime] = None,
) -> Drawing:
    """Replace the configuration of an open, unlocked drawing.

    The drawing's lock is held while the configuration is re-validated and
    the session is **committed** before the lock is released, so an edit can
    never land on a drawing the engine resolved in the meantime.

    Raises
    ------
    NotFoundError
        If the drawing does not exist.
    StateConflictError
        If the drawing is no longer open or has been locked.
    PermissionDeniedError
        If drawings are disabled, or ``requester`` is given and is neither
        the organizer nor an administrator.
    ValidationError
        If any field rule is violated.
    """

    resolved = _resolve_policy(policy)
    _require_enabled(resolved)
    now = as_utc(now) or datetime.now(timezone.utc)
    locks = locks or DEFAULT_DRAWING_LOCKS

    with locks.hold(drawing_id, timeout=resolved.lock_timeout_seconds):
        try:
            drawing = _get_or_404(session, drawing_id, for_update=True)
            if not drawing.can_be_edited():
                raise StateConflictError(
                    f"Drawing {drawing_id} can no longer be edited "
                    f"(status '{drawing.status}', locked={drawing.locked})",
                    drawing_id=drawing_id,
                )
            if requester is not None:
                is_admin = identity is not None and identity.is_admin(requester)
                if not drawing.can_be_managed_by(requester, is_admin=is_admin):
                    raise PermissionDeniedError(
                        f"{requester} may not edit drawing {drawing_id}",
                        drawing_id=drawing_id,
                    )

            drawing_config = validate_drawing_config(config, resolved, now).raise_for_errors()
            drawing_config.apply_to(drawing)
        except DrawingError:
            # Release the row lock taken by get_for_update.
            session.rollback()
            raise
        session.commit()

    logger.info(f"Drawing {drawing_id} configuration updated")
    return drawing


def cancel_drawing(
    session: Session,
    drawing_id: int,
    requester: str,
    reason: Optional[str] = None,
    *,
    identity: Optional[IdentityAdapter] = None,
    locks: Optional[KeyedLock] = None,
    notifier: Optional[NotifierAdapter] = None,
    tagger: Optional[TagAdapter] = None,
    policy: Union[DrawPolicy, PolicyProvider, None] = None,
) -> Drawing:
    """Cancel an open, unlocked drawing on behalf of ``requester``.

    The state guards run before the permission check, so a locked or
    resolved drawing is reported as a conflict whoever asks. The drawing's
    lock is held and the session is committed before it is released; a
    cancellation that loses the race against a scheduled draw observes the
    terminal status and fails with :class:`StateConflictError`.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session; committed on success.
    drawing_id : int
        Drawing to cancel.
    requester : str
        Identity asking for the cancellation.
    reason : Optional[str]
        Reason recorded on the drawing; a generic one is used when omitted.
    identity : Optional[IdentityAdapter]
        Used to recognize administrators.

    Returns
    -------
    Drawing
        The cancelled drawing.

    Raises
    ------
    NotFoundError, StateConflictError, PermissionDeniedError
    """

    resolved = _resolve_policy(policy)
    locks = locks or DEFAULT_DRAWING_LOCKS

    with locks.hold(drawing_id, timeout=resolved.lock_timeout_seconds):
        try:
            drawing = _get_or_404(session, drawing_id, for_update=True)
            if not drawing.is_open:
                raise StateConflictError(
                    f"Drawing {drawing_id} is already {drawing.status}",
                    drawing_id=drawing_id,
                )
            if drawing.locked:
                raise StateConflictError(
                    f"Drawing {drawing_id} is locked and can no longer be cancelled",
                    drawing_id=drawing_id,
                )
            is_admin = identity is not None and identity.is_admin(requester)
            if not drawing.can_be_managed_by(requester, is_admin=is_admin):
                raise PermissionDeniedError(
                    f"{requester} may not cancel drawing {drawing_id}", drawing_id=drawing_id
                )
        except DrawingError:
            session.rollback()
            raise

        cleaned = (reason or "").strip() or messages.USER_CANCELLED_DEFAULT_REASON
        drawing.cancel_with_reason(cleaned)
        announcement = messages.user_cancelled_announcement(drawing)
        scope_id = drawing.scope_id
        session.commit()

    logger.info(f"Drawing {drawing_id} cancelled by {requester}")
    deliver_announcement(notifier, scope_id, announcement)
    deliver_retag(tagger, scope_id, messages.TAG_CANCELLED, messages.TAG_OPEN)
    return drawing


def get_drawing(
    session: Session, drawing_id: int, *, now: Optional[datetime] = None
) -> dict[str, Any]:
    """Return a JSON-ready snapshot of one drawing."""
    return _get_or_404(session, drawing_id).to_json(now=now)


def list_participants(session: Session, drawing_id: int) -> list[dict[str, Any]]:
    """Return the drawing's participants ordered by entry position."""
    _get_or_404(session, drawing_id)
    stmt = (
        select(Participant)
        .where(Participant.drawing_id == drawing_id)
        .order_by(Participant.position.asc())
    )
    return [p.to_json() for p in session.scalars(stmt).all()]


def get_aggregate_counts(session: Session) -> dict[str, int]:
    """Return drawing counts keyed by status, plus ``total``."""
    return Drawing.status_counts(session)
