"""Database models for drawings and their participants."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship, validates

from .base import ID_TYPE, Base
from ..db.utils import as_utc, dt_iso
from ..errors import StateConflictError

STATUS_OPEN = "open"
STATUS_FINISHED = "finished"
STATUS_CANCELLED = "cancelled"
STATUSES = (STATUS_OPEN, STATUS_FINISHED, STATUS_CANCELLED)
TERMINAL_STATUSES = (STATUS_FINISHED, STATUS_CANCELLED)

RULE_RANDOM = "random"
RULE_FIXED_POSITION = "fixed-position"
SELECTION_RULES = (RULE_RANDOM, RULE_FIXED_POSITION)

BACKUP_PROCEED = "proceed-anyway"
BACKUP_CANCEL = "cancel"
BACKUP_POLICIES = (BACKUP_PROCEED, BACKUP_CANCEL)


class Drawing(Base):
    """A timed, gated drawing and its lifecycle state.

    Configuration columns are written by the creation and edit workflows.
    Runtime columns (``status``, ``locked``, ``winners``,
    ``cancellation_reason``) only change through the transition methods
    below, which refuse to leave a terminal status.
    """

    __tablename__ = "drawings"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    scope_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    """Venue scope (e.g. topic) whose entries qualify for this drawing."""

    organizer_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    """Identity of the organizer; never counted as a participant."""

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    prize_description: Mapped[str] = mapped_column(Text, nullable=False)
    prize_image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    draw_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    """Moment from which the drawing becomes due."""

    winner_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    """Number of winners for the ``random`` rule."""

    fixed_positions: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    """Ordered entry positions that win under the ``fixed-position`` rule."""

    min_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    backup_policy: Mapped[str] = mapped_column(
        String(20), nullable=False, default=BACKUP_PROCEED
    )
    selection_rule: Mapped[str] = mapped_column(
        String(20), nullable=False, default=RULE_RANDOM
    )

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=STATUS_OPEN, index=True
    )
    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    winners: Mapped[Optional[list]] = mapped_column(JSON, nullable=True)
    """Resolved winners as ``{user_id, username, position, entry_ref}`` dicts."""

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    participants: Mapped[list["Participant"]] = relationship(
        back_populates="drawing",
        cascade="all, delete-orphan",
        order_by="Participant.position",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('open','finished','cancelled')", name="status_enum"
        ),
        CheckConstraint(
            "selection_rule IN ('random','fixed-position')", name="selection_rule_enum"
        ),
        CheckConstraint(
            "backup_policy IN ('proceed-anyway','cancel')", name="backup_policy_enum"
        ),
        CheckConstraint("winner_count > 0", name="winner_count_positive"),
        Index("ix_drawings_status_draw_time", "status", "draw_time"),
    )

    def __init__(
        self,
        *,
        scope_id: str,
        organizer_id: str,
        name: str,
        prize_description: str,
        draw_time: datetime,
        winner_count: int = 1,
        fixed_positions: Optional[Sequence[int]] = None,
        min_participants: int = 1,
        backup_policy: str = BACKUP_PROCEED,
        selection_rule: str = RULE_RANDOM,
        prize_image_url: Optional[str] = None,
        description: Optional[str] = None,
        status: str = STATUS_OPEN,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ) -> None:
        self.scope_id = scope_id
        self.organizer_id = organizer_id
        self.name = name
        self.prize_description = prize_description
        self.draw_time = draw_time
        self.winner_count = winner_count
        self.fixed_positions = list(fixed_positions) if fixed_positions else None
        self.min_participants = min_participants
        self.backup_policy = backup_policy
        self.selection_rule = selection_rule
        self.prize_image_url = prize_image_url
        self.description = description
        self.status = status
        self.locked = False
        if created_at is not None:
            self.created_at = created_at
        if updated_at is not None:
            self.updated_at = updated_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Drawing(id={id}, name={name}, status={status}, locked={locked})>".format(
            id=self.id,
            name=self.name,
            status=self.status,
            locked=self.locked,
        )

    @validates("draw_time", "locked_at", "created_at")
    def _normalize_timestamp(self, _key: str, value: Optional[datetime]):
        return as_utc(value)

    # -------- state queries --------
    @property
    def is_open(self) -> bool:
        return self.status == STATUS_OPEN

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def positions(self) -> list[int]:
        """Configured fixed positions as a list (empty for the random rule)."""
        return [int(p) for p in (self.fixed_positions or [])]

    @property
    def effective_winner_count(self) -> int:
        if self.selection_rule == RULE_FIXED_POSITION:
            return len(self.positions)
        return self.winner_count

    def can_draw(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` when the drawing is open and its draw time has passed."""
        now = as_utc(now) or datetime.now(timezone.utc)
        return self.is_open and as_utc(self.draw_time) <= now

    def can_be_edited(self) -> bool:
        return self.is_open and not self.locked

    def can_be_managed_by(self, user_id: str, *, is_admin: bool = False) -> bool:
        return user_id == self.organizer_id or is_admin

    def effective_participants_count(self) -> int:
        return len(self.participants)

    # -------- transitions --------
    def _require_open(self, action: str) -> None:
        if not self.is_open:
            raise StateConflictError(
                f"Cannot {action} drawing {self.id}: status is '{self.status}'",
                drawing_id=self.id,
            )

    def lock(self, now: Optional[datetime] = None) -> None:
        """Freeze participation without changing ``status``."""
        self._require_open("lock")
        if self.locked:
            return
        self.locked = True
        self.locked_at = now or datetime.now(timezone.utc)

    def finish_with_winners(self, winners: Sequence[dict[str, Any]]) -> None:
        """Move to ``finished`` and record ``winners``.

        An empty list is a valid outcome (proceed-anyway with no participants).
        """
        self._require_open("finish")
        self.status = STATUS_FINISHED
        self.winners = [dict(w) for w in winners]
        self.cancellation_reason = None

    def cancel_with_reason(self, reason: str) -> None:
        """Move to ``cancelled`` with a non-empty ``reason``."""
        self._require_open("cancel")
        if not reason or not reason.strip():
            raise ValueError("A cancellation reason is required")
        self.status = STATUS_CANCELLED
        self.cancellation_reason = reason
        self.winners = None

    def replace_participants(
        self, session: Session, participants: Sequence["Participant"]
    ) -> None:
        """Discard the previous participant set and attach ``participants``.

        The old rows are flushed away first so the per-drawing unique
        constraints never see both generations at once.
        """
        self._require_open("collect participants for")
        self.participants.clear()
        session.flush()
        self.participants.extend(participants)
        session.flush()

    # -------- queries --------
    @classmethod
    def get_for_update(cls, session: Session, drawing_id: int) -> Optional["Drawing"]:
        """Load the drawing row with a row lock, bypassing stale identity-map state."""
        return session.get(
            cls,
            drawing_id,
            with_for_update=True,
            populate_existing=True,
        )

    @classmethod
    def due_for_draw(cls, session: Session, now: datetime) -> list["Drawing"]:
        """Return open drawings whose ``draw_time`` is at or before ``now``."""
        stmt = (
            select(cls)
            .where(cls.status == STATUS_OPEN, cls.draw_time <= as_utc(now))
            .order_by(cls.draw_time.asc(), cls.id.asc())
        )
        return list(session.scalars(stmt).all())

    @classmethod
    def lockable(cls, session: Session, created_before: datetime) -> list["Drawing"]:
        """Return open, unlocked drawings created at or before ``created_before``."""
        stmt = (
            select(cls)
            .where(
                cls.status == STATUS_OPEN,
                cls.locked.is_(False),
                cls.created_at <= as_utc(created_before),
            )
            .order_by(cls.created_at.asc(), cls.id.asc())
        )
        return list(session.scalars(stmt).all())

    @classmethod
    def status_counts(cls, session: Session) -> dict[str, int]:
        """Return the number of drawings per status plus a ``total`` key."""
        rows = session.execute(select(cls.status, func.count(cls.id)).group_by(cls.status))
        counts = {status: 0 for status in STATUSES}
        for status, count in rows:
            counts[status] = int(count)
        counts["total"] = sum(counts[s] for s in STATUSES)
        return counts

    # -------- serialization --------
    def to_json(self, compact: bool = False, now: Optional[datetime] = None) -> dict[str, Any]:
        """Return a JSON-serializable snapshot of the drawing.

        ``compact`` drops the free-text and timestamp fields.
        """
        data: dict[str, Any] = {
            "id": self.id,
            "scope_id": self.scope_id,
            "organizer_id": self.organizer_id,
            "name": self.name,
            "prize_description": self.prize_description,
            "draw_time": dt_iso(self.draw_time),
            "selection_rule": self.selection_rule,
            "winner_count": self.effective_winner_count,
            "fixed_positions": self.positions or None,
            "min_participants": self.min_participants,
            "backup_policy": self.backup_policy,
            "status": self.status,
            "locked": bool(self.locked),
            "participant_count": self.effective_participants_count(),
            "winners": list(self.winners) if self.winners is not None else None,
            "cancellation_reason": self.cancellation_reason,
        }
        if compact:
            return data

        now = as_utc(now) or datetime.now(timezone.utc)
        remaining = None
        if self.is_open and self.draw_time is not None:
            remaining = max(0, int((as_utc(self.draw_time) - now).total_seconds()))
        data.update(
            {
                "prize_image_url": self.prize_image_url,
                "description": self.description,
                "locked_at": dt_iso(self.locked_at),
                "seconds_until_draw": remaining,
                "created_at": dt_iso(self.created_at),
                "updated_at": dt_iso(self.updated_at),
            }
        )
        return data


class Participant(Base):
    """One distinct eligible person counted for a drawing."""

    __tablename__ = "drawing_participants"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    drawing_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("drawings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    entry_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    """Reference to the qualifying entry (e.g. a post id)."""

    position: Mapped[int] = mapped_column(Integer, nullable=False)
    """Sequence position ("floor number") of the qualifying entry."""

    participated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_winner: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    drawing: Mapped["Drawing"] = relationship(back_populates="participants")

    __table_args__ = (
        UniqueConstraint("drawing_id", "user_id", name="uq_drawing_participant_user"),
        UniqueConstraint("drawing_id", "position", name="uq_drawing_participant_position"),
        CheckConstraint("position > 1", name="position_after_opening"),
    )

    def __init__(
        self,
        *,
        user_id: str,
        entry_ref: str,
        position: int,
        participated_at: datetime,
        username: Optional[str] = None,
        is_winner: bool = False,
        drawing: Optional["Drawing"] = None,
    ) -> None:
        self.user_id = user_id
        self.username = username
        self.entry_ref = entry_ref
        self.position = position
        self.participated_at = as_utc(participated_at)
        self.is_winner = is_winner
        if drawing is not None:
            self.drawing = drawing

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<Participant(drawing_id={d}, user_id={u}, position={p}, winner={w})>".format(
            d=self.drawing_id,
            u=self.user_id,
            p=self.position,
            w=self.is_winner,
        )

    @property
    def display_name(self) -> str:
        return self.username or self.user_id

    @property
    def position_display(self) -> str:
        return f"#{self.position}"

    def winner_record(self) -> dict[str, Any]:
        """Return the entry stored in :attr:`Drawing.winners` for this participant."""
        return {
            "user_id": self.user_id,
            "username": self.username,
            "position": self.position,
            "entry_ref": self.entry_ref,
        }

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "entry_ref": self.entry_ref,
            "position": self.position,
            "participated_at": dt_iso(self.participated_at),
            "is_winner": bool(self.is_winner),
        }


__all__ = [
    "Drawing",
    "Participant",
    "STATUS_OPEN",
    "STATUS_FINISHED",
    "STATUS_CANCELLED",
    "STATUSES",
    "TERMINAL_STATUSES",
    "RULE_RANDOM",
    "RULE_FIXED_POSITION",
    "SELECTION_RULES",
    "BACKUP_PROCEED",
    "BACKUP_CANCEL",
    "BACKUP_POLICIES",
]
