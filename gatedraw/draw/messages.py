"""Announcement and notification texts produced for a drawing's outcome."""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

from .positions import format_positions

if TYPE_CHECKING:
    from ..models import Drawing, Participant

TAG_OPEN = "drawing-open"
TAG_FINISHED = "drawing-finished"
TAG_CANCELLED = "drawing-cancelled"


def insufficient_participants_reason(required: int, actual: int) -> str:
    return f"insufficient participants (required {required}, got {actual})"


def system_error_reason(error: BaseException) -> str:
    return f"system error: {error}"


USER_CANCELLED_DEFAULT_REASON = "cancelled by the organizer"


def winners_announcement(
    drawing: "Drawing", winners: Sequence["Participant"], participant_count: int
) -> str:
    if winners:
        lines = "\n".join(
            f"- @{w.display_name} ({w.position_display})" for w in winners
        )
    else:
        lines = "- (no winners)"
    return (
        f"Drawing '{drawing.name}' has been drawn.\n\n"
        f"Prize: {drawing.prize_description}\n"
        f"Winners:\n{lines}\n\n"
        f"Total participants: {participant_count}"
    )


def cancellation_announcement(drawing: "Drawing", participant_count: int) -> str:
    return (
        f"Drawing '{drawing.name}' has been cancelled.\n\n"
        f"Reason: {drawing.cancellation_reason}\n"
        f"Total participants: {participant_count}"
    )


def user_cancelled_announcement(drawing: "Drawing") -> str:
    return (
        f"Drawing '{drawing.name}' was cancelled by its organizer.\n\n"
        f"Reason: {drawing.cancellation_reason}"
    )


def winner_notice_title(drawing: "Drawing") -> str:
    return f"You won '{drawing.name}'"


def winner_notice(drawing: "Drawing", winner: "Participant") -> str:
    return (
        f"Congratulations @{winner.display_name}! Your entry {winner.position_display} "
        f"won the drawing '{drawing.name}'.\n\nPrize: {drawing.prize_description}"
    )


def lock_notice_title(drawing: "Drawing") -> str:
    return f"Drawing '{drawing.name}' is now locked"


def lock_notice(drawing: "Drawing") -> str:
    body = (
        f"Your drawing '{drawing.name}' has been locked. Its opening post can no "
        "longer be edited and the drawing can no longer be cancelled."
    )
    if drawing.positions:
        body += f" Winning positions: {format_positions(drawing.positions)}."
    return body


__all__ = [
    "TAG_OPEN",
    "TAG_FINISHED",
    "TAG_CANCELLED",
    "USER_CANCELLED_DEFAULT_REASON",
    "insufficient_participants_reason",
    "system_error_reason",
    "winners_announcement",
    "cancellation_announcement",
    "user_cancelled_announcement",
    "winner_notice_title",
    "winner_notice",
    "lock_notice_title",
    "lock_notice",
]
