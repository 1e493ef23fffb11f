"""Interfaces to the collaborators that surround the drawing core.

The core decides *what* happens (who qualifies, what to announce); the
adapters defined here decide *how* it reaches the venue, the identity store,
and the people involved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entry:
    """A qualifying action submitted to a drawing's venue.

    Attributes
    ----------
    author : str
        Identity of the person who submitted the entry.
    position : int
        Sequence position of the entry within the venue ("floor number").
        Position ``1`` is the drawing's own opening action.
    created_at : datetime
        Submission timestamp.
    entry_ref : str
        Opaque reference to the entry (e.g. a post id).
    author_name : Optional[str]
        Display name used in announcements.
    is_removed : bool
        The entry was removed or hidden by moderation.
    author_removed : bool
        The author's account was removed or deleted.
    """

    author: str
    position: int
    created_at: datetime
    entry_ref: str
    author_name: Optional[str] = None
    is_removed: bool = False
    author_removed: bool = False


class VenueAdapter(Protocol):
    def list_qualifying_entries(self, scope_id: str) -> Sequence[Entry]: ...

    def freeze_submissions(self, scope_id: str) -> None: ...

    def archive_scope(self, scope_id: str) -> None: ...

    def close_scope(self, scope_id: str) -> None: ...


class IdentityAdapter(Protocol):
    def in_group(self, user: str, group: str) -> bool: ...

    def is_admin(self, user: str) -> bool: ...


class NotifierAdapter(Protocol):
    def announce(self, scope_id: str, message: str) -> None: ...

    def notify_user(self, user: str, title: str, message: str) -> None: ...


class TagAdapter(Protocol):
    def retag(
        self, scope_id: str, add_tag: Optional[str], remove_tag: Optional[str]
    ) -> None: ...


class StaticIdentity:
    """In-memory identity store.

    ``memberships`` maps group name to member ids. Which groups exclude an
    author from drawings is policy, not identity; see ``DrawPolicy``.
    """

    def __init__(
        self,
        *,
        memberships: Optional[Mapping[str, Iterable[str]]] = None,
        admins: Iterable[str] = (),
    ) -> None:
        self._memberships = {
            group: frozenset(members) for group, members in (memberships or {}).items()
        }
        self._admins = frozenset(admins)

    def in_group(self, user: str, group: str) -> bool:
        return user in self._memberships.get(group, frozenset())

    def is_admin(self, user: str) -> bool:
        return user in self._admins


@dataclass(frozen=True)
class Announcement:
    scope_id: str
    message: str


@dataclass(frozen=True)
class PrivateNotice:
    user: str
    title: str
    message: str


@dataclass
class RecordingNotifier:
    """Notifier that keeps every intent in memory instead of delivering it."""

    announcements: list[Announcement] = field(default_factory=list)
    notices: list[PrivateNotice] = field(default_factory=list)

    def announce(self, scope_id: str, message: str) -> None:
        self.announcements.append(Announcement(scope_id=scope_id, message=message))

    def notify_user(self, user: str, title: str, message: str) -> None:
        self.notices.append(PrivateNotice(user=user, title=title, message=message))


# Delivery is fire-and-forget: a failing collaborator must never undo a
# state transition that has already been committed.


def deliver_announcement(
    notifier: Optional[NotifierAdapter], scope_id: str, message: str
) -> bool:
    if notifier is None:
        return False
    try:
        notifier.announce(scope_id, message)
    except Exception as e:
        logger.error(f"Failed to post announcement to scope {scope_id}: {e}")
        return False
    return True


def deliver_private_notice(
    notifier: Optional[NotifierAdapter], user: str, title: str, message: str
) -> bool:
    if notifier is None:
        return False
    try:
        notifier.notify_user(user, title, message)
    except Exception as e:
        logger.error(f"Failed to send private notice to user {user}: {e}")
        return False
    return True


def deliver_retag(
    tagger: Optional[TagAdapter],
    scope_id: str,
    add_tag: Optional[str],
    remove_tag: Optional[str],
) -> bool:
    if tagger is None:
        return False
    try:
        tagger.retag(scope_id, add_tag, remove_tag)
    except Exception as e:
        logger.error(f"Failed to retag scope {scope_id}: {e}")
        return False
    return True


def call_venue(action: str, func, scope_id: str) -> bool:
    """Invoke a best-effort venue operation such as freezing or closing a scope."""
    try:
        func(scope_id)
    except Exception as e:
        logger.error(f"Venue {action} failed for scope {scope_id}: {e}")
        return False
    return True


__all__ = [
    "Entry",
    "VenueAdapter",
    "IdentityAdapter",
    "NotifierAdapter",
    "TagAdapter",
    "StaticIdentity",
    "Announcement",
    "PrivateNotice",
    "RecordingNotifier",
    "deliver_announcement",
    "deliver_private_notice",
    "deliver_retag",
    "call_venue",
]
