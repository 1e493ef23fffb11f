"""Participant eligibility for a drawing."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..adapters import Entry, IdentityAdapter
from ..db.utils import as_utc
from ..models import Drawing, Participant

logger = logging.getLogger(__name__)

# Position 1 is the drawing's opening action and never qualifies.
FIRST_QUALIFYING_POSITION = 2


class EligibilityFilter:
    """Turn a venue's entries into the ordered set of distinct participants.

    Rules, applied in order:

    1. drop the drawing's organizer;
    2. drop removed/hidden entries and entries by removed accounts;
    3. drop entries created after the drawing was locked;
    4. drop authors that belong to one of ``excluded_groups``;
    5. keep only each remaining author's earliest entry (lowest position).

    The result is sorted by ascending position. An empty result is a normal
    outcome; deciding what it means is the engine's job.
    """

    def __init__(
        self,
        identity: Optional[IdentityAdapter] = None,
        excluded_groups: Iterable[str] = (),
    ) -> None:
        self._identity = identity
        self._excluded_groups = tuple(excluded_groups)

    def _in_excluded_group(self, author: str) -> bool:
        if self._identity is None:
            return False
        return any(self._identity.in_group(author, group) for group in self._excluded_groups)

    def _is_eligible(self, drawing: Drawing, entry: Entry) -> bool:
        if entry.position < FIRST_QUALIFYING_POSITION:
            return False
        if entry.author == drawing.organizer_id:
            return False
        if entry.is_removed or entry.author_removed:
            return False
        # The venue freeze is best-effort; the lock time is the cut-off.
        if (
            drawing.locked
            and drawing.locked_at is not None
            and as_utc(entry.created_at) > as_utc(drawing.locked_at)
        ):
            return False
        if self._in_excluded_group(entry.author):
            return False
        return True

    def collect(self, drawing: Drawing, entries: Iterable[Entry]) -> list[Participant]:
        """Return fresh, unsaved :class:`Participant` rows for ``drawing``."""

        earliest: dict[str, Entry] = {}
        for entry in entries:
            if not self._is_eligible(drawing, entry):
                continue
            current = earliest.get(entry.author)
            if current is None or entry.position < current.position:
                earliest[entry.author] = entry

        ordered = sorted(earliest.values(), key=lambda e: e.position)
        logger.debug(
            f"Drawing {drawing.id}: {len(ordered)} eligible participant(s) collected"
        )
        return [
            Participant(
                user_id=entry.author,
                username=entry.author_name,
                entry_ref=entry.entry_ref,
                position=entry.position,
                participated_at=entry.created_at,
            )
            for entry in ordered
        ]


def collect_participants(
    drawing: Drawing,
    entries: Iterable[Entry],
    identity: Optional[IdentityAdapter] = None,
    excluded_groups: Iterable[str] = (),
) -> list[Participant]:
    """Functional shortcut for :meth:`EligibilityFilter.collect`."""
    return EligibilityFilter(identity, excluded_groups).collect(drawing, entries)


__all__ = ["EligibilityFilter", "collect_participants", "FIRST_QUALIFYING_POSITION"]
