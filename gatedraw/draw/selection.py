"""Winner selection rules for drawings."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import Participant

NO_VALID_POSITIONS = "no valid positions matched"


@dataclass(frozen=True)
class SelectionParams:
    """Parameters a rule reads from the drawing configuration.

    Attributes
    ----------
    winner_count : int
        Requested number of winners for the ``random`` rule.
    positions : tuple[int, ...]
        Ordered winning positions for the ``fixed-position`` rule.
    """

    winner_count: int = 1
    positions: tuple[int, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SelectionOutcome:
    """Result of running a selection rule.

    Attributes
    ----------
    winners : list[Participant]
        Selected participants, in result order. Never contains duplicates.
    failure_reason : Optional[str]
        Set when the rule could not produce a usable result; the caller
        cancels the drawing with this reason.
    """

    winners: list["Participant"]
    failure_reason: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.failure_reason is not None


Selector = Callable[[Sequence["Participant"], SelectionParams, random.Random], SelectionOutcome]


@dataclass(frozen=True)
class SelectionRule:
    """Definition of a winner selection rule.

    Attributes
    ----------
    key : str
        Registry key, matching :attr:`Drawing.selection_rule`.
    selector : Selector
        Pure callable taking participants, parameters, and a random source.
    description : Optional[str]
        Human-readable summary of the rule's behaviour.
    """

    key: str
    selector: Selector
    description: Optional[str] = None

    def select(
        self,
        participants: Sequence["Participant"],
        params: SelectionParams,
        rng: Optional[random.Random] = None,
    ) -> SelectionOutcome:
        return self.selector(participants, params, rng or random.Random())


class SelectionRegistry:
    """Mutable registry mapping rule keys to definitions."""

    def __init__(self) -> None:
        self._rules: Dict[str, SelectionRule] = {}

    def register(self, rule: SelectionRule, *, replace: bool = False) -> None:
        """Register ``rule`` under its key.

        Parameters
        ----------
        rule : SelectionRule
            Rule to add to the registry.
        replace : bool, default: False
            When ``True`` an existing registration with the same key is
            overwritten. Otherwise a duplicate raises :class:`ValueError`.
        """
        if not replace and rule.key in self._rules:
            raise ValueError(f"Selection rule '{rule.key}' is already registered")
        self._rules[rule.key] = rule

    def get(self, key: str) -> SelectionRule:
        """Return the rule registered under ``key``."""
        try:
            return self._rules[key]
        except KeyError as exc:
            raise KeyError(f"Unknown selection rule '{key}'") from exc

    def resolve(
        self,
        key: str,
        participants: Sequence["Participant"],
        params: SelectionParams,
        rng: Optional[random.Random] = None,
    ) -> SelectionOutcome:
        """Run the rule referenced by ``key`` over ``participants``."""
        return self.get(key).select(participants, params, rng)

    def available_rules(self) -> Dict[str, SelectionRule]:
        """Return a copy of the registered rules keyed by identifier."""
        return dict(self._rules)


def _select_random(
    participants: Sequence["Participant"],
    params: SelectionParams,
    rng: random.Random,
) -> SelectionOutcome:
    """Sample ``min(winner_count, len(participants))`` without replacement."""
    count = min(max(params.winner_count, 0), len(participants))
    # Zero participants is still a success; the minimum-participant check
    # one level up decides whether that is acceptable.
    return SelectionOutcome(winners=rng.sample(list(participants), count))


def _select_fixed_positions(
    participants: Sequence["Participant"],
    params: SelectionParams,
    rng: random.Random,
) -> SelectionOutcome:
    """Pick the participants sitting at exactly the configured positions."""
    by_position = {p.position: p for p in participants}
    winners: list["Participant"] = []
    seen: set[int] = set()
    for position in params.positions:
        participant = by_position.get(position)
        if participant is None or position in seen:
            continue
        seen.add(position)
        winners.append(participant)
    if not winners:
        return SelectionOutcome(winners=[], failure_reason=NO_VALID_POSITIONS)
    return SelectionOutcome(winners=winners)


DEFAULT_SELECTION_REGISTRY = SelectionRegistry()
DEFAULT_SELECTION_REGISTRY.register(
    SelectionRule(
        key="random",
        selector=_select_random,
        description=(
            "Uniformly sample up to winner_count distinct participants using the "
            "injected random source."
        ),
    )
)
DEFAULT_SELECTION_REGISTRY.register(
    SelectionRule(
        key="fixed-position",
        selector=_select_fixed_positions,
        description=(
            "Award the participants whose entry sits at each configured position, "
            "in configured order; unmatched positions are skipped."
        ),
    )
)

__all__ = [
    "NO_VALID_POSITIONS",
    "SelectionParams",
    "SelectionOutcome",
    "SelectionRule",
    "SelectionRegistry",
    "DEFAULT_SELECTION_REGISTRY",
]
