"""Utilities for the drawing lifecycle engine."""

from .eligibility import EligibilityFilter, collect_participants
from .engine import DrawEngine, DrawOutcome
from .locking import DEFAULT_DRAWING_LOCKS, KeyedLock
from .positions import parse_fixed_positions
from .selection import (
    DEFAULT_SELECTION_REGISTRY,
    NO_VALID_POSITIONS,
    SelectionOutcome,
    SelectionParams,
    SelectionRegistry,
    SelectionRule,
)

__all__ = [
    "DEFAULT_DRAWING_LOCKS",
    "DEFAULT_SELECTION_REGISTRY",
    "DrawEngine",
    "DrawOutcome",
    "EligibilityFilter",
    "KeyedLock",
    "NO_VALID_POSITIONS",
    "SelectionOutcome",
    "SelectionParams",
    "SelectionRegistry",
    "SelectionRule",
    "collect_participants",
    "parse_fixed_positions",
]
