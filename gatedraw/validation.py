"""Validation of proposed drawing configurations against the site policy."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from .config import DrawPolicy, PolicyProvider
from .db.utils import as_utc
from .draw.positions import parse_fixed_positions
from .errors import FieldError, ValidationError
from .models.drawing import (
    BACKUP_POLICIES,
    BACKUP_PROCEED,
    RULE_FIXED_POSITION,
    RULE_RANDOM,
    SELECTION_RULES,
    Drawing,
)

# Older configurations spelled the backup policies differently.
_BACKUP_ALIASES = {"continue": BACKUP_PROCEED}


@dataclass(frozen=True)
class DrawingConfig:
    """Normalized configuration that passed :class:`ValidationGate`."""

    name: str
    prize_description: str
    draw_time: datetime
    winner_count: int
    min_participants: int
    backup_policy: str
    selection_rule: str
    fixed_positions: tuple[int, ...] = ()
    prize_image_url: Optional[str] = None
    description: Optional[str] = None

    def drawing_kwargs(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "prize_description": self.prize_description,
            "draw_time": self.draw_time,
            "winner_count": self.winner_count,
            "min_participants": self.min_participants,
            "backup_policy": self.backup_policy,
            "selection_rule": self.selection_rule,
            "fixed_positions": list(self.fixed_positions) or None,
            "prize_image_url": self.prize_image_url,
            "description": self.description,
        }

    def apply_to(self, drawing: Drawing) -> None:
        for key, value in self.drawing_kwargs().items():
            setattr(drawing, key, value)


@dataclass
class ValidationResult:
    errors: list[FieldError] = field(default_factory=list)
    config: Optional[DrawingConfig] = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def fields(self) -> set[str]:
        return {err.field for err in self.errors}

    def raise_for_errors(self) -> DrawingConfig:
        if self.errors or self.config is None:
            raise ValidationError(self.errors)
        return self.config


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_draw_time(value: Union[str, datetime]) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC.

    Raises
    ------
    ValueError
        If ``value`` is neither a datetime nor an ISO 8601 string.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        raise ValueError("draw time must be an ISO 8601 string")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


class ValidationGate:
    """Check a proposed configuration and report every violated rule."""

    def __init__(self, policy: Union[DrawPolicy, PolicyProvider, None] = None) -> None:
        self._policy = policy

    @property
    def policy(self) -> DrawPolicy:
        if self._policy is None:
            return DrawPolicy()
        if isinstance(self._policy, DrawPolicy):
            return self._policy
        return self._policy.current()

    def validate(
        self, proposed: Mapping[str, Any], now: Optional[datetime] = None
    ) -> ValidationResult:
        """Validate ``proposed`` and return the collected errors.

        Parameters
        ----------
        proposed : Mapping[str, Any]
            Raw configuration. Keys: ``name``, ``prize_description``,
            ``draw_time``, ``winner_count``, ``min_participants``,
            ``backup_policy``, and optionally ``selection_rule``,
            ``fixed_positions``, ``prize_image_url``, ``description``.
            Without ``selection_rule`` the rule is ``fixed-position`` when
            positions are given and ``random`` otherwise.
        now : Optional[datetime], default: None
            Reference time for the future check.

        Returns
        -------
        ValidationResult
            ``config`` is populated only when no rule was violated.
        """

        policy = self.policy
        now = as_utc(now) or datetime.now(timezone.utc)
        errors: list[FieldError] = []

        def fail(field_name: str, code: str, message: str) -> None:
            errors.append(FieldError(field_name, code, message))

        name = proposed.get("name")
        if _blank(name):
            fail("name", "required", "name is required")
        elif len(str(name).strip()) > policy.name_max_length:
            fail("name", "too_long", f"name must be at most {policy.name_max_length} characters")

        prize = proposed.get("prize_description", proposed.get("prize"))
        if _blank(prize):
            fail("prize_description", "required", "prize description is required")
        elif len(str(prize).strip()) > policy.prize_max_length:
            fail(
                "prize_description",
                "too_long",
                f"prize description must be at most {policy.prize_max_length} characters",
            )

        draw_time: Optional[datetime] = None
        raw_time = proposed.get("draw_time")
        if _blank(raw_time):
            fail("draw_time", "required", "draw time is required")
        else:
            try:
                draw_time = parse_draw_time(raw_time)
            except (TypeError, ValueError):
                fail("draw_time", "invalid_format", "draw time is not a valid timestamp")
            else:
                if draw_time <= now:
                    fail("draw_time", "not_in_future", "draw time must be in the future")

        raw_positions = proposed.get("fixed_positions")
        raw_rule = proposed.get("selection_rule")
        if _blank(raw_rule):
            has_positions = not _blank(raw_positions) and bool(raw_positions)
            rule = RULE_FIXED_POSITION if has_positions else RULE_RANDOM
        else:
            rule = str(raw_rule).strip()
            if rule not in SELECTION_RULES:
                fail(
                    "selection_rule",
                    "invalid_choice",
                    f"selection rule must be one of {', '.join(SELECTION_RULES)}",
                )

        positions: list[int] = []
        if rule == RULE_FIXED_POSITION:
            positions = self._check_positions(raw_positions, policy, fail)

        winner_count: Optional[int] = None
        raw_count = proposed.get("winner_count")
        if _blank(raw_count):
            if rule != RULE_FIXED_POSITION:
                fail("winner_count", "required", "winner count is required")
        else:
            winner_count = _parse_int(raw_count)
            if winner_count is None or winner_count <= 0:
                fail("winner_count", "not_positive", "winner count must be a positive integer")
                winner_count = None
            elif winner_count > policy.max_winners:
                fail(
                    "winner_count",
                    "too_high",
                    f"winner count must not exceed {policy.max_winners}",
                )
        if rule == RULE_FIXED_POSITION:
            winner_count = len(positions) or None

        min_participants: Optional[int] = None
        raw_min = proposed.get("min_participants")
        if _blank(raw_min):
            fail("min_participants", "required", "minimum participants is required")
        else:
            min_participants = _parse_int(raw_min)
            if min_participants is None or min_participants <= 0:
                fail(
                    "min_participants",
                    "not_positive",
                    "minimum participants must be a positive integer",
                )
            elif min_participants < policy.min_participants_global:
                fail(
                    "min_participants",
                    "too_low",
                    f"minimum participants must be at least {policy.min_participants_global}",
                )

        raw_backup = proposed.get("backup_policy")
        backup = None
        if _blank(raw_backup):
            fail("backup_policy", "required", "backup policy is required")
        else:
            backup = _BACKUP_ALIASES.get(str(raw_backup).strip(), str(raw_backup).strip())
            if backup not in BACKUP_POLICIES:
                fail(
                    "backup_policy",
                    "invalid_choice",
                    f"backup policy must be one of {', '.join(BACKUP_POLICIES)}",
                )

        result = ValidationResult(errors=errors)
        if errors:
            return result

        image = proposed.get("prize_image_url")
        description = proposed.get("description")
        result.config = DrawingConfig(
            name=str(name).strip(),
            prize_description=str(prize).strip(),
            draw_time=draw_time,
            winner_count=winner_count,
            min_participants=min_participants,
            backup_policy=backup,
            selection_rule=rule,
            fixed_positions=tuple(positions),
            prize_image_url=None if _blank(image) else str(image).strip(),
            description=None if _blank(description) else str(description),
        )
        return result

    @staticmethod
    def _check_positions(raw_positions: Any, policy: DrawPolicy, fail) -> list[int]:
        try:
            positions = parse_fixed_positions(raw_positions)
        except (TypeError, ValueError):
            fail("fixed_positions", "invalid_format", "positions must be whole numbers")
            return []

        if not positions:
            fail("fixed_positions", "required", "at least one position is required")
            return []
        if any(p <= 1 for p in positions):
            fail("fixed_positions", "invalid_position", "positions must be greater than 1")
        if len(set(positions)) != len(positions):
            fail("fixed_positions", "duplicate_position", "positions must be distinct")
        if len(positions) > policy.max_winners:
            fail(
                "fixed_positions",
                "too_many",
                f"at most {policy.max_winners} positions are allowed",
            )
        return positions


def validate_drawing_config(
    proposed: Mapping[str, Any],
    policy: Union[DrawPolicy, PolicyProvider, None] = None,
    now: Optional[datetime] = None,
) -> ValidationResult:
    """Functional shortcut for :meth:`ValidationGate.validate`."""
    return ValidationGate(policy).validate(proposed, now=now)


__all__ = [
    "DrawingConfig",
    "ValidationGate",
    "ValidationResult",
    "parse_draw_time",
    "validate_drawing_config",
]
