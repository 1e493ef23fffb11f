"""Site-wide drawing policy and the providers that hand it to the core."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional, Protocol

from dotenv import load_dotenv


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_groups(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    # Accept both "a|b" and "a,b" separators.
    parts = raw.replace(",", "|").split("|")
    return tuple(part.strip() for part in parts if part.strip())


@dataclass(frozen=True)
class DrawPolicy:
    """Global limits applied to every drawing.

    Attributes
    ----------
    max_winners : int
        Upper bound for ``winner_count`` and for the number of fixed positions.
    min_participants_global : int
        Lowest minimum-participant threshold an organizer may configure.
    lock_delay_minutes : int
        Age after which an open drawing is locked. ``0`` locks at creation.
    excluded_groups : tuple[str, ...]
        Groups whose members never count as participants.
    enabled : bool
        Master switch for creating drawings and running the schedulers.
    """

    max_winners: int = 100
    min_participants_global: int = 1
    lock_delay_minutes: int = 30
    excluded_groups: tuple[str, ...] = field(default_factory=tuple)
    enabled: bool = True
    draw_interval_seconds: int = 60
    lock_interval_seconds: int = 300
    lock_timeout_seconds: float = 30.0
    name_max_length: int = 255
    prize_max_length: int = 1000

    @classmethod
    def from_env(cls) -> "DrawPolicy":
        """Build a policy from ``DRAW_*`` environment variables (``.env`` aware)."""
        load_dotenv()
        defaults = cls()
        return cls(
            max_winners=_env_int("DRAW_MAX_WINNERS", defaults.max_winners),
            min_participants_global=_env_int(
                "DRAW_MIN_PARTICIPANTS_GLOBAL", defaults.min_participants_global
            ),
            lock_delay_minutes=_env_int(
                "DRAW_LOCK_DELAY_MINUTES", defaults.lock_delay_minutes
            ),
            excluded_groups=_env_groups("DRAW_EXCLUDED_GROUPS"),
            enabled=_env_bool("DRAW_ENABLED", defaults.enabled),
            draw_interval_seconds=_env_int(
                "DRAW_INTERVAL_SECONDS", defaults.draw_interval_seconds
            ),
            lock_interval_seconds=_env_int(
                "DRAW_LOCK_INTERVAL_SECONDS", defaults.lock_interval_seconds
            ),
            lock_timeout_seconds=float(
                _env_int("DRAW_LOCK_TIMEOUT_SECONDS", int(defaults.lock_timeout_seconds))
            ),
        )


class PolicyProvider(Protocol):
    def current(self) -> DrawPolicy: ...


class StaticPolicyProvider:
    """Always returns the same policy instance."""

    def __init__(self, policy: Optional[DrawPolicy] = None) -> None:
        self._policy = policy or DrawPolicy()

    def current(self) -> DrawPolicy:
        return self._policy


class EnvPolicyProvider:
    """Re-reads the environment on every call so operators can flip settings live."""

    def current(self) -> DrawPolicy:
        return DrawPolicy.from_env()


__all__ = [
    "DrawPolicy",
    "PolicyProvider",
    "StaticPolicyProvider",
    "EnvPolicyProvider",
]
