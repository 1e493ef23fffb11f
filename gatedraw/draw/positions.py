"""Helpers for reading fixed winning positions supplied by organizers."""

from __future__ import annotations

from typing import Iterable, Union

PositionsInput = Union[str, Iterable[Union[int, str]], None]


def _parse_token(token: Union[int, str]) -> int:
    if isinstance(token, bool):
        raise TypeError("positions must be integers")
    if isinstance(token, int):
        return token
    if not isinstance(token, str):
        raise TypeError("positions must be integers or numeric strings")
    text = token.strip()
    if not text:
        raise ValueError("empty position in list")
    try:
        return int(text)
    except ValueError as exc:
        raise ValueError(f"'{text}' is not a whole number") from exc


def parse_fixed_positions(value: PositionsInput) -> list[int]:
    """Parse a position list such as ``"8, 18, 28"`` into ``[8, 18, 28]``.

    Parameters
    ----------
    value : str | Iterable[int | str] | None
        Comma separated text or an iterable of integers / numeric strings.

    Returns
    -------
    list[int]
        Positions in the order given. Range, duplicate, and count checks are
        left to :mod:`gatedraw.validation`. ``None`` and blank text give ``[]``.

    Raises
    ------
    ValueError
        If a token is not a whole number.
    """

    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        tokens: list[Union[int, str]] = value.split(",")
    else:
        tokens = list(value)
    return [_parse_token(token) for token in tokens]


def format_positions(positions: Iterable[int]) -> str:
    return ", ".join(f"#{p}" for p in positions)


__all__ = ["parse_fixed_positions", "format_positions"]
