"""Splits raw input lines into tokens and recognizes the control lines."""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Tuple


class LineKind(enum.Enum):
    DATA = "data"
    CLEAR = "clear"
    REPLOT = "replot"
    EMPTY = "empty"  # blank line or comment


_SENTINELS = {
    "clear": LineKind.CLEAR,
    "replot": LineKind.REPLOT,
}


@dataclass(frozen=True)
class TokenizedLine:
    kind: LineKind
    tokens: Tuple[str, ...] = ()


def tokenize_line(line: str) -> TokenizedLine:
    """
    Classify one line of input.

    Data lines are split on any run of whitespace. A line holding only
    ``clear`` or ``replot`` is a command. Blank lines and ``#`` comments
    come back as EMPTY.
    """
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return TokenizedLine(LineKind.EMPTY)
    kind = _SENTINELS.get(stripped)
    if kind is not None:
        return TokenizedLine(kind)
    return TokenizedLine(LineKind.DATA, tuple(stripped.split()))
