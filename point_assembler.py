"""
Turns the tokens of one data line into point records.

How a line is read is fixed for the whole run by an ``EncodingMode``:

* ``domain_enabled``     -- the line starts with its domain value(s); otherwise
                            the domain is the 1-based number of the data line.
* ``curve_id_from_data`` -- every value group is preceded by a curve name;
                            otherwise groups map to curves by column position.
* ``is_3d``              -- two domain values per line (needs the domain).
* ``extra_values``       -- values per point beyond the first.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple, Union

from plot_errors import ConfigError, LineParseError

logger = logging.getLogger(__name__)

Number = Union[int, float]


class KeyKind(enum.Enum):
    INDEX = "index"
    NAME = "name"


@dataclass(frozen=True)
class CurveKey:
    """Curve identity: a column index or a name taken from the data."""
    kind: KeyKind
    value: Union[int, str]

    @classmethod
    def index(cls, i: int) -> "CurveKey":
        return cls(KeyKind.INDEX, int(i))

    @classmethod
    def name(cls, s: str) -> "CurveKey":
        return cls(KeyKind.NAME, str(s))

    @property
    def label(self) -> str:
        return str(self.value)

    def __str__(self) -> str:
        if self.kind is KeyKind.INDEX:
            return f"#{self.value}"
        return repr(self.value)


@dataclass(frozen=True)
class EncodingMode:
    domain_enabled: bool = False
    curve_id_from_data: bool = False
    is_3d: bool = False
    extra_values: int = 0

    def __post_init__(self) -> None:
        if self.is_3d and not self.domain_enabled:
            raise ConfigError("3-D plots need the domain in the data (--3d implies --domain)")
        if self.extra_values < 0:
            raise ConfigError(f"extra values per point must be >= 0, got {self.extra_values}")

    @property
    def value_width(self) -> int:
        return 1 + self.extra_values

    @property
    def domain_width(self) -> int:
        return 2 if self.is_3d else 1


@dataclass(frozen=True)
class PointRecord:
    key: CurveKey
    domain: Tuple[Number, ...]
    values: Tuple[float, ...]


def parse_number(token: str) -> float:
    try:
        return float(token)
    except ValueError:
        raise LineParseError(f"not a number: {token!r}") from None


class PointAssembler:
    """Stateful decoder; owns the running data-line counter."""

    def __init__(self, mode: EncodingMode):
        self.mode = mode
        # Number of data lines decoded so far. Serves as the domain when the
        # data carries none.
        self.line_count = 0
        self._decode_groups: Callable[[Sequence[str], int], List[Tuple[CurveKey, Tuple[float, ...]]]]
        if mode.curve_id_from_data:
            self._decode_groups = self._groups_by_id
        else:
            self._decode_groups = self._groups_by_column

    def assemble(self, tokens: Sequence[str]) -> List[PointRecord]:
        """
        Decode one data line. Raises LineParseError if any token that must be
        numeric is not; in that case nothing is consumed and the line counter
        does not move.
        """
        if self.mode.domain_enabled:
            width = self.mode.domain_width
            if len(tokens) < width:
                raise LineParseError(
                    f"expected {width} domain value(s), line has {len(tokens)} token(s)"
                )
            domain: Tuple[Number, ...] = tuple(parse_number(t) for t in tokens[:width])
            start = width
        else:
            domain = (self.line_count + 1,)
            start = 0

        groups = self._decode_groups(tokens, start)
        self.line_count += 1
        return [PointRecord(key, domain, values) for key, values in groups]

    # ---------- Group decoders ----------
    def _groups_by_id(self, tokens: Sequence[str], start: int):
        width = self.mode.value_width
        step = 1 + width
        count = (len(tokens) - start) // step
        groups = []
        for g in range(count):
            at = start + g * step
            key = CurveKey.name(tokens[at])
            values = tuple(parse_number(t) for t in tokens[at + 1:at + step])
            groups.append((key, values))
        self._note_leftover(tokens, start + count * step)
        return groups

    def _groups_by_column(self, tokens: Sequence[str], start: int):
        width = self.mode.value_width
        count = (len(tokens) - start) // width
        groups = []
        for g in range(count):
            at = start + g * width
            values = tuple(parse_number(t) for t in tokens[at:at + width])
            groups.append((CurveKey.index(g), values))
        # every token is a value in this layout, so a partial group must still be numeric
        for t in tokens[start + count * width:]:
            parse_number(t)
        self._note_leftover(tokens, start + count * width)
        return groups

    @staticmethod
    def _note_leftover(tokens: Sequence[str], used: int) -> None:
        if used < len(tokens):
            logger.debug("dropping incomplete trailing group %s", list(tokens[used:]))
