"""
Curve storage with the sliding-window policy.

All mutation and snapshot methods take the store lock for exactly one call,
so a reader thread appending points and a timer thread taking snapshots never
see a half-applied line.
"""
from __future__ import annotations

import logging
import math
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from plot_errors import ConfigError, CurveLimitError, PointArityError
from point_assembler import CurveKey, Number, PointRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_CURVES = 100


@dataclass(frozen=True)
class Point:
    domain: Tuple[Number, ...]
    values: Tuple[float, ...]


@dataclass(frozen=True)
class WindowPolicy:
    """
    Retention policy applied per curve on every append.

    monotonic: a domain smaller than the curve's newest one drops the
               curve's history before the new point goes in.
    width:     keep only points with domain >= newest - width. Setting a
               width turns monotonic on.
    """
    monotonic: bool = False
    width: Optional[float] = None

    def __post_init__(self) -> None:
        if self.width is not None:
            if not (self.width > 0) or math.isinf(self.width):
                raise ConfigError(f"window width must be a positive finite number, got {self.width}")
            object.__setattr__(self, "monotonic", True)


@dataclass(frozen=True)
class CurveOverrides:
    """Per-curve presentation settings, looked up by key label."""
    legends: Mapping[str, str] = field(default_factory=dict)
    styles: Mapping[str, str] = field(default_factory=dict)
    style_all: Optional[str] = None
    y2: FrozenSet[str] = frozenset()
    autolegend: bool = False

    def legend_for(self, key: CurveKey) -> Optional[str]:
        legend = self.legends.get(key.label)
        if legend is None and self.autolegend:
            legend = key.label
        return legend

    def style_for(self, key: CurveKey) -> Optional[str]:
        return self.styles.get(key.label, self.style_all)


class Curve:
    def __init__(self, key: CurveKey, index: int, legend: Optional[str] = None,
                 style: Optional[str] = None, y2: bool = False):
        self.key = key
        self.index = index
        self.legend = legend
        self.style = style
        self.y2 = y2
        self.points: Deque[Point] = deque()
        # Fixed by the first point ever appended; survives clear().
        self.arity: Optional[int] = None

    def __len__(self) -> int:
        return len(self.points)

    def __repr__(self) -> str:
        return f"Curve({self.key}, index={self.index}, points={len(self.points)})"

    def add(self, point: Point, window: WindowPolicy) -> None:
        if window.monotonic and self.points and point.domain[0] < self.points[-1].domain[0]:
            logger.debug("curve %s went back from %s to %s, dropping %d point(s)",
                         self.key, self.points[-1].domain[0], point.domain[0], len(self.points))
            self.points.clear()
        if self.arity is None:
            self.arity = len(point.values)
        self.points.append(point)
        if window.width is not None:
            cutoff = point.domain[0] - window.width
            while self.points[0].domain[0] < cutoff:
                self.points.popleft()


@dataclass(frozen=True)
class CurveSnapshot:
    key: CurveKey
    index: int
    legend: Optional[str]
    style: Optional[str]
    y2: bool
    points: Tuple[Point, ...]


class CurveStore:
    def __init__(
        self,
        max_curves: int = DEFAULT_MAX_CURVES,
        window: Optional[WindowPolicy] = None,
        overrides: Optional[CurveOverrides] = None,
    ):
        if max_curves < 1:
            raise ConfigError(f"the maximum curve count must be at least 1, got {max_curves}")
        self.max_curves = int(max_curves)
        self.window = window or WindowPolicy()
        self.overrides = overrides or CurveOverrides()
        # dicts keep insertion order, which is the creation order
        self._curves: Dict[CurveKey, Curve] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._curves)

    def keys(self) -> List[CurveKey]:
        with self._lock:
            return list(self._curves)

    # ---------- Public API ----------
    def ensure_curve(self, key: CurveKey) -> Curve:
        with self._lock:
            return self._ensure(key)

    def append(self, key: CurveKey, domain: Tuple[Number, ...], values: Tuple[float, ...]) -> None:
        self.append_records([PointRecord(key, tuple(domain), tuple(values))])

    def append_records(self, records: Iterable[PointRecord]) -> None:
        """
        Append all points decoded from one line. Limits and arities are checked
        for the whole batch first; on error nothing is stored.
        """
        records = list(records)
        with self._lock:
            self._check(records)
            for rec in records:
                self._ensure(rec.key).add(Point(rec.domain, rec.values), self.window)

    def clear(self) -> None:
        """Drop every point. Curves, their order and their styles stay."""
        with self._lock:
            for curve in self._curves.values():
                curve.points.clear()

    def snapshot(self) -> Tuple[CurveSnapshot, ...]:
        with self._lock:
            return tuple(
                CurveSnapshot(c.key, c.index, c.legend, c.style, c.y2, tuple(c.points))
                for c in self._curves.values()
            )

    # ---------- Internals ----------
    def _ensure(self, key: CurveKey) -> Curve:
        curve = self._curves.get(key)
        if curve is None:
            if len(self._curves) >= self.max_curves:
                raise CurveLimitError(self.max_curves, key)
            ov = self.overrides
            curve = Curve(key, len(self._curves), legend=ov.legend_for(key),
                          style=ov.style_for(key), y2=key.label in ov.y2)
            self._curves[key] = curve
            logger.info("new curve %s", key)
        return curve

    def _check(self, records: List[PointRecord]) -> None:
        arities: Dict[CurveKey, int] = {}
        new_keys = 0
        for rec in records:
            expected = arities.get(rec.key)
            if expected is None:
                curve = self._curves.get(rec.key)
                if curve is None:
                    new_keys += 1
                    if len(self._curves) + new_keys > self.max_curves:
                        raise CurveLimitError(self.max_curves, rec.key)
                elif curve.arity is not None:
                    expected = curve.arity
            if expected is None:
                arities[rec.key] = len(rec.values)
            elif expected != len(rec.values):
                raise PointArityError(
                    f"curve {rec.key} holds {expected} value(s) per point, got {len(rec.values)}"
                )


def visible_domain(curves: Iterable[CurveSnapshot], window: WindowPolicy) -> Optional[Tuple[float, float]]:
    """Domain range a sliding window currently shows, or None without a window."""
    if window.width is None:
        return None
    newest = [c.points[-1].domain[0] for c in curves if c.points]
    if not newest:
        return None
    hi = max(newest)
    return (hi - window.width, hi)
