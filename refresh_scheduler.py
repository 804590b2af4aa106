"""
Decides when the curve store is handed to the renderer.

Modes:
    BATCH    -- one render once all input has been read.
    PERIODIC -- a timer thread renders every ``period`` seconds; ``replot``
                lines render immediately as well.
    TRIGGER  -- renders only on ``replot`` lines and at end of input.
"""
from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol, Tuple

from curve_store import CurveSnapshot, CurveStore, visible_domain
from plot_config import PlotSettings, RefreshConfig, RefreshMode
from plot_errors import RendererError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlotSnapshot:
    settings: PlotSettings
    curves: Tuple[CurveSnapshot, ...]
    # (lo, hi) of the sliding window, when one is configured
    domain_window: Optional[Tuple[float, float]] = None


class Renderer(Protocol):
    def render(self, snapshot: PlotSnapshot) -> None:
        ...


class SchedulerState(enum.Enum):
    IDLE = "idle"
    WAITING_TIMER = "waiting_timer"
    WAITING_TRIGGER = "waiting_trigger"


class PeriodicTicker:
    """Daemon thread calling ``callback`` every ``period`` seconds until stopped
    or until the callback returns False."""

    def __init__(self, period: float, callback: Callable[[], bool]):
        self.period = float(period)
        self.callback = callback
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._loop, name="feedplot-ticker", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join()

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def _loop(self) -> None:
        while not self._stop.wait(self.period):
            if not self.callback():
                break


class RefreshScheduler:
    def __init__(
        self,
        store: CurveStore,
        renderer: Renderer,
        refresh: Optional[RefreshConfig] = None,
        settings: Optional[PlotSettings] = None,
    ):
        self.store = store
        self.renderer = renderer
        self.refresh = refresh or RefreshConfig()
        self.settings = settings or PlotSettings()
        self.render_count = 0
        # Set when the timer thread hit a renderer failure; re-raised on the reader side.
        self.failure: Optional[RendererError] = None

        if self.refresh.mode is RefreshMode.PERIODIC:
            self.state = SchedulerState.WAITING_TIMER
        elif self.refresh.mode is RefreshMode.TRIGGER:
            self.state = SchedulerState.WAITING_TRIGGER
        else:
            self.state = SchedulerState.IDLE
        self._done = False
        self._ticker: Optional[PeriodicTicker] = None
        self._render_lock = threading.Lock()

    @property
    def done(self) -> bool:
        return self._done

    # ---------- Public API ----------
    def start(self) -> None:
        """Arm the timer in periodic mode. No-op otherwise."""
        if self.state is SchedulerState.WAITING_TIMER and self._ticker is None:
            self._ticker = PeriodicTicker(self.refresh.period, self._on_timer)
            self._ticker.start()

    def tick(self) -> None:
        if self.state is SchedulerState.WAITING_TIMER:
            self._emit()

    def replot(self) -> None:
        if self.state in (SchedulerState.WAITING_TIMER, SchedulerState.WAITING_TRIGGER):
            self._emit()
        else:
            logger.debug("'replot' ignored in state %s", self.state.value)

    def clear(self) -> None:
        self.store.clear()

    def finish(self) -> None:
        """End of input: one last render, then stop."""
        if self._done:
            return
        self._halt()
        self._emit()

    def stop(self) -> None:
        """External stop: abandon the pending tick without rendering."""
        self._halt()

    # ---------- Internals ----------
    def _halt(self) -> None:
        self._done = True
        self.state = SchedulerState.IDLE
        if self._ticker is not None:
            self._ticker.stop()

    def _on_timer(self) -> bool:
        try:
            self.tick()
        except RendererError as exc:
            logger.error("renderer failed during periodic refresh: %s", exc)
            self.failure = exc
            self._halt()
            return False
        return not self._done

    def _emit(self) -> None:
        with self._render_lock:
            curves = self.store.snapshot()
            snapshot = PlotSnapshot(self.settings, curves, visible_domain(curves, self.store.window))
            try:
                self.renderer.render(snapshot)
            except RendererError:
                raise
            except Exception as exc:
                raise RendererError(f"renderer failed: {exc}") from exc
            self.render_count += 1
