#!/usr/bin/env python3
"""
Realtime matplotlib renderer for feedplot snapshots.

Features
--------
- Thread-safe sink:
    renderer.render(snapshot) may be called from any thread; it only stores
    the latest snapshot. A FuncAnimation timer on the GUI thread drains it and
    redraws, so a slow redraw never stalls the reader.

- One artist per curve, kept across redraws:
    * format strings per curve ('o-', 'r--', ...), default lines with markers
    * curves flagged y2 go to a twin right-hand axis
    * colormap mode: scatter colored by the last value of each point
    * 3-D axes when the domain has two components

- Axis ranges: fixed where configured, otherwise autoscaled with a 5% margin;
  a sliding window pins the x range to the visible domain.

- Window & Theme:
    * window_frac=(0.75, 1.0) sets width=75% of screen, height=100% of screen.
    * theme industrial|dark|light (default industrial).
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Tuple

import matplotlib
import matplotlib.pyplot as plt
import numpy as np
from matplotlib import cycler
from matplotlib.animation import FuncAnimation

from curve_store import CurveSnapshot
from plot_config import PlotSettings, Range
from plot_errors import RendererError
from point_assembler import CurveKey
from refresh_scheduler import PlotSnapshot

logger = logging.getLogger(__name__)

INDUSTRIAL_COLORS = ["#00d1d1", "#ffb347", "#8bdada", "#e06c75", "#98c379", "#c678dd", "#e5c07b", "#61afef"]
DEFAULT_FMT = "o-"


class MatplotlibRenderer:
    def __init__(
        self,
        is_3d: bool = False,
        update_interval_ms: int = 50,
        theme: str = "industrial",
        window_frac: Tuple[float, float] = (0.75, 1.0),
        window_title: str = "feedplot",
    ):
        self._is_3d = bool(is_3d)
        self._update_interval_ms = int(update_interval_ms)
        self._theme = theme
        self._window_frac = window_frac
        self._window_title = window_title

        self._lock = threading.Lock()
        self._pending: Optional[PlotSnapshot] = None
        self._closed = False
        self._close_requested = False
        # Exception from the last failed redraw; raised from the next render().
        self._failure: Optional[Exception] = None
        self.draw_count = 0

        # Matplotlib elements
        self._fig: Optional[plt.Figure] = None
        self._ax: Optional[plt.Axes] = None
        self._ax2: Optional[plt.Axes] = None
        self._ani: Optional[FuncAnimation] = None
        self._artists: Dict[CurveKey, object] = {}
        self._legend_size = 0

    # ---------- Public API ----------
    @property
    def figure(self) -> Optional[plt.Figure]:
        return self._fig

    @property
    def closed(self) -> bool:
        return self._closed

    def render(self, snapshot: PlotSnapshot) -> None:
        """Queue a snapshot for the next redraw (thread-safe)."""
        if self._fig is not None and not plt.fignum_exists(self._fig.number):
            self._closed = True
        if self._failure is not None:
            raise RendererError(f"drawing failed: {self._failure}") from self._failure
        if self._closed:
            raise RendererError("plot window was closed")
        with self._lock:
            self._pending = snapshot

    def close(self) -> None:
        """Ask the GUI thread to close the window on its next timer tick (thread-safe)."""
        self._close_requested = True

    def start(self, block: bool = True) -> None:
        """Open the window and start the redraw timer. If block=False, returns immediately."""
        if self._fig is None:
            self._setup_plot()
        self._ani = FuncAnimation(self._fig, self._on_timer, interval=self._update_interval_ms,
                                  blit=False, cache_frame_data=False)
        self._size_window()
        if block:
            plt.show()
        else:
            # non-blocking start via interactive mode
            plt.ion()
            self._fig.show()

    def draw_pending(self) -> bool:
        """Draw the latest queued snapshot, if any. Must run on the GUI thread."""
        with self._lock:
            snapshot, self._pending = self._pending, None
        if snapshot is None:
            return False
        try:
            if self._fig is None:
                self._setup_plot()
            self._draw(snapshot)
        except Exception as exc:
            logger.error("drawing failed: %s", exc)
            self._failure = exc
            return False
        return True

    # ---------- Window & Theme helpers ----------
    @staticmethod
    def _get_screen_size() -> Tuple[int, int]:
        try:
            import tkinter as tk  # lightweight way to query screen
            root = tk.Tk()
            root.withdraw()
            w = root.winfo_screenwidth()
            h = root.winfo_screenheight()
            root.destroy()
            return int(w), int(h)
        except Exception:
            return 1280, 720

    def _apply_theme(self) -> None:
        theme = (self._theme or "industrial").lower()
        # reset first to avoid style accumulation
        matplotlib.rcdefaults()
        if theme == "industrial":
            matplotlib.rcParams.update({
                "figure.facecolor": "#0c0f12",
                "axes.facecolor": "#0c0f12",
                "axes.edgecolor": "#6a717d",
                "axes.labelcolor": "#cbd3dc",
                "axes.prop_cycle": cycler(color=INDUSTRIAL_COLORS),
                "text.color": "#cbd3dc",
                "xtick.color": "#aab2bd",
                "ytick.color": "#aab2bd",
                "grid.color": "#2a2f36",
                "grid.linestyle": (0, (3, 3)),
                "grid.linewidth": 0.8,
                "axes.grid": True,
                "legend.facecolor": "#0c0f12",
                "legend.edgecolor": "#6a717d",
                "font.size": 12,
            })
        elif theme == "dark":
            plt.style.use("dark_background")

    def _size_window(self) -> None:
        # Resize the GUI window to (width_frac * screen_w, height_frac * screen_h)
        w_screen, h_screen = self._get_screen_size()
        frac_w, frac_h = self._window_frac
        w_px = max(200, int(w_screen * float(frac_w)))
        h_px = max(200, int(h_screen * float(frac_h)))

        win = getattr(self._fig.canvas.manager, "window", None)
        if win is not None and hasattr(win, "wm_geometry"):  # Tk
            win.wm_geometry(f"{w_px}x{h_px}+0+0")
        elif win is not None and hasattr(win, "resize"):  # Qt
            win.resize(w_px, h_px)

        # Also set figure inches as fallback (works across backends)
        dpi = self._fig.get_dpi()
        self._fig.set_size_inches(w_px / dpi, h_px / dpi, forward=True)

    # ---------- Internals ----------
    def _setup_plot(self) -> None:
        self._apply_theme()
        self._fig = plt.figure()
        if self._is_3d:
            self._ax = self._fig.add_subplot(projection="3d")
        else:
            self._ax = self._fig.add_subplot()
        manager = self._fig.canvas.manager
        if manager is not None:
            manager.set_window_title(self._window_title)
        self._fig.canvas.mpl_connect("close_event", self._on_close)

    def _on_close(self, _event) -> None:
        logger.info("plot window closed")
        self._closed = True

    def _on_timer(self, _frame):
        self.draw_pending()
        if (self._close_requested or self._failure is not None) and not self._closed:
            plt.close(self._fig)
        return ()

    def _axes_for(self, curve: CurveSnapshot) -> plt.Axes:
        if not curve.y2 or self._is_3d:
            return self._ax
        if self._ax2 is None:
            self._ax2 = self._ax.twinx()
            self._ax2.patch.set_alpha(0)
            self._ax2.grid(False)  # keep a single grid
        return self._ax2

    def _draw(self, snapshot: PlotSnapshot) -> None:
        settings = snapshot.settings
        columns: List[Tuple[CurveSnapshot, np.ndarray]] = []
        for curve in snapshot.curves:
            data = _columns(curve)
            columns.append((curve, data))
            if settings.colormap:
                self._draw_scatter(curve, data, settings)
            else:
                self._draw_line(curve, data, settings)

        self._apply_labels(settings)
        self._apply_limits(snapshot, columns)
        self._update_legend(snapshot.curves, force=settings.colormap)
        self._fig.canvas.draw_idle()
        self.draw_count += 1

    def _draw_line(self, curve: CurveSnapshot, data: np.ndarray, settings: PlotSettings) -> None:
        line = self._artists.get(curve.key)
        if line is None:
            ax = self._axes_for(curve)
            fmt = curve.style or settings.style or DEFAULT_FMT
            empty: List[List[float]] = [[], [], []] if self._is_3d else [[], []]
            line, = ax.plot(*empty, fmt, lw=1.8, ms=3)
            self._artists[curve.key] = line
        line.set_label(curve.legend if curve.legend else "_nolegend_")
        if self._is_3d:
            line.set_data_3d(data[:, 0], data[:, 1], data[:, 2])
        else:
            line.set_data(data[:, 0], data[:, 1])

    def _draw_scatter(self, curve: CurveSnapshot, data: np.ndarray, settings: PlotSettings) -> None:
        # scatter offsets cannot be updated in 3-D, so collections are rebuilt
        old = self._artists.pop(curve.key, None)
        if old is not None:
            old.remove()
        ax = self._axes_for(curve)
        coords = [data[:, 0], data[:, 1], data[:, 2]] if self._is_3d else [data[:, 0], data[:, 1]]
        label = curve.legend if curve.legend else "_nolegend_"
        self._artists[curve.key] = ax.scatter(*coords, c=data[:, -1], cmap="viridis", s=12, label=label)

    def _apply_labels(self, settings: PlotSettings) -> None:
        ax = self._ax
        if settings.title:
            ax.set_title(settings.title)
        if settings.xlabel:
            ax.set_xlabel(settings.xlabel)
        if settings.ylabel:
            ax.set_ylabel(settings.ylabel)
        if self._is_3d and settings.zlabel:
            ax.set_zlabel(settings.zlabel)
        if self._ax2 is not None and settings.y2label:
            self._ax2.set_ylabel(settings.y2label)

    def _apply_limits(self, snapshot: PlotSnapshot, columns: List[Tuple[CurveSnapshot, np.ndarray]]) -> None:
        settings = snapshot.settings
        primary = [d for c, d in columns if not (c.y2 and not self._is_3d)]
        secondary = [d for c, d in columns if c.y2 and not self._is_3d]
        every = [d for _, d in columns]

        xrange = settings.xrange
        if snapshot.domain_window is not None and xrange == (None, None):
            lo, hi = snapshot.domain_window
            if lo < hi:
                xrange = (lo, hi)
        _set_limits(self._ax.set_xlim, _stack(every, 0), xrange)
        if self._ax2 is not None:
            self._ax2.set_xlim(self._ax.get_xlim())
        if self._is_3d:
            _set_limits(self._ax.set_ylim, _stack(every, 1), settings.yrange)
            _set_limits(self._ax.set_zlim, _stack(every, 2), settings.zrange)
        else:
            _set_limits(self._ax.set_ylim, _stack(primary, 1), settings.yrange)
            if self._ax2 is not None:
                _set_limits(self._ax2.set_ylim, _stack(secondary, 1), settings.y2range)

    def _update_legend(self, curves, force: bool = False) -> None:
        labelled = sum(1 for c in curves if c.legend)
        if labelled == self._legend_size and not (force and labelled):
            return
        self._legend_size = labelled
        handles = [self._artists[c.key] for c in curves if c.legend and c.key in self._artists]
        # twin axes are drawn on top, so the legend lives there when present
        target = self._ax2 if self._ax2 is not None else self._ax
        for ax in (self._ax, self._ax2):
            if ax is not None and ax is not target and ax.get_legend() is not None:
                ax.get_legend().remove()
        target.legend(handles=handles, loc="upper right")


def _columns(curve: CurveSnapshot) -> np.ndarray:
    """Points of a curve as a float array, one row per point: domain..., values..."""
    if not curve.points:
        return np.empty((0, 3))
    return np.array([p.domain + p.values for p in curve.points], dtype=float)


def _stack(arrays: List[np.ndarray], col: int) -> np.ndarray:
    parts = [a[:, col] for a in arrays if a.shape[0] and a.shape[1] > col]
    if not parts:
        return np.empty(0)
    return np.concatenate(parts)


def _add_margin(a: float, b: float, frac: float = 0.05) -> Tuple[float, float]:
    span = (b - a) if (b - a) != 0 else 1.0
    m = span * frac
    return a - m, b + m


def _set_limits(setter, data: np.ndarray, fixed: Range) -> None:
    lo, hi = fixed
    if (lo is None or hi is None) and data.size:
        finite = data[np.isfinite(data)]
        if finite.size:
            auto_lo, auto_hi = _add_margin(float(finite.min()), float(finite.max()))
            lo = auto_lo if lo is None else lo
            hi = auto_hi if hi is None else hi
    if lo is not None or hi is not None:
        setter(lo, hi)
