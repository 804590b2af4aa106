"""
Run configuration: the command-line surface and the objects built from it.

Everything here is fixed at startup. A ``clear`` line in the data only drops
points, it never resets these settings.
"""
from __future__ import annotations

import argparse
import enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from matplotlib import colors as mcolors
from matplotlib.lines import Line2D

from curve_store import DEFAULT_MAX_CURVES, CurveOverrides, WindowPolicy
from plot_errors import ConfigError
from point_assembler import EncodingMode

Range = Tuple[Optional[float], Optional[float]]

DEFAULT_STREAM_PERIOD = 1.0


class RefreshMode(enum.Enum):
    BATCH = "batch"
    PERIODIC = "periodic"
    TRIGGER = "trigger"


@dataclass(frozen=True)
class RefreshConfig:
    mode: RefreshMode = RefreshMode.BATCH
    period: float = 0.0  # seconds, PERIODIC only

    def __post_init__(self) -> None:
        if self.mode is RefreshMode.PERIODIC and self.period <= 0:
            raise ConfigError(f"a periodic refresh needs a positive period, got {self.period}")

    @property
    def streaming(self) -> bool:
        return self.mode is not RefreshMode.BATCH

    @classmethod
    def parse(cls, value: Optional[str]) -> "RefreshConfig":
        """Interpret the --stream argument: absent, 'trigger' or a period in seconds."""
        if value is None:
            return cls(RefreshMode.BATCH)
        if value.strip().lower() == "trigger":
            return cls(RefreshMode.TRIGGER)
        try:
            period = float(value)
        except ValueError:
            raise ConfigError(f"--stream takes a period in seconds or 'trigger', got {value!r}") from None
        if period < 0:
            raise ConfigError(f"--stream period must not be negative, got {period}")
        if period == 0:
            return cls(RefreshMode.TRIGGER)
        return cls(RefreshMode.PERIODIC, period)


@dataclass(frozen=True)
class PlotSettings:
    """Global settings handed to the renderer with every snapshot."""
    title: Optional[str] = None
    xlabel: Optional[str] = None
    ylabel: Optional[str] = None
    y2label: Optional[str] = None
    zlabel: Optional[str] = None
    xrange: Range = (None, None)
    yrange: Range = (None, None)
    y2range: Range = (None, None)
    zrange: Range = (None, None)
    is_3d: bool = False
    style: Optional[str] = None  # default matplotlib format string
    colormap: bool = False  # last value of each point is a color


@dataclass(frozen=True)
class PlotConfig:
    encoding: EncodingMode = field(default_factory=EncodingMode)
    window: WindowPolicy = field(default_factory=WindowPolicy)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)
    max_curves: int = DEFAULT_MAX_CURVES
    overrides: CurveOverrides = field(default_factory=CurveOverrides)
    settings: PlotSettings = field(default_factory=PlotSettings)

    def __post_init__(self) -> None:
        if self.window.width is not None and self.encoding.is_3d:
            raise ConfigError("a sliding window (--xlen) needs a 1-D domain, it cannot be used with --3d")
        if self.max_curves < 1:
            raise ConfigError(f"--maxcurves must be at least 1, got {self.max_curves}")
        if self.settings.is_3d != self.encoding.is_3d:
            raise ConfigError("plot settings and data encoding disagree about 3-D")
        if self.settings.colormap and self.encoding.extra_values < 1:
            raise ConfigError("a colormap needs at least one extra value per point")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="feedplot",
        description="Plot numeric data streamed line by line from files, stdin, a serial port or TCP.",
    )
    parser.add_argument("files", nargs="*", help="Input files, read in order ('-' is stdin). Default: stdin.")

    data = parser.add_argument_group("data layout")
    data.add_argument("--domain", action="store_true", help="First value on each line is the domain (x).")
    data.add_argument("--dataid", action="store_true", help="Each value is preceded by the ID of its curve.")
    data.add_argument("--3d", dest="is_3d", action="store_true", help="Two domain values per line (implies --domain).")
    data.add_argument("--extracols", type=int, default=0, metavar="N", help="Extra values per point (default 0).")
    data.add_argument("--colormap", action="store_true", help="One more value per point, used as the point color.")
    data.add_argument("--maxcurves", type=int, default=DEFAULT_MAX_CURVES, help="Maximum number of curves.")

    window = parser.add_argument_group("history and refresh")
    window.add_argument("--monotonic", action="store_true", help="A decreasing domain clears that curve.")
    window.add_argument("--xlen", type=float, default=None, metavar="W", help="Keep only the last W domain units.")
    window.add_argument("--stream", nargs="?", const=str(DEFAULT_STREAM_PERIOD), default=None,
                        metavar="PERIOD|trigger",
                        help="Replot while reading: every PERIOD seconds (default 1) or only on 'replot' lines.")

    curves = parser.add_argument_group("curves")
    curves.add_argument("--legend", nargs=2, action="append", default=[], metavar=("KEY", "TEXT"),
                        help="Legend text for a curve.")
    curves.add_argument("--autolegend", action="store_true", help="Use the curve ID as legend.")
    curves.add_argument("--style", nargs=2, action="append", default=[], metavar=("KEY", "FMT"),
                        help="Matplotlib format string for a curve, e.g. 'r--'.")
    curves.add_argument("--styleall", default=None, metavar="FMT", help="Format string for every curve.")
    curves.add_argument("--y2", action="append", default=[], metavar="KEY", help="Plot a curve on the right axis.")
    curves.add_argument("--lines", action="store_true", help="Draw lines.")
    curves.add_argument("--points", action="store_true", help="Draw points.")

    axes = parser.add_argument_group("axes")
    axes.add_argument("--title", default=None)
    for name in ("x", "y", "y2", "z"):
        axes.add_argument(f"--{name}label", default=None)
        axes.add_argument(f"--{name}min", type=float, default=None)
        axes.add_argument(f"--{name}max", type=float, default=None)

    sources = parser.add_argument_group("live sources")
    sources.add_argument("--serial", default=None, metavar="DEVICE",
                         help="Read from a serial port ('auto' to detect one).")
    sources.add_argument("--baud", type=int, default=115200, help="Serial baud rate (default 115200).")
    sources.add_argument("--tcp", type=int, default=None, metavar="PORT",
                         help="Accept one client on 127.0.0.1:PORT and read its lines.")

    ui = parser.add_argument_group("window")
    ui.add_argument("--fps", type=float, default=20.0, help="Window redraw rate (default 20).")
    ui.add_argument("--theme", choices=["industrial", "dark", "light"], default="industrial", help="UI theme")
    ui.add_argument("--window-frac", type=str, default="0.75x1.0",
                    help="Window size as WIDTHxHEIGHT fractions of screen, e.g., 0.75x1.0")

    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    parser.add_argument("--log-file", default=None, help="Also write the log to this file.")
    return parser


def _format_string(lines: bool, points: bool) -> Optional[str]:
    if lines and not points:
        return "-"
    if points and not lines:
        return "o"
    if points and lines:
        return "o-"
    return None


def check_format_string(fmt: str) -> str:
    """
    Validate a matplotlib format string such as 'ro--' or 'C1:' the way
    Axes.plot reads it. Raises ConfigError on anything plot() would reject.
    """
    if mcolors.is_color_like(fmt):
        return fmt
    i = 0
    while i < len(fmt):
        if fmt[i:i + 2] in Line2D.lineStyles:
            i += 2
        elif fmt[i] == "C" and fmt[i + 1:i + 2].isdigit():
            i += 2
            while fmt[i:i + 1].isdigit():
                i += 1
        elif fmt[i] in Line2D.lineStyles or fmt[i] in Line2D.markers or fmt[i] in mcolors.BASE_COLORS:
            i += 1
        else:
            raise ConfigError(f"{fmt!r} is not a valid format string (unrecognized character {fmt[i]!r})")
    return fmt


def _pairs(pairs: List[List[str]]) -> dict:
    return {key: text for key, text in pairs}


def config_from_args(args: argparse.Namespace) -> PlotConfig:
    """Build and validate a PlotConfig. Raises ConfigError on bad combinations."""
    is_3d = bool(args.is_3d)
    extra = int(args.extracols) + (1 if args.colormap else 0)
    encoding = EncodingMode(
        domain_enabled=bool(args.domain) or is_3d,
        curve_id_from_data=bool(args.dataid),
        is_3d=is_3d,
        extra_values=extra,
    )
    window = WindowPolicy(monotonic=bool(args.monotonic), width=args.xlen)
    for fmt in [f for _, f in args.style] + ([args.styleall] if args.styleall else []):
        check_format_string(fmt)
    overrides = CurveOverrides(
        legends=_pairs(args.legend),
        styles=_pairs(args.style),
        style_all=args.styleall,
        y2=frozenset(args.y2),
        autolegend=bool(args.autolegend),
    )
    settings = PlotSettings(
        title=args.title,
        xlabel=args.xlabel,
        ylabel=args.ylabel,
        y2label=args.y2label,
        zlabel=args.zlabel,
        xrange=(args.xmin, args.xmax),
        yrange=(args.ymin, args.ymax),
        y2range=(args.y2min, args.y2max),
        zrange=(args.zmin, args.zmax),
        is_3d=is_3d,
        style=_format_string(args.lines, args.points),
        colormap=bool(args.colormap),
    )
    if is_3d and args.y2:
        raise ConfigError("--y2 has no meaning for 3-D plots")
    return PlotConfig(
        encoding=encoding,
        window=window,
        refresh=RefreshConfig.parse(args.stream),
        max_curves=int(args.maxcurves),
        overrides=overrides,
        settings=settings,
    )


def parse_window_frac(text: str) -> Tuple[float, float]:
    """'0.75x1.0' -> (0.75, 1.0); falls back to (0.75, 1.0) on bad input."""
    try:
        w_str, h_str = text.lower().replace(" ", "").split("x", 1)
        return float(w_str), float(h_str)
    except ValueError:
        return 0.75, 1.0
