#!/usr/bin/env python3
# feedplot command line entry point
# Requires matplotlib, numpy and pyserial

import logging
import sys
import threading
from typing import Iterable, List, Optional

from line_sources import iter_file_lines, iter_serial_lines, iter_stdin_lines, iter_tcp_lines, list_serial_ports
from logging_config import setup_logging
from plot_config import build_parser, config_from_args, parse_window_frac
from plot_errors import ConfigError, FeedPlotError
from plot_pipeline import PlotPipeline
from realtime_plot import MatplotlibRenderer

logger = logging.getLogger(__name__)


def open_lines(args) -> Iterable[str]:
    if args.serial:
        if args.serial == "auto":
            for dev, desc in list_serial_ports():
                logger.info("serial port available: %s -- %s", dev, desc)
        return iter_serial_lines(args.serial, baud=args.baud)
    if args.tcp is not None:
        return iter_tcp_lines(args.tcp)
    if args.files:
        return iter_file_lines(args.files)
    return iter_stdin_lines()


def run_batch(pipeline: PlotPipeline, renderer: MatplotlibRenderer, lines: Iterable[str]) -> int:
    """Read everything, then show the one plot."""
    try:
        pipeline.run(lines)
    except FeedPlotError as e:
        logger.error("%s", e)
        return 1
    renderer.start(block=True)
    return 0


def run_streaming(pipeline: PlotPipeline, renderer: MatplotlibRenderer, lines: Iterable[str]) -> int:
    """
    Read on a background thread while the GUI thread redraws. Closing the
    window stops the run; a fatal error on the reader side closes the window.
    """
    failure: List[BaseException] = []

    def _reader() -> None:
        try:
            pipeline.run(lines)
        except (FeedPlotError, OSError) as e:
            if not pipeline.stopped:
                logger.error("%s", e)
                failure.append(e)
                renderer.close()

    reader = threading.Thread(target=_reader, name="feedplot-reader", daemon=True)
    reader.start()
    renderer.start(block=True)
    # the reader may be blocked on its input; it is a daemon and dies with us
    pipeline.stop("plot window closed")
    return 1 if failure else 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    if args.serial and args.tcp is not None:
        parser.error("--serial and --tcp are mutually exclusive")
    if (args.serial or args.tcp is not None) and args.files:
        parser.error("input files cannot be combined with --serial or --tcp")
    try:
        config = config_from_args(args)
    except ConfigError as e:
        parser.error(str(e))

    renderer = MatplotlibRenderer(
        is_3d=config.settings.is_3d,
        update_interval_ms=int(max(1.0, 1000.0 / float(args.fps))),
        theme=args.theme,
        window_frac=parse_window_frac(args.window_frac),
    )
    pipeline = PlotPipeline(config, renderer)
    try:
        lines = open_lines(args)
        if config.refresh.streaming:
            return run_streaming(pipeline, renderer, lines)
        return run_batch(pipeline, renderer, lines)
    except KeyboardInterrupt:
        pipeline.stop("interrupted")
        return 0
    except OSError as e:
        logger.error("cannot read input: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
