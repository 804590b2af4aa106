"""Wires the tokenizer, assembler, curve store and scheduler into one run."""
from __future__ import annotations

import logging
import threading
from typing import Iterable, Optional

from curve_store import CurveStore
from line_tokenizer import LineKind, tokenize_line
from plot_config import PlotConfig
from plot_errors import LineParseError
from point_assembler import PointAssembler
from refresh_scheduler import RefreshScheduler, Renderer

logger = logging.getLogger(__name__)


class PlotPipeline:
    """
    One plotting run.

    ``feed`` handles a single line and may be called from any one thread;
    ``run`` consumes a whole line source and renders the final snapshot at
    end of input. ``stop`` may be called from another thread and ends the run
    without a final render.

    CurveLimitError and RendererError propagate out of ``feed``/``run``;
    malformed lines are logged and skipped.
    """

    def __init__(self, config: PlotConfig, renderer: Renderer):
        self.config = config
        self.assembler = PointAssembler(config.encoding)
        self.store = CurveStore(
            max_curves=config.max_curves,
            window=config.window,
            overrides=config.overrides,
        )
        self.scheduler = RefreshScheduler(self.store, renderer, config.refresh, config.settings)
        self.lines_read = 0
        self.lines_dropped = 0
        self._stop = threading.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def feed(self, line: str) -> None:
        if self.scheduler.failure is not None:
            raise self.scheduler.failure
        self.lines_read += 1
        parsed = tokenize_line(line)
        if parsed.kind is LineKind.EMPTY:
            return
        if parsed.kind is LineKind.CLEAR:
            logger.debug("line %d: clear", self.lines_read)
            self.scheduler.clear()
            return
        if parsed.kind is LineKind.REPLOT:
            self.scheduler.replot()
            return
        try:
            records = self.assembler.assemble(parsed.tokens)
            self.store.append_records(records)
        except LineParseError as exc:
            self.lines_dropped += 1
            logger.warning("line %d dropped: %s", self.lines_read, exc)

    def run(self, lines: Iterable[str]) -> None:
        self.scheduler.start()
        try:
            for line in lines:
                if self._stop.is_set():
                    return
                self.feed(line)
        except BaseException:
            self.scheduler.stop()
            raise
        if self._stop.is_set():
            return
        if self.scheduler.failure is not None:
            raise self.scheduler.failure
        logger.info("end of input after %d line(s), %d dropped", self.lines_read, self.lines_dropped)
        self.scheduler.finish()

    def stop(self, reason: Optional[str] = None) -> None:
        if reason:
            logger.info("stopping: %s", reason)
        self._stop.set()
        self.scheduler.stop()
