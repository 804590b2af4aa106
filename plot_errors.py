"""Exceptions raised by the feedplot engine."""
from __future__ import annotations


class FeedPlotError(Exception):
    """Base class for every error raised by feedplot."""


class ConfigError(FeedPlotError):
    """Incompatible or invalid configuration. Fatal, raised before ingestion."""


class CurveLimitError(FeedPlotError):
    """The number of distinct curves went over the configured maximum."""

    def __init__(self, limit: int, key: object):
        super().__init__(
            f"Curve limit reached: tried to create curve {key} but --maxcurves is {limit}. "
            "Raise --maxcurves if the input really has this many curves."
        )
        self.limit = limit
        self.key = key


class LineParseError(FeedPlotError):
    """A single input line could not be decoded. The line is dropped."""


class PointArityError(LineParseError):
    """A point's value tuple does not match the arity of its curve."""


class RendererError(FeedPlotError):
    """The renderer failed or went away. Terminates the run."""
