from __future__ import annotations

import io
import unittest

from curve_store import WindowPolicy
from plot_config import PlotConfig, RefreshConfig, RefreshMode
from plot_errors import CurveLimitError, RendererError
from plot_pipeline import PlotPipeline
from point_assembler import CurveKey, EncodingMode
from refresh_scheduler import PlotSnapshot


class RecordingRenderer:
    def __init__(self) -> None:
        self.snapshots: list = []

    def render(self, snapshot: PlotSnapshot) -> None:
        self.snapshots.append(snapshot)


class FailingRenderer:
    def render(self, snapshot: PlotSnapshot) -> None:
        raise RendererError("connection lost")


class TestPlotPipeline(unittest.TestCase):
    def _run(self, text: str, config: PlotConfig = PlotConfig()) -> RecordingRenderer:
        renderer = RecordingRenderer()
        PlotPipeline(config, renderer).run(io.StringIO(text))
        return renderer

    def test_columns_with_line_number_domain(self) -> None:
        renderer = self._run("2 1\n4 4\n6 9\n")
        self.assertEqual(len(renderer.snapshots), 1)
        first, second = renderer.snapshots[0].curves
        self.assertEqual([p.domain for p in first.points], [(1,), (2,), (3,)])
        self.assertEqual([p.values[0] for p in first.points], [2.0, 4.0, 6.0])
        self.assertEqual([p.domain for p in second.points], [(1,), (2,), (3,)])
        self.assertEqual([p.values[0] for p in second.points], [1.0, 4.0, 9.0])

    def test_domain_and_data_id(self) -> None:
        config = PlotConfig(encoding=EncodingMode(domain_enabled=True, curve_id_from_data=True))
        renderer = self._run("0 9 1 20\n", config)
        (curve,) = renderer.snapshots[0].curves
        self.assertEqual(curve.key, CurveKey.name("9"))
        self.assertEqual(len(curve.points), 1)
        self.assertEqual(curve.points[0].domain, (0.0,))
        self.assertEqual(curve.points[0].values, (1.0,))

    def test_trigger_mode_renders_on_replot_only(self) -> None:
        renderer = RecordingRenderer()
        pipeline = PlotPipeline(PlotConfig(refresh=RefreshConfig(RefreshMode.TRIGGER)), renderer)
        for i in range(100):
            pipeline.feed(f"{i} {i * i}\n")
        self.assertEqual(renderer.snapshots, [])
        pipeline.feed("replot\n")
        self.assertEqual(len(renderer.snapshots), 1)
        curves = renderer.snapshots[0].curves
        self.assertEqual(len(curves), 2)
        self.assertTrue(all(len(c.points) == 100 for c in curves))

    def test_bad_lines_are_dropped_and_run_continues(self) -> None:
        with self.assertLogs("plot_pipeline", level="WARNING") as logs:
            renderer = self._run("1\nfoo\n# comment\n\n3\n")
        (curve,) = renderer.snapshots[0].curves
        self.assertEqual([p.domain for p in curve.points], [(1,), (2,)])
        self.assertEqual([p.values[0] for p in curve.points], [1.0, 3.0])
        self.assertIn("line 2 dropped", logs.output[0])

    def test_clear_line_empties_curves(self) -> None:
        renderer = self._run("1 2\nclear\n5\n")
        first, second = renderer.snapshots[0].curves
        self.assertEqual([p.values[0] for p in first.points], [5.0])
        self.assertEqual(second.points, ())

    def test_monotonic_restart_through_pipeline(self) -> None:
        config = PlotConfig(encoding=EncodingMode(domain_enabled=True),
                            window=WindowPolicy(monotonic=True))
        renderer = self._run("1 1\n2 2\n3 3\n0 7\n1 8\n", config)
        (curve,) = renderer.snapshots[0].curves
        self.assertEqual([p.domain[0] for p in curve.points], [0.0, 1.0])

    def test_curve_limit_is_fatal_and_skips_final_render(self) -> None:
        renderer = RecordingRenderer()
        pipeline = PlotPipeline(PlotConfig(max_curves=2), renderer)
        with self.assertRaises(CurveLimitError):
            pipeline.run(io.StringIO("1 2\n1 2 3\n4 5\n"))
        self.assertEqual(renderer.snapshots, [])
        self.assertTrue(pipeline.scheduler.done)

    def test_renderer_failure_terminates_run(self) -> None:
        pipeline = PlotPipeline(PlotConfig(refresh=RefreshConfig(RefreshMode.TRIGGER)), FailingRenderer())
        with self.assertRaises(RendererError):
            pipeline.run(io.StringIO("1\nreplot\n2\n"))
        self.assertEqual(pipeline.lines_read, 2)

    def test_stop_ends_run_without_final_render(self) -> None:
        renderer = RecordingRenderer()
        pipeline = PlotPipeline(PlotConfig(refresh=RefreshConfig(RefreshMode.TRIGGER)), renderer)

        def lines():
            yield "1\n"
            pipeline.stop("test")
            yield "2\n"

        pipeline.run(lines())
        self.assertEqual(renderer.snapshots, [])
        self.assertEqual(pipeline.lines_read, 1)


if __name__ == "__main__":
    unittest.main()
