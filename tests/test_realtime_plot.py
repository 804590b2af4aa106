from __future__ import annotations

import unittest

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402

from curve_store import CurveSnapshot, Point  # noqa: E402
from plot_config import PlotSettings  # noqa: E402
from plot_errors import RendererError  # noqa: E402
from point_assembler import CurveKey  # noqa: E402
from realtime_plot import MatplotlibRenderer  # noqa: E402
from refresh_scheduler import PlotSnapshot  # noqa: E402


def curve(label: str, index: int, points, legend=None, style=None, y2=False) -> CurveSnapshot:
    return CurveSnapshot(CurveKey.name(label), index, legend, style, y2,
                         tuple(Point(d, v) for d, v in points))


class TestMatplotlibRenderer(unittest.TestCase):
    def tearDown(self) -> None:
        plt.close("all")

    def test_render_queues_until_drained(self) -> None:
        renderer = MatplotlibRenderer(theme="light")
        snap = PlotSnapshot(PlotSettings(), (curve("a", 0, [((1,), (2.0,))]),))
        renderer.render(snap)
        self.assertIsNone(renderer.figure)
        self.assertTrue(renderer.draw_pending())
        self.assertFalse(renderer.draw_pending())
        self.assertEqual(renderer.draw_count, 1)

    def test_lines_legend_and_y2(self) -> None:
        renderer = MatplotlibRenderer()
        settings = PlotSettings(title="Demo", xlabel="t", ylabel="v", y2label="w", yrange=(0.0, 10.0))
        snap = PlotSnapshot(settings, (
            curve("a", 0, [((1,), (2.0,)), ((2,), (3.0,))], legend="A", style="r--"),
            curve("b", 1, [((1,), (100.0,)), ((2,), (200.0,))], legend="B", y2=True),
        ))
        renderer.render(snap)
        renderer.draw_pending()

        ax, ax2 = renderer.figure.axes
        (line_a,) = ax.get_lines()
        (line_b,) = ax2.get_lines()
        self.assertEqual(list(line_a.get_xdata()), [1.0, 2.0])
        self.assertEqual(list(line_b.get_ydata()), [100.0, 200.0])
        self.assertEqual(line_a.get_linestyle(), "--")
        self.assertEqual(ax.get_title(), "Demo")
        self.assertEqual(ax.get_ylim(), (0.0, 10.0))
        self.assertEqual(ax2.get_ylabel(), "w")
        self.assertGreater(ax2.get_ylim()[1], 200.0)
        legend = ax2.get_legend()
        self.assertEqual([t.get_text() for t in legend.get_texts()], ["A", "B"])

    def test_artists_are_reused_across_redraws(self) -> None:
        renderer = MatplotlibRenderer()
        renderer.render(PlotSnapshot(PlotSettings(), (curve("a", 0, [((1,), (1.0,))]),)))
        renderer.draw_pending()
        renderer.render(PlotSnapshot(PlotSettings(), (curve("a", 0, [((1,), (1.0,)), ((2,), (5.0,))]),)))
        renderer.draw_pending()
        (line,) = renderer.figure.axes[0].get_lines()
        self.assertEqual(list(line.get_ydata()), [1.0, 5.0])

    def test_domain_window_pins_x_range(self) -> None:
        renderer = MatplotlibRenderer()
        snap = PlotSnapshot(PlotSettings(), (curve("a", 0, [((8,), (1.0,)), ((10,), (2.0,))]),),
                            domain_window=(5.0, 10.0))
        renderer.render(snap)
        renderer.draw_pending()
        self.assertEqual(renderer.figure.axes[0].get_xlim(), (5.0, 10.0))

    def test_empty_curves_draw(self) -> None:
        renderer = MatplotlibRenderer()
        renderer.render(PlotSnapshot(PlotSettings(), (curve("a", 0, []),)))
        self.assertTrue(renderer.draw_pending())
        (line,) = renderer.figure.axes[0].get_lines()
        self.assertEqual(len(line.get_xdata()), 0)

    def test_colormap_scatter(self) -> None:
        renderer = MatplotlibRenderer()
        settings = PlotSettings(colormap=True)
        snap = PlotSnapshot(settings, (curve("a", 0, [((1,), (2.0, 0.1)), ((2,), (3.0, 0.9))]),))
        renderer.render(snap)
        renderer.draw_pending()
        renderer.render(snap)
        renderer.draw_pending()
        ax = renderer.figure.axes[0]
        self.assertEqual(len(ax.collections), 1)
        self.assertEqual(list(ax.collections[0].get_array()), [0.1, 0.9])

    def test_3d(self) -> None:
        renderer = MatplotlibRenderer(is_3d=True)
        settings = PlotSettings(is_3d=True, zlabel="z")
        snap = PlotSnapshot(settings, (curve("a", 0, [((1, 2), (3.0,)), ((2, 3), (4.0,))]),))
        renderer.render(snap)
        renderer.draw_pending()
        ax = renderer.figure.axes[0]
        self.assertEqual(ax.name, "3d")
        self.assertEqual(ax.get_zlabel(), "z")

    def test_render_after_close_raises(self) -> None:
        renderer = MatplotlibRenderer()
        renderer.render(PlotSnapshot(PlotSettings(), ()))
        renderer.draw_pending()
        plt.close(renderer.figure)
        with self.assertRaises(RendererError):
            renderer.render(PlotSnapshot(PlotSettings(), ()))
        self.assertTrue(renderer.closed)

    def test_draw_failure_surfaces_on_next_render(self) -> None:
        renderer = MatplotlibRenderer()
        renderer.render(PlotSnapshot(PlotSettings(), (curve("a", 0, [((1,), (1.0,))], style="zz"),)))
        self.assertFalse(renderer.draw_pending())
        with self.assertRaises(RendererError) as ctx:
            renderer.render(PlotSnapshot(PlotSettings(), ()))
        self.assertIsInstance(ctx.exception.__cause__, ValueError)

    def test_legend_moves_to_y2_axis(self) -> None:
        renderer = MatplotlibRenderer()
        a = curve("a", 0, [((1,), (1.0,))], legend="A")
        renderer.render(PlotSnapshot(PlotSettings(), (a,)))
        renderer.draw_pending()
        self.assertIsNotNone(renderer.figure.axes[0].get_legend())

        b = curve("b", 1, [((1,), (50.0,))], legend="B", y2=True)
        renderer.render(PlotSnapshot(PlotSettings(), (a, b)))
        renderer.draw_pending()
        ax, ax2 = renderer.figure.axes
        self.assertIsNone(ax.get_legend())
        self.assertEqual([t.get_text() for t in ax2.get_legend().get_texts()], ["A", "B"])


if __name__ == "__main__":
    unittest.main()
