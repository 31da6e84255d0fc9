from __future__ import annotations

import unittest

import numpy as np

from studio_core.buffer import PixelBuffer
from studio_core.config import EditorConfig
from studio_core.editor import MaskEditor, Tool
from studio_core.errors import ImageEditError
from helpers import paint, solid

RED = (200, 0, 0, 255)
BLUE = (0, 0, 200, 255)


class ViewTransformTests(unittest.TestCase):
    def test_pan_and_zoom_do_not_touch_pixels_or_history(self) -> None:
        ed = MaskEditor(solid(4, 4, RED))
        before = ed.buffer
        ed.pan(10, -5)
        ed.zoom(2.0)
        self.assertIs(ed.buffer, before)
        self.assertEqual(len(ed.history), 1)
        self.assertEqual(ed.tool.pan_offset, (10.0, -5.0))
        self.assertEqual(ed.tool.zoom_scale, 2.0)

    def test_zoom_is_clamped(self) -> None:
        ed = MaskEditor(solid(2, 2))
        ed.zoom(100.0)
        self.assertEqual(ed.tool.zoom_scale, 5.0)
        ed.zoom(0.0001)
        self.assertAlmostEqual(ed.tool.zoom_scale, 0.1)
        with self.assertRaises(ValueError):
            ed.zoom(0)

    def test_zoom_around_anchor_keeps_point_fixed(self) -> None:
        ed = MaskEditor(solid(10, 10))
        ed.pan(30, 40)
        anchor = (55.0, 62.0)
        before = ed.screen_to_buffer(anchor)
        ed.zoom(2.0, anchor=anchor)
        after = ed.screen_to_buffer(anchor)
        self.assertAlmostEqual(before[0], after[0])
        self.assertAlmostEqual(before[1], after[1])

    def test_screen_buffer_round_trip(self) -> None:
        ed = MaskEditor(solid(10, 10))
        ed.pan(12, 8)
        ed.zoom(2.5)
        self.assertEqual(ed.screen_to_buffer((12 + 2.5 * 4, 8 + 2.5 * 3)), (4.0, 3.0))
        self.assertEqual(ed.buffer_to_screen((4.0, 3.0)), (22.0, 15.5))

    def test_tool_setters_clamp(self) -> None:
        ed = MaskEditor(solid(2, 2))
        ed.set_brush_diameter(0.2)
        self.assertEqual(ed.tool.brush_diameter, 1.0)
        ed.set_tolerance(999)
        self.assertEqual(ed.tool.tolerance, 255)
        ed.set_tool(Tool.MAGIC_WAND)
        self.assertEqual(ed.tool.active_tool, Tool.MAGIC_WAND)


class EraseStrokeTests(unittest.TestCase):
    def test_single_point_circular_mask(self) -> None:
        ed = MaskEditor(solid(9, 9, RED))
        self.assertTrue(ed.erase_stroke([(4.5, 4.5)], diameter=4))
        alpha = ed.buffer.alpha
        ys, xs = np.mgrid[0:9, 0:9]
        inside = (xs - 4) ** 2 + (ys - 4) ** 2 <= 4
        self.assertTrue(np.all(alpha[inside] == 0))
        self.assertTrue(np.all(alpha[~inside] == 255))

    def test_stroke_joins_points_and_commits_once(self) -> None:
        ed = MaskEditor(solid(10, 5, RED))
        self.assertTrue(ed.erase_stroke([(0.5, 2.5), (9.5, 2.5)], diameter=1))
        self.assertEqual(len(ed.history), 2)
        self.assertTrue(np.all(ed.buffer.alpha[2] == 0))
        self.assertTrue(np.all(ed.buffer.alpha[[0, 1, 3, 4]] == 255))

    def test_stroke_never_changes_rgb(self) -> None:
        src = solid(6, 6, RED)
        ed = MaskEditor(src)
        ed.erase_stroke([(1, 1), (4, 4)], diameter=3)
        self.assertTrue(np.array_equal(ed.buffer.rgb, src.rgb))

    def test_screen_points_go_through_inverse_view(self) -> None:
        ed = MaskEditor(solid(8, 8, RED))
        ed.pan(100, 50)
        ed.zoom(2.0)
        ed.erase_stroke([(100 + 2 * 5 + 1, 50 + 2 * 6 + 1)], diameter=1, screen=True)
        self.assertEqual(ed.buffer.get_pixel(5, 6)[3], 0)
        self.assertEqual(int(np.count_nonzero(ed.buffer.alpha == 0)), 1)

    def test_click_at_drawn_pixel_centre_erases_that_pixel(self) -> None:
        ed = MaskEditor(solid(10, 10, RED))
        ed.zoom(4.0)
        # pixel (3, 4) is drawn over screen [12, 16) x [16, 20)
        self.assertEqual(ed.screen_to_buffer((14, 18)), (3.5, 4.5))
        self.assertTrue(ed.erase_stroke([(14, 18)], diameter=1, screen=True))
        self.assertEqual(ed.buffer.get_pixel(3, 4)[3], 0)
        self.assertEqual(int(np.count_nonzero(ed.buffer.alpha == 0)), 1)

    def test_brush_is_centred_on_the_clicked_pixel(self) -> None:
        ed = MaskEditor(solid(10, 10, RED))
        ed.zoom(4.0)
        self.assertTrue(ed.erase_stroke([(14, 18)], diameter=3, screen=True))
        alpha = ed.buffer.alpha
        self.assertTrue(np.all(alpha[3:6, 2:5] == 0))
        self.assertEqual(int(np.count_nonzero(alpha == 0)), 9)

    def test_interactive_stroke_previews_then_commits(self) -> None:
        ed = MaskEditor(solid(6, 6, RED))
        ed.begin_stroke((1.5, 1.5), diameter=1)
        ed.extend_stroke((1.5, 4.5))
        self.assertTrue(ed.stroke_active)
        self.assertEqual(ed.buffer.get_pixel(1, 3)[3], 0)
        self.assertEqual(len(ed.history), 1)
        self.assertTrue(ed.end_stroke())
        self.assertFalse(ed.stroke_active)
        self.assertEqual(len(ed.history), 2)

    def test_stroke_without_effect_is_not_committed(self) -> None:
        ed = MaskEditor(solid(4, 4, (0, 0, 0, 0)))
        self.assertFalse(ed.erase_stroke([(1, 1), (2, 2)], diameter=3))
        self.assertFalse(ed.erase_stroke([(50, 50)], diameter=3))
        self.assertFalse(ed.erase_stroke([]))
        self.assertEqual(len(ed.history), 1)


class MagicWandTests(unittest.TestCase):
    def _pattern(self) -> PixelBuffer:
        buf = solid(6, 4, BLUE)
        paint(buf, 0, 0, 1, 1, RED)        # component A
        paint(buf, 4, 2, 5, 3, RED)        # component B, same colour, disconnected
        paint(buf, 2, 0, 2, 0, (201, 0, 0, 255))  # near-red touching A
        return buf

    def test_tolerance_zero_erases_exact_component_only(self) -> None:
        ed = MaskEditor(self._pattern())
        self.assertTrue(ed.magic_wand_fill((0, 0), tolerance=0))
        expected = np.zeros((4, 6), dtype=bool)
        expected[0:2, 0:2] = True
        self.assertTrue(np.array_equal(ed.buffer.alpha == 0, expected))

    def test_tolerance_includes_near_colours(self) -> None:
        ed = MaskEditor(self._pattern())
        ed.magic_wand_fill((0, 0), tolerance=1)
        self.assertEqual(ed.buffer.get_pixel(2, 0)[3], 0)
        self.assertEqual(ed.buffer.get_pixel(4, 2)[3], 255)

    def test_default_tolerance_comes_from_tool_state(self) -> None:
        ed = MaskEditor(self._pattern(), EditorConfig(tolerance=0))
        ed.magic_wand_fill((0, 0))
        self.assertEqual(ed.buffer.get_pixel(2, 0)[3], 255)

    def test_transparent_seed_is_noop(self) -> None:
        buf = self._pattern()
        buf.data[0, 0, 3] = 0
        ed = MaskEditor(buf)
        self.assertFalse(ed.magic_wand_fill((0, 0), tolerance=50))
        self.assertFalse(ed.magic_wand_fill((-1, 0), tolerance=50))
        self.assertEqual(len(ed.history), 1)

    def test_only_lowers_alpha(self) -> None:
        buf = self._pattern()
        buf.data[1, 1, 3] = 90
        ed = MaskEditor(buf)
        ed.magic_wand_fill((3, 3), tolerance=0)
        changed = ed.buffer.alpha != buf.alpha
        self.assertTrue(np.all(ed.buffer.alpha[changed] == 0))
        self.assertEqual(ed.buffer.get_pixel(1, 1)[3], 90)


class AutoPolishTests(unittest.TestCase):
    def _edge_image(self) -> PixelBuffer:
        buf = solid(5, 5, (10, 10, 10, 255))
        paint(buf, 0, 0, 0, 4, (255, 255, 255, 0))
        paint(buf, 1, 0, 1, 4, (250, 250, 250, 255))
        return buf

    def test_erases_near_white_edge_and_softens(self) -> None:
        ed = MaskEditor(self._edge_image())
        self.assertTrue(ed.auto_polish())
        alpha = ed.buffer.alpha
        self.assertTrue(np.all(alpha[:, 1] == 0))
        self.assertTrue(np.all(alpha[:, 2] == 170))
        self.assertTrue(np.all(alpha[:, 3:] == 255))
        self.assertEqual(len(ed.history), 2)

    def test_no_edges_means_no_commit(self) -> None:
        ed = MaskEditor(solid(4, 4, RED))
        self.assertFalse(ed.auto_polish())
        self.assertEqual(len(ed.history), 1)

    def test_slice_size_does_not_change_result(self) -> None:
        rng = np.random.default_rng(3)
        arr = rng.integers(0, 255, size=(17, 13, 4), dtype=np.uint8, endpoint=True)
        arr[..., 3] = np.where(arr[..., 3] > 100, 255, 0)
        src = PixelBuffer(arr)
        big = MaskEditor(src, EditorConfig(slice_size=10_000))
        small = MaskEditor(src, EditorConfig(slice_size=13))
        tiny = MaskEditor(src, EditorConfig(slice_size=1))
        big.auto_polish()
        small.auto_polish()
        tiny.auto_polish()
        self.assertTrue(big.buffer.same_pixels(small.buffer))
        self.assertTrue(big.buffer.same_pixels(tiny.buffer))


class HistoryTests(unittest.TestCase):
    def test_undo_redo_identity(self) -> None:
        ed = MaskEditor(solid(6, 6, RED))
        ed.erase_stroke([(2.5, 2.5)], diameter=3)
        after = ed.export_buffer()
        self.assertTrue(ed.undo())
        self.assertFalse(ed.buffer.same_pixels(after))
        self.assertTrue(ed.redo())
        self.assertTrue(ed.buffer.same_pixels(after))

    def test_boundaries_are_noops(self) -> None:
        ed = MaskEditor(solid(3, 3, RED))
        self.assertFalse(ed.can_undo)
        self.assertFalse(ed.undo())
        self.assertFalse(ed.redo())

    def test_bounded_history_keeps_latest_twenty(self) -> None:
        original = solid(5, 5, RED)
        ed = MaskEditor(original)
        for i in range(25):
            self.assertTrue(ed.erase_stroke([(i % 5 + 0.5, i // 5 + 0.5)], diameter=1))
        self.assertEqual(len(ed.history), 20)

        results = [ed.undo() for _ in range(20)]
        self.assertEqual(results.count(True), 19)
        self.assertFalse(results[-1])
        # oldest retained snapshot is the state after the sixth edit
        self.assertEqual(int(np.count_nonzero(ed.buffer.alpha == 0)), 6)
        self.assertFalse(ed.buffer.same_pixels(original))

    def test_new_edit_after_undo_drops_redo(self) -> None:
        ed = MaskEditor(solid(4, 4, RED))
        ed.erase_stroke([(0.5, 0.5)], diameter=1)
        ed.undo()
        ed.erase_stroke([(3.5, 3.5)], diameter=1)
        self.assertFalse(ed.can_redo)
        self.assertEqual(ed.buffer.get_pixel(0, 0)[3], 255)

    def test_export_is_a_copy(self) -> None:
        ed = MaskEditor(solid(2, 2, RED))
        out = ed.export_buffer()
        out.set_pixel(0, 0, (0, 0, 0, 0))
        self.assertEqual(ed.buffer.get_pixel(0, 0), RED)

    def test_session_clones_its_source(self) -> None:
        src = solid(2, 2, RED)
        ed = MaskEditor(src)
        ed.erase_stroke([(0.5, 0.5)], diameter=1)
        self.assertEqual(src.get_pixel(0, 0), RED)


class _FakeService:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error
        self.calls = 0

    def edit_image(self, buffer, instruction):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class ExternalEditTests(unittest.TestCase):
    def test_result_committed_as_one_entry(self) -> None:
        edited = solid(3, 3, BLUE)
        svc = _FakeService(result=edited)
        ed = MaskEditor(solid(3, 3, RED))
        self.assertTrue(ed.apply_external_edit(svc, "make it blue"))
        self.assertTrue(ed.buffer.same_pixels(edited))
        self.assertEqual(len(ed.history), 2)

    def test_failure_propagates_without_retry(self) -> None:
        svc = _FakeService(error=ImageEditError("rate limited"))
        ed = MaskEditor(solid(3, 3, RED))
        with self.assertRaises(ImageEditError):
            ed.apply_external_edit(svc, "anything")
        self.assertEqual(svc.calls, 1)
        self.assertEqual(len(ed.history), 1)

    def test_wrong_size_rejected(self) -> None:
        svc = _FakeService(result=solid(4, 3, BLUE))
        ed = MaskEditor(solid(3, 3, RED))
        with self.assertRaises(ImageEditError):
            ed.apply_external_edit(svc, "resize")

    def test_non_buffer_result_rejected(self) -> None:
        svc = _FakeService(result=b"not a buffer")
        ed = MaskEditor(solid(3, 3, RED))
        with self.assertRaises(ImageEditError):
            ed.apply_external_edit(svc, "oops")


if __name__ == "__main__":
    unittest.main()
