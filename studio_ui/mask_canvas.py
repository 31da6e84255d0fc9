from __future__ import annotations
from typing import Callable, Optional

from PySide6.QtCore import Qt, QPointF, QRectF
from PySide6.QtGui import QColor, QImage, QPainter, QPen
from PySide6.QtWidgets import QWidget

from studio_core.buffer import PixelBuffer
from studio_core.editor import MaskEditor, Tool


def buffer_to_qimage(buf: PixelBuffer) -> QImage:
    data = buf.data.tobytes()
    qimg = QImage(data, buf.width, buf.height, buf.width * 4, QImage.Format_RGBA8888)
    # Important: keep a copy because Python-owned bytes may be freed
    return qimg.copy()


class MaskCanvas(QWidget):
    """
    Draws a MaskEditor's working buffer under its pan/zoom and forwards input.
    Supports:
      - wheel: zoom around the cursor
      - middle-drag, or left-drag with the pan tool: pan view
      - left-drag with the brush: one erase stroke per press/release
      - left-click with the magic wand: fill from the clicked pixel
      - Ctrl+Z / Ctrl+Y: undo / redo, P: polish, B / W / H: brush / wand / hand
    The widget holds no pixel state of its own.
    """
    def __init__(
        self,
        editor: MaskEditor,
        on_changed: Optional[Callable[[], None]] = None,
        parent: Optional[QWidget] = None,
    ):
        super().__init__(parent)
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.StrongFocus)

        self.editor = editor
        self._on_changed = on_changed
        self._cached: Optional[QImage] = None
        self._cached_for: Optional[PixelBuffer] = None

        self._dragging_pan = False
        self._dragging_brush = False
        self._middle_pan = False
        self._last_pos = QPointF()

    def _image(self) -> QImage:
        buf = self.editor.buffer
        # A live stroke mutates its scratch buffer, so it is never cached
        if self.editor.stroke_active or self._cached is None or self._cached_for is not buf:
            self._cached = buffer_to_qimage(buf)
            self._cached_for = None if self.editor.stroke_active else buf
        return self._cached

    def _changed(self) -> None:
        self.update()
        if self._on_changed is not None:
            self._on_changed()

    def paintEvent(self, _) -> None:
        p = QPainter(self)
        p.fillRect(self.rect(), QColor(30, 30, 30))

        buf = self.editor.buffer
        x0, y0 = self.editor.buffer_to_screen((0.0, 0.0))
        z = self.editor.tool.zoom_scale
        target = QRectF(x0, y0, buf.width * z, buf.height * z)

        # Checkerboard underlay (to visualize transparency)
        self._draw_checkerboard(p, target, max(4, int(16 * z)))
        p.drawImage(target, self._image())

        p.setPen(QPen(QColor(240, 240, 240), 1))
        p.drawRect(target)

        p.setPen(QPen(QColor(220, 220, 220)))
        tool = self.editor.tool
        msg = f"{tool.active_tool.value} | brush {tool.brush_diameter:.0f}px | tol {tool.tolerance} | zoom {z:.2f}x"
        p.drawText(10, self.height() - 10, msg)
        p.end()

    def _draw_checkerboard(self, p: QPainter, r: QRectF, cell: int) -> None:
        c1 = QColor(60, 60, 60)
        c2 = QColor(90, 90, 90)
        x0 = int(r.left())
        y0 = int(r.top())
        x1 = int(r.right())
        y1 = int(r.bottom())
        for y in range(y0, y1, cell):
            for x in range(x0, x1, cell):
                use_c1 = ((x // cell) + (y // cell)) % 2 == 0
                p.fillRect(x, y, min(cell, x1 - x), min(cell, y1 - y), c1 if use_c1 else c2)

    # ---------------------------
    # Interaction (screen coords in widget pixels)
    # ---------------------------
    def press_at(self, pos: QPointF) -> None:
        self._last_pos = QPointF(pos)
        tool = self.editor.tool.active_tool
        if tool == Tool.BRUSH:
            self.editor.begin_stroke((pos.x(), pos.y()), screen=True)
            self._dragging_brush = True
            self.update()
        elif tool == Tool.MAGIC_WAND:
            if self.editor.magic_wand_fill((pos.x(), pos.y()), screen=True):
                self._changed()
        else:
            self._dragging_pan = True

    def drag_to(self, pos: QPointF) -> None:
        dx = pos.x() - self._last_pos.x()
        dy = pos.y() - self._last_pos.y()
        self._last_pos = QPointF(pos)
        if self._dragging_brush:
            self.editor.extend_stroke((pos.x(), pos.y()), screen=True)
            self.update()
        elif self._dragging_pan or self._middle_pan:
            self.editor.pan(dx, dy)
            self.update()

    def release(self) -> None:
        if self._dragging_brush:
            self._dragging_brush = False
            if self.editor.end_stroke():
                self._changed()
            else:
                self.update()
        self._dragging_pan = False

    def middle_press_at(self, pos: QPointF) -> None:
        self._last_pos = QPointF(pos)
        self._middle_pan = True

    def middle_release(self) -> None:
        self._middle_pan = False

    def wheelEvent(self, e) -> None:
        delta = e.angleDelta().y()
        if delta == 0:
            return
        factor = 1.1 if delta > 0 else (1.0 / 1.1)
        pos = e.position()
        self.editor.zoom(factor, anchor=(pos.x(), pos.y()))
        self.update()
        e.accept()

    def mousePressEvent(self, e) -> None:
        if e.button() == Qt.LeftButton:
            self.press_at(e.position())
        elif e.button() == Qt.MiddleButton:
            self.middle_press_at(e.position())

    def mouseMoveEvent(self, e) -> None:
        self.drag_to(e.position())

    def mouseReleaseEvent(self, e) -> None:
        if e.button() == Qt.LeftButton:
            self.release()
        elif e.button() == Qt.MiddleButton:
            self.middle_release()

    def keyPressEvent(self, e) -> None:
        key = e.key()
        ctrl = bool(e.modifiers() & Qt.ControlModifier)
        if ctrl and key == Qt.Key_Z:
            if self.editor.undo():
                self._changed()
        elif ctrl and key == Qt.Key_Y:
            if self.editor.redo():
                self._changed()
        elif key == Qt.Key_P:
            if self.editor.auto_polish():
                self._changed()
        elif key == Qt.Key_B:
            self.editor.set_tool(Tool.BRUSH)
            self.update()
        elif key == Qt.Key_W:
            self.editor.set_tool(Tool.MAGIC_WAND)
            self.update()
        elif key == Qt.Key_H:
            self.editor.set_tool(Tool.PAN)
            self.update()
        elif key == Qt.Key_BracketLeft:
            self.editor.set_brush_diameter(self.editor.tool.brush_diameter - 2)
            self.update()
        elif key == Qt.Key_BracketRight:
            self.editor.set_brush_diameter(self.editor.tool.brush_diameter + 2)
            self.update()
        else:
            super().keyPressEvent(e)
