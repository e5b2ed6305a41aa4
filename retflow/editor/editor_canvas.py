"""
Editor canvas widget for Retflow.

The EditorCanvas displays the session's rendered surface (frozen frame,
committed drawings and the current ghost) and forwards pointer input to the
session in image coordinates.

Supports:
- Zoom (Ctrl+wheel, keyboard shortcuts), fit-to-window by default
- Left click / move for the active tool, right click to cancel
- Ctrl+Z to undo the last drawing
"""

from typing import Optional

from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QColor, QKeyEvent, QMouseEvent, QPainter, QWheelEvent
from PySide6.QtWidgets import QWidget

from retflow.editor.annotations import Point
from retflow.editor.session import AnnotationSession
from retflow.services.logging_service import get_logger


class EditorCanvas(QWidget):
    """Canvas widget showing an AnnotationSession's surface."""

    # Zoom limits
    MIN_ZOOM = 0.1
    MAX_ZOOM = 5.0

    def __init__(self, session: AnnotationSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._session = session

        # View transform
        self._zoom: float = 1.0
        self._pan_offset: QPointF = QPointF(0, 0)
        self._fit_mode: bool = True

        self._setup_widget()

        session.surface_changed.connect(self.update)
        session.tool_changed.connect(self._on_tool_changed)

    def _setup_widget(self) -> None:
        """Configure widget properties."""
        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(200, 200)
        self.setStyleSheet("background-color: #1a1a1a;")

    @property
    def session(self) -> AnnotationSession:
        return self._session

    def _on_tool_changed(self, kind) -> None:
        tool = self._session.active_tool
        self.setCursor(tool.cursor if tool else Qt.CursorShape.ArrowCursor)

    # ─── Zoom ─────────────────────────────────────────────────────────────

    @property
    def zoom(self) -> float:
        return self._zoom

    def set_zoom(self, zoom: float, anchor: Optional[QPointF] = None) -> None:
        """
        Set zoom level, keeping the image point under anchor stationary.

        Args:
            zoom: New zoom level (clamped to MIN/MAX).
            anchor: Widget position to keep still; None recenters the image.
        """
        new_zoom = max(self.MIN_ZOOM, min(self.MAX_ZOOM, zoom))
        self._fit_mode = False

        if anchor:
            img_pt = self.widget_to_image(anchor)
            self._zoom = new_zoom
            self._pan_offset = QPointF(
                anchor.x() - img_pt.x() * new_zoom,
                anchor.y() - img_pt.y() * new_zoom
            )
        else:
            self._zoom = new_zoom
            self._center_image()

        self.update()

    def zoom_in(self) -> None:
        center = QPointF(self.width() / 2, self.height() / 2)
        self.set_zoom(self._zoom * 1.25, center)

    def zoom_out(self) -> None:
        center = QPointF(self.width() / 2, self.height() / 2)
        self.set_zoom(self._zoom / 1.25, center)

    def zoom_to_fit(self) -> None:
        """Zoom to fit the frame; stays in fit mode across resizes."""
        self._fit_mode = True
        self._recalculate_fit_zoom()

    def _recalculate_fit_zoom(self) -> None:
        surface = self._session.surface
        if surface is None:
            self._zoom = 1.0
            return

        img_w = surface.width()
        img_h = surface.height()
        if img_w == 0 or img_h == 0 or self.width() == 0 or self.height() == 0:
            return

        padding = 40
        self._zoom = min(
            (self.width() - padding) / img_w,
            (self.height() - padding) / img_h,
            1.0
        )
        self._center_image()
        self.update()

    def _center_image(self) -> None:
        surface = self._session.surface
        if surface is None:
            return
        self._pan_offset = QPointF(
            (self.width() - surface.width() * self._zoom) / 2,
            (self.height() - surface.height() * self._zoom) / 2
        )

    # ─── Coordinate Conversion ────────────────────────────────────────────

    def widget_to_image(self, pos: QPointF) -> QPointF:
        """Convert widget coordinates to image coordinates."""
        return QPointF(
            (pos.x() - self._pan_offset.x()) / self._zoom,
            (pos.y() - self._pan_offset.y()) / self._zoom
        )

    def _image_point(self, event: QMouseEvent) -> Point:
        return Point.from_qpointf(self.widget_to_image(event.position()))

    # ─── Event Handlers ───────────────────────────────────────────────────

    def paintEvent(self, event) -> None:
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        painter.fillRect(self.rect(), QColor(26, 26, 26))

        surface = self._session.surface
        if surface is None:
            painter.setPen(QColor(100, 100, 100))
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, "No frame loaded")
            return

        painter.translate(self._pan_offset)
        painter.scale(self._zoom, self._zoom)
        painter.drawImage(0, 0, surface)
        painter.end()

    def mousePressEvent(self, event: QMouseEvent) -> None:
        if event.button() == Qt.MouseButton.LeftButton:
            self._session.click(self._image_point(event), float(event.timestamp()))
        elif event.button() == Qt.MouseButton.RightButton:
            self._session.secondary_click(self._image_point(event))

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        self._session.pointer_move(self._image_point(event))

    def contextMenuEvent(self, event) -> None:
        # Right click is a tool gesture here
        event.accept()

    def wheelEvent(self, event: QWheelEvent) -> None:
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            factor = 1.1 if event.angleDelta().y() > 0 else 0.9
            self.set_zoom(self._zoom * factor, event.position())
            event.accept()
        else:
            event.ignore()

    def keyPressEvent(self, event: QKeyEvent) -> None:
        key = event.key()
        if event.modifiers() & Qt.KeyboardModifier.ControlModifier:
            if key in (Qt.Key.Key_Plus, Qt.Key.Key_Equal):
                self.zoom_in()
                return
            if key == Qt.Key.Key_Minus:
                self.zoom_out()
                return
            if key == Qt.Key.Key_0:
                self.zoom_to_fit()
                return
            if key == Qt.Key.Key_Z:
                self._session.undo_last()
                return
        super().keyPressEvent(event)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        if self._fit_mode:
            self._recalculate_fit_zoom()
        else:
            self._center_image()

    def showEvent(self, event) -> None:
        super().showEvent(event)
        if self._fit_mode:
            self._recalculate_fit_zoom()
