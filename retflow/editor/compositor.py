"""
Scene compositor.

Renders a base raster plus an ordered list of committed entries into one
image. The output depends only on the inputs, so two calls with the same
raster and entries give pixel-identical results.
"""

from typing import Optional, Sequence

from PySide6.QtCore import Qt
from PySide6.QtGui import QImage, QPainter

from retflow.editor.annotations import DrawingEntry
from retflow.services.logging_service import get_logger

SURFACE_FORMAT = QImage.Format.Format_ARGB32_Premultiplied

_logger = get_logger(__name__)


def create_surface(base: QImage) -> QImage:
    """Create a blank surface matching the base raster's size."""
    surface = QImage(base.width(), base.height(), SURFACE_FORMAT)
    surface.fill(Qt.GlobalColor.transparent)
    return surface


def prepare_painter(painter: QPainter) -> None:
    """Apply the render hints every scene paint uses."""
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)


def render_full(
    base: Optional[QImage],
    entries: Sequence[DrawingEntry],
    target: Optional[QImage] = None
) -> Optional[QImage]:
    """
    Render the base raster and every entry in order.

    Args:
        base: The frozen frame. None (or a null image) renders nothing.
        entries: Committed entries in paint order.
        target: Optional surface to draw into. It is cleared first and must
                match the base raster's size. A new surface is created when
                omitted.

    Returns:
        The rendered surface, or None if there is no base raster.
    """
    if base is None or base.isNull():
        _logger.debug("No base raster; skipping render")
        return None

    if target is None or target.size() != base.size():
        target = create_surface(base)
    else:
        target.fill(Qt.GlobalColor.transparent)

    painter = QPainter(target)
    prepare_painter(painter)
    painter.drawImage(0, 0, base)

    for entry in entries:
        painter.save()
        entry.paint(painter)
        painter.restore()

    painter.end()
    return target
