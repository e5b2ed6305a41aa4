"""
Soft shadow and glow support for annotation painting.

QPainter has no equivalent of a blurred drop shadow, so shapes that need one
are painted into a transparent layer first. The layer's alpha channel is
blurred with OpenCV, tinted with the shadow color and drawn underneath the
layer at the requested offset. Blur radius follows the usual convention of
sigma = blur / 2.
"""

import math
from typing import Callable, Optional, Tuple

import cv2
import numpy as np
from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import QColor, QImage, QPainter

from retflow.services.logging_service import get_logger

_logger = get_logger(__name__)


def paint_with_shadow(
    painter: QPainter,
    shadow_color: QColor,
    blur: float,
    offset_x: float,
    offset_y: float,
    draw: Callable[[QPainter], None],
) -> None:
    """
    Run draw() with a soft shadow beneath everything it paints.

    Args:
        painter: Target painter. Its world transform is applied to draw().
        shadow_color: Shadow tint; its alpha scales the shadow.
        blur: Blur radius in device pixels (0 = hard shadow).
        offset_x: Horizontal shadow offset in device pixels.
        offset_y: Vertical shadow offset in device pixels.
        draw: Callback that paints the shape onto the painter it receives.
    """
    device = painter.device()
    width = device.width()
    height = device.height()
    if width <= 0 or height <= 0:
        return

    layer = QImage(width, height, QImage.Format.Format_ARGB32_Premultiplied)
    layer.fill(Qt.GlobalColor.transparent)

    layer_painter = QPainter(layer)
    layer_painter.setRenderHints(painter.renderHints())
    layer_painter.setWorldTransform(painter.worldTransform())
    draw(layer_painter)
    layer_painter.end()

    shadow = _build_shadow(layer, shadow_color, blur)

    # Both images are in device space
    painter.save()
    painter.resetTransform()
    if shadow is not None:
        image, origin_x, origin_y = shadow
        painter.drawImage(QPointF(origin_x + offset_x, origin_y + offset_y), image)
    painter.drawImage(0, 0, layer)
    painter.restore()


def _build_shadow(
    layer: QImage,
    shadow_color: QColor,
    blur: float,
) -> Optional[Tuple[QImage, int, int]]:
    """
    Create the tinted, blurred alpha image for a painted layer.

    Only the bounding box of the painted pixels (plus the blur margin) is
    processed.

    Returns:
        (shadow image, origin x, origin y) or None if nothing was painted.
    """
    if shadow_color.alpha() == 0:
        return None

    rgba = layer.convertToFormat(QImage.Format.Format_RGBA8888)
    width = rgba.width()
    height = rgba.height()

    ptr = rgba.constBits()
    arr = np.frombuffer(ptr, np.uint8).reshape((height, width, 4))
    alpha = arr[:, :, 3]

    ys, xs = np.nonzero(alpha)
    if ys.size == 0:
        return None

    sigma = max(0.0, float(blur)) / 2.0
    pad = int(math.ceil(sigma * 3)) + 1 if sigma > 0 else 0

    top, bottom = int(ys.min()), int(ys.max()) + 1
    left, right = int(xs.min()), int(xs.max()) + 1

    # Zero margin around the painted box so the blur can spread past it
    mask = np.zeros((bottom - top + 2 * pad, right - left + 2 * pad), dtype=np.float32)
    mask[pad:pad + bottom - top, pad:pad + right - left] = alpha[top:bottom, left:right]

    if sigma > 0:
        mask = cv2.GaussianBlur(mask, (0, 0), sigmaX=sigma, sigmaY=sigma)

    mask *= shadow_color.alphaF()

    out_h, out_w = mask.shape
    out = np.empty((out_h, out_w, 4), dtype=np.uint8)
    out[:, :, 0] = shadow_color.red()
    out[:, :, 1] = shadow_color.green()
    out[:, :, 2] = shadow_color.blue()
    out[:, :, 3] = np.clip(np.rint(mask), 0, 255).astype(np.uint8)

    image = QImage(
        out.data, out_w, out_h, out_w * 4,
        QImage.Format.Format_RGBA8888
    ).copy()

    _logger.debug(f"Shadow layer {out_w}x{out_h} (sigma={sigma:.1f})")
    return image, left - pad, top - pad
