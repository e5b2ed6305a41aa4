"""
Color helpers for the annotation editor.

Tool colors are kept as the strings the user picked or typed ("#RRGGBB")
so that a swatch pick and its paired text field always show the same value.
Conversion to QColor happens only at paint time.
"""

import re
from typing import Callable, List, Optional

from PySide6.QtGui import QColor

from retflow.services.logging_service import get_logger


PRESET_COLORS = ["#FF3C00", "#FFD700", "#FFFFFF", "#0066FF", "#00FF00", "#FF0000"]
DEFAULT_COLOR = "#FF3C00"

HEX_COLOR_PATTERN = re.compile(r"#[0-9A-F]{6}", re.IGNORECASE)

_logger = get_logger(__name__)


def is_valid_hex(text: str) -> bool:
    """Return True if text is a strict #RRGGBB color."""
    return bool(text) and HEX_COLOR_PATTERN.fullmatch(text) is not None


def to_qcolor(value: str, alpha: Optional[float] = None) -> QColor:
    """
    Convert a stored color string to a QColor.

    Unparseable strings paint as opaque black.

    Args:
        value: Color string, usually "#RRGGBB".
        alpha: Optional alpha override in [0, 1].
    """
    color = QColor(value) if value else QColor()
    if not color.isValid():
        color = QColor(0, 0, 0)
    if alpha is not None:
        color.setAlphaF(max(0.0, min(1.0, alpha)))
    return color


def adjust_brightness(value: str, amount: int) -> str:
    """
    Shift every RGB channel of a color by amount, clamped to [0, 255].

    Returns a lowercase "#rrggbb" string.
    """
    color = to_qcolor(value)
    r = max(0, min(255, color.red() + amount))
    g = max(0, min(255, color.green() + amount))
    b = max(0, min(255, color.blue() + amount))
    return f"#{r:02x}{g:02x}{b:02x}"


class ColorField:
    """
    One tool color with two synchronized views: a swatch and a text field.

    The text field accepts anything (it is whatever the user typed); the
    custom-entry path is the only validated one and silently ignores
    anything that is not #RRGGBB.
    """

    def __init__(self, value: str = DEFAULT_COLOR) -> None:
        self._value = value
        self._listeners: List[Callable[[str], None]] = []

    @property
    def value(self) -> str:
        return self._value

    @property
    def text(self) -> str:
        """The string shown in the paired text field."""
        return self._value

    @property
    def swatch(self) -> QColor:
        """The color shown on the swatch button."""
        return to_qcolor(self._value)

    def select_swatch(self, color: str) -> None:
        """Set the color from a swatch or picker selection."""
        self._set(color)

    def set_text(self, text: str) -> None:
        """Set the color from the free-form text field (unvalidated)."""
        self._set(text)

    def enter_custom(self, text: str) -> bool:
        """
        Set the color from a manual custom entry.

        Returns:
            True if accepted, False if text was not a strict #RRGGBB color.
        """
        if not is_valid_hex(text):
            _logger.debug(f"Ignoring invalid custom color {text!r}")
            return False
        self._set(text)
        return True

    def on_change(self, callback: Callable[[str], None]) -> None:
        """Register a callback invoked with the new value on every change."""
        self._listeners.append(callback)

    def _set(self, value: str) -> None:
        if value == self._value:
            return
        self._value = value
        for callback in self._listeners:
            callback(value)

    def __repr__(self) -> str:
        return f"ColorField({self._value!r})"
