"""
Editor widget for Retflow - the main annotation UI component.

This widget composes the complete editor interface:
- Top toolbar with the four drawing tools, undo and clear
- Center canvas showing the frozen frame and drawings
- Right properties panel for the active tool
- Bottom bar with the preset palette, timing controls, cancel and save
"""

from typing import Callable, Dict, Optional

from PySide6.QtCore import QPoint, Qt, Signal
from PySide6.QtGui import QColor, QIcon, QPainter, QPixmap, QPolygon
from PySide6.QtWidgets import (
    QButtonGroup,
    QCheckBox,
    QColorDialog,
    QFrame,
    QHBoxLayout,
    QInputDialog,
    QLabel,
    QLineEdit,
    QMessageBox,
    QPushButton,
    QSizePolicy,
    QSlider,
    QStackedWidget,
    QToolBar,
    QToolButton,
    QVBoxLayout,
    QWidget,
)

from retflow.editor.annotations import ToolKind
from retflow.editor.colors import ColorField
from retflow.editor.document import MAX_DURATION, MIN_DURATION
from retflow.editor.editor_canvas import EditorCanvas
from retflow.editor.session import AnnotationSession
from retflow.services.annotation_store import AnnotationStore
from retflow.services.logging_service import get_logger


PANEL_STYLE = """
    QFrame {
        background-color: #2d2d2d;
        border-left: 1px solid #3a3a3a;
    }
    QLabel, QCheckBox {
        color: #ddd;
        font-size: 11px;
    }
    QLineEdit {
        background-color: #3a3a3a;
        color: #ddd;
        border: 1px solid #555;
        padding: 4px;
    }
"""


class ColorInput(QWidget):
    """
    Swatch button plus hex text field bound to one ColorField.

    Either view can change the color; both always show the field's value.
    """

    def __init__(self, field: ColorField, parent=None):
        super().__init__(parent)
        self._field = field

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)

        self._button = QPushButton()
        self._button.setFixedSize(32, 32)
        self._button.clicked.connect(self._on_button_clicked)
        layout.addWidget(self._button)

        self._text = QLineEdit()
        self._text.setMaxLength(16)
        self._text.textEdited.connect(self._field.set_text)
        layout.addWidget(self._text)

        field.on_change(lambda _value: self._refresh())
        self._refresh()

    def _refresh(self) -> None:
        self._button.setStyleSheet(f"""
            QPushButton {{
                background-color: {self._field.swatch.name()};
                border: 2px solid #555;
                border-radius: 4px;
            }}
            QPushButton:hover {{
                border-color: #888;
            }}
        """)
        if self._text.text() != self._field.text:
            self._text.setText(self._field.text)

    def _on_button_clicked(self) -> None:
        color = QColorDialog.getColor(self._field.swatch, self, "Select Color")
        if color.isValid():
            self._field.select_swatch(color.name().upper())


class LabeledSlider(QWidget):
    """Horizontal slider with a caption and value readout, in float units."""

    value_changed = Signal(float)

    def __init__(
        self,
        caption: str,
        minimum: float,
        maximum: float,
        value: float,
        step: float = 1,
        parent=None
    ):
        super().__init__(parent)
        self._caption = caption
        self._step = step

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(2)

        self._label = QLabel()
        layout.addWidget(self._label)

        self._slider = QSlider(Qt.Orientation.Horizontal)
        self._slider.setRange(round(minimum / step), round(maximum / step))
        self._slider.setValue(round(value / step))
        self._slider.valueChanged.connect(self._on_slider_changed)
        layout.addWidget(self._slider)

        self._update_label()

    @property
    def value(self) -> float:
        value = self._slider.value() * self._step
        return value if self._step < 1 else int(round(value))

    def set_value(self, value: float) -> None:
        self._slider.setValue(round(value / self._step))

    def _update_label(self) -> None:
        value = self.value
        text = f"{value:.1f}" if isinstance(value, float) else str(value)
        self._label.setText(f"{self._caption}: {text}")

    def _on_slider_changed(self, _raw: int) -> None:
        self._update_label()
        self.value_changed.emit(self.value)


class PropertiesPanel(QFrame):
    """
    Right panel for tool properties - shows the active tool's options.

    Controls write straight into the tool's live configuration, so the next
    ghost and the next commit use the new values.
    """

    def __init__(self, session: AnnotationSession, parent=None):
        super().__init__(parent)
        self._session = session
        self._pages: Dict[ToolKind, QWidget] = {}
        self._setup_ui()

    def _setup_ui(self) -> None:
        self.setFrameStyle(QFrame.Shape.StyledPanel)
        self.setFixedWidth(220)
        self.setStyleSheet(PANEL_STYLE)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(12)

        self._title = QLabel("Properties")
        self._title.setStyleSheet("font-weight: bold; font-size: 13px;")
        layout.addWidget(self._title)

        self._stack = QStackedWidget()
        layout.addWidget(self._stack, 1)

        builders = {
            ToolKind.CIRCLE: self._build_circle_page,
            ToolKind.ARROW: self._build_arrow_page,
            ToolKind.POLYGON: self._build_polygon_page,
            ToolKind.SPOTLIGHT: self._build_spotlight_page,
        }
        for kind, build in builders.items():
            page = QWidget()
            page_layout = QVBoxLayout(page)
            page_layout.setContentsMargins(0, 0, 0, 0)
            page_layout.setSpacing(10)
            build(page_layout, self._session.tool(kind).config)
            page_layout.addStretch()
            self._stack.addWidget(page)
            self._pages[kind] = page

        self.set_tool(None)

    def set_tool(self, kind: Optional[ToolKind]) -> None:
        """Show the page for a tool (hide the panel for no tool)."""
        if kind is None:
            self.hide()
            return
        self._title.setText(f"{kind.value.title()} Properties")
        self._stack.setCurrentWidget(self._pages[kind])
        self.show()

    # ─── Page builders ────────────────────────────────────────────────────

    @staticmethod
    def _slider(layout, caption, minimum, maximum, config, attr, step=1) -> LabeledSlider:
        slider = LabeledSlider(caption, minimum, maximum, getattr(config, attr), step)
        slider.value_changed.connect(lambda v: setattr(config, attr, v))
        layout.addWidget(slider)
        return slider

    @staticmethod
    def _toggle(layout, caption, config, attr) -> QCheckBox:
        box = QCheckBox(caption)
        box.setChecked(bool(getattr(config, attr)))
        box.toggled.connect(lambda checked: setattr(config, attr, checked))
        layout.addWidget(box)
        return box

    @staticmethod
    def _color(layout, caption, field: ColorField) -> None:
        layout.addWidget(QLabel(caption))
        layout.addWidget(ColorInput(field))

    def _build_circle_page(self, layout, config) -> None:
        self._slider(layout, "Size", 30, 150, config, "radius")
        self._color(layout, "Outer Color", config.outer_color)
        self._color(layout, "Inner Color", config.inner_color)
        self._slider(layout, "Glow", 0, 50, config, "glow")
        self._slider(layout, "3D Rotation", -90, 90, config, "tilt")
        self._slider(layout, "Scale", 0.5, 2.0, config, "scale", step=0.1)

    def _build_arrow_page(self, layout, config) -> None:
        self._color(layout, "Color", config.color)
        self._slider(layout, "Thickness", 2, 30, config, "thickness")
        self._slider(layout, "Head Size", 5, 40, config, "head_size")
        self._toggle(layout, "Dashed", config, "dashed")
        self._toggle(layout, "Bend", config, "bend_enabled")
        self._slider(layout, "Arc Height", 0, 100, config, "arc_height")
        self._toggle(layout, "Shadow", config, "shadow")
        self._color(layout, "Shadow Color", config.shadow_color)
        self._slider(layout, "Shadow Offset", 0, 50, config, "shadow_offset")
        self._slider(layout, "Shadow Blur", 0, 20, config, "shadow_blur")

    def _build_polygon_page(self, layout, config) -> None:
        self._color(layout, "Border Color", config.border_color)
        self._slider(layout, "Border Thickness", 1, 10, config, "border_thickness")
        self._toggle(layout, "Dashed", config, "dashed")
        self._color(layout, "Fill Color", config.fill_color)
        self._slider(layout, "Fill Opacity", 0, 100, config, "fill_opacity")
        self._slider(layout, "Marker Size", 3, 10, config, "marker_size")
        hint = QLabel("Click to add points. Click twice quickly to finish. Right click to cancel.")
        hint.setWordWrap(True)
        layout.addWidget(hint)

    def _build_spotlight_page(self, layout, config) -> None:
        self._slider(layout, "Beam Size", 30, 150, config, "beam_size")
        self._slider(layout, "Intensity", 0.1, 1.0, config, "intensity", step=0.1)
        self._slider(layout, "Depth", 0.2, 1.0, config, "depth", step=0.1)


class PresetPalette(QWidget):
    """
    Row of preset swatches plus a "Custom" button.

    Left click selects a preset; right click asks for a hex color.
    """

    def __init__(self, session: AnnotationSession, parent=None):
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._session = session
        self._buttons: Dict[str, QPushButton] = {}

        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(6)

        for color in session.preset_colors:
            btn = QPushButton()
            btn.setFixedSize(24, 24)
            btn.setToolTip(f"{color} (right click for a custom color)")
            btn.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
            btn.clicked.connect(lambda checked=False, c=color: session.select_preset(c))
            btn.customContextMenuRequested.connect(
                lambda _pos, c=color: self._ask_custom_color(c)
            )
            layout.addWidget(btn)
            self._buttons[color] = btn

        self._custom_btn = QPushButton("Custom")
        self._custom_btn.clicked.connect(session.clear_preset)
        layout.addWidget(self._custom_btn)

        session.preset_changed.connect(self._refresh)
        self._refresh(session.selected_preset)

    def _ask_custom_color(self, current: str) -> None:
        text, ok = QInputDialog.getText(self, "Custom Color", "Enter a hex color code:", text=current)
        if ok:
            self._session.enter_custom_preset(text.strip())

    def _refresh(self, selected: Optional[str]) -> None:
        for color, btn in self._buttons.items():
            border = "#4a90e2" if selected and selected.upper() == color.upper() else "#555"
            btn.setStyleSheet(
                f"background-color: {color}; border: 2px solid {border}; border-radius: 12px;"
            )
        self._custom_btn.setStyleSheet(
            "border: 2px solid #4a90e2;" if selected is None else ""
        )


class TimingPanel(QWidget):
    """Fade toggles and display duration for the annotation."""

    def __init__(self, session: AnnotationSession, parent=None):
        super().__init__(parent)
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(12)

        fade_in = QCheckBox("Fade In")
        fade_in.setChecked(session.fade_in)
        fade_in.toggled.connect(session.set_fade_in)
        layout.addWidget(fade_in)

        fade_out = QCheckBox("Fade Out")
        fade_out.setChecked(session.fade_out)
        fade_out.toggled.connect(session.set_fade_out)
        layout.addWidget(fade_out)

        duration = LabeledSlider("Duration (s)", MIN_DURATION, MAX_DURATION, session.duration, step=0.5)
        duration.setMinimumWidth(160)
        duration.value_changed.connect(session.set_duration)
        layout.addWidget(duration)


def _create_tool_icon(shape: str, color: QColor = QColor(220, 220, 220)) -> QIcon:
    """Draw a small tool icon."""
    size = 24
    pixmap = QPixmap(size, size)
    pixmap.fill(Qt.GlobalColor.transparent)

    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.RenderHint.Antialiasing)
    painter.setPen(color)
    painter.setBrush(Qt.BrushStyle.NoBrush)

    if shape == "circle":
        painter.drawEllipse(3, 3, 18, 18)
        painter.drawEllipse(7, 7, 10, 10)
    elif shape == "arrow":
        painter.drawArc(4, 6, 16, 16, 30 * 16, 120 * 16)
        painter.setBrush(color)
        painter.drawPolygon(QPolygon([QPoint(20, 11), QPoint(15, 8), QPoint(17, 14)]))
    elif shape == "polygon":
        painter.drawPolygon(QPolygon([QPoint(4, 18), QPoint(8, 5), QPoint(19, 7), QPoint(20, 19)]))
    elif shape == "spotlight":
        painter.drawEllipse(4, 8, 16, 10)
        painter.drawLine(12, 2, 12, 6)
    elif shape == "undo":
        painter.drawArc(6, 6, 14, 12, 0, 180 * 16)
        painter.drawLine(6, 12, 3, 9)
        painter.drawLine(6, 12, 9, 9)
    elif shape == "clear":
        painter.drawLine(6, 6, 18, 18)
        painter.drawLine(18, 6, 6, 18)

    painter.end()
    return QIcon(pixmap)


class EditorWidget(QWidget):
    """
    Main editor widget composing toolbar, canvas, properties, and bottom bar.

    Signals:
        saved: Emitted with the stored AnnotationDocument after a save.
        cancelled: Emitted when the user abandons the annotation.
    """

    saved = Signal(object)
    cancelled = Signal()

    TOOL_BUTTONS = [
        (ToolKind.CIRCLE, "Circle", "C"),
        (ToolKind.ARROW, "Arrow", "A"),
        (ToolKind.POLYGON, "Polygon", "P"),
        (ToolKind.SPOTLIGHT, "Spotlight", "S"),
    ]

    def __init__(self, session: AnnotationSession, store: AnnotationStore, parent=None):
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._session = session
        self._store = store

        self._setup_ui()
        self._connect_signals()

    @property
    def session(self) -> AnnotationSession:
        return self._session

    def _setup_ui(self) -> None:
        """Build the UI layout."""
        main_layout = QVBoxLayout(self)
        main_layout.setContentsMargins(0, 0, 0, 0)
        main_layout.setSpacing(0)

        # ─── Top Toolbar ──────────────────────────────────────────────
        self._toolbar = QToolBar()
        self._toolbar.setMovable(False)
        self._toolbar.setStyleSheet("""
            QToolBar {
                background-color: #2a2a2a;
                border-bottom: 1px solid #3a3a3a;
                padding: 6px 8px;
                spacing: 4px;
            }
            QToolButton {
                background-color: transparent;
                border: none;
                border-radius: 8px;
                padding: 6px 8px;
                min-width: 32px;
                min-height: 32px;
                color: #ddd;
            }
            QToolButton:hover {
                background-color: rgba(255, 255, 255, 0.1);
            }
            QToolButton:checked {
                background-color: rgba(74, 144, 226, 0.3);
            }
        """)

        self._tool_group = QButtonGroup(self)
        self._tool_group.setExclusive(True)
        self._tool_buttons: Dict[ToolKind, QToolButton] = {}

        for kind, tooltip, shortcut in self.TOOL_BUTTONS:
            btn = QToolButton()
            btn.setIcon(_create_tool_icon(kind.value))
            btn.setToolTip(f"{tooltip} ({shortcut})")
            btn.setCheckable(True)
            btn.clicked.connect(lambda checked, k=kind: self._select_tool(k))
            self._tool_group.addButton(btn)
            self._toolbar.addWidget(btn)
            self._tool_buttons[kind] = btn

        self._toolbar.addSeparator()

        self._undo_btn = self._add_action_button("undo", "Undo (Ctrl+Z)", self._session.undo_last)
        self._clear_btn = self._add_action_button("clear", "Clear All", self._session.clear)

        main_layout.addWidget(self._toolbar)

        # ─── Center Content ───────────────────────────────────────────
        content = QHBoxLayout()
        content.setContentsMargins(0, 0, 0, 0)
        content.setSpacing(0)

        self._canvas = EditorCanvas(self._session)
        content.addWidget(self._canvas, 1)

        self._properties = PropertiesPanel(self._session)
        content.addWidget(self._properties)

        main_layout.addLayout(content, 1)

        # ─── Bottom Bar ───────────────────────────────────────────────
        bottom = QFrame()
        bottom.setStyleSheet(PANEL_STYLE)
        bottom_layout = QHBoxLayout(bottom)
        bottom_layout.setContentsMargins(12, 6, 12, 6)
        bottom_layout.setSpacing(16)

        bottom_layout.addWidget(PresetPalette(self._session))
        bottom_layout.addWidget(TimingPanel(self._session))

        self._count_label = QLabel()
        bottom_layout.addWidget(self._count_label)

        spacer = QWidget()
        spacer.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Preferred)
        bottom_layout.addWidget(spacer)

        cancel_btn = QPushButton("Cancel")
        cancel_btn.clicked.connect(self._cancel)
        bottom_layout.addWidget(cancel_btn)

        self._save_btn = QPushButton("Update Annotation" if self._session.is_editing else "Save Annotation")
        self._save_btn.clicked.connect(self._save)
        bottom_layout.addWidget(self._save_btn)

        main_layout.addWidget(bottom)
        self._on_drawings_changed(len(self._session.drawings))

    def _add_action_button(self, icon: str, tooltip: str, slot: Callable[[], None]) -> QToolButton:
        btn = QToolButton()
        btn.setIcon(_create_tool_icon(icon))
        btn.setToolTip(tooltip)
        btn.clicked.connect(slot)
        self._toolbar.addWidget(btn)
        return btn

    def _connect_signals(self) -> None:
        self._session.tool_changed.connect(self._on_tool_changed)
        self._session.drawings_changed.connect(self._on_drawings_changed)

    # ─── Tool Management ──────────────────────────────────────────────────

    def _select_tool(self, kind: ToolKind) -> None:
        self._session.set_tool(kind)
        self._canvas.setFocus()

    def _on_tool_changed(self, kind: Optional[ToolKind]) -> None:
        self._properties.set_tool(kind)
        if kind is not None:
            self._tool_buttons[kind].setChecked(True)

    def _on_drawings_changed(self, count: int) -> None:
        self._count_label.setText(f"{count} drawing{'s' if count != 1 else ''}")
        self._save_btn.setEnabled(count > 0)
        self._undo_btn.setEnabled(count > 0)
        self._clear_btn.setEnabled(count > 0)

    # ─── Save / Cancel ────────────────────────────────────────────────────

    def _save(self) -> None:
        if not self._session.drawings:
            return
        if self._session.save(self._store):
            self.saved.emit(self._session.document)
            return
        QMessageBox.warning(self, "Save Failed", "The annotation could not be saved. Please try again.")

    def _cancel(self) -> None:
        self._session.cancel()
        self.cancelled.emit()

    # ─── Key Events ───────────────────────────────────────────────────────

    def keyPressEvent(self, event) -> None:
        key = event.key()
        modifiers = event.modifiers()

        tool_shortcuts = {
            Qt.Key.Key_C: ToolKind.CIRCLE,
            Qt.Key.Key_A: ToolKind.ARROW,
            Qt.Key.Key_P: ToolKind.POLYGON,
            Qt.Key.Key_S: ToolKind.SPOTLIGHT,
        }
        if key in tool_shortcuts and not modifiers:
            self._select_tool(tool_shortcuts[key])
            return

        if key == Qt.Key.Key_S and modifiers & Qt.KeyboardModifier.ControlModifier:
            self._save()
            return

        if key == Qt.Key.Key_Escape:
            self._session.set_tool(None)
            return

        super().keyPressEvent(event)
