"""
Annotation session controller.

The AnnotationSession owns everything needed to annotate one frame: the
base raster, the committed drawing log, the rendered surface, one instance
of every tool and the document metadata. Widgets only forward pointer
events to it and display its surface.

Rendering contract:
- redraw() renders the base raster plus committed entries into the surface
- paint_ghost() paints a transient shape at half opacity on top of it
- only commit() adds to the log
"""

from typing import Any, Callable, Dict, List, Optional

from PySide6.QtCore import QObject, Signal
from PySide6.QtGui import QImage, QPainter

from retflow.editor.annotations import DrawingEntry, EntryProperties, Point, ToolKind
from retflow.editor.colors import DEFAULT_COLOR, PRESET_COLORS, is_valid_hex
from retflow.editor.compositor import SURFACE_FORMAT, prepare_painter, render_full
from retflow.editor.document import (
    MIXED_TYPE,
    AnnotationDocument,
    clamp_duration,
    encode_thumbnail,
)
from retflow.editor.drawing_model import DrawingModel
from retflow.editor.tools import DEFAULT_FINISH_GAP_MS, ToolBase, create_tool
from retflow.services.annotation_store import AnnotationStore, StoreError
from retflow.services.config_service import ConfigService
from retflow.services.logging_service import get_logger

GHOST_OPACITY = 0.5


class AnnotationSession(QObject):
    """
    Controller for annotating one video frame.

    Signals:
        surface_changed: Emitted after every redraw or ghost paint.
        drawings_changed: Emitted with the entry count after commit/undo/clear.
        tool_changed: Emitted with the active ToolKind (or None).
        preset_changed: Emitted with the selected preset color (or None).
        saved: Emitted with the stored AnnotationDocument.
        cancelled: Emitted when the session is abandoned.
    """

    surface_changed = Signal()
    drawings_changed = Signal(int)
    tool_changed = Signal(object)
    preset_changed = Signal(object)
    saved = Signal(object)
    cancelled = Signal()

    def __init__(
        self,
        video_name: str = "",
        timestamp_seconds: float = 0.0,
        preset_colors: Optional[List[str]] = None,
        default_color: str = DEFAULT_COLOR,
        tool_settings: Optional[Dict[str, Dict[str, Any]]] = None,
        annotation_defaults: Optional[Dict[str, Any]] = None,
        finish_gap_ms: float = DEFAULT_FINISH_GAP_MS,
        thumbnail_quality: int = 30,
        clock: Optional[Callable[[], float]] = None,
        parent: Optional[QObject] = None
    ) -> None:
        """
        Initialize the session.

        Args:
            video_name: Name of the video the frame belongs to.
            timestamp_seconds: Position of the frame in the video.
            preset_colors: Palette swatches.
            default_color: Representative color when no preset is selected.
            tool_settings: Per-tool defaults keyed by tool kind value.
            annotation_defaults: Default fade_in/fade_out/duration.
            finish_gap_ms: Polygon finish click gap.
            thumbnail_quality: JPEG quality of saved thumbnails.
            clock: Millisecond clock for polygon clicks without timestamps.
            parent: Optional QObject parent.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)

        self.video_name = video_name
        self.timestamp_seconds = timestamp_seconds

        self._preset_colors = list(preset_colors or PRESET_COLORS)
        self._default_color = default_color
        self._selected_preset: Optional[str] = default_color
        self._thumbnail_quality = thumbnail_quality

        defaults = annotation_defaults or {}
        self._fade_in = bool(defaults.get("fade_in", True))
        self._fade_out = bool(defaults.get("fade_out", True))
        self._duration = clamp_duration(defaults.get("duration", 3.0))

        self._base: Optional[QImage] = None
        self._surface: Optional[QImage] = None
        self._model = DrawingModel()
        self._document: Optional[AnnotationDocument] = None

        # Every tool lives for the whole session so its settings survive switching
        tool_settings = tool_settings or {}
        self._tools: Dict[ToolKind, ToolBase] = {}
        for kind in ToolKind:
            kwargs: Dict[str, Any] = {}
            if kind == ToolKind.POLYGON:
                kwargs = {"finish_gap_ms": finish_gap_ms, "clock": clock}
            self._tools[kind] = create_tool(kind, tool_settings.get(kind.value), **kwargs)
        self._active_tool: Optional[ToolBase] = None

    @staticmethod
    def settings_from_config(config: ConfigService) -> Dict[str, Any]:
        """Constructor keyword arguments taken from the user's configuration."""
        return {
            "preset_colors": config.preset_colors,
            "default_color": config.default_color,
            "tool_settings": {kind.value: config.tool_defaults(kind.value) for kind in ToolKind},
            "annotation_defaults": config.annotation_defaults,
            "finish_gap_ms": config.polygon_finish_gap_ms,
            "thumbnail_quality": config.thumbnail_quality,
        }

    @classmethod
    def from_config(cls, config: ConfigService, **kwargs: Any) -> "AnnotationSession":
        """Create a session using the user's configuration."""
        return cls(**cls.settings_from_config(config), **kwargs)

    @classmethod
    def for_document(
        cls,
        document: AnnotationDocument,
        base_raster: Optional[QImage] = None,
        **kwargs: Any
    ) -> "AnnotationSession":
        """
        Create a session that edits a stored document.

        The drawing log is seeded from the document's drawings and the
        metadata from its other fields. Saving updates the document by id.
        """
        session = cls(
            video_name=document.video_name,
            timestamp_seconds=document.timestamp_seconds,
            **kwargs,
        )
        session._document = document
        session._model = DrawingModel(document.drawings)
        session._fade_in = document.fade_in
        session._fade_out = document.fade_out
        session._duration = clamp_duration(document.duration_seconds)
        session._selected_preset = document.representative_color
        for tool in session._tools.values():
            tool.apply_preset(document.representative_color)

        if base_raster is not None:
            session.set_base_raster(base_raster)

        session._logger.info(
            f"Editing annotation {document.id} ({len(document.drawings)} drawings)"
        )
        return session

    # ─── Raster and Rendering ─────────────────────────────────────────────

    def set_base_raster(self, image: QImage) -> None:
        """Set the frozen frame and render the committed scene over it."""
        self._base = image.convertToFormat(SURFACE_FORMAT)
        self._surface = None
        self._logger.info(f"Base raster set: {image.width()}x{image.height()}")
        self.redraw()

    @property
    def base_raster(self) -> Optional[QImage]:
        return self._base

    @property
    def surface(self) -> Optional[QImage]:
        """The displayed image (committed scene plus any ghost)."""
        return self._surface

    def redraw(self) -> None:
        """Render the committed scene, erasing any ghost."""
        surface = render_full(self._base, self._model.snapshot(), self._surface)
        if surface is None:
            return
        self._surface = surface
        self.surface_changed.emit()

    def paint_ghost(self, paint: Callable[[QPainter], None]) -> None:
        """
        Paint a transient shape at half opacity on top of the surface.

        Does nothing until a base raster is set.
        """
        if self._surface is None:
            return
        painter = QPainter(self._surface)
        prepare_painter(painter)
        painter.setOpacity(GHOST_OPACITY)
        paint(painter)
        painter.end()
        self.surface_changed.emit()

    def render_composite(self) -> Optional[QImage]:
        """Render the committed scene into a new image (no ghost)."""
        return render_full(self._base, self._model.snapshot())

    # ─── Tools ────────────────────────────────────────────────────────────

    @property
    def tools(self) -> Dict[ToolKind, ToolBase]:
        return dict(self._tools)

    def tool(self, kind: ToolKind) -> ToolBase:
        return self._tools[kind]

    @property
    def active_tool(self) -> Optional[ToolBase]:
        return self._active_tool

    def set_tool(self, kind: Optional[ToolKind]) -> None:
        """
        Activate a tool (or none).

        The previous tool loses its staging state and the committed scene is
        redrawn without ghosts.
        """
        tool = self._tools[kind] if kind is not None else None
        if tool is self._active_tool:
            return

        if self._active_tool is not None:
            self._active_tool.on_deactivate(self)

        self._active_tool = tool
        self._logger.debug(f"Active tool: {kind.value if kind else 'none'}")
        self.redraw()
        self.tool_changed.emit(kind)

    # ─── Pointer Input ────────────────────────────────────────────────────

    def pointer_move(self, pos: Point) -> None:
        if self._active_tool is None or self._base is None:
            return
        self._active_tool.on_pointer_move(pos, self)

    def click(self, pos: Point, timestamp_ms: Optional[float] = None) -> None:
        if self._active_tool is None or self._base is None:
            return
        self._active_tool.on_click(pos, self, timestamp_ms)

    def secondary_click(self, pos: Point) -> None:
        if self._active_tool is None:
            return
        self._active_tool.on_secondary_click(pos, self)

    # ─── Drawing Log ──────────────────────────────────────────────────────

    @property
    def drawings(self):
        """Snapshot of the committed entries in paint order."""
        return self._model.snapshot()

    def commit(self, properties: EntryProperties) -> DrawingEntry:
        """Append a finished shape to the log and redraw."""
        entry = DrawingEntry.of(properties)
        self._model.append(entry)
        self._logger.info(f"Committed {entry.tool_kind.value} ({len(self._model)} drawings)")
        self.redraw()
        self.drawings_changed.emit(len(self._model))
        return entry

    def undo_last(self) -> None:
        if self._model.undo_last() is None:
            return
        self._logger.info(f"Undo ({len(self._model)} drawings)")
        self.redraw()
        self.drawings_changed.emit(len(self._model))

    def clear(self) -> None:
        self._model.clear()
        self._logger.info("Cleared all drawings")
        self.redraw()
        self.drawings_changed.emit(0)

    # ─── Palette ──────────────────────────────────────────────────────────

    @property
    def preset_colors(self) -> List[str]:
        return list(self._preset_colors)

    @property
    def selected_preset(self) -> Optional[str]:
        return self._selected_preset

    @property
    def representative_color(self) -> str:
        return self._selected_preset or self._default_color

    def select_preset(self, color: str) -> None:
        """Select a palette color and push it into every tool."""
        self._selected_preset = color
        for tool in self._tools.values():
            tool.apply_preset(color)
        self.preset_changed.emit(color)

    def enter_custom_preset(self, text: str) -> bool:
        """
        Select a typed palette color.

        Returns:
            False (nothing changes) unless text is a strict #RRGGBB color.
        """
        if not is_valid_hex(text):
            self._logger.debug(f"Ignoring invalid preset color {text!r}")
            return False
        self.select_preset(text)
        return True

    def clear_preset(self) -> None:
        """Deselect the palette; tools keep their own colors."""
        self._selected_preset = None
        self.preset_changed.emit(None)

    # ─── Timing Metadata ──────────────────────────────────────────────────

    @property
    def duration(self) -> float:
        return self._duration

    def set_duration(self, seconds: float) -> None:
        self._duration = clamp_duration(seconds)

    @property
    def fade_in(self) -> bool:
        return self._fade_in

    def set_fade_in(self, enabled: bool) -> None:
        self._fade_in = bool(enabled)

    @property
    def fade_out(self) -> bool:
        return self._fade_out

    def set_fade_out(self, enabled: bool) -> None:
        self._fade_out = bool(enabled)

    # ─── Persistence ──────────────────────────────────────────────────────

    @property
    def document(self) -> Optional[AnnotationDocument]:
        """The stored document being edited, if any."""
        return self._document

    @property
    def is_editing(self) -> bool:
        return self._document is not None and self._document.id is not None

    def build_document(self) -> Optional[AnnotationDocument]:
        """
        Assemble a document from the committed drawings and metadata.

        Returns:
            The document, or None if nothing has been drawn.
        """
        drawings = self._model.snapshot()
        if not drawings:
            return None

        primary_type = self._active_tool.tool_kind.value if self._active_tool else MIXED_TYPE
        document = AnnotationDocument(
            video_name=self.video_name,
            timestamp_seconds=self.timestamp_seconds,
            drawings=drawings,
            primary_type=primary_type,
            fade_in=self._fade_in,
            fade_out=self._fade_out,
            duration_seconds=self._duration,
            representative_color=self.representative_color,
            thumbnail=encode_thumbnail(self.render_composite(), self._thumbnail_quality),
        )
        if self._document is not None:
            document = document.with_store_fields(
                id=self._document.id,
                created_at=self._document.created_at,
                updated_at=self._document.updated_at,
                extra=self._document.extra,
            )
        return document

    def save(self, store: AnnotationStore) -> bool:
        """
        Create or update the document in a store.

        Returns:
            True on success. On failure nothing in the session changes.
        """
        document = self.build_document()
        if document is None:
            self._logger.debug("Nothing to save")
            return False

        try:
            if self.is_editing:
                stored = store.update(document)
            else:
                stored = store.create(document)
        except StoreError as e:
            self._logger.error(f"Failed to save annotation: {e}")
            return False

        self._document = stored
        self._logger.info(f"Saved annotation {stored.id} for {stored.video_name} @ {stored.timestamp_seconds:.2f}s")
        self.saved.emit(stored)
        return True

    def cancel(self) -> None:
        """Abandon the session without touching any store."""
        if self._active_tool is not None:
            self._active_tool.on_deactivate(self)
        self._model.clear()
        self._logger.info("Annotation session cancelled")
        self.redraw()
        self.cancelled.emit()
