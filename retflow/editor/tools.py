"""
Tool framework and implementations for the Retflow editor.

Each tool is a small state machine fed with pointer events by the
AnnotationSession. A tool owns its configuration (the values shown in its
properties panel) and any staging state for a shape in progress. Staging
state never touches the drawing log; a tool hands finished properties to
session.commit() and nothing else.

Tools:
- CircleTool: Single click commits a double ring
- SpotlightTool: Single click commits a light pool
- ArrowTool: Click start, click end
- PolygonTool: Click vertices, two quick clicks finish

Every preview follows the same order: redraw the committed scene, then paint
the ghost at half opacity on top (see ToolBase._preview).
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QPainter

from retflow.editor.annotations import (
    ArrowProperties,
    ArrowShadow,
    CircleProperties,
    LINE_DASH,
    Point,
    PolygonProperties,
    SpotlightProperties,
    ToolKind,
    compute_particles,
    make_pen,
    paint_vertex_markers,
    polyline_path,
)
from retflow.editor.colors import ColorField, to_qcolor
from retflow.services.logging_service import get_logger

if TYPE_CHECKING:
    from retflow.editor.session import AnnotationSession


DEFAULT_FINISH_GAP_MS = 200


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


@dataclass
class CircleConfig:
    """Live configuration of the circle tool."""
    radius: float = 80
    outer_color: ColorField = field(default_factory=lambda: ColorField("#FF3C00"))
    inner_color: ColorField = field(default_factory=lambda: ColorField("#FFD700"))
    glow: float = 20
    tilt: float = 0
    scale: float = 1.0

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "CircleConfig":
        config = cls()
        config.radius = settings.get("radius", config.radius)
        config.outer_color.select_swatch(settings.get("outer_color", config.outer_color.value))
        config.inner_color.select_swatch(settings.get("inner_color", config.inner_color.value))
        config.glow = settings.get("glow", config.glow)
        config.tilt = settings.get("tilt", config.tilt)
        config.scale = settings.get("scale", config.scale)
        return config


@dataclass
class ArrowConfig:
    """Live configuration of the arrow tool."""
    color: ColorField = field(default_factory=lambda: ColorField("#FF3C00"))
    thickness: float = 7
    head_size: float = 20
    dashed: bool = False
    arc_height: float = 50
    bend_enabled: bool = True
    shadow: bool = True
    shadow_color: ColorField = field(default_factory=lambda: ColorField("#808080"))
    shadow_offset: float = 10
    shadow_blur: float = 10

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "ArrowConfig":
        config = cls()
        config.color.select_swatch(settings.get("color", config.color.value))
        config.thickness = settings.get("thickness", config.thickness)
        config.head_size = settings.get("head_size", config.head_size)
        config.dashed = settings.get("dashed", config.dashed)
        config.arc_height = settings.get("arc_height", config.arc_height)
        config.bend_enabled = settings.get("bend_enabled", config.bend_enabled)
        config.shadow = settings.get("shadow", config.shadow)
        config.shadow_color.select_swatch(settings.get("shadow_color", config.shadow_color.value))
        config.shadow_offset = settings.get("shadow_offset", config.shadow_offset)
        config.shadow_blur = settings.get("shadow_blur", config.shadow_blur)
        return config

    @property
    def effective_arc_height(self) -> float:
        """Arc height actually committed (0 when bending is off)."""
        return self.arc_height if self.bend_enabled else 0


@dataclass
class PolygonConfig:
    """Live configuration of the polygon tool."""
    border_color: ColorField = field(default_factory=lambda: ColorField("#FF3C00"))
    border_thickness: float = 3
    dashed: bool = False
    fill_color: ColorField = field(default_factory=lambda: ColorField("#FF3C00"))
    fill_opacity: float = 30
    marker_size: float = 6

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "PolygonConfig":
        config = cls()
        config.border_color.select_swatch(settings.get("border_color", config.border_color.value))
        config.border_thickness = settings.get("border_thickness", config.border_thickness)
        config.dashed = settings.get("dashed", config.dashed)
        config.fill_color.select_swatch(settings.get("fill_color", config.fill_color.value))
        config.fill_opacity = settings.get("fill_opacity", config.fill_opacity)
        config.marker_size = settings.get("marker_size", config.marker_size)
        return config


@dataclass
class SpotlightConfig:
    """Live configuration of the spotlight tool."""
    beam_size: float = 90
    intensity: float = 0.8
    depth: float = 0.6

    @classmethod
    def from_settings(cls, settings: Dict[str, Any]) -> "SpotlightConfig":
        return cls(
            beam_size=settings.get("beam_size", 90),
            intensity=settings.get("intensity", 0.8),
            depth=settings.get("depth", 0.6),
        )


class ToolBase(ABC):
    """
    Base class for all tools.

    Tools receive pointer events in image coordinates from the session and
    call back into it to redraw, paint ghosts and commit entries.
    """

    def __init__(self) -> None:
        self._logger = get_logger(__name__)

    @property
    @abstractmethod
    def tool_kind(self) -> ToolKind:
        """Return the kind of entry this tool produces."""
        pass

    @property
    def cursor(self) -> Qt.CursorShape:
        """Return the cursor to use when this tool is active."""
        return Qt.CursorShape.CrossCursor

    @property
    def has_staging(self) -> bool:
        """True while the tool holds an unfinished shape."""
        return False

    @abstractmethod
    def on_pointer_move(self, pos: Point, session: "AnnotationSession") -> None:
        """Handle pointer movement over the image."""
        pass

    @abstractmethod
    def on_click(
        self,
        pos: Point,
        session: "AnnotationSession",
        timestamp_ms: Optional[float] = None
    ) -> None:
        """
        Handle a primary click.

        Args:
            pos: Click position in image coordinates.
            session: The owning session.
            timestamp_ms: Event time in milliseconds, if known.
        """
        pass

    def on_secondary_click(self, pos: Point, session: "AnnotationSession") -> None:
        """Handle a secondary (right) click. Ignored by default."""
        pass

    def on_deactivate(self, session: "AnnotationSession") -> None:
        """Called when another tool is selected; drops staging state."""
        pass

    def apply_preset(self, color: str) -> None:
        """Push a palette preset into the tool's primary colors."""
        pass

    def _preview(self, session: "AnnotationSession", paint: Callable[[QPainter], None]) -> None:
        # Erase the previous ghost first so ghosts never accumulate
        session.redraw()
        session.paint_ghost(paint)


class CircleTool(ToolBase):
    """
    Tool for double-ring circles.

    Moving shows a ghost at the cursor with the live configuration; a click
    commits the configuration active at that moment.
    """

    def __init__(self, config: Optional[CircleConfig] = None) -> None:
        super().__init__()
        self.config = config or CircleConfig()

    @property
    def tool_kind(self) -> ToolKind:
        return ToolKind.CIRCLE

    def build_properties(self, center: Point) -> CircleProperties:
        """Snapshot the live configuration as circle properties."""
        config = self.config
        return CircleProperties(
            center=center,
            radius=config.radius,
            outer_color=config.outer_color.value,
            inner_color=config.inner_color.value,
            glow_radius=config.glow,
            tilt_angle=config.tilt,
            scale=config.scale,
        )

    def on_pointer_move(self, pos: Point, session: "AnnotationSession") -> None:
        self._preview(session, self.build_properties(pos).paint)

    def on_click(
        self,
        pos: Point,
        session: "AnnotationSession",
        timestamp_ms: Optional[float] = None
    ) -> None:
        session.commit(self.build_properties(pos))

    def apply_preset(self, color: str) -> None:
        self.config.outer_color.select_swatch(color)


class SpotlightTool(ToolBase):
    """
    Tool for spotlight highlights.

    Particle positions are computed when the properties are built, so a
    committed spotlight keeps the layout it had at click time.
    """

    def __init__(self, config: Optional[SpotlightConfig] = None) -> None:
        super().__init__()
        self.config = config or SpotlightConfig()

    @property
    def tool_kind(self) -> ToolKind:
        return ToolKind.SPOTLIGHT

    def build_properties(self, center: Point) -> SpotlightProperties:
        config = self.config
        return SpotlightProperties(
            center=center,
            beam_radius=config.beam_size,
            intensity=config.intensity,
            depth_squash=config.depth,
            particles=compute_particles(config.beam_size, config.depth),
        )

    def on_pointer_move(self, pos: Point, session: "AnnotationSession") -> None:
        self._preview(session, self.build_properties(pos).paint)

    def on_click(
        self,
        pos: Point,
        session: "AnnotationSession",
        timestamp_ms: Optional[float] = None
    ) -> None:
        session.commit(self.build_properties(pos))


class ArrowTool(ToolBase):
    """
    Tool for curved arrows.

    First click sets the start point, second click commits the arrow to the
    click position. A secondary click between the two cancels.
    """

    def __init__(self, config: Optional[ArrowConfig] = None) -> None:
        super().__init__()
        self.config = config or ArrowConfig()
        self._start: Optional[Point] = None

    @property
    def tool_kind(self) -> ToolKind:
        return ToolKind.ARROW

    @property
    def start(self) -> Optional[Point]:
        return self._start

    @property
    def awaiting_end(self) -> bool:
        return self._start is not None

    @property
    def has_staging(self) -> bool:
        return self.awaiting_end

    def build_properties(self, start: Point, end: Point) -> ArrowProperties:
        config = self.config
        return ArrowProperties(
            start=start,
            end=end,
            color=config.color.value,
            thickness=config.thickness,
            head_size=config.head_size,
            dashed=config.dashed,
            arc_height=config.effective_arc_height,
            shadow=ArrowShadow(
                enabled=config.shadow,
                color=config.shadow_color.value,
                offset_y=config.shadow_offset,
                blur=config.shadow_blur,
            ),
        )

    def on_pointer_move(self, pos: Point, session: "AnnotationSession") -> None:
        if self._start is None:
            return
        self._preview(session, self.build_properties(self._start, pos).paint)

    def on_click(
        self,
        pos: Point,
        session: "AnnotationSession",
        timestamp_ms: Optional[float] = None
    ) -> None:
        if self._start is None:
            self._start = pos
            self._logger.debug(f"Arrow start at ({pos.x:.0f}, {pos.y:.0f})")
            return

        properties = self.build_properties(self._start, pos)
        self._start = None
        session.commit(properties)

    def on_secondary_click(self, pos: Point, session: "AnnotationSession") -> None:
        if self._start is None:
            return
        self._start = None
        self._logger.debug("Arrow cancelled")
        session.redraw()

    def on_deactivate(self, session: "AnnotationSession") -> None:
        self._start = None

    def apply_preset(self, color: str) -> None:
        self.config.color.select_swatch(color)


class PolygonTool(ToolBase):
    """
    Tool for filled polygons.

    Each click adds a vertex. A click arriving less than finish_gap_ms after
    the previous vertex finishes the polygon, but only once at least three
    vertices are staged; before that, quick clicks keep adding vertices.
    A secondary click drops the staged vertices.

    Note:
        The finish gap is pure timing with no travel distance check, so a
        fast click meant as a new vertex finishes the shape instead.
    """

    MIN_VERTICES = 3

    def __init__(
        self,
        config: Optional[PolygonConfig] = None,
        finish_gap_ms: float = DEFAULT_FINISH_GAP_MS,
        clock: Optional[Callable[[], float]] = None
    ) -> None:
        """
        Initialize the polygon tool.

        Args:
            config: Tool configuration (defaults when omitted).
            finish_gap_ms: Click gap below which a click finishes the shape.
            clock: Millisecond clock used when a click carries no timestamp.
        """
        super().__init__()
        self.config = config or PolygonConfig()
        self._finish_gap_ms = finish_gap_ms
        self._clock = clock or _monotonic_ms
        self._vertices: List[Point] = []
        self._last_click_ms: Optional[float] = None

    @property
    def tool_kind(self) -> ToolKind:
        return ToolKind.POLYGON

    @property
    def vertices(self) -> List[Point]:
        """Copy of the staged vertices."""
        return list(self._vertices)

    @property
    def has_staging(self) -> bool:
        return bool(self._vertices)

    def build_properties(self, vertices: List[Point]) -> PolygonProperties:
        config = self.config
        return PolygonProperties(
            vertices=tuple(vertices),
            border_color=config.border_color.value,
            border_thickness=config.border_thickness,
            dashed=config.dashed,
            fill_color=config.fill_color.value,
            fill_opacity_percent=config.fill_opacity,
            marker_radius=config.marker_size,
        )

    def on_pointer_move(self, pos: Point, session: "AnnotationSession") -> None:
        if not self._vertices:
            return
        staged = list(self._vertices)

        def paint(painter: QPainter) -> None:
            config = self.config
            painter.setPen(make_pen(
                to_qcolor(config.border_color.value), config.border_thickness,
                LINE_DASH if config.dashed else None
            ))
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawPath(polyline_path(staged + [pos], closed=False))
            paint_vertex_markers(painter, staged, config.border_color.value, config.marker_size)

        self._preview(session, paint)

    def on_click(
        self,
        pos: Point,
        session: "AnnotationSession",
        timestamp_ms: Optional[float] = None
    ) -> None:
        now = self._clock() if timestamp_ms is None else timestamp_ms

        if (
            self._last_click_ms is not None
            and now - self._last_click_ms < self._finish_gap_ms
            and len(self._vertices) >= self.MIN_VERTICES
        ):
            self.finish(session)
            return

        self._vertices.append(pos)
        self._last_click_ms = now
        self._logger.debug(f"Polygon vertex {len(self._vertices)} at ({pos.x:.0f}, {pos.y:.0f})")

    def finish(self, session: "AnnotationSession") -> bool:
        """
        Commit the staged vertices as a polygon.

        Returns:
            False (and nothing changes) if fewer than three are staged.
        """
        if len(self._vertices) < self.MIN_VERTICES:
            self._logger.debug(f"Polygon needs {self.MIN_VERTICES} vertices, has {len(self._vertices)}")
            return False

        properties = self.build_properties(self._vertices)
        self._vertices = []
        session.commit(properties)
        return True

    def on_secondary_click(self, pos: Point, session: "AnnotationSession") -> None:
        self._vertices = []
        session.redraw()

    def on_deactivate(self, session: "AnnotationSession") -> None:
        self._vertices = []

    def apply_preset(self, color: str) -> None:
        self.config.border_color.select_swatch(color)
        self.config.fill_color.select_swatch(color)


def create_tool(tool_kind: ToolKind, settings: Optional[Dict[str, Any]] = None, **kwargs) -> ToolBase:
    """
    Factory function to create a tool by kind.

    Args:
        tool_kind: The kind of tool to create.
        settings: Optional per-tool defaults (see ConfigService.tool_defaults).
        **kwargs: Extra constructor arguments (e.g. clock for PolygonTool).

    Returns:
        A new tool instance.
    """
    settings = settings or {}
    if tool_kind == ToolKind.CIRCLE:
        return CircleTool(CircleConfig.from_settings(settings), **kwargs)
    if tool_kind == ToolKind.SPOTLIGHT:
        return SpotlightTool(SpotlightConfig.from_settings(settings), **kwargs)
    if tool_kind == ToolKind.ARROW:
        return ArrowTool(ArrowConfig.from_settings(settings), **kwargs)
    if tool_kind == ToolKind.POLYGON:
        return PolygonTool(PolygonConfig.from_settings(settings), **kwargs)
    raise ValueError(f"Unknown tool kind: {tool_kind}")
