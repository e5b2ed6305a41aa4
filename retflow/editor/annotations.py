"""
Drawing entry models for the Retflow annotation editor.

This module provides the immutable data models for every shape that can be
committed to a frame. Each properties class knows how to:
- Paint itself on a QPainter
- Serialize to and from the persisted record format

Entry Types:
- CircleProperties: Double dashed ring with optional glow and 3D tilt
- ArrowProperties: Curved gradient arrow with arrowhead and drop shadow
- PolygonProperties: Filled outline with glowing vertex markers
- SpotlightProperties: Radial light pool with frozen particles

Coordinates are image pixels. Colors are stored as the strings the user
chose (normally "#RRGGBB") and converted when painting.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

from PySide6.QtCore import QPointF, Qt
from PySide6.QtGui import (
    QBrush,
    QColor,
    QLinearGradient,
    QPainter,
    QPainterPath,
    QPen,
    QPolygonF,
    QRadialGradient,
)

from retflow.editor.colors import adjust_brightness, to_qcolor
from retflow.editor.effects import paint_with_shadow


# Ring styles (width, dash pattern in pixels)
OUTER_RING_WIDTH = 11
OUTER_RING_DASH = (28, 12)
INNER_RING_WIDTH = 6
INNER_RING_DASH = (20, 10)
INNER_RING_RATIO = 0.7

# Arrow and polygon line dash
LINE_DASH = (10, 5)

# Alpha of the arrow gradient at its end (0x4D)
ARROW_TAIL_ALPHA = 0x4D / 255
# Bezier parameter used to aim the arrowhead
ARROWHEAD_T = 0.99
ARROWHEAD_SPREAD = math.pi / 6
ARROWHEAD_OUTLINE_WIDTH = 2
ARROWHEAD_DARKEN = -20

MARKER_GLOW_BLUR = 4

SPOTLIGHT_RING_RATIO = 0.9
SPOTLIGHT_RING_WIDTH = 3
PARTICLE_COUNT = 8
PARTICLE_DISTANCE_RATIO = 0.8
PARTICLE_SIZE = 3


class ToolKind(Enum):
    """Enum for drawing tool kinds (values are the persisted names)."""
    CIRCLE = "circle"
    ARROW = "arrow"
    POLYGON = "polygon"
    SPOTLIGHT = "spotlight"


@dataclass(frozen=True)
class Point:
    """A point in image coordinates."""
    x: float
    y: float

    def to_qpointf(self) -> QPointF:
        return QPointF(self.x, self.y)

    @classmethod
    def from_qpointf(cls, pos: QPointF) -> "Point":
        return cls(pos.x(), pos.y())

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point":
        return cls(x=float(data["x"]), y=float(data["y"]))


def arrow_control_point(start: Point, end: Point, arc_height: float) -> Point:
    """
    Control point of the arrow's quadratic curve.

    X is the midpoint of the endpoints, Y sits arc_height above the higher
    endpoint. With arc_height 0 and endpoints at different heights this is
    not the segment midpoint, so the arrow still bows slightly.
    """
    return Point((start.x + end.x) / 2, min(start.y, end.y) - arc_height)


def quadratic_point(p0: Point, p1: Point, p2: Point, t: float) -> Point:
    """Evaluate a quadratic Bezier curve at parameter t."""
    u = 1 - t
    return Point(
        u * u * p0.x + 2 * u * t * p1.x + t * t * p2.x,
        u * u * p0.y + 2 * u * t * p1.y + t * t * p2.y,
    )


def arrowhead_points(
    start: Point,
    control: Point,
    end: Point,
    head_size: float
) -> Tuple[Point, Point]:
    """
    Wing points of the arrowhead.

    The head is aimed along the chord from the curve point at t=0.99 to the
    end point. Wings sit head_size back from the end point at +/-30 degrees.
    A zero-length arrow aims along +X.
    """
    near = quadratic_point(start, control, end, ARROWHEAD_T)
    angle = math.atan2(end.y - near.y, end.x - near.x)
    left = Point(
        end.x - head_size * math.cos(angle - ARROWHEAD_SPREAD),
        end.y - head_size * math.sin(angle - ARROWHEAD_SPREAD),
    )
    right = Point(
        end.x - head_size * math.cos(angle + ARROWHEAD_SPREAD),
        end.y - head_size * math.sin(angle + ARROWHEAD_SPREAD),
    )
    return left, right


def make_pen(
    brush,
    width: float,
    dash: Optional[Sequence[float]] = None
) -> QPen:
    """
    Create a flat-capped pen.

    Args:
        brush: QColor or QBrush for the stroke.
        width: Stroke width in pixels.
        dash: Optional dash pattern in pixels (on, off, ...).
    """
    pen = QPen(QBrush(brush), width)
    pen.setCapStyle(Qt.PenCapStyle.FlatCap)
    pen.setJoinStyle(Qt.PenJoinStyle.MiterJoin)
    if dash and width > 0:
        # Qt dash lengths are in units of the pen width
        pen.setDashPattern([d / width for d in dash])
    return pen


def polyline_path(points: Sequence[Point], closed: bool) -> QPainterPath:
    """Build a straight-segment path through points."""
    path = QPainterPath()
    if not points:
        return path
    path.moveTo(points[0].to_qpointf())
    for point in points[1:]:
        path.lineTo(point.to_qpointf())
    if closed:
        path.closeSubpath()
    return path


def paint_vertex_markers(
    painter: QPainter,
    vertices: Sequence[Point],
    color: str,
    radius: float
) -> None:
    """Paint a filled disc with a soft white glow at every vertex."""
    fill = to_qcolor(color)
    glow = QColor(255, 255, 255)

    for vertex in vertices:
        def draw(p: QPainter, v: Point = vertex) -> None:
            p.setPen(Qt.PenStyle.NoPen)
            p.setBrush(fill)
            p.drawEllipse(v.to_qpointf(), radius, radius)

        # One glow per marker; the next marker paints over it
        paint_with_shadow(painter, glow, MARKER_GLOW_BLUR, 0, 0, draw)


class EntryProperties(ABC):
    """
    Base class for the finalized properties of a drawing entry.

    Subclasses are frozen dataclasses: once committed an entry never changes.
    """

    @property
    @abstractmethod
    def tool_kind(self) -> ToolKind:
        """Return the tool kind these properties belong to."""
        pass

    @abstractmethod
    def paint(self, painter: QPainter) -> None:
        """
        Paint the shape.

        Args:
            painter: The QPainter to use. Its state is restored on return.
        """
        pass

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted properties dictionary."""
        pass


@dataclass(frozen=True)
class CircleProperties(EntryProperties):
    """
    Two concentric dashed rings.

    The outer ring is drawn at radius, the inner one at 0.7 * radius. A
    non-zero tilt squashes the rings vertically by cos(tilt) to fake a 3D
    rotation about the X axis.
    """
    center: Point
    radius: float
    outer_color: str
    inner_color: str
    glow_radius: float = 0
    tilt_angle: float = 0
    scale: float = 1.0

    @property
    def tool_kind(self) -> ToolKind:
        return ToolKind.CIRCLE

    def paint(self, painter: QPainter) -> None:
        painter.save()
        painter.translate(self.center.x, self.center.y)
        painter.scale(self.scale, self.scale)

        if self.tilt_angle != 0:
            painter.scale(1.0, math.cos(math.radians(self.tilt_angle)))

        if self.glow_radius > 0:
            paint_with_shadow(
                painter, to_qcolor(self.outer_color),
                self.glow_radius, 0, 0, self._paint_rings
            )
        else:
            self._paint_rings(painter)

        painter.restore()

    def _paint_rings(self, painter: QPainter) -> None:
        painter.setBrush(Qt.BrushStyle.NoBrush)
        origin = QPointF(0, 0)

        painter.setPen(make_pen(to_qcolor(self.outer_color), OUTER_RING_WIDTH, OUTER_RING_DASH))
        painter.drawEllipse(origin, self.radius, self.radius)

        inner = self.radius * INNER_RING_RATIO
        painter.setPen(make_pen(to_qcolor(self.inner_color), INNER_RING_WIDTH, INNER_RING_DASH))
        painter.drawEllipse(origin, inner, inner)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.center.x,
            "y": self.center.y,
            "radius": self.radius,
            "outerColor": self.outer_color,
            "innerColor": self.inner_color,
            "glow": self.glow_radius,
            "rotateX": self.tilt_angle,
            "scale": self.scale,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CircleProperties":
        return cls(
            center=Point(float(data["x"]), float(data["y"])),
            radius=float(data["radius"]),
            outer_color=str(data["outerColor"]),
            inner_color=str(data["innerColor"]),
            glow_radius=float(data.get("glow", 0)),
            tilt_angle=float(data.get("rotateX", 0)),
            scale=float(data.get("scale", 1.0)),
        )


@dataclass(frozen=True)
class ArrowShadow:
    """Drop shadow settings for an arrow."""
    enabled: bool = True
    color: str = "#808080"
    offset_y: float = 10
    blur: float = 10


@dataclass(frozen=True)
class ArrowProperties(EntryProperties):
    """
    Curved arrow from start to end.

    The body is a quadratic curve through arrow_control_point(), stroked with
    a gradient that fades to ~30% alpha at the end. The head is a filled
    triangle outlined in a slightly darker shade.
    """
    start: Point
    end: Point
    color: str
    thickness: float = 7
    head_size: float = 20
    dashed: bool = False
    arc_height: float = 0
    shadow: ArrowShadow = field(default_factory=ArrowShadow)

    @property
    def tool_kind(self) -> ToolKind:
        return ToolKind.ARROW

    @property
    def control_point(self) -> Point:
        return arrow_control_point(self.start, self.end, self.arc_height)

    def paint(self, painter: QPainter) -> None:
        painter.save()
        if self.shadow.enabled:
            paint_with_shadow(
                painter, to_qcolor(self.shadow.color),
                self.shadow.blur, 0, self.shadow.offset_y, self._paint_arrow
            )
        else:
            self._paint_arrow(painter)
        painter.restore()

    def _paint_arrow(self, painter: QPainter) -> None:
        start = self.start
        end = self.end
        control = self.control_point

        # Body
        gradient = QLinearGradient(start.x, start.y, end.x, end.y)
        gradient.setColorAt(0.0, to_qcolor(self.color))
        gradient.setColorAt(1.0, to_qcolor(self.color, alpha=ARROW_TAIL_ALPHA))

        path = QPainterPath(start.to_qpointf())
        path.quadTo(control.to_qpointf(), end.to_qpointf())

        painter.setPen(make_pen(gradient, self.thickness, LINE_DASH if self.dashed else None))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawPath(path)

        # Head
        left, right = arrowhead_points(start, control, end, self.head_size)
        head = QPolygonF([end.to_qpointf(), left.to_qpointf(), right.to_qpointf()])

        outline = adjust_brightness(self.color, ARROWHEAD_DARKEN)
        painter.setPen(make_pen(to_qcolor(outline), ARROWHEAD_OUTLINE_WIDTH))
        painter.setBrush(to_qcolor(self.color))
        painter.drawPolygon(head)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "startX": self.start.x,
            "startY": self.start.y,
            "endX": self.end.x,
            "endY": self.end.y,
            "color": self.color,
            "thickness": self.thickness,
            "headSize": self.head_size,
            "dashed": self.dashed,
            "arcHeight": self.arc_height,
            "shadow": self.shadow.enabled,
            "shadowColor": self.shadow.color,
            "shadowOffset": self.shadow.offset_y,
            "shadowBlur": self.shadow.blur,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArrowProperties":
        return cls(
            start=Point(float(data["startX"]), float(data["startY"])),
            end=Point(float(data["endX"]), float(data["endY"])),
            color=str(data["color"]),
            thickness=float(data["thickness"]),
            head_size=float(data["headSize"]),
            dashed=bool(data.get("dashed", False)),
            arc_height=float(data.get("arcHeight", 0)),
            shadow=ArrowShadow(
                enabled=bool(data.get("shadow", False)),
                color=str(data.get("shadowColor", "#808080")),
                offset_y=float(data.get("shadowOffset", 0)),
                blur=float(data.get("shadowBlur", 0)),
            ),
        )


@dataclass(frozen=True)
class PolygonProperties(EntryProperties):
    """
    Closed polygon with translucent fill, solid border and vertex markers.

    Fewer than two vertices paint nothing.
    """
    vertices: Tuple[Point, ...]
    border_color: str
    border_thickness: float = 3
    dashed: bool = False
    fill_color: str = "#FF3C00"
    fill_opacity_percent: float = 30
    marker_radius: float = 6

    @property
    def tool_kind(self) -> ToolKind:
        return ToolKind.POLYGON

    def paint(self, painter: QPainter) -> None:
        if len(self.vertices) < 2:
            return

        painter.save()
        path = polyline_path(self.vertices, closed=True)
        base_opacity = painter.opacity()

        # Fill
        fill_alpha = max(0.0, min(100.0, self.fill_opacity_percent)) / 100
        painter.setOpacity(base_opacity * fill_alpha)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(to_qcolor(self.fill_color))
        painter.drawPath(path)

        # Border
        painter.setOpacity(base_opacity)
        painter.setPen(make_pen(
            to_qcolor(self.border_color), self.border_thickness,
            LINE_DASH if self.dashed else None
        ))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawPath(path)

        paint_vertex_markers(painter, self.vertices, self.border_color, self.marker_radius)
        painter.restore()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vertices": [v.to_dict() for v in self.vertices],
            "borderColor": self.border_color,
            "borderThickness": self.border_thickness,
            "dashed": self.dashed,
            "fillColor": self.fill_color,
            "fillOpacity": self.fill_opacity_percent,
            "markerSize": self.marker_radius,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolygonProperties":
        return cls(
            vertices=tuple(Point.from_dict(v) for v in data["vertices"]),
            border_color=str(data["borderColor"]),
            border_thickness=float(data["borderThickness"]),
            dashed=bool(data.get("dashed", False)),
            fill_color=str(data["fillColor"]),
            fill_opacity_percent=float(data["fillOpacity"]),
            marker_radius=float(data["markerSize"]),
        )


@dataclass(frozen=True)
class Particle:
    """A spotlight particle, relative to the spotlight center."""
    x: float
    y: float
    size: float = PARTICLE_SIZE
    angle: float = 0
    distance: float = 0

    def to_dict(self) -> Dict[str, float]:
        return {
            "x": self.x,
            "y": self.y,
            "size": self.size,
            "angle": self.angle,
            "distance": self.distance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Particle":
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            size=float(data.get("size", PARTICLE_SIZE)),
            angle=float(data.get("angle", 0)),
            distance=float(data.get("distance", 0)),
        )


def compute_particles(beam_radius: float, depth_squash: float) -> Tuple[Particle, ...]:
    """
    Lay out the spotlight particles on an ellipse at 80% of the beam.

    The result is a value snapshot; callers store it in the entry so later
    configuration changes never move committed particles.
    """
    distance = beam_radius * PARTICLE_DISTANCE_RATIO
    particles = []
    for i in range(PARTICLE_COUNT):
        angle = (math.pi * 2 * i) / PARTICLE_COUNT
        particles.append(Particle(
            x=math.cos(angle) * distance,
            y=math.sin(angle) * distance * depth_squash,
            size=PARTICLE_SIZE,
            angle=angle,
            distance=distance,
        ))
    return tuple(particles)


@dataclass(frozen=True)
class SpotlightProperties(EntryProperties):
    """
    Soft white light pool.

    Everything is painted in a frame squashed vertically by depth_squash,
    including the particles (whose stored Y is already squashed once).
    """
    center: Point
    beam_radius: float
    intensity: float
    depth_squash: float
    particles: Tuple[Particle, ...] = ()

    @property
    def tool_kind(self) -> ToolKind:
        return ToolKind.SPOTLIGHT

    def paint(self, painter: QPainter) -> None:
        painter.save()
        painter.translate(self.center.x, self.center.y)
        painter.scale(1.0, self.depth_squash)
        origin = QPointF(0, 0)

        gradient = QRadialGradient(origin, self.beam_radius)
        gradient.setColorAt(0.0, self._white(self.intensity))
        gradient.setColorAt(0.5, self._white(self.intensity * 0.5))
        gradient.setColorAt(1.0, self._white(0))

        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QBrush(gradient))
        painter.drawEllipse(origin, self.beam_radius, self.beam_radius)

        ring = self.beam_radius * SPOTLIGHT_RING_RATIO
        painter.setPen(make_pen(self._white(self.intensity * 0.8), SPOTLIGHT_RING_WIDTH))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawEllipse(origin, ring, ring)

        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(self._white(self.intensity * 0.6))
        for particle in self.particles:
            painter.drawEllipse(QPointF(particle.x, particle.y), particle.size, particle.size)

        painter.restore()

    @staticmethod
    def _white(alpha: float) -> QColor:
        color = QColor(255, 255, 255)
        color.setAlphaF(max(0.0, min(1.0, alpha)))
        return color

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.center.x,
            "y": self.center.y,
            "size": self.beam_radius,
            "intensity": self.intensity,
            "rotation": self.depth_squash,
            "particles": [p.to_dict() for p in self.particles],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SpotlightProperties":
        return cls(
            center=Point(float(data["x"]), float(data["y"])),
            beam_radius=float(data["size"]),
            intensity=float(data["intensity"]),
            depth_squash=float(data["rotation"]),
            particles=tuple(Particle.from_dict(p) for p in data.get("particles", [])),
        )


PROPERTIES_BY_KIND = {
    ToolKind.CIRCLE: CircleProperties,
    ToolKind.ARROW: ArrowProperties,
    ToolKind.POLYGON: PolygonProperties,
    ToolKind.SPOTLIGHT: SpotlightProperties,
}


@dataclass(frozen=True)
class DrawingEntry:
    """
    One committed shape: a tool kind plus its finalized properties.

    Entries are never edited; the drawing log only appends, drops its tail,
    or clears.
    """
    tool_kind: ToolKind
    properties: EntryProperties

    def __post_init__(self) -> None:
        if self.properties.tool_kind != self.tool_kind:
            raise ValueError(
                f"{type(self.properties).__name__} cannot back a {self.tool_kind.value} entry"
            )

    @classmethod
    def of(cls, properties: EntryProperties) -> "DrawingEntry":
        """Create an entry whose kind is taken from its properties."""
        return cls(properties.tool_kind, properties)

    def paint(self, painter: QPainter) -> None:
        self.properties.paint(painter)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool_kind.value,
            "properties": self.properties.to_dict(),
        }
