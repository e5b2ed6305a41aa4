"""
Tests for scene rendering
"""
from PySide6.QtGui import QColor

from retflow.editor.annotations import (
    ArrowProperties,
    ArrowShadow,
    CircleProperties,
    DrawingEntry,
    Point,
    PolygonProperties,
    SpotlightProperties,
    compute_particles,
)
from retflow.editor.compositor import render_full


def _square(x: float, y: float, size: float, color: str) -> DrawingEntry:
    vertices = (Point(x, y), Point(x + size, y), Point(x + size, y + size), Point(x, y + size))
    return DrawingEntry.of(PolygonProperties(
        vertices, border_color=color, fill_color=color,
        fill_opacity_percent=100, marker_radius=3,
    ))


def _scene():
    return [
        DrawingEntry.of(CircleProperties(Point(80, 80), 50, "#FF3C00", "#FFD700", 20, 30, 1.2)),
        DrawingEntry.of(ArrowProperties(
            Point(20, 200), Point(280, 120), "#0066FF", 7, 20, True, 50,
            ArrowShadow(True, "#808080", 10, 10),
        )),
        _square(200, 20, 60, "#00FF00"),
        DrawingEntry.of(SpotlightProperties(Point(160, 160), 60, 0.8, 0.6, compute_particles(60, 0.6))),
    ]


class TestRenderFull:
    """Tests for render_full"""

    def test_missing_raster(self):
        """No base raster renders nothing and raises nothing"""
        assert render_full(None, _scene()) is None

    def test_empty_scene_is_base(self, base_image):
        """With no entries the composite is the base raster"""
        result = render_full(base_image, [])
        assert result.pixelColor(10, 10) == QColor(100, 100, 100)
        assert result.size() == base_image.size()

    def test_idempotent(self, base_image):
        """Two renders of the same inputs are pixel-identical"""
        scene = _scene()
        assert render_full(base_image, scene) == render_full(base_image, scene)

    def test_reused_target_matches_fresh(self, base_image):
        """Rendering into an old surface erases what was there"""
        target = render_full(base_image, _scene())
        reused = render_full(base_image, _scene()[:1], target)
        assert reused == render_full(base_image, _scene()[:1])

    def test_overlapping_order_matters(self, base_image):
        """Swapping overlapping entries changes the overlap"""
        red = _square(40, 40, 100, "#FF0000")
        blue = _square(90, 90, 100, "#0000FF")

        red_on_top = render_full(base_image, [blue, red])
        blue_on_top = render_full(base_image, [red, blue])

        assert red_on_top.pixelColor(115, 115) == QColor(255, 0, 0)
        assert blue_on_top.pixelColor(115, 115) == QColor(0, 0, 255)
        assert red_on_top != blue_on_top

    def test_disjoint_order_irrelevant(self, base_image):
        """Swapping entries that do not overlap changes nothing"""
        left = _square(20, 20, 60, "#FF0000")
        right = _square(220, 140, 60, "#0000FF")

        assert render_full(base_image, [left, right]) == render_full(base_image, [right, left])

    def test_spotlight_brightens_center(self, base_image):
        """The spotlight adds white light at its center"""
        spot = DrawingEntry.of(SpotlightProperties(Point(160, 120), 80, 0.8, 0.6, ()))
        result = render_full(base_image, [spot])
        assert result.pixelColor(160, 120).red() > 200

    def test_single_vertex_polygon_paints_nothing(self, base_image):
        """A polygon needs two vertices before anything is drawn"""
        entry = DrawingEntry.of(PolygonProperties((Point(50, 50),), "#FF0000", marker_radius=6))
        assert render_full(base_image, [entry]) == render_full(base_image, [])


BASE_GREY = QColor(100, 100, 100)


def _painted_extent(image):
    """Width and height of the box around every pixel that differs from the base"""
    xs, ys = [], []
    for y in range(image.height()):
        for x in range(image.width()):
            if image.pixelColor(x, y) != BASE_GREY:
                xs.append(x)
                ys.append(y)
    return max(xs) - min(xs) + 1, max(ys) - min(ys) + 1


def _rings(radius, tilt=0.0, scale=1.0):
    return DrawingEntry.of(CircleProperties(
        Point(160, 120), radius, "#FF0000", "#FFD700",
        glow_radius=0, tilt_angle=tilt, scale=scale,
    ))


class TestCirclePaint:
    """Tests for circle tilt and scale"""

    def test_untilted_rings_are_round(self, base_image):
        width, height = _painted_extent(render_full(base_image, [_rings(60)]))
        assert abs(width - height) <= 2

    def test_tilt_squashes_vertically(self, base_image):
        """A 60 degree tilt halves the vertical extent"""
        width, height = _painted_extent(render_full(base_image, [_rings(60, tilt=60, scale=1.5)]))
        assert abs(height / width - 0.5) < 0.05

    def test_scale_is_uniform(self, base_image):
        plain_w, plain_h = _painted_extent(render_full(base_image, [_rings(40)]))
        double_w, double_h = _painted_extent(render_full(base_image, [_rings(40, scale=2.0)]))

        assert abs(double_w / plain_w - 2.0) < 0.1
        assert abs(double_h / plain_h - 2.0) < 0.1


class TestPolygonPaint:
    """Tests for polygon fill and border opacity"""

    def _square(self, fill_opacity):
        vertices = (Point(40, 40), Point(140, 40), Point(140, 140), Point(40, 140))
        return DrawingEntry.of(PolygonProperties(
            vertices, border_color="#0000FF", border_thickness=3,
            fill_color="#FF0000", fill_opacity_percent=fill_opacity, marker_radius=3,
        ))

    def test_fill_uses_opacity_percent(self, base_image):
        """30 percent fill blends 30 percent of the fill color over the frame"""
        inside = render_full(base_image, [self._square(30)]).pixelColor(90, 90)

        assert abs(inside.red() - (100 * 0.7 + 255 * 0.3)) <= 2
        assert abs(inside.green() - 70) <= 2
        assert abs(inside.blue() - 70) <= 2

    def test_zero_opacity_fill_is_invisible(self, base_image):
        inside = render_full(base_image, [self._square(0)]).pixelColor(90, 90)
        assert inside == BASE_GREY

    def test_border_is_opaque(self, base_image):
        """The border ignores the fill opacity"""
        edge = render_full(base_image, [self._square(30)]).pixelColor(40, 90)
        assert edge.blue() >= 250
        assert edge.red() <= 3 and edge.green() <= 3
