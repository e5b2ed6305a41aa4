"""
Tests for the tool state machines
"""
from PySide6.QtCore import QRect
from PySide6.QtGui import QColor

from retflow.editor.annotations import Point, ToolKind, compute_particles
from retflow.editor.compositor import render_full
from retflow.editor.session import GHOST_OPACITY, AnnotationSession


def _committed_view(session):
    return render_full(session.base_raster, session.drawings)


class TestCircleTool:
    """Tests for the single-click circle tool"""

    def test_move_shows_ghost_only(self, session):
        """Moving paints a ghost without committing anything"""
        session.set_tool(ToolKind.CIRCLE)
        session.pointer_move(Point(100, 100))

        assert session.drawings == ()
        assert session.surface != _committed_view(session)

    def test_ghosts_do_not_accumulate(self, session, base_image, clock):
        """Each move erases the previous ghost"""
        session.set_tool(ToolKind.CIRCLE)
        session.pointer_move(Point(60, 60))
        session.pointer_move(Point(200, 150))

        fresh = AnnotationSession(clock=clock)
        fresh.set_base_raster(base_image)
        fresh.set_tool(ToolKind.CIRCLE)
        fresh.pointer_move(Point(200, 150))

        assert session.surface == fresh.surface

    def test_click_commits_config_at_click_time(self, session):
        """The committed circle uses the configuration when clicked"""
        session.set_tool(ToolKind.CIRCLE)
        tool = session.tool(ToolKind.CIRCLE)
        session.pointer_move(Point(100, 100))
        tool.config.radius = 120
        session.click(Point(100, 100))

        (entry,) = session.drawings
        assert entry.tool_kind == ToolKind.CIRCLE
        assert entry.properties.radius == 120
        assert entry.properties.center == Point(100, 100)
        assert session.surface == _committed_view(session)

    def test_leaving_tool_clears_ghost(self, session):
        """Switching tools redraws without the ghost"""
        session.set_tool(ToolKind.CIRCLE)
        session.pointer_move(Point(100, 100))
        session.set_tool(None)
        assert session.surface == _committed_view(session)


class TestSpotlightTool:
    """Tests for the spotlight tool"""

    def test_particles_frozen_at_commit(self, session):
        """Later configuration changes never move committed particles"""
        session.set_tool(ToolKind.SPOTLIGHT)
        tool = session.tool(ToolKind.SPOTLIGHT)
        session.click(Point(150, 120))

        tool.config.beam_size = 150
        tool.config.depth = 1.0
        session.click(Point(50, 50))

        first, second = session.drawings
        assert first.properties.particles == compute_particles(90, 0.6)
        assert second.properties.particles == compute_particles(150, 1.0)


class TestArrowTool:
    """Tests for the two-click arrow tool"""

    def test_two_clicks_commit(self, session):
        """First click sets the start, second commits"""
        session.set_tool(ToolKind.ARROW)
        tool = session.tool(ToolKind.ARROW)

        session.click(Point(10, 200))
        assert tool.awaiting_end
        assert session.drawings == ()

        session.pointer_move(Point(200, 100))
        assert session.drawings == ()
        assert session.surface != _committed_view(session)

        session.click(Point(250, 80))
        (entry,) = session.drawings
        assert entry.properties.start == Point(10, 200)
        assert entry.properties.end == Point(250, 80)
        assert entry.properties.arc_height == 50
        assert not tool.awaiting_end

    def test_bend_disabled_commits_flat(self, session):
        """With bending off the committed arc height is 0"""
        session.set_tool(ToolKind.ARROW)
        session.tool(ToolKind.ARROW).config.bend_enabled = False
        session.click(Point(10, 10))
        session.click(Point(100, 50))
        assert session.drawings[0].properties.arc_height == 0

    def test_secondary_click_cancels(self, session):
        """A right click while waiting for the end cancels cleanly"""
        session.set_tool(ToolKind.ARROW)
        tool = session.tool(ToolKind.ARROW)

        session.click(Point(10, 10))
        session.pointer_move(Point(120, 80))
        session.secondary_click(Point(120, 80))

        assert not tool.awaiting_end
        assert session.drawings == ()
        assert session.surface == _committed_view(session)

        # Next click starts a new arrow instead of finishing the old one
        session.click(Point(30, 30))
        assert tool.start == Point(30, 30)
        assert session.drawings == ()

    def test_zero_length_arrow(self, session):
        """Clicking twice on the same spot commits without failing"""
        session.set_tool(ToolKind.ARROW)
        session.click(Point(60, 60))
        session.click(Point(60, 60))
        assert len(session.drawings) == 1


class TestPolygonTool:
    """Tests for the multi-click polygon tool"""

    def test_quick_clicks_finish_after_three(self, session):
        """Fast clicks append until three vertices, then finish"""
        session.set_tool(ToolKind.POLYGON)
        tool = session.tool(ToolKind.POLYGON)

        session.click(Point(20, 20), timestamp_ms=0)
        session.click(Point(200, 30), timestamp_ms=210)
        assert len(tool.vertices) == 2

        # 20ms gap but only two staged: appends
        session.click(Point(120, 180), timestamp_ms=230)
        assert len(tool.vertices) == 3
        assert session.drawings == ()

        # 20ms gap with three staged: finishes
        session.click(Point(121, 181), timestamp_ms=250)
        assert tool.vertices == []
        (entry,) = session.drawings
        assert entry.properties.vertices == (Point(20, 20), Point(200, 30), Point(120, 180))

    def test_slow_clicks_keep_adding(self, session):
        """Clicks further apart than the gap only add vertices"""
        session.set_tool(ToolKind.POLYGON)
        tool = session.tool(ToolKind.POLYGON)

        for i, t in enumerate([0, 300, 600, 900, 1200]):
            session.click(Point(20 + i * 40, 20 + (i % 2) * 60), timestamp_ms=t)

        assert len(tool.vertices) == 5
        assert session.drawings == ()

    def test_injected_clock(self, session, clock):
        """Clicks without timestamps use the session clock"""
        session.set_tool(ToolKind.POLYGON)
        for point in (Point(10, 10), Point(100, 10), Point(60, 90)):
            clock.advance(500)
            session.click(point)
        clock.advance(50)
        session.click(Point(60, 90))

        assert len(session.drawings) == 1

    def test_finish_refused_below_three(self, session):
        """Finishing with two vertices is a silent no-op"""
        session.set_tool(ToolKind.POLYGON)
        tool = session.tool(ToolKind.POLYGON)
        session.click(Point(10, 10), timestamp_ms=0)
        session.click(Point(90, 10), timestamp_ms=500)

        assert tool.finish(session) is False
        assert len(tool.vertices) == 2
        assert session.drawings == ()

    def test_preview_needs_a_vertex(self, session):
        """Moving before the first click leaves the surface alone"""
        session.set_tool(ToolKind.POLYGON)
        session.pointer_move(Point(50, 50))
        assert session.surface == _committed_view(session)

        session.click(Point(10, 10), timestamp_ms=0)
        session.pointer_move(Point(50, 50))
        assert session.surface != _committed_view(session)

    def test_secondary_click_clears_staging(self, session):
        """A right click drops staged vertices without committing"""
        session.set_tool(ToolKind.POLYGON)
        tool = session.tool(ToolKind.POLYGON)
        for i, point in enumerate((Point(10, 10), Point(90, 10), Point(50, 80))):
            session.click(point, timestamp_ms=i * 500)
        session.pointer_move(Point(70, 70))

        session.secondary_click(Point(70, 70))

        assert tool.vertices == []
        assert session.drawings == ()
        assert session.surface == _committed_view(session)


class TestToolSwitching:
    """Tests for tool deactivation"""

    def test_switch_drops_staging(self, session):
        """Switching away discards arrow start and polygon vertices"""
        session.set_tool(ToolKind.POLYGON)
        session.click(Point(10, 10), timestamp_ms=0)
        session.click(Point(90, 10), timestamp_ms=500)
        session.set_tool(ToolKind.ARROW)
        assert session.tool(ToolKind.POLYGON).vertices == []

        session.click(Point(10, 10))
        session.set_tool(ToolKind.CIRCLE)
        assert not session.tool(ToolKind.ARROW).awaiting_end

    def test_config_survives_switch(self, session):
        """Tool settings are kept when switching back"""
        session.set_tool(ToolKind.CIRCLE)
        session.tool(ToolKind.CIRCLE).config.radius = 42
        session.set_tool(ToolKind.SPOTLIGHT)
        session.set_tool(ToolKind.CIRCLE)
        assert session.active_tool.config.radius == 42


class TestGhostOpacity:
    """Tests for the half-opacity preview"""

    def test_ghost_blends_half(self, session):
        """A ghost pixel is halfway between the frame and the shape color"""
        session.paint_ghost(lambda p: p.fillRect(QRect(10, 10, 20, 20), QColor(255, 255, 255)))

        pixel = session.surface.pixelColor(20, 20)
        expected = 100 + (255 - 100) * GHOST_OPACITY
        assert GHOST_OPACITY == 0.5
        assert abs(pixel.red() - expected) <= 1
        assert session.surface.pixelColor(100, 100) == QColor(100, 100, 100)

    def test_polygon_ghost_fill_is_halved(self, session):
        """Fill opacity and ghost opacity multiply in the preview"""
        vertices = [Point(40, 40), Point(140, 40), Point(140, 140), Point(40, 140)]
        properties = session.tool(ToolKind.POLYGON).build_properties(vertices)

        session.paint_ghost(properties.paint)

        fill = properties.fill_opacity_percent / 100 * GHOST_OPACITY
        ghost = session.surface.pixelColor(90, 90)
        assert abs(ghost.red() - (100 + (255 - 100) * fill)) <= 2

    def test_redraw_erases_ghost(self, session):
        session.paint_ghost(lambda p: p.fillRect(QRect(10, 10, 20, 20), QColor(255, 255, 255)))
        session.redraw()
        assert session.surface == _committed_view(session)
