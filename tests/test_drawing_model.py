"""
Tests for the drawing log
"""
from retflow.editor.annotations import CircleProperties, DrawingEntry, Point
from retflow.editor.drawing_model import DrawingModel


def _entry(x: float) -> DrawingEntry:
    return DrawingEntry.of(CircleProperties(Point(x, 10), 30, "#FF3C00", "#FFD700"))


class TestDrawingModel:
    """Tests for DrawingModel"""

    def test_append_keeps_order(self):
        """Entries come back in append order"""
        model = DrawingModel()
        first, second = _entry(1), _entry(2)
        model.append(first)
        model.append(second)

        assert model.snapshot() == (first, second)
        assert len(model) == 2

    def test_undo_removes_most_recent(self):
        """undo_last drops only the newest entry"""
        model = DrawingModel([_entry(1), _entry(2), _entry(3)])
        removed = model.undo_last()

        assert removed == _entry(3)
        assert model.snapshot() == (_entry(1), _entry(2))

    def test_undo_on_empty_is_noop(self):
        """undo_last on an empty log does nothing"""
        model = DrawingModel()
        assert model.undo_last() is None
        assert model.is_empty

    def test_clear(self):
        """clear empties the log"""
        model = DrawingModel([_entry(1), _entry(2)])
        model.clear()
        assert model.snapshot() == ()

    def test_snapshot_is_detached(self):
        """A held snapshot does not follow later mutations"""
        model = DrawingModel([_entry(1)])
        snapshot = model.snapshot()

        model.append(_entry(2))
        model.clear()

        assert snapshot == (_entry(1),)

    def test_seed_copies_entries(self):
        """Seeding from a list does not alias that list"""
        seed = [_entry(1)]
        model = DrawingModel(seed)
        seed.append(_entry(2))
        assert len(model) == 1
