"""
Tests for the JSON annotation store and the per-video library
"""
import pytest

from retflow.editor.annotations import CircleProperties, DrawingEntry, Point
from retflow.editor.document import AnnotationDocument
from retflow.services.annotation_store import (
    AnnotationLibrary,
    JsonAnnotationStore,
    StoreError,
)


def _document(video: str = "match.mp4", timestamp: float = 1.0) -> AnnotationDocument:
    entry = DrawingEntry.of(CircleProperties(Point(10, 10), 40, "#FF3C00", "#FFD700"))
    return AnnotationDocument(
        video_name=video,
        timestamp_seconds=timestamp,
        drawings=(entry,),
        primary_type="circle",
    )


class TestJsonAnnotationStore:
    """Tests for JsonAnnotationStore"""

    def test_create_assigns_id(self, store):
        stored = store.create(_document())

        assert stored.id
        assert stored.created_at == stored.updated_at
        assert (store.folder / f"{stored.id}.json").exists()
        assert store.get(stored.id) == stored

    def test_update_keeps_created_at(self, store):
        stored = store.create(_document())
        changed = stored.with_store_fields(duration_seconds=4.0, created_at="tampered")

        updated = store.update(changed)

        assert updated.created_at == stored.created_at
        assert store.get(stored.id).duration_seconds == 4.0

    def test_update_unknown_id(self, store):
        with pytest.raises(StoreError):
            store.update(_document().with_store_fields(id="missing"))

    def test_update_without_id(self, store):
        with pytest.raises(StoreError):
            store.update(_document())

    def test_delete(self, store):
        stored = store.create(_document())
        store.delete(stored.id)
        with pytest.raises(StoreError):
            store.get(stored.id)

    def test_delete_unknown(self, store):
        with pytest.raises(StoreError):
            store.delete("missing")

    def test_list_filters_and_orders(self, store):
        """Listing returns one video's documents by ascending timestamp"""
        store.create(_document(timestamp=30.0))
        store.create(_document(timestamp=5.0))
        store.create(_document(video="other.mp4", timestamp=1.0))
        store.create(_document(timestamp=12.0))

        listed = store.list_for_video("match.mp4")

        assert [d.timestamp_seconds for d in listed] == [5.0, 12.0, 30.0]

    def test_list_skips_corrupt_records(self, store):
        store.create(_document())
        (store.folder / "broken.json").write_text("{oops", encoding="utf-8")

        assert len(store.list_for_video("match.mp4")) == 1

    def test_list_skips_non_utf8_records(self, store):
        """Binary files in the store folder are skipped like corrupt JSON"""
        stored = store.create(_document())
        (store.folder / "bad.json").write_bytes(b"\xff\xfe\x00garbage")

        assert [d.id for d in store.list_for_video("match.mp4")] == [stored.id]
        with pytest.raises(StoreError):
            store.get("bad")

    def test_library_refresh_with_non_utf8_record(self, store):
        stored = store.create(_document())
        (store.folder / "bad.json").write_bytes(b"\xff\xfe\x00garbage")
        library = AnnotationLibrary(store, "match.mp4")

        assert library.refresh()
        assert [d.id for d in library.annotations] == [stored.id]

    def test_failed_update_keeps_record(self, store):
        """An update that cannot be written leaves the stored record intact"""
        stored = store.create(_document())
        broken = stored.with_store_fields(duration_seconds=4.0, extra={"bad": object()})

        with pytest.raises(StoreError):
            store.update(broken)

        assert store.get(stored.id) == stored
        assert store.get(stored.id).duration_seconds == stored.duration_seconds
        assert list(store.folder.glob("*.tmp")) == []

    def test_get_corrupt_record(self, store):
        store.folder.mkdir(parents=True)
        (store.folder / "broken.json").write_text("{oops", encoding="utf-8")
        with pytest.raises(StoreError):
            store.get("broken")

    def test_list_missing_folder(self, tmp_path):
        assert JsonAnnotationStore(tmp_path / "nowhere").list_for_video("x") == []


class FailingDeleteStore(JsonAnnotationStore):
    def delete(self, document_id):
        raise StoreError("offline")


class TestAnnotationLibrary:
    """Tests for AnnotationLibrary"""

    def test_refresh_and_find(self, store):
        stored = store.create(_document())
        library = AnnotationLibrary(store, "match.mp4")

        assert library.annotations == []
        assert library.refresh()
        assert library.find(stored.id) == stored
        assert library.find("nope") is None

    def test_delete_removes_on_success(self, store):
        first = store.create(_document(timestamp=1.0))
        second = store.create(_document(timestamp=2.0))
        library = AnnotationLibrary(store, "match.mp4")
        library.refresh()

        assert library.delete(first.id) is True
        assert [d.id for d in library.annotations] == [second.id]

    def test_delete_failure_keeps_listing(self, tmp_path):
        store = FailingDeleteStore(tmp_path)
        stored = store.create(_document())
        library = AnnotationLibrary(store, "match.mp4")
        library.refresh()

        assert library.delete(stored.id) is False
        assert [d.id for d in library.annotations] == [stored.id]
