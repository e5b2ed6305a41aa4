"""
Annotation storage for Retflow.

AnnotationStore is the interface the editor saves through; any backend that
can create, update, delete and query documents can implement it.
JsonAnnotationStore keeps one JSON file per document:

    <store_folder>/
        <id>.json

AnnotationLibrary is the per-video listing used to browse, open and delete
saved annotations.
"""

import os
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

from retflow.editor.document import AnnotationDocument, DocumentError
from retflow.services.logging_service import get_logger


class StoreError(Exception):
    """Raised when a store operation fails."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AnnotationStore(ABC):
    """Interface of an annotation record store."""

    @abstractmethod
    def create(self, document: AnnotationDocument) -> AnnotationDocument:
        """
        Store a new document.

        Returns:
            The stored document with id and timestamps assigned.

        Raises:
            StoreError: If the document could not be stored.
        """
        pass

    @abstractmethod
    def update(self, document: AnnotationDocument) -> AnnotationDocument:
        """
        Replace the stored document with the same id.

        Raises:
            StoreError: If the id is unknown or the write failed.
        """
        pass

    @abstractmethod
    def delete(self, document_id: str) -> None:
        """
        Delete a document by id.

        Raises:
            StoreError: If the id is unknown or the delete failed.
        """
        pass

    @abstractmethod
    def get(self, document_id: str) -> AnnotationDocument:
        """
        Load one document by id.

        Raises:
            StoreError: If the id is unknown or the record is unreadable.
        """
        pass

    @abstractmethod
    def list_for_video(self, video_name: str) -> List[AnnotationDocument]:
        """Return every document for a video, ordered by timestamp."""
        pass


class JsonAnnotationStore(AnnotationStore):
    """
    Store that keeps each document as <id>.json in a folder.

    Records that cannot be parsed are skipped when listing (with a warning)
    and reported as StoreError when requested by id.
    """

    def __init__(self, folder: Union[str, Path]) -> None:
        """
        Initialize the store.

        Args:
            folder: Directory holding the records (created on first write).
        """
        self._logger = get_logger(__name__)
        self.folder = Path(folder)

    def _record_path(self, document_id: str) -> Path:
        return self.folder / f"{document_id}.json"

    def _write(self, document: AnnotationDocument) -> None:
        try:
            text = document.to_json()
        except (TypeError, ValueError) as e:
            raise StoreError(f"Could not serialize annotation {document.id}: {e}") from e

        path = self._record_path(document.id)
        temp_path = path.with_name(path.name + ".tmp")
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(text)
            # The record is only replaced once the new one is fully written
            os.replace(temp_path, path)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise StoreError(f"Could not write annotation {document.id}: {e}") from e

    def _read(self, path: Path) -> AnnotationDocument:
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except UnicodeDecodeError as e:
            raise DocumentError(f"{path.name} is not UTF-8 text: {e}") from e
        return AnnotationDocument.from_json(text)

    def create(self, document: AnnotationDocument) -> AnnotationDocument:
        timestamp = _now()
        stored = document.with_store_fields(
            id=uuid.uuid4().hex,
            created_at=timestamp,
            updated_at=timestamp,
        )
        self._write(stored)
        self._logger.info(f"Created annotation {stored.id}")
        return stored

    def update(self, document: AnnotationDocument) -> AnnotationDocument:
        if not document.id:
            raise StoreError("Cannot update an annotation without an id")

        existing = self.get(document.id)
        stored = document.with_store_fields(
            created_at=existing.created_at,
            updated_at=_now(),
        )
        self._write(stored)
        self._logger.info(f"Updated annotation {stored.id}")
        return stored

    def delete(self, document_id: str) -> None:
        path = self._record_path(document_id)
        if not path.exists():
            raise StoreError(f"Annotation {document_id} not found")
        try:
            path.unlink()
        except OSError as e:
            raise StoreError(f"Could not delete annotation {document_id}: {e}") from e
        self._logger.info(f"Deleted annotation {document_id}")

    def get(self, document_id: str) -> AnnotationDocument:
        path = self._record_path(document_id)
        if not path.exists():
            raise StoreError(f"Annotation {document_id} not found")
        try:
            return self._read(path)
        except (OSError, DocumentError) as e:
            raise StoreError(f"Could not read annotation {document_id}: {e}") from e

    def list_for_video(self, video_name: str) -> List[AnnotationDocument]:
        if not self.folder.exists():
            return []

        documents = []
        for path in sorted(self.folder.glob("*.json")):
            try:
                document = self._read(path)
            except (OSError, DocumentError) as e:
                self._logger.warning(f"Skipping unreadable annotation {path.name}: {e}")
                continue
            if document.video_name == video_name:
                documents.append(document)

        documents.sort(key=lambda d: d.timestamp_seconds)
        return documents


class AnnotationLibrary:
    """
    Listing of the saved annotations for one video.

    The listing is a local copy; it only changes on refresh() or after a
    successful delete().
    """

    def __init__(self, store: AnnotationStore, video_name: str) -> None:
        self._logger = get_logger(__name__)
        self._store = store
        self.video_name = video_name
        self._annotations: List[AnnotationDocument] = []

    @property
    def annotations(self) -> List[AnnotationDocument]:
        """Listed documents in ascending timestamp order."""
        return list(self._annotations)

    def refresh(self) -> bool:
        """
        Reload the listing from the store.

        Returns:
            False if the store failed (the old listing is kept).
        """
        try:
            self._annotations = self._store.list_for_video(self.video_name)
        except StoreError as e:
            self._logger.error(f"Failed to load annotations for {self.video_name}: {e}")
            return False
        self._logger.debug(f"Loaded {len(self._annotations)} annotations for {self.video_name}")
        return True

    def find(self, document_id: str) -> Optional[AnnotationDocument]:
        for document in self._annotations:
            if document.id == document_id:
                return document
        return None

    def delete(self, document_id: str) -> bool:
        """
        Delete a document from the store, then from the listing.

        Returns:
            True on success. On failure the listing is unchanged.
        """
        try:
            self._store.delete(document_id)
        except StoreError as e:
            self._logger.error(f"Failed to delete annotation {document_id}: {e}")
            return False

        self._annotations = [d for d in self._annotations if d.id != document_id]
        return True
