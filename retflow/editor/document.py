"""
Persisted annotation documents.

An AnnotationDocument is the unit exchanged with an annotation store: the
committed drawing entries of one frame plus display metadata (timing, fades,
representative color and a small thumbnail of the composite).
"""

import base64
import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from PySide6.QtCore import QBuffer, QByteArray, QIODevice
from PySide6.QtGui import QImage

from retflow.editor.annotations import PROPERTIES_BY_KIND, DrawingEntry, ToolKind

MIXED_TYPE = "mixed"
MIN_DURATION = 2.0
MAX_DURATION = 5.0
THUMBNAIL_PREFIX = "data:image/jpeg;base64,"


class DocumentError(ValueError):
    """Raised when a persisted document or drawing cannot be read."""


def clamp_duration(seconds: float) -> float:
    """Clamp a display duration to the supported 2-5 second range."""
    return max(MIN_DURATION, min(MAX_DURATION, float(seconds)))


def entry_from_dict(data: Dict[str, Any]) -> DrawingEntry:
    """
    Rebuild a drawing entry from its persisted form.

    Raises:
        DocumentError: Unknown tool kind or missing/invalid properties.
    """
    try:
        kind = ToolKind(data["tool"])
    except (KeyError, TypeError, ValueError) as e:
        raise DocumentError(f"Unknown drawing tool: {data!r:.80}") from e

    try:
        properties = PROPERTIES_BY_KIND[kind].from_dict(data["properties"])
    except (KeyError, TypeError, ValueError) as e:
        raise DocumentError(f"Invalid {kind.value} properties: {e}") from e

    return DrawingEntry(kind, properties)


def encode_thumbnail(image: Optional[QImage], quality: int = 30) -> str:
    """
    Encode an image as a JPEG data URL.

    Returns:
        The data URL, or an empty string for a missing image.
    """
    if image is None or image.isNull():
        return ""

    data = QByteArray()
    buffer = QBuffer(data)
    buffer.open(QIODevice.OpenModeFlag.WriteOnly)
    # JPEG has no alpha channel
    image.convertToFormat(QImage.Format.Format_RGB32).save(buffer, "JPEG", quality)
    buffer.close()

    return THUMBNAIL_PREFIX + base64.b64encode(bytes(data)).decode("ascii")


def decode_thumbnail(url: str) -> QImage:
    """Decode a JPEG data URL (null image if empty or unreadable)."""
    if not url or not url.startswith(THUMBNAIL_PREFIX):
        return QImage()
    try:
        raw = base64.b64decode(url[len(THUMBNAIL_PREFIX):], validate=True)
    except ValueError:
        return QImage()
    return QImage.fromData(raw, "JPEG")


@dataclass(frozen=True)
class AnnotationDocument:
    """
    A saved annotation for one video frame.

    id, created_at and updated_at are assigned by the store; a document that
    has not been stored yet has id None.
    """
    video_name: str
    timestamp_seconds: float
    drawings: Tuple[DrawingEntry, ...]
    primary_type: str = MIXED_TYPE
    fade_in: bool = True
    fade_out: bool = True
    duration_seconds: float = 3.0
    representative_color: str = "#FF3C00"
    thumbnail: str = ""
    id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    def with_store_fields(self, **changes: Any) -> "AnnotationDocument":
        """Return a copy with store-managed fields (id, timestamps) replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "video_name": self.video_name,
            "timestamp": self.timestamp_seconds,
            "type": self.primary_type,
            "drawings": [entry.to_dict() for entry in self.drawings],
            "fade_in": self.fade_in,
            "fade_out": self.fade_out,
            "duration": self.duration_seconds,
            "color": self.representative_color,
            "thumbnail": self.thumbnail,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnnotationDocument":
        """
        Read a document from its persisted form.

        Unknown top-level keys are kept in extra and written back unchanged.

        Raises:
            DocumentError: If a required field is missing or malformed.
        """
        if not isinstance(data, dict):
            raise DocumentError("Annotation document must be a JSON object")

        known = {
            "id", "video_name", "timestamp", "type", "drawings", "fade_in",
            "fade_out", "duration", "color", "thumbnail", "created_at", "updated_at",
        }
        try:
            drawings: List[DrawingEntry] = [entry_from_dict(d) for d in data["drawings"]]
            return cls(
                id=data.get("id"),
                video_name=str(data["video_name"]),
                timestamp_seconds=float(data["timestamp"]),
                primary_type=str(data.get("type", MIXED_TYPE)),
                drawings=tuple(drawings),
                fade_in=bool(data.get("fade_in", True)),
                fade_out=bool(data.get("fade_out", True)),
                duration_seconds=float(data.get("duration", 3.0)),
                representative_color=str(data.get("color", "#FF3C00")),
                thumbnail=data.get("thumbnail") or "",
                created_at=data.get("created_at"),
                updated_at=data.get("updated_at"),
                extra={k: v for k, v in data.items() if k not in known},
            )
        except KeyError as e:
            raise DocumentError(f"Annotation document is missing {e}") from e
        except (TypeError, ValueError) as e:
            if isinstance(e, DocumentError):
                raise
            raise DocumentError(f"Malformed annotation document: {e}") from e

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, text: str) -> "AnnotationDocument":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DocumentError(f"Annotation document is not valid JSON: {e}") from e
        return cls.from_dict(data)
