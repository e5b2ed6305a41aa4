"""
Pytest configuration and fixtures for Retflow.

Provides fixtures for:
- A headless QApplication shared by the whole test session
- A plain base raster to annotate
- A controllable millisecond clock for polygon timing
- Sessions and stores built on those
"""

import os

# Must be set before Qt is imported
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtGui import QColor, QImage
from PySide6.QtWidgets import QApplication

from retflow.editor.session import AnnotationSession
from retflow.services.annotation_store import JsonAnnotationStore


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """One QApplication for the test session."""
    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def base_image() -> QImage:
    """A 320x240 mid-grey frame."""
    image = QImage(320, 240, QImage.Format.Format_ARGB32_Premultiplied)
    image.fill(QColor(100, 100, 100))
    return image


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session(base_image, clock) -> AnnotationSession:
    """A session with the base raster loaded and no tool selected."""
    s = AnnotationSession(video_name="match.mp4", timestamp_seconds=12.5, clock=clock)
    s.set_base_raster(base_image)
    return s


@pytest.fixture
def store(tmp_path) -> JsonAnnotationStore:
    return JsonAnnotationStore(tmp_path / "annotations")
