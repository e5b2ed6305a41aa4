"""
Main window for Retflow.

The window has two pages:
- Library: the saved annotations of the current video, with open and delete
- Editor: an EditorWidget annotating the current frame

Saving or cancelling in the editor returns to the library.
"""

from typing import Optional

from PySide6.QtCore import QSize, Qt
from PySide6.QtGui import QIcon, QImage, QPixmap
from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from retflow.editor.document import AnnotationDocument, decode_thumbnail
from retflow.editor.editor_widget import EditorWidget
from retflow.editor.session import AnnotationSession
from retflow.services.annotation_store import AnnotationLibrary, AnnotationStore
from retflow.services.config_service import ConfigService
from retflow.services.logging_service import get_logger


class LibraryPage(QWidget):
    """List of saved annotations for one video."""

    def __init__(self, library: AnnotationLibrary, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._library = library

        layout = QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(12)

        title = QLabel(f"Annotations for {library.video_name}")
        title.setStyleSheet("font-weight: bold; font-size: 14px;")
        layout.addWidget(title)

        self._list = QListWidget()
        self._list.setIconSize(QSize(96, 54))
        layout.addWidget(self._list, 1)

        buttons = QHBoxLayout()
        self.new_button = QPushButton("New Annotation")
        self.edit_button = QPushButton("Edit")
        self.delete_button = QPushButton("Delete")
        buttons.addWidget(self.new_button)
        buttons.addStretch()
        buttons.addWidget(self.edit_button)
        buttons.addWidget(self.delete_button)
        layout.addLayout(buttons)

        self._list.currentItemChanged.connect(lambda *_: self._update_buttons())
        self._update_buttons()

    def populate(self) -> None:
        """Rebuild the list from the library's current listing."""
        self._list.clear()
        for document in self._library.annotations:
            item = QListWidgetItem(
                f"{document.timestamp_seconds:7.2f}s   {document.primary_type}   "
                f"{len(document.drawings)} drawing(s)   {document.duration_seconds:.1f}s"
            )
            item.setData(Qt.ItemDataRole.UserRole, document.id)
            thumbnail = decode_thumbnail(document.thumbnail)
            if not thumbnail.isNull():
                item.setIcon(QIcon(QPixmap.fromImage(thumbnail)))
            self._list.addItem(item)
        self._update_buttons()

    def selected_id(self) -> Optional[str]:
        item = self._list.currentItem()
        return item.data(Qt.ItemDataRole.UserRole) if item else None

    def _update_buttons(self) -> None:
        has_selection = self._list.currentItem() is not None
        self.edit_button.setEnabled(has_selection)
        self.delete_button.setEnabled(has_selection)


class MainWindow(QMainWindow):
    """
    Main application window for Retflow.

    Features:
    - Dark themed UI
    - Library page listing the video's saved annotations
    - Full featured editor page for the frozen frame
    """

    def __init__(
        self,
        frame: QImage,
        video_name: str,
        timestamp_seconds: float,
        store: AnnotationStore,
        config_service: ConfigService,
        parent: Optional[QWidget] = None
    ) -> None:
        """
        Initialize the MainWindow.

        Args:
            frame: The frozen video frame to annotate.
            video_name: Name of the video the frame belongs to.
            timestamp_seconds: Frame position for new annotations.
            store: Annotation store used for saving and listing.
            config_service: Application configuration.
            parent: Optional parent widget.
        """
        super().__init__(parent)
        self._logger = get_logger(__name__)
        self._frame = frame
        self._video_name = video_name
        self._timestamp = timestamp_seconds
        self._store = store
        self._config = config_service
        self._library = AnnotationLibrary(store, video_name)
        self._editor: Optional[EditorWidget] = None

        self._setup_window()
        self._setup_pages()

        self._logger.info("MainWindow initialized")

    def _setup_window(self) -> None:
        self.setWindowTitle(f"Retflow - {self._video_name}")
        self.setMinimumSize(900, 600)
        self.resize(1280, 820)
        self.setStyleSheet("""
            QMainWindow, QWidget {
                background-color: #1e1e1e;
                color: #ddd;
            }
            QPushButton {
                background-color: #3a3a3a;
                border: 1px solid #555;
                border-radius: 4px;
                padding: 6px 12px;
            }
            QPushButton:hover {
                background-color: #454545;
            }
            QPushButton:disabled {
                color: #777;
            }
        """)

    def _setup_pages(self) -> None:
        self._stack = QStackedWidget()
        self.setCentralWidget(self._stack)

        self._library_page = LibraryPage(self._library)
        self._library_page.new_button.clicked.connect(lambda: self.open_editor())
        self._library_page.edit_button.clicked.connect(self._edit_selected)
        self._library_page.delete_button.clicked.connect(self._delete_selected)
        self._stack.addWidget(self._library_page)

    # ─── Navigation ───────────────────────────────────────────────────────

    def open_editor(self, document: Optional[AnnotationDocument] = None) -> None:
        """Show the editor for a new annotation, or for editing document."""
        if document is None:
            session = AnnotationSession.from_config(
                self._config,
                video_name=self._video_name,
                timestamp_seconds=self._timestamp,
            )
            session.set_base_raster(self._frame)
        else:
            session = AnnotationSession.for_document(
                document,
                self._frame,
                **AnnotationSession.settings_from_config(self._config),
            )

        self._close_editor()
        self._editor = EditorWidget(session, self._store)
        self._editor.saved.connect(lambda _doc: self.show_library())
        self._editor.cancelled.connect(self.show_library)
        self._stack.addWidget(self._editor)
        self._stack.setCurrentWidget(self._editor)

    def open_document(self, document_id: str) -> bool:
        """Open a stored annotation for editing by id."""
        self._library.refresh()
        document = self._library.find(document_id)
        if document is None:
            self._logger.warning(f"Annotation {document_id} not found for {self._video_name}")
            return False
        self.open_editor(document)
        return True

    def show_library(self) -> None:
        """Reload the listing and show it."""
        self._library.refresh()
        self._library_page.populate()
        self._stack.setCurrentWidget(self._library_page)
        self._close_editor()

    def _close_editor(self) -> None:
        if self._editor is not None:
            self._stack.removeWidget(self._editor)
            self._editor.deleteLater()
            self._editor = None

    # ─── Library Actions ──────────────────────────────────────────────────

    def _edit_selected(self) -> None:
        document_id = self._library_page.selected_id()
        document = self._library.find(document_id) if document_id else None
        if document is not None:
            self.open_editor(document)

    def _delete_selected(self) -> None:
        document_id = self._library_page.selected_id()
        if not document_id:
            return

        reply = QMessageBox.question(
            self, "Delete Annotation", "Delete this annotation?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No
        )
        if reply != QMessageBox.StandardButton.Yes:
            return

        if self._library.delete(document_id):
            self._library_page.populate()
        else:
            QMessageBox.warning(self, "Delete Failed", "The annotation could not be deleted.")
