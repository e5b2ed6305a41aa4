"""
Retflow - video frame annotation editor.

This is the main entry point for the application.
Run with: python -m retflow.app FRAME.png --video-name match.mp4 --timestamp 12.5
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from PySide6.QtGui import QImage
from PySide6.QtWidgets import QApplication

from retflow import __version__
from retflow.services.annotation_store import JsonAnnotationStore
from retflow.services.config_service import ConfigService
from retflow.services.logging_service import get_logger, setup_logging
from retflow.ui.main_window import MainWindow


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retflow",
        description="Annotate a frozen video frame with circles, arrows, polygons and spotlights.",
    )
    parser.add_argument("frame", type=Path, help="Image file of the frame to annotate")
    parser.add_argument("--video-name", help="Video the frame belongs to (defaults to the image name)")
    parser.add_argument("--timestamp", type=float, default=0.0, help="Frame position in seconds")
    parser.add_argument("--edit", metavar="ID", help="Open a saved annotation for editing")
    parser.add_argument("--library", action="store_true", help="Start on the annotation library")
    parser.add_argument("--store", type=Path, help="Annotation folder (overrides the config)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for Retflow.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    args = build_parser().parse_args(argv)

    log_path = setup_logging(log_level=logging.DEBUG if args.debug else logging.INFO)
    logger = get_logger(__name__)

    try:
        logger.info(f"Starting Retflow (log file: {log_path or 'none'})")

        app = QApplication(sys.argv[:1])
        app.setApplicationName("Retflow")
        app.setOrganizationName("Retflow")
        app.setApplicationVersion(__version__)

        frame = QImage(str(args.frame))
        if frame.isNull():
            logger.error(f"Could not load frame image: {args.frame}")
            return 1

        config = ConfigService()
        store = JsonAnnotationStore(args.store or config.store_folder)
        video_name = args.video_name or args.frame.stem

        window = MainWindow(frame, video_name, args.timestamp, store, config)
        if args.edit:
            if not window.open_document(args.edit):
                window.show_library()
        elif args.library:
            window.show_library()
        else:
            window.open_editor()
        window.show()

        logger.info("Retflow initialization complete. Entering event loop...")
        exit_code = app.exec()

        logger.info(f"Retflow exiting with code {exit_code}")
        return exit_code

    except Exception as e:
        logger.critical(f"Fatal error during startup: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
