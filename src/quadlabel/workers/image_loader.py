"""Background image directory scanning."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from PyQt6.QtCore import QThread, pyqtSignal

logger = logging.getLogger(__name__)

# Supported image extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tif", ".tiff"}


def is_image_file(path: Path) -> bool:
    """Check whether a path has a supported image extension."""
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def get_image_files(directory: Path) -> List[Path]:
    """
    List the images of a directory, sorted by name.

    Args:
        directory: Directory to list

    Returns:
        Image file paths, empty if the directory cannot be read
    """
    directory = Path(directory)
    try:
        return sorted(
            (entry for entry in directory.iterdir() if entry.is_file() and is_image_file(entry)),
            key=lambda p: p.name.lower()
        )
    except OSError as e:
        logger.error(f"Error listing directory {directory}: {e}")
        return []


class ImageScanner(QThread):
    """
    Background thread for scanning image files in a directory.

    Only collects filenames; no image data is decoded. Files are reported
    in name order so the list matches previous/next navigation.
    """

    # Signal emitted for each image file found (absolute path)
    image_found = pyqtSignal(str)

    # Signal emitted when scan is complete (total count)
    finished = pyqtSignal(int)

    def __init__(self, directory: str) -> None:
        """
        Initialize the image scanner.

        Args:
            directory: Directory to scan for images
        """
        super().__init__()
        self.directory = Path(directory)
        self._is_running = True

    def run(self) -> None:
        """Scan directory for image files."""
        count = 0

        for path in get_image_files(self.directory):
            if not self._is_running:
                logger.info("Image scanning cancelled")
                break
            self.image_found.emit(str(path.absolute()))
            count += 1

        self.finished.emit(count)
        logger.info(f"Image scan complete: {count} images found in {self.directory}")

    def stop(self) -> None:
        """Request the scanner to stop."""
        self._is_running = False
