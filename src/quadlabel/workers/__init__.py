"""Background worker threads for QuadLabel."""

from .image_loader import ImageScanner, get_image_files
from .detection_worker import DetectionWorker

__all__ = ["ImageScanner", "get_image_files", "DetectionWorker"]
