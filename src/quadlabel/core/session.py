"""Per-image annotation session tying store, view, ROI and label files together."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from PyQt6.QtCore import QObject, QPointF, QRect, Qt, pyqtSignal
from PyQt6.QtGui import QColor, QImage, QImageReader, QPainter

from .annotation_store import AnnotationStore, StoreChange
from .config import AppConfig
from .geometry import ViewState
from .interaction import InteractionController
from .label_format import QuadLabelFormat
from .models import Annotation
from .roi import RoiManager, RoiMode

logger = logging.getLogger(__name__)


@dataclass
class DetectionRequest:
    """
    Image handed to the detector.

    ``origin`` is the crop position in the full image; ``generation``
    identifies the image the request was made for.
    """

    image: QImage
    generation: int
    origin: QPointF = field(default_factory=QPointF)


class AnnotationSession(QObject):
    """
    Owns the displayed image and everything scoped to it.

    Each loaded image gets a new generation number. Detector results carry
    the generation they were computed for and are dropped if the image has
    changed since.
    """

    image_changed = pyqtSignal(object)  # Optional[Path]
    raster_changed = pyqtSignal()
    detect_requested = pyqtSignal(object)  # DetectionRequest
    save_requested = pyqtSignal(object)  # List[Annotation]
    status = pyqtSignal(str)

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        super().__init__()
        config = config or AppConfig()

        self.store = AnnotationStore()
        self.view = ViewState()
        self.roi = RoiManager(config.model_input_size, RoiMode.from_text(config.roi_mode))
        self.controller = InteractionController(
            self.store,
            self.view,
            self.roi,
            handle_radius=config.handle_radius,
            hit_tolerance=config.hit_tolerance
        )
        self.label_format = QuadLabelFormat()

        self._image = QImage()
        self._image_path: Optional[Path] = None
        self._generation = 0
        self._dirty = False

        self.store.changed.connect(self._on_store_changed)
        self.controller.mask_requested.connect(self.paint_mask)

    @property
    def image(self) -> QImage:
        return self._image

    @property
    def image_path(self) -> Optional[Path]:
        return self._image_path

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def has_image(self) -> bool:
        return not self._image.isNull()

    @property
    def is_dirty(self) -> bool:
        """True when annotations changed since the last load or save."""
        return self._dirty

    def open_image(self, path: Path) -> bool:
        """
        Decode an image file and load it.

        Args:
            path: Image file path

        Returns:
            True if the image was decoded
        """
        path = Path(path)
        reader = QImageReader(str(path))
        reader.setAutoTransform(True)
        image = reader.read()

        if image.isNull():
            logger.error(f"Cannot read image {path}: {reader.errorString()}")
            self.status.emit(f"Cannot open {path.name}")
            return False

        self.load_image(image, path)
        return True

    def load_image(self, image: QImage, path: Optional[Path] = None) -> None:
        """
        Replace the current image and reset everything scoped to it.

        Labels are read from the image's label file when ``path`` is given.

        Args:
            image: Decoded image
            path: File the image came from
        """
        self._generation += 1
        self.controller.cancel()

        self._image = QImage(image)
        self._image_path = Path(path) if path is not None else None
        self.view.set_image_size(self._image.size())
        self.store.clear()
        self.roi.set_image_size(self._image.size())

        if self._image_path is not None and self.has_image:
            annotations = self.label_format.read_image(
                self._image_path, self._image.width(), self._image.height()
            )
            self.store.set_all(annotations)

        self._dirty = False
        self.image_changed.emit(self._image_path)

        if self._image_path is not None:
            logger.info(
                f"Loaded {self._image_path.name} ({self._image.width()}x{self._image.height()}), "
                f"generation {self._generation}"
            )
            self.status.emit(f"{self._image_path.name}: {len(self.store)} labels")

    def request_detect(self) -> Optional[DetectionRequest]:
        """
        Ask the detector to run on the ROI crop, or the whole image without one.

        Returns:
            The emitted request, or None without an image
        """
        if not self.has_image:
            self.status.emit("No image loaded")
            return None

        crop = self.roi.crop(self._image)
        roi = self.roi.roi
        if crop.isNull() or roi is None:
            request = DetectionRequest(self._image.copy(), self._generation)
        else:
            request = DetectionRequest(crop, self._generation, QPointF(roi.topLeft()))

        logger.debug(
            f"Detection requested on {request.image.width()}x{request.image.height()} "
            f"at ({request.origin.x():.0f}, {request.origin.y():.0f})"
        )
        self.detect_requested.emit(request)
        return request

    def apply_detections(self, candidates: Sequence[Annotation], generation: int) -> bool:
        """
        Replace the annotations with detector output.

        Args:
            candidates: Detected annotations in full-image coordinates
            generation: Generation the detection was requested for

        Returns:
            False if the result is stale and was dropped
        """
        if generation != self._generation:
            logger.warning(
                f"Dropping stale detection result (generation {generation}, "
                f"current {self._generation})"
            )
            return False

        self.store.set_all(candidates)
        self.status.emit(f"Detected {len(candidates)} objects")
        return True

    def save(self) -> bool:
        """
        Write the annotations to the image's label file.

        The store is left untouched when writing fails.

        Returns:
            True if the file was written
        """
        if not self.has_image or self._image_path is None:
            self.status.emit("No image to save labels for")
            return False

        annotations = self.store.annotations()
        label_path = self.label_format.get_annotation_path(self._image_path)
        if not self.label_format.write_image(
            self._image_path, annotations, self._image.width(), self._image.height()
        ):
            self.status.emit(f"Failed to save {label_path}")
            return False

        self._dirty = False
        self.status.emit(f"Saved {len(annotations)} labels to {label_path.name}")
        self.save_requested.emit(annotations)
        return True

    def paint_mask(self, rect: QRect) -> bool:
        """
        Fill an image rectangle with opaque black.

        Only the in-memory raster changes; the image file is not written.

        Args:
            rect: Rectangle in image pixels

        Returns:
            True if anything was painted
        """
        if not self.has_image:
            return False
        target = rect.intersected(self._image.rect())
        if target.isEmpty():
            return False

        if self._image.format() == QImage.Format.Format_Indexed8:
            self._image = self._image.convertToFormat(QImage.Format.Format_RGB32)

        painter = QPainter(self._image)
        painter.fillRect(target, QColor(Qt.GlobalColor.black))
        painter.end()

        logger.debug(f"Masked {target.width()}x{target.height()} at ({target.x()}, {target.y()})")
        self.raster_changed.emit()
        return True

    def _on_store_changed(self, change: StoreChange) -> None:
        self._dirty = True
