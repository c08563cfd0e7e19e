"""Region of interest used to crop images before detection."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from PyQt6.QtCore import QObject, QPoint, QPointF, QRect, QSize, pyqtSignal
from PyQt6.QtGui import QImage

logger = logging.getLogger(__name__)


class RoiMode(str, Enum):
    """How the ROI rectangle is produced."""

    FREE = "free"
    FIXED = "fixed"

    @classmethod
    def from_text(cls, text: str) -> RoiMode:
        """Parse a mode name, FREE for anything unknown."""
        try:
            return cls(str(text).strip().lower())
        except ValueError:
            return cls.FREE


class RoiManager(QObject):
    """
    Tracks one axis-aligned ROI rectangle in image pixel coordinates.

    In FREE mode the rectangle is dragged out like a box. In FIXED mode it
    always has exactly the model input size and is placed by its center.
    The rectangle never leaves the image bounds.

    ``roi_changed`` fires on every change (None when cleared);
    ``roi_committed`` fires only when a drag ends with a rectangle.
    """

    roi_changed = pyqtSignal(object)  # Optional[QRect]
    roi_committed = pyqtSignal(object)  # QRect

    def __init__(self, model_input_size: Optional[QSize] = None, mode: RoiMode = RoiMode.FREE) -> None:
        super().__init__()
        self._image_size = QSize()
        self._model_size = QSize()
        self._mode = RoiMode.FREE
        self._roi: Optional[QRect] = None
        self._anchor: Optional[QPoint] = None
        self._dragging = False

        if model_input_size is not None:
            self.set_model_input_size(model_input_size)
        self.set_mode(mode)

    @property
    def roi(self) -> Optional[QRect]:
        return QRect(self._roi) if self._roi is not None else None

    @property
    def mode(self) -> RoiMode:
        return self._mode

    @property
    def model_input_size(self) -> QSize:
        return QSize(self._model_size)

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    def set_image_size(self, size: QSize) -> None:
        """
        Set the size of a newly loaded image.

        The ROI is cleared, except when the image already has the model
        input size: then the whole image becomes the committed ROI.

        Args:
            size: Natural image size, empty when no image is loaded
        """
        self._image_size = QSize(size)
        self._dragging = False
        self._anchor = None

        if not self._apply_full_image_roi():
            self.clear()

    def set_model_input_size(self, size: QSize) -> None:
        """
        Set the detector input size used by FIXED mode.

        An invalid size disables FIXED mode.
        """
        self._model_size = QSize(size) if size.isValid() and not size.isEmpty() else QSize()
        if self._mode == RoiMode.FIXED and not self._has_model_size():
            logger.info("Model input size unset, ROI mode falls back to free")
            self._mode = RoiMode.FREE
        self._apply_full_image_roi()

    def set_mode(self, mode: RoiMode) -> RoiMode:
        """
        Switch the ROI mode.

        FIXED needs a valid model input size and falls back to FREE
        without one.

        Returns:
            The mode actually set
        """
        if mode == RoiMode.FIXED and not self._has_model_size():
            mode = RoiMode.FREE
        if mode != self._mode:
            logger.debug(f"ROI mode set to {mode.value}")
        self._mode = mode
        return mode

    def begin_free(self, point: QPointF) -> None:
        """Start dragging a free ROI at an image point."""
        self._dragging = True
        self._anchor = point.toPoint()
        if self._roi is not None:
            self._set_roi(None)

    def update_free(self, point: QPointF) -> None:
        """Stretch the free ROI from its anchor to an image point."""
        if not self._dragging or self._anchor is None:
            return
        rect = QRect(self._anchor, point.toPoint()).normalized()
        self._set_roi(self._clamp(rect))

    def end(self) -> Optional[QRect]:
        """
        Finish the current drag.

        Returns:
            The committed rectangle, or None if there is none
        """
        self._dragging = False
        self._anchor = None
        if self._roi is None:
            return None
        logger.info(
            f"ROI committed at ({self._roi.x()}, {self._roi.y()}) "
            f"{self._roi.width()}x{self._roi.height()}"
        )
        self.roi_committed.emit(QRect(self._roi))
        return QRect(self._roi)

    def place_fixed(self, center: QPointF) -> bool:
        """
        Center a model-sized ROI on an image point.

        The rectangle is shifted back inside the image rather than cut, so
        it keeps the model size whenever the image is large enough.

        Args:
            center: Image point for the ROI center

        Returns:
            False when there is no model size or no image
        """
        if not self._has_model_size() or self._image_size.isEmpty():
            return False

        self._dragging = True
        width = self._model_size.width()
        height = self._model_size.height()
        left = int(center.x() - width / 2.0)
        top = int(center.y() - height / 2.0)

        left = max(0, min(left, self._image_size.width() - width))
        top = max(0, min(top, self._image_size.height() - height))

        self._set_roi(self._clamp(QRect(QPoint(left, top), QSize(width, height))))
        return True

    def clear(self) -> None:
        """Remove the ROI."""
        self._roi = None
        self._dragging = False
        self._anchor = None
        self.roi_changed.emit(None)

    def crop(self, image: QImage) -> QImage:
        """
        Copy the ROI out of an image.

        Returns:
            The cropped image, or a null QImage without an ROI
        """
        if image.isNull() or self._roi is None:
            return QImage()
        rect = self._roi.intersected(image.rect())
        if rect.isEmpty():
            return QImage()
        return image.copy(rect)

    def _has_model_size(self) -> bool:
        return not self._model_size.isEmpty()

    def _apply_full_image_roi(self) -> bool:
        if self._image_size.isEmpty() or not self._has_model_size():
            return False
        if self._image_size != self._model_size:
            return False

        self._set_roi(QRect(QPoint(0, 0), self._image_size))
        self.roi_committed.emit(QRect(self._roi))
        return True

    def _clamp(self, rect: QRect) -> Optional[QRect]:
        if self._image_size.isEmpty():
            return None
        clamped = rect.intersected(QRect(QPoint(0, 0), self._image_size))
        return clamped if not clamped.isEmpty() else None

    def _set_roi(self, rect: Optional[QRect]) -> None:
        self._roi = rect
        self.roi_changed.emit(QRect(rect) if rect is not None else None)
