"""View/image coordinate transforms and quad hit-testing."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from PyQt6.QtCore import Qt, QPoint, QPointF, QRect, QRectF, QSize, QSizeF
from PyQt6.QtGui import QPolygonF, QTransform

logger = logging.getLogger(__name__)

MIN_SCALE = 0.2
MAX_SCALE = 8.0
ZOOM_STEP = 1.15


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(value, high))


@dataclass
class ViewState:
    """
    Pan/zoom state of the display surface.

    The image is first fitted into the display keeping its aspect ratio
    and centered (the fit rectangle). The on-screen rectangle is the fit
    rectangle scaled by ``scale`` around its center and shifted by ``pan``.

    All mapping methods are pure reads. They return ``None`` or an empty
    rectangle when no image is set; callers check ``has_image`` once.
    """

    image_size: QSize = field(default_factory=QSize)
    display_size: QSizeF = field(default_factory=QSizeF)
    scale: float = 1.0
    pan: QPointF = field(default_factory=QPointF)

    def __post_init__(self) -> None:
        self.scale = clamp(self.scale, MIN_SCALE, MAX_SCALE)

    @property
    def has_image(self) -> bool:
        """True when an image with positive dimensions is set."""
        return not self.image_size.isEmpty()

    @property
    def can_map(self) -> bool:
        """True when both an image and a display area are set."""
        return not self.image_rect_on_display().isEmpty()

    def set_image_size(self, size: QSize) -> None:
        """Set the natural image size and reset pan/zoom."""
        self.image_size = QSize(size)
        self.reset()

    def set_display_size(self, size: QSizeF) -> None:
        """Set the size of the display surface."""
        self.display_size = QSizeF(size)

    def reset(self) -> None:
        """Return to the fitted, unzoomed view."""
        self.scale = 1.0
        self.pan = QPointF()

    def fit_rect(self) -> QRectF:
        """Rectangle the image occupies at scale 1 with no pan."""
        if not self.has_image or self.display_size.isEmpty():
            return QRectF()

        fitted = QSizeF(self.image_size).scaled(
            self.display_size, Qt.AspectRatioMode.KeepAspectRatio
        )
        offset = QPointF(
            (self.display_size.width() - fitted.width()) / 2.0,
            (self.display_size.height() - fitted.height()) / 2.0
        )
        return QRectF(offset, fitted)

    def image_rect_on_display(self) -> QRectF:
        """Rectangle the image currently occupies on the display."""
        fit = self.fit_rect()
        if fit.isEmpty():
            return QRectF()

        rect = QRectF(
            QPointF(0.0, 0.0),
            QSizeF(fit.width() * self.scale, fit.height() * self.scale)
        )
        rect.moveCenter(fit.center() + self.pan)
        return rect

    def to_image(self, point: QPointF) -> Optional[QPointF]:
        """
        Map a display point to image pixels.

        The result is clamped to [0, width-1] x [0, height-1], so points
        outside the image snap to its border.

        Args:
            point: Point in display coordinates

        Returns:
            Image point, or None when no image is set
        """
        rect = self.image_rect_on_display()
        if rect.isEmpty():
            return None

        width = self.image_size.width()
        height = self.image_size.height()
        x = (point.x() - rect.x()) * (width / rect.width())
        y = (point.y() - rect.y()) * (height / rect.height())

        return QPointF(
            clamp(x, 0.0, float(width - 1)),
            clamp(y, 0.0, float(height - 1))
        )

    def to_display(self, point: QPointF) -> Optional[QPointF]:
        """
        Map an image point to display coordinates (no clamping).

        Args:
            point: Point in image pixels

        Returns:
            Display point, or None when no image is set
        """
        rect = self.image_rect_on_display()
        if rect.isEmpty():
            return None

        sx = rect.width() / self.image_size.width()
        sy = rect.height() / self.image_size.height()
        return QPointF(rect.x() + point.x() * sx, rect.y() + point.y() * sy)

    def zoom_at(self, cursor: QPointF, zoom_in: bool) -> float:
        """
        Zoom one wheel step, keeping the image point under the cursor fixed.

        Args:
            cursor: Cursor position in display coordinates
            zoom_in: True for wheel-forward

        Returns:
            The new scale
        """
        anchor = self.to_image(cursor)
        if anchor is None:
            return self.scale

        step = ZOOM_STEP if zoom_in else 1.0 / ZOOM_STEP
        self.scale = clamp(self.scale * step, MIN_SCALE, MAX_SCALE)

        moved = self.to_display(anchor)
        self.pan = self.pan + (cursor - moved)
        return self.scale

    def pan_by(self, delta: QPointF) -> None:
        """Shift the view by a raw display-space delta."""
        self.pan = self.pan + delta

    def clamp_rect(self, rect: QRect) -> QRect:
        """Intersect an image rectangle with the image bounds."""
        if not self.has_image:
            return QRect()
        return rect.intersected(QRect(QPoint(0, 0), self.image_size))

    def display_rect_to_image_rect(self, rect: QRectF) -> QRect:
        """Map a display rectangle to a clamped image rectangle."""
        top_left = self.to_image(rect.topLeft())
        bottom_right = self.to_image(rect.bottomRight())
        if top_left is None or bottom_right is None:
            return QRect()

        image_rect = QRect(top_left.toPoint(), bottom_right.toPoint()).normalized()
        return self.clamp_rect(image_rect)


def point_in_quad(points: Sequence[QPointF], point: QPointF) -> bool:
    """Winding-rule point-in-polygon test for a quad."""
    return QPolygonF(list(points)).containsPoint(point, Qt.FillRule.WindingFill)


def hit_corner(points: Sequence[QPointF], point: QPointF, radius: float) -> Optional[int]:
    """
    Find the first corner within ``radius`` of ``point``.

    Args:
        points: Corners, in the same coordinate space as ``point``
        point: Probe position
        radius: Hit radius

    Returns:
        Corner index or None
    """
    for index, corner in enumerate(points):
        if math.hypot(corner.x() - point.x(), corner.y() - point.y()) <= radius:
            return index
    return None


def order_corners(points: Sequence[QPointF]) -> List[QPointF]:
    """
    Order four arbitrary corners as TL, BL, BR, TR.

    The two leftmost points form the left edge and the two rightmost the
    right edge; within each edge the upper point comes first.

    Args:
        points: Four corner points

    Returns:
        New list in TL, BL, BR, TR order
    """
    if len(points) != 4:
        raise ValueError(f"Expected 4 corners, got {len(points)}")

    by_x = sorted(points, key=lambda p: (p.x(), p.y()))
    top_left, bottom_left = sorted(by_x[:2], key=lambda p: p.y())
    top_right, bottom_right = sorted(by_x[2:], key=lambda p: p.y())

    return [
        QPointF(top_left),
        QPointF(bottom_left),
        QPointF(bottom_right),
        QPointF(top_right),
    ]


def quad_to_quad(source: Sequence[QPointF], target: Sequence[QPointF]) -> Optional[QTransform]:
    """
    Projective transform mapping one quad onto another.

    Args:
        source: Source corners (TL, BL, BR, TR)
        target: Target corners in the same order

    Returns:
        The transform, or None for degenerate quads
    """
    transform = QTransform()
    if not QTransform.quadToQuad(QPolygonF(list(source)), QPolygonF(list(target)), transform):
        logger.debug("quadToQuad failed for degenerate quad")
        return None
    return transform
