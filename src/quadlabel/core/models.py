"""Data models for quadrilateral annotations."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Union

from PyQt6.QtCore import QPointF, QRect, QRectF
from PyQt6.QtGui import QPolygonF

logger = logging.getLogger(__name__)

DEFAULT_CLASS = "unknown"

# Canonical spelling of the known class tokens, keyed by their uppercase form
KNOWN_CLASS_TOKENS = ("1", "2", "3", "4", "G", "O", "Bs", "Bb")
_CANONICAL_CLASSES = {token.upper(): token for token in KNOWN_CLASS_TOKENS}

_UNSAFE_TOKEN_CHARS = re.compile(r"[\s#]+")

CORNER_NAMES = ("TL", "BL", "BR", "TR")


class LabelColor(str, Enum):
    """Color of an annotated object, with its on-disk id and letter code."""

    BLUE = "BLUE"
    RED = "RED"
    GRAY = "GRAY"
    PURPLE = "PURPLE"

    @property
    def color_id(self) -> int:
        """Numeric id written to label files."""
        return _COLOR_IDS[self]

    @property
    def letter(self) -> str:
        """Single-letter code (B/R/G/P)."""
        return self.value[0]

    @classmethod
    def from_id(cls, color_id: int) -> LabelColor:
        """Map a numeric id to a color, GRAY for unknown ids."""
        return _COLORS_BY_ID.get(color_id, cls.GRAY)

    @classmethod
    def from_text(cls, text: Union[str, LabelColor, None]) -> LabelColor:
        """
        Canonicalize free-form color input.

        Accepts a numeric id, a letter code or a full color name in any case.
        Anything unrecognized becomes GRAY.

        Args:
            text: Raw color text

        Returns:
            The matching LabelColor
        """
        if isinstance(text, LabelColor):
            return text
        if text is None:
            return cls.GRAY

        value = str(text).strip()
        if not value:
            return cls.GRAY

        try:
            return cls.from_id(int(value))
        except ValueError:
            pass

        return _COLORS_BY_NAME.get(value.upper(), cls.GRAY)


_COLOR_IDS = {
    LabelColor.BLUE: 0,
    LabelColor.RED: 1,
    LabelColor.GRAY: 2,
    LabelColor.PURPLE: 3,
}
_COLORS_BY_ID = {v: k for k, v in _COLOR_IDS.items()}
# Exact letter codes and full names only
_COLORS_BY_NAME = {color.letter: color for color in LabelColor}
_COLORS_BY_NAME.update({color.value: color for color in LabelColor})


def normalize_class_token(token: str) -> str:
    """
    Normalize a class token.

    Known tokens are matched case-insensitively and returned in their
    canonical spelling. Other tokens keep their text with whitespace and
    ``#`` runs replaced by underscores, so they survive a file round trip.

    Args:
        token: Raw class text

    Returns:
        Normalized class token, never empty and never containing whitespace
    """
    value = (token or "").strip()
    if not value:
        return DEFAULT_CLASS

    canonical = _CANONICAL_CLASSES.get(value.upper())
    if canonical is not None:
        return canonical

    return _UNSAFE_TOKEN_CHARS.sub("_", value)


@dataclass
class Annotation:
    """
    A labeled quadrilateral on one image.

    Corners are stored in image pixel coordinates in TL, BL, BR, TR order.
    """

    points: List[QPointF]
    class_token: str = DEFAULT_CLASS
    color: LabelColor = LabelColor.GRAY
    confidence: float = 0.0

    def __post_init__(self) -> None:
        """Validate corners and canonicalize label fields."""
        if len(self.points) != 4:
            raise ValueError(f"Annotation needs exactly 4 corners, got {len(self.points)}")

        self.points = [QPointF(p) for p in self.points]
        self.class_token = normalize_class_token(self.class_token)
        self.color = LabelColor.from_text(self.color)
        self.confidence = min(max(float(self.confidence), 0.0), 1.0)

    @classmethod
    def from_rect(
        cls,
        rect: Union[QRect, QRectF],
        class_token: str = DEFAULT_CLASS,
        color: Union[LabelColor, str] = LabelColor.GRAY,
        confidence: float = 0.0
    ) -> Annotation:
        """
        Create an axis-aligned annotation from a rectangle.

        QRect uses inclusive right/bottom edges, so a QRect from (100, 100)
        to (300, 200) yields corners on exactly those coordinates.

        Args:
            rect: Rectangle in image coordinates
            class_token: Class token
            color: Color or color text
            confidence: Detector confidence

        Returns:
            New Annotation in TL, BL, BR, TR order
        """
        r = rect.normalized()
        left, top, right, bottom = r.left(), r.top(), r.right(), r.bottom()

        return cls(
            points=[
                QPointF(left, top),
                QPointF(left, bottom),
                QPointF(right, bottom),
                QPointF(right, top),
            ],
            class_token=class_token,
            color=color,
            confidence=confidence
        )

    def copy(self) -> Annotation:
        """Return an independent copy."""
        return Annotation(
            points=[QPointF(p) for p in self.points],
            class_token=self.class_token,
            color=self.color,
            confidence=self.confidence
        )

    def move_corner(self, index: int, point: QPointF) -> bool:
        """
        Move one corner without reordering the others.

        Args:
            index: Corner index (0-3)
            point: New position in image coordinates

        Returns:
            True if the corner was moved
        """
        if not (0 <= index < 4):
            return False
        self.points[index] = QPointF(point)
        return True

    def translated(self, dx: float, dy: float) -> Annotation:
        """Return a copy shifted by (dx, dy)."""
        moved = self.copy()
        moved.points = [p + QPointF(dx, dy) for p in moved.points]
        return moved

    def polygon(self) -> QPolygonF:
        """Corners as a polygon in image coordinates."""
        return QPolygonF(self.points)

    def bounding_rect(self) -> QRectF:
        """Axis-aligned bounds of the quad."""
        xs = [p.x() for p in self.points]
        ys = [p.y() for p in self.points]
        return QRectF(min(xs), min(ys), max(xs) - min(xs), max(ys) - min(ys))

    @property
    def display_text(self) -> str:
        """Short caption drawn next to the quad, e.g. 'R3'."""
        return f"{self.color.letter}{self.class_token}"

