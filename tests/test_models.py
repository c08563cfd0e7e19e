"""Tests for core models."""

import pytest
from PyQt6.QtCore import QPoint, QPointF, QRect

from quadlabel.core.models import (
    DEFAULT_CLASS,
    Annotation,
    LabelColor,
    normalize_class_token
)


def make_square(x=0.0, y=0.0, size=10.0, **kwargs):
    return Annotation(
        points=[
            QPointF(x, y),
            QPointF(x, y + size),
            QPointF(x + size, y + size),
            QPointF(x + size, y),
        ],
        **kwargs
    )


class TestLabelColor:
    """Tests for the LabelColor table."""

    def test_ids(self):
        """Test numeric ids used in label files."""
        assert LabelColor.BLUE.color_id == 0
        assert LabelColor.RED.color_id == 1
        assert LabelColor.GRAY.color_id == 2
        assert LabelColor.PURPLE.color_id == 3

    def test_from_id(self):
        """Test mapping ids back to colors."""
        assert LabelColor.from_id(1) == LabelColor.RED
        assert LabelColor.from_id(3) == LabelColor.PURPLE
        assert LabelColor.from_id(9) == LabelColor.GRAY

    @pytest.mark.parametrize("text, expected", [
        ("0", LabelColor.BLUE),
        ("1", LabelColor.RED),
        ("b", LabelColor.BLUE),
        ("R", LabelColor.RED),
        ("purple", LabelColor.PURPLE),
        ("Gray", LabelColor.GRAY),
        (" red ", LabelColor.RED),
    ])
    def test_from_text(self, text, expected):
        """Test ids, letters and names in any case."""
        assert LabelColor.from_text(text) == expected

    @pytest.mark.parametrize("text", ["", "x", "7", "-1", None, "Black", "Pink", "Rose", "Bogus", "BL"])
    def test_from_text_unknown_is_gray(self, text):
        """Test that unrecognized color text becomes GRAY."""
        assert LabelColor.from_text(text) == LabelColor.GRAY

    def test_letter(self):
        assert LabelColor.BLUE.letter == "B"
        assert LabelColor.PURPLE.letter == "P"


class TestNormalizeClassToken:
    """Tests for class token normalization."""

    @pytest.mark.parametrize("raw, expected", [
        ("1", "1"),
        ("4", "4"),
        ("g", "G"),
        ("O", "O"),
        ("BS", "Bs"),
        ("bb", "Bb"),
        ("car", "car"),
        ("  Bs  ", "Bs"),
    ])
    def test_known_and_open_tokens(self, raw, expected):
        """Test canonical case for known tokens and passthrough for others."""
        assert normalize_class_token(raw) == expected

    def test_empty_becomes_default(self):
        assert normalize_class_token("") == DEFAULT_CLASS
        assert normalize_class_token("   ") == DEFAULT_CLASS
        assert normalize_class_token(None) == DEFAULT_CLASS

    def test_unsafe_characters_replaced(self):
        """Test that whitespace and comment markers cannot split a record."""
        assert normalize_class_token("car door") == "car_door"
        assert normalize_class_token("a#b") == "a_b"


class TestAnnotation:
    """Tests for the Annotation class."""

    def test_defaults(self):
        """Test default class, color and confidence."""
        annotation = make_square()

        assert annotation.class_token == DEFAULT_CLASS
        assert annotation.color == LabelColor.GRAY
        assert annotation.confidence == 0.0

    def test_requires_four_corners(self):
        """Test that anything but four corners is rejected."""
        with pytest.raises(ValueError):
            Annotation(points=[QPointF(0, 0), QPointF(1, 0), QPointF(1, 1)])

    def test_fields_are_canonicalized(self):
        """Test that class, color and confidence are normalized on creation."""
        annotation = make_square(class_token="bs", color="r", confidence=1.7)

        assert annotation.class_token == "Bs"
        assert annotation.color == LabelColor.RED
        assert annotation.confidence == 1.0

    def test_from_rect_corner_order(self):
        """Test TL, BL, BR, TR order from a rectangle."""
        rect = QRect(QPoint(100, 100), QPoint(300, 200))
        annotation = Annotation.from_rect(rect)

        assert annotation.points == [
            QPointF(100, 100),
            QPointF(100, 200),
            QPointF(300, 200),
            QPointF(300, 100),
        ]

    def test_from_rect_unnormalized(self):
        """Test that a rectangle dragged up-left gives the same quad."""
        rect = QRect(QPoint(300, 200), QPoint(100, 100))
        annotation = Annotation.from_rect(rect)

        assert annotation.points[0] == QPointF(100, 100)
        assert annotation.points[2] == QPointF(300, 200)

    def test_move_corner(self):
        """Test moving one corner keeps the others."""
        annotation = make_square()

        assert annotation.move_corner(2, QPointF(20, 25)) is True
        assert annotation.points[2] == QPointF(20, 25)
        assert annotation.points[0] == QPointF(0, 0)

    def test_move_corner_invalid_index(self):
        annotation = make_square()

        assert annotation.move_corner(4, QPointF(1, 1)) is False
        assert annotation.move_corner(-1, QPointF(1, 1)) is False

    def test_copy_is_independent(self):
        """Test that a copy does not share corner points."""
        annotation = make_square(class_token="G")
        clone = annotation.copy()
        clone.move_corner(0, QPointF(5, 5))
        clone.class_token = "O"

        assert annotation.points[0] == QPointF(0, 0)
        assert annotation.class_token == "G"

    def test_translated(self):
        annotation = make_square().translated(5, -2)

        assert annotation.points[0] == QPointF(5, -2)
        assert annotation.points[2] == QPointF(15, 8)

    def test_bounding_rect(self):
        annotation = make_square(x=10, y=20, size=30)
        rect = annotation.bounding_rect()

        assert rect.x() == 10
        assert rect.y() == 20
        assert rect.width() == 30
        assert rect.height() == 30

    def test_display_text(self):
        annotation = make_square(class_token="3", color=LabelColor.RED)

        assert annotation.display_text == "R3"
