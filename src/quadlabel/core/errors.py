"""Exceptions raised by the annotation core."""

from __future__ import annotations

from typing import Optional


class QuadLabelError(Exception):
    """Base class for annotation core errors."""


class InvalidImageSize(QuadLabelError, ValueError):
    """Image dimensions are zero or negative, so coordinates cannot be normalized."""

    def __init__(self, width: int, height: int) -> None:
        super().__init__(f"Invalid image size {width}x{height}")
        self.width = width
        self.height = height


class MalformedRecord(QuadLabelError, ValueError):
    """A label file line has the wrong token count or an unparsable number."""

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number
