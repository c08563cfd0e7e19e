"""Quad label file reading and writing.

One text file per image, stored in a ``label`` directory next to the image
directory. Each line holds one annotation::

    <color_id> <class_token> x0 y0 x1 y1 x2 y2 x3 y3

Corners are written normalized by the image size with six decimals. On
read, a record whose largest absolute coordinate is at most 1.5 is treated
as normalized; anything larger is taken as legacy pixel coordinates.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from PyQt6.QtCore import QPointF

from .errors import InvalidImageSize, MalformedRecord
from .models import Annotation, LabelColor, normalize_class_token

logger = logging.getLogger(__name__)

LABEL_DIR_NAME = "label"
LABEL_EXTENSION = ".txt"
RECORD_TOKENS = 10
NORMALIZED_LIMIT = 1.5
COMMENT_CHAR = "#"


def _check_size(img_width: int, img_height: int) -> None:
    if img_width <= 0 or img_height <= 0:
        raise InvalidImageSize(img_width, img_height)


def format_record(annotation: Annotation, img_width: int, img_height: int) -> str:
    """
    Format one annotation as a label line.

    Args:
        annotation: Annotation to format
        img_width: Image width in pixels
        img_height: Image height in pixels

    Returns:
        Record line without trailing newline
    """
    _check_size(img_width, img_height)

    coords = " ".join(
        f"{p.x() / img_width:.6f} {p.y() / img_height:.6f}"
        for p in annotation.points
    )
    class_token = normalize_class_token(annotation.class_token)
    return f"{annotation.color.color_id} {class_token} {coords}"


def encode_labels(annotations: Iterable[Annotation], img_width: int, img_height: int) -> str:
    """
    Serialize annotations to label file text.

    Args:
        annotations: Annotations in drawing order
        img_width: Image width in pixels
        img_height: Image height in pixels

    Returns:
        File content, one record per line

    Raises:
        InvalidImageSize: If either dimension is not positive
    """
    _check_size(img_width, img_height)
    return "".join(
        format_record(annotation, img_width, img_height) + "\n"
        for annotation in annotations
    )


def parse_record(
    line: str,
    img_width: int,
    img_height: int,
    line_number: Optional[int] = None
) -> Optional[Annotation]:
    """
    Parse a single label line.

    Args:
        line: Raw line, may contain a trailing comment
        img_width: Image width used to denormalize
        img_height: Image height used to denormalize
        line_number: Line number for error messages

    Returns:
        Annotation, or None for blank and comment-only lines

    Raises:
        MalformedRecord: On a wrong token count or an unparsable coordinate
    """
    content = line.split(COMMENT_CHAR, 1)[0].strip()
    if not content:
        return None

    tokens = content.split()
    if len(tokens) != RECORD_TOKENS:
        raise MalformedRecord(
            f"expected {RECORD_TOKENS} tokens, got {len(tokens)}", line_number
        )

    try:
        coords = [float(token) for token in tokens[2:]]
    except ValueError as e:
        raise MalformedRecord(f"bad coordinate: {e}", line_number) from e

    normalized = (
        max(abs(c) for c in coords) <= NORMALIZED_LIMIT
        and img_width > 0
        and img_height > 0
    )

    if normalized:
        points = [
            QPointF(coords[i] * img_width, coords[i + 1] * img_height)
            for i in range(0, len(coords), 2)
        ]
    else:
        points = [QPointF(coords[i], coords[i + 1]) for i in range(0, len(coords), 2)]

    return Annotation(
        points=points,
        class_token=tokens[1],
        color=LabelColor.from_text(tokens[0])
    )


def decode_labels(text: str, img_width: int, img_height: int) -> List[Annotation]:
    """
    Parse label file text.

    Malformed lines are logged and skipped; they never abort the rest.

    Args:
        text: File content
        img_width: Image width in pixels
        img_height: Image height in pixels

    Returns:
        Annotations in file order
    """
    annotations: List[Annotation] = []

    for line_number, line in enumerate(text.splitlines(), 1):
        try:
            annotation = parse_record(line, img_width, img_height, line_number)
        except MalformedRecord as e:
            logger.warning(f"Skipping malformed label record, {e}")
            continue
        if annotation is not None:
            annotations.append(annotation)

    return annotations


def get_label_path(image_path: Path) -> Path:
    """
    Get the label file path for an image.

    ``data/images/a.jpg`` maps to ``data/label/a.txt``.

    Args:
        image_path: Path to the image file

    Returns:
        Path to the corresponding label file
    """
    image_path = Path(image_path).absolute()
    return image_path.parent.parent / LABEL_DIR_NAME / f"{image_path.stem}{LABEL_EXTENSION}"


def has_label(image_path: Path) -> bool:
    """
    Check whether an image has a label file with at least one valid record.

    Args:
        image_path: Path to the image file

    Returns:
        True if a valid record exists
    """
    label_path = get_label_path(image_path)
    if not label_path.is_file():
        return False

    try:
        with open(label_path, "r", encoding="utf-8") as f:
            for line in f:
                try:
                    if parse_record(line, 1, 1) is not None:
                        return True
                except MalformedRecord:
                    continue
    except OSError as e:
        logger.warning(f"Cannot inspect label file {label_path}: {e}")
    return False


class LabelFileReader:
    """Reader for quad label files."""

    def read(self, label_path: Path, img_width: int, img_height: int) -> List[Annotation]:
        """
        Read annotations from a label file.

        Args:
            label_path: Path to the label file
            img_width: Image width in pixels
            img_height: Image height in pixels

        Returns:
            List of annotations, empty if the file is missing or unreadable
        """
        label_path = Path(label_path)
        if not label_path.exists():
            logger.debug(f"Label file not found: {label_path}")
            return []

        try:
            text = label_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Error reading label file {label_path}: {e}")
            return []

        annotations = decode_labels(text, img_width, img_height)
        logger.info(f"Loaded {len(annotations)} annotations from {label_path}")
        return annotations


class LabelFileWriter:
    """Writer for quad label files with normalized coordinates."""

    def write(
        self,
        label_path: Path,
        annotations: List[Annotation],
        img_width: int,
        img_height: int
    ) -> bool:
        """
        Write annotations to a label file, replacing its content.

        An empty annotation list writes an empty file, which marks the image
        as reviewed.

        Args:
            label_path: Path of the label file
            annotations: Annotations to write
            img_width: Image width in pixels
            img_height: Image height in pixels

        Returns:
            True if the file was written
        """
        label_path = Path(label_path)

        try:
            content = encode_labels(annotations, img_width, img_height)
        except InvalidImageSize as e:
            logger.error(f"Not saving {label_path}: {e}")
            return False

        try:
            label_path.parent.mkdir(parents=True, exist_ok=True)
            label_path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.error(f"Error writing label file {label_path}: {e}")
            return False

        logger.info(f"Saved {len(annotations)} annotations to {label_path}")
        return True


class QuadLabelFormat:
    """Per-image label file handler keyed by image path."""

    def __init__(self) -> None:
        self._reader = LabelFileReader()
        self._writer = LabelFileWriter()

    def get_annotation_path(self, image_path: Path) -> Path:
        """Get the label file path for an image."""
        return get_label_path(image_path)

    def has_annotation(self, image_path: Path) -> bool:
        """Check if an image has labels."""
        return has_label(image_path)

    def read_image(self, image_path: Path, img_width: int, img_height: int) -> List[Annotation]:
        """Read annotations for a single image."""
        return self._reader.read(get_label_path(image_path), img_width, img_height)

    def write_image(
        self,
        image_path: Path,
        annotations: List[Annotation],
        img_width: int,
        img_height: int
    ) -> bool:
        """Write annotations for a single image."""
        return self._writer.write(get_label_path(image_path), annotations, img_width, img_height)
