"""Ultralytics detector wrapper producing quad annotations."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np
import torch
from PyQt6.QtCore import QPointF
from PyQt6.QtGui import QImage

from .geometry import order_corners
from .models import Annotation, LabelColor, normalize_class_token, KNOWN_CLASS_TOKENS

logger = logging.getLogger(__name__)

_KNOWN_UPPER = {token.upper() for token in KNOWN_CLASS_TOKENS}
_COLOR_LETTERS = {color.letter for color in LabelColor}


def qimage_to_array(image: QImage) -> np.ndarray:
    """
    Convert a QImage to an HxWx3 BGR uint8 array.

    Args:
        image: Source image in any format

    Returns:
        Contiguous array owning its memory
    """
    converted = image.convertToFormat(QImage.Format.Format_BGR888)
    width = converted.width()
    height = converted.height()

    ptr = converted.constBits()
    ptr.setsize(converted.sizeInBytes())
    rows = np.frombuffer(bytes(ptr), dtype=np.uint8).reshape((height, converted.bytesPerLine()))
    return np.ascontiguousarray(rows[:, : width * 3].reshape((height, width, 3)))


def split_class_name(name: str) -> Tuple[LabelColor, str]:
    """
    Split a model class name into color and class token.

    Names like ``B1`` or ``RBs`` carry a color letter in front of a known
    class token. Anything else keeps its whole name as class and is GRAY.

    Args:
        name: Class name reported by the model

    Returns:
        (color, class token)
    """
    name = str(name).strip()
    if len(name) >= 2 and name[0].upper() in _COLOR_LETTERS and name[1:].upper() in _KNOWN_UPPER:
        return LabelColor.from_text(name[0]), normalize_class_token(name[1:])
    return LabelColor.GRAY, normalize_class_token(name)


def _to_list(values: Any) -> list:
    if values is None:
        return []
    if hasattr(values, "tolist"):
        return values.tolist()
    return list(values)


class QuadDetector:
    """
    Wrapper for Ultralytics models that return quads.

    Oriented-box models give four corners directly, keypoint models give
    them as the first four keypoints, and plain box models are turned into
    axis-aligned quads. Corners are reordered TL, BL, BR, TR.
    """

    def __init__(self, model_path: Optional[str] = None) -> None:
        """
        Initialize the detector.

        Args:
            model_path: Path to the model file (.pt)
        """
        self.device = "cuda" if torch.cuda.is_available() else "cpu"
        self.model: Optional[Any] = None
        self.model_path: Optional[str] = None

        if model_path:
            self.load_model(model_path)

    @property
    def is_loaded(self) -> bool:
        """Check if a model is loaded."""
        return self.model is not None

    def load_model(self, model_path: str) -> bool:
        """
        Load a model from file.

        Args:
            model_path: Path to the model file

        Returns:
            True if model loaded successfully
        """
        try:
            from ultralytics import YOLO

            self.model = YOLO(model_path)
            self.model.to(self.device)
            self.model_path = model_path
            logger.info(f"Loaded detector model from {model_path} on {self.device}")
            return True

        except ImportError:
            logger.error("ultralytics package not installed")
            return False
        except Exception as e:
            logger.error(f"Error loading detector model: {e}")
            self.model = None
            self.model_path = None
            return False

    def detect(
        self,
        image: QImage,
        origin: QPointF = QPointF(),
        confidence: float = 0.25,
        iou_threshold: float = 0.45
    ) -> List[Annotation]:
        """
        Run detection on an image region.

        Args:
            image: Cropped or full image
            origin: Position of the crop inside the full image
            confidence: Confidence threshold for detections
            iou_threshold: IOU threshold for NMS

        Returns:
            Annotations in full-image pixel coordinates
        """
        if not self.is_loaded:
            raise ValueError("No model loaded. Call load_model() first.")
        if image.isNull():
            return []

        results = self.model(
            qimage_to_array(image),
            conf=confidence,
            iou=iou_threshold,
            verbose=False
        )
        if not results:
            return []

        annotations = self.convert_result(results[0], origin, confidence)
        logger.info(f"Detected {len(annotations)} objects")
        return annotations

    def convert_result(
        self,
        result: Any,
        origin: QPointF = QPointF(),
        min_confidence: float = 0.0
    ) -> List[Annotation]:
        """
        Convert one Ultralytics result to annotations.

        Args:
            result: Single result object
            origin: Offset added to every corner
            min_confidence: Detections below this score are dropped

        Returns:
            List of annotations
        """
        names = getattr(result, "names", None) or {}

        obb = getattr(result, "obb", None)
        keypoints = getattr(result, "keypoints", None)
        boxes = getattr(result, "boxes", None)

        if obb is not None:
            quads = _to_list(obb.xyxyxyxy)
            classes, scores = _to_list(obb.cls), _to_list(obb.conf)
        elif keypoints is not None and boxes is not None:
            quads = [kpts[:4] for kpts in _to_list(keypoints.xy)]
            classes, scores = _to_list(boxes.cls), _to_list(boxes.conf)
        elif boxes is not None:
            quads = [
                [(x1, y1), (x1, y2), (x2, y2), (x2, y1)]
                for x1, y1, x2, y2 in _to_list(boxes.xyxy)
            ]
            classes, scores = _to_list(boxes.cls), _to_list(boxes.conf)
        else:
            return []

        annotations: List[Annotation] = []
        for quad, class_id, score in zip(quads, classes, scores):
            if score < min_confidence:
                continue
            if len(quad) < 4:
                logger.warning(f"Skipping detection with {len(quad)} corners")
                continue

            color, class_token = split_class_name(names.get(int(class_id), str(int(class_id))))
            annotations.append(Annotation(
                points=self._corners(quad, origin),
                class_token=class_token,
                color=color,
                confidence=score
            ))
        return annotations

    @staticmethod
    def _corners(quad: Sequence[Sequence[float]], origin: QPointF) -> List[QPointF]:
        points = [QPointF(float(x), float(y)) + origin for x, y in quad[:4]]
        return order_corners(points)

    def get_device_info(self) -> str:
        """Get information about the compute device."""
        if self.device == "cuda":
            try:
                return f"CUDA: {torch.cuda.get_device_name(0)}"
            except RuntimeError:
                return "CUDA (unknown device)"
        return "CPU"
