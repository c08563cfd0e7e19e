"""Background detector runs."""

from __future__ import annotations

import logging

from PyQt6.QtCore import QThread, pyqtSignal

from ..core.detector import QuadDetector
from ..core.session import DetectionRequest

logger = logging.getLogger(__name__)


class DetectionWorker(QThread):
    """
    Runs the detector on one request off the GUI thread.

    Results are reported with the request's generation so the session can
    drop them if another image was loaded meanwhile.
    """

    # Signal emitted with (annotations, generation)
    detected = pyqtSignal(list, int)

    # Signal emitted with an error message
    failed = pyqtSignal(str)

    def __init__(
        self,
        detector: QuadDetector,
        request: DetectionRequest,
        confidence: float = 0.25,
        iou_threshold: float = 0.45
    ) -> None:
        """
        Initialize the worker.

        Args:
            detector: Loaded detector
            request: Image region and generation to detect on
            confidence: Confidence threshold
            iou_threshold: IOU threshold for NMS
        """
        super().__init__()
        self.detector = detector
        self.request = request
        self.confidence = confidence
        self.iou_threshold = iou_threshold

    def run(self) -> None:
        """Run detection and report the result."""
        try:
            annotations = self.detector.detect(
                self.request.image,
                origin=self.request.origin,
                confidence=self.confidence,
                iou_threshold=self.iou_threshold
            )
        except Exception as e:
            logger.error(f"Detection failed: {e}", exc_info=True)
            self.failed.emit(str(e))
            return

        self.detected.emit(annotations, self.request.generation)
