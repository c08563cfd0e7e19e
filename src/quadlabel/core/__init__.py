"""Core business logic modules for QuadLabel."""

from .models import Annotation, LabelColor, normalize_class_token
from .config import AppConfig, ConfigManager
from .annotation_store import AnnotationStore, ChangeKind, StoreChange
from .geometry import ViewState
from .label_format import LabelFileReader, LabelFileWriter, QuadLabelFormat
from .roi import RoiManager, RoiMode
from .interaction import EditRequest, InteractionController, InteractionState
from .session import AnnotationSession, DetectionRequest

__all__ = [
    "Annotation",
    "LabelColor",
    "normalize_class_token",
    "AppConfig",
    "ConfigManager",
    "AnnotationStore",
    "ChangeKind",
    "StoreChange",
    "ViewState",
    "LabelFileReader",
    "LabelFileWriter",
    "QuadLabelFormat",
    "RoiManager",
    "RoiMode",
    "EditRequest",
    "InteractionController",
    "InteractionState",
    "AnnotationSession",
    "DetectionRequest",
]
