"""Main application window for QuadLabel."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import Qt, QUrl
from PyQt6.QtGui import QAction, QBrush, QColor, QImageReader
from PyQt6.QtWidgets import (
    QDockWidget, QFileDialog, QLabel, QListWidget, QListWidgetItem,
    QMainWindow, QMessageBox, QStatusBar, QToolBar
)

from ..core.config import AppConfig, ConfigManager
from ..core.detector import QuadDetector
from ..core.interaction import EditRequest
from ..core.label_format import has_label
from ..core.roi import RoiMode
from ..core.session import AnnotationSession, DetectionRequest
from ..workers.detection_worker import DetectionWorker
from ..workers.image_loader import ImageScanner, is_image_file
from .canvas import AnnotationCanvas
from .dialogs.edit_info import EditInfoDialog

logger = logging.getLogger(__name__)

STATUS_TIMEOUT_MS = 3000
PATH_ROLE = Qt.ItemDataRole.UserRole


def increase_image_allocation_limit() -> None:
    """Remove image allocation limit for large images."""
    QImageReader.setAllocationLimit(0)


class MainWindow(QMainWindow):
    """
    Main application window for QuadLabel.

    Provides:
    - Image list of the opened folder with labeled images marked
    - The annotation canvas
    - Save, previous/next navigation and optional autosave
    - Detector-assisted labeling on the ROI or the whole image
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None) -> None:
        """Initialize the main window."""
        super().__init__()

        increase_image_allocation_limit()

        self.config_manager = config_manager or ConfigManager()
        self.session = AnnotationSession(self.config)
        self.detector: Optional[QuadDetector] = None
        self.image_scanner: Optional[ImageScanner] = None
        self.detection_worker: Optional[DetectionWorker] = None

        self.current_directory = ""
        self._pending_image: Optional[str] = None

        # UI elements (initialized in _init_ui)
        self.canvas: Optional[AnnotationCanvas] = None
        self.image_list: Optional[QListWidget] = None
        self.status_bar: Optional[QStatusBar] = None
        self.file_label: Optional[QLabel] = None
        self.count_label: Optional[QLabel] = None
        self.roi_action: Optional[QAction] = None

        self._init_ui()
        self._setup_connections()
        self._load_settings()

        logger.info("MainWindow initialization complete")

    @property
    def config(self) -> AppConfig:
        """Get the current configuration."""
        return self.config_manager.config

    # === Setup ===

    def _init_ui(self) -> None:
        """Initialize the user interface."""
        self.setWindowTitle("QuadLabel")
        self.setGeometry(100, 100, 1280, 820)
        self.setAcceptDrops(True)

        self.canvas = AnnotationCanvas(self.session)
        self.canvas.line_thickness = self.config.line_thickness
        self.canvas.show_crosshair = self.config.show_crosshair
        self.canvas.show_icons = self.config.show_icons
        self.setCentralWidget(self.canvas)

        self._create_status_bar()
        self._create_image_dock()
        self._create_toolbar()

    def _create_status_bar(self) -> None:
        """Create the status bar."""
        self.status_bar = QStatusBar()
        self.setStatusBar(self.status_bar)

        self.file_label = QLabel()
        self.status_bar.addPermanentWidget(self.file_label)

        self.count_label = QLabel()
        self.status_bar.addPermanentWidget(self.count_label)

    def _create_image_dock(self) -> None:
        """Create the image list dock."""
        self.image_list = QListWidget()
        self.image_list.currentItemChanged.connect(self._on_current_item_changed)

        dock = QDockWidget("Images", self)
        dock.setObjectName("ImagesDock")
        dock.setWidget(self.image_list)
        self.addDockWidget(Qt.DockWidgetArea.LeftDockWidgetArea, dock)

    def _create_toolbar(self) -> None:
        """Create the main toolbar."""
        toolbar = QToolBar("Main")
        toolbar.setObjectName("MainToolBar")
        self.addToolBar(toolbar)

        open_action = QAction("Open Folder", self)
        open_action.setShortcut("Ctrl+O")
        open_action.triggered.connect(self._open_directory)
        toolbar.addAction(open_action)

        prev_action = QAction("Previous (Q)", self)
        prev_action.setShortcut("Q")
        prev_action.triggered.connect(self._previous_image)
        toolbar.addAction(prev_action)

        next_action = QAction("Next (E)", self)
        next_action.setShortcut("E")
        next_action.triggered.connect(self._next_image)
        toolbar.addAction(next_action)

        save_action = QAction("Save (S)", self)
        save_action.setShortcuts(["S", "Ctrl+S"])
        save_action.triggered.connect(self._save_annotations)
        toolbar.addAction(save_action)

        toolbar.addSeparator()

        model_action = QAction("Select Model", self)
        model_action.triggered.connect(self._select_model)
        toolbar.addAction(model_action)

        detect_action = QAction("Detect (Space)", self)
        detect_action.setShortcut("Space")
        detect_action.triggered.connect(self.session.request_detect)
        toolbar.addAction(detect_action)

        self.roi_action = QAction("Fixed ROI", self)
        self.roi_action.setCheckable(True)
        self.roi_action.toggled.connect(self._toggle_roi_mode)
        toolbar.addAction(self.roi_action)

        clear_roi_action = QAction("Clear ROI", self)
        clear_roi_action.triggered.connect(self.session.roi.clear)
        toolbar.addAction(clear_roi_action)

        reset_view_action = QAction("Reset View", self)
        reset_view_action.setShortcut("Ctrl+0")
        reset_view_action.triggered.connect(self._reset_view)
        toolbar.addAction(reset_view_action)

    def _setup_connections(self) -> None:
        """Connect session signals to the window."""
        self.session.status.connect(self._show_status_message)
        self.session.image_changed.connect(self._on_image_changed)
        self.session.save_requested.connect(self._on_saved)
        self.session.detect_requested.connect(self._start_detection)
        self.session.controller.edit_requested.connect(self._on_edit_requested)

    def _load_settings(self) -> None:
        """Apply settings and restore the last visited image."""
        config = self.config

        mode = self.session.roi.set_mode(RoiMode.from_text(config.roi_mode))
        self.roi_action.setChecked(mode == RoiMode.FIXED)

        if config.show_icons and config.assets_dir:
            self.canvas.load_icons(Path(config.assets_dir))

        if config.model_path and Path(config.model_path).is_file():
            self._load_model(config.model_path)

        last_image = Path(config.last_image_path) if config.last_image_path else None
        if last_image is not None and last_image.is_file():
            self._open_directory_path(str(last_image.parent), target=str(last_image))
        elif config.default_directory and Path(config.default_directory).is_dir():
            self._open_directory_path(config.default_directory)

    # === Directory and image list ===

    def _open_directory(self) -> None:
        """Ask for a folder and open it."""
        directory = QFileDialog.getExistingDirectory(self, "Open Image Folder", self.current_directory)
        if directory:
            self._open_directory_path(directory)

    def _open_directory_path(self, directory: str, target: Optional[str] = None) -> None:
        """
        Open a folder and list its images.

        Args:
            directory: Folder to open
            target: Image to select once the scan is done, else the first one
        """
        self._stop_image_scan()
        self.current_directory = directory
        self._pending_image = target
        self.image_list.clear()
        self.config_manager.update(default_directory=directory)
        self._show_status_message("Scanning images...")

        self.image_scanner = ImageScanner(directory)
        self.image_scanner.image_found.connect(self._add_image_item)
        self.image_scanner.finished.connect(self._image_scan_finished)
        self.image_scanner.start()

    def _stop_image_scan(self) -> None:
        """Stop a running directory scan."""
        if self.image_scanner:
            self.image_scanner.image_found.disconnect(self._add_image_item)
            self.image_scanner.finished.disconnect(self._image_scan_finished)
            self.image_scanner.stop()
            self.image_scanner.wait()
            self.image_scanner = None

    def _add_image_item(self, path: str) -> None:
        """Add an image to the list."""
        item = QListWidgetItem(Path(path).name)
        item.setData(PATH_ROLE, path)
        self._mark_item(item, has_label(Path(path)))
        self.image_list.addItem(item)

    def _image_scan_finished(self, total_count: int) -> None:
        """Select the pending or first image once the folder is listed."""
        self.image_scanner = None
        self._update_counts()
        self._show_status_message(f"Found {total_count} images")

        if self.image_list.count() == 0:
            return

        row = 0
        if self._pending_image:
            row = max(self._row_of(self._pending_image), 0)
        self._pending_image = None
        self.image_list.setCurrentRow(row)

    def _row_of(self, path: str) -> int:
        target = Path(path).absolute()
        for row in range(self.image_list.count()):
            if Path(self.image_list.item(row).data(PATH_ROLE)) == target:
                return row
        return -1

    def _mark_item(self, item: QListWidgetItem, labeled: bool) -> None:
        item.setData(Qt.ItemDataRole.UserRole + 1, labeled)
        item.setForeground(QBrush(QColor(80, 200, 120)) if labeled else QBrush())

    def _update_counts(self) -> None:
        total = self.image_list.count()
        labeled = sum(
            1 for row in range(total)
            if self.image_list.item(row).data(Qt.ItemDataRole.UserRole + 1)
        )
        self.count_label.setText(f"{labeled}/{total} labeled")

    def _on_current_item_changed(
        self,
        current: Optional[QListWidgetItem],
        previous: Optional[QListWidgetItem]
    ) -> None:
        """Open the newly selected image, autosaving the previous one."""
        if current is None:
            return
        if previous is not None and self.config.autosave and self.session.is_dirty:
            self.session.save()
        self.session.open_image(Path(current.data(PATH_ROLE)))

    def _previous_image(self) -> None:
        row = self.image_list.currentRow()
        if row > 0:
            self.image_list.setCurrentRow(row - 1)

    def _next_image(self) -> None:
        row = self.image_list.currentRow()
        if 0 <= row < self.image_list.count() - 1:
            self.image_list.setCurrentRow(row + 1)

    # === Session events ===

    def _on_image_changed(self, path: Optional[Path]) -> None:
        """Remember the opened image."""
        if path is None:
            self.file_label.setText("")
            return
        self.file_label.setText(path.name)
        self.config_manager.update(last_image_path=str(path))

    def _on_saved(self, annotations: List) -> None:
        """Mark the current image as labeled."""
        item = self.image_list.currentItem()
        if item is not None:
            self._mark_item(item, bool(annotations))
            self._update_counts()

    def _save_annotations(self) -> None:
        """Save the current image's labels."""
        self.session.save()

    def _on_edit_requested(self, request: EditRequest) -> None:
        """Show the class/color prompt and hand the answer back."""
        dialog = EditInfoDialog(self)
        dialog.set_values(request.class_token, request.color)
        if dialog.exec():
            class_token, color = dialog.get_values()
            self.session.controller.apply_edit_result(class_token, color, request.for_new_box)

    # === View ===

    def _toggle_roi_mode(self, fixed: bool) -> None:
        """Switch between free and model-sized ROI."""
        mode = self.session.roi.set_mode(RoiMode.FIXED if fixed else RoiMode.FREE)
        if fixed and mode != RoiMode.FIXED:
            self._show_status_message("Fixed ROI needs a model input size")
            self.roi_action.setChecked(False)
            return
        if mode.value != self.config.roi_mode:
            self.config_manager.update(roi_mode=mode.value)

    def _reset_view(self) -> None:
        self.session.view.reset()
        self.canvas.update()

    # === Detection ===

    def _load_model(self, model_path: str) -> bool:
        """Load the detector model."""
        detector = QuadDetector()
        if not detector.load_model(model_path):
            self._show_status_message(f"Failed to load model {Path(model_path).name}")
            return False
        self.detector = detector
        self._show_status_message(
            f"Model {Path(model_path).name} loaded ({detector.get_device_info()})"
        )
        return True

    def _select_model(self) -> None:
        """Ask for a model file and load it."""
        model_path, _ = QFileDialog.getOpenFileName(
            self, "Select Model", "", "PT files (*.pt)"
        )
        if model_path and self._load_model(model_path):
            self.config_manager.update(model_path=model_path)

    def _start_detection(self, request: DetectionRequest) -> None:
        """Run the detector on a request in the background."""
        if self.detector is None or not self.detector.is_loaded:
            QMessageBox.warning(self, "Warning", "Please select a detector model first.")
            return
        if self.detection_worker is not None and self.detection_worker.isRunning():
            self._show_status_message("Detection already running")
            return

        self._show_status_message("Detecting objects...")
        self.detection_worker = DetectionWorker(
            self.detector,
            request,
            confidence=self.config.confidence,
            iou_threshold=self.config.iou
        )
        self.detection_worker.detected.connect(self.session.apply_detections)
        self.detection_worker.failed.connect(self._on_detection_failed)
        self.detection_worker.start()

    def _on_detection_failed(self, message: str) -> None:
        QMessageBox.critical(self, "Error", f"Detection failed: {message}")

    # === Misc ===

    def _show_status_message(self, message: str) -> None:
        """Show a message in the status bar."""
        self.status_bar.showMessage(message, STATUS_TIMEOUT_MS)

    def dragEnterEvent(self, event) -> None:
        """Accept dragged files and folders."""
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
        else:
            event.ignore()

    def dropEvent(self, event) -> None:
        """Open a dropped folder, or the folder of a dropped image."""
        urls: List[QUrl] = event.mimeData().urls()
        for url in urls:
            if not url.isLocalFile():
                continue
            path = Path(url.toLocalFile())
            if path.is_dir():
                self._open_directory_path(str(path))
                break
            if path.is_file() and is_image_file(path):
                self._open_directory_path(str(path.parent), target=str(path))
                break
        event.acceptProposedAction()

    def closeEvent(self, event) -> None:
        """Handle window close."""
        if self.config.autosave and self.session.is_dirty:
            self.session.save()

        self._stop_image_scan()
        if self.detection_worker is not None:
            self.detection_worker.wait()

        super().closeEvent(event)
