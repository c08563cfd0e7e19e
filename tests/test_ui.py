"""Smoke tests for the widgets."""

import pytest
from PyQt6.QtCore import QPoint, QPointF, QRect, QSize
from PyQt6.QtGui import QColor, QImage

from quadlabel.core.config import AppConfig, ConfigManager
from quadlabel.core.models import Annotation, LabelColor
from quadlabel.core.session import AnnotationSession
from quadlabel.ui.canvas import AnnotationCanvas
from quadlabel.ui.dialogs.edit_info import EditInfoDialog
from quadlabel.ui.main_window import MainWindow

pytestmark = pytest.mark.usefixtures("qapp")


class TestEditInfoDialog:
    """Tests for the class/color prompt."""

    def test_prefill_and_read_back(self):
        dialog = EditInfoDialog()
        dialog.set_values("bs", LabelColor.RED)

        assert dialog.get_values() == ("Bs", LabelColor.RED)

    def test_free_text_class(self):
        dialog = EditInfoDialog()
        dialog.set_values("unknown", "purple")
        dialog.class_combo.setCurrentText("road sign")

        assert dialog.get_values() == ("road_sign", LabelColor.PURPLE)


class TestAnnotationCanvas:
    """Tests for the display surface."""

    def test_paint_with_annotations(self):
        """Test that a populated canvas renders without errors."""
        session = AnnotationSession(AppConfig())
        canvas = AnnotationCanvas(session)
        canvas.resize(QSize(400, 300))

        image = QImage(800, 600, QImage.Format.Format_RGB32)
        image.fill(QColor(40, 40, 40))
        session.load_image(image)
        session.store.add(Annotation.from_rect(QRect(QPoint(100, 100), QPoint(300, 200)), "1", "R"))
        session.store.select(0)
        session.roi.begin_free(QPointF(50, 50))
        session.roi.update_free(QPointF(400, 300))

        pixmap = canvas.grab()

        assert not pixmap.isNull()
        assert session.view.can_map is True

    def test_load_icons_missing_dir(self, tmp_path):
        canvas = AnnotationCanvas(AnnotationSession())

        assert canvas.load_icons(tmp_path) == 0


class TestMainWindow:
    """Tests for the main window."""

    def test_create(self, tmp_path):
        window = MainWindow(ConfigManager(tmp_path / "config.yaml"))

        assert window.windowTitle() == "QuadLabel"
        assert window.roi_action.isChecked() is False
        assert window.image_list.count() == 0
