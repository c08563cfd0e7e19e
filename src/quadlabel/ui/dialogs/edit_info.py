"""Class and color prompt for a quad."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from PyQt6.QtWidgets import (
    QComboBox, QDialog, QDialogButtonBox, QFormLayout, QWidget
)

from ...core.models import DEFAULT_CLASS, KNOWN_CLASS_TOKENS, LabelColor, normalize_class_token

logger = logging.getLogger(__name__)


class EditInfoDialog(QDialog):
    """
    Modal dialog asking for a class token and a color.

    The class box is editable so tokens outside the known set can be typed.
    """

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        """Initialize the dialog."""
        super().__init__(parent)
        self._init_ui()

    def _init_ui(self) -> None:
        """Initialize the dialog UI."""
        self.setWindowTitle("Edit Label")
        self.setMinimumWidth(260)

        layout = QFormLayout()

        self.class_combo = QComboBox()
        self.class_combo.setEditable(True)
        self.class_combo.addItems(list(KNOWN_CLASS_TOKENS))
        layout.addRow("Class:", self.class_combo)

        self.color_combo = QComboBox()
        for color in LabelColor:
            self.color_combo.addItem(color.value.capitalize(), color)
        layout.addRow("Color:", self.color_combo)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)

        self.setLayout(layout)

    def set_values(self, class_token: str, color: LabelColor) -> None:
        """
        Pre-fill the dialog.

        Args:
            class_token: Current class token
            color: Current color
        """
        self.class_combo.setCurrentText(class_token or DEFAULT_CLASS)
        wanted = LabelColor.from_text(color)
        for index in range(self.color_combo.count()):
            if LabelColor.from_text(self.color_combo.itemData(index)) == wanted:
                self.color_combo.setCurrentIndex(index)
                break
        self.class_combo.lineEdit().selectAll()
        self.class_combo.setFocus()

    def get_values(self) -> Tuple[str, LabelColor]:
        """
        Get the entered class token and color.

        Returns:
            (normalized class token, color)
        """
        class_token = normalize_class_token(self.class_combo.currentText())
        color = LabelColor.from_text(self.color_combo.currentData())
        return class_token, color
