"""Display surface for the current image, its quads and the ROI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PyQt6.QtCore import Qt, QPointF, QRect, QRectF, QSizeF
from PyQt6.QtGui import (
    QColor, QFont, QKeyEvent, QMouseEvent, QPainter, QPainterPath, QPen,
    QPolygonF, QWheelEvent
)
from PyQt6.QtSvg import QSvgRenderer
from PyQt6.QtWidgets import QWidget

from ..core.geometry import quad_to_quad
from ..core.interaction import InteractionState
from ..core.models import Annotation, LabelColor
from ..core.session import AnnotationSession

logger = logging.getLogger(__name__)

LABEL_COLORS: Dict[LabelColor, QColor] = {
    LabelColor.BLUE: QColor(61, 165, 255),
    LabelColor.RED: QColor(255, 70, 70),
    LabelColor.GRAY: QColor(170, 170, 180),
    LabelColor.PURPLE: QColor(190, 120, 255),
}

# SVG icon geometry: view box size and the quad inside it that lines up with
# an annotation's corners (TL, BL, BR, TR)
_BIG_ICON = (QSizeF(871.0, 478.0), [
    QPointF(0.0, 140.61), QPointF(0.0, 347.39), QPointF(871.0, 347.39), QPointF(871.0, 140.61)
])
_SMALL_ICON = (QSizeF(557.0, 516.0), [
    QPointF(0.0, 143.26), QPointF(0.0, 372.74), QPointF(557.0, 372.74), QPointF(557.0, 143.26)
])
_BIG_ICON_CLASSES = {"1", "Bb"}
ICON_CLASSES = ("1", "2", "3", "4", "G", "O", "Bs", "Bb")


class AnnotationCanvas(QWidget):
    """
    Paints the session's image with its quads, ROI and drag previews.

    Input is forwarded to the session's InteractionController; the canvas
    keeps no annotation state of its own and repaints on any change.
    """

    def __init__(self, session: AnnotationSession, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.line_thickness = 2
        self.show_crosshair = True
        self.show_icons = True

        self._mouse_pos: Optional[QPointF] = None
        self._icons: Dict[str, QSvgRenderer] = {}

        self.setMouseTracking(True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMinimumSize(320, 240)

        controller = session.controller
        controller.draft_changed.connect(self._refresh)
        controller.view_changed.connect(self._refresh)
        controller.state_changed.connect(self._on_state_changed)
        session.store.changed.connect(self._refresh)
        session.store.selection_changed.connect(self._refresh)
        session.store.hover_changed.connect(self._refresh)
        session.roi.roi_changed.connect(self._refresh)
        session.image_changed.connect(self._on_image_changed)
        session.raster_changed.connect(self._refresh)

    def load_icons(self, assets_dir: Path) -> int:
        """
        Load the SVG class icons from ``<assets_dir>/icons``.

        Returns:
            Number of icons loaded
        """
        self._icons.clear()
        icons_dir = Path(assets_dir) / "icons"
        for class_token in ICON_CLASSES:
            path = icons_dir / f"{class_token}.svg"
            if not path.is_file():
                continue
            renderer = QSvgRenderer(str(path), self)
            if renderer.isValid():
                self._icons[class_token] = renderer
            else:
                logger.warning(f"Invalid SVG icon: {path}")
        logger.info(f"Loaded {len(self._icons)} class icons from {icons_dir}")
        return len(self._icons)

    # Qt events

    def resizeEvent(self, event) -> None:
        """Keep the view's display size in sync with the widget."""
        super().resizeEvent(event)
        self.session.view.set_display_size(QSizeF(self.size()))

    def wheelEvent(self, event: QWheelEvent) -> None:
        """Zoom around the cursor."""
        self.session.controller.wheel(event.position(), event.angleDelta().y())
        event.accept()

    def mousePressEvent(self, event: QMouseEvent) -> None:
        """Forward presses to the controller."""
        self.setFocus()
        self._mouse_pos = event.position()
        self.session.controller.mouse_press(event.position(), event.button(), event.modifiers())
        self.update()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:
        """Forward motion to the controller."""
        self._mouse_pos = event.position()
        self.session.controller.mouse_move(event.position())
        self.update()

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:
        """Forward releases to the controller."""
        self.session.controller.mouse_release(event.position(), event.button())
        self.update()

    def mouseDoubleClickEvent(self, event: QMouseEvent) -> None:
        """Open the edit prompt for the quad under the cursor."""
        self.session.controller.mouse_double_click(event.position(), event.button())

    def keyPressEvent(self, event: QKeyEvent) -> None:
        """Handle controller keys, pass the rest to the parent."""
        try:
            key = Qt.Key(event.key())
        except ValueError:
            super().keyPressEvent(event)
            return
        if self.session.controller.key_press(key, event.isAutoRepeat()):
            event.accept()
            self.update()
            return
        super().keyPressEvent(event)

    def leaveEvent(self, event) -> None:
        """Drop hover state and the crosshair."""
        self._mouse_pos = None
        self.session.controller.leave()
        self.update()
        super().leaveEvent(event)

    def paintEvent(self, event) -> None:
        """Paint image, quads, icons, ROI, drag preview and crosshair."""
        painter = QPainter(self)
        painter.fillRect(self.rect(), Qt.GlobalColor.black)

        view = self.session.view
        if not self.session.has_image or not view.can_map:
            painter.end()
            return

        image_rect = view.image_rect_on_display()
        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform, True)
        painter.drawImage(image_rect, self.session.image)

        painter.save()
        painter.setClipRect(image_rect)
        self._draw_annotations(painter)
        if self.show_icons and self._icons:
            self._draw_icons(painter)
        self._draw_draft(painter)
        painter.restore()

        self._draw_roi(painter)
        if self.show_crosshair:
            self._draw_crosshair(painter, image_rect)
        painter.end()

    # Drawing helpers

    def _display_points(self, annotation: Annotation) -> List[QPointF]:
        view = self.session.view
        return [view.to_display(p) for p in annotation.points]

    def _display_rect(self, rect: QRect) -> QRectF:
        view = self.session.view
        return QRectF(
            view.to_display(QPointF(rect.topLeft())),
            view.to_display(QPointF(rect.bottomRight()))
        ).normalized()

    def _draw_annotations(self, painter: QPainter) -> None:
        store = self.session.store
        controller = self.session.controller
        painter.setRenderHint(QPainter.RenderHint.Antialiasing, True)

        for index, annotation in enumerate(store):
            points = self._display_points(annotation)
            polygon = QPolygonF(points)
            base = LABEL_COLORS[annotation.color]
            selected = index == store.selected
            hovered = index == store.hover

            if selected or hovered:
                fill = QColor(base)
                fill.setAlpha(60 if selected else 45)
                painter.setPen(Qt.PenStyle.NoPen)
                painter.setBrush(fill)
                painter.drawPolygon(polygon)

            width = self.line_thickness + (1 if selected or hovered else 0)
            pen = QPen(base.lighter(125) if hovered and not selected else base, width)
            pen.setJoinStyle(Qt.PenJoinStyle.MiterJoin)
            painter.setPen(pen)
            painter.setBrush(Qt.BrushStyle.NoBrush)
            painter.drawPolygon(polygon)

            self._draw_label(painter, annotation.display_text, polygon.boundingRect().topLeft(), base)

            if selected:
                radius = controller.handle_radius
                hot = {controller.hover_corner, controller.drag_corner}
                painter.setPen(Qt.PenStyle.NoPen)
                for corner, point in enumerate(points):
                    painter.setBrush(base.lighter(140) if corner in hot else base)
                    painter.drawEllipse(point, radius, radius)

    def _draw_label(self, painter: QPainter, text: str, anchor: QPointF, color: QColor) -> None:
        font = QFont(painter.font())
        font.setPointSizeF(font.pointSizeF() + 1)
        painter.setFont(font)
        position = anchor + QPointF(2, -4)

        painter.setPen(QPen(Qt.GlobalColor.black, 4))
        painter.drawText(position, text)
        painter.setPen(QPen(color.lighter(120), 1))
        painter.drawText(position, text)

    def _draw_icons(self, painter: QPainter) -> None:
        for annotation in self.session.store:
            renderer = self._icons.get(annotation.class_token)
            if renderer is None:
                continue

            view_box, anchors = self._icon_geometry(annotation.class_token)
            transform = quad_to_quad(anchors, self._display_points(annotation))
            if transform is None:
                continue

            painter.save()
            painter.setTransform(transform, True)
            renderer.render(painter, QRectF(QPointF(0, 0), view_box))
            painter.restore()

    @staticmethod
    def _icon_geometry(class_token: str) -> Tuple[QSizeF, List[QPointF]]:
        return _BIG_ICON if class_token in _BIG_ICON_CLASSES else _SMALL_ICON

    def _draw_draft(self, painter: QPainter) -> None:
        controller = self.session.controller
        rect = controller.draft_rect
        if rect is None:
            return

        color = QColor(Qt.GlobalColor.white) if controller.draft_is_mask else QColor(Qt.GlobalColor.green)
        painter.setPen(QPen(color, 2, Qt.PenStyle.DashLine))
        painter.setBrush(QColor(0, 0, 0, 160) if controller.draft_is_mask else Qt.BrushStyle.NoBrush)
        painter.drawRect(self._display_rect(rect))

    def _draw_roi(self, painter: QPainter) -> None:
        roi = self.session.roi.roi
        if roi is None:
            return

        roi_rect = self._display_rect(roi)
        outside = QPainterPath()
        outside.addRect(QRectF(self.rect()))
        hole = QPainterPath()
        hole.addRect(roi_rect)

        painter.save()
        painter.setPen(Qt.PenStyle.NoPen)
        painter.setBrush(QColor(0, 0, 0, 100))
        painter.drawPath(outside - hole)

        painter.setPen(QPen(QColor(255, 200, 0), 2, Qt.PenStyle.DashLine))
        painter.setBrush(Qt.BrushStyle.NoBrush)
        painter.drawRect(roi_rect)
        painter.setPen(QColor(255, 200, 0))
        painter.drawText(roi_rect.topLeft() + QPointF(4, -4), f"{roi.width()}×{roi.height()}")
        painter.restore()

    def _draw_crosshair(self, painter: QPainter, image_rect: QRectF) -> None:
        if self._mouse_pos is None or not image_rect.contains(self._mouse_pos):
            return
        painter.save()
        painter.setClipRect(image_rect)
        painter.setPen(QPen(QColor(0, 255, 0, 180), 1))
        x, y = self._mouse_pos.x(), self._mouse_pos.y()
        painter.drawLine(QPointF(x, image_rect.top()), QPointF(x, image_rect.bottom()))
        painter.drawLine(QPointF(image_rect.left(), y), QPointF(image_rect.right(), y))
        painter.restore()

    # Slots

    def _refresh(self, *_args) -> None:
        self.update()

    def _on_image_changed(self, path) -> None:
        self.session.view.set_display_size(QSizeF(self.size()))
        self.update()

    def _on_state_changed(self, state) -> None:
        if state == InteractionState.PANNING_VIEW:
            self.setCursor(Qt.CursorShape.ClosedHandCursor)
        else:
            self.setCursor(Qt.CursorShape.ArrowCursor)
