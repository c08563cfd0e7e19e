"""Pointer and keyboard state machine for editing quads and the ROI."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from PyQt6.QtCore import QObject, QPoint, QPointF, QRect, Qt, pyqtSignal

from .annotation_store import AnnotationStore
from .geometry import ViewState, hit_corner, point_in_quad
from .models import DEFAULT_CLASS, Annotation, LabelColor, normalize_class_token
from .roi import RoiManager, RoiMode

logger = logging.getLogger(__name__)

MIN_BOX_SIZE = 2


class InteractionState(Enum):
    """States of the interaction controller."""

    IDLE = "idle"
    DRAWING_NEW_BOX = "drawing_new_box"
    DRAGGING_CORNER = "dragging_corner"
    PANNING_VIEW = "panning_view"
    DRAWING_ROI = "drawing_roi"


@dataclass
class EditRequest:
    """
    Request for the class/color prompt.

    ``index`` is the annotation being edited, or None for a box that is
    about to be added.
    """

    for_new_box: bool
    class_token: str = DEFAULT_CLASS
    color: LabelColor = LabelColor.GRAY
    index: Optional[int] = None


@dataclass
class _BoxDraft:
    """A box being dragged out, with the labels chosen for it."""

    anchor: QPoint
    rect: QRect = field(default_factory=QRect)
    mask: bool = False
    class_token: str = DEFAULT_CLASS
    color: LabelColor = LabelColor.GRAY


@dataclass
class _CornerDrag:
    index: int
    corner: int
    origin: QPointF


class InteractionController(QObject):
    """
    Turns display-space pointer and key input into store and ROI edits.

    Left button: drag a corner of the selected quad, select a quad, or
    draw a new box. Ctrl+left draws a mask block instead of a box;
    Shift+left draws or places the ROI. Right button deletes the quad
    under the cursor. Middle button pans. Wheel zooms around the cursor.

    Every geometry or label change goes through the AnnotationStore so its
    notifications and cursor invariants always hold.
    """

    edit_requested = pyqtSignal(object)  # EditRequest
    mask_requested = pyqtSignal(object)  # QRect in image pixels
    draft_changed = pyqtSignal(object)  # Optional[QRect]
    view_changed = pyqtSignal()
    state_changed = pyqtSignal(object)  # InteractionState

    def __init__(
        self,
        store: AnnotationStore,
        view: ViewState,
        roi: RoiManager,
        handle_radius: float = 6.0,
        hit_tolerance: float = 1.6
    ) -> None:
        super().__init__()
        self._store = store
        self._view = view
        self._roi = roi
        self.handle_radius = handle_radius
        self.hit_tolerance = hit_tolerance

        self._state = InteractionState.IDLE
        self._draft: Optional[_BoxDraft] = None
        self._corner_drag: Optional[_CornerDrag] = None
        self._last_pos = QPointF()
        self._hover_corner: Optional[int] = None

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def view(self) -> ViewState:
        return self._view

    @property
    def draft_rect(self) -> Optional[QRect]:
        """In-progress box in image pixels."""
        if self._draft is None or self._draft.rect.isNull():
            return None
        return QRect(self._draft.rect)

    @property
    def draft_is_mask(self) -> bool:
        return self._draft is not None and self._draft.mask

    @property
    def hover_corner(self) -> Optional[int]:
        """Corner of the selected quad under the cursor."""
        return self._hover_corner

    @property
    def drag_corner(self) -> Optional[int]:
        return self._corner_drag.corner if self._corner_drag is not None else None

    # Hit testing

    def hit_annotation(self, pos: QPointF) -> Optional[int]:
        """
        Find the topmost quad containing a display point.

        Args:
            pos: Point in display coordinates

        Returns:
            Annotation index or None
        """
        if not self._view.can_map:
            return None
        for index in range(len(self._store) - 1, -1, -1):
            corners = [self._view.to_display(p) for p in self._store[index].points]
            if point_in_quad(corners, pos):
                return index
        return None

    def hit_selected_corner(self, pos: QPointF) -> Optional[int]:
        """Find a corner handle of the selected quad near a display point."""
        annotation = self._store.selected_annotation()
        if annotation is None or not self._view.can_map:
            return None
        corners = [self._view.to_display(p) for p in annotation.points]
        return hit_corner(corners, pos, self.handle_radius * self.hit_tolerance)

    # Pointer input

    def mouse_press(
        self,
        pos: QPointF,
        button: Qt.MouseButton,
        modifiers: Qt.KeyboardModifier = Qt.KeyboardModifier.NoModifier
    ) -> None:
        """Handle a button press at a display position."""
        if not self._view.can_map:
            return
        self._last_pos = QPointF(pos)

        if button == Qt.MouseButton.LeftButton:
            self._left_press(pos, modifiers)
        elif button == Qt.MouseButton.MiddleButton:
            # Panning starts only between drags
            if self._state == InteractionState.IDLE:
                self._set_state(InteractionState.PANNING_VIEW)
        elif button == Qt.MouseButton.RightButton:
            self._right_press(pos)

    def _left_press(self, pos: QPointF, modifiers: Qt.KeyboardModifier) -> None:
        if self._state != InteractionState.IDLE:
            return
        image_point = self._view.to_image(pos)

        if modifiers & Qt.KeyboardModifier.ShiftModifier:
            if self._roi.mode == RoiMode.FIXED:
                self._roi.place_fixed(image_point)
            else:
                self._roi.begin_free(image_point)
            self._set_state(InteractionState.DRAWING_ROI)
            return

        mask = bool(modifiers & Qt.KeyboardModifier.ControlModifier)
        if not mask:
            corner = self.hit_selected_corner(pos)
            if corner is not None:
                index = self._store.selected
                origin = self._store[index].points[corner]
                self._corner_drag = _CornerDrag(index, corner, QPointF(origin))
                self._hover_corner = corner
                self._set_state(InteractionState.DRAGGING_CORNER)
                return

            hit = self.hit_annotation(pos)
            if hit is not None:
                self._store.select(hit)
                return

        anchor = image_point.toPoint()
        self._draft = _BoxDraft(anchor=anchor, rect=QRect(anchor, anchor), mask=mask)
        self._set_state(InteractionState.DRAWING_NEW_BOX)
        self.draft_changed.emit(self.draft_rect)

    def _right_press(self, pos: QPointF) -> None:
        hit = self.hit_annotation(pos)
        if hit is not None:
            self._store.remove(hit)
            logger.debug(f"Deleted annotation {hit}")
        if self._state in (
            InteractionState.IDLE,
            InteractionState.DRAWING_NEW_BOX,
            InteractionState.DRAGGING_CORNER
        ):
            self._reset_to_idle()

    def mouse_move(self, pos: QPointF) -> None:
        """Handle pointer motion at a display position."""
        if not self._view.can_map:
            return

        if self._state == InteractionState.PANNING_VIEW:
            self._view.pan_by(pos - self._last_pos)
            self._last_pos = QPointF(pos)
            self.view_changed.emit()
            return

        self._last_pos = QPointF(pos)
        image_point = self._view.to_image(pos)

        if self._state == InteractionState.DRAWING_NEW_BOX and self._draft is not None:
            self._draft.rect = QRect(self._draft.anchor, image_point.toPoint()).normalized()
            self.draft_changed.emit(self.draft_rect)
            return

        if self._state == InteractionState.DRAGGING_CORNER and self._corner_drag is not None:
            drag = self._corner_drag
            self._store.move_corner(drag.index, drag.corner, image_point)
            return

        if self._state == InteractionState.DRAWING_ROI:
            if self._roi.mode == RoiMode.FIXED:
                self._roi.place_fixed(image_point)
            else:
                self._roi.update_free(image_point)
            return

        self._hover_corner = self.hit_selected_corner(pos)
        self._store.set_hover(self.hit_annotation(pos))

    def mouse_release(self, pos: QPointF, button: Qt.MouseButton) -> None:
        """Handle a button release at a display position."""
        if button == Qt.MouseButton.MiddleButton:
            if self._state == InteractionState.PANNING_VIEW:
                self._set_state(InteractionState.IDLE)
            return
        if button != Qt.MouseButton.LeftButton:
            return

        if self._state == InteractionState.DRAWING_NEW_BOX:
            self._finish_box()
        elif self._state == InteractionState.DRAGGING_CORNER:
            self._finish_corner_drag()
        elif self._state == InteractionState.DRAWING_ROI:
            self._roi.end()
            self._set_state(InteractionState.IDLE)

    def mouse_double_click(self, pos: QPointF, button: Qt.MouseButton) -> None:
        """Select the quad under the cursor and open its edit prompt."""
        if button != Qt.MouseButton.LeftButton:
            return
        hit = self.hit_annotation(pos)
        if hit is not None:
            self._store.select(hit)
            self.request_edit_selected()

    def wheel(self, pos: QPointF, delta_y: int) -> bool:
        """
        Zoom one step around a display position.

        Returns:
            True if the view changed
        """
        if not self._view.can_map or delta_y == 0:
            return False
        self._view.zoom_at(pos, delta_y > 0)
        self.view_changed.emit()
        return True

    def leave(self) -> None:
        """Clear hover state when the pointer leaves the surface."""
        self._hover_corner = None
        self._store.set_hover(None)

    # Keyboard input

    def key_press(self, key: Qt.Key, auto_repeat: bool = False) -> bool:
        """
        Handle a key press.

        Returns:
            True if the key was consumed
        """
        if auto_repeat:
            return False

        if key in (Qt.Key.Key_F2, Qt.Key.Key_C):
            self.request_edit_selected()
            return True
        if key == Qt.Key.Key_Escape:
            self.cancel()
            return True
        if key in (Qt.Key.Key_Delete, Qt.Key.Key_Backspace):
            selected = self._store.selected
            if selected is not None and self._state == InteractionState.IDLE:
                self._store.remove(selected)
                return True
        return False

    def cancel(self) -> None:
        """Abort any in-progress box, corner drag or ROI drag without committing."""
        if self._corner_drag is not None:
            drag = self._corner_drag
            self._store.move_corner(drag.index, drag.corner, drag.origin)
        if self._state == InteractionState.DRAWING_ROI:
            self._roi.clear()
        self._reset_to_idle()

    # Class/color prompt

    def request_edit_selected(self) -> bool:
        """
        Ask for new class and color of the selected quad.

        Returns:
            False if nothing is selected
        """
        annotation = self._store.selected_annotation()
        if annotation is None:
            return False
        self.edit_requested.emit(EditRequest(
            for_new_box=False,
            class_token=annotation.class_token,
            color=annotation.color,
            index=self._store.selected
        ))
        return True

    def apply_edit_result(
        self,
        class_token: str,
        color: Union[LabelColor, str],
        for_new_box: bool
    ) -> bool:
        """
        Apply the answer of the class/color prompt.

        For a new box the labels are kept on the box being committed;
        otherwise the selected quad is updated.

        Returns:
            True if the labels were applied
        """
        if for_new_box:
            if self._draft is None:
                return False
            self._draft.class_token = normalize_class_token(class_token)
            self._draft.color = LabelColor.from_text(color)
            return True

        selected = self._store.selected
        if selected is None:
            return False
        return self._store.set_info(selected, class_token, color)

    # Internals

    def _finish_box(self) -> None:
        draft = self._draft
        rect = self._view.clamp_rect(draft.rect.normalized()) if draft is not None else QRect()

        if draft is None or rect.width() < MIN_BOX_SIZE or rect.height() < MIN_BOX_SIZE:
            self._reset_to_idle()
            return

        if draft.mask:
            self._reset_to_idle()
            self.mask_requested.emit(rect)
            return

        # A synchronous prompt answers through apply_edit_result before emit returns
        self.edit_requested.emit(EditRequest(for_new_box=True))
        annotation = Annotation.from_rect(rect, class_token=draft.class_token, color=draft.color)
        self._reset_to_idle()

        index = self._store.add(annotation)
        self._store.select(index)
        logger.info(f"Added {annotation.display_text} box {rect.width()}x{rect.height()}")

    def _finish_corner_drag(self) -> None:
        drag = self._corner_drag
        self._corner_drag = None
        if drag is not None and self._store.is_valid_index(drag.index):
            self._store.update(drag.index, self._store[drag.index].copy())
        self._set_state(InteractionState.IDLE)

    def _reset_to_idle(self) -> None:
        had_draft = self._draft is not None
        self._draft = None
        self._corner_drag = None
        self._hover_corner = None
        if had_draft:
            self.draft_changed.emit(None)
        self._set_state(InteractionState.IDLE)

    def _set_state(self, state: InteractionState) -> None:
        if state != self._state:
            self._state = state
            self.state_changed.emit(state)
