"""Tests for the interaction state machine."""

import pytest
from PyQt6.QtCore import QPoint, QPointF, QRect, QSize, QSizeF, Qt

from quadlabel.core.annotation_store import AnnotationStore, ChangeKind
from quadlabel.core.geometry import ViewState
from quadlabel.core.interaction import EditRequest, InteractionController, InteractionState
from quadlabel.core.models import Annotation, LabelColor
from quadlabel.core.roi import RoiManager, RoiMode

LEFT = Qt.MouseButton.LeftButton
RIGHT = Qt.MouseButton.RightButton
MIDDLE = Qt.MouseButton.MiddleButton
CTRL = Qt.KeyboardModifier.ControlModifier
SHIFT = Qt.KeyboardModifier.ShiftModifier


class Harness:
    """Controller over an 800x600 image shown 1:1, with recorded signals."""

    def __init__(self, roi_size=None, roi_mode=RoiMode.FREE):
        self.store = AnnotationStore()
        self.view = ViewState()
        self.view.set_image_size(QSize(800, 600))
        self.view.set_display_size(QSizeF(800, 600))
        self.roi = RoiManager(roi_size, roi_mode)
        self.roi.set_image_size(QSize(800, 600))
        self.controller = InteractionController(self.store, self.view, self.roi)

        self.edits = []
        self.masks = []
        self.changes = []
        self.controller.edit_requested.connect(self.edits.append)
        self.controller.mask_requested.connect(self.masks.append)
        self.store.changed.connect(self.changes.append)

    def drag(self, start, end, modifiers=Qt.KeyboardModifier.NoModifier):
        self.controller.mouse_press(QPointF(*start), LEFT, modifiers)
        self.controller.mouse_move(QPointF(*end))
        self.controller.mouse_release(QPointF(*end), LEFT)

    def add_box(self, left, top, right, bottom, class_token="1"):
        rect = QRect(QPoint(left, top), QPoint(right, bottom))
        return self.store.add(Annotation.from_rect(rect, class_token=class_token))


@pytest.fixture
def harness():
    return Harness()


class TestDrawing:
    """Tests for drawing new boxes."""

    def test_draw_box(self, harness):
        """Test the box from (100,100) to (300,200) on an 800x600 image."""
        harness.drag((100, 100), (300, 200))

        assert len(harness.store) == 1
        annotation = harness.store[0]
        assert annotation.points == [
            QPointF(100, 100),
            QPointF(100, 200),
            QPointF(300, 200),
            QPointF(300, 100),
        ]
        assert annotation.class_token == "unknown"
        assert annotation.color == LabelColor.GRAY
        assert harness.store.selected == 0
        assert harness.controller.state == InteractionState.IDLE
        assert harness.controller.draft_rect is None

    def test_draft_rect_follows_pointer(self, harness):
        harness.controller.mouse_press(QPointF(300, 200), LEFT)
        harness.controller.mouse_move(QPointF(100, 100))

        assert harness.controller.state == InteractionState.DRAWING_NEW_BOX
        assert harness.controller.draft_rect == QRect(QPoint(100, 100), QPoint(300, 200))

    def test_new_box_prompt(self, harness):
        """Test that the prompt answer labels the new box."""
        def answer(request):
            harness.controller.apply_edit_result("bs", "R", request.for_new_box)

        harness.controller.edit_requested.connect(answer)
        harness.drag((10, 10), (60, 40))

        assert harness.edits[0].for_new_box is True
        assert harness.store[0].class_token == "Bs"
        assert harness.store[0].color == LabelColor.RED

    def test_tiny_box_discarded(self, harness):
        """Test that a click without a drag adds nothing."""
        harness.controller.mouse_press(QPointF(100, 100), LEFT)
        harness.controller.mouse_release(QPointF(100, 100), LEFT)

        assert len(harness.store) == 0
        assert harness.edits == []
        assert harness.controller.state == InteractionState.IDLE

    def test_two_pixel_box_kept(self, harness):
        harness.drag((100, 100), (101, 101))

        assert len(harness.store) == 1

    def test_box_clamped_to_image(self, harness):
        harness.drag((700, 500), (900, 800))

        assert harness.store[0].points[2] == QPointF(799, 599)

    def test_escape_cancels_box(self, harness):
        harness.controller.mouse_press(QPointF(10, 10), LEFT)
        harness.controller.mouse_move(QPointF(200, 200))
        assert harness.controller.key_press(Qt.Key.Key_Escape) is True
        harness.controller.mouse_release(QPointF(200, 200), LEFT)

        assert len(harness.store) == 0
        assert harness.controller.state == InteractionState.IDLE

    def test_ignored_without_image(self):
        store = AnnotationStore()
        controller = InteractionController(store, ViewState(), RoiManager())

        controller.mouse_press(QPointF(10, 10), LEFT)
        controller.mouse_move(QPointF(50, 50))
        controller.mouse_release(QPointF(50, 50), LEFT)

        assert len(store) == 0
        assert controller.state == InteractionState.IDLE


class TestSelectionAndEditing:
    """Tests for selecting, dragging and deleting quads."""

    def test_click_selects(self, harness):
        harness.add_box(100, 100, 300, 200)
        harness.controller.mouse_press(QPointF(200, 150), LEFT)
        harness.controller.mouse_release(QPointF(200, 150), LEFT)

        assert harness.store.selected == 0
        assert len(harness.store) == 1

    def test_topmost_wins(self, harness):
        """Test that the most recently added quad is hit first."""
        harness.add_box(100, 100, 300, 200)
        harness.add_box(200, 150, 400, 300)

        harness.controller.mouse_press(QPointF(250, 175), LEFT)

        assert harness.store.selected == 1

    def test_corner_drag(self, harness):
        harness.add_box(100, 100, 300, 200)
        harness.store.select(0)

        harness.controller.mouse_press(QPointF(103, 98), LEFT)
        assert harness.controller.state == InteractionState.DRAGGING_CORNER
        assert harness.controller.drag_corner == 0

        harness.controller.mouse_move(QPointF(50, 60))
        harness.controller.mouse_release(QPointF(50, 60), LEFT)

        points = harness.store[0].points
        assert points[0] == QPointF(50, 60)
        assert points[1] == QPointF(100, 200)
        assert harness.controller.state == InteractionState.IDLE
        assert [c.kind for c in harness.changes[-2:]] == [ChangeKind.UPDATED, ChangeKind.UPDATED]

    def test_corner_handles_only_on_selected(self, harness):
        """Test that an unselected quad's corner starts a new box."""
        harness.add_box(100, 100, 300, 200)

        harness.controller.mouse_press(QPointF(98, 98), LEFT)

        assert harness.controller.state == InteractionState.DRAWING_NEW_BOX

    def test_escape_restores_corner(self, harness):
        harness.add_box(100, 100, 300, 200)
        harness.store.select(0)

        harness.controller.mouse_press(QPointF(300, 200), LEFT)
        harness.controller.mouse_move(QPointF(500, 400))
        harness.controller.key_press(Qt.Key.Key_Escape)

        assert harness.store[0].points[2] == QPointF(300, 200)
        assert harness.controller.state == InteractionState.IDLE

    def test_right_click_deletes(self, harness):
        harness.add_box(100, 100, 300, 200)
        harness.store.select(0)

        harness.controller.mouse_press(QPointF(200, 150), RIGHT)

        assert len(harness.store) == 0
        assert harness.store.selected is None

    def test_right_click_miss(self, harness):
        harness.add_box(100, 100, 300, 200)

        harness.controller.mouse_press(QPointF(600, 500), RIGHT)

        assert len(harness.store) == 1

    def test_double_click_opens_prompt(self, harness):
        harness.add_box(100, 100, 300, 200, class_token="3")

        harness.controller.mouse_double_click(QPointF(200, 150), LEFT)

        assert harness.store.selected == 0
        assert harness.edits == [
            EditRequest(for_new_box=False, class_token="3", color=LabelColor.GRAY, index=0)
        ]

    def test_apply_edit_to_selected(self, harness):
        harness.add_box(100, 100, 300, 200)
        harness.store.select(0)

        assert harness.controller.apply_edit_result("g", "purple", False) is True
        assert harness.store[0].class_token == "G"
        assert harness.store[0].color == LabelColor.PURPLE

    def test_apply_edit_without_selection(self, harness):
        assert harness.controller.apply_edit_result("g", "purple", False) is False
        assert harness.controller.apply_edit_result("g", "purple", True) is False

    def test_edit_key(self, harness):
        harness.add_box(100, 100, 300, 200)
        harness.store.select(0)

        harness.controller.key_press(Qt.Key.Key_F2)
        harness.controller.key_press(Qt.Key.Key_C, auto_repeat=True)

        assert len(harness.edits) == 1

    def test_delete_key(self, harness):
        harness.add_box(100, 100, 300, 200)
        harness.add_box(400, 100, 500, 200)
        harness.store.select(1)

        assert harness.controller.key_press(Qt.Key.Key_Delete) is True
        assert len(harness.store) == 1
        assert harness.controller.key_press(Qt.Key.Key_Delete) is False

    def test_hover(self, harness):
        harness.add_box(100, 100, 300, 200)

        harness.controller.mouse_move(QPointF(200, 150))
        assert harness.store.hover == 0

        harness.controller.leave()
        assert harness.store.hover is None


class TestMaskRoiAndView:
    """Tests for mask painting, ROI drawing, panning and zoom."""

    def test_ctrl_drag_requests_mask(self, harness):
        harness.add_box(0, 0, 100, 100)

        harness.drag((10, 10), (50, 40), CTRL)

        assert harness.masks == [QRect(QPoint(10, 10), QPoint(50, 40))]
        assert len(harness.store) == 1
        assert harness.store.selected is None
        assert harness.controller.draft_is_mask is False

    def test_shift_drag_free_roi(self, harness):
        committed = []
        harness.roi.roi_committed.connect(committed.append)

        harness.controller.mouse_press(QPointF(10, 10), LEFT, SHIFT)
        assert harness.controller.state == InteractionState.DRAWING_ROI
        harness.controller.mouse_move(QPointF(110, 60))
        harness.controller.mouse_release(QPointF(110, 60), LEFT)

        assert harness.roi.roi == QRect(QPoint(10, 10), QPoint(110, 60))
        assert committed == [QRect(QPoint(10, 10), QPoint(110, 60))]
        assert harness.controller.state == InteractionState.IDLE
        assert len(harness.store) == 0

    def test_shift_click_fixed_roi(self):
        harness = Harness(QSize(100, 100), RoiMode.FIXED)

        harness.controller.mouse_press(QPointF(400, 300), LEFT, SHIFT)
        harness.controller.mouse_move(QPointF(450, 320))
        harness.controller.mouse_release(QPointF(450, 320), LEFT)

        assert harness.roi.roi == QRect(400, 270, 100, 100)

    def test_escape_clears_roi_drag(self, harness):
        harness.controller.mouse_press(QPointF(10, 10), LEFT, SHIFT)
        harness.controller.mouse_move(QPointF(110, 60))
        harness.controller.key_press(Qt.Key.Key_Escape)

        assert harness.roi.roi is None
        assert harness.controller.state == InteractionState.IDLE

    def test_middle_button_pans(self, harness):
        harness.controller.mouse_press(QPointF(400, 300), MIDDLE)
        assert harness.controller.state == InteractionState.PANNING_VIEW

        harness.controller.mouse_move(QPointF(450, 320))
        harness.controller.mouse_release(QPointF(450, 320), MIDDLE)

        assert harness.view.pan == QPointF(50, 20)
        assert harness.controller.state == InteractionState.IDLE

    def test_wheel_zooms(self, harness):
        assert harness.controller.wheel(QPointF(400, 300), 120) is True
        assert harness.view.scale == pytest.approx(1.15)
        assert harness.controller.wheel(QPointF(400, 300), 0) is False


class TestInterruptedSequences:
    """Tests for pointer sequences that mix buttons mid-drag."""

    def test_middle_press_during_corner_drag(self, harness):
        """Test that the left release still finishes the corner drag."""
        harness.add_box(100, 100, 300, 200)
        harness.store.select(0)

        harness.controller.mouse_press(QPointF(300, 200), LEFT)
        harness.controller.mouse_move(QPointF(500, 400))
        harness.controller.mouse_press(QPointF(500, 400), MIDDLE)
        assert harness.controller.state == InteractionState.DRAGGING_CORNER

        harness.controller.mouse_release(QPointF(500, 400), LEFT)
        harness.controller.mouse_release(QPointF(500, 400), MIDDLE)

        assert harness.controller.state == InteractionState.IDLE
        assert harness.controller.drag_corner is None
        assert harness.changes[-1].kind == ChangeKind.UPDATED

        harness.controller.key_press(Qt.Key.Key_Escape)
        assert harness.store[0].points[2] == QPointF(500, 400)

    def test_middle_press_during_box_draw(self, harness):
        harness.controller.mouse_press(QPointF(100, 100), LEFT)
        harness.controller.mouse_move(QPointF(300, 200))
        harness.controller.mouse_press(QPointF(300, 200), MIDDLE)
        harness.controller.mouse_move(QPointF(320, 220))
        harness.controller.mouse_release(QPointF(320, 220), LEFT)
        harness.controller.mouse_release(QPointF(320, 220), MIDDLE)

        assert len(harness.store) == 1
        assert harness.store[0].points[2] == QPointF(320, 220)
        assert harness.view.pan == QPointF(0, 0)
        assert harness.controller.draft_rect is None
        assert harness.controller.state == InteractionState.IDLE

    def test_left_press_while_panning_is_ignored(self, harness):
        harness.controller.mouse_press(QPointF(400, 300), MIDDLE)
        harness.controller.mouse_press(QPointF(100, 100), LEFT)
        harness.controller.mouse_release(QPointF(100, 100), LEFT)
        harness.controller.mouse_release(QPointF(100, 100), MIDDLE)

        assert len(harness.store) == 0
        assert harness.controller.draft_rect is None
        assert harness.controller.state == InteractionState.IDLE

    def test_right_press_during_roi_drag(self, harness):
        """Test that deleting a quad does not break the ROI drag."""
        harness.add_box(100, 100, 300, 200)

        harness.controller.mouse_press(QPointF(10, 10), LEFT, SHIFT)
        harness.controller.mouse_move(QPointF(150, 120))
        harness.controller.mouse_press(QPointF(200, 150), RIGHT)
        harness.controller.mouse_move(QPointF(160, 130))
        harness.controller.mouse_release(QPointF(160, 130), LEFT)

        assert len(harness.store) == 0
        assert harness.roi.roi == QRect(QPoint(10, 10), QPoint(160, 130))
        assert harness.controller.state == InteractionState.IDLE

    def test_right_press_during_corner_drag(self, harness):
        """Test that removing another quad mid-drag leaves cursors consistent."""
        harness.add_box(400, 300, 500, 400, class_token="G")
        harness.add_box(100, 100, 300, 200, class_token="O")
        harness.store.select(1)

        harness.controller.mouse_press(QPointF(300, 200), LEFT)
        harness.controller.mouse_move(QPointF(350, 250))
        harness.controller.mouse_press(QPointF(450, 350), RIGHT)
        harness.controller.mouse_release(QPointF(350, 250), LEFT)
        harness.controller.key_press(Qt.Key.Key_Escape)

        assert len(harness.store) == 1
        assert harness.store.selected == 0
        assert harness.store[0].class_token == "O"
        assert harness.store[0].points[2] == QPointF(350, 250)
        assert harness.controller.drag_corner is None
        assert harness.controller.state == InteractionState.IDLE

    def test_double_click_after_corner_drag(self, harness):
        harness.add_box(100, 100, 300, 200, class_token="3")
        harness.store.select(0)

        harness.drag((300, 200), (320, 220))
        harness.controller.mouse_double_click(QPointF(200, 150), LEFT)

        assert harness.store[0].points[2] == QPointF(320, 220)
        assert len(harness.edits) == 1
        assert harness.edits[0].index == 0
        assert harness.controller.state == InteractionState.IDLE
