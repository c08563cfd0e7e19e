"""In-memory annotation set for the current image."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Union

from PyQt6.QtCore import QObject, QPointF, pyqtSignal

from .models import Annotation, LabelColor, normalize_class_token

logger = logging.getLogger(__name__)


class ChangeKind(Enum):
    """Kind of mutation applied to the annotation set."""

    RESET = "reset"
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"


@dataclass(frozen=True)
class StoreChange:
    """Change notification payload. ``index`` is None for RESET."""

    kind: ChangeKind
    index: Optional[int] = None


class AnnotationStore(QObject):
    """
    Ordered annotations for one image with selection and hover cursors.

    Order is insertion order: later annotations are drawn on top and
    hit-tested first. Both cursors are always either None or a valid index;
    every mutation re-validates them. Operations on invalid indices are
    no-ops that return False.
    """

    changed = pyqtSignal(object)  # StoreChange
    selection_changed = pyqtSignal(object)  # Optional[int]
    hover_changed = pyqtSignal(object)  # Optional[int]

    def __init__(self) -> None:
        super().__init__()
        self._annotations: List[Annotation] = []
        self._selected: Optional[int] = None
        self._hover: Optional[int] = None

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(self._annotations)

    def __getitem__(self, index: int) -> Annotation:
        return self._annotations[index]

    @property
    def selected(self) -> Optional[int]:
        return self._selected

    @property
    def hover(self) -> Optional[int]:
        return self._hover

    def selected_annotation(self) -> Optional[Annotation]:
        """Get the selected annotation, if any."""
        if self._selected is None:
            return None
        return self._annotations[self._selected]

    def annotations(self) -> List[Annotation]:
        """Get independent copies of all annotations."""
        return [a.copy() for a in self._annotations]

    def is_valid_index(self, index: Optional[int]) -> bool:
        return index is not None and 0 <= index < len(self._annotations)

    # Mutations

    def set_all(self, annotations: Sequence[Annotation]) -> None:
        """
        Replace the whole set.

        Cursors that fall out of range are cleared.

        Args:
            annotations: New annotations, stored as copies
        """
        self._annotations = [a.copy() for a in annotations]
        self.changed.emit(StoreChange(ChangeKind.RESET))
        self._revalidate_cursors()

    def clear(self) -> None:
        """Remove every annotation and both cursors."""
        self.set_all([])

    def add(self, annotation: Annotation) -> int:
        """
        Append an annotation.

        Args:
            annotation: Annotation to append

        Returns:
            Index of the new annotation
        """
        self._annotations.append(annotation)
        index = len(self._annotations) - 1
        logger.debug(f"Added annotation {annotation.display_text} at {index}")
        self.changed.emit(StoreChange(ChangeKind.ADDED, index))
        return index

    def update(self, index: int, annotation: Annotation) -> bool:
        """
        Replace the annotation at ``index``.

        Returns:
            True if the index was valid
        """
        if not self.is_valid_index(index):
            return False
        self._annotations[index] = annotation
        self.changed.emit(StoreChange(ChangeKind.UPDATED, index))
        return True

    def remove(self, index: int) -> bool:
        """
        Remove the annotation at ``index`` and re-index the cursors.

        A cursor on the removed index becomes None; a cursor past it moves
        down by one so it keeps pointing at the same annotation.

        Returns:
            True if an annotation was removed
        """
        if not self.is_valid_index(index):
            return False

        removed = self._annotations.pop(index)
        logger.debug(f"Removed annotation {removed.display_text} at {index}")
        self._set_selected(self._shift_cursor(self._selected, index))
        self._set_hover(self._shift_cursor(self._hover, index))
        self.changed.emit(StoreChange(ChangeKind.REMOVED, index))
        return True

    def move_corner(self, index: int, corner: int, point: QPointF) -> bool:
        """
        Move one corner of an annotation.

        Returns:
            True if the annotation and corner were valid
        """
        if not self.is_valid_index(index):
            return False
        if not self._annotations[index].move_corner(corner, point):
            return False
        self.changed.emit(StoreChange(ChangeKind.UPDATED, index))
        return True

    def set_info(self, index: int, class_token: str, color: Union[LabelColor, str]) -> bool:
        """
        Set class and color of an annotation.

        Returns:
            True if the index was valid
        """
        if not self.is_valid_index(index):
            return False
        annotation = self._annotations[index]
        annotation.class_token = normalize_class_token(class_token)
        annotation.color = LabelColor.from_text(color)
        self.changed.emit(StoreChange(ChangeKind.UPDATED, index))
        return True

    # Cursors

    def select(self, index: Optional[int]) -> bool:
        """
        Select an annotation, or clear the selection with None.

        Returns:
            False if ``index`` is out of range (selection unchanged)
        """
        if index is not None and not self.is_valid_index(index):
            return False
        self._set_selected(index)
        return True

    def set_hover(self, index: Optional[int]) -> bool:
        """
        Set the hovered annotation, or clear it with None.

        Returns:
            False if ``index`` is out of range (hover unchanged)
        """
        if index is not None and not self.is_valid_index(index):
            return False
        self._set_hover(index)
        return True

    def _set_selected(self, index: Optional[int]) -> None:
        if index != self._selected:
            self._selected = index
            self.selection_changed.emit(index)

    def _set_hover(self, index: Optional[int]) -> None:
        if index != self._hover:
            self._hover = index
            self.hover_changed.emit(index)

    def _revalidate_cursors(self) -> None:
        if self._selected is not None and not self.is_valid_index(self._selected):
            self._set_selected(None)
        if self._hover is not None and not self.is_valid_index(self._hover):
            self._set_hover(None)

    @staticmethod
    def _shift_cursor(cursor: Optional[int], removed: int) -> Optional[int]:
        if cursor is None or cursor == removed:
            return None
        if cursor > removed:
            return cursor - 1
        return cursor
