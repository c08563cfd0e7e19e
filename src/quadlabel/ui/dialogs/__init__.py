"""Dialog components for QuadLabel."""

from .edit_info import EditInfoDialog

__all__ = ["EditInfoDialog"]
