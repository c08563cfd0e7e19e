"""Pytest configuration and fixtures."""

import os
import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")


@pytest.fixture(scope="session")
def qapp():
    """Create a QApplication for tests that need it."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance()
    if app is None:
        app = QApplication([])

    yield app


@pytest.fixture
def image_dir(tmp_path):
    """Provide an ``images`` directory whose labels go to a sibling ``label`` dir."""
    directory = tmp_path / "images"
    directory.mkdir()
    return directory


@pytest.fixture
def sample_label_file(tmp_path):
    """Create a label file with normalized and legacy pixel records."""
    label_path = tmp_path / "label" / "sample.txt"
    label_path.parent.mkdir()
    label_path.write_text(
        "# reviewed\n"
        "0 1 0.1 0.1 0.1 0.2 0.3 0.2 0.3 0.1\n"
        "R bs 100 100 100 200 300 200 300 100  # legacy pixels\n"
        "\n"
    )
    return label_path
