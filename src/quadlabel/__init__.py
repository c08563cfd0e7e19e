"""
QuadLabel - A desktop tool for labeling images with four-corner quads.

Built with PyQt6 for building object-detection training data. Quads are
stored per image as normalized corner coordinates, with optional
detector-assisted labeling.
"""

__version__ = "1.0.0"
__author__ = "QuadLabel Team"
