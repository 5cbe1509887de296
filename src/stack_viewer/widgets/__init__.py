# src/stack_viewer/widgets/__init__.py
"""
Qt widgets for the stack viewer.

This package contains the PyQt5 host of ViewerState: an embeddable movie
widget and its control bar.
"""

from .movie_widget import MovieViewerWidget, QtPlaybackTimer
from .controls import FrameControlWidget

__all__ = [
    "MovieViewerWidget",
    "QtPlaybackTimer",
    "FrameControlWidget",
]
