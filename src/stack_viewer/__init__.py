# src/stack_viewer/__init__.py

try:
    from ._version import __version__
except ImportError:
    __version__ = "unknown"

from .histogram import Histogram, build_histogram
from .contrast import CONTRAST_RANGE, ContrastEngine, saturation_presets
from .playback import DEFAULT_FPS, PlaybackClock, PlaybackState, ThreadingTimer
from .sync import REGISTRY, SyncGroup, ViewerRegistry, group, ungroup
from .viewers import DisplayConfig, MovieViewer, ViewerState
from .utils import get_movie_info

__all__ = [
    "Histogram",
    "build_histogram",
    "CONTRAST_RANGE",
    "ContrastEngine",
    "saturation_presets",
    "DEFAULT_FPS",
    "PlaybackClock",
    "PlaybackState",
    "ThreadingTimer",
    "REGISTRY",
    "SyncGroup",
    "ViewerRegistry",
    "group",
    "ungroup",
    "DisplayConfig",
    "MovieViewer",
    "ViewerState",
    "get_movie_info",
]
