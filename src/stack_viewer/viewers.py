# src/stack_viewer/viewers.py
"""
Movie viewers with a shared UI-agnostic core.

- Core (UI-agnostic): ViewerState, DisplayConfig, apply_key
- MovieViewer (matplotlib desktop) with its per-figure event table

A movie is a tensor whose last axis indexes frames: 3D (rows, cols, frames)
grayscale movies get an automatic display range from their histogram, 4D
(rows, cols, channels, frames) movies are shown as pre-coloured images.

Frame indices are 1-based. Frame changes and the repeat flag are mirrored
to the viewer's sync peers; contrast and colours are not.
"""

from __future__ import annotations
import contextlib
import logging
import math
import re
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.widgets import Slider, Button, TextBox

from .contrast import ContrastEngine, Range, as_range, infer_domain
from .histogram import CONTRAST_BINNING, MIN_NUMBINS, Histogram, build_histogram
from .playback import DEFAULT_FPS, PlaybackClock, PlaybackState, ReentryGuard
from .sync import REGISTRY, SyncGroup, ViewerRegistry
from .utils import format_frame_info, format_pixel_info, range_intersection

logger = logging.getLogger(__name__)

# ----------------------------- Core (UI-agnostic) -----------------------------

COLORMAPS = [
    "gray", "viridis", "plasma", "inferno", "magma", "cividis",
    "hot", "cool", "jet", "bone", "copper", "pink",
]

FRAME_SHIFT_KEYS = {
    "left": -1,
    "up": -1,
    "right": +1,
    "down": +1,
    "pageup": -DEFAULT_FPS,
    "pagedown": +DEFAULT_FPS,
}


@dataclass
class DisplayConfig:
    """User-adjustable display settings of one viewer."""
    colors: str = "gray"
    pixel_domain: Range = (-math.inf, math.inf)
    pixel_range: Range = (0.0, 1.0)
    contrast_index: int = 1
    playback_fps: float = DEFAULT_FPS


class ViewerState:
    """
    Movie, histogram, contrast and playback state of a single viewer.

    Parameters
    ----------
    movie : numpy.ndarray, optional
        Movie to load right away (see ``load``)
    colors, domain, contrast, mask
        Passed to ``load``
    fps : float, optional
        Playback rate in frames per second (default: DEFAULT_FPS)
    presets : sequence of float, optional
        Saturation fractions of the contrast presets
    min_numbins, contrast_binning : int, optional
        Frame binning thresholds of the histogram
    timer : object, optional
        Playback tick source (default: a ThreadingTimer)
    registry : ViewerRegistry, optional
        Registry the viewer is reachable through for synchronisation
    render : callable, optional
        Called with this viewer whenever what it displays changes
    """

    def __init__(
        self,
        movie: Optional[np.ndarray] = None,
        colors: str = "gray",
        domain: Optional[Range] = None,
        contrast: Union[int, Sequence[float], None] = None,
        mask: Optional[np.ndarray] = None,
        *,
        fps: float = DEFAULT_FPS,
        presets: Optional[Sequence[float]] = None,
        min_numbins: int = MIN_NUMBINS,
        contrast_binning: int = CONTRAST_BINNING,
        timer: Optional[Any] = None,
        registry: Optional[ViewerRegistry] = None,
        render: Optional[Callable[["ViewerState"], Any]] = None,
    ):
        self.movie: Optional[np.ndarray] = None
        self.histogram = Histogram.placeholder()
        self.contrast = ContrastEngine(presets=presets)
        self.playback = PlaybackState(playback_fps=float(fps))
        self.clock = PlaybackClock(self.playback, self.set_frame, timer=timer)
        self.colors = colors
        self.min_numbins = min_numbins
        self.contrast_binning = contrast_binning
        self.closed = False
        self._title = ""
        self._frame_titles: List[str] = []
        self._render: Optional[Callable[["ViewerState"], Any]] = None
        self.set_render_callback(render)

        self.registry = registry if registry is not None else REGISTRY
        self.handle = self.registry.register(self)
        self.sync = SyncGroup(self.registry)

        if movie is not None:
            self.load(movie, colors, domain, contrast, mask)

    # ---- Queries ----

    @property
    def current_frame(self) -> int:
        return self.playback.current_frame

    @property
    def total_frames(self) -> int:
        return self.playback.total_frames

    @property
    def pixel_range(self) -> Range:
        return self.contrast.pixel_range

    @property
    def pixel_domain(self) -> Range:
        return self.contrast.domain

    @property
    def contrast_index(self) -> int:
        return self.contrast.contrast_index

    @property
    def is_playing(self) -> bool:
        return self.playback.is_playing

    @property
    def do_repeat(self) -> bool:
        return self.playback.do_repeat

    @property
    def playback_fps(self) -> float:
        return self.playback.playback_fps

    @property
    def is_colored(self) -> bool:
        return self.movie is not None and self.movie.ndim == 4

    @property
    def current_image(self) -> Optional[np.ndarray]:
        if self.movie is None:
            return None
        return self.movie[..., self.current_frame - 1]

    @property
    def frame_title(self) -> str:
        if self._frame_titles:
            return self._frame_titles[min(self.current_frame, len(self._frame_titles)) - 1]
        return self._title

    def frame_info(self) -> str:
        return format_frame_info(self.current_frame, self.total_frames)

    def pixel_info(self, row: int, col: int) -> Optional[str]:
        """Readout of the pixel at 1-based (row, col) in the current frame."""
        if self.movie is None:
            return None
        rows, cols = self.movie.shape[:2]
        if not (1 <= row <= rows and 1 <= col <= cols):
            return None
        value = self.movie[row - 1, col - 1, ..., self.current_frame - 1]
        return format_pixel_info(row, col, self.current_frame, value)

    # ---- Loading ----

    def load(
        self,
        movie: np.ndarray,
        colors: Optional[str] = None,
        domain: Optional[Range] = None,
        contrast: Union[int, Sequence[float], None] = None,
        mask: Optional[np.ndarray] = None,
    ) -> bool:
        """
        Show a new movie.

        Parameters
        ----------
        movie : numpy.ndarray
            2D (single frame), 3D grayscale or 4D pre-coloured movie
        colors : str, optional
            Colormap name (default: keep the current one)
        domain : (float, float), optional
            Hard bounds of the pixel values (default: ``[0, inf]`` if the
            smallest sample is 0, else unbounded)
        contrast : int or (float, float), optional
            Preset index or explicit display range (default: preset 1)
        mask : numpy.ndarray, optional
            Boolean pixel mask restricting the histogram to a frame region

        Returns
        -------
        bool
            False if the movie was empty and nothing changed

        Raises
        ------
        ValueError
            If the movie has fewer than 2 or more than 4 dimensions
        """
        arr = np.asarray(movie)
        if arr.ndim == 2:
            arr = arr[..., np.newaxis]
        if arr.ndim not in (3, 4):
            raise ValueError(f"Movie must be 2D, 3D or 4D; got {arr.ndim}D.")
        if arr.size == 0:
            logger.warning("Ignoring empty movie of shape %s", arr.shape)
            return False

        self.clock.stop()
        self.movie = arr
        if colors is not None:
            self.colors = colors

        if arr.ndim == 3:
            self.histogram = build_histogram(
                arr,
                mask=mask,
                min_numbins=self.min_numbins,
                contrast_binning=self.contrast_binning,
            )
            self.contrast.reset(
                self.histogram, infer_domain(arr) if domain is None else as_range(domain)
            )
            self._apply_contrast(1 if contrast is None else contrast)
        elif domain is not None:
            self.contrast.domain = as_range(domain)

        self.playback.total_frames = arr.shape[-1]
        self.playback.current_frame = 1
        logger.info("Loaded movie of shape %s (%d frames)", arr.shape, arr.shape[-1])
        self._notify_render()
        return True

    def _apply_contrast(self, contrast: Union[int, Sequence[float]]) -> bool:
        if np.ndim(contrast) == 0:
            return self.contrast.set_by_index(contrast)
        lo, hi = contrast
        return self.contrast.set_by_range(lo, hi)

    # ---- Frames ----

    def set_frame(self, index: int) -> bool:
        """Go to a frame (clamped); peers follow. Returns whether it changed."""
        target = self.playback.clamp(index)
        if target == self.playback.current_frame:
            return False
        self.playback.current_frame = target
        self._notify_render()
        self.sync.propagate_frame(target)
        return True

    def shift_frame(self, delta: int) -> bool:
        return self.set_frame(self.playback.clamp(self.current_frame + int(delta)))

    def set_frame_from_text(self, text: str) -> bool:
        """Typed frame entry: stops playback, ignores invalid or out-of-range input."""
        match = re.match(r"\s*([+-]?\d+)", str(text))
        if match is None:
            logger.debug("Ignoring frame entry %r", text)
            return False
        index = int(match.group(1))
        if not 1 <= index <= self.total_frames:
            logger.debug("Ignoring out-of-range frame entry %d", index)
            return False
        self.stop_playback()
        self.set_frame(index)
        return True

    def _mirror_frame(self, index: int):
        if self.closed:
            return
        target = self.playback.clamp(index)
        if target != self.playback.current_frame:
            self.playback.current_frame = target
            self._notify_render()

    # ---- Contrast and colours ----

    def set_contrast_index(self, index: int) -> bool:
        if self.is_colored:
            return False
        changed = self.contrast.set_by_index(index)
        if changed:
            self._notify_render()
        return changed

    def set_contrast_range(self, lo: float, hi: float) -> bool:
        if self.is_colored:
            return False
        changed = self.contrast.set_by_range(lo, hi)
        if changed:
            self._notify_render()
        return changed

    def cycle_contrast(self) -> bool:
        if self.is_colored:
            return False
        changed = self.contrast.cycle()
        if changed:
            self._notify_render()
        return changed

    def set_colors(self, colors: str) -> bool:
        if not isinstance(colors, str):
            raise TypeError(f"colors must be a colormap name, not {type(colors).__name__}.")
        if not colors:
            return False
        self.colors = colors
        self._notify_render()
        return True

    def set_title(self, title: Union[str, Sequence[str], None] = None):
        """Fixed title, one title per frame, or nothing if empty."""
        if not title:
            self._title, self._frame_titles = "", []
        elif isinstance(title, str):
            self._title, self._frame_titles = title, []
        else:
            self._title, self._frame_titles = "", [str(t) for t in title]
        self._notify_render()

    # ---- Playback ----

    def start_playback(self) -> bool:
        started = self.clock.start()
        if started:
            self._notify_render()
        return started

    def stop_playback(self):
        was_playing = self.is_playing
        self.clock.stop()
        if was_playing:
            self._notify_render()

    def toggle_playback(self) -> bool:
        if self.is_playing:
            self.stop_playback()
            return False
        return self.start_playback()

    def set_repeat(self, do_repeat: bool):
        self.playback.do_repeat = bool(do_repeat)
        self._notify_render()
        self.sync.propagate_repeat(self.playback.do_repeat)

    def _mirror_repeat(self, do_repeat: bool):
        if self.closed:
            return
        self.playback.do_repeat = bool(do_repeat)
        self._notify_render()

    def set_playback_fps(self, fps: float) -> bool:
        """Takes effect the next time playback starts."""
        try:
            fps = float(fps)
        except (TypeError, ValueError):
            return False
        if not (math.isfinite(fps) and fps > 0):
            logger.debug("Ignoring playback rate %r", fps)
            return False
        self.playback.playback_fps = fps
        return True

    # ---- Configuration ----

    def configuration(self) -> DisplayConfig:
        return DisplayConfig(
            colors=self.colors,
            pixel_domain=self.pixel_domain,
            pixel_range=self.pixel_range,
            contrast_index=self.contrast_index,
            playback_fps=self.playback_fps,
        )

    def apply_configuration(self, config: DisplayConfig):
        """Restore a snapshot taken with ``configuration()``."""
        self.colors = config.colors
        self.contrast.domain = as_range(config.pixel_domain)
        self.contrast.contrast_index = self.contrast.clamp_index(config.contrast_index)
        self.contrast.set_by_range(*config.pixel_range)
        self.set_playback_fps(config.playback_fps)
        self._notify_render()

    def clone(self, **kwargs) -> "ViewerState":
        """
        New viewer showing the same movie with the same display settings.

        Histogram and display range are copied, not recomputed. Keyword
        arguments go to the ViewerState constructor; the clone is not grouped.
        """
        kwargs.setdefault("fps", self.playback_fps)
        kwargs.setdefault("presets", self.contrast.presets)
        kwargs.setdefault("min_numbins", self.min_numbins)
        kwargs.setdefault("contrast_binning", self.contrast_binning)
        kwargs.setdefault("registry", self.registry)
        dup = ViewerState(colors=self.colors, **kwargs)
        if self.movie is not None:
            dup.movie = self.movie
            dup.histogram = self.histogram
            dup.contrast.reset(self.histogram, self.pixel_domain)
            dup.contrast.contrast_index = self.contrast_index
            dup.contrast.pixel_range = self.pixel_range
            dup.playback.total_frames = self.total_frames
        dup._title, dup._frame_titles = self._title, list(self._frame_titles)
        dup._notify_render()
        return dup

    # ---- Host interface ----

    def set_render_callback(self, render: Optional[Callable[["ViewerState"], Any]]):
        if render is not None and not callable(render):
            raise TypeError("render must be callable or None.")
        self._render = render

    def _notify_render(self):
        if self._render is None:
            return
        try:
            self._render(self)
        except Exception as e:
            warnings.warn(f"Render callback failed: {e}", RuntimeWarning)

    def close(self):
        """Stop playback and leave every sync group. Safe to call twice."""
        if self.closed:
            return
        self.clock.stop()
        self.sync.clear()
        self.registry.unregister(self.handle)
        self.closed = True


def apply_key(state: ViewerState, key: str, on_escape: Optional[Callable[[], Any]] = None) -> bool:
    """Apply a keyboard command to a viewer. Returns False for unbound keys."""
    if key in FRAME_SHIFT_KEYS:
        state.shift_frame(FRAME_SHIFT_KEYS[key])
    elif key == "home":
        state.set_frame(1)
    elif key == "end":
        state.set_frame(state.total_frames)
    elif key in ("enter", "return", " ", "space"):
        state.toggle_playback()
    elif key == "escape" and on_escape is not None:
        on_escape()
    else:
        return False
    return True

# ----------------------------- Matplotlib desktop -----------------------------


class MatplotlibTimer:
    """Playback tick source backed by a matplotlib canvas timer."""

    def __init__(self, canvas):
        self._canvas = canvas
        self._timer = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    def start(self, period: float, callback: Callable[[], Any]):
        self.stop()
        timer = self._canvas.new_timer(interval=max(1, int(round(period * 1000))))
        timer.add_callback(callback)
        timer.start()
        self._timer = timer

    def stop(self):
        if self._timer is not None:
            self._timer.stop()
            self._timer = None


class FigureDispatch:
    """
    Routes key presses and mouse motion of one figure to the viewer whose
    axes they concern. Stored on the figure itself, one table per figure.
    """

    def __init__(self, fig: plt.Figure):
        self.fig = fig
        self._viewers: Dict[Any, "MovieViewer"] = {}
        self._cids = [
            fig.canvas.mpl_connect("key_press_event", self.on_key),
            fig.canvas.mpl_connect("motion_notify_event", self.on_motion),
        ]

    @classmethod
    def for_figure(cls, fig: plt.Figure) -> "FigureDispatch":
        table = getattr(fig, "_stack_viewer_dispatch", None)
        if table is None:
            table = cls(fig)
            fig._stack_viewer_dispatch = table
        return table

    def register(self, ax: plt.Axes, viewer: "MovieViewer"):
        self._viewers[ax] = viewer

    def unregister(self, ax: plt.Axes):
        self._viewers.pop(ax, None)

    def viewer_for(self, ax: Optional[plt.Axes]) -> Optional["MovieViewer"]:
        if ax is None and self.fig.axes:
            ax = self.fig.gca()
        return self._viewers.get(ax)

    def on_key(self, event):
        viewer = self.viewer_for(event.inaxes)
        if viewer is not None and event.key:
            viewer.handle_key(event.key)

    def on_motion(self, event):
        viewer = self._viewers.get(event.inaxes)
        if viewer is None or event.xdata is None or event.ydata is None:
            return
        if viewer.state.is_playing or viewer.state.movie is None:
            return
        viewer.show_pixel_info(event.xdata, event.ydata)


class MovieViewer:
    """
    Matplotlib-based interactive movie viewer.
    Uses the shared ViewerState for all state; this class only draws it.

    Controls: frame slider, typed frame entry, first/last frame, play/stop,
    repeat and contrast-cycle buttons, plus keyboard commands (arrows,
    page up/down, home/end, space/enter, escape).
    """

    def __init__(
        self,
        movie: Optional[np.ndarray] = None,
        title: str = "Movie Viewer",
        colors: str = "gray",
        domain: Optional[Range] = None,
        contrast: Union[int, Sequence[float], None] = None,
        mask: Optional[np.ndarray] = None,
        state: Optional[ViewerState] = None,
        **state_kwargs,
    ):
        self.title = title
        self.state = state if state is not None else ViewerState(colors=colors, **state_kwargs)
        self.state.set_render_callback(self._on_state_changed)

        self.fig: Optional[plt.Figure] = None
        self.ax: Optional[plt.Axes] = None
        self.im = None
        self.colorbar = None
        self.slider: Optional[Slider] = None
        self.buttons: Dict[str, Button] = {}
        self._tb_frame: Optional[TextBox] = None
        self._info = None
        self._image_shape = None
        self._focus_return: Optional[Callable[[], Any]] = None
        self._drawing = ReentryGuard()

        if movie is not None:
            self.state.load(movie, colors, domain, contrast, mask)

    # ---- Public API ----

    def show(self, block: Optional[bool] = None):
        if self.fig is None or self.ax is None:
            self._setup_plot()
        plt.show(block=block)

    def load(self, movie: np.ndarray, colors: Optional[str] = None, domain=None, contrast=None, mask=None) -> bool:
        return self.state.load(movie, colors, domain, contrast, mask)

    def set_focus_return(self, fcn_return: Optional[Callable[[], Any]]):
        """Function to call when escape is pressed over this viewer."""
        self._focus_return = fcn_return

    def handle_key(self, key: str) -> bool:
        return apply_key(self.state, key, self._focus_return)

    def show_pixel_info(self, x: float, y: float) -> Optional[str]:
        """Show the value under data coordinates (x, y) of the image axes."""
        state = self.state
        if state.movie is None:
            return None
        rows, cols = state.movie.shape[:2]
        if self.ax is not None:
            xlo, xhi = range_intersection(tuple(sorted(self.ax.get_xlim())), (-0.5, cols - 0.5))
            ylo, yhi = range_intersection(tuple(sorted(self.ax.get_ylim())), (-0.5, rows - 0.5))
            if not (xlo <= x <= xhi and ylo <= y <= yhi):
                return None
        info = state.pixel_info(int(round(y)) + 1, int(round(x)) + 1)
        if info is not None and self._info is not None:
            self._info.set_text(info)
            self.fig.canvas.draw_idle()
        return info

    def close(self):
        self.state.close()
        if self.fig is not None:
            FigureDispatch.for_figure(self.fig).unregister(self.ax)
            plt.close(self.fig)
        self.fig = self.ax = self.im = None

    # ---- Internals ----

    def _setup_plot(self):
        self.fig, self.ax = plt.subplots(figsize=(8, 8))
        self.fig.suptitle(self.title)
        plt.subplots_adjust(left=0.1, bottom=0.22, right=0.9, top=0.9)
        with contextlib.suppress(AttributeError, TypeError):
            # keys are ours, not the toolbar's
            self.fig.canvas.mpl_disconnect(self.fig.canvas.manager.key_press_handler_id)

        # ticks must arrive on the GUI thread from now on
        self.state.stop_playback()
        self.state.clock.timer = MatplotlibTimer(self.fig.canvas)

        FigureDispatch.for_figure(self.fig).register(self.ax, self)
        self._info = self.fig.text(0.02, 0.02, "", fontsize=9)
        self._add_buttons()
        self._redraw()

    def _on_state_changed(self, _state: ViewerState):
        if self.fig is not None:
            self._redraw()

    def _redraw(self):
        assert self.ax is not None and self.fig is not None
        with self._drawing.enter() as entered:
            if not entered:
                return
            state = self.state
            frame = state.current_image
            if frame is None:
                return

            if frame.shape != self._image_shape:
                self.ax.clear()
                self.im = None
                self._image_shape = frame.shape
                self._add_slider()

            if self.im is None:
                imshow_kwargs = dict(cmap=state.colors, origin="upper", interpolation="nearest")
                if not state.is_colored:
                    imshow_kwargs["vmin"], imshow_kwargs["vmax"] = state.pixel_range
                self.im = self.ax.imshow(frame, **imshow_kwargs)
                self.ax.set_xticks([])
                self.ax.set_yticks([])
                if not state.is_colored and self.colorbar is None:
                    self.colorbar = self.fig.colorbar(self.im, ax=self.ax)
            else:
                self.im.set_data(frame)
                if not state.is_colored:
                    self.im.set_cmap(state.colors)
                    self.im.set_clim(*state.pixel_range)
            if self.colorbar is not None and not state.is_colored:
                self.colorbar.update_normal(self.im)

            self.ax.set_title(state.frame_title)
            self._sync_controls()
            self.fig.sca(self.ax)
            self.fig.canvas.draw_idle()

    def _sync_controls(self):
        state = self.state
        if self.slider is None or self.slider.valmax != max(2, state.total_frames):
            self._add_slider()
        if self.slider is not None and int(self.slider.val) != state.current_frame:
            self.slider.eventson = False
            self.slider.set_val(state.current_frame)
            self.slider.eventson = True
        if "play" in self.buttons:
            self.buttons["play"].label.set_text("Stop" if state.is_playing else "Play")
            self.buttons["repeat"].label.set_text("Repeat: on" if state.do_repeat else "Repeat: off")
            self.buttons["contrast"].label.set_text(f"Contrast {state.contrast_index}")
        if self._info is not None:
            self._info.set_text(state.frame_info())

    def _add_slider(self):
        if self.slider is not None:
            self.slider.ax.remove()
            self.slider = None
        state = self.state
        ax_s = self.fig.add_axes([0.15, 0.12, 0.55, 0.03])
        self.slider = Slider(
            ax_s,
            "Frame",
            1,
            max(2, state.total_frames),
            valinit=state.current_frame,
            valstep=1,
            valfmt="%d",
        )
        self.slider.on_changed(lambda val: self.state.set_frame(int(round(val))))
        if state.total_frames <= 1:
            ax_s.set_visible(False)

    def _add_buttons(self):
        button_width = 0.12
        button_height = 0.04
        button_spacing = 0.01
        button_row = 0.05

        specs = [
            ("begin", "First", lambda _e: self.state.set_frame(1)),
            ("play", "Play", lambda _e: self.state.toggle_playback()),
            ("end", "Last", lambda _e: self.state.set_frame(self.state.total_frames)),
            ("repeat", "Repeat: off", lambda _e: self.state.set_repeat(not self.state.do_repeat)),
            ("contrast", "Contrast 1", lambda _e: self.state.cycle_contrast()),
        ]
        for i, (name, label, callback) in enumerate(specs):
            ax_b = self.fig.add_axes(
                [0.1 + i * (button_width + button_spacing), button_row, button_width, button_height]
            )
            button = Button(ax_b, label)
            button.on_clicked(callback)
            self.buttons[name] = button

        ax_tb = self.fig.add_axes([0.8, 0.12, 0.1, 0.04])
        self._tb_frame = TextBox(ax_tb, "Go to", initial="")
        self._tb_frame.on_submit(self.state.set_frame_from_text)
