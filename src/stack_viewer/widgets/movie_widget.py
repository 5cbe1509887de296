# src/stack_viewer/widgets/movie_widget.py
"""
Qt widget showing a movie through a ViewerState.

The widget embeds a matplotlib canvas for the frame and a
FrameControlWidget for navigation. Playback ticks come from a QTimer, so
they are delivered on the GUI thread.
"""

from typing import Any, Callable, Optional, Sequence, Union

import numpy as np
from PyQt5.QtWidgets import QWidget, QVBoxLayout
from PyQt5.QtCore import Qt, QTimer, pyqtSignal

from matplotlib.backends.backend_qt5agg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure

from ..viewers import ViewerState, apply_key
from .controls import FrameControlWidget

QT_KEYS = {
    Qt.Key_Left: "left",
    Qt.Key_Right: "right",
    Qt.Key_Up: "up",
    Qt.Key_Down: "down",
    Qt.Key_PageUp: "pageup",
    Qt.Key_PageDown: "pagedown",
    Qt.Key_Home: "home",
    Qt.Key_End: "end",
    Qt.Key_Return: "enter",
    Qt.Key_Enter: "enter",
    Qt.Key_Space: "space",
    Qt.Key_Escape: "escape",
}


class QtPlaybackTimer:
    """Playback tick source backed by a QTimer."""

    def __init__(self, parent=None):
        self._callback: Optional[Callable[[], Any]] = None
        self._timer = QTimer(parent)
        self._timer.setTimerType(Qt.PreciseTimer)
        self._timer.timeout.connect(self._on_timeout)

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    def start(self, period: float, callback: Callable[[], Any]):
        self._callback = callback
        self._timer.start(max(1, int(round(period * 1000))))

    def stop(self):
        self._timer.stop()

    def _on_timeout(self):
        if self._callback is not None:
            self._callback()


class MovieViewerWidget(QWidget):
    """
    Embeddable movie viewer.

    Signals
    -------
    frame_changed(int)
        Emitted with the 1-based frame after every redraw that changed it
    """

    frame_changed = pyqtSignal(int)

    def __init__(self, parent=None, movie: Optional[np.ndarray] = None, **load_kwargs):
        super().__init__(parent)

        self.state = ViewerState(timer=QtPlaybackTimer(self), render=self._on_state_changed)
        self.im = None
        self._shown_frame = None
        self._image_shape = None
        self._focus_return: Optional[Callable[[], Any]] = None

        self.init_ui()
        if movie is not None:
            self.load(movie, **load_kwargs)

    def init_ui(self):
        """Initialize the user interface."""
        layout = QVBoxLayout(self)

        # Create matplotlib figure
        self.figure = Figure(figsize=(6, 6))
        self.canvas = FigureCanvas(self.figure)
        self.ax = self.figure.add_subplot(111)
        self.ax.set_xticks([])
        self.ax.set_yticks([])
        self.canvas.mpl_connect("motion_notify_event", self.on_mouse_moved)
        layout.addWidget(self.canvas)

        self.controls = FrameControlWidget()
        self.controls.play_clicked.connect(self.state.toggle_playback)
        self.controls.repeat_toggled.connect(self.state.set_repeat)
        self.controls.contrast_clicked.connect(self.state.cycle_contrast)
        self.controls.first_clicked.connect(lambda: self.state.set_frame(1))
        self.controls.last_clicked.connect(lambda: self.state.set_frame(self.state.total_frames))
        self.controls.frame_slid.connect(self.state.set_frame)
        self.controls.frame_entered.connect(self.on_frame_entered)
        self.controls.colormap_changed.connect(self.state.set_colors)
        layout.addWidget(self.controls)

        self.setFocusPolicy(Qt.StrongFocus)

    # ---- Public API ----

    def load(
        self,
        movie: np.ndarray,
        colors: Optional[str] = None,
        domain=None,
        contrast: Union[int, Sequence[float], None] = None,
        mask: Optional[np.ndarray] = None,
    ) -> bool:
        return self.state.load(movie, colors, domain, contrast, mask)

    def set_focus_return(self, fcn_return: Optional[Callable[[], Any]]):
        self._focus_return = fcn_return

    def handle_key(self, key: str) -> bool:
        return apply_key(self.state, key, self._focus_return)

    # ---- Qt events ----

    def keyPressEvent(self, event):
        key = QT_KEYS.get(event.key())
        if key is None or not self.handle_key(key):
            super().keyPressEvent(event)

    def closeEvent(self, event):
        self.state.close()
        super().closeEvent(event)

    def on_frame_entered(self, text: str):
        if not self.state.set_frame_from_text(text):
            # restore the frame counter over the rejected text
            self.controls.set_frame(self.state.current_frame, self.state.total_frames)

    def on_mouse_moved(self, event):
        state = self.state
        if event.inaxes is not self.ax or event.xdata is None or state.is_playing:
            return
        info = state.pixel_info(int(round(event.ydata)) + 1, int(round(event.xdata)) + 1)
        if info is not None:
            self.controls.show_info(info)

    # ---- Drawing ----

    def _on_state_changed(self, state: ViewerState):
        self.controls.set_frame(state.current_frame, state.total_frames)
        self.controls.set_playing_state(state.is_playing)
        self.controls.set_repeat_state(state.do_repeat)
        self.controls.set_contrast_index(state.contrast_index)
        self.controls.set_colormap(state.colors)
        self.update_display()

    def update_display(self):
        """Update the display."""
        state = self.state
        frame = state.current_image
        if frame is None:
            return

        if frame.shape != self._image_shape:
            self.ax.clear()
            self.ax.set_xticks([])
            self.ax.set_yticks([])
            self.im = None
            self._image_shape = frame.shape

        if self.im is None:
            imshow_kwargs = dict(cmap=state.colors, origin="upper", interpolation="nearest")
            if not state.is_colored:
                imshow_kwargs["vmin"], imshow_kwargs["vmax"] = state.pixel_range
            self.im = self.ax.imshow(frame, **imshow_kwargs)
        else:
            self.im.set_data(frame)
            if not state.is_colored:
                self.im.set_cmap(state.colors)
                self.im.set_clim(*state.pixel_range)
        self.ax.set_title(state.frame_title)

        self.canvas.draw_idle()
        if state.current_frame != self._shown_frame:
            self._shown_frame = state.current_frame
            self.frame_changed.emit(state.current_frame)
