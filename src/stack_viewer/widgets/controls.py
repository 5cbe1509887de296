# src/stack_viewer/widgets/controls.py
"""
Control bar for a movie viewer widget.

Holds the frame slider, typed frame entry and playback buttons. The bar
only emits signals and mirrors state pushed into it; it owns no state.
"""

from PyQt5.QtWidgets import QWidget, QComboBox, QHBoxLayout, QLineEdit, QPushButton, QSlider
from PyQt5.QtCore import Qt, pyqtSignal

from ..playback import FRAME_STEP
from ..utils import format_frame_info
from ..viewers import COLORMAPS


class FrameControlWidget(QWidget):
    """
    Widget for frame navigation and playback.

    Signals
    -------
    play_clicked()
        Emitted when the play/stop button is clicked
    repeat_toggled(bool)
        Emitted when the repeat button is toggled
    contrast_clicked()
        Emitted when the contrast button is clicked
    first_clicked(), last_clicked()
        Emitted by the first/last frame buttons
    frame_slid(int)
        Emitted when the slider moves (1-based frame)
    frame_entered(str)
        Emitted with the text typed into the frame box
    colormap_changed(str)
        Emitted when another colormap is selected
    """

    play_clicked = pyqtSignal()
    repeat_toggled = pyqtSignal(bool)
    contrast_clicked = pyqtSignal()
    first_clicked = pyqtSignal()
    last_clicked = pyqtSignal()
    frame_slid = pyqtSignal(int)
    frame_entered = pyqtSignal(str)
    colormap_changed = pyqtSignal(str)

    def __init__(self, parent=None):
        super().__init__(parent)
        self.init_ui()

    def init_ui(self):
        """Initialize the user interface."""
        layout = QHBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)

        self.frame_edit = QLineEdit("1/1")
        self.frame_edit.setToolTip("Set frame")
        self.frame_edit.setMaximumWidth(120)
        self.frame_edit.returnPressed.connect(
            lambda: self.frame_entered.emit(self.frame_edit.text())
        )
        layout.addWidget(self.frame_edit)

        self.contrast_btn = QPushButton("Contrast 1")
        self.contrast_btn.setToolTip("Cycle contrast")
        self.contrast_btn.clicked.connect(self.contrast_clicked.emit)
        layout.addWidget(self.contrast_btn)

        self.play_btn = QPushButton("Play")
        self.play_btn.clicked.connect(self.play_clicked.emit)
        layout.addWidget(self.play_btn)

        self.repeat_btn = QPushButton("Repeat")
        self.repeat_btn.setCheckable(True)
        self.repeat_btn.setToolTip("Turn on repeat")
        self.repeat_btn.toggled.connect(self.repeat_toggled.emit)
        layout.addWidget(self.repeat_btn)

        self.first_btn = QPushButton("|<")
        self.first_btn.setToolTip("First frame")
        self.first_btn.clicked.connect(self.first_clicked.emit)
        layout.addWidget(self.first_btn)

        self.slider = QSlider(Qt.Horizontal)
        self.slider.setRange(1, 1)
        self.slider.setValue(1)
        self.slider.setEnabled(False)
        self.slider.valueChanged.connect(self.frame_slid.emit)
        layout.addWidget(self.slider, 1)

        self.last_btn = QPushButton(">|")
        self.last_btn.setToolTip("Last frame")
        self.last_btn.clicked.connect(self.last_clicked.emit)
        layout.addWidget(self.last_btn)

        self.colormap_combo = QComboBox()
        self.colormap_combo.addItems(COLORMAPS)
        self.colormap_combo.currentTextChanged.connect(self.colormap_changed.emit)
        layout.addWidget(self.colormap_combo)

    def set_frame(self, current_frame: int, total_frames: int):
        """Show the current frame without emitting signals."""
        self.slider.blockSignals(True)
        if self.slider.maximum() != total_frames:
            self.slider.setRange(1, max(1, total_frames))
            self.slider.setPageStep(FRAME_STEP)
        self.slider.setValue(current_frame)
        self.slider.blockSignals(False)
        self.slider.setEnabled(total_frames > 1)
        self.frame_edit.setText(format_frame_info(current_frame, total_frames))

    def set_playing_state(self, is_playing: bool):
        self.play_btn.setText("Stop" if is_playing else "Play")

    def set_repeat_state(self, do_repeat: bool):
        self.repeat_btn.blockSignals(True)
        self.repeat_btn.setChecked(do_repeat)
        self.repeat_btn.blockSignals(False)
        self.repeat_btn.setToolTip("Turn off repeat" if do_repeat else "Turn on repeat")

    def set_contrast_index(self, contrast_index: int):
        self.contrast_btn.setText(f"Contrast {contrast_index}")

    def set_colormap(self, colors: str):
        if self.colormap_combo.findText(colors) < 0:
            self.colormap_combo.addItem(colors)
        self.colormap_combo.blockSignals(True)
        self.colormap_combo.setCurrentText(colors)
        self.colormap_combo.blockSignals(False)

    def show_info(self, text: str):
        self.frame_edit.setText(text)
