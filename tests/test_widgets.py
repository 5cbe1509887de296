# tests/test_widgets.py
"""
Tests for the PyQt5 widgets.
"""

import os
import sys
import unittest
from unittest.mock import Mock

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

try:
    from PyQt5.QtCore import Qt
    from PyQt5.QtTest import QTest
    from PyQt5.QtWidgets import QApplication
    PYQT_AVAILABLE = True
except ImportError:
    PYQT_AVAILABLE = False

from stack_viewer.sync import group


@unittest.skipUnless(PYQT_AVAILABLE, "PyQt5 not available")
class TestQtWidgets(unittest.TestCase):
    """Test cases for MovieViewerWidget and FrameControlWidget."""

    @classmethod
    def setUpClass(cls):
        # Create QApplication if it doesn't exist
        cls.app = QApplication.instance() or QApplication(sys.argv)

    def setUp(self):
        """Set up test fixtures."""
        from stack_viewer.widgets import MovieViewerWidget, QtPlaybackTimer

        self.movie = np.random.rand(10, 12, 10)
        self.widget = MovieViewerWidget(movie=self.movie)
        self.timer_cls = QtPlaybackTimer

    def tearDown(self):
        """Clean up after tests."""
        self.widget.close()
        self.widget.state.close()

    def test_initialization(self):
        """Test the widget after loading."""
        controls = self.widget.controls
        self.assertIsInstance(self.widget.state.clock.timer, self.timer_cls)
        self.assertEqual(controls.slider.minimum(), 1)
        self.assertEqual(controls.slider.maximum(), 10)
        self.assertEqual(controls.slider.value(), 1)
        self.assertTrue(controls.slider.isEnabled())
        self.assertEqual(controls.frame_edit.text(), "1/10")
        self.assertIsNotNone(self.widget.im)

    def test_controls_follow_state(self):
        """Test that the control bar mirrors state changes."""
        self.widget.state.set_frame(4)
        self.assertEqual(self.widget.controls.slider.value(), 4)
        self.assertEqual(self.widget.controls.frame_edit.text(), "4/10")

        self.widget.state.cycle_contrast()
        self.assertEqual(self.widget.controls.contrast_btn.text(), "Contrast 2")

    def test_slider_sets_frame(self):
        """Test moving the slider."""
        self.widget.controls.slider.setValue(6)
        self.assertEqual(self.widget.state.current_frame, 6)

    def test_frame_entry(self):
        """Test typed frame entry, including rejected input."""
        self.widget.controls.frame_entered.emit("5")
        self.assertEqual(self.widget.state.current_frame, 5)

        self.widget.controls.frame_edit.setText("junk")
        self.widget.controls.frame_entered.emit("junk")
        self.assertEqual(self.widget.state.current_frame, 5)
        self.assertEqual(self.widget.controls.frame_edit.text(), "5/10")

    def test_buttons(self):
        """Test the control buttons."""
        controls = self.widget.controls
        controls.last_btn.click()
        self.assertEqual(self.widget.state.current_frame, 10)
        controls.first_btn.click()
        self.assertEqual(self.widget.state.current_frame, 1)

        controls.repeat_btn.click()
        self.assertTrue(self.widget.state.do_repeat)
        controls.contrast_btn.click()
        self.assertEqual(self.widget.state.contrast_index, 2)

    def test_play_button(self):
        """Test starting and stopping playback from the control bar."""
        controls = self.widget.controls
        controls.play_btn.click()
        self.assertTrue(self.widget.state.is_playing)
        self.assertTrue(self.widget.state.clock.timer.is_running)
        self.assertEqual(controls.play_btn.text(), "Stop")

        controls.play_btn.click()
        self.assertFalse(self.widget.state.is_playing)
        self.assertFalse(self.widget.state.clock.timer.is_running)
        self.assertEqual(controls.play_btn.text(), "Play")

    def test_timer_ticks_advance_frames(self):
        """Test that QTimer ticks are delivered on the event loop."""
        self.widget.state.set_playback_fps(200)
        self.widget.state.start_playback()
        QTest.qWait(200)
        self.assertGreater(self.widget.state.current_frame, 1)

    def test_key_presses(self):
        """Test keyboard commands."""
        QTest.keyClick(self.widget, Qt.Key_End)
        self.assertEqual(self.widget.state.current_frame, 10)
        QTest.keyClick(self.widget, Qt.Key_Left)
        self.assertEqual(self.widget.state.current_frame, 9)
        QTest.keyClick(self.widget, Qt.Key_Home)
        self.assertEqual(self.widget.state.current_frame, 1)

        on_escape = Mock()
        self.widget.set_focus_return(on_escape)
        QTest.keyClick(self.widget, Qt.Key_Escape)
        on_escape.assert_called_once_with()

    def test_colormap_combo(self):
        """Test choosing a colormap in the control bar."""
        combo = self.widget.controls.colormap_combo
        combo.setCurrentText("viridis")
        self.assertEqual(self.widget.state.colors, "viridis")
        self.assertEqual(self.widget.im.get_cmap().name, "viridis")

        self.widget.state.set_colors("hot")
        self.assertEqual(combo.currentText(), "hot")

    def test_frame_changed_signal(self):
        """Test that frame changes are announced."""
        received = Mock()
        self.widget.frame_changed.connect(received)
        self.widget.state.set_frame(3)
        self.widget.state.set_contrast_index(4)
        received.assert_called_once_with(3)

    def test_single_frame_disables_slider(self):
        """Test that the slider is off for a single image."""
        self.widget.load(np.random.rand(5, 5))
        self.assertFalse(self.widget.controls.slider.isEnabled())
        self.assertEqual(self.widget.controls.frame_edit.text(), "1/1")

    def test_close_event_closes_state(self):
        """Test that closing the window closes the viewer state."""
        self.widget.show()
        self.widget.close()
        self.assertTrue(self.widget.state.closed)

    def test_grouped_widgets(self):
        """Test two widgets grouped together."""
        from stack_viewer.widgets import MovieViewerWidget

        other = MovieViewerWidget(movie=np.random.rand(10, 12, 4))
        try:
            group([self.widget, other])
            self.widget.state.set_frame(7)
            self.assertEqual(other.state.current_frame, 4)
            self.assertEqual(other.controls.slider.value(), 4)
        finally:
            other.close()


if __name__ == '__main__':
    unittest.main()
