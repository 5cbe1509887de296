# src/stack_viewer/playback.py
"""
Timed frame advance.

``PlaybackClock`` drives a ``PlaybackState`` through the Stopped/Playing
states. Ticks come from a timer object exposing ``start(period, callback)``,
``stop()`` and ``is_running``; ``ThreadingTimer`` is the toolkit-free one,
the GUI hosts adapt their own event-loop timers to the same interface.

Ticks are lossy: a tick arriving while the previous one is still being
handled is dropped, never queued.
"""

from __future__ import annotations
import contextlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30
FRAME_STEP = 10


class ReentryGuard:
    """Refuses nested or concurrent entry into one operation."""

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextlib.contextmanager
    def enter(self) -> Iterator[bool]:
        acquired = self._lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


@dataclass
class PlaybackState:
    current_frame: int = 1
    total_frames: int = 1
    playback_fps: float = DEFAULT_FPS
    do_repeat: bool = False
    is_playing: bool = False

    def clamp(self, index: int) -> int:
        return min(self.total_frames, max(1, int(index)))


class ThreadingTimer:
    """
    Fixed-rate timer running its callback on a daemon thread.

    Callbacks never overlap. When a callback overruns the period, the
    missed ticks are skipped rather than delivered late.
    """

    def __init__(self, name: str = "stack-viewer-playback"):
        self.name = name
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, period: float, callback: Callable[[], Any]):
        self.stop()
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(period, callback, stop_event),
            name=self.name,
            daemon=True,
        )
        self._stop_event, self._thread = stop_event, thread
        thread.start()

    def stop(self):
        thread, stop_event = self._thread, self._stop_event
        self._thread = self._stop_event = None
        if stop_event is not None:
            stop_event.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

    @staticmethod
    def _run(period: float, callback: Callable[[], Any], stop_event: threading.Event):
        deadline = time.monotonic() + period
        while not stop_event.wait(max(0.0, deadline - time.monotonic())):
            callback()
            deadline += period
            now = time.monotonic()
            if deadline <= now:
                missed = int((now - deadline) // period) + 1
                deadline += missed * period
                logger.debug("Playback timer skipped %d tick(s)", missed)


class PlaybackClock:
    """
    Play/stop state machine advancing frames on timer ticks.

    Parameters
    ----------
    state : PlaybackState
        Frame counters shared with the owning viewer
    advance : callable
        Called with the next 1-based frame index on every effective tick
    timer : object, optional
        Tick source (default: a new ThreadingTimer)
    """

    def __init__(
        self,
        state: PlaybackState,
        advance: Callable[[int], Any],
        timer: Optional[Any] = None,
    ):
        self.state = state
        self.timer = timer if timer is not None else ThreadingTimer()
        self.period: Optional[float] = None
        self.dropped_ticks = 0
        self._advance = advance
        self._tick_guard = ReentryGuard()
        self._rewind = False

    @staticmethod
    def period_for(fps: float) -> float:
        """Tick period in seconds, rounded to whole milliseconds (at least 1 ms)."""
        return max(1, round(1000.0 / fps)) / 1000.0

    @property
    def is_playing(self) -> bool:
        return self.state.is_playing

    def start(self) -> bool:
        if self.state.total_frames <= 1:
            logger.debug("Not starting playback of a single-frame movie")
            return False
        self.timer.stop()
        # started on the last frame: the first tick goes back to frame 1
        self._rewind = self.state.current_frame >= self.state.total_frames
        self.period = self.period_for(self.state.playback_fps)
        self.state.is_playing = True
        self.timer.start(self.period, self.tick)
        return True

    def stop(self):
        self.timer.stop()
        self.state.is_playing = False
        self._rewind = False

    def toggle(self) -> bool:
        """Stop if playing, else start. Returns whether playback is now running."""
        if self.state.is_playing:
            self.stop()
            return False
        return self.start()

    def tick(self):
        with self._tick_guard.enter() as entered:
            if not entered:
                self.dropped_ticks += 1
                logger.debug("Dropped playback tick (previous tick still running)")
                return
            if self.state.is_playing:
                self._step()

    def _step(self):
        state = self.state
        if state.current_frame >= state.total_frames:
            if not (self._rewind or state.do_repeat):
                self.stop()
                return
            target = 1
        else:
            target = state.current_frame + 1
        self._rewind = False
        self._advance(target)
