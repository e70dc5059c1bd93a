"""Preview playback: a wall-clock driven, looping frame cursor."""

import threading
import time
from enum import Enum
from typing import Callable, Optional

from .video import frames_of


class PlaybackState(Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class PlaybackController:
    """
    Tracks the current preview frame of a video ``total_duration`` seconds long.

    While playing, the frame follows the wall clock and wraps around at
    ``max_frames``. Seeks are accepted in every state and from any thread.
    ``clock`` and ``sleep`` are injectable so tests can drive time by hand.
    """

    def __init__(
        self,
        total_duration: float,
        fps: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if fps <= 0:
            raise ValueError("fps must be positive")
        self.total_duration = total_duration
        self.fps = fps
        self.max_frames = frames_of(total_duration, fps)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._state = PlaybackState.STOPPED
        self._frame = 0
        self._anchor: Optional[float] = None
        self._base_frame = 0
        self._thread: Optional[threading.Thread] = None

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is PlaybackState.PLAYING

    @property
    def current_frame(self) -> int:
        return self._frame

    @property
    def current_seconds(self) -> float:
        return self.total_duration * self._frame / max(1, self.max_frames)

    @property
    def progress(self) -> float:
        return self._frame / self.max_frames if self.max_frames > 0 else 0.0

    def play(self) -> None:
        with self._lock:
            if self._state is not PlaybackState.PLAYING:
                self._state = PlaybackState.PLAYING
                self._anchor = None

    def pause(self) -> None:
        with self._lock:
            if self._state is PlaybackState.PLAYING:
                self._state = PlaybackState.PAUSED

    def stop(self) -> None:
        with self._lock:
            self._state = PlaybackState.STOPPED
            self._frame = 0
            self._anchor = None

    def toggle_play_pause(self) -> None:
        if self.is_playing:
            self.pause()
        else:
            self.play()

    # ── Seeking ──────────────────────────────────────────────────────────────

    def seek_to_frame(self, frame: int) -> None:
        with self._lock:
            self._frame = max(0, min(frame, self.max_frames - 1))
            self._anchor = None

    def seek_to_duration(self, seconds: float) -> None:
        self.seek_to_frame(frames_of(seconds, self.fps))

    def seek_to_progress(self, progress: float) -> None:
        self.seek_to_frame(int(progress * self.max_frames))

    # ── Clock loop ───────────────────────────────────────────────────────────

    def tick(self) -> int:
        """Advance the frame from the wall clock once; returns the current frame."""
        with self._lock:
            if self._state is not PlaybackState.PLAYING or self.max_frames <= 0:
                return self._frame
            now = self._clock()
            if self._anchor is None:
                # Anchor wall time to the current frame.
                self._anchor = now
                self._base_frame = self._frame
            advanced = int((now - self._anchor) * self.fps + 1e-9)
            self._frame = (self._base_frame + advanced) % self.max_frames
            return self._frame

    def run(self) -> None:
        """Poll the clock once per frame until playback is paused or stopped."""
        while self.is_playing:
            self.tick()
            self._sleep(1 / self.fps)

    def start_thread(self) -> threading.Thread:
        """Start playback on a daemon thread running ``run``."""
        self.play()
        if self._thread is None or not self._thread.is_alive():
            self._thread = threading.Thread(target=self.run, name="stickreel-playback", daemon=True)
            self._thread.start()
        return self._thread
