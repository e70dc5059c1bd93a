"""Tests for the preview playback controller, driven by a fake clock."""

import pytest

from stickreel.playback import PlaybackController, PlaybackState


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def controller(clock) -> PlaybackController:
    return PlaybackController(total_duration=2.0, fps=10, clock=clock)


class TestState:
    def test_initial(self, controller):
        assert controller.max_frames == 20
        assert controller.state is PlaybackState.STOPPED
        assert controller.current_frame == 0
        assert controller.progress == 0.0

    def test_toggle(self, controller):
        controller.toggle_play_pause()
        assert controller.is_playing
        controller.toggle_play_pause()
        assert controller.state is PlaybackState.PAUSED

    def test_stop_rewinds(self, controller):
        controller.seek_to_frame(7)
        controller.stop()
        assert controller.current_frame == 0
        assert controller.state is PlaybackState.STOPPED


class TestSeeking:
    def test_clamped(self, controller):
        controller.seek_to_frame(-5)
        assert controller.current_frame == 0
        controller.seek_to_frame(500)
        assert controller.current_frame == 19

    def test_seek_to_duration(self, controller):
        controller.seek_to_duration(1.0)
        assert controller.current_frame == 10
        assert controller.current_seconds == pytest.approx(1.0)

    def test_seek_to_progress(self, controller):
        controller.seek_to_progress(0.25)
        assert controller.current_frame == 5
        assert controller.progress == pytest.approx(0.25)

    def test_empty_video(self, clock):
        empty = PlaybackController(0.0, 30, clock=clock)
        empty.seek_to_frame(3)
        assert empty.current_frame == 0
        empty.play()
        assert empty.tick() == 0


class TestClock:
    def test_frames_follow_wall_clock(self, controller, clock):
        controller.play()
        assert controller.tick() == 0
        clock.advance(0.55)
        assert controller.tick() == 5

    def test_wraps_around(self, controller, clock):
        controller.play()
        controller.tick()
        clock.advance(2.35)
        assert controller.tick() == 3

    def test_paused_does_not_advance(self, controller, clock):
        controller.play()
        controller.tick()
        controller.pause()
        clock.advance(1.0)
        assert controller.tick() == 0

    def test_resume_continues_from_current_frame(self, controller, clock):
        controller.play()
        controller.tick()
        clock.advance(0.5)
        controller.tick()
        controller.pause()
        clock.advance(10.0)
        controller.play()
        controller.tick()
        clock.advance(0.25)
        assert controller.tick() == 7

    def test_seek_while_playing_reanchors(self, controller, clock):
        controller.play()
        controller.tick()
        clock.advance(0.3)
        controller.seek_to_frame(15)
        controller.tick()
        clock.advance(0.25)
        assert controller.tick() == 17

    def test_run_loops_until_paused(self, clock):
        sleeps = []

        def sleep(seconds):
            sleeps.append(seconds)
            clock.advance(0.125)
            if len(sleeps) == 4:
                controller.pause()

        controller = PlaybackController(2.0, 10, clock=clock, sleep=sleep)
        controller.play()
        controller.run()
        assert sleeps == pytest.approx([0.1] * 4)
        assert controller.current_frame == 3

    @pytest.mark.parametrize("start", [1000.1, 12345.678, 987654.321])
    def test_resume_keeps_frame_at_large_clock_values(self, start):
        """Seeking then resuming never steps back a frame, whatever the clock magnitude."""
        clock = FakeClock(start)
        controller = PlaybackController(total_duration=2.0, fps=10, clock=clock)
        for frame in range(20):
            controller.seek_to_frame(frame)
            controller.play()
            assert controller.tick() == frame
            clock.advance(0.15)
            assert controller.tick() == (frame + 1) % 20
            controller.pause()
            clock.advance(3.0)
            controller.play()
            assert controller.tick() == (frame + 1) % 20
            controller.pause()
