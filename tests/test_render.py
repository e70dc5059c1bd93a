"""Tests for the render context, figure drawing and frame compositing."""

import numpy as np
import pytest
from PIL import Image

from stickreel.joints import shapes_demo_figure
from stickreel.models import FigureFrame, Segment, SegmentFrame, Viewport
from stickreel.render import (
    FADE,
    NONE,
    RenderContext,
    SequenceCanvas,
    SequenceRenderer,
    current_context,
    draw_segment_frame,
    render_context,
)
from stickreel.video import SequenceDefinition, VideoDefinition


def fill(color):
    def content(canvas: SequenceCanvas) -> None:
        canvas.draw.rectangle([0, 0, canvas.width, canvas.height], fill=color)
    return content


def _pixel(frame: bytes, width: int, x: int, y: int) -> tuple[int, int, int, int]:
    """(B, G, R, A) at (x, y) of a packed BGRA frame."""
    i = (y * width + x) * 4
    return tuple(frame[i:i + 4])


class TestRenderContext:
    def test_scoped_to_block(self):
        ctx = RenderContext(frame=30, fps=60, width=10, height=10)
        with render_context(ctx):
            assert current_context() is ctx
        with pytest.raises(LookupError):
            current_context()

    def test_nested_contexts_restore(self):
        outer = RenderContext(1, 60, 10, 10)
        inner = RenderContext(2, 60, 10, 10, is_rendering=True)
        with render_context(outer):
            with render_context(inner):
                assert current_context().is_rendering
            assert current_context() is outer

    def test_seconds(self):
        assert RenderContext(frame=90, fps=60, width=1, height=1).seconds == 1.5


class TestSequenceCanvas:
    def test_local_time_and_progress(self):
        seq = SequenceDefinition(1.0, 3.0, fill("red"))
        canvas = SequenceCanvas(Image.new("RGBA", (4, 4)), RenderContext(120, 60, 4, 4), seq)
        assert canvas.local_seconds == pytest.approx(1.0)
        assert canvas.progress == pytest.approx(0.5)


class TestDrawSegmentFrame:
    def _canvas(self, size=(100, 100)) -> SequenceCanvas:
        seq = SequenceDefinition(0.0, 1.0, fill("white"))
        return SequenceCanvas(Image.new("RGBA", size, (0, 0, 0, 0)), RenderContext(0, 60, *size), seq)

    def test_draws_line(self):
        canvas = self._canvas()
        frame = SegmentFrame([Segment(length=60.0, angle=0.0, start_x=20.0, start_y=50.0)])
        draw_segment_frame(canvas, frame)
        assert canvas.image.getpixel((50, 50))[3] == 255
        assert canvas.image.getpixel((50, 10))[3] == 0

    def test_viewport_offset_moves_drawing(self):
        canvas = self._canvas()
        frame = SegmentFrame(
            [Segment(length=60.0, angle=0.0, start_x=20.0, start_y=50.0)],
            viewport=Viewport(offset_y=-40.0),
        )
        draw_segment_frame(canvas, frame)
        assert canvas.image.getpixel((50, 10))[3] == 255
        assert canvas.image.getpixel((50, 50))[3] == 0

    def test_screen_size_scales_to_canvas(self):
        """Figures posed on a 200x200 stage are drawn at half size on a 100x100 canvas."""
        canvas = self._canvas()
        frame = SegmentFrame([Segment(length=120.0, angle=0.0, start_x=40.0, start_y=100.0)])
        draw_segment_frame(canvas, frame, screen_size=(200, 200))
        assert canvas.image.getpixel((50, 50))[3] == 255
        assert canvas.image.getpixel((90, 50))[3] == 0

    def test_every_shape_draws(self):
        canvas = self._canvas((600, 600))
        draw_segment_frame(canvas, FigureFrame([shapes_demo_figure()]).compile())
        assert canvas.image.getbbox() is not None


class TestSequenceRenderer:
    def test_background_and_size(self):
        renderer = SequenceRenderer(VideoDefinition([]), 4, 3, background="#0000ff")
        frame = renderer.render_frame(0)
        assert len(frame) == 4 * 3 * 4
        assert _pixel(frame, 4, 0, 0) == (255, 0, 0, 255)

    def test_transparent_background(self):
        frame = SequenceRenderer(VideoDefinition([]), 2, 2, background=None).render_frame(0)
        assert _pixel(frame, 2, 1, 1)[3] == 0

    def test_later_sequences_draw_on_top(self):
        video = VideoDefinition([
            SequenceDefinition(0.0, 1.0, fill("red"), NONE, NONE),
            SequenceDefinition(0.0, 1.0, fill("#00ff00"), NONE, NONE),
        ])
        frame = SequenceRenderer(video, 2, 2, fps=10).render_frame(5)
        assert _pixel(frame, 2, 0, 0) == (0, 255, 0, 255)

    def test_inactive_sequence_not_drawn(self):
        video = VideoDefinition([SequenceDefinition(0.0, 1.0, fill("red"), NONE, NONE)])
        frame = SequenceRenderer(video, 2, 2, background="#ffffff", fps=10).render_frame(10)
        assert _pixel(frame, 2, 0, 0) == (255, 255, 255, 255)

    def test_fade_in(self):
        """Half-way through a 0.3s fade the layer is half transparent."""
        video = VideoDefinition([SequenceDefinition(0.0, 10.0, fill("black"), FADE, FADE)])
        renderer = SequenceRenderer(video, 2, 2, background=None)
        with render_context(RenderContext(9, 60, 2, 2)):
            frame = renderer.render_frame(9)
        assert _pixel(frame, 2, 0, 0)[3] == pytest.approx(128, abs=1)

    def test_uses_context_fps(self):
        video = VideoDefinition([SequenceDefinition(1.0, 2.0, fill("red"), NONE, NONE)])
        renderer = SequenceRenderer(video, 2, 2, background=None, fps=60)
        with render_context(RenderContext(30, 24, 2, 2, is_rendering=True)):
            assert _pixel(renderer.render_frame(30), 2, 0, 0) == (0, 0, 255, 255)

    def test_canvas_sees_subtitles(self):
        seen = []
        video = VideoDefinition([SequenceDefinition(0.0, 1.0, lambda c: seen.append(c.current_subtitle), NONE, NONE)])
        SequenceRenderer(video, 2, 2).render_frame(0)
        assert seen == [None]

    def test_bgra_channel_order(self):
        video = VideoDefinition([SequenceDefinition(0.0, 1.0, fill((10, 20, 30, 255)), NONE, NONE)])
        frame = SequenceRenderer(video, 3, 2, background=None).render_frame(0)
        pixels = np.frombuffer(frame, dtype=np.uint8).reshape(2, 3, 4)
        assert pixels[1, 2].tolist() == [30, 20, 10, 255]
