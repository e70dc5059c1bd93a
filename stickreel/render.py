"""
Frame rendering: the per-pass render context, stick-figure drawing and
compositing of active sequences into raw BGRA frames.
"""

import math
from abc import ABC, abstractmethod
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np
from PIL import Image, ImageDraw

from .media import VideoResource
from .models import Arc, Circle, Ellipse, FilledCircle, Line, Rectangle, Segment, SegmentFrame
from .subtitles import Subtitle
from .timeline import FADE, NO_TRANSITION, Transition
from .video import SequenceDefinition, VideoDefinition

__all__ = [
    "FADE",
    "NONE",
    "Transition",
    "RenderContext",
    "render_context",
    "current_context",
    "SequenceCanvas",
    "draw_segment_frame",
    "FrameRenderer",
    "SequenceRenderer",
]

NONE = NO_TRANSITION


# ── Render context ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RenderContext:
    frame: int
    fps: int
    width: int
    height: int
    is_rendering: bool = False  # True while exporting, False during preview

    @property
    def seconds(self) -> float:
        return self.frame / self.fps


_current_context: ContextVar[RenderContext] = ContextVar("stickreel_render_context")


@contextmanager
def render_context(context: RenderContext) -> Iterator[RenderContext]:
    """Make ``context`` the current render context for the enclosed block."""
    token = _current_context.set(context)
    try:
        yield context
    finally:
        _current_context.reset(token)


def current_context() -> RenderContext:
    """Raises LookupError outside a ``render_context`` block."""
    return _current_context.get()


# ── Drawing ───────────────────────────────────────────────────────────────────

class SequenceCanvas:
    """What a sequence's content function draws on."""

    def __init__(
        self,
        image: Image.Image,
        context: RenderContext,
        sequence: SequenceDefinition,
        video: Optional[VideoDefinition] = None,
    ):
        self.image = image
        self.draw = ImageDraw.Draw(image)
        self.context = context
        self.sequence = sequence
        self._video = video

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def local_seconds(self) -> float:
        """Seconds since this sequence started."""
        return self.context.seconds - self.sequence.start

    @property
    def progress(self) -> float:
        length = self.sequence.end - self.sequence.start
        if length <= 0:
            return 1.0
        return max(0.0, min(1.0, self.local_seconds / length))

    @property
    def current_subtitle(self) -> Optional[Subtitle]:
        if self._video is None:
            return None
        return self._video.current_subtitle(self.context.seconds)

    def draw_video(self, video: VideoResource) -> None:
        frame = video.frame_at(self.local_seconds).convert("RGBA")
        if frame.size != self.image.size:
            frame = frame.resize(self.image.size)
        self.image.alpha_composite(frame)

    def draw_segment_frame(
        self,
        frame: SegmentFrame,
        screen_size: Optional[tuple[int, int]] = None,
        color: str = "black",
        thickness: float = 4.0,
    ) -> None:
        draw_segment_frame(self, frame, screen_size, color, thickness)


def _content_scale(canvas_size: tuple[int, int], screen_size: Optional[tuple[int, int]]) -> float:
    if screen_size is None or screen_size[0] <= 0 or screen_size[1] <= 0:
        return 1.0
    width, height = canvas_size
    if screen_size[0] > screen_size[1]:
        return width / screen_size[0]
    return height / screen_size[1]


def _segment_outline(segment: Segment) -> list[tuple[float, float]]:
    """World-space polygon points for the area shapes."""
    shape = segment.type
    if isinstance(shape, Rectangle):
        half_height = segment.length * 0.25
        perp = segment.angle + math.pi / 2
        px, py = half_height * math.cos(perp), half_height * math.sin(perp)
        return [
            (segment.start_x - px, segment.start_y - py),
            (segment.start_x + px, segment.start_y + py),
            (segment.end_x + px, segment.end_y + py),
            (segment.end_x - px, segment.end_y - py),
        ]
    if isinstance(shape, Ellipse):
        major = segment.length / 2
        minor = major * shape.width_ratio
        cos_a, sin_a = math.cos(segment.angle), math.sin(segment.angle)
        points = []
        for i in range(33):
            t = i / 32 * 2 * math.pi
            lx, ly = major * math.cos(t), minor * math.sin(t)
            points.append((
                segment.center_x + lx * cos_a - ly * sin_a,
                segment.center_y + lx * sin_a + ly * cos_a,
            ))
        return points
    if isinstance(shape, Arc):
        start_angle = segment.angle + math.pi
        points = []
        for i in range(25):
            t = start_angle + i / 24 * shape.sweep_angle
            points.append((
                segment.center_x + segment.radius * math.cos(t),
                segment.center_y + segment.radius * math.sin(t),
            ))
        return points
    return []


def draw_segment_frame(
    canvas: SequenceCanvas,
    frame: SegmentFrame,
    screen_size: Optional[tuple[int, int]] = None,
    color: str = "black",
    thickness: float = 4.0,
) -> None:
    """
    Draw a compiled keyframe onto ``canvas``.

    The viewport is applied around the centre of the logical screen, then the
    logical screen is scaled to fit the canvas along its longer side.

    Args:
        canvas: Target canvas.
        frame: Segments plus the camera to view them through.
        screen_size: Logical (width, height) the figures were posed in; the
            canvas size when omitted.
        color: Any PIL colour.
        thickness: Stroke width in logical pixels.
    """
    scale = _content_scale((canvas.width, canvas.height), screen_size)
    logical_w, logical_h = screen_size or (canvas.width, canvas.height)
    pivot_x, pivot_y = logical_w / 2, logical_h / 2
    viewport = frame.viewport

    def to_screen(x: float, y: float) -> tuple[float, float]:
        sx, sy = viewport.apply(x, y, pivot_x, pivot_y)
        return (sx * scale, sy * scale)

    draw = canvas.draw
    stroke = max(1, round(thickness * scale * viewport.scale))
    dot = thickness * scale * viewport.scale

    for segment in frame.segments:
        if segment.length <= 0:
            continue
        start = to_screen(segment.start_x, segment.start_y)
        end = to_screen(segment.end_x, segment.end_y)
        shape = segment.type

        if isinstance(shape, Line):
            draw.line([start, end], fill=color, width=stroke)
            half = stroke / 2
            for x, y in (start, end):
                draw.ellipse([x - half, y - half, x + half, y + half], fill=color)
        elif isinstance(shape, (Circle, FilledCircle)):
            cx, cy = to_screen(segment.center_x, segment.center_y)
            r = segment.radius * scale * viewport.scale
            box = [cx - r, cy - r, cx + r, cy + r]
            if isinstance(shape, FilledCircle):
                draw.ellipse(box, fill=color)
            else:
                draw.ellipse(box, outline=color, width=stroke)
        elif isinstance(shape, Rectangle):
            draw.polygon([to_screen(x, y) for x, y in _segment_outline(segment)], fill=color)
        elif isinstance(shape, (Ellipse, Arc)):
            draw.line([to_screen(x, y) for x, y in _segment_outline(segment)], fill=color, width=stroke)

        # Joint dot at the segment start
        x, y = start
        draw.ellipse([x - dot, y - dot, x + dot, y + dot], fill=color)


# ── Frame renderers ───────────────────────────────────────────────────────────

class FrameRenderer(ABC):
    """Produces raw BGRA frames, ``width * height * 4`` bytes each."""

    width: int
    height: int

    @abstractmethod
    def render_frame(self, frame_index: int) -> bytes:
        pass


def _transition_opacity(sequence: SequenceDefinition, seconds: float) -> float:
    opacity = 1.0
    enter, exit = sequence.enter, sequence.exit
    if enter.kind == "fade" and enter.duration > 0:
        opacity = min(opacity, (seconds - sequence.start) / enter.duration)
    if exit.kind == "fade" and exit.duration > 0:
        opacity = min(opacity, (sequence.end - seconds) / exit.duration)
    return max(0.0, min(1.0, opacity))


def _to_bgra(image: Image.Image) -> bytes:
    rgba = np.asarray(image.convert("RGBA"), dtype=np.uint8)
    return np.ascontiguousarray(rgba[:, :, [2, 1, 0, 3]]).tobytes()


class SequenceRenderer(FrameRenderer):
    """
    Composites the sequences active at the current render-context frame.

    Each sequence draws on its own transparent layer, which is faded by its
    enter/exit transition and stacked in program order. ``background=None``
    leaves the frame transparent (for alpha exports).
    """

    def __init__(
        self,
        video: VideoDefinition,
        width: int,
        height: int,
        background: Optional[str] = "#ffffff",
        fps: int = 60,
    ):
        self.video = video
        self.width = width
        self.height = height
        self.background = background
        self.fps = fps

    def render_image(self, context: RenderContext) -> Image.Image:
        size = (self.width, self.height)
        frame = Image.new("RGBA", size, self.background or (0, 0, 0, 0))

        for sequence in self.video.active_sequences(context.frame, context.fps):
            opacity = _transition_opacity(sequence, context.seconds)
            if opacity <= 0:
                continue
            layer = Image.new("RGBA", size, (0, 0, 0, 0))
            sequence.content(SequenceCanvas(layer, context, sequence, self.video))
            if opacity < 1:
                layer.putalpha(layer.getchannel("A").point(lambda a: round(a * opacity)))
            frame.alpha_composite(layer)
        return frame

    def render_frame(self, frame_index: int) -> bytes:
        """Render under the current context when it matches, else a preview context."""
        try:
            context = current_context()
        except LookupError:
            context = RenderContext(frame_index, self.fps, self.width, self.height)
        if context.frame != frame_index:
            context = RenderContext(frame_index, context.fps, self.width, self.height, context.is_rendering)
        return _to_bgra(self.render_image(context))
