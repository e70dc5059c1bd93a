"""Keyframe animation → video: expand keyframes, compile them and export one frame each."""

import threading
from typing import Optional

from .export import ExportResult, ExportSettings, run_export
from .interpolate import expand_frames
from .models import FigureFrame, SegmentFrame
from .render import NONE, SequenceCanvas
from .sequence import SequenceScope
from .speech import NoOpTTSProvider
from .timeline import FixedDuration
from .video import VideoDefinition, build_video


def build_animation(
    frames: list[SegmentFrame],
    screen_size: Optional[tuple[int, int]],
    fps: int,
) -> VideoDefinition:
    """One cut-only sequence per compiled frame, each lasting exactly one frame."""
    def program(scope: SequenceScope) -> None:
        for frame in frames:
            def draw(canvas: SequenceCanvas, frame: SegmentFrame = frame) -> None:
                canvas.draw_segment_frame(frame, screen_size)

            scope.sequence(draw, end=FixedDuration(1 / fps), enter=NONE, exit=NONE)

    return build_video(program, NoOpTTSProvider(), fps=fps)


def export_animation(
    keyframes: list[FigureFrame],
    output: str,
    keyframe_fps: int = 3,
    target_fps: int = 24,
    width: int = 1280,
    height: int = 720,
    background: str = "#ffffff",
    with_alpha: bool = False,
    screen_size: Optional[tuple[int, int]] = None,
    ffmpeg_bin: str = "ffmpeg",
    cancel_event: Optional[threading.Event] = None,
    show_progress: bool = True,
) -> ExportResult:
    """
    Export keyframes as a video file.

    The keyframes are copied before expansion, so the caller's editing state
    is never touched.

    Args:
        keyframes: Poses to animate between.
        output: Destination file; ``.webm`` or ``.mov`` when ``with_alpha``.
        keyframe_fps: Keyframes per second of animation.
        target_fps: Output frame rate.
        width, height: Output size in pixels.
        background: Canvas colour for opaque exports.
        with_alpha: Export with a transparent background.
        screen_size: Logical size the figures were posed in; output size when omitted.

    Returns:
        ExportSuccess, ExportCancelledResult or ExportFailed.
    """
    snapshot = [frame.deep_copy() for frame in keyframes]
    expanded = expand_frames(snapshot, keyframe_fps, target_fps)
    compiled = [frame.compile() for frame in expanded]
    print(f"[animation] {len(keyframes)} keyframes → {len(compiled)} frames @ {target_fps}fps")

    video = build_animation(compiled, screen_size or (width, height), target_fps)
    settings = ExportSettings(
        fps=target_fps,
        width=width,
        height=height,
        background=background,
        with_alpha=with_alpha,
    )
    return run_export(
        video, output, settings,
        ffmpeg_bin=ffmpeg_bin,
        cancel_event=cancel_event,
        show_progress=show_progress,
    )
