"""
Export a VideoDefinition to a video file by piping raw frames into ffmpeg.

Frames are rendered in order and written to ffmpeg's stdin; audio tracks are
passed as extra inputs, trimmed and delayed into place by a filter graph.
"""

import base64
import os
import subprocess
import tempfile
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

import numpy as np
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from .errors import EncoderError, ExportCancelled, UnsupportedFormatError
from .render import FrameRenderer, RenderContext, SequenceRenderer, render_context
from .video import AudioDefinition, ResourceAudioDefinition, TTSAudioDefinition, VideoDefinition

_print_lock = threading.Lock()


def _log(msg: str) -> None:
    with _print_lock:
        print(msg)


@dataclass
class ExportSettings:
    fps: int = 60
    width: int = 1280
    height: int = 720
    background: Optional[str] = "#ffffff"
    with_alpha: bool = False
    crf: int = 18
    preset: str = "fast"


@dataclass(frozen=True)
class AudioFile:
    path: str
    start: float       # seconds into the video
    end: float
    media_from: float = 0.0  # in-point inside the file

    @property
    def duration(self) -> float:
        return max(0.0, self.end - self.start)


# ── Audio preparation ─────────────────────────────────────────────────────────

def prepare_audio_files(audio: list[AudioDefinition]) -> tuple[list[AudioFile], list[str]]:
    """
    Turn audio definitions into ffmpeg inputs.

    TTS payloads are decoded into temporary ``.mp3`` files; resource audio is
    used in place. Missing resource files and empty TTS payloads are reported
    and skipped. If a payload fails to decode, the files written so far are
    removed before the error propagates.

    Returns:
        (audio inputs in order, temporary files the caller must remove)
    """
    files: list[AudioFile] = []
    temp_files: list[str] = []
    try:
        for definition in audio:
            if isinstance(definition, TTSAudioDefinition):
                if not definition.audio_base64:
                    _log(f"[export] Skipping silent speech track: {definition.text[:40]!r}")
                    continue
                with tempfile.NamedTemporaryFile(prefix="audio_", suffix=".mp3", delete=False) as tmp:
                    temp_files.append(tmp.name)
                    tmp.write(base64.b64decode(definition.audio_base64, validate=True))
                files.append(AudioFile(tmp.name, definition.start, definition.end))
            elif isinstance(definition, ResourceAudioDefinition):
                if not Path(definition.file).exists():
                    _log(f"[export] Warning: audio resource file not found: {definition.file}")
                    continue
                files.append(AudioFile(
                    str(Path(definition.file).resolve()),
                    definition.start,
                    definition.end,
                    media_from=definition.media_from,
                ))
    except BaseException:
        cleanup_temp_files(temp_files)
        raise
    return files, temp_files


def cleanup_temp_files(paths: list[str]) -> None:
    for path in paths:
        try:
            os.unlink(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            _log(f"[export] Warning: could not delete temporary audio file {path}: {e}")


# ── ffmpeg command ────────────────────────────────────────────────────────────

def build_audio_filter_complex(files: list[AudioFile]) -> str:
    """
    Filter graph that trims each audio input and delays it to its start time.

    Input 0 is the video, so audio inputs start at 1. A single input is
    labelled ``[audio]`` directly; several are mixed with ``amix``.
    """
    filters = []
    for index, audio in enumerate(files):
        label = "audio" if len(files) == 1 else f"a{index}"
        delay_ms = round(audio.start * 1000)
        if audio.media_from > 0:
            trim = f"atrim=start={audio.media_from:.3f}:duration={audio.duration:.3f},asetpts=PTS-STARTPTS"
        else:
            trim = f"atrim=duration={audio.duration:.3f}"
        filters.append(f"[{index + 1}:a]{trim},adelay={delay_ms}|{delay_ms}[{label}]")

    graph = ";".join(filters)
    if len(files) > 1:
        inputs = "".join(f"[a{i}]" for i in range(len(files)))
        graph += f";{inputs}amix=inputs={len(files)}[audio]"
    return graph


def build_ffmpeg_command(
    output: str,
    width: int,
    height: int,
    fps: int,
    files: list[AudioFile],
    with_alpha: bool = False,
    crf: int = 18,
    preset: str = "fast",
    ffmpeg_bin: str = "ffmpeg",
) -> list[str]:
    """
    Build the ffmpeg argv for encoding raw frames from stdin.

    Transparent output needs a container that carries alpha: ``.webm`` (VP9)
    or ``.mov``/``.qt`` (ProRes 4444). Anything else raises
    UnsupportedFormatError before ffmpeg is started.
    """
    cmd = [
        ffmpeg_bin, "-y",
        "-f", "rawvideo",
        "-vcodec", "rawvideo",
        "-pix_fmt", "bgra" if with_alpha else "rgb24",
        "-s", f"{width}x{height}",
        "-framerate", str(fps),
        "-i", "-",
    ]
    for audio in files:
        cmd += ["-i", audio.path]

    if files:
        cmd += ["-filter_complex", build_audio_filter_complex(files)]
        cmd += ["-map", "0:v", "-map", "[audio]"]
    else:
        cmd += ["-map", "0:v"]

    if with_alpha:
        ext = Path(output).suffix.lower().lstrip(".")
        if ext == "webm":
            cmd += [
                "-c:v", "libvpx-vp9",
                "-pix_fmt", "yuva420p",
                "-crf", "30",
                "-b:v", "0",
                "-deadline", "good",
                "-row-mt", "1",
            ]
            if files:
                cmd += ["-c:a", "libopus"]
        elif ext in ("mov", "qt"):
            cmd += [
                "-c:v", "prores_ks",
                "-profile:v", "4444",
                "-pix_fmt", "yuva444p10le",
            ]
            if files:
                cmd += ["-c:a", "pcm_s16le"]
        else:
            raise UnsupportedFormatError(
                f"Transparent export requires .webm (VP9 alpha) or .mov (ProRes 4444). Got: .{ext}"
            )
    else:
        cmd += [
            "-c:v", "libx264",
            "-pix_fmt", "yuv420p",
            "-crf", str(crf),
            "-preset", preset,
        ]
        if files:
            cmd += ["-c:a", "aac"]

    cmd.append(str(Path(output).resolve()))
    return cmd


def bgra_to_rgb(buffer: bytes, width: int, height: int) -> bytes:
    """Drop alpha and swap B/R of a packed BGRA frame."""
    bgra = np.frombuffer(buffer, dtype=np.uint8).reshape(height, width, 4)
    return np.ascontiguousarray(bgra[:, :, 2::-1]).tobytes()


# ── Exporter ──────────────────────────────────────────────────────────────────

class VideoExporter:
    """Drives a FrameRenderer into an ffmpeg process."""

    def __init__(self, renderer: FrameRenderer, ffmpeg_bin: str = "ffmpeg"):
        self.renderer = renderer
        self.ffmpeg_bin = ffmpeg_bin

    def export(
        self,
        video: VideoDefinition,
        output: str,
        settings: ExportSettings,
        on_frame: Optional[Callable[[int, int], None]] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """
        Encode every frame of ``video`` into ``output``.

        Args:
            video: Resolved video to export.
            output: Destination path; its extension picks the alpha codec.
            settings: Frame rate, alpha and encoder quality.
            on_frame: Called with (frame_index, total_frames) after each frame.
            cancel_event: Checked before every frame; when set the export
                stops with ExportCancelled.

        Returns:
            The output path.

        Raises:
            UnsupportedFormatError: Alpha requested for a container without alpha.
            ExportCancelled: ``cancel_event`` was set.
            EncoderError: ffmpeg exited non-zero, also when it quit before
                reading every frame.
        """
        width, height, fps = self.renderer.width, self.renderer.height, settings.fps
        total_frames = video.total_frames(fps)
        files, temp_files = prepare_audio_files(video.audio_definitions)

        try:
            cmd = build_ffmpeg_command(
                output, width, height, fps, files,
                with_alpha=settings.with_alpha,
                crf=settings.crf,
                preset=settings.preset,
                ffmpeg_bin=self.ffmpeg_bin,
            )
            _log(f"[export] Executing: {' '.join(cmd)}")
            proc = subprocess.Popen(cmd, stdin=subprocess.PIPE, stderr=subprocess.PIPE)

            stderr_chunks: list[bytes] = []

            def drain_stderr() -> None:
                while True:
                    chunk = proc.stderr.read(4096)
                    if not chunk:
                        break
                    stderr_chunks.append(chunk)

            stderr_thread = threading.Thread(target=drain_stderr, daemon=True)
            stderr_thread.start()

            try:
                self._write_frames(proc, total_frames, fps, settings.with_alpha, on_frame, cancel_event)
                proc.stdin.close()
                stderr_thread.join(timeout=30)
                proc.wait()
            except BrokenPipeError:
                # ffmpeg exited before reading every frame.
                proc.wait()
                stderr_thread.join(timeout=30)
                if proc.returncode == 0:
                    raise
            except BaseException:
                proc.kill()
                proc.wait()
                raise

            if proc.returncode != 0:
                stderr = b"".join(stderr_chunks).decode(errors="replace")
                raise EncoderError(proc.returncode, stderr[-2000:])
        finally:
            cleanup_temp_files(temp_files)

        _log(f"[export] Output saved to {output} ({total_frames} frames)")
        return output

    def _write_frames(
        self,
        proc: subprocess.Popen,
        total_frames: int,
        fps: int,
        with_alpha: bool,
        on_frame: Optional[Callable[[int, int], None]],
        cancel_event: Optional[threading.Event],
    ) -> None:
        width, height = self.renderer.width, self.renderer.height
        expected = width * height * 4
        for frame_index in range(total_frames):
            if cancel_event is not None and cancel_event.is_set():
                raise ExportCancelled(f"Export cancelled at frame {frame_index}/{total_frames}")

            context = RenderContext(frame_index, fps, width, height, is_rendering=True)
            with render_context(context):
                data = self.renderer.render_frame(frame_index)
            if len(data) != expected:
                raise ValueError(f"Renderer produced {len(data)} bytes, expected {expected}")

            proc.stdin.write(data if with_alpha else bgra_to_rgb(data, width, height))
            if on_frame is not None:
                on_frame(frame_index, total_frames)


# ── Result wrapper ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExportSuccess:
    destination: str


@dataclass(frozen=True)
class ExportCancelledResult:
    pass


@dataclass(frozen=True)
class ExportFailed:
    error: Exception


ExportResult = Union[ExportSuccess, ExportCancelledResult, ExportFailed]


def run_export(
    video: VideoDefinition,
    output: str,
    settings: ExportSettings,
    ffmpeg_bin: str = "ffmpeg",
    renderer: Optional[FrameRenderer] = None,
    cancel_event: Optional[threading.Event] = None,
    show_progress: bool = True,
) -> ExportResult:
    """
    Export ``video`` and report the outcome as a value instead of raising.

    Uses a SequenceRenderer at ``settings`` size unless ``renderer`` is given;
    alpha exports get a transparent background.
    """
    if renderer is None:
        background = None if settings.with_alpha else settings.background
        renderer = SequenceRenderer(video, settings.width, settings.height, background, settings.fps)
    exporter = VideoExporter(renderer, ffmpeg_bin)

    try:
        if not show_progress:
            return ExportSuccess(exporter.export(video, output, settings, cancel_event=cancel_event))

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
        ) as progress:
            task = progress.add_task("[cyan]Rendering frames...", total=video.total_frames(settings.fps))

            def on_frame(index: int, total: int) -> None:
                progress.update(task, completed=index + 1)

            return ExportSuccess(exporter.export(video, output, settings, on_frame, cancel_event))
    except ExportCancelled as e:
        _log(f"[export] {e}")
        return ExportCancelledResult()
    except Exception as e:
        _log(f"[export] Export failed: {e}")
        return ExportFailed(e)
