"""Video/audio resource collaborator: media length and decoded frames on demand."""

import json
import subprocess
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from typing import Union

from PIL import Image

from .errors import MediaUnavailableError


@dataclass(frozen=True)
class MediaUntilEnd:
    pass


@dataclass(frozen=True)
class MediaFixedDuration:
    duration: float


@dataclass(frozen=True)
class MediaEndAt:
    end: float


MediaEnd = Union[MediaUntilEnd, MediaFixedDuration, MediaEndAt]


def media_end_absolute(end: MediaEnd, start: float, source_length: float) -> float:
    """Absolute out-point inside the source file, clamped to its length."""
    if isinstance(end, MediaFixedDuration):
        out = start + end.duration
    elif isinstance(end, MediaEndAt):
        out = end.end
    else:
        out = source_length
    return min(out, source_length)


class VideoResource(ABC):
    path: str
    media_from: float
    media_to: float

    @property
    def length(self) -> float:
        return max(0.0, self.media_to - self.media_from)

    @abstractmethod
    def frame_at(self, seconds: float) -> Image.Image:
        """RGBA frame at ``seconds`` relative to the trimmed in-point."""


class MediaResources(ABC):
    @abstractmethod
    def load_video(self, path: str, start: float = 0.0, end: MediaEnd = MediaUntilEnd()) -> VideoResource:
        pass

    def close(self) -> None:
        pass


class NoOpMediaResources(MediaResources):
    def load_video(self, path: str, start: float = 0.0, end: MediaEnd = MediaUntilEnd()) -> VideoResource:
        raise MediaUnavailableError(f"No media backend to load {path}")


# ── ffmpeg-backed implementation ──────────────────────────────────────────────

def probe_video(path: str, ffprobe_bin: str = "ffprobe") -> tuple[float, int, int]:
    """Return (duration_seconds, width, height) of a media file via ffprobe."""
    result = subprocess.run(
        [
            ffprobe_bin, "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height:format=duration",
            "-of", "json",
            path,
        ],
        capture_output=True, text=True, timeout=30,
    )
    if result.returncode != 0:
        raise RuntimeError(f"ffprobe failed for {path}:\n{result.stderr}")
    data = json.loads(result.stdout)
    stream = data["streams"][0]
    return float(data["format"]["duration"]), int(stream["width"]), int(stream["height"])


class FFmpegVideoResource(VideoResource):
    """Decodes single frames with ffmpeg, keeping the most recent ones in an LRU cache."""

    def __init__(
        self,
        path: str,
        media_from: float,
        media_to: float,
        width: int,
        height: int,
        fps: int,
        ffmpeg_bin: str = "ffmpeg",
        cache_size: int = 60,
    ):
        self.path = path
        self.media_from = media_from
        self.media_to = media_to
        self.width = width
        self.height = height
        self.fps = fps
        self.ffmpeg_bin = ffmpeg_bin
        self.cache_size = cache_size
        self._cache: OrderedDict[int, Image.Image] = OrderedDict()

    def frame_at(self, seconds: float) -> Image.Image:
        # Quantize to output frames so neighbouring requests share a decode.
        frame_index = int(max(0.0, min(seconds, self.length)) * self.fps)
        cached = self._cache.get(frame_index)
        if cached is not None:
            self._cache.move_to_end(frame_index)
            return cached

        image = self._decode(self.media_from + frame_index / self.fps)
        self._cache[frame_index] = image
        if len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return image

    def _decode(self, timestamp: float) -> Image.Image:
        result = subprocess.run(
            [
                self.ffmpeg_bin, "-v", "error",
                "-ss", f"{timestamp:.3f}",
                "-i", self.path,
                "-frames:v", "1",
                "-f", "rawvideo",
                "-pix_fmt", "rgba",
                "-",
            ],
            capture_output=True, timeout=60,
        )
        expected = self.width * self.height * 4
        if result.returncode != 0 or len(result.stdout) < expected:
            raise RuntimeError(
                f"ffmpeg could not decode {self.path} at {timestamp:.3f}s:\n"
                f"{result.stderr.decode(errors='replace')}"
            )
        return Image.frombytes("RGBA", (self.width, self.height), result.stdout[:expected])

    def close(self) -> None:
        self._cache.clear()


class FFmpegMediaResources(MediaResources):
    def __init__(self, fps: int, ffmpeg_bin: str = "ffmpeg", ffprobe_bin: str = "ffprobe"):
        self.fps = fps
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin
        self._loaded: list[FFmpegVideoResource] = []

    def load_video(self, path: str, start: float = 0.0, end: MediaEnd = MediaUntilEnd()) -> VideoResource:
        duration, width, height = probe_video(path, self.ffprobe_bin)
        resource = FFmpegVideoResource(
            path=path,
            media_from=start,
            media_to=media_end_absolute(end, start, duration),
            width=width,
            height=height,
            fps=self.fps,
            ffmpeg_bin=self.ffmpeg_bin,
        )
        self._loaded.append(resource)
        print(f"[media] Loaded {path} ({resource.length:.2f}s, {width}x{height})")
        return resource

    def close(self) -> None:
        for resource in self._loaded:
            resource.close()
        self._loaded.clear()
