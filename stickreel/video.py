"""Resolved video definition: what plays when, in absolute seconds."""

import math
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from .media import MediaResources
from .sequence import SequenceScope
from .speech import SpeechWithTimestamps, TTSProvider
from .subtitles import Subtitle, subtitle_at
from .timeline import FADE, ResourceAudio, SequenceDef, TimedComp, Transition, TTSAudio


def frames_of(seconds: float, fps: int) -> int:
    # The epsilon keeps 0.1 * 30 from landing on frame 2.
    return math.floor(seconds * fps + 1e-6)


def seconds_of(frames: int, fps: int) -> float:
    return frames / fps


@dataclass(frozen=True)
class SequenceDefinition:
    start: float
    end: float
    content: Callable[[Any], None]
    enter: Transition = FADE
    exit: Transition = FADE
    tag: Optional[int] = None

    def frame_range(self, fps: int) -> range:
        return range(frames_of(self.start, fps), frames_of(self.end, fps))


@dataclass(frozen=True)
class TTSAudioDefinition:
    start: float
    end: float
    audio_base64: str
    text: str
    speech: SpeechWithTimestamps


@dataclass(frozen=True)
class ResourceAudioDefinition:
    start: float
    end: float
    file: str
    media_from: float
    media_to: float


AudioDefinition = Union[TTSAudioDefinition, ResourceAudioDefinition]
VideoComponent = Union[SequenceDefinition, TTSAudioDefinition, ResourceAudioDefinition]


def _to_definition(item: TimedComp) -> VideoComponent:
    start = item.timing.start
    end = item.timing.absolute_end()
    if end is None:
        raise ValueError("Timeline must be built before it becomes a video")

    comp = item.comp
    if isinstance(comp, SequenceDef):
        return SequenceDefinition(start, end, comp.content, comp.enter, comp.exit, comp.tag)
    if isinstance(comp, TTSAudio):
        return TTSAudioDefinition(start, end, comp.audio_base64, comp.text, comp.speech)
    if isinstance(comp, ResourceAudio):
        return ResourceAudioDefinition(start, end, comp.file, comp.media_from, comp.media_to)
    raise TypeError(f"Unknown component: {type(comp).__name__}")


@dataclass(frozen=True)
class VideoDefinition:
    components: tuple[VideoComponent, ...]

    def __post_init__(self):
        object.__setattr__(self, "components", tuple(self.components))

    @classmethod
    def from_timeline(cls, timeline: list[TimedComp]) -> "VideoDefinition":
        return cls(tuple(_to_definition(item) for item in timeline))

    @property
    def audio_definitions(self) -> list[AudioDefinition]:
        return [c for c in self.components if isinstance(c, (TTSAudioDefinition, ResourceAudioDefinition))]

    @property
    def sequence_definitions(self) -> list[SequenceDefinition]:
        return [c for c in self.components if isinstance(c, SequenceDefinition)]

    @property
    def duration(self) -> float:
        """Latest sequence end; audio alone never extends the video."""
        return max((s.end for s in self.sequence_definitions), default=0.0)

    def total_frames(self, fps: int) -> int:
        return frames_of(self.duration, fps)

    def active_sequences(self, frame: int, fps: int) -> list[SequenceDefinition]:
        """Sequences whose [start, end) frame range contains ``frame``, in program order."""
        return [s for s in self.sequence_definitions if frame in s.frame_range(fps)]

    def current_subtitle(self, seconds: float) -> Optional[Subtitle]:
        for audio in self.audio_definitions:
            if isinstance(audio, TTSAudioDefinition) and audio.start <= seconds <= audio.end:
                found = subtitle_at(audio.speech.subtitles, seconds - audio.start)
                if found is not None:
                    return found
        return None


def build_video(
    program: Callable[[SequenceScope], Any],
    tts: TTSProvider,
    fps: int = 60,
    media: Optional[MediaResources] = None,
) -> VideoDefinition:
    """
    Run a video program and resolve it into a ``VideoDefinition``.

    Args:
        program: Function that declares the video against the scope it is given.
        tts: Speech provider; its errors propagate unchanged.
        fps: Frame rate the program may consult through ``scope.fps``.
        media: Video resource loader, required only by ``with_video``.

    Returns:
        The resolved definition.
    """
    scope = SequenceScope(tts, media, fps)
    program(scope)
    video = VideoDefinition.from_timeline(scope.build())
    print(
        f"[video] Built {len(video.sequence_definitions)} sequences, "
        f"{len(video.audio_definitions)} audio tracks, {video.duration:.2f}s"
    )
    return video
