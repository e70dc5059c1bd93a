"""
Declarative video-building scope.

A video program is a plain function taking a ``SequenceScope`` and calling
``sequence`` / ``subsequence`` / ``tts`` / ``with_video`` on it in order.
Speech synthesis blocks in program order; every call resolves against the
scope's timeline immediately.
"""

from typing import TYPE_CHECKING, Any, Callable, Optional

from .media import MediaEnd, MediaResources, MediaUntilEnd, NoOpMediaResources, VideoResource
from .speech import SpeechWithTimestamps, TTSProvider
from .subtitles import Subtitle, subtitle_at
from .timeline import (
    FADE,
    AbsoluteTiming,
    AfterPrevious,
    BeforeNext,
    EndAt,
    FixedDuration,
    ResourceAudio,
    SequenceDef,
    SequenceEnd,
    SequenceStart,
    StartAt,
    TimedComp,
    TimelineBuilder,
    Transition,
    TTSAudio,
    UntilEnd,
    VidComp,
)

if TYPE_CHECKING:
    from .render import SequenceCanvas

Content = Callable[["SequenceCanvas"], None]


class SequenceScope:
    def __init__(
        self,
        tts: TTSProvider,
        media: Optional[MediaResources] = None,
        fps: int = 60,
    ):
        self.tts_provider = tts
        self.media = media or NoOpMediaResources()
        self.fps = fps
        self.timeline = TimelineBuilder()

    def sequence(
        self,
        content: Content,
        start: SequenceStart = AfterPrevious(),
        end: SequenceEnd = BeforeNext(),
        enter: Transition = FADE,
        exit: Transition = FADE,
        tag: Optional[int] = None,
    ) -> SequenceDef:
        definition = SequenceDef(content=content, enter=enter, exit=exit, tag=tag)
        self.timeline.add(start, end, [definition])
        return definition

    def _subsequence(
        self,
        start: SequenceStart,
        end: SequenceEnd,
        body: Optional[Callable[["SequenceScope"], Any]],
        spanning: list[VidComp],
        resolve_disabled: bool = False,
    ) -> AbsoluteTiming:
        child = SequenceScope(self.tts_provider, self.media, self.fps)
        if body is not None:
            body(child)
        timing = self.timeline.add_timeline(start, end, child.build())
        self.timeline.add(
            StartAt(timing.start),
            EndAt(timing.end),
            spanning,
            resolve_disabled=resolve_disabled,
        )
        return timing

    def subsequence(
        self,
        body: Callable[["SequenceScope"], Any],
        start: SequenceStart = AfterPrevious(),
        end: SequenceEnd = BeforeNext(),
    ) -> AbsoluteTiming:
        """Run ``body`` on a fresh zero-based scope and splice it in here."""
        return self._subsequence(start, end, body, [])

    def tts(
        self,
        text: str,
        body: Optional[Callable[["SequenceWithTTSScope"], Any]] = None,
        start: SequenceStart = AfterPrevious(),
        end: Optional[SequenceEnd] = None,
    ) -> AbsoluteTiming:
        """
        Speak ``text`` and anchor the visuals declared in ``body`` to the speech.

        The audio never closes open BeforeNext visuals by itself; the
        sub-timeline opened right after it at the same start does.
        """
        speech = self.tts_provider.synthesize(text)
        audio = TTSAudio(audio_base64=speech.audio, text=text, speech=speech)
        block_end = end or FixedDuration(speech.length)

        timing = self.timeline.add(start, block_end, [audio], resolve_disabled=True)

        def run_body(scope: SequenceScope) -> None:
            if body is not None:
                body(SequenceWithTTSScope(speech, scope))

        return self._subsequence(StartAt(timing.start), block_end, run_body, [])

    def with_video(
        self,
        path: str,
        body: Callable[["SequenceScope", VideoResource], Any],
        media_start: float = 0.0,
        media_end: MediaEnd = MediaUntilEnd(),
        start: Callable[[float], SequenceStart] = lambda length: AfterPrevious(),
        end: Callable[[float], SequenceEnd] = lambda length: FixedDuration(length),
    ) -> AbsoluteTiming:
        """Open a sub-timeline sized from the video's length, with its audio track spanning it."""
        video = self.media.load_video(path, media_start, media_end)
        return self._subsequence(
            start(video.length),
            end(video.length),
            lambda scope: body(scope, video),
            [ResourceAudio(file=path, media_from=video.media_from, media_to=video.media_to)],
        )

    def video_sequence(
        self,
        path: str,
        content: Optional[Callable[["SequenceCanvas", VideoResource], None]] = None,
        media_start: float = 0.0,
        media_end: MediaEnd = MediaUntilEnd(),
        start: Callable[[float], SequenceStart] = lambda length: AfterPrevious(),
        end: Callable[[float], SequenceEnd] = lambda length: FixedDuration(length),
    ) -> AbsoluteTiming:
        """A video clip drawn full-frame (or by ``content``) for as long as it plays."""
        def draw(canvas: "SequenceCanvas", video: VideoResource) -> None:
            if content is not None:
                content(canvas, video)
            else:
                canvas.draw_video(video)

        return self.with_video(
            path,
            lambda scope, video: scope.sequence(lambda canvas: draw(canvas, video), end=UntilEnd()),
            media_start=media_start,
            media_end=media_end,
            start=start,
            end=end,
        )

    def build(self) -> list[TimedComp]:
        return self.timeline.build()


class SequenceWithTTSScope:
    """A ``SequenceScope`` inside a TTS block, aware of the speech's timing."""

    def __init__(self, speech: SpeechWithTimestamps, scope: SequenceScope):
        self.speech = speech
        self.scope = scope

    def __getattr__(self, name: str) -> Any:
        return getattr(self.scope, name)

    def range_of(self, text: str) -> tuple[float, float]:
        return self.speech.range_of(text)

    def is_active(self, text: str, seconds: float) -> bool:
        """Whether ``text`` is being spoken ``seconds`` into the speech."""
        start, end = self.range_of(text)
        return start <= seconds <= end

    def subtitle_at(self, seconds: float) -> Optional[Subtitle]:
        return subtitle_at(self.speech.subtitles, seconds)

    def sequence_on(
        self,
        trigger_text: str,
        content: Content,
        end: Optional[SequenceEnd] = BeforeNext(),
        enter: Transition = FADE,
        exit: Transition = FADE,
        tag: Optional[int] = None,
    ) -> Optional[SequenceDef]:
        """
        Start a sequence when ``trigger_text`` is spoken.

        With ``end=None`` the sequence ends when the trigger text does. Text
        that never occurs in the speech is reported and skipped.
        """
        if self.speech.index_of(trigger_text) == -1:
            print(f"[sequence] Trigger text not found in speech: {trigger_text!r}")
            return None
        range_start, range_end = self.speech.range_of(trigger_text)
        return self.scope.sequence(
            content,
            start=StartAt(range_start),
            end=end if end is not None else EndAt(range_end),
            enter=enter,
            exit=exit,
            tag=tag,
        )
