"""Tests for the declarative sequence scope and the resolved video definition."""

import dataclasses

import pytest

from stickreel.errors import MediaUnavailableError, SpeechSynthesisError, StickreelError
from stickreel.media import MediaFixedDuration
from stickreel.speech import NoOpTTSProvider, SpeechWithTimestamps, TTSProvider
from stickreel.timeline import (
    AfterPrevious,
    BeforeNext,
    FixedDuration,
    SequenceDef,
    StartAt,
    TimelineBuilder,
    UntilEnd,
)
from stickreel.video import (
    ResourceAudioDefinition,
    SequenceDefinition,
    TTSAudioDefinition,
    VideoDefinition,
    build_video,
    frames_of,
)


def noop(canvas):
    pass


def _spans(video: VideoDefinition) -> dict[int, tuple[float, float]]:
    return {s.tag: (round(s.start, 6), round(s.end, 6)) for s in video.sequence_definitions}


class FailingProvider(TTSProvider):
    def synthesize(self, text: str) -> SpeechWithTimestamps:
        raise SpeechSynthesisError("service down")


class TestSequenceScope:
    def test_fixed_sequences_chain(self):
        def program(scope):
            scope.sequence(noop, end=FixedDuration(2.0), tag=1)
            scope.sequence(noop, end=FixedDuration(3.0), tag=2)

        video = build_video(program, NoOpTTSProvider())
        assert _spans(video) == {1: (0.0, 2.0), 2: (2.0, 5.0)}
        assert video.duration == 5.0

    def test_default_end_is_before_next(self):
        def program(scope):
            scope.sequence(noop, tag=1)
            scope.sequence(noop, start=StartAt(5.0), end=FixedDuration(1.0), tag=2)

        assert _spans(build_video(program, NoOpTTSProvider())) == {1: (0.0, 5.0), 2: (5.0, 6.0)}

    def test_subsequence_is_zero_based_and_spliced(self):
        def program(scope):
            scope.sequence(noop, end=FixedDuration(1.0), tag=1)
            scope.subsequence(lambda sub: sub.sequence(noop, end=FixedDuration(2.0), tag=2))
            scope.sequence(noop, end=FixedDuration(1.0), tag=3)

        assert _spans(build_video(program, NoOpTTSProvider())) == {
            1: (0.0, 1.0), 2: (1.0, 3.0), 3: (3.0, 4.0),
        }

    def test_scope_exposes_fps(self):
        seen = []
        build_video(lambda scope: seen.append(scope.fps), NoOpTTSProvider(), fps=30)
        assert seen == [30]


class TestTTS:
    """NoOp speech runs 0.08s per character."""

    def test_audio_placed_and_following_sequence_waits(self):
        def program(scope):
            scope.tts("Hello world")
            scope.sequence(noop, end=FixedDuration(1.0), tag=1)

        video = build_video(program, NoOpTTSProvider())
        (audio,) = video.audio_definitions
        assert isinstance(audio, TTSAudioDefinition)
        assert (audio.start, audio.end) == pytest.approx((0.0, 0.88))
        assert audio.text == "Hello world"
        assert _spans(video)[1] == pytest.approx((0.88, 1.88))

    def test_sequence_on_trigger_text(self):
        """A sequence triggered by a word starts when it is spoken and runs to the block end."""
        def program(scope):
            scope.tts("Hello world", lambda s: s.sequence_on("world", noop, tag=1))

        video = build_video(program, NoOpTTSProvider())
        assert _spans(video)[1] == pytest.approx((0.48, 0.88))

    def test_sequence_on_with_no_end_follows_the_word(self):
        def program(scope):
            scope.tts("Hello world again", lambda s: s.sequence_on("world", noop, end=None, tag=1))

        video = build_video(program, NoOpTTSProvider())
        # "world" is followed by a space, so its range ends with that character.
        assert _spans(video)[1] == pytest.approx((0.48, 0.96))

    def test_missing_trigger_is_skipped(self, capsys):
        def program(scope):
            assert scope.tts("Hello", lambda s: s.sequence_on("bye", noop, tag=1)) is not None

        video = build_video(program, NoOpTTSProvider())
        assert video.sequence_definitions == []
        assert "Trigger text not found" in capsys.readouterr().out

    def test_body_delegates_to_scope(self):
        """Inside a TTS block the plain scope operations are still available."""
        def program(scope):
            scope.tts("Hi there", lambda s: (
                s.sequence(noop, end=FixedDuration(0.2), tag=1),
                s.sequence(noop, end=UntilEnd(), tag=2),
            ))

        video = build_video(program, NoOpTTSProvider())
        spans = _spans(video)
        assert spans[1] == pytest.approx((0.0, 0.2))
        assert spans[2] == pytest.approx((0.2, 0.64))

    def test_range_and_subtitle_helpers(self):
        seen = {}

        def body(s):
            seen["range"] = s.range_of("there")
            seen["active"] = s.is_active("there", 0.5)
            seen["subtitle"] = s.subtitle_at(0.1)

        build_video(lambda scope: scope.tts("Hi there", body), NoOpTTSProvider())
        assert seen["range"] == pytest.approx((0.24, 0.74))
        assert seen["active"] is True
        assert seen["subtitle"].text == "Hi there"

    def test_explicit_end_overrides_speech_length(self):
        def program(scope):
            scope.tts("Hi", lambda s: s.sequence(noop, tag=1), end=FixedDuration(2.0))

        assert _spans(build_video(program, NoOpTTSProvider()))[1] == pytest.approx((0.0, 2.0))

    def test_synthesis_failure_propagates(self):
        with pytest.raises(SpeechSynthesisError):
            build_video(lambda scope: scope.tts("Hi"), FailingProvider())


class TestVideoResources:
    def test_with_video_spans_the_clip(self, fake_media):
        def program(scope):
            scope.sequence(noop, end=FixedDuration(1.0), tag=1)
            scope.with_video(
                "clip.mp4",
                lambda sub, clip: sub.sequence(noop, end=UntilEnd(), tag=2),
                media_start=2.0,
                media_end=MediaFixedDuration(3.0),
            )

        video = build_video(program, NoOpTTSProvider(), media=fake_media)
        assert _spans(video)[2] == (1.0, 4.0)
        (audio,) = video.audio_definitions
        assert isinstance(audio, ResourceAudioDefinition)
        assert (audio.start, audio.end, audio.media_from, audio.media_to) == (1.0, 4.0, 2.0, 5.0)

    def test_video_sequence_draws_frames(self, fake_media):
        video = build_video(lambda scope: scope.video_sequence("clip.mp4"), NoOpTTSProvider(), media=fake_media)
        (sequence,) = video.sequence_definitions
        assert (sequence.start, sequence.end) == (0.0, 10.0)

    def test_without_media_backend(self):
        with pytest.raises(MediaUnavailableError, match="clip.mp4") as excinfo:
            build_video(lambda scope: scope.video_sequence("clip.mp4"), NoOpTTSProvider())
        assert isinstance(excinfo.value, StickreelError)


class TestVideoDefinition:
    def _video(self) -> VideoDefinition:
        return VideoDefinition([
            SequenceDefinition(0.0, 1.0, noop, tag=1),
            SequenceDefinition(0.5, 2.0, noop, tag=2),
            ResourceAudioDefinition(0.0, 5.0, "music.mp3", 0.0, 5.0),
        ])

    def test_duration_ignores_audio(self):
        assert self._video().duration == 2.0
        assert VideoDefinition([]).duration == 0.0

    def test_immutable_once_built(self):
        video = self._video()
        assert isinstance(video.components, tuple)
        with pytest.raises(dataclasses.FrozenInstanceError):
            video.components = ()

    def test_total_frames(self):
        assert self._video().total_frames(30) == 60

    def test_active_sequences_half_open(self):
        video = self._video()
        assert [s.tag for s in video.active_sequences(0, 10)] == [1]
        assert [s.tag for s in video.active_sequences(5, 10)] == [1, 2]
        assert [s.tag for s in video.active_sequences(10, 10)] == [2]
        assert video.active_sequences(20, 10) == []

    def test_frames_of_tolerates_float_error(self):
        assert frames_of(0.1 * 3, 10) == 3
        assert frames_of(0.7 * 3, 10) == 21
        assert frames_of(2.5, 1) == 2

    def test_current_subtitle(self):
        def program(scope):
            scope.sequence(noop, end=FixedDuration(1.0))
            scope.tts("Hi there")

        video = build_video(program, NoOpTTSProvider())
        assert video.current_subtitle(0.5) is None
        assert video.current_subtitle(1.1).text == "Hi there"

    def test_from_timeline_requires_built_timeline(self):
        tl = TimelineBuilder()
        tl.add(AfterPrevious(), BeforeNext(), [SequenceDef(noop)])
        with pytest.raises(ValueError):
            VideoDefinition.from_timeline(tl.items)
