"""Group timed speech characters into subtitle chunks, and export them as SRT."""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .speech import SpeechWithTimestamps

_WORD_BREAKS = ".,!?;:"


@dataclass(frozen=True)
class WordTiming:
    text: str
    start_index: int
    end_index: int  # inclusive
    start_time: float
    end_time: float


@dataclass(frozen=True)
class Subtitle:
    text: str
    start_time: float
    end_time: float
    word_timings: list[WordTiming]
    chars: list[str]
    char_starts: list[float]
    char_ends: list[float]


def _extract_words(speech: "SpeechWithTimestamps") -> list[WordTiming]:
    words: list[WordTiming] = []
    current: list[str] = []
    word_start = -1

    for i, char in enumerate(speech.chars):
        if not char.strip() or char in _WORD_BREAKS:
            if current and word_start >= 0:
                # Punctuation stays attached to the word it ends.
                word_end = i - 1 if not char.strip() else i
                text = "".join(current).strip()
                if text:
                    words.append(WordTiming(
                        text=text,
                        start_index=word_start,
                        end_index=word_end,
                        start_time=speech.start_seconds[word_start],
                        end_time=speech.end_seconds[word_end],
                    ))
                current = []
                word_start = -1
        else:
            if word_start == -1:
                word_start = i
            current.append(char)

    if current and word_start >= 0:
        words.append(WordTiming(
            text="".join(current).strip(),
            start_index=word_start,
            end_index=len(speech.chars) - 1,
            start_time=speech.start_seconds[word_start],
            end_time=speech.end_seconds[-1],
        ))
    return words


def _make_subtitle(speech: "SpeechWithTimestamps", words: list[WordTiming]) -> Subtitle:
    first = words[0].start_index
    last = words[-1].end_index + 1
    chars = speech.chars[first:last]
    return Subtitle(
        text="".join(chars),
        start_time=words[0].start_time,
        end_time=words[-1].end_time,
        word_timings=[
            replace(w, start_index=w.start_index - first, end_index=w.end_index - first)
            for w in words
        ],
        chars=chars,
        char_starts=speech.start_seconds[first:last],
        char_ends=speech.end_seconds[first:last],
    )


def generate_subtitles(
    speech: "SpeechWithTimestamps",
    max_duration: float = 4.0,
    pause_threshold: float = 0.5,
    max_chars_per_line: int = 50,
) -> list[Subtitle]:
    """
    Split speech into subtitle chunks.

    A chunk closes after the word that makes it longer than
    ``max_chars_per_line`` or ``max_duration``, before a silence longer than
    ``pause_threshold``, or at the final word.
    """
    words = _extract_words(speech)
    subtitles: list[Subtitle] = []
    chunk: list[WordTiming] = []

    for i, word in enumerate(words):
        chunk.append(word)
        chunk_length = chunk[-1].end_index - chunk[0].start_index + 1
        chunk_duration = word.end_time - chunk[0].start_time
        is_last = i == len(words) - 1

        if (
            chunk_length > max_chars_per_line
            or chunk_duration > max_duration
            or (not is_last and words[i + 1].start_time - word.end_time > pause_threshold)
            or is_last
        ):
            subtitles.append(_make_subtitle(speech, chunk))
            chunk = []

    return subtitles


def subtitle_at(subtitles: list[Subtitle], seconds: float) -> Optional[Subtitle]:
    for subtitle in subtitles:
        if subtitle.start_time <= seconds <= subtitle.end_time:
            return subtitle
    return None


def _srt_time(seconds: float) -> str:
    total_ms = int(round(seconds * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def to_srt(subtitles: list[Subtitle], offset: float = 0.0) -> str:
    lines = []
    for i, subtitle in enumerate(subtitles, 1):
        lines.append(str(i))
        lines.append(f"{_srt_time(subtitle.start_time + offset)} --> {_srt_time(subtitle.end_time + offset)}")
        lines.append(subtitle.text)
        lines.append("")
    return "\n".join(lines) + ("\n" if lines else "")
