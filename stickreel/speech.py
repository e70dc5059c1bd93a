"""Synthesized speech with per-character timing, and the TTS collaborators."""

import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import requests

from .errors import SpeechSynthesisError

if TYPE_CHECKING:
    from .subtitles import Subtitle

_END_OF_UTTERANCE_PAD = 0.1  # seconds added after the final character


@dataclass(frozen=True)
class SpeechWithTimestamps:
    audio: str  # base64-encoded audio payload
    chars: list[str]
    start_seconds: list[float]
    end_seconds: list[float]

    def __post_init__(self):
        if not (len(self.chars) == len(self.start_seconds) == len(self.end_seconds)):
            raise ValueError("chars, start_seconds, and end_seconds must have the same size")

    @property
    def length(self) -> float:
        return self.end_seconds[-1] if self.end_seconds else 0.0

    @property
    def text(self) -> str:
        return "".join(self.chars)

    def index_of(self, text: str) -> int:
        """Index of the first character of ``text`` in the utterance, or -1."""
        needle = list(text)
        n = len(needle)
        if n == 0:
            return -1
        for i in range(len(self.chars) - n + 1):
            if self.chars[i:i + n] == needle:
                return i
        return -1

    def range_of(self, text: str) -> tuple[float, float]:
        """
        Time range during which ``text`` is spoken.

        Starts at the first matched character's start. Ends at the following
        character's end, or 0.1s after the last character when the match runs
        to the end of the utterance. Returns (0, 0) for empty or unmatched text.
        """
        if not text:
            return (0.0, 0.0)
        start_index = self.index_of(text)
        if start_index == -1:
            return (0.0, 0.0)

        end_index = start_index + len(text) - 1
        start_time = self.start_seconds[start_index]
        if end_index < len(self.start_seconds) - 1:
            end_time = self.end_seconds[end_index + 1]
        else:
            end_time = self.end_seconds[end_index] + _END_OF_UTTERANCE_PAD
        return (start_time, end_time)

    @cached_property
    def subtitles(self) -> list["Subtitle"]:
        from .subtitles import generate_subtitles
        return generate_subtitles(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "audio": self.audio,
            "chars": self.chars,
            "start_seconds": self.start_seconds,
            "end_seconds": self.end_seconds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpeechWithTimestamps":
        return cls(
            audio=data["audio"],
            chars=list(data["chars"]),
            start_seconds=[float(s) for s in data["start_seconds"]],
            end_seconds=[float(s) for s in data["end_seconds"]],
        )


EMPTY_SPEECH = SpeechWithTimestamps("", [], [], [])


# ── Providers ─────────────────────────────────────────────────────────────────

class TTSProvider(ABC):
    """Text-to-speech collaborator returning audio plus character alignment."""

    @abstractmethod
    def synthesize(self, text: str) -> SpeechWithTimestamps:
        pass

    def __call__(self, text: str) -> SpeechWithTimestamps:
        return self.synthesize(text)


class NoOpTTSProvider(TTSProvider):
    """Silent placeholder: one character every 80ms, no audio payload."""

    def __init__(self, seconds_per_char: float = 0.08):
        self.seconds_per_char = seconds_per_char

    def synthesize(self, text: str) -> SpeechWithTimestamps:
        chars = list(text)
        step = self.seconds_per_char
        return SpeechWithTimestamps(
            audio="",
            chars=chars,
            start_seconds=[i * step for i in range(len(chars))],
            end_seconds=[(i + 1) * step for i in range(len(chars))],
        )


class CachedTTSProvider(TTSProvider):
    """
    Persist synthesis results as JSON files named by the SHA-256 of the text.

    Cache read/write problems are reported and never fatal: a broken entry is
    regenerated, a failed write only costs a repeat synthesis next time.
    """

    def __init__(self, delegate: TTSProvider, cache_dir: str = "tts-cache"):
        self.delegate = delegate
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def cache_key(text: str) -> str:
        return hashlib.sha256(text.encode("utf-8")).hexdigest()

    def _cache_path(self, text: str) -> Path:
        return self.cache_dir / f"{self.cache_key(text)}.json"

    def _read(self, text: str) -> Optional[SpeechWithTimestamps]:
        path = self._cache_path(text)
        if not path.exists():
            return None
        try:
            return SpeechWithTimestamps.from_dict(json.loads(path.read_text()))
        except (OSError, ValueError, KeyError, TypeError) as e:
            print(f"[speech] Error reading from cache {path.name}: {e}")
            return None

    def _write(self, text: str, speech: SpeechWithTimestamps) -> None:
        path = self._cache_path(text)
        try:
            path.write_text(json.dumps(speech.to_dict(), indent=2))
        except OSError as e:
            print(f"[speech] Error saving to cache {path.name}: {e}")

    def synthesize(self, text: str) -> SpeechWithTimestamps:
        if not text:
            return EMPTY_SPEECH
        cached = self._read(text)
        if cached is not None:
            return cached
        generated = self.delegate.synthesize(text)
        self._write(text, generated)
        return generated


def as_cached(provider: TTSProvider, cache_dir: str = "tts-cache") -> CachedTTSProvider:
    if isinstance(provider, CachedTTSProvider):
        return provider
    return CachedTTSProvider(provider, cache_dir)


class ElevenLabsTTSProvider(TTSProvider):
    """ElevenLabs text-to-speech with character timestamps."""

    API_URL = "https://api.elevenlabs.io/v1/text-to-speech/{voice_id}/with-timestamps"

    def __init__(
        self,
        api_key: str,
        voice_id: str,
        model_id: str,
        language_code: Optional[str] = None,
        voice_settings: Optional[dict[str, Any]] = None,
        timeout: float = 120,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.language_code = language_code
        self.voice_settings = voice_settings
        self.timeout = timeout
        self._session = session or requests.Session()

    def synthesize(self, text: str) -> SpeechWithTimestamps:
        payload: dict[str, Any] = {"text": text, "model_id": self.model_id}
        if self.language_code:
            payload["language_code"] = self.language_code
        if self.voice_settings:
            payload["voice_settings"] = self.voice_settings

        print(f"[speech] Synthesizing {len(text)} chars with voice {self.voice_id}...")
        try:
            response = self._session.post(
                self.API_URL.format(voice_id=self.voice_id),
                headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise SpeechSynthesisError(f"ElevenLabs request failed: {e}") from e
        except ValueError as e:
            raise SpeechSynthesisError(f"ElevenLabs returned invalid JSON: {e}") from e

        alignment = data.get("normalized_alignment") or data.get("alignment")
        if not alignment:
            raise SpeechSynthesisError("ElevenLabs response has no alignment")

        return SpeechWithTimestamps(
            audio=data["audio_base64"],
            chars=alignment["characters"],
            start_seconds=alignment["character_start_times_seconds"],
            end_seconds=alignment["character_end_times_seconds"],
        )
