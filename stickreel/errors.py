"""Exception types raised across the stickreel pipeline."""


class StickreelError(Exception):
    """Base class for every error raised by stickreel."""


class FigureMismatchError(StickreelError, ValueError):
    """Two figures with different names were asked to interpolate."""


class TimelineClosedError(StickreelError, RuntimeError):
    """A component was added to a timeline after it was built."""


class SpeechSynthesisError(StickreelError):
    """The text-to-speech collaborator failed."""


class UnsupportedFormatError(StickreelError, ValueError):
    """The requested output container cannot carry the requested encoding."""


class EncoderError(StickreelError):
    """ffmpeg exited with a non-zero status."""

    def __init__(self, exit_code: int, stderr_tail: str = ""):
        self.exit_code = exit_code
        self.stderr_tail = stderr_tail
        message = f"ffmpeg failed with exit code: {exit_code}"
        if stderr_tail:
            message += f"\n{stderr_tail}"
        super().__init__(message)


class ExportCancelled(StickreelError):
    """Export was cancelled between frames."""


class ProjectFormatError(StickreelError, ValueError):
    """A persisted project or keyframe payload could not be decoded."""


class MediaUnavailableError(StickreelError):
    """Video resources were requested without a media backend."""
