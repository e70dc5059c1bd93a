"""Shared fakes for collaborators that would otherwise need ffmpeg or the network."""

import pytest
from PIL import Image

from stickreel.media import MediaEnd, MediaResources, MediaUntilEnd, VideoResource, media_end_absolute


class FakeVideo(VideoResource):
    def __init__(self, path: str, media_from: float, media_to: float, color=(255, 0, 0, 255)):
        self.path = path
        self.media_from = media_from
        self.media_to = media_to
        self.color = color
        self.requested: list[float] = []

    def frame_at(self, seconds: float) -> Image.Image:
        self.requested.append(seconds)
        return Image.new("RGBA", (8, 8), self.color)


class FakeMedia(MediaResources):
    """Every file is ``source_length`` seconds long."""

    def __init__(self, source_length: float = 10.0):
        self.source_length = source_length
        self.loaded: list[FakeVideo] = []

    def load_video(self, path: str, start: float = 0.0, end: MediaEnd = MediaUntilEnd()) -> VideoResource:
        video = FakeVideo(path, start, media_end_absolute(end, start, self.source_length))
        self.loaded.append(video)
        return video


@pytest.fixture
def fake_media() -> FakeMedia:
    return FakeMedia()
