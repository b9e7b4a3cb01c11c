import pytest

from app import create_app
from config import ServerConfig
from format_selector import Rendition
from youtube_api import VideoInfo

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def make_rendition(format_id, kind, quality=0, container='mp4', **kwargs):
    """kind is one of "audio", "video", "combined"; quality drives the relevant ranking"""
    has_video = kind in ('video', 'combined')
    has_audio = kind in ('audio', 'combined')
    kwargs.setdefault('height', quality if has_video else 0)
    kwargs.setdefault('audio_bitrate', quality if has_audio else 0)
    return Rendition(
        format_id=format_id,
        container=container,
        has_video=has_video,
        has_audio=has_audio,
        url=f"https://media.example/{format_id}",
        **kwargs
    )


class FakeExtractor:
    def __init__(self, renditions=None, title="Test Video", info_error=None, stream_error=None,
                 payload=b"media-bytes"):
        self.renditions = list(renditions or [])
        self.title = title
        self.info_error = info_error
        self.stream_error = stream_error
        self.payload = payload
        self.calls = []

    def get_video_info(self, url, transport=None):
        self.calls.append(('get_video_info', url, transport))
        if self.info_error:
            raise self.info_error
        return VideoInfo(video_id="dQw4w9WgXcQ", title=self.title, renditions=self.renditions)

    def open_stream(self, rendition, transport=None):
        self.calls.append(('open_stream', rendition.format_id, transport))
        if self.stream_error:
            raise self.stream_error
        return iter([self.payload])


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def make_client(extractor):
    def _make(config=None, fake=None):
        config = config or ServerConfig(rate_limiting=False, trust_proxy_hops=0)
        app = create_app(config, extractor=fake or extractor)
        app.config['TESTING'] = True
        return app.test_client()
    return _make


@pytest.fixture
def client(make_client):
    return make_client()
