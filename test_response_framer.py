import pytest
from flask import Flask

from conftest import make_rendition
from errors import NoQualifyingRendition
from format_selector import OutputKind, Selection, Tier
from response_framer import (
    content_disposition,
    frame_download,
    require_rendition,
    sanitize_title,
)


@pytest.mark.parametrize('title, expected', [
    ('Foo/Bar:Baz*?"<>|\U0001F600', 'FooBarBaz'),
    ('Café del Mar', 'Caf del Mar'),
    ('back\\slash', 'backslash'),
    ('tab\there\nnewline', 'tabherenewline'),
    ('  padded  ', 'padded'),
    ('\U0001F600\U0001F600', 'download'),
    ('', 'download'),
    (None, 'download'),
])
def test_sanitize_title(title, expected):
    assert sanitize_title(title) == expected


def test_content_disposition_uses_kind_extension():
    assert content_disposition('My Song', OutputKind.AUDIO) == 'attachment; filename="My Song.mp3"'
    assert content_disposition('My Clip', OutputKind.VIDEO) == 'attachment; filename="My Clip.mp4"'


def test_require_rendition_returns_chosen():
    rendition = make_rendition('a', 'audio', 128)
    assert require_rendition(Selection(OutputKind.AUDIO, rendition, Tier.AUDIO_ONLY)) is rendition


@pytest.mark.parametrize('kind, message', [
    (OutputKind.AUDIO, 'No audio-only format found.'),
    (OutputKind.VIDEO, 'No downloadable MP4 format found.'),
])
def test_require_rendition_raises_kind_specific_not_found(kind, message):
    with pytest.raises(NoQualifyingRendition) as excinfo:
        require_rendition(Selection(kind))
    assert excinfo.value.status_code == 404
    assert excinfo.value.to_dict() == {'success': False, 'error': message}


def test_frame_download_streams_chunks():
    app = Flask(__name__)
    selection = Selection(OutputKind.VIDEO, make_rendition('c', 'combined', 720), Tier.COMBINED)

    with app.test_request_context('/api/download', method='POST'):
        response = frame_download(selection, 'Clip', iter([b'abc', b'def']))
        assert response.status_code == 200
        assert response.mimetype == 'video/mp4'
        assert response.headers['Content-Disposition'] == 'attachment; filename="Clip.mp4"'
        assert 'Content-Length' not in response.headers
        assert b''.join(response.response) == b'abcdef'


def test_frame_download_refuses_none_found():
    with pytest.raises(NoQualifyingRendition):
        frame_download(Selection(OutputKind.AUDIO), 'Clip', iter([]))
