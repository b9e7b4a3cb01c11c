"""Turn a rendition selection into download response headers and a streamed body"""

import re
from typing import Iterable

from flask import Response, stream_with_context

from errors import NoQualifyingRendition
from format_selector import OutputKind, Rendition, Selection

# Anything outside printable ASCII, then characters filesystems reject
_NON_PRINTABLE = re.compile(r'[^\x20-\x7E]')
_FORBIDDEN = re.compile(r'[\\/:*?"<>|]')

FALLBACK_TITLE = 'download'

NOT_FOUND_MESSAGES = {
    OutputKind.AUDIO: 'No audio-only format found.',
    OutputKind.VIDEO: 'No downloadable MP4 format found.',
}


def sanitize_title(title: str) -> str:
    """
    Reduce an untrusted video title to something safe inside a quoted filename.

    Drops characters outside printable ASCII and the ones filesystems reject,
    then trims surrounding whitespace. A title with nothing left becomes
    "download" so the file never ends up named ".mp4".
    """
    cleaned = _FORBIDDEN.sub('', _NON_PRINTABLE.sub('', title or '')).strip()
    return cleaned or FALLBACK_TITLE


def content_disposition(title: str, kind: OutputKind) -> str:
    return f'attachment; filename="{sanitize_title(title)}.{kind.extension}"'


def require_rendition(selection: Selection) -> Rendition:
    if not selection.found:
        raise NoQualifyingRendition(NOT_FOUND_MESSAGES[selection.kind])
    return selection.rendition


def frame_download(selection: Selection, title: str, chunks: Iterable[bytes]) -> Response:
    rendition = require_rendition(selection)
    headers = {'Content-Disposition': content_disposition(title, selection.kind)}
    if rendition.content_length:
        headers['Content-Length'] = str(rendition.content_length)

    return Response(
        stream_with_context(chunks),
        status=200,
        mimetype=selection.kind.mimetype,
        headers=headers
    )
