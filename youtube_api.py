#!/usr/bin/env python3
"""
YouTube metadata and stream access
==================================

Resolves a YouTube URL into a title and a list of renditions through yt-dlp,
and streams the bytes of a chosen rendition with requests.

Network access can go through an optional ``Transport`` (proxy and/or
cookie file). It is always handed in by the caller:

    extractor = YouTubeExtractor()
    info = extractor.get_video_info(url, transport=Transport(proxy=...))
    for chunk in extractor.open_stream(info.renditions[0], transport):
        ...

Environment overrides for the request headers sent to YouTube:
    YDL_USER_AGENT, YDL_ACCEPT_LANGUAGE
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, NamedTuple, Optional
from urllib.parse import parse_qs, urlparse

import requests
import yt_dlp
from yt_dlp.utils import remove_terminal_sequences

from errors import UpstreamFailure, UpstreamRateLimited
from format_selector import Rendition

logger = logging.getLogger(__name__)

# Chunked range requests avoid YouTube throttling long single downloads
DEFAULT_CHUNK_SIZE = 10 * 1024 * 1024
READ_SIZE = 64 * 1024
REQUEST_TIMEOUT = 30

QUERY_HOSTS = {
    'youtube.com',
    'www.youtube.com',
    'm.youtube.com',
    'music.youtube.com',
    'gaming.youtube.com',
}
PATH_PREFIXES = ('embed', 'v', 'shorts', 'live')
VIDEO_ID_RE = re.compile(r'^[A-Za-z0-9_-]{11}$')

STREAMABLE_PROTOCOLS = {'http', 'https'}


def extract_video_id(url: str) -> Optional[str]:
    """Extract the video id from the supported YouTube URL shapes"""
    if not isinstance(url, str):
        return None
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if parsed.scheme not in ('http', 'https'):
        return None

    host = (parsed.hostname or '').lower()
    path_parts = [part for part in parsed.path.split('/') if part]
    candidate = None

    if host == 'youtu.be':
        candidate = path_parts[0] if path_parts else None
    elif host in QUERY_HOSTS:
        query = parse_qs(parsed.query)
        if 'v' in query:
            candidate = query['v'][0]
        elif len(path_parts) >= 2 and path_parts[0] in PATH_PREFIXES and host in ('youtube.com', 'www.youtube.com'):
            candidate = path_parts[1]

    if candidate and VIDEO_ID_RE.match(candidate):
        return candidate
    return None


def validate_url(url: str) -> bool:
    """Check if URL is a valid YouTube video URL"""
    return extract_video_id(url) is not None


def normalize_proxy_url(proxy: Optional[str]) -> Optional[str]:
    """Ensure proxies include a scheme so requests/yt-dlp understand them."""
    if not proxy:
        return None
    proxy = proxy.strip()
    if not proxy:
        return None
    if "://" not in proxy:
        proxy = f"http://{proxy}"
    return proxy


@dataclass(frozen=True)
class Transport:
    """Network route for yt-dlp and stream requests; default is a direct connection"""
    proxy: Optional[str] = None
    cookiefile: Optional[str] = None

    @property
    def proxied(self) -> bool:
        return self.proxy is not None

    def requests_proxies(self) -> Optional[Dict[str, str]]:
        """requests-friendly proxy dict"""
        if not self.proxy:
            return None
        return {
            'http': self.proxy,
            'https': self.proxy,
        }


DIRECT = Transport()


def _build_common_ydl_opts(transport: Optional[Transport] = None) -> Dict[str, Any]:
    """Build a yt-dlp options dict with headers/proxy/cookies support"""
    transport = transport or DIRECT
    opts: Dict[str, Any] = {
        'noplaylist': True,
        'quiet': True,
        'no_warnings': True,
        'skip_download': True,
        'logger': logger,
    }

    user_agent = os.getenv(
        'YDL_USER_AGENT',
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) '
        'AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
    )
    accept_language = os.getenv('YDL_ACCEPT_LANGUAGE', 'en-US,en;q=0.9')

    opts['http_headers'] = {
        'User-Agent': user_agent,
        'Accept-Language': accept_language,
        'Referer': 'https://www.youtube.com/',
        'Accept': '*/*'
    }

    if transport.proxy:
        opts['proxy'] = transport.proxy
    if transport.cookiefile:
        opts['cookiefile'] = transport.cookiefile

    return opts


def _is_rate_limited(exc: BaseException) -> bool:
    status = getattr(exc, 'status', None)
    response = getattr(exc, 'response', None)
    if status is None and response is not None:
        status = getattr(response, 'status_code', None)
    if status == 429:
        return True
    message = str(exc)
    return 'HTTP Error 429' in message or 'Too Many Requests' in message


def _upstream_error(exc: BaseException) -> Exception:
    """Map a yt-dlp/requests failure onto the API error it should surface as"""
    cause = exc
    exc_info = getattr(exc, 'exc_info', None)
    if exc_info and exc_info[1] is not None:
        cause = exc_info[1]
    if _is_rate_limited(exc) or _is_rate_limited(cause):
        return UpstreamRateLimited()

    message = remove_terminal_sequences(str(exc)).strip()
    if message.startswith('ERROR:'):
        message = message[len('ERROR:'):].strip()
    return UpstreamFailure(message or None)


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def rendition_from_format(fmt: Dict[str, Any]) -> Optional[Rendition]:
    """Convert a yt-dlp format dict, or None if it can't be streamed directly"""
    url = fmt.get('url')
    if not url or fmt.get('protocol', 'https') not in STREAMABLE_PROTOCOLS:
        return None

    has_video = fmt.get('vcodec') not in (None, 'none')
    has_audio = fmt.get('acodec') not in (None, 'none')
    if not has_video and not has_audio:
        return None

    return Rendition(
        format_id=str(fmt.get('format_id', '')),
        container=(fmt.get('ext') or '').lower(),
        has_video=has_video,
        has_audio=has_audio,
        quality_label=fmt.get('format_note'),
        height=_as_int(fmt.get('height')),
        fps=_as_float(fmt.get('fps')),
        video_bitrate=_as_float(fmt.get('vbr') or (fmt.get('tbr') if has_video else None)),
        audio_bitrate=_as_float(fmt.get('abr') or (fmt.get('tbr') if not has_video else None)),
        url=url,
        content_length=fmt.get('filesize') or None,
        http_headers=dict(fmt.get('http_headers') or {})
    )


class VideoInfo(NamedTuple):
    video_id: str
    title: str
    renditions: List[Rendition]


class RenditionStream:
    """
    Lazy byte stream for one rendition.

    The first range request is made on construction so that failures surface
    before a response is committed. Iteration is single use.
    """

    def __init__(self, session, rendition: Rendition, transport: Optional[Transport] = None,
                 chunk_size: int = DEFAULT_CHUNK_SIZE, timeout: int = REQUEST_TIMEOUT):
        if not rendition.url:
            raise UpstreamFailure(f'Format {rendition.format_id} has no stream URL')
        self.session = session
        self.rendition = rendition
        self.transport = transport or DIRECT
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._consumed = False
        self._response = None
        try:
            self._response = self._request(0)
        except Exception:
            self.close()
            raise

    def _request(self, start: int):
        end = start + self.chunk_size - 1
        if self.rendition.content_length:
            end = min(end, self.rendition.content_length - 1)

        headers = dict(self.rendition.http_headers)
        headers['Range'] = f'bytes={start}-{end}'
        try:
            response = self.session.get(
                self.rendition.url,
                headers=headers,
                stream=True,
                timeout=self.timeout,
                proxies=self.transport.requests_proxies()
            )
        except requests.RequestException as exc:
            raise _upstream_error(exc) from exc

        if response.status_code == 416 and start > 0:
            response.close()
            return None
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            response.close()
            if _is_rate_limited(exc):
                raise UpstreamRateLimited() from exc
            raise UpstreamFailure(f'Stream request failed with HTTP {response.status_code}') from exc
        return response

    def __iter__(self) -> Iterator[bytes]:
        if self._consumed:
            raise RuntimeError('Rendition stream has already been consumed')
        self._consumed = True
        return self._chunks()

    def _chunks(self) -> Iterator[bytes]:
        start = 0
        response = self._response
        try:
            while response is not None:
                requested = self.chunk_size
                received = 0
                with response:
                    for chunk in response.iter_content(chunk_size=READ_SIZE):
                        if chunk:
                            received += len(chunk)
                            yield chunk
                start += received

                total = self.rendition.content_length
                if response.status_code != 206 or received == 0:
                    break
                if total and start >= total:
                    break
                if not total and received < requested:
                    break
                self._response = response = self._request(start)
        except requests.RequestException as exc:
            logger.warning("Stream of format %s interrupted after %d bytes: %s",
                           self.rendition.format_id, start, exc)
            raise
        finally:
            self.close()

    def close(self):
        if self._response is not None:
            self._response.close()
            self._response = None
        close_session = getattr(self.session, 'close', None)
        if close_session:
            close_session()


class YouTubeExtractor:
    def __init__(self, ydl_factory=yt_dlp.YoutubeDL, session_factory=requests.Session,
                 chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.ydl_factory = ydl_factory
        self.session_factory = session_factory
        self.chunk_size = chunk_size

    def get_video_info(self, url: str, transport: Optional[Transport] = None) -> VideoInfo:
        """Get the title and streamable renditions for a video"""
        ydl_opts = _build_common_ydl_opts(transport)
        try:
            with self.ydl_factory(ydl_opts) as ydl:
                info = ydl.extract_info(url, download=False)
        except (yt_dlp.utils.DownloadError, yt_dlp.utils.ExtractorError) as exc:
            logger.warning("Error extracting video info for %s: %s", url, exc)
            raise _upstream_error(exc) from exc

        if not info:
            raise UpstreamFailure('Failed to extract video information')

        renditions = []
        for fmt in info.get('formats') or []:
            rendition = rendition_from_format(fmt)
            if rendition:
                renditions.append(rendition)

        logger.info("Resolved %s: %d of %d formats streamable",
                    info.get('id'), len(renditions), len(info.get('formats') or []))
        return VideoInfo(
            video_id=info.get('id') or extract_video_id(url) or '',
            title=info.get('title') or '',
            renditions=renditions
        )

    def open_stream(self, rendition: Rendition, transport: Optional[Transport] = None) -> RenditionStream:
        return RenditionStream(self.session_factory(), rendition, transport, chunk_size=self.chunk_size)
