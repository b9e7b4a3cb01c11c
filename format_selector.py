"""
Rendition selection
===================

Picks the single rendition to serve for a download request. The candidate
list comes from the metadata extractor; the order it arrives in is not a
priority order, ranking is decided here through a ``QualityRanking``.

Video requests prefer an mp4 carrying both tracks so no mux step is needed.
When no such rendition exists they fall back to the best video-only mp4,
which means the client receives a stream without audio.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Sequence


class OutputKind(str, Enum):
    VIDEO = 'video'
    AUDIO = 'audio'

    @classmethod
    def from_format_type(cls, format_type) -> 'OutputKind':
        """Audio for "mp3"; any other or missing ``formatType`` serves mp4"""
        return cls.AUDIO if format_type == 'mp3' else cls.VIDEO

    @property
    def extension(self) -> str:
        return 'mp3' if self is OutputKind.AUDIO else 'mp4'

    @property
    def mimetype(self) -> str:
        return 'audio/mpeg' if self is OutputKind.AUDIO else 'video/mp4'


class Tier(str, Enum):
    AUDIO_ONLY = 'audio-only'
    COMBINED = 'combined'
    VIDEO_ONLY = 'video-only'


@dataclass(frozen=True)
class Rendition:
    format_id: str
    container: str
    has_video: bool
    has_audio: bool
    quality_label: Optional[str] = None
    height: int = 0
    fps: float = 0
    video_bitrate: float = 0
    audio_bitrate: float = 0
    url: Optional[str] = None
    content_length: Optional[int] = None
    http_headers: Dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def audio_only(self) -> bool:
        return self.has_audio and not self.has_video


def video_quality(rendition: Rendition) -> tuple:
    return (rendition.height, rendition.fps, rendition.video_bitrate)


def audio_quality(rendition: Rendition) -> tuple:
    return (rendition.audio_bitrate,)


def overall_quality(rendition: Rendition) -> tuple:
    return (rendition.has_video, rendition.has_audio) + video_quality(rendition) + audio_quality(rendition)


class QualityRanking(NamedTuple):
    """Sort keys used to compare renditions; higher keys win"""
    overall: Callable[[Rendition], Any]
    video: Callable[[Rendition], Any]
    audio: Callable[[Rendition], Any]


DEFAULT_RANKING = QualityRanking(overall_quality, video_quality, audio_quality)


class Selection(NamedTuple):
    kind: OutputKind
    rendition: Optional[Rendition] = None
    tier: Optional[Tier] = None

    @property
    def found(self) -> bool:
        return self.rendition is not None


def _best(candidates: List[Rendition], key) -> Optional[Rendition]:
    """Highest candidate by ``key``; ties go to the first in input order"""
    if not candidates:
        return None
    return max(candidates, key=key)


def select_rendition(kind: OutputKind, renditions: Sequence[Rendition],
                     ranking: QualityRanking = DEFAULT_RANKING) -> Selection:
    """Choose the rendition to serve for ``kind``, or an empty Selection if none qualifies"""
    if kind is OutputKind.AUDIO:
        audio = [r for r in renditions if r.audio_only]
        chosen = _best(audio, ranking.audio)
        return Selection(kind, chosen, Tier.AUDIO_ONLY if chosen else None)

    combined = [r for r in renditions
                if r.has_video and r.has_audio and r.container == 'mp4']
    chosen = _best(combined, ranking.overall)
    if chosen:
        return Selection(kind, chosen, Tier.COMBINED)

    # Last resort: a video-only mp4, the client gets no audio track.
    video = [r for r in renditions if r.has_video and r.container == 'mp4']
    chosen = _best(video, ranking.video)
    if chosen:
        return Selection(kind, chosen, Tier.VIDEO_ONLY)

    return Selection(kind)
