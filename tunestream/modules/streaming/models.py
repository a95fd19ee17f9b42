"""
Domain models for the streaming module.

All cached models have to_dict() and from_dict() for serialization. The dict
form uses the wire field names of the HTTP API.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from tunestream.common.logging import parse_duration


@dataclass(frozen=True)
class SongMetadata:
    """Best-match song metadata. Never mutated after creation."""
    title: str
    duration_seconds: int
    artist: str = ""

    def to_dict(self) -> dict:
        return {
            'title': self.title,
            'durationSeconds': self.duration_seconds,
            'artist': self.artist,
        }

    @classmethod
    def from_dict(cls, d: dict) -> 'SongMetadata':
        return cls(
            title=d['title'],
            duration_seconds=parse_duration(d.get('durationSeconds')) or 0,
            artist=d.get('artist') or '',
        )

    @classmethod
    def from_ytdlp(cls, info: Dict[str, Any]) -> 'SongMetadata':
        """
        Build metadata from a yt-dlp info dict.

        Raises:
            KeyError: info has no usable title
        """
        title = info.get('title')
        if not isinstance(title, str) or not title.strip():
            raise KeyError('title')

        duration = parse_duration(info.get('duration'))
        if duration is None:
            duration = parse_duration(info.get('duration_string')) or 0

        artist = info.get('artist') or info.get('creator') or info.get('uploader') or ''

        return cls(title=title.strip(), duration_seconds=duration, artist=str(artist).strip())


@dataclass(frozen=True)
class StreamDescriptor:
    """Time-limited direct audio source locator."""
    source_url: str

    def to_dict(self) -> dict:
        return {'sourceURL': self.source_url}

    @classmethod
    def from_dict(cls, d: dict) -> 'StreamDescriptor':
        return cls(source_url=d['sourceURL'])


@dataclass
class PrewarmResult:
    """Outcome of pre-warming one query."""
    query: Any
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        result = {'query': self.query, 'success': self.success}
        if self.error is not None:
            result['error'] = self.error
        return result


@dataclass
class CacheStatus:
    """Aggregate cache statistics."""
    db_size: int
    memory_usage: str
    song_entries: int
    stream_entries: int
    max_entries: int
    ttl: int
    stream_ttl: int
    over_capacity: bool = False

    def to_dict(self) -> dict:
        return {
            'dbSize': self.db_size,
            'memoryUsage': self.memory_usage,
            'cacheStats': {
                'songs': self.song_entries,
                'streams': self.stream_entries,
                'overCapacity': self.over_capacity,
            },
            'maxEntries': self.max_entries,
            'ttl': self.ttl,
            'streamTtl': self.stream_ttl,
        }


@dataclass
class StreamPlan:
    """
    Everything the HTTP layer needs to answer a stream request.

    ``headers`` are staged but not committed; ``stream`` already produced its
    first chunk.
    """
    query: str
    stream: Any  # TranscodeStream
    headers: Dict[str, str] = field(default_factory=dict)
    metadata: Optional[SongMetadata] = None
