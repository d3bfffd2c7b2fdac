"""
Music library domain models.

Contains data structures for tracks and playlists.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NamedTuple, Optional

# Catalog files may use the web client's camelCase keys
_CAMEL_CASE_KEYS = {
    "coverImageURL": "cover_image_url",
    "coverImageUrl": "cover_image_url",
    "isPublic": "is_public",
    "createdBy": "created_by",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}


def _normalize_keys(data: dict[str, Any]) -> dict[str, Any]:
    return {_CAMEL_CASE_KEYS.get(key, key): value for key, value in data.items()}


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if value:
        return datetime.fromisoformat(str(value))
    return datetime.now()


class Track(NamedTuple):
    """Represents a playable track with metadata.

    Tracks are supplied by the catalog (search results, playlist contents,
    history); the player never fetches or modifies them.
    """

    id: str
    title: str
    artist: str
    album: str = ""
    cover_image_url: str = ""
    duration: float = 0.0  # in seconds
    url: str = ""  # Playable media reference (URL or local path)
    genre: Optional[str] = None
    year: Optional[int] = None
    explicit: bool = False
    likes: int = 0
    plays: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        """Build a track from a catalog record (snake_case or camelCase keys).

        Raises:
            KeyError: If id, title or artist is missing
        """
        data = _normalize_keys(data)
        return cls(
            id=str(data["id"]),
            title=data["title"],
            artist=data["artist"],
            album=data.get("album", ""),
            cover_image_url=data.get("cover_image_url", ""),
            duration=float(data.get("duration", 0.0)),
            url=data.get("url", ""),
            genre=data.get("genre"),
            year=data.get("year"),
            explicit=bool(data.get("explicit", False)),
            likes=int(data.get("likes", 0)),
            plays=int(data.get("plays", 0)),
        )


@dataclass
class Playlist:
    """An ordered, named collection of tracks."""

    id: str
    name: str
    tracks: list[Track] = field(default_factory=list)
    description: Optional[str] = None
    cover_image_url: Optional[str] = None
    is_public: bool = False
    created_by: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def index_of(self, track_id: str) -> Optional[int]:
        """Get the 0-based position of a track, or None if absent."""
        for i, track in enumerate(self.tracks):
            if track.id == track_id:
                return i
        return None

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], tracks_by_id: dict[str, Track]
    ) -> "Playlist":
        """Build a playlist whose ``songs``/``tracks`` entries are track IDs or records."""
        data = _normalize_keys(data)
        entries = data.get("tracks", data.get("songs", []))
        tracks = []
        for entry in entries:
            if isinstance(entry, dict):
                tracks.append(Track.from_dict(entry))
            else:
                tracks.append(tracks_by_id[str(entry)])

        return cls(
            id=str(data["id"]),
            name=data["name"],
            tracks=tracks,
            description=data.get("description"),
            cover_image_url=data.get("cover_image_url"),
            is_public=bool(data.get("is_public", False)),
            created_by=data.get("created_by", ""),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )
