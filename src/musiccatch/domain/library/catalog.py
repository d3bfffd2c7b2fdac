"""
In-memory music catalog: tracks, playlists, search and discovery.
"""

import json
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger

from .models import Playlist, Track


class CatalogError(Exception):
    """Raised when a catalog file cannot be read or is malformed."""


class Catalog:
    """Tracks and playlists available to the player."""

    def __init__(
        self, tracks: list[Track], playlists: Optional[list[Playlist]] = None
    ):
        self._tracks: dict[str, Track] = {track.id: track for track in tracks}
        self._playlists: dict[str, Playlist] = {
            playlist.id: playlist for playlist in playlists or []
        }

    @property
    def tracks(self) -> list[Track]:
        return list(self._tracks.values())

    @property
    def playlists(self) -> list[Playlist]:
        return list(self._playlists.values())

    def get_track(self, track_id: str) -> Optional[Track]:
        return self._tracks.get(track_id)

    def get_playlist(self, playlist_id: str) -> Optional[Playlist]:
        return self._playlists.get(playlist_id)

    def find_playlist(self, name_or_id: str) -> Optional[Playlist]:
        """Look up a playlist by ID, then by case-insensitive name."""
        playlist = self._playlists.get(name_or_id)
        if playlist:
            return playlist

        wanted = name_or_id.strip().lower()
        for playlist in self._playlists.values():
            if playlist.name.lower() == wanted:
                return playlist
        return None

    def search(self, query: str) -> list[Track]:
        """Search tracks by title or artist (case-insensitive substring)."""
        query = query.strip().lower()
        if not query:
            return []

        return [
            track
            for track in self._tracks.values()
            if query in track.title.lower() or query in track.artist.lower()
        ]

    def trending(self, limit: int = 10) -> list[Track]:
        """Most played tracks first."""
        return sorted(self._tracks.values(), key=lambda t: t.plays, reverse=True)[
            :limit
        ]

    def recommendations(self, seed: Optional[Track] = None, limit: int = 5) -> list[Track]:
        """Recommend tracks: same genre as the seed first, then most played.

        The seed itself is never recommended.
        """
        candidates = [
            track
            for track in self._tracks.values()
            if seed is None or track.id != seed.id
        ]
        by_plays = sorted(candidates, key=lambda t: t.plays, reverse=True)

        if seed is None or not seed.genre:
            return by_plays[:limit]

        same_genre = [t for t in by_plays if t.genre == seed.genre]
        others = [t for t in by_plays if t.genre != seed.genre]
        return (same_genre + others)[:limit]

    # Playlist management

    def create_playlist(
        self,
        name: str,
        description: Optional[str] = None,
        created_by: str = "",
    ) -> Playlist:
        playlist = Playlist(
            id=f"playlist-{time.time_ns()}",
            name=name,
            description=description,
            created_by=created_by,
        )
        self._playlists[playlist.id] = playlist
        logger.info(f"Created playlist {playlist.id}: {name}")
        return playlist

    def add_to_playlist(self, playlist_id: str, track: Track) -> bool:
        """Append a track to a playlist. Returns False if the playlist is unknown
        or already contains the track."""
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            logger.warning(f"add_to_playlist: unknown playlist {playlist_id}")
            return False
        if playlist.index_of(track.id) is not None:
            return False

        playlist.tracks.append(track)
        playlist.updated_at = datetime.now()
        self._tracks.setdefault(track.id, track)
        return True

    def remove_from_playlist(self, playlist_id: str, track_id: str) -> bool:
        playlist = self._playlists.get(playlist_id)
        if playlist is None:
            return False

        position = playlist.index_of(track_id)
        if position is None:
            return False

        del playlist.tracks[position]
        playlist.updated_at = datetime.now()
        return True

    def delete_playlist(self, playlist_id: str) -> bool:
        removed = self._playlists.pop(playlist_id, None)
        if removed:
            logger.info(f"Deleted playlist {playlist_id}: {removed.name}")
        return removed is not None


def catalog_from_dict(data: dict) -> Catalog:
    """Build a catalog from ``{"tracks": [...], "playlists": [...]}``.

    Raises:
        CatalogError: If a record is missing required fields or references
            an unknown track
    """
    try:
        tracks = [Track.from_dict(record) for record in data.get("tracks", [])]
        tracks_by_id = {track.id: track for track in tracks}
        playlists = [
            Playlist.from_dict(record, tracks_by_id)
            for record in data.get("playlists", [])
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise CatalogError(f"Invalid catalog record: {e}") from e

    return Catalog(tracks, playlists)


def load_catalog(path: Path) -> Catalog:
    """Load a JSON catalog file.

    Raises:
        CatalogError: If the file is missing, unreadable or malformed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Cannot read catalog {path}: {e}") from e

    catalog = catalog_from_dict(data)
    logger.info(
        f"Loaded catalog {path}: {len(catalog.tracks)} tracks, "
        f"{len(catalog.playlists)} playlists"
    )
    return catalog


SAMPLE_CATALOG = {
    "tracks": [
        {
            "id": "1",
            "title": "Blinding Lights",
            "artist": "The Weeknd",
            "album": "After Hours",
            "coverImageURL": "https://images.unsplash.com/photo-1493225457124-a3eb161ffa5f?w=400&h=400&fit=crop",
            "duration": 200,
            "url": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-1.mp3",
            "genre": "Synthwave",
            "year": 2020,
            "explicit": False,
            "likes": 1200000,
            "plays": 89000000,
        },
        {
            "id": "2",
            "title": "Watermelon Sugar",
            "artist": "Harry Styles",
            "album": "Fine Line",
            "coverImageURL": "https://images.unsplash.com/photo-1438761681033-6461ffad8d80?w=400&h=400&fit=crop",
            "duration": 174,
            "url": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-2.mp3",
            "genre": "Pop",
            "year": 2020,
            "explicit": False,
            "likes": 890000,
            "plays": 67000000,
        },
        {
            "id": "3",
            "title": "Levitating",
            "artist": "Dua Lipa",
            "album": "Future Nostalgia",
            "coverImageURL": "https://images.unsplash.com/photo-1500648767791-00dcc994a43e?w=400&h=400&fit=crop",
            "duration": 203,
            "url": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-3.mp3",
            "genre": "Pop",
            "year": 2020,
            "explicit": False,
            "likes": 750000,
            "plays": 45000000,
        },
        {
            "id": "4",
            "title": "Good 4 U",
            "artist": "Olivia Rodrigo",
            "album": "Sour",
            "coverImageURL": "https://images.unsplash.com/photo-1516280440614-37939bbacd81?w=400&h=400&fit=crop",
            "duration": 178,
            "url": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-4.mp3",
            "genre": "Pop Rock",
            "year": 2021,
            "explicit": False,
            "likes": 920000,
            "plays": 78000000,
        },
        {
            "id": "5",
            "title": "Stay",
            "artist": "The Kid LAROI, Justin Bieber",
            "album": "F*ck Love 3",
            "coverImageURL": "https://images.unsplash.com/photo-1470225620780-dba8ba36b745?w=400&h=400&fit=crop",
            "duration": 141,
            "url": "https://www.soundhelix.com/examples/mp3/SoundHelix-Song-5.mp3",
            "genre": "Pop",
            "year": 2021,
            "explicit": True,
            "likes": 680000,
            "plays": 56000000,
        },
    ],
    "playlists": [
        {
            "id": "1",
            "name": "My Favorites",
            "description": "All my favorite songs in one place",
            "songs": ["1", "2", "3"],
            "isPublic": False,
            "createdBy": "user123",
        },
        {
            "id": "2",
            "name": "Workout Hits",
            "description": "High energy songs for working out",
            "songs": ["3", "4", "5"],
            "isPublic": True,
            "createdBy": "user123",
        },
    ],
}


def sample_catalog() -> Catalog:
    """Built-in catalog used when no catalog file is configured."""
    return catalog_from_dict(SAMPLE_CATALOG)
