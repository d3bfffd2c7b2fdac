"""
Recently played tracks and listening history.
"""

from collections import deque
from datetime import datetime
from typing import Optional

from musiccatch.domain.library.models import Track

from .models import PlayHistoryEntry

DEFAULT_HISTORY_LIMIT = 50


class RecentlyPlayed:
    """Bounded list of tracks, most recent first, each track at most once."""

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        if limit < 1:
            raise ValueError(f"History limit must be positive, got {limit}")
        self._limit = limit
        self._tracks: list[Track] = []

    def record(self, track: Track) -> None:
        self._tracks = [track] + [t for t in self._tracks if t.id != track.id]
        del self._tracks[self._limit :]

    def tracks(self) -> tuple[Track, ...]:
        return tuple(self._tracks)

    def __len__(self) -> int:
        return len(self._tracks)


class PlaybackHistory:
    """Bounded log of finished listens.

    A listen is opened when a track starts and closed when it stops being
    current, at which point it is appended with the seconds actually heard.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        self._entries: deque[PlayHistoryEntry] = deque(maxlen=limit)
        self._open: Optional[tuple[Track, datetime]] = None
        self.total = 0

    def open(self, track: Track, started_at: Optional[datetime] = None) -> None:
        self._open = (track, started_at or datetime.now())

    def close(self, listened_seconds: float) -> Optional[PlayHistoryEntry]:
        """Finish the open listen, if any, and return the new entry."""
        if self._open is None:
            return None

        track, started_at = self._open
        self._open = None
        entry = PlayHistoryEntry(
            track=track,
            played_at=started_at,
            listened_seconds=max(0.0, listened_seconds),
        )
        self._entries.append(entry)
        self.total += 1
        return entry

    def discard(self) -> None:
        """Drop the open listen without recording it (e.g. the track failed)."""
        self._open = None

    @property
    def has_open(self) -> bool:
        return self._open is not None

    def entries(self) -> tuple[PlayHistoryEntry, ...]:
        """Entries oldest first."""
        return tuple(self._entries)
