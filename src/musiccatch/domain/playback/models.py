"""
Playback domain models.

Contains the queue, state and settings owned by the playback controller,
and the read-only snapshot handed to observers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from musiccatch.domain.library.models import Playlist, Track


class RepeatMode(str, Enum):
    """Repeat behaviour at the end of a track or queue."""

    OFF = "off"  # stop at queue end
    ALL = "all"  # loop the queue
    ONE = "one"  # loop the current track

    def next(self) -> "RepeatMode":
        """Cycle off -> all -> one -> off."""
        modes = list(RepeatMode)
        return modes[(modes.index(self) + 1) % len(modes)]


class PlaybackStatus(str, Enum):
    """Mutually exclusive player status. Loading is tracked separately."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class FailureReason(str, Enum):
    LOAD = "load"  # sink could not load/decode the media
    TIMEOUT = "timeout"  # media never became ready
    SINK = "sink"  # sink command raised


@dataclass(frozen=True)
class PlaybackQueue:
    """Ordered tracks plus a pointer to the current one.

    Invariant: index is -1 for an empty queue, otherwise a valid offset.
    Queues are replaced wholesale; moving the pointer returns a new queue.
    """

    tracks: tuple[Track, ...] = ()
    index: int = -1
    name: Optional[str] = None  # e.g. playlist name
    source_id: Optional[str] = None  # e.g. playlist ID

    def __post_init__(self) -> None:
        if not isinstance(self.tracks, tuple):
            object.__setattr__(self, "tracks", tuple(self.tracks))
        if not self.tracks:
            if self.index != -1:
                raise ValueError(f"Empty queue must have index -1, got {self.index}")
        elif not 0 <= self.index < len(self.tracks):
            raise ValueError(
                f"Queue index {self.index} out of range for {len(self.tracks)} tracks"
            )

    def __len__(self) -> int:
        return len(self.tracks)

    @property
    def is_empty(self) -> bool:
        return not self.tracks

    @property
    def current(self) -> Optional[Track]:
        return self.tracks[self.index] if self.tracks else None

    def with_index(self, index: int) -> "PlaybackQueue":
        return PlaybackQueue(self.tracks, index, self.name, self.source_id)

    def index_of(self, track_id: str) -> Optional[int]:
        for i, track in enumerate(self.tracks):
            if track.id == track_id:
                return i
        return None

    @classmethod
    def of(
        cls,
        tracks: list[Track] | tuple[Track, ...],
        index: int = 0,
        name: Optional[str] = None,
        source_id: Optional[str] = None,
    ) -> "PlaybackQueue":
        """Build a queue, pointing at ``index`` (or -1 when there are no tracks)."""
        return cls(tuple(tracks), index if tracks else -1, name, source_id)

    @classmethod
    def single(cls, track: Track) -> "PlaybackQueue":
        return cls((track,), 0)

    @classmethod
    def from_playlist(cls, playlist: Playlist, index: int = 0) -> "PlaybackQueue":
        return cls.of(playlist.tracks, index, name=playlist.name, source_id=playlist.id)


@dataclass(frozen=True)
class PlaybackFailed:
    """A playback failure reported to observers instead of raised."""

    message: str
    track: Optional[Track]
    reason: FailureReason = FailureReason.LOAD


@dataclass
class PlaybackState:
    """Mutable player state. Written only by the playback controller."""

    current_track: Optional[Track] = None
    queue: Optional[PlaybackQueue] = None
    status: PlaybackStatus = PlaybackStatus.IDLE
    is_loading: bool = False
    position: float = 0.0  # seconds, 0 <= position <= duration
    duration: float = 0.0  # as reported by the sink, 0 until known
    volume: float = 0.7  # nominal volume, 0.0-1.0
    is_muted: bool = False
    previous_volume: float = 0.7  # restored when unmuting
    error: Optional[PlaybackFailed] = None

    @property
    def effective_volume(self) -> float:
        """Volume actually sent to the sink."""
        return 0.0 if self.is_muted else self.volume

    @property
    def index(self) -> int:
        return self.queue.index if self.queue else -1


@dataclass
class PlaybackSettings:
    """User playback preferences."""

    shuffle: bool = False
    repeat: RepeatMode = RepeatMode.OFF
    crossfade: float = 0.0  # seconds; stored, not applied
    autoplay: bool = True
    high_quality: bool = False


@dataclass(frozen=True)
class PlayHistoryEntry:
    """A finished listen: when the track started and how long it was heard."""

    track: Track
    played_at: datetime
    listened_seconds: float


@dataclass(frozen=True)
class PlaybackSnapshot:
    """Read-only view of the controller handed to observers."""

    state: PlaybackState
    settings: PlaybackSettings
    liked_track_ids: frozenset[str] = frozenset()
    followed_artist_ids: frozenset[str] = frozenset()
    saved_playlist_ids: frozenset[str] = frozenset()
    recently_played: tuple[Track, ...] = ()
    history: tuple[PlayHistoryEntry, ...] = ()
    history_total: int = 0  # entries ever recorded, including ones evicted
    load_token: int = 0

    @property
    def phase(self) -> str:
        """'loading' while media is loading, otherwise the status value."""
        if self.state.is_loading:
            return "loading"
        return self.state.status.value

    @property
    def is_playing(self) -> bool:
        return self.state.status is PlaybackStatus.PLAYING and not self.state.is_loading


@dataclass
class UserPreferences:
    """Liked tracks, followed artists and saved playlists."""

    liked_track_ids: set[str] = field(default_factory=set)
    followed_artist_ids: set[str] = field(default_factory=set)
    saved_playlist_ids: set[str] = field(default_factory=set)

    def toggle_like(self, track_id: str) -> bool:
        """Add or remove a liked track. Returns True if the track is now liked."""
        if track_id in self.liked_track_ids:
            self.liked_track_ids.discard(track_id)
            return False
        self.liked_track_ids.add(track_id)
        return True
