"""
Keeps user preferences and listening history in the database.

PreferenceSync is an ordinary controller observer: it diffs each snapshot
against the last one it saw and writes only what changed.
"""

from typing import Callable, Optional

from loguru import logger

from musiccatch.core import database

from .controller import PlaybackController
from .models import PlaybackSnapshot


class PreferenceSync:
    """Restores preferences into a controller and persists later changes."""

    def __init__(self, controller: PlaybackController):
        self._controller = controller
        self._liked: frozenset[str] = frozenset()
        self._followed: frozenset[str] = frozenset()
        self._saved: frozenset[str] = frozenset()
        self._history_total = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    def restore(self) -> None:
        """Load persisted preferences into the controller."""
        liked = database.get_liked_track_ids()
        followed = database.get_followed_artist_ids()
        saved = database.get_saved_playlist_ids()

        # Baseline first so the restore itself isn't written back
        self._liked = frozenset(liked)
        self._followed = frozenset(followed)
        self._saved = frozenset(saved)

        self._controller.load_preferences(liked, followed, saved)
        self._history_total = self._controller.snapshot().history_total
        logger.info(
            f"Restored preferences: {len(liked)} liked tracks, "
            f"{len(followed)} followed artists, {len(saved)} saved playlists"
        )

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._controller.subscribe(self._on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, snapshot: PlaybackSnapshot) -> None:
        if snapshot.liked_track_ids != self._liked:
            database.set_tracks_liked(snapshot.liked_track_ids - self._liked, True)
            database.set_tracks_liked(self._liked - snapshot.liked_track_ids, False)
            self._liked = snapshot.liked_track_ids

        if snapshot.followed_artist_ids != self._followed:
            database.set_artists_followed(
                snapshot.followed_artist_ids - self._followed, True
            )
            database.set_artists_followed(
                self._followed - snapshot.followed_artist_ids, False
            )
            self._followed = snapshot.followed_artist_ids

        if snapshot.saved_playlist_ids != self._saved:
            database.add_saved_playlists(snapshot.saved_playlist_ids - self._saved)
            self._saved = snapshot.saved_playlist_ids

        new_entries = snapshot.history_total - self._history_total
        if new_entries > 0:
            for entry in snapshot.history[-new_entries:]:
                database.record_play(
                    track_id=entry.track.id,
                    title=entry.track.title,
                    artist=entry.track.artist,
                    album=entry.track.album,
                    played_at=entry.played_at,
                    listened_seconds=entry.listened_seconds,
                )
            self._history_total = snapshot.history_total
