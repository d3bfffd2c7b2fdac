"""
Playback controller - the single authority for what is playing.

Translates user intents (play, pause, next, ...) into a consistent
PlaybackState and drives an AudioSink for the actual sound output.

Everything runs on the host event loop: commands come from the UI and sink
callbacks arrive through per-load SinkEvents objects. Each load is tagged
with a token; callbacks carrying an outdated token are ignored, so a slow
superseded load can never overwrite newer state.

Commands never raise. Sink failures become a PlaybackFailed error on the
state, and commands that don't apply to the current state are no-ops.
"""

import math
import random
import time
from dataclasses import replace
from typing import Callable, Iterable, Optional

from loguru import logger

from musiccatch.domain.library.models import Playlist, Track

from .history import DEFAULT_HISTORY_LIMIT, PlaybackHistory, RecentlyPlayed
from .models import (
    FailureReason,
    PlaybackFailed,
    PlaybackQueue,
    PlaybackSettings,
    PlaybackSnapshot,
    PlaybackState,
    PlaybackStatus,
    RepeatMode,
    UserPreferences,
)
from .sink import AudioSink

Notifier = Callable[[str, str, str], None]
Observer = Callable[[PlaybackSnapshot], None]

DEFAULT_LOAD_TIMEOUT = 15.0
DEFAULT_RESTART_THRESHOLD = 5.0
DEFAULT_VOLUME = 0.7

_REPEAT_MESSAGES = {
    RepeatMode.OFF: ("Repeat disabled", "Repeat turned off"),
    RepeatMode.ALL: ("Repeat playlist", "Repeating playlist"),
    RepeatMode.ONE: ("Repeat track", "Repeating current track"),
}

_FAILURE_MESSAGES = {
    FailureReason.LOAD: ("Playback Error", "Failed to load the audio track"),
    FailureReason.TIMEOUT: ("Playback Error", "Timed out loading the audio track"),
    FailureReason.SINK: ("Playback Failed", "Unable to play this track"),
}


def log_notifier(title: str, message: str, urgency: str = "normal") -> None:
    """Default notifier: user-facing notifications only go to the log."""
    logger.info(f"Notification [{urgency}] {title}: {message}")


class _LoadEvents:
    """SinkEvents bound to one load token."""

    def __init__(self, controller: "PlaybackController", token: int):
        self._controller = controller
        self._token = token

    def on_load_start(self) -> None:
        self._controller._handle_load_start(self._token)

    def on_ready(self) -> None:
        self._controller._handle_ready(self._token)

    def on_time_update(self, seconds: float) -> None:
        self._controller._handle_time_update(self._token, seconds)

    def on_duration_known(self, seconds: float) -> None:
        self._controller._handle_duration_known(self._token, seconds)

    def on_ended(self) -> None:
        self._controller._handle_ended(self._token)

    def on_error(self, reason: str) -> None:
        self._controller._handle_error(self._token, reason)


class PlaybackController:
    """Owns player state, settings and user preferences.

    Args:
        sink: Audio output to drive
        settings: Initial playback settings
        clock: Monotonic time source in seconds (used for load timeouts)
        rng: Random source for shuffle
        notifier: Receives user-facing notifications (title, message, urgency)
        history_limit: Size of recently-played and listening history
        load_timeout: Seconds a load may stay pending before it fails (None disables)
        restart_threshold: previous() restarts the track past this many seconds
        volume: Initial nominal volume (0.0-1.0)
    """

    def __init__(
        self,
        sink: AudioSink,
        settings: Optional[PlaybackSettings] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        notifier: Optional[Notifier] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        load_timeout: Optional[float] = DEFAULT_LOAD_TIMEOUT,
        restart_threshold: float = DEFAULT_RESTART_THRESHOLD,
        volume: float = DEFAULT_VOLUME,
    ):
        self._sink = sink
        self._settings = settings or PlaybackSettings()
        self._clock = clock
        self._rng = rng or random.Random()
        self._notify = notifier or log_notifier
        self._load_timeout = load_timeout
        self._restart_threshold = restart_threshold

        volume = _clamp(volume, 0.0, 1.0)
        self._state = PlaybackState(
            volume=volume,
            is_muted=volume == 0,
            previous_volume=volume if volume > 0 else DEFAULT_VOLUME,
        )
        self._preferences = UserPreferences()
        self._recent = RecentlyPlayed(history_limit)
        self._history = PlaybackHistory(history_limit)

        self._observers: list[Observer] = []
        self._load_token = 0
        self._load_deadline: Optional[float] = None

    # Read-only views

    @property
    def state(self) -> PlaybackState:
        """Copy of the current state."""
        return replace(self._state)

    @property
    def settings(self) -> PlaybackSettings:
        """Copy of the current settings."""
        return replace(self._settings)

    @property
    def liked_track_ids(self) -> frozenset[str]:
        return frozenset(self._preferences.liked_track_ids)

    def is_liked(self, track_id: str) -> bool:
        return track_id in self._preferences.liked_track_ids

    def snapshot(self) -> PlaybackSnapshot:
        return PlaybackSnapshot(
            state=replace(self._state),
            settings=replace(self._settings),
            liked_track_ids=frozenset(self._preferences.liked_track_ids),
            followed_artist_ids=frozenset(self._preferences.followed_artist_ids),
            saved_playlist_ids=frozenset(self._preferences.saved_playlist_ids),
            recently_played=self._recent.tracks(),
            history=self._history.entries(),
            history_total=self._history.total,
            load_token=self._load_token,
        )

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer called after every state change.

        Returns:
            Callable that unsubscribes the observer
        """
        if observer not in self._observers:
            self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # Transport commands

    def play(
        self,
        track: Track,
        queue: PlaybackQueue | Playlist | None = None,
        index: Optional[int] = None,
    ) -> bool:
        """Start playing ``track``, replacing the current track and queue.

        Without a queue the track plays as a single-track queue. When ``index``
        does not point at ``track`` the position is looked up by track ID.

        Returns:
            True if the sink accepted the load request. Playback itself starts
            later, when the sink reports the media ready.
        """
        resolved = self._resolve_queue(track, queue, index)

        self._finish_listen()
        self._recent.record(track)
        self._history.open(track)

        state = self._state
        state.current_track = track
        state.queue = resolved
        state.status = PlaybackStatus.PLAYING
        state.is_loading = True
        state.position = 0.0
        state.duration = 0.0
        state.error = None

        logger.info(
            f"Play: {track.title} by {track.artist} "
            f"(index {resolved.index + 1}/{len(resolved)})"
        )
        self._notify("Now Playing", f"{track.title} by {track.artist}", "low")

        started = self._start_load(track)
        if started:
            self._emit()
        return started

    def pause(self) -> None:
        if self._state.status is not PlaybackStatus.PLAYING:
            logger.debug(f"pause() ignored in state {self._state.status.value}")
            return

        self._call_sink("pause", self._sink.pause)
        self._state.status = PlaybackStatus.PAUSED
        self._emit()

    def resume(self) -> None:
        state = self._state

        if state.status is PlaybackStatus.PAUSED:
            if not self._call_sink("play", self._sink.play):
                self._fail("Unable to resume playback", FailureReason.SINK)
                return
            state.status = PlaybackStatus.PLAYING
            self._emit()
            return

        if state.status is PlaybackStatus.IDLE and state.current_track is not None:
            # Stopped or failed: load the current media again
            track = state.current_track
            self._history.open(track)
            state.status = PlaybackStatus.PLAYING
            state.is_loading = True
            state.position = 0.0
            state.error = None
            logger.info(f"Resume (reload): {track.title}")
            if self._start_load(track):
                self._emit()
            return

        logger.debug(f"resume() ignored in state {state.status.value}")

    def stop(self) -> None:
        state = self._state
        if state.current_track is None:
            logger.debug("stop() ignored: nothing loaded")
            return

        self._cancel_load()
        self._finish_listen()
        self._call_sink("pause", self._sink.pause)
        self._call_sink("seek", self._sink.seek, 0.0)

        state.status = PlaybackStatus.IDLE
        state.is_loading = False
        state.position = 0.0
        logger.info(f"Stopped: {state.current_track.title}")
        self._emit()

    def next(self) -> None:
        """Advance within the queue (random pick when shuffling).

        Past the end of the queue this wraps with repeat ``all`` and stops
        otherwise. The shuffle pick may land on the current track again.
        """
        queue = self._state.queue
        if queue is None or queue.is_empty:
            logger.debug("next() ignored: no active queue")
            return

        if self._settings.shuffle:
            target = self._rng.randrange(len(queue))
        else:
            target = queue.index + 1
            if target >= len(queue):
                if self._settings.repeat is RepeatMode.ALL:
                    target = 0
                else:
                    logger.info("End of queue reached")
                    self.stop()
                    return

        self.play(queue.tracks[target], queue, target)

    def previous(self) -> None:
        """Restart the current track, or go back one track near its start."""
        state = self._state
        if state.current_track is not None and state.position > self._restart_threshold:
            self.seek_to(0.0)
            return

        queue = state.queue
        if queue is None or queue.is_empty:
            logger.debug("previous() ignored: no active queue")
            return

        if self._settings.shuffle:
            target = self._rng.randrange(len(queue))
        else:
            target = queue.index - 1
            if target < 0:
                if self._settings.repeat is RepeatMode.ALL:
                    target = len(queue) - 1
                else:
                    logger.debug("previous() ignored: already at first track")
                    return

        self.play(queue.tracks[target], queue, target)

    def seek_to(self, seconds: float) -> None:
        """Seek within the current track, clamped to [0, duration]."""
        state = self._state
        if state.current_track is None:
            logger.debug("seek_to() ignored: nothing loaded")
            return

        duration = state.duration or state.current_track.duration
        target = max(0.0, float(seconds))
        if duration > 0:
            target = min(target, duration)

        self._call_sink("seek", self._sink.seek, target)
        state.position = target
        self._emit()

    # Volume

    def set_volume(self, volume: float) -> None:
        """Set nominal volume (0.0-1.0). Zero mutes; any other level unmutes
        and becomes the level restored after unmuting."""
        volume = _clamp(float(volume), 0.0, 1.0)
        state = self._state
        state.volume = volume
        state.is_muted = volume == 0
        if volume > 0:
            state.previous_volume = volume

        self._call_sink("set_volume", self._sink.set_volume, state.effective_volume)
        self._emit()

    def toggle_mute(self) -> None:
        state = self._state
        if state.is_muted:
            state.is_muted = False
            state.volume = state.previous_volume
        else:
            state.is_muted = True

        self._call_sink("set_volume", self._sink.set_volume, state.effective_volume)
        self._emit()

    # Playback settings

    def toggle_shuffle(self) -> None:
        self._settings.shuffle = not self._settings.shuffle
        if self._settings.shuffle:
            self._notify("Shuffle enabled", "Playing randomly", "low")
        else:
            self._notify("Shuffle disabled", "Playing in order", "low")
        self._emit()

    def toggle_repeat(self) -> None:
        self._settings.repeat = self._settings.repeat.next()
        title, message = _REPEAT_MESSAGES[self._settings.repeat]
        self._notify(title, message, "low")
        self._emit()

    def set_crossfade(self, seconds: float) -> None:
        self._settings.crossfade = max(0.0, float(seconds))
        self._emit()

    def set_autoplay(self, enabled: bool) -> None:
        self._settings.autoplay = bool(enabled)
        self._emit()

    def set_high_quality(self, enabled: bool) -> None:
        self._settings.high_quality = bool(enabled)
        self._emit()

    # User preferences

    def toggle_like(self, track_id: str) -> bool:
        """Like or unlike a track. Returns True if the track is now liked."""
        liked = self._preferences.toggle_like(track_id)
        if liked:
            self._notify("Added to Liked Songs", "Song added to your liked songs", "low")
        else:
            self._notify(
                "Removed from Liked Songs", "Song removed from your liked songs", "low"
            )
        self._emit()
        return liked

    def follow_artist(self, artist_id: str) -> None:
        if artist_id in self._preferences.followed_artist_ids:
            return
        self._preferences.followed_artist_ids.add(artist_id)
        self._emit()

    def unfollow_artist(self, artist_id: str) -> None:
        if artist_id not in self._preferences.followed_artist_ids:
            return
        self._preferences.followed_artist_ids.discard(artist_id)
        self._emit()

    def save_playlist(self, playlist_id: str) -> None:
        if playlist_id in self._preferences.saved_playlist_ids:
            return
        self._preferences.saved_playlist_ids.add(playlist_id)
        self._emit()

    def load_preferences(
        self,
        liked_track_ids: Iterable[str] = (),
        followed_artist_ids: Iterable[str] = (),
        saved_playlist_ids: Iterable[str] = (),
    ) -> None:
        """Replace preferences with persisted ones (no notifications)."""
        self._preferences = UserPreferences(
            liked_track_ids=set(liked_track_ids),
            followed_artist_ids=set(followed_artist_ids),
            saved_playlist_ids=set(saved_playlist_ids),
        )
        self._emit()

    # Host loop

    def tick(self) -> None:
        """Enforce the load timeout. Call periodically from the host loop."""
        if (
            self._state.is_loading
            and self._load_deadline is not None
            and self._clock() >= self._load_deadline
        ):
            track = self._state.current_track
            logger.warning(
                f"Load timed out after {self._load_timeout}s: "
                f"{track.title if track else '?'}"
            )
            self._call_sink("pause", self._sink.pause)
            self._fail("Timed out loading the audio track", FailureReason.TIMEOUT)

    # Sink callbacks

    def _is_current(self, token: int, event: str) -> bool:
        if token != self._load_token:
            logger.debug(
                f"Ignoring stale sink event {event} (token {token}, current {self._load_token})"
            )
            return False
        return True

    def _handle_load_start(self, token: int) -> None:
        if not self._is_current(token, "load_start"):
            return
        self._state.is_loading = True
        self._emit()

    def _handle_ready(self, token: int) -> None:
        if not self._is_current(token, "ready"):
            return
        self._state.is_loading = False
        self._load_deadline = None
        if self._state.status is PlaybackStatus.PAUSED:
            # Paused while loading: keep the sink paused
            self._call_sink("pause", self._sink.pause)
        self._emit()

    def _handle_time_update(self, token: int, seconds: float) -> None:
        if not self._is_current(token, "time_update"):
            return
        if seconds is None or not math.isfinite(seconds):
            return
        position = max(0.0, float(seconds))
        if self._state.duration > 0:
            position = min(position, self._state.duration)
        self._state.position = position
        self._emit()

    def _handle_duration_known(self, token: int, seconds: float) -> None:
        if not self._is_current(token, "duration_known"):
            return
        if seconds is None or not math.isfinite(seconds) or seconds <= 0:
            return
        self._state.duration = float(seconds)
        self._emit()

    def _handle_ended(self, token: int) -> None:
        if not self._is_current(token, "ended"):
            return

        track = self._state.current_track
        if self._settings.repeat is RepeatMode.ONE and track is not None:
            logger.info(f"Repeating track: {track.title}")
            self._finish_listen()
            self._history.open(track)
            self._call_sink("seek", self._sink.seek, 0.0)
            if not self._call_sink("play", self._sink.play):
                self._fail("Unable to repeat this track", FailureReason.SINK)
                return
            self._state.position = 0.0
            self._state.status = PlaybackStatus.PLAYING
            self._emit()
            return

        self.next()

    def _handle_error(self, token: int, reason: str) -> None:
        if not self._is_current(token, "error"):
            return
        self._fail(f"Failed to load the audio track: {reason}", FailureReason.LOAD)

    # Internals

    def _resolve_queue(
        self,
        track: Track,
        queue: PlaybackQueue | Playlist | None,
        index: Optional[int],
    ) -> PlaybackQueue:
        if isinstance(queue, Playlist):
            queue = PlaybackQueue.from_playlist(queue)

        if queue is None or queue.is_empty:
            return PlaybackQueue.single(track)

        if (
            index is not None
            and 0 <= index < len(queue)
            and queue.tracks[index].id == track.id
        ):
            return queue.with_index(index)

        found = queue.index_of(track.id)
        if found is None:
            logger.warning(
                f"Track {track.id} not in queue {queue.name or ''}; playing it alone"
            )
            return PlaybackQueue.single(track)
        return queue.with_index(found)

    def _start_load(self, track: Track) -> bool:
        self._load_token += 1
        token = self._load_token
        self._load_deadline = (
            self._clock() + self._load_timeout if self._load_timeout else None
        )

        try:
            self._sink.set_volume(self._state.effective_volume)
            self._sink.load(track.url, _LoadEvents(self, token))
            if token != self._load_token:
                # The sink failed (or was superseded) synchronously inside load()
                return False
            self._sink.play()
        except Exception as e:
            logger.exception(f"Sink failed to start {track.url}")
            self._fail(f"Unable to play this track: {e}", FailureReason.SINK)
            return False

        return True

    def _cancel_load(self) -> None:
        self._load_token += 1
        self._load_deadline = None

    def _fail(self, message: str, reason: FailureReason) -> None:
        state = self._state
        self._cancel_load()
        self._history.discard()

        state.status = PlaybackStatus.IDLE
        state.is_loading = False
        state.error = PlaybackFailed(message=message, track=state.current_track, reason=reason)

        logger.warning(f"Playback failed ({reason.value}): {message}")
        title, description = _FAILURE_MESSAGES[reason]
        self._notify(title, description, "critical")
        self._emit()

    def _finish_listen(self) -> None:
        entry = self._history.close(self._state.position)
        if entry:
            logger.debug(
                f"Listened to {entry.track.title} for {entry.listened_seconds:.1f}s"
            )

    def _call_sink(self, name: str, method: Callable, *args) -> bool:
        try:
            method(*args)
            return True
        except Exception:
            logger.exception(f"Sink {name} failed")
            return False

    def _emit(self) -> None:
        if not self._observers:
            return
        snapshot = self.snapshot()
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception(f"Playback observer {observer!r} failed")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
