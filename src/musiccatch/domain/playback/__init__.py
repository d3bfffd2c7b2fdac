"""Playback domain - player state machine and audio sinks.

This domain handles:
- The playback controller (play/pause/seek/queue/shuffle/repeat)
- Player state, settings and observer snapshots
- Recently played tracks and listening history
- The audio sink contract and the mpv implementation
- Persisting preferences and history
"""

# Models
from .models import (
    FailureReason,
    PlaybackFailed,
    PlaybackQueue,
    PlaybackSettings,
    PlaybackSnapshot,
    PlaybackState,
    PlaybackStatus,
    PlayHistoryEntry,
    RepeatMode,
    UserPreferences,
)

# Controller
from .controller import PlaybackController, log_notifier

# History
from .history import PlaybackHistory, RecentlyPlayed

# Sinks
from .sink import AudioSink, NullSink, SinkError, SinkEvents
from .mpv_sink import MpvSink, check_mpv_available

# Persistence
from .persistence import PreferenceSync

__all__ = [
    # Models
    "FailureReason",
    "PlaybackFailed",
    "PlaybackQueue",
    "PlaybackSettings",
    "PlaybackSnapshot",
    "PlaybackState",
    "PlaybackStatus",
    "PlayHistoryEntry",
    "RepeatMode",
    "UserPreferences",
    # Controller
    "PlaybackController",
    "log_notifier",
    # History
    "PlaybackHistory",
    "RecentlyPlayed",
    # Sinks
    "AudioSink",
    "NullSink",
    "SinkError",
    "SinkEvents",
    "MpvSink",
    "check_mpv_available",
    # Persistence
    "PreferenceSync",
]
