"""Tests for the playback controller state machine."""

import random

import pytest

from conftest import FakeSink, make_track
from musiccatch.domain.library.models import Playlist
from musiccatch.domain.playback.controller import PlaybackController
from musiccatch.domain.playback.models import (
    FailureReason,
    PlaybackQueue,
    PlaybackStatus,
    RepeatMode,
)


def start(controller, sink, track, queue=None, index=None, duration=None):
    """Play a track and let the fake sink report it ready."""
    controller.play(track, queue, index)
    sink.ready(duration if duration is not None else track.duration)


class TestPlay:
    """Tests for play() and the load lifecycle."""

    def test_play_loads_and_starts_sink(self, controller, sink, track_a) -> None:
        """Test play() sets volume, loads the media and asks the sink to play."""
        assert controller.play(track_a) is True

        assert sink.calls == [
            ("set_volume", 0.7),
            ("load", track_a.url),
            ("play",),
        ]
        state = controller.state
        assert state.current_track == track_a
        assert state.status is PlaybackStatus.PLAYING
        assert state.is_loading is True
        assert controller.snapshot().phase == "loading"

    def test_ready_transitions_to_playing(self, controller, sink, track_a) -> None:
        """Test the sink's ready event ends the loading phase."""
        start(controller, sink, track_a)

        snapshot = controller.snapshot()
        assert snapshot.phase == "playing"
        assert snapshot.is_playing
        assert snapshot.state.duration == 200.0

    def test_play_without_queue_uses_single_track_queue(
        self, controller, track_a
    ) -> None:
        """Test a track played on its own gets a one-track queue."""
        controller.play(track_a)

        queue = controller.state.queue
        assert queue.tracks == (track_a,)
        assert queue.index == 0

    def test_play_resolves_index_by_track_id(
        self, controller, track_b, queue_ab
    ) -> None:
        """Test a missing index is looked up from the track ID."""
        controller.play(track_b, queue_ab)

        assert controller.state.queue.index == 1
        assert controller.state.queue.name == "Test Playlist"

    def test_play_ignores_index_pointing_at_other_track(
        self, controller, track_b, queue_ab
    ) -> None:
        """Test an index that doesn't match the track is corrected."""
        controller.play(track_b, queue_ab, 0)

        assert controller.state.index == 1

    def test_play_track_outside_queue_plays_alone(
        self, controller, queue_ab
    ) -> None:
        """Test a track not in the given queue falls back to a single-track queue."""
        stray = make_track("Z")
        controller.play(stray, queue_ab)

        assert controller.state.queue.tracks == (stray,)

    def test_play_accepts_playlist(self, controller, track_a, track_b) -> None:
        """Test a Playlist can be passed as the queue."""
        playlist = Playlist(id="p9", name="Road Trip", tracks=[track_a, track_b])
        controller.play(track_b, playlist)

        queue = controller.state.queue
        assert queue.source_id == "p9"
        assert queue.index == 1

    def test_play_announces_now_playing(self, controller, notifier, track_a) -> None:
        """Test a Now Playing notification is emitted."""
        controller.play(track_a)

        assert ("Now Playing", "Song A by Artist A", "low") in notifier.messages

    def test_last_play_wins_over_late_callbacks(
        self, controller, sink, track_a, track_b
    ) -> None:
        """Test callbacks from a superseded load never touch the newer state."""
        controller.play(track_a)
        stale_events = sink.events
        controller.play(track_b)

        stale_events.on_duration_known(999.0)
        stale_events.on_ready()
        stale_events.on_time_update(50.0)
        stale_events.on_error("network error")
        stale_events.on_ended()

        state = controller.state
        assert state.current_track == track_b
        assert state.is_loading is True
        assert state.position == 0.0
        assert state.duration == 0.0
        assert state.error is None
        assert len(sink.loads) == 2

        sink.ready(150.0)
        assert controller.snapshot().phase == "playing"
        assert controller.state.current_track == track_b

    def test_recently_played_is_deduplicated_and_bounded(self, sink) -> None:
        """Test recently played keeps the newest entry per track, up to the limit."""
        controller = PlaybackController(sink, history_limit=3)
        tracks = [make_track(str(i)) for i in range(5)]

        for track in tracks:
            controller.play(track)
        controller.play(tracks[3])

        recent = controller.snapshot().recently_played
        assert [t.id for t in recent] == ["3", "4", "2"]

    def test_listen_is_recorded_when_track_changes(
        self, controller, sink, track_a, track_b
    ) -> None:
        """Test replacing a track records how long it was heard."""
        start(controller, sink, track_a)
        sink.events.on_time_update(30.0)
        controller.play(track_b)

        snapshot = controller.snapshot()
        assert snapshot.history_total == 1
        entry = snapshot.history[-1]
        assert entry.track == track_a
        assert entry.listened_seconds == 30.0


class TestFailures:
    """Tests for load failures and timeouts."""

    def test_sink_load_failure_is_reported_not_raised(
        self, controller, sink, notifier, track_a
    ) -> None:
        """Test a sink that raises on load produces a PlaybackFailed state."""
        sink.fail_load = True

        assert controller.play(track_a) is False

        state = controller.state
        assert state.status is PlaybackStatus.IDLE
        assert state.is_loading is False
        assert state.error.reason is FailureReason.SINK
        assert state.error.track == track_a
        assert "Playback Failed" in notifier.titles
        assert controller.snapshot().history_total == 0

    def test_sink_play_failure_is_reported(self, controller, sink, track_a) -> None:
        """Test a sink that rejects play() produces a PlaybackFailed state."""
        sink.fail_play = True

        controller.play(track_a)

        assert controller.state.error.reason is FailureReason.SINK
        assert controller.state.status is PlaybackStatus.IDLE

    def test_error_event_returns_to_idle(self, controller, sink, track_a) -> None:
        """Test a media error from the sink moves the controller to idle."""
        controller.play(track_a)
        sink.events.on_error("404 Not Found")

        state = controller.state
        assert state.status is PlaybackStatus.IDLE
        assert state.error.reason is FailureReason.LOAD
        assert "404 Not Found" in state.error.message

    def test_error_event_notifies_load_error(
        self, controller, sink, notifier, track_a
    ) -> None:
        """Test a media error is announced as a load error, not a play failure."""
        controller.play(track_a)
        sink.events.on_error("404 Not Found")

        assert notifier.messages[-1] == (
            "Playback Error",
            "Failed to load the audio track",
            "critical",
        )

    def test_timeout_notifies_load_error(
        self, controller, clock, notifier, track_a
    ) -> None:
        controller.play(track_a)
        clock.advance(11)
        controller.tick()

        assert notifier.messages[-1] == (
            "Playback Error",
            "Timed out loading the audio track",
            "critical",
        )

    def test_controller_usable_after_failure(
        self, controller, sink, track_a, track_b
    ) -> None:
        """Test a bad track doesn't prevent playing the next one."""
        controller.play(track_a)
        sink.events.on_error("decode error")

        start(controller, sink, track_b)

        state = controller.state
        assert state.error is None
        assert state.current_track == track_b
        assert controller.snapshot().is_playing

    def test_load_timeout_fails_on_tick(
        self, controller, sink, clock, track_a
    ) -> None:
        """Test a load pending past the timeout fails with reason timeout."""
        controller.play(track_a)

        clock.advance(9.9)
        controller.tick()
        assert controller.state.is_loading is True

        clock.advance(0.2)
        controller.tick()

        state = controller.state
        assert state.status is PlaybackStatus.IDLE
        assert state.error.reason is FailureReason.TIMEOUT
        assert sink.calls[-1] == ("pause",)

    def test_ready_after_timeout_is_ignored(
        self, controller, sink, clock, track_a
    ) -> None:
        """Test a sink that becomes ready after the timeout can't revive playback."""
        controller.play(track_a)
        clock.advance(11)
        controller.tick()

        sink.ready(200.0)

        assert controller.state.status is PlaybackStatus.IDLE
        assert controller.state.is_loading is False

    def test_tick_without_timeout_configured(self, sink, clock, track_a) -> None:
        """Test loads never time out when the timeout is disabled."""
        controller = PlaybackController(sink, clock=clock, load_timeout=None)
        controller.play(track_a)

        clock.advance(3600)
        controller.tick()

        assert controller.state.is_loading is True


class TestPauseResume:
    """Tests for pause(), resume() and stop()."""

    def test_pause_then_resume_keeps_position(
        self, controller, sink, track_a
    ) -> None:
        """Test pausing and resuming returns to playing at the same position."""
        start(controller, sink, track_a)
        sink.events.on_time_update(42.0)

        controller.pause()
        assert controller.state.status is PlaybackStatus.PAUSED
        assert sink.calls[-1] == ("pause",)

        controller.resume()
        assert controller.state.status is PlaybackStatus.PLAYING
        assert controller.state.position == 42.0
        assert sink.calls[-1] == ("play",)

    def test_pause_when_idle_is_noop(self, controller, sink) -> None:
        """Test pause() does nothing without playback."""
        controller.pause()

        assert controller.state.status is PlaybackStatus.IDLE
        assert sink.calls == []

    def test_pause_twice_stays_paused(self, controller, sink, track_a) -> None:
        """Test a second pause() is a no-op."""
        start(controller, sink, track_a)
        controller.pause()
        calls = len(sink.calls)

        controller.pause()

        assert controller.state.status is PlaybackStatus.PAUSED
        assert len(sink.calls) == calls

    def test_resume_without_track_is_noop(self, controller, sink) -> None:
        """Test resume() does nothing when no track was ever played."""
        controller.resume()

        assert controller.state.status is PlaybackStatus.IDLE
        assert sink.calls == []

    def test_resume_after_stop_reloads_media(
        self, controller, sink, track_a
    ) -> None:
        """Test resuming from idle restarts the current track's media."""
        start(controller, sink, track_a)
        controller.stop()

        controller.resume()

        assert len(sink.loads) == 2
        assert controller.state.is_loading is True
        assert controller.state.status is PlaybackStatus.PLAYING
        # Recently played is not touched by a resume
        assert len(controller.snapshot().recently_played) == 1

    def test_pause_while_loading_keeps_sink_paused(
        self, controller, sink, track_a
    ) -> None:
        """Test media that becomes ready after a pause stays paused."""
        controller.play(track_a)
        controller.pause()

        sink.ready(200.0)

        assert controller.state.status is PlaybackStatus.PAUSED
        assert controller.snapshot().phase == "paused"
        assert sink.calls[-1] == ("pause",)

    def test_stop_resets_position(self, controller, sink, track_a) -> None:
        """Test stop() goes idle, rewinds and tells the sink."""
        start(controller, sink, track_a)
        sink.events.on_time_update(80.0)

        controller.stop()

        state = controller.state
        assert state.status is PlaybackStatus.IDLE
        assert state.position == 0.0
        assert sink.calls[-2:] == [("pause",), ("seek", 0.0)]

    def test_stop_cancels_pending_load(self, controller, sink, track_a) -> None:
        """Test a load that completes after stop() is ignored."""
        controller.play(track_a)
        controller.stop()

        sink.ready(200.0)

        assert controller.state.status is PlaybackStatus.IDLE
        assert controller.state.is_loading is False


class TestNavigation:
    """Tests for next() and previous()."""

    def test_next_walks_queue_then_stops(
        self, controller, sink, track_a, track_b, queue_ab
    ) -> None:
        """Test next() plays B after A, then goes idle past the end."""
        start(controller, sink, track_a, queue_ab, 0)

        controller.next()
        assert controller.state.current_track == track_b
        assert controller.state.index == 1
        sink.ready(150.0)
        assert controller.snapshot().is_playing

        controller.next()
        assert controller.state.status is PlaybackStatus.IDLE
        assert len(sink.loads) == 2

    def test_next_wraps_with_repeat_all(
        self, controller, sink, track_a, track_b, queue_ab
    ) -> None:
        """Test next() on the last track wraps to the first with repeat all."""
        controller.toggle_repeat()
        start(controller, sink, track_b, queue_ab, 1)

        controller.next()

        assert controller.state.current_track == track_a
        assert controller.state.index == 0
        assert controller.state.status is PlaybackStatus.PLAYING

    def test_next_without_queue_is_noop(self, controller, sink) -> None:
        """Test next() does nothing when nothing was queued."""
        controller.next()
        controller.previous()

        assert sink.calls == []
        assert controller.state.status is PlaybackStatus.IDLE

    def test_shuffle_picks_indexes_within_queue(self, sink, track_a, queue_ab) -> None:
        """Test shuffle next() uses the random source over the whole queue."""
        controller = PlaybackController(sink, rng=random.Random(7))
        controller.toggle_shuffle()
        controller.play(track_a, queue_ab, 0)

        seen = set()
        for _ in range(30):
            controller.next()
            seen.add(controller.state.index)

        assert seen == {0, 1}

    def test_previous_restarts_after_threshold(
        self, controller, sink, track_b, queue_ab
    ) -> None:
        """Test previous() more than 5 seconds in seeks to the start."""
        start(controller, sink, track_b, queue_ab, 1)
        sink.events.on_time_update(6.0)

        controller.previous()

        assert controller.state.current_track == track_b
        assert controller.state.position == 0.0
        assert sink.calls[-1] == ("seek", 0.0)
        assert len(sink.loads) == 1

    def test_previous_near_start_goes_back(
        self, controller, sink, track_a, track_b, queue_ab
    ) -> None:
        """Test previous() within the first 5 seconds plays the previous track."""
        start(controller, sink, track_b, queue_ab, 1)
        sink.events.on_time_update(3.0)

        controller.previous()

        assert controller.state.current_track == track_a
        assert controller.state.index == 0

    def test_previous_on_first_track_is_noop(
        self, controller, sink, track_a, queue_ab
    ) -> None:
        """Test previous() at index 0 without repeat stays put."""
        start(controller, sink, track_a, queue_ab, 0)

        controller.previous()

        assert controller.state.current_track == track_a
        assert len(sink.loads) == 1

    def test_previous_wraps_with_repeat_all(
        self, controller, sink, track_a, track_b, queue_ab
    ) -> None:
        """Test previous() at index 0 wraps to the last track with repeat all."""
        controller.toggle_repeat()
        start(controller, sink, track_a, queue_ab, 0)

        controller.previous()

        assert controller.state.current_track == track_b
        assert controller.state.index == 1


class TestTrackEnd:
    """Tests for the sink's ended event."""

    def test_repeat_one_replays_same_track(
        self, controller, sink, track_a, queue_ab
    ) -> None:
        """Test repeat one rewinds and replays without reloading."""
        controller.toggle_repeat()
        controller.toggle_repeat()
        start(controller, sink, track_a, queue_ab, 0)
        sink.events.on_time_update(199.0)

        sink.events.on_ended()

        state = controller.state
        assert state.current_track == track_a
        assert state.position == 0.0
        assert state.status is PlaybackStatus.PLAYING
        assert sink.calls[-2:] == [("seek", 0.0), ("play",)]
        assert len(sink.loads) == 1
        assert controller.snapshot().history[-1].listened_seconds == 199.0

    def test_end_advances_to_next_track(
        self, controller, sink, track_a, track_b, queue_ab
    ) -> None:
        """Test a finished track moves on to the next one."""
        start(controller, sink, track_a, queue_ab, 0)

        sink.events.on_ended()

        assert controller.state.current_track == track_b

    def test_end_of_last_track_goes_idle(
        self, controller, sink, track_b, queue_ab
    ) -> None:
        """Test the last track ending without repeat stops playback."""
        start(controller, sink, track_b, queue_ab, 1)

        sink.events.on_ended()

        assert controller.state.status is PlaybackStatus.IDLE
        assert controller.state.position == 0.0


class TestSeek:
    """Tests for seek_to()."""

    def test_seek_updates_position(self, controller, sink, track_a) -> None:
        start(controller, sink, track_a)

        controller.seek_to(60.5)

        assert controller.state.position == 60.5
        assert sink.calls[-1] == ("seek", 60.5)

    def test_seek_clamps_to_duration(self, controller, sink, track_a) -> None:
        """Test seeking past the end clamps to the duration and below zero to 0."""
        start(controller, sink, track_a)

        controller.seek_to(500)
        assert controller.state.position == 200.0

        controller.seek_to(-3)
        assert controller.state.position == 0.0

    def test_seek_uses_track_duration_before_sink_reports(
        self, controller, track_a
    ) -> None:
        """Test the track's metadata duration bounds seeks while loading."""
        controller.play(track_a)

        controller.seek_to(250)

        assert controller.state.position == 200.0

    def test_seek_without_track_is_noop(self, controller, sink) -> None:
        controller.seek_to(10)

        assert sink.calls == []


class TestVolume:
    """Tests for set_volume() and toggle_mute()."""

    def test_set_volume_zero_mutes(self, controller, sink) -> None:
        controller.set_volume(0)

        state = controller.state
        assert state.is_muted is True
        assert state.previous_volume == 0.7
        assert sink.volume == 0.0

    def test_set_volume_updates_snapshot(self, controller, sink) -> None:
        """Test a non-zero volume unmutes and becomes the pre-mute level."""
        controller.set_volume(0)
        controller.set_volume(0.4)

        state = controller.state
        assert state.is_muted is False
        assert state.volume == 0.4
        assert state.previous_volume == 0.4
        assert sink.volume == 0.4

    def test_set_volume_clamps(self, controller) -> None:
        controller.set_volume(1.5)
        assert controller.state.volume == 1.0

    def test_toggle_mute_twice_restores_volume(self, controller, sink) -> None:
        """Test muting leaves nominal volume alone and unmuting restores it."""
        controller.set_volume(0.55)

        controller.toggle_mute()
        assert controller.state.is_muted is True
        assert controller.state.volume == 0.55
        assert sink.volume == 0.0
        assert controller.state.effective_volume == 0.0

        controller.toggle_mute()
        assert controller.state.is_muted is False
        assert controller.state.volume == 0.55
        assert sink.volume == 0.55

    def test_unmute_after_zero_volume_restores_last_level(self, controller) -> None:
        controller.set_volume(0.5)
        controller.set_volume(0)

        controller.toggle_mute()

        assert controller.state.is_muted is False
        assert controller.state.volume == 0.5

    def test_muted_volume_applies_to_new_loads(
        self, controller, sink, track_a
    ) -> None:
        """Test a track started while muted is loaded at zero volume."""
        controller.toggle_mute()
        controller.play(track_a)

        assert ("set_volume", 0.0) in sink.calls[-3:]


class TestSettings:
    """Tests for shuffle, repeat and stored settings."""

    def test_toggle_repeat_cycles(self, controller, notifier) -> None:
        """Test repeat cycles off -> all -> one -> off."""
        modes = []
        for _ in range(3):
            controller.toggle_repeat()
            modes.append(controller.settings.repeat)

        assert modes == [RepeatMode.ALL, RepeatMode.ONE, RepeatMode.OFF]
        assert notifier.titles == ["Repeat playlist", "Repeat track", "Repeat disabled"]

    def test_toggle_shuffle(self, controller, notifier) -> None:
        controller.toggle_shuffle()
        assert controller.settings.shuffle is True

        controller.toggle_shuffle()
        assert controller.settings.shuffle is False
        assert notifier.titles == ["Shuffle enabled", "Shuffle disabled"]

    def test_stored_settings(self, controller) -> None:
        controller.set_crossfade(-2)
        assert controller.settings.crossfade == 0.0

        controller.set_crossfade(4)
        controller.set_autoplay(False)
        controller.set_high_quality(True)

        settings = controller.settings
        assert settings.crossfade == 4.0
        assert settings.autoplay is False
        assert settings.high_quality is True

    def test_settings_property_is_a_copy(self, controller) -> None:
        settings = controller.settings
        settings.shuffle = True

        assert controller.settings.shuffle is False


class TestPreferences:
    """Tests for likes, followed artists and saved playlists."""

    def test_toggle_like_twice_restores_set(self, controller, notifier) -> None:
        assert controller.toggle_like("song1") is True
        assert controller.is_liked("song1")

        assert controller.toggle_like("song1") is False
        assert "song1" not in controller.liked_track_ids
        assert notifier.titles == ["Added to Liked Songs", "Removed from Liked Songs"]

    def test_follow_and_unfollow_artist(self, controller) -> None:
        controller.follow_artist("artist-1")
        assert controller.snapshot().followed_artist_ids == {"artist-1"}

        controller.unfollow_artist("artist-1")
        assert controller.snapshot().followed_artist_ids == frozenset()

    def test_save_playlist(self, controller) -> None:
        controller.save_playlist("p1")
        controller.save_playlist("p1")

        assert controller.snapshot().saved_playlist_ids == {"p1"}

    def test_load_preferences_replaces_sets(self, controller, notifier) -> None:
        controller.toggle_like("old")
        controller.load_preferences(["x", "y"], ["a1"], ["p2"])

        snapshot = controller.snapshot()
        assert snapshot.liked_track_ids == {"x", "y"}
        assert snapshot.followed_artist_ids == {"a1"}
        assert snapshot.saved_playlist_ids == {"p2"}
        # Restoring doesn't announce anything
        assert notifier.titles == ["Added to Liked Songs"]


class TestObservers:
    """Tests for subscribe() and snapshots."""

    def test_observer_receives_snapshots(self, controller) -> None:
        received = []
        controller.subscribe(received.append)

        controller.toggle_shuffle()

        assert len(received) == 1
        assert received[0].settings.shuffle is True

    def test_unsubscribe_stops_notifications(self, controller) -> None:
        received = []
        unsubscribe = controller.subscribe(received.append)

        unsubscribe()
        controller.toggle_shuffle()

        assert received == []

    def test_failing_observer_does_not_break_others(self, controller, track_a) -> None:
        received = []

        def broken(snapshot):
            raise RuntimeError("observer bug")

        controller.subscribe(broken)
        controller.subscribe(received.append)

        controller.play(track_a)

        assert received
        assert received[-1].state.current_track == track_a

    def test_snapshot_is_detached_from_state(self, controller, track_a) -> None:
        controller.play(track_a)
        snapshot = controller.snapshot()

        snapshot.state.position = 99.0

        assert controller.state.position == 0.0


class TestConstruction:
    def test_initial_state_is_idle(self) -> None:
        controller = PlaybackController(FakeSink())

        state = controller.state
        assert state.status is PlaybackStatus.IDLE
        assert state.current_track is None
        assert state.queue is None
        assert state.index == -1
        assert state.volume == 0.7

    def test_zero_initial_volume_starts_muted(self) -> None:
        controller = PlaybackController(FakeSink(), volume=0)

        assert controller.state.is_muted is True
        assert controller.state.previous_volume == 0.7

    @pytest.mark.parametrize("volume", [0.2, 1.0])
    def test_initial_volume(self, volume) -> None:
        controller = PlaybackController(FakeSink(), volume=volume)

        assert controller.state.volume == volume
        assert controller.state.previous_volume == volume
