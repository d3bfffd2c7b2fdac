"""Shared fixtures: a scriptable fake sink, a manual clock and sample tracks."""

import random
from typing import Optional

import pytest

from musiccatch.domain.library.models import Track
from musiccatch.domain.playback.controller import PlaybackController
from musiccatch.domain.playback.models import PlaybackQueue
from musiccatch.domain.playback.sink import SinkError, SinkEvents


class FakeSink:
    """AudioSink that records commands and lets tests fire events by hand."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.loads: list[tuple[str, SinkEvents]] = []
        self.volume: Optional[float] = None
        self.fail_load = False
        self.fail_play = False

    @property
    def events(self) -> SinkEvents:
        """Events object of the most recent load."""
        return self.loads[-1][1]

    def load(self, url: str, events: SinkEvents) -> None:
        self.calls.append(("load", url))
        if self.fail_load:
            raise SinkError(f"cannot open {url}")
        self.loads.append((url, events))
        events.on_load_start()

    def play(self) -> None:
        self.calls.append(("play",))
        if self.fail_play:
            raise SinkError("play rejected")

    def pause(self) -> None:
        self.calls.append(("pause",))

    def seek(self, seconds: float) -> None:
        self.calls.append(("seek", seconds))

    def set_volume(self, volume: float) -> None:
        self.calls.append(("set_volume", volume))
        self.volume = volume

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def ready(self, duration: Optional[float] = None) -> None:
        """Simulate the current media becoming playable."""
        if duration is not None:
            self.events.on_duration_known(duration)
        self.events.on_ready()


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: list[tuple[str, str, str]] = []

    def __call__(self, title: str, message: str, urgency: str = "normal") -> None:
        self.messages.append((title, message, urgency))

    @property
    def titles(self) -> list[str]:
        return [title for title, _, _ in self.messages]


def make_track(track_id: str, duration: float = 180.0, **kwargs) -> Track:
    return Track(
        id=track_id,
        title=kwargs.pop("title", f"Song {track_id}"),
        artist=kwargs.pop("artist", f"Artist {track_id}"),
        album=kwargs.pop("album", "Album"),
        duration=duration,
        url=kwargs.pop("url", f"https://cdn.example.com/{track_id}.mp3"),
        **kwargs,
    )


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def controller(sink: FakeSink, clock: FakeClock, notifier: RecordingNotifier) -> PlaybackController:
    return PlaybackController(
        sink,
        clock=clock,
        rng=random.Random(1234),
        notifier=notifier,
        load_timeout=10.0,
    )


@pytest.fixture
def track_a() -> Track:
    return make_track("A", duration=200.0)


@pytest.fixture
def track_b() -> Track:
    return make_track("B", duration=150.0)


@pytest.fixture
def queue_ab(track_a: Track, track_b: Track) -> PlaybackQueue:
    return PlaybackQueue.of([track_a, track_b], name="Test Playlist", source_id="p1")


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the data directory (and so the database) at a temp dir."""
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    (tmp_path / "data" / "music-catch").mkdir(parents=True)
    return tmp_path / "data" / "music-catch"
