"""
Audio sink contract.

The playback controller never decodes audio itself. It drives an AudioSink
and listens for SinkEvents. Every load gets its own events object, so the
controller can tell callbacks from a superseded load apart from current ones.
"""

from typing import Protocol


class SinkError(Exception):
    """Raised by a sink when a command cannot be carried out."""


class SinkEvents(Protocol):
    """Callbacks a sink fires for the media it was asked to load."""

    def on_load_start(self) -> None: ...

    def on_ready(self) -> None: ...

    def on_time_update(self, seconds: float) -> None: ...

    def on_duration_known(self, seconds: float) -> None: ...

    def on_ended(self) -> None: ...

    def on_error(self, reason: str) -> None: ...


class AudioSink(Protocol):
    """Native audio output the controller delegates to.

    Volume is 0.0-1.0. ``load`` is asynchronous: readiness and failures are
    reported later through ``events``.
    """

    def load(self, url: str, events: SinkEvents) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, seconds: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...


class NullSink:
    """Sink that discards every command. For controllers that never make sound
    (preference edits from the CLI, headless tools)."""

    def load(self, url: str, events: SinkEvents) -> None:
        pass

    def play(self) -> None:
        pass

    def pause(self) -> None:
        pass

    def seek(self, seconds: float) -> None:
        pass

    def set_volume(self, volume: float) -> None:
        pass
