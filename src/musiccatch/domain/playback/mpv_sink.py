"""
MPV audio sink using JSON IPC.

mpv runs as a child process in idle mode; commands go over its IPC socket.
mpv properties are turned into SinkEvents by poll(), which the host loop
calls periodically, so every callback is delivered on the caller's thread.
"""

import json
import os
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .sink import SinkError, SinkEvents

# Polls in a row with mpv idle while a load is pending before it counts as failed
IDLE_POLLS_BEFORE_ERROR = 4

SOCKET_TIMEOUT = 2.0


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def send_mpv_command(socket_path: Optional[str], command: dict[str, Any]) -> bool:
    """Send JSON IPC command to MPV."""
    if not socket_path or not os.path.exists(socket_path):
        return False

    try:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(SOCKET_TIMEOUT)
        sock.connect(socket_path)

        command_json = json.dumps(command) + "\n"
        sock.send(command_json.encode("utf-8"))

        response = sock.recv(4096).decode("utf-8").strip()
        sock.close()

        if response:
            try:
                # mpv may interleave event lines; the reply is the first line
                response_data = json.loads(response.splitlines()[0])
                return response_data.get("error") == "success"
            except json.JSONDecodeError:
                return False

        return True

    except (socket.error, OSError):
        return False


def get_mpv_property(socket_path: Optional[str], property_name: str) -> Any:
    """Get a property value from MPV (None if unavailable)."""
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(SOCKET_TIMEOUT)
        sock.connect(socket_path)

        command = {"command": ["get_property", property_name]}
        sock.send((json.dumps(command) + "\n").encode("utf-8"))

        response = sock.recv(4096).decode("utf-8").strip()
        sock.close()

        if response:
            try:
                response_data = json.loads(response.splitlines()[0])
                if response_data.get("error") == "success":
                    return response_data.get("data")
            except json.JSONDecodeError:
                pass

        return None

    except (socket.error, OSError):
        return None


class MpvSink:
    """AudioSink backed by an mpv child process."""

    def __init__(self, socket_path: Optional[str] = None, volume: float = 0.7):
        if socket_path is None:
            socket_path = str(
                Path(tempfile.gettempdir()) / f"musiccatch-mpv-{os.getpid()}"
            )
        self.socket_path = socket_path
        self._initial_volume = volume
        self._process: Optional[subprocess.Popen] = None

        self._events: Optional[SinkEvents] = None
        self._url: Optional[str] = None
        self._pending_load = False
        self._ended_reported = False
        self._last_position: Optional[float] = None
        self._idle_polls = 0

    # Process lifecycle

    def start(self, timeout: float = 5.0) -> bool:
        """Start mpv with JSON IPC. Returns False if it did not come up."""
        logger.info(f"Starting MPV with socket: {self.socket_path}")

        try:
            if os.path.exists(self.socket_path):
                logger.debug(f"Removing existing socket: {self.socket_path}")
                os.unlink(self.socket_path)

            cmd = [
                "mpv",
                "--idle=yes",
                "--no-video",
                "--no-terminal",
                f"--input-ipc-server={self.socket_path}",
                f"--volume={round(self._initial_volume * 100)}",
                "--keep-open=yes",
                "--load-scripts=no",
            ]

            self._process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )

            start_time = time.time()
            while not os.path.exists(self.socket_path):
                if time.time() - start_time > timeout:
                    logger.error(f"MPV socket creation timeout after {timeout}s")
                    self._process.kill()
                    self._process = None
                    return False
                time.sleep(0.1)

            if send_mpv_command(
                self.socket_path, {"command": ["get_property", "idle-active"]}
            ):
                logger.info("MPV started successfully")
                return True

            logger.error("MPV socket connection test failed")
            self._process.kill()
            self._process = None
            return False

        except (subprocess.SubprocessError, OSError) as e:
            logger.error(f"Failed to start MPV: {e}")
            self._process = None
            return False

    def shutdown(self) -> None:
        """Stop the mpv process and remove its socket."""
        self._events = None
        if self._process:
            try:
                self._process.kill()
                self._process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired):
                logger.warning("MPV did not exit cleanly")
            self._process = None

        if os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                logger.debug(f"Could not remove socket {self.socket_path}")

    def is_running(self) -> bool:
        if not self._process or self._process.poll() is not None:
            return False
        return os.path.exists(self.socket_path)

    # AudioSink

    def load(self, url: str, events: SinkEvents) -> None:
        self._command(["loadfile", url, "replace"], "loadfile")

        self._events = events
        self._url = url
        self._pending_load = True
        self._ended_reported = False
        self._last_position = None
        self._idle_polls = 0
        logger.debug(f"MPV loading: {url}")
        events.on_load_start()

    def play(self) -> None:
        self._command(["set_property", "pause", False], "play")

    def pause(self) -> None:
        self._command(["set_property", "pause", True], "pause")

    def seek(self, seconds: float) -> None:
        if self._events is None:
            return
        self._command(["seek", seconds, "absolute"], "seek")
        # Seeking back re-arms end-of-file detection (repeat one)
        self._ended_reported = False
        self._last_position = None

    def set_volume(self, volume: float) -> None:
        volume = round(max(0.0, min(1.0, volume)) * 100)
        self._command(["set_property", "volume", volume], "set_volume")

    # Event pump

    def poll(self) -> None:
        """Translate mpv state into events for the current load."""
        events = self._events
        if events is None:
            return

        if not self.is_running():
            self._events = None
            events.on_error("mpv is not running")
            return

        if self._pending_load:
            self._poll_pending_load(events)
            return

        position = get_mpv_property(self.socket_path, "time-pos")
        if position is not None and position != self._last_position:
            self._last_position = position
            events.on_time_update(float(position))
            if self._events is not events:
                return

        eof = get_mpv_property(self.socket_path, "eof-reached")
        if eof is True and not self._ended_reported:
            self._ended_reported = True
            events.on_ended()

    def _poll_pending_load(self, events: SinkEvents) -> None:
        # Right after loadfile mpv still reports the previous file's properties
        if get_mpv_property(self.socket_path, "path") == self._url:
            duration = get_mpv_property(self.socket_path, "duration")
            if duration and duration > 0:
                self._pending_load = False
                events.on_duration_known(float(duration))
                if self._events is events:
                    events.on_ready()
                return

        if get_mpv_property(self.socket_path, "idle-active") is True:
            self._idle_polls += 1
            if self._idle_polls >= IDLE_POLLS_BEFORE_ERROR:
                self._pending_load = False
                self._events = None
                events.on_error("media could not be loaded")

    def _command(self, args: list, name: str) -> None:
        if not self.is_running():
            raise SinkError(f"Cannot {name}: mpv is not running")
        if not send_mpv_command(self.socket_path, {"command": args}):
            raise SinkError(f"mpv rejected {name}")
