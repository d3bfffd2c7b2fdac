"""Desktop notification helpers for MusicCatch."""

import shutil
import subprocess
from typing import Callable, Literal

from loguru import logger

from musiccatch.core.config import NotificationsConfig

Urgency = Literal["low", "normal", "critical"]


def notify(title: str, message: str, urgency: Urgency = "normal") -> None:
    """
    Show a desktop notification using notify-send.

    Args:
        title: Notification title
        message: Notification message body
        urgency: Urgency level ('low', 'normal', 'critical')

    Note:
        Skips the notification if notify-send is not available.
    """
    if not shutil.which("notify-send"):
        return

    try:
        subprocess.run(
            [
                "notify-send",
                "--urgency",
                urgency,
                "--app-name",
                "MusicCatch",
                title,
                message,
            ],
            check=False,
            timeout=2.0,
            capture_output=True,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.debug(f"notify-send failed: {e}")


def make_notifier(config: NotificationsConfig) -> Callable[[str, str, str], None]:
    """Build the playback notifier: always logs, desktop-notifies per config."""

    def notifier(title: str, message: str, urgency: str = "normal") -> None:
        logger.info(f"Notification [{urgency}] {title}: {message}")
        if not config.enabled:
            return
        if urgency == "critical" and not config.show_errors:
            return
        if title == "Now Playing" and not config.show_now_playing:
            return
        notify(title, message, urgency)  # type: ignore[arg-type]

    return notifier
