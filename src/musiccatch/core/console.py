"""Centralized Rich Console management.

Provides a singleton Rich Console plus the table and status-line renderers
the CLI uses for tracks and playback state.
"""

from typing import Iterable, Optional

from rich.console import Console
from rich.table import Table

_console: Console | None = None


def get_console() -> Console:
    """Get or create the global Rich Console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def safe_print(message: str, style: str | None = None) -> None:
    """Print using Rich Console with optional styling.

    Args:
        message: The message to print
        style: Optional Rich style string (e.g., "bold red", "green")
    """
    console = get_console()
    if style:
        console.print(message, style=style)
    else:
        console.print(message)


def format_time(seconds: float) -> str:
    """Format time in seconds to MM:SS format."""
    if seconds < 0:
        return "00:00"

    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    return f"{minutes:02d}:{secs:02d}"


def track_table(
    tracks: Iterable, title: str, liked_ids: Optional[set[str]] = None
) -> Table:
    """Build a Rich table listing tracks, marking liked ones with a heart."""
    liked_ids = liked_ids or set()
    table = Table(title=title, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title", style="bold")
    table.add_column("Artist")
    table.add_column("Album", style="dim")
    table.add_column("Time", justify="right")
    table.add_column("", justify="center")

    for i, track in enumerate(tracks, start=1):
        title_text = f"{track.title} [E]" if track.explicit else track.title
        table.add_row(
            str(i),
            title_text,
            track.artist,
            track.album,
            format_time(track.duration),
            "♥" if track.id in liked_ids else "",
        )
    return table


def status_line(snapshot) -> str:
    """Render a one-line now-playing summary from a playback snapshot."""
    state = snapshot.state
    if state.current_track is None:
        return "[dim]Nothing playing[/dim]"

    icons = {"loading": "⏳", "playing": "▶", "paused": "⏸", "idle": "⏹"}
    icon = icons.get(snapshot.phase, "?")
    duration = state.duration or state.current_track.duration
    flags = []
    if snapshot.settings.shuffle:
        flags.append("shuffle")
    if snapshot.settings.repeat.value != "off":
        flags.append(f"repeat {snapshot.settings.repeat.value}")
    if state.is_muted:
        flags.append("muted")
    suffix = f" [dim]({', '.join(flags)})[/dim]" if flags else ""

    return (
        f"{icon} [bold]{state.current_track.title}[/bold] - {state.current_track.artist} "
        f"{format_time(state.position)}/{format_time(duration)}{suffix}"
    )
