"""
MusicCatch CLI - entry point

Plays catalog playlists through mpv and manages liked tracks and history.
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Callable, Optional

from loguru import logger
from rich.live import Live

from musiccatch.core import config as config_module
from musiccatch.core import database
from musiccatch.core.console import (
    format_time,
    get_console,
    safe_print,
    status_line,
    track_table,
)
from musiccatch.core.output import log, setup_loguru
from musiccatch.domain.library import Catalog, CatalogError, load_catalog, sample_catalog
from musiccatch.domain.playback import (
    MpvSink,
    NullSink,
    PlaybackController,
    PlaybackQueue,
    PlaybackSettings,
    PreferenceSync,
    RepeatMode,
    check_mpv_available,
)
from musiccatch.notifications import make_notifier


def load_configured_catalog(
    cfg: config_module.Config, override: Optional[str] = None
) -> Catalog:
    """Load the catalog named on the command line, in config, or the sample one.

    Raises:
        CatalogError: If a configured catalog file cannot be loaded
    """
    path = override or cfg.library.catalog_path
    if path:
        return load_catalog(Path(path).expanduser())
    return sample_catalog()


def settings_from_config(cfg: config_module.Config) -> PlaybackSettings:
    return PlaybackSettings(
        shuffle=cfg.playback.shuffle,
        repeat=RepeatMode(cfg.playback.repeat),
        crossfade=cfg.playback.crossfade,
        autoplay=cfg.playback.autoplay,
        high_quality=cfg.playback.high_quality,
    )


def build_controller(cfg: config_module.Config, sink) -> PlaybackController:
    """Create a controller wired to the sink, configured notifier and settings."""
    return PlaybackController(
        sink,
        settings_from_config(cfg),
        notifier=make_notifier(cfg.notifications),
        history_limit=cfg.player.history_limit,
        load_timeout=cfg.player.load_timeout_seconds,
        restart_threshold=cfg.player.restart_threshold_seconds,
        volume=cfg.player.volume / 100,
    )


def run_player_loop(
    controller: PlaybackController,
    poll: Callable[[], None],
    poll_interval: float,
    on_update: Optional[Callable[[], None]] = None,
    max_iterations: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Pump sink events until playback goes idle.

    Args:
        controller: Controller to drive
        poll: Sink event pump (e.g. MpvSink.poll)
        poll_interval: Seconds between polls
        on_update: Called after each poll (display refresh)
        max_iterations: Stop after this many polls (None = until idle)
        sleep: Sleep function
    """
    iterations = 0
    while max_iterations is None or iterations < max_iterations:
        poll()
        controller.tick()
        if on_update:
            on_update()

        if controller.snapshot().phase == "idle":
            break

        iterations += 1
        sleep(poll_interval)


def cmd_play(cfg: config_module.Config, args: argparse.Namespace) -> int:
    console = get_console()

    try:
        catalog = load_configured_catalog(cfg, args.catalog)
    except CatalogError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    if args.playlist:
        playlist = catalog.find_playlist(args.playlist)
        if playlist is None:
            console.print(f"[red]Playlist not found: {args.playlist}[/red]")
            return 1
        queue = PlaybackQueue.from_playlist(playlist)
    else:
        queue = PlaybackQueue.of(catalog.tracks, name="All tracks")

    if queue.is_empty:
        console.print("[yellow]Nothing to play[/yellow]")
        return 1

    index = 0
    if args.track:
        found = queue.index_of(args.track)
        if found is None:
            console.print(f"[red]Track {args.track} is not in {queue.name}[/red]")
            return 1
        index = found

    if not check_mpv_available():
        console.print("[red]mpv is not installed or not on PATH[/red]")
        return 1

    if args.volume is not None:
        cfg.player.volume = max(0, min(100, args.volume))
    if args.shuffle:
        cfg.playback.shuffle = True
    if args.repeat:
        cfg.playback.repeat = args.repeat

    sink = MpvSink(cfg.player.mpv_socket_path, volume=cfg.player.volume / 100)
    if not sink.start():
        console.print("[red]Failed to start mpv[/red]")
        return 1

    database.init_database()
    controller = build_controller(cfg, sink)
    sync = PreferenceSync(controller)
    sync.restore()
    sync.attach()

    try:
        controller.play(queue.tracks[index], queue, index)
        with Live(
            status_line(controller.snapshot()), console=console, auto_refresh=False
        ) as live:
            run_player_loop(
                controller,
                sink.poll,
                cfg.player.poll_interval_seconds,
                on_update=lambda: live.update(
                    status_line(controller.snapshot()), refresh=True
                ),
            )
    except KeyboardInterrupt:
        controller.stop()
    finally:
        sync.detach()
        sink.shutdown()

    error = controller.state.error
    if error:
        console.print(f"[red]{error.message}[/red]")
        return 1
    return 0


def cmd_search(cfg: config_module.Config, args: argparse.Namespace) -> int:
    console = get_console()
    try:
        catalog = load_configured_catalog(cfg, args.catalog)
    except CatalogError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    query = " ".join(args.query)
    results = catalog.search(query)
    if not results:
        console.print(f"No tracks match '{query}'")
        return 0

    database.init_database()
    console.print(
        track_table(results, f"Results for '{query}'", database.get_liked_track_ids())
    )
    return 0


def cmd_like(cfg: config_module.Config, args: argparse.Namespace) -> int:
    """Toggle a like outside of playback, through the same controller path."""
    database.init_database()

    controller = build_controller(cfg, NullSink())
    sync = PreferenceSync(controller)
    sync.restore()
    sync.attach()
    liked = controller.toggle_like(args.track_id)
    sync.detach()

    if liked:
        safe_print(f"♥ Liked track {args.track_id}", style="green")
    else:
        safe_print(f"Removed like from track {args.track_id}")
    return 0


def cmd_liked(cfg: config_module.Config, args: argparse.Namespace) -> int:
    console = get_console()
    try:
        catalog = load_configured_catalog(cfg, args.catalog)
    except CatalogError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    database.init_database()
    liked_ids = database.get_liked_track_ids()
    tracks = [t for t in catalog.tracks if t.id in liked_ids]
    if not tracks:
        console.print("No liked tracks yet")
        return 0

    console.print(track_table(tracks, "Liked Songs", liked_ids))
    return 0


def cmd_history(cfg: config_module.Config, args: argparse.Namespace) -> int:
    console = get_console()
    database.init_database()
    plays = database.get_recent_plays(args.limit)
    if not plays:
        console.print("No listening history yet")
        return 0

    for play in plays:
        console.print(
            f"{play['played_at'][:16].replace('T', ' ')}  "
            f"[bold]{play['title']}[/bold] - {play['artist']} "
            f"[dim]({format_time(play['listened_seconds'] or 0)} listened)[/dim]"
        )
    return 0


def cmd_init_config(cfg: config_module.Config, args: argparse.Namespace) -> int:
    config_path = config_module.get_config_path()
    if config_path.exists() and not args.force:
        log(
            f"Configuration already exists: {config_path} (use --force to overwrite)",
            level="warning",
        )
        return 1

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(config_module.create_default_config(), encoding="utf-8")
    log(f"Wrote default configuration to: {config_path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="musiccatch",
        description="MusicCatch - stream your playlists",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--catalog", help="JSON catalog file (overrides [library] catalog_path)"
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    play_parser = subparsers.add_parser("play", help="Play a playlist through mpv")
    play_parser.add_argument(
        "playlist", nargs="?", help="Playlist name or ID (default: all tracks)"
    )
    play_parser.add_argument("--track", help="Track ID to start from")
    play_parser.add_argument("--shuffle", action="store_true", help="Enable shuffle")
    play_parser.add_argument(
        "--repeat", choices=[mode.value for mode in RepeatMode], help="Repeat mode"
    )
    play_parser.add_argument("--volume", type=int, help="Volume (0-100)")

    search_parser = subparsers.add_parser("search", help="Search tracks by title or artist")
    search_parser.add_argument("query", nargs="+", help="Search text")

    like_parser = subparsers.add_parser("like", help="Like or unlike a track")
    like_parser.add_argument("track_id", help="Track ID")

    subparsers.add_parser("liked", help="List liked tracks")

    history_parser = subparsers.add_parser("history", help="Show listening history")
    history_parser.add_argument("--limit", type=int, default=20, help="Entries to show")

    init_parser = subparsers.add_parser("init-config", help="Write a default config.toml")
    init_parser.add_argument("--force", action="store_true", help="Overwrite existing file")

    return parser


COMMANDS = {
    "play": cmd_play,
    "search": cmd_search,
    "like": cmd_like,
    "liked": cmd_liked,
    "history": cmd_history,
    "init-config": cmd_init_config,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the musiccatch command."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.subcommand:
        parser.print_help()
        return 0

    cfg = config_module.load_config()
    config_module.ensure_directories()
    setup_loguru(config_module.get_log_file_path(cfg), level=cfg.logging.level)
    logger.debug(f"Running subcommand: {args.subcommand}")

    return COMMANDS[args.subcommand](cfg, args)


if __name__ == "__main__":
    sys.exit(main())
