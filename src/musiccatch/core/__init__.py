"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Database operations (SQLite)
- Console management (Rich)
- Logging (Loguru)

The core layer has no dependencies on the domain layer.
"""

# Configuration
from .config import (
    Config,
    load_config,
    parse_config,
    get_config_dir,
    get_config_path,
    get_data_dir,
    get_log_file_path,
    create_default_config,
    ensure_directories,
)

# Database
from .database import (
    get_database_path,
    get_db_connection,
    init_database,
    migrate_database,
    get_liked_track_ids,
    set_tracks_liked,
    get_followed_artist_ids,
    set_artists_followed,
    get_saved_playlist_ids,
    add_saved_playlists,
    record_play,
    get_recent_plays,
)

# Console
from .console import get_console, safe_print, format_time

# Output
from .output import setup_loguru, log

__all__ = [
    # Config
    "Config",
    "load_config",
    "parse_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_log_file_path",
    "create_default_config",
    "ensure_directories",
    # Database
    "get_database_path",
    "get_db_connection",
    "init_database",
    "migrate_database",
    "get_liked_track_ids",
    "set_tracks_liked",
    "get_followed_artist_ids",
    "set_artists_followed",
    "get_saved_playlist_ids",
    "add_saved_playlists",
    "record_play",
    "get_recent_plays",
    # Console
    "get_console",
    "safe_print",
    "format_time",
    # Output
    "setup_loguru",
    "log",
]
