"""
SQLite database operations for MusicCatch Player
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Set

from loguru import logger

from .config import get_data_dir


# Database schema version for migrations
SCHEMA_VERSION = 2


def get_database_path() -> Path:
    """Get the path to the SQLite database file."""
    return get_data_dir() / "music_catch.db"


@contextmanager
def get_db_connection():
    """Get a database connection with proper cleanup and concurrency support."""
    db_path = get_database_path()
    conn = sqlite3.connect(db_path, timeout=30.0)
    conn.row_factory = sqlite3.Row  # Enable dict-like access

    # WAL mode allows reads during writes (CLI + background tools)
    conn.execute("PRAGMA journal_mode=WAL")

    try:
        yield conn
    finally:
        conn.close()


def migrate_database(conn, current_version: int) -> None:
    """Migrate database from current_version to latest schema."""
    if current_version < 2:
        # Migration from v1 to v2: social preferences and listened time
        logger.info("Migrating database to v2 (followed artists, saved playlists)")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS followed_artists (
                artist_id TEXT PRIMARY KEY,
                followed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS saved_playlists (
                playlist_id TEXT PRIMARY KEY,
                saved_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        columns = {
            row["name"] for row in conn.execute("PRAGMA table_info(play_history)")
        }
        if "listened_seconds" not in columns:
            conn.execute(
                "ALTER TABLE play_history ADD COLUMN listened_seconds REAL DEFAULT 0"
            )

        conn.commit()


def init_database() -> None:
    """Initialize the database with required tables."""
    db_path = get_database_path()

    # Ensure data directory exists
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection() as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS liked_tracks (
                track_id TEXT PRIMARY KEY,
                liked_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        conn.execute("""
            CREATE TABLE IF NOT EXISTS play_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                track_id TEXT NOT NULL,
                title TEXT,
                artist TEXT,
                album TEXT,
                played_at TIMESTAMP NOT NULL
            )
        """)

        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_play_history_played_at ON play_history (played_at)"
        )

        # Use MAX to tolerate multiple version rows
        cursor = conn.execute("SELECT MAX(version) as version FROM schema_version")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] else 0
        cursor.close()

        if current_version < SCHEMA_VERSION:
            migrate_database(conn, current_version)

        conn.execute("DELETE FROM schema_version")
        conn.execute(
            "INSERT INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )

        conn.commit()


def get_liked_track_ids() -> Set[str]:
    """Get IDs of all liked tracks."""
    with get_db_connection() as conn:
        cursor = conn.execute("SELECT track_id FROM liked_tracks")
        return {row["track_id"] for row in cursor.fetchall()}


def set_tracks_liked(track_ids: Iterable[str], liked: bool) -> None:
    """Add or remove tracks from the liked set."""
    rows = [(track_id,) for track_id in track_ids]
    if not rows:
        return

    with get_db_connection() as conn:
        if liked:
            conn.executemany(
                "INSERT OR IGNORE INTO liked_tracks (track_id) VALUES (?)", rows
            )
        else:
            conn.executemany("DELETE FROM liked_tracks WHERE track_id = ?", rows)
        conn.commit()


def get_followed_artist_ids() -> Set[str]:
    """Get IDs of all followed artists."""
    with get_db_connection() as conn:
        cursor = conn.execute("SELECT artist_id FROM followed_artists")
        return {row["artist_id"] for row in cursor.fetchall()}


def set_artists_followed(artist_ids: Iterable[str], followed: bool) -> None:
    """Follow or unfollow artists."""
    rows = [(artist_id,) for artist_id in artist_ids]
    if not rows:
        return

    with get_db_connection() as conn:
        if followed:
            conn.executemany(
                "INSERT OR IGNORE INTO followed_artists (artist_id) VALUES (?)", rows
            )
        else:
            conn.executemany(
                "DELETE FROM followed_artists WHERE artist_id = ?", rows
            )
        conn.commit()


def get_saved_playlist_ids() -> Set[str]:
    """Get IDs of all saved playlists."""
    with get_db_connection() as conn:
        cursor = conn.execute("SELECT playlist_id FROM saved_playlists")
        return {row["playlist_id"] for row in cursor.fetchall()}


def add_saved_playlists(playlist_ids: Iterable[str]) -> None:
    """Save playlists to the library."""
    rows = [(playlist_id,) for playlist_id in playlist_ids]
    if not rows:
        return

    with get_db_connection() as conn:
        conn.executemany(
            "INSERT OR IGNORE INTO saved_playlists (playlist_id) VALUES (?)", rows
        )
        conn.commit()


def record_play(
    track_id: str,
    title: str,
    artist: str,
    album: str,
    played_at: datetime,
    listened_seconds: float,
) -> int:
    """Record a finished listen and return its row ID."""
    with get_db_connection() as conn:
        cursor = conn.execute(
            """
            INSERT INTO play_history (track_id, title, artist, album, played_at, listened_seconds)
            VALUES (?, ?, ?, ?, ?, ?)
        """,
            (track_id, title, artist, album, played_at.isoformat(), listened_seconds),
        )
        conn.commit()
        return cursor.lastrowid


def get_recent_plays(limit: int = 20) -> List[Dict[str, Any]]:
    """Get the most recent listens, newest first."""
    with get_db_connection() as conn:
        cursor = conn.execute(
            """
            SELECT track_id, title, artist, album, played_at, listened_seconds
            FROM play_history
            ORDER BY played_at DESC, id DESC
            LIMIT ?
        """,
            (limit,),
        )
        return [dict(row) for row in cursor.fetchall()]
