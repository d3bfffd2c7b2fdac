"""
Configuration management for MusicCatch Player
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

VALID_REPEAT_MODES = ("off", "all", "one")


@dataclass
class PlayerConfig:
    """Configuration for the audio player."""

    mpv_socket_path: Optional[str] = None
    volume: int = 70  # 0-100, rescaled to 0.0-1.0 for the controller
    load_timeout_seconds: float = 15.0
    restart_threshold_seconds: float = 5.0
    history_limit: int = 50
    poll_interval_seconds: float = 0.25

    def validate(self) -> None:
        """Validate player configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.history_limit < 1:
            raise ValueError(f"history_limit must be >= 1, got {self.history_limit}")
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"poll_interval_seconds must be > 0, got {self.poll_interval_seconds}"
            )
        if self.load_timeout_seconds < 0:
            raise ValueError(
                f"load_timeout_seconds must be >= 0, got {self.load_timeout_seconds}"
            )
        if self.restart_threshold_seconds < 0:
            raise ValueError(
                "restart_threshold_seconds must be >= 0, "
                f"got {self.restart_threshold_seconds}"
            )


@dataclass
class PlaybackConfig:
    """Initial playback settings."""

    shuffle: bool = False
    repeat: str = "off"  # off, all, one
    crossfade: float = 0.0
    autoplay: bool = True
    high_quality: bool = False

    def validate(self) -> None:
        """Validate playback configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.repeat not in VALID_REPEAT_MODES:
            raise ValueError(
                f"Invalid repeat mode: {self.repeat!r}. "
                f"Valid modes are: {VALID_REPEAT_MODES}"
            )
        if self.crossfade < 0:
            raise ValueError(f"Crossfade must be >= 0, got {self.crossfade}")


@dataclass
class LibraryConfig:
    """Configuration for the music catalog."""

    catalog_path: Optional[str] = None  # JSON catalog; built-in sample when unset


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/music-catch/music-catch.log)
    )


@dataclass
class NotificationsConfig:
    """Configuration for desktop notifications."""

    enabled: bool = True
    show_now_playing: bool = True
    show_errors: bool = True


@dataclass
class Config:
    """Main configuration object."""

    player: PlayerConfig = field(default_factory=PlayerConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    library: LibraryConfig = field(default_factory=LibraryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "music-catch"
    return Path.home() / ".config" / "music-catch"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/music-catch (or ~/.config/music-catch)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "music-catch"
    return Path.home() / ".local" / "share" / "music-catch"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# MusicCatch Player Configuration

[player]
# Path for mpv socket (auto-detected if not specified)
# mpv_socket_path = "/tmp/mpv-socket"

# Default volume (0-100)
volume = 70

# Give up on a track that has not started after this many seconds (0 disables)
load_timeout_seconds = 15.0

# "Previous" restarts the current track when more than this many seconds have played
restart_threshold_seconds = 5.0

# Number of recently played tracks to remember
history_limit = 50

# How often the player loop polls mpv (seconds)
poll_interval_seconds = 0.25

[playback]
# Start in shuffle mode
shuffle = false

# Repeat mode (off, all, one)
repeat = "off"

# Crossfade seconds (stored, not applied)
crossfade = 0.0

# Continue with the next track automatically
autoplay = true

# Prefer high quality streams
high_quality = false

[library]
# JSON catalog of tracks and playlists (built-in sample catalog if not set)
# catalog_path = "~/Music/catalog.json"

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/music-catch/music-catch.log)
# log_file = "/path/to/custom/music-catch.log"

[notifications]
# Enable desktop notifications
enabled = true

# Announce each new track
show_now_playing = true

# Show playback errors
show_errors = true
""".strip()


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - MUSICCATCH_MPV_SOCKET
    - MUSICCATCH_LOG_LEVEL
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        print(f"Created default configuration at: {config_path}")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        config = parse_config(toml_data)

    except Exception as e:
        print(f"Error loading configuration from {config_path}: {e}")
        print("Using default configuration.")
        config = Config()

    return _apply_env_overrides(config)


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML data, keeping defaults for missing keys."""
    config = Config()

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            mpv_socket_path=player_data.get("mpv_socket_path"),
            volume=max(0, min(100, int(player_data.get("volume", config.player.volume)))),
            load_timeout_seconds=float(
                player_data.get(
                    "load_timeout_seconds", config.player.load_timeout_seconds
                )
            ),
            restart_threshold_seconds=float(
                player_data.get(
                    "restart_threshold_seconds",
                    config.player.restart_threshold_seconds,
                )
            ),
            history_limit=int(
                player_data.get("history_limit", config.player.history_limit)
            ),
            poll_interval_seconds=float(
                player_data.get(
                    "poll_interval_seconds", config.player.poll_interval_seconds
                )
            ),
        )
        try:
            config.player.validate()
        except ValueError as e:
            print(f"Warning: Invalid player configuration: {e}")
            print("Using default player configuration.")
            config.player = PlayerConfig()

    if "playback" in toml_data:
        playback_data = toml_data["playback"]
        config.playback = PlaybackConfig(
            shuffle=playback_data.get("shuffle", config.playback.shuffle),
            repeat=str(playback_data.get("repeat", config.playback.repeat)).lower(),
            crossfade=float(playback_data.get("crossfade", config.playback.crossfade)),
            autoplay=playback_data.get("autoplay", config.playback.autoplay),
            high_quality=playback_data.get(
                "high_quality", config.playback.high_quality
            ),
        )
        try:
            config.playback.validate()
        except ValueError as e:
            print(f"Warning: Invalid playback configuration: {e}")
            print("Using default playback configuration.")
            config.playback = PlaybackConfig()

    if "library" in toml_data:
        catalog_path = toml_data["library"].get("catalog_path")
        if catalog_path:
            catalog_path = str(Path(catalog_path).expanduser())
        config.library = LibraryConfig(catalog_path=catalog_path)

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        log_file = logging_data.get("log_file")
        if log_file:
            log_file = str(Path(log_file).expanduser())
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=log_file,
        )

    if "notifications" in toml_data:
        notifications_data = toml_data["notifications"]
        config.notifications = NotificationsConfig(
            enabled=notifications_data.get("enabled", config.notifications.enabled),
            show_now_playing=notifications_data.get(
                "show_now_playing", config.notifications.show_now_playing
            ),
            show_errors=notifications_data.get(
                "show_errors", config.notifications.show_errors
            ),
        )

    return config


def _apply_env_overrides(config: Config) -> Config:
    mpv_socket = os.environ.get("MUSICCATCH_MPV_SOCKET")
    log_level = os.environ.get("MUSICCATCH_LOG_LEVEL")

    if mpv_socket:
        config.player.mpv_socket_path = mpv_socket
    if log_level:
        config.logging.level = log_level.upper()

    return config


def get_log_file_path(config: Config) -> Path:
    """Get the path to the log file."""
    if config.logging.log_file:
        return Path(config.logging.log_file)
    return get_data_dir() / "music-catch.log"


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
