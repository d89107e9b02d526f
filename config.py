"""
Survivor Pool Configuration

Centralized settings, paths, and constants for the engine.
"""

import logging
from datetime import timedelta
from pathlib import Path
from dataclasses import dataclass
from typing import Optional
import appdirs


# Application info
APP_NAME = "SurvivorPool"
APP_AUTHOR = "SurvivorPool"
APP_VERSION = "1.0.0"


@dataclass(frozen=True)
class Paths:
    """Application paths."""
    # Data directory (stores database)
    data_dir: Path = Path(appdirs.user_data_dir(APP_NAME, APP_AUTHOR))

    # Config directory (stores operator preferences)
    config_dir: Path = Path(appdirs.user_config_dir(APP_NAME, APP_AUTHOR))

    # Log directory
    log_dir: Path = Path(appdirs.user_log_dir(APP_NAME, APP_AUTHOR))

    @property
    def database(self) -> Path:
        return self.data_dir / "survivor_pool.db"

    @property
    def log_file(self) -> Path:
        return self.log_dir / "survivor_pool.log"

    def ensure_directories(self) -> None:
        """Create all required directories."""
        for dir_path in [self.data_dir, self.config_dir, self.log_dir]:
            dir_path.mkdir(parents=True, exist_ok=True)


@dataclass(frozen=True)
class EngineSettings:
    """Tournament engine settings."""
    # Picks lock this long before a round's first tip-off
    deadline_grace: timedelta = timedelta(minutes=5)

    # How long a simulated clock reading is trusted before re-reading the store
    clock_cache_ttl_seconds: float = 10.0

    # Generated schedules: first tip-off of the day (UTC) and spacing between games
    first_tip_hour_utc: int = 16
    game_spacing_minutes: int = 30

    # Synthetic scores used when simulating results
    winner_score_range: tuple[int, int] = (70, 95)
    loser_score_range: tuple[int, int] = (50, 70)


@dataclass(frozen=True)
class LogSettings:
    """Logging settings."""
    level: int = logging.INFO
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    datefmt: str = "%H:%M:%S"
    log_to_file: bool = True


# Singleton instances
PATHS = Paths()
ENGINE_SETTINGS = EngineSettings()
LOG_SETTINGS = LogSettings()


def init_config() -> None:
    """Initialize configuration and create required directories."""
    PATHS.ensure_directories()


def configure_logging(level: Optional[int] = None, log_to_file: Optional[bool] = None) -> None:
    """Install console (and optionally file) logging handlers."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if LOG_SETTINGS.log_to_file if log_to_file is None else log_to_file:
        PATHS.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(PATHS.log_file))

    logging.basicConfig(
        level=LOG_SETTINGS.level if level is None else level,
        format=LOG_SETTINGS.format,
        datefmt=LOG_SETTINGS.datefmt,
        handlers=handlers,
        force=True,
    )
