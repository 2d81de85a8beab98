from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Persisted file next to the package unless SCOREBOARD_DB_PATH says otherwise
DEFAULT_DB_PATH = os.path.join(os.path.dirname(__file__), "judging.sqlite")


def load_env(env_file: Optional[str] = None) -> None:
    """Load environment variables from an `.env` file if present."""
    env_path = Path(env_file) if env_file else Path(".env")
    if env_path.exists():
        load_dotenv(env_path)


@dataclass(frozen=True)
class Settings:
    db_path: str = DEFAULT_DB_PATH
    log_level: str = "info"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        load_env()
        return cls(
            db_path=os.getenv("SCOREBOARD_DB_PATH", DEFAULT_DB_PATH),
            log_level=os.getenv("SCOREBOARD_LOG_LEVEL", "info"),
            host=os.getenv("SCOREBOARD_HOST", "127.0.0.1"),
            port=int(os.getenv("SCOREBOARD_PORT", "8000")),
        )
