"""Environment helpers for the kwant-chart CLI."""

from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv


def load_project_env(env_file: str | Path = ".env") -> bool:
    """Load .env file if present (idempotent). Returns whether a file was loaded."""

    env_path = Path(env_file)
    if env_path.exists():
        return load_dotenv(env_path)
    return False
