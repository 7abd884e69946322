"""
Environment helpers.

The API, the CLI and the tests all start from different working directories, yet they
must agree on:
- which `.env` file supplies `BLOOMMARKET_*` variables (API URL, data source, config path),
- where relative paths such as `session_cache.dir` live.

`BLOOMMARKET_PROJECT_ROOT` pins the root explicitly; `BLOOMMARKET_ENV_FILE` names the env
file (its directory then acts as the root). Otherwise the root is the nearest ancestor
holding `.env`, `.git`, or `pyproject.toml` next to `src/`.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

_TRUTHY = {"1", "true", "yes", "y", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _explicit_env_file() -> Path | None:
    raw = os.getenv("BLOOMMARKET_ENV_FILE")
    return Path(raw).expanduser().resolve() if raw else None


def _is_root(path: Path) -> bool:
    markers = (path / ".env", path / ".git")
    if any(m.exists() for m in markers):
        return True
    return (path / "pyproject.toml").is_file() and (path / "src").is_dir()


def _find_root(start: Path) -> Path | None:
    start = start.resolve()
    return next((p for p in (start, *start.parents) if _is_root(p)), None)


@lru_cache
def get_project_root() -> Path:
    """Best-guess project root (cached for the process)."""
    pinned = os.getenv("BLOOMMARKET_PROJECT_ROOT")
    if pinned:
        return Path(pinned).expanduser().resolve()

    env_file = _explicit_env_file()
    if env_file is not None:
        return env_file.parent

    # The working directory wins; an editable install launched elsewhere falls back to
    # searching from the package location.
    return _find_root(Path.cwd()) or _find_root(Path(__file__).parent) or Path.cwd().resolve()


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load the env file once; variables already in the process environment are kept.

    Returns the loaded path, or None when there is nothing to load.
    """
    env_path = _explicit_env_file() or get_project_root() / ".env"
    if not env_path.is_file():
        return None
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path


def resolve_project_path(path: str | Path) -> Path:
    """Absolute paths pass through; relative ones are anchored at the project root."""
    p = Path(path).expanduser()
    return p if p.is_absolute() else (get_project_root() / p).resolve()
