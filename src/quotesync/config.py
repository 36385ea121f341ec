"""
Configuration management for quotesync.

Loads settings from environment variables with optional .env file support.
"""

import math
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .sync.remote import DEFAULT_REMOTE_CATEGORY, DEFAULT_REMOTE_URL, DEFAULT_TIMEOUT
from .sync.scheduler import DEFAULT_INTERVAL

# Look for .env files in project root (parent of src/)
# .env.local takes precedence over .env
project_root = Path(__file__).parent.parent.parent
env_local_path = project_root / ".env.local"
env_path = project_root / ".env"
if env_local_path.exists():
    load_dotenv(env_local_path)
elif env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Read a QUOTESYNC_* setting; .env values are already in os.environ."""
    return os.environ.get(key, default)


def get_float(key: str, default: float) -> float:
    """Get a positive number from the environment."""
    raw = get_env(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return value


def expand_path(path: str) -> Path:
    """Expand ~ and environment variables in a path."""
    return Path(os.path.expandvars(os.path.expanduser(path)))


# =============================================================================
# Path Configuration
# =============================================================================

def get_state_db_path() -> Path:
    """Get path to local state database."""
    path = get_env("QUOTESYNC_STATE_DB", "~/.local/share/quotesync/state.db")
    return expand_path(path)


def get_log_dir() -> Path:
    """Get path to log directory."""
    path = get_env("QUOTESYNC_LOG_DIR", "~/.local/share/quotesync/logs")
    return expand_path(path)


# =============================================================================
# Remote Configuration
# =============================================================================

def get_remote_url() -> str:
    """Get the remote quote endpoint."""
    return get_env("QUOTESYNC_REMOTE_URL", DEFAULT_REMOTE_URL)


def get_remote_category() -> str:
    """Category given to remote items that don't carry one."""
    return get_env("QUOTESYNC_REMOTE_CATEGORY", DEFAULT_REMOTE_CATEGORY)


def get_remote_timeout() -> float:
    """HTTP timeout for remote calls, in seconds."""
    return get_float("QUOTESYNC_REMOTE_TIMEOUT", DEFAULT_TIMEOUT)


def get_sync_interval() -> float:
    """Seconds between scheduled sync cycles."""
    return get_float("QUOTESYNC_SYNC_INTERVAL", DEFAULT_INTERVAL)


# =============================================================================
# Debug / Display
# =============================================================================

def print_config_summary() -> None:
    """Print current configuration."""
    print("Configuration:")
    print(f"  State DB: {get_state_db_path()}")
    print(f"  Log Dir: {get_log_dir()}")
    print(f"  Remote URL: {get_remote_url()}")
    print(f"  Remote Category: {get_remote_category()}")
    print(f"  Remote Timeout: {get_remote_timeout():g}s")
    print(f"  Sync Interval: {get_sync_interval():g}s")
