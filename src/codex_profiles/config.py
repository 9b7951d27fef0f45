# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/config.py
"""
Filesystem layout and environment-driven settings.

Environment variables:
    CODEX_PROFILES_HOME: Directory that holds ``.codex`` (defaults to ``~``)
    CODEX_PROFILES_COMMAND: Command name shown in hints
    CODEX_PROFILES_LOCK_TIMEOUT: Seconds to wait for the profiles lock
    CODEX_REFRESH_TOKEN_URL_OVERRIDE: Token endpoint used for refreshes
    NO_COLOR: Disable styled output
"""

import logging
import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path

from . import messages
from .errors import StoreError

lib_logger = logging.getLogger("codex_profiles")

DEFAULT_COMMAND_NAME = "codex-profiles"
DEFAULT_BASE_URL = "https://chatgpt.com/backend-api"
DEFAULT_LOCK_TIMEOUT = 10.0
LOCK_POLL_INTERVAL = 1.0
REFRESH_TOKEN_URL = "https://auth.openai.com/oauth/token"
HTTP_TIMEOUT = 5.0


@dataclass(frozen=True)
class Paths:
    """Every location the tool reads or writes, derived from one root."""

    codex: Path
    auth: Path
    config: Path
    profiles: Path
    profiles_index: Path
    update_cache: Path
    profiles_lock: Path

    @classmethod
    def from_codex_dir(cls, codex: Path) -> "Paths":
        profiles = codex / "profiles"
        return cls(
            codex=codex,
            auth=codex / "auth.json",
            config=codex / "config.toml",
            profiles=profiles,
            profiles_index=profiles / "profiles.json",
            update_cache=profiles / "update.json",
            profiles_lock=profiles / "profiles.lock",
        )

    def profile_path(self, profile_id: str) -> Path:
        return self.profiles / f"{profile_id}.json"


def resolve_home_dir() -> Path:
    override = (os.getenv("CODEX_PROFILES_HOME") or "").strip()
    if override:
        return Path(override)
    return Path.home()


def resolve_paths() -> Paths:
    return Paths.from_codex_dir(resolve_home_dir() / ".codex")


def ensure_paths(paths: Paths) -> None:
    """
    Create the profiles directory (owner-only) and the lock file.

    Raises:
        StoreError: If a path exists with the wrong type or cannot be created
    """
    if paths.profiles.exists() and not paths.profiles.is_dir():
        raise StoreError(messages.COMMON_ERR_EXISTS_NOT_DIR.format(paths.profiles))
    try:
        paths.profiles.mkdir(parents=True, exist_ok=True)
        if os.name == "posix":
            os.chmod(paths.profiles, 0o700)
    except OSError as e:
        raise StoreError(
            messages.COMMON_ERR_CREATE_PROFILES_DIR.format(paths.profiles, e)
        ) from e

    for path in (paths.profiles_index, paths.update_cache, paths.profiles_lock):
        if path.exists() and not path.is_file():
            raise StoreError(messages.COMMON_ERR_EXISTS_NOT_FILE.format(path))

    try:
        paths.profiles_lock.touch(exist_ok=True)
    except OSError as e:
        raise StoreError(
            messages.COMMON_ERR_WRITE_LOCK_FILE.format(paths.profiles_lock, e)
        ) from e


def command_name() -> str:
    env_value = (os.getenv("CODEX_PROFILES_COMMAND") or "").strip()
    if env_value:
        return env_value
    if sys.argv and sys.argv[0]:
        name = Path(sys.argv[0]).name
        if name:
            return name
    return DEFAULT_COMMAND_NAME


def lock_timeout() -> float:
    raw = os.getenv("CODEX_PROFILES_LOCK_TIMEOUT")
    if raw is None:
        return DEFAULT_LOCK_TIMEOUT
    try:
        return max(0.0, float(raw))
    except ValueError:
        lib_logger.warning(
            f"Ignoring invalid CODEX_PROFILES_LOCK_TIMEOUT={raw!r}; using {DEFAULT_LOCK_TIMEOUT}s"
        )
        return DEFAULT_LOCK_TIMEOUT


def refresh_token_url() -> str:
    return os.getenv("CODEX_REFRESH_TOKEN_URL_OVERRIDE") or REFRESH_TOKEN_URL


def colors_disabled_by_env() -> bool:
    return os.getenv("NO_COLOR") is not None


# =============================================================================
# USAGE SERVICE BASE URL
# =============================================================================


def normalize_base_url(value: str) -> str:
    base = value.strip().rstrip("/")
    if (
        base.startswith("https://chatgpt.com") or base.startswith("https://chat.openai.com")
    ) and "/backend-api" not in base:
        base = f"{base}/backend-api"
    return base


def read_base_url(paths: Paths) -> str:
    """
    Read ``chatgpt_base_url`` from the Codex ``config.toml``.

    Falls back to the public ChatGPT backend when the file is missing,
    unparsable, or does not set a usable value.
    """
    try:
        with open(paths.config, "rb") as f:
            config = tomllib.load(f)
    except FileNotFoundError:
        return DEFAULT_BASE_URL
    except (OSError, tomllib.TOMLDecodeError) as e:
        lib_logger.warning(f"Could not parse '{paths.config}': {e}")
        return DEFAULT_BASE_URL

    value = config.get("chatgpt_base_url")
    if not isinstance(value, str) or not value.strip():
        return DEFAULT_BASE_URL
    return normalize_base_url(value)


def usage_endpoint(base_url: str) -> str:
    if "/backend-api" in base_url:
        return f"{base_url}/wham/usage"
    return f"{base_url}/api/codex/usage"
