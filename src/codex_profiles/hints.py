# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Plain-text hints and error normalisation shared by the store, selection and display layers."""

from pathlib import Path

from . import messages
from .auth import has_auth
from .config import command_name


def format_command(cmd: str = "") -> str:
    name = command_name()
    full = f"{name} {cmd}" if cmd else name
    return f"`{full}`"


def list_hint() -> str:
    return messages.UI_HINT_LIST_PROFILES.format(list=format_command("list"))


def _save_hint(auth_path: Path, save_only: str, with_login: str) -> str:
    save = format_command("save")
    if has_auth(auth_path):
        return save_only.format(save=save)
    return with_login.format(login="`codex login`", save=save)


def no_profiles_hint(auth_path: Path) -> str:
    return _save_hint(auth_path, messages.UI_HINT_SAVE_PROFILE, messages.UI_HINT_LOGIN_AND_SAVE)


def save_before_load_hint(auth_path: Path) -> str:
    return _save_hint(
        auth_path,
        messages.UI_HINT_SAVE_BEFORE_LOADING,
        messages.UI_HINT_LOGIN_SAVE_BEFORE_LOADING,
    )


def unsaved_save_line() -> str:
    return messages.UI_HINT_SAVE_PROFILE.format(save=format_command("save"))


def normalize_error(message: str) -> str:
    """
    Collapse the various "run codex login" auth failures into three short
    summaries; anything else (including 401s) is returned unchanged.
    """
    prefix = f"{messages.UI_ERROR_PREFIX} "
    if message.startswith(prefix):
        message = message[len(prefix):]
    lower = message.lower()
    if "codex login" in lower and "(401)" not in message and "unauthorized" not in lower:
        if "not found" in lower:
            return messages.UI_NORMALIZED_NOT_LOGGED_IN
        if "invalid json" in lower:
            return messages.UI_NORMALIZED_AUTH_INVALID
        return messages.UI_NORMALIZED_AUTH_INCOMPLETE
    return message


def error_summary(label: str, message: str) -> str:
    return f"{label}: {normalize_error(message)}"
