# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from typing import Optional


class ProfilesError(Exception):
    """Base class for every user-facing failure raised by codex_profiles."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class IdentityError(ProfilesError):
    """The live credential lacks the account, email or plan needed to save it."""


class AuthFileError(ProfilesError):
    """An auth or profile file is missing, unreadable or malformed."""


class StoreError(ProfilesError):
    """The profiles directory, index or lock could not be used."""


class LockTimeoutError(StoreError):
    """The profiles lock stayed held elsewhere past the configured wait."""


class SelectionError(ProfilesError):
    """A label did not resolve or an interactive choice was impossible."""


class RefreshError(ProfilesError):
    """Exchanging a refresh token for new tokens failed."""


class UsageError(ProfilesError):
    """
    Fetching usage data failed.

    ``kind`` is one of ``"status"``, ``"transport"`` or ``"parse"``; only
    status errors carry a ``status_code``.
    """

    STATUS = "status"
    TRANSPORT = "transport"
    PARSE = "parse"

    def __init__(self, message: str, kind: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class PromptCancelled(Exception):
    """The user backed out of an interactive prompt."""
