# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import logging

from .config import Paths, ensure_paths, resolve_paths
from .errors import (
    AuthFileError,
    IdentityError,
    LockTimeoutError,
    ProfilesError,
    PromptCancelled,
    RefreshError,
    SelectionError,
    StoreError,
    UsageError,
)
from .outcome import Outcome, OutcomeKind

lib_logger = logging.getLogger("codex_profiles")
lib_logger.propagate = False
if not lib_logger.handlers:
    lib_logger.addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "Paths",
    "resolve_paths",
    "ensure_paths",
    "Outcome",
    "OutcomeKind",
    "ProfilesError",
    "IdentityError",
    "AuthFileError",
    "StoreError",
    "LockTimeoutError",
    "SelectionError",
    "UsageError",
    "RefreshError",
    "PromptCancelled",
]
