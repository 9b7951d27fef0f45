# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/identity.py
"""
Profile id resolution.

Saved profiles are named ``<email>-<plan>`` (sanitised). When two different
identities would share a name, the later one gets a short suffix taken from
its workspace (or principal) id. Files already holding the same identity are
reused and, where an older file is named differently, renamed to the
canonical id so repeated saves converge on a single file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, List, Mapping, Optional, Tuple, Union

from . import messages
from .auth import (
    UNKNOWN,
    Credential,
    ProfileIdentityKey,
    extract_profile_identity,
    matches_identity,
    read_credential,
    require_identity,
)
from .config import Paths
from .errors import AuthFileError, IdentityError, ProfilesError, StoreError

if TYPE_CHECKING:
    from .store import ProfilesIndex

lib_logger = logging.getLogger("codex_profiles")

RESERVED_FILE_NAMES = frozenset({"profiles.json", "update.json"})
SUFFIX_LEN = 6

TokenResult = Union[Credential, ProfilesError]


# =============================================================================
# PROFILE FILES
# =============================================================================


def is_profile_file(path: Path) -> bool:
    return path.suffix == ".json" and path.name not in RESERVED_FILE_NAMES


def profile_id_from_path(path: Path) -> Optional[str]:
    return path.stem or None


def profile_files(profiles_dir: Path) -> List[Path]:
    """All saved profile files, sorted by name. A missing directory is empty."""
    if not profiles_dir.exists():
        return []
    try:
        entries = list(profiles_dir.iterdir())
    except OSError as e:
        raise StoreError(messages.PROFILE_ERR_READ_PROFILES_DIR.format(e)) from e
    return sorted(p for p in entries if p.is_file() and is_profile_file(p))


def collect_profile_ids(profiles_dir: Path) -> set:
    ids = set()
    for path in profile_files(profiles_dir):
        profile_id = profile_id_from_path(path)
        if profile_id:
            ids.add(profile_id)
    return ids


# =============================================================================
# NAMING
# =============================================================================


def sanitize_part(value: str) -> str:
    """
    Lowercase ASCII letters and digits, keep ``@ . _ + -``, turn anything
    else into ``-``, collapse dash runs and trim dashes at both ends.
    """
    out = []
    last_dash = False
    for ch in value:
        if ch.isascii() and ch.isalnum():
            nxt = ch.lower()
        elif ch in "@._+-":
            nxt = ch
        else:
            nxt = "-"
        if nxt == "-":
            if last_dash:
                continue
            last_dash = True
        else:
            last_dash = False
        out.append(nxt)
    return "".join(out).strip("-")


def profile_base(email: str, plan: str) -> str:
    return f"{sanitize_part(email) or UNKNOWN}-{sanitize_part(plan) or UNKNOWN}"


def short_identity_suffix(identity: ProfileIdentityKey) -> str:
    if identity.workspace_or_org_id == UNKNOWN:
        source = identity.principal_id
    else:
        source = identity.workspace_or_org_id
    return source[:SUFFIX_LEN] or "id"


def _holds_identity(path: Path, identity: ProfileIdentityKey) -> bool:
    try:
        return matches_identity(read_credential(path), identity)
    except AuthFileError:
        return False


def unique_id(base: str, identity: ProfileIdentityKey, profiles_dir: Path) -> str:
    """
    Return the first of ``base``, ``base-<suffix>``, ``base-<suffix>-2``, ...
    that is either free or already holds ``identity``.
    """
    suffix = short_identity_suffix(identity)
    candidate = base
    attempts = 0
    while True:
        path = profiles_dir / f"{candidate}.json"
        if not path.is_file() or _holds_identity(path, identity):
            return candidate
        attempts += 1
        if attempts == 1:
            candidate = f"{base}-{suffix}"
        else:
            candidate = f"{base}-{suffix}-{attempts}"


# =============================================================================
# CANDIDATE LOOKUP
# =============================================================================


def scan_by_identity(profiles_dir: Path, identity: ProfileIdentityKey) -> List[str]:
    """Ids of every readable profile file whose identity equals ``identity``."""
    matches = []
    for path in profile_files(profiles_dir):
        if not _holds_identity(path, identity):
            continue
        profile_id = profile_id_from_path(path)
        if profile_id:
            matches.append(profile_id)
    return matches


def cached_profile_ids(
    tokens: Mapping[str, TokenResult], identity: ProfileIdentityKey
) -> List[str]:
    """Like scan_by_identity, but over already-loaded credentials."""
    return [
        profile_id
        for profile_id, result in tokens.items()
        if not isinstance(result, ProfilesError) and matches_identity(result, identity)
    ]


def pick_primary(candidates: List[str]) -> Optional[str]:
    return min(candidates) if candidates else None


# =============================================================================
# RESOLUTION
# =============================================================================


def rename_profile_id(
    paths: Paths,
    index: "ProfilesIndex",
    from_id: str,
    target_base: str,
    identity: ProfileIdentityKey,
) -> str:
    """Move ``from_id`` (file and index entry) to its canonical id."""
    desired = unique_id(target_base, identity, paths.profiles)
    if from_id == desired:
        return desired
    from_path = paths.profile_path(from_id)
    if not from_path.is_file():
        raise StoreError(messages.PROFILE_ERR_ID_NOT_FOUND.format(from_id))
    try:
        os.rename(from_path, paths.profile_path(desired))
    except OSError as e:
        raise StoreError(messages.PROFILE_ERR_RENAME_PROFILE.format(from_id, e)) from e
    entry = index.profiles.pop(from_id, None)
    if entry is not None:
        index.profiles[desired] = entry
    lib_logger.info(f"Renamed profile '{from_id}' to '{desired}'")
    return desired


def _desired_candidates(
    paths: Paths, identity: ProfileIdentityKey, email: str, plan: str
) -> Tuple[str, str, List[str]]:
    desired_base = profile_base(email, plan)
    desired = unique_id(desired_base, identity, paths.profiles)
    return desired_base, desired, scan_by_identity(paths.profiles, identity)


def resolve_save_id(paths: Paths, index: "ProfilesIndex", credential: Credential) -> str:
    """
    Pick the id a save should write to.

    Raises:
        IdentityError: If the credential lacks account, email or plan
    """
    _, email, plan = require_identity(credential)
    identity = extract_profile_identity(credential)
    if identity is None:
        raise IdentityError(messages.AUTH_ERR_INCOMPLETE_ACCOUNT)
    desired_base, desired, candidates = _desired_candidates(paths, identity, email, plan)
    primary = pick_primary(candidates)
    if primary is not None and primary != desired:
        return rename_profile_id(paths, index, primary, desired_base, identity)
    return desired


def resolve_sync_id(
    paths: Paths, index: "ProfilesIndex", credential: Credential
) -> Optional[str]:
    """
    Pick the saved id that mirrors the live credential, or None if it has no
    complete identity or no saved copy. A single existing match is trusted
    as-is, even under a non-canonical name.
    """
    try:
        _, email, plan = require_identity(credential)
    except IdentityError:
        return None
    identity = extract_profile_identity(credential)
    if identity is None:
        return None
    desired_base, desired, candidates = _desired_candidates(paths, identity, email, plan)
    if len(candidates) == 1:
        return candidates[0]
    if desired in candidates:
        return desired
    primary = pick_primary(candidates)
    if primary is None:
        return None
    if primary != desired:
        return rename_profile_id(paths, index, primary, desired_base, identity)
    return primary
