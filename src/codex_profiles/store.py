# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/store.py
"""
Profile store: the ``profiles.json`` index, labels and the profiles lock.

Schema (version 2):
{
    "version": 2,
    "profiles": {
        "<id>": {
            "account_id": ..., "email": ..., "plan": ..., "label": ...,
            "is_api_key": false, "principal_id": ...,
            "workspace_or_org_id": ..., "plan_type_key": ...
        }
    }
}

Older files that still carry ``last_used``, ``active_profile_id`` or
``update_cache`` are upgraded and rewritten on first read. Index keys always
mirror the set of profile files on disk: stale entries are dropped and files
without an entry are seeded on every load.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Callable, Dict, Iterator, List, Optional

from filelock import FileLock, Timeout

from . import messages
from .auth import (
    Credential,
    extract_email_and_plan,
    extract_profile_identity,
    is_api_key,
    read_credential,
    read_credential_opt,
    token_account_id,
)
from .config import LOCK_POLL_INTERVAL, Paths, command_name, lock_timeout
from .errors import AuthFileError, LockTimeoutError, ProfilesError, SelectionError, StoreError
from .hints import list_hint, normalize_error
from .identity import (
    TokenResult,
    cached_profile_ids,
    collect_profile_ids,
    pick_primary,
    profile_files,
    profile_id_from_path,
    resolve_sync_id,
)
from .utils.credential_formatter import format_credential_for_display
from .utils.resilient_io import copy_atomic, write_json_atomic

lib_logger = logging.getLogger("codex_profiles")

CURRENT_SCHEMA_VERSION = 2
LEGACY_MARKERS = ('"last_used"', '"active_profile_id"', '"update_cache"')

Warn = Callable[[str], None]
Labels = Dict[str, str]


def _warn(warn: Optional[Warn], message: str) -> None:
    lib_logger.warning(message)
    if warn is not None:
        warn(message)


# =============================================================================
# INDEX
# =============================================================================


@dataclass
class IndexEntry:
    """Cached metadata for one saved profile."""

    account_id: Optional[str] = None
    email: Optional[str] = None
    plan: Optional[str] = None
    label: Optional[str] = None
    is_api_key: bool = False
    principal_id: Optional[str] = None
    workspace_or_org_id: Optional[str] = None
    plan_type_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexEntry":
        """
        Raises:
            ValueError: If a known field has the wrong JSON type
        """
        entry = cls()
        for f in fields(cls):
            value = data.get(f.name)
            if value is None:
                continue
            expected = bool if f.name == "is_api_key" else str
            if not isinstance(value, expected):
                raise ValueError(f"{f.name} must be a {expected.__name__}")
            setattr(entry, f.name, value)
        return entry


@dataclass
class ProfilesIndex:
    version: int = CURRENT_SCHEMA_VERSION
    profiles: Dict[str, IndexEntry] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "profiles": {
                profile_id: asdict(self.profiles[profile_id])
                for profile_id in sorted(self.profiles)
            },
        }


def _parse_index(data: Any) -> ProfilesIndex:
    if not isinstance(data, dict):
        raise ValueError("expected an object")
    version = data.get("version", CURRENT_SCHEMA_VERSION)
    if not isinstance(version, int) or isinstance(version, bool):
        raise ValueError("version must be an integer")
    raw_profiles = data.get("profiles") or {}
    if not isinstance(raw_profiles, dict):
        raise ValueError("profiles must be an object")
    profiles = {}
    for profile_id, raw_entry in raw_profiles.items():
        if not isinstance(raw_entry, dict):
            raise ValueError(f"profile {profile_id} must be an object")
        profiles[profile_id] = IndexEntry.from_dict(raw_entry)
    return ProfilesIndex(version=max(version, CURRENT_SCHEMA_VERSION), profiles=profiles)


def read_profiles_index(paths: Paths) -> ProfilesIndex:
    """
    Read the index strictly.

    Returns:
        The parsed index, or an empty one if the file does not exist

    Raises:
        StoreError: If the file cannot be read or is not a valid index
    """
    if not paths.profiles_index.exists():
        return ProfilesIndex()
    try:
        contents = paths.profiles_index.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise StoreError(messages.PROFILE_ERR_READ_INDEX.format(paths.profiles_index, e)) from e

    had_legacy_schema = any(marker in contents for marker in LEGACY_MARKERS)
    try:
        index = _parse_index(json.loads(contents))
    except ValueError as e:
        raise StoreError(
            messages.PROFILE_ERR_INDEX_INVALID_JSON.format(paths.profiles_index)
        ) from e

    if had_legacy_schema:
        lib_logger.info(f"Migrating legacy profiles index '{paths.profiles_index}'")
        try:
            write_profiles_index(paths, index)
        except StoreError as e:
            lib_logger.warning(f"Could not rewrite migrated profiles index: {e}")
    return index


def read_profiles_index_relaxed(paths: Paths, warn: Optional[Warn] = None) -> ProfilesIndex:
    """Like read_profiles_index, but an unusable index becomes an empty one plus a warning."""
    try:
        return read_profiles_index(paths)
    except StoreError as e:
        _warn(warn, normalize_error(e.message))
        return ProfilesIndex()


def write_profiles_index(paths: Paths, index: ProfilesIndex) -> None:
    try:
        write_json_atomic(paths.profiles_index, index.to_dict())
    except OSError as e:
        raise StoreError(messages.PROFILE_ERR_WRITE_INDEX.format(e)) from e


def prune_profiles_index(index: ProfilesIndex, profile_ids: set) -> None:
    for profile_id in list(index.profiles):
        if profile_id not in profile_ids:
            del index.profiles[profile_id]


def seed_profiles_index(index: ProfilesIndex, profile_ids) -> None:
    for profile_id in profile_ids:
        index.profiles.setdefault(profile_id, IndexEntry())


def update_index_entry(
    index: ProfilesIndex,
    profile_id: str,
    credential: Optional[Credential],
    label: Optional[str],
) -> None:
    entry = index.profiles.setdefault(profile_id, IndexEntry())
    if credential is not None:
        entry.email, entry.plan = extract_email_and_plan(credential)
        entry.account_id = token_account_id(credential)
        entry.is_api_key = is_api_key(credential)
        identity = extract_profile_identity(credential)
        if identity is not None:
            entry.principal_id = identity.principal_id
            entry.workspace_or_org_id = identity.workspace_or_org_id
            entry.plan_type_key = identity.plan_type
    if label is not None:
        entry.label = label


# =============================================================================
# LABELS
# =============================================================================


def trim_label(label: str) -> str:
    trimmed = label.strip()
    if not trimmed:
        raise SelectionError(messages.PROFILE_ERR_LABEL_EMPTY)
    return trimmed


def labels_from_index(index: ProfilesIndex) -> Labels:
    """Build ``label -> id``; on duplicates the lowest id keeps the label."""
    labels: Labels = {}
    for profile_id in sorted(index.profiles):
        label = index.profiles[profile_id].label
        if label is None:
            continue
        trimmed = label.strip()
        if trimmed and trimmed not in labels:
            labels[trimmed] = profile_id
    return labels


def assign_label(labels: Labels, label: str, profile_id: str) -> None:
    trimmed = trim_label(label)
    existing = labels.get(trimmed)
    if existing is not None:
        if existing == profile_id:
            return
        raise SelectionError(messages.PROFILE_ERR_LABEL_EXISTS.format(trimmed, list_hint()))
    labels[trimmed] = profile_id


def remove_labels_for_id(labels: Labels, profile_id: str) -> None:
    for label in [k for k, v in labels.items() if v == profile_id]:
        del labels[label]


def label_for_id(labels: Labels, profile_id: str) -> Optional[str]:
    for label in sorted(labels):
        if labels[label] == profile_id:
            return label
    return None


def labels_by_id(labels: Labels) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for label in sorted(labels):
        out.setdefault(labels[label], label)
    return out


def resolve_label_id(labels: Labels, label: str) -> str:
    trimmed = trim_label(label)
    profile_id = labels.get(trimmed)
    if profile_id is None:
        raise SelectionError(messages.PROFILE_ERR_LABEL_NOT_FOUND.format(trimmed, list_hint()))
    return profile_id


def prune_labels(labels: Labels, paths: Paths) -> None:
    for label in [k for k, v in labels.items() if not paths.profile_path(v).is_file()]:
        del labels[label]


def sync_index_labels(index: ProfilesIndex, labels: Labels) -> None:
    for profile_id, entry in index.profiles.items():
        entry.label = label_for_id(labels, profile_id)


# =============================================================================
# LOCK
# =============================================================================

_locks: Dict[str, FileLock] = {}


def profiles_lock(paths: Paths) -> FileLock:
    """One FileLock per lock path so nested acquisitions in a process re-enter."""
    key = str(paths.profiles_lock)
    lock = _locks.get(key)
    if lock is None:
        lock = FileLock(key)
        _locks[key] = lock
    return lock


@contextmanager
def locked(paths: Paths, timeout: Optional[float] = None) -> Iterator[None]:
    """
    Hold the profiles lock for the duration of the block.

    Raises:
        LockTimeoutError: If the lock is still held elsewhere after ``timeout``
        StoreError: If the lock file cannot be opened
    """
    lock = profiles_lock(paths)
    wait = lock_timeout() if timeout is None else timeout
    try:
        lock.acquire(timeout=wait, poll_interval=LOCK_POLL_INTERVAL)
    except Timeout as e:
        raise LockTimeoutError(messages.LOCK_ERR_ACQUIRE.format(command_name())) from e
    except OSError as e:
        raise StoreError(messages.LOCK_ERR_OPEN.format(e)) from e
    try:
        yield
    finally:
        lock.release()


# =============================================================================
# PROFILE FILES
# =============================================================================


def load_profile_tokens(paths: Paths, warn: Optional[Warn] = None) -> Dict[str, TokenResult]:
    """
    Read every saved profile.

    Unreadable files are deleted (with a warning) and dropped from the
    index. If deleting fails, the id maps to the error instead.
    """
    tokens: Dict[str, TokenResult] = {}
    removed: List[str] = []
    for path in profile_files(paths.profiles):
        profile_id = profile_id_from_path(path)
        if profile_id is None:
            continue
        try:
            tokens[profile_id] = read_credential(path)
        except AuthFileError as err:
            try:
                path.unlink()
            except OSError as remove_err:
                tokens[profile_id] = StoreError(
                    messages.PROFILE_ERR_REMOVE_INVALID.format(path, remove_err)
                )
                continue
            removed.append(profile_id)
            _warn(
                warn,
                messages.PROFILE_MSG_REMOVED_INVALID.format(path, normalize_error(err.message)),
            )

    if removed:
        index = read_profiles_index_relaxed(paths, warn)
        for profile_id in removed:
            index.profiles.pop(profile_id, None)
        try:
            write_profiles_index(paths, index)
        except StoreError as e:
            lib_logger.warning(f"Could not drop removed profiles from index: {e}")
    return tokens


def copy_profile(source, dest, context: str) -> None:
    try:
        copy_atomic(source, dest)
    except OSError as e:
        raise StoreError(messages.PROFILE_ERR_COPY_CONTEXT.format(context, dest, e)) from e


def current_saved_id(paths: Paths, tokens: Dict[str, TokenResult]) -> Optional[str]:
    """The saved id matching the live credential's identity, if any."""
    credential = read_credential_opt(paths.auth)
    if credential is None:
        return None
    identity = extract_profile_identity(credential)
    if identity is None:
        return None
    return pick_primary(cached_profile_ids(tokens, identity))


def unsaved_reason(paths: Paths, tokens: Dict[str, TokenResult]) -> Optional[str]:
    """A reason string when the live credential has an identity but no saved copy."""
    credential = read_credential_opt(paths.auth)
    if credential is None:
        return None
    identity = extract_profile_identity(credential)
    if identity is None:
        return None
    if not cached_profile_ids(tokens, identity):
        return messages.PROFILE_UNSAVED_NO_MATCH
    return None


def sync_current(paths: Paths, index: ProfilesIndex) -> None:
    """Copy the live credential onto its saved profile so refreshed tokens are kept."""
    credential = read_credential_opt(paths.auth)
    if credential is None:
        return
    profile_id = resolve_sync_id(paths, index, credential)
    if profile_id is None:
        return
    try:
        copy_atomic(paths.auth, paths.profile_path(profile_id))
    except OSError as e:
        raise StoreError(messages.PROFILE_ERR_SYNC_CURRENT.format(e)) from e
    label = label_for_id(labels_from_index(index), profile_id)
    update_index_entry(index, profile_id, credential, label)
    lib_logger.debug(
        f"Synced live credential into '{format_credential_for_display(str(paths.profile_path(profile_id)))}'"
    )


# =============================================================================
# STORE & SNAPSHOT
# =============================================================================


class ProfileStore:
    """
    Mutable view of the index and labels, valid only while the lock is held.

    Use as ``with ProfileStore.load(paths) as store: ... store.save()``.
    """

    def __init__(self, paths: Paths, index: ProfilesIndex, labels: Labels):
        self.paths = paths
        self.index = index
        self.labels = labels

    @classmethod
    @contextmanager
    def load(
        cls, paths: Paths, warn: Optional[Warn] = None, strict: bool = False
    ) -> Iterator["ProfileStore"]:
        with locked(paths):
            if strict:
                index = read_profiles_index(paths)
            else:
                index = read_profiles_index_relaxed(paths, warn)
            ids = collect_profile_ids(paths.profiles)
            prune_profiles_index(index, ids)
            seed_profiles_index(index, ids)
            yield cls(paths, index, labels_from_index(index))

    def save(self) -> None:
        prune_labels(self.labels, self.paths)
        prune_profiles_index(self.index, collect_profile_ids(self.paths.profiles))
        sync_index_labels(self.index, self.labels)
        write_profiles_index(self.paths, self.index)


@dataclass(frozen=True)
class Snapshot:
    """Read-only view of every saved profile, taken under the lock."""

    labels: Labels
    tokens: Dict[str, TokenResult]
    index: ProfilesIndex

    @property
    def ordered_ids(self) -> List[str]:
        return sorted(self.tokens)

    def credential(self, profile_id: str) -> Optional[Credential]:
        result = self.tokens.get(profile_id)
        if result is None or isinstance(result, ProfilesError):
            return None
        return result


def load_snapshot(paths: Paths, strict: bool, warn: Optional[Warn] = None) -> Snapshot:
    """
    Take a consistent snapshot of saved profiles.

    Args:
        paths: Profile locations
        strict: Fail on an unreadable index instead of warning and
            continuing with an empty one
        warn: Receives user-facing warnings

    Raises:
        StoreError: On lock timeout, or on a bad index when ``strict``
    """
    with locked(paths):
        tokens = load_profile_tokens(paths, warn)
        if strict:
            index = read_profiles_index(paths)
        else:
            index = read_profiles_index_relaxed(paths, warn)
        ids = set(tokens)
        prune_profiles_index(index, ids)
        seed_profiles_index(index, ids)
        labels = labels_from_index(index)
    return Snapshot(labels=labels, tokens=tokens, index=index)
