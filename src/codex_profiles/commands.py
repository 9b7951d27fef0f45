# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/commands.py
"""
The five profile operations: save, load, list, status and delete.

Each returns an ``Outcome`` instead of raising: ``ProfilesError`` becomes
``Outcome.failed`` and an interactive cancellation becomes
``Outcome.cancelled``. Output is printed through the given ``DisplayConfig``.
"""

import asyncio
import functools
import logging
from typing import Callable, List, Optional

import httpx

from . import messages
from .auth import ApiKey, read_credential, read_credential_opt
from .config import Paths, read_base_url
from .display import DisplayConfig, Entry, push_separator, render_entries
from .errors import (
    LockTimeoutError,
    PromptCancelled,
    ProfilesError,
    SelectionError,
    StoreError,
)
from .hints import list_hint, no_profiles_hint, normalize_error
from .identity import resolve_save_id
from .outcome import Outcome
from .selection import (
    LoadChoice,
    Prompter,
    build_candidates,
    confirm_delete,
    pick_many,
    pick_one,
    prompt_unsaved_load,
)
from .store import (
    ProfileStore,
    Snapshot,
    assign_label,
    copy_profile,
    current_saved_id,
    label_for_id,
    load_snapshot,
    remove_labels_for_id,
    sync_current,
    unsaved_reason,
    update_index_entry,
)
from .usage import UsageAggregator

lib_logger = logging.getLogger("codex_profiles")


def _outcome(func: Callable[..., None]) -> Callable[..., Outcome]:
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Outcome:
        try:
            func(*args, **kwargs)
        except PromptCancelled:
            lib_logger.debug(f"{func.__name__} cancelled")
            return Outcome.cancelled()
        except ProfilesError as e:
            lib_logger.debug(f"{func.__name__} failed: {e.message}")
            return Outcome.failed(e)
        return Outcome.success()

    return wrapper


def _no_profiles_error(paths: Paths) -> SelectionError:
    return SelectionError(messages.PROFILE_ERR_NO_SAVED_PROFILES.format(no_profiles_hint(paths.auth)))


def _not_found_error() -> SelectionError:
    return SelectionError(messages.PROFILE_MSG_NOT_FOUND.format(list_hint()))


# =============================================================================
# SAVE / LOAD / DELETE
# =============================================================================


def _save(paths: Paths, label: Optional[str], display: DisplayConfig) -> None:
    with ProfileStore.load(paths, warn=display.warn) as store:
        credential = read_credential(paths.auth)
        profile_id = resolve_save_id(paths, store.index, credential)
        if label is not None:
            assign_label(store.labels, label, profile_id)

        copy_profile(
            paths.auth, paths.profile_path(profile_id), messages.PROFILE_COPY_CONTEXT_SAVE
        )
        label_display = label_for_id(store.labels, profile_id)
        update_index_entry(store.index, profile_id, credential, label_display)
        store.save()

    entry = store.index.profiles[profile_id]
    lib_logger.info(f"Saved profile '{profile_id}'")
    if entry.email is not None:
        shown = display.format_profile_display(entry.email, entry.plan, label_display, True)
        message = messages.PROFILE_MSG_SAVED_WITH.format(shown)
    else:
        message = messages.PROFILE_MSG_SAVED
    display.print_block(display.format_action(message))


@_outcome
def save(paths: Paths, label: Optional[str] = None, display: Optional[DisplayConfig] = None):
    """Copy the live ``auth.json`` into its profile, optionally labelling it."""
    _save(paths, label, display or DisplayConfig.detect())


def _strict_snapshot(paths: Paths, display: DisplayConfig) -> Snapshot:
    snapshot = load_snapshot(paths, strict=True, warn=display.warn)
    if not snapshot.tokens:
        raise _no_profiles_error(paths)
    return snapshot


@_outcome
def load(
    paths: Paths,
    label: Optional[str] = None,
    display: Optional[DisplayConfig] = None,
    prompter: Optional[Prompter] = None,
):
    """
    Replace the live ``auth.json`` with a saved profile.

    If the live credential has no saved copy, the user is asked whether to
    save it first, continue anyway or cancel.
    """
    display = display or DisplayConfig.detect()
    prompter = prompter or Prompter(display)
    snapshot = _strict_snapshot(paths, display)

    reason = unsaved_reason(paths, snapshot.tokens)
    if reason is not None:
        choice = prompt_unsaved_load(paths.auth, reason, prompter, display)
        if choice is LoadChoice.SAVE_AND_CONTINUE:
            _save(paths, None, display)
            snapshot = _strict_snapshot(paths, display)
        elif choice is LoadChoice.CANCEL:
            raise PromptCancelled()

    candidates = build_candidates(
        snapshot.ordered_ids, snapshot, current_saved_id(paths, snapshot.tokens), display
    )
    selected = pick_one("load", label, snapshot, candidates, prompter)

    result = snapshot.tokens.get(selected.id)
    if result is None:
        raise _not_found_error()
    if isinstance(result, ProfilesError):
        raise SelectionError(
            messages.PROFILE_ERR_SELECTED_INVALID.format(normalize_error(result.message))
        )

    with ProfileStore.load(paths, warn=display.warn) as store:
        try:
            sync_current(paths, store.index)
        except StoreError as e:
            display.warn(e.message)

        source = paths.profile_path(selected.id)
        if not source.is_file():
            raise _not_found_error()
        copy_profile(source, paths.auth, messages.PROFILE_COPY_CONTEXT_LOAD)

        update_index_entry(store.index, selected.id, result, label_for_id(store.labels, selected.id))
        store.save()

    lib_logger.info(f"Loaded profile '{selected.id}'")
    display.print_block(
        display.format_action(messages.PROFILE_MSG_LOADED_WITH.format(selected.display))
    )


@_outcome
def delete(
    paths: Paths,
    yes: bool = False,
    label: Optional[str] = None,
    display: Optional[DisplayConfig] = None,
    prompter: Optional[Prompter] = None,
):
    """Delete one profile by label, or any number picked interactively."""
    display = display or DisplayConfig.detect()
    prompter = prompter or Prompter(display)
    snapshot = load_snapshot(paths, strict=True, warn=display.warn)
    if not snapshot.tokens:
        display.print_block(display.format_no_profiles(paths.auth))
        return

    candidates = build_candidates(
        snapshot.ordered_ids, snapshot, current_saved_id(paths, snapshot.tokens), display
    )
    selections = pick_many("delete", label, snapshot, candidates, prompter)
    if not selections:
        return
    displays = [c.display for c in selections]

    with ProfileStore.load(paths, warn=display.warn) as store:
        if not yes and not confirm_delete(displays, prompter):
            raise PromptCancelled()

        for selected in selections:
            target = paths.profile_path(selected.id)
            if not target.is_file():
                raise _not_found_error()
            try:
                target.unlink()
            except OSError as e:
                raise StoreError(messages.PROFILE_ERR_FAILED_DELETE.format(e)) from e
            remove_labels_for_id(store.labels, selected.id)
            store.index.profiles.pop(selected.id, None)
            lib_logger.info(f"Deleted profile '{selected.id}'")
        store.save()

    if len(selections) == 1:
        message = messages.PROFILE_MSG_DELETED_WITH.format(displays[0])
    else:
        message = messages.PROFILE_MSG_DELETED_COUNT.format(len(selections))
    display.print_block(display.format_action(message))


# =============================================================================
# LIST / STATUS
# =============================================================================


async def _list_lines(paths: Paths, display: DisplayConfig) -> Optional[List[str]]:
    snapshot = load_snapshot(paths, strict=False, warn=display.warn)
    saved_id = current_saved_id(paths, snapshot.tokens)
    aggregator = UsageAggregator(paths, display, client=None, show_usage=False)

    current = await aggregator.current_entry(saved_id, snapshot.labels, snapshot.tokens)
    if not snapshot.tokens:
        if current is None:
            return None
        return render_entries([current], display, show_usage=False)

    others = [pid for pid in snapshot.ordered_ids if pid != saved_id]
    entries = await aggregator.saved_entries(others, snapshot)

    lines: List[str] = []
    if current is not None:
        lines.extend(render_entries([current], display, show_usage=False))
        if entries:
            push_separator(lines, display, allow_plain_spacing=False)
    lines.extend(render_entries(entries, display, show_usage=False))
    return lines


@_outcome
def list_profiles(paths: Paths, display: Optional[DisplayConfig] = None):
    """Show the live profile first, then every other saved profile."""
    display = display or DisplayConfig.detect()
    lines = asyncio.run(_list_lines(paths, display))
    if lines is None:
        display.print_block(display.format_no_profiles(paths.auth))
    else:
        display.print_block("\n".join(lines))


def _is_api_profile(profile_id: str, snapshot: Snapshot) -> bool:
    if isinstance(snapshot.credential(profile_id), ApiKey):
        return True
    entry = snapshot.index.profiles.get(profile_id)
    return entry is not None and entry.is_api_key


async def _status_current(paths: Paths, aggregator: UsageAggregator) -> Optional[Entry]:
    try:
        snapshot = load_snapshot(paths, strict=False, warn=aggregator.warn)
    except LockTimeoutError:
        raise
    except StoreError as e:
        lib_logger.warning(f"Status without saved profiles: {e}")
        return await aggregator.current_entry(None, {}, {})
    saved_id = current_saved_id(paths, snapshot.tokens)
    return await aggregator.current_entry(saved_id, snapshot.labels, snapshot.tokens)


async def _status_all(
    paths: Paths, aggregator: UsageAggregator, show_errors: bool
) -> Optional[List[str]]:
    display = aggregator.display
    snapshot = load_snapshot(paths, strict=False, warn=aggregator.warn)
    saved_id = current_saved_id(paths, snapshot.tokens)
    current = await aggregator.current_entry(saved_id, snapshot.labels, snapshot.tokens)

    others = [pid for pid in snapshot.ordered_ids if pid != saved_id]
    hidden_api = sum(1 for pid in others if _is_api_profile(pid, snapshot))
    others = [pid for pid in others if not _is_api_profile(pid, snapshot)]

    hidden_errors = 0
    entries = []
    for entry in await aggregator.saved_entries(others, snapshot):
        if not show_errors and entry.error_summary is not None:
            hidden_errors += 1
            continue
        entries.append(entry)

    current_visible = None
    if current is not None:
        if isinstance(read_credential_opt(paths.auth), ApiKey):
            hidden_api += 1
        elif not show_errors and current.error_summary is not None:
            hidden_errors += 1
        else:
            current_visible = current

    if current_visible is None and not entries and not hidden_api and not hidden_errors:
        return None

    lines: List[str] = []
    if current_visible is not None:
        lines.extend(render_entries([current_visible], display, True, allow_plain_spacing=True))
        if entries or hidden_api or hidden_errors:
            push_separator(lines, display, allow_plain_spacing=True)
    if entries:
        lines.extend(render_entries(entries, display, True, allow_plain_spacing=True))
        if hidden_api or hidden_errors:
            push_separator(lines, display, allow_plain_spacing=True)
    if hidden_api:
        lines.append(display.format_dimmed(messages.PROFILE_STATUS_API_HIDDEN.format(hidden_api)))
    if hidden_errors:
        lines.append(
            display.format_dimmed(messages.PROFILE_STATUS_ERROR_HIDDEN.format(hidden_errors))
        )
    return lines


async def _status_lines(
    paths: Paths,
    all_profiles: bool,
    show_errors: bool,
    display: DisplayConfig,
    client: Optional[httpx.AsyncClient],
) -> Optional[List[str]]:
    async def run(http: httpx.AsyncClient) -> Optional[List[str]]:
        aggregator = UsageAggregator(
            paths, display, http, show_usage=True, base_url=read_base_url(paths)
        )
        if all_profiles:
            return await _status_all(paths, aggregator, show_errors)
        current = await _status_current(paths, aggregator)
        if current is None:
            return None
        return render_entries([current], display, show_usage=True)

    if client is not None:
        return await run(client)
    async with httpx.AsyncClient() as http:
        return await run(http)


@_outcome
def status(
    paths: Paths,
    all_profiles: bool = False,
    show_errors: bool = False,
    display: Optional[DisplayConfig] = None,
    client: Optional[httpx.AsyncClient] = None,
):
    """
    Show rate-limit usage for the live profile, or for every saved profile
    with ``all_profiles``. API-key profiles and (unless ``show_errors``)
    errored profiles are hidden from the full view and counted instead.
    """
    display = display or DisplayConfig.detect()
    lines = asyncio.run(_status_lines(paths, all_profiles, show_errors, display, client))
    if lines is None:
        display.print_block(display.format_no_profiles(paths.auth))
    else:
        display.print_block("\n".join(lines))
