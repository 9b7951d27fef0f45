# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/usage.py
"""
Usage (rate-limit) lookups and per-profile entry building.

Fetches the two rate-limit windows of every ChatGPT profile from the usage
endpoint and renders them as bars:

    ▮▮▮▮▮▮▮▮▮▮▮▮▯▯▯▯▯▯▯▯ 60% left (resets in 3h)

The shorter window (5 hours) is listed first, the longer one (weekly)
second. A 401 triggers exactly one token refresh followed by exactly one
retry. Lookups for several profiles run concurrently in bounded chunks while
keeping the input order.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

import httpx

from . import messages
from .auth import (
    ApiKey,
    Credential,
    extract_email_and_plan,
    extract_profile_identity,
    is_free_plan,
    is_profile_ready,
    profile_error,
    read_credential,
    refresh_profile_tokens,
    token_account_id,
)
from .config import HTTP_TIMEOUT, Paths, usage_endpoint
from .display import DisplayConfig, Entry
from .errors import AuthFileError, ProfilesError, RefreshError, UsageError
from .hints import error_summary
from .identity import TokenResult, cached_profile_ids, pick_primary
from .store import IndexEntry, Labels, Snapshot, label_for_id, labels_by_id
from .utils.resilient_io import copy_atomic

lib_logger = logging.getLogger("codex_profiles")

USER_AGENT = "codex-profiles"
MAX_USAGE_CONCURRENCY = 4
CONCURRENCY_THRESHOLD = 3
BAR_WIDTH = 20
BAR_FILLED = "▮"
BAR_EMPTY = "▯"

T = TypeVar("T")
R = TypeVar("R")


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class UsageWindow:
    """One rate-limit window, ready for display."""

    left_percent: float  # 0-100
    reset_at: int  # Unix timestamp
    reset_at_relative: str

    @property
    def left_rounded(self) -> int:
        return _round_half_up(self.left_percent)


@dataclass
class UsageLimits:
    five_hour: Optional[UsageWindow] = None
    weekly: Optional[UsageWindow] = None


@dataclass
class Details:
    """Detail lines for one profile plus what went wrong, if anything."""

    lines: List[str] = field(default_factory=list)
    error_summary: Optional[str] = None
    refreshed: bool = False


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# =============================================================================
# FETCHING
# =============================================================================


def usage_status_error(status_code: int) -> UsageError:
    if status_code == 401:
        message = messages.USAGE_ERR_UNAUTHORIZED_401
    elif status_code == 402:
        message = messages.USAGE_UNAVAILABLE_402
    elif status_code == 403:
        message = messages.USAGE_ERR_ACCESS_DENIED_403
    elif status_code == 429:
        message = messages.USAGE_ERR_RATE_LIMITED_429
    else:
        message = messages.USAGE_ERR_REQUEST_FAILED_CODE.format(status_code)
    return UsageError(message, UsageError.STATUS, status_code)


def _parse_error(detail: Any) -> UsageError:
    return UsageError(messages.USAGE_ERR_INVALID_RESPONSE.format(detail), UsageError.PARSE)


def _number(window: Dict[str, Any], key: str, name: str) -> float:
    value = window.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _parse_error(f"{name}.{key} must be a number")
    return value


def parse_usage_windows(payload: Any) -> List[Dict[str, float]]:
    """
    Validate a usage payload and return its windows.

    Raises:
        UsageError: If the payload or a present window is malformed
    """
    if not isinstance(payload, dict):
        raise _parse_error("expected an object")
    rate_limit = payload.get("rate_limit")
    if rate_limit is None:
        return []
    if not isinstance(rate_limit, dict):
        raise _parse_error("rate_limit must be an object")

    windows = []
    for name in ("primary_window", "secondary_window"):
        window = rate_limit.get(name)
        if window is None:
            continue
        if not isinstance(window, dict):
            raise _parse_error(f"{name} must be an object")
        windows.append(
            {
                "used_percent": float(_number(window, "used_percent", name)),
                "limit_window_seconds": int(_number(window, "limit_window_seconds", name)),
                "reset_at": int(_number(window, "reset_at", name)),
            }
        )
    return windows


async def fetch_usage_payload(
    client: httpx.AsyncClient, base_url: str, access_token: str, account_id: str
) -> Any:
    """
    GET the usage endpoint for one account.

    Raises:
        UsageError: ``status`` for non-2xx replies, ``transport`` when the
            service cannot be reached, ``parse`` for a non-JSON body
    """
    url = usage_endpoint(base_url)
    headers = {
        "Authorization": f"Bearer {access_token}",
        "ChatGPT-Account-Id": account_id,  # Exact capitalization from Codex CLI
        "User-Agent": USER_AGENT,
    }
    try:
        response = await client.get(url, headers=headers, timeout=HTTP_TIMEOUT)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        lib_logger.debug(f"Usage request failed: HTTP {e.response.status_code}")
        raise usage_status_error(e.response.status_code) from e
    except httpx.HTTPError as e:
        lib_logger.debug(f"Usage request failed: {e}")
        raise UsageError(
            messages.USAGE_ERR_SERVICE_UNREACHABLE.format(e), UsageError.TRANSPORT
        ) from e

    try:
        return response.json()
    except ValueError as e:
        raise _parse_error(e) from e


# =============================================================================
# WINDOWS & FORMATTING
# =============================================================================


def format_duration(seconds: int) -> str:
    if seconds < 60:
        value, unit = seconds, "s"
    elif seconds < 60 * 60:
        value, unit = seconds // 60, "m"
    elif seconds < 60 * 60 * 24:
        value, unit = seconds // (60 * 60), "h"
    else:
        value, unit = seconds // (60 * 60 * 24), "d"
    return f"in {value}{unit}"


def format_reset_relative(reset_at: int, now: float) -> str:
    remaining = int(reset_at - now)
    if remaining <= 0:
        return "now"
    return format_duration(remaining)


def build_usage_limits(windows: List[Dict[str, float]], now: float) -> UsageLimits:
    """Sort windows by length; the shortest is the 5-hour window, the next the weekly one."""
    ordered = sorted(windows, key=lambda w: w["limit_window_seconds"])
    outputs = [
        UsageWindow(
            left_percent=min(100.0, max(0.0, 100.0 - w["used_percent"])),
            reset_at=int(w["reset_at"]),
            reset_at_relative=format_reset_relative(int(w["reset_at"]), now),
        )
        for w in ordered
    ]
    limits = UsageLimits()
    if outputs:
        limits.five_hour = outputs[0]
    if len(outputs) > 1:
        limits.weekly = outputs[1]
    return limits


def render_bar(left_percent: float) -> str:
    filled = min(BAR_WIDTH, _round_half_up(left_percent / 100.0 * BAR_WIDTH))
    return BAR_FILLED * filled + BAR_EMPTY * (BAR_WIDTH - filled)


def _bar_style(left_percent: float) -> str:
    if left_percent >= 66.0:
        return "green"
    if left_percent >= 33.0:
        return "yellow"
    return "red"


def format_usage_line(window: UsageWindow, display: DisplayConfig, dim: bool = False) -> str:
    percent = f"{window.left_rounded}% left"
    resets = display.format_dimmed(f"(resets {window.reset_at_relative or 'unknown'})")
    if display.plain:
        return f"{percent} {resets}"
    bar = render_bar(window.left_percent)
    if dim:
        return display.style(f"{bar} {percent} (resets {window.reset_at_relative})", "dim")
    return f"{display.style(bar, _bar_style(window.left_percent))} {percent} {resets}"


def format_usage(limits: UsageLimits, display: DisplayConfig) -> List[str]:
    available = [w for w in (limits.five_hour, limits.weekly) if w is not None]
    if not available:
        return [display.format_usage_unavailable(messages.USAGE_UNAVAILABLE_DEFAULT)]
    has_zero = any(w.left_rounded == 0 for w in available)
    multiple = len(available) > 1
    return [
        format_usage_line(
            w, display, dim=display.use_color and multiple and has_zero and w.left_rounded != 0
        )
        for w in available
    ]


# =============================================================================
# AGGREGATOR
# =============================================================================


class UsageAggregator:
    """
    Builds list/status entries, fetching usage when ``show_usage`` is set.

    Args:
        paths: Profile locations
        display: Output settings
        client: Shared HTTP client for usage and refresh requests
        show_usage: Fetch and render usage windows
        base_url: Usage service base URL
        now: Reference timestamp for relative reset times
        warn: Receives user-facing warnings
    """

    def __init__(
        self,
        paths: Paths,
        display: DisplayConfig,
        client: Optional[httpx.AsyncClient],
        show_usage: bool,
        base_url: Optional[str] = None,
        now: Optional[float] = None,
        warn: Optional[Callable[[str], None]] = None,
    ):
        self.paths = paths
        self.display = display
        self.client = client
        self.show_usage = show_usage
        self.base_url = base_url
        self.now = time.time() if now is None else now
        self.warn = warn or display.warn

    async def gather(
        self, items: Sequence[T], build: Callable[[T], Awaitable[R]]
    ) -> List[R]:
        """
        Run ``build`` for every item and return results in input order.

        Sequential unless usage is shown for at least three items; then at
        most MAX_USAGE_CONCURRENCY builds run at once.
        """
        if not self.show_usage or len(items) < CONCURRENCY_THRESHOLD:
            return [await build(item) for item in items]
        results: List[R] = []
        for start in range(0, len(items), MAX_USAGE_CONCURRENCY):
            chunk = items[start : start + MAX_USAGE_CONCURRENCY]
            results.extend(await asyncio.gather(*(build(item) for item in chunk)))
        return results

    async def fetch_lines(self, access_token: str, account_id: str) -> List[str]:
        payload = await fetch_usage_payload(self.client, self.base_url, access_token, account_id)
        limits = build_usage_limits(parse_usage_windows(payload), self.now)
        return format_usage(limits, self.display)

    def _failure(self, message: str, summary_label: str, refreshed: bool = False) -> Details:
        return Details(
            lines=[self.display.format_error(message)],
            error_summary=error_summary(summary_label, message),
            refreshed=refreshed,
        )

    async def detail_lines(
        self,
        credential: Credential,
        email: Optional[str],
        plan: Optional[str],
        profile_path: Path,
    ) -> Details:
        display = self.display
        if isinstance(credential, ApiKey):
            if self.show_usage:
                return Details([display.format_error(messages.USAGE_UNAVAILABLE_API_KEY)])
            return Details()

        account_id = token_account_id(credential)
        access_token = credential.access_token
        message = profile_error(credential, email, plan)
        if message is not None:
            missing_access = access_token is None or account_id is None
            missing_identity_only = (
                message == messages.AUTH_ERR_PROFILE_MISSING_EMAIL_PLAN and not missing_access
            )
            if not missing_identity_only:
                if self.show_usage and missing_access and email is not None and plan is not None:
                    return Details(
                        [display.format_usage_unavailable(messages.USAGE_UNAVAILABLE_DEFAULT)]
                    )
                return self._failure(message, messages.PROFILE_SUMMARY_ERROR)

        if not self.show_usage or not self.base_url or access_token is None or account_id is None:
            return Details()

        try:
            return Details(await self.fetch_lines(access_token, account_id))
        except UsageError as e:
            if e.status_code != 401:
                return self._failure(e.message, messages.PROFILE_SUMMARY_USAGE_ERROR)

        try:
            refreshed = await refresh_profile_tokens(profile_path, credential, self.client)
        except (RefreshError, AuthFileError) as e:
            lib_logger.warning(f"Token refresh failed for '{profile_path.name}': {e}")
            return self._failure(e.message, messages.PROFILE_SUMMARY_AUTH_ERROR)

        try:
            return Details(
                await self.fetch_lines(refreshed.access_token, account_id), refreshed=True
            )
        except UsageError as e:
            return self._failure(e.message, messages.PROFILE_SUMMARY_USAGE_ERROR, refreshed=True)

    # =========================================================================
    # ENTRIES
    # =========================================================================

    def _profile_display(
        self,
        credential: Optional[Credential],
        fallback: Optional[IndexEntry],
        label: Optional[str],
        is_current: bool,
    ):
        if credential is not None:
            email, plan = extract_email_and_plan(credential)
        elif fallback is not None:
            email, plan = fallback.email, fallback.plan
        else:
            email, plan = None, None
        return self.display.format_profile_display(email, plan, label, is_current), email, plan

    def error_entry(
        self,
        label: Optional[str],
        index_entry: Optional[IndexEntry],
        message: str,
        summary_label: str,
        is_current: bool,
    ) -> Entry:
        display, _, _ = self._profile_display(None, index_entry, label, is_current)
        return Entry(
            display=display,
            details=[self.display.format_error(message)],
            error_summary=error_summary(summary_label, message),
        )

    async def saved_entry(
        self,
        profile_id: str,
        snapshot: Snapshot,
        by_id: Dict[str, str],
        current_saved_id: Optional[str] = None,
    ) -> Entry:
        profile_path = self.paths.profile_path(profile_id)
        label = by_id.get(profile_id)
        is_current = current_saved_id == profile_id
        index_entry = snapshot.index.profiles.get(profile_id)
        result = snapshot.tokens.get(profile_id)
        if result is None:
            return self.error_entry(
                label or profile_id,
                index_entry,
                messages.PROFILE_SUMMARY_FILE_MISSING,
                messages.PROFILE_SUMMARY_ERROR,
                is_current,
            )
        if isinstance(result, ProfilesError):
            return self.error_entry(
                label or profile_id,
                index_entry,
                result.message,
                messages.PROFILE_SUMMARY_ERROR,
                is_current,
            )

        display, email, plan = self._profile_display(result, None, label, is_current)
        details = await self.detail_lines(result, email, plan, profile_path)
        return Entry(
            display=display,
            details=details.lines,
            error_summary=details.error_summary,
            always_show_details=is_free_plan(plan),
        )

    async def saved_entries(self, ids: Sequence[str], snapshot: Snapshot) -> List[Entry]:
        by_id = labels_by_id(snapshot.labels)
        return await self.gather(list(ids), lambda pid: self.saved_entry(pid, snapshot, by_id))

    async def current_entry(
        self,
        current_saved_id: Optional[str],
        labels: Labels,
        tokens: Dict[str, TokenResult],
    ) -> Optional[Entry]:
        """
        Entry for the live ``auth.json``, or None when there is none.

        A refresh performed for the live credential is mirrored into its
        saved profile file.
        """
        if not self.paths.auth.is_file():
            return None
        try:
            credential = read_credential(self.paths.auth)
        except AuthFileError as e:
            return self.error_entry(None, None, e.message, messages.PROFILE_SUMMARY_ERROR, True)

        resolved_saved_id = None
        identity = extract_profile_identity(credential)
        if identity is not None:
            resolved_saved_id = pick_primary(cached_profile_ids(tokens, identity))
        effective_saved_id = current_saved_id or resolved_saved_id
        label = label_for_id(labels, effective_saved_id) if effective_saved_id else None

        display, email, plan = self._profile_display(credential, None, label, True)
        is_unsaved = effective_saved_id is None and is_profile_ready(credential)
        details = await self.detail_lines(credential, email, plan, self.paths.auth)

        if details.refreshed and effective_saved_id is not None:
            profile_path = self.paths.profile_path(effective_saved_id)
            if profile_path.is_file():
                try:
                    copy_atomic(self.paths.auth, profile_path)
                except OSError as e:
                    self.warn(messages.PROFILE_ERR_SYNC_CURRENT.format(e))

        lines = list(details.lines)
        if is_unsaved:
            lines.extend(self.display.format_unsaved_warning())

        return Entry(
            display=display,
            details=lines,
            error_summary=details.error_summary,
            always_show_details=is_unsaved or (is_free_plan(plan) and not self.show_usage),
        )
