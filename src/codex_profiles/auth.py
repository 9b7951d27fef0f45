# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/auth.py
"""
Codex auth file parsing, identity extraction and token refresh.

An auth file (``auth.json`` or a saved profile) holds either OAuth tokens:

    {"tokens": {"account_id": ..., "id_token": ..., "access_token": ...,
                "refresh_token": ...}, ...}

or an API key:

    {"OPENAI_API_KEY": "sk-..."}

Both are parsed into the tagged ``Credential`` union so callers dispatch on
the variant rather than on which fields happen to be present.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import httpx

from . import messages
from .config import HTTP_TIMEOUT, refresh_token_url
from .errors import AuthFileError, IdentityError, RefreshError
from .utils.credential_formatter import (
    API_KEY_LABEL,
    API_KEY_PREFIX,
    api_key_display_label,
    api_key_profile_id,
    format_credential_for_display,
)
from .utils.resilient_io import write_json_atomic

lib_logger = logging.getLogger("codex_profiles")

CLIENT_ID = "app_EMoamEEZ73f0CkXaXp7hrann"
REFRESH_SCOPE = "openid profile email"
AUTH_CLAIMS_KEY = "https://api.openai.com/auth"
UNKNOWN = "unknown"


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class OAuthTokens:
    """ChatGPT login tokens. Empty strings are stored as None."""

    account_id: Optional[str] = None
    id_token: Optional[str] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


@dataclass(frozen=True)
class ApiKey:
    """An API-key login, identified only by its pseudo account id."""

    account_id: str


Credential = Union[OAuthTokens, ApiKey]


@dataclass(frozen=True)
class ProfileIdentityKey:
    """Two credentials are the same profile iff their keys are equal."""

    principal_id: str
    workspace_or_org_id: str
    plan_type: str


# =============================================================================
# READING AUTH FILES
# =============================================================================


def _optional_str(value: Any, field: str, path: Path) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise AuthFileError(
            messages.AUTH_ERR_INVALID_JSON_RELOGIN.format(
                path, f"tokens.{field} must be a string"
            )
        )
    return value or None


def read_auth_json(path: Path) -> Dict[str, Any]:
    try:
        data = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise AuthFileError(messages.AUTH_ERR_FILE_NOT_FOUND) from e
    except (OSError, UnicodeDecodeError) as e:
        raise AuthFileError(messages.AUTH_ERR_READ.format(path, e)) from e
    try:
        value = json.loads(data)
    except json.JSONDecodeError as e:
        raise AuthFileError(messages.AUTH_ERR_INVALID_JSON_RELOGIN.format(path, e)) from e
    if not isinstance(value, dict):
        raise AuthFileError(
            messages.AUTH_ERR_INVALID_JSON_RELOGIN.format(path, "expected an object")
        )
    return value


def read_credential(path: Path) -> Credential:
    """
    Parse an auth file into a credential.

    Args:
        path: ``auth.json`` or a saved profile file

    Returns:
        OAuthTokens or ApiKey

    Raises:
        AuthFileError: If the file is missing, unreadable, malformed or
            carries neither tokens nor an API key
    """
    path = Path(path)
    auth = read_auth_json(path)

    tokens = auth.get("tokens")
    if tokens is not None:
        if not isinstance(tokens, dict):
            raise AuthFileError(
                messages.AUTH_ERR_INVALID_JSON_RELOGIN.format(path, "tokens must be an object")
            )
        parsed = OAuthTokens(
            account_id=_optional_str(tokens.get("account_id"), "account_id", path),
            id_token=_optional_str(tokens.get("id_token"), "id_token", path),
            access_token=_optional_str(tokens.get("access_token"), "access_token", path),
            refresh_token=_optional_str(tokens.get("refresh_token"), "refresh_token", path),
        )
        if (
            parsed.account_id
            and parsed.account_id.startswith(API_KEY_PREFIX)
            and parsed.id_token is None
            and parsed.access_token is None
            and parsed.refresh_token is None
        ):
            return ApiKey(parsed.account_id)
        return parsed

    api_key = auth.get("OPENAI_API_KEY")
    if isinstance(api_key, str) and api_key:
        return ApiKey(api_key_profile_id(api_key))

    raise AuthFileError(messages.AUTH_ERR_MISSING_TOKENS.format(path))


def read_credential_opt(path: Path) -> Optional[Credential]:
    """Like read_credential, but None for a missing or unusable file."""
    path = Path(path)
    if not path.is_file():
        return None
    try:
        return read_credential(path)
    except AuthFileError:
        return None


# =============================================================================
# CLAIMS & IDENTITY
# =============================================================================


def _parse_jwt_claims(token: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse JWT token and extract claims from payload.

    Args:
        token: JWT token string

    Returns:
        Decoded payload as dict, or None if invalid
    """
    if not token:
        return None
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return None

        payload = parts[1]
        padding = 4 - len(payload) % 4
        if padding != 4:
            payload += "=" * padding

        decoded = json.loads(base64.urlsafe_b64decode(payload).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    return decoded if isinstance(decoded, dict) else None


def _claim(mapping: Optional[Dict[str, Any]], key: str) -> Optional[str]:
    if not mapping:
        return None
    value = mapping.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def _auth_claims(claims: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not claims:
        return None
    auth = claims.get(AUTH_CLAIMS_KEY)
    return auth if isinstance(auth, dict) else None


def _normalize_identity_value(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def token_account_id(credential: Credential) -> Optional[str]:
    return credential.account_id or None


def is_api_key(credential: Credential) -> bool:
    return isinstance(credential, ApiKey)


def format_plan(plan: str) -> str:
    """Title-case a raw plan type: ``"chatgpt_team"`` -> ``"Chatgpt Team"``."""
    words = [w for w in plan.replace("-", "_").split("_") if w]
    out = " ".join(w[:1].upper() + w[1:].lower() for w in words)
    return out or "Unknown"


def is_free_plan(plan: Optional[str]) -> bool:
    return plan is not None and plan.lower() == "free"


def extract_email_and_plan(credential: Credential) -> Tuple[Optional[str], Optional[str]]:
    """Return the display email and display plan of a credential."""
    if isinstance(credential, ApiKey):
        display = api_key_display_label(credential.account_id) or API_KEY_LABEL
        return display, API_KEY_LABEL

    claims = _parse_jwt_claims(credential.id_token)
    email = _claim(claims, "email")
    plan_type = _claim(_auth_claims(claims), "chatgpt_plan_type")
    plan = format_plan(plan_type) if plan_type is not None else None
    return email, plan


def extract_profile_identity(credential: Credential) -> Optional[ProfileIdentityKey]:
    """
    Derive the identity key of a credential.

    The principal is the ChatGPT user (falling back to the JWT subject and
    then the account id); the workspace is the token account id (falling
    back to the account, organization and project claims). Returns None when
    no principal can be found.
    """
    if isinstance(credential, ApiKey):
        return ProfileIdentityKey(
            principal_id=credential.account_id,
            workspace_or_org_id=credential.account_id,
            plan_type="key",
        )

    claims = _parse_jwt_claims(credential.id_token)
    auth = _auth_claims(claims)

    principal_id = _normalize_identity_value(
        _claim(auth, "chatgpt_user_id")
        or _claim(auth, "user_id")
        or _claim(claims, "sub")
        or token_account_id(credential)
    )
    if principal_id is None:
        return None

    workspace_or_org_id = (
        _normalize_identity_value(
            token_account_id(credential)
            or _claim(auth, "chatgpt_account_id")
            or _claim(claims, "organization_id")
            or _claim(claims, "project_id")
        )
        or UNKNOWN
    )

    raw_plan = _claim(auth, "chatgpt_plan_type") or extract_email_and_plan(credential)[1]
    plan_type = (raw_plan or "").strip().lower() or UNKNOWN

    return ProfileIdentityKey(
        principal_id=principal_id,
        workspace_or_org_id=workspace_or_org_id,
        plan_type=plan_type,
    )


def matches_identity(credential: Credential, identity: ProfileIdentityKey) -> bool:
    return extract_profile_identity(credential) == identity


def require_identity(credential: Credential) -> Tuple[str, str, str]:
    """
    Return ``(account_id, email, plan)`` or raise IdentityError naming the
    first missing piece.
    """
    account_id = token_account_id(credential)
    if account_id is None:
        raise IdentityError(messages.AUTH_ERR_INCOMPLETE_ACCOUNT)
    email, plan = extract_email_and_plan(credential)
    if email is None:
        raise IdentityError(messages.AUTH_ERR_INCOMPLETE_EMAIL)
    if plan is None:
        raise IdentityError(messages.AUTH_ERR_INCOMPLETE_PLAN)
    return account_id, email, plan


def profile_error(
    credential: Credential, email: Optional[str], plan: Optional[str]
) -> Optional[str]:
    """Describe why a saved profile cannot be used for usage lookups, if it can't."""
    if isinstance(credential, ApiKey):
        return None
    if email is None or plan is None:
        return messages.AUTH_ERR_PROFILE_MISSING_EMAIL_PLAN
    if token_account_id(credential) is None:
        return messages.AUTH_ERR_PROFILE_MISSING_ACCOUNT
    if credential.access_token is None:
        return messages.AUTH_ERR_PROFILE_MISSING_ACCESS_TOKEN
    return None


def is_profile_ready(credential: Credential) -> bool:
    if isinstance(credential, ApiKey):
        return True
    if token_account_id(credential) is None or not credential.access_token:
        return False
    email, plan = extract_email_and_plan(credential)
    return email is not None and plan is not None


def has_auth(path: Path) -> bool:
    credential = read_credential_opt(path)
    return credential is not None and is_profile_ready(credential)


# =============================================================================
# TOKEN REFRESH
# =============================================================================


def _extract_refresh_error_code(body: str) -> Optional[str]:
    try:
        value = json.loads(body)
    except ValueError:
        return None
    if not isinstance(value, dict):
        return None
    error = value.get("error")
    if isinstance(error, dict) and isinstance(error.get("code"), str):
        return error["code"].lower()
    if isinstance(error, str):
        return error.lower()
    if isinstance(value.get("code"), str):
        return value["code"].lower()
    return None


def classify_refresh_unauthorized(body: str) -> str:
    """Map a 401 body from the token endpoint to a user-facing message."""
    code = _extract_refresh_error_code(body)
    if code == "refresh_token_expired":
        return messages.REFRESH_ERR_EXPIRED
    if code == "refresh_token_reused":
        return messages.REFRESH_ERR_REUSED
    if code == "refresh_token_invalidated":
        return messages.REFRESH_ERR_REVOKED
    if not body.strip():
        return messages.REFRESH_ERR_EMPTY_401
    return messages.REFRESH_ERR_UNKNOWN_401


def _refresh_field(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise RefreshError(
            messages.REFRESH_ERR_INVALID_RESPONSE.format(f"{key} must be a string")
        )
    return value


async def _request_refresh(client: httpx.AsyncClient, refresh_token: str) -> Dict[str, Any]:
    try:
        response = await client.post(
            refresh_token_url(),
            json={
                "client_id": CLIENT_ID,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": REFRESH_SCOPE,
            },
            headers={"Content-Type": "application/json"},
            timeout=HTTP_TIMEOUT,
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        status_code = e.response.status_code
        if status_code == 401:
            raise RefreshError(classify_refresh_unauthorized(e.response.text)) from e
        raise RefreshError(messages.REFRESH_ERR_FAILED_CODE.format(status_code)) from e
    except httpx.HTTPError as e:
        raise RefreshError(messages.REFRESH_ERR_FAILED_OTHER.format(e)) from e

    try:
        data = response.json()
    except ValueError as e:
        raise RefreshError(messages.REFRESH_ERR_INVALID_RESPONSE.format(e)) from e
    if not isinstance(data, dict):
        raise RefreshError(messages.REFRESH_ERR_INVALID_RESPONSE.format("expected an object"))
    return data


def update_auth_tokens(path: Path, refreshed: Dict[str, str]) -> None:
    """
    Write refreshed tokens into the ``tokens`` object of an auth file,
    leaving every other key untouched.
    """
    value = read_auth_json(path)
    tokens = value.setdefault("tokens", {})
    if not isinstance(tokens, dict):
        raise AuthFileError(messages.AUTH_ERR_INVALID_TOKENS_OBJECT.format(path))
    tokens.update(refreshed)
    try:
        write_json_atomic(path, value)
    except OSError as e:
        raise AuthFileError(messages.AUTH_ERR_WRITE_AUTH.format(path, e)) from e


async def refresh_profile_tokens(
    path: Path, tokens: OAuthTokens, client: httpx.AsyncClient
) -> OAuthTokens:
    """
    Refresh the tokens of one auth file and persist them to that file.

    Args:
        path: The file the tokens were read from
        tokens: Current tokens; must carry a refresh token
        client: HTTP client used for the token request

    Returns:
        The updated tokens

    Raises:
        RefreshError: If there is no refresh token or the exchange fails
        AuthFileError: If the refreshed tokens cannot be written back
    """
    if not tokens.refresh_token:
        raise RefreshError(messages.AUTH_ERR_PROFILE_NO_REFRESH_TOKEN)

    path = Path(path)
    lib_logger.debug(f"Refreshing tokens for '{format_credential_for_display(str(path))}'")
    data = await _request_refresh(client, tokens.refresh_token)

    access_token = _refresh_field(data, "access_token")
    if not access_token:
        raise RefreshError(messages.REFRESH_ERR_MISSING_ACCESS_TOKEN)
    refreshed = {"access_token": access_token}
    id_token = _refresh_field(data, "id_token")
    if id_token is not None:
        refreshed["id_token"] = id_token
    refresh_token = _refresh_field(data, "refresh_token")
    if refresh_token is not None:
        refreshed["refresh_token"] = refresh_token

    update_auth_tokens(path, refreshed)
    lib_logger.debug(f"Saved refreshed tokens to '{path}' (atomic write)")

    return replace(
        tokens,
        access_token=access_token,
        id_token=id_token if id_token is not None else tokens.id_token,
        refresh_token=refresh_token if refresh_token is not None else tokens.refresh_token,
    )
