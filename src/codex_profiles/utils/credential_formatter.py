# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Utility for formatting credential identifiers for display.

API-key credentials never store or show the raw key. Instead they are
identified by a pseudo account id built from a short sanitised prefix and a
64-bit FNV-1a hash of the full key, and displayed by the hash alone.
"""

import os
from typing import Optional

API_KEY_PREFIX = "api-key-"
API_KEY_LABEL = "Key"
API_KEY_SEPARATOR = "~"
API_KEY_PREFIX_LEN = 12
API_KEY_SUFFIX_LEN = 16

_FNV_OFFSET = 0xCBF29CE484222325
_FNV_PRIME = 0x100000001B3
_MASK_64 = 0xFFFFFFFFFFFFFFFF


def _fnv1a_64(data: bytes) -> int:
    value = _FNV_OFFSET
    for byte in data:
        value ^= byte
        value = (value * _FNV_PRIME) & _MASK_64
    return value


def _api_key_prefix(api_key: str) -> str:
    out = []
    for ch in api_key[:API_KEY_PREFIX_LEN]:
        if (ch.isascii() and ch.isalnum()) or ch in "-_.":
            out.append(ch)
        else:
            out.append("-")
    return "".join(out)


def api_key_profile_id(api_key: str) -> str:
    """
    Build the pseudo account id for an API key, e.g.
    ``api-key-sk-test~<16 hex digits>`` for ``"sk-test"``.
    """
    digest = _fnv1a_64(api_key.encode("utf-8"))
    return f"{API_KEY_PREFIX}{_api_key_prefix(api_key)}{API_KEY_SEPARATOR}{digest:016x}"


def api_key_display_label(account_id: Optional[str]) -> Optional[str]:
    """Return ``~<hash>`` for a pseudo account id, or None if it is not one."""
    if not account_id or not account_id.startswith(API_KEY_PREFIX):
        return None
    rest = account_id[len(API_KEY_PREFIX):]
    prefix, sep, digest = rest.partition(API_KEY_SEPARATOR)
    if not sep or not prefix:
        return None
    suffix = digest[-API_KEY_SUFFIX_LEN:]
    if not suffix:
        return None
    return f"{API_KEY_SEPARATOR}{suffix}"


def format_credential_for_display(credential: str) -> str:
    """
    Format a credential for display in logs.

    Profile files show their basename, API-key pseudo ids their hash label,
    anything else only its last 6 characters.
    """
    if os.path.isfile(credential):
        return os.path.basename(credential)
    label = api_key_display_label(credential)
    if label:
        return label
    return f"...{credential[-6:]}"
