# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .credential_formatter import (
    api_key_display_label,
    api_key_profile_id,
    format_credential_for_display,
)
from .resilient_io import copy_atomic, write_atomic, write_json_atomic

__all__ = [
    "api_key_display_label",
    "api_key_profile_id",
    "format_credential_for_display",
    "copy_atomic",
    "write_atomic",
    "write_json_atomic",
]
