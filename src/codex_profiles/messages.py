# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/messages.py
"""
User-facing message templates.

Error templates carry no ``Error:`` prefix; the display layer adds it when
rendering. Positional ``{}`` slots are filled with ``str.format``.
"""

CANCELLED = "Cancelled."

# =============================================================================
# AUTH FILES
# =============================================================================

AUTH_REFRESH_401_TITLE = "Token refresh unauthorized (401)"
AUTH_RELOGIN_AND_SAVE = "Authenticate again with `codex login`, then save this profile"

AUTH_ERR_MISSING_TOKENS = "Missing tokens in {}. Run `codex login`."
AUTH_ERR_FILE_NOT_FOUND = "Auth file not found. Run `codex login`."
AUTH_ERR_READ = "Could not read {}: {}"
AUTH_ERR_INVALID_JSON_RELOGIN = "Invalid JSON in {}: {}. Run `codex login`."
AUTH_ERR_INCOMPLETE_ACCOUNT = "Auth file is incomplete (missing account). Run `codex login`."
AUTH_ERR_INCOMPLETE_EMAIL = "Auth file is incomplete (missing email). Run `codex login`."
AUTH_ERR_INCOMPLETE_PLAN = "Auth file is incomplete (missing plan). Run `codex login`."
AUTH_ERR_PROFILE_MISSING_EMAIL_PLAN = "Profile is missing email or plan information."
AUTH_ERR_PROFILE_MISSING_ACCOUNT = "Profile is missing account information."
AUTH_ERR_PROFILE_MISSING_ACCESS_TOKEN = "Profile is missing an access token."
AUTH_ERR_PROFILE_NO_REFRESH_TOKEN = (
    "This profile has no refresh token. Run `codex login` and save again."
)
AUTH_ERR_INVALID_TOKENS_OBJECT = "Invalid tokens in {} (expected object)"
AUTH_ERR_WRITE_AUTH = "Could not write {}: {}"

# =============================================================================
# TOKEN REFRESH
# =============================================================================

REFRESH_ERR_FAILED_CODE = "Token refresh failed. ({})"
REFRESH_ERR_FAILED_OTHER = "Token refresh failed: {}"
REFRESH_ERR_INVALID_RESPONSE = "Invalid refresh response: {}"
REFRESH_ERR_EXPIRED = (
    "Token refresh unauthorized (401)\n"
    "Refresh token expired. Authenticate again with `codex login`, then save this profile."
)
REFRESH_ERR_REUSED = (
    "Token refresh unauthorized (401)\n"
    "Authenticate again with `codex login`, then save this profile."
)
REFRESH_ERR_REVOKED = (
    "Token refresh unauthorized (401)\n"
    "Refresh token revoked. Authenticate again with `codex login`, then save this profile."
)
REFRESH_ERR_UNKNOWN_401 = REFRESH_ERR_REUSED
REFRESH_ERR_EMPTY_401 = f"{AUTH_REFRESH_401_TITLE}\n{AUTH_RELOGIN_AND_SAVE}"
REFRESH_ERR_MISSING_ACCESS_TOKEN = "Refresh response is missing an access token."

# =============================================================================
# USAGE
# =============================================================================

USAGE_UNAVAILABLE_API_KEY = (
    "Usage unavailable for API key\n"
    "Rate-limit usage data is only available for ChatGPT account profiles."
)
USAGE_ERR_UNAUTHORIZED_401 = f"Unauthorized (401)\n{AUTH_RELOGIN_AND_SAVE}"
USAGE_UNAVAILABLE_402 = "Usage unavailable (402)\nThis account may not have usage access"
USAGE_ERR_ACCESS_DENIED_403 = "Access denied for usage data on this account. (403)"
USAGE_ERR_RATE_LIMITED_429 = "Usage request was rate-limited. Try again shortly. (429)"
USAGE_ERR_REQUEST_FAILED_CODE = "Usage request failed. ({})"
USAGE_ERR_SERVICE_UNREACHABLE = "Could not reach usage service: {}"
USAGE_ERR_INVALID_RESPONSE = "Invalid usage response: {}"
USAGE_UNAVAILABLE_DEFAULT = "Data not available"

# =============================================================================
# STORE & LOCK
# =============================================================================

LOCK_ERR_ACQUIRE = "Could not acquire profiles lock. Ensure no other {} is running and retry."
LOCK_ERR_OPEN = "Could not open profiles lock: {}"

PROFILE_ERR_READ_INDEX = "Cannot read profiles index file {}: {}"
PROFILE_ERR_INDEX_INVALID_JSON = "Profiles index file {} is invalid JSON"
PROFILE_ERR_WRITE_INDEX = "Failed to write profiles index file: {}"
PROFILE_ERR_READ_PROFILES_DIR = "Cannot read profiles directory: {}"
PROFILE_ERR_REMOVE_INVALID = "Failed to remove invalid profile {}: {}"
PROFILE_ERR_RENAME_PROFILE = "Failed to rename profile {}: {}"
PROFILE_ERR_SYNC_CURRENT = "Failed to sync current profile: {}"
PROFILE_ERR_COPY_CONTEXT = "Failed to {} {}: {}"
PROFILE_COPY_CONTEXT_SAVE = "save profile to"
PROFILE_COPY_CONTEXT_LOAD = "load selected profile to"
PROFILE_ERR_ID_NOT_FOUND = "Profile {} not found"
PROFILE_ERR_FAILED_DELETE = "Failed to delete profile: {}"

COMMON_ERR_EXISTS_NOT_DIR = "{} exists and is not a directory"
COMMON_ERR_EXISTS_NOT_FILE = "{} exists and is not a file"
COMMON_ERR_CREATE_PROFILES_DIR = "Cannot create profiles directory {}: {}"
COMMON_ERR_WRITE_LOCK_FILE = "Cannot write profiles lock file {}: {}"

# =============================================================================
# PROFILES
# =============================================================================

PROFILE_MSG_SAVED = "Saved profile"
PROFILE_MSG_SAVED_WITH = "Saved profile {}"
PROFILE_MSG_LOADED_WITH = "Loaded profile {}"
PROFILE_MSG_DELETED_WITH = "Deleted profile {}"
PROFILE_MSG_DELETED_COUNT = "Deleted {} profiles."
PROFILE_MSG_REMOVED_INVALID = "Removed invalid profile {} ({})"
PROFILE_MSG_NOT_FOUND = "Selected profile not found.\n{}"

PROFILE_ERR_SELECTED_INVALID = "Selected profile is invalid: {}"
PROFILE_ERR_LABEL_EXISTS = "Label '{}' already exists.\n{}"
PROFILE_ERR_LABEL_NOT_FOUND = "Label '{}' was not found.\n{}"
PROFILE_ERR_LABEL_NO_MATCH = "Label '{}' does not match a saved profile.\n{}"
PROFILE_ERR_LABEL_EMPTY = "Label cannot be empty."
PROFILE_ERR_NO_SAVED_PROFILES = "No saved profiles.\n{}"
PROFILE_ERR_CURRENT_NOT_SAVED = "Current profile is not saved.\n{}"
PROFILE_WARN_CURRENT_NOT_SAVED_REASON = "Current profile is not saved ({})"
PROFILE_ERR_TTY_REQUIRED = "{} selection requires a TTY. Run `{} {}` interactively."
PROFILE_ERR_DELETE_CONFIRM_REQUIRED = (
    "Deletion requires confirmation. Re-run with `--yes` to skip the prompt."
)
PROFILE_UNSAVED_NO_MATCH = "no saved profile matches auth.json"
PROFILE_STATUS_API_HIDDEN = "+ {} API profiles hidden"
PROFILE_STATUS_ERROR_HIDDEN = "+ {} errored profiles hidden (use `--show-errors`)"

PROFILE_SUMMARY_ERROR = "Error"
PROFILE_SUMMARY_AUTH_ERROR = "Auth error"
PROFILE_SUMMARY_USAGE_ERROR = "Usage error"
PROFILE_SUMMARY_FILE_MISSING = "profile file missing"

PROFILE_PROMPT_SAVE_AND_CONTINUE = "Save current profile and continue"
PROFILE_PROMPT_CONTINUE_WITHOUT_SAVING = "Continue without saving"
PROFILE_PROMPT_CANCEL = "Cancel"
PROFILE_PROMPT_UNSAVED_TITLE = "How do you want to continue?"
PROFILE_PROMPT_DELETE_ONE = "Delete profile {}? This cannot be undone."
PROFILE_PROMPT_DELETE_MANY = "Delete {} profiles? This cannot be undone."
PROFILE_PROMPT_PICK_ONE = "Select a profile to load"
PROFILE_PROMPT_PICK_MANY = "Select profiles to delete (comma separated numbers)"

# =============================================================================
# UI
# =============================================================================

UI_ERROR_PREFIX = "Error:"
UI_WARNING_PREFIX = "Warning: "
UI_INFO_PREFIX = "Info: {}"
UI_WARNING_UNSAVED_PROFILE = "Warning: This profile is not saved yet."
UI_NO_SAVED_PROFILES = "No saved profiles. {}"
UI_HINT_SAVE_PROFILE = "Run {save} to save this profile."
UI_HINT_LOGIN_AND_SAVE = "Run {login} • then {save}."
UI_HINT_SAVE_BEFORE_LOADING = "Run {save} before loading."
UI_HINT_LOGIN_SAVE_BEFORE_LOADING = "Run {login}, then {save} before loading."
UI_HINT_LIST_PROFILES = "Run {list} to see saved profiles."
UI_NORMALIZED_NOT_LOGGED_IN = "Not logged in. Run `codex login`."
UI_NORMALIZED_AUTH_INVALID = "Auth file is invalid. Run `codex login`."
UI_NORMALIZED_AUTH_INCOMPLETE = "Auth is incomplete. Run `codex login`."
UI_UNKNOWN_PROFILE = "Unknown profile{}"
