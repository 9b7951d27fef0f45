import pytest

from codex_profiles.auth import OAuthTokens, extract_profile_identity, read_credential
from codex_profiles.errors import IdentityError
from codex_profiles.identity import (
    cached_profile_ids,
    pick_primary,
    profile_base,
    profile_files,
    resolve_save_id,
    resolve_sync_id,
    sanitize_part,
    unique_id,
)
from codex_profiles.store import IndexEntry, ProfilesIndex, load_profile_tokens

from conftest import build_id_token


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Alice@Example.com", "alice@example.com"),
        ("  spaced  out  ", "spaced-out"),
        ("a///b", "a-b"),
        ("--x+y_z.--", "x+y_z."),
        ("ünïcode", "n-code"),
    ],
)
def test_sanitize_part(raw: str, expected: str) -> None:
    assert sanitize_part(raw) == expected


def test_profile_base_uses_unknown_for_empty_parts() -> None:
    assert profile_base("Alice@Example.com", "Plus") == "alice@example.com-plus"
    assert profile_base("///", "") == "unknown-unknown"


def test_profile_files_skips_reserved_names(paths) -> None:
    (paths.profiles / "a.json").write_text("{}", encoding="utf-8")
    (paths.profiles / "notes.txt").write_text("", encoding="utf-8")
    (paths.profiles / "profiles.json").write_text("{}", encoding="utf-8")
    (paths.profiles / "update.json").write_text("{}", encoding="utf-8")

    assert [p.name for p in profile_files(paths.profiles)] == ["a.json"]


def test_resolve_save_id_for_new_identity(paths, write_auth) -> None:
    write_auth()

    profile_id = resolve_save_id(paths, ProfilesIndex(), read_credential(paths.auth))

    assert profile_id == "alice@example.com-plus"


def test_resolve_save_id_reuses_file_with_same_identity(paths, write_auth, write_profile) -> None:
    write_auth(access_token="fresh")
    write_profile("alice@example.com-plus")

    profile_id = resolve_save_id(paths, ProfilesIndex(), read_credential(paths.auth))

    assert profile_id == "alice@example.com-plus"


def test_same_email_different_plan_gets_own_id(paths, write_auth, write_profile) -> None:
    write_profile("alice@example.com-plus")
    write_auth(plan="team")

    profile_id = resolve_save_id(paths, ProfilesIndex(), read_credential(paths.auth))

    assert profile_id == "alice@example.com-team"


def test_same_email_different_workspace_gets_suffix(paths, write_auth, write_profile) -> None:
    write_profile("alice@example.com-plus", account_id="workspace-one")
    write_auth(account_id="workspace-two")

    profile_id = resolve_save_id(paths, ProfilesIndex(), read_credential(paths.auth))

    assert profile_id == "alice@example.com-plus-worksp"


def test_unique_id_counts_up_after_suffix(paths, write_profile) -> None:
    write_profile("alice@example.com-plus", account_id="other-1")
    write_profile("alice@example.com-plus-acct-a", account_id="other-2")
    identity = extract_profile_identity(
        OAuthTokens(account_id="acct-alice", id_token=build_id_token())
    )

    assert unique_id("alice@example.com-plus", identity, paths.profiles) == (
        "alice@example.com-plus-acct-a-2"
    )


def test_resolve_save_id_renames_legacy_file(paths, write_auth, write_profile) -> None:
    write_auth()
    write_profile("old-name")
    index = ProfilesIndex()
    index.profiles["old-name"] = IndexEntry(label="work")

    profile_id = resolve_save_id(paths, index, read_credential(paths.auth))

    assert profile_id == "alice@example.com-plus"
    assert not paths.profile_path("old-name").exists()
    assert paths.profile_path("alice@example.com-plus").is_file()
    assert "old-name" not in index.profiles
    assert index.profiles["alice@example.com-plus"].label == "work"


def test_resolve_save_id_requires_complete_identity(paths) -> None:
    with pytest.raises(IdentityError):
        resolve_save_id(
            paths, ProfilesIndex(), OAuthTokens(account_id="a", id_token=build_id_token(email=None))
        )


def test_resolve_sync_id_trusts_single_noncanonical_match(paths, write_auth, write_profile) -> None:
    write_auth()
    write_profile("my-alias")

    profile_id = resolve_sync_id(paths, ProfilesIndex(), read_credential(paths.auth))

    assert profile_id == "my-alias"
    assert paths.profile_path("my-alias").is_file()


def test_resolve_sync_id_prefers_canonical_among_many(paths, write_auth, write_profile) -> None:
    write_auth()
    write_profile("a-copy")
    write_profile("alice@example.com-plus")

    profile_id = resolve_sync_id(paths, ProfilesIndex(), read_credential(paths.auth))

    assert profile_id == "alice@example.com-plus"
    assert paths.profile_path("a-copy").is_file()


def test_resolve_sync_id_without_saved_copy(paths, write_auth) -> None:
    write_auth()

    assert resolve_sync_id(paths, ProfilesIndex(), read_credential(paths.auth)) is None


def test_cached_ids_match_identity_not_email(paths, write_profile) -> None:
    write_profile("one", email="first@example.com")
    write_profile("two", email="second@example.com")
    write_profile("three", user_id="somebody-else")
    tokens = load_profile_tokens(paths)
    identity = extract_profile_identity(read_credential(paths.profile_path("one")))

    matches = cached_profile_ids(tokens, identity)

    assert sorted(matches) == ["one", "two"]
    assert pick_primary(matches) == "one"
    assert pick_primary([]) is None
