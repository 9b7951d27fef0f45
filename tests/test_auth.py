import json
import os
import re
import stat

import httpx
import pytest

from codex_profiles import messages
from codex_profiles.auth import (
    ApiKey,
    OAuthTokens,
    classify_refresh_unauthorized,
    extract_email_and_plan,
    extract_profile_identity,
    is_profile_ready,
    profile_error,
    read_credential,
    refresh_profile_tokens,
    require_identity,
)
from codex_profiles.errors import AuthFileError, IdentityError, RefreshError

from conftest import auth_payload, build_id_token, write_json


def test_read_credential_parses_tokens(tmp_path) -> None:
    path = write_json(tmp_path / "auth.json", auth_payload())

    credential = read_credential(path)

    assert isinstance(credential, OAuthTokens)
    assert credential.account_id == "acct-alice"
    assert credential.access_token == "access-alice"
    assert extract_email_and_plan(credential) == ("alice@example.com", "Plus")


def test_read_credential_normalizes_empty_strings(tmp_path) -> None:
    payload = auth_payload()
    payload["tokens"]["access_token"] = ""
    path = write_json(tmp_path / "auth.json", payload)

    credential = read_credential(path)

    assert credential.access_token is None
    assert not is_profile_ready(credential)


def test_read_credential_api_key_file(tmp_path) -> None:
    path = write_json(tmp_path / "auth.json", {"OPENAI_API_KEY": "sk-test-1234567890"})

    credential = read_credential(path)

    assert isinstance(credential, ApiKey)
    assert re.fullmatch(r"api-key-sk-test-1234~[0-9a-f]{16}", credential.account_id)
    email, plan = extract_email_and_plan(credential)
    assert plan == "Key"
    assert email == "~" + credential.account_id.split("~")[1]
    assert "sk-test-1234567890" not in credential.account_id


def test_api_key_pseudo_id_is_deterministic(tmp_path) -> None:
    first = read_credential(write_json(tmp_path / "a.json", {"OPENAI_API_KEY": "sk-same"}))
    second = read_credential(write_json(tmp_path / "b.json", {"OPENAI_API_KEY": "sk-same"}))
    other = read_credential(write_json(tmp_path / "c.json", {"OPENAI_API_KEY": "sk-other"}))

    assert first == second
    assert first != other


def test_tokens_object_with_api_key_account_is_api_key(tmp_path) -> None:
    path = write_json(
        tmp_path / "auth.json",
        {"tokens": {"account_id": "api-key-sk-x~0123456789abcdef"}},
    )

    assert read_credential(path) == ApiKey("api-key-sk-x~0123456789abcdef")


@pytest.mark.parametrize(
    ("contents", "expected"),
    [
        (None, messages.AUTH_ERR_FILE_NOT_FOUND),
        ("{not json", "Invalid JSON"),
        ("[]", "expected an object"),
        ("{}", "Missing tokens"),
        ('{"tokens": "nope"}', "tokens must be an object"),
    ],
)
def test_read_credential_errors(tmp_path, contents, expected) -> None:
    path = tmp_path / "auth.json"
    if contents is not None:
        path.write_text(contents, encoding="utf-8")

    with pytest.raises(AuthFileError) as exc_info:
        read_credential(path)

    assert expected in exc_info.value.message


def test_identity_prefers_user_claims_and_token_account(tmp_path) -> None:
    credential = OAuthTokens(
        account_id="acct-1",
        id_token=build_id_token(user_id="user-1", plan="team", account_id="claim-acct"),
        access_token="a",
    )

    identity = extract_profile_identity(credential)

    assert identity.principal_id == "user-1"
    assert identity.workspace_or_org_id == "acct-1"
    assert identity.plan_type == "team"


def test_identity_falls_back_to_claims() -> None:
    credential = OAuthTokens(
        id_token=build_id_token(user_id=None, plan=None, account_id="claim-acct"),
    )

    identity = extract_profile_identity(credential)

    assert identity.principal_id == "sub-fallback"
    assert identity.workspace_or_org_id == "claim-acct"
    assert identity.plan_type == "unknown"


def test_identity_ignores_email() -> None:
    first = OAuthTokens(account_id="acct", id_token=build_id_token(email="a@example.com"))
    second = OAuthTokens(account_id="acct", id_token=build_id_token(email="b@example.com"))
    other_workspace = OAuthTokens(account_id="acct-2", id_token=build_id_token())

    assert extract_profile_identity(first) == extract_profile_identity(second)
    assert extract_profile_identity(first) != extract_profile_identity(other_workspace)


def test_api_key_identity_uses_pseudo_account() -> None:
    identity = extract_profile_identity(ApiKey("api-key-sk~abc"))

    assert identity.principal_id == "api-key-sk~abc"
    assert identity.workspace_or_org_id == "api-key-sk~abc"
    assert identity.plan_type == "key"


def test_require_identity_names_missing_piece() -> None:
    with pytest.raises(IdentityError, match="missing account"):
        require_identity(OAuthTokens(id_token=build_id_token()))
    with pytest.raises(IdentityError, match="missing email"):
        require_identity(OAuthTokens(account_id="a", id_token=build_id_token(email=None)))
    with pytest.raises(IdentityError, match="missing plan"):
        require_identity(OAuthTokens(account_id="a", id_token=build_id_token(plan=None)))


def test_profile_error_order() -> None:
    complete = OAuthTokens(account_id="a", id_token=build_id_token(), access_token="t")

    assert profile_error(complete, "e", "p") is None
    assert profile_error(complete, None, "p") == messages.AUTH_ERR_PROFILE_MISSING_EMAIL_PLAN
    assert (
        profile_error(OAuthTokens(access_token="t"), "e", "p")
        == messages.AUTH_ERR_PROFILE_MISSING_ACCOUNT
    )
    assert (
        profile_error(OAuthTokens(account_id="a"), "e", "p")
        == messages.AUTH_ERR_PROFILE_MISSING_ACCESS_TOKEN
    )
    assert profile_error(ApiKey("api-key-x~1"), None, None) is None


@pytest.mark.parametrize(
    ("body", "expected"),
    [
        ('{"error": {"code": "refresh_token_expired"}}', messages.REFRESH_ERR_EXPIRED),
        ('{"error": "refresh_token_reused"}', messages.REFRESH_ERR_REUSED),
        ('{"code": "REFRESH_TOKEN_INVALIDATED"}', messages.REFRESH_ERR_REVOKED),
        ("", messages.REFRESH_ERR_EMPTY_401),
        ("gateway says no", messages.REFRESH_ERR_UNKNOWN_401),
    ],
)
def test_classify_refresh_unauthorized(body: str, expected: str) -> None:
    assert classify_refresh_unauthorized(body) == expected


# =============================================================================
# TOKEN REFRESH
# =============================================================================


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_refresh_updates_tokens_and_keeps_other_keys(tmp_path) -> None:
    path = write_json(tmp_path / "profile.json", auth_payload())
    os.chmod(path, 0o600)
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"access_token": "new-access", "refresh_token": "new-refresh"})

    tokens = read_credential(path)
    async with _client(handler) as client:
        refreshed = await refresh_profile_tokens(path, tokens, client)

    assert seen["body"]["grant_type"] == "refresh_token"
    assert seen["body"]["refresh_token"] == "refresh-alice"
    assert seen["body"]["scope"] == "openid profile email"
    assert refreshed.access_token == "new-access"
    assert refreshed.refresh_token == "new-refresh"
    assert refreshed.id_token == tokens.id_token

    on_disk = json.loads(path.read_text(encoding="utf-8"))
    assert on_disk["tokens"]["access_token"] == "new-access"
    assert on_disk["tokens"]["account_id"] == "acct-alice"
    assert on_disk["last_refresh"] == "2026-01-01T00:00:00Z"
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600


@pytest.mark.asyncio
async def test_refresh_uses_override_url(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("CODEX_REFRESH_TOKEN_URL_OVERRIDE", "http://localhost:9/token")
    path = write_json(tmp_path / "profile.json", auth_payload())
    urls = []

    def handler(request: httpx.Request) -> httpx.Response:
        urls.append(str(request.url))
        return httpx.Response(200, json={"access_token": "x"})

    async with _client(handler) as client:
        await refresh_profile_tokens(path, read_credential(path), client)

    assert urls == ["http://localhost:9/token"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("response", "expected"),
    [
        (httpx.Response(401, json={"error": {"code": "refresh_token_expired"}}), "expired"),
        (httpx.Response(500, text="boom"), "Token refresh failed. (500)"),
        (httpx.Response(200, text="not json"), "Invalid refresh response"),
        (httpx.Response(200, json={"id_token": "x"}), "missing an access token"),
    ],
)
async def test_refresh_failures(tmp_path, response, expected) -> None:
    path = write_json(tmp_path / "profile.json", auth_payload())
    before = path.read_text(encoding="utf-8")

    async with _client(lambda request: response) as client:
        with pytest.raises(RefreshError) as exc_info:
            await refresh_profile_tokens(path, read_credential(path), client)

    assert expected in exc_info.value.message
    assert path.read_text(encoding="utf-8") == before


@pytest.mark.asyncio
async def test_refresh_transport_error(tmp_path) -> None:
    path = write_json(tmp_path / "profile.json", auth_payload())

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    async with _client(handler) as client:
        with pytest.raises(RefreshError, match="Token refresh failed: no route"):
            await refresh_profile_tokens(path, read_credential(path), client)


@pytest.mark.asyncio
async def test_refresh_requires_refresh_token(tmp_path) -> None:
    path = write_json(tmp_path / "profile.json", auth_payload(refresh_token=None))

    async with _client(lambda request: httpx.Response(200)) as client:
        with pytest.raises(RefreshError) as exc_info:
            await refresh_profile_tokens(path, read_credential(path), client)

    assert exc_info.value.message == messages.AUTH_ERR_PROFILE_NO_REFRESH_TOKEN
