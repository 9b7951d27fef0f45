import base64
import json
import sys
from pathlib import Path
from typing import List, Optional

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from codex_profiles.config import Paths, ensure_paths
from codex_profiles.display import DisplayConfig
from codex_profiles.errors import PromptCancelled


def _b64(value: dict) -> str:
    raw = json.dumps(value).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def build_id_token(
    email: Optional[str] = "alice@example.com",
    plan: Optional[str] = "plus",
    user_id: Optional[str] = "user-alice",
    account_id: Optional[str] = None,
) -> str:
    claims: dict = {"sub": user_id or "sub-fallback"}
    if email is not None:
        claims["email"] = email
    auth: dict = {}
    if plan is not None:
        auth["chatgpt_plan_type"] = plan
    if user_id is not None:
        auth["chatgpt_user_id"] = user_id
    if account_id is not None:
        auth["chatgpt_account_id"] = account_id
    claims["https://api.openai.com/auth"] = auth
    return f"{_b64({'alg': 'none'})}.{_b64(claims)}.sig"


def auth_payload(
    email: Optional[str] = "alice@example.com",
    plan: Optional[str] = "plus",
    user_id: Optional[str] = "user-alice",
    account_id: Optional[str] = "acct-alice",
    access_token: Optional[str] = "access-alice",
    refresh_token: Optional[str] = "refresh-alice",
) -> dict:
    tokens = {"id_token": build_id_token(email, plan, user_id)}
    if account_id is not None:
        tokens["account_id"] = account_id
    if access_token is not None:
        tokens["access_token"] = access_token
    if refresh_token is not None:
        tokens["refresh_token"] = refresh_token
    return {"OPENAI_API_KEY": None, "tokens": tokens, "last_refresh": "2026-01-01T00:00:00Z"}


def write_json(path: Path, value) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(value), encoding="utf-8")
    return path


class FakePrompter:
    """Scripted stand-in for the rich prompter."""

    def __init__(
        self,
        interactive: bool = True,
        one: Optional[int] = 0,
        many: Optional[List[int]] = None,
        confirm: bool = True,
        cancel: bool = False,
    ):
        self.interactive = interactive
        self.one = one
        self.many = many if many is not None else [0]
        self.confirm_answer = confirm
        self.cancel = cancel
        self.calls: List[tuple] = []

    def is_interactive(self) -> bool:
        return self.interactive

    def select_one(self, title, items):
        self.calls.append(("one", title, list(items)))
        if self.cancel:
            raise PromptCancelled()
        return self.one

    def select_many(self, title, items):
        self.calls.append(("many", title, list(items)))
        if self.cancel:
            raise PromptCancelled()
        return list(self.many)

    def confirm(self, question):
        self.calls.append(("confirm", question))
        if self.cancel:
            raise PromptCancelled()
        return self.confirm_answer


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CODEX_PROFILES_COMMAND", "codex-profiles")
    monkeypatch.setenv("CODEX_PROFILES_HOME", str(tmp_path))
    monkeypatch.setenv("CODEX_PROFILES_LOCK_TIMEOUT", "2")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("CODEX_REFRESH_TOKEN_URL_OVERRIDE", raising=False)


@pytest.fixture
def paths(tmp_path: Path) -> Paths:
    resolved = Paths.from_codex_dir(tmp_path / ".codex")
    ensure_paths(resolved)
    return resolved


@pytest.fixture
def display() -> DisplayConfig:
    return DisplayConfig(plain=False, use_color=False)


@pytest.fixture
def write_auth(paths: Paths):
    def _write(**kwargs) -> Path:
        return write_json(paths.auth, auth_payload(**kwargs))

    return _write


@pytest.fixture
def write_profile(paths: Paths):
    def _write(profile_id: str, **kwargs) -> Path:
        return write_json(paths.profile_path(profile_id), auth_payload(**kwargs))

    return _write
