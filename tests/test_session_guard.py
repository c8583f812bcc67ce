# tests/test_session_guard.py

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

from fieldportal.auth.session import SessionGuard, decode_jwt_payload

from .conftest import TOKEN_URL
from .fakes import FakeBackend, make_jwt

TOKEN_PATH = httpx.URL(TOKEN_URL).path


class Clock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _access_token(name: str = "Jan Peeters", **extra) -> str:
    payload = {
        "name": name,
        "email": "jan@example.com",
        "realm_access": {"roles": ["installer"]},
        "resource_access": {"field-portal": {"roles": ["projectleider"]}},
        **extra,
    }
    return make_jwt(payload)


def _token_backend(*responses: httpx.Response) -> FakeBackend:
    backend = FakeBackend()
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        return queue.pop(0) if queue else httpx.Response(500)

    backend.route(TOKEN_PATH, handler)
    return backend


def _guard(backend: FakeBackend, clock: Clock, session_path: Path | None = None) -> SessionGuard:
    return SessionGuard(
        backend.client(),
        token_url=TOKEN_URL,
        client_id="field-portal",
        refresh_margin_seconds=60,
        session_path=session_path,
        clock=clock,
    )


def test_decode_jwt_payload_handles_garbage() -> None:
    assert decode_jwt_payload("not-a-jwt") == {}
    assert decode_jwt_payload("a.!!!.c") == {}
    assert decode_jwt_payload(make_jwt({"sub": "x"})) == {"sub": "x"}


def test_establish_decodes_claims_and_roles() -> None:
    guard = _guard(_token_backend(), Clock())
    guard.establish({"access_token": _access_token(), "refresh_token": "r0", "expires_in": 300})

    user = guard.get_user()
    assert user == {
        "name": "Jan Peeters",
        "email": "jan@example.com",
        "roles": ["installer", "projectleider"],
    }
    assert guard.has_role("installer")
    assert guard.has_role("projectleider")
    assert not guard.has_role("admin")
    assert guard.auth_header().startswith("Bearer ")


def test_establish_uses_exp_claim_when_expires_in_missing() -> None:
    clock = Clock()
    guard = _guard(_token_backend(), clock)
    guard.establish({"access_token": _access_token(exp=clock.now + 900), "refresh_token": "r0"})
    assert guard.session is not None
    assert guard.session.expires_at == clock.now + 900


@pytest.mark.asyncio
async def test_valid_token_does_not_refresh() -> None:
    backend = _token_backend()
    guard = _guard(backend, Clock())
    guard.establish({"access_token": _access_token(), "refresh_token": "r0", "expires_in": 3600})

    assert await guard.ensure_valid_token() is True
    assert backend.requests == []


@pytest.mark.asyncio
async def test_expired_token_refreshes_exactly_once() -> None:
    new_access = _access_token(name="Jan Refreshed")
    backend = _token_backend(
        httpx.Response(200, json={"access_token": new_access, "refresh_token": "r1", "expires_in": 300})
    )
    clock = Clock()
    guard = _guard(backend, clock)
    guard.establish({"access_token": _access_token(), "refresh_token": "r0", "expires_in": 300})

    clock.now += 301
    assert await guard.ensure_valid_token() is True

    assert len(backend.requests) == 1
    form = parse_qs(backend.requests[0].content.decode())
    assert form["grant_type"] == ["refresh_token"]
    assert form["refresh_token"] == ["r0"]
    assert form["client_id"] == ["field-portal"]

    assert guard.auth_header() == f"Bearer {new_access}"
    assert guard.session is not None
    assert guard.session.refresh_token == "r1"
    assert guard.session.expires_at == clock.now + 300
    assert guard.get_user()["name"] == "Jan Refreshed"


@pytest.mark.asyncio
async def test_token_inside_refresh_margin_is_refreshed() -> None:
    backend = _token_backend(httpx.Response(200, json={"access_token": _access_token(), "expires_in": 300}))
    clock = Clock()
    guard = _guard(backend, clock)
    guard.establish({"access_token": _access_token(), "refresh_token": "r0", "expires_in": 300})

    clock.now += 250  # 50s left, margin is 60s
    assert await guard.ensure_valid_token() is True
    assert len(backend.requests) == 1
    # refresh_token kept when the IdP does not rotate it
    assert guard.session is not None
    assert guard.session.refresh_token == "r0"


@pytest.mark.asyncio
async def test_failed_refresh_leaves_state_untouched() -> None:
    backend = _token_backend(httpx.Response(400, json={"error": "invalid_grant"}))
    clock = Clock()
    guard = _guard(backend, clock)
    original = _access_token()
    guard.establish({"access_token": original, "refresh_token": "r0", "expires_in": 300})
    expires_at = guard.session.expires_at if guard.session else None

    clock.now += 1000
    assert await guard.ensure_valid_token() is False

    assert guard.session is not None
    assert guard.auth_header() == f"Bearer {original}"
    assert guard.session.refresh_token == "r0"
    assert guard.session.expires_at == expires_at


@pytest.mark.asyncio
async def test_refresh_transport_error_returns_false() -> None:
    backend = FakeBackend()

    def boom(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("idp down", request=request)

    backend.route(TOKEN_PATH, boom)
    guard = _guard(backend, Clock())
    guard.establish({"access_token": _access_token(), "refresh_token": "r0", "expires_in": 300})

    assert await guard.refresh_access_token() is False
    assert guard.session is not None


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_refresh() -> None:
    backend = _token_backend(httpx.Response(200, json={"access_token": _access_token(name="Jan Refreshed"), "expires_in": 300}))
    clock = Clock()
    guard = _guard(backend, clock)
    guard.establish({"access_token": _access_token(), "refresh_token": "r0", "expires_in": 300})

    clock.now += 600
    results = await asyncio.gather(*(guard.ensure_valid_token() for _ in range(3)))

    assert results == [True, True, True]
    assert len(backend.requests) == 1


@pytest.mark.asyncio
async def test_no_session_means_no_refresh_attempt() -> None:
    backend = _token_backend()
    guard = _guard(backend, Clock())

    assert await guard.ensure_valid_token() is False
    assert await guard.refresh_access_token() is False
    assert guard.auth_header() == ""
    assert backend.requests == []


def test_session_is_persisted_restored_and_cleared(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    clock = Clock()
    guard = _guard(_token_backend(), clock, session_path=path)
    token = _access_token()
    guard.establish({"access_token": token, "refresh_token": "r0", "expires_in": 300})

    stored = json.loads(path.read_text("utf-8"))
    assert stored["access_token"] == token
    assert stored["refresh_token"] == "r0"

    other = _guard(_token_backend(), clock, session_path=path)
    assert other.restore() is True
    assert other.auth_header() == f"Bearer {token}"
    assert other.has_role("installer")

    other.clear_session()
    other.clear_session()  # idempotent
    assert not path.exists()
    assert other.get_user() is None


def test_restore_ignores_damaged_file(tmp_path: Path) -> None:
    path = tmp_path / "session.json"
    path.write_text("{not json", "utf-8")
    guard = _guard(_token_backend(), Clock(), session_path=path)
    assert guard.restore() is False
    assert guard.session is None
