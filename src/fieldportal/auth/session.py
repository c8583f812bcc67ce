# src/fieldportal/auth/session.py

"""
Session guard: owns the access/refresh token pair and its validity window.

The login flow itself happens elsewhere (OIDC redirect in the browser, a pasted
token pair in the console). What lands here is its result: a token response,
installed with establish(). From then on the guard keeps the access token fresh
via the refresh_token grant and persists the session to a private JSON file so
it survives restarts.

Failures are reported as booleans; the request gateway decides what happens next.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import contextlib
import json
import logging
import os
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Used when a token response carries neither expires_in nor a readable exp claim.
DEFAULT_TOKEN_LIFETIME_SECONDS = 300


@dataclass(slots=True)
class SessionClaims:
    name: str = ""
    email: str = ""
    roles: frozenset[str] = field(default_factory=frozenset)


@dataclass(slots=True)
class Session:
    access_token: str
    refresh_token: str
    expires_at: float
    claims: SessionClaims = field(default_factory=SessionClaims)

    def expires_within(self, seconds: float, now: float) -> bool:
        return now + seconds >= self.expires_at

    def to_json(self) -> dict[str, Any]:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }


def decode_jwt_payload(token: str) -> dict[str, Any]:
    """
    Decode the payload segment of a JWT without verifying it.

    Verification is the backend's job; the client only reads display claims and exp.
    Returns {} for anything that does not look like a JWT.
    """
    parts = (token or "").split(".")
    if len(parts) < 2:
        return {}
    segment = parts[1]
    segment += "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(segment.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        return {}
    return payload if isinstance(payload, dict) else {}


def claims_from_payload(payload: dict[str, Any], client_id: str = "") -> SessionClaims:
    name = payload.get("name") or payload.get("preferred_username") or payload.get("sub") or ""
    email = payload.get("email") or ""

    roles: set[str] = set()

    def _add(values: Any) -> None:
        if isinstance(values, list):
            roles.update(str(v) for v in values if v)

    _add(payload.get("roles"))
    realm = payload.get("realm_access")
    if isinstance(realm, dict):
        _add(realm.get("roles"))
    resource = payload.get("resource_access")
    if client_id and isinstance(resource, dict):
        client_access = resource.get(client_id)
        if isinstance(client_access, dict):
            _add(client_access.get("roles"))

    return SessionClaims(name=str(name), email=str(email), roles=frozenset(roles))


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(Exception):
        # Best-effort: not critical on Windows or restricted FS.
        os.chmod(path, 0o600)


class SessionGuard:
    """Holds at most one live Session and keeps it valid."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        token_url: str,
        client_id: str,
        refresh_margin_seconds: float = 60.0,
        session_path: str | Path | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._http = http_client
        self._token_url = token_url
        self._client_id = client_id
        self._margin = max(0.0, float(refresh_margin_seconds))
        self._session_path = Path(session_path) if session_path else None
        self._clock = clock
        self._session: Session | None = None
        self._refresh_lock = asyncio.Lock()

    # ---- lifecycle ----

    @property
    def session(self) -> Session | None:
        return self._session

    def is_authenticated(self) -> bool:
        return self._session is not None

    def establish(self, token_response: dict[str, Any]) -> Session:
        """Install the tokens issued by the login flow, replacing any previous session."""
        access_token = str(token_response.get("access_token") or "")
        refresh_token = str(token_response.get("refresh_token") or "")
        if not access_token:
            raise ValueError("token response has no access_token")

        payload = decode_jwt_payload(access_token)
        session = Session(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=self._expiry_from(token_response, payload),
            claims=claims_from_payload(payload, self._client_id),
        )
        self._session = session
        self._persist()
        logger.info("Session established for %s (expires_at=%.0f)", session.claims.name or "?", session.expires_at)
        return session

    def restore(self) -> bool:
        """Load a persisted session, if any. A damaged file is ignored (and left for inspection)."""
        path = self._session_path
        if path is None or not path.exists():
            return False
        try:
            data = json.loads(path.read_text("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("Expected JSON object")
            access_token = str(data["access_token"])
            payload = decode_jwt_payload(access_token)
            self._session = Session(
                access_token=access_token,
                refresh_token=str(data.get("refresh_token") or ""),
                expires_at=float(data["expires_at"]),
                claims=claims_from_payload(payload, self._client_id),
            )
        except Exception as e:
            logger.warning("Failed to restore session from %s: %r", path, e)
            return False
        logger.info("Session restored for %s", self._session.claims.name or "?")
        return True

    def clear_session(self) -> None:
        had_session = self._session is not None
        self._session = None
        if self._session_path is not None:
            with contextlib.suppress(FileNotFoundError):
                self._session_path.unlink()
        if had_session:
            logger.info("Session cleared")

    # ---- validity ----

    async def ensure_valid_token(self) -> bool:
        session = self._session
        if session is None:
            return False
        if not session.expires_within(self._margin, self._clock()):
            return True
        logger.debug("Access token expires within %.0fs, refreshing", self._margin)
        return await self.refresh_access_token()

    async def refresh_access_token(self) -> bool:
        session = self._session
        if session is None or not session.refresh_token:
            return False

        stale_token = session.access_token
        async with self._refresh_lock:
            current = self._session
            if current is None:
                return False
            # Someone else refreshed while we were waiting for the lock.
            if current.access_token != stale_token:
                return True
            return await self._do_refresh(current)

    async def _do_refresh(self, session: Session) -> bool:
        if not self._token_url:
            logger.warning("Token refresh skipped: no token URL configured")
            return False

        form = {
            "grant_type": "refresh_token",
            "refresh_token": session.refresh_token,
            "client_id": self._client_id,
        }
        try:
            resp = await self._http.post(self._token_url, data=form, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            logger.warning("Token refresh failed (transport): %r", e)
            return False

        if not resp.is_success:
            logger.warning("Token refresh rejected: HTTP %s", resp.status_code)
            return False

        try:
            data = resp.json()
        except ValueError:
            logger.warning("Token refresh returned a non-JSON body")
            return False

        access_token = data.get("access_token") if isinstance(data, dict) else None
        if not access_token:
            logger.warning("Token refresh response has no access_token")
            return False

        payload = decode_jwt_payload(str(access_token))
        # Mutate in place: there is only ever one Session object.
        session.access_token = str(access_token)
        session.refresh_token = str(data.get("refresh_token") or session.refresh_token)
        session.expires_at = self._expiry_from(data, payload)
        session.claims = claims_from_payload(payload, self._client_id)
        self._persist()
        logger.info("Access token refreshed (expires_at=%.0f)", session.expires_at)
        return True

    def _expiry_from(self, token_response: dict[str, Any], payload: dict[str, Any]) -> float:
        now = self._clock()
        expires_in = token_response.get("expires_in")
        if isinstance(expires_in, (int, float)) and not isinstance(expires_in, bool):
            return now + float(expires_in)
        if isinstance(expires_in, str) and expires_in.strip().isdigit():
            return now + float(expires_in)
        exp = payload.get("exp")
        if isinstance(exp, (int, float)) and not isinstance(exp, bool):
            return float(exp)
        return now + DEFAULT_TOKEN_LIFETIME_SECONDS

    def _persist(self) -> None:
        if self._session_path is None or self._session is None:
            return
        try:
            _atomic_write_json(self._session_path, self._session.to_json())
        except OSError as e:
            logger.error("Failed to write session file (%s): %r", self._session_path, e)

    # ---- header / accessors ----

    def auth_header(self) -> str:
        session = self._session
        return f"Bearer {session.access_token}" if session is not None else ""

    def get_user(self) -> dict[str, Any] | None:
        session = self._session
        if session is None:
            return None
        return {
            "name": session.claims.name,
            "email": session.claims.email,
            "roles": sorted(session.claims.roles),
        }

    def has_role(self, role: str) -> bool:
        session = self._session
        return session is not None and role in session.claims.roles
