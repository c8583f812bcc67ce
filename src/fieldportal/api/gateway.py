# src/fieldportal/api/gateway.py

from __future__ import annotations

"""
Request gateway.

Every backend call goes through here so that:
- a currently-valid bearer token is always attached,
- an authorization failure gets exactly one refresh + resend,
- an unrecoverable session ends in a cleared session and the login surface,
- URL building is consistent.

Business payloads are not interpreted; callers get the raw httpx.Response.
"""

import logging
from enum import StrEnum
from typing import Any, NoReturn
from urllib.parse import urlencode

import httpx

from ..core.errors import AuthExpired, NetworkFailure
from ..core.ports import AuthProvider, Navigator, QueryParams

logger = logging.getLogger(__name__)

# Responses must always reflect current backend state.
_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}


class RequestPhase(StrEnum):
    SENDING = "sending"
    AWAITING_REFRESH = "awaiting_refresh"
    RESENT = "resent"
    FAILED = "failed"


def is_auth_rejection(response: httpx.Response) -> bool:
    """
    True for HTTP 401 and for the backend's "soft-401".

    The workflow backend's sub-flows cannot set a status code, so the auth check
    answers 200 with {"valid": false, "statusCode": 401} (sometimes wrapped in a
    one-element list). Both fields must be present: a record that merely carries
    `valid: false` is business data. The body is only peeked at: httpx keeps the
    bytes, so the caller can still read it.
    """
    if response.status_code == 401:
        return True
    if not response.is_success:
        return False

    try:
        body = response.json()
    except (ValueError, UnicodeDecodeError):
        return False

    if isinstance(body, list) and len(body) == 1:
        body = body[0]
    if not isinstance(body, dict):
        return False
    if body.get("valid") is not False:
        return False

    return str(body.get("statusCode")) == "401"


class RequestGateway:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        auth: AuthProvider,
        navigator: Navigator,
        *,
        base_url: str,
    ) -> None:
        self._http = http_client
        self._auth = auth
        self._navigator = navigator
        self._base_url = base_url.rstrip("/")

    # ---- URL building (no I/O) ----

    def url(self, endpoint: str, params: QueryParams | None = None) -> str:
        base = endpoint if endpoint.startswith(("http://", "https://")) else f"{self._base_url}{endpoint}"
        if not params:
            return base
        sep = "&" if "?" in base else "?"
        return f"{base}{sep}{urlencode({k: _param_str(v) for k, v in params.items()})}"

    # ---- I/O ----

    async def get(self, endpoint: str, params: QueryParams | None = None) -> httpx.Response:
        return await self._request("GET", self.url(endpoint, params))

    async def post(self, endpoint: str, body: Any = None, params: QueryParams | None = None) -> httpx.Response:
        return await self._request("POST", self.url(endpoint, params), body)

    async def delete(self, endpoint: str, body: Any = None, params: QueryParams | None = None) -> httpx.Response:
        return await self._request("DELETE", self.url(endpoint, params), body)

    async def _request(self, method: str, url: str, body: Any = None) -> httpx.Response:
        # Never forward a token we already know is dead.
        if not await self._auth.ensure_valid_token():
            self._expire(method, url, RequestPhase.SENDING, "no valid token before send")

        phase = RequestPhase.SENDING
        while True:
            resp = await self._send(method, url, body)
            if not is_auth_rejection(resp):
                return resp

            if phase is RequestPhase.RESENT:
                self._expire(method, url, phase, "rejected again after refresh")

            phase = RequestPhase.AWAITING_REFRESH
            logger.info("%s %s: authorization rejected (HTTP %s), refreshing token", method, url, resp.status_code)
            if not await self._auth.refresh_access_token():
                self._expire(method, url, phase, "token refresh failed")

            phase = RequestPhase.RESENT

    async def _send(self, method: str, url: str, body: Any) -> httpx.Response:
        headers = {
            "Accept": "application/json",
            "Authorization": self._auth.auth_header(),
            **_NO_CACHE_HEADERS,
        }
        kwargs: dict[str, Any] = {"headers": headers}
        if body is not None:
            kwargs["json"] = body
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning("%s %s: transport error: %r", method, url, e)
            raise NetworkFailure(f"{method} {url}: {e.__class__.__name__}") from e

    def _expire(self, method: str, url: str, phase: RequestPhase, reason: str) -> NoReturn:
        logger.warning(
            "%s %s: %s -> %s (%s), session expired, redirecting to login",
            method,
            url,
            phase,
            RequestPhase.FAILED,
            reason,
        )
        self._auth.clear_session()
        self._navigator.show_login()
        raise AuthExpired()


def _param_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, set, frozenset)):
        return ",".join(str(v) for v in value)
    return str(value)
