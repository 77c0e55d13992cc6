"""HTTP transport to the gateway: headers, credential refresh, error mapping.

A 401 on the first attempt triggers exactly one token refresh followed by
exactly one retry. Refreshes are single-flight per stale token, so concurrent
requests that hit 401 together share one refresh call.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from castor._http import (
    AGENT_HEADER,
    AGENT_NAME,
    AGENT_VERSION,
    AUTH_HEADER,
    AUTH_STATUS_CODES,
    RATE_LIMIT_STATUS_CODE,
    REFRESH_STATUS_CODE,
    RETRYABLE_STATUS_CODES,
    TOKEN_REFRESH_PATH,
)
from castor._singleflight import SingleFlight
from castor.errors import (
    APIError,
    APIStatusError,
    AuthenticationError,
    RateLimitError,
)
from castor.hooks import (
    API_REQUEST,
    API_RESPONSE,
    ERROR,
    TOKEN_REFRESH_START,
    TOKEN_REFRESH_SUCCESS,
    Hooks,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Mapping

    from castor.config import Config

log = logging.getLogger(__name__)

_AUTH_HINT = "Check the token (GRAZIE_JWT_TOKEN) and that auth_type matches it."


def _error_details(response: httpx.Response) -> Any:
    """Decoded error payload when the body is JSON, else a text excerpt."""
    try:
        return response.json()
    except ValueError:
        return response.text[:500] or None


def status_error(response: httpx.Response, *, phase: str) -> APIStatusError:
    """Map a non-success response to the matching APIStatusError subclass.

    The body must already be read.
    """
    code = response.status_code
    err_cls: type[APIStatusError] = APIStatusError
    hint = None
    if code == RATE_LIMIT_STATUS_CODE:
        err_cls = RateLimitError
    elif code in AUTH_STATUS_CODES:
        err_cls = AuthenticationError
        hint = _AUTH_HINT
    return err_cls(
        f"Gateway {phase} failed (status={code})",
        hint=hint,
        status_code=code,
        details=_error_details(response),
        retryable=code in RETRYABLE_STATUS_CODES,
        phase=phase,
    )


class HttpTransport:
    """Authenticated access to the gateway over one ``httpx.AsyncClient``.

    Pass *http_client* to supply your own client (for example one built on
    ``httpx.MockTransport``); a caller-supplied client is not closed by
    ``aclose()``.
    """

    def __init__(
        self,
        config: Config,
        hooks: Hooks | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.hooks = hooks if hooks is not None else Hooks()
        self._token: str = config.token or ""
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._refreshes: SingleFlight[str, str] = SingleFlight()

    @property
    def token(self) -> str:
        """The credential currently sent with requests."""
        return self._token

    def url(self, path: str) -> str:
        return f"{self.config.api_base_url}{path}"

    def _headers(self, token: str, extra: Mapping[str, str] | None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            AGENT_HEADER: json.dumps({"name": AGENT_NAME, "version": AGENT_VERSION}),
            AUTH_HEADER: token,
        }
        if extra:
            headers.update(extra)
        return headers

    def _fail(self, err: APIError) -> APIError:
        self.hooks.emit(
            ERROR,
            {"phase": err.phase, "status_code": err.status_code, "message": str(err)},
        )
        return err

    def _network_error(self, exc: httpx.RequestError, *, phase: str) -> APIError:
        return self._fail(
            APIError(
                f"Gateway {phase} failed: {exc}" if str(exc) else f"Gateway {phase} failed",
                hint="Check network connectivity and Config.endpoint.",
                retryable=True,
                phase=phase,
            )
        )

    async def _send(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
        stream: bool,
        phase: str,
    ) -> httpx.Response:
        """Send with the 401 refresh-and-retry policy; return a success response."""
        url = self.url(path)
        content = json.dumps(body) if body is not None else None
        for attempt in (1, 2):
            token = self._token
            self.hooks.emit(API_REQUEST, {"method": method, "url": url, "attempt": attempt})
            log.debug("%s %s (attempt %d)", method, url, attempt)
            request = self._client.build_request(
                method, url, headers=self._headers(token, headers), content=content
            )
            try:
                response = await self._client.send(request, stream=stream)
            except httpx.RequestError as e:
                raise self._network_error(e, phase=phase) from e

            self.hooks.emit(
                API_RESPONSE,
                {"method": method, "url": url, "status_code": response.status_code},
            )
            if response.is_success:
                return response

            try:
                await response.aread()
            finally:
                await response.aclose()
            if response.status_code == REFRESH_STATUS_CODE and attempt == 1:
                log.debug("Received 401 for %s; refreshing token", url)
                await self.refresh_token(token)
                continue
            raise self._fail(status_error(response, phase=phase))
        raise AssertionError("unreachable")

    @asynccontextmanager
    async def stream(
        self,
        path: str,
        body: Any,
        headers: Mapping[str, str] | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """POST *body* and yield the response with its body still streaming."""
        response = await self._send(
            "POST", path, body=body, headers=headers, stream=True, phase="stream"
        )
        try:
            yield response
        except httpx.RequestError as e:
            raise self._network_error(e, phase="stream") from e
        finally:
            await response.aclose()

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> Any:
        """Send a plain request and return its decoded JSON body."""
        response = await self._send(
            method, path, body=body, headers=headers, stream=False, phase="request"
        )
        try:
            return response.json()
        except ValueError as e:
            raise self._fail(
                APIError(
                    f"Gateway returned invalid JSON for {method} {path}",
                    status_code=response.status_code,
                    details=response.text[:500],
                    phase="request",
                )
            ) from e

    async def refresh_token(self, stale: str) -> str:
        """Replace *stale* with a fresh token, at most once per stale token.

        A caller whose stale token was already replaced gets the current one
        without another refresh call.
        """
        if self._token != stale:
            return self._token
        return await self._refreshes.run(stale, lambda: self._refresh(stale))

    async def _refresh(self, stale: str) -> str:
        self.hooks.emit(TOKEN_REFRESH_START, {})
        url = f"{self.config.api_base_url}{TOKEN_REFRESH_PATH}"
        try:
            response = await self._client.post(
                url, headers=self._headers(stale, None), content="{}"
            )
        except httpx.RequestError as e:
            raise self._network_error(e, phase="refresh") from e
        if not response.is_success:
            raise self._fail(status_error(response, phase="refresh"))

        try:
            token = response.json().get("token")
        except (ValueError, AttributeError):
            token = None
        if not isinstance(token, str) or not token:
            raise self._fail(
                AuthenticationError(
                    "Token refresh response did not include a token",
                    hint=_AUTH_HINT,
                    status_code=response.status_code,
                    details=_error_details(response),
                    phase="refresh",
                )
            )

        self._token = token
        log.debug("Token refreshed")
        self.hooks.emit(TOKEN_REFRESH_SUCCESS, {})
        return token

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
