"""
ApiClient: public Python API for the game server.

Composes base URL, session token, debug flag, and User-Agent into signed
requests, dispatches them over an async transport, and writes new session
snapshots back into the Session Store.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

from cubeclient import config
from cubeclient.api import UrllibTransport, _log_session_event, _sanitize_error, user_agent
from cubeclient.exceptions import (
    AuthenticationRequired,
    BadEndpoint,
    HTTPError,
    SetupError,
    TransportError,
)
from cubeclient.models import ApiResponse, AuthenticateRequest, CurrentPlayerEnvelope
from cubeclient.router import Router, validate_base_url
from cubeclient.routes import Api, Authenticate, CurrentPlayer, is_api_route, refreshes_session
from cubeclient.session import SessionStore
from cubeclient.signing import Signer
from cubeclient.storage import FileStore


def _decode_envelope(response: ApiResponse) -> CurrentPlayerEnvelope:
    return CurrentPlayerEnvelope.from_dict(response.json())


class ApiClient:
    """Signed, session-aware client.

    Args:
        base_url: Default endpoint for debug builds (ignored in production).
        build_mode: ``"debug"`` or ``"production"``; defaults to config.
        secrets: Ordered signing secrets; defaults to ``CUBE_SECRETS``.
        store: Durable key-value store; defaults to the JSON state file.
        transport: Async callable ``send(HttpRequest) -> ApiResponse``.
        clock: Callable returning seconds since the epoch.
        bundle: Product metadata for the User-Agent header.
    """

    def __init__(
        self,
        base_url: str | None = None,
        build_mode: str | None = None,
        secrets=None,
        store=None,
        transport=None,
        clock=time.time,
        bundle: dict[str, Any] | None = None,
    ) -> None:
        self.build_mode = config.resolve_build_mode(build_mode)
        self._signer = Signer(secrets)
        self._store = store if store is not None else FileStore()
        self._transport = transport if transport is not None else UrllibTransport()
        self._clock = clock
        self._bundle = bundle
        self._base_url = self._initial_base_url(base_url)
        self.session = SessionStore(self._store)

    # -- base URL ----------------------------------------------------------

    @property
    def is_debug(self) -> bool:
        return self.build_mode == config.BUILD_MODE_DEBUG

    def _initial_base_url(self, default: str | None) -> str:
        if not self.is_debug:
            return config.PRODUCTION_BASE_URL
        default = default or config.DEBUG_BASE_URL
        override = self._store.get(config.BASE_URL_KEY)
        if override is None:
            return default
        try:
            return validate_base_url(override)
        except BadEndpoint:
            _log_session_event(event="base_url_override_discarded", value=repr(override))
            return default

    def base_url(self) -> str:
        return self._base_url

    def set_base_url(self, url: str) -> None:
        """Point the client at another server. Always logs out."""
        if not self.is_debug:
            raise SetupError("[SETUP_NEEDED] The base URL is fixed in production builds.")
        url = validate_base_url(url)
        self._store.set(config.BASE_URL_KEY, url)
        self._base_url = url
        self.logout()

    def router(self) -> Router:
        return Router(self._signer, self._base_url, clock=self._clock)

    # -- session -----------------------------------------------------------

    def current_session(self) -> CurrentPlayerEnvelope | None:
        return self.session.current()

    def logout(self) -> None:
        self.session.clear()

    # -- dispatch ----------------------------------------------------------

    async def _send(self, route) -> ApiResponse:
        request = self.router().encode(route)
        request.headers["User-Agent"] = user_agent(self._bundle)
        request.headers["X-Request-Id"] = str(uuid.uuid4())
        try:
            response = await self._transport(request)
        except HTTPError as e:
            raise TransportError(
                f"[ERROR] HTTP {e.code}: {e.reason}",
                status=e.code,
                body=_sanitize_error(e.body),
            ) from e
        except TransportError:
            raise
        except OSError as e:
            raise TransportError(f"[ERROR] Connection failed: {e}") from e
        if not 200 <= response.status < 300:
            body = _sanitize_error(response.body.decode("utf-8", errors="replace"))
            raise TransportError(
                f"[ERROR] HTTP {response.status}", status=response.status, body=body
            )
        return response

    async def _perform(self, route) -> tuple[ApiResponse, CurrentPlayerEnvelope | None]:
        epoch = self.session.epoch
        response = await self._send(route)
        if not refreshes_session(route):
            return response, None
        envelope = _decode_envelope(response)
        if self.session.epoch != epoch:
            # Logged out (or endpoint switched) while the request was in flight.
            _log_session_event(event="stale_response_dropped", player_id=envelope.player.id)
        else:
            self.session.replace(envelope)
        return response, envelope

    def _wrap(self, route) -> Api:
        envelope = self.session.current()
        if envelope is None:
            raise AuthenticationRequired(
                "[AUTH_REQUIRED] No current session. Authenticate before calling api routes."
            )
        return Api(access_token=envelope.access_token, is_debug=self.is_debug, route=route)

    async def api_request(self, route) -> ApiResponse:
        """Send an inner api route with the current session's access token."""
        response, _ = await self._perform(self._wrap(route))
        return response

    async def request(self, route) -> ApiResponse:
        """Send a public route. An Api route is re-wrapped with the current session."""
        if isinstance(route, Api):
            route = self._wrap(route.route)
        response, _ = await self._perform(route)
        return response

    async def dispatch(self, route) -> ApiResponse:
        if is_api_route(route):
            return await self.api_request(route)
        return await self.request(route)

    async def authenticate(self, request: AuthenticateRequest) -> CurrentPlayerEnvelope:
        _, envelope = await self._perform(Authenticate.from_request(request))
        return envelope

    async def refresh_current_session(self) -> CurrentPlayerEnvelope:
        _, envelope = await self._perform(self._wrap(CurrentPlayer()))
        return envelope
