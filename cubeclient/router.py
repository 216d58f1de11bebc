"""
Route codec: maps Route values to HTTP requests and back.

Api routes are signed. The signature covers the canonical form

    METHOD \\n PATH \\n SORTED-QUERY-WITHOUT-SIG \\n BODY

where BODY is the canonical JSON body, or ``{}`` for routes without one, and
the query includes the access token, debug flag, and a timestamp.
"""

from __future__ import annotations

import json
import time
import urllib.parse
from dataclasses import dataclass, field

from cubeclient.exceptions import BadEndpoint, DecodeError
from cubeclient.models import NotificationType
from cubeclient.routes import (
    Api,
    Authenticate,
    Changelog,
    CurrentPlayer,
    PushRegister,
    PushUpdateSetting,
)
from cubeclient.signing import Signer

SIGNATURE_PARAM = "sig"
EMPTY_BODY = b"{}"

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}
_INVALID = object()


@dataclass
class HttpRequest:
    method: str
    url: str
    headers: dict = field(default_factory=dict)
    body: bytes | None = None


def canonical_json(data) -> bytes:
    """Deterministic JSON encoding used for request bodies and signing."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


def canonical_form(method, path, query_pairs, body) -> bytes:
    """Signing input for a request. ``sig`` is always excluded from the query."""
    pairs = sorted((k, v) for k, v in query_pairs if k != SIGNATURE_PARAM)
    query = urllib.parse.urlencode(pairs)
    return b"\n".join([method.upper().encode(), path.encode(), query.encode(), body or EMPTY_BODY])


def validate_base_url(url) -> str:
    """Return *url* without a trailing slash, or raise BadEndpoint."""
    if not isinstance(url, str) or not url.strip():
        raise BadEndpoint(f"[ERROR] Bad URL: {url!r}")
    try:
        parsed = urllib.parse.urlsplit(url.strip())
        # Accessing .port validates the netloc.
        parsed.port
    except ValueError as e:
        raise BadEndpoint(f"[ERROR] Bad URL: {url!r} ({e})") from e
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise BadEndpoint(f"[ERROR] Bad URL: {url!r} (expected http(s)://host[:port][/path])")
    if parsed.query or parsed.fragment:
        raise BadEndpoint(f"[ERROR] Bad URL: {url!r} (query and fragment are not allowed)")
    return urllib.parse.urlunsplit(
        (parsed.scheme, parsed.netloc, parsed.path.rstrip("/"), "", "")
    )


# ---------------------------------------------------------------------------
# Inner route table
# ---------------------------------------------------------------------------


def _inner_parts(route):
    """Return (method, path, query_pairs, body_dict) for an inner api route."""
    if isinstance(route, CurrentPlayer):
        return "GET", "/api/current-player", [], None
    if isinstance(route, PushUpdateSetting):
        body = {
            "notificationType": NotificationType.parse(route.notification_type).value,
            "sendNotifications": bool(route.send_notifications),
        }
        return "POST", "/api/push/settings", [], body
    if isinstance(route, PushRegister):
        body = {
            "authorizationStatus": route.authorization_status,
            "build": route.build,
            "token": route.token,
        }
        return "POST", "/api/push/register", [], body
    if isinstance(route, Changelog):
        return "GET", "/api/changelog", [("build", str(route.build))], None
    raise TypeError(f"Not an api route: {route!r}")


def _parse_int(value):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _inner_from_parts(method, path, params, body):
    """Inverse of _inner_parts. Returns None when nothing matches."""
    if method == "GET" and path == "/api/current-player":
        return CurrentPlayer()
    if method == "GET" and path == "/api/changelog":
        build = _parse_int(params.get("build"))
        return Changelog(build=build) if build is not None else None
    if method != "POST" or not isinstance(body, dict):
        return None
    if path == "/api/push/settings":
        send = body.get("sendNotifications")
        if not isinstance(send, bool):
            return None
        try:
            kind = NotificationType.parse(body.get("notificationType"))
        except DecodeError:
            return None
        return PushUpdateSetting(notification_type=kind, send_notifications=send)
    if path == "/api/push/register":
        status = _parse_int(body.get("authorizationStatus"))
        build = _parse_int(body.get("build"))
        token = body.get("token")
        if status is None or build is None or not isinstance(token, str):
            return None
        return PushRegister(authorization_status=status, build=build, token=token)
    return None


def _load_body(raw):
    if not raw:
        return None
    try:
        return json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _INVALID


# ---------------------------------------------------------------------------
# Router
# ---------------------------------------------------------------------------


class Router:
    """Encode routes into signed requests against one base URL."""

    def __init__(self, signer: Signer, base_url: str, clock=time.time) -> None:
        self.signer = signer
        self.clock = clock
        self.base_url = validate_base_url(base_url)
        self._base_path = urllib.parse.urlsplit(self.base_url).path

    def with_base_url(self, base_url: str) -> Router:
        return Router(self.signer, base_url, clock=self.clock)

    def _url(self, path, query_pairs):
        url = self.base_url + path
        if query_pairs:
            url += "?" + urllib.parse.urlencode(sorted(query_pairs))
        return url

    def encode(self, route) -> HttpRequest:
        if isinstance(route, Authenticate):
            body = {
                "deviceId": route.device_id,
                "displayName": route.display_name,
                "gameCenterLocalPlayerId": route.game_center_local_player_id,
                "timeZone": route.time_zone,
            }
            body = {k: v for k, v in body.items() if v is not None}
            return HttpRequest(
                method="POST",
                url=self._url("/api/authenticate", []),
                headers=dict(_JSON_HEADERS),
                body=canonical_json(body),
            )
        if isinstance(route, Api):
            return self._encode_api(route)
        raise TypeError(f"Unknown route: {route!r}")

    def _encode_api(self, route: Api) -> HttpRequest:
        method, path, params, body = _inner_parts(route.route)
        body_bytes = canonical_json(body) if body is not None else None
        query = [
            ("accessToken", route.access_token),
            ("isDebug", "true" if route.is_debug else "false"),
            ("timestamp", str(int(self.clock()))),
            *params,
        ]
        signature = self.signer.sign(canonical_form(method, path, query, body_bytes))
        query.append((SIGNATURE_PARAM, signature))
        headers = dict(_JSON_HEADERS) if body_bytes is not None else {"Accept": "application/json"}
        return HttpRequest(
            method=method, url=self._url(path, query), headers=headers, body=body_bytes
        )

    def decode(self, request: HttpRequest):
        """Recover the Route a request was encoded from.

        Returns None for unknown paths, malformed bodies, and api requests
        whose signature does not verify against any secret.
        """
        parsed = urllib.parse.urlsplit(request.url)
        path = parsed.path
        if self._base_path:
            if not path.startswith(self._base_path + "/"):
                return None
            path = path[len(self._base_path) :]
        method = request.method.upper()
        query_pairs = urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
        params = dict(query_pairs)
        body = _load_body(request.body)
        if body is _INVALID:
            return None

        if path == "/api/authenticate":
            if method != "POST" or not isinstance(body, dict):
                return None
            device_id = body.get("deviceId")
            if not isinstance(device_id, str):
                return None
            return Authenticate(
                device_id=device_id,
                display_name=body.get("displayName"),
                game_center_local_player_id=body.get("gameCenterLocalPlayerId"),
                time_zone=body.get("timeZone", "UTC"),
            )

        inner = _inner_from_parts(method, path, params, body)
        if inner is None:
            return None
        token = params.get("accessToken")
        signature = params.get(SIGNATURE_PARAM)
        if not token or "timestamp" not in params or params.get("isDebug") not in ("true", "false"):
            return None
        canonical = canonical_form(method, path, query_pairs, request.body)
        if not self.signer.verify(canonical, signature):
            return None
        return Api(access_token=token, is_debug=params["isDebug"] == "true", route=inner)
