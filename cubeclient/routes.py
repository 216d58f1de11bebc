"""
Route model: the closed set of server operations the client can issue.

Public routes are sent as-is. Inner api routes must be wrapped in ``Api``,
which carries the access token and is signed by the router.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from cubeclient.models import AuthenticateRequest, NotificationType

# ---------------------------------------------------------------------------
# Public routes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Authenticate:
    device_id: str
    display_name: str | None = None
    game_center_local_player_id: str | None = None
    time_zone: str = "UTC"

    @classmethod
    def from_request(cls, request: AuthenticateRequest) -> Authenticate:
        return cls(
            device_id=request.device_id,
            display_name=request.display_name,
            game_center_local_player_id=request.game_center_local_player_id,
            time_zone=request.time_zone,
        )


# ---------------------------------------------------------------------------
# Inner api routes (require an access token)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CurrentPlayer:
    """Fetch a fresh session snapshot."""


@dataclass(frozen=True)
class PushUpdateSetting:
    notification_type: NotificationType
    send_notifications: bool


@dataclass(frozen=True)
class PushRegister:
    authorization_status: int
    build: int
    token: str


@dataclass(frozen=True)
class Changelog:
    build: int


ApiRoute = Union[CurrentPlayer, PushUpdateSetting, PushRegister, Changelog]

API_ROUTE_TYPES = (CurrentPlayer, PushUpdateSetting, PushRegister, Changelog)


@dataclass(frozen=True)
class Api:
    """Authenticated wrapper around an inner api route."""

    access_token: str
    is_debug: bool
    route: ApiRoute


Route = Union[Authenticate, Api]

# Inner routes whose response body is a new CurrentPlayerEnvelope.
SESSION_ROUTES = (CurrentPlayer,)


def is_api_route(route) -> bool:
    return isinstance(route, API_ROUTE_TYPES)


def refreshes_session(route) -> bool:
    if isinstance(route, Api):
        route = route.route
    return isinstance(route, (Authenticate,) + SESSION_ROUTES)
