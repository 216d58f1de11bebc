"""cubeclient: signed, session-aware API client for the word-cube game server."""

from cubeclient.client import ApiClient
from cubeclient.config import VERSION
from cubeclient.exceptions import (
    AuthenticationRequired,
    BadEndpoint,
    CliError,
    DecodeError,
    RequestError,
    SetupError,
    TransportError,
)
from cubeclient.models import (
    AuthenticateRequest,
    CurrentPlayerEnvelope,
    NotificationType,
    Player,
    UserSettings,
)
from cubeclient.routes import (
    Api,
    Authenticate,
    Changelog,
    CurrentPlayer,
    PushRegister,
    PushUpdateSetting,
)
from cubeclient.settings_sync import SettingsSync

__all__ = [
    "VERSION",
    "ApiClient",
    "SettingsSync",
    "CliError",
    "SetupError",
    "RequestError",
    "BadEndpoint",
    "AuthenticationRequired",
    "TransportError",
    "DecodeError",
    "AuthenticateRequest",
    "CurrentPlayerEnvelope",
    "NotificationType",
    "Player",
    "UserSettings",
    "Api",
    "Authenticate",
    "Changelog",
    "CurrentPlayer",
    "PushRegister",
    "PushUpdateSetting",
]
