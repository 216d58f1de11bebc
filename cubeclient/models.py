"""
Typed models for session snapshots, authentication payloads, and user settings.

All datetimes use the wire convention of numeric seconds since the Unix epoch.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from cubeclient.exceptions import DecodeError

# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def encode_date(value: datetime | None) -> float | None:
    """Encode a datetime as seconds since 1970 (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def decode_date(value, context: str) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(
            f"[ERROR] Invalid date in {context}: expected seconds since 1970, "
            f"got {type(value).__name__}."
        )
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, ValueError, OSError):
        raise DecodeError(
            f"[ERROR] Invalid date in {context}: {value!r} is out of range."
        ) from None


def _require_object(value, context: str) -> dict:
    if isinstance(value, dict):
        return value
    raise DecodeError(
        f"[ERROR] Invalid JSON in {context}: expected object, got {type(value).__name__}."
    )


def _require_str(data: dict, key: str, context: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise DecodeError(f"[ERROR] Missing or invalid '{key}' in {context}.")
    return value


def _optional_str(data: dict, key: str, context: str) -> str | None:
    value = data.get(key)
    if value is None or isinstance(value, str):
        return value
    raise DecodeError(f"[ERROR] Invalid '{key}' in {context}: expected string.")


def _optional_bool(data: dict, key: str, default: bool, context: str) -> bool:
    value = data.get(key, default)
    if isinstance(value, bool):
        return value
    raise DecodeError(f"[ERROR] Invalid '{key}' in {context}: expected boolean.")


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationType(str, Enum):
    DAILY_CHALLENGE_ENDS_SOON = "dailyChallengeEndsSoon"
    DAILY_CHALLENGE_REPORT = "dailyChallengeReport"

    @classmethod
    def parse(cls, value) -> NotificationType:
        if isinstance(value, cls):
            return value
        for member in cls:
            if value in (member.value, member.name.lower(), member.name):
                return member
        valid = ", ".join(m.value for m in cls)
        raise DecodeError(f"[ERROR] Invalid notification type '{value}'. Valid: {valid}")


# Player setting name -> notification type it controls remotely.
PLAYER_NOTIFICATION_SETTINGS = {
    "send_daily_challenge_reminder": NotificationType.DAILY_CHALLENGE_ENDS_SOON,
    "send_daily_challenge_summary": NotificationType.DAILY_CHALLENGE_REPORT,
}


# ---------------------------------------------------------------------------
# Session snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Player:
    """Server-assigned player profile."""

    id: str
    access_token: str | None = None
    display_name: str | None = None
    device_id: str | None = None
    game_center_local_player_id: str | None = None
    time_zone: str | None = None
    send_daily_challenge_reminder: bool = True
    send_daily_challenge_summary: bool = True
    created_at: datetime | None = None

    @classmethod
    def from_dict(cls, value) -> Player:
        data = _require_object(value, "player")
        return cls(
            id=_require_str(data, "id", "player"),
            access_token=_optional_str(data, "accessToken", "player"),
            display_name=_optional_str(data, "displayName", "player"),
            device_id=_optional_str(data, "deviceId", "player"),
            game_center_local_player_id=_optional_str(data, "gameCenterLocalPlayerId", "player"),
            time_zone=_optional_str(data, "timeZone", "player"),
            send_daily_challenge_reminder=_optional_bool(
                data, "sendDailyChallengeReminder", True, "player"
            ),
            send_daily_challenge_summary=_optional_bool(
                data, "sendDailyChallengeSummary", True, "player"
            ),
            created_at=decode_date(data.get("createdAt"), "player.createdAt"),
        )

    def to_dict(self) -> dict:
        out = {
            "id": self.id,
            "accessToken": self.access_token,
            "displayName": self.display_name,
            "deviceId": self.device_id,
            "gameCenterLocalPlayerId": self.game_center_local_player_id,
            "timeZone": self.time_zone,
            "sendDailyChallengeReminder": self.send_daily_challenge_reminder,
            "sendDailyChallengeSummary": self.send_daily_challenge_summary,
            "createdAt": encode_date(self.created_at),
        }
        return {k: v for k, v in out.items() if v is not None}


@dataclass(frozen=True)
class AppleReceipt:
    product_id: str | None = None
    purchased_at: datetime | None = None

    @classmethod
    def from_dict(cls, value) -> AppleReceipt:
        data = _require_object(value, "appleReceipt")
        return cls(
            product_id=_optional_str(data, "productId", "appleReceipt"),
            purchased_at=decode_date(data.get("purchasedAt"), "appleReceipt.purchasedAt"),
        )

    def to_dict(self) -> dict:
        out = {"productId": self.product_id, "purchasedAt": encode_date(self.purchased_at)}
        return {k: v for k, v in out.items() if v is not None}


@dataclass(frozen=True)
class CurrentPlayerEnvelope:
    """The full session snapshot: access token, player profile, optional receipt."""

    access_token: str
    player: Player
    apple_receipt: AppleReceipt | None = None

    @classmethod
    def from_dict(cls, value) -> CurrentPlayerEnvelope:
        data = _require_object(value, "current player envelope")
        player = Player.from_dict(data.get("player"))
        token = data.get("accessToken", player.access_token)
        if not isinstance(token, str) or not token:
            raise DecodeError("[ERROR] Missing access token in current player envelope.")
        receipt = data.get("appleReceipt")
        return cls(
            access_token=token,
            player=player,
            apple_receipt=AppleReceipt.from_dict(receipt) if receipt is not None else None,
        )

    def to_dict(self) -> dict:
        out = {"accessToken": self.access_token, "player": self.player.to_dict()}
        if self.apple_receipt is not None:
            out["appleReceipt"] = self.apple_receipt.to_dict()
        return out


@dataclass(frozen=True)
class AuthenticateRequest:
    device_id: str
    display_name: str | None = None
    game_center_local_player_id: str | None = None
    time_zone: str = "UTC"


# ---------------------------------------------------------------------------
# Local user settings
# ---------------------------------------------------------------------------

VALID_COLOR_SCHEMES = {"system", "light", "dark"}
VALID_APP_ICONS = {f"icon-{i}" for i in range(1, 10)}

_SETTINGS_KEYS = {
    "app_icon": "appIcon",
    "color_scheme": "colorScheme",
    "enable_gyro_motion": "enableGyroMotion",
    "enable_haptics": "enableHaptics",
    "enable_reduced_animation": "enableReducedAnimation",
    "music_volume": "musicVolume",
    "sound_effects_volume": "soundEffectsVolume",
}


def _volume(value, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise DecodeError(f"[ERROR] Invalid '{key}' in user settings: expected number.")
    if not 0.0 <= value <= 1.0:
        raise DecodeError(f"[ERROR] '{key}' must be between 0 and 1, got {value}.")
    return float(value)


@dataclass(frozen=True)
class UserSettings:
    """Device-local preferences. Missing keys decode to these defaults."""

    app_icon: str | None = None
    color_scheme: str = "system"
    enable_gyro_motion: bool = True
    enable_haptics: bool = True
    enable_reduced_animation: bool = False
    music_volume: float = 1.0
    sound_effects_volume: float = 1.0

    @classmethod
    def from_dict(cls, value) -> UserSettings:
        data = _require_object(value, "user settings")
        defaults = cls()
        app_icon = data.get("appIcon")
        if app_icon is not None and (
            not isinstance(app_icon, str) or app_icon not in VALID_APP_ICONS
        ):
            raise DecodeError(f"[ERROR] Invalid appIcon '{app_icon}'.")
        color_scheme = data.get("colorScheme", defaults.color_scheme)
        if not isinstance(color_scheme, str) or color_scheme not in VALID_COLOR_SCHEMES:
            raise DecodeError(
                f"[ERROR] Invalid colorScheme '{color_scheme}'. "
                f"Valid: {', '.join(sorted(VALID_COLOR_SCHEMES))}"
            )
        return cls(
            app_icon=app_icon,
            color_scheme=color_scheme,
            enable_gyro_motion=_optional_bool(
                data, "enableGyroMotion", defaults.enable_gyro_motion, "user settings"
            ),
            enable_haptics=_optional_bool(
                data, "enableHaptics", defaults.enable_haptics, "user settings"
            ),
            enable_reduced_animation=_optional_bool(
                data,
                "enableReducedAnimation",
                defaults.enable_reduced_animation,
                "user settings",
            ),
            music_volume=_volume(data.get("musicVolume", defaults.music_volume), "musicVolume"),
            sound_effects_volume=_volume(
                data.get("soundEffectsVolume", defaults.sound_effects_volume),
                "soundEffectsVolume",
            ),
        )

    def to_dict(self) -> dict:
        return {wire: getattr(self, attr) for attr, wire in _SETTINGS_KEYS.items()}

    def updated(self, **changes) -> UserSettings:
        return replace(self, **changes)


@dataclass(frozen=True)
class ApiResponse:
    """Raw outcome of a dispatched route."""

    status: int
    body: bytes
    headers: dict = field(default_factory=dict)

    def json(self):
        if not self.body:
            return None
        try:
            return json.loads(self.body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise DecodeError("[ERROR] Unexpected response from server (not valid JSON).") from None
