"""
Command implementations for cubeclient.
Each cmd_*() function receives an argparse.Namespace and handles one CLI command.

Business logic lives in client.py (ApiClient). These thin wrappers
handle argparse -> keyword args, run the coroutine, and format the result.
"""

import asyncio
import json

from cubeclient import config
from cubeclient.api import _mask_token
from cubeclient.client import ApiClient
from cubeclient.exceptions import CliError
from cubeclient.models import AuthenticateRequest, NotificationType
from cubeclient.router import canonical_form, canonical_json
from cubeclient.routes import Changelog
from cubeclient.settings_sync import SettingsSync
from cubeclient.signing import Signer

# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _session_summary(envelope):
    if envelope is None:
        return {"authenticated": False}
    player = envelope.player
    return {
        "authenticated": True,
        "player_id": player.id,
        "display_name": player.display_name,
        "access_token": _mask_token(envelope.access_token),
        "send_daily_challenge_reminder": player.send_daily_challenge_reminder,
        "send_daily_challenge_summary": player.send_daily_challenge_summary,
        "has_receipt": envelope.apple_receipt is not None,
    }


def _format_table(data):
    width = max((len(str(k)) for k in data), default=0)
    lines = []
    for key, value in data.items():
        if isinstance(value, (dict, list)):
            value = json.dumps(value, ensure_ascii=False)
        lines.append(f"{str(key).ljust(width)}  {value}")
    return "\n".join(lines)


def output(data, fmt="json"):
    if fmt == "table" and isinstance(data, dict):
        print(_format_table(data))
    else:
        print(json.dumps(data, indent=2, ensure_ascii=False))


def _client():
    return ApiClient()


def _on_off(value):
    lowered = value.strip().lower()
    if lowered in ("on", "true", "yes", "1"):
        return True
    if lowered in ("off", "false", "no", "0"):
        return False
    raise CliError(f"[ERROR] Expected on/off, got '{value}'.")


# ---------------------------------------------------------------------------
# Session commands
# ---------------------------------------------------------------------------


def cmd_login(ns):
    client = _client()
    request = AuthenticateRequest(
        device_id=ns.device_id,
        display_name=ns.display_name,
        game_center_local_player_id=ns.game_center_id,
        time_zone=ns.time_zone,
    )
    envelope = asyncio.run(client.authenticate(request))
    output(_session_summary(envelope), ns.format)


def cmd_whoami(ns):
    output(_session_summary(_client().current_session()), ns.format)


def cmd_refresh(ns):
    client = _client()
    envelope = asyncio.run(client.refresh_current_session())
    output(_session_summary(envelope), ns.format)


def cmd_logout(ns):
    client = _client()
    was_authenticated = client.current_session() is not None
    client.logout()
    output({"ok": True, "was_authenticated": was_authenticated}, ns.format)


def cmd_base_url(ns):
    client = _client()
    if ns.url:
        client.set_base_url(ns.url)
        output({"ok": True, "base_url": client.base_url(), "logged_out": True}, ns.format)
        return
    output({"base_url": client.base_url(), "build_mode": client.build_mode}, ns.format)


# ---------------------------------------------------------------------------
# Api commands
# ---------------------------------------------------------------------------


def cmd_notify(ns):
    client = _client()
    kind = NotificationType.parse(ns.notification_type)
    enabled = _on_off(ns.value)

    async def _run():
        sync = SettingsSync(client, debounce_seconds=ns.debounce)
        sync.change(kind, enabled)
        await sync.wait_idle()
        return sync.last_refresh

    refreshed = asyncio.run(_run())
    if isinstance(refreshed, CliError):
        raise refreshed
    result = {"ok": True, "notification_type": kind.value, "send_notifications": enabled}
    result["session"] = _session_summary(refreshed)
    output(result, ns.format)


def cmd_changelog(ns):
    client = _client()
    response = asyncio.run(client.api_request(Changelog(build=ns.build)))
    output(response.json(), ns.format)


def cmd_sign(ns):
    """Print the canonical signing input and signature for a request."""
    signer = Signer(None)
    query = []
    for pair in ns.query or []:
        if "=" not in pair:
            raise CliError(f"[ERROR] Invalid --query '{pair}'. Use key=value.")
        key, value = pair.split("=", 1)
        query.append((key, value))
    body = None
    if ns.body:
        try:
            body = canonical_json(json.loads(ns.body))
        except json.JSONDecodeError as e:
            raise CliError(f"[ERROR] Invalid JSON in --body: {e.msg} at position {e.pos}") from None
    canonical = canonical_form(ns.method, ns.path, query, body)
    output(
        {
            "canonical": canonical.decode("utf-8"),
            "signature": signer.sign(canonical),
            "secrets": len(signer.secrets),
        },
        ns.format,
    )


def cmd_version(ns):
    print(f"cubeclient {config.VERSION}")
