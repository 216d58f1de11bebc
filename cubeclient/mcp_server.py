"""MCP server exposing ApiClient session and settings operations as tools.

Run: python -m cubeclient.mcp_server
Requires: pip install .[mcp]
"""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from cubeclient.client import ApiClient
from cubeclient.commands import _session_summary
from cubeclient.config import CONTRACT_SCHEMA_VERSION, MCP_RESPONSE_MODE
from cubeclient.exceptions import CliError, RequestError, SetupError
from cubeclient.models import AuthenticateRequest, NotificationType
from cubeclient.routes import Changelog, PushUpdateSetting

mcp = FastMCP(
    "cubeclient",
    instructions=(
        "Game-server session tools. "
        "Authenticate before calling api tools; api tools fail with "
        "type 'authentication_required' when there is no session. "
        "Changing the base URL always logs out."
    ),
)

_client: ApiClient | None = None


def _get_client() -> ApiClient:
    """Return a cached ApiClient, creating one on first use."""
    global _client
    if _client is None:
        _client = ApiClient()
    return _client


def _contract_error(message: str, error_type: str = "error") -> dict:
    """Return a stable MCP error envelope with legacy compatibility fields."""
    return {
        "ok": False,
        "schema_version": CONTRACT_SCHEMA_VERSION,
        "type": error_type,
        "error": message,
        "error_detail": {
            "type": error_type,
            "message": message,
        },
    }


def _finalize_tool_result(result: dict) -> dict:
    """Add contract metadata; wrap in ``data`` when envelope mode is configured."""
    if result.get("ok") is False:
        return result
    if MCP_RESPONSE_MODE == "envelope":
        return {"ok": True, "schema_version": CONTRACT_SCHEMA_VERSION, "data": result}
    out = dict(result)
    out.setdefault("ok", True)
    out.setdefault("schema_version", CONTRACT_SCHEMA_VERSION)
    return out


async def _call(fn) -> dict:
    """Run a tool body, converting exceptions to error dicts."""
    try:
        return _finalize_tool_result(await fn(_get_client()))
    except SetupError as e:
        return _contract_error(str(e), "setup")
    except RequestError as e:
        return _contract_error(str(e), e.kind)
    except CliError as e:
        return _contract_error(str(e), "error")
    except Exception as e:
        return _contract_error(f"Unexpected error: {e}", "error")


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
async def current_session() -> dict:
    """Show the stored session (access token masked)."""

    async def body(client):
        return _session_summary(client.current_session())

    return await _call(body)


@mcp.tool()
async def authenticate(
    device_id: str,
    display_name: str | None = None,
    game_center_local_player_id: str | None = None,
    time_zone: str = "UTC",
) -> dict:
    """Authenticate a device and store the resulting session."""

    async def body(client):
        envelope = await client.authenticate(
            AuthenticateRequest(
                device_id=device_id,
                display_name=display_name,
                game_center_local_player_id=game_center_local_player_id,
                time_zone=time_zone,
            )
        )
        return _session_summary(envelope)

    return await _call(body)


@mcp.tool()
async def refresh_current_session() -> dict:
    """Re-fetch the current player and replace the stored session."""

    async def body(client):
        return _session_summary(await client.refresh_current_session())

    return await _call(body)


@mcp.tool()
async def logout() -> dict:
    """Clear the stored session."""

    async def body(client):
        client.logout()
        return {"authenticated": False}

    return await _call(body)


@mcp.tool()
async def get_base_url() -> dict:
    """Show the server endpoint and build mode."""

    async def body(client):
        return {"base_url": client.base_url(), "build_mode": client.build_mode}

    return await _call(body)


@mcp.tool()
async def set_base_url(url: str) -> dict:
    """Switch the server endpoint (debug builds only). Always logs out."""

    async def body(client):
        client.set_base_url(url)
        return {"base_url": client.base_url(), "logged_out": True}

    return await _call(body)


@mcp.tool()
async def update_notification_setting(notification_type: str, send_notifications: bool) -> dict:
    """Update one remote notification setting, then refresh the session.

    Args:
        notification_type: dailyChallengeEndsSoon or dailyChallengeReport.
    """

    async def body(client):
        kind = NotificationType.parse(notification_type)
        await client.api_request(
            PushUpdateSetting(notification_type=kind, send_notifications=send_notifications)
        )
        envelope = await client.refresh_current_session()
        return {
            "notification_type": kind.value,
            "send_notifications": send_notifications,
            "session": _session_summary(envelope),
        }

    return await _call(body)


@mcp.tool()
async def changelog(build: int) -> dict:
    """Fetch release notes for a build number."""

    async def body(client):
        response = await client.api_request(Changelog(build=build))
        return {"changelog": response.json()}

    return await _call(body)


def main():
    """Run the MCP server (stdio transport)."""
    mcp.run()


if __name__ == "__main__":
    main()
