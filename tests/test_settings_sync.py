"""Tests for settings_sync.py: debounced notification updates.

Timers run on a virtual clock: ``VirtualClock.sleep`` parks the caller until
``advance`` moves time past its deadline, so no test waits in real time.
"""

import asyncio
from dataclasses import replace

import pytest

from conftest import envelope_payload, json_response
from cubeclient import config
from cubeclient.exceptions import AuthenticationRequired, CliError, TransportError
from cubeclient.models import NotificationType, Player
from cubeclient.settings_sync import SettingsSync

ENDS_SOON = NotificationType.DAILY_CHALLENGE_ENDS_SOON
REPORT = NotificationType.DAILY_CHALLENGE_REPORT


async def _settle(rounds=50):
    for _ in range(rounds):
        await asyncio.sleep(0)


class VirtualClock:
    def __init__(self):
        self.now = 0.0
        self._sleepers = []

    async def sleep(self, delay):
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now + delay, len(self._sleepers), future))
        await future

    async def advance(self, by):
        target = self.now + by
        await _settle()
        while True:
            due = [s for s in self._sleepers if not s[2].done() and s[0] <= target]
            if not due:
                break
            deadline, _, future = min(due, key=lambda s: (s[0], s[1]))
            self.now = deadline
            future.set_result(None)
            await _settle()
        self.now = target


class RecordingClient:
    """Stands in for ApiClient; records (time, call, args) tuples."""

    def __init__(self, clock, fail=()):
        self.clock = clock
        self.fail = set(fail)
        self.calls = []

    async def api_request(self, route):
        self.calls.append(
            (self.clock.now, "update", route.notification_type, route.send_notifications)
        )
        if route.notification_type in self.fail:
            raise TransportError("[ERROR] HTTP 500", status=500)

    async def refresh_current_session(self):
        self.calls.append((self.clock.now, "refresh"))
        return "fresh-envelope"


@pytest.fixture
def clock():
    return VirtualClock()


def _sync(client, clock, **kwargs):
    kwargs.setdefault("debounce_seconds", 0.5)
    return SettingsSync(client, sleep=clock.sleep, **kwargs)


class TestDebounce:
    @pytest.mark.asyncio
    async def test_burst_sends_only_latest_value(self, clock):
        client = RecordingClient(clock)
        sync = _sync(client, clock)
        sync.change(ENDS_SOON, True)
        await clock.advance(0.3)
        sync.change(ENDS_SOON, False)
        await clock.advance(0.4)
        assert client.calls == []
        await clock.advance(0.2)
        assert client.calls == [
            (pytest.approx(0.8), "update", ENDS_SOON, False),
            (pytest.approx(0.8), "refresh"),
        ]
        assert sync.pending() == {}
        assert sync.last_refresh == "fresh-envelope"

    @pytest.mark.asyncio
    async def test_separate_quiet_periods_send_twice(self, clock):
        client = RecordingClient(clock)
        sync = _sync(client, clock)
        sync.change(REPORT, True)
        await clock.advance(1.0)
        sync.change(REPORT, False)
        await clock.advance(1.0)
        updates = [c for c in client.calls if c[1] == "update"]
        assert [c[3] for c in updates] == [True, False]
        assert [c[1] for c in client.calls].count("refresh") == 2

    @pytest.mark.asyncio
    async def test_keys_debounce_independently(self, clock):
        client = RecordingClient(clock)
        sync = _sync(client, clock)
        sync.change(ENDS_SOON, True)
        await clock.advance(0.2)
        sync.change(REPORT, False)
        await clock.advance(0.2)
        sync.change(REPORT, True)
        await clock.advance(1.0)
        assert client.calls == [
            (pytest.approx(0.5), "update", ENDS_SOON, True),
            (pytest.approx(0.9), "update", REPORT, True),
            (pytest.approx(0.9), "refresh"),
        ]

    @pytest.mark.asyncio
    async def test_pending_reflects_unsent_values(self, clock):
        sync = _sync(RecordingClient(clock), clock)
        sync.change("dailyChallengeReport", True)
        assert sync.pending() == {REPORT: True}
        await clock.advance(0.5)
        assert sync.pending() == {}

    @pytest.mark.asyncio
    async def test_default_window_from_config(self, clock, monkeypatch):
        monkeypatch.setattr(config, "SETTINGS_DEBOUNCE_SECONDS", 2.0)
        sync = SettingsSync(RecordingClient(clock), sleep=clock.sleep)
        assert sync.debounce_seconds == 2.0

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, clock):
        sync = _sync(RecordingClient(clock), clock)
        with pytest.raises(CliError):
            sync.change("weeklyDigest", True)
        assert sync.pending() == {}


class TestRefreshAfterUpdates:
    @pytest.mark.asyncio
    async def test_failed_update_still_refreshes(self, clock):
        client = RecordingClient(clock, fail={ENDS_SOON})
        sync = _sync(client, clock)
        sync.change(ENDS_SOON, True)
        await clock.advance(0.5)
        assert [c[1] for c in client.calls] == ["update", "refresh"]

    @pytest.mark.asyncio
    async def test_refresh_failure_is_recorded(self, clock):
        client = RecordingClient(clock)

        async def failing_refresh():
            raise AuthenticationRequired("[AUTH_REQUIRED] No current session.")

        client.refresh_current_session = failing_refresh
        sync = _sync(client, clock)
        sync.change(REPORT, True)
        await clock.advance(0.5)
        assert isinstance(sync.last_refresh, AuthenticationRequired)

    @pytest.mark.asyncio
    async def test_unexpected_update_error_still_refreshes(self, clock, monkeypatch, capsys):
        monkeypatch.setattr(config, "HTTP_LOG_ENABLED", True)
        client = RecordingClient(clock)

        async def broken_update(route):
            client.calls.append((clock.now, "update"))
            raise RuntimeError("socket exploded")

        client.api_request = broken_update
        sync = _sync(client, clock)
        sync.change(REPORT, True)
        await clock.advance(0.5)
        await asyncio.wait_for(sync.wait_idle(), 1)
        assert [c[1] for c in client.calls] == ["update", "refresh"]
        assert sync.last_refresh == "fresh-envelope"
        assert "settings_sync_failed" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_unexpected_refresh_error_still_goes_idle(self, clock):
        client = RecordingClient(clock)

        async def broken_refresh():
            raise RuntimeError("boom")

        client.refresh_current_session = broken_refresh
        sync = _sync(client, clock)
        sync.change(ENDS_SOON, False)
        await clock.advance(0.5)
        await asyncio.wait_for(sync.wait_idle(), 1)
        assert isinstance(sync.last_refresh, RuntimeError)

    @pytest.mark.asyncio
    async def test_flush_raises_unexpected_error_after_refresh(self, clock):
        client = RecordingClient(clock)

        async def broken_update(route):
            raise RuntimeError("socket exploded")

        client.api_request = broken_update
        sync = _sync(client, clock)
        sync.change(REPORT, True)
        with pytest.raises(RuntimeError):
            await sync.flush()
        assert client.calls == [(0.0, "refresh")]
        await asyncio.wait_for(sync.wait_idle(), 1)

    @pytest.mark.asyncio
    async def test_on_refresh_callback(self, clock):
        seen = []
        sync = _sync(RecordingClient(clock), clock, on_refresh=seen.append)
        sync.change(REPORT, False)
        await clock.advance(0.5)
        assert seen == ["fresh-envelope"]

    @pytest.mark.asyncio
    async def test_wait_idle(self, clock):
        client = RecordingClient(clock)
        sync = _sync(client, clock)
        sync.change(REPORT, True)
        waiter = asyncio.ensure_future(sync.wait_idle())
        await _settle()
        assert not waiter.done()
        await clock.advance(0.5)
        assert waiter.done()
        assert client.calls[-1][1] == "refresh"

    @pytest.mark.asyncio
    async def test_idle_when_nothing_changed(self, clock):
        await asyncio.wait_for(_sync(RecordingClient(clock), clock).wait_idle(), 1)


class TestFlushAndClose:
    @pytest.mark.asyncio
    async def test_flush_sends_now(self, clock):
        client = RecordingClient(clock)
        sync = _sync(client, clock)
        sync.change(ENDS_SOON, True)
        sync.change(REPORT, False)
        await sync.flush()
        assert sorted(c[2].value for c in client.calls if c[1] == "update") == [
            "dailyChallengeEndsSoon",
            "dailyChallengeReport",
        ]
        assert [c[1] for c in client.calls].count("refresh") == 1
        await clock.advance(1.0)
        assert [c[1] for c in client.calls].count("refresh") == 1

    @pytest.mark.asyncio
    async def test_flush_with_nothing_pending(self, clock):
        client = RecordingClient(clock)
        await _sync(client, clock).flush()
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_close_drops_pending(self, clock):
        client = RecordingClient(clock)
        sync = _sync(client, clock)
        sync.change(ENDS_SOON, True)
        await sync.close()
        await clock.advance(1.0)
        assert client.calls == []
        assert sync.pending() == {}
        await asyncio.wait_for(sync.wait_idle(), 1)


class TestPlayerSettings:
    @pytest.mark.asyncio
    async def test_maps_player_flag(self, clock):
        client = RecordingClient(clock)
        sync = _sync(client, clock)
        sync.change_player_setting("send_daily_challenge_summary", False)
        assert sync.pending() == {REPORT: False}
        await sync.close()

    @pytest.mark.asyncio
    async def test_change_from_settings_queues_only_differences(self, clock):
        old = Player(id="p1")
        new = replace(old, send_daily_challenge_reminder=False)
        sync = _sync(RecordingClient(clock), clock)
        sync.change_from_settings(old, new)
        assert sync.pending() == {ENDS_SOON: False}
        await sync.close()

    @pytest.mark.asyncio
    async def test_change_from_settings_without_differences(self, clock):
        client = RecordingClient(clock)
        sync = _sync(client, clock)
        sync.change_from_settings(Player(id="p1"), Player(id="p1"))
        await clock.advance(1.0)
        assert sync.pending() == {}
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_unknown_player_flag(self, clock):
        with pytest.raises(CliError) as exc_info:
            _sync(RecordingClient(clock), clock).change_player_setting("enable_haptics", True)
        assert "send_daily_challenge_reminder" in str(exc_info.value)


class TestWithApiClient:
    @pytest.mark.asyncio
    async def test_update_then_refresh_over_transport(self, clock, make_client, transport, store):
        store.set(config.SESSION_KEY, envelope_payload())
        transport.queue(
            json_response({}),
            json_response(envelope_payload(sendDailyChallengeSummary=False)),
        )
        client = make_client()
        sync = _sync(client, clock)
        sync.change(REPORT, True)
        await clock.advance(0.2)
        sync.change(REPORT, False)
        await clock.advance(0.5)
        paths = [r.url.split("?")[0].rsplit("/api", 1)[1] for r in transport.requests]
        assert paths == ["/push/settings", "/current-player"]
        assert transport.requests[0].body == (
            b'{"notificationType":"dailyChallengeReport","sendNotifications":false}'
        )
        assert client.current_session().player.send_daily_challenge_summary is False

    @pytest.mark.asyncio
    async def test_without_session_refresh_reports_auth_required(
        self, clock, make_client, transport
    ):
        sync = _sync(make_client(), clock)
        sync.change(ENDS_SOON, True)
        await clock.advance(0.5)
        assert transport.requests == []
        assert isinstance(sync.last_refresh, AuthenticationRequired)
