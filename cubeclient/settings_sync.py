"""
Debounced Settings Sync: coalesces bursts of notification-setting changes.

Each notification type has its own quiescence timer. When a timer expires the
latest value for that type is sent as one ``PushUpdateSetting``; intermediate
values are never sent. Once no timers are pending and no updates are in
flight, the session is refreshed exactly once, whether or not the individual
updates succeeded.
"""

from __future__ import annotations

import asyncio

from cubeclient import config
from cubeclient.api import _log_session_event
from cubeclient.exceptions import CliError
from cubeclient.models import PLAYER_NOTIFICATION_SETTINGS, NotificationType
from cubeclient.routes import PushUpdateSetting


class SettingsSync:
    def __init__(self, client, debounce_seconds=None, sleep=asyncio.sleep, on_refresh=None):
        self._client = client
        self.debounce_seconds = (
            config.SETTINGS_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        )
        self._sleep = sleep
        self._on_refresh = on_refresh
        self._pending: dict[NotificationType, bool] = {}
        self._timers: dict[NotificationType, asyncio.Task] = {}
        self._tasks: set[asyncio.Task] = set()
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self.last_refresh = None

    def pending(self) -> dict[NotificationType, bool]:
        """Values still waiting for their key to go quiet."""
        return dict(self._pending)

    def change(self, notification_type, send_notifications: bool) -> None:
        """Record a local change and (re)start that key's timer."""
        kind = NotificationType.parse(notification_type)
        self._pending[kind] = bool(send_notifications)
        timer = self._timers.pop(kind, None)
        if timer is not None:
            timer.cancel()
        self._idle.clear()
        task = asyncio.get_running_loop().create_task(self._debounce(kind))
        self._timers[kind] = task
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            _log_session_event(event="settings_sync_failed", error=repr(error))

    def _settle(self) -> None:
        if self._in_flight == 0 and not self._timers:
            self._idle.set()

    def change_player_setting(self, name: str, value: bool) -> None:
        """Map a player flag such as ``send_daily_challenge_reminder`` to its notification type."""
        try:
            kind = PLAYER_NOTIFICATION_SETTINGS[name]
        except KeyError:
            valid = ", ".join(sorted(PLAYER_NOTIFICATION_SETTINGS))
            raise CliError(f"[ERROR] Unknown player setting '{name}'. Valid: {valid}") from None
        self.change(kind, value)

    def change_from_settings(self, old, new) -> None:
        """Queue a change for every notification flag that differs between two players."""
        for name, kind in PLAYER_NOTIFICATION_SETTINGS.items():
            value = getattr(new, name)
            if getattr(old, name) != value:
                self.change(kind, value)

    async def _debounce(self, kind: NotificationType) -> None:
        await self._sleep(self.debounce_seconds)
        self._timers.pop(kind, None)
        value = self._pending.pop(kind)
        await self._send_batch({kind: value})

    async def _send_batch(self, batch: dict[NotificationType, bool]) -> None:
        self._in_flight += 1
        results = []
        try:
            results = await asyncio.gather(
                *(self._send_update(k, v) for k, v in batch.items()), return_exceptions=True
            )
        finally:
            self._in_flight -= 1
            if self._in_flight == 0 and not self._timers:
                await self._refresh()
        for result in results:
            if isinstance(result, BaseException):
                raise result

    async def _send_update(self, kind: NotificationType, value: bool) -> None:
        route = PushUpdateSetting(notification_type=kind, send_notifications=value)
        try:
            await self._client.api_request(route)
        except CliError as e:
            _log_session_event(
                event="setting_update_failed", notification_type=kind.value, error=str(e)
            )

    async def _refresh(self) -> None:
        result = None
        try:
            result = await self._client.refresh_current_session()
        except CliError as e:
            result = e
            _log_session_event(event="session_refresh_failed", error=str(e))
        except Exception as e:
            result = e
            raise
        finally:
            self.last_refresh = result
            self._settle()
        if self._on_refresh is not None:
            self._on_refresh(result)

    async def flush(self) -> None:
        """Send every pending value now instead of waiting for quiescence."""
        batch = dict(self._pending)
        for kind in batch:
            self._timers.pop(kind).cancel()
        self._pending.clear()
        if batch:
            await self._send_batch(batch)

    async def wait_idle(self) -> None:
        """Wait until all timers, updates, and the follow-up refresh are done."""
        await self._idle.wait()

    async def close(self) -> None:
        """Cancel pending timers and drop unsent values."""
        timers = list(self._timers.values())
        self._timers.clear()
        self._pending.clear()
        for timer in timers:
            timer.cancel()
        await asyncio.gather(*timers, return_exceptions=True)
        self._settle()
