"""
Background sweep that closes sessions the hardware no longer backs.

When a vehicle is unplugged or finishes charging nobody calls stop, so the
booking would stay open. Every interval, each space's open sessions are
compared with the live wallbox states and sessions on wallboxes that are
no longer charging are stopped on behalf of the system.
"""

import asyncio
from loguru import logger

from wallbox_bridge import config
from wallbox_bridge.models.cfos import IDLE_STATES
from wallbox_bridge.utils import ok


class WallboxMonitor:
    """Runs the reconciliation sweep on a fixed interval."""

    def __init__(
        self,
        cfos_client,
        session_service,
        control_service,
        settings_store,
        interval_seconds: float = config.MONITOR_INTERVAL_SECONDS,
    ):
        self.cfos_client = cfos_client
        self.session_service = session_service
        self.control_service = control_service
        self.settings_store = settings_store
        self.interval_seconds = interval_seconds
        self._task = None

    @property
    def is_running(self):
        return self._task is not None and not self._task.done()

    def start(self, interval_seconds: float = None):
        """
        Start the sweep; the first check runs immediately.

        Must be called from within a running event loop. Starting a running
        monitor does nothing.

        Returns:
            dict: Result value None
        """
        if self.is_running:
            return ok(None)

        if interval_seconds:
            self.interval_seconds = interval_seconds

        self._task = asyncio.create_task(self._run(), name="wallbox-monitor")
        logger.info(f"[WallboxMonitor] Started with {self.interval_seconds}s interval")
        return ok(None)

    async def stop(self):
        """Cancel the sweep so no further check runs. Does nothing when stopped."""
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[WallboxMonitor] Stopped")

    def get_status(self):
        return {"is_running": self.is_running, "interval_seconds": self.interval_seconds}

    async def _run(self):
        while True:
            try:
                await self.check_wallboxes_status()
            except Exception as e:
                logger.exception(f"[WallboxMonitor] Error during scheduled check: {e}")
            await asyncio.sleep(self.interval_seconds)

    async def check_wallboxes_status(self):
        """
        Run one sweep over every space in storage.

        Spaces are checked concurrently; a failure in one space is logged
        and does not affect the others.
        """
        settings_result = await self.settings_store.get_all()
        if not settings_result["ok"]:
            logger.error(f"[WallboxMonitor] Failed to get space settings: {settings_result['error']}")
            return

        all_space_settings = settings_result["value"]
        logger.info(f"[WallboxMonitor] Checking {len(all_space_settings)} spaces")

        results = await asyncio.gather(
            *(self.check_space(space_settings) for space_settings in all_space_settings),
            return_exceptions=True,
        )
        for space_settings, result in zip(all_space_settings, results):
            if isinstance(result, Exception):
                logger.error(
                    f"[WallboxMonitor] Error checking space {space_settings.space_id}: {result}"
                )

    async def check_space(self, space_settings):
        """Stop every open session of a space whose wallbox stopped charging."""
        current_sessions, chargers_result = await asyncio.gather(
            self.session_service.get_current_sessions(space_settings),
            self.cfos_client.list_chargers(),
        )
        if not chargers_result["ok"]:
            logger.error(f"[WallboxMonitor] Failed to get wallboxes: {chargers_result['error']}")
            return

        chargers = {charger.id: charger for charger in chargers_result["value"]}

        for charger_id, session_result in current_sessions.items():
            if not session_result["ok"] or session_result["value"] is None:
                continue

            charger = chargers.get(charger_id)
            if charger is None:
                logger.warning(
                    f"[WallboxMonitor] Wallbox {charger_id} not found but has active session"
                )
                continue

            if charger.evse_state not in IDLE_STATES:
                continue

            logger.info(
                f"[WallboxMonitor] Detected unplugged or not charging car on wallbox "
                f"{charger_id}, ending session"
            )
            stop_result = await self.control_service.stop_charging_session(
                None, space_settings, charger_id
            )
            if stop_result["ok"]:
                logger.info(f"[WallboxMonitor] Successfully ended session for wallbox {charger_id}")
            else:
                logger.error(f"[WallboxMonitor] Failed to end session: {stop_result['error']}")
