"""
Client for the charger backend (cFos Power Brain HTTP API).

https://www.cfos-emobility.de/en/cfos-power-brain/http-api.htm
"""

from urllib.parse import unquote, urlsplit, urlunsplit
import httpx
from loguru import logger

from wallbox_bridge import config
from wallbox_bridge.clients.base import fetch_with_type_checked_json_response
from wallbox_bridge.constants import CFOS_CHARGER_DEVICE_TYPE, CFOS_SELF_ADDRESS
from wallbox_bridge.models.cfos import (
    Charger,
    EvsePowerbrainDevice,
    EvseState,
    EVSE_STATE_MAP,
    GetWallboxesApiResponse,
)
from wallbox_bridge.utils import ok, error


class CfosClient:
    """Reads wallbox state from the gateway and toggles charging authorization."""

    def __init__(self, base_url: str, rfid: str, http_client: httpx.AsyncClient = None):
        parts = urlsplit(base_url)
        self.basic_auth = (unquote(parts.username or ""), unquote(parts.password or ""))
        self.hostname = parts.hostname or ""

        netloc = parts.hostname or ""
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        path = parts.path.rstrip("/") + "/cnf"
        self.url = urlunsplit((parts.scheme, netloc, path, "", ""))

        self.rfid = rfid
        self.http_client = http_client or httpx.AsyncClient(timeout=config.HTTP_TIMEOUT)

    async def aclose(self):
        await self.http_client.aclose()

    async def list_chargers(self):
        """
        Fetch all wallboxes known to the gateway.

        Devices of other kinds (meters, inverters, ...) are dropped.

        Returns:
            dict: Result value holding a list of Charger snapshots
        """
        logger.info("Fetching all wallboxes")
        result = await fetch_with_type_checked_json_response(
            self.http_client,
            "get",
            self.url,
            expected_type=GetWallboxesApiResponse,
            basic_auth=self.basic_auth,
            params={"cmd": "get_dev_info"},
        )
        if not result["ok"]:
            return result

        chargers = []
        for device in result["value"].devices:
            if not isinstance(device, EvsePowerbrainDevice):
                continue
            if device.dev_type != CFOS_CHARGER_DEVICE_TYPE:
                continue
            chargers.append(self._to_charger(device))
        return ok(chargers)

    def _to_charger(self, device: EvsePowerbrainDevice):
        address = self.hostname
        if device.address != CFOS_SELF_ADDRESS:
            address = device.address.split(":")[0]

        evse_state = EVSE_STATE_MAP.get(device.state)
        if evse_state is None:
            logger.warning(f"Unknown EVSE state {device.state} on wallbox {device.dev_id}")
            evse_state = EvseState.ERROR

        return Charger(
            id=device.dev_id,
            friendly_name=device.desc,
            address=address,
            total_energy_watt_hours=device.total_energy,
            evse_state=evse_state,
            charging_enabled=device.charging_enabled,
        )

    async def get_charger(self, charger_id: str):
        """Fetch a single wallbox by id."""
        result = await self.list_chargers()
        if not result["ok"]:
            return result

        for charger in result["value"]:
            if charger.id == charger_id:
                return ok(charger)
        return error(f"Wallbox with id {charger_id} not found")

    async def authorize(self, charger_id: str):
        """Allow the wallbox to charge, as if the configured RFID was presented."""
        logger.info(f"Authorizing wallbox {charger_id}")
        return await fetch_with_type_checked_json_response(
            self.http_client,
            "get",
            self.url,
            basic_auth=self.basic_auth,
            params={"cmd": "enter_rfid", "rfid": self.rfid, "dev_id": charger_id},
        )

    async def deauthorize(self, charger_id: str):
        """Disable charging on the wallbox (override flag ``C``)."""
        logger.info(f"Deauthorizing wallbox {charger_id}")
        return await fetch_with_type_checked_json_response(
            self.http_client,
            "get",
            self.url,
            basic_auth=self.basic_auth,
            params={
                "cmd": "override_device",
                "rfid": self.rfid,
                "flags": "C",
                "dev_id": charger_id,
            },
        )


_default_client = None


def get_cfos_client():
    """Return the process-wide client built from configuration."""
    global _default_client
    if _default_client is None:
        _default_client = CfosClient(config.CFOS_BASE_URL, config.CFOS_RFID_ID)
    return _default_client
