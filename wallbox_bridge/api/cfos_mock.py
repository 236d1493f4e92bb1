"""
In-process stand-in for the cFos Power Brain HTTP API, for development
without wallbox hardware. Only mounted when ENABLE_CFOS_MOCK_ENDPOINT is set.
"""

import secrets
import time
from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from loguru import logger

MOCK_USERNAME = "mockuser"
MOCK_PASSWORD = "mockpassword"
MOCK_RFID = "abcdef01"

# Hardware state register values
STATE_FREE = 1
STATE_VEHICLE_PRESENT = 2
STATE_CHARGING = 3


def _initial_devices():
    return [
        {
            "dev_type": "evse_powerbrain",
            "address": "evse:",
            "desc": "Wallbox 1",
            "state": STATE_VEHICLE_PRESENT,
            "dev_id": "wallbox-1",
            "total_energy": 1000.0,
            "charging_enabled": False,
        },
        {
            "dev_type": "evse_powerbrain",
            "address": "192.168.2.31:4701",
            "desc": "Wallbox 2",
            "state": STATE_VEHICLE_PRESENT,
            "dev_id": "wallbox-2",
            "total_energy": 25000.0,
            "charging_enabled": False,
        },
        {
            "dev_type": "evse_powerbrain",
            "address": "192.168.2.32:4701",
            "desc": "Wallbox 3",
            "state": STATE_FREE,
            "dev_id": "wallbox-3",
            "total_energy": 500.0,
            "charging_enabled": False,
        },
        {
            "dev_type": "meter_sunspec",
            "address": "192.168.2.40:502",
            "desc": "Main meter",
            "dev_id": "meter-1",
            "power_w": 4200,
        },
    ]


class CfosMock:
    """
    Mock gateway state.

    Charging wallboxes gain 1 Wh per second; the meter is advanced lazily
    whenever the state is read or changed.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self.devices = _initial_devices()
        self._last_tick = clock()

    def reset(self):
        self.devices = _initial_devices()
        self._last_tick = self.clock()

    def _tick(self):
        now = self.clock()
        elapsed = now - self._last_tick
        self._last_tick = now
        for device in self.devices:
            if device.get("state") == STATE_CHARGING:
                device["total_energy"] += elapsed

    def _get_wallbox(self, dev_id):
        for device in self.devices:
            if device["dev_id"] == dev_id and device["dev_type"] == "evse_powerbrain":
                return device
        raise HTTPException(status_code=404, detail=f"Device {dev_id} not found")

    def get_dev_info(self):
        self._tick()
        return {"devices": [dict(device) for device in self.devices]}

    def enter_rfid(self, dev_id, rfid):
        self._tick()
        if rfid != MOCK_RFID:
            raise HTTPException(status_code=400, detail="Unknown RFID")
        wallbox = self._get_wallbox(dev_id)
        wallbox["charging_enabled"] = True
        if wallbox["state"] == STATE_VEHICLE_PRESENT:
            wallbox["state"] = STATE_CHARGING
        logger.info(f"[CfosMock] RFID entered on {dev_id}, state {wallbox['state']}")

    def override_device(self, dev_id, flags):
        self._tick()
        wallbox = self._get_wallbox(dev_id)
        if "C" in flags:
            wallbox["charging_enabled"] = False
            if wallbox["state"] == STATE_CHARGING:
                wallbox["state"] = STATE_VEHICLE_PRESENT
        logger.info(f"[CfosMock] Override {flags} on {dev_id}, state {wallbox['state']}")


cfos_mock = CfosMock()

security = HTTPBasic()


def check_credentials(credentials: HTTPBasicCredentials = Depends(security)):
    username_ok = secrets.compare_digest(credentials.username, MOCK_USERNAME)
    password_ok = secrets.compare_digest(credentials.password, MOCK_PASSWORD)
    if not (username_ok and password_ok):
        raise HTTPException(
            status_code=401,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )


router = APIRouter(
    prefix="/api/cfos-mock",
    tags=["cfos-mock"],
    dependencies=[Depends(check_credentials)],
)


@router.get("/cnf")
async def cnf(
    cmd: str,
    dev_id: str = None,
    rfid: str = None,
    flags: str = "",
):
    """Single command endpoint, dispatched on ``cmd`` like the real gateway."""
    if cmd == "get_dev_info":
        return cfos_mock.get_dev_info()
    if dev_id is None:
        raise HTTPException(status_code=400, detail="dev_id is required")
    if cmd == "enter_rfid":
        cfos_mock.enter_rfid(dev_id, rfid)
        return {}
    if cmd == "override_device":
        cfos_mock.override_device(dev_id, flags)
        return {}
    raise HTTPException(status_code=400, detail=f"Unknown command {cmd}")
