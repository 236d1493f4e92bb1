"""
Charger backend (cFos Power Brain) payloads and the normalized Charger snapshot.
"""

from enum import Enum
from typing import Annotated, Literal, Union
from pydantic import BaseModel, ConfigDict, Field


class EvseState(str, Enum):
    """Normalized wallbox state."""

    FREE = "free"
    VEHICLE_PRESENT = "vehiclePresent"
    CHARGING = "charging"
    OFFLINE = "offline"
    ERROR = "error"


# Hardware state register values; 3 and 4 both mean the vehicle is charging
EVSE_STATE_MAP = {
    1: EvseState.FREE,
    2: EvseState.VEHICLE_PRESENT,
    3: EvseState.CHARGING,
    4: EvseState.CHARGING,
    5: EvseState.ERROR,
    6: EvseState.OFFLINE,
}

# States in which a new session may start and an open one is considered over
IDLE_STATES = (EvseState.FREE, EvseState.VEHICLE_PRESENT)


class EvsePowerbrainDevice(BaseModel):
    model_config = ConfigDict(extra="ignore")

    dev_type: Literal["evse_powerbrain"]
    address: str
    desc: str
    state: int
    dev_id: str
    total_energy: float
    charging_enabled: bool


class OtherDevice(BaseModel):
    """Any device the gateway reports that is not a wallbox (meters, inverters, ...)."""

    model_config = ConfigDict(extra="allow")

    dev_type: str


class GetWallboxesApiResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    devices: list[
        Annotated[
            Union[EvsePowerbrainDevice, OtherDevice], Field(union_mode="left_to_right")
        ]
    ]


class Charger(BaseModel):
    """
    Snapshot of one wallbox as read from the hardware.

    Never persisted; the hardware is authoritative and is polled on demand.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    friendly_name: str = Field(alias="friendlyName")
    address: str
    total_energy_watt_hours: float = Field(alias="totalEnergyWattHours")
    evse_state: EvseState = Field(alias="evseWallboxState")
    charging_enabled: bool = Field(alias="chargingEnabled")
