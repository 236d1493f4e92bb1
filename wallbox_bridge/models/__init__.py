"""
Data models package.
"""
from .cfos import Charger, EvseState, EVSE_STATE_MAP, IDLE_STATES
from .cobot import (
    ActivityRequest,
    Booking,
    BookingRequest,
    Membership,
    UserDetails,
)
from .settings import CobotSpaceSettings, CobotSpaceSettingsForUi

__all__ = [
    "Charger",
    "EvseState",
    "EVSE_STATE_MAP",
    "IDLE_STATES",
    "ActivityRequest",
    "Booking",
    "BookingRequest",
    "Membership",
    "UserDetails",
    "CobotSpaceSettings",
    "CobotSpaceSettingsForUi",
]
