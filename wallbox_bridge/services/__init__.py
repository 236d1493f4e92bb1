"""
Charging session services.
"""
from .charging_control import ChargingControlService, StopChargingSessionResult
from .charging_sessions import ALL_MEMBERSHIPS, ChargingSessionService
from .user_details_cache import UserDetailsCache
from .wallbox_monitor import WallboxMonitor

__all__ = [
    "ChargingControlService",
    "StopChargingSessionResult",
    "ALL_MEMBERSHIPS",
    "ChargingSessionService",
    "UserDetailsCache",
    "WallboxMonitor",
]
