"""
REST API routes for the space admin UI.
"""

import asyncio
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from wallbox_bridge.api.dependencies import (
    RequestContext,
    get_cobot_client,
    get_cfos_client,
    get_control_service,
    get_session_service,
    get_settings_store,
    require_admin,
)
from wallbox_bridge.constants import MEMBERSHIP_ID_NOBODY
from wallbox_bridge.models.cobot import SUBDOMAIN_PATTERN
from wallbox_bridge.models.settings import CobotSpaceSettingsForUi
from wallbox_bridge.services.charging_sessions import ALL_MEMBERSHIPS
from wallbox_bridge.utils import normalize_membership_id


# Pydantic models for API requests
# A membership id, or the placeholder for "no specific member"
MEMBERSHIP_ID_INPUT_PATTERN = f"^(?:{MEMBERSHIP_ID_NOBODY}|{SUBDOMAIN_PATTERN[1:-1]})$"


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StartChargingRequest(ApiModel):
    charger_id: str = Field(alias="chargerId", min_length=1)
    # "__nobody" or null: no specific member
    membership_id: Optional[str] = Field(
        alias="membershipId", default=None, pattern=MEMBERSHIP_ID_INPUT_PATTERN
    )


class ChargerRequest(ApiModel):
    charger_id: str = Field(alias="chargerId", min_length=1)


def _dump(value):
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(item) for item in value]
    return value


def _dump_result(result):
    if result["ok"]:
        return {"ok": True, "value": _dump(result["value"])}
    return result


def _raise_for_error(result, action: str):
    if not result["ok"]:
        logger.warning(f"Error {action}: {result['error']}")
        raise HTTPException(status_code=500, detail=f"Error {action}: {result['error']}")


# Create router
router = APIRouter(prefix="/api/spaces/{space_id}", tags=["wallbox-bridge-api"])


@router.get("/wallboxes")
async def get_wallboxes(
    ctx: RequestContext = Depends(require_admin),
    cfos_client=Depends(get_cfos_client),
    session_service=Depends(get_session_service),
):
    """Get all wallboxes with the charging session currently running on each."""
    chargers_result, sessions = await asyncio.gather(
        cfos_client.list_chargers(),
        session_service.get_current_sessions(ctx.settings),
    )
    _raise_for_error(chargers_result, "fetching wallbox status")

    return [
        {
            **charger.model_dump(mode="json", by_alias=True),
            "chargingSession": _dump_result(
                sessions.get(
                    charger.id,
                    {"ok": False, "error": "No resource configured for this wallbox"},
                )
            ),
        }
        for charger in chargers_result["value"]
    ]


@router.post("/charging/start")
async def start_charging(
    request: StartChargingRequest,
    ctx: RequestContext = Depends(require_admin),
    control_service=Depends(get_control_service),
):
    """Open a charging session on a wallbox."""
    result = await control_service.start_charging_session(
        ctx.user_details,
        ctx.settings,
        request.charger_id,
        normalize_membership_id(request.membership_id),
    )
    _raise_for_error(result, "starting charging")
    return {"success": True}


@router.post("/charging/stop")
async def stop_charging(
    request: ChargerRequest,
    ctx: RequestContext = Depends(require_admin),
    control_service=Depends(get_control_service),
):
    """Close the charging session running on a wallbox."""
    result = await control_service.stop_charging_session(
        ctx.user_details, ctx.settings, request.charger_id
    )
    _raise_for_error(result, "stopping charging")
    return _dump(result["value"])


@router.post("/charging/start-without-session")
async def start_charging_without_session(
    request: ChargerRequest,
    ctx: RequestContext = Depends(require_admin),
    control_service=Depends(get_control_service),
):
    """Authorize a wallbox without recording a session."""
    logger.info(f"User {ctx.user_details.id} starts wallbox {request.charger_id} without session")
    result = await control_service.start_charging_without_session(request.charger_id)
    _raise_for_error(result, "starting charging")
    return {"success": True}


@router.post("/charging/stop-without-session")
async def stop_charging_without_session(
    request: ChargerRequest,
    ctx: RequestContext = Depends(require_admin),
    control_service=Depends(get_control_service),
):
    """Deauthorize a wallbox without touching its session."""
    logger.info(f"User {ctx.user_details.id} stops wallbox {request.charger_id} without session")
    result = await control_service.stop_charging_without_session(request.charger_id)
    _raise_for_error(result, "stopping charging")
    return {"success": True}


@router.get("/charging/history")
async def get_charging_history(
    from_: datetime = Query(alias="from"),
    to: datetime = Query(),
    charger_ids: Optional[List[str]] = Query(default=None, alias="chargerIds"),
    membership_id: Optional[str] = Query(default=None, alias="membershipId"),
    ctx: RequestContext = Depends(require_admin),
    session_service=Depends(get_session_service),
):
    """
    Get charging sessions overlapping a time range, newest first.

    Without ``membershipId`` sessions of every membership are returned;
    ``membershipId=__nobody`` selects sessions without a membership.
    """
    if to < from_:
        raise HTTPException(status_code=400, detail="'to' must not be before 'from'")

    membership_filter = ALL_MEMBERSHIPS
    if membership_id is not None:
        membership_filter = normalize_membership_id(membership_id)

    result = await session_service.get_historic_sessions(
        ctx.settings, from_, to, charger_ids, membership_filter
    )
    _raise_for_error(result, "fetching charging history")
    return _dump(result["value"])


@router.get("/memberships")
async def get_memberships(
    ctx: RequestContext = Depends(require_admin),
    cobot_client=Depends(get_cobot_client),
):
    """Get the memberships a session may be started for."""
    result = await cobot_client.list_memberships(
        ctx.settings.access_token, ctx.settings.space_subdomain
    )
    _raise_for_error(result, "fetching memberships")
    return _dump(result["value"])


@router.get("/settings")
async def get_settings(ctx: RequestContext = Depends(require_admin)):
    """Get the resource mapping and price of the space."""
    return CobotSpaceSettingsForUi(
        resource_mapping=ctx.settings.resource_mapping,
        price_per_kwh=ctx.settings.price_per_kwh,
    ).model_dump(by_alias=True)


@router.put("/settings")
async def update_settings(
    settings_for_ui: CobotSpaceSettingsForUi,
    ctx: RequestContext = Depends(require_admin),
    settings_store=Depends(get_settings_store),
):
    """Update the resource mapping and price of the space."""
    settings = ctx.settings.model_copy(
        update={
            "resource_mapping": settings_for_ui.resource_mapping,
            "price_per_kwh": settings_for_ui.price_per_kwh,
        }
    )
    result = await settings_store.set(settings)
    _raise_for_error(result, "saving settings")
    logger.info(f"User {ctx.user_details.id} updated settings of space {ctx.space_id}")
    return settings_for_ui.model_dump(by_alias=True)
