"""
Request context and service providers for the API routes.
"""

from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Header, HTTPException
from loguru import logger

from wallbox_bridge.clients.cfos import get_cfos_client
from wallbox_bridge.clients.cobot import get_cobot_client
from wallbox_bridge.models.cobot import UserDetails
from wallbox_bridge.models.settings import CobotSpaceSettings
from wallbox_bridge.services.charging_control import ChargingControlService
from wallbox_bridge.services.charging_sessions import ChargingSessionService
from wallbox_bridge.services.user_details_cache import UserDetailsCache
from wallbox_bridge.storage import get_space_settings_store

AUTHORIZATION_HEADER_PREFIX = "bearer "

user_details_cache = UserDetailsCache()


@dataclass
class RequestContext:
    space_id: str
    space_subdomain: str
    access_token: str
    user_details: UserDetails
    settings: CobotSpaceSettings
    space_membership_id: Optional[str]
    is_admin: bool


def get_settings_store():
    return get_space_settings_store()


def get_session_service(cobot_client=Depends(get_cobot_client)):
    return ChargingSessionService(cobot_client)


def get_control_service(
    cfos_client=Depends(get_cfos_client),
    cobot_client=Depends(get_cobot_client),
):
    return ChargingControlService(cfos_client, cobot_client)


async def get_request_context(
    space_id: str,
    authorization: Optional[str] = Header(default=None),
    settings_store=Depends(get_settings_store),
    cobot_client=Depends(get_cobot_client),
) -> RequestContext:
    """
    Resolve the calling user and the space they act in.

    The bearer token is the user's membership-backend access token. User
    details are cached briefly so that every request does not hit the
    membership backend.
    """
    if not authorization or not authorization.lower().startswith(AUTHORIZATION_HEADER_PREFIX):
        raise HTTPException(status_code=401, detail="Missing authorization header")
    access_token = authorization[len(AUTHORIZATION_HEADER_PREFIX):].strip()
    if not access_token:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    settings_result = await settings_store.get({"space_id": space_id})
    if not settings_result["ok"] or settings_result["value"] is None:
        raise HTTPException(status_code=401, detail="Space is not set up")
    settings = settings_result["value"]

    user_details = user_details_cache.get(access_token)
    if user_details is None:
        user_details_result = await cobot_client.get_user_details(access_token)
        if not user_details_result["ok"]:
            raise HTTPException(status_code=401, detail="Invalid access token")
        user_details = user_details_result["value"]
        user_details_cache.set(access_token, user_details)

    space_membership_id = next(
        (
            membership.id
            for membership in user_details.memberships
            if membership.space_subdomain == settings.space_subdomain
        ),
        None,
    )
    is_admin = any(
        admin_of.space_subdomain == settings.space_subdomain
        for admin_of in user_details.admin_of
    )

    return RequestContext(
        space_id=space_id,
        space_subdomain=settings.space_subdomain,
        access_token=access_token,
        user_details=user_details,
        settings=settings,
        space_membership_id=space_membership_id,
        is_admin=is_admin,
    )


async def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if not ctx.is_admin:
        logger.warning(f"User {ctx.user_details.id} is not an admin of space {ctx.space_id}")
        raise HTTPException(status_code=403, detail="You are not an admin")
    return ctx
