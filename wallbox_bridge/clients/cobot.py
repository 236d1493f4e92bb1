"""
Client for the membership backend (Cobot REST API).

Bookings on the resource mapped to a charger are used as the charging
session ledger; activities are the audit trail.
"""

from urllib.parse import quote
import httpx
from loguru import logger

from wallbox_bridge import config
from wallbox_bridge.clients.base import fetch_with_type_checked_json_response
from wallbox_bridge.models.cobot import (
    Activity,
    ActivityRequest,
    Booking,
    BookingRequest,
    Membership,
    OauthAccessTokenResponse,
    OauthSpaceAccessTokenResponse,
    Resource,
    SpaceDetails,
    UserDetails,
)


class CobotClient:
    """Typed wrappers around the Cobot endpoints this application uses."""

    def __init__(
        self,
        client_id: str = "",
        client_secret: str = "",
        base_domain: str = "cobot.me",
        http_client: httpx.AsyncClient = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_domain = base_domain
        self.http_client = http_client or httpx.AsyncClient(timeout=config.HTTP_TIMEOUT)

    async def aclose(self):
        await self.http_client.aclose()

    def _global_url(self, path: str):
        return f"https://www.{self.base_domain}{path}"

    def _space_url(self, space_subdomain: str, path: str):
        return f"https://{quote(space_subdomain, safe='')}.{self.base_domain}/api{path}"

    async def _fetch(self, method, url, expected_type=None, **kwargs):
        return await fetch_with_type_checked_json_response(
            self.http_client, method, url, expected_type=expected_type, **kwargs
        )

    # https://dev.cobot.me/api-docs/oauth-flow
    async def exchange_code_for_access_token(self, code: str):
        logger.info("Exchanging code for access token")
        return await self._fetch(
            "post",
            self._global_url("/oauth/access_token"),
            OauthAccessTokenResponse,
            form_body={
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "authorization_code",
                "code": code,
            },
        )

    # https://dev.cobot.me/api-docs/spaces#get-space-details
    async def get_space_details(self, space_subdomain: str):
        logger.info(f"Getting space details for {space_subdomain}")
        return await self._fetch(
            "get",
            self._global_url(f"/api/spaces/{quote(space_subdomain, safe='')}"),
            SpaceDetails,
        )

    # https://dev.cobot.me/api-docs/access-tokens#create-access-token-for-a-space
    async def exchange_access_token_for_space_token(self, access_token: str, space_id: str):
        logger.info("Exchanging access token for space token")
        return await self._fetch(
            "post",
            self._global_url(f"/api/access_tokens/{quote(access_token, safe='')}/space"),
            OauthSpaceAccessTokenResponse,
            access_token=access_token,
            json_body={"space_id": space_id},
        )

    # https://dev.cobot.me/api-docs/access-tokens#revoke-access-token
    async def revoke_access_token(self, access_token: str):
        logger.info("Revoking access token")
        return await self._fetch(
            "delete",
            self._global_url(f"/api/access_tokens/{quote(access_token, safe='')}"),
            access_token=access_token,
        )

    # https://dev.cobot.me/api-docs/users#get-user-details
    async def get_user_details(self, access_token: str):
        logger.info("Fetching user details for current user")
        return await self._fetch(
            "get", self._global_url("/api/user"), UserDetails, access_token=access_token
        )

    # https://dev.cobot.me/api-docs/memberships#list-members
    async def list_memberships(self, access_token: str, space_subdomain: str, ids=None):
        """List memberships (id, name, email), optionally only the given ids."""
        logger.info(f"Listing memberships with id, name and email {ids or ''}")
        params = {"attributes": "id,name,email"}
        if ids:
            params["ids"] = ",".join(ids)
        return await self._fetch(
            "get",
            self._space_url(space_subdomain, "/memberships"),
            list[Membership],
            access_token=access_token,
            params=params,
        )

    # https://dev.cobot.me/api-docs/resources#list-resources
    async def list_resources(self, access_token: str, space_subdomain: str, ids=None):
        logger.info(f"Listing resources {ids or ''}")
        params = {"ids": ",".join(ids)} if ids else None
        return await self._fetch(
            "get",
            self._space_url(space_subdomain, "/resources"),
            list[Resource],
            access_token=access_token,
            params=params,
        )

    # https://dev.cobot.me/api-docs/bookings#list-bookings
    async def list_bookings(
        self, access_token: str, space_subdomain: str, resource_id: str, from_: str, to: str
    ):
        """List bookings of one resource overlapping [from_, to] (ISO strings)."""
        logger.info(f"Listing bookings of resource {resource_id} from {from_} to {to}")
        return await self._fetch(
            "get",
            self._space_url(
                space_subdomain, f"/resources/{quote(resource_id, safe='')}/bookings"
            ),
            list[Booking],
            access_token=access_token,
            params={"from": from_, "to": to},
        )

    # https://dev.cobot.me/api-docs/bookings#create-booking
    async def create_booking(
        self,
        access_token: str,
        space_subdomain: str,
        resource_id: str,
        booking: BookingRequest,
    ):
        logger.info(f"Creating booking for resource {resource_id}")
        return await self._fetch(
            "post",
            self._space_url(
                space_subdomain, f"/resources/{quote(resource_id, safe='')}/bookings"
            ),
            Booking,
            access_token=access_token,
            json_body=booking.to_body(),
        )

    # https://dev.cobot.me/api-docs/bookings#update-booking
    async def update_booking(
        self,
        access_token: str,
        space_subdomain: str,
        booking_id: str,
        booking: BookingRequest,
    ):
        logger.info(f"Updating booking {booking_id}")
        return await self._fetch(
            "put",
            self._space_url(space_subdomain, f"/bookings/{quote(booking_id, safe='')}"),
            Booking,
            access_token=access_token,
            json_body=booking.to_body(),
        )

    # https://dev.cobot.me/api-docs/activities#create-activity
    async def create_activity(
        self, access_token: str, space_subdomain: str, activity: ActivityRequest
    ):
        logger.info("Creating activity")
        return await self._fetch(
            "post",
            self._space_url(space_subdomain, "/activities"),
            Activity,
            access_token=access_token,
            json_body=activity.to_body(),
        )


_default_client = None


def get_cobot_client():
    """Return the process-wide client built from configuration."""
    global _default_client
    if _default_client is None:
        _default_client = CobotClient(
            config.COBOT_CLIENT_ID, config.COBOT_CLIENT_SECRET, config.COBOT_BASE_DOMAIN
        )
    return _default_client
