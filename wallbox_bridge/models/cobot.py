"""
Membership backend (Cobot) request and response bodies.

Response models ignore unknown attributes so that additions on the remote
side do not break validation; required attributes are the ones this
application reads.
"""

from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

SUBDOMAIN_PATTERN = r"^[a-z0-9][a-z0-9-]{0,99}$"

CobotActivityChannel = Literal["admin", "membership"]
CobotActivityLevel = Literal["ERROR", "WARN", "INFO"]


class CobotModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# https://dev.cobot.me/api-docs/oauth-flow
class OauthAccessTokenResponse(CobotModel):
    access_token: str = Field(min_length=1, max_length=500)
    token_type: Literal["bearer"]


# https://dev.cobot.me/api-docs/access-tokens#create-access-token-for-a-space
class OauthSpaceAccessTokenResponse(CobotModel):
    token: str = Field(min_length=1, max_length=500)
    client_id: str
    scope: list[str]


# https://dev.cobot.me/api-docs/spaces#get-space-details
class SpaceDetails(CobotModel):
    id: str
    name: str
    subdomain: str = Field(pattern=SUBDOMAIN_PATTERN)
    url: str
    email: Optional[str] = None
    description: Optional[str] = None
    country: Optional[str] = None
    locale: Optional[str] = None
    time_zone_name: Optional[str] = None
    price_decimals: Optional[int] = None


class UserMembership(CobotModel):
    id: str
    space_subdomain: str
    space_name: str


class UserAdminOf(CobotModel):
    space_subdomain: str
    space_name: str


# https://dev.cobot.me/api-docs/users#get-user-details
class UserDetails(CobotModel):
    id: str = Field(min_length=1, max_length=500)
    email: str
    memberships: list[UserMembership]
    admin_of: list[UserAdminOf]


# https://dev.cobot.me/api-docs/memberships#list-members
class Membership(CobotModel):
    id: str = Field(pattern=SUBDOMAIN_PATTERN)
    name: str
    email: str


class ResourceBookingTime(CobotModel):
    weekdays: list[int]
    from_: str = Field(alias="from")
    to: str


# https://dev.cobot.me/api-docs/resources#list-resources
class Resource(CobotModel):
    id: str = Field(min_length=1, max_length=100)
    name: str
    price_per_hour: Optional[str] = None
    currency: Optional[str] = None
    hidden: Optional[bool] = None
    can_book: Optional[bool] = None
    description: Optional[str] = None
    booking_times: list[ResourceBookingTime] = []


class BookingMembership(CobotModel):
    id: str
    name: str
    email: Optional[str] = None


class BookingResource(CobotModel):
    id: str
    name: str
    url: Optional[str] = None


# https://dev.cobot.me/api-docs/bookings
class Booking(CobotModel):
    id: str = Field(min_length=1, max_length=100)
    from_: str = Field(alias="from")
    to: str
    title: Optional[str] = None
    comments: Optional[str] = None
    price: str
    currency: str
    paid: Optional[bool] = None
    canceled: Optional[bool] = None
    can_cancel: Optional[bool] = None
    can_change: Optional[bool] = None
    membership: Optional[BookingMembership] = None
    resource: BookingResource
    units: Optional[int] = None


class BookingRequest(CobotModel):
    """Body for booking create (``from``/``to`` required there) and update."""

    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    title: Optional[str] = None
    comments: Optional[str] = None
    membership_id: Optional[str] = None
    units: Optional[int] = None
    price: Optional[float] = None
    has_custom_price: Optional[bool] = None
    can_cancel: Optional[bool] = None
    can_change: Optional[bool] = None

    def to_body(self):
        """Serialize with wire names, leaving out everything that was not given."""
        return self.model_dump(by_alias=True, exclude_none=True)


# https://dev.cobot.me/api-docs/activities
class Activity(CobotModel):
    created_at: str
    type: str
    channels: list[CobotActivityChannel]
    attributes: Optional[dict[str, Union[str, float, bool]]] = None
    level: Optional[CobotActivityLevel] = None


class ActivityRequest(CobotModel):
    text: str
    level: Optional[CobotActivityLevel] = None
    channels: list[CobotActivityChannel]
    source_ids: Optional[list[str]] = None

    def to_body(self):
        return self.model_dump(exclude_none=True)
