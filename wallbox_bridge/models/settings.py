"""
Per-space values kept in the key/value storage.
"""

from pydantic import BaseModel, ConfigDict, Field

from wallbox_bridge.models.cobot import SUBDOMAIN_PATTERN


class CobotSpaceSettings(BaseModel):
    """
    Everything needed to run charging sessions for one coworking space.

    ``resource_mapping`` maps charger ids to the bookable resource whose
    bookings act as the session ledger for that charger.
    """

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken", min_length=1, max_length=500)
    space_id: str = Field(alias="spaceId", pattern=SUBDOMAIN_PATTERN)
    space_subdomain: str = Field(alias="spaceSubdomain", pattern=SUBDOMAIN_PATTERN)
    resource_mapping: dict[str, str] = Field(alias="resourceMapping", default_factory=dict)
    price_per_kwh: float = Field(alias="pricePerKWh", ge=0, default=0)


class CobotSpaceSettingsForUi(BaseModel):
    """The editable subset of the settings; credentials never leave the server."""

    model_config = ConfigDict(populate_by_name=True)

    resource_mapping: dict[str, str] = Field(alias="resourceMapping")
    price_per_kwh: float = Field(alias="pricePerKWh", ge=0)
