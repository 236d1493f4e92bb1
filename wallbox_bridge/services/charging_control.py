"""
Charging control: opening and closing charging sessions.

A session spans the hardware (the wallbox is authorized to charge) and the
ledger (a booking on the charger's resource). The order of the steps below
matters:

* on start the booking is created before the wallbox is authorized, so a
  ledger failure never leaves a charging wallbox without a record;
* on stop the wallbox is deauthorized first, so cutting power never waits
  on the ledger.

Partial failures are not rolled back. They are logged and returned.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from wallbox_bridge.clients.cfos import CfosClient, get_cfos_client
from wallbox_bridge.clients.cobot import CobotClient, get_cobot_client
from wallbox_bridge.constants import (
    BOOKING_DURATION_AT_START,
    BOOKING_END_MARGIN,
    BOOKING_TITLE_AT_START,
)
from wallbox_bridge.models.cfos import IDLE_STATES
from wallbox_bridge.models.cobot import ActivityRequest, BookingRequest, UserDetails
from wallbox_bridge.models.settings import CobotSpaceSettings
from wallbox_bridge.services.charging_sessions import ChargingSessionService, not_mapped_error
from wallbox_bridge.services.session_codec import (
    SessionEndRecord,
    SessionStartRecord,
    encode_session_record,
)
from wallbox_bridge.utils import ok, error, utc_now, to_iso


class StopChargingSessionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    watt_hours_used: float = Field(alias="wattHoursUsed")
    duration: float  # seconds
    price: float


def calculate_price(energy_watt_hours_used: float, membership_id, price_per_kwh: float):
    """
    Price of a session.

    Sessions without a membership are free (or paid at the counter). A
    negative result, only possible through meter drift, is clamped to 0.
    """
    if membership_id is None:
        return 0.0

    price = energy_watt_hours_used / 1000 * price_per_kwh
    if price < 0:
        logger.warning(f"Price is negative ({price}), setting to 0")
        price = 0.0
    return price


def format_price(price: float):
    """Format a price with two decimals, rounding ties up."""
    return str(Decimal(str(price)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class ChargingControlService:
    """Starts and stops charging sessions on wallboxes."""

    def __init__(
        self,
        cfos_client: CfosClient,
        cobot_client: CobotClient,
        session_service: ChargingSessionService = None,
    ):
        self.cfos_client = cfos_client
        self.cobot_client = cobot_client
        self.session_service = session_service or ChargingSessionService(cobot_client)

    async def start_charging_session(
        self,
        user_details: UserDetails,
        settings: CobotSpaceSettings,
        charger_id: str,
        membership_id: Optional[str],
    ):
        """
        Start a charging session on a wallbox.

        The caller must have checked that the user may start a session on
        behalf of the given membership.

        Args:
            user_details: The user starting the session
            settings: Space settings
            charger_id: Wallbox to start
            membership_id: Membership to bill, None for no specific member

        Returns:
            dict: Result value None on success
        """
        logger.info(
            f"Starting charging session on wallbox {charger_id} "
            f"for membership {membership_id} by user {user_details.id}"
        )

        resource_id = settings.resource_mapping.get(charger_id)
        if not resource_id:
            return not_mapped_error(charger_id)

        charger_result = await self.cfos_client.get_charger(charger_id)
        if not charger_result["ok"]:
            return charger_result
        charger = charger_result["value"]

        if charger.evse_state not in IDLE_STATES:
            logger.info(f"Wallbox {charger_id} is {charger.evse_state.value}, rejecting start")
            return error(f"Wallbox with id {charger_id} is not available")

        start_record = SessionStartRecord(
            charger_id=charger_id,
            cobot_user_id_started=user_details.id,
            cobot_user_email_started=user_details.email,
            cobot_membership_id=membership_id,
            total_energy_watt_hours_start=charger.total_energy_watt_hours,
        )
        now = utc_now()
        booking_result = await self.cobot_client.create_booking(
            settings.access_token,
            settings.space_subdomain,
            resource_id,
            BookingRequest(
                from_=to_iso(now),
                to=to_iso(now + BOOKING_DURATION_AT_START),
                title=BOOKING_TITLE_AT_START,
                comments=encode_session_record(start_record),
                membership_id=membership_id,
                can_cancel=False,
                can_change=False,
            ),
        )
        if not booking_result["ok"]:
            return booking_result
        booking = booking_result["value"]
        logger.info(f"Created booking {booking.id} for resource {resource_id}")

        authorize_result = await self.cfos_client.authorize(charger_id)
        if not authorize_result["ok"]:
            logger.error(
                f"Booking {booking.id} created but wallbox {charger_id} "
                f"could not be authorized, booking left in place"
            )
            return authorize_result

        return await self._post_session_activity(
            settings,
            f"EV charging session started by user {user_details.email}",
            membership_id,
            charger.friendly_name,
        )

    async def stop_charging_session(
        self,
        user_details: Optional[UserDetails],
        settings: CobotSpaceSettings,
        charger_id: str,
    ):
        """
        Stop the charging session running on a wallbox.

        Args:
            user_details: The user stopping the session, None when the
                monitoring sweep stops it
            settings: Space settings
            charger_id: Wallbox to stop

        Returns:
            dict: Result value holding a StopChargingSessionResult
        """
        logger.info(
            f"Stopping charging session on wallbox {charger_id} "
            f"by {'user ' + user_details.id if user_details else 'system'}"
        )

        resource_id = settings.resource_mapping.get(charger_id)
        if not resource_id:
            return not_mapped_error(charger_id)

        charger_result = await self.cfos_client.get_charger(charger_id)
        if not charger_result["ok"]:
            return charger_result
        charger = charger_result["value"]
        total_energy_watt_hours_end = charger.total_energy_watt_hours

        # Cut power first, reconcile the ledger afterwards
        deauthorize_result = await self.cfos_client.deauthorize(charger_id)
        if not deauthorize_result["ok"]:
            return deauthorize_result

        now = utc_now()
        session_result = await self.session_service.get_current_session(settings, charger_id)
        if not session_result["ok"]:
            logger.error(
                f"Wallbox {charger_id} stopped but fetching its session failed: "
                f"{session_result['error']}"
            )
            return error("Charger stopped but error fetching bookings")

        session = session_result["value"]
        if session is None:
            logger.error(f"Wallbox {charger_id} stopped but no active booking found")
            return error("Charger stopped but no active booking found")

        if session.charger_id != charger_id:
            logger.error(
                f"Wallbox {charger_id} stopped but booking {session.booking_id} "
                f"belongs to wallbox {session.charger_id}"
            )
            return error("Charger stopped but booking is for a different charger")

        energy_watt_hours_used = total_energy_watt_hours_end - session.total_energy_watt_hours_start
        if energy_watt_hours_used < 0:
            logger.warning(
                f"Negative energy usage {energy_watt_hours_used} Wh on wallbox {charger_id} "
                f"(start {session.total_energy_watt_hours_start}, end {total_energy_watt_hours_end})"
            )
        energy_kilowatt_hours_used = energy_watt_hours_used / 1000
        duration = (now - session.from_).total_seconds()
        price = calculate_price(
            energy_watt_hours_used, session.cobot_membership_id, settings.price_per_kwh
        )

        # End a minute early so a new session can start right away, but keep
        # the booking at least a minute long
        booking_end = max(now - BOOKING_END_MARGIN, session.from_ + BOOKING_END_MARGIN)

        end_record = SessionEndRecord(
            charger_id=charger_id,
            cobot_user_id_started=session.cobot_user_id_started,
            cobot_user_email_started=session.cobot_user_email_started,
            cobot_membership_id=session.cobot_membership_id,
            total_energy_watt_hours_start=session.total_energy_watt_hours_start,
            cobot_user_id_ended=user_details.id if user_details else None,
            cobot_user_email_ended=user_details.email if user_details else None,
            total_energy_watt_hours_end=total_energy_watt_hours_end,
            energy_watt_hours_used=energy_watt_hours_used,
            price=format_price(price),
        )
        update_result = await self.cobot_client.update_booking(
            settings.access_token,
            settings.space_subdomain,
            session.booking_id,
            BookingRequest(
                to=to_iso(booking_end),
                title=f"EV charging session ({energy_kilowatt_hours_used:.3f} kWh)",
                comments=encode_session_record(end_record),
                has_custom_price=True,
                price=price,
            ),
        )
        if not update_result["ok"]:
            return update_result

        byline = f"by user {user_details.email}" if user_details else "by system"
        activity_result = await self._post_session_activity(
            settings,
            f"EV charging session ended {byline}",
            session.cobot_membership_id,
            charger.friendly_name,
        )
        if not activity_result["ok"]:
            return activity_result

        return ok(
            StopChargingSessionResult(
                watt_hours_used=energy_watt_hours_used,
                duration=duration,
                price=price,
            )
        )

    async def _post_session_activity(
        self,
        settings: CobotSpaceSettings,
        text: str,
        membership_id: Optional[str],
        friendly_name: str,
    ):
        """
        Post an audit activity to the admin channel, and to the member's
        channel when the session belongs to a membership.
        """
        channels = ["admin"]
        source_ids = None
        on_behalf_of = "(no membership) "
        if membership_id is not None:
            channels.append("membership")
            source_ids = [membership_id]

            memberships_result = await self.cobot_client.list_memberships(
                settings.access_token, settings.space_subdomain, ids=[membership_id]
            )
            if not memberships_result["ok"]:
                return memberships_result

            memberships = memberships_result["value"]
            if memberships:
                member_name = memberships[0].name
            else:
                logger.warning(f"Membership {membership_id} not found, using its id")
                member_name = membership_id
            on_behalf_of = f"on behalf of {member_name} "

        activity_result = await self.cobot_client.create_activity(
            settings.access_token,
            settings.space_subdomain,
            ActivityRequest(
                text=f"{text} {on_behalf_of}on charger {friendly_name}",
                channels=channels,
                source_ids=source_ids,
            ),
        )
        if not activity_result["ok"]:
            return activity_result
        return ok(None)

    async def start_charging_without_session(self, charger_id: str):
        """Authorize a wallbox without opening a session (maintenance use)."""
        logger.info(f"Starting wallbox {charger_id} without session")
        return await self.cfos_client.authorize(charger_id)

    async def stop_charging_without_session(self, charger_id: str):
        """Deauthorize a wallbox without touching its session (maintenance use)."""
        logger.info(f"Stopping wallbox {charger_id} without session")
        return await self.cfos_client.deauthorize(charger_id)


def get_charging_control_service():
    """Build the service from the process-wide clients."""
    return ChargingControlService(get_cfos_client(), get_cobot_client())


# Convenience functions for easy access
async def start_charging_session(
    user_details: UserDetails,
    settings: CobotSpaceSettings,
    charger_id: str,
    membership_id: Optional[str],
):
    return await get_charging_control_service().start_charging_session(
        user_details, settings, charger_id, membership_id
    )


async def stop_charging_session(
    user_details: Optional[UserDetails], settings: CobotSpaceSettings, charger_id: str
):
    return await get_charging_control_service().stop_charging_session(
        user_details, settings, charger_id
    )
