"""
Session queries: which session is running on a charger, and session history.

Sessions are reconstructed from the bookings on each charger's mapped
resource. Bookings that do not hold a session record (manual bookings,
edited comments) never crash a query.
"""

import asyncio
from datetime import datetime
from loguru import logger

from wallbox_bridge.clients.cobot import CobotClient, get_cobot_client
from wallbox_bridge.constants import BOOKING_DURATION_AT_START
from wallbox_bridge.models.settings import CobotSpaceSettings
from wallbox_bridge.services.session_codec import (
    SessionCommentError,
    SessionEndRecord,
    decode_session_record,
    session_from_booking,
)
from wallbox_bridge.utils import ok, error, utc_now, to_iso, parse_timestamp

# Membership filter value meaning "sessions of every membership, and of none"
ALL_MEMBERSHIPS = object()


def not_mapped_error(charger_id: str):
    return error(f"Wallbox with id {charger_id} not mapped to a resource")


class ChargingSessionService:
    """Reads charging sessions out of the booking ledger."""

    def __init__(self, cobot_client: CobotClient):
        self.cobot_client = cobot_client

    async def get_current_session(self, settings: CobotSpaceSettings, charger_id: str):
        """
        Find the open session on a charger.

        Looks for a booking on the charger's resource whose window contains
        the current time and whose comment holds a start record. Closed
        sessions whose one-minute minimum window still covers "now" are
        passed over.

        Returns:
            dict: Result value holding a RunningSession, or None when no
            session is open
        """
        resource_id = settings.resource_mapping.get(charger_id)
        if not resource_id:
            return not_mapped_error(charger_id)

        now = utc_now()
        bookings_result = await self.cobot_client.list_bookings(
            settings.access_token,
            settings.space_subdomain,
            resource_id,
            to_iso(now - BOOKING_DURATION_AT_START),
            to_iso(now + BOOKING_DURATION_AT_START),
        )
        if not bookings_result["ok"]:
            return bookings_result

        invalid_booking = None
        for booking in bookings_result["value"]:
            if booking.canceled:
                continue
            if not parse_timestamp(booking.from_) <= now <= parse_timestamp(booking.to):
                continue

            try:
                record = decode_session_record(booking.comments)
            except SessionCommentError as e:
                invalid_booking = (booking, e)
                continue
            if isinstance(record, SessionEndRecord):
                continue

            return ok(session_from_booking(booking, record))

        if invalid_booking is not None:
            booking, e = invalid_booking
            logger.warning(
                f"Current booking {booking.id} on wallbox {charger_id} has {e.reason}"
            )
            return error(f"Booking {booking.title} on wallbox {charger_id} is invalid ({e.reason})")

        return ok(None)

    async def get_current_sessions(self, settings: CobotSpaceSettings):
        """
        Find the open session of every mapped charger, concurrently.

        Returns:
            dict: charger id -> result of get_current_session; one charger's
            failure does not affect the others
        """
        charger_ids = list(settings.resource_mapping.keys())
        results = await asyncio.gather(
            *(self.get_current_session(settings, charger_id) for charger_id in charger_ids),
            return_exceptions=True,
        )

        sessions = {}
        for charger_id, result in zip(charger_ids, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to get current session for wallbox {charger_id}: {result}")
                result = error(f"Failed to get current session for wallbox {charger_id}")
            sessions[charger_id] = result
        return sessions

    async def get_historic_sessions(
        self,
        settings: CobotSpaceSettings,
        from_: datetime,
        to: datetime,
        charger_ids=None,
        membership_filter=ALL_MEMBERSHIPS,
    ):
        """
        List sessions whose bookings overlap [from_, to].

        Args:
            settings: Space settings
            from_: Start of the range
            to: End of the range
            charger_ids: Chargers to include, None for every mapped charger
            membership_filter: ALL_MEMBERSHIPS (the default) for every
                session; a membership id for that membership's sessions.
                None is not "no filter": it selects only sessions started
                without a membership.

        Returns:
            dict: Result value holding CompletedSession and RunningSession
            objects, newest first
        """
        if charger_ids is None:
            charger_ids = list(settings.resource_mapping.keys())

        for charger_id in charger_ids:
            if not settings.resource_mapping.get(charger_id):
                return not_mapped_error(charger_id)

        results = await asyncio.gather(
            *(
                self.cobot_client.list_bookings(
                    settings.access_token,
                    settings.space_subdomain,
                    settings.resource_mapping[charger_id],
                    to_iso(from_),
                    to_iso(to),
                )
                for charger_id in charger_ids
            )
        )

        sessions = []
        for charger_id, result in zip(charger_ids, results):
            if not result["ok"]:
                return result

            for booking in result["value"]:
                try:
                    record = decode_session_record(booking.comments)
                except SessionCommentError as e:
                    logger.debug(f"Skipping booking {booking.id} on wallbox {charger_id}: {e.reason}")
                    continue

                if (
                    membership_filter is not ALL_MEMBERSHIPS
                    and record.cobot_membership_id != membership_filter
                ):
                    continue
                sessions.append(session_from_booking(booking, record))

        sessions.sort(key=lambda session: session.from_, reverse=True)
        return ok(sessions)


# Convenience functions for easy access
async def get_current_session(settings: CobotSpaceSettings, charger_id: str):
    return await ChargingSessionService(get_cobot_client()).get_current_session(
        settings, charger_id
    )


async def get_current_sessions(settings: CobotSpaceSettings):
    return await ChargingSessionService(get_cobot_client()).get_current_sessions(settings)


async def get_historic_sessions(
    settings: CobotSpaceSettings,
    from_: datetime,
    to: datetime,
    charger_ids=None,
    membership_filter=ALL_MEMBERSHIPS,
):
    return await ChargingSessionService(get_cobot_client()).get_historic_sessions(
        settings, from_, to, charger_ids, membership_filter
    )
