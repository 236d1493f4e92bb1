from datetime import timedelta

import pytest

from wallbox_bridge.models.cfos import Charger, EvseState
from wallbox_bridge.models.cobot import (
    Booking,
    BookingResource,
    Membership,
    UserAdminOf,
    UserDetails,
    UserMembership,
)
from wallbox_bridge.models.settings import CobotSpaceSettings
from wallbox_bridge.services.session_codec import (
    SessionEndRecord,
    SessionStartRecord,
    encode_session_record,
)
from wallbox_bridge.utils import ok, error, utc_now, to_iso


def make_charger(charger_id="wallbox-1", state=EvseState.VEHICLE_PRESENT, energy=1000.0):
    return Charger(
        id=charger_id,
        friendly_name=f"Wallbox {charger_id.split('-')[-1]}",
        address="192.168.2.30",
        total_energy_watt_hours=energy,
        evse_state=state,
        charging_enabled=state == EvseState.CHARGING,
    )


def make_booking(
    booking_id,
    resource_id="res-1",
    from_=None,
    to=None,
    comments=None,
    title="EV charging session (usage TBD)",
    canceled=False,
):
    now = utc_now()
    return Booking(
        id=booking_id,
        from_=to_iso(from_ or now - timedelta(hours=1)),
        to=to_iso(to or now + timedelta(hours=7)),
        title=title,
        comments=comments,
        price="0.0",
        currency="EUR",
        canceled=canceled,
        resource=BookingResource(id=resource_id, name="Charger"),
    )


def start_comment(charger_id="wallbox-1", membership_id="mem-42", energy=1000.0):
    return encode_session_record(
        SessionStartRecord(
            charger_id=charger_id,
            cobot_user_id_started="user-1",
            cobot_user_email_started="admin@example.com",
            cobot_membership_id=membership_id,
            total_energy_watt_hours_start=energy,
        )
    )


def end_comment(charger_id="wallbox-1", membership_id="mem-42", start=1000.0, end=1500.0):
    return encode_session_record(
        SessionEndRecord(
            charger_id=charger_id,
            cobot_user_id_started="user-1",
            cobot_user_email_started="admin@example.com",
            cobot_membership_id=membership_id,
            total_energy_watt_hours_start=start,
            cobot_user_id_ended="user-1",
            cobot_user_email_ended="admin@example.com",
            total_energy_watt_hours_end=end,
            energy_watt_hours_used=end - start,
            price="0.25",
        )
    )


class FakeCfosClient:
    """Records hardware calls; chargers are kept in a dict by id."""

    def __init__(self, chargers=None):
        self.chargers = {charger.id: charger for charger in chargers or []}
        self.calls = []
        self.list_error = None
        self.authorize_result = ok(None)
        self.deauthorize_result = ok(None)

    async def list_chargers(self):
        self.calls.append(("list_chargers",))
        if self.list_error:
            return error(self.list_error)
        return ok(list(self.chargers.values()))

    async def get_charger(self, charger_id):
        self.calls.append(("get_charger", charger_id))
        if self.list_error:
            return error(self.list_error)
        if charger_id not in self.chargers:
            return error(f"Wallbox with id {charger_id} not found")
        return ok(self.chargers[charger_id])

    async def authorize(self, charger_id):
        self.calls.append(("authorize", charger_id))
        return self.authorize_result

    async def deauthorize(self, charger_id):
        self.calls.append(("deauthorize", charger_id))
        return self.deauthorize_result

    def call_names(self):
        return [call[0] for call in self.calls]


class FakeCobotClient:
    """Keeps bookings per resource in memory and records every write."""

    def __init__(self):
        self.bookings = {}
        self.failing_resources = set()
        self.memberships = [Membership(id="mem-42", name="Jane Doe", email="jane@example.com")]
        self.user_details = {}
        self.created_bookings = []
        self.updated_bookings = []
        self.activities = []
        self.calls = []
        self._next_booking_id = 1

    def add_booking(self, booking):
        self.bookings.setdefault(booking.resource.id, []).append(booking)
        return booking

    async def get_user_details(self, access_token):
        self.calls.append(("get_user_details", access_token))
        if access_token not in self.user_details:
            return error("HTTP error")
        return ok(self.user_details[access_token])

    async def list_bookings(self, access_token, space_subdomain, resource_id, from_, to):
        self.calls.append(("list_bookings", resource_id, from_, to))
        if resource_id in self.failing_resources:
            return error("HTTP error")
        return ok(list(self.bookings.get(resource_id, [])))

    async def create_booking(self, access_token, space_subdomain, resource_id, booking):
        self.calls.append(("create_booking", resource_id))
        self.created_bookings.append((resource_id, booking))
        created = make_booking(
            f"booking-{self._next_booking_id}",
            resource_id=resource_id,
            comments=booking.comments,
            title=booking.title,
        ).model_copy(update={"from_": booking.from_, "to": booking.to})
        self._next_booking_id += 1
        return ok(self.add_booking(created))

    async def update_booking(self, access_token, space_subdomain, booking_id, booking):
        self.calls.append(("update_booking", booking_id))
        self.updated_bookings.append((booking_id, booking))
        for resource_bookings in self.bookings.values():
            for index, existing in enumerate(resource_bookings):
                if existing.id == booking_id:
                    resource_bookings[index] = existing.model_copy(
                        update={
                            "to": booking.to,
                            "title": booking.title,
                            "comments": booking.comments,
                        }
                    )
                    return ok(resource_bookings[index])
        return error("HTTP error")

    async def list_memberships(self, access_token, space_subdomain, ids=None):
        self.calls.append(("list_memberships", ids))
        if ids is None:
            return ok(list(self.memberships))
        return ok([membership for membership in self.memberships if membership.id in ids])

    async def create_activity(self, access_token, space_subdomain, activity):
        self.calls.append(("create_activity",))
        self.activities.append(activity)
        return ok(None)


class FakeSettingsStore:
    def __init__(self, settings_list=None):
        self.settings = {settings.space_id: settings for settings in settings_list or []}

    async def get(self, key_object):
        return ok(self.settings.get(key_object["space_id"]))

    async def get_all(self):
        return ok(list(self.settings.values()))

    async def set(self, value):
        self.settings[value.space_id] = value
        return ok(None)


@pytest.fixture
def settings():
    return CobotSpaceSettings(
        access_token="space-token",
        space_id="space-1",
        space_subdomain="my-space",
        resource_mapping={"wallbox-1": "res-1", "wallbox-2": "res-2"},
        price_per_kwh=0.5,
    )


@pytest.fixture
def admin_user():
    return UserDetails(
        id="user-1",
        email="admin@example.com",
        memberships=[UserMembership(id="mem-1", space_subdomain="my-space", space_name="My Space")],
        admin_of=[UserAdminOf(space_subdomain="my-space", space_name="My Space")],
    )


@pytest.fixture
def member_user():
    return UserDetails(
        id="user-2",
        email="member@example.com",
        memberships=[UserMembership(id="mem-42", space_subdomain="my-space", space_name="My Space")],
        admin_of=[],
    )


@pytest.fixture
def cfos_client():
    return FakeCfosClient(
        [
            make_charger("wallbox-1", EvseState.VEHICLE_PRESENT, 1000.0),
            make_charger("wallbox-2", EvseState.FREE, 25000.0),
        ]
    )


@pytest.fixture
def cobot_client():
    return FakeCobotClient()
