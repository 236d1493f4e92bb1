from datetime import timedelta

import pytest

from conftest import make_booking, make_charger, start_comment
from wallbox_bridge.models.cfos import EvseState
from wallbox_bridge.services.charging_control import (
    ChargingControlService,
    calculate_price,
    format_price,
)
from wallbox_bridge.services.session_codec import (
    SessionEndRecord,
    SessionStartRecord,
    decode_session_record,
)
from wallbox_bridge.utils import error, parse_timestamp, utc_now


@pytest.fixture
def service(cfos_client, cobot_client):
    return ChargingControlService(cfos_client, cobot_client)


def test_calculate_price():
    assert calculate_price(500, "mem-42", 0.5) == pytest.approx(0.25)
    assert calculate_price(500, None, 0.5) == 0
    assert calculate_price(-200, "mem-42", 0.5) == 0


@pytest.mark.asyncio
async def test_start_creates_booking_then_authorizes(service, settings, admin_user, cfos_client, cobot_client):
    result = await service.start_charging_session(admin_user, settings, "wallbox-1", "mem-42")

    assert result == {"ok": True, "value": None}

    resource_id, request = cobot_client.created_bookings[0]
    assert resource_id == "res-1"
    assert request.title == "EV charging session (usage TBD)"
    assert request.membership_id == "mem-42"
    assert request.can_cancel is False
    assert request.can_change is False
    duration = parse_timestamp(request.to) - parse_timestamp(request.from_)
    assert duration == timedelta(hours=8)

    record = decode_session_record(request.comments)
    assert type(record) is SessionStartRecord
    assert record.total_energy_watt_hours_start == 1000.0
    assert record.cobot_user_id_started == "user-1"

    assert cfos_client.call_names() == ["get_charger", "authorize"]

    activity = cobot_client.activities[0]
    assert activity.text == (
        "EV charging session started by user admin@example.com "
        "on behalf of Jane Doe on charger Wallbox 1"
    )
    assert activity.channels == ["admin", "membership"]
    assert activity.source_ids == ["mem-42"]


@pytest.mark.asyncio
async def test_start_without_membership(service, settings, admin_user, cobot_client):
    result = await service.start_charging_session(admin_user, settings, "wallbox-1", None)

    assert result["ok"] is True
    _, request = cobot_client.created_bookings[0]
    assert request.membership_id is None
    assert decode_session_record(request.comments).cobot_membership_id is None

    activity = cobot_client.activities[0]
    assert activity.text == (
        "EV charging session started by user admin@example.com "
        "(no membership) on charger Wallbox 1"
    )
    assert activity.channels == ["admin"]
    assert activity.source_ids is None


@pytest.mark.asyncio
@pytest.mark.parametrize("state", [EvseState.OFFLINE, EvseState.ERROR, EvseState.CHARGING])
async def test_start_rejected_when_not_available(service, settings, admin_user, cfos_client, cobot_client, state):
    cfos_client.chargers["wallbox-1"] = make_charger("wallbox-1", state)

    result = await service.start_charging_session(admin_user, settings, "wallbox-1", "mem-42")

    assert result == {"ok": False, "error": "Wallbox with id wallbox-1 is not available"}
    assert cobot_client.created_bookings == []
    assert "authorize" not in cfos_client.call_names()


@pytest.mark.asyncio
async def test_start_on_unmapped_charger(service, settings, admin_user, cfos_client, cobot_client):
    result = await service.start_charging_session(admin_user, settings, "wallbox-9", None)

    assert result == {"ok": False, "error": "Wallbox with id wallbox-9 not mapped to a resource"}
    assert cfos_client.calls == []
    assert cobot_client.calls == []


@pytest.mark.asyncio
async def test_start_booking_failure_leaves_wallbox_untouched(service, settings, admin_user, cfos_client, cobot_client):
    async def failing_create_booking(*args, **kwargs):
        return error("HTTP error")

    cobot_client.create_booking = failing_create_booking

    result = await service.start_charging_session(admin_user, settings, "wallbox-1", "mem-42")

    assert result == {"ok": False, "error": "HTTP error"}
    assert "authorize" not in cfos_client.call_names()


@pytest.mark.asyncio
async def test_start_authorize_failure_keeps_booking(service, settings, admin_user, cfos_client, cobot_client):
    cfos_client.authorize_result = error("Network error")

    result = await service.start_charging_session(admin_user, settings, "wallbox-1", "mem-42")

    assert result == {"ok": False, "error": "Network error"}
    assert len(cobot_client.created_bookings) == 1
    assert cobot_client.activities == []


@pytest.mark.asyncio
async def test_stop_closes_booking_with_usage_and_price(service, settings, admin_user, cfos_client, cobot_client):
    started_at = utc_now() - timedelta(hours=1)
    cobot_client.add_booking(
        make_booking("booking-1", from_=started_at, comments=start_comment(energy=1000.0))
    )
    cfos_client.chargers["wallbox-1"] = make_charger("wallbox-1", EvseState.CHARGING, 1500.0)

    result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert result["ok"] is True
    stop_result = result["value"]
    assert stop_result.watt_hours_used == 500.0
    assert stop_result.price == pytest.approx(0.25)
    assert stop_result.duration == pytest.approx(3600, abs=5)

    booking_id, request = cobot_client.updated_bookings[0]
    assert booking_id == "booking-1"
    assert request.title == "EV charging session (0.500 kWh)"
    assert request.has_custom_price is True
    assert request.price == pytest.approx(0.25)
    booking_end = parse_timestamp(request.to)
    assert abs(booking_end - (utc_now() - timedelta(minutes=1))) < timedelta(seconds=5)

    record = decode_session_record(request.comments)
    assert type(record) is SessionEndRecord
    assert record.total_energy_watt_hours_start == 1000.0
    assert record.total_energy_watt_hours_end == 1500.0
    assert record.energy_watt_hours_used == 500.0
    assert record.price == "0.25"
    assert record.cobot_membership_id == "mem-42"
    assert record.cobot_user_id_ended == "user-1"

    assert cfos_client.call_names() == ["get_charger", "deauthorize"]
    assert cobot_client.activities[0].text == (
        "EV charging session ended by user admin@example.com "
        "on behalf of Jane Doe on charger Wallbox 1"
    )


@pytest.mark.parametrize(
    "price, expected",
    [(0.125, "0.13"), (0.625, "0.63"), (0.375, "0.38"), (0.0, "0.00"), (12.3, "12.30")],
)
def test_format_price_rounds_ties_up(price, expected):
    assert format_price(price) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("energy_end, expected_price", [(1250.0, "0.13"), (2250.0, "0.63")])
async def test_stop_price_in_record_rounds_ties_up(service, settings, admin_user, cfos_client, cobot_client, energy_end, expected_price):
    cobot_client.add_booking(make_booking("booking-1", comments=start_comment(energy=1000.0)))
    cfos_client.chargers["wallbox-1"] = make_charger("wallbox-1", EvseState.CHARGING, energy_end)

    result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert result["ok"] is True
    _, request = cobot_client.updated_bookings[0]
    assert decode_session_record(request.comments).price == expected_price


@pytest.mark.asyncio
async def test_stop_right_after_start_keeps_booking_one_minute_long(service, settings, admin_user, cfos_client, cobot_client):
    started_at = utc_now() - timedelta(seconds=10)
    cobot_client.add_booking(make_booking("booking-1", from_=started_at, comments=start_comment()))

    result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert result["ok"] is True
    _, request = cobot_client.updated_bookings[0]
    assert parse_timestamp(request.to) == parse_timestamp(
        cobot_client.bookings["res-1"][0].from_
    ) + timedelta(minutes=1)


@pytest.mark.asyncio
async def test_stop_free_session_costs_nothing(service, settings, admin_user, cfos_client, cobot_client):
    cobot_client.add_booking(
        make_booking("booking-1", comments=start_comment(membership_id=None, energy=1000.0))
    )
    cfos_client.chargers["wallbox-1"] = make_charger("wallbox-1", EvseState.CHARGING, 3000.0)

    result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert result["value"].price == 0
    _, request = cobot_client.updated_bookings[0]
    assert decode_session_record(request.comments).price == "0.00"
    assert cobot_client.activities[0].channels == ["admin"]


@pytest.mark.asyncio
async def test_stop_without_booking_still_cuts_power(service, settings, admin_user, cfos_client, cobot_client):
    result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert result == {"ok": False, "error": "Charger stopped but no active booking found"}
    assert "deauthorize" in cfos_client.call_names()
    assert cobot_client.updated_bookings == []


@pytest.mark.asyncio
async def test_stop_with_failing_booking_lookup(service, settings, admin_user, cfos_client, cobot_client):
    cobot_client.failing_resources.add("res-1")

    result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert result == {"ok": False, "error": "Charger stopped but error fetching bookings"}
    assert "deauthorize" in cfos_client.call_names()


@pytest.mark.asyncio
async def test_stop_booking_for_other_charger(service, settings, admin_user, cobot_client):
    cobot_client.add_booking(
        make_booking("booking-1", comments=start_comment(charger_id="wallbox-2"))
    )

    result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert result == {"ok": False, "error": "Charger stopped but booking is for a different charger"}
    assert cobot_client.updated_bookings == []


@pytest.mark.asyncio
async def test_stop_by_system(service, settings, cobot_client):
    cobot_client.add_booking(make_booking("booking-1", comments=start_comment()))

    result = await service.stop_charging_session(None, settings, "wallbox-1")

    assert result["ok"] is True
    _, request = cobot_client.updated_bookings[0]
    record = decode_session_record(request.comments)
    assert record.cobot_user_id_ended is None
    assert record.cobot_user_email_ended is None
    assert cobot_client.activities[0].text == (
        "EV charging session ended by system on behalf of Jane Doe on charger Wallbox 1"
    )


@pytest.mark.asyncio
async def test_stop_deauthorize_failure(service, settings, admin_user, cfos_client, cobot_client):
    cfos_client.deauthorize_result = error("Network error")
    cobot_client.add_booking(make_booking("booking-1", comments=start_comment()))

    result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert result == {"ok": False, "error": "Network error"}
    assert cobot_client.updated_bookings == []


@pytest.mark.asyncio
async def test_unknown_membership_name_falls_back_to_id(service, settings, admin_user, cobot_client):
    cobot_client.memberships = []

    result = await service.start_charging_session(admin_user, settings, "wallbox-1", "mem-42")

    assert result["ok"] is True
    assert "on behalf of mem-42 on charger" in cobot_client.activities[0].text


@pytest.mark.asyncio
async def test_without_session_only_touches_hardware(service, cfos_client, cobot_client):
    assert (await service.start_charging_without_session("wallbox-1"))["ok"] is True
    assert (await service.stop_charging_without_session("wallbox-1"))["ok"] is True

    assert cfos_client.call_names() == ["authorize", "deauthorize"]
    assert cobot_client.calls == []


@pytest.mark.asyncio
async def test_stop_deauthorizes_before_ledger_lookup(service, settings, admin_user, cfos_client, cobot_client):
    deauthorized_before_lookup = []
    list_bookings = cobot_client.list_bookings

    async def recording_list_bookings(*args, **kwargs):
        deauthorized_before_lookup.append("deauthorize" in cfos_client.call_names())
        return await list_bookings(*args, **kwargs)

    cobot_client.list_bookings = recording_list_bookings

    await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert deauthorized_before_lookup == [True]


@pytest.mark.asyncio
async def test_start_then_stop(service, settings, admin_user, cfos_client, cobot_client):
    cfos_client.chargers["wallbox-1"] = make_charger("wallbox-1", EvseState.FREE, 1000.0)

    start_result = await service.start_charging_session(admin_user, settings, "wallbox-1", "mem-42")
    assert start_result["ok"] is True
    assert ("authorize", "wallbox-1") in cfos_client.calls

    cfos_client.chargers["wallbox-1"] = make_charger("wallbox-1", EvseState.CHARGING, 1500.0)
    stop_result = await service.stop_charging_session(admin_user, settings, "wallbox-1")

    assert stop_result["ok"] is True
    assert stop_result["value"].watt_hours_used == 500.0
    booking = cobot_client.bookings["res-1"][0]
    record = decode_session_record(booking.comments)
    assert type(record) is SessionEndRecord
    assert record.price == "0.25"
    assert booking.title == "EV charging session (0.500 kWh)"
    assert parse_timestamp(booking.to) - parse_timestamp(booking.from_) == timedelta(minutes=1)
