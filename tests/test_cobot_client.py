import json

import httpx
import pytest

from wallbox_bridge.clients.cobot import CobotClient
from wallbox_bridge.models.cobot import ActivityRequest, BookingRequest

BOOKING = {
    "id": "booking-1",
    "from": "2024-05-01T10:00:00+02:00",
    "to": "2024-05-01T18:00:00+02:00",
    "title": "EV charging session (usage TBD)",
    "comments": None,
    "price": "0.0",
    "currency": "EUR",
    "resource": {"id": "res-1", "name": "Charger 1"},
    "unknown_attribute": "ignored",
}


def make_client(handler):
    return CobotClient(
        "client-id",
        "client-secret",
        "cobot.me",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_list_bookings_uses_space_url_and_bearer_token():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=[BOOKING])

    result = await make_client(handler).list_bookings(
        "token-1", "my-space", "res-1", "2024-05-01T00:00:00Z", "2024-05-02T00:00:00Z"
    )

    assert result["ok"] is True
    assert result["value"][0].id == "booking-1"
    assert result["value"][0].from_ == "2024-05-01T10:00:00+02:00"

    request = requests[0]
    assert request.url.host == "my-space.cobot.me"
    assert request.url.path == "/api/resources/res-1/bookings"
    assert request.url.params["from"] == "2024-05-01T00:00:00Z"
    assert request.headers["Authorization"] == "Bearer token-1"


@pytest.mark.asyncio
async def test_get_user_details_type_check_error():
    client = make_client(lambda request: httpx.Response(200, json={"foo": 1}))

    result = await client.get_user_details("token-1")

    assert result == {"ok": False, "error": "Type check error"}


@pytest.mark.asyncio
async def test_http_error_is_sanitized():
    client = make_client(lambda request: httpx.Response(403, json={"error": "secret detail"}))

    result = await client.list_memberships("token-1", "my-space")

    assert result == {"ok": False, "error": "HTTP error"}


@pytest.mark.asyncio
async def test_invalid_json_is_a_parse_error():
    client = make_client(lambda request: httpx.Response(200, text="<html>"))

    result = await client.list_resources("token-1", "my-space")

    assert result == {"ok": False, "error": "Parse error"}


@pytest.mark.asyncio
async def test_list_memberships_filters_by_ids():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            200, json=[{"id": "mem-42", "name": "Jane Doe", "email": "jane@example.com"}]
        )

    result = await make_client(handler).list_memberships("token-1", "my-space", ids=["mem-42"])

    assert result["value"][0].name == "Jane Doe"
    assert requests[0].url.params["ids"] == "mem-42"
    assert requests[0].url.params["attributes"] == "id,name,email"


@pytest.mark.asyncio
async def test_update_booking_sends_only_given_fields():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json=BOOKING)

    result = await make_client(handler).update_booking(
        "token-1",
        "my-space",
        "booking-1",
        BookingRequest(to="2024-05-01T12:00:00Z", has_custom_price=True, price=0.25),
    )

    assert result["ok"] is True
    request = requests[0]
    assert request.method == "PUT"
    assert request.url.path == "/api/bookings/booking-1"
    assert json.loads(request.content) == {
        "to": "2024-05-01T12:00:00Z",
        "has_custom_price": True,
        "price": 0.25,
    }


@pytest.mark.asyncio
async def test_create_booking_uses_from_on_the_wire():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(201, json=BOOKING)

    await make_client(handler).create_booking(
        "token-1",
        "my-space",
        "res-1",
        BookingRequest(from_="2024-05-01T08:00:00Z", to="2024-05-01T16:00:00Z", title="t"),
    )

    body = json.loads(requests[0].content)
    assert body["from"] == "2024-05-01T08:00:00Z"
    assert "from_" not in body


@pytest.mark.asyncio
async def test_create_activity_posts_channels():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(
            201, json={"created_at": "2024-05-01T08:00:00Z", "type": "custom", "channels": ["admin"]}
        )

    result = await make_client(handler).create_activity(
        "token-1", "my-space", ActivityRequest(text="hello", channels=["admin"])
    )

    assert result["ok"] is True
    assert requests[0].url.path == "/api/activities"
    assert json.loads(requests[0].content) == {"text": "hello", "channels": ["admin"]}
