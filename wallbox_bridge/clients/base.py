"""
Shared HTTP request helper for the outbound API clients.

Every failure below the business logic (network, HTTP status, body parsing,
schema validation) is logged in full here and replaced by a short message,
so callers only ever see a clean result value.
"""

import json
from functools import lru_cache
import httpx
from pydantic import TypeAdapter, ValidationError

from wallbox_bridge.utils import ok, log_error_and_return_clean_message


@lru_cache(maxsize=None)
def _type_adapter(expected_type):
    return TypeAdapter(expected_type)


async def fetch_with_type_checked_json_response(
    http_client: httpx.AsyncClient,
    method: str,
    url,
    expected_type=None,
    access_token: str = None,
    basic_auth: tuple = None,
    params: dict = None,
    json_body=None,
    form_body: dict = None,
):
    """
    Send a request and validate the JSON response body.

    Args:
        http_client: Client used to send the request
        method: HTTP method
        url: Absolute request URL
        expected_type: Pydantic model (or any type a TypeAdapter accepts) the
            body must match, or None when only a 200/204 status is expected
        access_token: Optional OAuth bearer token
        basic_auth: Optional (username, password) pair
        params: Optional query parameters
        json_body: Optional body sent as JSON
        form_body: Optional body sent form-encoded

    Returns:
        dict: ``{"ok": True, "value": ...}`` or a sanitized error result
    """
    headers = {}
    auth = None
    if access_token is not None:
        headers["Authorization"] = f"Bearer {access_token}"
    elif basic_auth is not None:
        auth = httpx.BasicAuth(*basic_auth)

    try:
        response = await http_client.request(
            method.upper(),
            url,
            params=params,
            json=json_body,
            data=form_body,
            headers=headers,
            auth=auth,
        )
    except httpx.HTTPError as e:
        return log_error_and_return_clean_message("Network error", method, url, repr(e))

    if expected_type is None:
        if response.status_code in (200, 204):
            return ok(None)
        return log_error_and_return_clean_message(
            "Expected response but none came", response.status_code, response.text
        )

    if not response.is_success:
        return log_error_and_return_clean_message(
            "HTTP error", response.status_code, response.text
        )

    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        return log_error_and_return_clean_message("Parse error", e, response.text)

    try:
        value = _type_adapter(expected_type).validate_python(body)
    except ValidationError as e:
        return log_error_and_return_clean_message("Type check error", e)

    return ok(value)
