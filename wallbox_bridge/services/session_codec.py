"""
Charging session records stored in booking comments.

The membership backend has no notion of a charging session, so a session is
a booking on the charger's resource whose free-text comment holds one of two
JSON records:

* ``start``: written when the session is opened,
* ``end``: overwrites the start record when the session is closed.

Records carry an explicit ``kind`` tag. Comments written before the tag
existed are still understood: they are tried as ``end`` first, since every
``end`` record is also a structurally valid ``start`` record.

This module is the only place that encodes or decodes comment JSON.
"""

import json
from datetime import datetime
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from wallbox_bridge.models.cobot import Booking
from wallbox_bridge.utils import parse_timestamp


class SessionCommentError(Exception):
    """A booking comment does not hold a usable session record."""

    reason = "invalid comment"


class MissingCommentError(SessionCommentError):
    reason = "no comment"


class CommentNotJsonError(SessionCommentError):
    reason = "comment not JSON"


class CommentSchemaError(SessionCommentError):
    reason = "comment not a charging session record"


class SessionStartRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["start"] = "start"
    charger_id: str = Field(alias="chargerId")
    cobot_user_id_started: str = Field(alias="cobotUserIdStarted", min_length=1)
    cobot_user_email_started: str = Field(alias="cobotUserEmailStarted")
    # None: no specific member, the session is free or paid at the counter
    cobot_membership_id: Optional[str] = Field(alias="cobotMembershipId")
    total_energy_watt_hours_start: float = Field(alias="totalEnergyWattHoursStart")


class SessionEndRecord(SessionStartRecord):
    kind: Literal["end"] = "end"
    # None when the session was closed by the monitoring sweep
    cobot_user_id_ended: Optional[str] = Field(alias="cobotUserIdEnded")
    cobot_user_email_ended: Optional[str] = Field(alias="cobotUserEmailEnded")
    total_energy_watt_hours_end: float = Field(alias="totalEnergyWattHoursEnd")
    energy_watt_hours_used: float = Field(alias="energyWattHoursUsed")
    price: str


SessionRecord = Annotated[
    Union[SessionStartRecord, SessionEndRecord], Field(discriminator="kind")
]
_session_record_adapter = TypeAdapter(SessionRecord)


class BookingWindow(BaseModel):
    """Booking id and time window attached to a decoded record."""

    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(alias="bookingId")
    from_: datetime = Field(alias="from")
    to: datetime


class RunningSession(SessionStartRecord, BookingWindow):
    """An open session: the start record plus its booking."""


class CompletedSession(SessionEndRecord, BookingWindow):
    """A closed session: the end record plus its (shortened) booking."""


def encode_session_record(record: SessionStartRecord):
    """Serialize a start or end record for a booking comment."""
    return json.dumps(record.model_dump(mode="json", by_alias=True), indent=2)


def _load_comment(comment):
    if not comment:
        raise MissingCommentError()
    try:
        data = json.loads(comment)
    except (json.JSONDecodeError, RecursionError) as e:
        raise CommentNotJsonError() from e
    if not isinstance(data, dict):
        raise CommentSchemaError()
    return data


def _validate(model, data):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise CommentSchemaError() from e


def decode_session_record(comment):
    """
    Decode a comment holding either record shape.

    Raises:
        SessionCommentError: one of its subclasses, naming why the comment
            was rejected
    """
    data = _load_comment(comment)
    if "kind" in data:
        try:
            return _session_record_adapter.validate_python(data)
        except ValidationError as e:
            raise CommentSchemaError() from e

    # Untagged comment, try the larger shape first
    try:
        return _validate(SessionEndRecord, {**data, "kind": "end"})
    except CommentSchemaError:
        return _validate(SessionStartRecord, {**data, "kind": "start"})


def session_from_booking(booking: Booking, record):
    """Attach a booking's id and window to a decoded record."""
    window = {
        "booking_id": booking.id,
        "from_": parse_timestamp(booking.from_),
        "to": parse_timestamp(booking.to),
    }
    fields = record.model_dump()
    if isinstance(record, SessionEndRecord):
        return CompletedSession(**fields, **window)
    return RunningSession(**fields, **window)
