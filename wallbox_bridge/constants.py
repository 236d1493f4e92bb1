"""
Fixed values shared by the charging services and the API layer.
"""
from datetime import timedelta

# A session booking is opened this long so it shows up as "current"
BOOKING_DURATION_AT_START = timedelta(hours=8)

# Closed bookings end one minute before "now", but never before start + 1 minute
BOOKING_END_MARGIN = timedelta(minutes=1)

USER_DETAILS_CACHE_TTL_SECONDS = 60

# Placeholder used by the UI for "no specific member / free or pay at counter"
MEMBERSHIP_ID_NOBODY = "__nobody"

BOOKING_TITLE_AT_START = "EV charging session (usage TBD)"

CFOS_CHARGER_DEVICE_TYPE = "evse_powerbrain"
CFOS_SELF_ADDRESS = "evse:"
