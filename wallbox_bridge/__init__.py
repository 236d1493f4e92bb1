"""
Wallbox bridge: charging sessions on cFos wallboxes, billed through Cobot bookings.
"""
