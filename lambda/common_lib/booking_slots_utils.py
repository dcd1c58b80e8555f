"""
Booking slot engine

Generates the bookable slots for a date range and independently checks
a client-supplied slot start against the same rules. Both views work in
UTC minutes-of-day, so anything the generator emits the validator
accepts and vice versa.
"""

import re
from datetime import date, datetime, timedelta, timezone


INSTANT_FORMAT = '%Y-%m-%dT%H:%M:%SZ'
INSTANT_PATTERN = re.compile(
    r'^(?P<seconds>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(?P<fraction>\d{1,6}))?Z$'
)

SLOT_REQUIRED = "Please select an available time slot."
SLOT_NOT_UTC = "Slot must be a UTC timestamp ending in Z."
SLOT_TOO_SOON = "Selected slot is too soon. Please choose a later time."
SLOT_OUTSIDE_WINDOW = "Selected slot is outside the booking window."
SLOT_NOT_WORKDAY = "Selected slot is not on an available day."
SLOT_OUTSIDE_HOURS = "Selected slot is outside available hours."


def format_instant(value):
    """Format an aware datetime as a second-precision UTC instant"""
    return value.astimezone(timezone.utc).strftime(INSTANT_FORMAT)


def parse_instant(value):
    """
    Parse YYYY-MM-DDTHH:MM:SS[.ffffff]Z; other ISO-8601 shapes are rejected

    Returns:
        datetime: Aware UTC datetime, or None if not parseable
    """
    if not isinstance(value, str):
        return None
    match = INSTANT_PATTERN.match(value.strip())
    if not match:
        return None
    try:
        parsed = datetime.strptime(match.group('seconds'), INSTANT_FORMAT[:-1])
    except ValueError:
        return None
    fraction = match.group('fraction') or ''
    return parsed.replace(microsecond=int(fraction.ljust(6, '0')), tzinfo=timezone.utc)


def parse_date(value):
    """Parse a YYYY-MM-DD calendar date, or None"""
    if not isinstance(value, str) or len(value.strip()) != 10:
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def utc_weekday(day):
    """0=Sunday ... 6=Saturday"""
    return day.isoweekday() % 7


def earliest_start(now, config):
    return now + timedelta(minutes=config.min_lead_minutes)


def within_horizon(day, now, config):
    """True when `day` is fewer than lookahead_days after today (UTC)"""
    offset = (day - now.astimezone(timezone.utc).date()).days
    return 0 <= offset < config.lookahead_days


def generate_slots(start_date, days, now, config):
    """
    Yield bookable slots in chronological order

    Args:
        start_date (date): First UTC day to consider
        days (int): Number of consecutive days to scan
        now (datetime): Aware reference instant
        config (Config): Booking window settings

    Yields:
        dict: {'slotStart': str, 'slotEnd': str}
    """
    duration = config.slot_duration_minutes
    first_tick = config.start_hour_utc * 60
    last_minute = config.end_hour_utc * 60
    not_before = earliest_start(now, config)

    for offset in range(max(0, days)):
        day = start_date + timedelta(days=offset)
        if utc_weekday(day) not in config.workdays_utc:
            continue
        if not within_horizon(day, now, config):
            continue

        midnight = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
        tick = first_tick
        while tick + duration <= last_minute:
            slot_start = midnight + timedelta(minutes=tick)
            tick += duration
            if slot_start < not_before:
                continue
            yield {
                'slotStart': format_instant(slot_start),
                'slotEnd': format_instant(slot_start + timedelta(minutes=duration)),
            }


def validate_slot_start(value, now, config):
    """
    Re-derive legality of a requested slot start from raw config

    Returns:
        str: Field error message, or None when the slot is bookable
    """
    if not isinstance(value, str) or not value.strip():
        return SLOT_REQUIRED

    slot_start = parse_instant(value)
    if slot_start is None:
        return SLOT_NOT_UTC

    if slot_start < earliest_start(now, config):
        return SLOT_TOO_SOON

    if not within_horizon(slot_start.date(), now, config):
        return SLOT_OUTSIDE_WINDOW

    if utc_weekday(slot_start.date()) not in config.workdays_utc:
        return SLOT_NOT_WORKDAY

    duration = config.slot_duration_minutes
    minute_of_day = slot_start.hour * 60 + slot_start.minute
    offset = minute_of_day - config.start_hour_utc * 60
    if (offset < 0
            or minute_of_day + duration > config.end_hour_utc * 60
            or offset % duration != 0
            or slot_start.second != 0
            or slot_start.microsecond != 0):
        return SLOT_OUTSIDE_HOURS

    return None


def slot_end_for(slot_start_value, config):
    start = parse_instant(slot_start_value)
    return format_instant(start + timedelta(minutes=config.slot_duration_minutes))
