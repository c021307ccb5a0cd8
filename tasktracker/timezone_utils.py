from datetime import datetime

import pytz
from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime


def get_default_timezone():
    """Timezone used for calendar bucketing when the caller gives none."""
    try:
        return pytz.timezone(settings.TIME_ZONE)
    except pytz.exceptions.UnknownTimeZoneError:
        return pytz.UTC


def get_user_timezone(request):
    """
    Get the user's timezone from the cookie set by JavaScript.
    Falls back to the project timezone if no timezone is set.
    """
    user_tz_name = request.COOKIES.get('user_timezone')
    if not user_tz_name:
        return get_default_timezone()
    try:
        return pytz.timezone(user_tz_name)
    except pytz.exceptions.UnknownTimeZoneError:
        return pytz.UTC


def get_user_today(request):
    """
    Get today's date in the user's timezone.
    Returns both the date object and timezone-aware start/end datetimes.
    """
    user_tz = get_user_timezone(request)
    now_in_user_tz = timezone.now().astimezone(user_tz)
    today = now_in_user_tz.date()

    # Create timezone-aware start and end of day in user's timezone
    today_start = user_tz.localize(datetime.combine(today, datetime.min.time()))
    today_end = user_tz.localize(datetime.combine(today, datetime.max.time()))

    return today, today_start, today_end


def parse_timestamp(value):
    """
    Parse an ISO 8601 timestamp from the backend into an aware datetime.

    Returns None for empty values. Naive values are taken as UTC, which is how
    the backend stores timestamps.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = parse_datetime(str(value))
        if parsed is None:
            raise ValueError(f"Invalid timestamp: {value!r}")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, pytz.UTC)
    return parsed


def format_timestamp(value):
    """Inverse of parse_timestamp, for JSON records."""
    return value.isoformat() if value else None
