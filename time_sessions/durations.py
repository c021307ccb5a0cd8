"""
Duration handling for time sessions.

The backend stores a stopped session's duration as a PostgreSQL interval
rendered as text. Depending on how the row was written it comes back as
"5400 seconds", "01:30:00" or "1 hour 30 mins". Parsing never raises: a
duration that can't be read counts as 0 and callers fall back to the
session timestamps.
"""
import logging
import re

from django.utils import timezone

logger = logging.getLogger(__name__)

_SECONDS_RE = re.compile(r'^(\d+) seconds?$')
_CLOCK_RE = re.compile(r'^(\d{2,}):(\d{2}):(\d{2})$')
_HOURS_RE = re.compile(r'(\d+)\s+hours?')
_MINUTES_RE = re.compile(r'(\d+)\s+mins?')
_SECS_RE = re.compile(r'(\d+)\s+secs?')


def parse_duration_to_seconds(text):
    """
    Parse a textual duration into whole seconds.

    Forms, tried in order:
        "<N> seconds" (or "<N> second")
        "HH:MM:SS"
        any of "<N> hour(s)", "<N> min(s)", "<N> sec(s)"

    Returns 0 for None, empty or unrecognised text.
    """
    if not text:
        return 0
    text = str(text).strip()

    match = _SECONDS_RE.match(text)
    if match:
        return int(match.group(1))

    match = _CLOCK_RE.match(text)
    if match:
        hours, minutes, seconds = (int(g) for g in match.groups())
        return hours * 3600 + minutes * 60 + seconds

    total = 0
    match = _HOURS_RE.search(text)
    if match:
        total += int(match.group(1)) * 3600
    match = _MINUTES_RE.search(text)
    if match:
        total += int(match.group(1)) * 60
    match = _SECS_RE.search(text)
    if match:
        total += int(match.group(1))
    return total


def format_seconds_to_time(total_seconds):
    """Format seconds as zero-padded "HH:MM:SS"; hours do not wrap at 24."""
    total_seconds = max(0, int(total_seconds or 0))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_duration_human_readable(total_seconds):
    """Format seconds as "3h 24m", dropping the hours when there are none."""
    total_seconds = max(0, int(total_seconds or 0))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_duration(text):
    """Format a stored duration string as "HH:MM:SS"."""
    if not text:
        return '00:00:00'
    total_seconds = parse_duration_to_seconds(text)
    if total_seconds > 0:
        return format_seconds_to_time(total_seconds)
    logger.warning("Unable to parse duration format: %r", text)
    return '00:00:00'


def seconds_to_interval(total_seconds):
    """Canonical interval text persisted when a session stops."""
    return f"{max(0, int(total_seconds))} seconds"


def _elapsed_seconds(start, end):
    if start is None or end is None:
        return 0
    return max(0, int((end - start).total_seconds()))


def effective_duration_seconds(session, now=None):
    """
    Duration of a session in seconds, as shown and aggregated.

    1. The stored duration, when it parses to more than 0.
    2. end_time - start_time for stopped sessions.
    3. now - start_time for running sessions.

    Negative spans (clock skew) clamp to 0. Stateless: callers that want a
    live counter call it again on every tick.
    """
    stored = parse_duration_to_seconds(session.duration)
    if stored > 0:
        return stored
    if session.end_time is not None:
        return _elapsed_seconds(session.start_time, session.end_time)
    if now is None:
        now = timezone.now()
    return _elapsed_seconds(session.start_time, now)


def total_duration_seconds(sessions, now=None):
    """Sum of effective durations over the sessions that aren't deleted."""
    if now is None:
        now = timezone.now()
    return sum(
        effective_duration_seconds(session, now)
        for session in sessions
        if not session.is_deleted
    )
