from datetime import date, datetime, timedelta

from django.http import JsonResponse
from django.views.decorators.http import require_GET

from tasktracker.container import ServiceContainer
from tasktracker.timezone_utils import get_user_timezone, get_user_today
from time_sessions.aggregation import GroupBy, ReportFilter, time_report as build_time_report
from time_sessions.durations import format_duration_human_readable, format_seconds_to_time

DEFAULT_REPORT_DAYS = 7


def _split(value):
    return [v.strip() for v in value.split(',') if v.strip()] if value else None


def _report_range(request, user_tz):
    """
    Aware start/end datetimes covering the requested local dates.

    Defaults to the last seven days ending today in the user's timezone.
    """
    today, _, _ = get_user_today(request)
    start_day = request.GET.get('start')
    end_day = request.GET.get('end')
    end_day = date.fromisoformat(end_day) if end_day else today
    start_day = date.fromisoformat(start_day) if start_day else end_day - timedelta(days=DEFAULT_REPORT_DAYS - 1)
    if start_day > end_day:
        raise ValueError('start must not be after end')
    return (
        user_tz.localize(datetime.combine(start_day, datetime.min.time())),
        user_tz.localize(datetime.combine(end_day, datetime.max.time())),
    )


@require_GET
async def time_report(request):
    """
    Tracked time grouped by task, category, day, week or month.

    Query parameters: start, end (YYYY-MM-DD, local dates), group_by,
    task_ids and categories (comma separated).
    """
    user_tz = get_user_timezone(request)
    try:
        group_by = GroupBy(request.GET.get('group_by', GroupBy.TASK.value))
        start, end = _report_range(request, user_tz)
    except ValueError as e:
        return JsonResponse({'success': False, 'error': str(e)}, status=400)

    filters = ReportFilter(
        start=start,
        end=end,
        group_by=group_by,
        task_ids=_split(request.GET.get('task_ids')),
        category_names=_split(request.GET.get('categories')),
    )
    services = ServiceContainer.from_settings()
    result = await build_time_report(services.sessions, filters, tz=user_tz)
    if not result.ok:
        return JsonResponse({
            'success': False,
            'error': result.reason,
            'retryable': result.is_network_error,
        }, status=503 if result.is_network_error else 502)

    total = sum(b.total_seconds for b in result.value)
    return JsonResponse({
        'success': True,
        'group_by': group_by.value,
        'start': start.isoformat(),
        'end': end.isoformat(),
        'buckets': [b.to_dict() for b in result.value],
        'total_seconds': total,
        'formatted_total': format_duration_human_readable(total),
    })


@require_GET
async def task_time_total(request, task_id):
    """Total time tracked on one task, running sessions included."""
    services = ServiceContainer.from_settings()
    result = await services.sessions.calculate_time_spent(task_ids=[task_id])
    if not result.ok:
        return JsonResponse({
            'success': False,
            'error': result.reason,
            'retryable': result.is_network_error,
        }, status=503 if result.is_network_error else 502)
    return JsonResponse({
        'success': True,
        'task_id': task_id,
        'total_seconds': result.value,
        'formatted': format_seconds_to_time(result.value),
    })
