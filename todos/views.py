import json
from dataclasses import asdict

from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from tasktracker.container import ServiceContainer
from todos.status import TaskStatus


def _unavailable(result):
    """Response for a failed foreground fetch; the client may retry."""
    return JsonResponse({
        'success': False,
        'error': result.reason,
        'retryable': result.is_network_error,
    }, status=503 if result.is_network_error else 502)


@require_GET
async def task_list(request):
    """List all tasks, served from the cache when possible."""
    services = ServiceContainer.from_settings()
    result = await services.tasks.get_all()
    if not result.ok:
        return _unavailable(result)
    return JsonResponse({
        'success': True,
        'tasks': [task.to_record() for task in result.value],
        'from_cache': result.from_cache,
    })


@require_GET
async def get_task(request, task_id):
    services = ServiceContainer.from_settings()
    result = await services.tasks.get_by_id(task_id)
    if not result.ok:
        return _unavailable(result)
    if result.value is None:
        return JsonResponse({'success': False, 'error': 'Task not found'}, status=404)
    return JsonResponse({'success': True, 'task': result.value.to_record()})


@require_POST
async def create_task(request):
    """Create a new task via AJAX. Queued locally when the backend is offline."""
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({'success': False, 'error': 'Invalid JSON'}, status=400)

    title = (data.get('title') or '').strip()
    if not title:
        return JsonResponse({'success': False, 'error': 'Title is required'}, status=400)
    data['title'] = title

    services = ServiceContainer.from_settings()
    result = await services.tasks.create(data)
    if not result.ok:
        return JsonResponse({'success': False, 'error': result.reason}, status=502)
    return JsonResponse({'success': True, 'task': result.value.to_record()})


@require_http_methods(["PATCH"])
async def update_task(request, task_id):
    """Update a task via AJAX. A status change is checked against the allowed transitions."""
    try:
        data = json.loads(request.body)
    except json.JSONDecodeError:
        return JsonResponse({'success': False, 'error': 'Invalid JSON'}, status=400)

    status = data.pop('status', None)
    if status is not None and status not in {s.value for s in TaskStatus}:
        return JsonResponse({'success': False, 'error': f'Unknown status: {status}'}, status=400)

    services = ServiceContainer.from_settings()
    result = None
    if status is not None:
        result = await services.tasks.update_status(task_id, status)
        if not result.ok and not isinstance(result.error, ValueError):
            return _unavailable(result)
        if not result.ok:
            return JsonResponse({'success': False, 'error': result.reason}, status=400)
    if data or result is None:
        result = await services.tasks.update(task_id, data)
        if not result.ok:
            return JsonResponse({'success': False, 'error': result.reason}, status=502)

    if result.value is None:
        return JsonResponse({'success': False, 'error': 'Task not found'}, status=404)
    return JsonResponse({'success': True, 'task': result.value.to_record()})


@require_http_methods(["DELETE"])
async def delete_task(request, task_id):
    services = ServiceContainer.from_settings()
    result = await services.tasks.delete(task_id)
    if not result.ok:
        return JsonResponse({'success': False, 'error': result.reason}, status=502)
    if not result.value:
        return JsonResponse({'success': False, 'error': 'Task not found'}, status=404)
    return JsonResponse({'success': True})


@require_POST
async def sync_tasks(request):
    """Push changes queued while offline to the backend."""
    services = ServiceContainer.from_settings()
    results = await services.sync_manager.sync_all()
    return JsonResponse({
        'success': all(r.success for r in results),
        'results': [{**asdict(r), 'summary': r.summary} for r in results],
    })
