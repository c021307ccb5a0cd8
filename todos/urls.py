from django.urls import path
from . import views

app_name = "todos"

urlpatterns = [
    path("", views.task_list, name="task_list"),
    path("api/create/", views.create_task, name="create_task"),
    path("api/sync/", views.sync_tasks, name="sync_tasks"),
    path("api/<str:task_id>/", views.get_task, name="get_task"),
    path("api/<str:task_id>/update/", views.update_task, name="update_task"),
    path("api/<str:task_id>/delete/", views.delete_task, name="delete_task"),
]
