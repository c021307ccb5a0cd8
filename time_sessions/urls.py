from django.urls import path
from . import views

app_name = "time_sessions"

urlpatterns = [
    path("report/", views.time_report, name="time_report"),
    path("tasks/<str:task_id>/total/", views.task_time_total, name="task_time_total"),
]
