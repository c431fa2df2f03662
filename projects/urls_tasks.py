# projects/urls_tasks.py - Task and comment routes, mounted under /api/tasks/

from django.urls import path

from .views import (
    TaskListCreateView,
    ProjectTasksView,
    TaskDetailView,
    TaskCommentsView,
)

urlpatterns = [
    path("", TaskListCreateView.as_view(), name="tasks-list-create"),
    path("project/<int:project_id>/", ProjectTasksView.as_view(), name="tasks-by-project"),
    path("<int:task_id>/", TaskDetailView.as_view(), name="tasks-detail"),
    path("<int:task_id>/comments/", TaskCommentsView.as_view(), name="tasks-comments"),
]
