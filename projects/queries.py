# projects/queries.py
"""
Read side of the project graph.

References are materialized explicitly here (select/prefetch) before the
policy layer looks at them. ``task_count`` is aggregated at read time on
every query and never stored.
"""
from django.contrib.auth import get_user_model
from django.db.models import Count, Prefetch, Q, QuerySet

from core.exceptions import NotFound
from .models import Comment, Project, ProjectMembership, Task

User = get_user_model()


def _memberships():
    return Prefetch(
        "memberships",
        queryset=ProjectMembership.objects.select_related("user").order_by("joined_at", "id"),
    )


def _project_queryset() -> QuerySet:
    return (
        Project.objects
        .select_related("owner")
        .prefetch_related(_memberships())
        .annotate(task_count=Count("tasks", distinct=True))
    )


def _task_queryset() -> QuerySet:
    return (
        Task.objects
        .select_related("project", "project__owner", "assigned_to", "created_by")
        .prefetch_related(
            Prefetch("project__memberships", queryset=ProjectMembership.objects.order_by("joined_at", "id")),
            Prefetch("comments", queryset=Comment.objects.select_related("author").order_by("created_at", "id")),
        )
    )


def projects_for_user(user) -> QuerySet:
    return _project_queryset().filter(memberships__user=user).order_by("-created_at", "-id")


def get_project(project_id) -> Project:
    try:
        return _project_queryset().get(pk=project_id)
    except (Project.DoesNotExist, ValueError, TypeError):
        raise NotFound("Project not found")


def tasks_for_project(project) -> QuerySet:
    return _task_queryset().filter(project=project).order_by("-created_at", "-id")


def tasks_for_user(user) -> QuerySet:
    return (
        _task_queryset()
        .filter(Q(assigned_to=user) | Q(created_by=user))
        .order_by("-created_at", "-id")
    )


def get_task(task_id) -> Task:
    try:
        return _task_queryset().get(pk=task_id)
    except (Task.DoesNotExist, ValueError, TypeError):
        raise NotFound("Task not found")


def get_user(user_id, active_only=True):
    users = User.objects.filter(is_active=True) if active_only else User.objects.all()
    try:
        return users.get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError):
        raise NotFound("User not found")
