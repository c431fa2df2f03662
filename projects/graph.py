# projects/graph.py
"""
Invariant-preserving constructors and mutators for the project graph.

Ownership:
- Project owns its tasks (deleting a project deletes them).
- Task owns its comments.
- Users are referenced, never owned.

``create_project`` is the only supported way to build a Project; it inserts
the owner as the first member in the same transaction, so ``owner in members``
holds from the first committed state onwards.
"""
from typing import Dict, List, Tuple

from django.db import transaction
from django.utils import timezone

from core.exceptions import Conflict
from .models import Comment, Project, ProjectMembership, Task
from .policies import CODE_CANNOT_REMOVE_OWNER


def create_project(owner, name: str, description: str = "") -> Project:
    with transaction.atomic():
        project = Project.objects.create(
            name=name,
            description=description or "",
            owner=owner,
            status=Project.STATUS_ACTIVE,
        )
        ProjectMembership.objects.create(project=project, user=owner)
    return project


def add_member(project: Project, user) -> bool:
    """
    Set-union insert. Returns True when a new membership row was written.

    Two concurrent adds of the same user collapse into one row: the unique
    constraint rejects the second insert and get_or_create falls back to a read.
    """
    with transaction.atomic():
        _, created = ProjectMembership.objects.get_or_create(project=project, user=user)
        if created:
            _touch(Project, project.pk)
    return created


def remove_member(project: Project, user_id) -> bool:
    """
    Delete a membership row. The owner can never be removed.
    Task assignments pointing at the removed user are left as they are.
    """
    if project.is_owner(user_id):
        raise Conflict("Cannot remove project owner", code=CODE_CANNOT_REMOVE_OWNER)

    with transaction.atomic():
        deleted, _ = ProjectMembership.objects.filter(project=project, user_id=user_id).delete()
        if deleted:
            _touch(Project, project.pk)
    return bool(deleted)


def delete_project(project: Project) -> int:
    """
    Cascade: tasks (and with them their comments) first, then the project.
    Returns the number of tasks removed.
    """
    with transaction.atomic():
        task_count = Task.objects.filter(project=project).count()
        Task.objects.filter(project=project).delete()
        project.delete()
    return task_count


def create_task(project: Project, created_by, **fields) -> Task:
    fields.setdefault("status", Task.STATUS_TODO)
    fields.setdefault("priority", Task.PRIORITY_MEDIUM)
    if fields.get("description") is None:
        fields["description"] = ""
    with transaction.atomic():
        return Task.objects.create(project=project, created_by=created_by, **fields)


def append_comment(task: Task, author, text: str) -> Comment:
    with transaction.atomic():
        comment = Comment.objects.create(task=task, author=author, text=text)
        _touch(Task, task.pk)
    return comment


def apply_changes(instance, changes: Dict, allowed: Tuple[str, ...]) -> List[str]:
    """
    Partial update: set only the supplied keys and return the names of the
    fields whose value actually changed. Unknown keys are ignored.
    """
    changed = []
    for field, value in changes.items():
        if field not in allowed:
            continue
        if field == "assigned_to":
            current = instance.assigned_to_id
            new = value.pk if value is not None else None
            if current != new:
                instance.assigned_to = value
                changed.append(field)
            continue
        if getattr(instance, field) != value:
            setattr(instance, field, value)
            changed.append(field)
    return changed


def save_changes(instance, changed: List[str]) -> bool:
    """Write only when something changed, so a no-op update leaves the row untouched."""
    if not changed:
        return False
    instance.save(update_fields=changed + ["updated_at"])
    return True


def _touch(model, pk):
    model.objects.filter(pk=pk).update(updated_at=timezone.now())
