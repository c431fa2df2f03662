# projects/policies.py
"""
Centralized Project Policy Layer

All permission checks for project, task and comment actions are defined here.
Services should use these methods instead of inline permission logic.

Every check is pure: it reads only the owner/membership fields of an already
resolved Project or Task and returns a Decision. Lookups (and their NotFound)
happen before a policy is consulted.
"""
from typing import NamedTuple

from .models import Project, Task


DENIAL_FORBIDDEN = "forbidden"
DENIAL_CONFLICT = "conflict"

CODE_ALREADY_MEMBER = "already_member"
CODE_CANNOT_REMOVE_OWNER = "cannot_remove_owner"
CODE_INVALID_ASSIGNEE = "invalid_assignee"


class Decision(NamedTuple):
    allowed: bool
    reason: str = ""
    denial: str = ""
    code: str = ""

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def forbid(cls, reason: str) -> "Decision":
        return cls(False, reason, DENIAL_FORBIDDEN, DENIAL_FORBIDDEN)

    @classmethod
    def conflict(cls, reason: str, code: str) -> "Decision":
        return cls(False, reason, DENIAL_CONFLICT, code)

    def __bool__(self):
        return self.allowed


def _actor_id(user):
    return getattr(user, "pk", user)


class ProjectPolicy:
    """
    Roles are fixed: owner, member, non-member.
    """

    @staticmethod
    def is_member(user, project: Project) -> bool:
        return project.is_member(_actor_id(user))

    @staticmethod
    def is_owner(user, project: Project) -> bool:
        return project.is_owner(_actor_id(user))

    # ─────────────────────────────────────────────────────────────
    # Project
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_view_project(user, project: Project) -> Decision:
        """Read the project or list its tasks."""
        if ProjectPolicy.is_member(user, project):
            return Decision.allow()
        return Decision.forbid("Access denied")

    @staticmethod
    def can_update_project(user, project: Project) -> Decision:
        if ProjectPolicy.is_owner(user, project):
            return Decision.allow()
        return Decision.forbid("Only project owner can update")

    @staticmethod
    def can_delete_project(user, project: Project) -> Decision:
        if ProjectPolicy.is_owner(user, project):
            return Decision.allow()
        return Decision.forbid("Only project owner can delete")

    # ─────────────────────────────────────────────────────────────
    # Membership
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_add_member(user, project: Project, target) -> Decision:
        if not ProjectPolicy.is_owner(user, project):
            return Decision.forbid("Only project owner can add members")

        if ProjectPolicy.is_member(target, project):
            return Decision.conflict("User is already a member", CODE_ALREADY_MEMBER)

        return Decision.allow()

    @staticmethod
    def can_remove_member(user, project: Project, target) -> Decision:
        if not ProjectPolicy.is_owner(user, project):
            return Decision.forbid("Only project owner can remove members")

        if ProjectPolicy.is_owner(target, project):
            return Decision.conflict("Cannot remove project owner", CODE_CANNOT_REMOVE_OWNER)

        return Decision.allow()

    # ─────────────────────────────────────────────────────────────
    # Tasks
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_create_task(user, project: Project) -> Decision:
        if ProjectPolicy.is_member(user, project):
            return Decision.allow()
        return Decision.forbid("Access denied")

    @staticmethod
    def can_assign(project: Project, assignee) -> Decision:
        """Checked only when an assignment is made, never retroactively."""
        if assignee is None or ProjectPolicy.is_member(assignee, project):
            return Decision.allow()
        return Decision.conflict("Assigned user is not a project member", CODE_INVALID_ASSIGNEE)

    @staticmethod
    def can_view_task(user, task: Task) -> Decision:
        return ProjectPolicy.can_view_project(user, task.project)

    @staticmethod
    def can_update_task(user, task: Task) -> Decision:
        # Any current member may change any field, including reassignment.
        if ProjectPolicy.is_member(user, task.project):
            return Decision.allow()
        return Decision.forbid("Access denied")

    @staticmethod
    def can_delete_task(user, task: Task) -> Decision:
        if task.created_by_id == _actor_id(user):
            return Decision.allow()

        if ProjectPolicy.is_owner(user, task.project):
            return Decision.allow()

        return Decision.forbid("Only task creator or project owner can delete")

    @staticmethod
    def can_comment(user, task: Task) -> Decision:
        if ProjectPolicy.is_member(user, task.project):
            return Decision.allow()
        return Decision.forbid("Access denied")

    # ─────────────────────────────────────────────────────────────
    # Realtime
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_join_channel(user, project: Project) -> Decision:
        return ProjectPolicy.can_view_project(user, project)
