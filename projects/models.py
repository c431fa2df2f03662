from django.conf import settings
from django.db import models


class Project(models.Model):
    """
    A collaborative project.

    The owner is always a member. Projects are only created through
    ``projects.graph.create_project``, which writes the owner membership in
    the same transaction.
    """
    STATUS_ACTIVE = "active"
    STATUS_COMPLETED = "completed"
    STATUS_ARCHIVED = "archived"

    STATUS_CHOICES = [
        (STATUS_ACTIVE, "Active"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_ARCHIVED, "Archived"),
    ]

    NAME_MIN_LENGTH = 3
    NAME_MAX_LENGTH = 100
    DESCRIPTION_MAX_LENGTH = 500

    MUTABLE_FIELDS = ("name", "description", "status")

    name =models.CharField(max_length=NAME_MAX_LENGTH)
    description = models.TextField(blank=True, default="")
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="owned_projects",
    )
    members = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        through="ProjectMembership",
        related_name="projects",
    )

    status = models.CharField(
        max_length=32,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return self.name

    def ordered_members(self):
        """Members in the order they joined (owner first)."""
        return [membership.user for membership in self.memberships.all()]

    def member_ids(self):
        return {membership.user_id for membership in self.memberships.all()}

    def is_member(self, user_id) -> bool:
        return user_id in self.member_ids()

    def is_owner(self, user_id) -> bool:
        return self.owner_id == user_id


class ProjectMembership(models.Model):
    """Membership row; ``joined_at`` keeps display order stable."""
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="project_memberships",
    )
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["joined_at", "id"]
        constraints = [
            models.UniqueConstraint(fields=["project", "user"], name="unique_project_member"),
        ]

    def __str__(self):
        return f"{self.user} in {self.project}"


class Task(models.Model):
    STATUS_TODO = "todo"
    STATUS_IN_PROGRESS = "in-progress"
    STATUS_DONE = "done"

    STATUS_CHOICES = [
        (STATUS_TODO, "To do"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_DONE, "Done"),
    ]

    PRIORITY_LOW = "low"
    PRIORITY_MEDIUM = "medium"
    PRIORITY_HIGH = "high"

    PRIORITY_CHOICES = [
        (PRIORITY_LOW, "Low"),
        (PRIORITY_MEDIUM, "Medium"),
        (PRIORITY_HIGH, "High"),
    ]

    TITLE_MIN_LENGTH = 3
    TITLE_MAX_LENGTH = 200
    DESCRIPTION_MAX_LENGTH = 1000

    # Fields that may be changed after creation. project and created_by are fixed.
    MUTABLE_FIELDS = ("title", "description", "assigned_to", "status", "priority", "due_date")

    title = models.CharField(max_length=TITLE_MAX_LENGTH)
    description = models.TextField(blank=True, default="")
    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="tasks",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_tasks",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="created_tasks",
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_TODO)
    priority = models.CharField(max_length=10, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)
    due_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["project", "-created_at"], name="task_project_created_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.project_id})"


class Comment(models.Model):
    """Append-only discussion entry; removed only with its task."""
    TEXT_MAX_LENGTH = 500

    task = models.ForeignKey(
        Task,
        on_delete=models.CASCADE,
        related_name="comments",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="task_comments",
    )
    text = models.CharField(max_length=TEXT_MAX_LENGTH)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.author} on {self.task_id}"
