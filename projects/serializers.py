from django.utils.dateparse import parse_datetime
from rest_framework import serializers

from users.serializers import UserSummarySerializer
from .models import Comment, Project, Task


# ─────────────────────────────────────────────────────────────
# Read serializers (responses + broadcast payloads)
# ─────────────────────────────────────────────────────────────

class CommentSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Comment
        fields = ['id', 'author', 'text', 'createdAt']
        read_only_fields = fields


class ProjectSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(read_only=True)
    members = serializers.SerializerMethodField()
    taskCount = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Project
        fields = [
            'id',
            'name',
            'description',
            'owner',
            'members',
            'status',
            'taskCount',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields

    def get_members(self, obj):
        return UserSummarySerializer(obj.ordered_members(), many=True).data

    def get_taskCount(self, obj):
        # Annotated by projects.queries; counted on demand otherwise.
        count = getattr(obj, 'task_count', None)
        if count is None:
            count = obj.tasks.count()
        return count


class ProjectRefSerializer(serializers.ModelSerializer):
    class Meta:
        model = Project
        fields = ['id', 'name']
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    project = ProjectRefSerializer(read_only=True)
    assignedTo = UserSummarySerializer(source='assigned_to', read_only=True, allow_null=True)
    createdBy = UserSummarySerializer(source='created_by', read_only=True)
    dueDate = serializers.DateField(source='due_date', read_only=True, allow_null=True)
    comments = CommentSerializer(many=True, read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Task
        fields = [
            'id',
            'title',
            'description',
            'project',
            'assignedTo',
            'createdBy',
            'status',
            'priority',
            'dueDate',
            'comments',
            'createdAt',
            'updatedAt',
        ]
        read_only_fields = fields


# ─────────────────────────────────────────────────────────────
# Input serializers: shape checks only, no database access
# ─────────────────────────────────────────────────────────────

class DueDateField(serializers.DateField):
    """Accepts a plain date or a full ISO 8601 timestamp (date part kept)."""

    def to_internal_value(self, value):
        if isinstance(value, str) and 'T' in value:
            try:
                parsed = parse_datetime(value.strip())
            except ValueError:
                # well formed but out of range, e.g. month 13
                parsed = None
            if parsed is None:
                self.fail('invalid', format='YYYY-MM-DD')
            return parsed.date()
        return super().to_internal_value(value)


class ProjectCreateSerializer(serializers.Serializer):
    name = serializers.CharField(
        min_length=Project.NAME_MIN_LENGTH,
        max_length=Project.NAME_MAX_LENGTH,
        error_messages={
            'required': 'Project name is required',
            'blank': 'Project name is required',
            'min_length': 'Project name must be between 3-100 characters',
            'max_length': 'Project name must be between 3-100 characters',
        },
    )
    description = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=Project.DESCRIPTION_MAX_LENGTH,
        error_messages={'max_length': 'Description cannot exceed 500 characters'},
    )


class ProjectUpdateSerializer(ProjectCreateSerializer):
    status = serializers.ChoiceField(
        choices=Project.STATUS_CHOICES,
        required=False,
        error_messages={'invalid_choice': 'Invalid status'},
    )

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('partial', True)
        super().__init__(*args, **kwargs)


class MemberSerializer(serializers.Serializer):
    userId = serializers.IntegerField(
        source='user_id',
        min_value=1,
        error_messages={
            'required': 'User ID is required',
            'invalid': 'Invalid user ID',
            'min_value': 'Invalid user ID',
        },
    )


class TaskCreateSerializer(serializers.Serializer):
    title = serializers.CharField(
        min_length=Task.TITLE_MIN_LENGTH,
        max_length=Task.TITLE_MAX_LENGTH,
        error_messages={
            'required': 'Task title is required',
            'blank': 'Task title is required',
            'min_length': 'Title must be between 3-200 characters',
            'max_length': 'Title must be between 3-200 characters',
        },
    )
    description = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        max_length=Task.DESCRIPTION_MAX_LENGTH,
        error_messages={'max_length': 'Description cannot exceed 1000 characters'},
    )
    project = serializers.IntegerField(
        source='project_id',
        min_value=1,
        error_messages={
            'required': 'Project is required',
            'invalid': 'Invalid project ID',
            'min_value': 'Invalid project ID',
        },
    )
    assignedTo = serializers.IntegerField(
        source='assigned_to_id',
        required=False,
        allow_null=True,
        min_value=1,
        error_messages={'invalid': 'Invalid user ID', 'min_value': 'Invalid user ID'},
    )
    status = serializers.ChoiceField(
        choices=Task.STATUS_CHOICES,
        required=False,
        error_messages={'invalid_choice': 'Invalid status'},
    )
    priority = serializers.ChoiceField(
        choices=Task.PRIORITY_CHOICES,
        required=False,
        error_messages={'invalid_choice': 'Invalid priority'},
    )
    dueDate = DueDateField(
        source='due_date',
        required=False,
        allow_null=True,
        error_messages={'invalid': 'Invalid date format'},
    )

    def validate_description(self, value):
        return value or ""


class TaskUpdateSerializer(TaskCreateSerializer):
    """Every field optional; the project of a task can never change."""
    project = None

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('partial', True)
        super().__init__(*args, **kwargs)


class CommentCreateSerializer(serializers.Serializer):
    text = serializers.CharField(
        max_length=Comment.TEXT_MAX_LENGTH,
        error_messages={
            'required': 'Comment text is required',
            'blank': 'Comment text is required',
            'max_length': 'Comment cannot exceed 500 characters',
        },
    )
