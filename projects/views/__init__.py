from .projects import (
    ProjectListCreateView,
    ProjectDetailView,
    ProjectMembersView,
    ProjectMemberDetailView,
)
from .tasks import (
    TaskListCreateView,
    ProjectTasksView,
    TaskDetailView,
    TaskCommentsView,
)
from .generics import api_success
