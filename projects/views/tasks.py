from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from projects.services import TaskService
from .generics import ServiceMixin, api_success


class TaskListCreateView(ServiceMixin, APIView):
    """
    GET  /api/tasks/   tasks assigned to or created by the current user
    POST /api/tasks/   create a task in a project the caller belongs to
    """
    permission_classes = [IsAuthenticated]
    service_class = TaskService

    def get(self, request):
        tasks = self.get_service().list_tasks()
        return api_success({"tasks": tasks}, count=len(tasks))

    def post(self, request):
        task = self.get_service().create_task(request.data)
        return api_success(
            {"task": task},
            message="Task created successfully",
            status_code=status.HTTP_201_CREATED,
        )


class ProjectTasksView(ServiceMixin, APIView):
    """GET /api/tasks/project/<project_id>/"""
    permission_classes = [IsAuthenticated]
    service_class = TaskService

    def get(self, request, project_id):
        tasks = self.get_service().list_project_tasks(project_id)
        return api_success({"tasks": tasks}, count=len(tasks))


class TaskDetailView(ServiceMixin, APIView):
    permission_classes = [IsAuthenticated]
    service_class = TaskService

    def get(self, request, task_id):
        return api_success({"task": self.get_service().retrieve_task(task_id)})

    def put(self, request, task_id):
        task = self.get_service().update_task(task_id, request.data)
        return api_success({"task": task}, message="Task updated successfully")

    patch = put

    def delete(self, request, task_id):
        self.get_service().delete_task(task_id)
        return api_success(message="Task deleted successfully")


class TaskCommentsView(ServiceMixin, APIView):
    """POST /api/tasks/<id>/comments/  Body → { text }"""
    permission_classes = [IsAuthenticated]
    service_class = TaskService

    def post(self, request, task_id):
        task = self.get_service().add_comment(task_id, request.data)
        return api_success(
            {"task": task},
            message="Comment added successfully",
            status_code=status.HTTP_201_CREATED,
        )
