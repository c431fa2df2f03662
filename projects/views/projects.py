from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from projects.services import ProjectService
from .generics import ServiceMixin, api_success


class ProjectListCreateView(ServiceMixin, APIView):
    """
    GET  /api/projects/   projects the current user is a member of
    POST /api/projects/   create a project (caller becomes owner)
    """
    permission_classes = [IsAuthenticated]
    service_class = ProjectService

    def get(self, request):
        projects = self.get_service().list_projects()
        return api_success({"projects": projects}, count=len(projects))

    def post(self, request):
        project = self.get_service().create_project(request.data)
        return api_success(
            {"project": project},
            message="Project created successfully",
            status_code=status.HTTP_201_CREATED,
        )


class ProjectDetailView(ServiceMixin, APIView):
    """
    GET    /api/projects/<id>/   project + its tasks (members only)
    PUT    /api/projects/<id>/   partial update (owner only)
    DELETE /api/projects/<id>/   delete project and its tasks (owner only)
    """
    permission_classes = [IsAuthenticated]
    service_class = ProjectService

    def get(self, request, project_id):
        return api_success(self.get_service().retrieve_project(project_id))

    def put(self, request, project_id):
        project = self.get_service().update_project(project_id, request.data)
        return api_success({"project": project}, message="Project updated successfully")

    patch = put

    def delete(self, request, project_id):
        self.get_service().delete_project(project_id)
        return api_success(message="Project and all associated tasks deleted successfully")


class ProjectMembersView(ServiceMixin, APIView):
    """
    POST /api/projects/<id>/members/
        Body → { userId }
    Only owner can add members
    """
    permission_classes = [IsAuthenticated]
    service_class = ProjectService

    def post(self, request, project_id):
        project = self.get_service().add_member(project_id, request.data)
        return api_success({"project": project}, message="Member added successfully")


class ProjectMemberDetailView(ServiceMixin, APIView):
    """
    DELETE /api/projects/<id>/members/<user_id>/
    Only owner can remove members; the owner can never be removed
    """
    permission_classes = [IsAuthenticated]
    service_class = ProjectService

    def delete(self, request, project_id, user_id):
        project = self.get_service().remove_member(project_id, user_id)
        return api_success({"project": project}, message="Member removed successfully")
