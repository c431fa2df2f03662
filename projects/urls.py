from django.urls import path

from .views import (
    ProjectListCreateView,
    ProjectDetailView,
    ProjectMembersView,
    ProjectMemberDetailView,
)

urlpatterns = [
    path("", ProjectListCreateView.as_view(), name="projects-list-create"),
    path("<int:project_id>/", ProjectDetailView.as_view(), name="projects-detail"),
    path("<int:project_id>/members/", ProjectMembersView.as_view(), name="projects-members"),
    path(
        "<int:project_id>/members/<int:user_id>/",
        ProjectMemberDetailView.as_view(),
        name="projects-member-detail",
    ),
]
