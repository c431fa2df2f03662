from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .serializers import UserSerializer, UserSummarySerializer

User = get_user_model()

SEARCH_LIMIT = 20


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Actor lookup.
    - GET /api/users/?search=<q>  find users to add as project members
    - GET /api/users/me/          current user
    """
    queryset = User.objects.filter(is_active=True).order_by('username')
    serializer_class = UserSummarySerializer
    permission_classes = [IsAuthenticated]

    def list(self, request, *args, **kwargs):
        query = request.query_params.get('search', '').strip()
        if not query:
            return Response({"success": True, "count": 0, "data": {"users": []}})

        users = self.get_queryset().filter(
            Q(username__icontains=query) | Q(email__icontains=query)
        )[:SEARCH_LIMIT]
        data = self.get_serializer(users, many=True).data
        return Response({"success": True, "count": len(data), "data": {"users": data}})

    def retrieve(self, request, *args, **kwargs):
        user = self.get_object()
        return Response({"success": True, "data": {"user": self.get_serializer(user).data}})

    @action(detail=False, methods=['get'])
    def me(self, request):
        """
        GET /api/users/me/
        Return current user info
        """
        serializer = UserSerializer(request.user)
        return Response({"success": True, "data": {"user": serializer.data}})
