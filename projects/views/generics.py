from rest_framework import status
from rest_framework.response import Response

from realtime.router import get_router


def api_success(data=None, message=None, status_code=status.HTTP_200_OK, **extra):
    """
    Small helper to standardize success responses across the projects app.
    Always returns: {"success": true, "message"?, "data"?, ...extra}
    """
    body = {"success": True}
    if message:
        body["message"] = message
    body.update(extra)
    if data is not None:
        body["data"] = data
    return Response(body, status=status_code)


class ServiceMixin:
    """Builds the mutation service for the current request's actor."""
    service_class = None

    def get_publisher(self):
        return get_router()

    def get_service(self):
        return self.service_class(actor=self.request.user, publisher=self.get_publisher())
