from content_client.activity import ActivitySignal, InteractionBus
from content_client.client import AdminClient, ContentClient
from content_client.errors import (
    AlreadyAuthenticatedError,
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    RequestFailedError,
    ValidationError,
)
from content_client.gateway import ApiGateway
from content_client.session import SessionManager, SessionState

__all__ = [
    "ActivitySignal",
    "InteractionBus",
    "AdminClient",
    "ContentClient",
    "AlreadyAuthenticatedError",
    "ApiError",
    "AuthenticationError",
    "NetworkError",
    "NotFoundError",
    "RequestFailedError",
    "ValidationError",
    "ApiGateway",
    "SessionManager",
    "SessionState",
]
