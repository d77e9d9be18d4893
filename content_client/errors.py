"""
Client-side error taxonomy.

Every remote failure is translated into one of these before it leaves the
gateway, so callers never see a raw ``httpx`` exception:

- ValidationError: the API rejected the input, messages are shown verbatim
- AuthenticationError: bad credentials or a rejected token
- NetworkError: the server could not be reached
- RequestFailedError / NotFoundError: anything else
"""
from typing import Any

import httpx
import pydantic

NETWORK_ERROR_MESSAGE = (
    "Unable to connect to the server. Please check your internet connection."
)
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."

NETWORK_ERROR_TYPES = (
    httpx.TransportError,
    httpx.TimeoutException,
)


class ApiError(Exception):
    status_code: int | None = None
    default_detail = UNEXPECTED_ERROR_MESSAGE

    def __init__(
        self,
        detail: str | None = None,
        *,
        status_code: int | None = None,
        messages: list[str] | None = None,
    ):
        self.detail = detail or self.default_detail
        if status_code is not None:
            self.status_code = status_code
        self.messages = list(messages) if messages else [self.detail]
        super().__init__(self.detail)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code!r}, detail={self.detail!r})"


class ValidationError(ApiError):
    status_code = 400
    default_detail = "The request was rejected. Please check the form and try again."


class AuthenticationError(ApiError):
    status_code = 401
    default_detail = "Your session has ended. Please log in again."


class AlreadyAuthenticatedError(ApiError):
    status_code = None
    default_detail = "Please log out to use a different account."


class NetworkError(ApiError):
    status_code = None
    default_detail = NETWORK_ERROR_MESSAGE


class RequestFailedError(ApiError):
    status_code = 500


class NotFoundError(RequestFailedError):
    status_code = 404
    default_detail = "The requested resource was not found."


def _error_items_to_messages(items: Any) -> list[str]:
    messages: list[str] = []
    for item in items if isinstance(items, list) else [items]:
        if isinstance(item, dict):
            text = item.get("message") or item.get("msg")
            if text:
                messages.append(str(text))
        elif item:
            messages.append(str(item))
    return messages


def parse_error_body(response: httpx.Response) -> tuple[str | None, list[str]]:
    """
    Extract ``(message, errors)`` from an error response.

    Understands ``{"message": ..., "errors": [...]}`` as sent by the content
    API and ``{"detail": ...}`` as sent by FastAPI style services.
    """
    try:
        body = response.json()
    except ValueError:
        return None, []
    if not isinstance(body, dict):
        return None, []

    message = body.get("message")
    errors = _error_items_to_messages(body.get("errors")) if body.get("errors") else []
    detail = body.get("detail")
    if detail is not None:
        if isinstance(detail, str):
            message = message or detail
        else:
            errors = errors or _error_items_to_messages(detail)
    return (str(message) if message else None), errors


def error_for_response(response: httpx.Response) -> ApiError:
    status_code = response.status_code
    message, errors = parse_error_body(response)

    if status_code in (400, 422):
        return ValidationError(
            message or (errors[0] if errors else None),
            status_code=status_code,
            messages=errors or ([message] if message else None),
        )
    if status_code == 401:
        return AuthenticationError(message, status_code=status_code)
    if status_code == 404:
        return NotFoundError(message, status_code=status_code)
    return RequestFailedError(
        message,
        status_code=status_code,
        messages=errors or None,
    )


def raise_for_response(response: httpx.Response) -> httpx.Response:
    if response.is_success:
        return response
    raise error_for_response(response)


def translate_transport_error(exc: Exception) -> ApiError:
    if isinstance(exc, NETWORK_ERROR_TYPES):
        return NetworkError()
    return RequestFailedError()


def validation_error_from_model(exc: pydantic.ValidationError) -> ValidationError:
    """Turn a local schema failure into the same shape as a remote one."""
    messages: list[str] = []
    for err in exc.errors():
        ctx = err.get("ctx") or {}
        cause = ctx.get("error")
        messages.append(str(cause) if cause else err["msg"])
    return ValidationError(messages[0] if messages else None, messages=messages)


def parse_response_model(model: type[pydantic.BaseModel], body: Any):
    """Validate an API body, reporting a malformed one as a request failure."""
    try:
        return model.model_validate(body)
    except pydantic.ValidationError as exc:
        raise RequestFailedError("Unexpected response from the server.") from exc


__all__ = [
    "ApiError",
    "ValidationError",
    "AuthenticationError",
    "AlreadyAuthenticatedError",
    "NetworkError",
    "RequestFailedError",
    "NotFoundError",
    "NETWORK_ERROR_MESSAGE",
    "parse_error_body",
    "error_for_response",
    "raise_for_response",
    "translate_transport_error",
    "validation_error_from_model",
    "parse_response_model",
]
