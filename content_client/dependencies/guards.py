"""
Route guards.

View layers call these before rendering a page. They only read the session
manager; redirects are returned as data so the caller decides how to
navigate.
"""
from dataclasses import dataclass, field
from typing import Callable

from content_client.errors import AlreadyAuthenticatedError, AuthenticationError
from content_client.schemas.user import Identity
from content_client.session import ADMIN_REQUIRED_MESSAGE, SessionManager

LOGIN_PATH = "/login"
HOME_PATH = "/"


@dataclass(frozen=True)
class RouteDecision:
    allowed: bool
    pending: bool = False
    redirect_to: str | None = None
    state: dict = field(default_factory=dict)


def require_authenticated(manager: SessionManager) -> Identity:
    identity = manager.current_user()
    if identity is None:
        raise AuthenticationError("Please log in to continue.")
    return identity


def require_anonymous(manager: SessionManager) -> None:
    """Login and registration pages are for signed-out users only."""
    if manager.is_authenticated():
        raise AlreadyAuthenticatedError()


def require_roles(predicate: Callable[[Identity], bool], message: str) -> Callable:
    """
    Create a guard that requires the signed-in user to satisfy ``predicate``.

    Example:
        require_admin = require_roles(lambda user: user.is_admin, "Admins only")
        identity = require_admin(manager)
    """

    def role_checker(manager: SessionManager) -> Identity:
        identity = require_authenticated(manager)
        if not predicate(identity):
            raise AuthenticationError(message, status_code=403)
        return identity

    return role_checker


require_admin = require_roles(lambda identity: identity.is_admin, ADMIN_REQUIRED_MESSAGE)


def resolve_route(
    manager: SessionManager, path: str, require_auth: bool = True
) -> RouteDecision:
    """
    Decide what happens when ``path`` is opened.

    - while the session is being restored nothing is decided yet
    - protected pages send signed-out users to the login page, remembering
      where they came from
    - auth-only pages (login, register) send signed-in users home
    """
    if manager.is_loading:
        return RouteDecision(allowed=False, pending=True)

    if require_auth:
        if not manager.is_authenticated():
            return RouteDecision(
                allowed=False, redirect_to=LOGIN_PATH, state={"from": path}
            )
    elif manager.is_authenticated():
        return RouteDecision(allowed=False, redirect_to=HOME_PATH)

    return RouteDecision(allowed=True)


def redirect_after_login(state: dict | None) -> str:
    """Where to go once signed in: back to the page that asked for it."""
    if state and isinstance(state.get("from"), str) and state["from"]:
        return state["from"]
    return HOME_PATH
