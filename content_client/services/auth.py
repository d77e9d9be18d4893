"""
Calls against the /auth endpoints.

These are raw remote operations. State changes belong to SessionManager,
which is the only caller of this service.
"""
from typing import Any

from content_client.errors import parse_response_model
from content_client.gateway import ApiGateway
from content_client.schemas.token import AuthResponse
from content_client.schemas.user import Identity, PasswordChange, UserCreate, UserLogIn


def _identity_payload(body: Any) -> dict:
    """The API answers either with the user itself or wrapped as {"user": ...}."""
    if isinstance(body, dict) and isinstance(body.get("user"), dict):
        return body["user"]
    return body if isinstance(body, dict) else {}


class AuthService:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    async def login(self, credentials: UserLogIn) -> AuthResponse:
        body = await self.gateway.request_json(
            "POST", "/auth/login", auth=False, json=credentials.model_dump()
        )
        return parse_response_model(AuthResponse, body)

    async def register(self, user: UserCreate) -> AuthResponse | None:
        """Create an account; returns the session when the API issues one."""
        body = await self.gateway.request_json(
            "POST", "/auth/register", auth=False, json=user.model_dump()
        )
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        if isinstance(body, dict) and body.get("token") and body.get("user"):
            return parse_response_model(AuthResponse, body)
        return None

    async def logout(self, credential: str) -> None:
        await self.gateway.request("POST", "/auth/logout", credential=credential)

    async def me(self, credential: str | None = None) -> Identity:
        body = await self.gateway.request_json("GET", "/auth/me", credential=credential)
        return parse_response_model(Identity, _identity_payload(body))

    async def update_profile(self, payload: dict) -> dict:
        body = await self.gateway.request_json("PUT", "/auth/profile", json=payload)
        return _identity_payload(body)

    async def change_password(self, change: PasswordChange) -> str | None:
        """Returns the rotated token when the API sends one back."""
        body = await self.gateway.request_json(
            "PUT", "/auth/change-password", json=change.to_payload()
        )
        if isinstance(body, dict) and isinstance(body.get("token"), str):
            return body["token"]
        return None

    async def delete_account(self) -> None:
        await self.gateway.request("DELETE", "/auth/account")
