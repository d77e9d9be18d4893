"""
Admin dashboard calls.

All of them require an admin session; a 401 clears that session through
the gateway like any other rejected credential.
"""
from content_client.errors import parse_response_model
from content_client.gateway import ApiGateway
from content_client.schemas.admin import (
    AdminArticleListResponse,
    AdminStats,
    UserListResponse,
)
from content_client.settings import settings


class AdminService:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    async def stats(self) -> AdminStats:
        body = await self.gateway.request_json("GET", "/users/admin/stats")
        return parse_response_model(AdminStats, body)

    async def users(self, page: int = 1, limit: int | None = None) -> UserListResponse:
        body = await self.gateway.request_json(
            "GET",
            "/users",
            params={"page": page, "limit": limit or settings.DEFAULT_PAGE_SIZE},
        )
        return parse_response_model(UserListResponse, body)

    async def articles(
        self, page: int = 1, limit: int | None = None
    ) -> AdminArticleListResponse:
        body = await self.gateway.request_json(
            "GET",
            "/articles",
            params={"page": page, "limit": limit or settings.DEFAULT_PAGE_SIZE},
        )
        return parse_response_model(AdminArticleListResponse, body)

    async def delete_user(self, user_id: str) -> None:
        await self.gateway.request("DELETE", f"/users/{user_id}")

    async def delete_article(self, article_id: str) -> None:
        await self.gateway.request("DELETE", f"/articles/{article_id}")

    async def freeze_user(self, user_id: str) -> None:
        await self.gateway.request("PUT", f"/users/{user_id}/freeze")

    async def unfreeze_user(self, user_id: str) -> None:
        await self.gateway.request("PUT", f"/users/{user_id}/unfreeze")
