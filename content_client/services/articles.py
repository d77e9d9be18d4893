from typing import Any

from content_client.errors import parse_response_model
from content_client.gateway import ApiGateway
from content_client.schemas.article import (
    Article,
    ArticleDraft,
    ArticleListResponse,
    Comment,
)
from content_client.settings import settings

# (filename, content, content type) as accepted by httpx
MediaFile = tuple[str, bytes, str]


class ArticleService:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    async def get_all(
        self,
        *,
        category: str | None = None,
        tag: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> ArticleListResponse:
        params: dict[str, Any] = {"page": page, "limit": limit or settings.DEFAULT_PAGE_SIZE}
        if category and category != "all":
            params["category"] = category
        if tag:
            params["tag"] = tag
        if search:
            params["search"] = search
        body = await self.gateway.request_json("GET", "/articles", params=params)
        return parse_response_model(ArticleListResponse, body)

    async def get(self, article_id: str) -> Article:
        body = await self.gateway.request_json("GET", f"/articles/{article_id}")
        return parse_response_model(Article, body)

    async def create(self, draft: ArticleDraft, media: MediaFile | None = None) -> Article:
        body = await self.gateway.request_json(
            "POST",
            "/articles",
            data=draft.to_form(),
            files={"media": media} if media else None,
        )
        return parse_response_model(Article, body)

    async def update(
        self, article_id: str, draft: ArticleDraft, media: MediaFile | None = None
    ) -> Article:
        body = await self.gateway.request_json(
            "PUT",
            f"/articles/{article_id}",
            data=draft.to_form(),
            files={"media": media} if media else None,
        )
        return parse_response_model(Article, body)

    async def delete(self, article_id: str) -> None:
        await self.gateway.request("DELETE", f"/articles/{article_id}")

    async def like(self, article_id: str) -> list[str]:
        """Toggle the current user's like, returns the updated list of likers."""
        body = await self.gateway.request_json("POST", f"/articles/{article_id}/like")
        if isinstance(body, dict) and isinstance(body.get("likes"), list):
            return [str(user_id) for user_id in body["likes"]]
        return []

    async def add_comment(self, article_id: str, content: str) -> Comment:
        body = await self.gateway.request_json(
            "POST", f"/articles/{article_id}/comments", json={"content": content}
        )
        if isinstance(body, dict) and "comment" in body:
            body = body["comment"]
        return parse_response_model(Comment, body)

    async def delete_comment(self, article_id: str, comment_id: str) -> None:
        await self.gateway.request(
            "DELETE", f"/articles/{article_id}/comments/{comment_id}"
        )
