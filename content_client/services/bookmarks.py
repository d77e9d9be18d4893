from content_client.errors import parse_response_model
from content_client.gateway import ApiGateway
from content_client.schemas.article import Article


class BookmarkService:
    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    async def get_all(self) -> list[Article]:
        body = await self.gateway.request_json("GET", "/bookmarks")
        return [parse_response_model(Article, item) for item in body or []]

    async def add(self, article_id: str) -> None:
        await self.gateway.request("POST", f"/bookmarks/{article_id}")

    async def remove(self, article_id: str) -> None:
        await self.gateway.request("DELETE", f"/bookmarks/{article_id}")

    async def is_bookmarked(self, article_id: str) -> bool:
        """
        Ask whether the article is in the current user's bookmarks.

        A 404 is the API's "not bookmarked" answer and is read as such; any
        other failure is a real error and propagates.
        """
        if self.gateway.session_credential() is None:
            return False
        response = await self.gateway.request(
            "GET", f"/bookmarks/{article_id}", accept=(404,)
        )
        return response.status_code != 404

    async def toggle(self, article_id: str) -> bool:
        """Flip the bookmark state, returns the new state."""
        if await self.is_bookmarked(article_id):
            await self.remove(article_id)
            return False
        await self.add(article_id)
        return True
