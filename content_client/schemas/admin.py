"""
Admin dashboard schemas.
"""
from pydantic import BaseModel, ConfigDict, Field

from content_client.schemas.article import Article


class AdminStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_users: int = Field(default=0, alias="totalUsers")
    total_articles: int = Field(default=0, alias="totalArticles")
    total_bookmarks: int = Field(default=0, alias="totalBookmarks")
    total_comments: int = Field(default=0, alias="totalComments")


class AdminUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    username: str | None = None
    email: str
    is_admin: bool = Field(default=False, alias="isAdmin")
    is_frozen: bool = Field(default=False, alias="isFrozen")


class UserListResponse(BaseModel):
    """One page of users as listed on the dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    users: list[AdminUser]
    total: int
    current_page: int = Field(default=1, alias="currentPage")
    total_pages: int = Field(default=1, alias="totalPages")


class AdminArticleListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    articles: list[Article]
    total: int
    current_page: int = Field(default=1, alias="currentPage")
    total_pages: int = Field(default=1, alias="totalPages")
