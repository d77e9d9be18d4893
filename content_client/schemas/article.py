import json
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ArticleAuthor(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    username: str


class Comment(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    user: ArticleAuthor
    content: str
    created_at: datetime | None = Field(default=None, alias="createdAt")


class Article(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    title: str
    content: str
    author: ArticleAuthor
    category: str
    tags: list[str] = []
    read_time: int = Field(default=0, alias="readTime")
    image_url: str | None = Field(default=None, alias="imageUrl")
    video_url: str | None = Field(default=None, alias="videoUrl")
    likes: list[str] = []
    views: int = 0
    comments: list[Comment] = []
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")

    def is_liked_by(self, user_id: str | None) -> bool:
        return bool(user_id) and user_id in self.likes


class ArticleListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    articles: list[Article]
    total: int
    current_page: int = Field(alias="currentPage")
    total_pages: int = Field(alias="totalPages")


class SecurityTip(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id")
    content: str
    category: str
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")


class ArticleDraft(BaseModel):
    """Fields sent as multipart form data when creating or editing an article."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    content: str
    category: str
    tags: list[str] = []
    read_time: int = Field(default=5, alias="readTime")
    image_url: str | None = Field(default=None, alias="imageUrl")
    video_url: str | None = Field(default=None, alias="videoUrl")

    @classmethod
    def split_tags(cls, raw: str) -> list[str]:
        return [tag.strip() for tag in raw.split(",") if tag.strip()]

    def to_form(self) -> dict[str, str]:
        form = {
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "tags": json.dumps(self.tags),
            "readTime": str(self.read_time),
        }
        if self.image_url:
            form["imageUrl"] = self.image_url
        if self.video_url:
            form["videoUrl"] = self.video_url
        return form
