"""
Pytest configuration: project root on sys.path, in-memory Redis, a fake
content API served through httpx.ASGITransport and an injectable clock.
"""
import sys
from pathlib import Path

# Add project root to path BEFORE any content_client imports
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import asyncio
import json
import uuid
from typing import Any

import pytest
import pytest_asyncio
from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from httpx import ASGITransport
from redis.exceptions import ConnectionError as RedisConnectionError

from content_client.activity import InteractionBus
from content_client.gateway import ApiGateway
from content_client.session import SessionManager

BASE_URL = "http://test/api"
START_TIME = 1_700_000_000.0


class FakeRedis:
    """
    Fake Redis client for testing to avoid event loop issues.
    Implements the subset of the Redis interface used for session storage.
    """
    def __init__(self):
        self.kv_store = {}
        self.published = []
        self.fail_publish = False
        self.fail_reads = False
        self.fail_deletes = False

    async def get(self, key):
        return self.kv_store.get(key)

    async def set(self, key, value, ex=None, xx=False):
        if xx and key not in self.kv_store:
            return None
        self.kv_store[key] = value
        return True

    async def mget(self, keys, *args):
        if self.fail_reads:
            raise RedisConnectionError("redis unavailable")
        keys = list(keys) + list(args)
        return [self.kv_store.get(key) for key in keys]

    async def delete(self, *keys):
        if self.fail_deletes:
            raise RedisConnectionError("redis unavailable")
        removed = 0
        for key in keys:
            if self.kv_store.pop(key, None) is not None:
                removed += 1
        return removed

    async def exists(self, key):
        return 1 if key in self.kv_store else 0

    async def publish(self, channel, message):
        if self.fail_publish:
            raise ConnectionError("redis unavailable")
        self.published.append((channel, message))
        return 1

    def pipeline(self):
        return _FakePipeline(self)


class _FakePipeline:
    """Fake Redis pipeline for testing."""
    def __init__(self, redis_client: FakeRedis):
        self.redis = redis_client
        self.ops = []

    def set(self, key, value, ex=None):
        self.ops.append(("set", key, value))
        return self

    def delete(self, key):
        self.ops.append(("delete", key, None))
        return self

    async def execute(self):
        results = []
        for op, key, value in self.ops:
            if op == "set":
                results.append(await self.redis.set(key, value))
            elif op == "delete":
                results.append(await self.redis.delete(key))
        self.ops = []
        return results


class FakeClock:
    """Seconds since epoch, moved forward by hand."""
    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> None:
        self.now += seconds + minutes * 60

    @property
    def now_ms(self) -> int:
        return int(self.now * 1000)


class FakeBackend:
    """State behind the fake content API, inspected and tweaked by tests."""
    def __init__(self):
        self.users: dict[str, dict] = {}
        self.accounts: dict[str, dict] = {}
        self.valid_tokens: dict[str, str] = {}
        self.known_tokens: dict[str, str] = {}
        self.bookmarks: dict[str, set[str]] = {}
        self.articles: dict[str, dict] = {}
        self.requests: list[dict] = []

        self.refresh_fails = False
        self.refresh_token_valid = True
        self.logout_fails = False
        self.logout_delay = 0.0
        self.register_returns_session = True
        self.bookmark_status_override: int | None = None

    def add_user(self, username: str, email: str, password: str = "secret", **profile) -> dict:
        user_id = uuid.uuid4().hex[:24]
        user = {
            "_id": user_id,
            "username": username,
            "email": email,
            "bio": "",
            "isAdmin": False,
        }
        user.update(profile)
        self.users[user_id] = user
        self.accounts[email] = {"user_id": user_id, "password": password}
        return user

    def add_article(self, author: dict, title: str = "Phishing 101", **fields) -> dict:
        article_id = uuid.uuid4().hex[:24]
        article = {
            "_id": article_id,
            "title": title,
            "content": "Never click links you did not expect.",
            "author": {"_id": author["_id"], "username": author["username"]},
            "category": "phishing",
            "tags": ["email"],
            "readTime": 5,
            "likes": [],
            "views": 0,
            "comments": [],
        }
        article.update(fields)
        self.articles[article_id] = article
        return article

    def issue_token(self, user_id: str, valid: bool = True) -> str:
        token = f"tok-{uuid.uuid4().hex}"
        self.known_tokens[token] = user_id
        if valid:
            self.valid_tokens[token] = user_id
        return token

    def expire(self, token: str) -> None:
        """Reject the token from now on, it can still be refreshed."""
        self.valid_tokens.pop(token, None)

    def user_for(self, token: str | None) -> dict | None:
        user_id = self.valid_tokens.get(token) if token else None
        return self.users.get(user_id) if user_id else None

    def count(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.requests if r["method"] == method and r["path"] == f"/api{path}"
        )

    def last_request(self, method: str, path: str) -> dict | None:
        for r in reversed(self.requests):
            if r["method"] == method and r["path"] == f"/api{path}":
                return r
        return None


def _bearer(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):]
    return None


def create_backend_app(backend: FakeBackend) -> FastAPI:
    async def record_request(request: Request):
        backend.requests.append(
            {
                "method": request.method,
                "path": request.url.path,
                "params": dict(request.query_params),
                "authorization": request.headers.get("authorization"),
            }
        )

    def current_user(request: Request) -> dict:
        user = backend.user_for(_bearer(request))
        if user is None:
            raise HTTPException(status_code=401, detail="Token is not valid")
        return user

    def admin_user(user: dict = Depends(current_user)) -> dict:
        if not user.get("isAdmin"):
            raise HTTPException(status_code=403, detail="Access denied")
        return user

    router = APIRouter(dependencies=[Depends(record_request)])

    @router.post("/auth/login")
    async def login(payload: dict[str, Any] = Body(...)):
        account = backend.accounts.get(payload.get("email"))
        if account is None or account["password"] != payload.get("password"):
            return JSONResponse(status_code=401, content={})
        user_id = account["user_id"]
        return {"token": backend.issue_token(user_id), "user": backend.users[user_id]}

    @router.post("/auth/register", status_code=201)
    async def register(payload: dict[str, Any] = Body(...)):
        errors = []
        if payload.get("email") in backend.accounts:
            errors.append({"field": "email", "message": "Email already registered"})
        if len(payload.get("username") or "") < 3:
            errors.append("Username must be at least 3 characters")
        if errors:
            return JSONResponse(
                status_code=400,
                content={"message": "Validation failed", "errors": errors},
            )
        user = backend.add_user(payload["username"], payload["email"], payload["password"])
        if not backend.register_returns_session:
            return {"message": "User registered successfully"}
        return {"token": backend.issue_token(user["_id"]), "user": user}

    @router.post("/auth/logout")
    async def logout(request: Request):
        if backend.logout_delay:
            await asyncio.sleep(backend.logout_delay)
        if backend.logout_fails:
            return JSONResponse(status_code=500, content={"message": "Server error"})
        backend.valid_tokens.pop(_bearer(request), None)
        return {"message": "Logged out successfully"}

    @router.get("/auth/me")
    async def me(user: dict = Depends(current_user)):
        return {"user": user}

    @router.post("/auth/refresh-token")
    async def refresh_token(request: Request):
        if backend.refresh_fails:
            return JSONResponse(status_code=401, content={"message": "Refresh failed"})
        user_id = backend.known_tokens.get(_bearer(request))
        if user_id is None:
            return JSONResponse(status_code=401, content={"message": "Unknown token"})
        return {"token": backend.issue_token(user_id, valid=backend.refresh_token_valid)}

    @router.put("/auth/profile")
    async def update_profile(
        payload: dict[str, Any] = Body(...), user: dict = Depends(current_user)
    ):
        for key in ("username", "email", "bio", "profilePicture"):
            if key in payload:
                user[key] = payload[key]
        return {"user": dict(user)}

    @router.put("/auth/change-password")
    async def change_password(
        payload: dict[str, Any] = Body(...), user: dict = Depends(current_user)
    ):
        account = backend.accounts[user["email"]]
        if payload.get("currentPassword") != account["password"]:
            return JSONResponse(
                status_code=400, content={"message": "Current password is incorrect"}
            )
        account["password"] = payload["newPassword"]
        return {"message": "Password updated", "token": backend.issue_token(user["_id"])}

    @router.delete("/auth/account")
    async def delete_account(request: Request, user: dict = Depends(current_user)):
        backend.users.pop(user["_id"], None)
        backend.accounts.pop(user["email"], None)
        backend.valid_tokens.pop(_bearer(request), None)
        return {"message": "Account deleted"}

    @router.get("/articles")
    async def list_articles(
        page: int = 1, limit: int = 10, category: str | None = None
    ):
        articles = [
            a for a in backend.articles.values()
            if category is None or a["category"] == category
        ]
        start = (page - 1) * limit
        return {
            "articles": articles[start:start + limit],
            "total": len(articles),
            "currentPage": page,
            "totalPages": max(1, -(-len(articles) // limit)),
        }

    @router.get("/articles/{article_id}")
    async def get_article(article_id: str):
        article = backend.articles.get(article_id)
        if article is None:
            return JSONResponse(status_code=404, content={"message": "Article not found"})
        return article

    @router.post("/articles", status_code=201)
    async def create_article(request: Request, user: dict = Depends(current_user)):
        form = await request.form()
        media = form.get("media")
        article = backend.add_article(
            user,
            title=form["title"],
            content=form["content"],
            category=form["category"],
            tags=json.loads(form["tags"]),
            readTime=int(form["readTime"]),
            imageUrl=f"/uploads/{media.filename}" if media is not None else None,
        )
        return article

    @router.post("/articles/{article_id}/like")
    async def like_article(article_id: str, user: dict = Depends(current_user)):
        likes = backend.articles[article_id]["likes"]
        if user["_id"] in likes:
            likes.remove(user["_id"])
        else:
            likes.append(user["_id"])
        return {"likes": likes}

    @router.post("/articles/{article_id}/comments", status_code=201)
    async def add_comment(
        article_id: str,
        payload: dict[str, Any] = Body(...),
        user: dict = Depends(current_user),
    ):
        comment = {
            "_id": uuid.uuid4().hex[:24],
            "user": {"_id": user["_id"], "username": user["username"]},
            "content": payload["content"],
        }
        backend.articles[article_id]["comments"].append(comment)
        return {"comment": comment}

    @router.get("/bookmarks")
    async def list_bookmarks(user: dict = Depends(current_user)):
        ids = backend.bookmarks.get(user["_id"], set())
        return [backend.articles[i] for i in sorted(ids) if i in backend.articles]

    @router.get("/bookmarks/{article_id}")
    async def check_bookmark(article_id: str, user: dict = Depends(current_user)):
        if backend.bookmark_status_override is not None:
            return JSONResponse(
                status_code=backend.bookmark_status_override,
                content={"message": "Server error"},
            )
        if article_id not in backend.bookmarks.get(user["_id"], set()):
            return JSONResponse(status_code=404, content={"message": "Bookmark not found"})
        return {"bookmarked": True}

    @router.post("/bookmarks/{article_id}", status_code=201)
    async def add_bookmark(article_id: str, user: dict = Depends(current_user)):
        backend.bookmarks.setdefault(user["_id"], set()).add(article_id)
        return {"message": "Bookmarked"}

    @router.delete("/bookmarks/{article_id}")
    async def remove_bookmark(article_id: str, user: dict = Depends(current_user)):
        backend.bookmarks.get(user["_id"], set()).discard(article_id)
        return {"message": "Bookmark removed"}

    @router.get("/security-tips/random")
    async def random_tip():
        return {
            "_id": "tip-1",
            "content": "Use a password manager.",
            "category": "passwords",
        }

    @router.get("/users/admin/stats")
    async def admin_stats(user: dict = Depends(admin_user)):
        return {
            "totalUsers": len(backend.users),
            "totalArticles": len(backend.articles),
            "totalBookmarks": sum(len(ids) for ids in backend.bookmarks.values()),
            "totalComments": sum(len(a["comments"]) for a in backend.articles.values()),
        }

    @router.get("/users")
    async def list_users(page: int = 1, limit: int = 10, user: dict = Depends(admin_user)):
        users = list(backend.users.values())
        return {
            "users": users[(page - 1) * limit:page * limit],
            "total": len(users),
            "currentPage": page,
            "totalPages": max(1, -(-len(users) // limit)),
        }

    @router.put("/users/{user_id}/freeze")
    async def freeze_user(user_id: str, user: dict = Depends(admin_user)):
        backend.users[user_id]["isFrozen"] = True
        return {"message": "User frozen"}

    app = FastAPI()
    app.include_router(router, prefix="/api")
    return app


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bus():
    return InteractionBus()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def alice(backend):
    return backend.add_user("alice", "a@x.com", bio="")


@pytest.fixture
def admin_user(backend):
    return backend.add_user("root", "root@x.com", isAdmin=True)


@pytest.fixture
def backend_app(backend):
    return create_backend_app(backend)


@pytest_asyncio.fixture
async def gateway(backend_app):
    """Gateway talking to the fake API in-process."""
    gw = ApiGateway(BASE_URL, transport=ASGITransport(app=backend_app))
    yield gw
    await gw.aclose()


@pytest_asyncio.fixture
async def admin_gateway(backend_app):
    gw = ApiGateway(
        BASE_URL, transport=ASGITransport(app=backend_app), refresh_enabled=False
    )
    yield gw
    await gw.aclose()


@pytest_asyncio.fixture
async def manager(gateway, fake_redis, bus, clock):
    """
    Public session manager. The expiry task is parked on a long interval,
    tests call check_expiry() directly after moving the clock.
    """
    session = SessionManager(
        gateway,
        namespace="session",
        redis=fake_redis,
        bus=bus,
        clock=clock,
        expiry_check_interval_seconds=3600,
    )
    yield session
    await session.close()


@pytest_asyncio.fixture
async def admin_manager(admin_gateway, fake_redis, clock):
    session = SessionManager(
        admin_gateway,
        namespace="admin",
        redis=fake_redis,
        bus=InteractionBus(),
        clock=clock,
        require_admin=True,
        expiry_check_interval_seconds=3600,
    )
    yield session
    await session.close()


@pytest_asyncio.fixture
async def signed_in(manager, alice):
    """Manager signed in as alice through the real login exchange."""
    await manager.authenticate("a@x.com", "secret")
    return manager
