"""
Ready-made client bundles.

ContentClient wires one gateway, one SessionManager and the content services
together for the public site. AdminClient does the same for the dashboard,
with its own storage namespace, admin-only sessions and no token refresh.
"""
from redis.asyncio import Redis

from content_client.activity import InteractionBus
from content_client.gateway import ApiGateway
from content_client import redis_client
from content_client.services.admin import AdminService
from content_client.services.articles import ArticleService
from content_client.services.bookmarks import BookmarkService
from content_client.services.security_tips import SecurityTipService
from content_client.session import SessionManager
from content_client.settings import settings


class _ClientBundle:
    def __init__(
        self,
        *,
        namespace: str,
        require_admin: bool,
        refresh_enabled: bool,
        base_url: str | None = None,
        redis: Redis | None = None,
        gateway: ApiGateway | None = None,
        bus: InteractionBus | None = None,
        **session_options,
    ):
        self._owns_gateway = gateway is None
        self.gateway = gateway or ApiGateway(base_url, refresh_enabled=refresh_enabled)
        # without an explicit client the bundle opens and closes its own
        self._owns_redis = redis is None
        if redis is None:
            redis = redis_client.create_redis()
        self.redis = redis
        self.bus = bus if bus is not None else InteractionBus()
        self.session = SessionManager(
            self.gateway,
            namespace=namespace,
            redis=redis,
            bus=self.bus,
            require_admin=require_admin,
            **session_options,
        )

    async def aclose(self) -> None:
        await self.session.close()
        if self._owns_gateway:
            await self.gateway.aclose()
        if self._owns_redis:
            await self.redis.aclose()

    async def __aenter__(self):
        await self.session.restore()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class ContentClient(_ClientBundle):
    def __init__(self, *, namespace: str | None = None, **kwargs):
        super().__init__(
            namespace=namespace or settings.SESSION_NAMESPACE,
            require_admin=False,
            refresh_enabled=True,
            **kwargs,
        )
        self.articles = ArticleService(self.gateway)
        self.bookmarks = BookmarkService(self.gateway)
        self.security_tips = SecurityTipService(self.gateway)


class AdminClient(_ClientBundle):
    def __init__(self, *, namespace: str | None = None, **kwargs):
        super().__init__(
            namespace=namespace or settings.ADMIN_SESSION_NAMESPACE,
            require_admin=True,
            refresh_enabled=False,
            **kwargs,
        )
        self.admin = AdminService(self.gateway)
        self.articles = ArticleService(self.gateway)
