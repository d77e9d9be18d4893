"""
Authenticated HTTP gateway.

Every call to the content API goes through ApiGateway.request. It attaches
the bearer credential owned by the bound session, translates failures into
content_client.errors types and centralises what happens when the API
rejects the credential:

1. the first 401 for a request triggers one POST /auth/refresh-token
2. on success the request is replayed once with the new credential
3. if the refresh fails, or the replay is rejected again, the session is
   destroyed and AuthenticationError reaches the caller
"""
import asyncio
import logging
from typing import Any, Collection, Protocol

import httpx

from content_client.errors import (
    ApiError,
    AuthenticationError,
    raise_for_response,
    translate_transport_error,
)
from content_client.schemas.token import TokenResponse
from content_client.settings import settings

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh-token"


class CredentialHolder(Protocol):
    """What the gateway needs from a session manager."""

    @property
    def credential(self) -> str | None: ...

    async def replace_credential(
        self, credential: str, replacing: str | None = None
    ) -> bool: ...

    async def invalidate(self, reason: str = "rejected") -> None: ...


class ApiGateway:
    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
        refresh_enabled: bool = True,
    ):
        if client is None:
            client = httpx.AsyncClient(
                base_url=base_url or settings.API_BASE_URL,
                timeout=timeout if timeout is not None else settings.API_TIMEOUT_SECONDS,
                transport=transport,
                headers={"Accept": "application/json"},
            )
            self._owns_client = True
        else:
            self._owns_client = False
        self._client = client
        self.refresh_enabled = refresh_enabled
        self._session: CredentialHolder | None = None
        self._refresh_lock = asyncio.Lock()

    def bind_session(self, session: CredentialHolder) -> None:
        self._session = session

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "ApiGateway":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        auth: bool = True,
        credential: str | None = None,
        accept: Collection[int] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        """
        Send one request and return the response.

        Args:
            auth: attach the session credential and handle its rejection
            credential: send this token instead of the session's; a 401 is
                then reported to the caller without touching the session
            accept: extra status codes returned instead of raised
            **kwargs: passed to httpx (json, params, data, files)

        Raises:
            ApiError subclasses for every failure.
        """
        explicit = credential is not None
        token = credential if explicit else (self.session_credential() if auth else None)

        response = await self._send(method, path, token, **kwargs)
        if (
            response.status_code == 401
            and auth
            and not explicit
            and token is not None
            and self._session is not None
        ):
            response = await self._recover(method, path, token, **kwargs)

        if response.status_code in accept:
            return response
        return raise_for_response(response)

    async def request_json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.request(method, path, **kwargs)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning("Non-JSON body from %s %s", method, path)
            return None

    def session_credential(self) -> str | None:
        if self._session is None:
            return None
        return self._session.credential

    async def _send(
        self, method: str, path: str, token: str | None, **kwargs: Any
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            return await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc.__class__.__name__)
            raise translate_transport_error(exc) from exc

    async def _recover(
        self, method: str, path: str, rejected: str, **kwargs: Any
    ) -> httpx.Response:
        session = self._session
        async with self._refresh_lock:
            current = session.credential
            if current is None:
                raise AuthenticationError()
            if current == rejected:
                if not self.refresh_enabled:
                    logger.info("Credential rejected on %s %s", method, path)
                    await session.invalidate("rejected")
                    raise AuthenticationError()
                try:
                    current = await self._refresh(rejected)
                except ApiError as exc:
                    logger.info("Token refresh failed (%s), ending session", exc.detail)
                    await session.invalidate("rejected")
                    raise AuthenticationError() from exc
                if not await session.replace_credential(current, replacing=rejected):
                    # the session ended while the refresh was in flight
                    raise AuthenticationError()
            # otherwise a concurrent request already rotated the credential

        replay = await self._send(method, path, current, **kwargs)
        if replay.status_code == 401:
            logger.info("Replayed %s %s rejected, ending session", method, path)
            if session.credential == current:
                await session.invalidate("rejected")
            raise AuthenticationError()
        return replay

    async def _refresh(self, rejected: str) -> str:
        response = raise_for_response(
            await self._send("POST", REFRESH_PATH, rejected)
        )
        try:
            return TokenResponse.model_validate(response.json()).token
        except ValueError as exc:
            raise AuthenticationError("Token refresh returned no token") from exc
