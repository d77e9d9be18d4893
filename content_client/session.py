"""
Session lifecycle for the content client and the admin dashboard.

A SessionManager is either unauthenticated or holds one SessionRecord
(credential + identity + last activity). It is the only writer of that
record, in memory and in storage:

- restore() validates a persisted record once at start-up
- login() / authenticate() / register() start a session
- logout(), the inactivity check and credential rejection end it
- update_identity() / change_password() mutate it

Every transition goes through _commit, which writes storage and memory
together under one lock and starts or stops activity tracking to match, so
whichever transition completes last defines the final state.
"""
import asyncio
import inspect
import logging
import time
from enum import Enum
from typing import Awaitable, Callable, Coroutine

import pydantic
from redis.asyncio import Redis
from redis.exceptions import RedisError

from content_client.activity import ActivitySignal, ActivitySubscription, InteractionBus
from content_client.errors import (
    ApiError,
    AuthenticationError,
    validation_error_from_model,
)
from content_client.events import (
    EventType,
    IdentityUpdatedEvent,
    SessionEndedEvent,
    SessionRestoredEvent,
    SessionStartedEvent,
    emit_event,
)
from content_client.gateway import ApiGateway
from content_client.schemas.session import SessionRecord
from content_client.schemas.user import (
    Identity,
    PasswordChange,
    ProfileUpdate,
    UserCreate,
    UserLogIn,
)
from content_client.services.auth import AuthService
from content_client.session_store import (
    clear_session,
    load_session,
    save_session,
    touch_last_active,
)
from content_client.settings import settings

logger = logging.getLogger(__name__)

ADMIN_REQUIRED_MESSAGE = "Access denied. Admin privileges required."
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."
SESSION_REQUIRED_MESSAGE = "Please log in to continue."

SessionListener = Callable[[EventType], Awaitable[None] | None]

# _commit without an expected record writes unconditionally
_ANY = object()


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class SessionManager:
    def __init__(
        self,
        gateway: ApiGateway,
        *,
        namespace: str | None = None,
        redis: Redis | None = None,
        bus: InteractionBus | None = None,
        clock: Callable[[], float] = time.time,
        require_admin: bool = False,
        inactivity_timeout_minutes: float | None = None,
        expiry_check_interval_seconds: float | None = None,
        activity_persist_interval_seconds: float | None = None,
        logout_timeout_seconds: float | None = None,
    ):
        self.gateway = gateway
        self.auth = AuthService(gateway)
        self.namespace = namespace or settings.SESSION_NAMESPACE
        self.require_admin = require_admin
        self.bus = bus
        self._redis = redis
        self._clock = clock

        timeout_minutes = (
            inactivity_timeout_minutes
            if inactivity_timeout_minutes is not None
            else settings.SESSION_INACTIVITY_TIMEOUT_MINUTES
        )
        self.inactivity_timeout_ms = int(timeout_minutes * 60 * 1000)
        self.expiry_check_interval = (
            expiry_check_interval_seconds
            if expiry_check_interval_seconds is not None
            else settings.SESSION_EXPIRY_CHECK_INTERVAL_SECONDS
        )
        persist_interval = (
            activity_persist_interval_seconds
            if activity_persist_interval_seconds is not None
            else settings.ACTIVITY_PERSIST_INTERVAL_SECONDS
        )
        self._persist_interval_ms = int(persist_interval * 1000)
        self.logout_timeout = (
            logout_timeout_seconds
            if logout_timeout_seconds is not None
            else settings.LOGOUT_TIMEOUT_SECONDS
        )

        self._record: SessionRecord | None = None
        self._lock = asyncio.Lock()
        self._subscription: ActivitySubscription | None = None
        self._expiry_task: asyncio.Task | None = None
        self._background: set[asyncio.Task] = set()
        self._last_persisted_ms = 0
        self._listeners: list[SessionListener] = []
        self.is_loading = False

        gateway.bind_session(self)

    # read accessors

    @property
    def state(self) -> SessionState:
        if self._record is None:
            return SessionState.UNAUTHENTICATED
        return SessionState.AUTHENTICATED

    def is_authenticated(self) -> bool:
        return self._record is not None

    def current_user(self) -> Identity | None:
        record = self._record
        return record.identity if record is not None else None

    @property
    def credential(self) -> str | None:
        record = self._record
        return record.credential if record is not None else None

    @property
    def last_active_ms(self) -> int | None:
        record = self._record
        return record.last_active_ms if record is not None else None

    @property
    def is_tracking(self) -> bool:
        return self._subscription is not None or self._expiry_task is not None

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    # lifecycle

    async def restore(self) -> bool:
        """
        Resume a persisted session, returns True when one is active afterwards.

        Expired, incomplete or remotely rejected records are cleared as a
        whole. Validation and storage failures are not raised: the caller
        just sees an unauthenticated manager.
        """
        self.is_loading = True
        try:
            try:
                record = await load_session(self.namespace, self._redis)
            except RedisError:
                logger.warning(
                    "Could not read stored %s session", self.namespace, exc_info=True
                )
                record = None
            if record is None:
                # drops any half-written leftovers too
                await self._commit(None)
                return False

            now = self.now_ms()
            if record.is_expired(now, self.inactivity_timeout_ms):
                logger.info(
                    "Persisted %s session idle for %ss, clearing",
                    self.namespace,
                    record.idle_ms(now) // 1000,
                )
                await self._commit(None)
                return False

            try:
                identity = await self.auth.me(credential=record.credential)
            except ApiError as exc:
                logger.info(
                    "Persisted %s session failed validation (%s), clearing",
                    self.namespace,
                    type(exc).__name__,
                )
                await self._commit(None)
                await self._announce(
                    SessionEndedEvent(
                        namespace=self.namespace,
                        user_id=record.identity.id,
                        reason="invalid",
                    )
                )
                return False

            if self.require_admin and not identity.is_admin:
                logger.info("Persisted %s session is not an admin, clearing", self.namespace)
                await self._commit(None)
                return False

            restored = SessionRecord(
                credential=record.credential,
                identity=record.identity.merged_with(
                    identity.model_dump(by_alias=True, exclude_unset=True)
                ),
                last_active_ms=self.now_ms(),
            )
            try:
                await self._commit(restored)
            except RedisError:
                logger.warning(
                    "Could not store restored %s session", self.namespace, exc_info=True
                )
                await self._commit(None)
                return False
            logger.info("Restored %s session for user %s", self.namespace, identity.id)
            await self._announce(
                SessionRestoredEvent(
                    namespace=self.namespace,
                    user_id=restored.identity.id,
                    username=restored.identity.username,
                )
            )
            return True
        finally:
            self.is_loading = False

    async def login(self, identity: Identity | dict, credential: str) -> Identity:
        """
        Start a session from an already completed authentication exchange.

        Calling it while signed in replaces the current session.
        """
        if not credential:
            raise ValueError("credential must be a non-empty token")
        if not isinstance(identity, Identity):
            identity = Identity.model_validate(identity)
        if self.require_admin and not identity.is_admin:
            raise AuthenticationError(ADMIN_REQUIRED_MESSAGE, status_code=403)

        record = SessionRecord(
            credential=credential, identity=identity, last_active_ms=self.now_ms()
        )
        await self._commit(record)
        logger.info("Started %s session for user %s", self.namespace, identity.id)
        await self._announce(
            SessionStartedEvent(
                namespace=self.namespace, user_id=identity.id, username=identity.username
            )
        )
        return identity

    async def authenticate(self, email: str, password: str) -> Identity:
        """Exchange email and password for a session."""
        try:
            credentials = UserLogIn(email=email, password=password)
        except pydantic.ValidationError as exc:
            raise validation_error_from_model(exc) from exc

        try:
            response = await self.auth.login(credentials)
        except AuthenticationError as exc:
            detail = exc.detail
            if detail == AuthenticationError.default_detail:
                detail = INVALID_CREDENTIALS_MESSAGE
            raise AuthenticationError(detail) from exc
        return await self.login(response.user, response.token)

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        confirm_password: str | None = None,
    ) -> Identity:
        """
        Create an account and sign in with it.

        Raises ValidationError carrying the API's message list unchanged when
        the account is refused; the state is left untouched.
        """
        try:
            user = UserCreate(
                username=username,
                email=email,
                password=password,
                confirm_password=confirm_password,
            )
        except pydantic.ValidationError as exc:
            raise validation_error_from_model(exc) from exc

        response = await self.auth.register(user)
        if response is None:
            # account created without a session, sign in explicitly
            return await self.authenticate(email, password)
        return await self.login(response.user, response.token)

    async def logout(self) -> None:
        """
        End the session locally whatever happens remotely.

        The remote logout is best-effort and capped by logout_timeout; a
        second call on an already ended session is a no-op.
        """
        record = self._record
        try:
            if record is not None:
                await asyncio.wait_for(
                    self.auth.logout(credential=record.credential),
                    timeout=self.logout_timeout,
                )
        except (ApiError, asyncio.TimeoutError) as exc:
            logger.warning(
                "Remote logout failed for %s session (%s), clearing locally",
                self.namespace,
                type(exc).__name__,
            )
        finally:
            await self._end("logout", record)

    async def invalidate(self, reason: str = "rejected") -> None:
        """End the session without calling the API, e.g. after a 401."""
        await self._end(reason, self._record)

    async def check_expiry(self) -> bool:
        """Returns True when the session was ended for inactivity."""
        record = self._record
        if record is None:
            return False
        now = self.now_ms()
        if not record.is_expired(now, self.inactivity_timeout_ms):
            return False
        logger.info(
            "%s session inactive for %ss, ending",
            self.namespace,
            record.idle_ms(now) // 1000,
        )
        await self._end("expired", record)
        return True

    async def close(self) -> None:
        """
        Release listeners and timers without ending the session.

        The persisted record survives so the next restore() can resume it.
        """
        self._stop_tracking()
        await self._drain()

    async def __aenter__(self) -> "SessionManager":
        await self.restore()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # mutations

    async def record_activity(self, signal: ActivitySignal | None = None) -> None:
        """Note user activity; writes to storage are rate limited."""
        if self._mark_activity():
            await self._persist_activity(self._last_persisted_ms)

    async def update_identity(self, changes: ProfileUpdate | dict) -> Identity:
        record = self._require_record()
        try:
            update = (
                changes if isinstance(changes, ProfileUpdate)
                else ProfileUpdate.model_validate(changes)
            )
        except pydantic.ValidationError as exc:
            raise validation_error_from_model(exc) from exc

        current = record.identity
        payload = {
            key: value
            for key, value in {"username": current.username, "email": current.email}.items()
            if value is not None
        }
        payload.update(update.to_payload())
        returned = await self.auth.update_profile(payload)

        # the session may have ended or been replaced while the API answered
        revised = await self._revise(
            lambda live: live.model_copy(
                update={"identity": live.identity.merged_with(returned or update.to_payload())}
            ),
            belongs=lambda live: live.identity.id == current.id,
        )
        if revised is None:
            raise AuthenticationError(SESSION_REQUIRED_MESSAGE)
        updated = revised.identity

        before = current.to_storage()
        after = updated.to_storage()
        changed = sorted(key for key in after if before.get(key) != after[key])
        await self._announce(
            IdentityUpdatedEvent(
                namespace=self.namespace, user_id=updated.id, changed_fields=changed
            )
        )
        return updated

    async def change_password(
        self,
        current_password: str,
        new_password: str,
        confirm_password: str | None = None,
    ) -> None:
        self._require_record()
        try:
            change = PasswordChange(
                current_password=current_password,
                new_password=new_password,
                confirm_password=confirm_password,
            )
        except pydantic.ValidationError as exc:
            raise validation_error_from_model(exc) from exc

        rotated = await self.auth.change_password(change)
        if rotated:
            await self.replace_credential(rotated)

    async def delete_account(self) -> None:
        record = self._require_record()
        await self.auth.delete_account()
        logger.info("Account %s deleted", record.identity.id)
        await self._end("account_deleted", record)

    async def replace_credential(
        self, credential: str, replacing: str | None = None
    ) -> bool:
        """
        Swap the bearer token, keeping identity and activity.

        With replacing, the swap only applies while the live session still
        carries that token. Returns False when nothing was swapped.
        """
        revised = await self._revise(
            lambda live: live.model_copy(update={"credential": credential}),
            belongs=lambda live: replacing is None or live.credential == replacing,
        )
        return revised is not None

    # listeners

    def add_listener(self, listener: SessionListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # internals

    def _require_record(self) -> SessionRecord:
        record = self._record
        if record is None:
            raise AuthenticationError(SESSION_REQUIRED_MESSAGE)
        return record

    async def _commit(
        self, record: SessionRecord | None, expected: object = _ANY
    ) -> bool:
        """
        Write record to storage and memory, None ends the session.

        With expected, nothing is written unless the live record is still that
        object; returns False when the write was dropped. Ending a session
        always lands unauthenticated in memory, even when storage is down.
        """
        async with self._lock:
            if expected is not _ANY and self._record is not expected:
                return False
            if record is None:
                try:
                    await clear_session(self.namespace, self._redis)
                except RedisError:
                    logger.warning(
                        "Could not clear stored %s session", self.namespace, exc_info=True
                    )
                finally:
                    self._record = None
                    self._stop_tracking()
                return True
            await save_session(record, self.namespace, self._redis)
            self._last_persisted_ms = record.last_active_ms or self.now_ms()
            self._record = record
            self._start_tracking()
            return True

    async def _revise(
        self,
        change: Callable[[SessionRecord], SessionRecord],
        belongs: Callable[[SessionRecord], bool],
    ) -> SessionRecord | None:
        """
        Commit change(live record) while the session it was made for lasts.

        Retries when another transition committed first. Returns None once
        there is no live record or belongs() rejects it.
        """
        while True:
            record = self._record
            if record is None or not belongs(record):
                return None
            revised = change(record)
            if await self._commit(revised, expected=record):
                return revised

    async def _end(self, reason: str, previous: SessionRecord | None) -> None:
        await self._commit(None)
        if previous is None:
            return
        logger.info("Ended %s session (%s)", self.namespace, reason)
        await self._announce(
            SessionEndedEvent(
                namespace=self.namespace, user_id=previous.identity.id, reason=reason
            )
        )

    def _start_tracking(self) -> None:
        if self.bus is not None and self._subscription is None:
            self._subscription = ActivitySubscription(self.bus, self._on_signal)
        if self._expiry_task is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                return
            self._expiry_task = self._spawn(
                loop, self._expiry_loop(), name=f"session-expiry:{self.namespace}"
            )

    def _stop_tracking(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self._expiry_task = None
        current = _current_task()
        for task in list(self._background):
            # the expiry loop may be the one ending the session
            if task is not current:
                task.cancel()

    def _spawn(
        self,
        loop: asyncio.AbstractEventLoop,
        coro: Coroutine,
        name: str | None = None,
    ) -> asyncio.Task:
        task = loop.create_task(coro, name=name)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _drain(self) -> None:
        current = _current_task()
        pending = [task for task in self._background if task is not current]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _expiry_loop(self) -> None:
        while True:
            await asyncio.sleep(self.expiry_check_interval)
            try:
                if await self.check_expiry():
                    return
            except Exception:
                logger.error("Session expiry check failed", exc_info=True)

    def _on_signal(self, signal: ActivitySignal) -> None:
        if not self._mark_activity():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._spawn(loop, self._persist_activity(self._last_persisted_ms))

    def _mark_activity(self) -> bool:
        """Refresh the in-memory timestamp, True when a storage write is due."""
        record = self._record
        if record is None:
            return False
        now = self.now_ms()
        record.last_active_ms = now
        if now - self._last_persisted_ms < self._persist_interval_ms:
            return False
        self._last_persisted_ms = now
        return True

    async def _persist_activity(self, last_active_ms: int) -> None:
        try:
            await touch_last_active(self.namespace, last_active_ms, self._redis)
        except Exception:
            logger.warning("Could not persist activity timestamp", exc_info=True)

    async def _announce(self, event: EventType) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.error(
                    "Session listener failed on %s", event.event, exc_info=True
                )
        await emit_event(event, self._redis)


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
