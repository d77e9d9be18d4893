"""
Persisted session record.
"""
from pydantic import BaseModel

from content_client.schemas.user import Identity


class SessionRecord(BaseModel):
    """Credential, identity and last activity, always stored as one unit."""

    credential: str
    identity: Identity
    # ms since epoch; older clients stored no timestamp at all
    last_active_ms: int | None = None

    def idle_ms(self, now_ms: int) -> int:
        if self.last_active_ms is None:
            return 0
        return max(now_ms - self.last_active_ms, 0)

    def is_expired(self, now_ms: int, timeout_ms: int) -> bool:
        return self.idle_ms(now_ms) > timeout_ms
