from pydantic import BaseModel

from content_client.schemas.user import Identity


class AuthResponse(BaseModel):
    token: str
    user: Identity


class TokenResponse(BaseModel):
    token: str
