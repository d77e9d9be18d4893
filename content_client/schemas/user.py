from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class Identity(BaseModel):
    """
    The signed-in user as returned by the API.

    The backend emits both ``id`` and Mongo-style ``_id``; either one is
    accepted and exposed as ``id``. Profile fields the client does not know
    about are kept so a round trip through storage loses nothing.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str | None = None
    username: str | None = None
    email: str | None = None
    bio: str | None = None
    profile_picture: str | None = Field(default=None, alias="profilePicture")
    is_admin: bool = Field(default=False, alias="isAdmin")

    @model_validator(mode="before")
    @classmethod
    def normalise_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and "_id" in data:
            data = dict(data)
            legacy_id = data.pop("_id")
            if not data.get("id"):
                data["id"] = legacy_id
        return data

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if v is None or isinstance(v, str):
            return v
        return str(v)

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)

    def merged_with(self, changes: dict) -> "Identity":
        """Return a copy with ``changes`` (API field names) applied on top."""
        return Identity.model_validate({**self.to_storage(), **changes})


class UserLogIn(BaseModel):
    email: str
    password: str

    @field_validator("email", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Please fill in all fields")
        return v


class UserCreate(BaseModel):
    username: str
    email: str
    password: str
    confirm_password: str | None = Field(default=None, exclude=True)

    @field_validator("username", "email", "password")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Please fill in all fields")
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "UserCreate":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str | None = None
    email: str | None = None
    bio: str | None = None
    profile_picture: str | None = Field(default=None, alias="profilePicture")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class PasswordChange(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(alias="currentPassword")
    new_password: str = Field(alias="newPassword")
    confirm_password: str | None = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def passwords_match(self) -> "PasswordChange":
        if self.confirm_password is not None and self.confirm_password != self.new_password:
            raise ValueError("New password and confirm password do not match.")
        return self

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)
