"""
Domain records for Chirper.

These are the plain, immutable records handed out by the data store. They are
deliberately detached from the ORM: nothing here can lazily load a
relationship or write back to the database.

Design decisions:
- Using Pydantic for validation and serialization
- Records are frozen; a changed chirp is a new record from the store
- Relationships are explicit foreign keys (Chirp.author_id), with the author's
  display name joined in by the store rather than navigated
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# Chirp messages are short status updates
MAX_MESSAGE_LENGTH = 255


class User(BaseModel):
    """
    A registered user.

    Every user is a possible chirp author and a possible notification recipient.
    The notification pipeline only ever reads users.
    """
    id: int = Field(..., description="Unique user identifier")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Unique email address")
    created_at: Optional[datetime] = Field(default=None)

    model_config = ConfigDict(frozen=True)


class Chirp(BaseModel):
    """
    A short message authored by a user.

    author_name is joined from the users table at read time so a chirp
    snapshot is enough to render a notification about it.
    """
    id: int = Field(..., description="Unique chirp identifier")
    author_id: int = Field(..., description="Reference to the authoring user")
    author_name: str = Field(..., description="Author display name at read time")
    message: str = Field(..., description="Chirp text")
    created_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    model_config = ConfigDict(frozen=True)

    def is_authored_by(self, user_id: int) -> bool:
        """Check whether the given user wrote this chirp."""
        return self.author_id == user_id


class ChirpDraft(BaseModel):
    """Validated input for creating or editing a chirp."""
    message: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, value):
        # Length limits apply to the trimmed text, so a blank message is empty
        return value.strip() if isinstance(value, str) else value


class UserDraft(BaseModel):
    """Validated input for registering a user."""
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
