from pydantic import AliasChoices, BaseModel, Field
from typing import Optional

from link_store import MAX_TTL_SECONDS, MAX_VIEWS


class CreateLinkRequest(BaseModel):
    # "content" is accepted from older clients
    ciphertext: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ciphertext", "content")
    )
    views: int = Field(default=1, ge=1, le=MAX_VIEWS)
    ttl_seconds: int = Field(default=3600, ge=1, le=MAX_TTL_SECONDS)
    password_protected: bool = False


class CreateLinkResponse(BaseModel):
    id: str
    views_left: int
    expires_in: int
    e2e: bool = True
    password_protected: bool


class ConsumeResponse(BaseModel):
    ciphertext: str
    views_remaining: int
    burned: bool
    password_protected: bool


class LinkStatus(BaseModel):
    id: str
    views_remaining: int
    views_total: int
    created_at: str
    expires_at: str
    password_protected: bool


class DeleteResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    error: str
    detail: str
