"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    TypeAdapter,
    ValidationError,
    field_validator,
)

_http_url = TypeAdapter(HttpUrl)


def normalize_tags(tags: list[str]) -> list[str]:
    """Normalize tags: trim and lowercase, dropping tags that are empty after trimming."""
    normalized = []
    for tag in tags:
        normalized_tag = tag.strip().lower()
        if normalized_tag:
            normalized.append(normalized_tag)
    return normalized


class BookmarkCreate(BaseModel):
    """Schema for creating a new bookmark."""

    url: str = Field(description="http(s) URL to save; stored exactly as submitted")
    tags: list[str] = []

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        """
        Require a syntactically valid http(s) URL.

        HttpUrl would normalize the value (e.g. add a trailing slash to bare
        domains), so it is only used for validation and the original string is kept.
        """
        try:
            _http_url.validate_python(v)
        except ValidationError:
            raise ValueError("Valid URL is required") from None
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def default_tags(cls, v: list[str] | None) -> list[str]:
        """Treat a null tag list as empty."""
        if v is None:
            return []
        return v

    @field_validator("tags")
    @classmethod
    def lowercase_tags(cls, v: list[str]) -> list[str]:
        """Normalize tags."""
        return normalize_tags(v)


class BookmarkReorder(BaseModel):
    """Schema for moving a bookmark to a new position (camelCase keys are also accepted)."""

    bookmark_id: int = Field(validation_alias=AliasChoices("bookmark_id", "bookmarkId"))
    new_position: int = Field(validation_alias=AliasChoices("new_position", "newPosition"))


class BookmarkResponse(BaseModel):
    """Schema for bookmark responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str
    title: str
    favicon: str
    summary: str
    tags: list[str]
    position: int
    created_at: datetime


class BookmarkCreatedResponse(BaseModel):
    """Schema for the create response."""

    message: str
    bookmark: BookmarkResponse


class BookmarkListResponse(BaseModel):
    """Schema for bookmark list responses, ordered by position."""

    bookmarks: list[BookmarkResponse]


class MessageResponse(BaseModel):
    """Schema for operations that only report an outcome."""

    message: str
