"""Bookmark endpoints: create, list, delete and reorder."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_current_user, get_settings
from core.config import Settings
from models.user import User
from schemas.bookmark import (
    BookmarkCreate,
    BookmarkCreatedResponse,
    BookmarkListResponse,
    BookmarkReorder,
    BookmarkResponse,
    MessageResponse,
)
from services import bookmark_service
from services.exceptions import BookmarkNotFoundError, InvalidPositionError

router = APIRouter(prefix="/bookmarks", tags=["bookmarks"])


@router.post("", response_model=BookmarkCreatedResponse, status_code=201)
async def create_bookmark(
    data: BookmarkCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> BookmarkCreatedResponse:
    """
    Save a URL as a bookmark at the end of the user's list.

    The page title, favicon and a short summary are fetched while the request
    is handled; when they cannot be fetched the bookmark is saved with fallback values.
    """
    bookmark = await bookmark_service.create_bookmark(
        db,
        current_user.id,
        data,
        fetch_timeout=settings.fetch_timeout,
        reader_base_url=settings.reader_base_url,
    )
    return BookmarkCreatedResponse(
        message="Bookmark saved",
        bookmark=BookmarkResponse.model_validate(bookmark),
    )


@router.get("", response_model=BookmarkListResponse)
async def list_bookmarks(
    tag: str | None = Query(default=None, description="Only bookmarks with this tag (case-insensitive)"),  # noqa: E501
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> BookmarkListResponse:
    """List the current user's bookmarks in position order."""
    bookmarks = await bookmark_service.list_bookmarks(db, current_user.id, tag=tag)
    return BookmarkListResponse(
        bookmarks=[BookmarkResponse.model_validate(b) for b in bookmarks],
    )


@router.patch("/reorder", response_model=MessageResponse)
async def reorder_bookmark(
    data: BookmarkReorder,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Move a bookmark to a new position, shifting the bookmarks in between."""
    try:
        moved = await bookmark_service.reorder_bookmark(
            db, current_user.id, data.bookmark_id, data.new_position,
        )
    except BookmarkNotFoundError:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    except InvalidPositionError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not moved:
        return MessageResponse(message="No position change needed")
    return MessageResponse(message="Bookmark reordered successfully")


@router.delete("/{bookmark_id}", response_model=MessageResponse)
async def delete_bookmark(
    bookmark_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Delete a bookmark; later bookmarks move up one position."""
    try:
        await bookmark_service.delete_bookmark(db, current_user.id, bookmark_id)
    except BookmarkNotFoundError:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return MessageResponse(message="Bookmark deleted successfully")
