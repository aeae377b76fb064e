"""
Service layer for bookmark operations and manual ordering.

Every bookmark has a position, and one user's positions always form the dense
sequence 0..count-1. Create appends at the end, delete closes the gap it
leaves, and reorder shifts the range between the old and new position.

Each mutating operation first locks the owner's ``users`` row
(SELECT ... FOR UPDATE). The lock is held until the request transaction
commits, which serializes all ordering changes for one user while leaving
other users unaffected. SQLite ignores FOR UPDATE; there the engine begins
every transaction with BEGIN IMMEDIATE (see db.session.build_engine).

Note: Functions here do not commit. Caller (session generator) handles commit
at request end.
"""
import asyncio
import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.bookmark import Bookmark
from models.user import User
from schemas.bookmark import BookmarkCreate
from services.exceptions import BookmarkNotFoundError, InvalidPositionError
from services.summary_extractor import READER_BASE_URL, extract_summary
from services.url_scraper import DEFAULT_TIMEOUT, extract_page_metadata

logger = logging.getLogger(__name__)


async def _lock_user(db: AsyncSession, user_id: int) -> None:
    """Take the per-user row lock that guards the user's bookmark positions."""
    await db.execute(
        select(User.id).where(User.id == user_id).with_for_update(),
    )


async def count_bookmarks(db: AsyncSession, user_id: int) -> int:
    """Return how many bookmarks a user has."""
    result = await db.execute(
        select(func.count()).select_from(Bookmark).where(Bookmark.user_id == user_id),
    )
    return result.scalar_one()


async def create_bookmark(
    db: AsyncSession,
    user_id: int,
    data: BookmarkCreate,
    fetch_timeout: float = DEFAULT_TIMEOUT,
    reader_base_url: str = READER_BASE_URL,
) -> Bookmark:
    """
    Create a new bookmark at the end of the user's ordering.

    Flow:
    1. Fetch page metadata and the reader summary concurrently
    2. Lock the user, count existing bookmarks
    3. Insert the bookmark with position = count

    Extraction is best-effort - both extractors return fallback values on
    failure, so a bookmark is always saved. Extraction runs before the lock is
    taken so a slow page never blocks the user's other writes.
    """
    metadata, summary = await asyncio.gather(
        extract_page_metadata(data.url, timeout=fetch_timeout),
        extract_summary(data.url, timeout=fetch_timeout, reader_base_url=reader_base_url),
    )

    await _lock_user(db, user_id)
    position = await count_bookmarks(db, user_id)

    bookmark = Bookmark(
        user_id=user_id,
        url=data.url,
        title=metadata.title,
        favicon=metadata.favicon,
        summary=summary,
        tags=list(data.tags),
        position=position,
    )
    db.add(bookmark)
    await db.flush()
    await db.refresh(bookmark)
    logger.info("Created bookmark %s for user %s at position %s", bookmark.id, user_id, position)
    return bookmark


async def get_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
) -> Bookmark | None:
    """Get a bookmark by ID, scoped to user. Returns None if not found or wrong user."""
    result = await db.execute(
        select(Bookmark).where(
            Bookmark.id == bookmark_id,
            Bookmark.user_id == user_id,
        ),
    )
    return result.scalar_one_or_none()


async def list_bookmarks(
    db: AsyncSession,
    user_id: int,
    tag: str | None = None,
) -> list[Bookmark]:
    """
    Get a user's bookmarks ordered by position.

    Args:
        db: Database session.
        user_id: Owner of the bookmarks.
        tag: Optional tag filter, matched case-insensitively. Blank means no filter.
    """
    result = await db.execute(
        select(Bookmark)
        .where(Bookmark.user_id == user_id)
        .order_by(Bookmark.position.asc(), Bookmark.id.asc()),
    )
    bookmarks = list(result.scalars().all())

    tag = (tag or "").strip().lower()
    if not tag:
        return bookmarks
    # Tags are a JSON list, so membership is checked here rather than in SQL
    return [bookmark for bookmark in bookmarks if tag in bookmark.tags]


async def delete_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
) -> None:
    """
    Delete a bookmark and close the gap it leaves in the ordering.

    Every remaining bookmark of the user positioned after the deleted one moves
    down by one.

    Raises:
        BookmarkNotFoundError: If the bookmark does not exist or belongs to another user.
    """
    await _lock_user(db, user_id)

    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        raise BookmarkNotFoundError(bookmark_id)

    deleted_position = bookmark.position
    await db.delete(bookmark)
    await db.flush()

    await db.execute(
        update(Bookmark)
        .where(
            Bookmark.user_id == user_id,
            Bookmark.position > deleted_position,
        )
        .values(position=Bookmark.position - 1),
    )
    logger.info(
        "Deleted bookmark %s for user %s from position %s", bookmark_id, user_id, deleted_position,
    )


async def reorder_bookmark(
    db: AsyncSession,
    user_id: int,
    bookmark_id: int,
    new_position: int,
) -> bool:
    """
    Move a bookmark to a new position, shifting the bookmarks in between.

    Moving earlier increments every position in [new_position, old_position);
    moving later decrements every position in (old_position, new_position].

    Returns:
        True if the bookmark moved, False if it was already at new_position.

    Raises:
        BookmarkNotFoundError: If the bookmark does not exist or belongs to another user.
        InvalidPositionError: If new_position is outside 0..count-1.
    """
    await _lock_user(db, user_id)

    bookmark = await get_bookmark(db, user_id, bookmark_id)
    if bookmark is None:
        raise BookmarkNotFoundError(bookmark_id)

    old_position = bookmark.position
    if new_position == old_position:
        return False

    count = await count_bookmarks(db, user_id)
    if not 0 <= new_position < count:
        raise InvalidPositionError(new_position, count)

    if new_position < old_position:
        shift = (
            update(Bookmark)
            .where(
                Bookmark.user_id == user_id,
                Bookmark.position >= new_position,
                Bookmark.position < old_position,
            )
            .values(position=Bookmark.position + 1)
        )
    else:
        shift = (
            update(Bookmark)
            .where(
                Bookmark.user_id == user_id,
                Bookmark.position > old_position,
                Bookmark.position <= new_position,
            )
            .values(position=Bookmark.position - 1)
        )
    await db.execute(shift)

    bookmark.position = new_position
    await db.flush()
    return True
