"""Shared exceptions for service layer operations."""


class BookmarkNotFoundError(Exception):
    """Raised when a bookmark does not exist or is not owned by the caller."""

    def __init__(self, bookmark_id: int) -> None:
        self.bookmark_id = bookmark_id
        super().__init__(f"Bookmark {bookmark_id} not found")


class InvalidPositionError(Exception):
    """
    Raised when a reorder target lies outside the user's position range.

    Valid targets are 0..count-1; anything else would leave a gap or a
    duplicate in the user's ordering.
    """

    def __init__(self, position: int, count: int) -> None:
        self.position = position
        self.count = count
        super().__init__(
            f"Position {position} is out of range; expected 0 to {count - 1}",
        )
