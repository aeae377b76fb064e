"""Tests for bookmark request schemas."""
import pytest
from pydantic import ValidationError

from schemas.bookmark import BookmarkCreate, BookmarkReorder, normalize_tags


class TestBookmarkCreate:
    """Tests for BookmarkCreate validation."""

    def test__bookmark_create__keeps_url_unchanged(self) -> None:
        data = BookmarkCreate(url='https://example.com')
        assert data.url == 'https://example.com'
        assert data.tags == []

    @pytest.mark.parametrize('url', ['example.com', 'mailto:a@example.com', 'http://', ' '])
    def test__bookmark_create__rejects_invalid_url(self, url: str) -> None:
        with pytest.raises(ValidationError, match='Valid URL is required'):
            BookmarkCreate(url=url)

    def test__bookmark_create__rejects_non_string_tags(self) -> None:
        with pytest.raises(ValidationError):
            BookmarkCreate(url='https://example.com', tags=[{'name': 'x'}])


def test__normalize_tags__trims_lowercases_and_drops_empty() -> None:
    assert normalize_tags([' Python ', 'WEB', '', '   ']) == ['python', 'web']


def test__bookmark_reorder__snake_and_camel_case() -> None:
    assert BookmarkReorder(bookmark_id=1, new_position=2) == BookmarkReorder.model_validate(
        {'bookmarkId': 1, 'newPosition': 2},
    )


def test__bookmark_reorder__requires_integers() -> None:
    with pytest.raises(ValidationError):
        BookmarkReorder.model_validate({'bookmark_id': 'abc', 'new_position': 0})
