"""
Cursor pagination for Spotify listings.

Every listing used by release-sync is read the same way: fetch a page,
collect its items, and keep going while the page hands back a next
cursor. The cursor is whatever the endpoint uses: the `after` artist id
for followed artists, an offset for album tracks and playlist items.

A page fetcher is any callable `fetch_page(cursor) -> (items, next_cursor)`
where a falsy next_cursor ends the listing.

Example:
    def fetch_page(offset):
        page = client.playlist_tracks_page(playlist_id, offset)
        ...
        return items, next_offset

    items = collect(fetch_page, seed=0)
"""

from typing import Any, Callable, Iterator, TypeVar

from release_sync.core.exceptions import PaginationLimitError


T = TypeVar("T")

PageFetcher = Callable[[Any], tuple[list[T], Any]]


def iter_pages(
    fetch_page: PageFetcher,
    seed: Any = None,
    max_pages: int | None = None
) -> Iterator[list[T]]:
    """
    Lazily yield the item list of each page.

    Args:
        fetch_page: Callable returning (items, next_cursor) for a cursor.
        seed: Cursor for the first page.
        max_pages: Optional cap on the number of pages. None means no cap.

    Yields:
        The items of each page, in order.

    Raises:
        PaginationLimitError: If a next page is still advertised after
                              max_pages pages.
    """
    cursor = seed
    pages = 0
    while True:
        items, cursor = fetch_page(cursor)
        pages += 1
        yield items

        if not cursor:
            return

        if max_pages is not None and pages >= max_pages:
            raise PaginationLimitError(
                f"Listing still has more pages after {max_pages} pages",
                details={"max_pages": max_pages, "next_cursor": cursor}
            )


def collect(
    fetch_page: PageFetcher,
    seed: Any = None,
    max_pages: int | None = None
) -> list[T]:
    """Fetch every page and return all items in order."""
    items: list[T] = []
    for page in iter_pages(fetch_page, seed=seed, max_pages=max_pages):
        items.extend(page)
    return items
