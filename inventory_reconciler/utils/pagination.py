# inventory_reconciler/utils/pagination.py
from typing import Callable, Iterator, List, TypeVar

T = TypeVar('T')


def iter_pages(
    fetch_page: Callable[[int, int], List[T]],
    page_size: int,
    max_pages: int
) -> Iterator[List[T]]:
    """Yield pages from an offset-paginated source.

    Stops on an empty page, on a page shorter than page_size, or after max_pages
    pages, whichever comes first. Errors raised by fetch_page propagate to the caller.

    Args:
        fetch_page: Callable taking (offset, limit) and returning a list of rows
        page_size: Rows per page
        max_pages: Page ceiling for one run

    Yields:
        Non-empty lists of rows
    """
    for page in range(max_pages):
        rows = fetch_page(page * page_size, page_size)
        if not rows:
            return
        yield rows
        if len(rows) < page_size:
            return


def chunked(values: List[T], size: int) -> Iterator[List[T]]:
    """Split a list into consecutive chunks of at most size items."""
    for start in range(0, len(values), size):
        yield values[start:start + size]
