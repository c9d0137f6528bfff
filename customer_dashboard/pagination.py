"""
Page-number windowing for the customer table pagination controls.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple, Union

ELLIPSIS = "..."

PageItem = Union[int, str]


@dataclass(frozen=True)
class PaginationControls:
    """
    What the pagination bar renders.

    Attributes:
        current: Page currently displayed
        total_pages: Number of pages
        items: Page numbers in ascending order, with ``ELLIPSIS`` in gaps
    """

    current: int
    total_pages: int
    items: List[PageItem]

    @property
    def has_previous(self) -> bool:
        return self.current > 1

    @property
    def has_next(self) -> bool:
        return self.current < self.total_pages

    @property
    def previous_page(self) -> Optional[int]:
        return self.current - 1 if self.has_previous else None

    @property
    def next_page(self) -> Optional[int]:
        return self.current + 1 if self.has_next else None


def page_window(current: int, total_pages: int) -> List[int]:
    """
    Page numbers to link to, sorted ascending.

    Always includes the first and last page plus three consecutive pages
    around ``current``; near either end the three-page window is shifted
    inward so it stays inside ``[1, total_pages]``.

    Args:
        current: Current page (clamped into range)
        total_pages: Number of pages

    Returns:
        Deduplicated, sorted page numbers; empty if there are no pages
    """
    if total_pages < 1:
        return []

    current = min(max(current, 1), total_pages)
    start = max(1, min(current - 1, total_pages - 2))
    end = min(total_pages, start + 2)

    pages = {1, total_pages}
    pages.update(range(start, end + 1))
    return sorted(pages)


def with_ellipses(pages: List[int]) -> List[PageItem]:
    """Insert an ``ELLIPSIS`` marker wherever consecutive pages are not adjacent."""
    items: List[PageItem] = []
    previous = None
    for page in pages:
        if previous is not None and page - previous > 1:
            items.append(ELLIPSIS)
        items.append(page)
        previous = page
    return items


def build_pagination(current: int, total_pages: int) -> Optional[PaginationControls]:
    """
    Build pagination controls for the table.

    Returns:
        The controls, or None when there is at most one page and no
        pagination bar should render
    """
    if total_pages <= 1:
        return None
    return PaginationControls(
        current=current,
        total_pages=total_pages,
        items=with_ellipses(page_window(current, total_pages)),
    )


def result_range(page: int, page_size: int, total_count: int) -> Optional[Tuple[int, int, int]]:
    """
    1-based ``(first, last, total)`` positions of the rows on ``page``.

    Returns:
        None when there is nothing to show
    """
    if total_count <= 0 or page_size <= 0:
        return None
    first = (page - 1) * page_size + 1
    if first > total_count:
        return None
    return first, min(page * page_size, total_count), total_count
