# src/models/page.py

"""Page request/result value types used as cache keys and payloads."""

from dataclasses import dataclass

from src.models.product import Product


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed for *total* items, never less than one."""
    if limit <= 0:
        raise ValueError(f"limit must be positive, got {limit}")
    return max(1, -(-max(total, 0) // limit))


@dataclass(frozen=True)
class PageRequest:
    """Identity of one page of the listing: ``(page, limit)``."""

    page: int
    limit: int

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")

    @property
    def skip(self) -> int:
        """Offset of the first item on this page."""
        return (self.page - 1) * self.limit

    def next(self) -> "PageRequest":
        """The request for the following page at the same limit."""
        return PageRequest(page=self.page + 1, limit=self.limit)


@dataclass(frozen=True)
class PageResult:
    """One page of products plus the total item count."""

    items: tuple[Product, ...]
    total: int

    def total_pages(self, limit: int) -> int:
        """Total pages for this result at the given page size."""
        return total_pages(self.total, limit)
