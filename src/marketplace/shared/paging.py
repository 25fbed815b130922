"""Offset pagination over Protean querysets."""

from dataclasses import dataclass, field

PAGE_SIZE = 500
MAX_PAGE_SIZE = 200


@dataclass(frozen=True)
class Page:
    items: list = field(default_factory=list)
    total: int = 0
    limit: int = 50
    offset: int = 0

    @property
    def has_next(self) -> bool:
        return self.offset + self.limit < self.total


def fetch_page(query, limit: int, offset: int = 0) -> Page:
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    offset = max(0, int(offset))
    result = query.offset(offset).limit(limit).all()
    return Page(items=list(result.items), total=result.total, limit=limit, offset=offset)


def fetch_all(query, page_size: int = PAGE_SIZE) -> list:
    """Read every row matching an ordered query, one page at a time."""
    items, offset = [], 0
    while True:
        result = query.offset(offset).limit(page_size).all()
        items.extend(result.items)
        if not result.has_next:
            return items
        offset += page_size
