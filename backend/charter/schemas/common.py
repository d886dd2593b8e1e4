"""
Shared response pieces for paginated listings.
"""

from pydantic import BaseModel

from charter.domain.query import PageSlice


class PaginationMeta(BaseModel):
    current_page: int
    page_size: int
    total_records: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def from_slice(cls, page: PageSlice) -> "PaginationMeta":
        return cls(
            current_page=page.current_page,
            page_size=page.page_size,
            total_records=page.total_records,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_prev=page.has_prev,
        )
