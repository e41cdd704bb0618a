"""Pagination metadata for ticket listings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Page:
    """One window of a listing: ``limit`` rows starting at ``offset`` of ``total_count``."""

    total_count: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + self.limit < self.total_count

    @property
    def next_offset(self) -> Optional[int]:
        return self.offset + self.limit if self.has_more else None

    def to_dict(self) -> dict:
        return {
            "total_count": self.total_count,
            "limit": self.limit,
            "offset": self.offset,
            "has_more": self.has_more,
            "next_offset": self.next_offset,
        }


def build_pagination(total_count: int, limit: int, offset: int) -> dict:
    return Page(total_count, limit, offset).to_dict()
