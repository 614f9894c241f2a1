"""Stateless page windows over ordered sequences."""

from __future__ import annotations

import math
from typing import Any, Generic, List, Sequence, TypeVar

from pydantic import BaseModel

ItemT = TypeVar("ItemT")


class Page(BaseModel, Generic[ItemT]):
    """One window of an ordered sequence."""

    items: List[ItemT]
    page: int
    page_size: int
    total_items: int
    total_pages: int

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def _check_size(size: int) -> None:
    if size < 1:
        raise ValueError(f"Page size must be positive, got {size}")


def total_pages(length: int, size: int) -> int:
    """Number of pages for ``length`` items; at least one."""
    _check_size(size)
    return max(1, math.ceil(length / size))


def paginate(items: Sequence[Any], page: int, size: int) -> Page[Any]:
    """Return page ``page`` (1-based) of ``items``.

    Pages outside ``[1, total_pages]`` come back empty; they are not
    clamped.
    """
    _check_size(size)
    length = len(items)
    if page < 1:
        window: list[Any] = []
    else:
        start = (page - 1) * size
        window = list(items[start : min(page * size, length)])
    return Page[Any](
        items=window,
        page=page,
        page_size=size,
        total_items=length,
        total_pages=total_pages(length, size),
    )


class Paginator:
    """Page cursor for one table.

    The cursor goes back to page 1 whenever the length of the observed
    sequence changes.
    """

    def __init__(self, size: int) -> None:
        _check_size(size)
        self.size = size
        self.page = 1
        self._length: int | None = None

    @property
    def total_pages(self) -> int:
        return total_pages(self._length or 0, self.size)

    def observe(self, length: int) -> None:
        if length != self._length:
            self._length = length
            self.page = 1

    def next(self) -> int:
        if self.page < self.total_pages:
            self.page += 1
        return self.page

    def previous(self) -> int:
        if self.page > 1:
            self.page -= 1
        return self.page

    def window(self, items: Sequence[Any]) -> Page[Any]:
        self.observe(len(items))
        return paginate(items, self.page, self.size)
