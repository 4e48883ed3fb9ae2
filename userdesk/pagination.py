from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Optional, Union


ELLIPSIS = "…"

PageItem = Union[int, str]

_PARAM_NAMES = {
    "page": "page",
    "limit": "limit",
    "age": "age",
    "sort_by": "sortBy",
    "sort_order": "sortOrder",
    "search": "search",
}


@dataclass(frozen=True)
class UsersQuery:
    page: int = 1
    limit: int = 9
    age: Optional[int] = None
    sort_by: Optional[str] = None
    sort_order: Optional[str] = None
    search: Optional[str] = None

    def to_params(self) -> Dict[str, Any]:
        """Query string params. Unset fields are left out rather than sent empty."""
        params: Dict[str, Any] = {}
        for field, value in asdict(self).items():
            if value is None or value == "":
                continue
            params[_PARAM_NAMES[field]] = value
        return params

    def with_page(self, page: int) -> "UsersQuery":
        return replace(self, page=page)

    def with_age(self, age: Optional[int]) -> "UsersQuery":
        # a new filter can leave fewer pages than the current one
        return replace(self, age=age, page=1)


def page_window(page: int, total_pages: int, max_visible: int = 5) -> List[PageItem]:
    """Page buttons to render, with ELLIPSIS where a range is skipped.

    >>> page_window(5, 10)
    [1, '…', 4, 5, 6, '…', 10]
    """
    if total_pages <= max_visible:
        return list(range(1, total_pages + 1))
    if page <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total_pages]
    if page >= total_pages - 2:
        return [1, ELLIPSIS, *range(total_pages - 3, total_pages + 1)]
    return [1, ELLIPSIS, page - 1, page, page + 1, ELLIPSIS, total_pages]


def is_page_number(item: Any) -> bool:
    return isinstance(item, int) and not isinstance(item, bool)
