"""
Pagination utilities for Sports Finder.
"""

import math
from typing import Dict, Any, Sequence


class Paginator:
    """
    A reusable paginator class for handling pagination logic.
    """

    def __init__(self, page: int = 1, page_size: int = 20):
        """
        Initialize paginator.

        Args:
            page: Current page number (1-indexed)
            page_size: Number of items per page
        """
        self.page = max(1, page)  # Ensure page is at least 1
        self.page_size = max(1, page_size)  # Ensure page_size is at least 1

    def get_offset(self) -> int:
        """
        Calculate the zero-based offset of the first item on the page.

        Returns:
            The offset value
        """
        return (self.page - 1) * self.page_size

    def get_total_pages(self, total: int) -> int:
        """Number of pages needed for ``total`` items (0 when there are none)."""
        return math.ceil(total / self.page_size) if total > 0 else 0

    def get_page_info(self, total: int) -> Dict[str, Any]:
        """
        Get pagination metadata for a response body.

        Args:
            total: Total number of items

        Returns:
            Dictionary with pagination details
        """
        return {
            "total": total,
            "page": self.page,
            "pageSize": self.page_size,
            "totalPages": self.get_total_pages(total),
        }

    def paginate(self, items: Sequence[Any]) -> Dict[str, Any]:
        """
        Slice one page out of ``items``.

        An out-of-range page yields an empty ``data`` list.
        """
        offset = self.get_offset()
        page_info = self.get_page_info(len(items))
        page_info["data"] = list(items[offset:offset + self.page_size])
        return page_info


def paginate(items: Sequence[Any], page: int, page_size: int) -> Dict[str, Any]:
    """Return ``{data, total, page, pageSize, totalPages}`` for one page of items."""
    return Paginator(page, page_size).paginate(items)
