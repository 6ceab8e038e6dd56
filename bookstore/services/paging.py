from typing import Tuple

MAX_PAGE_SIZE = 100


def clamp_page(page: int, page_size: int) -> Tuple[int, int]:
    """Pages start at 1 and hold between 1 and MAX_PAGE_SIZE rows."""
    return max(page, 1), min(max(page_size, 1), MAX_PAGE_SIZE)
