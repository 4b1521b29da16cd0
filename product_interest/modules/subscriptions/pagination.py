"""
Sorting and pagination for the subscriptions table.

Pure functions over lists of row dicts: no request or database access,
so the list page, the JSON endpoint and the tests share one code path.
"""
from math import ceil
from typing import Dict, List, Optional, Tuple, Union
from urllib.parse import urlencode

DEFAULT_ORDERBY = 'signup_date'
DEFAULT_ORDER = 'asc'


def sort_rows(rows: list, orderby: Optional[str], order: Optional[str], sortable: dict) -> list:
    """
    Sort table rows by a column and direction.

    Values are compared as plain strings (no locale, case-sensitive).
    Ties fall back to the row id so 'desc' is always the exact reverse
    of 'asc'.

    Args:
        rows: List of row dicts
        orderby: Requested column; unknown columns fall back to signup_date
        order: 'asc' for ascending; empty means 'asc', any other value
            sorts descending
        sortable: Map of sortable column names to (row key, initially desc)

    Returns:
        New sorted list
    """
    column = orderby if orderby in sortable else DEFAULT_ORDERBY
    sort_key = sortable[column][0] if column in sortable else column
    reverse = (order or DEFAULT_ORDER) != 'asc'

    def sort_fn(row):
        val = row.get(sort_key)
        return ('' if val is None else str(val), row.get('id') or 0)

    return sorted(rows, key=sort_fn, reverse=reverse)


def generate_page_numbers(current_page: int, total_pages: int) -> List[Union[int, str]]:
    """
    Generate pagination numbers with ellipsis for large page counts.

    Examples:
        >>> generate_page_numbers(1, 5)
        [1, 2, 3, 4, 5]

        >>> generate_page_numbers(10, 50)
        [1, '...', 8, 9, 10, 11, 12, '...', 50]
    """
    if total_pages < 1:
        return [1]

    current_page = max(1, min(current_page, total_pages))

    if total_pages <= 10:
        return list(range(1, total_pages + 1))

    pages = {1, total_pages}
    for p in range(max(1, current_page - 2), min(total_pages, current_page + 2) + 1):
        pages.add(p)

    sorted_pages = sorted(pages)

    result = []
    for i, page in enumerate(sorted_pages):
        if i > 0 and sorted_pages[i] - sorted_pages[i - 1] > 1:
            result.append('...')
        result.append(page)

    return result


def paginate_rows(rows: list, current_page: int, per_page: int = 10) -> Tuple[list, Dict]:
    """
    Slice one page out of the (already sorted) rows.

    Pages are 1-indexed; anything below 1 is treated as page 1. The
    returned metadata counts every row, not just the slice.
    """
    current_page = max(1, current_page or 1)
    total_items = len(rows)
    total_pages = int(ceil(total_items / per_page)) if per_page else 0

    start = (current_page - 1) * per_page
    page_rows = rows[start:start + per_page]

    meta = {
        'total_items': total_items,
        'per_page': per_page,
        'total_pages': total_pages,
        'current_page': current_page,
        'page_numbers': generate_page_numbers(current_page, total_pages),
    }
    return page_rows, meta


def build_pagination_url(base_path: str, page: int, filters: Optional[Dict[str, str]] = None) -> str:
    """
    Build a pagination URL keeping the current sort and page slug.

    Examples:
        >>> build_pagination_url('/admin/product-interest/', 2, {'orderby': 'product_name'})
        '/admin/product-interest/?paged=2&orderby=product_name'
    """
    params = {'paged': str(page)}

    if filters:
        for key, value in filters.items():
            if value is not None and value != '':
                params[key] = str(value)

    return f"{base_path}?{urlencode(params)}"
