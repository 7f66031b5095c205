"""
分頁工具
"""
import math
from typing import Any, List, Sequence, Tuple

from careconnect.core.errors import ValidationError

MAX_PAGE_SIZE = 100


def _check_page(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be at least 1", field="page")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")


def paginate(query, page: int = 1, limit: int = 10) -> Tuple[List[Any], int, int]:
    """
    對 SQLAlchemy 查詢分頁

    參數:
        query: 已排序的查詢
        page: 頁碼（從 1 開始）
        limit: 每頁筆數（1 ~ 100）

    返回:
        tuple: (資料列, 總筆數, 總頁數)
    """
    _check_page(page, limit)
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, total, math.ceil(total / limit)


def paginate_list(items: Sequence[Any], page: int = 1, limit: int = 10) -> Tuple[List[Any], int, int]:
    """對已在記憶體中篩選過的列表分頁（技能交集等無法在 SQL 中表達的條件）"""
    _check_page(page, limit)
    total = len(items)
    start = (page - 1) * limit
    return list(items[start:start + limit]), total, math.ceil(total / limit)
