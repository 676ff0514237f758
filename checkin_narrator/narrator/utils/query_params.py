"""
Cờ boolean trên query string của generation API (vd. GET /generation/posts?include_platforms=...).
Query có thể tới dưới dạng str, nên "false" không được phép lọt qua như một giá trị truthy.
"""

TRUTHY_QUERY_VALUES = frozenset({"true", "1", "yes"})


def ensure_bool_query(value: bool | str | None, default: bool = False) -> bool:
    """
    include_platforms và các cờ tương tự -> bool.
    Thiếu param (None) trả về `default`; str chỉ True với "true"/"1"/"yes", không phân biệt hoa thường.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return value.strip().lower() in TRUTHY_QUERY_VALUES
