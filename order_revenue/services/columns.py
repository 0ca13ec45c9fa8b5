from __future__ import annotations

from collections.abc import Mapping, Sequence

from ..models.column_map import ColumnMap, Field

"""Column resolver: header row -> ColumnMap.

Each semantic field has an ordered list of candidate substrings (Thai term
first, English synonym second). Headers are scanned in their original order and
the first header whose lowercased text contains any candidate wins. Fields are
resolved independently, so two fields may claim the same header index; callers
that care can ask ``column_collisions``.
"""

__all__ = [
    "FIELD_CANDIDATES",
    "DATE_CANDIDATES",
    "find_column",
    "resolve_columns",
    "column_collisions",
]

# 日付列は候補が多い (注文日時 / 支払日時 / 汎用 "date")
DATE_CANDIDATES: tuple[str, ...] = (
    "วันที่ทำการสั่งซื้อ",
    "เวลาการชำระสินค้า",
    "วันที่",
    "date",
    "order date",
    "created at",
    "timestamp",
)

FIELD_CANDIDATES: tuple[tuple[Field, tuple[str, ...]], ...] = (
    (Field.STATUS, ("สถานะการสั่งซื้อ", "order status")),
    (Field.DATE, DATE_CANDIDATES),
    (Field.PROVINCE, ("จังหวัด", "province")),
    (Field.DISTRICT, ("เขต/อำเภอ", "district")),
    (Field.PRODUCT_NAME, ("ชื่อสินค้า", "product name")),
    (Field.SKU, ("เลขอ้างอิง SKU", "sku")),
    (Field.QUANTITY, ("จำนวน", "quantity")),
    (Field.UNIT_PRICE, ("ราคาขาย", "price")),
    (Field.PAYMENT_METHOD, ("ช่องทางการชำระเงิน", "payment method")),
    (Field.CUSTOMER_ID, ("ชื่อผู้ใช้", "username")),
    (Field.COMMISSION, ("ค่าคอมมิชชั่น", "commission")),
    (Field.TRANSACTION_FEE, ("transaction fee",)),
    (Field.SERVICE_FEE, ("ค่าบริการ", "service fee")),
    (Field.NET_SALE_PRICE, ("ราคาขายสุทธิ", "net sale")),
    (Field.PRECOMPUTED_REVENUE, ("รายรับจากคำสั่งซื้อ", "revenue")),
)


def find_column(headers: Sequence[str], candidates: Sequence[str]) -> int | None:
    """Index of the first header containing any candidate (case-insensitive)."""
    needles = [c.lower() for c in candidates if c]
    if not needles:
        return None
    for index, header in enumerate(headers):
        text = str(header).lower()
        if any(n in text for n in needles):
            return index
    return None


def resolve_columns(
    headers: Sequence[str], extra_synonyms: Mapping[str, Sequence[str]] | None = None
) -> ColumnMap:
    """Resolve every semantic field against ``headers``.

    Args:
        headers: header row of a parsed table
        extra_synonyms: optional field name (``Field.value``) -> additional
            candidates, appended after the built-in ones

    Returns:
        ColumnMap with an index or None per field
    """
    extra = extra_synonyms or {}
    resolved: dict[str, int | None] = {}
    for field, candidates in FIELD_CANDIDATES:
        terms = list(candidates) + list(extra.get(field.value, ()))
        resolved[field.value] = find_column(headers, terms)
    return ColumnMap(**resolved)


def column_collisions(columns: ColumnMap) -> dict[int, list[Field]]:
    """Header indices claimed by more than one field."""
    claimed: dict[int, list[Field]] = {}
    for field, _ in FIELD_CANDIDATES:
        index = columns.index(field)
        if index is not None:
            claimed.setdefault(index, []).append(field)
    return {i: fs for i, fs in claimed.items() if len(fs) > 1}
