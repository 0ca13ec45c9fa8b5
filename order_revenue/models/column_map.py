from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum

"""ColumnMap model and the Field enumeration of semantic columns.

The ColumnMap is derived once from a header row by the column resolver and is
reused unchanged by the revenue calculator and the analytics aggregator.
"""

__all__ = [
    "Field",
    "ColumnMap",
]


class Field(Enum):
    """Semantic column roles located by header matching."""
    STATUS = "status"
    DATE = "date"
    PROVINCE = "province"
    DISTRICT = "district"
    PRODUCT_NAME = "product_name"
    SKU = "sku"
    QUANTITY = "quantity"
    UNIT_PRICE = "unit_price"
    PAYMENT_METHOD = "payment_method"
    CUSTOMER_ID = "customer_id"
    COMMISSION = "commission"
    TRANSACTION_FEE = "transaction_fee"
    SERVICE_FEE = "service_fee"
    NET_SALE_PRICE = "net_sale_price"
    PRECOMPUTED_REVENUE = "precomputed_revenue"


# 売上計算に必須の列
REVENUE_FIELDS: tuple[Field, ...] = (
    Field.NET_SALE_PRICE,
    Field.COMMISSION,
    Field.TRANSACTION_FEE,
    Field.SERVICE_FEE,
)


@dataclass(frozen=True)
class ColumnMap:
    """Header index (or None when not found) for every semantic field."""
    status: int | None = None
    date: int | None = None
    province: int | None = None
    district: int | None = None
    product_name: int | None = None
    sku: int | None = None
    quantity: int | None = None
    unit_price: int | None = None
    payment_method: int | None = None
    customer_id: int | None = None
    commission: int | None = None
    transaction_fee: int | None = None
    service_fee: int | None = None
    net_sale_price: int | None = None
    precomputed_revenue: int | None = None

    def index(self, field: Field) -> int | None:
        return getattr(self, field.value)

    def found(self, field: Field) -> bool:
        return self.index(field) is not None

    def missing(self, required: tuple[Field, ...] = REVENUE_FIELDS) -> list[Field]:
        """Fields of ``required`` that were not resolved, in the given order."""
        return [f for f in required if not self.found(f)]

    def as_dict(self) -> dict[str, int | None]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
