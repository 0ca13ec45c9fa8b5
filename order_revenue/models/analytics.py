from __future__ import annotations

import typing
from dataclasses import asdict, dataclass, field, fields, is_dataclass
from typing import Any

"""AnalyticsBundle: the seven aggregate views plus metadata.

Every view is a frozen dataclass whose fields all have empty/zero defaults, so
``CustomersView()`` is a valid "nothing known" value. Ranked lists hold small
frozen entry dataclasses. ``AnalyticsBundle.to_dict`` / ``from_dict`` give a
JSON-safe round trip used by the dataset store.
"""

__all__ = [
    "DateRevenue",
    "DayRevenue",
    "MonthRevenue",
    "WeekRevenue",
    "RevenueView",
    "StatusShare",
    "DateOrders",
    "OrdersView",
    "ProvinceRevenue",
    "DistrictRevenue",
    "ProvinceShare",
    "GeographicView",
    "ProductRevenue",
    "ProductQuantity",
    "CategoryRevenue",
    "ProductsView",
    "MethodRevenue",
    "PaymentTrend",
    "MethodUsage",
    "PaymentsView",
    "RepeatCustomer",
    "CustomerSegment",
    "CustomerRevenue",
    "CustomersView",
    "MethodFees",
    "DateMargin",
    "OperationalEfficiency",
    "OperationalView",
    "DateRange",
    "AnalyticsMetadata",
    "AnalyticsBundle",
]

# --- revenue -----------------------------------------------------------------

@dataclass(frozen=True)
class DateRevenue:
    date: str  # YYYY-MM-DD
    revenue: float
    orders: int


@dataclass(frozen=True)
class DayRevenue:
    date: str
    revenue: float


@dataclass(frozen=True)
class MonthRevenue:
    month: str  # YYYY-MM
    revenue: float


@dataclass(frozen=True)
class WeekRevenue:
    week: str  # 週の開始日 (日曜) YYYY-MM-DD
    revenue: float


@dataclass(frozen=True)
class RevenueView:
    total_revenue: float = 0.0
    order_count: int = 0  # revenue > 0 の行数 (平均注文額の分母)
    revenue_by_date: list[DateRevenue] = field(default_factory=list)
    revenue_by_status: dict[str, float] = field(default_factory=dict)
    average_order_value: float = 0.0
    revenue_growth: float = 0.0
    top_revenue_days: list[DayRevenue] = field(default_factory=list)
    monthly_revenue: list[MonthRevenue] = field(default_factory=list)
    weekly_revenue: list[WeekRevenue] = field(default_factory=list)


# --- orders ------------------------------------------------------------------

@dataclass(frozen=True)
class StatusShare:
    status: str
    count: int
    percentage: float


@dataclass(frozen=True)
class DateOrders:
    date: str
    orders: int


@dataclass(frozen=True)
class OrdersView:
    total_orders: int = 0
    orders_by_status: dict[str, int] = field(default_factory=dict)
    status_distribution: list[StatusShare] = field(default_factory=list)
    average_orders_per_day: float = 0.0
    completion_rate: float = 0.0
    cancellation_rate: float = 0.0
    order_trends: list[DateOrders] = field(default_factory=list)


# --- geographic --------------------------------------------------------------

@dataclass(frozen=True)
class ProvinceRevenue:
    province: str
    revenue: float
    orders: int


@dataclass(frozen=True)
class DistrictRevenue:
    district: str
    revenue: float
    orders: int
    province: str


@dataclass(frozen=True)
class ProvinceShare:
    province: str
    revenue: float
    percentage: float


@dataclass(frozen=True)
class GeographicView:
    revenue_by_province: list[ProvinceRevenue] = field(default_factory=list)
    revenue_by_district: list[DistrictRevenue] = field(default_factory=list)
    top_provinces: list[ProvinceShare] = field(default_factory=list)
    geographic_distribution: dict[str, int] = field(default_factory=dict)
    province_coverage: int = 0


# --- products ----------------------------------------------------------------

@dataclass(frozen=True)
class ProductRevenue:
    name: str
    sku: str
    revenue: float
    quantity: float
    average_price: float
    orders: int = 0

    @property
    def key(self) -> str:
        return self.sku or self.name


@dataclass(frozen=True)
class ProductQuantity:
    name: str
    sku: str
    quantity: float
    revenue: float


@dataclass(frozen=True)
class CategoryRevenue:
    category: str
    revenue: float
    count: int


@dataclass(frozen=True)
class ProductsView:
    top_products_by_revenue: list[ProductRevenue] = field(default_factory=list)
    top_products_by_quantity: list[ProductQuantity] = field(default_factory=list)
    product_categories: list[CategoryRevenue] = field(default_factory=list)
    average_product_price: float = 0.0
    total_unique_products: int = 0


# --- payments ----------------------------------------------------------------

@dataclass(frozen=True)
class MethodRevenue:
    method: str
    revenue: float
    orders: int
    percentage: float


@dataclass(frozen=True)
class PaymentTrend:
    date: str
    method: str
    revenue: float


@dataclass(frozen=True)
class MethodUsage:
    method: str
    usage: int


@dataclass(frozen=True)
class PaymentsView:
    revenue_by_payment_method: list[MethodRevenue] = field(default_factory=list)
    payment_method_distribution: dict[str, int] = field(default_factory=dict)
    average_transaction_fee_by_method: dict[str, float] = field(default_factory=dict)
    payment_trends: list[PaymentTrend] = field(default_factory=list)
    preferred_payment_methods: list[MethodUsage] = field(default_factory=list)


# --- customers ---------------------------------------------------------------

@dataclass(frozen=True)
class RepeatCustomer:
    username: str
    orders: int
    total_revenue: float


@dataclass(frozen=True)
class CustomerSegment:
    segment: str
    count: int
    revenue: float


@dataclass(frozen=True)
class CustomerRevenue:
    username: str
    revenue: float
    orders: int


@dataclass(frozen=True)
class CustomersView:
    total_unique_customers: int = 0
    average_revenue_per_customer: float = 0.0
    customers_by_province: dict[str, int] = field(default_factory=dict)
    repeat_customers: list[RepeatCustomer] = field(default_factory=list)
    customer_distribution: list[CustomerSegment] = field(default_factory=list)
    top_customers: list[CustomerRevenue] = field(default_factory=list)


# --- operational -------------------------------------------------------------

@dataclass(frozen=True)
class MethodFees:
    commission: float = 0.0
    transaction: float = 0.0
    service: float = 0.0


@dataclass(frozen=True)
class DateMargin:
    date: str
    margin: float


@dataclass(frozen=True)
class OperationalEfficiency:
    processing_time: float = 0.0
    cancellation_rate: float = 0.0
    return_rate: float = 0.0


@dataclass(frozen=True)
class OperationalView:
    total_commission_fees: float = 0.0
    total_transaction_fees: float = 0.0
    total_service_fees: float = 0.0
    total_net_sales: float = 0.0
    average_commission_rate: float = 0.0
    fees_by_payment_method: dict[str, MethodFees] = field(default_factory=dict)
    profit_margins: list[DateMargin] = field(default_factory=list)
    operational_efficiency: OperationalEfficiency = field(default_factory=OperationalEfficiency)


# --- metadata / bundle -------------------------------------------------------

@dataclass(frozen=True)
class DateRange:
    start: str = ""  # ISO8601, 日付列なしの場合は空文字
    end: str = ""


@dataclass(frozen=True)
class AnalyticsMetadata:
    data_source: str = ""
    last_updated: str = ""
    date_range: DateRange = field(default_factory=DateRange)
    total_records: int = 0


@dataclass(frozen=True)
class AnalyticsBundle:
    """All aggregate views of one dataset, or of several merged datasets."""
    revenue: RevenueView
    orders: OrdersView
    geographic: GeographicView
    products: ProductsView
    payments: PaymentsView
    customers: CustomersView
    operational: OperationalView
    metadata: AnalyticsMetadata

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> AnalyticsBundle:
        return _build(AnalyticsBundle, data)


def _build(tp: Any, value: Any) -> Any:
    """Rebuild a (possibly nested) dataclass value from plain JSON data."""
    origin = typing.get_origin(tp)
    if origin is list:
        (item_tp,) = typing.get_args(tp)
        return [_build(item_tp, v) for v in value or []]
    if origin is dict:
        key_tp, item_tp = typing.get_args(tp)
        return {key_tp(k): _build(item_tp, v) for k, v in (value or {}).items()}
    if is_dataclass(tp) and isinstance(tp, type):
        hints = typing.get_type_hints(tp)
        kwargs = {}
        for f in fields(tp):
            if f.name in value:
                kwargs[f.name] = _build(hints[f.name], value[f.name])
        return tp(**kwargs)
    if tp is float:
        return float(value)
    if tp is int:
        return int(value)
    if tp is str:
        return str(value)
    return value
