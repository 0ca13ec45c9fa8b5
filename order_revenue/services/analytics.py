from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from ..models.analytics import (
    AnalyticsBundle,
    AnalyticsMetadata,
    CustomerRevenue,
    CustomerSegment,
    CustomersView,
    DateMargin,
    DateOrders,
    DateRange,
    DateRevenue,
    DayRevenue,
    DistrictRevenue,
    GeographicView,
    MethodFees,
    MethodRevenue,
    MethodUsage,
    MonthRevenue,
    OperationalEfficiency,
    OperationalView,
    OrdersView,
    PaymentTrend,
    PaymentsView,
    ProductQuantity,
    ProductRevenue,
    ProductsView,
    ProvinceRevenue,
    ProvinceShare,
    RepeatCustomer,
    RevenueView,
    StatusShare,
    WeekRevenue,
)
from ..models.column_map import ColumnMap
from ..models.parsed_table import Cell, ParsedTable
from ..models.revenue import DEFAULT_STATUS_LABELS, RevenueResult, StatusLabels
from .values import cell_text, day_key, month_key, parse_date, parse_number, week_start

logger = logging.getLogger(__name__)

"""Analytics aggregator: revenue-augmented rows -> AnalyticsBundle.

Row facts (parsed revenue, date, labels, fees) are extracted in one pass; each
view is then folded from those facts. The ``finish_*`` functions turn
accumulated keyed maps into finished views and are shared with the merger, so a
merged bundle is sorted and ranked by exactly the same rules.

The revenue views sum whatever positive values the revenue column holds; the
status inclusion policy belongs to the calculator and is not applied again here.
"""

__all__ = [
    "TOP_DAYS",
    "TOP_PROVINCES",
    "TOP_PRODUCTS",
    "TOP_CUSTOMERS",
    "Bucket",
    "ProductBucket",
    "MethodBucket",
    "build_analytics",
    "build_analytics_from_table",
    "finish_revenue",
    "finish_orders",
    "finish_geographic",
    "finish_products",
    "finish_payments",
    "finish_operational",
    "utc_now_iso",
]

TOP_DAYS = 5
TOP_PROVINCES = 10
TOP_PRODUCTS = 20
TOP_CUSTOMERS = 20

NEW_SEGMENT = "New Customers"
REPEAT_SEGMENT = "Repeat Customers"


@dataclass
class Bucket:
    revenue: float = 0.0
    orders: int = 0


@dataclass
class ProductBucket:
    name: str
    sku: str
    revenue: float = 0.0
    quantity: float = 0.0
    total_price: float = 0.0
    orders: int = 0


@dataclass
class MethodBucket:
    revenue: float = 0.0
    orders: int = 0
    total_fees: float = 0.0


@dataclass
class _RowFacts:
    revenue: float
    status: str  # strip 済み
    status_raw: str
    day: datetime | None
    province: str
    district: str
    product_name: str
    sku: str
    quantity: float
    price: float
    payment_method: str
    customer: str
    commission: float
    transaction_fee: float
    service_fee: float
    net_sale: float


@dataclass
class _MarginBucket:
    revenue: float = 0.0
    net_sales: float = 0.0


@dataclass
class _CustomerBucket:
    orders: int = 0
    revenue: float = 0.0


def utc_now_iso(now: datetime | None = None) -> str:
    ts = now or datetime.now(UTC)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _pct(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def _ratio(part: float, whole: float) -> float:
    return part / whole if whole > 0 else 0.0


# --- entry points --------------------------------------------------------------


def build_analytics(
    result: RevenueResult,
    columns: ColumnMap,
    *,
    labels: StatusLabels = DEFAULT_STATUS_LABELS,
    now: datetime | None = None,
) -> AnalyticsBundle:
    """Compute every view for a freshly calculated RevenueResult."""
    return _build(result.table, columns, result.revenue_column, labels, now)


def build_analytics_from_table(
    table: ParsedTable,
    columns: ColumnMap,
    *,
    labels: StatusLabels = DEFAULT_STATUS_LABELS,
    now: datetime | None = None,
) -> AnalyticsBundle:
    """Compute every view for a table that already carries a revenue column.

    The revenue column is the one the resolver found as ``precomputed_revenue``
    (e.g. a previously exported, calculated file).

    Raises:
        ValueError: no revenue column was resolved
    """
    if columns.precomputed_revenue is None:
        raise ValueError(f"no revenue column found in {table.file_name or 'table'}")
    return _build(table, columns, columns.precomputed_revenue, labels, now)


def _build(
    table: ParsedTable,
    columns: ColumnMap,
    revenue_column: int,
    labels: StatusLabels,
    now: datetime | None,
) -> AnalyticsBundle:
    started = time.perf_counter()
    facts = [_facts(row, columns, revenue_column) for row in table.rows]
    bundle = AnalyticsBundle(
        revenue=_revenue_view(facts),
        orders=_orders_view(facts, labels),
        geographic=_geographic_view(facts),
        products=_products_view(facts),
        payments=_payments_view(facts),
        customers=_customers_view(facts),
        operational=_operational_view(facts, labels),
        metadata=_metadata(table, facts, now),
    )
    logger.debug(
        "analytics generated file=%s rows=%d in %.1fms",
        table.file_name,
        len(facts),
        (time.perf_counter() - started) * 1000,
    )
    return bundle


def _facts(row: Sequence[Cell], columns: ColumnMap, revenue_column: int) -> _RowFacts:
    def text(index: int | None) -> str:
        return cell_text(row, index).strip()

    def number(index: int | None) -> float:
        if index is None or index >= len(row):
            return 0.0
        return parse_number(row[index])

    status_raw = cell_text(row, columns.status)
    return _RowFacts(
        revenue=number(revenue_column),
        status=status_raw.strip(),
        status_raw=status_raw,
        day=parse_date(row[columns.date]) if columns.date is not None and columns.date < len(row) else None,
        province=text(columns.province),
        district=text(columns.district),
        product_name=text(columns.product_name),
        sku=text(columns.sku),
        quantity=number(columns.quantity),
        price=number(columns.unit_price),
        payment_method=text(columns.payment_method),
        customer=text(columns.customer_id),
        commission=number(columns.commission),
        transaction_fee=number(columns.transaction_fee),
        service_fee=number(columns.service_fee),
        net_sale=number(columns.net_sale_price),
    )


# --- revenue -------------------------------------------------------------------


def _revenue_view(facts: list[_RowFacts]) -> RevenueView:
    total = 0.0
    order_count = 0
    by_date: dict[str, Bucket] = {}
    by_status: dict[str, float] = {}
    monthly: dict[str, float] = {}
    weekly: dict[str, float] = {}

    for f in facts:
        if f.revenue <= 0:
            continue
        total += f.revenue
        order_count += 1
        if f.status:
            by_status[f.status] = by_status.get(f.status, 0.0) + f.revenue
        if f.day is not None:
            bucket = by_date.setdefault(day_key(f.day), Bucket())
            bucket.revenue += f.revenue
            bucket.orders += 1
            mk = month_key(f.day)
            monthly[mk] = monthly.get(mk, 0.0) + f.revenue
            wk = week_start(f.day)
            weekly[wk] = weekly.get(wk, 0.0) + f.revenue

    return finish_revenue(total, order_count, by_date, by_status, monthly, weekly)


def finish_revenue(
    total: float,
    order_count: int,
    by_date: Mapping[str, Bucket],
    by_status: Mapping[str, float],
    monthly: Mapping[str, float],
    weekly: Mapping[str, float],
) -> RevenueView:
    dates = [DateRevenue(date=d, revenue=b.revenue, orders=b.orders) for d, b in sorted(by_date.items())]
    months = sorted(monthly.items())

    growth = 0.0
    if len(months) >= 2:
        previous, last = months[-2][1], months[-1][1]
        growth = ((last - previous) / previous) * 100 if previous > 0 else 0.0

    top_days = sorted(dates, key=lambda d: (-d.revenue, d.date))[:TOP_DAYS]
    return RevenueView(
        total_revenue=total,
        order_count=order_count,
        revenue_by_date=dates,
        revenue_by_status=dict(sorted(by_status.items())),
        average_order_value=_ratio(total, order_count),
        revenue_growth=growth,
        top_revenue_days=[DayRevenue(date=d.date, revenue=d.revenue) for d in top_days],
        monthly_revenue=[MonthRevenue(month=m, revenue=r) for m, r in months],
        weekly_revenue=[WeekRevenue(week=w, revenue=r) for w, r in sorted(weekly.items())],
    )


# --- orders --------------------------------------------------------------------


def _orders_view(facts: list[_RowFacts], labels: StatusLabels) -> OrdersView:
    by_status: dict[str, int] = {}
    trends: dict[str, int] = {}
    for f in facts:
        if f.status:
            by_status[f.status] = by_status.get(f.status, 0) + 1
        if f.day is not None:
            dk = day_key(f.day)
            trends[dk] = trends.get(dk, 0) + 1
    return finish_orders(len(facts), by_status, trends, labels)


def finish_orders(
    total_orders: int,
    by_status: Mapping[str, int],
    trends: Mapping[str, int],
    labels: StatusLabels,
) -> OrdersView:
    distribution = [
        StatusShare(status=s, count=c, percentage=_pct(c, total_orders))
        for s, c in sorted(by_status.items(), key=lambda kv: (-kv[1], kv[0]))
    ]
    # 完了率 / キャンセル率は固定ラベルとの完全一致のみ
    completed = by_status.get(labels.completed, 0)
    cancelled = by_status.get(labels.cancelled, 0)
    active_days = len(trends)
    return OrdersView(
        total_orders=total_orders,
        orders_by_status=dict(sorted(by_status.items())),
        status_distribution=distribution,
        average_orders_per_day=_ratio(total_orders, active_days),
        completion_rate=_pct(completed, total_orders),
        cancellation_rate=_pct(cancelled, total_orders),
        order_trends=[DateOrders(date=d, orders=n) for d, n in sorted(trends.items())],
    )


# --- geographic ----------------------------------------------------------------


def _geographic_view(facts: list[_RowFacts]) -> GeographicView:
    provinces: dict[str, Bucket] = {}
    districts: dict[tuple[str, str], Bucket] = {}
    distribution: dict[str, int] = {}
    for f in facts:
        if f.revenue <= 0 or not f.province:
            continue
        p = provinces.setdefault(f.province, Bucket())
        p.revenue += f.revenue
        p.orders += 1
        if f.district:
            d = districts.setdefault((f.province, f.district), Bucket())
            d.revenue += f.revenue
            d.orders += 1
        distribution[f.province] = distribution.get(f.province, 0) + 1
    return finish_geographic(provinces, districts, distribution)


def finish_geographic(
    provinces: Mapping[str, Bucket],
    districts: Mapping[tuple[str, str], Bucket],
    distribution: Mapping[str, int],
) -> GeographicView:
    """``districts`` is keyed by (province, district): district names repeat across provinces."""
    ranked = sorted(provinces.items(), key=lambda kv: (-kv[1].revenue, kv[0]))
    total = sum(b.revenue for b in provinces.values())
    return GeographicView(
        revenue_by_province=[ProvinceRevenue(province=p, revenue=b.revenue, orders=b.orders) for p, b in ranked],
        revenue_by_district=[
            DistrictRevenue(district=d, revenue=b.revenue, orders=b.orders, province=p)
            for (p, d), b in sorted(districts.items(), key=lambda kv: (-kv[1].revenue, kv[0]))
        ],
        top_provinces=[
            ProvinceShare(province=p, revenue=b.revenue, percentage=_pct(b.revenue, total))
            for p, b in ranked[:TOP_PROVINCES]
        ],
        geographic_distribution=dict(sorted(distribution.items())),
        province_coverage=len(provinces),
    )


# --- products ------------------------------------------------------------------


def _products_view(facts: list[_RowFacts]) -> ProductsView:
    products: dict[str, ProductBucket] = {}
    for f in facts:
        key = f.sku or f.product_name
        if not key or f.revenue <= 0:
            continue
        bucket = products.get(key)
        if bucket is None:
            bucket = products[key] = ProductBucket(name=f.product_name, sku=f.sku)
        elif f.product_name and (not bucket.name or f.product_name < bucket.name):
            # 同一 SKU で名称が揺れる場合も行順に依存しない名称を採用
            bucket.name = f.product_name
        bucket.revenue += f.revenue
        bucket.quantity += f.quantity
        bucket.total_price += f.price
        bucket.orders += 1
    return finish_products(products)


def finish_products(products: Mapping[str, ProductBucket], *, rank_quantity: bool = True) -> ProductsView:
    buckets = list(products.values())
    total_price = sum(b.total_price for b in buckets)
    total_orders = sum(b.orders for b in buckets)

    by_revenue = sorted(buckets, key=lambda b: (-b.revenue, b.sku or b.name))[:TOP_PRODUCTS]
    by_quantity: list[ProductQuantity] = []
    if rank_quantity:
        by_quantity = [
            ProductQuantity(name=b.name, sku=b.sku, quantity=b.quantity, revenue=b.revenue)
            for b in sorted(buckets, key=lambda b: (-b.quantity, b.sku or b.name))[:TOP_PRODUCTS]
        ]
    return ProductsView(
        top_products_by_revenue=[
            ProductRevenue(
                name=b.name,
                sku=b.sku,
                revenue=b.revenue,
                quantity=b.quantity,
                average_price=_ratio(b.total_price, b.orders),
                orders=b.orders,
            )
            for b in by_revenue
        ],
        top_products_by_quantity=by_quantity,
        product_categories=[],  # カテゴリ列は未対応
        average_product_price=_ratio(total_price, total_orders),
        total_unique_products=len(products),
    )


# --- payments ------------------------------------------------------------------


def _payments_view(facts: list[_RowFacts]) -> PaymentsView:
    methods: dict[str, MethodBucket] = {}
    trends: dict[tuple[str, str], float] = {}
    for f in facts:
        if not f.payment_method or f.revenue <= 0:
            continue
        bucket = methods.setdefault(f.payment_method, MethodBucket())
        bucket.revenue += f.revenue
        bucket.orders += 1
        bucket.total_fees += f.transaction_fee
        if f.day is not None:
            key = (day_key(f.day), f.payment_method)
            trends[key] = trends.get(key, 0.0) + f.revenue
    return finish_payments(methods, trends)


def finish_payments(
    methods: Mapping[str, MethodBucket],
    trends: Mapping[tuple[str, str], float] | None = None,
) -> PaymentsView:
    """``trends`` is keyed by (date, method); None leaves the trend list empty."""
    total = sum(b.revenue for b in methods.values())
    ranked = sorted(methods.items(), key=lambda kv: (-kv[1].revenue, kv[0]))
    return PaymentsView(
        revenue_by_payment_method=[
            MethodRevenue(method=m, revenue=b.revenue, orders=b.orders, percentage=_pct(b.revenue, total))
            for m, b in ranked
        ],
        payment_method_distribution={m: b.orders for m, b in sorted(methods.items())},
        average_transaction_fee_by_method={m: _ratio(b.total_fees, b.orders) for m, b in sorted(methods.items())},
        payment_trends=[
            PaymentTrend(date=d, method=m, revenue=r) for (d, m), r in sorted((trends or {}).items())
        ],
        preferred_payment_methods=[
            MethodUsage(method=m, usage=b.orders)
            for m, b in sorted(methods.items(), key=lambda kv: (-kv[1].orders, kv[0]))
        ],
    )


# --- customers -----------------------------------------------------------------


def _customers_view(facts: list[_RowFacts]) -> CustomersView:
    customers: dict[str, _CustomerBucket] = {}
    by_province: dict[str, set[str]] = {}
    for f in facts:
        if not f.customer or f.revenue <= 0:
            continue
        bucket = customers.setdefault(f.customer, _CustomerBucket())
        bucket.orders += 1
        bucket.revenue += f.revenue
        if f.province:
            by_province.setdefault(f.province, set()).add(f.customer)

    total_revenue = sum(c.revenue for c in customers.values())
    single = [c for c in customers.values() if c.orders == 1]
    repeat = [(u, c) for u, c in customers.items() if c.orders > 1]
    return CustomersView(
        total_unique_customers=len(customers),
        average_revenue_per_customer=_ratio(total_revenue, len(customers)),
        customers_by_province={p: len(users) for p, users in sorted(by_province.items())},
        repeat_customers=[
            RepeatCustomer(username=u, orders=c.orders, total_revenue=c.revenue)
            for u, c in sorted(repeat, key=lambda uc: (-uc[1].orders, uc[0]))
        ],
        customer_distribution=[
            CustomerSegment(segment=NEW_SEGMENT, count=len(single), revenue=sum(c.revenue for c in single)),
            CustomerSegment(segment=REPEAT_SEGMENT, count=len(repeat), revenue=sum(c.revenue for _, c in repeat)),
        ],
        top_customers=[
            CustomerRevenue(username=u, revenue=c.revenue, orders=c.orders)
            for u, c in sorted(customers.items(), key=lambda uc: (-uc[1].revenue, uc[0]))[:TOP_CUSTOMERS]
        ],
    )


# --- operational ---------------------------------------------------------------


def _operational_view(facts: list[_RowFacts], labels: StatusLabels) -> OperationalView:
    commission = transaction = service = net_sales = 0.0
    cancelled = 0
    fees: dict[str, MethodFees] = {}
    margins: dict[str, _MarginBucket] = {}

    for f in facts:
        # ステータスに関係なく全行を合計
        commission += f.commission
        transaction += f.transaction_fee
        service += f.service_fee
        net_sales += f.net_sale
        # 注文ビューとは別判定: セル値そのもの (strip なし) との完全一致
        if f.status_raw == labels.cancelled:
            cancelled += 1
        if f.payment_method:
            prev = fees.get(f.payment_method, MethodFees())
            fees[f.payment_method] = MethodFees(
                commission=prev.commission + f.commission,
                transaction=prev.transaction + f.transaction_fee,
                service=prev.service + f.service_fee,
            )
        if f.day is not None:
            m = margins.setdefault(day_key(f.day), _MarginBucket())
            if f.revenue > 0:
                m.revenue += f.revenue
            m.net_sales += f.net_sale

    profit_margins = [
        DateMargin(date=d, margin=_pct(m.revenue, m.net_sales))
        for d, m in sorted(margins.items())
        if m.net_sales > 0
    ]
    return finish_operational(
        commission,
        transaction,
        service,
        net_sales,
        fees,
        profit_margins=profit_margins,
        efficiency=OperationalEfficiency(
            processing_time=0.0,
            cancellation_rate=_pct(cancelled, len(facts)),
            return_rate=0.0,
        ),
    )


def finish_operational(
    commission: float,
    transaction: float,
    service: float,
    net_sales: float,
    fees_by_method: Mapping[str, MethodFees],
    *,
    profit_margins: list[DateMargin] | None = None,
    efficiency: OperationalEfficiency | None = None,
) -> OperationalView:
    return OperationalView(
        total_commission_fees=commission,
        total_transaction_fees=transaction,
        total_service_fees=service,
        total_net_sales=net_sales,
        average_commission_rate=_pct(commission, net_sales),
        fees_by_payment_method=dict(sorted(fees_by_method.items())),
        profit_margins=profit_margins or [],
        operational_efficiency=efficiency or OperationalEfficiency(),
    )


# --- metadata ------------------------------------------------------------------


def _metadata(table: ParsedTable, facts: list[_RowFacts], now: datetime | None) -> AnalyticsMetadata:
    days = [f.day for f in facts if f.day is not None]
    date_range = DateRange()
    if days:
        date_range = DateRange(start=min(days).isoformat(), end=max(days).isoformat())
    return AnalyticsMetadata(
        data_source=table.file_name,
        last_updated=utc_now_iso(now),
        date_range=date_range,
        total_records=table.row_count,
    )
