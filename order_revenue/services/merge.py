from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from ..models.analytics import (
    AnalyticsBundle,
    AnalyticsMetadata,
    CustomersView,
    DateRange,
    GeographicView,
    MethodFees,
    OperationalView,
    OrdersView,
    PaymentsView,
    ProductsView,
    RevenueView,
)
from ..models.revenue import DEFAULT_STATUS_LABELS, StatusLabels
from .analytics import (
    Bucket,
    MethodBucket,
    ProductBucket,
    finish_geographic,
    finish_operational,
    finish_orders,
    finish_payments,
    finish_products,
    finish_revenue,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

"""Multi-dataset merger: N AnalyticsBundles -> one combined AnalyticsBundle.

Works on finished bundles only, never on raw rows:

- sums (revenue, order counts, records, fees) are added;
- keyed maps (dates, statuses, provinces, products, payment methods) are merged
  by key and re-sorted with the single-dataset rules;
- ratios (average order value, rates, percentages) are recomputed from the
  merged sums, never averaged across bundles;
- fields without a cross-dataset rule (payment trends, customer views, products
  by quantity, profit margins, operational efficiency) are left empty.
"""

__all__ = [
    "merge_analytics",
    "aggregate_label",
]


def aggregate_label(count: int) -> str:
    return f"Aggregated from {count} datasets"


def merge_analytics(
    bundles: Sequence[AnalyticsBundle],
    *,
    labels: StatusLabels = DEFAULT_STATUS_LABELS,
    now: datetime | None = None,
) -> AnalyticsBundle:
    """Combine the analytics of several datasets.

    Args:
        bundles: analytics of the selected datasets (at least one)
        labels: status labels used to recompute completion / cancellation rates
        now: timestamp for ``metadata.last_updated`` (defaults to current UTC)

    Returns:
        The single bundle unchanged when only one is given, otherwise a new
        merged bundle.

    Raises:
        ValueError: ``bundles`` is empty
    """
    if not bundles:
        raise ValueError("merge_analytics requires at least one bundle")
    if len(bundles) == 1:
        return bundles[0]

    merged = AnalyticsBundle(
        revenue=_merge_revenue([b.revenue for b in bundles]),
        orders=_merge_orders([b.orders for b in bundles], labels),
        geographic=_merge_geographic([b.geographic for b in bundles]),
        products=_merge_products([b.products for b in bundles]),
        payments=_merge_payments([b.payments for b in bundles]),
        customers=CustomersView(),  # 顧客の重複が判別できないため空
        operational=_merge_operational([b.operational for b in bundles]),
        metadata=_merge_metadata([b.metadata for b in bundles], now),
    )
    logger.debug("merged analytics of %d datasets", len(bundles))
    return merged


def _add(target: dict[str, float], key: str, value: float) -> None:
    target[key] = target.get(key, 0) + value


def _merge_revenue(views: list[RevenueView]) -> RevenueView:
    by_date: dict[str, Bucket] = {}
    by_status: dict[str, float] = {}
    monthly: dict[str, float] = {}
    weekly: dict[str, float] = {}
    for v in views:
        for e in v.revenue_by_date:
            bucket = by_date.setdefault(e.date, Bucket())
            bucket.revenue += e.revenue
            bucket.orders += e.orders
        for status, revenue in v.revenue_by_status.items():
            _add(by_status, status, revenue)
        for m in v.monthly_revenue:
            _add(monthly, m.month, m.revenue)
        for w in v.weekly_revenue:
            _add(weekly, w.week, w.revenue)
    return finish_revenue(
        sum(v.total_revenue for v in views),
        sum(v.order_count for v in views),
        by_date,
        by_status,
        monthly,
        weekly,
    )


def _merge_orders(views: list[OrdersView], labels: StatusLabels) -> OrdersView:
    by_status: dict[str, int] = {}
    trends: dict[str, int] = {}
    for v in views:
        for status, count in v.orders_by_status.items():
            by_status[status] = by_status.get(status, 0) + count
        for t in v.order_trends:
            trends[t.date] = trends.get(t.date, 0) + t.orders
    return finish_orders(sum(v.total_orders for v in views), by_status, trends, labels)


def _merge_geographic(views: list[GeographicView]) -> GeographicView:
    provinces: dict[str, Bucket] = {}
    districts: dict[tuple[str, str], Bucket] = {}
    distribution: dict[str, int] = {}
    for v in views:
        for p in v.revenue_by_province:
            bucket = provinces.setdefault(p.province, Bucket())
            bucket.revenue += p.revenue
            bucket.orders += p.orders
        for d in v.revenue_by_district:
            bucket = districts.setdefault((d.province, d.district), Bucket())
            bucket.revenue += d.revenue
            bucket.orders += d.orders
        for province, count in v.geographic_distribution.items():
            distribution[province] = distribution.get(province, 0) + count
    return finish_geographic(provinces, districts, distribution)


def _merge_products(views: list[ProductsView]) -> ProductsView:
    products: dict[str, ProductBucket] = {}
    for v in views:
        for p in v.top_products_by_revenue:
            bucket = products.get(p.key)
            if bucket is None:
                bucket = products[p.key] = ProductBucket(name=p.name, sku=p.sku)
            elif p.name and (not bucket.name or p.name < bucket.name):
                bucket.name = p.name
            bucket.revenue += p.revenue
            bucket.quantity += p.quantity
            # 平均単価は注文数で重み付けして再構成
            bucket.total_price += p.average_price * p.orders
            bucket.orders += p.orders
    return finish_products(products, rank_quantity=False)


def _merge_payments(views: list[PaymentsView]) -> PaymentsView:
    methods: dict[str, MethodBucket] = {}
    for v in views:
        for m in v.revenue_by_payment_method:
            bucket = methods.setdefault(m.method, MethodBucket())
            bucket.revenue += m.revenue
            bucket.orders += m.orders
            bucket.total_fees += v.average_transaction_fee_by_method.get(m.method, 0.0) * m.orders
    return finish_payments(methods, None)


def _merge_operational(views: list[OperationalView]) -> OperationalView:
    fees: dict[str, MethodFees] = {}
    for v in views:
        for method, f in v.fees_by_payment_method.items():
            prev = fees.get(method, MethodFees())
            fees[method] = MethodFees(
                commission=prev.commission + f.commission,
                transaction=prev.transaction + f.transaction,
                service=prev.service + f.service,
            )
    return finish_operational(
        sum(v.total_commission_fees for v in views),
        sum(v.total_transaction_fees for v in views),
        sum(v.total_service_fees for v in views),
        sum(v.total_net_sales for v in views),
        fees,
    )


def _merge_metadata(items: list[AnalyticsMetadata], now: datetime | None) -> AnalyticsMetadata:
    starts = [m.date_range.start for m in items if m.date_range.start]
    ends = [m.date_range.end for m in items if m.date_range.end]
    return AnalyticsMetadata(
        data_source=aggregate_label(len(items)),
        last_updated=utc_now_iso(now),
        date_range=DateRange(start=min(starts) if starts else "", end=max(ends) if ends else ""),
        total_records=sum(m.total_records for m in items),
    )
