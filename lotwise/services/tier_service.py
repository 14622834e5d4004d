"""
SKU 分层

    Tier 1: 只有销售（批发已发货 / 零售已履约），从未被制造消耗
    Tier 2: 既有销售又被制造消耗
    Tier 3: 只被制造消耗
    Tier 0: 都没有
"""
from typing import Dict, Iterable

from sqlalchemy import or_
from sqlalchemy.orm import contains_eager

from lotwise.models import (
    SkuVariance, SaleOrder, SaleOrderItem, WebOrder, WebOrderItem,
    ManufacturingJob, ManufacturingLineItem,
)
from lotwise.services.costing import consumed_quantity
from lotwise.services.lot_cost_service import chunked
from lotwise.services.settings_service import get_global_start_date, apply_date_filter
from lotwise.utils.refs import sku_key, line_quantity

TIER_NONE = 0
TIER_SOLD = 1
TIER_SOLD_AND_CONSUMED = 2
TIER_CONSUMED = 3


def classify_tier(has_sales: bool, has_consumption: bool) -> int:
    if has_sales and has_consumption:
        return TIER_SOLD_AND_CONSUMED
    if has_sales:
        return TIER_SOLD
    if has_consumption:
        return TIER_CONSUMED
    return TIER_NONE


def get_sku_tiers(sku_refs: Iterable) -> Dict[str, int]:
    sku_ids = sorted({sku_key(ref) for ref in sku_refs} - {None})
    if not sku_ids:
        return {}

    known = set(sku_ids)
    start_date = get_global_start_date()
    sold, consumed = set(), set()

    for ids in chunked(sku_ids):
        # 批发：已发货数量 > 0
        query = SaleOrderItem.query.join(SaleOrder).filter(
            SaleOrderItem.sku_id.in_(ids), SaleOrderItem.qty_shipped > 0)
        for item in apply_date_filter(query, SaleOrder.created_at, start_date):
            sold.add(item.sku_id)

        # 零售：按 SKU 或其变体匹配，只算已履约订单
        variance_owner = {v.id: v.sku_id for v in SkuVariance.query.filter(SkuVariance.sku_id.in_(ids))}
        conditions = [WebOrderItem.sku_id.in_(ids)]
        if variance_owner:
            conditions.append(WebOrderItem.variance_id.in_(list(variance_owner)))
        query = WebOrderItem.query.join(WebOrder).options(contains_eager(WebOrderItem.order)) \
            .filter(or_(*conditions))
        for item in apply_date_filter(query, WebOrder.created_at, start_date):
            if not item.order.is_fulfilled or line_quantity(item) <= 0:
                continue
            owner = item.sku_id if item.sku_id in known else variance_owner.get(item.variance_id)
            if owner in ids:
                sold.add(owner)

        # 制造消耗：成本口径消耗量 > 0
        query = ManufacturingLineItem.query.join(ManufacturingJob) \
            .options(contains_eager(ManufacturingLineItem.job)) \
            .filter(ManufacturingLineItem.sku_id.in_(ids))
        for line in apply_date_filter(query, ManufacturingJob.created_at, start_date):
            qty = consumed_quantity(line.recipe_qty, line.job.qty, line.sa,
                                    qty_scrapped=line.qty_scrapped, qty_extra=line.qty_extra)
            if qty.total_qty > 0:
                consumed.add(line.sku_id)

    return {sku_id: classify_tier(sku_id in sold, sku_id in consumed) for sku_id in sku_ids}
