"""
批次余额汇总

余额从不存储，每次请求都从全部流水重新汇总：
期初 -> 采购收货 -> 制造产出 -> 制造消耗 -> 批发发货 -> 盘点调整 -> 零售订单
来源按上面的固定顺序处理，第一条 "登记来源" 的入库流水决定批次的 source/date/cost，
之后的流水只改余额。
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import contains_eager

from lotwise.extensions import db
from lotwise.exceptions import NotFound
from lotwise.models import (
    Sku, SkuVariance, OpeningBalance, AuditAdjustment, PurchaseOrder, PurchaseOrderItem,
    ManufacturingJob, ManufacturingLineItem, SaleOrder, SaleOrderItem, WebOrder, WebOrderItem,
)
from lotwise.services.costing import stock_consumed_quantity
from lotwise.services.lot_cost_service import LotCostIndex, chunked
from lotwise.services.settings_service import get_global_start_date, apply_date_filter
from lotwise.utils.refs import sku_key, lot_key, line_quantity

VIEW_FIFO = 'fifo'
VIEW_BALANCE = 'balance'

SOURCE_OPENING_LABEL = 'Opening Balance'
SOURCE_MANUFACTURING_LABEL = 'Manufacturing'
SOURCE_AUDIT_LABEL = 'Audit Adjustment'
SOURCE_UNKNOWN_LABEL = 'Unknown Source'


@dataclass
class LotBalance:
    lot_number: str
    balance: float = 0.0
    source: Optional[str] = None
    date: Optional[datetime] = None
    cost: float = 0.0

    def to_dict(self):
        data = asdict(self)
        data['source'] = self.source or SOURCE_UNKNOWN_LABEL
        data['date'] = self.date.isoformat() if self.date else None
        return data


class LotLedger:
    """单个 SKU 的批次余额累加器"""

    def __init__(self, sku_id):
        self.sku_id = sku_id
        self.lots: Dict[str, LotBalance] = {}

    def register(self, lot_number, qty, source=None, date=None):
        lot = lot_key(lot_number)
        if lot is None or not qty:
            return
        entry = self.lots.get(lot)
        if entry is None:
            entry = self.lots[lot] = LotBalance(lot_number=lot)
        entry.balance += qty
        if source and entry.source is None:
            entry.source = source
            entry.date = date


def _aggregate(sku_ids: List[str], completed_only=False) -> Dict[str, LotLedger]:
    """
    一次性拉取所有来源，按 SKU 汇总批次余额
    :param completed_only: 制造产出只算已完工的制造单（FIFO 出库建议用）
    """
    ledgers = {sku_id: LotLedger(sku_id) for sku_id in sku_ids}
    start_date = get_global_start_date()

    for ids in chunked(sku_ids):
        # 期初
        query = OpeningBalance.query.filter(OpeningBalance.sku_id.in_(ids)).order_by(OpeningBalance.id)
        for ob in apply_date_filter(query, OpeningBalance.created_at, start_date):
            ledgers[ob.sku_id].register(ob.lot_number, ob.qty or 0, SOURCE_OPENING_LABEL, ob.created_at)

        # 采购：只算已收货的采购单
        query = PurchaseOrderItem.query.join(PurchaseOrder) \
            .options(contains_eager(PurchaseOrderItem.order)).filter(
            PurchaseOrderItem.sku_id.in_(ids),
            PurchaseOrder.status == PurchaseOrder.STATUS_RECEIVED,
            PurchaseOrderItem.qty_received > 0,
        ).order_by(PurchaseOrderItem.id)
        for item in apply_date_filter(query, PurchaseOrder.created_at, start_date):
            po = item.order
            ledgers[item.sku_id].register(
                item.lot_number, item.qty_received, f"PO #{po.reference}",
                item.received_date or po.received_date or po.created_at,
            )

        # 制造产出
        query = ManufacturingJob.query.filter(ManufacturingJob.sku_id.in_(ids)).order_by(ManufacturingJob.id)
        if completed_only:
            query = query.filter(ManufacturingJob.status == ManufacturingJob.STATUS_COMPLETED)
        for job in apply_date_filter(query, ManufacturingJob.created_at, start_date):
            event = job.as_production()
            ledgers[event.sku_id].register(event.lot_number, event.qty, SOURCE_MANUFACTURING_LABEL, event.date)

        # 制造消耗：库存口径 recipeQty + qtyExtra
        query = ManufacturingLineItem.query.join(ManufacturingJob).filter(
            ManufacturingLineItem.sku_id.in_(ids)).order_by(ManufacturingLineItem.id)
        for line in apply_date_filter(query, ManufacturingJob.created_at, start_date):
            consumed = stock_consumed_quantity(line.recipe_qty, line.qty_extra)
            if consumed > 0:
                ledgers[line.sku_id].register(line.lot_number, -consumed)

        # 批发发货
        query = SaleOrderItem.query.join(SaleOrder).filter(
            SaleOrderItem.sku_id.in_(ids), SaleOrderItem.qty_shipped > 0).order_by(SaleOrderItem.id)
        for item in apply_date_filter(query, SaleOrder.created_at, start_date):
            ledgers[item.sku_id].register(item.lot_number, -abs(item.qty_shipped))

        # 盘点：正数登记来源，负数只扣减
        query = AuditAdjustment.query.filter(AuditAdjustment.sku_id.in_(ids)).order_by(AuditAdjustment.id)
        for adj in apply_date_filter(query, AuditAdjustment.created_at, start_date):
            qty = adj.qty or 0
            if qty > 0:
                ledgers[adj.sku_id].register(adj.lot_number, qty, SOURCE_AUDIT_LABEL, adj.created_at)
            else:
                ledgers[adj.sku_id].register(adj.lot_number, qty)

        # 零售：按 SKU 或变体匹配，只算占用库存的状态
        variance_owner = {v.id: v.sku_id for v in SkuVariance.query.filter(SkuVariance.sku_id.in_(ids))}
        conditions = [WebOrderItem.sku_id.in_(ids)]
        if variance_owner:
            conditions.append(WebOrderItem.variance_id.in_(list(variance_owner)))
        query = WebOrderItem.query.join(WebOrder).options(contains_eager(WebOrderItem.order)) \
            .filter(or_(*conditions)).order_by(WebOrderItem.id)
        for item in apply_date_filter(query, WebOrder.created_at, start_date):
            if not item.order.holds_stock:
                continue
            owner = item.sku_id if item.sku_id in ledgers else variance_owner.get(item.variance_id)
            if owner in ids:
                ledgers[owner].register(item.lot_number, -abs(line_quantity(item)))

    return ledgers


def _attach_costs(ledgers: Dict[str, LotLedger]):
    index = LotCostIndex().load(ledgers)
    for sku_id, ledger in ledgers.items():
        for entry in ledger.lots.values():
            entry.cost = index.resolve(sku_id, entry.lot_number)


def _fifo_order(entry: LotBalance):
    # 没有来源日期的批次排在最后
    return (entry.date is None, entry.date or datetime.min, entry.lot_number)


def get_lot_balances(sku_ref, view=VIEW_BALANCE, include_empty=False) -> List[LotBalance]:
    """
    单个 SKU 的批次余额
    :param view: 'fifo' 按首次入库日期升序（出库建议），'balance' 按余额降序（展示）
    :param include_empty: 展示模式下是否保留余额 <= 0 的批次
    """
    sku_id = sku_key(sku_ref)
    if sku_id is None or db.session.get(Sku, sku_id) is None:
        raise NotFound(f"SKU {sku_ref} not found")

    ledgers = _aggregate([sku_id], completed_only=(view == VIEW_FIFO))
    _attach_costs(ledgers)
    lots = list(ledgers[sku_id].lots.values())

    if view == VIEW_FIFO:
        return sorted((e for e in lots if e.balance > 0), key=_fifo_order)

    if not include_empty:
        lots = [e for e in lots if e.balance > 0]
    return sorted(lots, key=lambda e: (-e.balance, e.lot_number))


def get_available_lots(sku_ref) -> List[LotBalance]:
    """有正余额的批次，按 FIFO 顺序；制造产出只算已完工的制造单"""
    return get_lot_balances(sku_ref, view=VIEW_FIFO)


def get_available_lots_for_skus(sku_refs: Iterable) -> Dict[str, List[LotBalance]]:
    """批量版本：不存在的 SKU 返回空列表，不报错"""
    sku_ids = sorted({sku_key(ref) for ref in sku_refs} - {None})
    if not sku_ids:
        return {}

    ledgers = _aggregate(sku_ids, completed_only=True)
    _attach_costs(ledgers)
    return {
        sku_id: sorted((e for e in ledger.lots.values() if e.balance > 0), key=_fifo_order)
        for sku_id, ledger in ledgers.items()
    }
