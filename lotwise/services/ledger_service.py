"""
SKU 台账

把一个 SKU 在所有来源中的流水合并成一张按时间排序、带成本和滚动余额的明细表。
每条匹配的明细行生成一条记录（不是每张单据一条）。
滚动余额只用于展示，每次读取时重新计算，不落库。
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import contains_eager, selectinload

from lotwise.extensions import db
from lotwise.exceptions import NotFound
from lotwise.models import (
    Sku, OpeningBalance, AuditAdjustment, PurchaseOrder, PurchaseOrderItem,
    ManufacturingJob, ManufacturingLineItem, SaleOrder, SaleOrderItem, WebOrder, WebOrderItem,
)
from lotwise.services.costing import calculate_job_cost, stock_consumed_quantity
from lotwise.services.lot_cost_service import LotCostIndex
from lotwise.services.settings_service import resolve_start_date, apply_date_filter
from lotwise.utils.refs import sku_key, lot_key, line_quantity

TYPE_OPENING = 'Opening'
TYPE_PURCHASE = 'Purchase Order'
TYPE_PRODUCED = 'Produced'
TYPE_CONSUMPTION = 'Consumption'
TYPE_ORDERS = 'Orders'
TYPE_AUDIT = 'Audit'
TYPE_WEB_ORDER = 'Web Order'

# 同一时间点的排序：先入库后出库，保证排序稳定
TYPE_RANK = {
    TYPE_OPENING: 0,
    TYPE_PURCHASE: 1,
    TYPE_PRODUCED: 2,
    TYPE_AUDIT: 3,
    TYPE_CONSUMPTION: 4,
    TYPE_ORDERS: 5,
    TYPE_WEB_ORDER: 6,
}

SALES_TYPES = (TYPE_ORDERS, TYPE_WEB_ORDER)


@dataclass
class Transaction:
    date: datetime
    type: str
    reference: str
    lot_number: Optional[str]
    quantity: float
    uom: Optional[str]
    cost: float
    doc_id: int
    link: str
    line_id: Optional[int] = None
    sale_price: Optional[float] = None
    balance: float = 0.0
    extra: dict = field(default_factory=dict)

    def sort_key(self):
        return (self.date or datetime.min, TYPE_RANK.get(self.type, 99), self.doc_id or 0, self.line_id or 0)

    def to_dict(self):
        data = {
            'date': self.date.isoformat() if self.date else None,
            'type': self.type,
            'reference': self.reference,
            'lotNumber': self.lot_number,
            'quantity': self.quantity,
            'uom': self.uom,
            'cost': self.cost,
            'balance': self.balance,
            'docId': self.doc_id,
            'link': self.link,
        }
        if self.sale_price is not None:
            data['salePrice'] = self.sale_price
        data.update(self.extra)
        return data


@dataclass
class SkuLedger:
    sku: Sku
    transactions: List[Transaction]

    @property
    def financials(self):
        """收入 / 销售成本 / 毛利，只统计批发与零售出库行"""
        revenue = cost_of_sales = 0.0
        for t in self.transactions:
            if t.type not in SALES_TYPES:
                continue
            qty = abs(t.quantity)
            revenue += qty * (t.sale_price or 0)
            cost_of_sales += qty * (t.cost or 0)
        return {
            'revenue': revenue,
            'costOfSales': cost_of_sales,
            'grossProfit': revenue - cost_of_sales,
        }

    @property
    def final_balance(self):
        return self.transactions[-1].balance if self.transactions else 0.0

    def to_dict(self):
        return {
            'sku': self.sku.to_dict(),
            'transactions': [t.to_dict() for t in self.transactions],
            'financials': self.financials,
            'totalCount': len(self.transactions),
        }


def running_balance(transactions: List[Transaction]) -> List[Transaction]:
    """排序后按顺序累加数量，写入每行的 balance"""
    ordered = sorted(transactions, key=Transaction.sort_key)
    balance = 0.0
    for t in ordered:
        balance += t.quantity
        t.balance = balance
    return ordered


def build_sku_ledger(sku_ref, start_date=None) -> SkuLedger:
    sku_id = sku_key(sku_ref)
    sku = db.session.get(Sku, sku_id) if sku_id else None
    if sku is None:
        raise NotFound(f"SKU {sku_ref} not found")

    start = resolve_start_date(start_date)
    variance_ids = sku.variance_ids
    transactions: List[Transaction] = []

    # ---- 拉取 ----
    openings = apply_date_filter(
        OpeningBalance.query.filter_by(sku_id=sku_id), OpeningBalance.created_at, start).all()

    po_items = apply_date_filter(
        PurchaseOrderItem.query.join(PurchaseOrder).options(contains_eager(PurchaseOrderItem.order))
        .filter(PurchaseOrderItem.sku_id == sku_id,
                PurchaseOrder.status == PurchaseOrder.STATUS_RECEIVED,
                PurchaseOrderItem.qty_received > 0),
        PurchaseOrder.created_at, start).all()

    produced_jobs = apply_date_filter(
        ManufacturingJob.query.options(selectinload(ManufacturingJob.line_items),
                                       selectinload(ManufacturingJob.labor))
        .filter(ManufacturingJob.sku_id == sku_id),
        ManufacturingJob.created_at, start).all()

    consumed_lines = apply_date_filter(
        ManufacturingLineItem.query.join(ManufacturingJob)
        .options(contains_eager(ManufacturingLineItem.job))
        .filter(ManufacturingLineItem.sku_id == sku_id),
        ManufacturingJob.created_at, start).all()

    sale_items = apply_date_filter(
        SaleOrderItem.query.join(SaleOrder).options(contains_eager(SaleOrderItem.order))
        .filter(SaleOrderItem.sku_id == sku_id, SaleOrderItem.qty_shipped > 0),
        SaleOrder.created_at, start).all()

    audits = apply_date_filter(
        AuditAdjustment.query.filter_by(sku_id=sku_id), AuditAdjustment.created_at, start).all()

    web_match = [WebOrderItem.sku_id == sku_id]
    if variance_ids:
        web_match.append(WebOrderItem.variance_id.in_(variance_ids))
    web_items = apply_date_filter(
        WebOrderItem.query.join(WebOrder).options(contains_eager(WebOrderItem.order))
        .filter(or_(*web_match)),
        WebOrder.created_at, start).all()

    # 成本索引：本 SKU + 产出制造单用到的所有原料
    index = LotCostIndex()
    index.load([sku_id] + [line.sku_id for job in produced_jobs for line in job.line_items])

    # ---- 生成记录 ----
    for ob in openings:
        transactions.append(Transaction(
            date=ob.created_at, type=TYPE_OPENING, reference='Opening Balance',
            lot_number=lot_key(ob.lot_number), quantity=ob.qty or 0, uom=ob.uom or sku.uom,
            cost=ob.cost or 0.0, doc_id=ob.id, link=f'/inventory/opening-balances/{ob.id}',
        ))

    for item in po_items:
        po = item.order
        transactions.append(Transaction(
            date=item.received_date or po.received_date or po.created_at, type=TYPE_PURCHASE,
            reference=f'PO #{po.reference}', lot_number=lot_key(item.lot_number),
            quantity=item.qty_received, uom=item.uom or sku.uom,
            cost=item.unit_cost(index.po_price_fallback), doc_id=po.id, line_id=item.id,
            link=f'/purchase/orders/{po.id}', extra={'vendor': po.vendor},
        ))

    for job in produced_jobs:
        event = job.as_production()
        breakdown = calculate_job_cost(job, index.resolve, index.is_packaging)
        transactions.append(Transaction(
            date=event.date, type=TYPE_PRODUCED, reference=event.reference,
            lot_number=lot_key(event.lot_number), quantity=event.qty, uom=job.uom or sku.uom,
            cost=breakdown.per_unit_cost, doc_id=job.id, link=f'/manufacturing/{job.id}',
        ))

    for line in consumed_lines:
        job = line.job
        consumed = stock_consumed_quantity(line.recipe_qty, line.qty_extra)
        if consumed <= 0:
            continue
        transactions.append(Transaction(
            date=line.created_at or job.scheduled_start or job.created_at, type=TYPE_CONSUMPTION,
            reference=job.reference, lot_number=lot_key(line.lot_number), quantity=-consumed,
            uom=line.uom or sku.uom, cost=index.resolve(sku_id, line.lot_number),
            doc_id=job.id, line_id=line.id, link=f'/manufacturing/{job.id}',
        ))

    for item in sale_items:
        order = item.order
        cost = item.cost if item.cost else index.resolve(sku_id, item.lot_number)
        transactions.append(Transaction(
            date=order.shipped_date or order.created_at, type=TYPE_ORDERS,
            reference=order.label or str(order.id), lot_number=lot_key(item.lot_number),
            quantity=-abs(item.qty_shipped), uom=item.uom or sku.uom, cost=cost,
            sale_price=item.price or 0.0, doc_id=order.id, line_id=item.id,
            link=f'/sales/orders/{order.id}', extra={'client': order.client_name},
        ))

    for adj in audits:
        transactions.append(Transaction(
            date=adj.created_at, type=TYPE_AUDIT, reference=adj.reason or 'Audit Adjustment',
            lot_number=lot_key(adj.lot_number), quantity=adj.qty or 0, uom=sku.uom,
            cost=adj.cost or 0.0, doc_id=adj.id, link=f'/inventory/audits/{adj.id}',
        ))

    for item in web_items:
        order = item.order
        if not order.holds_stock:
            continue
        qty = line_quantity(item)
        if qty == 0:
            continue
        cost = item.cost if item.cost else index.resolve(sku_id, item.lot_number)
        transactions.append(Transaction(
            date=order.date_created or order.created_at, type=TYPE_WEB_ORDER,
            reference=f'Web #{order.reference}',
            lot_number=lot_key(item.lot_number), quantity=-abs(qty), uom=sku.uom, cost=cost,
            sale_price=item.unit_sale_price, doc_id=order.id, line_id=item.id,
            link=f'/sales/web-orders/{order.id}',
            extra={'varianceId': item.variance_id, 'website': order.website},
        ))

    # 单据级过滤之后，按记录自身日期再过滤一次
    if start is not None:
        transactions = [t for t in transactions if t.date is None or t.date >= start]

    return SkuLedger(sku=sku, transactions=running_balance(transactions))
