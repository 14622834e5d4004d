"""
成本传播与批量同步

订单明细上的 cost 是成本快照。上游成本（期初、采购）变化后：
  - propagate_cost_change: 立即把新成本写进引用该 (SKU, 批号) 的批发订单明细，
    失败只记日志，不影响触发它的那次写入
  - sync_sale_order_costs_batch: 批量按完整来源链重算批发订单快照，
    用来修复传播失败留下的旧数据（最终一致）
  - sync_manufacturing_costs_batch: 批量重算制造单成本并回写

写入之间不加锁：同一批次重跑是安全的，每次都从来源重新计算。
"""
from dataclasses import dataclass, field, asdict
from typing import Dict, Iterable, Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from lotwise.extensions import db
from lotwise.exceptions import BulkWriteError
from lotwise.models import ManufacturingJob, ManufacturingLineItem, SaleOrder, SaleOrderItem
from lotwise.services.costing import calculate_job_cost
from lotwise.services.lot_cost_service import LotCostIndex
from lotwise.utils.refs import sku_key, lot_key


@dataclass
class SyncResult:
    processed: int = 0           # 本批制造单数
    calculated: int = 0          # 能算出成本 (> 0) 的制造单数
    line_items_updated: int = 0  # 单位成本有变化的明细数
    ops: int = 0                 # 需要回写的制造单数
    updated: int = 0             # 实际回写的制造单数
    cost_map_size: int = 0       # 本批成本索引的 (sku, lot) 条目数
    sources: Dict[str, int] = field(default_factory=dict)

    def to_dict(self):
        return asdict(self)


@dataclass
class SaleSyncResult:
    processed: int = 0
    total_line_items: int = 0
    unique_pairs: int = 0
    unique_skus: int = 0
    matched_items: int = 0
    updated: int = 0
    sources: Dict[str, int] = field(default_factory=dict)

    def to_dict(self):
        return asdict(self)


def propagate_cost_change(sku_ref, lot_number, new_cost) -> None:
    """
    把新单位成本写入所有匹配 (SKU, 批号) 的批发订单明细
    调用方应先提交触发写入；这里的任何数据库错误都回滚并记录，不向上抛
    """
    sku_id = sku_key(sku_ref)
    lot = lot_key(lot_number)
    if sku_id is None or lot is None:
        return

    try:
        result = db.session.execute(
            update(SaleOrderItem)
            .where(SaleOrderItem.sku_id == sku_id, SaleOrderItem.lot_number == lot)
            .values(cost=new_cost),
            execution_options={'synchronize_session': False},
        )
        db.session.commit()
        current_app.logger.info(
            f"Propagated cost {new_cost} for {sku_id}:{lot} to {result.rowcount} sale order line(s)")
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Cost propagation failed for {sku_id}:{lot}: {e}", exc_info=True)


def _batch_bounds(skip, limit):
    config = current_app.config
    skip = max(int(skip or 0), 0)
    limit = int(limit or config['SYNC_BATCH_LIMIT'])
    return skip, max(1, min(limit, config['SYNC_BATCH_MAX']))


def _bulk_write(model, rows):
    if rows:
        db.session.execute(update(model), rows)


def sync_manufacturing_costs_batch(skip=0, limit=None, order_ids: Optional[Iterable[int]] = None) -> SyncResult:
    """
    批量重算制造单成本

    1. 收集本批所有原料 (SKU, 批号)
    2. 只走期初 / 采购 / 盘点三个来源批量解析（不递归到其它制造单）
    3. 逐单重算材料 / 包材 / 人工 / 总成本
    4. 只回写有变化的制造单（总成本差 > COST_TOLERANCE 或明细单价差 > LINE_COST_TOLERANCE）
    """
    config = current_app.config
    skip, limit = _batch_bounds(skip, limit)

    query = ManufacturingJob.query.options(
        selectinload(ManufacturingJob.line_items), selectinload(ManufacturingJob.labor))
    if order_ids:
        query = query.filter(ManufacturingJob.id.in_(list(order_ids)))
    jobs = query.order_by(ManufacturingJob.id).offset(skip).limit(limit).all()

    result = SyncResult(processed=len(jobs))
    if not jobs:
        return result

    pairs = {(line.sku_id, lot_key(line.lot_number))
             for job in jobs for line in job.line_items if line.sku_id}

    index = LotCostIndex(include_manufacturing=False)
    index.load(sku_id for sku_id, _ in pairs)
    result.sources = index.source_breakdown(pairs)
    result.cost_map_size = index.size

    job_rows, line_rows = [], []
    cost_tolerance = config['COST_TOLERANCE']
    line_tolerance = config['LINE_COST_TOLERANCE']

    for job in jobs:
        breakdown = calculate_job_cost(job, index.resolve, index.is_packaging)
        if breakdown.total_cost > 0:
            result.calculated += 1

        lines_changed = 0
        for line, line_cost in zip(job.line_items, breakdown.lines):
            if abs((line.cost or 0) - line_cost.unit_cost) > line_tolerance:
                lines_changed += 1

        totals_changed = any(
            abs((current or 0) - new) > cost_tolerance for current, new in (
                (job.material_cost, breakdown.material_cost),
                (job.packaging_cost, breakdown.packaging_cost),
                (job.labor_cost, breakdown.labor_cost),
                (job.total_cost, breakdown.total_cost),
            )
        )
        if not (lines_changed or totals_changed):
            continue

        result.line_items_updated += lines_changed
        job_rows.append({
            'id': job.id,
            'material_cost': breakdown.material_cost,
            'packaging_cost': breakdown.packaging_cost,
            'labor_cost': breakdown.labor_cost,
            'total_cost': breakdown.total_cost,
        })
        line_rows.extend({'id': lc.line_id, 'cost': lc.unit_cost} for lc in breakdown.lines)

    result.ops = len(job_rows)
    if job_rows:
        try:
            _bulk_write(ManufacturingJob, job_rows)
            _bulk_write(ManufacturingLineItem, line_rows)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Manufacturing cost sync write failed: {e}", exc_info=True)
            raise BulkWriteError('Manufacturing cost sync write failed',
                                 payload={'requested': len(job_rows), 'updated': 0})
        result.updated = len(job_rows)

    current_app.logger.info(
        f"Manufacturing cost sync skip={skip} limit={limit}: processed={result.processed} "
        f"updated={result.updated} sources={result.sources}")
    return result


def sync_sale_order_costs_batch(skip=0, limit=None) -> SaleSyncResult:
    """按完整的四级来源链重算一批批发订单明细的成本快照"""
    config = current_app.config
    skip, limit = _batch_bounds(skip, limit)

    orders = SaleOrder.query.options(selectinload(SaleOrder.items)) \
        .order_by(SaleOrder.id).offset(skip).limit(limit).all()
    result = SaleSyncResult(processed=len(orders))
    if not orders:
        return result

    items = [item for order in orders for item in order.items
             if item.sku_id and lot_key(item.lot_number)]
    result.total_line_items = len(items)

    pairs = {(item.sku_id, lot_key(item.lot_number)) for item in items}
    result.unique_pairs = len(pairs)
    result.unique_skus = len({sku_id for sku_id, _ in pairs})

    index = LotCostIndex()
    index.load(sku_id for sku_id, _ in pairs)
    result.sources = index.source_breakdown(pairs)

    tolerance = config['SALE_COST_TOLERANCE']
    rows = []
    for item in items:
        cost, source = index.resolve_with_source(item.sku_id, item.lot_number)
        if source is None:
            continue
        result.matched_items += 1
        if abs((item.cost or 0) - cost) > tolerance:
            rows.append({'id': item.id, 'cost': cost})

    if rows:
        try:
            _bulk_write(SaleOrderItem, rows)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Sale order cost sync write failed: {e}", exc_info=True)
            raise BulkWriteError('Sale order cost sync write failed',
                                 payload={'requested': len(rows), 'updated': 0})
        result.updated = len(rows)

    current_app.logger.info(
        f"Sale order cost sync skip={skip} limit={limit}: processed={result.processed} "
        f"updated={result.updated}")
    return result
