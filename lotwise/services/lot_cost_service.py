"""
批次成本解析

给定 (SKU, 批号)，按固定优先级查找单位成本，命中即停止，不做平均或合并：
    1. 期初余额 OpeningBalance
    2. 采购明细 PurchaseOrderItem（不看采购单状态）
    3. 制造单产出（按该批次的单位制造成本）
    4. 盘点调整 AuditAdjustment
    5. 都没有 -> 0（正常情况，不是错误）

批量场景先按来源一次性拉取，再在内存里按 "sku:lot" 建索引。
索引只在单个请求/任务内有效，不做跨请求缓存。
"""
from collections import Counter
from typing import Dict, Iterable, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from lotwise.models import (
    Sku, OpeningBalance, PurchaseOrderItem, ManufacturingJob, AuditAdjustment,
)
from lotwise.services.costing import calculate_job_cost
from lotwise.utils.refs import sku_key, lot_key, pair_key

SOURCE_OPENING = 'openingBalance'
SOURCE_PURCHASE = 'purchaseOrder'
SOURCE_MANUFACTURING = 'manufacturing'
SOURCE_AUDIT = 'auditAdjustment'
SOURCE_UNRESOLVED = 'unresolved'

SOURCE_PRIORITY = (SOURCE_OPENING, SOURCE_PURCHASE, SOURCE_MANUFACTURING, SOURCE_AUDIT)

# IN (...) 参数分块，避免超出数据库的绑定参数上限
QUERY_CHUNK_SIZE = 500


def chunked(values, size=QUERY_CHUNK_SIZE):
    values = list(values)
    for start in range(0, len(values), size):
        yield values[start:start + size]


class LotCostIndex:
    """
    请求内的批次成本索引

    load() 按 SKU 批量拉取四个来源并建立 "sku:lot" 映射；
    resolve() 之后全部是内存计算，不再访问数据库（制造单递归时按需补充 load）
    """

    def __init__(self, include_manufacturing=True, po_price_fallback=None, max_depth=None):
        config = current_app.config
        self.include_manufacturing = include_manufacturing
        self.po_price_fallback = config.get('PO_COST_FALLBACK_TO_PRICE', True) \
            if po_price_fallback is None else po_price_fallback
        self.max_depth = config.get('MANUFACTURING_COST_MAX_DEPTH', 5) if max_depth is None else max_depth

        self._loaded = set()
        self._categories: Dict[str, str] = {}
        self._opening: Dict[str, float] = {}
        self._purchase: Dict[str, float] = {}
        self._jobs: Dict[str, ManufacturingJob] = {}
        self._audit: Dict[str, float] = {}

        self._resolved: Dict[str, Tuple[float, Optional[str]]] = {}
        self._in_progress = set()

    # ------------------------------------------------------------------
    # 批量加载
    # ------------------------------------------------------------------
    def load(self, sku_refs: Iterable):
        """拉取尚未加载的 SKU 的所有成本来源"""
        pending = {sku_key(ref) for ref in sku_refs} - self._loaded - {None}
        if not pending:
            return self
        self._loaded |= pending

        for ids in chunked(sorted(pending)):
            for sku in Sku.query.filter(Sku.id.in_(ids)):
                self._categories[sku.id] = sku.category or ''

            rows = OpeningBalance.query.filter(OpeningBalance.sku_id.in_(ids)) \
                .order_by(OpeningBalance.id)
            for ob in rows:
                self._remember(self._opening, ob.sku_id, ob.lot_number, ob.cost or 0.0)

            rows = PurchaseOrderItem.query.filter(PurchaseOrderItem.sku_id.in_(ids)) \
                .order_by(PurchaseOrderItem.id)
            for item in rows:
                self._remember(self._purchase, item.sku_id, item.lot_number,
                               item.unit_cost(self.po_price_fallback))

            if self.include_manufacturing:
                rows = ManufacturingJob.query \
                    .options(selectinload(ManufacturingJob.line_items), selectinload(ManufacturingJob.labor)) \
                    .filter(ManufacturingJob.sku_id.in_(ids)) \
                    .order_by(ManufacturingJob.id)
                for job in rows:
                    self._remember(self._jobs, job.sku_id, job.output_lot, job)

            rows = AuditAdjustment.query.filter(AuditAdjustment.sku_id.in_(ids)) \
                .order_by(AuditAdjustment.id)
            for adj in rows:
                self._remember(self._audit, adj.sku_id, adj.lot_number, adj.cost or 0.0)

        return self

    @staticmethod
    def _remember(mapping, sku_id, lot_number, value):
        # 同一来源内按 ID 顺序，先出现的记录生效
        if lot_key(lot_number) is None:
            return
        mapping.setdefault(pair_key(sku_id, lot_number), value)

    # ------------------------------------------------------------------
    # 解析
    # ------------------------------------------------------------------
    def resolve(self, sku_ref, lot_number) -> float:
        return self.resolve_with_source(sku_ref, lot_number)[0]

    def resolve_with_source(self, sku_ref, lot_number, depth=0) -> Tuple[float, Optional[str]]:
        """返回 (单位成本, 来源)；未命中时来源为 None"""
        sku_id = sku_key(sku_ref)
        lot = lot_key(lot_number)
        if sku_id is None or lot is None:
            return 0.0, None

        key = pair_key(sku_id, lot)
        if key in self._resolved:
            return self._resolved[key]

        if sku_id not in self._loaded:
            self.load([sku_id])

        try:
            result = self._lookup(key, depth)
        except (ArithmeticError, TypeError, ValueError) as e:
            current_app.logger.warning(f"Lot cost resolution failed for {key}: {e}")
            result = (0.0, None)

        self._resolved[key] = result
        return result

    def _lookup(self, key, depth):
        if key in self._opening:
            return self._opening[key], SOURCE_OPENING
        if key in self._purchase:
            return self._purchase[key], SOURCE_PURCHASE
        if self.include_manufacturing and key in self._jobs:
            return self._manufacturing_unit_cost(key, depth), SOURCE_MANUFACTURING
        if key in self._audit:
            return self._audit[key], SOURCE_AUDIT
        return 0.0, None

    def _manufacturing_unit_cost(self, key, depth):
        job = self._jobs[key]
        if job.total_cost and job.qty and job.total_cost > 0 and job.qty > 0:
            return job.total_cost / job.qty

        # 成环或超过深度上限时按 0 处理
        if key in self._in_progress or depth >= self.max_depth:
            current_app.logger.warning(f"Manufacturing cost chain stopped at {key} (depth {depth})")
            return 0.0

        self._in_progress.add(key)
        try:
            self.load(line.sku_id for line in job.line_items)
            breakdown = calculate_job_cost(
                job,
                unit_cost_of=lambda sku, lot: self.resolve_with_source(sku, lot, depth + 1)[0],
                is_packaging=self.is_packaging,
            )
        finally:
            self._in_progress.discard(key)
        return breakdown.per_unit_cost

    # ------------------------------------------------------------------
    # 辅助
    # ------------------------------------------------------------------
    def is_packaging(self, sku_ref) -> bool:
        """分类名包含 "pack"（不区分大小写）视为包材"""
        sku_id = sku_key(sku_ref)
        if sku_id is not None and sku_id not in self._loaded:
            self.load([sku_id])
        return 'pack' in self._categories.get(sku_id, '').lower()

    def source_breakdown(self, pairs) -> Dict[str, int]:
        """统计一组 (sku, lot) 分别由哪一级来源解析"""
        counts = Counter({source: 0 for source in SOURCE_PRIORITY})
        counts[SOURCE_UNRESOLVED] = 0
        for sku_id, lot in pairs:
            _, source = self.resolve_with_source(sku_id, lot)
            counts[source or SOURCE_UNRESOLVED] += 1
        if not self.include_manufacturing:
            counts.pop(SOURCE_MANUFACTURING, None)
        return dict(counts)

    @property
    def size(self):
        """索引中的 (sku, lot) 条目数"""
        keys = set(self._opening) | set(self._purchase) | set(self._audit)
        if self.include_manufacturing:
            keys |= set(self._jobs)
        return len(keys)


def resolve_lot_cost(sku_ref, lot_number) -> float:
    """单个批次的单位成本，未命中返回 0，永不抛错"""
    return resolve_lot_cost_with_source(sku_ref, lot_number)[0]


def resolve_lot_cost_with_source(sku_ref, lot_number) -> Tuple[float, Optional[str]]:
    try:
        index = LotCostIndex()
        return index.resolve_with_source(sku_ref, lot_number)
    except SQLAlchemyError as e:
        current_app.logger.error(f"Lot cost lookup failed for {sku_ref}:{lot_number}: {e}")
        return 0.0, None
