"""
制造成本计算（纯计算，无 I/O）

总成本 = 人工成本 + 原料成本 + 包材成本
原料单位成本由调用方传入的解析函数提供（见 lot_cost_service）
"""
from dataclasses import dataclass, field, asdict
from typing import Callable, List, Optional

from lotwise.utils.durations import duration_to_hours
from lotwise.utils.refs import sku_key, lot_key

CATEGORY_MATERIAL = 'material'
CATEGORY_PACKAGING = 'packaging'


@dataclass
class ConsumedQuantity:
    bom_qty: float
    qty_extra: float
    qty_scrapped: float
    total_qty: float


@dataclass
class LineCost:
    line_id: Optional[int]
    sku_id: Optional[str]
    lot_number: Optional[str]
    unit_cost: float
    total_qty: float
    total_cost: float
    category: str


@dataclass
class CostBreakdown:
    material_cost: float = 0.0
    packaging_cost: float = 0.0
    labor_cost: float = 0.0
    total_cost: float = 0.0
    per_unit_cost: float = 0.0
    lines: List[LineCost] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


def labor_cost(entries) -> float:
    """人工成本 = Σ 工时(小时) × 时薪"""
    total = 0.0
    for entry in entries or []:
        hours = duration_to_hours(_get(entry, 'duration'))
        total += hours * (_get(entry, 'hourly_rate') or 0)
    return total


def consumed_quantity(recipe_qty, job_qty, sa_percent, qty_scrapped=0, qty_extra=0) -> ConsumedQuantity:
    """
    成本口径的原料消耗量：
        bomQty      = recipeQty × job.qty
        sa          = sa% / 100
        qtyExtra    = sa > 0 ? bomQty / sa - bomQty : 明细上的 qtyExtra
        totalQty    = sa > 0 ? bomQty + qtyScrapped + qtyExtra : bomQty + qtyScrapped
    """
    bom_qty = (recipe_qty or 0) * (job_qty or 0)
    sa = (sa_percent or 0) / 100
    scrapped = qty_scrapped or 0
    if sa > 0:
        extra = bom_qty / sa - bom_qty
        total = bom_qty + scrapped + extra
    else:
        extra = qty_extra or 0
        total = bom_qty + scrapped
    return ConsumedQuantity(bom_qty=bom_qty, qty_extra=extra, qty_scrapped=scrapped, total_qty=total)


def stock_consumed_quantity(recipe_qty, qty_extra) -> float:
    """库存口径的原料消耗量（台账 / 批次余额使用）：recipeQty + qtyExtra，不含报废"""
    return (recipe_qty or 0) + (qty_extra or 0)


def calculate_job_cost(job,
                       unit_cost_of: Callable[[str, str], float],
                       is_packaging: Callable[[str], bool]) -> CostBreakdown:
    """
    计算单个制造单的成本构成
    明细上有正数 cost_override 时直接采用；cost 列是同步快照，这里不读取

    :param job: ManufacturingJob（或具有 qty / line_items / labor 属性的对象）
    :param unit_cost_of: (sku_id, lot_number) -> 单位成本
    :param is_packaging: sku_id -> 是否包材
    """
    job_qty = _get(job, 'qty') or 0
    breakdown = CostBreakdown(labor_cost=labor_cost(_get(job, 'labor')))

    for line in _get(job, 'line_items') or []:
        line_sku = sku_key(_get(line, 'sku_id'))
        line_lot = lot_key(_get(line, 'lot_number'))

        override = _get(line, 'cost_override')
        if override:
            unit_cost = override
        else:
            unit_cost = unit_cost_of(line_sku, line_lot) if line_sku else 0.0

        qty = consumed_quantity(
            _get(line, 'recipe_qty'), job_qty, _get(line, 'sa'),
            qty_scrapped=_get(line, 'qty_scrapped'), qty_extra=_get(line, 'qty_extra'),
        )
        line_total = qty.total_qty * unit_cost

        if line_sku and is_packaging(line_sku):
            category = CATEGORY_PACKAGING
            breakdown.packaging_cost += line_total
        else:
            category = CATEGORY_MATERIAL
            breakdown.material_cost += line_total

        breakdown.lines.append(LineCost(
            line_id=_get(line, 'id'),
            sku_id=line_sku,
            lot_number=line_lot,
            unit_cost=unit_cost,
            total_qty=qty.total_qty,
            total_cost=line_total,
            category=category,
        ))

    breakdown.total_cost = breakdown.labor_cost + breakdown.material_cost + breakdown.packaging_cost
    breakdown.per_unit_cost = breakdown.total_cost / job_qty if job_qty > 0 else 0.0
    return breakdown


def _get(obj, name):
    # 同时支持 ORM 对象和 dict 载荷
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)
