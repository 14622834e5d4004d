"""
SKU 引用归一化工具

历史数据里 SKU 引用有多种形态：纯字符串、已加载的 Sku 对象、
或带 `_id` / `id` 的字典（外部系统推送的 populated 结构）。
所有调用点统一走 sku_key()，不再到处写 `obj._id or obj`。
"""
from typing import Any, Mapping, Optional, Union

# SkuRef = Id(str) | Populated(Sku / dict)
SkuRef = Union[str, Mapping, Any]

LOT_PLACEHOLDER = 'N/A'


def sku_key(ref: SkuRef) -> Optional[str]:
    """把任意形态的 SKU 引用转换为字符串 ID；无法识别时返回 None"""
    if ref is None:
        return None
    if isinstance(ref, str):
        ref = ref.strip()
        return ref or None
    if isinstance(ref, Mapping):
        return sku_key(ref.get('_id', ref.get('id')))
    # ORM 对象 (Sku) 或其它带 id 属性的对象
    inner = getattr(ref, 'id', None)
    if inner is not None:
        return sku_key(inner)
    value = str(ref).strip()
    return value or None


def lot_key(lot_number) -> Optional[str]:
    """批号归一化：去空白，空串视为无批号"""
    if lot_number is None:
        return None
    value = str(lot_number).strip()
    if not value or value == LOT_PLACEHOLDER:
        return None
    return value


def pair_key(sku_id, lot_number) -> str:
    """(SKU, 批号) 组合键，格式 "<sku>:<lot>"，用于请求内的内存索引"""
    return f"{sku_key(sku_id)}:{lot_key(lot_number)}"


def line_quantity(item) -> float:
    """零售订单明细数量字段名不统一 (qty / quantity)，这里统一读取"""
    if isinstance(item, Mapping):
        value = item.get('quantity', item.get('qty'))
    else:
        value = getattr(item, 'quantity', None)
        if value is None:
            value = getattr(item, 'qty', None)
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0
