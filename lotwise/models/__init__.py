# 按照依赖顺序导入
from .base import BaseModel
from .auth import User
from .catalog import Sku, SkuVariance
from .stock import OpeningBalance, AuditAdjustment
from .sys import Setting

# 采购管理
from .purchase import PurchaseOrder, PurchaseOrderItem

# 生产制造
from .manufacturing import (
    ManufacturingJob, ManufacturingLineItem, LaborEntry,
    ProductionEvent, ConsumptionEvent
)

# 销售（批发 + 零售）
from .trade import SaleOrder, SaleOrderItem, WebOrder, WebOrderItem
