"""生产制造模型"""
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from lotwise.extensions import db
from .base import BaseModel, SkuLinkMixin, sku_link


@dataclass
class ProductionEvent:
    """制造单的产出视图：产出 SKU + 批号入库"""
    job_id: int
    sku_id: str
    lot_number: Optional[str]
    qty: float
    date: datetime
    reference: str


@dataclass
class ConsumptionEvent:
    """制造单的消耗视图：每条明细对应一次原料批次出库"""
    job_id: int
    line_id: int
    sku_id: str
    lot_number: Optional[str]
    recipe_qty: float
    sa: float
    qty_extra: float
    qty_scrapped: float
    uom: Optional[str]
    date: datetime
    reference: str


class ManufacturingJob(SkuLinkMixin, BaseModel):
    """
    生产批次（制造单）
    同一张单据既是产出 SKU 批次的生产方，又是所有原料批次的消耗方；
    两个角色通过 as_production() / as_consumption_events() 派生，不拆成两类实体
    """
    __tablename__ = 'mfg_jobs'

    STATUS_DRAFT = 'Draft'
    STATUS_IN_PROGRESS = 'In Progress'
    STATUS_COMPLETED = 'Completed'

    sku_id = db.Column(db.String(64), nullable=False, index=True)  # 产出 SKU
    label = db.Column(db.String(64), index=True)
    lot_number = db.Column(db.String(64), index=True)
    uom = db.Column(db.String(16))

    qty = db.Column(db.Float, default=0.0)             # 计划产量
    qty_difference = db.Column(db.Float, default=0.0)  # 产量差异
    status = db.Column(db.String(20), default=STATUS_DRAFT, index=True)
    priority = db.Column(db.String(10), default='Medium')

    scheduled_start = db.Column(db.DateTime)
    scheduled_finish = db.Column(db.DateTime)

    # 成本快照（由成本同步回写）
    material_cost = db.Column(db.Float, default=0.0)
    packaging_cost = db.Column(db.Float, default=0.0)
    labor_cost = db.Column(db.Float, default=0.0)
    total_cost = db.Column(db.Float, default=0.0)

    created_by = db.Column(db.Integer, db.ForeignKey('auth_users.id'))

    sku = sku_link('ManufacturingJob')
    line_items = db.relationship('ManufacturingLineItem', backref='job', cascade='all, delete-orphan',
                                 order_by='ManufacturingLineItem.id')
    labor = db.relationship('LaborEntry', backref='job', cascade='all, delete-orphan',
                            order_by='LaborEntry.id')

    @property
    def output_lot(self):
        """产出批号：lot_number 为空时用 label 兜底"""
        return self.lot_number or self.label

    @property
    def reference(self):
        return self.label or 'Production'

    def as_production(self) -> ProductionEvent:
        return ProductionEvent(
            job_id=self.id,
            sku_id=self.sku_id,
            lot_number=self.output_lot,
            qty=self.qty or 0.0,
            date=self.scheduled_finish or self.created_at,
            reference=self.reference,
        )

    def as_consumption_events(self) -> List[ConsumptionEvent]:
        events = []
        for line in self.line_items:
            events.append(ConsumptionEvent(
                job_id=self.id,
                line_id=line.id,
                sku_id=line.sku_id,
                lot_number=line.lot_number,
                recipe_qty=line.recipe_qty or 0.0,
                sa=line.sa or 0.0,
                qty_extra=line.qty_extra or 0.0,
                qty_scrapped=line.qty_scrapped or 0.0,
                uom=line.uom,
                date=line.created_at or self.scheduled_start or self.created_at,
                reference=self.reference,
            ))
        return events

    def to_dict(self):
        data = super().to_dict()
        data['line_items'] = [line.to_dict() for line in self.line_items]
        data['labor'] = [entry.to_dict() for entry in self.labor]
        return data


class ManufacturingLineItem(SkuLinkMixin, BaseModel):
    """制造单原料明细"""
    __tablename__ = 'mfg_line_items'

    job_id = db.Column(db.Integer, db.ForeignKey('mfg_jobs.id'), index=True)
    sku_id = db.Column(db.String(64), index=True)
    lot_number = db.Column(db.String(64), index=True)
    label = db.Column(db.String(64))
    uom = db.Column(db.String(16))

    recipe_qty = db.Column(db.Float, default=0.0)    # 单位产品用量
    sa = db.Column(db.Float, default=0.0)            # 得率百分比，例如 80 表示 80%
    qty_extra = db.Column(db.Float, default=0.0)
    qty_scrapped = db.Column(db.Float, default=0.0)

    cost = db.Column(db.Float)           # 成本同步回写的单位成本快照，计算时不读取
    cost_override = db.Column(db.Float)  # 手工指定的单位成本，优先于解析值

    sku = sku_link('ManufacturingLineItem')


class LaborEntry(BaseModel):
    """工时记录"""
    __tablename__ = 'mfg_labor'

    job_id = db.Column(db.Integer, db.ForeignKey('mfg_jobs.id'), index=True)
    type = db.Column(db.String(32))
    user_id = db.Column(db.Integer, db.ForeignKey('auth_users.id'))
    duration = db.Column(db.String(16))  # HH:MM:SS
    hourly_rate = db.Column(db.Float, default=0.0)
