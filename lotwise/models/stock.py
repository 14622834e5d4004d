from lotwise.extensions import db
from .base import BaseModel, SkuLinkMixin, sku_link


class OpeningBalance(SkuLinkMixin, BaseModel):
    """
    期初余额
    手工注入的初始库存，入账后只允许修正单价（修正需向下游传播）
    """
    __tablename__ = 'stock_opening_balances'

    sku_id = db.Column(db.String(64), nullable=False, index=True)
    lot_number = db.Column(db.String(64), nullable=False, index=True)
    qty = db.Column(db.Float, nullable=False, default=0.0)
    uom = db.Column(db.String(16))
    cost = db.Column(db.Float, default=0.0)  # 单位成本
    expiration_date = db.Column(db.Date)
    created_by = db.Column(db.Integer, db.ForeignKey('auth_users.id'))

    sku = sku_link('OpeningBalance')
    creator = db.relationship('User')


class AuditAdjustment(SkuLinkMixin, BaseModel):
    """
    盘点调整
    qty 带符号：正数为盘盈入库，负数为盘亏扣减；成本解析优先级最低
    """
    __tablename__ = 'stock_audit_adjustments'

    sku_id = db.Column(db.String(64), nullable=False, index=True)
    lot_number = db.Column(db.String(64), default='', index=True)
    qty = db.Column(db.Float, nullable=False)
    cost = db.Column(db.Float, default=0.0)
    reason = db.Column(db.String(255), default='')
    created_by = db.Column(db.Integer, db.ForeignKey('auth_users.id'))

    sku = sku_link('AuditAdjustment')
    creator = db.relationship('User')
