"""采购管理模型"""
from lotwise.extensions import db
from .base import BaseModel, SkuLinkMixin, sku_link


class PurchaseOrder(BaseModel):
    """采购订单"""
    __tablename__ = 'purchase_orders'

    STATUS_DRAFT = 'Draft'          # 草稿
    STATUS_ORDERED = 'Ordered'      # 已下单给供应商
    STATUS_RECEIVED = 'Received'    # 已收货（只有已收货的采购单才产生批次库存）
    STATUS_CANCELLED = 'Cancelled'  # 已取消

    label = db.Column(db.String(32), index=True)  # 采购单号
    vendor = db.Column(db.String(128))
    payment_terms = db.Column(db.String(64))
    status = db.Column(db.String(20), default=STATUS_DRAFT, index=True)

    scheduled_delivery = db.Column(db.Date)
    received_date = db.Column(db.DateTime)

    created_by = db.Column(db.Integer, db.ForeignKey('auth_users.id'))

    items = db.relationship('PurchaseOrderItem', backref='order', cascade='all, delete-orphan',
                            order_by='PurchaseOrderItem.id')

    @property
    def is_received(self):
        return self.status == self.STATUS_RECEIVED

    @property
    def reference(self):
        """显示用单号：优先 label，没有时用 ID"""
        return self.label or str(self.id)

    def to_dict(self):
        data = super().to_dict()
        data['items'] = [item.to_dict() for item in self.items]
        return data


class PurchaseOrderItem(SkuLinkMixin, BaseModel):
    """采购订单明细"""
    __tablename__ = 'purchase_order_items'

    order_id = db.Column(db.Integer, db.ForeignKey('purchase_orders.id'), index=True)
    sku_id = db.Column(db.String(64), index=True)
    # 收货时才分配批号，格式 MM/DD/YYYY-.N
    lot_number = db.Column(db.String(64), index=True)

    qty_ordered = db.Column(db.Float, default=0.0)
    qty_received = db.Column(db.Float, default=0.0)
    uom = db.Column(db.String(16))

    cost = db.Column(db.Float)        # 单位成本
    unit_price = db.Column(db.Float)  # 采购单价（部分历史数据只有单价没有成本）
    received_date = db.Column(db.DateTime)

    sku = sku_link('PurchaseOrderItem')

    def unit_cost(self, fallback_to_price=True):
        """单位成本：优先 cost，允许时回退到 unit_price"""
        if self.cost:
            return self.cost
        if fallback_to_price and self.unit_price:
            return self.unit_price
        return self.cost or 0.0

    @property
    def pending_qty(self):
        """待收货数量"""
        return (self.qty_ordered or 0) - (self.qty_received or 0)
