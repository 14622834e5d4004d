from lotwise.extensions import db
from .base import BaseModel, SkuLinkMixin, sku_link


class SaleOrder(BaseModel):
    """批发订单头"""
    __tablename__ = 'trade_sale_orders'

    STATUS_PENDING = 'Pending'
    STATUS_SHIPPED = 'Shipped'
    STATUS_CANCELLED = 'Cancelled'

    label = db.Column(db.String(32), index=True)  # 订单号
    client_name = db.Column(db.String(128))
    sales_rep = db.Column(db.String(64))
    order_status = db.Column(db.String(20), default=STATUS_PENDING, index=True)
    shipped_date = db.Column(db.DateTime)

    discount = db.Column(db.Float, default=0.0)
    shipping_cost = db.Column(db.Float, default=0.0)
    tax = db.Column(db.Float, default=0.0)

    items = db.relationship('SaleOrderItem', backref='order', cascade='all, delete-orphan',
                            order_by='SaleOrderItem.id')

    def to_dict(self):
        data = super().to_dict()
        data['items'] = [item.to_dict() for item in self.items]
        return data


class SaleOrderItem(SkuLinkMixin, BaseModel):
    """
    批发订单明细
    cost 为成本快照：解析时写入一次，读取时不重算，上游成本变化时靠传播/同步刷新
    """
    __tablename__ = 'trade_sale_order_items'

    order_id = db.Column(db.Integer, db.ForeignKey('trade_sale_orders.id'), index=True)
    sku_id = db.Column(db.String(64), index=True)
    lot_number = db.Column(db.String(64), index=True)
    qty_shipped = db.Column(db.Float, default=0.0)
    uom = db.Column(db.String(16))

    price = db.Column(db.Float, default=0.0)  # 销售单价
    total = db.Column(db.Float, default=0.0)
    cost = db.Column(db.Float)                # 成本快照

    sku = sku_link('SaleOrderItem')


class WebOrder(BaseModel):
    """零售 (网店) 订单"""
    __tablename__ = 'trade_web_orders'

    # 这些状态下库存已被占用，计入台账与批次余额
    STOCK_STATUSES = ('completed', 'shipped', 'processing', 'pending', 'on-hold', 'on hold')
    # 这些状态才算真正售出，用于 SKU 分层
    FULFILLED_STATUSES = ('shipped', 'delivered', 'completed')

    number = db.Column(db.String(32), index=True)
    website = db.Column(db.String(64))
    status = db.Column(db.String(20), index=True)
    currency = db.Column(db.String(8))
    total = db.Column(db.Float, default=0.0)
    date_created = db.Column(db.DateTime)

    items = db.relationship('WebOrderItem', backref='order', cascade='all, delete-orphan',
                            order_by='WebOrderItem.id')

    @property
    def holds_stock(self):
        return (self.status or '').lower() in self.STOCK_STATUSES

    @property
    def is_fulfilled(self):
        return (self.status or '').lower() in self.FULFILLED_STATUSES

    @property
    def reference(self):
        return self.number or str(self.id)

    def to_dict(self):
        data = super().to_dict()
        data['items'] = [item.to_dict() for item in self.items]
        return data


class WebOrderItem(SkuLinkMixin, BaseModel):
    """零售订单明细：可能只引用变体 ID (variance_id)，需要映射回 SKU"""
    __tablename__ = 'trade_web_order_items'

    order_id = db.Column(db.Integer, db.ForeignKey('trade_web_orders.id'), index=True)
    sku_id = db.Column(db.String(64), index=True)        # 已确认关联的 SKU
    variance_id = db.Column(db.String(64), index=True)   # 零售变体 ID
    name = db.Column(db.String(128))
    lot_number = db.Column(db.String(64))
    quantity = db.Column(db.Float, default=0.0)
    price = db.Column(db.Float, default=0.0)
    total = db.Column(db.Float, default=0.0)
    cost = db.Column(db.Float)  # 成本快照

    sku = sku_link('WebOrderItem')

    @property
    def unit_sale_price(self):
        if self.total and self.quantity:
            return self.total / self.quantity
        return 0.0
