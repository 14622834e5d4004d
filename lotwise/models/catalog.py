from lotwise.extensions import db
from .base import BaseModel


class Sku(BaseModel):
    """
    SKU 主表
    主键即业务编码（字符串），历史单据通过字符串引用它，
    删除 SKU 不级联删除任何流水
    """
    __tablename__ = 'catalog_skus'

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(128), nullable=False, index=True)
    image = db.Column(db.String(256))

    category = db.Column(db.String(64), index=True)   # 含 "pack" 的分类计入包材成本
    sub_category = db.Column(db.String(64))
    material_type = db.Column(db.String(64))
    uom = db.Column(db.String(16))

    sale_price = db.Column(db.Float, default=0.0)
    # 补货阈值
    reorder_point = db.Column(db.Float)
    order_upto = db.Column(db.Float)

    kit_applied = db.Column(db.Boolean, default=False)
    is_lot_applied = db.Column(db.Boolean, default=False)

    # 零售渠道的变体 ID（网店订单可能引用变体而不是 SKU 本身）
    variances = db.relationship('SkuVariance', backref='sku', cascade='all, delete-orphan')

    @property
    def variance_ids(self):
        return [v.id for v in self.variances]

    @property
    def is_packaging(self):
        return 'pack' in (self.category or '').lower()

    def to_dict(self):
        data = super().to_dict()
        data['variances'] = [v.to_dict() for v in self.variances]
        return data

    def __repr__(self):
        return f'<Sku {self.id}>'


class SkuVariance(BaseModel):
    """SKU 零售变体"""
    __tablename__ = 'catalog_sku_variances'

    id = db.Column(db.String(64), primary_key=True)
    sku_id = db.Column(db.String(64), db.ForeignKey('catalog_skus.id'), index=True)
    name = db.Column(db.String(128))
    website = db.Column(db.String(64))
    image = db.Column(db.String(256))
