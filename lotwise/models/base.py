from datetime import date, datetime
from lotwise.extensions import db


class BaseModel(db.Model):
    """
    LOTWISE 模型基类
    包含：ID主键, 创建时间, 更新时间, 序列化方法
    历史单据不做软删除：成本追溯依赖完整流水
    """
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def save(self):
        """保存到数据库"""
        db.session.add(self)
        db.session.commit()

    def to_dict(self):
        """
        通用序列化方法：将模型转换为字典，便于 API 返回 JSON。
        过滤掉以 '_' 开头的私有属性。
        """
        data = {}
        for c in self.__table__.columns:
            if c.name.startswith('_'):
                continue
            val = getattr(self, c.name)
            if isinstance(val, (datetime, date)):
                data[c.name] = val.isoformat()
            else:
                data[c.name] = val
        return data


def sku_link(model_name):
    """
    SKU 只读关联：交易表里的 sku_id 是普通字符串列（不建外键），
    SKU 被删除后引用仍然保留，显示时回退到原始字符串
    """
    return db.relationship(
        'Sku',
        primaryjoin=f'foreign({model_name}.sku_id) == Sku.id',
        viewonly=True,
    )


class SkuLinkMixin:
    """提供 sku_label：SKU 存在时取名称，否则回退到原始字符串"""

    @property
    def sku_label(self):
        if self.sku is not None:
            return self.sku.name
        return self.sku_id
