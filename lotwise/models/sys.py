from lotwise.extensions import db
from .base import BaseModel


class Setting(BaseModel):
    """全局设置（键值对）"""
    __tablename__ = 'sys_settings'

    KEY_FILTER_DATA_FROM = 'filterDataFrom'  # 全局数据起始日期

    key = db.Column(db.String(64), unique=True, index=True, nullable=False)
    value = db.Column(db.JSON)

    @classmethod
    def get_value(cls, key, default=None):
        setting = cls.query.filter_by(key=key).first()
        if setting is None or setting.value in (None, ''):
            return default
        return setting.value

    @classmethod
    def set_value(cls, key, value):
        setting = cls.query.filter_by(key=key).first()
        if setting is None:
            setting = cls(key=key)
            db.session.add(setting)
        setting.value = value
        db.session.commit()
        return setting
