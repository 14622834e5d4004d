from flask_wtf import FlaskForm
from wtforms import FieldList, FloatField, StringField
from wtforms.validators import Length

from lotwise.utils.validators import validate_non_negative


class SkuIdsForm(FlaskForm):
    """批量查询：{"skuIds": [...]}"""
    sku_ids = FieldList(StringField('SKU', validators=[Length(max=64)]), min_entries=0)


class OpeningBalanceForm(FlaskForm):
    """期初余额修正（只开放单价与描述性字段）"""
    cost = FloatField('单位成本', validators=[validate_non_negative])
    uom = StringField('单位', validators=[Length(max=16)])
