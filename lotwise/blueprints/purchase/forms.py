"""采购管理表单"""
from flask_wtf import FlaskForm
from wtforms import FieldList, FloatField, FormField, IntegerField, SelectField, StringField
from wtforms.validators import DataRequired, Length

from lotwise.models import PurchaseOrder
from lotwise.utils.validators import validate_non_negative


class PurchaseItemForm(FlaskForm):
    """采购明细表单"""
    class Meta:
        csrf = False

    id = IntegerField('明细ID', validators=[DataRequired()])
    lot_number = StringField('批号', validators=[Length(max=64)])
    qty_ordered = FloatField('订购数量', validators=[validate_non_negative])
    qty_received = FloatField('收货数量', validators=[validate_non_negative])
    cost = FloatField('单位成本', validators=[validate_non_negative])
    unit_price = FloatField('单价', validators=[validate_non_negative])


class PurchaseOrderForm(FlaskForm):
    """采购订单更新表单"""
    label = StringField('采购单号', validators=[Length(max=32)])
    vendor = StringField('供应商', validators=[Length(max=128)])
    status = SelectField('状态', choices=[
        (PurchaseOrder.STATUS_DRAFT, '草稿'),
        (PurchaseOrder.STATUS_ORDERED, '已下单'),
        (PurchaseOrder.STATUS_RECEIVED, '已收货'),
        (PurchaseOrder.STATUS_CANCELLED, '已取消'),
    ], validate_choice=False)
    received_date = StringField('收货日期')
    items = FieldList(FormField(PurchaseItemForm), min_entries=0)
