from flask_wtf import FlaskForm
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Length

from lotwise.utils.validators import validate_lot_number, validate_non_negative, validate_positive_number


class SaleSyncForm(FlaskForm):
    """批发订单成本同步分页参数"""
    skip = IntegerField('跳过条数', default=0, validators=[validate_non_negative])
    limit = IntegerField('批大小', validators=[validate_positive_number])


class LotAssignmentForm(FlaskForm):
    """零售明细批次分配"""
    lot_number = StringField('批号', validators=[DataRequired(), Length(max=64), validate_lot_number])
