from flask_wtf import FlaskForm
from wtforms import FieldList, IntegerField

from lotwise.utils.validators import validate_non_negative, validate_positive_number


class SyncBatchForm(FlaskForm):
    """批量同步分页参数：{"skip": 0, "limit": 500, "orderIds": [...]}"""
    skip = IntegerField('跳过条数', default=0, validators=[validate_non_negative])
    limit = IntegerField('批大小', validators=[validate_positive_number])
    order_ids = FieldList(IntegerField('制造单ID'), min_entries=0)
