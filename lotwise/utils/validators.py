"""
表单验证器
"""
import re

from flask import request
from wtforms.validators import ValidationError

from lotwise.exceptions import ValidationError as PayloadError


def validate_non_negative(form, field):
    """验证非负数"""
    if field.data is None:
        return
    try:
        value = float(field.data)
    except (TypeError, ValueError):
        raise ValidationError('Not a valid number')
    if value < 0:
        raise ValidationError('Value cannot be negative')


def validate_positive_number(form, field):
    """验证正数（未提供时跳过）"""
    if field.data is not None and field.data <= 0:
        raise ValidationError('Value must be greater than 0')


def validate_lot_number(form, field):
    """批号不能为空白或占位符 N/A"""
    if field.data is not None:
        value = str(field.data).strip()
        if not value or value == 'N/A':
            raise ValidationError('A real lot number is required')


def snake_case(key):
    """skuIds -> sku_ids"""
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def snake_keys(value):
    """递归转换字典键名（列表中的字典也转换）"""
    if isinstance(value, dict):
        return {snake_case(str(key)): snake_keys(item) for key, item in value.items()}
    if isinstance(value, list):
        return [snake_keys(item) for item in value]
    return value


def load_json_form(form_cls):
    """
    用 JSON 请求体填充并校验 FlaskForm
    请求体的 camelCase 键转换为表单字段的 snake_case 名称
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        raise PayloadError('JSON object expected')
    form = form_cls(formdata=None, data=snake_keys(payload))
    if not form.validate():
        raise PayloadError('Invalid payload', payload={'errors': form.errors})
    return form
