"""全局设置：数据起始日期"""
from datetime import date, datetime
from typing import Optional

from flask import current_app

from lotwise.models.sys import Setting


def parse_date(value) -> Optional[datetime]:
    """接受 datetime / date / ISO 字符串，无法解析时抛 ValueError"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1]
    parsed = datetime.fromisoformat(text)
    # 统一成 naive UTC，和数据库里的 created_at 比较
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None)
    return parsed


def get_global_start_date() -> Optional[datetime]:
    """
    读取全局 "数据起始日期"：Setting 表优先，其次 FILTER_DATA_FROM 配置
    格式错误时记录警告并视为未设置
    """
    raw = Setting.get_value(Setting.KEY_FILTER_DATA_FROM)
    if raw is None:
        raw = current_app.config.get('FILTER_DATA_FROM')
    try:
        return parse_date(raw)
    except ValueError:
        current_app.logger.warning(f"Ignoring unparsable filterDataFrom value: {raw!r}")
        return None


def resolve_start_date(explicit=None) -> Optional[datetime]:
    """显式起始日期与全局设置合并，取较晚（更严格）的一个"""
    global_start = get_global_start_date()
    if explicit is None:
        return global_start
    explicit = parse_date(explicit)
    if global_start is None or explicit is None:
        return explicit or global_start
    return max(explicit, global_start)


def apply_date_filter(query, column, start_date):
    """给查询加上 column >= start_date 条件（start_date 为空时原样返回）"""
    if start_date is None:
        return query
    return query.filter(column >= start_date)
