"""工时字符串解析"""


def duration_to_hours(duration) -> float:
    """
    把 "HH:MM:SS" 工时字符串转换成小时数（小数）
    缺失的段按 0 处理："1:30" -> 1.5，"2" -> 2.0
    非数字的段按 0 处理，空值或超过三段的格式返回 0
    """
    if not duration:
        return 0.0
    parts = str(duration).strip().split(':')
    if len(parts) > 3:
        return 0.0

    values = []
    for part in parts:
        try:
            values.append(float(part))
        except ValueError:
            values.append(0.0)
    while len(values) < 3:
        values.append(0.0)

    hours, minutes, seconds = values
    return hours + minutes / 60 + seconds / 3600
