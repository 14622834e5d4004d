class LotwiseException(Exception):
    """LOTWISE 系统基础异常类"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['success'] = False
        return rv


class ValidationError(LotwiseException):
    """请求数据校验错误"""
    def __init__(self, message="Invalid data", payload=None):
        super().__init__(message, code=400, payload=payload)


class PermissionDenied(LotwiseException):
    """权限不足"""
    def __init__(self, message="Access denied", payload=None):
        super().__init__(message, code=403, payload=payload)


class NotFound(LotwiseException):
    """实体不存在（SKU / 制造单 / 订单）。注意：缺少成本记录不是错误，按 0 处理"""
    def __init__(self, message="Not found", payload=None):
        super().__init__(message, code=404, payload=payload)


class BulkWriteError(LotwiseException):
    """批量回写失败，整批回滚后以单个聚合错误抛给调用方"""
    def __init__(self, message="Bulk write failed", payload=None):
        super().__init__(message, code=500, payload=payload)
