from functools import wraps
from flask import current_app
from flask_login import current_user

from lotwise.exceptions import PermissionDenied


def admin_required(f):
    """
    检查用户是否是管理员（批量同步等全量写操作使用）
    LOGIN_DISABLED 时（测试环境）不做检查
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_app.config.get('LOGIN_DISABLED'):
            return f(*args, **kwargs)
        if not current_user.is_authenticated or not current_user.is_admin:
            raise PermissionDenied('Administrator privileges required')
        return f(*args, **kwargs)
    return decorated_function
