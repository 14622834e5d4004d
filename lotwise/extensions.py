from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager

# 初始化扩展对象 (暂不绑定 app)
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()

# 配置 LoginManager（登录界面由外部系统提供，这里只负责鉴权）
login_manager.session_protection = 'strong'


@login_manager.user_loader
def load_user(user_id):
    """Flask-Login 用户加载回调（会话）"""
    from lotwise.models import User
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(request):
    """Flask-Login 请求加载回调：支持 Authorization: Bearer <token>"""
    from lotwise.models import User
    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return None
    token = header[len('Bearer '):].strip()
    if not token:
        return None
    return User.query.filter_by(api_token=token, is_active_user=True).first()


@login_manager.unauthorized_handler
def unauthorized():
    """未登录时返回 JSON 而不是跳转登录页"""
    from lotwise.exceptions import PermissionDenied
    raise PermissionDenied('Authentication required')
