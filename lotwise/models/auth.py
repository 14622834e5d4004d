import secrets
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from lotwise.extensions import db
from .base import BaseModel


class User(UserMixin, BaseModel):
    """
    API 用户
    登录流程由外部认证系统负责，这里只保留鉴权所需字段
    """
    __tablename__ = 'auth_users'
    email = db.Column(db.String(128), unique=True, index=True)
    username = db.Column(db.String(64), index=True)
    password_hash = db.Column(db.String(256))
    api_token = db.Column(db.String(64), unique=True, index=True)

    is_active_user = db.Column(db.Boolean, default=True)  # 封号开关
    is_admin = db.Column(db.Boolean, default=False)

    @property
    def password(self):
        raise AttributeError('密码不可读')

    @password.setter
    def password(self, password):
        self.password_hash = generate_password_hash(password)

    def verify_password(self, password):
        return check_password_hash(self.password_hash, password)

    def issue_token(self):
        """生成新的 API Token"""
        self.api_token = secrets.token_hex(24)
        return self.api_token

    # Flask-Login 必须属性覆盖
    @property
    def is_active(self):
        return bool(self.is_active_user)

    def __repr__(self):
        return f'<User {self.username}>'
