from flask import Blueprint

# 注意：url_prefix 在 lotwise/__init__.py 注册时设置，这里不重复设置
manufacturing_bp = Blueprint('manufacturing', __name__)

from . import routes
