import os
from dotenv import load_dotenv

# 加载 .env 环境变量
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    """基础配置类"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'

    # 数据库配置
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_RECORD_QUERIES = True

    # JSON API 不走表单 CSRF 校验
    WTF_CSRF_ENABLED = False

    # ===== 成本核算参数 =====
    # 制造单总成本变动阈值（小于该值视为未变化，不写库）
    COST_TOLERANCE = 0.01
    # 明细行单位成本变动阈值
    LINE_COST_TOLERANCE = 0.0001
    # 批发订单成本快照变动阈值
    SALE_COST_TOLERANCE = 0.001

    # 批量同步分页
    SYNC_BATCH_LIMIT = int(os.environ.get('SYNC_BATCH_LIMIT', 500))
    SYNC_BATCH_MAX = 2000

    # 采购明细没有 cost 时是否回退到 unit_price
    PO_COST_FALLBACK_TO_PRICE = os.environ.get('PO_COST_FALLBACK_TO_PRICE', 'true').lower() in ('1', 'true', 'yes')

    # 制造批次成本递归深度上限（超出或成环按 0 处理）
    MANUFACTURING_COST_MAX_DEPTH = 5

    # 全局 "数据起始日期" 的兜底值（Setting 表优先）
    FILTER_DATA_FROM = os.environ.get('FILTER_DATA_FROM')

    @staticmethod
    def init_app(app):
        # 确保 instance 目录存在（SQLite 文件放在这里）
        instance_dir = os.path.join(basedir, 'instance')
        if not os.path.exists(instance_dir):
            os.makedirs(instance_dir)


class DevelopmentConfig(Config):
    """开发环境配置"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'lotwise.db')


class ProductionConfig(Config):
    """生产环境配置"""
    DEBUG = False

    DATABASE_URL = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'lotwise_prod.db')
    # PostgreSQL URL 修正（部分平台使用 postgres://）
    if DATABASE_URL and DATABASE_URL.startswith('postgres://'):
        DATABASE_URL = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

    SQLALCHEMY_DATABASE_URI = DATABASE_URL

    # 安全设置
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    LOGIN_DISABLED = True

    @staticmethod
    def init_app(app):
        pass


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
