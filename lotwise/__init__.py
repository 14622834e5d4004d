import logging
import colorlog
from flask import Flask, jsonify
from config import config
from lotwise.extensions import db, migrate, login_manager
from lotwise.exceptions import LotwiseException

# 导入 commands 模块，用于注册 CLI 命令
from lotwise import commands


def create_app(config_name='default'):
    """LOTWISE 应用工厂函数"""
    app = Flask(__name__)

    # 1. 加载配置
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)

    # 2. 初始化扩展
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    # 3. 配置日志
    configure_logging(app)

    # 4. 注册蓝图 (Blueprints)
    register_blueprints(app)

    # 5. 注册全局错误处理
    register_error_handlers(app)

    # 6. 注册 CLI 命令
    register_commands(app)

    return app


def register_blueprints(app):
    """注册所有业务模块蓝图"""
    # 库存：批次余额 / 台账 / 批次成本 / 分层
    from lotwise.blueprints.inventory import inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/inventory')

    # 生产制造：成本明细与批量同步
    from lotwise.blueprints.manufacturing import manufacturing_bp
    app.register_blueprint(manufacturing_bp, url_prefix='/manufacturing')

    # 采购管理
    from lotwise.blueprints.purchase import purchase_bp
    app.register_blueprint(purchase_bp, url_prefix='/purchase')

    # 销售管理（批发 + 零售）
    from lotwise.blueprints.sales import sales_bp
    app.register_blueprint(sales_bp, url_prefix='/sales')


def register_error_handlers(app):
    @app.errorhandler(LotwiseException)
    def handle_lotwise_exception(e):
        return jsonify(e.to_dict()), e.code

    @app.errorhandler(404)
    def page_not_found(e):
        return jsonify({'success': False, 'code': 404, 'message': 'Resource not found'}), 404

    @app.errorhandler(500)
    def internal_server_error(e):
        db.session.rollback()
        return jsonify({'success': False, 'code': 500, 'message': 'Internal server error'}), 500


def register_commands(app):
    """注册 Flask CLI 命令"""
    app.cli.add_command(commands.status)
    app.cli.add_command(commands.sync_costs)
    app.cli.add_command(commands.sync_sale_costs)
    app.cli.add_command(commands.forge)


def configure_logging(app):
    """配置彩色控制台日志，提升开发体验"""
    if app.debug:
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)

        formatter = colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            },
            secondary_log_colors={},
            style='%'
        )
        handler.setFormatter(formatter)
        app.logger.addHandler(handler)
        app.logger.setLevel(logging.INFO)
