import os
from lotwise import create_app, db
from lotwise.models import (
    User, Sku, SkuVariance, OpeningBalance, AuditAdjustment, Setting,
    PurchaseOrder, PurchaseOrderItem,
    ManufacturingJob, ManufacturingLineItem, LaborEntry,
    SaleOrder, SaleOrderItem, WebOrder, WebOrderItem,
)

# 从环境变量获取配置模式
# 支持 FLASK_ENV 或 FLASK_CONFIG
config_name = os.getenv('FLASK_ENV') or os.getenv('FLASK_CONFIG') or 'default'
if config_name in ('development', 'dev'):
    config_name = 'development'
elif config_name not in ('production', 'testing'):
    config_name = 'default'

app = create_app(config_name)


@app.shell_context_processor
def make_shell_context():
    """
    配置 Flask Shell 上下文。
    'flask shell' 中自动导入 db、模型和常用的成本服务。
    """
    from lotwise.services.lot_cost_service import resolve_lot_cost
    from lotwise.services.ledger_service import build_sku_ledger
    from lotwise.services.lot_balance_service import get_available_lots

    return dict(
        db=db,
        app=app,
        User=User,
        Sku=Sku,
        SkuVariance=SkuVariance,
        OpeningBalance=OpeningBalance,
        AuditAdjustment=AuditAdjustment,
        Setting=Setting,
        PurchaseOrder=PurchaseOrder,
        PurchaseOrderItem=PurchaseOrderItem,
        ManufacturingJob=ManufacturingJob,
        ManufacturingLineItem=ManufacturingLineItem,
        LaborEntry=LaborEntry,
        SaleOrder=SaleOrder,
        SaleOrderItem=SaleOrderItem,
        WebOrder=WebOrder,
        WebOrderItem=WebOrderItem,
        resolve_lot_cost=resolve_lot_cost,
        build_sku_ledger=build_sku_ledger,
        get_available_lots=get_available_lots,
    )


if __name__ == '__main__':
    print("-------------------------------------------------------")
    print("   LOTWISE COSTING ENGINE                              ")
    print("   Target: Localhost:5000                              ")
    print("-------------------------------------------------------")
    app.run(host='0.0.0.0', port=5000)
