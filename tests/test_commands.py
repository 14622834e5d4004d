from sqlalchemy.exc import SQLAlchemyError

from lotwise.models import ManufacturingJob, PurchaseOrderItem, Sku, User
from lotwise.services import cost_sync_service


def _failing_write(*args, **kwargs):
    raise SQLAlchemyError('disk I/O error')


class TestCommands:

    def test_status_on_empty_database(self, app):
        result = app.test_cli_runner().invoke(args=['status'])
        assert result.exit_code == 0
        assert 'SKU: \t0' in result.output

    def test_sync_costs(self, app, factory):
        factory.opening('RM', 'L1', cost=2.0)
        factory.job('FG', qty=10, lines=[{'sku_id': 'RM', 'lot_number': 'L1', 'recipe_qty': 1}])

        result = app.test_cli_runner().invoke(args=['sync-costs', '--batch-size', '10'])
        assert result.exit_code == 0
        assert '处理 1，回写 1' in result.output
        assert 'openingBalance: 1' in result.output
        assert ManufacturingJob.query.first().total_cost == 20.0

    def test_sync_costs_write_failure_exits_non_zero(self, app, factory, monkeypatch):
        factory.opening('RM', 'L1', cost=2.0)
        factory.job('FG', qty=10, lines=[{'sku_id': 'RM', 'lot_number': 'L1', 'recipe_qty': 1}])
        monkeypatch.setattr(cost_sync_service, '_bulk_write', _failing_write)

        result = app.test_cli_runner().invoke(args=['sync-costs'])
        assert result.exit_code == 1

    def test_sync_sale_costs(self, app, factory):
        factory.opening('RM', 'L1', cost=2.0)
        factory.sale([{'sku_id': 'RM', 'lot_number': 'L1', 'qty_shipped': 1}])

        result = app.test_cli_runner().invoke(args=['sync-sale-costs'])
        assert result.exit_code == 0
        assert '处理 1 张订单，更新 1 条明细' in result.output

    def test_forge(self, app):
        result = app.test_cli_runner().invoke(args=['forge'])
        assert result.exit_code == 0, result.output

        assert Sku.query.count() == 17
        assert ManufacturingJob.query.count() == 10
        assert User.query.filter_by(is_admin=True).count() == 1
        # 采购单走收货流程，全部明细都分配了批号
        assert all(item.lot_number for item in PurchaseOrderItem.query.all())
