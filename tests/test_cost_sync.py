import pytest
from sqlalchemy.exc import SQLAlchemyError

from lotwise.exceptions import BulkWriteError
from lotwise.extensions import db as _db
from lotwise.models import ManufacturingJob, ManufacturingLineItem, OpeningBalance, SaleOrderItem
from lotwise.services import cost_sync_service
from lotwise.services.cost_sync_service import propagate_cost_change, sync_manufacturing_costs_batch
from lotwise.services.inventory_service import InventoryService
from lotwise.services.manufacturing_service import ManufacturingService


@pytest.fixture
def widget_job(factory):
    factory.sku('WIDGET')
    factory.sku('FG', category='Finished Good')
    factory.opening('WIDGET', 'LOT-A', qty=100, cost=2.0)
    return factory.job('FG', qty=10, lot_number='FG-1',
                       lines=[{'sku_id': 'WIDGET', 'lot_number': 'LOT-A', 'recipe_qty': 1, 'sa': 100}],
                       labor=[('1:00:00', 15)])


def _failing_update(*args, **kwargs):
    raise SQLAlchemyError('database is locked')


class TestComputeJobCost:

    def test_widget_breakdown(self, widget_job):
        breakdown = ManufacturingService.compute_job_cost(widget_job.id)
        assert breakdown.material_cost == pytest.approx(20.0)
        assert breakdown.packaging_cost == 0.0
        assert breakdown.labor_cost == pytest.approx(15.0)
        assert breakdown.total_cost == pytest.approx(35.0)
        assert breakdown.per_unit_cost == pytest.approx(3.5)

    def test_cost_detail(self, widget_job):
        detail = ManufacturingService.get_job_cost_detail(widget_job.id)
        assert detail['total_cost'] == pytest.approx(35.0)
        line = detail['line_items'][0]
        assert line['resolved_cost'] == pytest.approx(2.0)
        assert line['total_qty'] == pytest.approx(10.0)
        assert line['category'] == 'material'
        assert line['sku_label'] == 'WIDGET name'
        assert detail['tiers'] == {'WIDGET': 3, 'FG': 0}

    def test_detail_follows_source_correction_after_sync(self, widget_job):
        sync_manufacturing_costs_batch()
        ob = OpeningBalance.query.filter_by(sku_id='WIDGET', lot_number='LOT-A').one()
        InventoryService.update_opening_balance(ob.id, {'cost': 4.0})

        detail = ManufacturingService.get_job_cost_detail(widget_job.id)
        assert detail['line_items'][0]['resolved_cost'] == pytest.approx(4.0)
        assert detail['material_cost'] == pytest.approx(40.0)

    def test_manual_override_wins_in_detail_and_sync(self, widget_job):
        line = widget_job.line_items[0]
        line.cost_override = 5.0
        _db.session.commit()

        assert ManufacturingService.compute_job_cost(widget_job.id).material_cost == pytest.approx(50.0)
        sync_manufacturing_costs_batch()
        assert _db.session.get(ManufacturingLineItem, line.id).cost == pytest.approx(5.0)
        assert _db.session.get(ManufacturingJob, widget_job.id).material_cost == pytest.approx(50.0)


class TestManufacturingSync:

    def test_writes_changed_jobs_once(self, widget_job):
        result = sync_manufacturing_costs_batch()
        assert result.processed == 1
        assert result.calculated == 1
        assert result.ops == 1
        assert result.updated == 1
        assert result.line_items_updated == 1
        assert result.cost_map_size == 1
        assert result.sources == {
            'openingBalance': 1,
            'purchaseOrder': 0,
            'auditAdjustment': 0,
            'unresolved': 0,
        }

        job = _db.session.get(ManufacturingJob, widget_job.id)
        assert job.material_cost == pytest.approx(20.0)
        assert job.labor_cost == pytest.approx(15.0)
        assert job.total_cost == pytest.approx(35.0)
        assert job.line_items[0].cost == pytest.approx(2.0)

        again = sync_manufacturing_costs_batch()
        assert again.processed == 1
        assert again.ops == 0
        assert again.updated == 0

    def test_stale_line_cost_is_recomputed(self, widget_job):
        line = widget_job.line_items[0]
        line.cost = 9.0
        _db.session.commit()

        sync_manufacturing_costs_batch()
        assert _db.session.get(ManufacturingLineItem, line.id).cost == pytest.approx(2.0)

    def test_packaging_lines(self, factory):
        factory.sku('JAR', category='Glass Packaging')
        factory.opening('JAR', 'J1', cost=0.5)
        job = factory.job('FG', qty=10, lines=[{'sku_id': 'JAR', 'lot_number': 'J1', 'recipe_qty': 1}])

        sync_manufacturing_costs_batch()
        job = _db.session.get(ManufacturingJob, job.id)
        assert job.packaging_cost == pytest.approx(5.0)
        assert job.material_cost == 0.0
        assert job.total_cost == pytest.approx(5.0)

    def test_intermediate_lot_not_resolved_in_sync(self, factory):
        factory.opening('RM', 'L1', cost=1.0)
        factory.job('INT', qty=10, lot_number='I1', lines=[{'sku_id': 'RM', 'lot_number': 'L1', 'recipe_qty': 2}])
        fg = factory.job('FG', qty=5, lot_number='F1', lines=[{'sku_id': 'INT', 'lot_number': 'I1', 'recipe_qty': 1}])

        result = sync_manufacturing_costs_batch(order_ids=[fg.id])
        assert result.processed == 1
        assert result.calculated == 0
        assert result.sources['unresolved'] == 1
        assert 'manufacturing' not in result.sources

        # 单张查看时走完整来源链，中间品按制造成本解析
        assert ManufacturingService.compute_job_cost(fg.id).material_cost == pytest.approx(10.0)

    def test_paging(self, factory):
        for _ in range(3):
            factory.job('FG', qty=1, labor=[('1:00:00', 10)])
        assert sync_manufacturing_costs_batch(skip=0, limit=2).processed == 2
        assert sync_manufacturing_costs_batch(skip=2, limit=2).processed == 1
        assert sync_manufacturing_costs_batch(skip=3, limit=2).processed == 0

    def test_write_failure_raises_aggregate_error(self, widget_job, monkeypatch):
        monkeypatch.setattr(cost_sync_service, '_bulk_write', _failing_update)
        with pytest.raises(BulkWriteError) as excinfo:
            sync_manufacturing_costs_batch()
        assert excinfo.value.payload == {'requested': 1, 'updated': 0}
        assert _db.session.get(ManufacturingJob, widget_job.id).total_cost == 0.0


@pytest.fixture
def sold_lots(factory):
    factory.sale([
        {'sku_id': 'RM', 'lot_number': 'L1', 'qty_shipped': 5, 'cost': 1.0},
        {'sku_id': 'RM', 'lot_number': 'L2', 'qty_shipped': 5, 'cost': 1.0},
        {'sku_id': 'OTHER', 'lot_number': 'L1', 'qty_shipped': 5, 'cost': 1.0},
    ])
    return factory


def _sale_costs():
    return {(item.sku_id, item.lot_number): item.cost for item in SaleOrderItem.query.all()}


class TestPropagateCostChange:

    def test_updates_matching_lines_only(self, sold_lots):
        propagate_cost_change({'_id': 'RM'}, ' L1 ', 3.0)
        assert _sale_costs() == {('RM', 'L1'): 3.0, ('RM', 'L2'): 1.0, ('OTHER', 'L1'): 1.0}

    def test_placeholder_lot_is_ignored(self, sold_lots):
        propagate_cost_change('RM', 'N/A', 3.0)
        assert set(_sale_costs().values()) == {1.0}

    def test_failure_is_swallowed(self, sold_lots, monkeypatch):
        monkeypatch.setattr(cost_sync_service, 'update', _failing_update)
        propagate_cost_change('RM', 'L1', 3.0)
        assert _sale_costs()[('RM', 'L1')] == 1.0

    def test_triggering_write_survives_failed_propagation(self, sold_lots, monkeypatch):
        ob = sold_lots.opening('RM', 'L1', qty=10, cost=1.0)
        monkeypatch.setattr(cost_sync_service, 'update', _failing_update)

        InventoryService.update_opening_balance(ob.id, {'cost': 4.0})
        assert _db.session.get(OpeningBalance, ob.id).cost == 4.0
        assert _sale_costs()[('RM', 'L1')] == 1.0

    def test_opening_balance_change_propagates(self, sold_lots):
        ob = sold_lots.opening('RM', 'L1', qty=10, cost=1.0)
        InventoryService.update_opening_balance(ob.id, {'cost': 4.0})
        assert _sale_costs()[('RM', 'L1')] == 4.0
