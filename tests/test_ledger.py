import pytest

from lotwise.exceptions import NotFound
from lotwise.services.ledger_service import (
    build_sku_ledger, running_balance, Transaction,
    TYPE_OPENING, TYPE_PURCHASE, TYPE_PRODUCED, TYPE_CONSUMPTION, TYPE_ORDERS, TYPE_AUDIT, TYPE_WEB_ORDER,
)
from tests.conftest import day


@pytest.fixture
def history(factory):
    factory.sku('RM', variances=['RM-V'])
    factory.sku('FG', category='Finished Good')

    factory.opening('RM', 'L1', qty=100, cost=2.0, on=0)
    factory.purchase([{'sku_id': 'RM', 'lot_number': 'L2', 'qty_received': 50, 'cost': 1.5}], label='PO-9', on=2)
    factory.job('FG', qty=10, lot_number='FG-1', label='MO-1', on=3,
                lines=[{'sku_id': 'RM', 'lot_number': 'L1', 'recipe_qty': 3, 'qty_extra': 1}])
    factory.sale([{'sku_id': 'RM', 'lot_number': 'L2', 'qty_shipped': 10, 'price': 5.0}], label='SO-1', on=4)
    factory.audit('RM', 'L1', qty=-2, on=5, reason='Spillage')
    factory.web([{'variance_id': 'RM-V', 'lot_number': 'L2', 'quantity': 3, 'total': 30.0, 'cost': 2.0}],
                status='completed', on=6, number='W-100')
    return factory


class TestBuildSkuLedger:

    def test_rows_and_running_balance(self, history):
        ledger = build_sku_ledger('RM')
        rows = [(t.type, t.quantity, t.balance) for t in ledger.transactions]
        assert rows == [
            (TYPE_OPENING, 100, 100),
            (TYPE_PURCHASE, 50, 150),
            (TYPE_CONSUMPTION, -4, 146),
            (TYPE_ORDERS, -10, 136),
            (TYPE_AUDIT, -2, 134),
            (TYPE_WEB_ORDER, -3, 131),
        ]
        assert ledger.final_balance == 131

    def test_row_costs(self, history):
        costs = {t.type: t.cost for t in build_sku_ledger('RM').transactions}
        assert costs[TYPE_OPENING] == pytest.approx(2.0)
        assert costs[TYPE_PURCHASE] == pytest.approx(1.5)
        assert costs[TYPE_CONSUMPTION] == pytest.approx(2.0)
        # 批发明细没有快照时按批号解析
        assert costs[TYPE_ORDERS] == pytest.approx(1.5)
        # 零售明细的快照优先
        assert costs[TYPE_WEB_ORDER] == pytest.approx(2.0)

    def test_financials(self, history):
        financials = build_sku_ledger('RM').financials
        assert financials['revenue'] == pytest.approx(80.0)
        assert financials['costOfSales'] == pytest.approx(21.0)
        assert financials['grossProfit'] == pytest.approx(59.0)

    def test_references(self, history):
        rows = {t.type: t for t in build_sku_ledger('RM').transactions}
        assert rows[TYPE_PURCHASE].reference == 'PO #PO-9'
        assert rows[TYPE_CONSUMPTION].reference == 'MO-1'
        assert rows[TYPE_ORDERS].reference == 'SO-1'
        assert rows[TYPE_AUDIT].reference == 'Spillage'
        assert rows[TYPE_WEB_ORDER].reference == 'Web #W-100'
        assert rows[TYPE_WEB_ORDER].sale_price == pytest.approx(10.0)

    def test_to_dict(self, history):
        data = build_sku_ledger({'_id': 'RM'}).to_dict()
        assert data['sku']['id'] == 'RM'
        assert data['totalCount'] == 6
        web = data['transactions'][-1]
        assert web['lotNumber'] == 'L2'
        assert web['salePrice'] == pytest.approx(10.0)
        assert web['varianceId'] == 'RM-V'
        assert 'salePrice' not in data['transactions'][0]

    def test_produced_row_uses_job_cost(self, factory):
        factory.sku('WIDGET')
        factory.sku('FG', category='Finished Good')
        factory.opening('WIDGET', 'LOT-A', qty=100, cost=2.0)
        factory.job('FG', qty=10, lot_number='FG-1', on=1,
                    lines=[{'sku_id': 'WIDGET', 'lot_number': 'LOT-A', 'recipe_qty': 1, 'sa': 100}],
                    labor=[('1:00:00', 15)])

        ledger = build_sku_ledger('FG')
        assert len(ledger.transactions) == 1
        produced = ledger.transactions[0]
        assert produced.type == TYPE_PRODUCED
        assert produced.lot_number == 'FG-1'
        assert produced.quantity == 10
        assert produced.cost == pytest.approx(3.5)

    def test_start_date(self, history):
        ledger = build_sku_ledger('RM', start_date='2024-01-05')
        rows = [(t.type, t.balance) for t in ledger.transactions]
        assert rows == [(TYPE_ORDERS, -10), (TYPE_AUDIT, -12), (TYPE_WEB_ORDER, -15)]

    def test_global_start_date_is_stricter(self, history, app):
        app.config['FILTER_DATA_FROM'] = '2024-01-06'
        ledger = build_sku_ledger('RM', start_date='2024-01-01')
        assert [t.type for t in ledger.transactions] == [TYPE_AUDIT, TYPE_WEB_ORDER]

    def test_pending_purchase_and_cancelled_web_excluded(self, factory):
        factory.sku('RM')
        factory.purchase([{'sku_id': 'RM', 'lot_number': 'L1', 'qty_received': 5}], status='Ordered')
        factory.web([{'sku_id': 'RM', 'lot_number': 'L1', 'quantity': 1}], status='cancelled')
        assert build_sku_ledger('RM').transactions == []

    def test_missing_sku(self, app):
        with pytest.raises(NotFound):
            build_sku_ledger('NOPE')


class TestLedgerOrdering:

    @pytest.mark.parametrize('reverse', [False, True])
    def test_same_day_order_independent_of_insertion(self, factory, reverse):
        factory.sku('RM')
        steps = [
            lambda: factory.opening('RM', 'L1', qty=10),
            lambda: factory.audit('RM', 'L1', qty=-2),
            lambda: factory.sale([{'sku_id': 'RM', 'lot_number': 'L1', 'qty_shipped': 3}]),
        ]
        for step in (reversed(steps) if reverse else steps):
            step()

        rows = [(t.type, t.balance) for t in build_sku_ledger('RM').transactions]
        assert rows == [(TYPE_OPENING, 10), (TYPE_AUDIT, 8), (TYPE_ORDERS, 5)]

    def test_running_balance_sorts_before_accumulating(self):
        rows = [
            Transaction(date=day(2), type=TYPE_ORDERS, reference='SO', lot_number='L1', quantity=-5,
                        uom='kg', cost=1.0, doc_id=2, link='/sales/orders/2'),
            Transaction(date=day(1), type=TYPE_OPENING, reference='Opening Balance', lot_number='L1',
                        quantity=20, uom='kg', cost=1.0, doc_id=1, link='/inventory/opening-balances/1'),
        ]
        ordered = running_balance(rows)
        assert [t.balance for t in ordered] == [20, 15]
