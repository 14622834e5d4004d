import pytest

from lotwise.extensions import db as _db
from lotwise.models import OpeningBalance, PurchaseOrder, SaleOrderItem, User


@pytest.fixture
def stock(factory):
    factory.sku('RM', variances=['RM-V'])
    factory.opening('RM', 'L1', qty=100, cost=2.0, on=0)
    factory.audit('RM', 'L2', qty=5, cost=1.0, on=1)
    factory.audit('RM', 'L3', qty=-4, on=2)
    return factory


class TestInventoryRoutes:

    def test_sku_lots_balance_view(self, client, stock):
        resp = client.get('/inventory/skus/RM/lots')
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['success'] is True
        assert [(lot['lot_number'], lot['balance']) for lot in data['lots']] == [('L1', 100), ('L2', 5)]
        assert data['lots'][0]['source'] == 'Opening Balance'
        assert data['lots'][0]['cost'] == 2.0

    def test_sku_lots_include_empty(self, client, stock):
        data = client.get('/inventory/skus/RM/lots?include_empty=1').get_json()
        empty = [lot for lot in data['lots'] if lot['lot_number'] == 'L3'][0]
        assert empty['balance'] == -4
        assert empty['source'] == 'Unknown Source'

    def test_sku_lots_fifo(self, client, stock):
        data = client.get('/inventory/skus/RM/lots?view=fifo').get_json()
        assert [lot['lot_number'] for lot in data['lots']] == ['L1', 'L2']

    def test_sku_lots_bad_view(self, client, stock):
        resp = client.get('/inventory/skus/RM/lots?view=lifo')
        assert resp.status_code == 400
        assert resp.get_json()['success'] is False

    def test_sku_lots_missing_sku(self, client, app):
        resp = client.get('/inventory/skus/NOPE/lots')
        assert resp.status_code == 404
        assert resp.get_json()['code'] == 404

    def test_available_lots_bulk(self, client, stock):
        resp = client.post('/inventory/lots/available', json={'skuIds': ['RM', 'NOPE']})
        assert resp.status_code == 200
        lots = resp.get_json()['lots']
        assert [lot['lot_number'] for lot in lots['RM']] == ['L1', 'L2']
        assert lots['NOPE'] == []

    def test_available_lots_rejects_non_object(self, client, app):
        resp = client.post('/inventory/lots/available', json=['RM'])
        assert resp.status_code == 400

    def test_ledger(self, client, stock):
        data = client.get('/inventory/skus/RM/ledger').get_json()
        assert data['success'] is True
        assert data['totalCount'] == 3
        assert [row['balance'] for row in data['transactions']] == [100, 105, 101]
        assert data['financials'] == {'revenue': 0.0, 'costOfSales': 0.0, 'grossProfit': 0.0}

    def test_ledger_start_date(self, client, stock):
        data = client.get('/inventory/skus/RM/ledger?startDate=2024-01-02').get_json()
        assert [row['type'] for row in data['transactions']] == ['Audit', 'Audit']

    def test_ledger_bad_start_date(self, client, stock):
        resp = client.get('/inventory/skus/RM/ledger?startDate=soon')
        assert resp.status_code == 400
        assert 'startDate' in resp.get_json()['message']

    def test_lot_cost(self, client, stock):
        data = client.get('/inventory/lot-cost?sku=RM&lot=L1').get_json()
        assert data == {'success': True, 'sku': 'RM', 'lot': 'L1', 'cost': 2.0, 'source': 'openingBalance'}

    def test_lot_cost_unresolved(self, client, stock):
        data = client.get('/inventory/lot-cost?sku=RM&lot=NOPE').get_json()
        assert data['cost'] == 0.0
        assert data['source'] is None

    def test_lot_cost_requires_sku(self, client, app):
        assert client.get('/inventory/lot-cost?lot=L1').status_code == 400

    def test_tiers(self, client, factory):
        factory.sale([{'sku_id': 'RM', 'lot_number': 'L1', 'qty_shipped': 1}])
        data = client.post('/inventory/skus/tiers', json={'skuIds': ['RM', 'IDLE']}).get_json()
        assert data['tiers'] == {'RM': 1, 'IDLE': 0}

    def test_update_opening_balance(self, client, stock):
        stock.sale([{'sku_id': 'RM', 'lot_number': 'L1', 'qty_shipped': 1, 'cost': 2.0}])
        ob = OpeningBalance.query.first()

        resp = client.patch(f'/inventory/opening-balances/{ob.id}', json={'cost': 2.75})
        assert resp.status_code == 200
        assert resp.get_json()['opening_balance']['cost'] == 2.75
        assert SaleOrderItem.query.first().cost == 2.75

    def test_update_opening_balance_negative_cost(self, client, stock):
        ob = OpeningBalance.query.first()
        resp = client.patch(f'/inventory/opening-balances/{ob.id}', json={'cost': -1})
        assert resp.status_code == 400
        assert 'cost' in resp.get_json()['errors']

    def test_update_missing_opening_balance(self, client, app):
        assert client.patch('/inventory/opening-balances/999', json={'cost': 1}).status_code == 404


@pytest.fixture
def widget_job(factory):
    factory.sku('WIDGET')
    factory.opening('WIDGET', 'LOT-A', qty=100, cost=2.0)
    return factory.job('FG', qty=10, lot_number='FG-1',
                       lines=[{'sku_id': 'WIDGET', 'lot_number': 'LOT-A', 'recipe_qty': 1, 'sa': 100}],
                       labor=[('1:00:00', 15)])


class TestManufacturingRoutes:

    def test_job_cost(self, client, widget_job):
        data = client.get(f'/manufacturing/{widget_job.id}/cost').get_json()
        assert data['success'] is True
        assert data['total_cost'] == pytest.approx(35.0)
        assert data['per_unit_cost'] == pytest.approx(3.5)
        assert data['line_items'][0]['resolved_cost'] == pytest.approx(2.0)

    def test_job_cost_missing(self, client, app):
        assert client.get('/manufacturing/999/cost').status_code == 404

    def test_sync_costs(self, client, widget_job):
        data = client.post('/manufacturing/sync-costs', json={'skip': 0, 'limit': 50}).get_json()
        assert data['success'] is True
        assert data['processed'] == 1
        assert data['updated'] == 1

    def test_sync_costs_by_order_ids(self, client, widget_job, factory):
        other = factory.job('FG', qty=1)
        data = client.post('/manufacturing/sync-costs', json={'orderIds': [other.id]}).get_json()
        assert data['processed'] == 1
        assert data['calculated'] == 0

    def test_sync_costs_rejects_bad_paging(self, client, app):
        resp = client.post('/manufacturing/sync-costs', json={'skip': -1})
        assert resp.status_code == 400
        assert 'skip' in resp.get_json()['errors']


class TestAuthentication:

    @pytest.fixture
    def secured(self, app):
        app.config['LOGIN_DISABLED'] = False
        admin = User(username='admin', is_admin=True)
        clerk = User(username='clerk')
        admin.issue_token()
        clerk.issue_token()
        _db.session.add_all([admin, clerk])
        _db.session.commit()
        return admin.api_token, clerk.api_token

    def test_anonymous_rejected(self, client, secured):
        resp = client.post('/manufacturing/sync-costs', json={})
        assert resp.status_code == 403

    def test_non_admin_rejected(self, client, secured):
        _, clerk = secured
        resp = client.post('/manufacturing/sync-costs', json={}, headers={'Authorization': f'Bearer {clerk}'})
        assert resp.status_code == 403

    def test_admin_allowed(self, client, secured):
        admin, _ = secured
        resp = client.post('/sales/orders/sync-costs', json={}, headers={'Authorization': f'Bearer {admin}'})
        assert resp.status_code == 200
        assert resp.get_json()['processed'] == 0


class TestPurchaseRoutes:

    def test_receive_order(self, client, factory):
        po = factory.purchase([{'sku_id': 'RM', 'qty_ordered': 4, 'cost': 1.25}],
                              status=PurchaseOrder.STATUS_ORDERED, label='PO-7')
        item_id = po.items[0].id

        resp = client.patch(f'/purchase/orders/{po.id}', json={
            'status': 'Received',
            'receivedDate': '2024-03-15',
            'items': [{'id': item_id, 'qtyReceived': 4}],
        })
        assert resp.status_code == 200
        order = resp.get_json()['order']
        assert order['status'] == 'Received'
        assert order['items'][0]['lot_number'] == '03/15/2024-.1'
        assert order['items'][0]['qty_received'] == 4
        # 请求里没有 cost，原值保留
        assert order['items'][0]['cost'] == 1.25

    def test_bad_received_date(self, client, factory):
        po = factory.purchase([{'sku_id': 'RM', 'qty_ordered': 4}], status=PurchaseOrder.STATUS_ORDERED)
        resp = client.patch(f'/purchase/orders/{po.id}', json={'status': 'Received', 'receivedDate': 'soon'})
        assert resp.status_code == 400
        assert 'received_date' in resp.get_json()['message']
        assert _db.session.get(PurchaseOrder, po.id).status == PurchaseOrder.STATUS_ORDERED

    def test_unknown_status(self, client, factory):
        po = factory.purchase([], status=PurchaseOrder.STATUS_ORDERED)
        assert client.patch(f'/purchase/orders/{po.id}', json={'status': 'Lost'}).status_code == 400

    def test_missing_order(self, client, app):
        assert client.patch('/purchase/orders/999', json={'vendor': 'X'}).status_code == 404


class TestSalesRoutes:

    def test_sync_order_costs(self, client, factory):
        factory.opening('RM', 'L1', cost=2.0)
        factory.sale([{'sku_id': 'RM', 'lot_number': 'L1', 'qty_shipped': 1}])
        data = client.post('/sales/orders/sync-costs', json={}).get_json()
        assert data['matched_items'] == 1
        assert data['updated'] == 1

    def test_assign_web_lot(self, client, stock):
        order = stock.web([{'variance_id': 'RM-V', 'quantity': 2}], status='processing')
        item_id = order.items[0].id

        resp = client.patch(f'/sales/web-orders/{order.id}/items/{item_id}/lot', json={'lotNumber': 'L1'})
        assert resp.status_code == 200
        item = resp.get_json()['item']
        assert item['sku_id'] == 'RM'
        assert item['lot_number'] == 'L1'
        assert item['cost'] == 2.0

    @pytest.mark.parametrize('body', [{}, {'lotNumber': '  '}, {'lotNumber': 'N/A'}])
    def test_assign_web_lot_requires_lot(self, client, stock, body):
        order = stock.web([{'variance_id': 'RM-V', 'quantity': 2}])
        resp = client.patch(f'/sales/web-orders/{order.id}/items/{order.items[0].id}/lot', json=body)
        assert resp.status_code == 400
        assert 'lot_number' in resp.get_json()['errors']

    def test_assign_web_lot_missing_order(self, client, app):
        assert client.patch('/sales/web-orders/1/items/1/lot', json={'lotNumber': 'L1'}).status_code == 404

    def test_unknown_route_is_json(self, client, app):
        resp = client.get('/nowhere')
        assert resp.status_code == 404
        assert resp.get_json()['success'] is False
