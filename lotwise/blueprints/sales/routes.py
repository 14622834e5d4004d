from flask import jsonify
from flask_login import login_required

from lotwise.blueprints.sales import sales_bp
from lotwise.blueprints.sales.forms import SaleSyncForm, LotAssignmentForm
from lotwise.services.cost_sync_service import sync_sale_order_costs_batch
from lotwise.services.sales_service import SalesService
from lotwise.utils.decorators import admin_required
from lotwise.utils.validators import load_json_form


@sales_bp.route('/orders/sync-costs', methods=['POST'])
@login_required
@admin_required
def sync_order_costs():
    """按批次重算批发订单明细的成本快照"""
    form = load_json_form(SaleSyncForm)
    result = sync_sale_order_costs_batch(skip=form.skip.data or 0, limit=form.limit.data)
    data = result.to_dict()
    data['success'] = True
    return jsonify(data)


@sales_bp.route('/web-orders/<int:order_id>/items/<int:item_id>/lot', methods=['PATCH'])
@login_required
def assign_web_order_lot(order_id, item_id):
    """零售明细重新分配批次，同时写入该批次的成本快照"""
    form = load_json_form(LotAssignmentForm)
    item = SalesService.assign_web_order_lot(order_id, item_id, form.lot_number.data)
    return jsonify({'success': True, 'item': item.to_dict()})
