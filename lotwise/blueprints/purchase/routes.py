"""采购管理路由"""
from flask import jsonify, request
from flask_login import login_required

from lotwise.blueprints.purchase import purchase_bp
from lotwise.blueprints.purchase.forms import PurchaseOrderForm
from lotwise.exceptions import ValidationError
from lotwise.models import PurchaseOrder
from lotwise.services.purchase_service import PurchaseService
from lotwise.utils.validators import load_json_form, snake_keys

STATUS_VALUES = (
    PurchaseOrder.STATUS_DRAFT, PurchaseOrder.STATUS_ORDERED,
    PurchaseOrder.STATUS_RECEIVED, PurchaseOrder.STATUS_CANCELLED,
)


@purchase_bp.route('/orders/<int:po_id>', methods=['PATCH'])
@login_required
def update_order(po_id):
    """
    更新采购单
    状态变为 Received 时自动分配批号，并把明细成本传播到批发订单
    """
    form = load_json_form(PurchaseOrderForm)
    if form.status.data is not None and form.status.data not in STATUS_VALUES:
        raise ValidationError(f"Unknown status '{form.status.data}'")

    # 只传请求体里实际出现的明细字段，避免把未提交的字段清空
    payload = snake_keys(request.get_json(silent=True) or {})
    raw_items = payload.get('items') or []
    items = []
    for raw, entry in zip(raw_items, form.items.entries):
        item = {'id': entry.form.id.data}
        for field in ('lot_number', 'qty_ordered', 'qty_received', 'cost', 'unit_price'):
            if field in raw:
                item[field] = getattr(entry.form, field).data
        items.append(item)

    po = PurchaseService.update_order(po_id, {
        'label': form.label.data,
        'vendor': form.vendor.data,
        'status': form.status.data,
        'received_date': form.received_date.data,
        'items': items,
    })
    return jsonify({'success': True, 'order': po.to_dict()})
