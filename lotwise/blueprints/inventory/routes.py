from flask import request, jsonify
from flask_login import login_required

from lotwise.blueprints.inventory import inventory_bp
from lotwise.blueprints.inventory.forms import SkuIdsForm, OpeningBalanceForm
from lotwise.exceptions import ValidationError
from lotwise.services.inventory_service import InventoryService
from lotwise.services.ledger_service import build_sku_ledger
from lotwise.services.lot_balance_service import (
    get_lot_balances, get_available_lots_for_skus, VIEW_BALANCE, VIEW_FIFO,
)
from lotwise.services.lot_cost_service import resolve_lot_cost_with_source
from lotwise.services.settings_service import parse_date
from lotwise.services.tier_service import get_sku_tiers
from lotwise.utils.validators import load_json_form


@inventory_bp.route('/skus/<sku_id>/lots')
@login_required
def sku_lots(sku_id):
    """
    SKU 批次余额
    view=fifo    出库建议：正余额批次，按首次入库日期升序，制造产出只算已完工的制造单
    view=balance 展示：按余额降序，include_empty=1 时保留零/负余额批次
    """
    view = request.args.get('view', VIEW_BALANCE)
    if view not in (VIEW_BALANCE, VIEW_FIFO):
        raise ValidationError(f"Unknown view '{view}'")
    include_empty = request.args.get('include_empty', '0') in ('1', 'true', 'yes')

    lots = get_lot_balances(sku_id, view=view, include_empty=include_empty)
    return jsonify({'success': True, 'sku_id': sku_id, 'lots': [lot.to_dict() for lot in lots]})


@inventory_bp.route('/lots/available', methods=['POST'])
@login_required
def available_lots():
    """批量获取可用批次 (FIFO)"""
    form = load_json_form(SkuIdsForm)
    result = get_available_lots_for_skus(form.sku_ids.data)
    return jsonify({
        'success': True,
        'lots': {sku_id: [lot.to_dict() for lot in lots] for sku_id, lots in result.items()},
    })


@inventory_bp.route('/skus/<sku_id>/ledger')
@login_required
def sku_ledger(sku_id):
    """SKU 台账：合并全部来源流水，带成本与滚动余额"""
    raw = request.args.get('startDate')
    try:
        start_date = parse_date(raw)
    except ValueError:
        raise ValidationError(f"Invalid startDate '{raw}'")

    ledger = build_sku_ledger(sku_id, start_date=start_date)
    data = ledger.to_dict()
    data['success'] = True
    return jsonify(data)


@inventory_bp.route('/lot-cost')
@login_required
def lot_cost():
    """单个批次的单位成本及其来源"""
    sku_id = request.args.get('sku', '')
    lot_number = request.args.get('lot', '')
    if not sku_id.strip():
        raise ValidationError('sku is required')

    cost, source = resolve_lot_cost_with_source(sku_id, lot_number)
    return jsonify({'success': True, 'sku': sku_id, 'lot': lot_number, 'cost': cost, 'source': source})


@inventory_bp.route('/skus/tiers', methods=['POST'])
@login_required
def sku_tiers():
    """SKU 分层 (0-3)"""
    form = load_json_form(SkuIdsForm)
    return jsonify({'success': True, 'tiers': get_sku_tiers(form.sku_ids.data)})


@inventory_bp.route('/opening-balances/<int:ob_id>', methods=['PATCH'])
@login_required
def update_opening_balance(ob_id):
    """修正期初余额；单价变化会传播到批发订单成本快照"""
    form = load_json_form(OpeningBalanceForm)
    ob = InventoryService.update_opening_balance(ob_id, {
        'cost': form.cost.data,
        'uom': form.uom.data,
    })
    return jsonify({'success': True, 'opening_balance': ob.to_dict()})
