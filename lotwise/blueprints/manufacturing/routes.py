from flask import jsonify
from flask_login import login_required

from lotwise.blueprints.manufacturing import manufacturing_bp
from lotwise.blueprints.manufacturing.forms import SyncBatchForm
from lotwise.services.cost_sync_service import sync_manufacturing_costs_batch
from lotwise.services.manufacturing_service import ManufacturingService
from lotwise.utils.decorators import admin_required
from lotwise.utils.validators import load_json_form


@manufacturing_bp.route('/<int:job_id>/cost')
@login_required
def job_cost(job_id):
    """制造单成本明细（实时计算，不读取成本快照）"""
    detail = ManufacturingService.get_job_cost_detail(job_id)
    detail['success'] = True
    return jsonify(detail)


@manufacturing_bp.route('/sync-costs', methods=['POST'])
@login_required
@admin_required
def sync_costs():
    """
    批量同步制造单成本
    调用方负责翻页：按 skip/limit 重复调用直到 processed == 0
    """
    form = load_json_form(SyncBatchForm)
    result = sync_manufacturing_costs_batch(
        skip=form.skip.data or 0,
        limit=form.limit.data,
        order_ids=[job_id for job_id in form.order_ids.data if job_id is not None] or None,
    )
    data = result.to_dict()
    data['success'] = True
    return jsonify(data)
