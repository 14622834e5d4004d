from lotwise.extensions import db
from lotwise.exceptions import NotFound
from lotwise.models import ManufacturingJob
from lotwise.services.costing import calculate_job_cost, CostBreakdown
from lotwise.services.lot_cost_service import LotCostIndex


class ManufacturingService:

    @staticmethod
    def get_job(job_id) -> ManufacturingJob:
        job = db.session.get(ManufacturingJob, job_id)
        if job is None:
            raise NotFound(f"Manufacturing job {job_id} not found")
        return job

    @staticmethod
    def compute_job_cost(job, index: LotCostIndex = None) -> CostBreakdown:
        """
        计算制造单成本（原料单位成本走完整的四级来源解析）
        明细上有正数 cost_override 时作为本地覆盖直接采用；同步写入的 cost 快照不参与计算
        :param job: ManufacturingJob 或其 ID
        """
        if not isinstance(job, ManufacturingJob):
            job = ManufacturingService.get_job(job)

        if index is None:
            index = LotCostIndex()
        index.load(line.sku_id for line in job.line_items)
        return calculate_job_cost(job, index.resolve, index.is_packaging)

    @staticmethod
    def get_job_cost_detail(job_id):
        """成本明细：成本构成 + 每条明细的单位成本 + 涉及 SKU 的分层"""
        from lotwise.services.tier_service import get_sku_tiers

        job = ManufacturingService.get_job(job_id)
        breakdown = ManufacturingService.compute_job_cost(job)

        sku_ids = {job.sku_id} | {line.sku_id for line in job.line_items if line.sku_id}
        tiers = get_sku_tiers(sku_ids)

        line_items = []
        for line, line_cost in zip(job.line_items, breakdown.lines):
            data = line.to_dict()
            data['sku_label'] = line.sku_label
            data['resolved_cost'] = line_cost.unit_cost
            data['total_qty'] = line_cost.total_qty
            data['total_cost'] = line_cost.total_cost
            data['category'] = line_cost.category
            data['tier'] = tiers.get(line.sku_id, 0)
            line_items.append(data)

        return {
            'job_id': job.id,
            'label': job.label,
            'sku_id': job.sku_id,
            'lot_number': job.output_lot,
            'qty': job.qty,
            'material_cost': breakdown.material_cost,
            'packaging_cost': breakdown.packaging_cost,
            'labor_cost': breakdown.labor_cost,
            'total_cost': breakdown.total_cost,
            'per_unit_cost': breakdown.per_unit_cost,
            'line_items': line_items,
            'tiers': tiers,
        }
