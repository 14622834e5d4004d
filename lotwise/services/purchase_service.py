"""采购管理服务"""
from datetime import datetime

from flask import current_app

from lotwise.extensions import db
from lotwise.exceptions import NotFound, ValidationError
from lotwise.models import PurchaseOrder, PurchaseOrderItem
from lotwise.services.cost_sync_service import propagate_cost_change
from lotwise.services.settings_service import parse_date


class PurchaseService:
    """采购服务"""

    # 明细允许编辑的字段
    ITEM_FIELDS = ('lot_number', 'qty_ordered', 'qty_received', 'cost', 'unit_price', 'received_date')

    @staticmethod
    def generate_lot_number(received_date, index):
        """收货批号：MM/DD/YYYY-.N（N 为明细序号，从 1 开始）"""
        return f"{received_date.strftime('%m/%d/%Y')}-.{index + 1}"

    @staticmethod
    def parse_received_date(value):
        """收货日期，无法解析时抛 ValidationError"""
        try:
            return parse_date(value)
        except ValueError:
            raise ValidationError(f"Invalid received_date '{value}'")

    @staticmethod
    def update_order(po_id, data):
        """
        更新采购单
        :param data: {'status': 'Received', 'received_date': ..., 'vendor': ...,
                      'items': [{'id': 1, 'cost': 2.5, 'qty_received': 10}, ...]}
        状态变为 Received 时：记录收货日期，给没有批号的明细分配批号，
        提交后把每条明细的单位成本传播到批发订单
        """
        po = db.session.get(PurchaseOrder, po_id)
        if po is None:
            raise NotFound(f"Purchase order {po_id} not found")
        received_date = PurchaseService.parse_received_date(data.get('received_date'))

        for field in ('label', 'vendor', 'payment_terms', 'status'):
            if data.get(field) is not None:
                setattr(po, field, data[field])

        items_by_id = {item.id: item for item in po.items}
        for item_data in data.get('items') or []:
            item = items_by_id.get(item_data.get('id'))
            if item is None:
                raise ValidationError(f"Item {item_data.get('id')} does not belong to purchase order {po.id}")
            for field in PurchaseService.ITEM_FIELDS:
                if field not in item_data:
                    continue
                value = item_data[field]
                if field == 'received_date':
                    value = PurchaseService.parse_received_date(value)
                setattr(item, field, value)

        if po.is_received:
            received = received_date or po.received_date or datetime.utcnow()
            po.received_date = received
            for index, item in enumerate(po.items):
                if not (item.lot_number or '').strip():
                    item.lot_number = PurchaseService.generate_lot_number(received, index)
                if item.received_date is None:
                    item.received_date = received

        db.session.commit()

        # 采购单本身已提交，传播失败不影响它
        if po.is_received:
            fallback = current_app.config['PO_COST_FALLBACK_TO_PRICE']
            for item in po.items:
                if item.sku_id and item.lot_number:
                    propagate_cost_change(item.sku_id, item.lot_number, item.unit_cost(fallback))

        return po
