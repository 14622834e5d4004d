from lotwise.extensions import db
from lotwise.exceptions import NotFound, ValidationError
from lotwise.models import SkuVariance, WebOrder, WebOrderItem
from lotwise.services.lot_cost_service import resolve_lot_cost
from lotwise.utils.refs import lot_key


class SalesService:

    @staticmethod
    def linked_sku_id(item: WebOrderItem):
        """零售明细关联的 SKU：优先明细上的 sku_id，否则通过变体 ID 反查"""
        if item.sku_id:
            return item.sku_id
        if item.variance_id:
            variance = db.session.get(SkuVariance, item.variance_id)
            if variance is not None:
                return variance.sku_id
        return None

    @staticmethod
    def assign_web_order_lot(order_id, item_id, lot_number):
        """
        零售订单明细重新分配批次，并按该批次写入成本快照
        :return: WebOrderItem
        """
        order = db.session.get(WebOrder, order_id)
        if order is None:
            raise NotFound(f"Web order {order_id} not found")
        item = db.session.get(WebOrderItem, item_id)
        if item is None or item.order_id != order.id:
            raise NotFound(f"Item {item_id} not found in web order {order_id}")

        lot = lot_key(lot_number)
        if lot is None:
            raise ValidationError('Lot number is required')

        sku_id = SalesService.linked_sku_id(item)
        if sku_id is None:
            raise ValidationError('Web order item is not linked to a SKU')

        item.sku_id = sku_id
        item.lot_number = lot
        item.cost = resolve_lot_cost(sku_id, lot)
        db.session.commit()
        return item
