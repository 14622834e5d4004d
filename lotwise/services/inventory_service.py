from lotwise.extensions import db
from lotwise.exceptions import NotFound, ValidationError
from lotwise.models import OpeningBalance
from lotwise.services.cost_sync_service import propagate_cost_change


class InventoryService:

    @staticmethod
    def update_opening_balance(ob_id, data):
        """
        修正期初余额
        期初入账后只允许修正单价等描述性字段；单价变化时提交后向下游传播
        :return: OpeningBalance
        """
        ob = db.session.get(OpeningBalance, ob_id)
        if ob is None:
            raise NotFound(f"Opening balance {ob_id} not found")

        old_cost = ob.cost or 0.0
        if data.get('cost') is not None:
            cost = float(data['cost'])
            if cost < 0:
                raise ValidationError('Cost cannot be negative')
            ob.cost = cost
        for field in ('uom', 'expiration_date'):
            if data.get(field) is not None:
                setattr(ob, field, data[field])

        db.session.commit()

        if abs((ob.cost or 0.0) - old_cost) > 0:
            propagate_cost_change(ob.sku_id, ob.lot_number, ob.cost)
        return ob
