"""
测试夹具

每个测试使用独立的内存 SQLite 库；Factory 负责构造各来源单据，
所有单据都显式指定日期（以 BASE_DATE 为第 0 天），保证台账排序可预测。
"""
from datetime import datetime, timedelta

import pytest

from lotwise import create_app
from lotwise.extensions import db as _db
from lotwise.models import (
    Sku, SkuVariance, OpeningBalance, AuditAdjustment,
    PurchaseOrder, PurchaseOrderItem, ManufacturingJob, ManufacturingLineItem, LaborEntry,
    SaleOrder, SaleOrderItem, WebOrder, WebOrderItem,
)

BASE_DATE = datetime(2024, 1, 1)


def day(n):
    return BASE_DATE + timedelta(days=n)


class Factory:

    def __init__(self, session):
        self.session = session

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def sku(self, sku_id, category='Raw Material', uom='kg', sale_price=0.0, variances=()):
        sku = Sku(id=sku_id, name=f"{sku_id} name", category=category, uom=uom, sale_price=sale_price)
        for variance_id in variances:
            sku.variances.append(SkuVariance(id=variance_id, name=f"{sku_id} {variance_id}"))
        return self._save(sku)

    def opening(self, sku_id, lot, qty=0.0, cost=0.0, on=0):
        return self._save(OpeningBalance(sku_id=sku_id, lot_number=lot, qty=qty, cost=cost, created_at=day(on)))

    def audit(self, sku_id, lot, qty, cost=0.0, on=0, reason='Cycle count'):
        return self._save(AuditAdjustment(sku_id=sku_id, lot_number=lot, qty=qty, cost=cost, reason=reason,
                                          created_at=day(on)))

    def purchase(self, items, status=PurchaseOrder.STATUS_RECEIVED, label=None, on=0, received_on=None):
        po = PurchaseOrder(label=label, vendor='Acme Supply', status=status, created_at=day(on),
                           received_date=day(received_on) if received_on is not None else None)
        for item in items:
            po.items.append(PurchaseOrderItem(created_at=day(on), **item))
        return self._save(po)

    def job(self, sku_id, qty, lines=(), labor=(), on=0, **fields):
        job = ManufacturingJob(sku_id=sku_id, qty=qty, created_at=day(on), **fields)
        for line in lines:
            job.line_items.append(ManufacturingLineItem(created_at=day(on), **line))
        for duration, rate in labor:
            job.labor.append(LaborEntry(duration=duration, hourly_rate=rate, created_at=day(on)))
        return self._save(job)

    def sale(self, items, on=0, label=None):
        order = SaleOrder(label=label, client_name='Wholesale Co', order_status=SaleOrder.STATUS_SHIPPED,
                          created_at=day(on))
        for item in items:
            order.items.append(SaleOrderItem(created_at=day(on), **item))
        return self._save(order)

    def web(self, items, status='completed', on=0, number=None):
        order = WebOrder(number=number, website='shop-main', status=status, created_at=day(on))
        for item in items:
            order.items.append(WebOrderItem(created_at=day(on), **item))
        return self._save(order)


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def factory(db):
    return Factory(db.session)
