import click
import random
from datetime import datetime, timedelta
from flask.cli import with_appcontext
from sqlalchemy.exc import SQLAlchemyError
from lotwise.extensions import db
from lotwise.exceptions import BulkWriteError
from lotwise.models import (
    User, Sku, SkuVariance, OpeningBalance, AuditAdjustment,
    PurchaseOrder, PurchaseOrderItem, ManufacturingJob, ManufacturingLineItem, LaborEntry,
    SaleOrder, SaleOrderItem, WebOrder, WebOrderItem,
)
from lotwise.services.cost_sync_service import sync_manufacturing_costs_batch, sync_sale_order_costs_batch
from lotwise.services.purchase_service import PurchaseService
from lotwise.utils.fake_gen import fake


@click.command('status')
@with_appcontext
def status():
    """
    查看当前数据库中各成本来源的数据统计。
    """
    click.echo(click.style('📊 LOTWISE 数据库状态:', fg='cyan', bold=True))

    try:
        counts = [
            ('SKU', Sku.query.count()),
            ('期初余额 (Opening)', OpeningBalance.query.count()),
            ('采购单 (PO)', PurchaseOrder.query.count()),
            ('制造单 (Jobs)', ManufacturingJob.query.count()),
            ('盘点调整 (Audit)', AuditAdjustment.query.count()),
            ('批发订单 (Orders)', SaleOrder.query.count()),
            ('零售订单 (Web)', WebOrder.query.count()),
        ]
        for label, count in counts:
            click.echo(f" - {label}: \t{count}")

        if counts[0][1] > 0:
            click.echo(click.style('✔ 数据库连接正常，数据已存在。', fg='green'))
        else:
            click.echo(click.style('⚠ 数据库为空，请运行 flask forge 生成数据。', fg='yellow'))

    except SQLAlchemyError as e:
        click.echo(click.style(f'✘ 数据库读取失败: {str(e)}', fg='red'))
        click.echo("请检查是否执行了 'flask db upgrade'")


@click.command('sync-costs')
@click.option('--batch-size', default=None, type=int, help='每批制造单数量 (默认 SYNC_BATCH_LIMIT)')
@click.option('--all/--once', 'run_all', default=True, help='翻页直到处理完 / 只跑一批')
@click.option('--job-id', 'job_ids', multiple=True, type=int, help='只同步指定制造单，可重复')
@with_appcontext
def sync_costs(batch_size, run_all, job_ids):
    """批量重算制造单成本并回写有变化的单据"""
    click.echo(click.style('⚙ 同步制造单成本...', fg='cyan', bold=True))
    skip, totals = 0, {'processed': 0, 'updated': 0, 'line_items_updated': 0}
    sources = {}

    while True:
        try:
            result = sync_manufacturing_costs_batch(skip=skip, limit=batch_size, order_ids=job_ids or None)
        except BulkWriteError as e:
            click.echo(click.style(f'✘ 第 {skip} 条起的批次写入失败: {e.message} {e.payload}', fg='red'))
            raise SystemExit(1)

        if result.processed == 0:
            break
        for key in totals:
            totals[key] += getattr(result, key)
        for source, count in result.sources.items():
            sources[source] = sources.get(source, 0) + count
        click.echo(f"  → skip={skip}: 处理 {result.processed}，回写 {result.updated}")

        skip += result.processed
        if not run_all:
            break

    click.echo(click.style(
        f"✔ 完成：处理 {totals['processed']}，回写 {totals['updated']}，"
        f"明细变更 {totals['line_items_updated']}", fg='green'))
    for source, count in sources.items():
        click.echo(f"   {source}: {count}")


@click.command('sync-sale-costs')
@click.option('--batch-size', default=None, type=int, help='每批批发订单数量 (默认 SYNC_BATCH_LIMIT)')
@with_appcontext
def sync_sale_costs(batch_size):
    """按完整来源链重算批发订单明细的成本快照"""
    click.echo(click.style('⚙ 同步批发订单成本快照...', fg='cyan', bold=True))
    skip, processed, updated = 0, 0, 0

    while True:
        try:
            result = sync_sale_order_costs_batch(skip=skip, limit=batch_size)
        except BulkWriteError as e:
            click.echo(click.style(f'✘ 第 {skip} 条起的批次写入失败: {e.message} {e.payload}', fg='red'))
            raise SystemExit(1)
        if result.processed == 0:
            break
        processed += result.processed
        updated += result.updated
        skip += result.processed

    click.echo(click.style(f'✔ 完成：处理 {processed} 张订单，更新 {updated} 条明细', fg='green'))


@click.command('forge')
@click.option('--scale', default=1, help='数据规模倍数 (默认1倍)')
@with_appcontext
def forge(scale):
    """
    初始化并填充演示数据：SKU、期初、采购、制造、批发与零售订单、盘点。
    警告：这将清除数据库中的现有数据！
    """
    click.echo(click.style(f'⚡ 初始化 LOTWISE 演示数据 (规模: {scale}x)...', fg='cyan', bold=True))

    # 1. 清除旧数据
    db.drop_all()
    db.create_all()

    admin = User(username='admin', email='admin@lotwise.local', password='admin', is_admin=True)
    token = admin.issue_token()
    db.session.add(admin)
    db.session.commit()

    click.echo('正在创建 SKU 目录...')
    materials, packaging, goods = init_catalog(scale)

    click.echo('正在录入期初余额与采购收货...')
    init_sources(materials, packaging, admin, scale)

    click.echo('正在生成制造单...')
    jobs = init_manufacturing(materials, packaging, goods, admin, scale)

    click.echo('正在生成销售订单...')
    init_sales(goods, jobs, scale)

    click.echo(click.style('✔ 演示数据构建完成！', fg='green', bold=True))
    click.echo(f"管理员: admin@lotwise.local / admin，API Token: {token}")
    click.echo("运行 flask sync-costs 计算制造单成本")


def init_catalog(scale=1):
    materials, packaging, goods = [], [], []
    for i in range(8 * scale):
        sku = Sku(id=f"RM-{i:04d}", name=fake.raw_material(), category='Raw Material',
                  uom=random.choice(['kg', 'g', 'l']), is_lot_applied=True)
        materials.append(sku)
    for i in range(4 * scale):
        sku = Sku(id=f"PK-{i:04d}", name=fake.packaging_item(), category='Packaging', uom='ea',
                  is_lot_applied=True)
        packaging.append(sku)
    for i in range(5 * scale):
        sku = Sku(id=f"FG-{i:04d}", name=fake.finished_good(), category='Finished Good', uom='ea',
                  sale_price=round(random.uniform(8, 40), 2), is_lot_applied=True)
        sku.variances.append(SkuVariance(id=f"WV-{i:04d}", name=sku.name, website=fake.web_store()))
        goods.append(sku)

    db.session.add_all(materials + packaging + goods)
    db.session.commit()
    click.echo(f'  ✓ 已创建 {len(materials)} 原料 / {len(packaging)} 包材 / {len(goods)} 成品')
    return materials, packaging, goods


def init_sources(materials, packaging, admin, scale=1):
    """原料一半走期初，一半走采购收货"""
    start = datetime.utcnow() - timedelta(days=90)
    half = len(materials) // 2

    for sku in materials[:half]:
        db.session.add(OpeningBalance(
            sku_id=sku.id, lot_number=f"OB-{sku.id}", qty=random.randint(200, 1000), uom=sku.uom,
            cost=round(random.uniform(0.5, 6), 2), created_by=admin.id, created_at=start,
        ))
    db.session.commit()

    for n in range(2 * scale):
        po = PurchaseOrder(label=f"PO-{1000 + n}", vendor=fake.vendor_name(),
                           status=PurchaseOrder.STATUS_ORDERED, created_by=admin.id,
                           created_at=start + timedelta(days=n))
        for sku in materials[half:] + packaging:
            qty = random.randint(100, 800)
            po.items.append(PurchaseOrderItem(
                sku_id=sku.id, qty_ordered=qty, qty_received=qty, uom=sku.uom,
                cost=round(random.uniform(0.1, 4), 2),
            ))
        db.session.add(po)
        db.session.commit()
        # 走正常收货流程：分配批号 + 成本传播
        PurchaseService.update_order(po.id, {
            'status': PurchaseOrder.STATUS_RECEIVED,
            'received_date': start + timedelta(days=n + 3),
        })

    # 一笔盘点调整
    sku = random.choice(materials[:half])
    db.session.add(AuditAdjustment(sku_id=sku.id, lot_number=f"OB-{sku.id}", qty=-random.randint(1, 10),
                                   reason='月度盘点损耗', created_by=admin.id))
    db.session.commit()


def init_manufacturing(materials, packaging, goods, admin, scale=1):
    lots = {}
    for ob in OpeningBalance.query.all():
        lots.setdefault(ob.sku_id, ob.lot_number)
    for item in PurchaseOrderItem.query.all():
        lots.setdefault(item.sku_id, item.lot_number)

    jobs = []
    start = datetime.utcnow() - timedelta(days=60)
    for n, sku in enumerate(goods * 2):
        qty = random.randint(20, 200)
        job = ManufacturingJob(
            sku_id=sku.id, label=f"MO-{2000 + n}", lot_number=f"FG-LOT-{2000 + n}", uom=sku.uom,
            qty=qty, status=ManufacturingJob.STATUS_COMPLETED, created_by=admin.id,
            scheduled_start=start + timedelta(days=n), scheduled_finish=start + timedelta(days=n + 1),
            created_at=start + timedelta(days=n),
        )
        for ingredient in random.sample(materials, k=min(3, len(materials))) + [random.choice(packaging)]:
            job.line_items.append(ManufacturingLineItem(
                sku_id=ingredient.id, lot_number=lots.get(ingredient.id), uom=ingredient.uom,
                recipe_qty=round(random.uniform(0.05, 0.5), 3), sa=random.choice([0, 90, 95, 100]),
                qty_scrapped=random.choice([0, 0, 1]),
            ))
        job.labor.append(LaborEntry(type='Production', user_id=admin.id,
                                    duration=f"{random.randint(1, 6)}:{random.choice(['00', '15', '30'])}:00",
                                    hourly_rate=random.choice([15, 18, 22])))
        db.session.add(job)
        jobs.append(job)
    db.session.commit()
    click.echo(f'  ✓ 已创建 {len(jobs)} 张制造单')
    return jobs


def init_sales(goods, jobs, scale=1):
    start = datetime.utcnow() - timedelta(days=30)
    for n in range(10 * scale):
        job = random.choice(jobs)
        shipped = start + timedelta(days=n % 30)
        order = SaleOrder(label=f"SO-{3000 + n}", client_name=fake.company(), sales_rep=fake.name(),
                          order_status=SaleOrder.STATUS_SHIPPED, shipped_date=shipped, created_at=shipped)
        qty = random.randint(1, 10)
        order.items.append(SaleOrderItem(sku_id=job.sku_id, lot_number=job.output_lot, qty_shipped=qty,
                                         uom='ea', price=job.sku.sale_price, total=qty * job.sku.sale_price))
        db.session.add(order)

    for n in range(10 * scale):
        sku = random.choice(goods)
        created = start + timedelta(days=n % 30)
        order = WebOrder(number=f"W{5000 + n}", website=fake.web_store(),
                         status=random.choice(['completed', 'processing', 'shipped', 'cancelled']),
                         currency='USD', date_created=created, created_at=created)
        qty = random.randint(1, 3)
        order.items.append(WebOrderItem(variance_id=sku.variances[0].id, name=sku.name, quantity=qty,
                                        price=sku.sale_price, total=qty * sku.sale_price))
        order.total = qty * sku.sale_price
        db.session.add(order)
    db.session.commit()
    click.echo(f'  ✓ 已创建 {10 * scale} 张批发订单 / {10 * scale} 张零售订单')
