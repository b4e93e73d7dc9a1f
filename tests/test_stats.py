import asyncio
from datetime import datetime, timezone

import pytest

from app_backoffice.services.stats_service import StatsService

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def orders(app, admin_session):
    async def seed():
        for order_id, date, total in [
            ('o1', '2024-06-10T10:00:00Z', '100 DH'),
            ('o2', '2024-03-01T10:00:00+00:00', 50),
            ('o3', '2023-10-01T10:00:00Z', 70),
        ]:
            result = await app.order_service.save_order(
                admin_session, {'id': order_id, 'date': date, 'total': total, 'status': 'delivered'}
            )
            assert result['ok'], result
    asyncio.run(seed())


def test_default_range_starts_six_months_back():
    start, end = StatsService.default_date_range(NOW)
    assert start == datetime(2023, 12, 1, tzinfo=timezone.utc)
    assert end == NOW


def test_default_range_clamps_short_months():
    start, _ = StatsService.default_date_range(datetime(2024, 8, 31, tzinfo=timezone.utc))
    assert start == datetime(2024, 2, 1, tzinfo=timezone.utc)


def test_dashboard_stats_default_range(app, admin_session, orders):
    asyncio.run(app.product_service.save_product(admin_session, {'name': 'A', 'winEligible': True}))
    asyncio.run(app.product_service.save_product(admin_session, {'name': 'B', 'winEligible': False}))

    stats = asyncio.run(app.stats_service.dashboard_stats(admin_session, now=NOW))
    assert stats['total_orders'] == 2
    assert stats['total_revenue'] == 150.0
    assert stats['total_products'] == 2
    assert stats['win_eligible_products'] == 1
    # 1 de 3 pedidos en el último mes
    assert stats['last_month_pct'] == 33


def test_dashboard_stats_custom_range(app, admin_session, orders):
    stats = asyncio.run(app.stats_service.dashboard_stats(
        admin_session, start_date='2023-01-01', end_date='2024-04-01', now=NOW
    ))
    assert stats['total_orders'] == 2
    assert stats['total_revenue'] == 120.0


def test_stats_only_count_visible_orders(app, make_user, orders):
    jane = make_user('jane')
    stats = asyncio.run(app.stats_service.dashboard_stats(jane, now=NOW))
    assert stats['total_orders'] == 0
    assert stats['total_revenue'] == 0
    assert stats['last_month_pct'] == 0


def test_popular_products(app, admin_session):
    save = app.product_service.save_product
    for pid, sales in (('a', 5), ('b', 20), ('c', 0)):
        asyncio.run(save(admin_session, {'id': pid, 'name': pid.upper(), 'sales': sales}))

    popular = asyncio.run(app.stats_service.popular_products(admin_session))
    assert [p['id'] for p in popular] == ['b', 'a', 'c']
    top = asyncio.run(app.stats_service.popular_products(admin_session, limit=1))
    assert [p['id'] for p in top] == ['b']
