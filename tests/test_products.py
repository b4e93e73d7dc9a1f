import asyncio

import pytest

from app_backoffice.models import Product, derive_stock_status, parse_price, parse_stock


@pytest.mark.parametrize('stock, status', [
    (-3, 'out-of-stock'),
    (0, 'out-of-stock'),
    (1, 'low-stock'),
    (10, 'low-stock'),
    (11, 'in-stock'),
])
def test_derive_stock_status(stock, status):
    assert derive_stock_status(stock).value == status


@pytest.mark.parametrize('value, expected', [
    (12, 12.0),
    ('129.99', 129.99),
    ('45 DH', 45.0),
    ('$1,200', 1200.0),
    ('abc', 0.0),
    (None, 0.0),
    (True, 0.0),
])
def test_parse_price(value, expected):
    assert parse_price(value) == expected


@pytest.mark.parametrize('value, expected', [
    ('7', 7),
    (3.9, 3),
    (-2, 0),
    (float('inf'), 0),
    (float('nan'), 0),
    ('muchos', 0),
    (None, 0),
])
def test_parse_stock(value, expected):
    assert parse_stock(value) == expected


def test_stored_status_is_ignored_on_read():
    product = Product.from_dict({'id': 'p1', 'name': 'X', 'stock': 50, 'status': 'out-of-stock'})
    assert product.to_dict()['status'] == 'in-stock'
    assert product.win_eligible is True


def test_save_product_defaults(app, admin_session):
    result = asyncio.run(app.product_service.save_product(admin_session, {'name': '  Falda ', 'price': '99.5', 'stock': '7'}))
    assert result['ok'], result
    product = result['product']
    assert product['id']
    assert product['name'] == 'Falda'
    assert product['category'] == 'clothing'
    assert product['winEligible'] is True
    assert product['stock'] == 7
    assert product['status'] == 'low-stock'
    assert product['price'] == '99.5'
    assert product['sales'] == 0


def test_unknown_category_becomes_other(app, admin_session):
    result = asyncio.run(app.product_service.save_product(admin_session, {'name': 'Juguete', 'category': 'toys'}))
    assert result['product']['category'] == 'other'


@pytest.mark.parametrize('data', [
    {'name': ''},
    {'name': 'X', 'stock': -1},
    {'name': 'X', 'stock': 'muchos'},
    {'name': 'X', 'stock': 2.5},
    {'name': 'X', 'price': 'gratis'},
    {'name': 'X', 'price': -4},
    {'name': 'X', 'stock': float('inf')},
    {'name': 'X', 'stock': float('nan')},
    {'name': 'X', 'price': float('inf')},
    {'name': 'X', 'price': 'nan'},
])
def test_save_product_validation(app, admin_session, data):
    result = asyncio.run(app.product_service.save_product(admin_session, data))
    assert result['code'] == 'ValidationError'
    assert asyncio.run(app.product_service.get_all_products(admin_session)) == []


def test_filters(app, admin_session):
    save = app.product_service.save_product
    asyncio.run(save(admin_session, {'name': 'Camiseta Roja', 'stock': 20, 'winEligible': False}))
    asyncio.run(save(admin_session, {'name': 'Camiseta Azul', 'stock': 3}))
    asyncio.run(save(admin_session, {'name': 'Peluche', 'category': 'other', 'stock': 0}))

    def names(**filters):
        products = asyncio.run(app.product_service.get_all_products(admin_session, **filters))
        return sorted(p['name'] for p in products)

    assert names(search='camiseta') == ['Camiseta Azul', 'Camiseta Roja']
    assert names(category='other') == ['Peluche']
    assert names(status='low-stock') == ['Camiseta Azul']
    assert names(status='out-of-stock') == ['Peluche']
    assert names(win_eligible=False) == ['Camiseta Roja']


def test_user_sees_own_and_unowned_products(app, admin_session, make_user):
    jane = make_user('jane')
    bob = make_user('bob')
    asyncio.run(app.record_store.put('products', {'id': 'pub', 'name': 'Catálogo'}))
    asyncio.run(app.product_service.save_product(jane, {'id': 'pj', 'name': 'De Jane'}))
    asyncio.run(app.product_service.save_product(admin_session, {'id': 'pa', 'name': 'Del admin'}))

    visible = sorted(p['id'] for p in asyncio.run(app.product_service.get_all_products(bob)))
    assert visible == ['pub']
    visible = sorted(p['id'] for p in asyncio.run(app.product_service.get_all_products(jane)))
    assert visible == ['pj', 'pub']
    assert asyncio.run(app.product_service.get_product(bob, 'pj')) is None


def test_user_cannot_edit_or_delete_foreign_product(app, make_user):
    jane = make_user('jane')
    bob = make_user('bob')
    asyncio.run(app.product_service.save_product(jane, {'id': 'pj', 'name': 'De Jane'}))

    result = asyncio.run(app.product_service.save_product(bob, {'id': 'pj', 'name': 'Robado'}))
    assert result['code'] == 'PermissionDenied'
    result = asyncio.run(app.product_service.delete_product(bob, 'pj'))
    assert result['code'] == 'PermissionDenied'

    assert asyncio.run(app.product_service.delete_product(jane, 'pj')) == {'ok': True}


def test_find_by_code(app, admin_session):
    asyncio.run(app.product_service.save_product(admin_session, {'id': 'p1', 'name': 'A', 'barcode': '111'}))
    find = app.product_service.find_by_code
    assert asyncio.run(find(admin_session, '111'))['id'] == 'p1'
    assert asyncio.run(find(admin_session, ' p1 '))['id'] == 'p1'
    assert asyncio.run(find(admin_session, '222')) is None
    assert asyncio.run(find(admin_session, '')) is None


def test_save_products_is_atomic(app, admin_session):
    result = asyncio.run(app.product_service.save_products(admin_session, [
        {'id': 'a', 'name': 'A'},
        {'id': 'b', 'name': ''},
    ]))
    assert result['code'] == 'ValidationError'
    assert asyncio.run(app.product_service.get_all_products(admin_session)) == []

    result = asyncio.run(app.product_service.save_products(admin_session, [
        {'id': 'a', 'name': 'A'},
        {'id': 'b', 'name': 'B'},
    ]))
    assert [p['id'] for p in result['products']] == ['a', 'b']


def test_decrement_stock_result(app, admin_session):
    asyncio.run(app.product_service.save_product(admin_session, {'id': 'p1', 'name': 'A', 'stock': 2}))
    result = asyncio.run(app.product_service.decrement_stock(admin_session, 'p1', 5))
    assert result['ok']
    assert result['product']['stock'] == 0
    assert result['product']['sales'] == 5
    assert asyncio.run(app.product_service.decrement_stock(admin_session, 'ghost', 1))['code'] == 'NotFound'
