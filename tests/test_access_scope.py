import asyncio

import pytest

from app_backoffice.errors import PermissionDenied, StorageUnavailable
from app_backoffice.services import ANONYMOUS, AccessScope, ChangeBroadcaster


@pytest.fixture
def users(make_user):
    return make_user('jane'), make_user('bob')


def _seed(app):
    async def scenario():
        await app.record_store.put_many('products', [
            {'id': 'pub', 'name': 'Público'},
            {'id': 'jane-1', 'name': 'De Jane', 'ownerUserId': None},
        ])
    asyncio.run(scenario())


def test_user_never_sees_records_of_other_users(app, users):
    jane, bob = users
    scope = app.access_scope

    async def scenario():
        await scope.save_owned(jane, 'orders', {'id': 'o-jane'})
        await scope.save_owned(bob, 'orders', {'id': 'o-bob'})
        await app.record_store.put('orders', {'id': 'o-legacy', 'userId': bob.user_id})
        await app.record_store.put('orders', {'id': 'o-public'})
        return (await scope.list_visible(jane, 'orders'),
                await scope.list_visible(bob, 'orders'))

    jane_orders, bob_orders = asyncio.run(scenario())
    assert sorted(o['id'] for o in jane_orders) == ['o-jane', 'o-public']
    assert sorted(o['id'] for o in bob_orders) == ['o-bob', 'o-legacy', 'o-public']


def test_admin_sees_everything(app, users, admin_session):
    jane, bob = users

    async def scenario():
        await app.access_scope.save_owned(jane, 'products', {'id': 'a'})
        await app.access_scope.save_owned(bob, 'products', {'id': 'b'})
        return await app.access_scope.list_visible(admin_session, 'products')

    assert sorted(p['id'] for p in asyncio.run(scenario())) == ['a', 'b']


def test_anonymous_sees_nothing_and_cannot_write(app):
    _seed(app)
    scope = app.access_scope
    assert asyncio.run(scope.list_visible(ANONYMOUS, 'products')) == []
    with pytest.raises(PermissionDenied):
        asyncio.run(scope.save_owned(ANONYMOUS, 'products', {'id': 'x'}))
    with pytest.raises(PermissionDenied):
        asyncio.run(scope.delete_owned(ANONYMOUS, 'products', 'pub'))


def test_save_stamps_owner_only_when_unset(app, users):
    jane, bob = users

    async def scenario():
        stamped = await app.access_scope.save_owned(jane, 'products', {'id': 'p1'})
        kept = await app.access_scope.save_owned(jane, 'products', {'id': 'p2', 'ownerUserId': 'other'})
        return stamped, kept

    stamped, kept = asyncio.run(scenario())
    assert stamped['ownerUserId'] == jane.user_id
    assert kept['ownerUserId'] == 'other'


def test_user_cannot_overwrite_foreign_record(app, users):
    jane, bob = users
    asyncio.run(app.access_scope.save_owned(jane, 'products', {'id': 'p1', 'name': 'A'}))
    with pytest.raises(PermissionDenied):
        asyncio.run(app.access_scope.save_owned(bob, 'products', {'id': 'p1', 'name': 'B'}))


def test_admin_edit_keeps_original_owner(app, users, admin_session):
    jane, _ = users

    async def scenario():
        await app.access_scope.save_owned(jane, 'products', {'id': 'p1', 'name': 'A'})
        return await app.access_scope.save_owned(admin_session, 'products', {'id': 'p1', 'name': 'B'})

    assert asyncio.run(scenario())['ownerUserId'] == jane.user_id


def test_save_many_owned_stamps_every_record(app, users):
    jane, _ = users
    saved = asyncio.run(app.access_scope.save_many_owned(jane, 'notifications', [{'id': 1}, {'id': 2}]))
    assert [n['ownerUserId'] for n in saved] == [jane.user_id, jane.user_id]


def test_delete_rules(app, users, admin_session):
    jane, bob = users
    _seed(app)
    scope = app.access_scope
    asyncio.run(scope.save_owned(jane, 'orders', {'id': 'o1'}))

    with pytest.raises(PermissionDenied):
        asyncio.run(scope.delete_owned(bob, 'orders', 'o1'))
    # Registro sin dueño: solo el admin puede borrarlo
    with pytest.raises(PermissionDenied):
        asyncio.run(scope.delete_owned(bob, 'products', 'pub'))
    # Id inexistente: también es un rechazo para un usuario normal
    with pytest.raises(PermissionDenied):
        asyncio.run(scope.delete_owned(bob, 'orders', 'missing'))

    asyncio.run(scope.delete_owned(jane, 'orders', 'o1'))
    asyncio.run(scope.delete_owned(admin_session, 'products', 'pub'))
    asyncio.run(scope.delete_owned(admin_session, 'products', 'missing'))
    assert asyncio.run(app.record_store.get('products', 'pub')) is None


def test_list_all_users_fails_closed(app, users, admin_session):
    jane, _ = users
    assert asyncio.run(app.access_scope.list_all_users(jane)) == []
    assert asyncio.run(app.access_scope.list_all_users(ANONYMOUS)) == []
    usernames = sorted(u['username'] for u in asyncio.run(app.access_scope.list_all_users(admin_session)))
    assert usernames == ['admin', 'bob', 'jane']


class _UnavailableStore:
    async def get_all(self, collection):
        raise StorageUnavailable('disco desconectado')

    async def get(self, collection, record_id):
        raise StorageUnavailable('disco desconectado')


def test_unavailable_store_degrades_to_empty(admin_session):
    scope = AccessScope(_UnavailableStore())
    assert asyncio.run(scope.list_visible(admin_session, 'products')) == []
    assert asyncio.run(scope.list_all_users(admin_session)) == []
    assert asyncio.run(scope.get_visible(admin_session, 'products', 'p1')) is None


def test_writes_are_broadcast(app, users):
    jane, _ = users
    topics = []
    app.broadcaster.subscribe(topics.append)
    asyncio.run(app.access_scope.save_owned(jane, 'orders', {'id': 'o1'}))
    asyncio.run(app.access_scope.delete_owned(jane, 'orders', 'o1'))
    assert topics == ['orders', 'orders']


def test_failing_subscriber_does_not_break_others():
    broadcaster = ChangeBroadcaster()
    seen = []

    def broken(topic):
        raise RuntimeError('boom')

    broadcaster.subscribe(broken)
    unsubscribe = broadcaster.subscribe(seen.append)
    broadcaster.publish('products')
    unsubscribe()
    broadcaster.publish('orders')
    assert seen == ['products']
    assert broadcaster.subscriber_count == 1
