import asyncio

import pytest

from app_backoffice.app_container import AppContainer
from app_backoffice.config import KEY_CURRENT_USER
from app_backoffice.services import ANONYMOUS, SessionService, SessionState, UserService


def _admins(container):
    users = asyncio.run(container.record_store.get_all('users'))
    return [u for u in users if u['username'] == 'admin']


# ═══════════════════════════════════════════════════════════════════════════
# ARRANQUE
# ═══════════════════════════════════════════════════════════════════════════

def test_fresh_store_gets_default_admin(app):
    admins = _admins(app)
    assert len(admins) == 1
    assert admins[0]['id'] == 'admin-id'
    assert admins[0]['role'] == 'admin'
    assert admins[0]['password'] == 'password'


@pytest.mark.parametrize('existing_users', [0, 1, 5])
def test_exactly_one_admin_after_startup(container, existing_users):
    async def seed():
        for i in range(existing_users):
            await container.record_store.put('users', {
                'id': f'u{i}', 'name': f'User {i}', 'username': f'user{i}',
                'password': 'pw', 'role': 'user',
            })
    asyncio.run(seed())

    asyncio.run(container.startup())
    asyncio.run(container.startup())

    assert len(_admins(container)) == 1


def test_startup_restores_persisted_session(data_dir, login):
    login('admin', 'password')
    AppContainer.reset_instance()
    restarted = AppContainer(data_dir)
    try:
        result = asyncio.run(restarted.startup())
        assert result['session'].state == SessionState.AUTHENTICATED_ADMIN
        assert restarted.session_service.current.user_id == 'admin-id'
    finally:
        asyncio.run(restarted.shutdown())


# ═══════════════════════════════════════════════════════════════════════════
# LOGIN / LOGOUT
# ═══════════════════════════════════════════════════════════════════════════

def test_admin_login(app):
    result = asyncio.run(app.user_service.login('admin', 'password'))
    assert result['ok']
    assert result['user'] == {'id': 'admin-id', 'name': 'Admin User', 'username': 'admin', 'role': 'admin'}
    assert result['session'].is_admin
    assert app.session_service.state == SessionState.AUTHENTICATED_ADMIN


@pytest.mark.parametrize('username, password', [
    ('admin', 'wrong'),
    ('nobody', 'password'),
    ('Admin', 'password'),
])
def test_invalid_credentials(app, username, password):
    result = asyncio.run(app.user_service.login(username, password))
    assert not result['ok']
    assert result['code'] == 'InvalidCredentials'
    assert app.session_service.state == SessionState.ANONYMOUS


def test_logout_clears_persisted_identity(app, login):
    login('admin', 'password')
    assert app.kv_repo.get_item(KEY_CURRENT_USER) is not None

    states = []
    app.session_service.subscribe(
        lambda topic: states.append((app.session_service.state, app.kv_repo.get_item(KEY_CURRENT_USER)))
    )
    assert app.user_service.logout() == {'ok': True}

    assert app.session_service.current == ANONYMOUS
    assert app.kv_repo.get_item(KEY_CURRENT_USER) is None
    # Los observadores ya ven el estado final
    assert states == [(SessionState.ANONYMOUS, None)]

    reloaded = SessionService(app.kv_repo)
    assert reloaded.restore() == ANONYMOUS


def test_corrupt_session_blob_is_discarded(app):
    app.kv_repo.set_item(KEY_CURRENT_USER, '{broken')
    assert app.session_service.restore() == ANONYMOUS
    assert app.kv_repo.get_item(KEY_CURRENT_USER) is None


def test_restored_role_is_coerced(app):
    app.kv_repo.set_json(KEY_CURRENT_USER, {'id': 'x', 'name': 'X', 'username': 'x', 'role': 'superuser'})
    assert app.session_service.restore().state == SessionState.AUTHENTICATED_USER


# ═══════════════════════════════════════════════════════════════════════════
# GESTIÓN DE USUARIOS
# ═══════════════════════════════════════════════════════════════════════════

def test_create_user_requires_admin(app, make_user):
    jane = make_user('jane')
    result = asyncio.run(app.user_service.create_user(jane, 'Bob', 'bob', 'pw', 'user'))
    assert result['code'] == 'PermissionDenied'
    result = asyncio.run(app.user_service.create_user(ANONYMOUS, 'Bob', 'bob', 'pw', 'user'))
    assert result['code'] == 'PermissionDenied'


def test_duplicate_username_is_case_sensitive(app, admin_session):
    create = app.user_service.create_user
    assert asyncio.run(create(admin_session, 'Jane', 'jane', 'pw', 'user'))['ok']
    assert asyncio.run(create(admin_session, 'Jane 2', 'jane', 'pw', 'user'))['code'] == 'DuplicateUsername'
    assert asyncio.run(create(admin_session, 'Jane 3', 'Jane', 'pw', 'user'))['ok']


def test_created_users_get_unique_ids(app, admin_session):
    async def scenario():
        results = []
        for name in ('a', 'b', 'c'):
            results.append(await app.user_service.create_user(admin_session, name, name, 'pw', 'user'))
        return results

    ids = [r['user']['id'] for r in asyncio.run(scenario())]
    assert len(set(ids)) == 3
    assert all(i.startswith('user_') for i in ids)


@pytest.mark.parametrize('username, password, role', [
    ('', 'pw', 'user'),
    ('   ', 'pw', 'user'),
    ('ok', '', 'user'),
    ('ok', 'pw', 'owner'),
])
def test_create_user_validation(app, admin_session, username, password, role):
    result = asyncio.run(app.user_service.create_user(admin_session, 'X', username, password, role))
    assert result['code'] == 'ValidationError'


def test_protected_admin_cannot_be_deleted_by_anyone(app, admin_session, make_user):
    jane = make_user('jane')
    for session in (admin_session, jane, ANONYMOUS):
        result = asyncio.run(app.user_service.delete_user(session, 'admin-id'))
        assert result['code'] == 'ProtectedAccount'
    assert len(_admins(app)) == 1


def test_delete_user(app, admin_session, make_user):
    jane = make_user('jane')
    bob = make_user('bob')

    result = asyncio.run(app.user_service.delete_user(jane, bob.user_id))
    assert result['code'] == 'PermissionDenied'

    assert asyncio.run(app.user_service.delete_user(admin_session, bob.user_id)) == {'ok': True}
    assert asyncio.run(app.user_service.delete_user(admin_session, bob.user_id))['code'] == 'NotFound'
    assert asyncio.run(app.user_service.login('bob', 'pw123'))['code'] == 'InvalidCredentials'


def test_change_password(app, admin_session, make_user):
    jane = make_user('jane')
    service = app.user_service

    assert asyncio.run(service.change_password(jane, jane.user_id, 'x'))['code'] == 'PermissionDenied'
    assert asyncio.run(service.change_password(admin_session, jane.user_id, ''))['code'] == 'ValidationError'
    assert asyncio.run(service.change_password(admin_session, 'ghost', 'x'))['code'] == 'NotFound'

    assert asyncio.run(service.change_password(admin_session, jane.user_id, 'nueva')) == {'ok': True}
    assert not asyncio.run(service.login('jane', 'pw123'))['ok']
    assert asyncio.run(service.login('jane', 'nueva'))['ok']


def test_admin_account_cannot_lose_role(app, admin_session):
    result = asyncio.run(app.user_service.save_user(admin_session, {'id': 'admin-id', 'role': 'user'}))
    assert result['code'] == 'ProtectedAccount'
    result = asyncio.run(app.user_service.save_user(admin_session, {'id': 'admin-id', 'name': 'Jefe'}))
    assert result['ok'] and result['user']['name'] == 'Jefe'
    assert _admins(app)[0]['password'] == 'password'


def test_get_all_users_hides_passwords(app, admin_session, make_user):
    jane = make_user('jane')
    users = asyncio.run(app.user_service.get_all_users(admin_session))
    assert sorted(u['username'] for u in users) == ['admin', 'jane']
    assert all('password' not in u for u in users)
    assert asyncio.run(app.user_service.get_all_users(jane)) == []


def test_permissions(app, admin_session, make_user):
    jane = make_user('jane')
    service = app.user_service
    assert service.has_permission(admin_session, 'manage_users')
    assert service.has_permission(jane, 'add_order')
    assert service.has_permission(jane, 'view_settings')
    assert not service.has_permission(jane, 'manage_users')
    assert not service.has_permission(ANONYMOUS, 'view_products')


def test_hashed_passwords(app, admin_session):
    service = UserService(app.record_store, app.session_service, app.access_scope, hash_passwords=True)
    assert asyncio.run(service.create_user(admin_session, 'Jane', 'jane', 'secreto', 'user'))['ok']

    stored = [u for u in asyncio.run(app.record_store.get_all('users')) if u['username'] == 'jane'][0]
    assert service.is_password_hashed(stored['password'])
    assert asyncio.run(service.login('jane', 'secreto'))['ok']
    assert not asyncio.run(service.login('jane', 'otro'))['ok']
    # Las contraseñas en texto plano siguen funcionando
    assert asyncio.run(service.login('admin', 'password'))['ok']
