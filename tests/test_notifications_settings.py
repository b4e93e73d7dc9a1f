import asyncio

from app_backoffice.services import ANONYMOUS


def test_notifications_are_scoped(app, make_user):
    jane = make_user('jane')
    bob = make_user('bob')
    service = app.notification_service

    asyncio.run(service.notify(jane, 'Hola', 'Para Jane'))
    asyncio.run(service.notify(bob, 'Hola', 'Para Bob'))

    assert [n['message'] for n in asyncio.run(service.get_all_notifications(jane))] == ['Para Jane']
    assert [n['message'] for n in asyncio.run(service.get_all_notifications(bob))] == ['Para Bob']


def test_ids_are_sequential_and_newest_first(app, admin_session):
    service = app.notification_service
    for title in ('uno', 'dos', 'tres'):
        assert asyncio.run(service.notify(admin_session, title, '...'))['ok']

    notifications = asyncio.run(service.get_all_notifications(admin_session))
    assert [n['id'] for n in notifications] == [3, 2, 1]
    assert [n['title'] for n in notifications] == ['tres', 'dos', 'uno']
    assert all(n['time'] for n in notifications)


def test_mark_read(app, make_user):
    jane = make_user('jane')
    service = app.notification_service
    first = asyncio.run(service.notify(jane, 'A', 'a'))['notification']
    asyncio.run(service.notify(jane, 'B', 'b'))
    asyncio.run(service.notify(jane, 'C', 'c'))

    assert asyncio.run(service.unread_count(jane)) == 3
    assert asyncio.run(service.mark_as_read(jane, first['id']))['notification']['read'] is True
    assert asyncio.run(service.unread_count(jane)) == 2

    assert asyncio.run(service.mark_all_as_read(jane)) == {'ok': True, 'updated': 2}
    assert asyncio.run(service.unread_count(jane)) == 0
    assert asyncio.run(service.mark_as_read(jane, 999))['code'] == 'NotFound'


def test_delete_notification(app, make_user):
    jane = make_user('jane')
    bob = make_user('bob')
    service = app.notification_service
    note = asyncio.run(service.notify(jane, 'A', 'a'))['notification']

    assert asyncio.run(service.delete_notification(bob, note['id']))['code'] == 'PermissionDenied'
    assert asyncio.run(service.delete_notification(jane, note['id'])) == {'ok': True}
    assert asyncio.run(service.get_all_notifications(jane)) == []


def test_anonymous_cannot_notify(app):
    result = asyncio.run(app.notification_service.notify(ANONYMOUS, 'A', 'a'))
    assert result['code'] == 'PermissionDenied'


def test_concurrent_notifications_get_distinct_ids(app, make_user):
    jane = make_user('jane')
    service = app.notification_service

    async def scenario():
        return await asyncio.gather(*(service.notify(jane, f'N{i}', '...') for i in range(3)))

    results = asyncio.run(scenario())
    assert sorted(r['notification']['id'] for r in results) == [1, 2, 3]
    assert asyncio.run(service.unread_count(jane)) == 3


# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def test_default_settings(app):
    settings = asyncio.run(app.settings_service.get_settings())
    assert settings == {
        'id': 'app-settings',
        'darkMode': False,
        'emailNotifications': True,
        'pushNotifications': True,
        'storeTimeZone': 'Africa/Casablanca',
        'currency': 'MAD',
    }
    assert asyncio.run(app.settings_service.currency_symbol()) == 'DH'


def test_save_settings_merges_and_broadcasts(app, make_user):
    jane = make_user('jane')
    topics = []
    app.broadcaster.subscribe(topics.append)

    result = asyncio.run(app.settings_service.save_settings(jane, {'currency': 'USD', 'unknown': 1}))
    assert result['ok']
    assert result['settings']['currency'] == 'USD'
    assert 'unknown' not in result['settings']
    assert topics == ['settings']

    asyncio.run(app.settings_service.save_settings(jane, {'darkMode': True}))
    settings = asyncio.run(app.settings_service.get_settings())
    assert settings['currency'] == 'USD' and settings['darkMode'] is True
    assert asyncio.run(app.settings_service.currency_symbol()) == '$'


def test_anonymous_cannot_save_settings(app):
    result = asyncio.run(app.settings_service.save_settings(ANONYMOUS, {'currency': 'USD'}))
    assert result['code'] == 'PermissionDenied'
