import asyncio
import os
import sys

import pytest

# ensure project root is on sys.path when running from tests/ folder
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app_backoffice import performance_logger
from app_backoffice.app_container import AppContainer


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    monkeypatch.setattr(
        performance_logger, 'SLOW_FUNCTIONS_LOG', str(tmp_path / 'logs' / 'slow_functions.log')
    )


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / 'data')


@pytest.fixture
def container(data_dir):
    AppContainer.reset_instance()
    c = AppContainer(data_dir)
    yield c
    asyncio.run(c.shutdown())
    AppContainer.reset_instance()


@pytest.fixture
def app(container):
    result = asyncio.run(container.startup())
    assert result['ok'], result
    return container


@pytest.fixture
def login(app):
    def _login(username, password):
        result = asyncio.run(app.user_service.login(username, password))
        assert result['ok'], result
        return result['session']
    return _login


@pytest.fixture
def admin_session(login):
    return login('admin', 'password')


@pytest.fixture
def make_user(app, admin_session, login):
    """Crea un usuario con el admin y devuelve su sesión."""
    def _make(username, password='pw123', role='user', name=None):
        result = asyncio.run(app.user_service.create_user(
            admin_session, name or username.title(), username, password, role
        ))
        assert result['ok'], result
        return login(username, password)
    return _make
