import os
import sys
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# logs of the test run go to a throwaway directory; must be set before
# clinic_pos.config is imported
os.environ.setdefault('CLINIC_POS_LOGS_DIR', tempfile.mkdtemp(prefix='clinic_pos_logs_'))
os.environ.setdefault('CLINIC_POS_LOGO_PATH', os.path.join(tempfile.gettempdir(), 'clinic_pos_missing_logo.jpg'))

# ensure project root is on sys.path when running from tests/ folder
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', '..')))

from clinic_pos import config
from clinic_pos.app_container import AppContainer, get_container
from clinic_pos.models.entities import Role, StaffSession
from clinic_pos.repositories import ExpenseRepository, ServiceRepository, TransactionRepository
from clinic_pos.services.auth_service import AuthService, StaticCredentialProvider

MANILA = timezone(timedelta(hours=8))

ADMIN = StaffSession(email='admin@clinic.com', role=Role.ADMIN)
STAFF = StaffSession(email='staff1@clinic.com', role=Role.STAFF)


class FakeClock:
    """Settable clock; returns the same instant until moved."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    # 2025-03-12 is a Wednesday, 10:30 clinic time
    return FakeClock(datetime(2025, 3, 12, 10, 30, tzinfo=MANILA))


@pytest.fixture
def repos(tmp_path, clock):
    data = str(tmp_path / 'data')
    return {
        'services': ServiceRepository(data, clock=clock),
        'transactions': TransactionRepository(data, clock=clock),
        'expenses': ExpenseRepository(data, clock=clock),
    }


@pytest.fixture(scope='session')
def auth_service():
    return AuthService(StaticCredentialProvider(config.load_accounts()))


@pytest.fixture
def container(tmp_path):
    AppContainer.reset_instance()
    c = get_container(str(tmp_path / 'data'))
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def client(container):
    from clinic_pos.main import app
    app.config['TESTING'] = True
    with app.test_client() as c:
        yield c


def login(client, email='admin@clinic.com', password='admin123'):
    token = client.get('/api/session').get_json()['csrf_token']
    r = client.post('/api/login', json={'email': email, 'password': password, 'csrf_token': token})
    assert r.status_code == 200, r.get_json()
    return r.get_json()['csrf_token']
