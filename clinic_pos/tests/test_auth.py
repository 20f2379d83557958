from werkzeug.security import generate_password_hash

from clinic_pos.models.entities import Role, StaffSession
from clinic_pos.services.auth_service import (
    AuthService, CAP_DELETE_EXPENSE, CAP_DELETE_SERVICE, CAP_DELETE_TRANSACTION,
    StaticCredentialProvider,
)


def test_admin_login(auth_service):
    staff = auth_service.authenticate('admin@clinic.com', 'admin123')
    assert staff == StaffSession('admin@clinic.com', Role.ADMIN)
    assert staff.is_admin


def test_email_is_normalised(auth_service):
    staff = auth_service.authenticate('  Staff1@Clinic.com ', 'staff123')
    assert staff is not None
    assert staff.role == Role.STAFF


def test_wrong_password_or_unknown_user(auth_service):
    assert auth_service.authenticate('admin@clinic.com', 'nope') is None
    assert auth_service.authenticate('ghost@clinic.com', 'admin123') is None
    assert auth_service.authenticate('', '') is None


def test_capabilities_by_role(auth_service):
    admin = StaffSession('a@clinic.com', Role.ADMIN)
    staff = StaffSession('s@clinic.com', Role.STAFF)
    for cap in (CAP_DELETE_SERVICE, CAP_DELETE_TRANSACTION, CAP_DELETE_EXPENSE):
        assert auth_service.can(admin, cap)
        assert not auth_service.can(staff, cap)
        assert not auth_service.can(None, cap)


def test_prehashed_passwords_are_kept():
    hashed = generate_password_hash('secret')
    provider = StaticCredentialProvider([{'email': 'x@clinic.com', 'password': hashed, 'role': 'admin'}])
    assert provider.lookup('x@clinic.com')['password_hash'] == hashed
    assert AuthService(provider).authenticate('x@clinic.com', 'secret').is_admin


def test_session_from_dict_without_role():
    assert StaffSession.from_dict({'email': 'a@clinic.com'}) is None
    assert StaffSession.from_dict({'email': 'a@clinic.com', 'role': 'owner'}) is None
    assert StaffSession.from_dict(None) is None
