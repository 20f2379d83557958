# ==============================================================================
# AUTHENTICATION AND AUTHORIZATION SERVICE
# ==============================================================================
# Login checks credentials through a pluggable CredentialProvider and returns
# an explicit StaffSession. Privileged actions ask can(staff, capability);
# the capability table is keyed by role, so the checks are testable without
# any hardcoded secret.
# ==============================================================================

from typing import Any, Dict, Iterable, Optional, Protocol, runtime_checkable
from werkzeug.security import generate_password_hash, check_password_hash

from clinic_pos.models.entities import Role, StaffSession

# =========================================================================
# CAPABILITIES
# =========================================================================
CAP_DELETE_SERVICE = 'delete_service'
CAP_DELETE_TRANSACTION = 'delete_transaction'
CAP_DELETE_EXPENSE = 'delete_expense'

ROLE_CAPABILITIES = {
    Role.ADMIN: frozenset([CAP_DELETE_SERVICE, CAP_DELETE_TRANSACTION, CAP_DELETE_EXPENSE]),
    Role.STAFF: frozenset(),
}


@runtime_checkable
class CredentialProvider(Protocol):
    """Source of staff accounts."""

    def lookup(self, email: str) -> Optional[Dict[str, Any]]:
        """Returns {'email', 'password_hash', 'role'} or None."""
        ...


def normalize_email(email: str) -> str:
    return (email or '').strip().lower()


class StaticCredentialProvider:
    """
    Accounts from a static table (config or tests).

    Plaintext passwords are hashed once at construction; entries already
    carrying a werkzeug hash ('pbkdf2:' / 'scrypt:') are kept as they are.
    """

    def __init__(self, accounts: Iterable[Dict[str, Any]]):
        self._accounts: Dict[str, Dict[str, Any]] = {}
        for acc in accounts:
            email = normalize_email(acc.get('email'))
            if not email:
                continue
            try:
                role = Role(acc.get('role', Role.STAFF.value))
            except ValueError:
                raise ValueError(f"Unknown role for {email}: {acc.get('role')!r}")

            password = acc.get('password_hash') or acc.get('password') or ''
            if not (password.startswith('pbkdf2:') or password.startswith('scrypt:')):
                password = generate_password_hash(password)

            self._accounts[email] = {'email': email, 'password_hash': password, 'role': role}

    def lookup(self, email: str) -> Optional[Dict[str, Any]]:
        return self._accounts.get(normalize_email(email))


class AuthService:
    """
    Service for login and capability checks.

    Responsibilities:
    - Authenticate e-mail / password and build the StaffSession
    - Answer whether a session holds a capability
    """

    def __init__(self, credential_provider: CredentialProvider):
        """
        Args:
            credential_provider: Where accounts come from
        """
        self.credential_provider = credential_provider

    def authenticate(self, email: str, password: str) -> Optional[StaffSession]:
        """
        Checks a login attempt.

        Returns:
            StaffSession when the credentials are valid, None otherwise
        """
        if not email or not password:
            return None

        account = self.credential_provider.lookup(email)
        if not account:
            return None

        if not check_password_hash(account['password_hash'], password):
            return None

        return StaffSession(email=account['email'], role=Role(account['role']))

    def can(self, staff: Optional[StaffSession], capability: str) -> bool:
        """True if the session's role grants the capability."""
        if staff is None:
            return False
        return capability in ROLE_CAPABILITIES.get(staff.role, frozenset())
