# ==============================================================================
# DOMAIN ENTITIES - dataclass definitions
# ==============================================================================
# Each entity is one business concept of the clinic POS.
# They are independent of the persistence mechanism: the store keeps plain
# dicts (to_dict) and the services rebuild entities when they need behaviour
# (from_dict).
# ==============================================================================

from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any
from enum import Enum


# ==============================================================================
# ENUMERATIONS
# ==============================================================================

class Role(str, Enum):
    """Staff roles. Only the admin may delete records."""
    ADMIN = "admin"
    STAFF = "staff"


class DatePreset(str, Enum):
    """Dashboard date-window presets."""
    TODAY = "today"
    WEEK = "week"                  # Monday of this week -> end of today
    LAST_30_DAYS = "last_30_days"
    MONTH = "month"                # first day of this month -> end of today
    CUSTOM = "custom"


# ==============================================================================
# SESSION
# ==============================================================================

@dataclass(frozen=True)
class StaffSession:
    """
    Logged-in staff member.

    Created at login, cleared at logout, and handed explicitly to the
    services that perform privileged actions.

    Attributes:
        email: Login e-mail of the staff member
        role: Role that defines the capabilities
    """
    email: str
    role: Role = Role.STAFF

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        """Serialises for the signed session cookie."""
        return {'email': self.email, 'role': self.role.value}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional['StaffSession']:
        """Rebuilds a session; returns None when no role is present."""
        if not data or not data.get('role'):
            return None
        try:
            role = Role(data['role'])
        except ValueError:
            return None
        return cls(email=data.get('email', ''), role=role)


# ==============================================================================
# CATALOG
# ==============================================================================

@dataclass
class Service:
    """
    An offerable clinic service.

    Attributes:
        id: Document id assigned by the store
        title: Service name
        details: Short description
        price: Non-negative price in pesos
        available: Whether the service may enter a cart
        created_at: ISO timestamp of creation
        updated_at: ISO timestamp of the last edit
    """
    id: str
    title: str
    details: str = ''
    price: float = 0.0
    available: bool = True
    created_at: str = ''
    updated_at: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'details': self.details,
            'price': self.price,
            'available': self.available,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Service':
        return cls(
            id=data.get('id', ''),
            title=str(data.get('title') or ''),
            # older records used "detail"
            details=str(data.get('details') or data.get('detail') or ''),
            price=float(data.get('price', 0) or 0),
            available=bool(data.get('available', True)),
            created_at=data.get('created_at', ''),
            updated_at=data.get('updated_at', ''),
        )


# ==============================================================================
# CART
# ==============================================================================

@dataclass
class CartLine:
    """
    One selected service inside an unpersisted cart.

    The price is a copy taken when the line was added. ``added_at`` is the
    removal key: the same service may appear on several lines.
    """
    service_id: str
    title: str
    details: str
    price: float
    added_at: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'service_id': self.service_id,
            'title': self.title,
            'details': self.details,
            'price': self.price,
            'added_at': self.added_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLine':
        return cls(
            service_id=data.get('service_id', ''),
            title=data.get('title', ''),
            details=data.get('details', ''),
            price=float(data.get('price', 0) or 0),
            added_at=int(data.get('added_at', 0)),
        )


@dataclass(frozen=True)
class PricingBreakdown:
    """Subtotal / discount / total triple derived from a cart or transaction."""
    subtotal: float
    discount_percent: float
    discount_amount: float
    total: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subtotal': self.subtotal,
            'discount_percent': self.discount_percent,
            'discount_amount': self.discount_amount,
            'total': self.total,
        }


# ==============================================================================
# TRANSACTIONS
# ==============================================================================

@dataclass(frozen=True)
class TransactionLine:
    """Snapshot of one sold service, frozen at commit time."""
    service_id: str
    service_name: str
    details: str
    price: float

    @property
    def label(self) -> str:
        """``name — details`` when details are present, else the name."""
        if self.details:
            return f"{self.service_name} — {self.details}"
        return self.service_name

    def to_dict(self) -> Dict[str, Any]:
        return {
            'service_id': self.service_id,
            'service_name': self.service_name,
            'details': self.details,
            'price': self.price,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransactionLine':
        return cls(
            service_id=data.get('service_id', ''),
            service_name=data.get('service_name', ''),
            details=data.get('details', ''),
            price=float(data.get('price', 0) or 0),
        )


@dataclass
class Transaction:
    """
    A committed sale.

    Attributes:
        id: Document id assigned by the store
        customer_name: Name typed at the POS
        services: Line snapshots
        subtotal: Sum of line prices
        discount_percent: Clamped discount (0..100)
        discount_amount: round2(subtotal * pct / 100)
        total: round2(subtotal - discount_amount)
        finished_at: ISO timestamp stamped by the store at write time
        submission_token: Idempotency key of the checkout that created it
    """
    id: str
    customer_name: str
    services: List[TransactionLine] = field(default_factory=list)
    subtotal: float = 0.0
    discount_percent: float = 0.0
    discount_amount: float = 0.0
    total: float = 0.0
    finished_at: str = ''
    submission_token: Optional[str] = None

    @property
    def service_names(self) -> str:
        return ', '.join(s.service_name for s in self.services)

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'id': self.id,
            'customer_name': self.customer_name,
            'services': [s.to_dict() for s in self.services],
            'subtotal': self.subtotal,
            'discount_percent': self.discount_percent,
            'discount_amount': self.discount_amount,
            'total': self.total,
            'finished_at': self.finished_at,
        }
        if self.submission_token:
            d['submission_token'] = self.submission_token
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Transaction':
        """
        Builds a transaction from a stored document.

        Legacy single-service documents ({service_name, price}) are turned into
        a one-line transaction without discount.
        """
        lines = [TransactionLine.from_dict(s) for s in data.get('services') or []]
        if not lines and data.get('service_name'):
            lines = [TransactionLine(
                service_id=data.get('service_id', ''),
                service_name=data['service_name'],
                details='',
                price=float(data.get('price', 0) or 0),
            )]
        subtotal = data.get('subtotal')
        if subtotal is None:
            subtotal = sum(line.price for line in lines)
        total = data.get('total')
        if total is None:
            total = data.get('price', subtotal)
        return cls(
            id=data.get('id', ''),
            customer_name=data.get('customer_name', ''),
            services=lines,
            subtotal=float(subtotal or 0),
            discount_percent=float(data.get('discount_percent', 0) or 0),
            discount_amount=float(data.get('discount_amount', 0) or 0),
            total=float(total or 0),
            finished_at=data.get('finished_at', ''),
            submission_token=data.get('submission_token'),
        )


# ==============================================================================
# EXPENSES
# ==============================================================================

@dataclass
class Expense:
    """A dated expense entry of the ledger."""
    id: str
    amount: float
    note: str = 'No details'
    date: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'amount': self.amount,
            'note': self.note,
            'date': self.date,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Expense':
        return cls(
            id=data.get('id', ''),
            amount=float(data.get('amount', 0) or 0),
            note=data.get('note') or 'No details',
            date=data.get('date', ''),
        )


# ==============================================================================
# DASHBOARD
# ==============================================================================

@dataclass(frozen=True)
class ChartPoint:
    """One transaction on the revenue chart."""
    timestamp: str
    label: str
    amount: float
    service_label: str
    customer_label: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'label': self.label,
            'amount': self.amount,
            'service_label': self.service_label,
            'customer_label': self.customer_label,
        }
