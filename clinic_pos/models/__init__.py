# ==============================================================================
# MODELS LAYER - data structures of the system
# ==============================================================================
# Domain entities as dataclasses:
#   - type hints document the shape of every record
#   - to_dict / from_dict keep them independent of the store
# ==============================================================================

from .entities import (
    # Session
    Role,
    StaffSession,

    # Catalog
    Service,

    # Cart
    CartLine,
    PricingBreakdown,

    # Transactions
    Transaction,
    TransactionLine,

    # Expenses
    Expense,

    # Dashboard
    DatePreset,
    ChartPoint,
)

__all__ = [
    'Role',
    'StaffSession',
    'Service',
    'CartLine',
    'PricingBreakdown',
    'Transaction',
    'TransactionLine',
    'Expense',
    'DatePreset',
    'ChartPoint',
]
