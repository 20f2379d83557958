# ==============================================================================
# REPOSITORY LAYER - data access
# ==============================================================================
# This layer wraps every access to the document store (JSON files today).
# Moving to a hosted database only touches this package.
#
# STRUCTURE:
# ├── interfaces.py              → Protocols (contracts for other stores)
# ├── base.py                    → JSON collections, ids, timestamps, watch()
# ├── service_repository.py      → services.json
# ├── transaction_repository.py  → transactions.json
# └── expense_repository.py      → expenses.json
# ==============================================================================

from .interfaces import (
    ISubscription,
    ICollectionRepository,
    ITransactionRepository,
)

from .base import (
    StoreError,
    BaseRepository,
    CollectionRepository,
    Subscription,
    parse_timestamp,
    utc_now,
)
from .service_repository import ServiceRepository
from .transaction_repository import TransactionRepository
from .expense_repository import ExpenseRepository

__all__ = [
    # Interfaces
    'ISubscription',
    'ICollectionRepository',
    'ITransactionRepository',

    # Base classes
    'StoreError',
    'BaseRepository',
    'CollectionRepository',
    'Subscription',
    'parse_timestamp',
    'utc_now',

    # JSON implementations
    'ServiceRepository',
    'TransactionRepository',
    'ExpenseRepository',
]
