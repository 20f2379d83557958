# ==============================================================================
# SERVICE LAYER - business logic
# ==============================================================================
# Every business rule of the clinic POS lives here.
#
# PRINCIPLES:
# 1. Services orchestrate repositories and apply validation
# 2. Routes (controllers) only call services
# 3. Services do not know how the data is stored
#
# STRUCTURE:
# ├── pricing.py             → Cart builder, breakdown arithmetic, money format
# ├── auth_service.py        → Staff login, roles and capabilities
# ├── catalog_service.py     → Clinic services (catalog)
# ├── cart_service.py        → POS cart kept in the session
# ├── transaction_service.py → Checkout and receipts list
# ├── receipt_service.py     → PDF receipts and invoices
# ├── expense_service.py     → Expense ledger
# ├── dashboard_service.py   → Live revenue / expense summary
# └── local_time.py          → Clinic timezone helpers
# ==============================================================================

from clinic_pos.services.pricing import (
    CartBuilder,
    clamp_discount,
    compute_breakdown,
    format_money,
    parse_amount,
    round2,
)
from clinic_pos.services.auth_service import (
    AuthService,
    CredentialProvider,
    StaticCredentialProvider,
)
from clinic_pos.services.catalog_service import CatalogService
from clinic_pos.services.cart_service import CartService
from clinic_pos.services.transaction_service import TransactionService
from clinic_pos.services.receipt_service import ReceiptService, RenderedDocument
from clinic_pos.services.expense_service import ExpenseService
from clinic_pos.services.dashboard_service import (
    DashboardAggregator,
    DateWindow,
    window_for_preset,
)

__all__ = [
    'CartBuilder',
    'clamp_discount',
    'compute_breakdown',
    'format_money',
    'parse_amount',
    'round2',
    'AuthService',
    'CredentialProvider',
    'StaticCredentialProvider',
    'CatalogService',
    'CartService',
    'TransactionService',
    'ReceiptService',
    'RenderedDocument',
    'ExpenseService',
    'DashboardAggregator',
    'DateWindow',
    'window_for_preset',
]
