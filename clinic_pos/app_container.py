# ==============================================================================
# DEPENDENCY CONTAINER - service wiring
# ==============================================================================
# Central place where repositories and services are built. Routes ask the
# container for a service instead of building one, which gives:
#   - a single instance of every repository (one lock per JSON file)
#   - tests that point the whole app at a temporary directory
#   - a store swap (hosted database) that only touches this file
# ==============================================================================

import os
from typing import Optional

# ═══════════════════════════════════════════════════════════════════════════
# REPOSITORIES - persistence (JSON files)
# ═══════════════════════════════════════════════════════════════════════════
from clinic_pos import config
from clinic_pos.repositories import (
    ServiceRepository,
    TransactionRepository,
    ExpenseRepository,
)

# ═══════════════════════════════════════════════════════════════════════════
# SERVICES - business logic
# ═══════════════════════════════════════════════════════════════════════════
from clinic_pos.services import (
    AuthService,
    StaticCredentialProvider,
    CatalogService,
    CartService,
    TransactionService,
    ReceiptService,
    ExpenseService,
    DashboardAggregator,
)


class AppContainer:
    """
    Dependency container of the application.

    Singleton: one instance of every repository and service per process.

    Usage:
        container = AppContainer(base_path='/path/to/data')
        catalog = container.catalog_service
        transactions = container.transaction_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, base_path: str = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, base_path: str = None):
        """
        Args:
            base_path: Directory holding the JSON files (defaults to DATA_DIR)
        """
        if self._initialized:
            return

        self._base_path = base_path or config.DATA_DIR

        # Repositories (lazy)
        self._service_repo: Optional[ServiceRepository] = None
        self._transaction_repo: Optional[TransactionRepository] = None
        self._expense_repo: Optional[ExpenseRepository] = None

        # Services (lazy)
        self._auth_service: Optional[AuthService] = None
        self._catalog_service: Optional[CatalogService] = None
        self._cart_service: Optional[CartService] = None
        self._transaction_service: Optional[TransactionService] = None
        self._receipt_service: Optional[ReceiptService] = None
        self._expense_service: Optional[ExpenseService] = None

        self._initialized = True

    @property
    def base_path(self) -> str:
        return self._base_path

    @property
    def export_dir(self) -> str:
        """Where invoices rendered at checkout are saved."""
        if os.environ.get('CLINIC_POS_EXPORT_DIR'):
            return config.EXPORT_DIR
        if self._base_path != config.DATA_DIR:
            return os.path.join(self._base_path, 'exports')
        return config.EXPORT_DIR

    # =========================================================================
    # REPOSITORIES
    # =========================================================================

    @property
    def service_repo(self) -> ServiceRepository:
        """Catalog repository (singleton)."""
        if self._service_repo is None:
            self._service_repo = ServiceRepository(self._base_path)
        return self._service_repo

    @property
    def transaction_repo(self) -> TransactionRepository:
        """Transaction repository (singleton)."""
        if self._transaction_repo is None:
            self._transaction_repo = TransactionRepository(self._base_path)
        return self._transaction_repo

    @property
    def expense_repo(self) -> ExpenseRepository:
        """Expense repository (singleton)."""
        if self._expense_repo is None:
            self._expense_repo = ExpenseRepository(self._base_path)
        return self._expense_repo

    # =========================================================================
    # SERVICES
    # =========================================================================

    @property
    def auth_service(self) -> AuthService:
        if self._auth_service is None:
            provider = StaticCredentialProvider(config.load_accounts())
            self._auth_service = AuthService(provider)
        return self._auth_service

    @property
    def catalog_service(self) -> CatalogService:
        if self._catalog_service is None:
            self._catalog_service = CatalogService(self.service_repo, self.auth_service)
        return self._catalog_service

    @property
    def cart_service(self) -> CartService:
        if self._cart_service is None:
            self._cart_service = CartService(self.catalog_service)
        return self._cart_service

    @property
    def transaction_service(self) -> TransactionService:
        if self._transaction_service is None:
            self._transaction_service = TransactionService(self.transaction_repo, self.auth_service)
        return self._transaction_service

    @property
    def receipt_service(self) -> ReceiptService:
        if self._receipt_service is None:
            self._receipt_service = ReceiptService(
                logo_path=config.LOGO_PATH,
                font_path=config.RECEIPT_FONT_PATH,
            )
        return self._receipt_service

    @property
    def expense_service(self) -> ExpenseService:
        if self._expense_service is None:
            self._expense_service = ExpenseService(self.expense_repo, self.auth_service)
        return self._expense_service

    def create_dashboard(self, window=None) -> DashboardAggregator:
        """
        New dashboard aggregator over the shared repositories.

        One per viewer; the caller must close() it.
        """
        return DashboardAggregator(
            self.service_repo,
            self.transaction_repo,
            self.expense_repo,
            window=window,
        )

    # =========================================================================
    # UTILITIES
    # =========================================================================

    def reset(self) -> None:
        """Drops every instance (tests, reloading data)."""
        self._service_repo = None
        self._transaction_repo = None
        self._expense_repo = None

        self._auth_service = None
        self._catalog_service = None
        self._cart_service = None
        self._transaction_service = None
        self._receipt_service = None
        self._expense_service = None

    @classmethod
    def get_instance(cls, base_path: str = None) -> 'AppContainer':
        """
        Returns the singleton container.

        Args:
            base_path: Data directory (only used on the first call)
        """
        if cls._instance is None:
            return cls(base_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Removes the singleton (tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(base_path: str = None) -> AppContainer:
    """Returns the global dependency container."""
    return AppContainer.get_instance(base_path)
