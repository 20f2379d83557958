# ==============================================================================
# TRANSACTION REPOSITORY - committed sales
# ==============================================================================
# Encapsulates every access to transactions.json.
# Transactions are immutable: update raises StoreError, leaving create and the
# administrative delete inherited from the base class.
# ==============================================================================

from typing import Any, Dict, Optional

from clinic_pos.repositories.base import CollectionRepository, StoreError


class TransactionRepository(CollectionRepository):
    """
    Repository of transactions.

    Data format in transactions.json:
    [
        {
            "id": "a41b...",
            "customer_name": "Juan Dela Cruz",
            "services": [{"service_id": "...", "service_name": "CBC",
                          "details": "", "price": 350.0}],
            "subtotal": 350.0,
            "discount_percent": 0,
            "discount_amount": 0.0,
            "total": 350.0,
            "finished_at": "2025-01-01T02:00:00+00:00"
        }
    ]
    """

    FILE_NAME = 'transactions.json'
    SERVER_TIMESTAMP_FIELDS = ('finished_at',)

    def update(self, record_id, updates):
        raise StoreError('Transactions are immutable')

    def get_by_submission_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Transaction created by a given checkout submission, if any."""
        if not token:
            return None
        return self.find_by('submission_token', token)
