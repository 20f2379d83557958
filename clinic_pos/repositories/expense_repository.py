# ==============================================================================
# EXPENSE REPOSITORY - expense ledger
# ==============================================================================
# Encapsulates every access to expenses.json (create, list, delete).
# ==============================================================================

from clinic_pos.repositories.base import CollectionRepository


class ExpenseRepository(CollectionRepository):
    """
    Repository of expenses.

    Data format in expenses.json:
    [
        {"id": "c0de...", "amount": 1500.0, "note": "Reagents",
         "date": "2025-01-01T02:00:00+00:00"}
    ]
    """

    FILE_NAME = 'expenses.json'
    SERVER_TIMESTAMP_FIELDS = ('date',)
