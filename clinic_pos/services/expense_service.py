# ==============================================================================
# EXPENSE SERVICE
# ==============================================================================
# Free-form ledger of clinic expenses. The running total is recomputed from
# the stored entries on every read, never kept as a separate number.
# ==============================================================================

from typing import Any, Dict, List, Optional

from clinic_pos.models.entities import Expense, StaffSession
from clinic_pos.repositories.base import StoreError
from clinic_pos.repositories.expense_repository import ExpenseRepository
from clinic_pos.services.auth_service import AuthService, CAP_DELETE_EXPENSE
from clinic_pos.services.pricing import parse_amount, round2

DEFAULT_NOTE = 'No details'


class ExpenseService:
    """
    Service for the expense ledger.

    Responsibilities:
    - Validate and record expenses
    - List them with the running total
    - Delete (admin only)
    """

    def __init__(self, expense_repo: ExpenseRepository, auth_service: AuthService):
        self.expense_repo = expense_repo
        self.auth_service = auth_service

    @staticmethod
    def validate_amount(raw: Any) -> Optional[str]:
        """Returns the validation message for an amount, or None if it is valid."""
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return 'Amount is required'
        amount = parse_amount(raw)
        if amount is None:
            return 'Amount must be a number'
        if amount <= 0:
            return 'Amount must be greater than zero'
        return None

    def add_expense(self, amount: Any, note: str = None) -> Dict[str, Any]:
        """
        Records an expense dated now by the store.

        Args:
            amount: Amount as typed ("1,500.00", 1500, ...)
            note: Free text, defaults to "No details"

        Returns:
            {'ok': True, 'expense': dict} or {'ok': False, 'error': str}
        """
        error = self.validate_amount(amount)
        if error:
            return {'ok': False, 'error': error, 'validation': True}

        record = {
            'amount': round2(parse_amount(amount)),
            'note': str(note or '').strip() or DEFAULT_NOTE,
        }
        try:
            stored = self.expense_repo.create(record)
        except StoreError as e:
            print(f"[ERROR EXPENSE] {e}")
            return {'ok': False, 'error': 'Failed to add expense. Please try again.', 'store_error': True}

        return {'ok': True, 'expense': stored}

    def list_expenses(self) -> List[Expense]:
        """Every expense in insertion order."""
        return [Expense.from_dict(d) for d in self.expense_repo.get_all()]

    def get_ledger(self) -> Dict[str, Any]:
        expenses = self.list_expenses()
        return {
            'expenses': [e.to_dict() for e in expenses],
            'total': round2(sum(e.amount for e in expenses)),
        }

    def delete_expense(self, expense_id: str, staff: Optional[StaffSession]) -> Dict[str, Any]:
        """Deletes an expense (admin only)."""
        if not self.auth_service.can(staff, CAP_DELETE_EXPENSE):
            return {'ok': False, 'error': 'Only admin can delete expenses.', 'forbidden': True}

        try:
            removed = self.expense_repo.delete(expense_id)
        except StoreError as e:
            print(f"[ERROR EXPENSE DELETE] {e}")
            return {'ok': False, 'error': 'Failed to delete expense. Please try again.', 'store_error': True}
        if removed is None:
            return {'ok': False, 'error': 'Expense not found', 'not_found': True}

        return {'ok': True, 'expense_id': expense_id}
