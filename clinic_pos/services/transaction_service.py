# ==============================================================================
# TRANSACTION SERVICE
# ==============================================================================
# Turns a finished cart into one immutable transaction record.
#
# RULES:
# - The breakdown is recomputed here; totals sent by the client are ignored.
# - Each line is stored as a snapshot (service_id, service_name, details,
#   price), so later catalog edits never change a past transaction.
# - finished_at is stamped by the store at write time.
# - A failed write is reported, never retried, and the cart is left as it is.
# - A submission token makes checkout idempotent (double clicks).
# ==============================================================================

import threading
from typing import Any, Dict, Iterable, List, Optional, Union

from clinic_pos.models.entities import CartLine, StaffSession, Transaction
from clinic_pos.performance_logger import profile_function
from clinic_pos.repositories.base import StoreError
from clinic_pos.repositories.interfaces import ITransactionRepository
from clinic_pos.services.auth_service import AuthService, CAP_DELETE_TRANSACTION
from clinic_pos.services.pricing import compute_breakdown


class TransactionService:
    """
    Service for committed sales.

    Responsibilities:
    - Validate and commit a cart (the only way to create a transaction)
    - Guard against duplicate submissions
    - List / fetch transactions for the receipts page
    - Delete (admin only)
    """

    def __init__(self, transaction_repo: ITransactionRepository, auth_service: AuthService):
        """
        Args:
            transaction_repo: Repository of transactions
            auth_service: Used for the capability check on delete
        """
        self.transaction_repo = transaction_repo
        self.auth_service = auth_service
        self._in_flight = set()
        self._in_flight_lock = threading.Lock()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @staticmethod
    def validate_checkout(customer_name: str, lines: List[Any]) -> Optional[str]:
        """Returns the validation message, or None if the cart can be committed."""
        if not isinstance(customer_name, str) or not customer_name.strip():
            return 'Please enter customer name'
        if not lines:
            return 'Please add at least one service'
        return None

    @staticmethod
    def _snapshot(line: Union[CartLine, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(line, dict):
            line = CartLine.from_dict(line)
        return {
            'service_id': line.service_id,
            'service_name': line.title,
            'details': line.details or '',
            'price': line.price,
        }

    # =========================================================================
    # COMMIT
    # =========================================================================

    @profile_function(name="Commit transaction")
    def commit(
        self,
        customer_name: str,
        lines: Iterable[Union[CartLine, Dict[str, Any]]],
        discount_percent: Any = 0,
        submission_token: str = None
    ) -> Dict[str, Any]:
        """
        Commits a cart as a transaction.

        Args:
            customer_name: Customer typed at the POS (required)
            lines: Cart lines (at least one)
            discount_percent: Requested discount, clamped to [0, 100]
            submission_token: Idempotency key of this checkout

        Returns:
            {'ok': True, 'transaction_id', 'transaction', 'duplicate'} or
            {'ok': False, 'error': str}
        """
        lines = list(lines or [])
        error = self.validate_checkout(customer_name, lines)
        if error:
            return {'ok': False, 'error': error, 'validation': True}

        token = str(submission_token or '').strip() or None
        if token:
            with self._in_flight_lock:
                if token in self._in_flight:
                    return {'ok': False, 'error': 'This checkout is already being processed', 'validation': True}
                self._in_flight.add(token)

        try:
            if token:
                existing = self.transaction_repo.get_by_submission_token(token)
                if existing:
                    return {
                        'ok': True,
                        'transaction_id': existing['id'],
                        'transaction': existing,
                        'duplicate': True,
                    }

            snapshots = [self._snapshot(line) for line in lines]
            breakdown = compute_breakdown((s['price'] for s in snapshots), discount_percent)

            record = {
                'customer_name': customer_name.strip(),
                'services': snapshots,
                **breakdown.to_dict(),
            }
            if token:
                record['submission_token'] = token

            stored = self.transaction_repo.create(record)
        except StoreError as e:
            print(f"[ERROR CHECKOUT] {e}")
            return {'ok': False, 'error': 'Failed to create invoice. Please try again.', 'store_error': True}
        finally:
            if token:
                with self._in_flight_lock:
                    self._in_flight.discard(token)

        return {
            'ok': True,
            'transaction_id': stored['id'],
            'transaction': stored,
            'duplicate': False,
        }

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        data = self.transaction_repo.get_by_id(transaction_id)
        if not data:
            return None
        return Transaction.from_dict(data)

    def list_transactions(self) -> List[Transaction]:
        """All transactions, newest first."""
        transactions = [Transaction.from_dict(d) for d in self.transaction_repo.get_all()]
        transactions.sort(key=lambda t: t.finished_at or '', reverse=True)
        return transactions

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete_transaction(self, transaction_id: str, staff: Optional[StaffSession]) -> Dict[str, Any]:
        """Deletes a transaction (admin only)."""
        if not self.auth_service.can(staff, CAP_DELETE_TRANSACTION):
            return {'ok': False, 'error': 'Only admin can delete receipts.', 'forbidden': True}

        try:
            removed = self.transaction_repo.delete(transaction_id)
        except StoreError as e:
            print(f"[ERROR TRANSACTION DELETE] {e}")
            return {'ok': False, 'error': 'Failed to delete receipt. Please try again.', 'store_error': True}
        if removed is None:
            return {'ok': False, 'error': 'Receipt not found', 'not_found': True}

        return {'ok': True, 'transaction_id': transaction_id}
