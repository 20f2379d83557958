import pytest

from clinic_pos.services.expense_service import ExpenseService

from conftest import ADMIN, STAFF


@pytest.fixture
def ledger(repos, auth_service):
    return ExpenseService(repos['expenses'], auth_service)


@pytest.mark.parametrize('amount, error', [
    ('abc', 'Amount must be a number'),
    ('', 'Amount is required'),
    (None, 'Amount is required'),
    ('0', 'Amount must be greater than zero'),
    (-50, 'Amount must be greater than zero'),
    ('1e400', 'Amount must be a number'),
])
def test_invalid_amount_is_rejected(ledger, repos, amount, error):
    result = ledger.add_expense(amount, 'Reagents')
    assert result['ok'] is False
    assert result['error'] == error
    assert repos['expenses'].get_all() == []


def test_add_expense_defaults_note(ledger, clock):
    result = ledger.add_expense('1,500.75')
    assert result['ok'] is True
    assert result['expense']['amount'] == 1500.75
    assert result['expense']['note'] == 'No details'
    assert result['expense']['date'] == clock.now.isoformat()


def test_ledger_total_is_recomputed(ledger):
    ledger.add_expense(100.10, 'Gloves')
    ledger.add_expense('200.20', 'Syringes')
    expense_id = ledger.add_expense(50, 'Paper')['expense']['id']

    book = ledger.get_ledger()
    assert [e['note'] for e in book['expenses']] == ['Gloves', 'Syringes', 'Paper']
    assert book['total'] == 350.30

    ledger.delete_expense(expense_id, ADMIN)
    assert ledger.get_ledger()['total'] == 300.30


def test_staff_cannot_delete_expense(ledger, repos):
    expense_id = ledger.add_expense(100)['expense']['id']
    result = ledger.delete_expense(expense_id, STAFF)
    assert result['forbidden'] is True
    assert len(repos['expenses'].get_all()) == 1


def test_delete_missing_expense(ledger):
    result = ledger.delete_expense('missing', ADMIN)
    assert result['ok'] is False
    assert result['not_found'] is True


def test_non_text_note_is_kept_as_text(ledger):
    result = ledger.add_expense(75, 42)
    assert result['ok'] is True
    assert result['expense']['note'] == '42'
