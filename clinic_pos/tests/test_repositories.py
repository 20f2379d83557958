import os
from datetime import datetime, timedelta

import pytest

from clinic_pos.repositories.base import StoreError
from conftest import MANILA


def test_create_assigns_id_and_server_timestamp(repos, clock):
    tx_repo = repos['transactions']
    stored = tx_repo.create({'id': 'client-id', 'customer_name': 'Ana', 'finished_at': '1999-01-01'})

    assert stored['id'] != 'client-id'
    assert stored['finished_at'] == clock.now.isoformat()
    assert tx_repo.get_by_id(stored['id'])['customer_name'] == 'Ana'


def test_ids_are_unique(repos):
    ids = {repos['expenses'].create({'amount': 1})['id'] for _ in range(20)}
    assert len(ids) == 20


def test_update_and_delete_missing_return_none(repos):
    services = repos['services']
    assert services.update('missing', {'title': 'x'}) is None
    assert services.delete('missing') is None


def test_transactions_cannot_be_updated(repos):
    with pytest.raises(StoreError, match="immutable"):
        repos['transactions'].update('any', {'total': 0})


def test_find_in_range_is_inclusive(repos, clock):
    expenses = repos['expenses']
    first = expenses.create({'amount': 100})
    clock.advance(days=2)
    expenses.create({'amount': 200})

    start = clock.now - timedelta(days=2)
    hits = expenses.find_in_range('date', start, start)
    assert [e['id'] for e in hits] == [first['id']]


def test_corrupt_file_reads_as_empty(repos):
    services = repos['services']
    with open(services.file_path, 'w', encoding='utf-8') as f:
        f.write('{not json')
    assert services.get_all() == []


def test_write_leaves_no_temp_file(repos):
    services = repos['services']
    services.create({'title': 'CBC', 'price': 350})
    assert not os.path.exists(services.file_path + '.tmp')


def test_watch_delivers_immediately_and_after_each_write(repos):
    services = repos['services']
    services.create({'title': 'CBC', 'price': 350})
    snapshots = []

    sub = services.watch(snapshots.append)
    assert len(snapshots) == 1
    assert len(snapshots[0]) == 1

    services.create({'title': 'X-Ray', 'price': 500})
    assert len(snapshots) == 2
    assert {s['title'] for s in snapshots[-1]} == {'CBC', 'X-Ray'}
    sub.cancel()


def test_watch_filters_by_range(repos, clock):
    expenses = repos['expenses']
    start = clock.now - timedelta(hours=1)
    end = clock.now + timedelta(hours=1)
    snapshots = []
    expenses.watch(snapshots.append, 'date', start, end)

    expenses.create({'amount': 10})
    clock.advance(days=1)
    expenses.create({'amount': 20})

    assert [e['amount'] for e in snapshots[-1]] == [10]


def test_cancel_stops_delivery_and_is_idempotent(repos):
    services = repos['services']
    snapshots = []
    sub = services.watch(snapshots.append)
    assert services.subscription_count == 1

    sub.cancel()
    sub.cancel()
    services.create({'title': 'CBC', 'price': 350})

    assert len(snapshots) == 1
    assert services.subscription_count == 0


def test_failing_listener_does_not_break_write(repos):
    services = repos['services']

    def broken(_records):
        raise RuntimeError('listener failed')

    services.watch(broken)
    stored = services.create({'title': 'CBC', 'price': 350})
    assert services.get_by_id(stored['id']) is not None


def test_naive_and_utc_timestamps_compare(repos):
    from clinic_pos.repositories.base import parse_timestamp

    assert parse_timestamp('2025-03-12T02:30:00') == datetime(2025, 3, 12, 10, 30, tzinfo=MANILA)
    assert parse_timestamp('2025-03-12T02:30:00Z') == datetime(2025, 3, 12, 10, 30, tzinfo=MANILA)
    assert parse_timestamp('yesterday') is None


def test_json_collections_satisfy_store_contracts(repos):
    from clinic_pos.repositories import ICollectionRepository, ISubscription, ITransactionRepository

    for repo in repos.values():
        assert isinstance(repo, ICollectionRepository)
    assert isinstance(repos['transactions'], ITransactionRepository)
    sub = repos['services'].watch(lambda records: None)
    assert isinstance(sub, ISubscription)
    sub.cancel()
