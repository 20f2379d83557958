from datetime import datetime, timedelta

import pytest

from clinic_pos.models.entities import DatePreset
from clinic_pos.services.dashboard_service import (
    DashboardAggregator, DateWindow, window_for_preset, with_end_date, with_start_date
)

from conftest import MANILA

NOW = datetime(2025, 3, 12, 10, 30, tzinfo=MANILA)  # Wednesday


@pytest.fixture
def aggregator(repos, clock):
    agg = DashboardAggregator(repos['services'], repos['transactions'], repos['expenses'], clock=clock)
    yield agg
    agg.close()


def sale(repos, total, customer='Ana', service='CBC', **extra):
    record = {
        'customer_name': customer,
        'services': [{'service_id': 's', 'service_name': service, 'details': '', 'price': total}],
        'subtotal': total, 'discount_percent': 0, 'discount_amount': 0, 'total': total,
    }
    record.update(extra)
    return repos['transactions'].create(record)


# ═══════════════════════════════════════════════════════════════════════════
# WINDOWS
# ═══════════════════════════════════════════════════════════════════════════

def test_today_preset():
    window = window_for_preset('today', NOW)
    assert window.start == datetime(2025, 3, 12, tzinfo=MANILA)
    assert window.end == datetime(2025, 3, 12, 23, 59, 59, 999999, tzinfo=MANILA)
    assert window.preset == DatePreset.TODAY


def test_week_starts_on_monday():
    window = window_for_preset(DatePreset.WEEK, NOW)
    assert window.start == datetime(2025, 3, 10, tzinfo=MANILA)
    assert window.end.date() == NOW.date()


def test_last_30_days_and_month():
    assert window_for_preset('last_30_days', NOW).start == datetime(2025, 2, 10, tzinfo=MANILA)
    assert window_for_preset('month', NOW).start == datetime(2025, 3, 1, tzinfo=MANILA)


def test_unknown_preset():
    with pytest.raises(ValueError):
        window_for_preset('fortnight', NOW)
    with pytest.raises(ValueError):
        window_for_preset('custom', NOW)


def test_start_after_end_pushes_end():
    window = window_for_preset('today', NOW)
    moved = with_start_date(window, '2025-03-20')
    assert moved.start == datetime(2025, 3, 20, tzinfo=MANILA)
    assert moved.end == datetime(2025, 3, 20, 23, 59, 59, 999999, tzinfo=MANILA)
    assert moved.preset == DatePreset.CUSTOM


def test_end_before_start_pulls_start():
    window = window_for_preset('week', NOW)
    moved = with_end_date(window, '2025-03-01')
    assert moved.start == datetime(2025, 3, 1, tzinfo=MANILA)
    assert moved.end == datetime(2025, 3, 1, 23, 59, 59, 999999, tzinfo=MANILA)


def test_invalid_date():
    with pytest.raises(ValueError):
        with_start_date(window_for_preset('today', NOW), 'not-a-date')


# ═══════════════════════════════════════════════════════════════════════════
# AGGREGATOR
# ═══════════════════════════════════════════════════════════════════════════

def test_summary_totals(aggregator, repos):
    repos['services'].create({'title': 'CBC', 'available': True})
    repos['services'].create({'title': 'MRI', 'available': False})
    sale(repos, 720)
    sale(repos, 280, customer='Ben', service='X-Ray')
    repos['expenses'].create({'amount': 150.5})

    summary = aggregator.summary()
    assert summary['total_services'] == 2
    assert summary['available_services'] == 1
    assert summary['revenue'] == 1000.0
    assert summary['expense_total'] == 150.5
    assert summary['net'] == 849.5
    assert summary['transaction_count'] == 2


def test_legacy_price_counts_as_revenue(aggregator, repos):
    repos['transactions'].create({'customer_name': 'Old', 'service_name': 'CBC', 'price': 350})
    assert aggregator.summary()['revenue'] == 350.0


def test_series_is_time_ordered(aggregator, repos, clock):
    sale(repos, 100, customer='First')
    clock.advance(minutes=30)
    sale(repos, 200, customer='Second', service='X-Ray')

    series = aggregator.summary()['series']
    assert [p['customer_label'] for p in series] == ['First', 'Second']
    assert series[1]['service_label'] == 'X-Ray'
    assert series[1]['amount'] == 200.0
    assert series[0]['label'] == 'Mar 12, 2025 10:30'


def test_today_after_custom_range(aggregator, repos, clock):
    clock.now = NOW - timedelta(days=5)
    sale(repos, 500, customer='Old visit')
    clock.now = NOW
    sale(repos, 120, customer='Today visit')

    aggregator.set_start_date('2025-03-01')
    aggregator.set_end_date('2025-03-12')
    assert aggregator.summary()['revenue'] == 620.0

    summary = aggregator.set_preset('today')
    assert aggregator.window == window_for_preset('today', NOW)
    assert summary['revenue'] == 120.0
    assert [p['customer_label'] for p in summary['series']] == ['Today visit']


def test_window_change_replaces_subscriptions(aggregator, repos):
    assert repos['transactions'].subscription_count == 1
    aggregator.set_preset('today')
    aggregator.set_preset('week')
    assert repos['transactions'].subscription_count == 1
    assert repos['expenses'].subscription_count == 1


def test_listeners_receive_updates(aggregator, repos):
    received = []
    unsubscribe = aggregator.add_listener(received.append)

    sale(repos, 300)
    assert received[-1]['revenue'] == 300.0

    unsubscribe()
    sale(repos, 300)
    assert len(received) == 1


def test_close_cancels_everything(repos, clock):
    agg = DashboardAggregator(repos['services'], repos['transactions'], repos['expenses'], clock=clock)
    agg.close()
    agg.close()
    assert repos['services'].subscription_count == 0
    assert repos['transactions'].subscription_count == 0
    assert repos['expenses'].subscription_count == 0
    with pytest.raises(RuntimeError):
        agg.set_preset('today')


def test_out_of_window_writes_do_not_count(repos, clock):
    window = DateWindow(NOW - timedelta(days=1), NOW + timedelta(hours=1))
    agg = DashboardAggregator(repos['services'], repos['transactions'], repos['expenses'],
                              window=window, clock=clock)
    clock.advance(days=3)
    sale(repos, 999)
    repos['expenses'].create({'amount': 50})
    assert agg.summary()['revenue'] == 0.0
    assert agg.summary()['expense_total'] == 0.0
    agg.close()
