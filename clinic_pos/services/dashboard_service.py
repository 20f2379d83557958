# ==============================================================================
# DASHBOARD SERVICE - live revenue / expense summary
# ==============================================================================
# Keeps a date window [start, end] in clinic time and three live queries:
#
#   services      whole catalog (counters do not depend on the window)
#   transactions  finished_at inside the window
#   expenses      date inside the window
#
# Changing the window cancels the two windowed queries and subscribes again,
# so results of an old window can never reach the summary. Every snapshot
# recomputes the summary and pushes it to the listeners.
#
# PRESETS:
#   today          start of today    -> end of today
#   week           Monday 00:00      -> end of today
#   last_30_days   30 days ago 00:00 -> end of today  (default)
#   month          1st of the month  -> end of today
# ==============================================================================

import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Union

from clinic_pos.models.entities import ChartPoint, DatePreset, Transaction
from clinic_pos.repositories.interfaces import ICollectionRepository
from clinic_pos.services.local_time import (
    clinic_timezone, end_of_day, now_local, start_of_day, to_local
)
from clinic_pos.services.pricing import round2

DateLike = Union[date, datetime, str]


@dataclass(frozen=True)
class DateWindow:
    """Inclusive date window in clinic time."""
    start: datetime
    end: datetime
    preset: DatePreset = DatePreset.CUSTOM

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'preset': self.preset.value,
        }


def parse_date(value: DateLike) -> Optional[datetime]:
    """
    Turns a date, a datetime or a 'YYYY-MM-DD' / ISO string into an aware
    datetime in clinic time. Returns None when it cannot be parsed.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=clinic_timezone())
        return value.astimezone(clinic_timezone())
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=clinic_timezone())
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    return parse_date(parsed)


def window_for_preset(preset: Union[DatePreset, str], now: datetime = None) -> DateWindow:
    """
    Window of a preset relative to now.

    Args:
        preset: 'today', 'week', 'last_30_days' or 'month'
        now: Current clinic time (defaults to the real clock)

    Raises:
        ValueError: If the preset is unknown or 'custom'
    """
    preset = DatePreset(preset)
    now = parse_date(now) if now is not None else now_local()
    today_start = start_of_day(now)
    today_end = end_of_day(now)

    if preset == DatePreset.TODAY:
        return DateWindow(today_start, today_end, preset)
    if preset == DatePreset.WEEK:
        return DateWindow(today_start - timedelta(days=now.weekday()), today_end, preset)
    if preset == DatePreset.LAST_30_DAYS:
        return DateWindow(today_start - timedelta(days=30), today_end, preset)
    if preset == DatePreset.MONTH:
        return DateWindow(today_start.replace(day=1), today_end, preset)
    raise ValueError('A custom window needs explicit start and end dates')


def with_start_date(window: DateWindow, value: DateLike) -> DateWindow:
    """New custom window starting at the start of that day; end is pushed forward if needed."""
    start = start_of_day(_require_date(value))
    end = window.end
    if end < start:
        end = end_of_day(start)
    return DateWindow(start, end, DatePreset.CUSTOM)


def with_end_date(window: DateWindow, value: DateLike) -> DateWindow:
    """New custom window ending at the end of that day; start is pulled back if needed."""
    end = end_of_day(_require_date(value))
    start = window.start
    if start > end:
        start = start_of_day(end)
    return DateWindow(start, end, DatePreset.CUSTOM)


def _require_date(value: DateLike) -> datetime:
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f'Invalid date: {value!r}')
    return parsed


def transaction_revenue(record: Dict[str, Any]) -> float:
    """Revenue of one stored transaction; legacy records carry a single price."""
    price = record.get('price')
    if price is None:
        price = record.get('total')
    try:
        return float(price or 0)
    except (TypeError, ValueError):
        return 0.0


def build_series(transactions: List[Dict[str, Any]]) -> List[ChartPoint]:
    """One chart point per transaction, ordered by finished_at."""
    points = []
    for record in transactions:
        finished = to_local(record.get('finished_at'))
        if finished is None:
            continue
        tx = Transaction.from_dict(record)
        points.append((finished, ChartPoint(
            timestamp=finished.isoformat(),
            label=finished.strftime('%b %d, %Y %H:%M'),
            amount=round2(transaction_revenue(record)),
            service_label=tx.service_names or 'Service',
            customer_label=tx.customer_name or 'Customer',
        )))
    points.sort(key=lambda p: p[0])
    return [p for _, p in points]


class DashboardAggregator:
    """
    Live dashboard state over a date window.

    Usage:
        aggregator = DashboardAggregator(service_repo, transaction_repo, expense_repo)
        unsubscribe = aggregator.add_listener(print)
        aggregator.set_preset('today')
        ...
        aggregator.close()
    """

    def __init__(
        self,
        service_repo: ICollectionRepository,
        transaction_repo: ICollectionRepository,
        expense_repo: ICollectionRepository,
        window: DateWindow = None,
        clock: Callable[[], datetime] = None
    ):
        """
        Args:
            service_repo: Catalog collection
            transaction_repo: Transactions collection
            expense_repo: Expenses collection
            window: Initial window (defaults to the last 30 days)
            clock: Current clinic time, used by the presets
        """
        self.service_repo = service_repo
        self.transaction_repo = transaction_repo
        self.expense_repo = expense_repo
        self._clock = clock or now_local
        self._lock = threading.RLock()
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []

        self._services: List[Dict[str, Any]] = []
        self._transactions: List[Dict[str, Any]] = []
        self._expenses: List[Dict[str, Any]] = []
        self._summary: Dict[str, Any] = {}
        self._closed = False

        self.window = window or window_for_preset(DatePreset.LAST_30_DAYS, self._clock())
        self._transaction_sub = None
        self._expense_sub = None

        self._muted = True
        self._service_sub = self.service_repo.watch(self._on_services)
        self._subscribe_window()
        self._muted = False
        self._recompute()

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def _subscribe_window(self) -> None:
        for sub in (self._transaction_sub, self._expense_sub):
            if sub is not None:
                sub.cancel()
        self._transaction_sub = self.transaction_repo.watch(
            self._on_transactions, 'finished_at', self.window.start, self.window.end
        )
        self._expense_sub = self.expense_repo.watch(
            self._on_expenses, 'date', self.window.start, self.window.end
        )

    def _on_services(self, records: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._services = records
        self._recompute()

    def _on_transactions(self, records: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._transactions = records
        self._recompute()

    def _on_expenses(self, records: List[Dict[str, Any]]) -> None:
        with self._lock:
            self._expenses = records
        self._recompute()

    # =========================================================================
    # WINDOW
    # =========================================================================

    def set_window(self, window: DateWindow) -> Dict[str, Any]:
        """Replaces the window, subscribes again and returns the new summary."""
        with self._lock:
            if self._closed:
                raise RuntimeError('Dashboard aggregator is closed')
            self.window = window
            self._muted = True
            try:
                self._transactions = []
                self._expenses = []
                self._subscribe_window()
            finally:
                self._muted = False
        self._recompute()
        return self.summary()

    def set_preset(self, preset: Union[DatePreset, str]) -> Dict[str, Any]:
        return self.set_window(window_for_preset(preset, self._clock()))

    def set_start_date(self, value: DateLike) -> Dict[str, Any]:
        return self.set_window(with_start_date(self.window, value))

    def set_end_date(self, value: DateLike) -> Dict[str, Any]:
        return self.set_window(with_end_date(self.window, value))

    # =========================================================================
    # SUMMARY
    # =========================================================================

    def _recompute(self) -> None:
        with self._lock:
            if self._muted or self._closed:
                return
            revenue = round2(sum(transaction_revenue(tx) for tx in self._transactions))
            expense_total = round2(sum(_amount(e) for e in self._expenses))
            self._summary = {
                'window': self.window.to_dict(),
                'total_services': len(self._services),
                'available_services': sum(1 for s in self._services if s.get('available')),
                'transaction_count': len(self._transactions),
                'revenue': revenue,
                'expense_total': expense_total,
                'net': round2(revenue - expense_total),
                'series': [p.to_dict() for p in build_series(self._transactions)],
            }
            summary = dict(self._summary)
            listeners = list(self._listeners)

        for listener in listeners:
            listener(summary)

    def summary(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._summary)

    def add_listener(self, callback: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """
        Registers a callback receiving the summary after every recompute.

        Returns:
            Function removing the listener
        """
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def close(self) -> None:
        """Cancels every live query. Safe to call more than once."""
        with self._lock:
            self._closed = True
            self._listeners.clear()
            subs = (self._service_sub, self._transaction_sub, self._expense_sub)
        for sub in subs:
            if sub is not None:
                sub.cancel()


def _amount(record: Dict[str, Any]) -> float:
    try:
        return float(record.get('amount') or 0)
    except (TypeError, ValueError):
        return 0.0
