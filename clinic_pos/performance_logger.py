# ==============================================================================
# INTERNAL PROFILING AND ERROR LOG
# ==============================================================================
# Measures route and function timings without affecting the user, and keeps
# a readable error log for failures that are handled (logo not found, PDF
# rendering failed after a checkout, ...). Logs are written to LOGS_DIR.
#
# ENABLE / DISABLE: CLINIC_POS_PROFILING environment variable
# ==============================================================================

import os
import time
import threading
import traceback
from datetime import datetime
from functools import wraps

from clinic_pos import config

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = config.ENABLE_PROFILING

# Thresholds in milliseconds
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

LOGS_DIR = config.LOGS_DIR

PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')
ERRORS_LOG = os.path.join(LOGS_DIR, 'errors.log')

# Readable names for the log entries
ROUTE_NAMES = {
    # Session
    'POST /api/login': 'Log in',
    'POST /api/logout': 'Log out',

    # Catalog
    'GET /api/services': 'List services',
    'POST /api/services': 'Create service',
    'POST /api/services/<service_id>': 'Edit service',
    'POST /api/services/<service_id>/toggle': 'Toggle availability',
    'POST /api/services/<service_id>/delete': 'Delete service',

    # POS
    'GET /api/cart': 'View cart',
    'POST /api/cart/add': 'Add to cart',
    'POST /api/cart/remove': 'Remove from cart',
    'POST /api/cart/clear': 'Empty cart',
    'POST /api/cart/checkout': 'Checkout',

    # Receipts
    'GET /api/transactions': 'List receipts',
    'POST /api/transactions/<transaction_id>/delete': 'Delete receipt',
    'GET /transactions/<transaction_id>/receipt.pdf': 'Download receipt',
    'GET /transactions/<transaction_id>/invoice.pdf': 'Download invoice',

    # Expenses
    'GET /api/expenses': 'List expenses',
    'POST /api/expenses': 'Add expense',
    'POST /api/expenses/<expense_id>/delete': 'Delete expense',

    # Dashboard
    'GET /api/dashboard': 'View dashboard',
    'GET /api/dashboard/stream': 'Dashboard live stream',
}


_write_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# WRITING
# ═══════════════════════════════════════════════════════════════════════════

def _get_timestamp():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _write_log(filepath, content):
    """Appends to a log file (thread-safe)."""
    try:
        with _write_lock:
            os.makedirs(os.path.dirname(filepath), exist_ok=True)
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(content)
    except OSError:
        # the log must never take a request down with it
        pass


def _get_route_name(method, path, rule=None):
    """
    Readable name of a route.
    Tries an exact match, then the Flask rule, then falls back to the path.
    """
    key = f"{method} {path}"
    if key in ROUTE_NAMES:
        return ROUTE_NAMES[key]

    if rule:
        rule_key = f"{method} {rule}"
        if rule_key in ROUTE_NAMES:
            return ROUTE_NAMES[rule_key]

    return key


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ ROUTE PROFILING
# ═══════════════════════════════════════════════════════════════════════════

def log_route_performance(method, path, rule, time_ms, user=None):
    """
    Records the timing of one request in performance.log

    Args:
        method: GET, POST, ...
        path: Requested path (/api/cart/add)
        rule: Flask rule (/api/services/<service_id>)
        time_ms: Elapsed milliseconds
        user: Staff e-mail, if logged in
    """
    if not ENABLE_PROFILING:
        return

    log_entry = f"""
════════════════════════════════════════
[PERFORMANCE] {_get_timestamp()}
────────────────────────────────────────
Action: {_get_route_name(method, path, rule)}
User: {user or 'anonymous'}
Route: {method} {path}
Time: {time_ms:.0f} ms
"""
    _write_log(PERFORMANCE_LOG, log_entry)


def log_slow_route(method, path, rule, time_ms, user=None, level='WARNING'):
    """
    Records a slow request in slow_routes.log

    Args:
        level: 'WARNING' (>300ms) or 'CRITICAL' (>700ms)
    """
    if not ENABLE_PROFILING:
        return

    threshold = THRESHOLD_WARNING if level == 'WARNING' else THRESHOLD_CRITICAL
    severity = 'SLOW' if level == 'WARNING' else 'VERY SLOW'

    log_entry = f"""
[{level}] {_get_timestamp()}
────────────────────────────────────────
{severity} route: {_get_route_name(method, path, rule)}
User: {user or 'anonymous'}
Detail: {method} {path}
Time: {time_ms:.0f} ms (threshold: {threshold} ms)
────────────────────────────────────────
"""
    _write_log(SLOW_ROUTES_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ FLASK HOOKS
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Registers before_request / after_request hooks on a Flask app.

    Usage:
        from clinic_pos.performance_logger import init_profiling
        init_profiling(app)
    """
    if not ENABLE_PROFILING:
        return

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request, session

        if not hasattr(g, 'start_time'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000

        path = request.path
        if path.startswith('/static'):
            return response

        method = request.method
        rule = str(request.url_rule) if request.url_rule else path
        user = (session.get('staff') or {}).get('email')

        log_route_performance(method, path, rule, elapsed, user)

        if elapsed >= THRESHOLD_CRITICAL:
            log_slow_route(method, path, rule, elapsed, user, 'CRITICAL')
        elif elapsed >= THRESHOLD_WARNING:
            log_slow_route(method, path, rule, elapsed, user, 'WARNING')

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ DECORATOR FOR KEY FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorator measuring critical functions.

    Usage:
        @profile_function
        def my_function():
            ...

        @profile_function(name="Render invoice")
        def render_invoice():
            ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000

                if elapsed_ms >= THRESHOLD_WARNING:
                    _log_slow_function_call(func_name, elapsed_ms)

        return wrapper

    # allow @profile_function without parentheses
    if func is not None:
        return decorator(func)
    return decorator


def _log_slow_function_call(func_name, time_ms):
    severity = 'CRITICAL' if time_ms >= THRESHOLD_CRITICAL else 'SLOW'

    log_entry = f"""
[{severity}] {_get_timestamp()}
Function: {func_name}
Time: {time_ms:.0f} ms
────────────────────────────────────────
"""
    _write_log(SLOW_FUNCTIONS_LOG, log_entry)


# ═══════════════════════════════════════════════════════════════════════════
# 4️⃣ HANDLED ERRORS
# ═══════════════════════════════════════════════════════════════════════════

def log_error(context, exc):
    """
    Records a handled failure in errors.log and on the console.

    Written whether profiling is enabled or not.

    Args:
        context: What was being done ("Load receipt logo")
        exc: The exception that was handled
    """
    print(f"[ERROR] {context}: {type(exc).__name__}: {exc}")

    details = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    log_entry = f"""
[ERROR] {_get_timestamp()}
────────────────────────────────────────
Context: {context}
Error: {type(exc).__name__}: {exc}
{details}────────────────────────────────────────
"""
    _write_log(ERRORS_LOG, log_entry)


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'profile_function',
    'log_error',
]
