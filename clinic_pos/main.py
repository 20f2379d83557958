import io
import json
import uuid
from functools import wraps
from queue import Empty, Queue

from flask import Flask, Response, g, request, session, send_file, stream_with_context

# Internal profiling
from clinic_pos import config
from clinic_pos.performance_logger import init_profiling, log_error

# ═══════════════════════════════════════════════════════════════════════════
# DEPENDENCY CONTAINER - services and repositories
# ═══════════════════════════════════════════════════════════════════════════
# Business logic lives in services/; routes only parse the request, call a
# service and turn its result into JSON.
# ═══════════════════════════════════════════════════════════════════════════
from clinic_pos.app_container import get_container
from clinic_pos.models.entities import StaffSession
from clinic_pos.services.dashboard_service import (
    window_for_preset, with_end_date, with_start_date
)

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Route and function timings go to LOGS_DIR.
# Disable with CLINIC_POS_PROFILING=0
init_profiling(app)

# ═══════════════════════════════════════════════════════════════════════════
# SESSIONS
# ═══════════════════════════════════════════════════════════════════════════
if config.PRODUCTION_MODE and config.SECRET_KEY.startswith('clinic_pos_dev_'):
    print("[WARNING] PRODUCTION_MODE enabled without CLINIC_POS_SECRET_KEY")
    print("[WARNING] Define the environment variable for a secure session key")

app.secret_key = config.SECRET_KEY

app.config.update(
    SESSION_COOKIE_HTTPONLY=True,      # no access from JavaScript
    SESSION_COOKIE_SECURE=config.PRODUCTION_MODE,
    SESSION_COOKIE_SAMESITE='Lax',
    PERMANENT_SESSION_LIFETIME=config.SESSION_LIFETIME_SECONDS,
    MAX_CONTENT_LENGTH=1 * 1024 * 1024,
)

SSE_KEEPALIVE_SECONDS = 15


# ═══════════════════════════════════════════════════════════════════════════
# AUTH AND CSRF
# ═══════════════════════════════════════════════════════════════════════════

def current_staff():
    """StaffSession of the request, or None when nobody is logged in."""
    if 'staff' not in g:
        g.staff = StaffSession.from_dict(session.get('staff'))
    return g.staff


def login_required(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if current_staff() is None:
            return {"ok": False, "error": "You must log in."}, 401
        return f(*args, **kwargs)
    return wrapper


def generate_csrf_token():
    if 'csrf_token' not in session:
        session['csrf_token'] = uuid.uuid4().hex
    return session['csrf_token']


def verify_csrf(f):
    @wraps(f)
    def wrapper(*args, **kwargs):
        if request.method == 'POST':
            token = session.get('csrf_token')
            form_token = (
                request.form.get('csrf_token') or
                request.headers.get('X-CSRF-Token') or
                request.headers.get('X-CSRFToken')
            )
            if not form_token and request.is_json:
                json_data = request.get_json(silent=True) or {}
                form_token = json_data.get('csrf_token')

            if not token or not form_token or token != form_token:
                return {"ok": False, "error": "Invalid CSRF token"}, 403
        return f(*args, **kwargs)
    return wrapper


@app.after_request
def set_security_headers(response):
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    response.headers['Permissions-Policy'] = 'geolocation=(), microphone=()'
    # HSTS only behind real HTTPS
    if request.is_secure:
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
    return response


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def request_data():
    """JSON body or form data of the request as a plain dict."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def service_response(result, success_status=200):
    """
    Turns a service result into a JSON response.

    forbidden -> 403, not_found -> 404, store_error -> 500, other errors -> 400
    """
    if result.get('ok'):
        return result, success_status
    if result.get('forbidden'):
        status = 403
    elif result.get('not_found'):
        status = 404
    elif result.get('store_error'):
        status = 500
    else:
        status = 400
    return {"ok": False, "error": result.get('error', 'Unexpected error')}, status


def parse_dashboard_window(args):
    """
    Window requested in the query string.

    ?preset=today|week|last_30_days|month, or ?start=YYYY-MM-DD&end=YYYY-MM-DD
    (either bound alone is clamped against the default window).
    """
    preset = (args.get('preset') or '').strip()
    start = (args.get('start') or '').strip()
    end = (args.get('end') or '').strip()

    if preset and preset != 'custom':
        return window_for_preset(preset)

    window = window_for_preset('last_30_days')
    if not start and not end:
        return window
    if start:
        window = with_start_date(window, start)
    if end:
        window = with_end_date(window, end)
    return window


# ═══════════════════════════════════════════════════════════════════════════
# SENSITIVE FOLDERS
# ═══════════════════════════════════════════════════════════════════════════
@app.route('/data/<path:filename>')
@app.route('/exports/<path:filename>')
@app.route('/logs/<path:filename>')
def block_sensitive_routes(filename):
    """Data, exports and logs are never served as static files."""
    return "Not Found", 404


# ═══════════════════════════════════════════════════════════════════════════
# SESSION
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/session", methods=["GET"])
def api_session():
    """Who is logged in, and the CSRF token for the next POST."""
    staff = current_staff()
    return {
        "ok": True,
        "staff": staff.to_dict() if staff else None,
        "csrf_token": generate_csrf_token(),
    }


@app.route("/api/login", methods=["POST"])
@verify_csrf
def api_login():
    try:
        data = request_data()
        email = (data.get("email") or "").strip()
        password = data.get("password") or ""
        if not email or not password:
            return {"ok": False, "error": "Email and password are required."}, 400

        staff = get_container().auth_service.authenticate(email, password)
        if staff is None:
            return {"ok": False, "error": "Invalid email or password."}, 401

        csrf_token = session.get('csrf_token')
        session.clear()
        session.permanent = True
        session['staff'] = staff.to_dict()
        session['csrf_token'] = csrf_token or uuid.uuid4().hex
        g.staff = staff
        return {"ok": True, "staff": staff.to_dict(), "csrf_token": session['csrf_token']}
    except Exception as e:
        log_error("Login", e)
        return {"ok": False, "error": "Internal error. Please try again."}, 500


@app.route("/api/logout", methods=["POST"])
@login_required
@verify_csrf
def api_logout():
    session.clear()
    g.staff = None
    return {"ok": True}


# ═══════════════════════════════════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/services", methods=["GET"])
@login_required
def api_services():
    """
    Lists the catalog.

    Query: ?q=<text>&availability=all|available|unavailable
    """
    catalog = get_container().catalog_service
    services = catalog.list_services(
        query=request.args.get('q', ''),
        availability=request.args.get('availability', 'all'),
    )
    return {"ok": True, "services": services, **catalog.availability_counts()}


@app.route("/api/services", methods=["POST"])
@login_required
@verify_csrf
def api_services_create():
    result = get_container().catalog_service.save_service(request_data())
    return service_response(result, 201)


@app.route("/api/services/<service_id>", methods=["POST"])
@login_required
@verify_csrf
def api_services_update(service_id):
    result = get_container().catalog_service.save_service(request_data(), service_id)
    return service_response(result)


@app.route("/api/services/<service_id>/toggle", methods=["POST"])
@login_required
@verify_csrf
def api_services_toggle(service_id):
    return service_response(get_container().catalog_service.toggle_availability(service_id))


@app.route("/api/services/<service_id>/delete", methods=["POST"])
@login_required
@verify_csrf
def api_services_delete(service_id):
    result = get_container().catalog_service.delete_service(service_id, current_staff())
    return service_response(result)


# ═══════════════════════════════════════════════════════════════════════════
# POS CART
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/cart", methods=["GET"])
@login_required
def api_cart():
    """Current cart. Query: ?discount=<percent>"""
    cart = get_container().cart_service.get_cart(request.args.get('discount', 0))
    return {"ok": True, "cart": cart}


@app.route("/api/cart/add", methods=["POST"])
@login_required
@verify_csrf
def api_cart_add():
    data = request_data()
    return service_response(get_container().cart_service.add_service(data.get("service_id")))


@app.route("/api/cart/remove", methods=["POST"])
@login_required
@verify_csrf
def api_cart_remove():
    data = request_data()
    return service_response(get_container().cart_service.remove_line(data.get("added_at")))


@app.route("/api/cart/clear", methods=["POST"])
@login_required
@verify_csrf
def api_cart_clear():
    return service_response(get_container().cart_service.clear_cart())


@app.route("/api/cart/checkout", methods=["POST"])
@login_required
@verify_csrf
def api_cart_checkout():
    """
    Commits the cart as a transaction. Always answers JSON.

    Body:
    {
        "customer_name": "...",
        "discount_percent": 10,
        "submission_token": "..."   (same token on retries of one checkout)
    }

    The cart is only emptied when the transaction was stored. The invoice is
    rendered afterwards; if that fails the sale stands and the response
    carries invoice_error instead of invoice_url.
    """
    container = get_container()
    data = request_data()
    cart = container.cart_service.get_builder()

    try:
        result = container.transaction_service.commit(
            customer_name=data.get("customer_name", ""),
            lines=cart.lines,
            discount_percent=data.get("discount_percent", 0),
            submission_token=data.get("submission_token"),
        )
    except Exception as e:
        log_error("Checkout", e)
        return {"ok": False, "error": "Failed to create invoice. Please try again."}, 500

    if not result.get('ok'):
        return service_response(result)

    container.cart_service.clear_cart()

    transaction_id = result['transaction_id']
    response_data = {
        "ok": True,
        "transaction_id": transaction_id,
        "transaction": result['transaction'],
        "duplicate": result['duplicate'],
        "message": "Transaction completed successfully!",
        "receipt_url": f"/transactions/{transaction_id}/receipt.pdf",
    }

    try:
        tx = container.transaction_service.get_transaction(transaction_id)
        document = container.receipt_service.render_invoice(tx)
        container.receipt_service.save(document, container.export_dir)
        response_data["invoice_url"] = f"/transactions/{transaction_id}/invoice.pdf"
        response_data["invoice_filename"] = document.filename
    except Exception as e:
        log_error(f"Render invoice {transaction_id}", e)
        response_data["invoice_error"] = "Transaction saved, but the invoice could not be generated."

    return response_data, 201


# ═══════════════════════════════════════════════════════════════════════════
# TRANSACTIONS AND RECEIPTS
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/transactions", methods=["GET"])
@login_required
def api_transactions():
    transactions = get_container().transaction_service.list_transactions()
    return {"ok": True, "transactions": [t.to_dict() for t in transactions]}


@app.route("/api/transactions/<transaction_id>/delete", methods=["POST"])
@login_required
@verify_csrf
def api_transactions_delete(transaction_id):
    result = get_container().transaction_service.delete_transaction(transaction_id, current_staff())
    return service_response(result)


def _pdf_download(transaction_id, render):
    tx = get_container().transaction_service.get_transaction(transaction_id)
    if tx is None:
        return {"ok": False, "error": "Receipt not found"}, 404
    try:
        document = render(tx)
    except Exception as e:
        log_error(f"Render PDF {transaction_id}", e)
        return {"ok": False, "error": "Failed to generate PDF. Please try again."}, 500
    return send_file(
        io.BytesIO(document.content),
        mimetype=document.mimetype,
        as_attachment=True,
        download_name=document.filename,
    )


@app.route("/transactions/<transaction_id>/receipt.pdf", methods=["GET"])
@login_required
def transaction_receipt_pdf(transaction_id):
    return _pdf_download(transaction_id, get_container().receipt_service.render_receipt)


@app.route("/transactions/<transaction_id>/invoice.pdf", methods=["GET"])
@login_required
def transaction_invoice_pdf(transaction_id):
    return _pdf_download(transaction_id, get_container().receipt_service.render_invoice)


# ═══════════════════════════════════════════════════════════════════════════
# EXPENSES
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/expenses", methods=["GET"])
@login_required
def api_expenses():
    return {"ok": True, **get_container().expense_service.get_ledger()}


@app.route("/api/expenses", methods=["POST"])
@login_required
@verify_csrf
def api_expenses_create():
    data = request_data()
    result = get_container().expense_service.add_expense(data.get("amount"), data.get("note"))
    return service_response(result, 201)


@app.route("/api/expenses/<expense_id>/delete", methods=["POST"])
@login_required
@verify_csrf
def api_expenses_delete(expense_id):
    result = get_container().expense_service.delete_expense(expense_id, current_staff())
    return service_response(result)


# ═══════════════════════════════════════════════════════════════════════════
# DASHBOARD
# ═══════════════════════════════════════════════════════════════════════════

@app.route("/api/dashboard", methods=["GET"])
@login_required
def api_dashboard():
    """
    One-shot summary of a date window.

    Query: ?preset=... or ?start=YYYY-MM-DD&end=YYYY-MM-DD
    """
    try:
        window = parse_dashboard_window(request.args)
    except ValueError as e:
        return {"ok": False, "error": str(e)}, 400

    aggregator = get_container().create_dashboard(window)
    try:
        return {"ok": True, "dashboard": aggregator.summary()}
    finally:
        aggregator.close()


@app.route("/api/dashboard/stream", methods=["GET"])
@login_required
def api_dashboard_stream():
    """
    Server-Sent Events: one 'summary' event now and one after every change
    to the catalog, the transactions or the expenses of the window.
    """
    try:
        window = parse_dashboard_window(request.args)
    except ValueError as e:
        return {"ok": False, "error": str(e)}, 400

    aggregator = get_container().create_dashboard(window)
    updates = Queue()
    updates.put(aggregator.summary())
    aggregator.add_listener(updates.put)

    def generate():
        try:
            while True:
                try:
                    summary = updates.get(timeout=SSE_KEEPALIVE_SECONDS)
                except Empty:
                    yield ": keepalive\n\n"
                    continue
                yield f"event: summary\ndata: {json.dumps(summary)}\n\n"
        finally:
            aggregator.close()

    return Response(
        stream_with_context(generate()),
        mimetype='text/event-stream',
        headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'},
    )


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=5000, debug=not config.PRODUCTION_MODE, threaded=True)
