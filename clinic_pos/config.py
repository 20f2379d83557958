# ==============================================================================
# CONFIGURATION - Clinic POS
# ==============================================================================
# Every value can be overridden with an environment variable so the same code
# runs in development, in tests (temporary directories) and in production.
#
# PRODUCTION:
#   export CLINIC_POS_PRODUCTION=1
#   export CLINIC_POS_SECRET_KEY="a-long-random-secret"
#   export CLINIC_POS_ACCOUNTS='[{"email": "...", "password": "...", "role": "admin"}]'
# ==============================================================================

import json
import os

BASE = os.path.dirname(os.path.abspath(__file__))


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# ═══════════════════════════════════════════════════════════════════════════
# MODE AND SESSIONS
# ═══════════════════════════════════════════════════════════════════════════
PRODUCTION_MODE = _env_flag('CLINIC_POS_PRODUCTION')

_DEFAULT_SECRET = 'clinic_pos_dev_secret_key_change_in_production'
SECRET_KEY = os.environ.get('CLINIC_POS_SECRET_KEY') or _DEFAULT_SECRET
SESSION_LIFETIME_SECONDS = 12 * 60 * 60  # one clinic shift

# ═══════════════════════════════════════════════════════════════════════════
# DATA PATHS
# ═══════════════════════════════════════════════════════════════════════════
# services.json, transactions.json and expenses.json live in DATA_DIR.
DATA_DIR = os.environ.get('CLINIC_POS_DATA_DIR') or os.path.join(BASE, 'data')

# Invoices rendered right after checkout are written here.
EXPORT_DIR = os.environ.get('CLINIC_POS_EXPORT_DIR') or os.path.join(BASE, 'exports')

LOGS_DIR = os.environ.get('CLINIC_POS_LOGS_DIR') or os.path.join(BASE, 'logs')
ENABLE_PROFILING = _env_flag('CLINIC_POS_PROFILING', default=True)

# ═══════════════════════════════════════════════════════════════════════════
# CLINIC AND DOCUMENTS
# ═══════════════════════════════════════════════════════════════════════════
ORGANIZATION_NAME = 'Toledo Doctors & Diagnostic Center'
ORGANIZATION_SHORT_NAME = 'Toledo Doctors'
ORGANIZATION_ADDRESS_LINES = ('123 Medical Center Drive', 'Toledo, City')
ORGANIZATION_CONTACT = 'Contact: (123) 456-7890'

RECEIPT_FOOTER = 'Thank you for trusting our services!'
INVOICE_FOOTER_LINES = (
    'Thank you for your business!',
    'For any inquiries, please contact our office.',
)

LOGO_PATH = os.environ.get('CLINIC_POS_LOGO_PATH') or os.path.join(BASE, 'static', 'logo.jpg')

# Optional TTF font containing the peso sign. Without it the PDFs fall back to
# the base-14 Helvetica fonts and the ASCII currency marker.
RECEIPT_FONT_PATH = os.environ.get('CLINIC_POS_FONT_PATH') or None

# The cart travels in the signed session cookie (about 4 KB), so it is capped.
MAX_CART_LINES = int(os.environ.get('CLINIC_POS_MAX_CART_LINES', '20'))

# ═══════════════════════════════════════════════════════════════════════════
# CURRENCY AND TIMEZONE
# ═══════════════════════════════════════════════════════════════════════════
CURRENCY_SYMBOL = '₱'
CURRENCY_ASCII_MARKER = 'PHP '

# Philippine time has no daylight saving, a fixed offset is enough.
UTC_OFFSET_HOURS = float(os.environ.get('CLINIC_POS_UTC_OFFSET', '8'))

# ═══════════════════════════════════════════════════════════════════════════
# STAFF ACCOUNTS
# ═══════════════════════════════════════════════════════════════════════════
# Development defaults only. Passwords are hashed in memory at startup and
# never written to disk.
_DEFAULT_ACCOUNTS = [
    {'email': 'admin@clinic.com', 'password': 'admin123', 'role': 'admin'},
    {'email': 'staff1@clinic.com', 'password': 'staff123', 'role': 'staff'},
    {'email': 'staff2@clinic.com', 'password': 'staff123', 'role': 'staff'},
]


def load_accounts():
    """
    Returns the staff account table.

    Reads CLINIC_POS_ACCOUNTS (a JSON list) when defined, otherwise the
    development defaults.
    """
    raw = os.environ.get('CLINIC_POS_ACCOUNTS')
    if not raw:
        return [dict(acc) for acc in _DEFAULT_ACCOUNTS]
    try:
        accounts = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f'CLINIC_POS_ACCOUNTS is not valid JSON: {e}') from e
    if not isinstance(accounts, list):
        raise ValueError('CLINIC_POS_ACCOUNTS must be a JSON list')
    return accounts
