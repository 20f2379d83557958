# ==============================================================================
# WSGI Entry Point - Gunicorn / production
# ==============================================================================
# Entry point for WSGI servers such as Gunicorn.
#
# USAGE:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT --threads 8
#
# PROJECT LAYOUT:
#   repo_root/           <- working directory (on sys.path automatically)
#   ├── wsgi.py          <- this file
#   ├── pyproject.toml
#   └── clinic_pos/      <- Python package
#       ├── __init__.py
#       ├── main.py
#       ├── services/
#       └── repositories/
#
# The dashboard stream keeps a connection open per viewer, so run Gunicorn
# with threads (or gevent workers).
# ==============================================================================

from clinic_pos.main import app

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000, threaded=True)
