# ==============================================================================
# CLINIC POS - point of sale and receipts for a diagnostic clinic
# ==============================================================================
# Packages:
#   models/        dataclasses of the domain
#   repositories/  JSON document store with live queries
#   services/      business rules (cart, checkout, PDFs, expenses, dashboard)
#   main.py        Flask JSON API
# ==============================================================================

__version__ = '1.0.0'
