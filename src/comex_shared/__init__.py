"""
comex_shared — shared configuration, models, and helpers for the comex pipeline.

Usage:
    from comex_shared.config import settings
    from comex_shared.models import YearlyTradeRow, InvoiceRecord
    from comex_shared.ncm import normalize_ncm
    from comex_shared.time_utils import year_number, partial_year_label
"""

__version__ = "0.1.0"
