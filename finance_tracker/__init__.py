"""
Finance Tracker - Source Package

A personal ledger: income and expense transactions, categories, a
monthly budget in one currency, a daily reminder and portable backups.

DESIGN PRINCIPLES:
1. One authoritative store, written whole or not at all
2. Fail early, fail visibly
3. No silent corrections
4. Reminders are advisory and never crash the host
5. Storage backend is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
