"""
Finance Tracker - Source Package

Personal finance tracking backed by one Google Sheets spreadsheet per
tenant, built around a credit-statement accrual engine.

DESIGN PRINCIPLES:
1. Money is Decimal end to end, rounded half up to cents at the edges
2. One statement per debt and cutoff date; recompute is explicit
3. Nothing is written until every figure is computed
4. Every ledger change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
