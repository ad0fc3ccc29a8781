"""
CreditFlow - Source Package

A personal tracker for credit-card purchases paid in installments.

DESIGN PRINCIPLES:
1. The monthly projection is always rebuilt from the source purchases
2. Every user action is applied locally first, then persisted
3. Persistence failures are visible, never silent
4. Every step must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "CreditFlow Team"
