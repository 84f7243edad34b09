"""
moneyfx - Multi-currency Conversion Core

The money-conversion layer of a personal finance tracker. It converts
amounts between the currency a user typed, the currency of the account
the money lands in, and the user's primary reporting currency, and keeps
a running record of foreign-exchange gain/loss.

DESIGN PRINCIPLES:
1. Money is Decimal, never float
2. A missing rate is a loud error, never a silent 1.0
3. Provider outages degrade to yesterday's rates, visibly marked stale
4. Every conversion carries an audit id
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "moneyfx Team"
