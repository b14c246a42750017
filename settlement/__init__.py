"""
Donation settlement core.

Contract lifecycle, pooled withdrawals, reward pool claims and the PIN gate.
"""

__version__ = "0.1.0"
