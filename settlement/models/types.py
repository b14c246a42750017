"""
Column types shared by the settlement models.
"""

from sqlalchemy import DECIMAL


# Money columns: principals, balances, payout lines, pool amounts, rewards.
# Requests are validated to cents; the extra scale keeps quantized
# per-period amounts exact. Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)
