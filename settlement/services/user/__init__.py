"""
Member account services.
"""

from settlement.services.user.pin_gate import PinGate


__all__ = ["PinGate"]
