"""
StopGuard

Managed-position risk engine: automated stop-loss, take-profit and
trailing-stop exits for open trading positions.
"""

__version__ = "1.0.0"
