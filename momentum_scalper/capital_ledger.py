"""
Capital Ledger - single source of truth for usable capital
All balance changes go through reserve / release / cancel / sync
"""

import logging
import threading
from typing import Dict

logger = logging.getLogger(__name__)


class CapitalLedger:
    """Tracks total, locked and peak balance with atomic reservation"""

    def __init__(self, initial_balance: float):
        if initial_balance < 0:
            raise ValueError(f"Initial balance must be non-negative, got {initial_balance}")
        self._lock = threading.Lock()
        self._total = float(initial_balance)
        self._locked = 0.0
        self._peak = float(initial_balance)

    @property
    def total_balance(self) -> float:
        return self._total

    @property
    def locked_balance(self) -> float:
        return self._locked

    @property
    def free_balance(self) -> float:
        with self._lock:
            return self._total - self._locked

    @property
    def peak_balance(self) -> float:
        return self._peak

    def reserve(self, amount: float) -> bool:
        """Lock `amount` of free capital. Returns False without mutation if unavailable."""
        with self._lock:
            if amount <= 0 or self._total - self._locked < amount:
                return False
            self._locked += amount
            return True

    def release(self, reserved_amount: float, proceeds: float):
        """Settle a reservation: unlock it and replace the spent capital with proceeds.

        The reserved amount left the account when it was spent, so the total
        moves by (proceeds - reserved_amount).
        """
        with self._lock:
            reserved_amount = max(0.0, reserved_amount)
            proceeds = max(0.0, proceeds)
            if reserved_amount > self._locked + 1e-9:
                logger.error(f"Release of {reserved_amount:.8f} exceeds locked balance {self._locked:.8f}, clamping")
            unlocked = min(reserved_amount, self._locked)
            self._locked -= unlocked
            self._total = max(0.0, self._total - reserved_amount + proceeds)
            self._clamp()
            if self._total > self._peak:
                self._peak = self._total

    def cancel(self, reserved_amount: float):
        """Return an unspent reservation to free balance"""
        with self._lock:
            unlocked = min(max(0.0, reserved_amount), self._locked)
            self._locked -= unlocked

    def sync_total_balance(self, real_balance: float):
        """Reconcile with an authoritative external balance"""
        if real_balance < 0:
            logger.warning(f"Ignoring balance sync with negative value {real_balance}")
            return
        with self._lock:
            self._total = float(real_balance)
            if self._locked > self._total:
                logger.warning(f"Locked balance {self._locked:.8f} exceeds synced total {self._total:.8f}, clamping")
            self._clamp()
            if self._total > self._peak:
                self._peak = self._total

    def _clamp(self):
        if self._locked < 0:
            self._locked = 0.0
        if self._locked > self._total:
            self._locked = self._total

    def snapshot(self) -> Dict[str, float]:
        with self._lock:
            return {
                'total_balance': self._total,
                'locked_balance': self._locked,
                'free_balance': self._total - self._locked,
                'peak_balance': self._peak,
            }
