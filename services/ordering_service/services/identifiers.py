"""Transaction code and invoice number generation.

Codes combine a UTC time prefix, a per-process monotonic sequence and a
random component from ``secrets``. Two calls in the same process never share
a sequence value; calls from different processes collide only if both the
timestamp and 32 random bits match. The database unique constraints are the
final guard.
"""

import itertools
import secrets
import threading
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import utc_now


class IdentifierGenerator:
    """Thread-safe generator for opaque, unique identifiers."""

    def __init__(self, start: int = 0):
        self._sequence = itertools.count(start)
        self._lock = threading.Lock()

    def _next_sequence(self) -> int:
        with self._lock:
            return next(self._sequence) % 1_000_000

    def transaction_code(self, now: Optional[datetime] = None) -> str:
        """e.g. ``TXN20261018153012-000042-9F3A11C0``"""
        stamp = (now or utc_now()).strftime("%Y%m%d%H%M%S")
        return f"TXN{stamp}-{self._next_sequence():06d}-{secrets.token_hex(4).upper()}"

    def invoice_number(self, now: Optional[datetime] = None) -> str:
        """e.g. ``B20261018-000007-5D0C2B9E``"""
        stamp = (now or utc_now()).strftime("%Y%m%d")
        return f"B{stamp}-{self._next_sequence():06d}-{secrets.token_hex(4).upper()}"

    def processor_reference(self, prefix: str) -> str:
        """Simulated processor transaction id, e.g. ``TXN_1A2B3C4D5E6F``."""
        return f"{prefix}_{secrets.token_hex(6).upper()}"

    @staticmethod
    def authorization_code() -> str:
        return f"AUTH_{secrets.token_hex(5).upper()}"


identifiers = IdentifierGenerator()
