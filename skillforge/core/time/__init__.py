"""
skillforge time module

Unified UTC time helpers used for catalog timestamps and audit records.

Usage:
    from skillforge.core.time import utc_now, utc_now_ms

    now = utc_now()  # aware UTC datetime
    timestamp = utc_now_ms()  # epoch milliseconds
"""

from .clock import (
    utc_now,
    utc_now_ms,
    utc_now_iso,
    from_epoch_ms,
    iso_z,
)

__all__ = [
    'utc_now',
    'utc_now_ms',
    'utc_now_iso',
    'from_epoch_ms',
    'iso_z',
]
