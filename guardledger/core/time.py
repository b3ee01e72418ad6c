"""
guardledger/core/time.py

THE ONLY TIMESTAMP FUNCTION IN GUARDLEDGER.

Wire format: YYYY-MM-DDTHH:MM:SS.mmmZ
             (milliseconds, explicit Z, no +00:00, no microseconds)

Events, transactions and deployment records all take their timestamps
from event_timestamp().
"""

import re
from datetime import datetime, timezone


TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"
)


def event_timestamp() -> str:
    """
    Return current UTC time in wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"


def is_valid_timestamp(value) -> bool:
    """Return True if value is a string in the wire format."""
    return isinstance(value, str) and bool(TIMESTAMP_RE.match(value))
