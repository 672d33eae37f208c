"""Order Numbers — human-facing order number format.

Invariants:
    - Format: <PREFIX>-<YEAR>-<NNNNN>, sequence zero-padded to at least 5 digits
    - The sequence value comes from the per-tenant counter; the year is the
      payment year, so numbers sort by year then sequence
"""

from datetime import datetime

SEQUENCE_WIDTH = 5


def format_order_number(prefix: str, issued_at: datetime, sequence: int) -> str:
    """format_order_number('ORD', 2026-03-01, 42) → 'ORD-2026-00042'."""
    if sequence <= 0:
        raise ValueError(f"Order sequence must be positive, got {sequence}")
    return f"{prefix.upper()}-{issued_at.year}-{sequence:0{SEQUENCE_WIDTH}d}"
