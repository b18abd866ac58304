from __future__ import annotations

_UNITS = ("Bytes", "KB", "MB", "GB")


def format_file_size(size_bytes: int | float) -> str:
    """Format a byte count as ``"<value> <unit>"`` with base-1024 units.

    >>> format_file_size(1536)
    '1.5 KB'
    """

    if size_bytes < 0:
        raise ValueError(f"size must be non-negative: {size_bytes}")
    if size_bytes == 0:
        return "0 Bytes"

    value = float(size_bytes)
    unit = 0
    while value >= 1024 and unit < len(_UNITS) - 1:
        value /= 1024
        unit += 1

    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {_UNITS[unit]}"
