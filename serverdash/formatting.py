"""Display helpers shared by the monitor snapshot and the CLI."""

BYTES_PER_MEGABYTE = 1000 * 1000
UNITS = ["Bytes", "kB", "MB", "GB", "TB"]
UNLIMITED = "Unlimited"


def bytes_to_human(num_bytes: int) -> str:
    """
    Format a byte count with decimal units, e.g. ``1500000 -> "1.5 MB"``.

    Args:
        num_bytes: Number of bytes, must not be negative

    Returns:
        The value scaled to the largest unit below it, with at most two decimals.
    """
    if num_bytes <= 0:
        return "0 kB"

    index = 0
    value = float(num_bytes)
    while value >= 1000 and index < len(UNITS) - 1:
        value /= 1000
        index += 1
    return f"{round(value, 2):g} {UNITS[index]}"


def megabytes_to_human(limit: int) -> str:
    """Format a limit expressed in megabytes; 0 means unlimited."""
    if limit == 0:
        return UNLIMITED
    return bytes_to_human(limit * BYTES_PER_MEGABYTE)
