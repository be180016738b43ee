"""Human-facing invoice numbers (INV-0001, INV-0002, ...)."""

import re

_LAST_DIGITS = re.compile(r"(\d+)(?!.*\d)")


def format_invoice_number(prefix: str, number: int, width: int = 4) -> str:
    """Prefix plus a zero-padded counter."""
    return f"{prefix}{number:0{width}d}"


def suggest_invoice_number(last_number: str | None, prefix: str = "INV-", width: int = 4) -> str:
    """
    Suggest the invoice number that follows last_number.

    The last group of digits is incremented and keeps its padding; anything
    around it is preserved ("2024/INV-009" → "2024/INV-010"). Without a
    previous number, or when it has no digits, numbering restarts at 1 with
    the given prefix.

    This is a display convenience, not an identity: sequences are.
    """
    if not last_number:
        return format_invoice_number(prefix, 1, width)

    match = _LAST_DIGITS.search(last_number)
    if match is None:
        return format_invoice_number(prefix, 1, width)

    digits = match.group(1)
    incremented = str(int(digits) + 1).zfill(len(digits))
    return f"{last_number[:match.start()]}{incremented}{last_number[match.end():]}"
