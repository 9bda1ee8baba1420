import math
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Any, Optional

from ..constants import MISSING_TOKENS


def clean_text(value: Any) -> Optional[str]:
    """Strip a raw cell value, returning None for blank and placeholder cells."""
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    if text.lower() in MISSING_TOKENS:
        return None
    return text


def parse_number(text: str) -> float:
    """Parse amounts such as ``$1,234.50``; raises ValueError otherwise."""
    token = text.replace(",", "").replace("$", "").strip()
    if token.startswith("(") and token.endswith(")"):
        token = f"-{token[1:-1]}"
    number = float(token)
    if math.isnan(number) or math.isinf(number):
        raise ValueError(f"not a finite number: {text!r}")
    return number


def parse_percentage(text: str) -> float:
    """Parse ``80``, ``80%`` or ``0.8`` into a 0-100 percentage."""
    number = parse_number(text.replace("%", ""))
    return number if number > 1 else number * 100


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero, e.g. ``-2.25 -> -2.3``."""
    number = Decimal(repr(value))
    quantum = Decimal(1).scaleb(-digits)
    # Enough precision for every integer digit plus the kept decimals
    context = Context(prec=max(28, number.adjusted() + digits + 2))
    return float(number.quantize(quantum, rounding=ROUND_HALF_UP, context=context))
