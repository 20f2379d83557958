# ==============================================================================
# PRICING - cart builder and breakdown arithmetic
# ==============================================================================
# Money rules shared by the cart, the transaction recorder and the receipts:
#   - every amount is rounded half-up to 2 decimals (centavos)
#   - sums are computed in Decimal so no float drift leaks into totals
#   - the discount percentage is clamped to [0, 100], never rejected
# ==============================================================================

import math
import time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from clinic_pos import config
from clinic_pos.models.entities import CartLine, PricingBreakdown

CENT = Decimal('0.01')


def _to_decimal(value: Any) -> Decimal:
    # str() first so 0.1 becomes Decimal('0.1') and not its binary expansion
    return Decimal(str(value))


def round2(value: Any) -> float:
    """Rounds half-up to 2 decimals."""
    return float(_to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def parse_amount(value: Any) -> Optional[float]:
    """
    Parses a money amount typed by a user.

    Returns:
        The amount as float, or None when it is empty or not numeric
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace(',', '')
        if not value:
            return None
    try:
        amount = _to_decimal(value)
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    # huge exponents are finite Decimals but overflow a float
    if not math.isfinite(float(amount)):
        return None
    return float(amount)


def clamp_discount(discount_percent: Any) -> float:
    """Clamps a discount to [0, 100]; anything non-numeric counts as 0."""
    pct = parse_amount(discount_percent)
    if pct is None:
        return 0.0
    return max(0.0, min(100.0, pct))


def compute_breakdown(prices: Iterable[Any], discount_percent: Any = 0) -> PricingBreakdown:
    """
    Computes subtotal, discount amount and total.

    discount_amount = round2(subtotal * pct / 100)
    total = round2(subtotal - discount_amount)

    Args:
        prices: Line prices
        discount_percent: Requested discount, clamped to [0, 100]

    Returns:
        PricingBreakdown
    """
    pct = clamp_discount(discount_percent)
    subtotal = sum((_to_decimal(p or 0) for p in prices), Decimal('0'))
    subtotal = subtotal.quantize(CENT, rounding=ROUND_HALF_UP)
    discount_amount = (subtotal * _to_decimal(pct) / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
    total = (subtotal - discount_amount).quantize(CENT, rounding=ROUND_HALF_UP)
    return PricingBreakdown(
        subtotal=float(subtotal),
        discount_percent=pct,
        discount_amount=float(discount_amount),
        total=float(total),
    )


def format_money(amount: Any, marker: str = None) -> str:
    """
    Formats an amount for display: currency marker, thousands grouping and
    always 2 decimals (e.g. ₱1,234.50).
    """
    if marker is None:
        marker = config.CURRENCY_SYMBOL
    value = round2(amount or 0)
    sign = '-' if value < 0 else ''
    return f"{sign}{marker}{abs(value):,.2f}"


def format_percent(pct: Any) -> str:
    """10.0 -> '10', 12.5 -> '12.5'."""
    return f"{float(pct or 0):g}"


class CartBuilder:
    """
    Selected services for one customer visit.

    Responsibilities:
    - Append line snapshots (duplicates allowed)
    - Remove a line by its added_at token
    - Compute the pricing breakdown

    It holds no reference to the catalog: prices are copied when a line is
    added, so later catalog edits do not change the cart.
    """

    def __init__(self, lines: List[CartLine] = None):
        self.lines: List[CartLine] = list(lines or [])

    def _next_token(self) -> int:
        # epoch millis stay exact in a JSON number read by a browser
        token = time.time_ns() // 1_000_000
        if self.lines:
            token = max(token, max(line.added_at for line in self.lines) + 1)
        return token

    def add_line(self, service: Dict[str, Any]) -> CartLine:
        """
        Appends a snapshot of a catalog service.

        Args:
            service: Service document (id, title, details, price)

        Returns:
            The new line
        """
        line = CartLine(
            service_id=service.get('id', ''),
            title=service.get('title', ''),
            details=service.get('details') or service.get('detail') or '',
            price=round2(service.get('price', 0) or 0),
            added_at=self._next_token(),
        )
        self.lines.append(line)
        return line

    def remove_line(self, token: int) -> bool:
        """
        Removes the line whose added_at matches token.

        Returns:
            True if a line was removed, False if none matched
        """
        try:
            token = int(token)
        except (TypeError, ValueError):
            return False
        for index, line in enumerate(self.lines):
            if line.added_at == token:
                del self.lines[index]
                return True
        return False

    def compute_breakdown(self, discount_percent: Any = 0) -> PricingBreakdown:
        return compute_breakdown((line.price for line in self.lines), discount_percent)

    def clear(self) -> None:
        self.lines = []

    def is_empty(self) -> bool:
        return not self.lines

    def to_list(self) -> List[Dict[str, Any]]:
        return [line.to_dict() for line in self.lines]

    @classmethod
    def from_list(cls, data: Iterable[Dict[str, Any]]) -> 'CartBuilder':
        return cls([CartLine.from_dict(d) for d in data or []])
