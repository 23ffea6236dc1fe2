"""
Fixed price adjustment applied to every CSV price at job creation.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Literal, Optional

from stock_sync.core.sync.csv_ingest import format_price
from stock_sync.core.sync.errors import InvalidPriceAdjustment


RoundMode = Literal["none", "integer"]

MAX_ADJUST_AMOUNT = Decimal("1000000")


def to_decimal(value: Any, default: str = "0") -> Decimal:
    """Convert a number or numeric string to Decimal, falling back to default."""
    if value is None or value == "":
        return Decimal(default)
    try:
        result = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        return Decimal(default)
    # NaN and Infinity are not prices
    if not result.is_finite():
        return Decimal(default)
    return result


def parse_adjust_amount(value: Any) -> Decimal:
    """
    Parse a submitted adjustment amount.

    Raises:
        InvalidPriceAdjustment: If the value is not a finite number within
            +/- MAX_ADJUST_AMOUNT
    """
    try:
        amount = Decimal(str(value).strip().replace(",", "."))
    except InvalidOperation:
        raise InvalidPriceAdjustment(value)
    if not amount.is_finite() or abs(amount) > MAX_ADJUST_AMOUNT:
        raise InvalidPriceAdjustment(value)
    return amount


@dataclass(frozen=True)
class PriceAdjustment:
    """Additive price delta with optional rounding to whole units."""
    amount: Decimal = Decimal("0")
    round: RoundMode = "none"

    def apply(self, price: str) -> str:
        """
        Adjust a 2-decimal price string.

        Examples:
            100.00 + 50 (integer) -> "150.00"
            100.00 + 50.5 (none)  -> "150.50"
        """
        adjusted = to_decimal(price) + self.amount
        if self.round == "integer":
            adjusted = adjusted.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return format_price(adjusted)

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": str(self.amount), "round": self.round}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PriceAdjustment":
        if not isinstance(data, dict):
            return cls()
        amount = to_decimal(data.get("amount"))
        if abs(amount) > MAX_ADJUST_AMOUNT:
            amount = Decimal("0")
        return cls(
            amount=amount,
            round="integer" if data.get("round") == "integer" else "none"
        )


def resolve_price_adjustment(
    saved: Optional[PriceAdjustment],
    amount: Optional[Any] = None,
    round_mode: Optional[str] = None
) -> PriceAdjustment:
    """
    Pick the adjustment for one job.

    Each field takes the submitted override when present, else the saved
    default, else amount 0 / no rounding.

    Raises:
        InvalidPriceAdjustment: If the submitted amount is unusable
    """
    base = saved or PriceAdjustment()
    resolved_amount = parse_adjust_amount(amount) if amount not in (None, "") else base.amount
    if round_mode is None or round_mode == "":
        resolved_round = base.round
    else:
        resolved_round = "integer" if round_mode == "integer" else "none"
    return PriceAdjustment(amount=resolved_amount, round=resolved_round)
