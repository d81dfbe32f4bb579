from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_EVEN, Decimal, InvalidOperation

from django.core.exceptions import ValidationError

# ---------- Scales ----------
# money: 2 dp, quantity: 4 dp, unit cost: 6 dp
MONEY_PLACES = Decimal("0.01")
QUANTITY_PLACES = Decimal("0.0001")
UNIT_COST_PLACES = Decimal("0.000001")

ZERO = Decimal("0")

DEBIT = "DEBIT"
CREDIT = "CREDIT"


def to_decimal(value) -> Decimal:
    """Coerce int/str/Decimal to Decimal. Floats are refused."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        raise ValidationError(
            f"Binary floating point is not accepted for amounts: {value!r}")
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Not a decimal amount: {value!r}")
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValidationError(f"Not a decimal amount: {value!r}")


# Rounding happens only at output boundaries (stored columns, posted
# lines). Intermediate products keep full precision.
def money(value) -> Decimal:
    return to_decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_EVEN)


def quantity(value) -> Decimal:
    return to_decimal(value).quantize(QUANTITY_PLACES, rounding=ROUND_HALF_EVEN)


def unit_cost(value) -> Decimal:
    return to_decimal(value).quantize(UNIT_COST_PLACES, rounding=ROUND_HALF_EVEN)


def multiply(qty, price) -> Decimal:
    # unrounded; callers round with money() when the result is stored
    return to_decimal(qty) * to_decimal(price)


def allocate(total, weights):
    """Split `total` across `weights` so the parts always add back to `total`.

    Largest remainder: every part is rounded down to the cent, then the
    leftover cents go to the parts with the biggest remainders.
    """
    total = money(total)
    weights = [to_decimal(w) for w in weights]
    weight_sum = sum(weights, ZERO)
    if not weights:
        return []
    if weight_sum == 0:
        return [ZERO.quantize(MONEY_PLACES) for _ in weights]

    exact = [total * w / weight_sum for w in weights]
    floors = [e.quantize(MONEY_PLACES, rounding=ROUND_FLOOR) for e in exact]
    leftover = int((total - sum(floors, ZERO)) / MONEY_PLACES)
    order = sorted(
        range(len(weights)), key=lambda i: exact[i] - floors[i], reverse=True)
    for i in order[:leftover]:
        floors[i] += MONEY_PLACES
    return floors


# ---------- Balance (explicit polarity) ----------
@dataclass(frozen=True)
class Balance:
    """Non-negative amount plus the side it sits on."""

    amount: Decimal
    side: str

    def __post_init__(self):
        if self.side not in (DEBIT, CREDIT):
            raise ValidationError(f"Unknown balance side {self.side!r}")
        if self.amount < 0:
            raise ValidationError("Balance amount must be >= 0")

    def signed(self) -> Decimal:
        # debit positive, credit negative
        return self.amount if self.side == DEBIT else -self.amount

    def as_dict(self):
        return {"amount": str(self.amount), "side": self.side}


def opposite(side: str) -> str:
    return CREDIT if side == DEBIT else DEBIT


def signed_for(natural_side: str, side: str, amount) -> Decimal:
    """Amount as a change relative to an account's natural side."""
    amount = to_decimal(amount)
    return amount if side == natural_side else -amount


def balance_from_signed(natural_side: str, value) -> Balance:
    """Convert a natural-side-relative signed figure to a Balance."""
    value = money(value)
    if value >= 0:
        return Balance(value, natural_side)
    return Balance(-value, opposite(natural_side))
