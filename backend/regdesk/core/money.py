"""Money & VAT — pure order totals in integer minor units.

Invariants:
    - total == subtotal - discount + tax, for every OrderTotals ever built
    - discount is clamped to [0, subtotal]; tax is computed on the discounted net
    - Rounding is half-up on the VAT amount only (prices are exact integers)
    - allocate_evenly() parts always sum to the allocated total

Design Decisions:
    - Decimal for the rate multiplication: float percentages drift on øre amounts
    - Prices are VAT-exclusive: tax is added on top so the total invariant holds
      without a separate "included VAT" branch
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from regdesk.core.errors import ValidationError

_HUNDRED = Decimal(100)


@dataclass(frozen=True)
class LineItem:
    """One priced line of an order."""
    description: str
    quantity: int
    unit_price_cents: int

    @property
    def total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class OrderTotals:
    """Monetary snapshot frozen onto an order at submission."""
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    vat_rate: Decimal
    currency: str


@dataclass(frozen=True)
class VatBreakdown:
    """VAT lines required on a receipt for a VAT-registered seller."""
    net_amount_cents: int
    vat_rate: Decimal
    vat_amount_cents: int
    gross_amount_cents: int
    prices_include_vat: bool = False


def calculate_totals(
    lines: list[LineItem],
    discount_cents: int = 0,
    vat_rate: Decimal | int | str = 0,
    currency: str = "NOK",
) -> OrderTotals:
    """Line items → subtotal, discount, tax, total."""
    for line in lines:
        if line.quantity <= 0:
            raise ValidationError(
                f"Quantity must be positive, got {line.quantity}", "quantity",
            )
        if line.unit_price_cents < 0:
            raise ValidationError(
                f"Unit price cannot be negative, got {line.unit_price_cents}",
                "unit_price_cents",
            )
    rate = Decimal(str(vat_rate))
    if rate < 0:
        raise ValidationError(f"VAT rate cannot be negative, got {rate}", "vat_rate")

    subtotal = sum(line.total_cents for line in lines)
    discount = min(max(discount_cents, 0), subtotal)
    tax = compute_tax(subtotal - discount, rate)
    return OrderTotals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax,
        total_cents=subtotal - discount + tax,
        vat_rate=rate,
        currency=currency.upper(),
    )


def compute_tax(net_cents: int, vat_rate: Decimal) -> int:
    """VAT on a net amount, rounded half-up to whole minor units."""
    amount = Decimal(net_cents) * vat_rate / _HUNDRED
    return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def totals_are_consistent(
    subtotal_cents: int, discount_cents: int, tax_cents: int, total_cents: int,
) -> bool:
    return total_cents == subtotal_cents - discount_cents + tax_cents


def vat_breakdown(totals: OrderTotals) -> VatBreakdown:
    return VatBreakdown(
        net_amount_cents=totals.subtotal_cents - totals.discount_cents,
        vat_rate=totals.vat_rate,
        vat_amount_cents=totals.tax_cents,
        gross_amount_cents=totals.total_cents,
    )


def allocate_evenly(total_cents: int, parts: int) -> list[int]:
    """Split total into `parts` integers differing by at most 1.

    The first `total % parts` parts carry the extra unit, so the split is
    deterministic and sums back to total exactly.
    """
    if parts <= 0:
        raise ValidationError(f"Cannot allocate across {parts} parts", "parts")
    base, remainder = divmod(total_cents, parts)
    return [base + 1 if i < remainder else base for i in range(parts)]


def allocate_proportionally(total_cents: int, weights: list[int]) -> list[int]:
    """Split total across weights with largest-remainder rounding.

    Used to spread an order-level discount over receipt lines. Falls back to an
    even split when every weight is zero.
    """
    if not weights:
        return []
    weight_sum = sum(weights)
    if weight_sum <= 0:
        return allocate_evenly(total_cents, len(weights))
    raw = [total_cents * w for w in weights]
    shares = [r // weight_sum for r in raw]
    leftover = total_cents - sum(shares)
    by_remainder = sorted(
        range(len(weights)), key=lambda i: (-(raw[i] % weight_sum), i),
    )
    for i in by_remainder[:leftover]:
        shares[i] += 1
    return shares


def format_amount(cents: int, currency: str) -> str:
    """Human amount for notification variables, e.g. 'NOK 2000.00'."""
    sign = "-" if cents < 0 else ""
    whole, minor = divmod(abs(cents), 100)
    return f"{currency.upper()} {sign}{whole}.{minor:02d}"
