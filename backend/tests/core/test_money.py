"""Money & VAT — verifies order totals in integer minor units.

Tests:
    - total == subtotal - discount + tax for every computed snapshot
    - Discount clamped to [0, subtotal]; tax computed on the discounted net
    - VAT rounding is half-up
    - Invalid quantities, prices and rates raise ValidationError
    - Even and proportional allocation always sum back to the total
"""

from decimal import Decimal

import pytest

from regdesk.core.errors import ValidationError
from regdesk.core.money import (
    LineItem,
    allocate_evenly,
    allocate_proportionally,
    calculate_totals,
    compute_tax,
    format_amount,
    totals_are_consistent,
    vat_breakdown,
)


def test_two_course_tracks_without_vat():
    lines = [
        LineItem("Salsa Beginners", 1, 100_000),
        LineItem("Bachata Level 2", 1, 100_000),
    ]
    totals = calculate_totals(lines, currency="nok")
    assert totals.subtotal_cents == 200_000
    assert totals.discount_cents == 0
    assert totals.tax_cents == 0
    assert totals.total_cents == 200_000
    assert totals.currency == "NOK"


def test_vat_applies_to_discounted_net():
    totals = calculate_totals(
        [LineItem("Workshop", 2, 50_000)], discount_cents=20_000, vat_rate="25",
    )
    assert totals.subtotal_cents == 100_000
    assert totals.discount_cents == 20_000
    assert totals.tax_cents == 20_000
    assert totals.total_cents == 100_000


def test_discount_is_clamped_to_subtotal():
    totals = calculate_totals([LineItem("Social", 1, 10_000)], discount_cents=99_999)
    assert totals.discount_cents == 10_000
    assert totals.total_cents == 0


def test_negative_discount_is_treated_as_zero():
    totals = calculate_totals([LineItem("Social", 1, 10_000)], discount_cents=-500)
    assert totals.discount_cents == 0
    assert totals.total_cents == 10_000


def test_tax_rounds_half_up():
    # 25 % of 2 øre = 0.5 → 1
    assert compute_tax(2, Decimal("25")) == 1
    # 15 % of 3 øre = 0.45 → 0
    assert compute_tax(3, Decimal("15")) == 0


@pytest.mark.parametrize("discount,rate", [(0, 0), (333, "25"), (1_001, "12.5")])
def test_totals_are_always_consistent(discount, rate):
    totals = calculate_totals(
        [LineItem("A", 3, 1_999), LineItem("B", 1, 4_321)],
        discount_cents=discount, vat_rate=rate,
    )
    assert totals_are_consistent(
        totals.subtotal_cents, totals.discount_cents,
        totals.tax_cents, totals.total_cents,
    )


def test_zero_quantity_rejected():
    with pytest.raises(ValidationError) as exc:
        calculate_totals([LineItem("A", 0, 100)])
    assert exc.value.field == "quantity"


def test_negative_price_rejected():
    with pytest.raises(ValidationError):
        calculate_totals([LineItem("A", 1, -1)])


def test_negative_vat_rate_rejected():
    with pytest.raises(ValidationError):
        calculate_totals([LineItem("A", 1, 100)], vat_rate="-1")


def test_vat_breakdown_reports_net_and_gross():
    totals = calculate_totals(
        [LineItem("A", 1, 10_000)], discount_cents=2_000, vat_rate=25,
    )
    breakdown = vat_breakdown(totals)
    assert breakdown.net_amount_cents == 8_000
    assert breakdown.vat_amount_cents == 2_000
    assert breakdown.gross_amount_cents == 10_000


# ─── Allocation ──────────────────────────────────────────────────

def test_allocate_evenly_front_loads_remainder():
    assert allocate_evenly(10, 3) == [4, 3, 3]
    assert sum(allocate_evenly(200_001, 7)) == 200_001


def test_allocate_evenly_rejects_zero_parts():
    with pytest.raises(ValidationError):
        allocate_evenly(100, 0)


def test_allocate_proportionally_sums_to_total():
    shares = allocate_proportionally(1_000, [1, 1, 1])
    assert sum(shares) == 1_000
    assert shares == [334, 333, 333]


def test_allocate_proportionally_follows_weights():
    assert allocate_proportionally(300, [100, 200]) == [100, 200]


def test_allocate_proportionally_zero_weights_split_evenly():
    assert allocate_proportionally(5, [0, 0]) == [3, 2]


def test_allocate_proportionally_empty():
    assert allocate_proportionally(5, []) == []


def test_format_amount():
    assert format_amount(200_000, "nok") == "NOK 2000.00"
    assert format_amount(-5, "EUR") == "EUR -0.05"
