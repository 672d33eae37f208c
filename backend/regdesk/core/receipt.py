"""Ticket & Receipt Model — the resolved data handed to the document renderer.

Invariants:
    - Seller legal name, org number and (if VAT-registered) VAT number are present
    - The platform appears as selling agent, never as seller
    - Line totals after discount sum exactly to subtotal - discount
    - VAT breakdown is included only when the seller is VAT-registered
    - QR tokens appear here, holder PII does not travel inside them

Design Decisions:
    - Plain dataclasses + receipt_to_dict(): the renderer is an external
      collaborator, so the contract is JSON, not ORM objects
    - Lines without a stored unit price get an even split of the subtotal
      (allocate_evenly) so the parts can never drift from the snapshot
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from regdesk.core.money import (
    OrderTotals,
    VatBreakdown,
    allocate_evenly,
    allocate_proportionally,
    vat_breakdown,
)


@dataclass(frozen=True)
class Address:
    street: str | None = None
    postal_code: str | None = None
    city: str | None = None
    country: str | None = None


@dataclass(frozen=True)
class SellerInfo:
    legal_name: str
    organization_number: str | None = None
    address: Address | None = None
    contact_email: str | None = None
    vat_registered: bool = False
    vat_number: str | None = None


@dataclass(frozen=True)
class PlatformInfo:
    name: str
    legal_name: str
    organization_number: str
    website: str
    support_email: str
    acts_as_agent: bool = True


@dataclass(frozen=True)
class BuyerInfo:
    name: str
    email: str


@dataclass(frozen=True)
class TransactionInfo:
    order_number: str
    transaction_date: datetime
    payment_reference: str | None = None
    charge_reference: str | None = None
    payment_method: str = "card"


@dataclass(frozen=True)
class ReceiptLine:
    description: str
    quantity: int
    unit_price_cents: int
    discount_cents: int
    total_price_cents: int


@dataclass(frozen=True)
class ReceiptTicket:
    ticket_number: int
    holder_name: str
    item_title: str
    qr_token: str


@dataclass(frozen=True)
class PricedLine:
    """A receipt line before discount allocation; unit price may be unknown."""
    description: str
    quantity: int
    unit_price_cents: int | None


@dataclass(frozen=True)
class TicketReceipt:
    seller: SellerInfo
    platform: PlatformInfo
    buyer: BuyerInfo
    transaction: TransactionInfo
    lines: list[ReceiptLine]
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    currency: str
    vat: VatBreakdown | None = None
    tickets: list[ReceiptTicket] = field(default_factory=list)


def format_org_number(org_number: str | None) -> str:
    """'123456789' → '123 456 789'; anything not 9 digits is returned as-is."""
    if not org_number:
        return ""
    cleaned = "".join(org_number.split())
    if len(cleaned) != 9:
        return org_number
    return f"{cleaned[0:3]} {cleaned[3:6]} {cleaned[6:9]}"


def format_vat_number(org_number: str | None) -> str:
    """'123456789' → 'NO 123 456 789 MVA'."""
    if not org_number:
        return ""
    return f"NO {format_org_number(org_number)} MVA"


def resolve_line_prices(subtotal_cents: int, lines: list[PricedLine]) -> list[int]:
    """Per-unit prices, filling unknown ones from what the subtotal leaves over."""
    known = sum(
        line.unit_price_cents * line.quantity
        for line in lines if line.unit_price_cents is not None
    )
    unknown = [i for i, line in enumerate(lines) if line.unit_price_cents is None]
    prices = [line.unit_price_cents or 0 for line in lines]
    if not unknown:
        return prices
    shares = allocate_evenly(max(subtotal_cents - known, 0), len(unknown))
    for index, share in zip(unknown, shares):
        # Share is a line total; quantity > 1 lines report the floor unit price.
        prices[index] = share // max(lines[index].quantity, 1)
    return prices


def build_receipt_lines(
    lines: list[PricedLine], totals: OrderTotals,
) -> list[ReceiptLine]:
    unit_prices = resolve_line_prices(totals.subtotal_cents, lines)
    gross = [price * line.quantity for price, line in zip(unit_prices, lines)]
    discounts = allocate_proportionally(totals.discount_cents, gross)
    return [
        ReceiptLine(
            description=line.description,
            quantity=line.quantity,
            unit_price_cents=price,
            discount_cents=discount,
            total_price_cents=line_gross - discount,
        )
        for line, price, line_gross, discount in zip(
            lines, unit_prices, gross, discounts,
        )
    ]


def build_receipt(
    *,
    seller: SellerInfo,
    platform: PlatformInfo,
    buyer: BuyerInfo,
    transaction: TransactionInfo,
    lines: list[PricedLine],
    totals: OrderTotals,
    tickets: list[ReceiptTicket] | None = None,
) -> TicketReceipt:
    if seller.vat_registered and not seller.vat_number:
        seller = SellerInfo(
            legal_name=seller.legal_name,
            organization_number=seller.organization_number,
            address=seller.address,
            contact_email=seller.contact_email,
            vat_registered=True,
            vat_number=format_vat_number(seller.organization_number) or None,
        )
    return TicketReceipt(
        seller=seller,
        platform=platform,
        buyer=buyer,
        transaction=transaction,
        lines=build_receipt_lines(lines, totals),
        subtotal_cents=totals.subtotal_cents,
        discount_cents=totals.discount_cents,
        tax_cents=totals.tax_cents,
        total_cents=totals.total_cents,
        currency=totals.currency,
        vat=vat_breakdown(totals) if seller.vat_registered else None,
        tickets=list(tickets or []),
    )


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value


def receipt_to_dict(receipt: TicketReceipt) -> dict[str, Any]:
    return _jsonable(asdict(receipt))
