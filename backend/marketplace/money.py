# Overview: Shared financial arithmetic for vendor sales (integer cents only).

"""
Marketplace money rules (authoritative)

- All amounts are integer cents. Floats never enter the arithmetic.
- Rates are basis points (1 bps = 0.01%).
- Commission is rounded half-up to the cent; net is derived by subtraction
  so that commission + net == sale amount holds exactly for every record
  and order-level totals reconcile without drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation


# Platform cut on online sales: 5%. Fixed, not per vendor or category.
COMMISSION_RATE_BPS = 500

BPS_DENOMINATOR = 10_000


@dataclass(frozen=True)
class SaleAmounts:
    sale_amount_cents: int
    platform_commission_cents: int
    net_amount_cents: int

    def to_dict(self) -> dict:
        return {
            "sale_amount_cents": self.sale_amount_cents,
            "platform_commission_cents": self.platform_commission_cents,
            "net_amount_cents": self.net_amount_cents,
        }


def compute_sale_amount_cents(unit_price_cents: int, quantity: int) -> int:
    if unit_price_cents < 0:
        raise ValueError("unit price cannot be negative")
    if quantity <= 0:
        raise ValueError("quantity must be at least 1")
    return unit_price_cents * quantity


def apply_rate_cents(amount_cents: int, rate_bps: int) -> int:
    """amount * rate, rounded half-up to the cent."""
    if rate_bps < 0:
        raise ValueError("rate cannot be negative")
    # integer half-up; amounts are non-negative here
    return (amount_cents * rate_bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


def compute_commission_cents(sale_amount_cents: int, rate_bps: int = COMMISSION_RATE_BPS) -> int:
    return apply_rate_cents(sale_amount_cents, rate_bps)


def compute_net_amount_cents(
    sale_amount_cents: int,
    platform_commission_cents: int,
    tax_cents: int = 0,
) -> int:
    net = sale_amount_cents - platform_commission_cents - tax_cents
    if net < 0:
        raise ValueError("net amount cannot be negative")
    return net


def split_online_sale(
    unit_price_cents: int,
    quantity: int,
    rate_bps: int = COMMISSION_RATE_BPS,
) -> SaleAmounts:
    """Sale amount, platform commission and vendor net for one order line."""
    sale_amount = compute_sale_amount_cents(unit_price_cents, quantity)
    commission = compute_commission_cents(sale_amount, rate_bps)
    return SaleAmounts(
        sale_amount_cents=sale_amount,
        platform_commission_cents=commission,
        net_amount_cents=compute_net_amount_cents(sale_amount, commission),
    )


def to_cents(value) -> int:
    """
    Convert a major-unit amount ("33.33", 33.33, Decimal) to cents, half-up.

    Used at the edges only (CLI, seed data); storage is always cents.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be numeric")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"invalid amount: {value!r}")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_decimal(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(cents) / 100).quantize(Decimal("0.01"))
