# app/services/pricing.py
"""
Booking price computation.

Pure functions: nothing here touches the session. The caller persists the
result and bumps the services' booking counters.
"""
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Mapping, Optional, Sequence

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.db.models.service import Service
from app.schemas.booking import BookingLineRequest, SelectedOptionIn


@dataclass
class PricedLine:
    service_id: int
    quantity: int
    price: float
    selected_options: List[Dict[str, object]] = field(default_factory=list)


@dataclass
class PricingBreakdown:
    provider_id: int
    currency: str
    lines: List[PricedLine]
    service_total: float
    platform_fee: float
    total_amount: float


def unit_price(service: Service) -> float:
    """Discounted price when a discount is active and set, base price otherwise."""
    if service.has_discount and service.discounted_price is not None:
        return service.discounted_price
    return service.base_price


def platform_fee(service_total: float, rate: Optional[float] = None) -> float:
    """
    Marketplace cut, rounded half-up to a whole currency unit.
    Computed in Decimal: platform_fee(25) == 3, platform_fee(24) == 2.
    """
    rate = settings.platform_fee_rate if rate is None else rate
    fee = Decimal(str(service_total)) * Decimal(str(rate))
    return float(fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _resolve_options(selected: Sequence[SelectedOptionIn]) -> List[Dict[str, object]]:
    resolved = []
    for opt in selected:
        price = opt.price or 0
        if price < 0:
            raise ValidationError(f"Option '{opt.name}' has a negative price")
        resolved.append({"name": opt.name, "price": price})
    return resolved


def compute_pricing(
    requested_lines: Sequence[BookingLineRequest],
    catalog_services: Mapping[int, Service],
    fee_rate: Optional[float] = None,
) -> PricingBreakdown:
    if not requested_lines:
        raise ValidationError("Select at least one service")

    missing = [line.service_id for line in requested_lines if line.service_id not in catalog_services]
    if missing:
        raise NotFoundError(
            "One or more services were not found or are unavailable",
            details={"service_ids": missing},
        )

    resolved = [catalog_services[line.service_id] for line in requested_lines]
    provider_id = resolved[0].provider_id
    if any(s.provider_id != provider_id for s in resolved):
        raise ValidationError("All services must belong to the same provider")

    lines: List[PricedLine] = []
    service_total = 0.0
    for line, service in zip(requested_lines, resolved):
        quantity = line.quantity if line.quantity is not None else 1
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        options = _resolve_options(line.selected_options or [])
        # options are flat extras, not multiplied by quantity
        item_total = unit_price(service) * quantity + sum(o["price"] for o in options)

        service_total += item_total
        lines.append(
            PricedLine(
                service_id=service.id,
                quantity=quantity,
                price=item_total,
                selected_options=options,
            )
        )

    fee = platform_fee(service_total, fee_rate)
    return PricingBreakdown(
        provider_id=provider_id,
        currency=resolved[0].currency or "FCFA",
        lines=lines,
        service_total=service_total,
        platform_fee=fee,
        total_amount=service_total + fee,
    )
