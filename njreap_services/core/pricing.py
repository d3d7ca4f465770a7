"""
Quote pricing for appraisal and photography services.

Prices come from the ``service_pricing`` table for the property's size tier.
The module-level tables below are only consulted when no row exists for a
service in that tier.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..models import ServiceType

logger = logging.getLogger(__name__)

SERVICE_NAMES: Dict[str, str] = {
    "appraisal": "Appraisal Report",
    "basic-photography": "Basic Photography Package",
    "premium-photography": "Premium Photography Package",
    "ultimate-photography": "Ultimate Photography Package",
    "professional-photography": "Professional Photography",
    "aerial-photography": "Aerial Photography",
    "floor-plans": "Floor Plans",
    "virtual-tours": "Virtual Tours",
    "matterport-tours": "Virtual Home Tour",
    "real-estate-videography": "Real Estate Videography",
}

FALLBACK_PRICES: Dict[str, float] = {
    "basic-photography": 299,
    "premium-photography": 499,
    "ultimate-photography": 699,
    "professional-photography": 200,
    "aerial-photography": 200,
    "floor-plans": 125,
    "virtual-tours": 300,
    "matterport-tours": 400,
    "real-estate-videography": 400,
}

# (upper bound inclusive, price); last bound is open
APPRAISAL_FALLBACK_TIERS = [
    (2000, 450),
    (3000, 525),
    (None, 600),
]

PHOTOGRAPHY_PACKAGES = {
    "basic-photography",
    "premium-photography",
    "ultimate-photography",
    "professional-photography",
}

DEFAULT_SQFT = 1500
MIN_COUNTY_SQFT = 200


@dataclass
class DiscountCode:
    code: str
    type: str
    value: float

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DiscountCode":
        return cls(
            code=str(row.get("code", "")).upper(),
            type=str(row.get("type") or "fixed"),
            value=float(row.get("value") or 0),
        )


@dataclass
class Quote:
    line_items: List[Dict[str, Any]]
    subtotal: float
    discount_amount: float = 0
    discount_code: Optional[str] = None
    tier: str = ""
    square_feet: Optional[int] = None
    total: float = field(init=False)

    def __post_init__(self):
        self.total = max(0, self.subtotal - self.discount_amount)

    @property
    def breakdown(self) -> List[Dict[str, Any]]:
        """Line items plus a negative discount line for display."""
        items = list(self.line_items)
        if self.discount_amount > 0 and self.discount_code:
            items.append({
                "id": "discount",
                "name": f"Discount ({self.discount_code})",
                "price": -self.discount_amount,
            })
        return items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lineItems": self.line_items,
            "serviceBreakdown": self.breakdown,
            "subtotal": self.subtotal,
            "discountCode": self.discount_code,
            "discountAmount": self.discount_amount,
            "total": self.total,
            "tier": self.tier,
            "squareFeet": self.square_feet,
        }


def service_name(service_id: str) -> str:
    return SERVICE_NAMES.get(service_id, service_id)


def _digits(value: Any) -> int:
    if value is None:
        return 0
    digits = re.sub(r"[^0-9]", "", str(value).split(".")[0])
    return int(digits) if digits else 0


def county_square_feet(county_data: Optional[Mapping[str, Any]]) -> int:
    if not county_data:
        return 0
    return _digits(county_data.get("Sq_Ft")) or _digits(county_data.get("Living_Sqft"))


def living_square_feet(county_data: Optional[Mapping[str, Any]], user_entered: Any = None) -> int:
    """County living area when plausible, then the user's figure, then the default."""
    sqft = county_square_feet(county_data)
    if sqft >= MIN_COUNTY_SQFT:
        return sqft
    return _digits(user_entered) or DEFAULT_SQFT


def tier_for_square_feet(sqft: int) -> str:
    if sqft < 1500:
        return "under_1500"
    if sqft <= 2500:
        return "1500_to_2500"
    return "over_2500"


def fallback_price(service_id: str, sqft: int) -> float:
    if service_id == "appraisal":
        for bound, price in APPRAISAL_FALLBACK_TIERS:
            if bound is None or sqft <= bound:
                return price
    return FALLBACK_PRICES.get(service_id, 0)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def discount_amount_for(subtotal: float, discount: Optional[DiscountCode]) -> float:
    if not discount or subtotal <= 0:
        return 0
    if discount.type == "percentage":
        amount = _round_half_up(subtotal * discount.value / 100)
    else:
        amount = discount.value
    return max(0, min(amount, subtotal))


class PricingEngine:
    """Computes quotes from tier prices with hardcoded fallbacks."""

    def __init__(self, price_source=None):
        # price_source: object with prices_for_tier(tier) -> {service_id: price}
        # and get_discount_code(code) -> row | None
        self.price_source = price_source

    def _tier_prices(self, tier: str) -> Dict[str, float]:
        if self.price_source is None:
            return {}
        try:
            return self.price_source.prices_for_tier(tier) or {}
        except Exception as e:
            logger.error(f"Error fetching service prices for tier {tier}: {e}")
            return {}

    def lookup_discount(self, code: Optional[str]) -> Optional[DiscountCode]:
        if not code or not code.strip() or self.price_source is None:
            return None
        try:
            row = self.price_source.get_discount_code(code.strip().upper())
        except Exception as e:
            logger.error(f"Error validating discount code: {e}")
            return None
        return DiscountCode.from_row(row) if row else None

    def price_services(self, service_ids: Iterable[str], sqft: int) -> List[Dict[str, Any]]:
        tier = tier_for_square_feet(sqft)
        tier_prices = self._tier_prices(tier)
        items = []
        for service_id in service_ids:
            if service_id in tier_prices and tier_prices[service_id] is not None:
                price = float(tier_prices[service_id])
            else:
                price = float(fallback_price(service_id, sqft))
            items.append({"id": service_id, "name": service_name(service_id), "price": price})
        return items

    def quote(self, service_ids: Iterable[str], county_data: Optional[Mapping[str, Any]] = None,
              user_entered_sqft: Any = None, discount_code: Optional[str] = None) -> Quote:
        sqft = living_square_feet(county_data, user_entered_sqft)
        items = self.price_services(list(service_ids), sqft)
        subtotal = sum(item["price"] for item in items)
        discount = self.lookup_discount(discount_code)
        amount = discount_amount_for(subtotal, discount)
        return Quote(
            line_items=items,
            subtotal=subtotal,
            discount_amount=amount,
            discount_code=discount.code if discount else None,
            tier=tier_for_square_feet(sqft),
            square_feet=sqft,
        )


def service_type_for(selected_services: Iterable[str]) -> ServiceType:
    selected = set(selected_services)
    if "appraisal" in selected:
        return ServiceType.APPRAISAL
    if selected & PHOTOGRAPHY_PACKAGES:
        return ServiceType.PHOTOGRAPHY
    if "aerial-photography" in selected:
        return ServiceType.AERIAL_PHOTOGRAPHY
    if "floor-plans" in selected:
        return ServiceType.FLOOR_PLANS
    if selected & {"virtual-tours", "real-estate-videography", "matterport-tours"}:
        return ServiceType.VIRTUAL_TOUR
    return ServiceType.PHOTOGRAPHY


def format_currency(amount: float) -> str:
    sign = "-" if amount < 0 else ""
    amount = abs(amount)
    if float(amount).is_integer():
        return f"{sign}${int(amount):,}"
    return f"{sign}${amount:,.2f}"


def build_job_description(quote: Quote, form, property_data) -> str:
    lines = ["Services requested:"]
    for item in quote.line_items:
        lines.append(f"- {item['name']}: {format_currency(item['price'])}")
    lines.append(f"Subtotal: {format_currency(quote.subtotal)}")
    if quote.discount_amount:
        lines.append(f"Discount ({quote.discount_code}): -{format_currency(quote.discount_amount)}")
    lines.append(f"Total: {format_currency(quote.total)}")

    lines.append("")
    lines.append(f"Property: {property_data.address or 'N/A'}")
    if quote.square_feet:
        lines.append(f"Living area used for pricing: {quote.square_feet:,} sq ft")

    if "appraisal" in form.selected_services:
        lines.append("")
        lines.append("Appraisal details:")
        lines.append(f"- Property type: {form.appraisal_property_type or 'N/A'}")
        lines.append(f"- Intended use: {form.appraisal_intended_use or 'N/A'}")
        lines.append(f"- Report type: {form.appraisal_report_option or 'N/A'}")
        lines.append(f"- Effective date: {form.appraisal_effective_date or 'N/A'}")

    if form.selected_date and form.selected_time:
        lines.append("")
        lines.append(f"Requested appointment: {form.selected_date[:10]} at {form.selected_time}")
    if form.message:
        lines.append("")
        lines.append(f"Notes: {form.message}")
    return "\n".join(lines)
