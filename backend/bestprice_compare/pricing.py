"""Price Arithmetic (quoted foreign price → local cost, discount vs retail)

Rules:
1. Any missing / non-numeric input → None (never NaN, never an exception)
2. Quoted prices may arrive as decimal-comma strings ("12,50")
3. Discount is clamped to [0, 100]
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

DISCOUNT_MIN = 0.0
DISCOUNT_MAX = 100.0

# Margin bands for UI colouring
MARGIN_ERROR_BELOW = 20.0
MARGIN_WARNING_BELOW = 30.0


def parse_price(value: Any) -> Optional[float]:
    """Parse a number or decimal-comma string

    Returns:
        float, or None for None / '' / bool / NaN / inf / garbage
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if ',' in text:
            text = text.replace(',', '.')
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        try:
            number = float(value)
        except (TypeError, ValueError):
            return None
    if not math.isfinite(number):
        return None
    return number


def to_local_cost(quoted_price: Any, exchange_rate: Any, import_markup: Any) -> Optional[float]:
    """Local-currency cost = quoted * rate * markup

    None if the price is missing or rate / markup are missing or <= 0.
    """
    price = parse_price(quoted_price)
    rate = parse_price(exchange_rate)
    markup = parse_price(import_markup)
    if price is None or rate is None or markup is None:
        return None
    if rate <= 0 or markup <= 0:
        return None
    cost = price * rate * markup
    return cost if math.isfinite(cost) else None


def discount_percent(
    quoted_price: Any,
    import_markup: Any,
    retail_price: Any,
    exchange_rate: Any,
) -> Optional[float]:
    """Discount of the supplier's local cost against the retail price, in %

    ((retail - cost) / retail) * 100, clamped to [0, 100]: a loss-making
    offer shows 0, never a negative discount, and nothing exceeds 100.

    Zero price / markup / retail count as missing.
    """
    price = parse_price(quoted_price)
    markup = parse_price(import_markup)
    retail = parse_price(retail_price)
    rate = parse_price(exchange_rate)
    if not price or not markup or not retail or rate is None:
        return None

    cost = to_local_cost(price, rate, markup)
    if cost is None:
        return None

    discount = ((retail - cost) / retail) * 100
    if math.isnan(discount):
        return None
    logger.debug(f"discount: price={price} markup={markup} retail={retail} rate={rate} cost={cost:.4f} -> {discount:.2f}%")
    return max(DISCOUNT_MIN, min(DISCOUNT_MAX, discount))


def margin_percent(retail_price: Any, cost_price: Any) -> Optional[float]:
    """Unclamped margin of retail over cost, in %"""
    retail = parse_price(retail_price)
    cost = parse_price(cost_price)
    if not retail or not cost:
        return None
    return ((retail - cost) / retail) * 100


@dataclass(frozen=True)
class MarginInfo:
    margin: float
    level: str  # error / warning / success


def margin_level(margin: float) -> str:
    if margin < MARGIN_ERROR_BELOW:
        return 'error'
    if margin < MARGIN_WARNING_BELOW:
        return 'warning'
    return 'success'


def margin_info(quoted_price: Any, retail_price: Any, import_markup: Any, exchange_rate: Any) -> Optional[MarginInfo]:
    cost = to_local_cost(quoted_price, exchange_rate, import_markup)
    if not cost:
        return None
    margin = margin_percent(retail_price, cost)
    if margin is None:
        return None
    return MarginInfo(margin=margin, level=margin_level(margin))


@dataclass(frozen=True)
class PriceAnalysis:
    lowest: float
    highest: float
    average: float


def price_analysis(prices: Iterable[Any]) -> Optional[PriceAnalysis]:
    """Lowest / highest / average of the numeric entries (strings are ignored)"""
    valid = [
        float(p) for p in prices or []
        if isinstance(p, (int, float)) and not isinstance(p, bool) and math.isfinite(p)
    ]
    if not valid:
        return None
    return PriceAnalysis(
        lowest=min(valid),
        highest=max(valid),
        average=sum(valid) / len(valid),
    )
