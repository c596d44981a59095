"""Winner Resolution (best effective price among selected offer groups)

Effective price = user's temporary override if present, else the group's quote.
Only positive prices compete; price equality uses an absolute tolerance.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Union

from bestprice_compare.config import PRICE_TOLERANCE
from bestprice_compare.models import Item, PriceRow
from bestprice_compare.offer_groups import OfferGroup
from bestprice_compare.pricing import discount_percent
from bestprice_compare.selection import PriceOverrides, QuantityOverrides, SelectionState

logger = logging.getLogger(__name__)

Selection = Union[SelectionState, Mapping[str, bool]]


def is_selected(selection: Selection, key: str) -> bool:
    if isinstance(selection, SelectionState):
        return selection.is_selected(key)
    return (selection or {}).get(key) is True


def selected_groups(groups: Mapping[str, OfferGroup], selection: Selection) -> List[OfferGroup]:
    return [group for key, group in groups.items() if is_selected(selection, key)]


def effective_price(
    item_id: str,
    key: str,
    quoted_price: Optional[float],
    overrides: Optional[PriceOverrides] = None,
) -> Optional[float]:
    if overrides is not None and overrides.has(item_id, key):
        return overrides.get(item_id, key)
    return quoted_price


def group_effective_price(
    group: OfferGroup,
    item_id: str,
    overrides: Optional[PriceOverrides] = None,
) -> Optional[float]:
    if group.row_for(item_id) is None:
        return None
    return effective_price(item_id, group.key, group.quoted_price(item_id), overrides)


def best_price(
    item_id: str,
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
) -> Optional[float]:
    """Minimum positive effective price over selected groups, or None"""
    best = None
    for group in selected_groups(groups, selection):
        price = group_effective_price(group, item_id, overrides)
        if price and price > 0 and (best is None or price < best):
            best = price
    return best


def is_winning(
    price: Optional[float],
    item_id: str,
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
    tolerance: float = PRICE_TOLERANCE,
) -> bool:
    """True if price is within tolerance of the current best (ties all win)"""
    if not price:
        return False
    current_best = best_price(item_id, groups, selection, overrides)
    if not current_best:
        return False
    return abs(price - current_best) <= tolerance


def winning_groups(
    item_id: str,
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
    tolerance: float = PRICE_TOLERANCE,
) -> List[str]:
    """Keys of every selected group whose effective price wins for item_id"""
    current_best = best_price(item_id, groups, selection, overrides)
    if current_best is None:
        return []
    winners = []
    for group in selected_groups(groups, selection):
        price = group_effective_price(group, item_id, overrides)
        if price and abs(price - current_best) <= tolerance:
            winners.append(group.key)
    return winners


@dataclass
class SupplierSummary:
    key: str
    total_items: int
    winning_items: int
    total_value: float
    winning_rows: List[PriceRow] = field(default_factory=list)


def supplier_summary(
    group: OfferGroup,
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
    quantities: Optional[QuantityOverrides] = None,
    tolerance: float = PRICE_TOLERANCE,
) -> SupplierSummary:
    """
    Per-group totals for the suppliers view.

    total_value = Σ effective price × quantity over the items this group wins.
    Quantity: edited value, else the row's requested_qty.
    """
    winning_rows = []
    total_value = 0.0
    for row in group.items:
        price = effective_price(row.item_id, group.key, row.price_quoted, overrides)
        if not is_winning(price, row.item_id, groups, selection, overrides, tolerance):
            continue
        winning_rows.append(row)
        qty = quantities.quantity_for_id(row.item_id, row.requested_qty) if quantities else row.requested_qty
        total_value += price * qty

    return SupplierSummary(
        key=group.key,
        total_items=len(group.items),
        winning_items=len(winning_rows),
        total_value=total_value,
        winning_rows=winning_rows,
    )


def max_discount(
    item_id: str,
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    exchange_rate: float,
    overrides: Optional[PriceOverrides] = None,
) -> Optional[float]:
    """Best discount any selected group offers for item_id"""
    best = None
    for group in selected_groups(groups, selection):
        row = group.row_for(item_id)
        if row is None:
            continue
        price = effective_price(item_id, group.key, row.price_quoted, overrides)
        discount = discount_percent(price, row.import_markup, row.retail_price, exchange_rate)
        if discount is not None and (best is None or discount > best):
            best = discount
    return best


def should_show_item(
    item: Item,
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    exchange_rate: float,
    overrides: Optional[PriceOverrides] = None,
    search_query: str = '',
    discount_filter: Optional[float] = None,
) -> bool:
    """
    Items view filter.

    - search: substring of item_id or Hebrew description, case-insensitive
    - discount_filter: show only items whose best selected discount is
      below the threshold (items with no computable discount are hidden)
    """
    if search_query:
        needle = search_query.strip().lower()
        if needle and needle not in item.item_id.lower() and needle not in item.hebrew_description.lower():
            return False

    if discount_filter is None:
        return True

    discount = max_discount(item.item_id, groups, selection, exchange_rate, overrides)
    return discount is not None and discount < discount_filter


def filter_items(
    items: Iterable[Item],
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    exchange_rate: float,
    overrides: Optional[PriceOverrides] = None,
    search_query: str = '',
    discount_filter: Optional[float] = None,
) -> List[Item]:
    return [
        item for item in items
        if should_show_item(item, groups, selection, exchange_rate, overrides, search_query, discount_filter)
    ]


def winners_by_item(
    item_ids: Iterable[str],
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
    tolerance: float = PRICE_TOLERANCE,
) -> Dict[str, List[str]]:
    return {
        item_id: winning_groups(item_id, groups, selection, overrides, tolerance)
        for item_id in item_ids
    }
