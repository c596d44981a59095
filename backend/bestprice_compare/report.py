"""Comparison tables (pandas) for the items view and the suppliers view"""
import logging
from typing import List, Mapping, Optional, Sequence

import pandas as pd

from bestprice_compare.config import PRICE_TOLERANCE
from bestprice_compare.coverage import order_coverage
from bestprice_compare.models import Item
from bestprice_compare.offer_groups import OfferGroup
from bestprice_compare.pricing import discount_percent
from bestprice_compare.selection import PriceOverrides, QuantityOverrides
from bestprice_compare.winner import (
    Selection,
    best_price,
    group_effective_price,
    is_selected,
    supplier_summary,
    winning_groups,
)

logger = logging.getLogger(__name__)

ITEM_COLUMNS = ['item_id', 'description', 'retail_price', 'qty', 'best_price', 'best_discount', 'winners', 'covered']


def items_frame(
    items: Sequence[Item],
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    exchange_rate: float,
    overrides: Optional[PriceOverrides] = None,
    quantities: Optional[QuantityOverrides] = None,
    tolerance: float = PRICE_TOLERANCE,
) -> pd.DataFrame:
    """
    Матрица позиции × выбранные группы.

    Колонки: ITEM_COLUMNS + по колонке эффективной цены на каждую выбранную группу.
    Нет цены → NaN (pandas), в UI это "No Price".
    """
    selected_keys = [key for key in groups if is_selected(selection, key)]
    coverage = order_coverage(groups, selection, items, overrides)
    covered = set(coverage.covered)

    records = []
    for item in items:
        best = best_price(item.item_id, groups, selection, overrides)
        winners = winning_groups(item.item_id, groups, selection, overrides, tolerance)

        best_discount = None
        if winners:
            row = groups[winners[0]].row_for(item.item_id)
            best_discount = discount_percent(best, row.import_markup, row.retail_price, exchange_rate)

        record = {
            'item_id': item.item_id,
            'description': item.hebrew_description or item.english_description,
            'retail_price': item.retail_price,
            'qty': quantities.quantity_for(item) if quantities else item.requested_qty,
            'best_price': best,
            'best_discount': best_discount,
            'winners': winners,
            'covered': item.item_id in covered,
        }
        for key in selected_keys:
            record[key] = group_effective_price(groups[key], item.item_id, overrides)
        records.append(record)

    frame = pd.DataFrame.from_records(records, columns=ITEM_COLUMNS + selected_keys)
    return frame.set_index('item_id')


def suppliers_frame(
    groups: Mapping[str, OfferGroup],
    selection: Selection,
    overrides: Optional[PriceOverrides] = None,
    quantities: Optional[QuantityOverrides] = None,
    tolerance: float = PRICE_TOLERANCE,
) -> pd.DataFrame:
    """Одна строка на группу: выбрана ли, сколько позиций выигрывает, сумма"""
    records: List[dict] = []
    for key, group in groups.items():
        summary = supplier_summary(group, groups, selection, overrides, quantities, tolerance)
        records.append({
            'group_key': key,
            'supplier_id': group.supplier_id,
            'supplier_name': group.supplier_name,
            'is_promotion': group.is_promotion,
            'promotion_name': group.promotion_name,
            'selected': is_selected(selection, key),
            'priced_items': len(group.priced_item_ids()),
            'total_items': summary.total_items,
            'winning_items': summary.winning_items,
            'total_value': round(summary.total_value, 2),
        })
    columns = [
        'group_key', 'supplier_id', 'supplier_name', 'is_promotion', 'promotion_name',
        'selected', 'priced_items', 'total_items', 'winning_items', 'total_value',
    ]
    return pd.DataFrame.from_records(records, columns=columns)
