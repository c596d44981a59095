"""
BestPrice Compare - Comparison Tables Tests
===========================================

Запуск: pytest backend/tests/test_report.py -v
"""

import pandas as pd
import pytest

from bestprice_compare.models import Item, PriceRow
from bestprice_compare.offer_groups import build_offer_groups
from bestprice_compare.report import ITEM_COLUMNS, items_frame, suppliers_frame

RATE = 3.95


@pytest.fixture
def items():
    return [
        Item(item_id='X', hebrew_description='פריט X', retail_price=50, import_markup=1.3, requested_qty=2),
        Item(item_id='Y', hebrew_description='פריט Y', retail_price=80, import_markup=1.3, requested_qty=3),
    ]


@pytest.fixture
def groups(items):
    quotes = [
        PriceRow(item_id='X', supplier_id='S1', supplier_name='Supplier 1', price_quoted=5,
                 import_markup=1.3, retail_price=50, requested_qty=2),
        PriceRow(item_id='X', supplier_id='S2', supplier_name='Supplier 2', price_quoted=4,
                 import_markup=1.3, retail_price=50, requested_qty=2,
                 is_promotion=True, promotion_group_id='P1', promotion_name='Spring'),
        PriceRow(item_id='Y', supplier_id='S2', supplier_name='Supplier 2', price_quoted=7,
                 import_markup=1.3, retail_price=80, requested_qty=3,
                 is_promotion=True, promotion_group_id='P1', promotion_name='Spring'),
    ]
    return build_offer_groups(quotes, items)


class TestItemsFrame:

    def test_columns_and_index(self, items, groups):
        frame = items_frame(items, groups, {'S1-regular': True, 'S2-P1': True}, RATE)
        assert list(frame.index) == ['X', 'Y']
        assert list(frame.columns) == ITEM_COLUMNS[1:] + ['S1-regular', 'S2-P1']

    def test_best_price_and_winners(self, items, groups):
        frame = items_frame(items, groups, {'S1-regular': True, 'S2-P1': True}, RATE)
        assert frame.loc['X', 'best_price'] == 4
        assert frame.loc['X', 'winners'] == ['S2-P1']
        assert frame.loc['X', 'best_discount'] == pytest.approx(58.92)
        assert pd.isna(frame.loc['Y', 'S1-regular'])

    def test_only_selected_group_columns(self, items, groups):
        frame = items_frame(items, groups, {'S1-regular': True}, RATE)
        assert 'S2-P1' not in frame.columns
        assert bool(frame.loc['X', 'covered']) is True
        assert bool(frame.loc['Y', 'covered']) is False
        assert frame.loc['Y', 'winners'] == []


class TestSuppliersFrame:

    def test_one_row_per_group(self, groups):
        frame = suppliers_frame(groups, {'S1-regular': True, 'S2-P1': True})
        assert list(frame['group_key']) == ['S1-regular', 'S2-P1']
        promo = frame.set_index('group_key').loc['S2-P1']
        assert promo['winning_items'] == 2
        assert promo['total_value'] == pytest.approx(29)
        assert promo['promotion_name'] == 'Spring'
        regular = frame.set_index('group_key').loc['S1-regular']
        assert regular['priced_items'] == 1
        assert regular['total_items'] == 2

    def test_empty(self):
        frame = suppliers_frame({}, {})
        assert frame.empty
        assert 'total_value' in frame.columns
