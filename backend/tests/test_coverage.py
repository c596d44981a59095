"""
BestPrice Compare - Coverage Reconciliation Tests
=================================================

1. covered ∪ missing == expected, covered ∩ missing == ∅ для любого выбора
2. Снятие группы → её эксклюзивные позиции уходят в missing
3. Сравнение item_id без учёта регистра и типа

Запуск: pytest backend/tests/test_coverage.py -v
"""

from itertools import product

import pytest

from bestprice_compare.coverage import (
    exclusive_items,
    item_key,
    order_coverage,
    parse_missing_items,
    supplier_coverage_from_groups,
    supplier_missing_items,
)
from bestprice_compare.models import Item, PriceRow, SupplierResponseSummary
from bestprice_compare.offer_groups import build_offer_groups
from bestprice_compare.selection import PriceOverrides, SelectionState


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def items():
    return [Item(item_id='X'), Item(item_id='Y')]


@pytest.fixture
def groups(items):
    quotes = [
        PriceRow(item_id='X', supplier_id='S1', price_quoted=5),
        PriceRow(item_id='X', supplier_id='S2', price_quoted=4, is_promotion=True, promotion_group_id='P1'),
        PriceRow(item_id='Y', supplier_id='S2', price_quoted=7, is_promotion=True, promotion_group_id='P1'),
    ]
    return build_offer_groups(quotes, items)


@pytest.fixture
def selection(groups):
    state = SelectionState()
    state.sync(groups)
    return state


# ============================================================================
# TEST: order coverage
# ============================================================================

class TestOrderCoverage:

    def test_all_selected(self, groups, selection, items):
        result = order_coverage(groups, selection, items)
        assert result.covered == ['X', 'Y']
        assert result.missing == []

    def test_toggle_promotion_moves_item_to_missing(self, groups, selection, items):
        selection.toggle('S2-P1')
        result = order_coverage(groups, selection, items)
        assert result.covered == ['X']
        assert result.missing == ['Y']
        assert result.total == 2

    def test_nothing_selected(self, groups, items):
        result = order_coverage(groups, {}, items)
        assert result.covered == []
        assert result.missing == ['X', 'Y']

    def test_partition_holds_for_every_selection(self, groups, items):
        keys = list(groups)
        expected = {'X', 'Y'}
        for flags in product([True, False], repeat=len(keys)):
            selection = dict(zip(keys, flags))
            result = order_coverage(groups, selection, items)
            assert set(result.covered) | set(result.missing) == expected
            assert not set(result.covered) & set(result.missing)

    def test_ids_compared_case_and_type_insensitive(self):
        groups = build_offer_groups([PriceRow(item_id='ab12', supplier_id='S1', price_quoted=1),
                                     PriceRow(item_id=1109, supplier_id='S1', price_quoted=2)])
        result = order_coverage(groups, {'S1-regular': True}, ['AB12', '1109', 1109.0, 'zz'])
        assert result.covered == ['AB12', '1109']
        assert result.missing == ['ZZ']

    def test_override_counts_as_coverage(self, groups, items):
        overrides = PriceOverrides()
        overrides.set('Y', 'S1-regular', 9)
        result = order_coverage(groups, {'S1-regular': True}, items, overrides)
        assert result.missing == []

    def test_item_key(self):
        assert item_key(Item(item_id='a')) == 'A'
        assert item_key('0000123') == '123'


class TestExclusiveItems:

    def test_exclusive_items_of_promotion(self, groups, selection):
        assert exclusive_items('S2-P1', groups, selection) == ['Y']
        assert exclusive_items('S1-regular', groups, selection) == []

    def test_exclusive_matches_missing_after_toggle(self, groups, selection, items):
        exclusive = exclusive_items('S2-P1', groups, selection)
        selection.toggle('S2-P1')
        assert order_coverage(groups, selection, items).missing == exclusive

    def test_unknown_group(self, groups, selection):
        assert exclusive_items('nope', groups, selection) == []


# ============================================================================
# TEST: per supplier
# ============================================================================

class TestSupplierCoverage:

    def test_missing_derived_from_responses(self, items):
        summary = SupplierResponseSummary(
            supplier_id='S1',
            responses=[PriceRow(item_id='X', supplier_id='S1', price_quoted=5),
                       PriceRow(item_id='Y', supplier_id='S1', price_quoted=None)],
        )
        coverage = supplier_missing_items(summary, items)
        assert [i.item_id for i in coverage.missing_items] == ['Y']
        assert coverage.missing_count == 1
        assert coverage.responded_item_count == 1
        assert coverage.total_expected_items == 2
        assert not coverage.is_complete

    def test_reported_missing_list_and_count_win(self, items):
        summary = SupplierResponseSummary(
            supplier_id='S1',
            missing_items=[Item(item_id='Y'), Item(item_id='Y')],
            missing_count=3,
            total_items=10,
        )
        coverage = supplier_missing_items(summary, items)
        assert [i.item_id for i in coverage.missing_items] == ['Y']
        assert coverage.missing_count == 3
        assert coverage.total_expected_items == 10

    def test_complete_supplier(self, items):
        summary = SupplierResponseSummary(
            supplier_id='S1',
            responses=[PriceRow(item_id='x', price_quoted=1), PriceRow(item_id='y', price_quoted=2)],
        )
        assert supplier_missing_items(summary, items).is_complete

    def test_regular_and_promotions_are_unioned(self, groups, items):
        s2 = supplier_coverage_from_groups('S2', groups, items)
        assert s2.missing_count == 0
        s1 = supplier_coverage_from_groups('S1', groups, items)
        assert [i.item_id for i in s1.missing_items] == ['Y']

    def test_unknown_supplier_misses_everything(self, groups, items):
        coverage = supplier_coverage_from_groups('S9', groups, items)
        assert coverage.missing_count == 2
        assert coverage.supplier_name == ''


class TestParseMissingItems:

    def test_list(self):
        parsed = parse_missing_items([{'ItemID': 'a'}, None, {'ItemID': 'A'}, {'ItemID': 'b'}])
        assert [i.item_id for i in parsed.items] == ['A', 'B']
        assert parsed.count == 2

    def test_json_string(self):
        parsed = parse_missing_items('[{"item_id": "q1"}]')
        assert parsed.count == 1

    def test_supplier_envelope(self):
        raw = {'supplierSpecificMissing': [
            {'supplier_id': 1, 'items': [{'ItemID': 'a'}], 'missingCount': 1},
            {'supplier_id': 2, 'items': [{'ItemID': 'b'}, {'ItemID': 'c'}], 'missingCount': 5},
        ]}
        parsed = parse_missing_items(raw, supplier_id='2')
        assert [i.item_id for i in parsed.items] == ['B', 'C']
        assert parsed.count == 5
        assert parse_missing_items(raw).count == 1
        assert parse_missing_items(raw, supplier_id='9').count == 0

    @pytest.mark.parametrize("raw", [None, '', '{not json', 42, {'other': 1}])
    def test_garbage_is_empty(self, raw):
        parsed = parse_missing_items(raw)
        assert parsed.items == []
        assert parsed.count == 0
