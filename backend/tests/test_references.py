"""
BestPrice Compare - Replacement Chain Tests
===========================================

Запуск: pytest backend/tests/test_references.py -v
"""

import logging

import pytest

from bestprice_compare.models import ReferenceSource, ReplacementEdge
from bestprice_compare.references import ReferenceGraph, ReferenceState


def edge(original, new, **kwargs):
    return ReplacementEdge(original_item_id=original, new_reference_id=new, **kwargs)


# ============================================================================
# TEST: one-step resolution
# ============================================================================

class TestResolve:

    def test_superseded_and_successor(self):
        graph = ReferenceGraph([edge('A', 'B', supplier_name='Acme')])

        status_a = graph.resolve('A')
        assert status_a.state == ReferenceState.SUPERSEDED
        assert status_a.successor_id == 'B'
        assert status_a.successor.attribution == 'Acme'
        assert status_a.successor.source == ReferenceSource.SUPPLIER

        status_b = graph.resolve('b')
        assert status_b.state == ReferenceState.SUCCESSOR
        assert status_b.predecessor_ids == ['A']

    def test_plain_item(self):
        graph = ReferenceGraph([edge('A', 'B')])
        status = graph.resolve('Z')
        assert status.state == ReferenceState.PLAIN
        assert status.successor is None
        assert status.predecessors == []

    def test_many_to_one(self):
        graph = ReferenceGraph([edge('A', 'B'), edge('C', 'B', source='user')])
        status = graph.resolve('B')
        assert status.state == ReferenceState.SUCCESSOR
        assert status.predecessor_ids == ['A', 'C']
        assert status.predecessors[1].attribution == 'user'

    def test_middle_of_chain_is_superseded_with_predecessors(self):
        graph = ReferenceGraph([edge('A', 'B'), edge('B', 'C')])
        status = graph.resolve('B')
        assert status.state == ReferenceState.SUPERSEDED
        assert status.successor_id == 'C'
        assert status.predecessor_ids == ['A']

    def test_one_step_only(self):
        graph = ReferenceGraph([edge('A', 'B'), edge('B', 'C')])
        assert graph.resolve('A').successor_id == 'B'

    def test_descriptions(self):
        graph = ReferenceGraph([edge('A', 'B', new_description='New part'), edge('C', 'A')])
        status = graph.resolve('A', descriptions={'C': 'Old part'})
        assert status.successor.description == 'New part'
        assert status.predecessors[0].description == 'Old part'

    def test_missing_description_is_none(self):
        graph = ReferenceGraph([edge('A', 'B')])
        assert graph.resolve('A').successor.description is None

    def test_leading_zero_ids(self):
        graph = ReferenceGraph([edge('00001109', '2000')])
        assert graph.resolve('1109').successor_id == '2000'
        assert '1109' in graph


# ============================================================================
# TEST: inconsistent data
# ============================================================================

class TestInconsistentData:

    def test_self_reference_dropped(self, caplog):
        with caplog.at_level(logging.WARNING):
            graph = ReferenceGraph([edge('A', 'A')])
        assert len(graph) == 0
        assert graph.resolve('A').state == ReferenceState.PLAIN
        assert 'self-reference' in caplog.text

    def test_duplicate_outgoing_last_wins(self, caplog):
        with caplog.at_level(logging.WARNING):
            graph = ReferenceGraph([edge('A', 'B'), edge('A', 'C')])
        assert graph.resolve('A').successor_id == 'C'
        assert graph.resolve('B').state == ReferenceState.PLAIN
        assert graph.resolve('C').predecessor_ids == ['A']
        assert 'Duplicate outgoing reference' in caplog.text

    def test_dangling_edge_still_resolves(self, caplog):
        graph = ReferenceGraph([edge('A', 'GHOST'), edge('C', 'A')])
        with caplog.at_level(logging.WARNING):
            dangling = graph.dangling_edges(['A', 'C'])
        assert [e.new_reference_id for e in dangling] == ['GHOST']
        assert graph.resolve('A').successor_id == 'GHOST'
        assert 'unknown item' in caplog.text

    def test_from_raw_skips_malformed(self):
        graph = ReferenceGraph.from_raw([
            {'originalItemId': 'a', 'newItemId': 'b'},
            {'originalItemId': None, 'newItemId': 'b'},
            'junk',
        ])
        assert len(graph) == 1


# ============================================================================
# TEST: removal / chains
# ============================================================================

class TestRemoveAndChain:

    def test_remove_affects_only_its_endpoints(self):
        graph = ReferenceGraph([edge('A', 'B'), edge('C', 'B'), edge('D', 'E')])
        removed = graph.remove('a')
        assert removed.new_reference_id == 'B'
        assert graph.resolve('A').state == ReferenceState.PLAIN
        assert graph.resolve('B').predecessor_ids == ['C']
        assert graph.resolve('D').successor_id == 'E'

    def test_remove_last_incoming(self):
        graph = ReferenceGraph([edge('A', 'B')])
        graph.remove('A')
        assert graph.resolve('B').state == ReferenceState.PLAIN
        assert 'B' not in graph

    def test_remove_unknown(self):
        assert ReferenceGraph().remove('A') is None

    def test_follow_chain(self):
        graph = ReferenceGraph([edge('A', 'B'), edge('B', 'C')])
        assert graph.follow_chain('A') == ['A', 'B', 'C']
        assert graph.current_id('A') == 'C'
        assert graph.current_id('Z') == 'Z'

    def test_cycle_terminates(self, caplog):
        graph = ReferenceGraph([edge('A', 'B'), edge('B', 'A')])
        with caplog.at_level(logging.WARNING):
            assert graph.follow_chain('A') == ['A', 'B']
        assert 'cycle' in caplog.text

    def test_edges_listing(self):
        graph = ReferenceGraph([edge('A', 'B'), edge('C', 'D')])
        assert [(e.original_item_id, e.new_reference_id) for e in graph.edges] == [('A', 'B'), ('C', 'D')]
