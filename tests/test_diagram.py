"""
tests/test_diagram.py — Tests for the diagram mini-language

Run with: pytest tests/test_diagram.py -v
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from mdeck.dsl.diagram import parse_diagram
from mdeck.dsl.errors import DiagramError


class TestNodes:
    def test_node_with_icon_and_pos(self):
        graph = parse_diagram("- API (icon: server, pos: 1,2)")
        node = graph.nodes[0]
        assert node.label == "API"
        assert node.icon == "server"
        assert (node.col, node.row) == (1, 2)

    def test_metadata_optional(self):
        graph = parse_diagram("- Plain node")
        node = graph.nodes[0]
        assert node.label == "Plain node"
        assert node.icon is None

    def test_pos_only(self):
        node = parse_diagram("- DB (pos: 2,1)").nodes[0]
        assert node.icon is None
        assert (node.col, node.row) == (2, 1)

    def test_auto_position_takes_next_free_column(self):
        graph = parse_diagram("- A (pos: 0,0)\n- B\n- C")
        assert [(n.col, n.row) for n in graph.nodes] == [(0, 0), (1, 0), (2, 0)]

    def test_parenthesised_label_without_keys(self):
        node = parse_diagram("- Cache (L2)").nodes[0]
        assert node.label == "Cache (L2)"

    def test_prefix_markers_optional(self):
        graph = parse_diagram("A\n+ B\n* C")
        assert graph.node("B") is not None
        assert len(graph.nodes) == 3

    def test_blank_and_comment_lines_skipped(self):
        graph = parse_diagram("\n%% comment\n- A\n\n")
        assert len(graph.nodes) == 1


class TestEdges:
    def test_two_nodes_one_labeled_edge(self):
        graph = parse_diagram("- A\n- B\nA -> B: go")
        assert len(graph.nodes) == 2
        assert len(graph.edges) == 1
        edge = graph.edges[0]
        assert (edge.source, edge.target, edge.label) == ("A", "B", "go")

    def test_edge_with_item_prefix(self):
        graph = parse_diagram("- A\n- B\n- A -> B: HTTPS")
        assert graph.edges[0].label == "HTTPS"

    def test_unlabeled_edge(self):
        graph = parse_diagram("- A\n- B\nA -> B")
        assert graph.edges[0].label is None

    def test_cycles_allowed(self):
        graph = parse_diagram("- A\n- B\nA -> B\nB -> A")
        assert len(graph.edges) == 2

    def test_endpoints_are_declared_labels(self):
        graph = parse_diagram("- A\n- B\n- C\nA -> B\nB -> C\nC -> A: loop")
        labels = {n.label for n in graph.nodes}
        for edge in graph.edges:
            assert {edge.source, edge.target} <= labels


class TestValidation:
    def test_undeclared_target(self):
        with pytest.raises(DiagramError) as exc:
            parse_diagram("- A\nA -> B")
        assert exc.value.line == 2

    def test_forward_reference_rejected(self):
        with pytest.raises(DiagramError):
            parse_diagram("A -> B\n- A\n- B")

    def test_duplicate_label(self):
        with pytest.raises(DiagramError, match="duplicate"):
            parse_diagram("- A\n- A")

    def test_invalid_position(self):
        with pytest.raises(DiagramError) as exc:
            parse_diagram("- A (pos: x,y)")
        assert exc.value.line == 1

    def test_malformed_edge(self):
        with pytest.raises(DiagramError):
            parse_diagram("- A\nA -> ")
