from __future__ import annotations

"""
Tests for the parse tree arena, the pre-order flattener and the tree dump.
"""

import io

from conftest import parse_text
from exprscan.tree import Node, ParseTree, TreeDumper, flatten


def _recursive_preorder(tree, idx=0):
    out = [idx]
    for ch in tree.children(idx):
        out.extend(_recursive_preorder(tree, ch))
    return out


def test_from_match_lays_out_children_contiguously():
    match = ("r", 0, 3, (
        ("a", 0, 1, ()),
        ("b", 1, 3, (("c", 1, 2, ()), ("d", 2, 3, ()))),
    ))
    tree = ParseTree.from_match(match, "xyz")

    assert tree.nodes == [
        Node("r", 0, 3, 1, 2),
        Node("a", 0, 1, 3, 0),
        Node("b", 1, 3, 3, 2),
        Node("c", 1, 2, 5, 0),
        Node("d", 2, 3, 5, 0),
    ]
    assert [tree.rule(i) for i in tree.children(2)] == ["c", "d"]
    tree.check_spans()


def test_flatten_is_preorder_and_complete(toy_rules):
    tree = parse_text(toy_rules, "program", "(a + (b + c)) + d; e")
    order = flatten(tree)

    assert order == _recursive_preorder(tree)
    assert len(order) == tree.size()
    assert sorted(order) == list(range(tree.size()))
    assert order[0] == tree.root


def test_flatten_single_node():
    tree = ParseTree.from_match(("s", 0, 1, ()), "x")
    assert flatten(tree) == [0]


def test_every_node_has_exactly_one_parent(toy_rules):
    tree = parse_text(toy_rules, "program", "a + b; (c)")
    seen = [0] * tree.size()
    for idx in range(tree.size()):
        for ch in tree.children(idx):
            seen[ch] += 1

    assert seen[0] == 0
    assert all(count == 1 for count in seen[1:])


def test_check_spans_detects_gaps():
    tree = ParseTree.from_match(("r", 0, 3, (("a", 0, 1, ()), ("b", 2, 3, ()))), "xyz")
    try:
        tree.check_spans()
    except AssertionError as e:
        assert "gap or overlap" in str(e)
    else:
        raise AssertionError("gap was not detected")


def test_dump_hides_leaves_unless_asked(toy_rules):
    tree = parse_text(toy_rules, "program", "a+b")

    out = io.StringIO()
    TreeDumper(tree).dump(out)
    lines = out.getvalue().splitlines()
    assert lines[0] == "program [0..3) 'a+b'"
    assert "      term [0..1) 'a'" in lines
    assert not any("<token>" in line for line in lines)

    out = io.StringIO()
    TreeDumper(tree, all_nodes=True).dump(out)
    assert "      <token> [1..2) '+'" in out.getvalue().splitlines()
