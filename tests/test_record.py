"""Unit tests for the hierarchical record accumulator."""

from __future__ import annotations

import itertools

from executor_metrics.reporting.record import Leaf, Node, merge


def test_merge_creates_intermediate_nodes():
    record = Node()

    assert merge(record, ("jvm", "memory", "used"), 12345) is True
    assert merge(record, ("jvm", "memory", "max"), 99999) is True

    assert record.to_plain() == {"jvm": {"memory": {"used": 12345, "max": 99999}}}
    assert isinstance(record.children["jvm"], Node)
    assert record.children["jvm"].children["memory"].children["used"] == Leaf(12345)


def test_merge_last_write_wins_on_same_leaf():
    record = Node()
    record.merge(("a", "b"), 1)
    record.merge(("a", "b"), 2)

    assert record.to_plain() == {"a": {"b": 2}}


def test_merge_is_order_independent_for_disjoint_paths():
    samples = [
        (("jvm", "heap", "used"), 1),
        (("jvm", "heap", "max"), 2),
        (("jvm", "gc", "count"), 3),
        (("threadpool", "activeTasks"), 4),
    ]
    expected = None
    for ordering in itertools.permutations(samples):
        record = Node()
        for path, value in ordering:
            record.merge(path, value)
        if expected is None:
            expected = record.to_plain()
        assert record.to_plain() == expected


def test_extending_a_leaf_is_dropped_without_touching_siblings():
    record = Node()
    record.merge(("a", "b"), 1)
    record.merge(("a", "x"), 2)

    assert record.merge(("a", "b", "c"), 3) is False
    assert record.to_plain() == {"a": {"b": 1, "x": 2}}


def test_overwriting_a_subtree_with_a_leaf_is_dropped():
    record = Node()
    record.merge(("a", "b", "c"), 1)

    assert record.merge(("a", "b"), 2) is False
    assert record.to_plain() == {"a": {"b": {"c": 1}}}


def test_empty_path_is_rejected_and_clear_empties_record():
    record = Node()
    assert record.merge((), 1) is False
    assert not record

    record.merge(("a",), 1)
    assert len(record) == 1
    record.clear()
    assert record.to_plain() == {}
