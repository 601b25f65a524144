import threading

import pytest

from dronepipe.dag import build_dag, find_cycle, run_levels, topo_levels
from dronepipe.model import Pipeline


def _p(name, *deps):
    return Pipeline(name=name, depends_on=list(deps))


def test_levels_keep_declaration_order():
    pipelines = [_p("lint"), _p("test"), _p("deploy", "test", "lint"), _p("docs", "lint")]
    adj, indeg = build_dag(pipelines)
    assert topo_levels(adj, indeg, order=[p.name for p in pipelines]) == [["lint", "test"], ["deploy", "docs"]]


def test_levels_sorted_without_order():
    adj, indeg = build_dag([_p("b"), _p("a")])
    assert topo_levels(adj, indeg) == [["a", "b"]]


def test_duplicate_names():
    with pytest.raises(ValueError, match="Duplicate"):
        build_dag([_p("a"), _p("a")])


def test_missing_dependency():
    with pytest.raises(ValueError, match="missing pipeline 'ghost'"):
        build_dag([_p("a", "ghost")])


def test_cycle():
    adj, indeg = build_dag([_p("a", "b"), _p("b", "a"), _p("c")])
    with pytest.raises(ValueError, match="cycle"):
        topo_levels(adj, indeg)
    assert find_cycle(adj) == ["a", "b", "a"]


def test_no_cycle():
    adj, _ = build_dag([_p("a"), _p("b", "a")])
    assert find_cycle(adj) == []


def test_run_levels_serial_order():
    seen = []
    results = run_levels([["a", "b"], ["c"]], lambda n: seen.append(n) or n.upper())
    assert seen == ["a", "b", "c"]
    assert results == {"a": "A", "b": "B", "c": "C"}


def test_run_levels_parallel_waits_for_level():
    barrier = threading.Barrier(2, timeout=5)
    order = []

    def run(name):
        if name in ("a", "b"):
            barrier.wait()
        order.append(name)
        return name

    run_levels([["a", "b"], ["c"]], run, max_workers=2)
    assert order[-1] == "c"
    assert sorted(order[:2]) == ["a", "b"]
