# dag.py
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, Iterable, List, Set, Tuple, TypeVar

from .model import Pipeline

T = TypeVar("T")


def build_dag(pipelines: List[Pipeline]) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build a DAG from Pipeline objects.

    Requires:
      - pipeline.name: str (unique)
      - pipeline.depends_on: names of pipelines that must finish BEFORE this one
    """
    names = [p.name for p in pipelines]
    if len(set(names)) != len(names):
        dupes = sorted({n for n in names if names.count(n) > 1})
        raise ValueError(f"Duplicate pipeline names found: {dupes}")

    name_set = set(names)
    adj: Dict[str, Set[str]] = {n: set() for n in name_set}
    indeg: Dict[str, int] = {n: 0 for n in name_set}

    for pipeline in pipelines:
        for dep in pipeline.depends_on:
            if dep not in name_set:
                raise ValueError(
                    f"Pipeline '{pipeline.name}' depends on missing pipeline '{dep}'. "
                    f"Known pipelines: {sorted(name_set)}"
                )
            # Edge dep -> pipeline.name (dep must run before pipeline)
            if pipeline.name not in adj[dep]:
                adj[dep].add(pipeline.name)
                indeg[pipeline.name] += 1

    return adj, indeg


def topo_levels(
    adj: Dict[str, Set[str]],
    indeg: Dict[str, int],
    order: List[str] | None = None,
) -> List[List[str]]:
    """
    Convert DAG into topological "levels" (stages).
    Each stage can run in parallel.

    Within a level, names keep their declaration order when `order` is given,
    otherwise they are sorted.
    """
    rank = {n: i for i, n in enumerate(order or sorted(indeg))}
    indeg = dict(indeg)  # copy (we mutate it)
    current = sorted([n for n, d in indeg.items() if d == 0], key=rank.__getitem__)

    levels: List[List[str]] = []
    processed = 0

    while current:
        levels.append(current)
        processed += len(current)
        nxt: List[str] = []
        for node in current:
            for child in adj.get(node, set()):
                indeg[child] -= 1
                if indeg[child] == 0:
                    nxt.append(child)
        current = sorted(nxt, key=rank.__getitem__)

    if processed != len(indeg):
        remaining = sorted([n for n, d in indeg.items() if d > 0])
        raise ValueError(f"DAG has a cycle (or unresolved dependencies). Stuck nodes: {remaining}")

    return levels


def find_cycle(adj: Dict[str, Set[str]]) -> List[str]:
    """Return one cycle as a list of names (first == last), or [] if acyclic."""
    WHITE, GREY, BLACK = 0, 1, 2
    color = {n: WHITE for n in adj}
    stack: List[str] = []

    def visit(node: str) -> List[str]:
        color[node] = GREY
        stack.append(node)
        for child in sorted(adj.get(node, set())):
            if color[child] == GREY:
                return stack[stack.index(child):] + [child]
            if color[child] == WHITE:
                found = visit(child)
                if found:
                    return found
        stack.pop()
        color[node] = BLACK
        return []

    for n in sorted(adj):
        if color[n] == WHITE:
            found = visit(n)
            if found:
                return found
    return []


def run_levels(
    levels: Iterable[List[str]],
    run_fn: Callable[[str], T],
    max_workers: int | None = 1,
) -> Dict[str, T]:
    """
    Run every level in turn, the names inside a level in a thread pool.

    run_fn(name) must not raise for ordinary failures; it reports them in
    its return value so later levels can decide whether to run.
    """
    results: Dict[str, T] = {}
    for level in levels:
        if not max_workers or max_workers <= 1 or len(level) == 1:
            for name in level:
                results[name] = run_fn(name)
            continue

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            futures = {pool.submit(run_fn, name): name for name in level}
            for future in as_completed(futures):
                results[futures[future]] = future.result()
    return results
