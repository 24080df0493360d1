from __future__ import annotations
from collections import deque
from typing import Iterable, List, Set
import numpy as np

Array = np.ndarray

def parents(adj: Array, v: int) -> List[int]:
    return [int(u) for u in np.flatnonzero(adj[:, v])]

def children(adj: Array, v: int) -> List[int]:
    return [int(u) for u in np.flatnonzero(adj[v])]

def _reach(adj: Array, v: int, step) -> Set[int]:
    found: Set[int] = set()
    frontier = [v]
    while frontier:
        nxt = [u for w in frontier for u in step(adj, w) if u not in found and u != v]
        found.update(nxt)
        frontier = nxt
    return found

def descendants(adj: Array, v: int) -> Set[int]:
    return _reach(adj, v, children)

def ancestors(adj: Array, v: int) -> Set[int]:
    return _reach(adj, v, parents)

def d_separated(adj: Array, X: Iterable[int], Y: Iterable[int], Z: Iterable[int]) -> bool:
    """True when every path between X and Y is blocked by Z (Bayes-ball, `adj[i, j]=1` is i->j)."""
    X = set(map(int, X))
    Y = set(map(int, Y))
    Z = set(map(int, Z))

    # nodes in Z or with a descendant in Z open colliders
    has_desc_in_Z = np.zeros(adj.shape[0], dtype=bool)
    for z in Z:
        has_desc_in_Z[z] = True
        for a in ancestors(adj, z):
            has_desc_in_Z[a] = True

    # "up": arrived from a child; "down": arrived from a parent
    q = deque()
    visited = set()

    for x in X:
        q.append((x, "up"))

    while q:
        v, direction = q.popleft()
        if (v, direction) in visited:
            continue
        visited.add((v, direction))

        if v not in Z and v in Y:
            return False

        if direction == "up" and v not in Z:
            for p in parents(adj, v):
                q.append((p, "up"))
            for c in children(adj, v):
                q.append((c, "down"))
        elif direction == "down":
            if v not in Z:
                for c in children(adj, v):
                    q.append((c, "down"))
            if has_desc_in_Z[v]:
                for p in parents(adj, v):
                    q.append((p, "up"))

    return True
