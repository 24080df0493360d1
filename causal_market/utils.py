from __future__ import annotations
import numpy as np
from typing import Optional

Array = np.ndarray

def rng(seed: Optional[int] = None) -> np.random.Generator:
    return np.random.default_rng(seed)

def standardize(x: Array, eps: float = 1e-8) -> Array:
    m = x.mean(axis=0, keepdims=True)
    s = x.std(axis=0, keepdims=True)
    return (x - m) / (s + eps)

def sigmoid(x: Array) -> Array:
    return 1.0 / (1.0 + np.exp(-x))

def ar1(r: np.random.Generator, n: int, phi: float = 0.7, scale: float = 1.0) -> Array:
    """Stationary AR(1) path with unit marginal variance (before `scale`)."""
    innov = np.sqrt(1.0 - phi ** 2)
    out = np.empty(n)
    out[0] = r.normal(0, 1)
    for t in range(1, n):
        out[t] = phi * out[t - 1] + innov * r.normal(0, 1)
    return scale * out

def topological_sort(adj: Array) -> list[int]:
    """Kahn's algorithm. adj[i,j]=1 means i->j. Ties resolve to the lowest index."""
    d = adj.shape[0]
    indeg = adj.sum(axis=0).astype(int).tolist()
    q = [i for i in range(d) if indeg[i] == 0]
    order = []
    while q:
        q.sort()
        i = q.pop(0)
        order.append(i)
        children = np.where(adj[i] != 0)[0]
        for j in children:
            indeg[j] -= 1
            if indeg[j] == 0:
                q.append(int(j))
    if len(order) != d:
        raise ValueError("Adjacency matrix is cyclic; cannot topo-sort.")
    return order
