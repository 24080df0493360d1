"""Thin adapters around causal-learn's PC and GES.

Both return a `DiscoveryResult` whose `edges` can be scored directly with
`evaluation.evaluate_edges`. Undirected CPDAG edges are reported in both directions
(and listed once in `undirected`).
"""
from __future__ import annotations
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple
import numpy as np
import pandas as pd

Edge = Tuple[str, str]

PC = "pc"
GES = "ges"
ALGORITHMS = (PC, GES)

@dataclass
class DiscoveryResult:
    algorithm: str
    nodes: List[str]
    edges: Set[Edge]
    undirected: Set[frozenset] = field(default_factory=set)
    runtime_seconds: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def directed(self) -> Set[Edge]:
        return {e for e in self.edges if frozenset(e) not in self.undirected}

def edges_from_causallearn(graph: Any, names: Sequence[str]) -> Tuple[Set[Edge], Set[frozenset]]:
    """Decode a causal-learn GeneralGraph endpoint matrix.

    g[j, i] == 1 and g[i, j] == -1 is i -> j; g[i, j] == g[j, i] == -1 is i - j.
    """
    g = np.asarray(graph.graph)
    d = len(names)
    if g.shape != (d, d):
        raise ValueError(f"Graph matrix shape {g.shape} does not match {d} names.")
    edges: Set[Edge] = set()
    undirected: Set[frozenset] = set()
    for i in range(d):
        for j in range(d):
            if i == j:
                continue
            if g[j, i] == 1 and g[i, j] == -1:
                edges.add((names[i], names[j]))
            elif i < j and g[i, j] == -1 and g[j, i] == -1:
                edges.add((names[i], names[j]))
                edges.add((names[j], names[i]))
                undirected.add(frozenset((names[i], names[j])))
    return edges, undirected

def _prepare(frame: pd.DataFrame, columns: Optional[Sequence[str]]) -> Tuple[np.ndarray, List[str]]:
    if columns is None:
        columns = [c for c in frame.columns if pd.api.types.is_numeric_dtype(frame[c])]
    data = frame[list(columns)]
    if data.isna().any().any():
        raise ValueError("Discovery input contains missing values.")
    return data.to_numpy(dtype=np.float64), list(columns)

def run_pc(
    frame: pd.DataFrame,
    columns: Optional[Sequence[str]] = None,
    alpha: float = 0.05,
    indep_test: str = "fisherz",
    stable: bool = True,
) -> DiscoveryResult:
    try:
        from causallearn.search.ConstraintBased.PC import pc
    except ImportError as e:
        raise ImportError("causal-learn is required for PC. Install with: pip install causal-learn") from e

    X, names = _prepare(frame, columns)
    t0 = time.time()
    cg = pc(X, alpha=alpha, indep_test=indep_test, stable=stable, show_progress=False, node_names=names)
    runtime = time.time() - t0
    edges, undirected = edges_from_causallearn(cg.G, names)
    return DiscoveryResult(
        algorithm=PC,
        nodes=names,
        edges=edges,
        undirected=undirected,
        runtime_seconds=runtime,
        metadata={"alpha": alpha, "indep_test": indep_test},
    )

def run_ges(
    frame: pd.DataFrame,
    columns: Optional[Sequence[str]] = None,
    score_func: str = "local_score_BIC",
    max_parents: Optional[int] = None,
) -> DiscoveryResult:
    try:
        from causallearn.search.ScoreBased.GES import ges
    except ImportError as e:
        raise ImportError("causal-learn is required for GES. Install with: pip install causal-learn") from e

    X, names = _prepare(frame, columns)
    t0 = time.time()
    record = ges(X, score_func=score_func, maxP=max_parents, node_names=names)
    runtime = time.time() - t0
    edges, undirected = edges_from_causallearn(record["G"], names)
    score = record.get("score")
    return DiscoveryResult(
        algorithm=GES,
        nodes=names,
        edges=edges,
        undirected=undirected,
        runtime_seconds=runtime,
        metadata={"score_func": score_func, "score": None if score is None else float(np.ravel(score)[0])},
    )

def run_discovery(frame: pd.DataFrame, algorithm: str = PC, **kwargs) -> DiscoveryResult:
    if algorithm == PC:
        return run_pc(frame, **kwargs)
    if algorithm == GES:
        return run_ges(frame, **kwargs)
    raise ValueError(f"Unknown algorithm: {algorithm!r} (expected one of {ALGORITHMS})")
