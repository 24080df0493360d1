from __future__ import annotations
import json
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Sequence, Set, Tuple, Union
import numpy as np
import pandas as pd

from .graph import CausalGraph

Array = np.ndarray
Edge = Tuple[str, str]
EdgeSource = Union[CausalGraph, Iterable[Edge]]

@dataclass
class EdgeMetrics:
    tp: int
    fp: int
    fn: int
    precision: float
    recall: float
    f1: float
    shd: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def __str__(self) -> str:
        return (f"precision={self.precision:.3f} recall={self.recall:.3f} f1={self.f1:.3f} "
                f"shd={self.shd} (tp={self.tp} fp={self.fp} fn={self.fn})")

def edges_from_adjacency(adj: Array, names: Sequence[str]) -> Set[Edge]:
    """adj[i, j] != 0 means names[i] -> names[j]."""
    adj = np.asarray(adj)
    if adj.shape != (len(names), len(names)):
        raise ValueError(f"Adjacency shape {adj.shape} does not match {len(names)} names.")
    return {(names[i], names[j]) for i, j in zip(*np.nonzero(adj)) if i != j}

def _as_edge_set(edges: EdgeSource) -> Set[Edge]:
    if isinstance(edges, CausalGraph):
        return edges.edge_set()
    return {(str(a), str(b)) for a, b in edges}

def _skeleton(edges: Set[Edge]) -> Set[frozenset]:
    return {frozenset(e) for e in edges if e[0] != e[1]}

def evaluate_edges(discovered: EdgeSource, truth: EdgeSource, directed: bool = True) -> EdgeMetrics:
    """Precision / recall / F1 / SHD of a discovered edge set against the truth.

    Edges are compared as sets; with directed=False only adjacencies count. SHD is
    fp + fn, so a reversed edge costs 2 in directed mode.
    """
    found = _as_edge_set(discovered)
    true = _as_edge_set(truth)
    if not directed:
        found, true = _skeleton(found), _skeleton(true)
    tp = len(found & true)
    fp = len(found - true)
    fn = len(true - found)
    precision = tp / len(found) if found else 0.0
    recall = tp / len(true) if true else 0.0
    f1 = 2 * precision * recall / (precision + recall) if (precision + recall) > 0 else 0.0
    return EdgeMetrics(tp=tp, fp=fp, fn=fn, precision=precision, recall=recall, f1=f1, shd=fp + fn)

def edge_diff(discovered: EdgeSource, truth: EdgeSource) -> Dict[str, list]:
    """Per-edge breakdown: missing, extra, and reversed (present with the wrong direction)."""
    found = _as_edge_set(discovered)
    true = _as_edge_set(truth)
    reversed_ = sorted((a, b) for a, b in found - true if (b, a) in true)
    return {
        "correct": sorted(found & true),
        "extra": sorted(e for e in found - true if e not in reversed_),
        "missing": sorted((a, b) for a, b in true - found if (b, a) not in found),
        "reversed": reversed_,
    }

def load_edge_list(path: str) -> Set[Edge]:
    """Read discovered edges from a CSV with `source,target` columns or a JSON file.

    JSON may be a list of [source, target] pairs, a list of {"source", "target"} objects,
    or an object with an "edges" key holding either.
    """
    if path.endswith(".json"):
        with open(path) as f:
            data = json.load(f)
        if isinstance(data, dict):
            data = data["edges"]
        out = set()
        for e in data:
            if isinstance(e, dict):
                out.add((str(e["source"]), str(e["target"])))
            else:
                out.add((str(e[0]), str(e[1])))
        return out
    df = pd.read_csv(path)
    if not {"source", "target"} <= set(df.columns):
        raise ValueError(f"{path}: expected columns 'source' and 'target'.")
    return {(str(a), str(b)) for a, b in zip(df["source"], df["target"])}
