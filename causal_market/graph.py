from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
import numpy as np

from .ci import ancestors as _ancestors, d_separated as _d_separated, descendants as _descendants
from .mechanisms import DEFAULT_MECHANISMS
from .schema import VARIABLES
from .utils import topological_sort

Array = np.ndarray
Edge = Tuple[str, str]

N_NODES = 18
N_EDGES = 26


class GraphError(ValueError):
    """Raised when a causal graph violates a structural invariant."""


@dataclass
class CausalGraph:
    """Named DAG. `adjacency()[i, j] = 1` if nodes[i] -> nodes[j].

    `roles` and `weights` are optional annotations carried into the published JSON.
    """
    nodes: List[str]
    edges: List[Edge]
    roles: Dict[str, str] = field(default_factory=dict)
    weights: Dict[Edge, float] = field(default_factory=dict)

    def __post_init__(self):
        self.nodes = list(self.nodes)
        self.edges = [(str(a), str(b)) for a, b in self.edges]
        self._index = {n: k for k, n in enumerate(self.nodes)}

    def validate(self) -> "CausalGraph":
        if len(self._index) != len(self.nodes):
            raise GraphError("Duplicate node names.")
        seen: Set[Edge] = set()
        for a, b in self.edges:
            for v in (a, b):
                if v not in self._index:
                    raise GraphError(f"Edge {a} -> {b} references undeclared node {v!r}.")
            if a == b:
                raise GraphError(f"Self loop on {a!r}.")
            if (a, b) in seen:
                raise GraphError(f"Duplicate edge {a} -> {b}.")
            seen.add((a, b))
        if not self.is_acyclic():
            raise GraphError("Graph contains a cycle.")
        return self

    def index(self, name: str) -> int:
        try:
            return self._index[name]
        except KeyError:
            raise KeyError(f"Unknown node: {name}") from None

    def adjacency(self) -> Array:
        d = len(self.nodes)
        adj = np.zeros((d, d), dtype=np.int8)
        for a, b in self.edges:
            adj[self.index(a), self.index(b)] = 1
        return adj

    @classmethod
    def from_adjacency(cls, adj: Array, names: Sequence[str]) -> "CausalGraph":
        adj = np.asarray(adj)
        if adj.shape != (len(names), len(names)):
            raise GraphError(f"Adjacency shape {adj.shape} does not match {len(names)} names.")
        edges = [(names[i], names[j]) for i, j in zip(*np.nonzero(adj))]
        return cls(nodes=list(names), edges=edges)

    def edge_set(self) -> Set[Edge]:
        return set(self.edges)

    def is_acyclic(self) -> bool:
        try:
            topological_sort(self.adjacency())
        except ValueError:
            return False
        return True

    def topological_order(self) -> List[str]:
        try:
            order = topological_sort(self.adjacency())
        except ValueError as e:
            raise GraphError(str(e)) from e
        return [self.nodes[i] for i in order]

    def parents(self, name: str) -> List[str]:
        return [a for a, b in self.edges if b == name]

    def children(self, name: str) -> List[str]:
        return [b for a, b in self.edges if a == name]

    def ancestors(self, name: str) -> Set[str]:
        return {self.nodes[i] for i in _ancestors(self.adjacency(), self.index(name))}

    def descendants(self, name: str) -> Set[str]:
        return {self.nodes[i] for i in _descendants(self.adjacency(), self.index(name))}

    def d_separated(self, xs: Iterable[str], ys: Iterable[str], zs: Iterable[str] = ()) -> bool:
        """True if every node in xs is d-separated from every node in ys given zs."""
        return _d_separated(
            self.adjacency(),
            [self.index(x) for x in xs],
            [self.index(y) for y in ys],
            [self.index(z) for z in zs],
        )

    def to_dict(self, specs: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, Any]:
        nodes = []
        for n in self.nodes:
            entry: Dict[str, Any] = {"name": n}
            if specs and n in specs:
                entry.update(specs[n])
            elif n in self.roles:
                entry["role"] = self.roles[n]
            nodes.append(entry)
        edges = []
        for a, b in self.edges:
            e: Dict[str, Any] = {"source": a, "target": b}
            if (a, b) in self.weights:
                e["weight"] = self.weights[(a, b)]
            edges.append(e)
        return {"nodes": nodes, "edges": edges}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CausalGraph":
        try:
            nodes = [n["name"] if isinstance(n, dict) else n for n in d["nodes"]]
            raw_edges = d["edges"]
        except (KeyError, TypeError) as e:
            raise GraphError(f"Malformed graph description: {e}") from e
        edges: List[Edge] = []
        weights: Dict[Edge, float] = {}
        for e in raw_edges:
            if isinstance(e, dict):
                edge = (e["source"], e["target"])
                if "weight" in e:
                    weights[edge] = float(e["weight"])
            else:
                edge = (e[0], e[1])
            edges.append(edge)
        roles = {n["name"]: n["role"] for n in d["nodes"] if isinstance(n, dict) and "role" in n}
        return cls(nodes=nodes, edges=edges, roles=roles, weights=weights)


def ground_truth_graph() -> CausalGraph:
    """The benchmark DAG: one node per causal variable, one edge per mechanism parent."""
    edges: List[Edge] = []
    weights: Dict[Edge, float] = {}
    for v in VARIABLES:
        mech = DEFAULT_MECHANISMS.get(v.name)
        if mech is None:
            continue
        for p, w in mech.weights.items():
            edges.append((p, v.name))
            weights[(p, v.name)] = float(w)
    g = CausalGraph(
        nodes=[v.name for v in VARIABLES],
        edges=edges,
        roles={v.name: v.role for v in VARIABLES},
        weights=weights,
    )
    return g.validate()
