"""Conditional-independence queries over the market panel, as a torch stream.

Each item pairs columns of a bootstrap resample of the panel with the ground-truth
answer from d-separation, which is what a CI test inside PC is asked to recover.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, List, Dict, Any
import numpy as np
import pandas as pd
import torch
from torch.utils.data import IterableDataset, DataLoader

from .graph import CausalGraph
from .utils import standardize

@dataclass
class Curriculum:
    """Curriculum over conditioning-set size m.

    Stages are (max_m, steps). During a stage, m is sampled uniformly from [0, max_m].
    """
    stages: Tuple[Tuple[int, int], ...] = ((0, 2_000), (1, 4_000), (2, 6_000), (4, 20_000))

    def max_m_at_step(self, step: int) -> int:
        s = 0
        for max_m, steps in self.stages:
            s += steps
            if step < s:
                return max_m
        return self.stages[-1][0]

    def sample_m(self, rng: np.random.Generator, step: int) -> int:
        max_m = self.max_m_at_step(step)
        return int(rng.integers(0, max_m + 1))

def _choose_pair(rng: np.random.Generator, d: int) -> Tuple[int, int]:
    i = int(rng.integers(0, d))
    j = int(rng.integers(0, d - 1))
    if j >= i:
        j += 1
    return i, j

def _choose_S(rng: np.random.Generator, d: int, i: int, j: int, m: int) -> List[int]:
    if m <= 0:
        return []
    candidates = [k for k in range(d) if k not in (i, j)]
    m = min(m, len(candidates))
    return rng.choice(candidates, size=m, replace=False).astype(int).tolist()

class CIQueryDataset(IterableDataset):
    """Endless stream of CI queries on the fixed ground-truth graph.

    Each yielded item is a dict:
      - x: (N,) float32
      - y: (N,) float32
      - z: (Mmax,N) float32 (padded with zeros)
      - z_mask: (Mmax,) bool
      - label: float32 scalar (1.0 means d-separated, 0.0 means d-connected)
      - meta: optional dict (x, y, S names and m)

    Rows are resampled with replacement every `data_refresh` items.
    """
    def __init__(
        self,
        frame: pd.DataFrame,
        graph: CausalGraph,
        n_rows: int = 500,
        m_max: int = 4,
        curriculum: Optional[Curriculum] = None,
        seed: int = 0,
        data_refresh: int = 20,
        standardize_vars: bool = True,
        include_meta: bool = False,
        target_p_indep: Optional[float] = 0.5,
        max_tries: int = 1000,
    ):
        super().__init__()
        if n_rows < 2:
            raise ValueError("n_rows must be >= 2.")
        if not 0 <= m_max <= len(graph.nodes) - 2:
            raise ValueError(f"m_max must be in [0, {len(graph.nodes) - 2}].")
        missing = [c for c in graph.nodes if c not in frame.columns]
        if missing:
            raise ValueError(f"Frame is missing graph columns: {missing}")
        self.X = frame[graph.nodes].to_numpy(dtype=np.float32)
        self.graph = graph
        self.n_rows = n_rows
        self.m_max = m_max
        self.curriculum = curriculum or Curriculum()
        self.seed = seed
        self.data_refresh = data_refresh
        self.standardize_vars = standardize_vars
        self.include_meta = include_meta
        self.target_p_indep = target_p_indep
        self.max_tries = max_tries

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        worker = torch.utils.data.get_worker_info()
        worker_id = 0 if worker is None else worker.id

        # distinct stream per worker
        rng = np.random.default_rng(self.seed + 10_000 * worker_id)
        names = self.graph.nodes
        d = len(names)
        global_step = 0
        X = None

        while True:
            if X is None or (global_step % self.data_refresh == 0):
                rows = rng.integers(0, self.X.shape[0], size=self.n_rows)
                X = self.X[rows]
                if self.standardize_vars:
                    X = standardize(X).astype(np.float32)

            want_indep = None
            if self.target_p_indep is not None:
                want_indep = bool(rng.random() < float(self.target_p_indep))

            # rejection sample until the label matches; keep the last query otherwise
            for _try in range(self.max_tries):
                i, j = _choose_pair(rng, d)
                m = min(self.curriculum.sample_m(rng, global_step), self.m_max)
                S = _choose_S(rng, d, i, j, m)
                is_indep = self.graph.d_separated([names[i]], [names[j]], [names[k] for k in S])
                if want_indep is None or (is_indep == want_indep):
                    break

            x = torch.from_numpy(X[:, i].copy()).float()
            y = torch.from_numpy(X[:, j].copy()).float()
            z = torch.zeros((self.m_max, self.n_rows), dtype=torch.float32)
            z_mask = torch.zeros((self.m_max,), dtype=torch.bool)
            for t, k in enumerate(S[: self.m_max]):
                z[t] = torch.from_numpy(X[:, k].copy()).float()
                z_mask[t] = True

            item = {
                "x": x,
                "y": y,
                "z": z,
                "z_mask": z_mask,
                "label": torch.tensor(1.0 if is_indep else 0.0, dtype=torch.float32),
            }
            if self.include_meta:
                item["meta"] = {"x": names[i], "y": names[j], "S": [names[k] for k in S], "m": len(S)}
            yield item
            global_step += 1

def _collate(batch: List[Dict[str, Any]]) -> Dict[str, torch.Tensor]:
    return {
        "x": torch.stack([b["x"] for b in batch], dim=0),            # (B,N)
        "y": torch.stack([b["y"] for b in batch], dim=0),            # (B,N)
        "z": torch.stack([b["z"] for b in batch], dim=0),            # (B,Mmax,N)
        "z_mask": torch.stack([b["z_mask"] for b in batch], dim=0),  # (B,Mmax)
        "label": torch.stack([b["label"] for b in batch], dim=0),    # (B,)
    }

def make_dataloader(
    dataset: CIQueryDataset,
    batch_size: int = 64,
    num_workers: int = 0,
    pin_memory: bool = False,
) -> DataLoader:
    return DataLoader(
        dataset,
        batch_size=batch_size,
        num_workers=num_workers,
        pin_memory=pin_memory,
        collate_fn=_collate,
    )
