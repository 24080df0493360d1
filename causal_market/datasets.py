from __future__ import annotations
import json
import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple
import numpy as np
import pandas as pd

from .graph import CausalGraph
from .panel import PanelConfig
from .scenarios import (
    DEFAULT_SCENARIOS,
    DEFAULT_TEST_INTERVENTIONS,
    CounterfactualScenario,
    ScenarioSpec,
    TestIntervention,
    run_scenarios,
)
from .schema import METADATA_COLUMNS, VARIABLES, all_columns, binary_columns
from .scm import MarketSCM, PanelDraw

DATASET_NAME = "causal-market-bench"
DATASET_VERSION = "1.0"
DATA_FILENAME = "market_panel.csv"
GROUND_TRUTH_FILENAME = "ground_truth.json"
DATE_FORMAT = "%Y-%m-%d"

@dataclass
class GroundTruth:
    graph: CausalGraph
    scenarios: List[CounterfactualScenario]
    interventions: List[TestIntervention]
    metadata: Dict[str, Any] = field(default_factory=dict)
    nodes: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        specs = {n["name"]: {k: v for k, v in n.items() if k != "name"} for n in self.nodes}
        g = self.graph.to_dict(specs=specs or None)
        return {
            "metadata": self.metadata,
            "nodes": g["nodes"],
            "edges": g["edges"],
            "counterfactual_scenarios": [s.to_dict() for s in self.scenarios],
            "test_interventions": [t.to_dict() for t in self.interventions],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GroundTruth":
        return cls(
            graph=CausalGraph.from_dict(d),
            scenarios=[CounterfactualScenario.from_dict(s) for s in d.get("counterfactual_scenarios", [])],
            interventions=[TestIntervention.from_dict(t) for t in d.get("test_interventions", [])],
            metadata=dict(d.get("metadata", {})),
            nodes=[n for n in d["nodes"] if isinstance(n, dict)],
        )

@dataclass
class MarketDataset:
    frame: pd.DataFrame
    truth: GroundTruth
    config: PanelConfig

    @property
    def graph(self) -> CausalGraph:
        return self.truth.graph

    @property
    def scenarios(self) -> List[CounterfactualScenario]:
        return self.truth.scenarios

    @property
    def interventions(self) -> List[TestIntervention]:
        return self.truth.interventions

    def variables(self) -> pd.DataFrame:
        """Causal columns only, in graph node order (the input to discovery)."""
        return self.frame[self.graph.nodes]

    def save(self, out_dir: str) -> Tuple[str, str]:
        os.makedirs(out_dir, exist_ok=True)
        data_path = os.path.join(out_dir, DATA_FILENAME)
        truth_path = os.path.join(out_dir, GROUND_TRUTH_FILENAME)
        self.frame.to_csv(data_path, index=False, date_format=DATE_FORMAT, float_format="%.6f")
        with open(truth_path, "w") as f:
            json.dump(self.truth.to_dict(), f, indent=2)
        return data_path, truth_path

def dataset_metadata(cfg: PanelConfig) -> Dict[str, Any]:
    meta = {
        "name": DATASET_NAME,
        "version": DATASET_VERSION,
        "n_rows": cfg.n_rows,
        "n_tickers": cfg.n_tickers,
        "n_months": cfg.n_months,
        "start_date": cfg.start_date,
        "end_date": cfg.end_date,
    }
    meta["config"] = asdict(cfg)
    meta["config"]["sectors"] = list(cfg.sectors)
    return meta

def generate_dataset(
    cfg: Optional[PanelConfig] = None,
    scenarios: Sequence[ScenarioSpec] = DEFAULT_SCENARIOS,
    interventions: Sequence[TestIntervention] = DEFAULT_TEST_INTERVENTIONS,
    scm: Optional[MarketSCM] = None,
) -> Tuple[MarketDataset, MarketSCM, PanelDraw]:
    """Generate the panel, its ground truth and scenario summaries; return (dataset, scm, draw).

    The draw is what the answer key for the test interventions is computed from.
    """
    cfg = cfg or PanelConfig()
    scm = scm or MarketSCM.default()
    draw = scm.draw(cfg)
    frame = scm.frame(draw, scm.propagate(draw))
    results = run_scenarios(scm, draw, frame, scenarios)
    # test interventions must select rows even though their answers are not published
    for t in interventions:
        if not t.filter.mask(frame).any():
            raise ValueError(f"{t.name}: filter {t.filter.to_dict()} selects no rows.")
    truth = GroundTruth(
        graph=scm.graph,
        scenarios=results,
        interventions=list(interventions),
        metadata=dataset_metadata(cfg),
        nodes=[v.to_dict() for v in VARIABLES],
    )
    return MarketDataset(frame=frame, truth=truth, config=cfg), scm, draw

def load_dataset(path: str, strict: bool = True) -> pd.DataFrame:
    """Read the panel CSV with parsed dates and integer binary indicators.

    Binary columns are cast to int only when every value is already 0 or 1, so bad
    indicators reach `validate_dataset` unchanged. With `strict=False` missing columns
    are left for `validate_dataset` to report.
    """
    df = pd.read_csv(path)
    missing = [c for c in all_columns() if c not in df.columns]
    if missing and strict:
        raise ValueError(f"{path}: missing columns {missing}")
    if "date" in df.columns:
        df["date"] = pd.to_datetime(df["date"], errors="raise" if strict else "coerce")
    for c in binary_columns():
        if c in df.columns and df[c].isin([0, 1]).all():
            df[c] = df[c].astype(np.int64)
    meta = [c for c in METADATA_COLUMNS if c in df.columns]
    return df[meta + [c for c in df.columns if c not in METADATA_COLUMNS]]

def load_ground_truth(path: str) -> GroundTruth:
    with open(path) as f:
        return GroundTruth.from_dict(json.load(f))
