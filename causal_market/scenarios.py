"""Counterfactual scenarios and test interventions.

A scenario is computed once at generation time: the panel's exogenous draw and noise
are held fixed, the intervention is applied to the filtered rows, and the target's
mean is compared between the factual and the counterfactual world. Test interventions
are published without their answers; `intervention_answer_key` recomputes them from
the same draw.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence
import numpy as np
import pandas as pd

from .schema import OUTCOME_VARIABLE
from .scm import SET, SHIFT, Intervention, MarketSCM, PanelDraw

Array = np.ndarray

FILTER_KEYS = ("ticker", "sector")


@dataclass(frozen=True)
class RowFilter:
    ticker: Optional[str] = None
    sector: Optional[str] = None

    def __post_init__(self):
        if self.ticker is not None and self.sector is not None:
            raise ValueError("Filter by ticker or by sector, not both.")

    @property
    def key(self) -> Optional[str]:
        if self.ticker is not None:
            return "ticker"
        if self.sector is not None:
            return "sector"
        return None

    @property
    def value(self) -> Optional[str]:
        return self.ticker if self.ticker is not None else self.sector

    def mask(self, frame: pd.DataFrame) -> Array:
        if self.key is None:
            return np.ones(len(frame), dtype=bool)
        return (frame[self.key] == self.value).to_numpy()

    def to_dict(self) -> Dict[str, str]:
        return {} if self.key is None else {self.key: self.value}

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, str]]) -> "RowFilter":
        d = dict(d or {})
        unknown = set(d) - set(FILTER_KEYS)
        if unknown:
            raise ValueError(f"Unknown filter keys: {sorted(unknown)}")
        return cls(ticker=d.get("ticker"), sector=d.get("sector"))


@dataclass(frozen=True)
class ScenarioSpec:
    name: str
    description: str
    filter: RowFilter
    intervention: Mapping[str, float]
    mode: str = SET
    target: str = OUTCOME_VARIABLE

    def __post_init__(self):
        if not self.intervention:
            raise ValueError(f"{self.name}: intervention must not be empty.")
        if self.mode not in (SET, SHIFT):
            raise ValueError(f"{self.name}: unknown mode {self.mode!r}")
        if self.target in self.intervention:
            raise ValueError(f"{self.name}: target {self.target} cannot be intervened on.")

    def interventions(self) -> List[Intervention]:
        return [Intervention(v, float(x), self.mode) for v, x in self.intervention.items()]


@dataclass
class CounterfactualScenario:
    spec: ScenarioSpec
    original_mean: float
    counterfactual_mean: float
    true_effect: float
    sample_size: int

    @property
    def name(self) -> str:
        return self.spec.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.spec.name,
            "description": self.spec.description,
            "filter": self.spec.filter.to_dict(),
            "intervention": dict(self.spec.intervention),
            "mode": self.spec.mode,
            "target": self.spec.target,
            "original_mean": self.original_mean,
            "counterfactual_mean": self.counterfactual_mean,
            "true_effect": self.true_effect,
            "sample_size": self.sample_size,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "CounterfactualScenario":
        spec = ScenarioSpec(
            name=d["name"],
            description=d.get("description", ""),
            filter=RowFilter.from_dict(d.get("filter")),
            intervention=dict(d["intervention"]),
            mode=d.get("mode", SET),
            target=d.get("target", OUTCOME_VARIABLE),
        )
        return cls(
            spec=spec,
            original_mean=float(d["original_mean"]),
            counterfactual_mean=float(d["counterfactual_mean"]),
            true_effect=float(d["true_effect"]),
            sample_size=int(d["sample_size"]),
        )


@dataclass(frozen=True)
class TestIntervention:
    """do(variable := value) on a ticker or sector; the answer is not published."""
    __test__ = False  # not a pytest class

    name: str
    description: str
    filter: RowFilter
    intervention: Mapping[str, float] = field(default_factory=dict)
    target: str = OUTCOME_VARIABLE

    def as_spec(self) -> ScenarioSpec:
        return ScenarioSpec(self.name, self.description, self.filter, self.intervention, SET,
                            self.target)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "filter": self.filter.to_dict(),
            "intervention": dict(self.intervention),
            "target": self.target,
        }

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "TestIntervention":
        return cls(
            name=d["name"],
            description=d.get("description", ""),
            filter=RowFilter.from_dict(d.get("filter")),
            intervention=dict(d["intervention"]),
            target=d.get("target", OUTCOME_VARIABLE),
        )


DEFAULT_SCENARIOS: List[ScenarioSpec] = [
    ScenarioSpec("esg_improvement", "Every firm raises its ESG score by 15 points",
                 RowFilter(), {"esg_score": 15.0}, SHIFT),
    ScenarioSpec("rate_hike_100bp", "Borrowing rates rise by one percentage point",
                 RowFilter(), {"interest_rate": 0.01}, SHIFT),
    ScenarioSpec("universal_dividend", "Every firm pays a dividend",
                 RowFilter(), {"dividend_paid": 1.0}, SET),
    ScenarioSpec("tech_rd_boost", "Technology firms spend 15% of revenue on R&D",
                 RowFilter(sector="Technology"), {"rd_spending": 0.15}, SET),
    ScenarioSpec("financials_deleveraging", "Financials cut their debt ratio by 10 points",
                 RowFilter(sector="Financials"), {"debt_ratio": -0.10}, SHIFT, "credit_rating"),
]

DEFAULT_TEST_INTERVENTIONS: List[TestIntervention] = [
    TestIntervention("tec01_rd_push", "TEC01 doubles down on R&D",
                     RowFilter(ticker="TEC01"), {"rd_spending": 0.20}),
    TestIntervention("energy_rate_shock", "Energy borrowing rates forced to 8%",
                     RowFilter(sector="Energy"), {"interest_rate": 0.08}),
    TestIntervention("financials_low_leverage", "Financials held at a 25% debt ratio",
                     RowFilter(sector="Financials"), {"debt_ratio": 0.25}, "credit_rating"),
    TestIntervention("hlt02_esg_leader", "HLT02 reaches an ESG score of 90",
                     RowFilter(ticker="HLT02"), {"esg_score": 90.0}, "institutional_ownership"),
    TestIntervention("consumer_insider_buying", "Insiders buy at every consumer firm",
                     RowFilter(sector="Consumer"), {"insider_buying": 1.0}),
]


def run_scenario(
    scm: MarketSCM,
    draw: PanelDraw,
    frame: pd.DataFrame,
    spec: ScenarioSpec,
    factual: Optional[Mapping[str, Array]] = None,
) -> CounterfactualScenario:
    """Counterfactual summary of `spec` on the rows of `frame` it selects.

    `frame` must be the panel produced from `draw` (same row order).
    """
    if len(frame) != draw.n:
        raise ValueError(f"frame has {len(frame)} rows, draw has {draw.n}.")
    if spec.target not in scm.specs:
        raise KeyError(f"Unknown target: {spec.target}")
    mask = spec.filter.mask(frame)
    n = int(mask.sum())
    if n == 0:
        raise ValueError(f"{spec.name}: filter {spec.filter.to_dict()} selects no rows.")
    if factual is None:
        factual = scm.propagate(draw)
    cf = scm.propagate(draw, spec.interventions(), mask=mask)
    orig = float(np.mean(factual[spec.target][mask]))
    new = float(np.mean(cf[spec.target][mask]))
    return CounterfactualScenario(
        spec=spec,
        original_mean=orig,
        counterfactual_mean=new,
        true_effect=new - orig,
        sample_size=n,
    )


def run_scenarios(
    scm: MarketSCM,
    draw: PanelDraw,
    frame: pd.DataFrame,
    specs: Sequence[ScenarioSpec],
) -> List[CounterfactualScenario]:
    factual = scm.propagate(draw)
    return [run_scenario(scm, draw, frame, s, factual=factual) for s in specs]


def intervention_answer_key(
    scm: MarketSCM,
    draw: PanelDraw,
    frame: pd.DataFrame,
    interventions: Sequence[TestIntervention],
) -> Dict[str, CounterfactualScenario]:
    results = run_scenarios(scm, draw, frame, [t.as_spec() for t in interventions])
    return {r.name: r for r in results}


def score_effect_estimates(
    estimates: Mapping[str, float],
    answer_key: Mapping[str, CounterfactualScenario],
) -> pd.DataFrame:
    """Absolute and relative error of estimated effects against the answer key."""
    rows = []
    for name, est in estimates.items():
        if name not in answer_key:
            raise KeyError(f"No answer for intervention: {name}")
        truth = answer_key[name].true_effect
        err = float(est) - truth
        rows.append({
            "name": name,
            "true_effect": truth,
            "estimate": float(est),
            "error": err,
            "abs_error": abs(err),
            "rel_error": abs(err) / abs(truth) if truth != 0 else np.nan,
        })
    return pd.DataFrame(rows, columns=["name", "true_effect", "estimate", "error", "abs_error",
                                       "rel_error"])
