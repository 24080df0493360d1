from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence
import numpy as np
import pandas as pd

from .graph import CausalGraph, ground_truth_graph
from .mechanisms import DEFAULT_MECHANISMS, LinearMechanism
from .panel import PanelConfig, PanelIndex, build_panel_index, regime_labels
from .schema import EXOGENOUS, METADATA_COLUMNS, VARIABLES, VariableSpec
from .utils import ar1, rng

Array = np.ndarray

SET = "set"
SHIFT = "shift"

@dataclass(frozen=True)
class Intervention:
    """do(variable := value) with mode "set", or variable := variable + value with mode "shift"."""
    variable: str
    value: float
    mode: str = SET

    def __post_init__(self):
        if self.mode not in (SET, SHIFT):
            raise ValueError(f"Unknown intervention mode: {self.mode!r}")

    def apply(self, x: Array) -> Array:
        if self.mode == SET:
            return np.full_like(x, float(self.value), dtype=np.float64)
        return x + float(self.value)

@dataclass
class PanelDraw:
    """Everything random about one panel: exogenous values and mechanism noise.

    Holding a draw fixed and re-propagating under an intervention gives the
    unit-level counterfactual of every row.
    """
    config: PanelConfig
    index: PanelIndex
    exogenous: Dict[str, Array]
    noise: Dict[str, Array]
    market_factor: Array   # (n_months,)
    regime: Array          # (n_months,) str

    @property
    def n(self) -> int:
        return self.index.n

class MarketSCM:
    """Structural causal model of the monthly stock panel.

    Exogenous variables carry panel structure (a shared policy-rate path, an AR(1)
    market factor, sector-month demand factors, persistent ticker-level ratings).
    Every other variable is x_i = f_i(x_pa(i), eps_i) with f_i a `LinearMechanism`.
    """

    def __init__(
        self,
        specs: Sequence[VariableSpec],
        mechanisms: Mapping[str, LinearMechanism],
        graph: CausalGraph,
    ):
        self.specs = {s.name: s for s in specs}
        self.mechanisms = dict(mechanisms)
        self.graph = graph
        for name, spec in self.specs.items():
            if spec.role == EXOGENOUS and name in self.mechanisms:
                raise ValueError(f"Exogenous variable {name} must not have a mechanism.")
            if spec.role != EXOGENOUS and name not in self.mechanisms:
                raise ValueError(f"Missing mechanism for {name}.")
        self._order = graph.topological_order()

    @classmethod
    def default(cls) -> "MarketSCM":
        return cls(VARIABLES, DEFAULT_MECHANISMS, ground_truth_graph())

    @property
    def variables(self) -> List[str]:
        return list(self.specs)

    def draw(self, cfg: Optional[PanelConfig] = None) -> PanelDraw:
        cfg = cfg or PanelConfig()
        r = rng(cfg.seed)
        idx = build_panel_index(cfg)
        n, t, m, s = idx.n, idx.ticker_idx, idx.month_idx, idx.sector_idx

        market_factor = ar1(r, cfg.n_months, phi=0.7)
        sector_factor = np.stack([ar1(r, cfg.n_months, phi=0.6) for _ in range(cfg.n_sectors)])
        policy_rate = np.linspace(cfg.rate_start, cfg.rate_end, cfg.n_months)
        firm_spread = np.clip(r.normal(0.01, 0.005, size=cfg.n_tickers), 0.0, None)
        esg_base = r.normal(55.0, 15.0, size=cfg.n_tickers)
        mgmt_base = r.normal(60.0, 12.0, size=cfg.n_tickers)

        raw = {
            "interest_rate": policy_rate[m] + firm_spread[t] + r.normal(0, 0.002, size=n),
            "market_sentiment": 0.5 + 0.12 * market_factor[m] + r.normal(0, 0.06, size=n),
            "sector_demand": 0.5 + 0.12 * sector_factor[s, m] + r.normal(0, 0.06, size=n),
            "esg_score": esg_base[t] + r.normal(0, 3.0, size=n),
            "management_quality": mgmt_base[t] + r.normal(0, 2.0, size=n),
            "insider_buying": (r.random(n) < 0.1).astype(np.float64),
        }
        exogenous = {}
        for name, spec in self.specs.items():
            if spec.role == EXOGENOUS:
                if name not in raw:
                    raise ValueError(f"No exogenous sampler for {name}.")
                exogenous[name] = spec.clip(raw[name])

        noise = {name: self.mechanisms[name].noise.sample(r, n) for name in self.specs
                 if name in self.mechanisms}

        return PanelDraw(
            config=cfg,
            index=idx,
            exogenous=exogenous,
            noise=noise,
            market_factor=market_factor,
            regime=regime_labels(market_factor, cfg.regime_threshold),
        )

    def propagate(
        self,
        draw: PanelDraw,
        interventions: Sequence[Intervention] = (),
        mask: Optional[Array] = None,
    ) -> Dict[str, Array]:
        """Evaluate every variable in topological order.

        Interventions act only on rows where `mask` is True (all rows when None);
        forced values are clipped into the variable's range.
        """
        n = draw.n
        mask = np.ones(n, dtype=bool) if mask is None else np.asarray(mask, dtype=bool)
        if mask.shape != (n,):
            raise ValueError(f"mask must have shape ({n},), got {mask.shape}.")
        by_var = {}
        for iv in interventions:
            if iv.variable not in self.specs:
                raise KeyError(f"Unknown intervention variable: {iv.variable}")
            by_var[iv.variable] = iv

        values: Dict[str, Array] = {}
        for name in self._order:
            spec = self.specs[name]
            if spec.role == EXOGENOUS:
                x = draw.exogenous[name].copy()
            else:
                x = self.mechanisms[name](spec, values, draw.noise[name])
            iv = by_var.get(name)
            if iv is not None:
                x = np.where(mask, spec.clip(iv.apply(x)), x)
            values[name] = x
        return values

    def frame(self, draw: PanelDraw, values: Mapping[str, Array]) -> pd.DataFrame:
        idx = draw.index
        cols = {
            "ticker": idx.ticker,
            "sector": idx.sector,
            "date": pd.to_datetime(idx.date),
            "market_regime": draw.regime[idx.month_idx],
        }
        for name, spec in self.specs.items():
            x = values[name]
            cols[name] = x.astype(np.int64) if spec.is_binary else x
        df = pd.DataFrame(cols)
        return df[METADATA_COLUMNS + self.variables]

    def sample(self, cfg: Optional[PanelConfig] = None) -> pd.DataFrame:
        """Sample the observational panel."""
        draw = self.draw(cfg)
        return self.frame(draw, self.propagate(draw))

    def is_ci_true(self, x: str, y: str, S: Sequence[str]) -> bool:
        """Ground-truth conditional independence via d-separation on the DAG."""
        return self.graph.d_separated([x], [y], S)

    def adjacency(self) -> Array:
        return self.graph.adjacency()
