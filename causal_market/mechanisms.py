from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping
import numpy as np

from .schema import VariableSpec, get_variable
from .utils import sigmoid

Array = np.ndarray

@dataclass
class NoiseSpec:
    name: str
    params: Dict[str, Any] = field(default_factory=dict)

    def sample(self, r: np.random.Generator, n: int) -> Array:
        p = self.params
        if self.name == "gaussian":
            return r.normal(loc=p.get("loc", 0.0), scale=p.get("scale", 1.0), size=n)
        if self.name == "laplace":
            return r.laplace(loc=p.get("loc", 0.0), scale=p.get("scale", 1.0), size=n)
        if self.name == "student_t":
            df = p.get("df", 3.0)
            scale = p.get("scale", 1.0)
            return r.standard_t(df=df, size=n) * scale
        if self.name == "uniform":
            a = p.get("low", 0.0); b = p.get("high", 1.0)
            return r.uniform(a, b, size=n)
        if self.name == "logistic":
            return r.logistic(loc=p.get("loc", 0.0), scale=p.get("scale", 1.0), size=n)
        raise ValueError(f"Unknown noise: {self.name}")

@dataclass
class LinearMechanism:
    """x = f(pa(x), eps) on the normalized scale of each parent.

    Continuous and bounded variables:  x = center + spread * (b + sum_p w_p * norm(x_p) + eps),
    clipped into the variable's range.
    Binary variables: x = 1[u < sigmoid(b + sum_p w_p * norm(x_p))] with u ~ U(0, 1),
    so the same draw of u gives a deterministic counterfactual.
    """
    weights: Dict[str, float]
    intercept: float = 0.0
    noise: NoiseSpec = field(default_factory=lambda: NoiseSpec("gaussian", {"scale": 0.5}))

    def __post_init__(self):
        for p in self.weights:
            get_variable(p)

    def linear_index(self, values: Mapping[str, Array], n: int) -> Array:
        z = np.full(n, float(self.intercept))
        for p, w in self.weights.items():
            z = z + w * get_variable(p).normalize(values[p])
        return z

    def __call__(self, spec: VariableSpec, values: Mapping[str, Array], eps: Array) -> Array:
        z = self.linear_index(values, len(eps))
        if spec.is_binary:
            return (eps < sigmoid(z)).astype(np.float64)
        return spec.clip(spec.center + spec.spread * (z + eps))


def _gauss(scale: float) -> NoiseSpec:
    return NoiseSpec("gaussian", {"scale": scale})

UNIFORM_01 = NoiseSpec("uniform", {"low": 0.0, "high": 1.0})

# Parent sets here are the ground-truth edges.
DEFAULT_MECHANISMS: Dict[str, LinearMechanism] = {
    "rd_spending": LinearMechanism({"management_quality": 0.6}, noise=_gauss(0.7)),
    "debt_ratio": LinearMechanism({"interest_rate": -0.5}, noise=_gauss(0.8)),
    "revenue_growth": LinearMechanism(
        {"sector_demand": 0.7, "rd_spending": 0.4},
        noise=NoiseSpec("laplace", {"scale": 0.4})),
    "profit_margin": LinearMechanism(
        {"revenue_growth": 0.6, "debt_ratio": -0.4}, noise=_gauss(0.6)),
    "analyst_rating": LinearMechanism(
        {"revenue_growth": 0.5, "esg_score": 0.3}, noise=_gauss(0.7)),
    "institutional_ownership": LinearMechanism(
        {"esg_score": 0.4, "analyst_rating": 0.5}, noise=_gauss(0.6)),
    "credit_rating": LinearMechanism(
        {"debt_ratio": -0.6, "profit_margin": 0.5}, noise=_gauss(0.6)),
    "dividend_paid": LinearMechanism(
        {"profit_margin": 1.5}, intercept=0.3, noise=UNIFORM_01),
    "earnings_surprise": LinearMechanism(
        {"revenue_growth": 0.5, "profit_margin": 0.4},
        noise=NoiseSpec("student_t", {"df": 5.0, "scale": 0.5})),
    "volatility": LinearMechanism(
        {"market_sentiment": -0.5, "debt_ratio": 0.4}, noise=_gauss(0.6)),
    "trading_volume": LinearMechanism(
        {"institutional_ownership": 0.4, "earnings_surprise": 0.5}, noise=_gauss(0.7)),
    "stock_return": LinearMechanism(
        {
            "interest_rate": -0.3,
            "market_sentiment": 0.5,
            "earnings_surprise": 0.6,
            "volatility": -0.3,
            "institutional_ownership": 0.2,
            "dividend_paid": 0.15,
            "insider_buying": 0.25,
        },
        noise=NoiseSpec("student_t", {"df": 4.0, "scale": 0.6})),
}
