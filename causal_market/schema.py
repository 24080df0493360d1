"""Column schema of the market panel.

Every causal variable carries its role in the graph, its value kind and the bounds the
published CSV guarantees. `center` and `spread` are fixed reference values used to put
parents on a common scale inside the mechanisms; they are not fitted to the data.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional
import numpy as np

Array = np.ndarray

EXOGENOUS = "exogenous"
ENDOGENOUS = "endogenous"
OUTCOME = "outcome"
ROLES = (EXOGENOUS, ENDOGENOUS, OUTCOME)

PERCENTAGE = "percentage"
SCORE = "score"
BINARY = "binary"
CONTINUOUS = "continuous"
KINDS = (PERCENTAGE, SCORE, BINARY, CONTINUOUS)

METADATA_COLUMNS = ["ticker", "sector", "date", "market_regime"]
REGIMES = ("bull", "neutral", "bear")

OUTCOME_VARIABLE = "stock_return"


@dataclass(frozen=True)
class VariableSpec:
    name: str
    role: str
    kind: str
    low: Optional[float]
    high: Optional[float]
    center: float
    spread: float
    description: str = ""

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"{self.name}: unknown role {self.role!r}")
        if self.kind not in KINDS:
            raise ValueError(f"{self.name}: unknown kind {self.kind!r}")
        if self.spread <= 0:
            raise ValueError(f"{self.name}: spread must be > 0.")
        if self.low is not None and self.high is not None and self.low >= self.high:
            raise ValueError(f"{self.name}: low must be < high.")

    @property
    def is_binary(self) -> bool:
        return self.kind == BINARY

    def normalize(self, x: Array) -> Array:
        return (np.asarray(x, dtype=np.float64) - self.center) / self.spread

    def clip(self, x: Array) -> Array:
        x = np.asarray(x, dtype=np.float64)
        if self.is_binary:
            return (x >= 0.5).astype(np.float64)
        lo = -np.inf if self.low is None else self.low
        hi = np.inf if self.high is None else self.high
        return np.clip(x, lo, hi)

    def check(self, x: Array) -> Array:
        """Boolean mask of values that satisfy this variable's range."""
        x = np.asarray(x, dtype=np.float64)
        ok = np.isfinite(x)
        if self.is_binary:
            return ok & np.isin(x, (0.0, 1.0))
        if self.low is not None:
            ok &= x >= self.low
        if self.high is not None:
            ok &= x <= self.high
        return ok

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "role": self.role,
            "kind": self.kind,
            "low": self.low,
            "high": self.high,
            "description": self.description,
        }


VARIABLES: List[VariableSpec] = [
    # exogenous drivers
    VariableSpec("interest_rate", EXOGENOUS, PERCENTAGE, 0.0, 1.0, 0.03, 0.015,
                 "Firm borrowing rate, policy rate path plus firm spread"),
    VariableSpec("market_sentiment", EXOGENOUS, SCORE, 0.0, 1.0, 0.5, 0.15,
                 "Market-wide sentiment index seen by the firm"),
    VariableSpec("sector_demand", EXOGENOUS, SCORE, 0.0, 1.0, 0.5, 0.15,
                 "Demand conditions in the firm's sector"),
    VariableSpec("esg_score", EXOGENOUS, SCORE, 0.0, 100.0, 55.0, 15.0,
                 "Environmental, social and governance rating"),
    VariableSpec("management_quality", EXOGENOUS, SCORE, 0.0, 100.0, 60.0, 12.0,
                 "Management quality assessment"),
    VariableSpec("insider_buying", EXOGENOUS, BINARY, 0.0, 1.0, 0.5, 0.5,
                 "Net insider purchases reported this month"),
    # endogenous intermediates
    VariableSpec("rd_spending", ENDOGENOUS, PERCENTAGE, 0.0, 1.0, 0.08, 0.03,
                 "R&D expense as a share of revenue"),
    VariableSpec("debt_ratio", ENDOGENOUS, PERCENTAGE, 0.0, 1.0, 0.40, 0.12,
                 "Total debt over total assets"),
    VariableSpec("revenue_growth", ENDOGENOUS, CONTINUOUS, None, None, 0.05, 0.08,
                 "Year-over-year revenue growth"),
    VariableSpec("profit_margin", ENDOGENOUS, PERCENTAGE, 0.0, 1.0, 0.12, 0.05,
                 "Net profit margin"),
    VariableSpec("analyst_rating", ENDOGENOUS, SCORE, 0.0, 100.0, 60.0, 12.0,
                 "Consensus analyst rating"),
    VariableSpec("institutional_ownership", ENDOGENOUS, PERCENTAGE, 0.0, 1.0, 0.65, 0.10,
                 "Share of float held by institutions"),
    VariableSpec("credit_rating", ENDOGENOUS, SCORE, 0.0, 100.0, 65.0, 10.0,
                 "Credit quality score"),
    VariableSpec("dividend_paid", ENDOGENOUS, BINARY, 0.0, 1.0, 0.5, 0.5,
                 "Dividend paid this month"),
    VariableSpec("earnings_surprise", ENDOGENOUS, CONTINUOUS, None, None, 0.0, 0.05,
                 "Reported minus consensus EPS, relative to consensus"),
    VariableSpec("volatility", ENDOGENOUS, PERCENTAGE, 0.0, 1.0, 0.25, 0.07,
                 "Annualized return volatility"),
    VariableSpec("trading_volume", ENDOGENOUS, CONTINUOUS, 0.0, None, 5.0, 1.5,
                 "Average daily volume, millions of shares"),
    # outcome
    VariableSpec(OUTCOME_VARIABLE, OUTCOME, CONTINUOUS, None, None, 0.01, 0.06,
                 "Monthly total stock return"),
]

_BY_NAME: Dict[str, VariableSpec] = {v.name: v for v in VARIABLES}


def variable_names() -> List[str]:
    return [v.name for v in VARIABLES]


def get_variable(name: str) -> VariableSpec:
    try:
        return _BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown variable: {name}") from None


def variables_by_role(role: str) -> List[VariableSpec]:
    if role not in ROLES:
        raise ValueError(f"Unknown role: {role}")
    return [v for v in VARIABLES if v.role == role]


def binary_columns() -> List[str]:
    return [v.name for v in VARIABLES if v.is_binary]


def all_columns() -> List[str]:
    return METADATA_COLUMNS + variable_names()
