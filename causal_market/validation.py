"""Data-quality checks for the published panel and its ground truth.

Checks never stop at the first failure: every finding lands in a `ValidationReport`
so a single run lists everything that is wrong with a file pair.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import numpy as np
import pandas as pd

from .graph import N_EDGES, N_NODES, CausalGraph
from .scenarios import RowFilter
from .schema import METADATA_COLUMNS, REGIMES, VARIABLES, all_columns, get_variable
from .scm import SET

DEFAULT_ROWS = 1800
DEFAULT_MONTHS = 36


class DatasetValidationError(ValueError):
    def __init__(self, report: "ValidationReport"):
        self.report = report
        super().__init__(f"{len(report.errors)} validation error(s): " + "; ".join(report.errors))


@dataclass
class ValidationReport:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    info: List[str] = field(default_factory=list)
    verbose: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors

    def log_info(self, message: str) -> None:
        if self.verbose:
            print(f"[INFO] {message}")
        self.info.append(message)

    def log_warning(self, message: str) -> None:
        if self.verbose:
            print(f"[WARNING] {message}")
        self.warnings.append(message)

    def log_error(self, message: str) -> None:
        if self.verbose:
            print(f"[ERROR] {message}")
        self.errors.append(message)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise DatasetValidationError(self)

    def summary(self) -> str:
        status = "PASSED" if self.ok else "FAILED"
        return (f"Validation {status}: {len(self.errors)} error(s), "
                f"{len(self.warnings)} warning(s)")


def _metadata(truth) -> dict:
    return dict(getattr(truth, "metadata", None) or {})


# ------------------------------------------------------------
# GRAPH
# ------------------------------------------------------------

def validate_graph(
    graph: CausalGraph,
    report: Optional[ValidationReport] = None,
    expected_nodes: Optional[int] = N_NODES,
    expected_edges: Optional[int] = N_EDGES,
) -> ValidationReport:
    report = report if report is not None else ValidationReport()
    nodes = set(graph.nodes)

    if len(nodes) != len(graph.nodes):
        report.log_error("Graph declares duplicate nodes.")
    if expected_nodes is not None and len(graph.nodes) != expected_nodes:
        report.log_error(f"Graph has {len(graph.nodes)} nodes, expected {expected_nodes}.")
    if expected_edges is not None and len(graph.edges) != expected_edges:
        report.log_error(f"Graph has {len(graph.edges)} edges, expected {expected_edges}.")

    dangling = [(a, b) for a, b in graph.edges if a not in nodes or b not in nodes]
    for a, b in dangling:
        report.log_error(f"Edge {a} -> {b} connects an undeclared node.")
    loops = [a for a, b in graph.edges if a == b]
    for a in loops:
        report.log_error(f"Self loop on {a}.")
    if len(set(graph.edges)) != len(graph.edges):
        report.log_error("Graph contains duplicate edges.")

    if not dangling:
        if graph.is_acyclic():
            report.log_info(f"Graph is acyclic ({len(graph.nodes)} nodes, {len(graph.edges)} edges).")
        else:
            report.log_error("Graph contains a cycle.")
    return report


# ------------------------------------------------------------
# PANEL
# ------------------------------------------------------------

def _check_columns(frame: pd.DataFrame, report: ValidationReport) -> List[str]:
    expected = all_columns()
    missing = [c for c in expected if c not in frame.columns]
    extra = [c for c in frame.columns if c not in expected]
    if missing:
        report.log_error(f"Missing columns: {missing}")
    if extra:
        report.log_warning(f"Unexpected columns: {extra}")
    return [c for c in expected if c in frame.columns]


def _check_dates(frame: pd.DataFrame, n_months: int, meta: dict, report: ValidationReport) -> None:
    dates = pd.to_datetime(frame["date"], errors="coerce")
    bad = int(dates.isna().sum() - frame["date"].isna().sum())
    if bad:
        report.log_error(f"{bad} unparseable date value(s).")
    dates = dates.dropna()
    if dates.empty:
        return
    not_month_start = int((dates.dt.day != 1).sum())
    if not_month_start:
        report.log_error(f"{not_month_start} date(s) are not month starts.")

    lo, hi = dates.min(), dates.max()
    span = (hi.year - lo.year) * 12 + (hi.month - lo.month) + 1
    if span > n_months:
        report.log_error(f"Dates span {span} months ({lo.date()} .. {hi.date()}), window is {n_months}.")
    n_distinct = dates.dt.to_period("M").nunique()
    if n_distinct != n_months:
        report.log_error(f"{n_distinct} distinct months, expected {n_months}.")

    if "start_date" in meta and lo < pd.Timestamp(meta["start_date"]):
        report.log_error(f"First date {lo.date()} precedes window start {meta['start_date']}.")
    if "end_date" in meta and hi > pd.Timestamp(meta["end_date"]):
        report.log_error(f"Last date {hi.date()} is after window end {meta['end_date']}.")
    report.log_info(f"Date window {lo.date()} .. {hi.date()} ({n_distinct} months).")


def _check_ranges(frame: pd.DataFrame, report: ValidationReport) -> None:
    for spec in VARIABLES:
        if spec.name not in frame.columns:
            continue
        col = pd.to_numeric(frame[spec.name], errors="coerce")
        values = col.dropna().to_numpy()
        bad = int((~spec.check(values)).sum()) + int(col.isna().sum() - frame[spec.name].isna().sum())
        if bad:
            if spec.is_binary:
                report.log_error(f"{spec.name}: {bad} value(s) are not 0/1.")
            else:
                report.log_error(
                    f"{spec.name}: {bad} value(s) outside [{spec.low}, {spec.high}].")


def validate_dataset(
    frame: pd.DataFrame,
    truth=None,
    expected_rows: Optional[int] = None,
    verbose: bool = False,
) -> ValidationReport:
    """Check the panel (and, when given, its ground truth) against the published invariants."""
    report = ValidationReport(verbose=verbose)
    meta = _metadata(truth)
    present = _check_columns(frame, report)

    if expected_rows is None:
        expected_rows = int(meta.get("n_rows", DEFAULT_ROWS))
    n_months = int(meta.get("n_months", DEFAULT_MONTHS))

    if len(frame) != expected_rows:
        report.log_error(f"Row count {len(frame)}, expected {expected_rows}.")
    else:
        report.log_info(f"Row count {len(frame)}.")

    nulls = frame[present].isna().sum()
    for col, k in nulls[nulls > 0].items():
        report.log_error(f"{col}: {int(k)} null value(s).")

    if "ticker" in present and "date" in present:
        dup = int(frame.duplicated(subset=["ticker", "date"]).sum())
        if dup:
            report.log_error(f"{dup} duplicate (ticker, date) pair(s).")

    if "date" in present:
        _check_dates(frame, n_months, meta, report)

    _check_ranges(frame, report)

    if "ticker" in present and "sector" in present:
        per_ticker = frame.groupby("ticker")["sector"].nunique()
        for t in per_ticker[per_ticker > 1].index:
            report.log_error(f"Ticker {t} appears in more than one sector.")
        if "n_tickers" in meta and frame["ticker"].nunique() != int(meta["n_tickers"]):
            report.log_error(
                f"{frame['ticker'].nunique()} tickers, expected {int(meta['n_tickers'])}.")

    if "market_regime" in present:
        unknown = sorted(set(frame["market_regime"].dropna()) - set(REGIMES))
        if unknown:
            report.log_error(f"Unknown market_regime labels: {unknown}")
        if "date" in present:
            per_month = frame.groupby("date")["market_regime"].nunique()
            mixed = int((per_month > 1).sum())
            if mixed:
                report.log_error(f"{mixed} month(s) carry more than one market_regime.")

    if truth is not None:
        data_vars = [c for c in frame.columns if c not in METADATA_COLUMNS]
        if set(truth.graph.nodes) != set(data_vars):
            report.log_error("Graph nodes do not match the panel's causal columns.")
        validate_graph(truth.graph, report)
        validate_scenarios(truth, frame, report)

    return report


# ------------------------------------------------------------
# SCENARIOS & TEST INTERVENTIONS
# ------------------------------------------------------------

def _check_assignment(name: str, assignment, mode: str, nodes: set,
                      report: ValidationReport) -> None:
    for var, value in assignment.items():
        if var not in nodes:
            report.log_error(f"{name}: intervention on unknown variable {var}.")
            continue
        if mode == SET and not bool(get_variable(var).check(np.array([float(value)]))[0]):
            report.log_error(f"{name}: value {value} is outside the range of {var}.")


def _check_filter(name: str, flt: RowFilter, frame: Optional[pd.DataFrame],
                  report: ValidationReport) -> Optional[int]:
    if frame is None:
        return None
    if flt.key is not None and flt.key not in frame.columns:
        return None
    n = int(flt.mask(frame).sum())
    if n == 0:
        report.log_error(f"{name}: filter {flt.to_dict()} selects no rows.")
    return n


def validate_scenarios(
    truth,
    frame: Optional[pd.DataFrame] = None,
    report: Optional[ValidationReport] = None,
    atol: float = 1e-9,
) -> ValidationReport:
    report = report if report is not None else ValidationReport()
    nodes = set(truth.graph.nodes)

    names: Sequence[str] = [s.name for s in truth.scenarios] + [t.name for t in truth.interventions]
    if len(set(names)) != len(names):
        report.log_error("Scenario and intervention names must be unique.")

    for s in truth.scenarios:
        spec = s.spec
        expected = s.counterfactual_mean - s.original_mean
        if not np.isclose(s.true_effect, expected, rtol=0.0, atol=atol):
            report.log_error(
                f"{spec.name}: true_effect {s.true_effect} != counterfactual - original {expected}.")
        if s.sample_size <= 0:
            report.log_error(f"{spec.name}: sample_size must be > 0.")
        if spec.target not in nodes:
            report.log_error(f"{spec.name}: unknown target {spec.target}.")
        _check_assignment(spec.name, spec.intervention, spec.mode, nodes, report)
        n = _check_filter(spec.name, spec.filter, frame, report)
        if n and n != s.sample_size:
            report.log_error(f"{spec.name}: sample_size {s.sample_size}, filter selects {n} rows.")

    for t in truth.interventions:
        if not t.intervention:
            report.log_error(f"{t.name}: empty intervention.")
        if t.target not in nodes:
            report.log_error(f"{t.name}: unknown target {t.target}.")
        _check_assignment(t.name, t.intervention, SET, nodes, report)
        _check_filter(t.name, t.filter, frame, report)

    report.log_info(
        f"Checked {len(truth.scenarios)} scenario(s) and {len(truth.interventions)} test intervention(s).")
    return report
