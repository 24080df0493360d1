import numpy as np
import pandas as pd
import pytest

from causal_market import (
    CausalGraph,
    DatasetValidationError,
    load_dataset,
    load_ground_truth,
    validate_dataset,
    validate_graph,
)
from causal_market.datasets import GroundTruth
from causal_market.graph import ground_truth_graph
from causal_market.validation import validate_scenarios


def test_generated_dataset_passes(small):
    ds, _, _ = small
    report = validate_dataset(ds.frame, ds.truth)
    assert report.ok, report.errors
    report.raise_for_errors()


def test_default_dataset_passes_without_truth(default_dataset):
    report = validate_dataset(default_dataset.frame)
    assert report.ok, report.errors


def test_saved_files_pass(small, tmp_path):
    ds, _, _ = small
    data_path, truth_path = ds.save(str(tmp_path))
    report = validate_dataset(load_dataset(data_path), load_ground_truth(truth_path))
    assert report.ok, report.errors


def _errors_after(ds, mutate):
    df = ds.frame.copy()
    mutate(df)
    return validate_dataset(df, ds.truth).errors


def test_row_count_mismatch(small):
    ds, _, _ = small
    report = validate_dataset(ds.frame.iloc[:-1], ds.truth)
    assert any("Row count" in e for e in report.errors)
    report = validate_dataset(ds.frame, expected_rows=1800)
    assert any("Row count 120, expected 1800" in e for e in report.errors)


def test_duplicate_ticker_date(small):
    ds, _, _ = small

    def dup(df):
        df.loc[1, "date"] = df.loc[0, "date"]
    errors = _errors_after(ds, dup)
    assert any("duplicate (ticker, date)" in e for e in errors)


def test_out_of_range_values(small):
    ds, _, _ = small

    def bad(df):
        df.loc[0, "esg_score"] = 150.0
        df.loc[1, "debt_ratio"] = -0.1
        df.loc[2, "dividend_paid"] = 2
    errors = _errors_after(ds, bad)
    assert any(e.startswith("esg_score") for e in errors)
    assert any(e.startswith("debt_ratio") for e in errors)
    assert any(e.startswith("dividend_paid") and "0/1" in e for e in errors)


def test_date_outside_window(small):
    ds, _, _ = small

    def late(df):
        df.loc[0, "date"] = pd.Timestamp("2030-01-01")
    errors = _errors_after(ds, late)
    assert any("window" in e for e in errors)

    def mid_month(df):
        df.loc[0, "date"] = pd.Timestamp("2021-01-15")
    errors = _errors_after(ds, mid_month)
    assert any("month starts" in e for e in errors)


def test_sector_and_regime_consistency(small):
    ds, _, _ = small

    def swap_sector(df):
        df.loc[0, "sector"] = "Energy" if df.loc[0, "sector"] != "Energy" else "Consumer"
    assert any("more than one sector" in e for e in _errors_after(ds, swap_sector))

    def bad_regime(df):
        df.loc[0, "market_regime"] = "sideways"
    errors = _errors_after(ds, bad_regime)
    assert any("Unknown market_regime" in e for e in errors)
    assert any("more than one market_regime" in e for e in errors)


def test_missing_column_and_nulls(small):
    ds, _, _ = small
    report = validate_dataset(ds.frame.drop(columns=["volatility"]), ds.truth)
    assert any("Missing columns" in e for e in report.errors)

    def null(df):
        df.loc[3, "profit_margin"] = np.nan
    assert any("null" in e for e in _errors_after(ds, null))


def test_extra_column_is_a_warning(small):
    ds, _, _ = small
    df = ds.frame.assign(notes="")
    report = validate_dataset(df)
    assert any("Unexpected columns" in w for w in report.warnings)


def test_validate_graph():
    assert validate_graph(ground_truth_graph()).ok

    cyclic = CausalGraph(nodes=["a", "b"], edges=[("a", "b"), ("b", "a")])
    report = validate_graph(cyclic, expected_nodes=2, expected_edges=2)
    assert report.errors == ["Graph contains a cycle."]

    g = ground_truth_graph()
    short = CausalGraph(nodes=g.nodes, edges=g.edges[:-1])
    assert any("25 edges, expected 26" in e for e in validate_graph(short).errors)

    dangling = CausalGraph(nodes=g.nodes, edges=g.edges[:-1] + [("stock_return", "ghost")])
    assert any("undeclared" in e for e in validate_graph(dangling).errors)


def test_tampered_scenario(small):
    ds, _, _ = small
    truth = GroundTruth.from_dict(ds.truth.to_dict())
    truth.scenarios[0].true_effect += 1.0
    truth.scenarios[1].sample_size = 3
    report = validate_scenarios(truth, ds.frame)
    assert any("true_effect" in e for e in report.errors)
    assert any("sample_size 3" in e for e in report.errors)
    with pytest.raises(DatasetValidationError):
        report.raise_for_errors()


def test_raise_for_errors_carries_report(small):
    ds, _, _ = small
    report = validate_dataset(ds.frame.iloc[:10], ds.truth)
    with pytest.raises(DatasetValidationError) as exc:
        report.raise_for_errors()
    assert exc.value.report is report
    assert isinstance(exc.value, ValueError)


def test_verbose_report_prints(small, capsys):
    ds, _, _ = small
    validate_dataset(ds.frame.iloc[:10], ds.truth, verbose=True)
    out = capsys.readouterr().out
    assert "[ERROR] Row count 10" in out
    assert "[INFO]" in out


def _saved_errors(ds, tmp_path, mutate):
    data_path, _ = ds.save(str(tmp_path))
    raw = pd.read_csv(data_path)
    mutate(raw)
    raw.to_csv(data_path, index=False)
    return validate_dataset(load_dataset(data_path, strict=False), ds.truth).errors


def test_fractional_binary_survives_loading(small, tmp_path):
    ds, _, _ = small

    def fractional(df):
        df["dividend_paid"] = df["dividend_paid"].astype(float)
        df["insider_buying"] = df["insider_buying"].astype(float)
        df.loc[0, "dividend_paid"] = 0.5
        df.loc[1, "insider_buying"] = 1.7
    errors = _saved_errors(ds, tmp_path, fractional)
    assert "dividend_paid: 1 value(s) are not 0/1." in errors
    assert "insider_buying: 1 value(s) are not 0/1." in errors


def test_loaded_binaries_are_integers(small, tmp_path):
    ds, _, _ = small
    data_path, _ = ds.save(str(tmp_path))
    df = load_dataset(data_path)
    assert df["dividend_paid"].dtype == np.int64
    assert df["insider_buying"].dtype == np.int64


def test_out_of_range_values_after_loading(small, tmp_path):
    ds, _, _ = small

    def bad(df):
        df.loc[0, "esg_score"] = 150.0
        df.loc[1, "volatility"] = -0.2
        df.loc[2, "dividend_paid"] = 2
    errors = _saved_errors(ds, tmp_path, bad)
    assert any(e.startswith("esg_score") for e in errors)
    assert any(e.startswith("volatility") for e in errors)
    assert any(e.startswith("dividend_paid") and "0/1" in e for e in errors)


def test_missing_column_after_loading(small, tmp_path):
    ds, _, _ = small
    errors = _saved_errors(ds, tmp_path, lambda df: df.drop(columns=["volatility"], inplace=True))
    assert any("Missing columns" in e and "volatility" in e for e in errors)

    data_path = str(tmp_path / "market_panel.csv")
    with pytest.raises(ValueError, match="missing columns"):
        load_dataset(data_path)
