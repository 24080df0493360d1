import json

import numpy as np
import pandas as pd
import pytest

from causal_market import (
    MarketSCM,
    PanelConfig,
    generate_dataset,
    load_dataset,
    load_ground_truth,
)
from causal_market.datasets import DATA_FILENAME, GROUND_TRUTH_FILENAME
from causal_market.panel import ticker_universe
from causal_market.schema import METADATA_COLUMNS, REGIMES, VARIABLES, all_columns


def test_default_panel_shape(default_dataset):
    df = default_dataset.frame
    assert len(df) == 1800
    assert list(df.columns) == all_columns()
    assert df["ticker"].nunique() == 50
    assert df["date"].nunique() == 36
    assert df["date"].min() == pd.Timestamp("2021-01-01")
    assert df["date"].max() == pd.Timestamp("2023-12-01")
    assert not df.duplicated(subset=["ticker", "date"]).any()


def test_values_respect_variable_ranges(default_dataset):
    df = default_dataset.frame
    for spec in VARIABLES:
        assert spec.check(df[spec.name].to_numpy()).all(), spec.name
    assert set(df["dividend_paid"].unique()) <= {0, 1}
    assert set(df["insider_buying"].unique()) <= {0, 1}
    assert df["dividend_paid"].dtype == np.int64


def test_panel_structure(default_dataset):
    df = default_dataset.frame
    assert (df.groupby("ticker")["sector"].nunique() == 1).all()
    assert set(df["market_regime"]) <= set(REGIMES)
    assert (df.groupby("date")["market_regime"].nunique() == 1).all()
    # every ticker shares one policy rate path, so the cross-section mean rises over the window
    by_month = df.groupby("date")["interest_rate"].mean()
    assert by_month.iloc[-1] > by_month.iloc[0]


def test_generate_reproducible_with_seed(small_cfg):
    ds1, _, _ = generate_dataset(small_cfg)
    ds2, _, _ = generate_dataset(small_cfg)
    pd.testing.assert_frame_equal(ds1.frame, ds2.frame)
    assert [s.true_effect for s in ds1.scenarios] == [s.true_effect for s in ds2.scenarios]


def test_different_seeds_differ(small_cfg):
    other = PanelConfig(n_tickers=small_cfg.n_tickers, n_months=small_cfg.n_months, seed=8)
    ds1, _, _ = generate_dataset(small_cfg)
    ds2, _, _ = generate_dataset(other)
    assert not np.allclose(ds1.frame["stock_return"], ds2.frame["stock_return"])


def test_sample_matches_generated_frame(small, small_cfg):
    ds, scm, _ = small
    pd.testing.assert_frame_equal(scm.sample(small_cfg), ds.frame)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"n_tickers": 0},
        {"n_months": 1},
        {"start_date": "2021-01-15"},
        {"sectors": ()},
        {"sectors": ("Energy", "Energy")},
        {"sectors": ("Alpha", "Alpine")},
        {"rate_end": 1.5},
    ],
)
def test_panel_config_rejects_bad_values(kwargs):
    with pytest.raises(ValueError):
        PanelConfig(**kwargs)


def test_custom_sectors_get_distinct_tickers():
    cfg = PanelConfig(n_tickers=4, n_months=3, sectors=("Alpha", "Beta"))
    tickers, sectors = ticker_universe(cfg)
    assert tickers == ["ALP01", "BET01", "ALP02", "BET02"]
    assert sectors == ["Alpha", "Beta", "Alpha", "Beta"]


def test_ticker_naming(small):
    ds, _, _ = small
    tickers = sorted(ds.frame["ticker"].unique())
    assert "TEC01" in tickers and "HLT02" in tickers and "CON02" in tickers
    assert ds.frame.loc[ds.frame["ticker"] == "ENR01", "sector"].iloc[0] == "Energy"


def test_save_and_load_roundtrip(small, tmp_path):
    ds, _, _ = small
    data_path, truth_path = ds.save(str(tmp_path))
    assert data_path.endswith(DATA_FILENAME)
    assert truth_path.endswith(GROUND_TRUTH_FILENAME)

    df = load_dataset(data_path)
    assert list(df.columns) == all_columns()
    assert len(df) == len(ds.frame)
    assert pd.api.types.is_datetime64_any_dtype(df["date"])
    assert df["dividend_paid"].dtype == np.int64
    np.testing.assert_allclose(df["stock_return"], ds.frame["stock_return"], atol=1e-6)
    assert (df[METADATA_COLUMNS[:2]] == ds.frame[METADATA_COLUMNS[:2]]).all().all()

    truth = load_ground_truth(truth_path)
    assert truth.graph.edge_set() == ds.graph.edge_set()
    assert [s.name for s in truth.scenarios] == [s.name for s in ds.scenarios]
    assert truth.scenarios[0].true_effect == ds.scenarios[0].true_effect
    assert [t.to_dict() for t in truth.interventions] == [t.to_dict() for t in ds.interventions]
    assert truth.metadata["n_rows"] == 120


def test_ground_truth_json_layout(small, tmp_path):
    ds, _, _ = small
    _, truth_path = ds.save(str(tmp_path))
    with open(truth_path) as f:
        d = json.load(f)
    assert set(d) == {"metadata", "nodes", "edges", "counterfactual_scenarios", "test_interventions"}
    node = next(n for n in d["nodes"] if n["name"] == "esg_score")
    assert node["role"] == "exogenous" and node["kind"] == "score"
    assert node["low"] == 0.0 and node["high"] == 100.0
    assert all({"source", "target", "weight"} <= set(e) for e in d["edges"])
    for t in d["test_interventions"]:
        assert "true_effect" not in t


def test_load_dataset_missing_columns(tmp_path):
    path = tmp_path / "bad.csv"
    pd.DataFrame({"ticker": ["A"], "date": ["2021-01-01"]}).to_csv(path, index=False)
    with pytest.raises(ValueError, match="missing columns"):
        load_dataset(str(path))


def test_generate_rejects_empty_test_intervention_filter():
    # three tickers: no Energy or Consumer firms
    with pytest.raises(ValueError, match="selects no rows"):
        generate_dataset(PanelConfig(n_tickers=3, n_months=6))


def test_scm_requires_a_mechanism_per_endogenous_variable():
    scm = MarketSCM.default()
    mechs = dict(scm.mechanisms)
    mechs.pop("stock_return")
    with pytest.raises(ValueError, match="Missing mechanism"):
        MarketSCM(list(scm.specs.values()), mechs, scm.graph)
