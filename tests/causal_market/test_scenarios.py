import numpy as np
import pandas as pd
import pytest

from causal_market import (
    Intervention,
    RowFilter,
    ScenarioSpec,
    intervention_answer_key,
    run_scenario,
    score_effect_estimates,
)
from causal_market.scenarios import CounterfactualScenario, DEFAULT_SCENARIOS


def _by_name(ds):
    return {s.name: s for s in ds.scenarios}


def test_true_effect_identity_and_sample_sizes(small, small_cfg):
    ds, _, _ = small
    assert [s.name for s in ds.scenarios] == [s.name for s in DEFAULT_SCENARIOS]
    for s in ds.scenarios:
        assert s.true_effect == pytest.approx(s.counterfactual_mean - s.original_mean, abs=1e-12)
        assert s.sample_size == int(s.spec.filter.mask(ds.frame).sum())
    scen = _by_name(ds)
    assert scen["esg_improvement"].sample_size == small_cfg.n_rows
    # 10 tickers round robin over 5 sectors: two Technology firms
    assert scen["tech_rd_boost"].sample_size == 2 * small_cfg.n_months


def test_original_mean_is_factual_mean(small):
    ds, _, _ = small
    for s in ds.scenarios:
        mask = s.spec.filter.mask(ds.frame)
        assert s.original_mean == pytest.approx(ds.frame.loc[mask, s.spec.target].mean())


def test_monotone_scenarios_have_expected_sign(small):
    ds, _, _ = small
    scen = _by_name(ds)
    # dividend_paid enters stock_return with a positive weight and has no other child
    assert scen["universal_dividend"].true_effect >= 0.0
    # every path from esg_score to stock_return has positive weights
    assert scen["esg_improvement"].true_effect > 0.0
    # less debt raises credit quality directly and through profit margin
    assert scen["financials_deleveraging"].true_effect > 0.0


def test_intervention_on_non_ancestor_has_zero_effect(small):
    ds, scm, draw = small
    spec = ScenarioSpec("volume_spike", "", RowFilter(), {"trading_volume": 20.0})
    result = run_scenario(scm, draw, ds.frame, spec)
    assert result.true_effect == 0.0
    assert result.original_mean == result.counterfactual_mean


def test_counterfactual_keeps_rows_outside_filter(small):
    ds, scm, draw = small
    mask = RowFilter(sector="Technology").mask(ds.frame)
    factual = scm.propagate(draw)
    cf = scm.propagate(draw, [Intervention("rd_spending", 0.15)], mask=mask)
    np.testing.assert_array_equal(cf["stock_return"][~mask], factual["stock_return"][~mask])
    assert np.all(cf["rd_spending"][mask] == 0.15)


def test_propagate_without_interventions_reproduces_frame(small):
    ds, scm, draw = small
    values = scm.propagate(draw)
    for name in scm.variables:
        np.testing.assert_array_equal(values[name], ds.frame[name].to_numpy(dtype=np.float64))


def test_forced_values_are_clipped(small):
    ds, scm, draw = small
    values = scm.propagate(draw, [Intervention("rd_spending", 5.0)])
    assert np.all(values["rd_spending"] == 1.0)
    values = scm.propagate(draw, [Intervention("esg_score", -50.0, mode="shift")])
    assert values["esg_score"].min() >= 0.0


def test_intervention_validation():
    with pytest.raises(ValueError):
        Intervention("rd_spending", 0.1, mode="scale")
    with pytest.raises(ValueError):
        ScenarioSpec("x", "", RowFilter(), {})
    with pytest.raises(ValueError):
        ScenarioSpec("x", "", RowFilter(), {"stock_return": 0.1})


def test_unknown_intervention_variable(small):
    _, scm, draw = small
    with pytest.raises(KeyError):
        scm.propagate(draw, [Intervention("not_a_column", 1.0)])


def test_row_filter():
    df = pd.DataFrame({"ticker": ["TEC01", "HLT01", "TEC01"], "sector": ["Technology", "Healthcare", "Technology"]})
    assert RowFilter(ticker="TEC01").mask(df).tolist() == [True, False, True]
    assert RowFilter(sector="Healthcare").mask(df).tolist() == [False, True, False]
    assert RowFilter().mask(df).all()
    assert RowFilter.from_dict({"sector": "Energy"}) == RowFilter(sector="Energy")
    assert RowFilter.from_dict(None) == RowFilter()
    with pytest.raises(ValueError):
        RowFilter(ticker="TEC01", sector="Technology")
    with pytest.raises(ValueError, match="Unknown filter keys"):
        RowFilter.from_dict({"date": "2021-01-01"})


def test_empty_filter_raises(small):
    ds, scm, draw = small
    spec = ScenarioSpec("nobody", "", RowFilter(ticker="ZZZ99"), {"rd_spending": 0.1})
    with pytest.raises(ValueError, match="selects no rows"):
        run_scenario(scm, draw, ds.frame, spec)


def test_scenario_dict_roundtrip(small):
    ds, _, _ = small
    for s in ds.scenarios:
        again = CounterfactualScenario.from_dict(s.to_dict())
        assert again.to_dict() == s.to_dict()


def test_answer_key_and_scoring(small):
    ds, scm, draw = small
    key = intervention_answer_key(scm, draw, ds.frame, ds.interventions)
    assert set(key) == {t.name for t in ds.interventions}
    for name, res in key.items():
        assert res.true_effect == pytest.approx(res.counterfactual_mean - res.original_mean)
        assert res.sample_size > 0
    assert key["tec01_rd_push"].sample_size == 12

    truth = key["financials_low_leverage"].true_effect
    scores = score_effect_estimates({"financials_low_leverage": truth + 0.5}, key)
    assert len(scores) == 1
    assert scores.loc[0, "abs_error"] == pytest.approx(0.5)
    assert scores.loc[0, "error"] == pytest.approx(0.5)

    with pytest.raises(KeyError):
        score_effect_estimates({"unknown": 0.0}, key)
