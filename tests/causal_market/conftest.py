import pytest

from causal_market import PanelConfig, generate_dataset


@pytest.fixture(scope="module")
def small_cfg():
    # 10 tickers covers every sector twice and the tickers the test interventions name
    return PanelConfig(n_tickers=10, n_months=12, seed=7)


@pytest.fixture(scope="module")
def small(small_cfg):
    """(dataset, scm, draw) for a 120-row panel."""
    return generate_dataset(small_cfg)


@pytest.fixture(scope="module")
def default_dataset():
    ds, _, _ = generate_dataset()
    return ds
