import pytest

torch = pytest.importorskip("torch")

from causal_market.ci_queries import CIQueryDataset, Curriculum, make_dataloader


def test_ci_query_stream_item_shapes(default_dataset):
    n_rows, m_max = 64, 3
    ds = CIQueryDataset(
        default_dataset.frame,
        default_dataset.graph,
        n_rows=n_rows,
        m_max=m_max,
        curriculum=Curriculum(stages=((m_max, 10),)),
        seed=0,
        include_meta=True,
    )
    item = next(iter(ds))
    assert item["x"].shape == (n_rows,)
    assert item["y"].shape == (n_rows,)
    assert item["z"].shape == (m_max, n_rows)
    assert item["z_mask"].shape == (m_max,)
    assert item["label"].dtype == torch.float32
    assert {"x", "y", "S", "m"} <= set(item["meta"])


def test_labels_match_d_separation(default_dataset):
    graph = default_dataset.graph
    ds = CIQueryDataset(default_dataset.frame, graph, n_rows=16, m_max=2, seed=3, include_meta=True)
    it = iter(ds)
    for _ in range(20):
        item = next(it)
        meta = item["meta"]
        expected = graph.d_separated([meta["x"]], [meta["y"]], meta["S"])
        assert item["label"].item() == (1.0 if expected else 0.0)
        assert int(item["z_mask"].sum()) == meta["m"]


def test_dataloader_collates(default_dataset):
    ds = CIQueryDataset(default_dataset.frame, default_dataset.graph, n_rows=8, m_max=2, seed=1)
    batch = next(iter(make_dataloader(ds, batch_size=4)))
    assert batch["x"].shape == (4, 8)
    assert batch["z"].shape == (4, 2, 8)
    assert batch["z_mask"].shape == (4, 2)
    assert batch["label"].shape == (4,)


def test_invalid_arguments(default_dataset):
    with pytest.raises(ValueError):
        CIQueryDataset(default_dataset.frame, default_dataset.graph, m_max=17)
    with pytest.raises(ValueError):
        CIQueryDataset(default_dataset.frame.drop(columns=["volatility"]), default_dataset.graph)


def test_curriculum_stages():
    c = Curriculum(stages=((0, 5), (2, 5)))
    assert c.max_m_at_step(0) == 0
    assert c.max_m_at_step(5) == 2
    assert c.max_m_at_step(100) == 2
