from causal_market import PanelConfig, generate_dataset, intervention_answer_key, validate_dataset

def main():
    cfg = PanelConfig(seed=42)
    ds, scm, draw = generate_dataset(cfg)

    print("Panel shape:", ds.frame.shape)
    print("Adjacency (i->j):\n", ds.graph.adjacency())

    x, y, S = "rd_spending", "stock_return", ["revenue_growth"]
    print(f"CI truth: {x} ⟂ {y} | {S} ? ", scm.is_ci_true(x, y, S))

    for s in ds.scenarios:
        print(f"{s.name}: {s.original_mean:.5f} -> {s.counterfactual_mean:.5f} (effect {s.true_effect:+.5f})")

    key = intervention_answer_key(scm, draw, ds.frame, ds.interventions)
    for name, res in key.items():
        print(f"answer {name}: {res.true_effect:+.5f} on {res.spec.target} (n={res.sample_size})")

    print(validate_dataset(ds.frame, ds.truth).summary())
    ds.save("data")
    print("Saved data/market_panel.csv and data/ground_truth.json")

if __name__ == "__main__":
    main()
