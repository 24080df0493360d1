from __future__ import annotations
import argparse
import json
import os
import sys

from .datasets import (
    DATA_FILENAME,
    GROUND_TRUTH_FILENAME,
    generate_dataset,
    load_dataset,
    load_ground_truth,
)
from .discovery import ALGORITHMS, run_discovery
from .evaluation import edge_diff, evaluate_edges, load_edge_list
from .panel import PanelConfig
from .scenarios import intervention_answer_key
from .validation import validate_dataset

def _add_panel_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--seed", default=42, type=int)
    p.add_argument("--n-tickers", default=50, type=int)
    p.add_argument("--n-months", default=36, type=int)
    p.add_argument("--start-date", default="2021-01-01", type=str)

def _panel_config(args) -> PanelConfig:
    return PanelConfig(
        n_tickers=args.n_tickers,
        n_months=args.n_months,
        start_date=args.start_date,
        seed=args.seed,
    )

def cmd_generate(args) -> int:
    cfg = _panel_config(args)
    ds, scm, draw = generate_dataset(cfg)
    data_path, truth_path = ds.save(args.out)
    print(f"Wrote {len(ds.frame)} rows to {data_path}")
    print(f"Wrote ground truth ({len(ds.graph.nodes)} nodes, {len(ds.graph.edges)} edges, "
          f"{len(ds.scenarios)} scenarios, {len(ds.interventions)} test interventions) to {truth_path}")
    for s in ds.scenarios:
        print(f"  {s.name:<26} effect on {s.spec.target}: {s.true_effect:+.6f} (n={s.sample_size})")
    if args.answer_key:
        key = intervention_answer_key(scm, draw, ds.frame, ds.interventions)
        path = os.path.join(args.out, "answer_key.json")
        with open(path, "w") as f:
            json.dump({k: v.to_dict() for k, v in key.items()}, f, indent=2)
        print(f"Wrote answer key to {path}")
    return 0

def cmd_validate(args) -> int:
    frame = load_dataset(args.data, strict=False)
    truth = load_ground_truth(args.truth) if args.truth else None
    report = validate_dataset(frame, truth, verbose=True)
    print(report.summary())
    return 0 if report.ok else 1

def cmd_evaluate(args) -> int:
    truth = load_ground_truth(args.truth)
    discovered = load_edge_list(args.edges)
    metrics = evaluate_edges(discovered, truth.graph, directed=not args.skeleton)
    print(metrics)
    if args.verbose:
        for kind, edges in edge_diff(discovered, truth.graph).items():
            if kind == "correct":
                continue
            for a, b in edges:
                print(f"  {kind:<8} {a} -> {b}")
    return 0

def cmd_discover(args) -> int:
    frame = load_dataset(args.data)
    truth = load_ground_truth(args.truth)
    kwargs = {"alpha": args.alpha} if args.algorithm == "pc" else {}
    result = run_discovery(frame, args.algorithm, columns=truth.graph.nodes, **kwargs)
    print(f"{result.algorithm}: {len(result.directed)} directed, {len(result.undirected)} undirected "
          f"edge(s) in {result.runtime_seconds:.1f}s")
    print("directed: ", evaluate_edges(result.edges, truth.graph, directed=True))
    print("skeleton: ", evaluate_edges(result.edges, truth.graph, directed=False))
    if args.out:
        with open(args.out, "w") as f:
            json.dump({"edges": sorted([list(e) for e in result.edges])}, f, indent=2)
        print(f"Saved edges to {args.out}")
    return 0

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="causal-market", description="Synthetic causal market benchmark")
    sub = p.add_subparsers(dest="command", required=True)

    g = sub.add_parser("generate", help="generate the panel CSV and ground-truth JSON")
    g.add_argument("--out", default="data", type=str)
    _add_panel_args(g)
    g.add_argument("--answer-key", action="store_true", help="also write answers for the test interventions")
    g.set_defaults(func=cmd_generate)

    v = sub.add_parser("validate", help="run data-quality checks")
    v.add_argument("--data", default=os.path.join("data", DATA_FILENAME), type=str)
    v.add_argument("--truth", default=os.path.join("data", GROUND_TRUTH_FILENAME), type=str)
    v.set_defaults(func=cmd_validate)

    e = sub.add_parser("evaluate", help="score a discovered edge list")
    e.add_argument("--edges", required=True, type=str, help="CSV (source,target) or JSON edge list")
    e.add_argument("--truth", default=os.path.join("data", GROUND_TRUTH_FILENAME), type=str)
    e.add_argument("--skeleton", action="store_true", help="ignore edge direction")
    e.add_argument("--verbose", action="store_true")
    e.set_defaults(func=cmd_evaluate)

    d = sub.add_parser("discover", help="run causal-learn PC or GES and score the result")
    d.add_argument("--data", default=os.path.join("data", DATA_FILENAME), type=str)
    d.add_argument("--truth", default=os.path.join("data", GROUND_TRUTH_FILENAME), type=str)
    d.add_argument("--algorithm", default="pc", choices=list(ALGORITHMS))
    d.add_argument("--alpha", default=0.05, type=float)
    d.add_argument("--out", default=None, type=str, help="write discovered edges as JSON")
    d.set_defaults(func=cmd_discover)
    return p

def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)

if __name__ == "__main__":
    sys.exit(main())
