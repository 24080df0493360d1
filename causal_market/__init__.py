"""causal_market: synthetic stock panel with a known causal graph.

Main entrypoints: `generate_dataset(...)`, `load_dataset(path)`, `load_ground_truth(path)`,
`validate_dataset(frame, truth)` and `evaluate_edges(discovered, truth)`.
"""

from .graph import CausalGraph, GraphError, ground_truth_graph
from .panel import PanelConfig
from .scm import Intervention, MarketSCM, PanelDraw
from .scenarios import (
    CounterfactualScenario,
    RowFilter,
    ScenarioSpec,
    TestIntervention,
    intervention_answer_key,
    run_scenario,
    score_effect_estimates,
)
from .datasets import GroundTruth, MarketDataset, generate_dataset, load_dataset, load_ground_truth
from .validation import DatasetValidationError, ValidationReport, validate_dataset, validate_graph
from .evaluation import EdgeMetrics, edges_from_adjacency, evaluate_edges

__all__ = [
    "CausalGraph",
    "GraphError",
    "ground_truth_graph",
    "PanelConfig",
    "Intervention",
    "MarketSCM",
    "PanelDraw",
    "CounterfactualScenario",
    "RowFilter",
    "ScenarioSpec",
    "TestIntervention",
    "intervention_answer_key",
    "run_scenario",
    "score_effect_estimates",
    "GroundTruth",
    "MarketDataset",
    "generate_dataset",
    "load_dataset",
    "load_ground_truth",
    "DatasetValidationError",
    "ValidationReport",
    "validate_dataset",
    "validate_graph",
    "EdgeMetrics",
    "edges_from_adjacency",
    "evaluate_edges",
]
