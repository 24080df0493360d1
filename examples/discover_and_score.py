from causal_market import evaluate_edges, load_dataset, load_ground_truth
from causal_market.discovery import run_ges, run_pc

df = load_dataset("data/market_panel.csv")
truth = load_ground_truth("data/ground_truth.json")
X = df[truth.graph.nodes]

pc_result = run_pc(X, alpha=0.05)
print("PC ", evaluate_edges(pc_result.edges, truth.graph))

ges_result = run_ges(X)
print("GES", evaluate_edges(ges_result.edges, truth.graph))
print("GES skeleton", evaluate_edges(ges_result.edges, truth.graph, directed=False))
