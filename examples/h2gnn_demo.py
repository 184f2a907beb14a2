"""
Demonstration of hyperbolic geometric graph networks.

This script walks through the main parts of the package:
- Basic operations in the Poincaré ball
- Individual layer usage
- Training a network on a synthetic hierarchy
- Prediction, geometric insights and geometry modes
- Exporting and re-importing a trained model
"""

import json
import logging
import os
import sys
import tempfile
from pathlib import Path

import torch

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from h2gnn import (
    # Geometry
    PoincareManifold, mobius_add, hyperbolic_distance, random_hyperbolic_point,

    # Layers
    HyperbolicLinear, HyperbolicAttention, HyperbolicMessagePassing,

    # Network and data
    H2GNN, H2GNNConfig, TrainingConfig, TrainingData,
    HierarchicalDataSource, create_hierarchical_dataset,
    LoggingConfig,
)
from h2gnn.core.math_ops import exponential_map, logarithmic_map, triangle_excess


logger = LoggingConfig().configure_logging()


def demo_basic_operations():
    """Demonstrate basic hyperbolic operations."""
    print("\n" + "=" * 50)
    print("DEMO: Basic Hyperbolic Operations")
    print("=" * 50)

    manifold = PoincareManifold(curvature=1.0)

    x = torch.tensor([[0.1, 0.2], [0.3, -0.1], [0.0, 0.0]])
    y = torch.tensor([[0.2, -0.1], [0.1, 0.3], [0.05, 0.15]])

    print(f"Points x: {x}")
    print(f"Points y: {y}")
    print(f"Hyperbolic distances: {hyperbolic_distance(x, y)}")
    print(f"Möbius addition (x ⊕ y): {mobius_add(x, y)}")

    v = torch.tensor([[0.1, 0.0], [0.0, 0.1], [0.05, 0.05]])
    exp_result = exponential_map(v, x)
    log_result = logarithmic_map(x, exp_result)
    print(f"Reconstruction error of log_x(exp_x(v)): {torch.norm(v - log_result, dim=1)}")

    outside = torch.tensor([[3.0, 4.0]])
    print(f"Projection of {outside.tolist()}: {manifold.project(outside)}")

    u, w = random_hyperbolic_point(2, 0.9, num_points=2)
    print(f"Angle excess of a random triangle: {triangle_excess(x[0], u, w).item():.4f}")


def demo_layers():
    """Demonstrate the individual layers."""
    print("\n" + "=" * 50)
    print("DEMO: Hyperbolic Layers")
    print("=" * 50)

    x = random_hyperbolic_point(8, 0.8, num_points=6)
    print(f"Input norms: {torch.norm(x, dim=1)}")

    linear = HyperbolicLinear(8, 4)
    print(f"Linear output norms: {torch.norm(linear(x), dim=1)}")

    attention = HyperbolicAttention(8, num_heads=2)
    output, weights = attention(x, return_attention_weights=True)
    print(f"Attention weights of head 0, node 0: {weights[0, 0]}")

    message_passing = HyperbolicMessagePassing(8, 8)
    ring = [[(i - 1) % 6, (i + 1) % 6] for i in range(6)]
    print(f"Message passing output norms: {torch.norm(message_passing(x, ring), dim=1)}")


def demo_training(network: H2GNN):
    """Train on synthetic hierarchies and report the history."""
    print("\n" + "=" * 50)
    print("DEMO: Training")
    print("=" * 50)

    source = HierarchicalDataSource(num_examples=4, num_nodes=15, hierarchy_depth=3, dim=8, seed=0)
    validation = [create_hierarchical_dataset(15, hierarchy_depth=3, dim=8, seed=100)]

    history = network.train(source, TrainingConfig(validation_data=validation))

    for entry in history[::max(1, len(history) // 5)]:
        print(f"  epoch {entry.epoch:3d}: loss={entry.loss:.5f} "
              f"task={entry.task_loss:.5f} geometric={entry.geometric_loss:.5f} "
              f"val={entry.validation_loss:.5f}")


def demo_prediction(network: H2GNN):
    """Predict on an unseen graph and print the geometric insights."""
    print("\n" + "=" * 50)
    print("DEMO: Prediction and Geometric Insights")
    print("=" * 50)

    holdout = TrainingData(
        nodes=[[0.05] * 8, [0.2] * 8, [-0.2] * 8],
        edges=[(0, 1), (0, 2)],
    )
    result = network.predict(holdout)

    print(f"Predictions: {[round(p, 4) for p in result.predictions]}")
    print(f"Confidence: {[round(c, 4) for c in result.confidence]}")

    insights = result.geometric_insights
    print(f"Curvature: {insights.curvature}")
    print(f"Hierarchy depth: {insights.hierarchy_depth:.4f}")
    print(f"Clustering coefficient: {insights.clustering_coefficient:.4f}")
    print(f"Betti numbers: {insights.topological_features.betti_numbers}")


def demo_geometry_modes(network: H2GNN):
    """Switch between geometry modes."""
    print("\n" + "=" * 50)
    print("DEMO: Geometry Modes")
    print("=" * 50)

    for mode in ("euclidean", "adaptive", "hyperbolic"):
        network.set_geometry_mode(mode)
        print(f"  {mode}: curvature={network.current_curvature}")


def demo_export(network: H2GNN):
    """Export the model, reload it and compare predictions."""
    print("\n" + "=" * 50)
    print("DEMO: Export and Import")
    print("=" * 50)

    data = create_hierarchical_dataset(7, dim=8, seed=5)

    with tempfile.TemporaryDirectory() as temp_dir:
        path = Path(temp_dir) / "model.json"
        network.save(path)
        print(f"Saved model ({path.stat().st_size} bytes)")

        with open(path) as f:
            state = json.load(f)
        print(f"Exported keys: {sorted(state)}")

        restored = H2GNN().load(path)

    before = network.predict(data).predictions
    after = restored.predict(data).predictions
    print(f"Max prediction difference after reload: {max(abs(a - b) for a, b in zip(before, after)):.2e}")


def main():
    """Run all demonstrations."""
    print("H2GNN - Hyperbolic Geometric Graph Networks Demo")
    print("=" * 60)

    torch.manual_seed(42)

    config = H2GNNConfig(embedding_dim=8, num_layers=2, num_heads=2, max_epochs=20, batch_size=2, seed=42)
    network = H2GNN(config)

    demo_basic_operations()
    demo_layers()
    demo_training(network)
    demo_prediction(network)
    demo_geometry_modes(network)
    demo_export(network)

    print("\n" + "=" * 60)
    print("All demonstrations completed successfully!")
    print("=" * 60)


if __name__ == "__main__":
    main()
