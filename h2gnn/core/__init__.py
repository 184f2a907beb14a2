"""
Core components for H2GNN.

This module contains the fundamental building blocks including:
- Geometry primitives in the Poincaré ball
- The manifold wrapper and the base class for hyperbolic layers
- The data model exchanged with callers
"""

from .base import HyperbolicModule
from .manifolds import PoincareManifold, HyperbolicManifold
from .math_ops import (
    norm,
    mobius_add,
    mobius_scalar_mul,
    hyperbolic_distance,
    distance,
    project,
    random_hyperbolic_point,
    expmap0,
    logmap0,
    exponential_map,
    logarithmic_map,
    parallel_transport,
    tangent_mean,
    pairwise_distances,
    triangle_excess,
)
from .types import (
    Vector,
    TrainingData,
    GraphTensors,
    TrainingHistoryEntry,
    GeometricInsights,
    TopologicalFeatures,
    PredictionResult,
)

__all__ = [
    "HyperbolicModule",
    "PoincareManifold",
    "HyperbolicManifold",
    "norm",
    "mobius_add",
    "mobius_scalar_mul",
    "hyperbolic_distance",
    "distance",
    "project",
    "random_hyperbolic_point",
    "expmap0",
    "logmap0",
    "exponential_map",
    "logarithmic_map",
    "parallel_transport",
    "tangent_mean",
    "pairwise_distances",
    "triangle_excess",
    "Vector",
    "TrainingData",
    "GraphTensors",
    "TrainingHistoryEntry",
    "GeometricInsights",
    "TopologicalFeatures",
    "PredictionResult",
]
