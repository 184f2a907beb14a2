"""
H2GNN: Hyperbolic Geometric Graph Neural Networks

This package embeds hierarchical and graph-structured data in the Poincaré
ball. It provides the hyperbolic geometry primitives, manifold-aware layers
(linear, attention, batch norm, dropout, message passing) and a network that
trains embeddings with PyTorch Lightning on a composite loss mixing a task
objective with boundary, geodesic and curvature constraints.
"""

from .config import (
    GeometryMode,
    LayerConfig,
    H2GNNConfig,
    TrainingConfig,
    LoggingConfig,
    get_default_config,
    load_config,
)
from .exceptions import (
    H2GNNError,
    ConfigurationError,
    InvalidInputError,
    EmptyDataError,
    LabelMismatchError,
    NodeIndexError,
    GeometryViolation,
    DomainError,
    NumericalInstability,
    UntrainedModelError,
    TrainingError,
)
from .core import (
    HyperbolicModule,
    PoincareManifold,
    Vector,
    TrainingData,
    TrainingHistoryEntry,
    GeometricInsights,
    TopologicalFeatures,
    PredictionResult,
    norm,
    mobius_add,
    hyperbolic_distance,
    distance,
    project,
    random_hyperbolic_point,
)
from .layers import (
    HyperbolicLinear,
    HyperbolicAttention,
    HyperbolicBatchNorm,
    HyperbolicDropout,
    HyperbolicReLU,
    HyperbolicMessagePassing,
)
from .models import H2GNN, H2GNNModule, create_h2gnn
from .utils import (
    HyperbolicMetrics,
    DataSource,
    HierarchicalDataSource,
    create_hierarchical_dataset,
)

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "GeometryMode",
    "LayerConfig",
    "H2GNNConfig",
    "TrainingConfig",
    "LoggingConfig",
    "get_default_config",
    "load_config",

    # Errors
    "H2GNNError",
    "ConfigurationError",
    "InvalidInputError",
    "EmptyDataError",
    "LabelMismatchError",
    "NodeIndexError",
    "GeometryViolation",
    "DomainError",
    "NumericalInstability",
    "UntrainedModelError",
    "TrainingError",

    # Geometry and data model
    "HyperbolicModule",
    "PoincareManifold",
    "Vector",
    "TrainingData",
    "TrainingHistoryEntry",
    "GeometricInsights",
    "TopologicalFeatures",
    "PredictionResult",
    "norm",
    "mobius_add",
    "hyperbolic_distance",
    "distance",
    "project",
    "random_hyperbolic_point",

    # Layers
    "HyperbolicLinear",
    "HyperbolicAttention",
    "HyperbolicBatchNorm",
    "HyperbolicDropout",
    "HyperbolicReLU",
    "HyperbolicMessagePassing",

    # Models
    "H2GNN",
    "H2GNNModule",
    "create_h2gnn",

    # Utilities
    "HyperbolicMetrics",
    "DataSource",
    "HierarchicalDataSource",
    "create_hierarchical_dataset",
]
