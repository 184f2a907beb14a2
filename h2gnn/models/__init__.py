"""
Network models: the trainable layer stack, its losses and the orchestrator.
"""

from .losses import (
    LossComponents,
    composite_loss,
    task_loss,
    boundary_loss,
    geodesic_loss,
    curvature_loss,
)
from .encoder import H2GNNModule
from .callbacks import TrainingHistoryCallback
from .network import H2GNN, create_h2gnn

__all__ = [
    "LossComponents",
    "composite_loss",
    "task_loss",
    "boundary_loss",
    "geodesic_loss",
    "curvature_loss",
    "H2GNNModule",
    "TrainingHistoryCallback",
    "H2GNN",
    "create_h2gnn",
]
