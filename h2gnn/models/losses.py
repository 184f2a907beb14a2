"""
Loss terms for training hyperbolic graph embeddings.

The composite objective is ``task + geometric_weight * geometric`` where the
geometric part is the sum of three constraints:

- boundary: penalizes embeddings whose norm exceeds ``BOUNDARY_THRESHOLD``
- geodesic: gap between hyperbolic and Euclidean length of every edge
- curvature: gap between the angle excess of embedded triangles and the excess
  the same side lengths would have at the model curvature
"""

from dataclasses import dataclass
from typing import Dict, Optional, Union

import torch

from ..core.math_ops import (
    hyperbolic_distance,
    norm,
    pairwise_distances,
    triangle_excess_from_sides,
)


BOUNDARY_THRESHOLD = 0.99
MAX_TRIANGLES = 1024


@dataclass
class LossComponents:
    """Scalar loss tensors of one example or one batch."""
    total: torch.Tensor
    task: torch.Tensor
    geometric: torch.Tensor
    boundary: torch.Tensor
    geodesic: torch.Tensor
    curvature: torch.Tensor

    def as_floats(self) -> Dict[str, float]:
        return {
            "loss": float(self.total.detach()),
            "task_loss": float(self.task.detach()),
            "geometric_loss": float(self.geometric.detach()),
            "boundary_loss": float(self.boundary.detach()),
            "geodesic_loss": float(self.geodesic.detach()),
            "curvature_loss": float(self.curvature.detach()),
        }


def task_loss(embeddings: torch.Tensor, labels: Optional[torch.Tensor]) -> torch.Tensor:
    """Mean squared error between embedding norms and labels (0 without labels)."""
    if labels is None:
        return embeddings.new_zeros(())
    return torch.mean((norm(embeddings) - labels) ** 2)


def boundary_loss(embeddings: torch.Tensor, threshold: float = BOUNDARY_THRESHOLD) -> torch.Tensor:
    """Sum over embeddings of max(0, ||x|| - threshold)."""
    return torch.relu(norm(embeddings) - threshold).sum()


def geodesic_loss(embeddings: torch.Tensor, edge_index: torch.Tensor) -> torch.Tensor:
    """Mean over edges of |d_H(u, v) - ||u - v|||; 0 for a graph without edges."""
    if edge_index.numel() == 0:
        return embeddings.new_zeros(())
    u = embeddings[edge_index[:, 0]]
    v = embeddings[edge_index[:, 1]]
    return torch.mean(torch.abs(hyperbolic_distance(u, v) - norm(u - v)))


def _triangles(num_nodes: int, max_triangles: int) -> torch.Tensor:
    triangles = torch.combinations(torch.arange(num_nodes), r=3)
    if triangles.size(0) > max_triangles:
        # Evenly spaced subset keeps the estimate deterministic
        keep = torch.linspace(0, triangles.size(0) - 1, max_triangles).long()
        triangles = triangles[keep]
    return triangles


def curvature_loss(
    embeddings: torch.Tensor,
    curvature: Union[float, torch.Tensor],
    max_triangles: int = MAX_TRIANGLES
) -> torch.Tensor:
    """
    Mean over node triangles of |excess in the ball - excess at ``curvature``|.

    Embeddings live in the unit ball, so their geodesic triangles have the
    angle excess of curvature -1. The comparison triangle with the same side
    lengths at the model curvature has the excess the model expects; the loss
    is zero when the two agree. Computed in float64.
    """
    n = embeddings.size(0)
    if n < 3:
        return embeddings.new_zeros(())

    triangles = _triangles(n, max_triangles).to(embeddings.device)
    distances = pairwise_distances(embeddings.double())
    i, j, k = triangles[:, 0], triangles[:, 1], triangles[:, 2]
    d_ij, d_jk, d_ki = distances[i, j], distances[j, k], distances[k, i]

    observed = triangle_excess_from_sides(d_ij, d_jk, d_ki, -1.0)
    if isinstance(curvature, torch.Tensor):
        curvature = curvature.double()
    expected = triangle_excess_from_sides(d_ij, d_jk, d_ki, curvature)

    return torch.mean(torch.abs(observed - expected)).to(embeddings.dtype)


def composite_loss(
    embeddings: torch.Tensor,
    edge_index: torch.Tensor,
    labels: Optional[torch.Tensor],
    curvature: Union[float, torch.Tensor],
    geometric_weight: float = 0.1
) -> LossComponents:
    """
    Task loss plus weighted geometric loss for one graph.

    Args:
        embeddings: Output embeddings, shape (n, dim)
        edge_index: Unique undirected edges, shape (E, 2)
        labels: Optional node labels, shape (n,)
        curvature: Model curvature K <= 0
        geometric_weight: Weight of the geometric part

    Returns:
        The total and every component as scalar tensors
    """
    task = task_loss(embeddings, labels)
    boundary = boundary_loss(embeddings)
    geodesic = geodesic_loss(embeddings, edge_index)
    curv = curvature_loss(embeddings, curvature)
    geometric = boundary + geodesic + curv

    return LossComponents(
        total=task + geometric_weight * geometric,
        task=task,
        geometric=geometric,
        boundary=boundary,
        geodesic=geodesic,
        curvature=curv,
    )


def mean_components(components) -> LossComponents:
    """Average a non-empty sequence of LossComponents."""
    count = len(components)
    return LossComponents(**{
        name: sum(getattr(c, name) for c in components) / count
        for name in ("total", "task", "geometric", "boundary", "geodesic", "curvature")
    })


def label_accuracy(embeddings: torch.Tensor, labels: Optional[torch.Tensor]) -> Optional[float]:
    """Fraction of nodes with round(||x||) == round(label), None without labels."""
    if labels is None or labels.numel() == 0:
        return None
    with torch.no_grad():
        hits = torch.round(norm(embeddings)) == torch.round(labels)
    return float(hits.float().mean())

