"""
Hyperbolic layers.

Every layer maps an (n, dim) tensor of points inside the Poincaré ball to
another such tensor and is built on the geometry primitives in ``h2gnn.core``.
"""

from .linear import HyperbolicLinear
from .activation import HyperbolicReLU, HyperbolicDropout
from .normalization import HyperbolicBatchNorm
from .attention import HyperbolicAttention
from .message_passing import HyperbolicMessagePassing, adjacency_mask

__all__ = [
    "HyperbolicLinear",
    "HyperbolicReLU",
    "HyperbolicDropout",
    "HyperbolicBatchNorm",
    "HyperbolicAttention",
    "HyperbolicMessagePassing",
    "adjacency_mask",
]
