"""
Hyperbolic activation and dropout.

Both act in the tangent space at the origin: map the points with the
logarithmic map, apply the Euclidean operation, map back and project.
"""

import logging

import torch
import torch.nn as nn
import torch.nn.functional as F

from ..config import LayerConfig
from ..core.base import HyperbolicModule
from ..exceptions import ConfigurationError


logger = logging.getLogger(__name__)


class HyperbolicReLU(HyperbolicModule):
    """
    Hyperbolic ReLU activation function.

    Clamps negative tangent coordinates to zero, so every output lies on the
    image of the non-negative orthant under the exponential map.
    """

    def hyperbolic_forward(self, x: torch.Tensor) -> torch.Tensor:
        """Apply ReLU in hyperbolic space."""
        y_tangent = F.relu(self.to_tangent(x))
        return self.project_to_manifold(self.from_tangent(y_tangent))


class HyperbolicDropout(HyperbolicModule):
    """
    Dropout adapted for hyperbolic space.

    In training mode a fraction ``p`` of the tangent coordinates is zeroed
    (and the rest rescaled by 1/(1-p)) before mapping back and projecting.
    In inference mode the layer is the identity.

    Args:
        p: Dropout probability in [0, 1)
        **kwargs: Additional arguments passed to HyperbolicModule
    """

    def __init__(self, p: float = 0.5, **kwargs):
        super().__init__(**kwargs)

        if not (0.0 <= p < 1.0):
            raise ConfigurationError(f"Dropout must be in [0, 1), got {p}")

        self.p = p
        self.dropout = nn.Dropout(p=p)

    @classmethod
    def from_config(cls, config: LayerConfig, **kwargs) -> "HyperbolicDropout":
        return cls(p=config.dropout, **kwargs)

    def hyperbolic_forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Apply dropout in hyperbolic space.

        Args:
            x: Input tensor in hyperbolic space

        Returns:
            Tensor with dropout applied in hyperbolic space
        """
        if not self.training or self.p == 0:
            return x

        y_tangent = self.dropout(self.to_tangent(x))
        return self.project_to_manifold(self.from_tangent(y_tangent))

    def extra_repr(self) -> str:
        return f'p={self.p}, curvature={self.c:.3f}'
