"""
Batch normalization adapted for hyperbolic space.
"""

import logging
from typing import Optional

import torch
import torch.nn as nn
import torch.nn.functional as F

from ..config import LayerConfig
from ..core.base import HyperbolicModule


logger = logging.getLogger(__name__)


class HyperbolicBatchNorm(HyperbolicModule):
    """
    Batch normalization in the tangent space at the origin.

    Statistics are estimated on the tangent vectors of the nodes in the
    batch. In training mode the batch statistics are used and folded into
    the running mean and variance; in inference mode (``eval()``), or when
    the batch holds a single node, the running statistics are used and left
    untouched.

    With ``momentum=None`` the running statistics are a cumulative average
    over every batch seen.

    Args:
        num_features: Embedding dimension
        eps: Small constant for numerical stability
        momentum: Update rate of the running statistics, or None for a
            cumulative average
        weight_init: Initial tangent-space scale
        **kwargs: Additional arguments passed to HyperbolicModule
    """

    def __init__(
        self,
        num_features: int,
        eps: float = 1e-5,
        momentum: Optional[float] = None,
        weight_init: float = 1.0,
        **kwargs
    ):
        super().__init__(**kwargs)

        self.num_features = num_features
        self.eps = eps
        self.momentum = momentum

        self.weight = nn.Parameter(torch.full((num_features,), weight_init))
        self.bias = nn.Parameter(torch.zeros(num_features))

        self.register_buffer('running_mean', torch.zeros(num_features))
        self.register_buffer('running_var', torch.ones(num_features))
        self.register_buffer('num_batches_tracked', torch.tensor(0, dtype=torch.long))

    @classmethod
    def from_config(cls, config: LayerConfig, **kwargs) -> "HyperbolicBatchNorm":
        return cls(config.output_dim, **kwargs)

    def reset_running_stats(self) -> None:
        self.running_mean.zero_()
        self.running_var.fill_(1.0)
        self.num_batches_tracked.zero_()

    def hyperbolic_forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Normalize a batch of points.

        Args:
            x: Points in hyperbolic space, shape (n, num_features)

        Returns:
            Normalized points in hyperbolic space
        """
        x_tangent = self.to_tangent(x)

        use_batch_stats = self.training and x_tangent.size(0) > 1
        momentum = self.momentum
        if use_batch_stats:
            self.num_batches_tracked.add_(1)
            if momentum is None:
                momentum = 1.0 / float(self.num_batches_tracked)

        y_tangent = F.batch_norm(
            x_tangent,
            self.running_mean,
            self.running_var,
            self.weight,
            self.bias,
            training=use_batch_stats,
            momentum=momentum if momentum is not None else 0.0,
            eps=self.eps,
        )

        return self.project_to_manifold(self.from_tangent(y_tangent))

    def extra_repr(self) -> str:
        return (f'num_features={self.num_features}, eps={self.eps}, '
                f'momentum={self.momentum}, curvature={self.c:.3f}')
