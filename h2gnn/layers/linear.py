"""
Hyperbolic linear (fully connected) layer.

The transform is applied in the tangent space at the origin, so that the
learned weights are ordinary Euclidean matrices while inputs and outputs stay
inside the Poincaré ball.
"""

import logging
import math

import torch
import torch.nn as nn

from ..config import LayerConfig
from ..core.base import HyperbolicModule


logger = logging.getLogger(__name__)


class HyperbolicLinear(HyperbolicModule):
    """
    Hyperbolic linear (fully connected) layer.

    This layer performs a linear transformation in hyperbolic space by:
    1. Mapping input from hyperbolic space to tangent space at origin
    2. Applying standard linear transformation in tangent space
    3. Mapping result back to hyperbolic space via exponential map

    The result is projected, so the output always lies inside the ball.

    Args:
        in_features: Size of input features
        out_features: Size of output features
        bias: Whether to use bias term (default: True)
        dropout: Dropout probability applied to the tangent input (default: 0.0)
        use_bias_in_tangent: Add the bias in tangent space (True) or as a
            Möbius translation in the ball (False)
        **kwargs: Additional arguments passed to HyperbolicModule

    Example:
        >>> layer = HyperbolicLinear(16, 8)
        >>> x = layer.project_to_manifold(torch.randn(32, 16) * 0.1)
        >>> y = layer(x)  # Shape: (32, 8)
    """

    def __init__(
        self,
        in_features: int,
        out_features: int,
        bias: bool = True,
        dropout: float = 0.0,
        use_bias_in_tangent: bool = True,
        **kwargs
    ):
        super().__init__(**kwargs)

        self.in_features = in_features
        self.out_features = out_features
        self.use_bias = bias
        self.dropout = dropout
        self.use_bias_in_tangent = use_bias_in_tangent

        self.linear = nn.Linear(in_features, out_features, bias=bias and use_bias_in_tangent)

        # Möbius bias, stored as a tangent vector at the origin
        if bias and not use_bias_in_tangent:
            self.hyperbolic_bias = nn.Parameter(torch.zeros(out_features))
        else:
            self.register_parameter('hyperbolic_bias', None)

        self.dropout_layer = nn.Dropout(dropout) if dropout > 0 else None

        self._init_parameters()

        logger.debug(f"Initialized HyperbolicLinear({in_features} -> {out_features}, "
                     f"bias={bias}, dropout={dropout})")

    @classmethod
    def from_config(cls, config: LayerConfig, **kwargs) -> "HyperbolicLinear":
        return cls(config.input_dim, config.output_dim, dropout=config.dropout, **kwargs)

    def _init_parameters(self):
        """Initialize parameters appropriately for hyperbolic space."""
        with torch.no_grad():
            # Xavier/Glorot initialization scaled down for hyperbolic space
            std = math.sqrt(2.0 / (self.in_features + self.out_features)) * 0.5
            nn.init.normal_(self.linear.weight, mean=0.0, std=std)

            if self.linear.bias is not None:
                nn.init.normal_(self.linear.bias, mean=0.0, std=std * 0.1)

            if self.hyperbolic_bias is not None:
                nn.init.normal_(self.hyperbolic_bias, mean=0.0, std=0.01)

    def hyperbolic_forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Forward pass in hyperbolic space.

        Args:
            x: Input tensor in hyperbolic space, shape (..., in_features)

        Returns:
            Output tensor in hyperbolic space, shape (..., out_features)
        """
        x_tangent = self.to_tangent(x)

        if self.dropout_layer is not None:
            x_tangent = self.dropout_layer(x_tangent)

        output = self.from_tangent(self.linear(x_tangent))

        if self.hyperbolic_bias is not None:
            bias = self.from_tangent(self.hyperbolic_bias).expand_as(output)
            output = self.manifold.mobius_add(output, bias)

        return self.project_to_manifold(output)

    def extra_repr(self) -> str:
        return (f'in_features={self.in_features}, out_features={self.out_features}, '
                f'bias={self.use_bias}, dropout={self.dropout}, curvature={self.c:.3f}')
