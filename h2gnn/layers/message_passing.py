"""
Hyperbolic message passing over a graph.
"""

import logging
from typing import Sequence, Union

import torch

from ..config import LayerConfig
from ..core.base import HyperbolicModule
from ..core.math_ops import MIN_NORM, pairwise_distances
from ..exceptions import ConfigurationError, InvalidInputError, NodeIndexError
from .linear import HyperbolicLinear


logger = logging.getLogger(__name__)


AGGREGATIONS = ('distance', 'mean')


def adjacency_mask(adjacency: Union[torch.Tensor, Sequence[Sequence[int]]], num_nodes: int) -> torch.Tensor:
    """
    Dense symmetric boolean neighbour mask from a mask or an adjacency list.

    Self-loops are dropped.
    """
    if isinstance(adjacency, torch.Tensor):
        if adjacency.shape != (num_nodes, num_nodes):
            raise InvalidInputError(
                "Adjacency mask must be square over the nodes",
                {"shape": tuple(adjacency.shape), "num_nodes": num_nodes}
            )
        mask = adjacency.bool()
    else:
        if len(adjacency) != num_nodes:
            raise InvalidInputError(
                "Adjacency list must have one entry per node",
                {"entries": len(adjacency), "num_nodes": num_nodes}
            )
        mask = torch.zeros(num_nodes, num_nodes, dtype=torch.bool)
        for i, neighbours in enumerate(adjacency):
            for j in neighbours:
                if not 0 <= j < num_nodes:
                    raise NodeIndexError(j, num_nodes)
                mask[i, j] = True
    mask = mask | mask.transpose(0, 1)
    return mask & ~torch.eye(num_nodes, dtype=torch.bool, device=mask.device)


class HyperbolicMessagePassing(HyperbolicModule):
    """
    Single round of message passing in hyperbolic space.

    For every node the features of its neighbours are averaged in the tangent
    space at the origin, mapped back into the ball and combined with the
    node's own feature by Möbius addition. The result goes through a
    :class:`HyperbolicLinear` transform. A node without neighbours receives
    the origin as its message and so keeps its own feature before the
    transform.

    Args:
        in_features: Input feature dimension
        out_features: Output feature dimension
        aggregation: 'distance' weights neighbours by exp(-d(x_i, x_j));
            'mean' weights them uniformly
        dropout: Dropout probability of the linear transform
        bias: Whether the linear transform uses a bias
        **kwargs: Additional arguments passed to HyperbolicModule
    """

    def __init__(
        self,
        in_features: int,
        out_features: int,
        aggregation: str = 'distance',
        dropout: float = 0.0,
        bias: bool = True,
        **kwargs
    ):
        super().__init__(**kwargs)

        if aggregation not in AGGREGATIONS:
            raise ConfigurationError(
                f"Unsupported aggregation: {aggregation}",
                {"supported": list(AGGREGATIONS)}
            )

        self.in_features = in_features
        self.out_features = out_features
        self.aggregation = aggregation

        self.linear = HyperbolicLinear(
            in_features, out_features, bias=bias, dropout=dropout, manifold=self.manifold
        )

    @classmethod
    def from_config(cls, config: LayerConfig, **kwargs) -> "HyperbolicMessagePassing":
        return cls(config.input_dim, config.output_dim, dropout=config.dropout, **kwargs)

    def aggregate(self, x: torch.Tensor, mask: torch.Tensor) -> torch.Tensor:
        """Weighted tangent-space mean of each node's neighbours, mapped into the ball."""
        weights = mask.to(x.dtype)
        if self.aggregation == 'distance':
            weights = weights * torch.exp(-pairwise_distances(x, c=self.c))

        degree = weights.sum(dim=-1, keepdim=True)
        messages = torch.matmul(weights, self.to_tangent(x)) / torch.clamp_min(degree, MIN_NORM)
        return self.from_tangent(messages)

    def hyperbolic_forward(
        self,
        x: torch.Tensor,
        adjacency: Union[torch.Tensor, Sequence[Sequence[int]]]
    ) -> torch.Tensor:
        """
        Args:
            x: Node features in hyperbolic space, shape (n, in_features)
            adjacency: Boolean (n, n) neighbour mask or adjacency list

        Returns:
            Updated node features, shape (n, out_features)
        """
        mask = adjacency_mask(adjacency, x.size(0)).to(x.device)

        messages = self.aggregate(x, mask)
        combined = self.manifold.mobius_add(x, messages)

        return self.linear(self.project_to_manifold(combined))

    def extra_repr(self) -> str:
        return (f'in_features={self.in_features}, out_features={self.out_features}, '
                f'aggregation={self.aggregation}, curvature={self.c:.3f}')
