"""
Hyperbolic multi-head attention.

Attention scores are computed either from hyperbolic distances between query
and key points or from dot products of their tangent vectors; values are
aggregated with a weighted tangent-space mean (an approximate Fréchet mean).
"""

import logging
import math
from typing import Optional, Tuple, Union

import torch
import torch.nn.functional as F

from ..config import LayerConfig
from ..core.base import HyperbolicModule
from ..core.math_ops import hyperbolic_distance
from ..exceptions import ConfigurationError
from .linear import HyperbolicLinear


logger = logging.getLogger(__name__)


class HyperbolicAttention(HyperbolicModule):
    """
    Hyperbolic multi-head attention over a set of points.

    Every point attends to every other point (global attention). Query, key
    and value projections are hyperbolic linear layers; the coordinates of
    each projected point are split into ``num_heads`` sub-vectors, which are
    themselves points of a lower-dimensional ball.

    Args:
        embed_dim: Embedding dimension
        num_heads: Number of attention heads
        dropout: Dropout probability applied to the attention weights
        bias: Whether to use bias in the projections
        use_hyperbolic_distance: Score with -d(q, k) (True) or with the
            tangent-space dot product (False)
        temperature: Temperature for attention softmax
        **kwargs: Additional arguments passed to HyperbolicModule

    Example:
        >>> attention = HyperbolicAttention(8, num_heads=2)
        >>> x = attention.project_to_manifold(torch.randn(5, 8) * 0.1)
        >>> y = attention(x)  # Shape: (5, 8)
    """

    def __init__(
        self,
        embed_dim: int,
        num_heads: int = 1,
        dropout: float = 0.0,
        bias: bool = True,
        use_hyperbolic_distance: bool = True,
        temperature: float = 1.0,
        **kwargs
    ):
        super().__init__(**kwargs)

        if embed_dim % num_heads != 0:
            raise ConfigurationError(
                "embed_dim must be divisible by num_heads",
                {"embed_dim": embed_dim, "num_heads": num_heads}
            )
        if temperature <= 0:
            raise ConfigurationError(f"Temperature must be positive, got {temperature}")

        self.embed_dim = embed_dim
        self.num_heads = num_heads
        self.head_dim = embed_dim // num_heads
        self.dropout_prob = dropout
        self.use_hyperbolic_distance = use_hyperbolic_distance
        self.temperature = temperature
        self.scale = 1.0 / math.sqrt(self.head_dim)

        self.q_proj = HyperbolicLinear(embed_dim, embed_dim, bias=bias, manifold=self.manifold)
        self.k_proj = HyperbolicLinear(embed_dim, embed_dim, bias=bias, manifold=self.manifold)
        self.v_proj = HyperbolicLinear(embed_dim, embed_dim, bias=bias, manifold=self.manifold)
        self.out_proj = HyperbolicLinear(embed_dim, embed_dim, bias=bias, manifold=self.manifold)

        logger.debug(f"Initialized HyperbolicAttention(embed_dim={embed_dim}, "
                     f"num_heads={num_heads}, use_hyperbolic_distance={use_hyperbolic_distance})")

    @classmethod
    def from_config(cls, config: LayerConfig, **kwargs) -> "HyperbolicAttention":
        if config.input_dim != config.output_dim:
            raise ConfigurationError(
                "Attention output dimension must equal its input dimension",
                {"input_dim": config.input_dim, "output_dim": config.output_dim}
            )
        return cls(config.input_dim, num_heads=config.num_heads, dropout=config.dropout, **kwargs)

    def _split_heads(self, x: torch.Tensor) -> torch.Tensor:
        # (n, embed_dim) -> (num_heads, n, head_dim)
        n = x.size(0)
        return x.reshape(n, self.num_heads, self.head_dim).transpose(0, 1)

    def _compute_hyperbolic_scores(self, q: torch.Tensor, k: torch.Tensor) -> torch.Tensor:
        """Attention scores from negative hyperbolic distances, shape (heads, n, n)."""
        distances = hyperbolic_distance(q.unsqueeze(-2), k.unsqueeze(-3), c=self.c)
        return -distances * self.scale

    def _compute_tangent_scores(self, q: torch.Tensor, k: torch.Tensor) -> torch.Tensor:
        """Scaled dot-product scores in the tangent space at the origin."""
        q_tangent = self.to_tangent(q)
        k_tangent = self.to_tangent(k)
        return torch.matmul(q_tangent, k_tangent.transpose(-2, -1)) * self.scale

    def hyperbolic_forward(
        self,
        x: torch.Tensor,
        attention_mask: Optional[torch.Tensor] = None,
        return_attention_weights: bool = False
    ) -> Union[torch.Tensor, Tuple[torch.Tensor, torch.Tensor]]:
        """
        Forward pass for hyperbolic attention.

        Args:
            x: Input points, shape (n, embed_dim)
            attention_mask: Optional boolean (n, n) mask, True where attention is allowed.
                Every row must allow at least one key.
            return_attention_weights: Whether to return attention weights

        Returns:
            Output points of shape (n, embed_dim), optionally with attention
            weights of shape (num_heads, n, n)
        """
        n = x.size(0)

        q = self._split_heads(self.q_proj(x))
        k = self._split_heads(self.k_proj(x))
        v = self._split_heads(self.v_proj(x))

        if self.use_hyperbolic_distance:
            attn_scores = self._compute_hyperbolic_scores(q, k)
        else:
            attn_scores = self._compute_tangent_scores(q, k)

        if attention_mask is not None:
            attn_scores = attn_scores.masked_fill(~attention_mask.bool(), float('-inf'))

        attn_weights = F.softmax(attn_scores / self.temperature, dim=-1)

        if self.dropout_prob > 0:
            attn_weights = F.dropout(attn_weights, p=self.dropout_prob, training=self.training)

        # Weighted tangent-space mean per head, heads concatenated before mapping back
        v_tangent = self.to_tangent(v)
        out_tangent = torch.matmul(attn_weights, v_tangent)
        out_tangent = out_tangent.transpose(0, 1).reshape(n, self.embed_dim)
        attn_output = self.project_to_manifold(self.from_tangent(out_tangent))

        output = self.out_proj(attn_output)

        if return_attention_weights:
            return output, attn_weights
        return output

    def extra_repr(self) -> str:
        return (f'embed_dim={self.embed_dim}, num_heads={self.num_heads}, '
                f'use_hyperbolic_distance={self.use_hyperbolic_distance}, '
                f'temperature={self.temperature}, curvature={self.c:.3f}')
