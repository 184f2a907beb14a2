"""
Hyperbolic manifold implementations.

The manifold objects bundle a curvature value with the geometric operations of
``math_ops`` so that layers can carry "their" geometry around without passing
``c`` to every call.
"""

import math
from abc import ABC, abstractmethod

import torch

from . import math_ops
from ..exceptions import ConfigurationError


class HyperbolicManifold(ABC):
    """
    Abstract base class for hyperbolic manifolds.

    Defines the interface that the layers rely on: projection, distance,
    exponential/logarithmic maps and parallel transport.
    """

    def __init__(self, curvature: float = 1.0):
        """
        Initialize the hyperbolic manifold.

        Args:
            curvature: Curvature magnitude c > 0 (the space has curvature -c)
        """
        if curvature <= 0:
            raise ConfigurationError(f"Manifold curvature magnitude must be positive, got {curvature}")
        self.c = float(curvature)

    @abstractmethod
    def project(self, x: torch.Tensor) -> torch.Tensor:
        """Project points onto the manifold."""
        pass

    @abstractmethod
    def distance(self, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        """Compute distance between points on the manifold."""
        pass

    @abstractmethod
    def exponential_map(self, v: torch.Tensor, x: torch.Tensor) -> torch.Tensor:
        """Exponential map from tangent space to manifold."""
        pass

    @abstractmethod
    def logarithmic_map(self, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        """Logarithmic map from manifold to tangent space."""
        pass

    @abstractmethod
    def parallel_transport(self, v: torch.Tensor, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        """Parallel transport of vector v from x to y."""
        pass


class PoincareManifold(HyperbolicManifold):
    """
    Poincaré ball model of hyperbolic space.

    Points are constrained to have norm < 1/√c. Every operation delegates to
    :mod:`h2gnn.core.math_ops` with this manifold's curvature.

    Example:
        >>> manifold = PoincareManifold(curvature=1.0)
        >>> x = manifold.project(torch.randn(10, 5))
        >>> distances = manifold.distance(x[0:1], x[1:])
    """

    def __init__(self, curvature: float = 1.0):
        super().__init__(curvature)
        self.radius = 1.0 / math.sqrt(self.c)

    def project(self, x: torch.Tensor) -> torch.Tensor:
        return math_ops.project(x, c=self.c)

    def check(self, x: torch.Tensor, name: str = "input") -> None:
        """Raise GeometryViolation unless all points are strictly inside the ball."""
        math_ops.check_in_ball(x, c=self.c, name=name)

    def distance(self, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        return math_ops.hyperbolic_distance(x, y, c=self.c)

    def pairwise_distances(self, x: torch.Tensor) -> torch.Tensor:
        return math_ops.pairwise_distances(x, c=self.c)

    def mobius_add(self, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        return math_ops.mobius_add(x, y, c=self.c)

    def expmap0(self, u: torch.Tensor) -> torch.Tensor:
        return math_ops.expmap0(u, c=self.c)

    def logmap0(self, y: torch.Tensor) -> torch.Tensor:
        return math_ops.logmap0(y, c=self.c)

    def exponential_map(self, v: torch.Tensor, x: torch.Tensor) -> torch.Tensor:
        return math_ops.exponential_map(v, x, c=self.c)

    def logarithmic_map(self, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        return math_ops.logarithmic_map(x, y, c=self.c)

    def parallel_transport(self, v: torch.Tensor, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        return math_ops.parallel_transport(v, x, y, c=self.c)

    def tangent_mean(self, points: torch.Tensor, weights: torch.Tensor = None) -> torch.Tensor:
        return math_ops.tangent_mean(points, weights, c=self.c)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(c={self.c})"
