"""
Base classes for hyperbolic neural network modules.

This module provides the base class that all hyperbolic layers inherit from.
It owns the manifold, enforces the ball invariant on inputs and guards
outputs against NaN/∞ so that no layer silently propagates a broken value.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import torch
import torch.nn as nn

from .manifolds import PoincareManifold
from ..exceptions import NumericalInstability


logger = logging.getLogger(__name__)


class HyperbolicModule(nn.Module, ABC):
    """
    Base class for all hyperbolic layers.

    Subclasses implement :meth:`hyperbolic_forward`; calling the module runs
    the geometry checks around it:

    - an input point with norm >= 1/√c raises ``GeometryViolation``
    - a NaN or infinite output raises ``NumericalInstability``

    Args:
        manifold: The hyperbolic manifold to operate on. Defaults to Poincaré ball.
        curvature: Curvature magnitude c of the ball (the space has curvature -c).

    Example:
        >>> class MyHyperbolicLayer(HyperbolicModule):
        ...     def __init__(self, in_features, out_features, **kwargs):
        ...         super().__init__(**kwargs)
        ...         self.linear = nn.Linear(in_features, out_features)
        ...
        ...     def hyperbolic_forward(self, x):
        ...         return self.manifold.expmap0(self.linear(self.manifold.logmap0(x)))
    """

    def __init__(self, manifold: Optional[PoincareManifold] = None, curvature: float = 1.0):
        super().__init__()
        self.manifold = manifold or PoincareManifold(curvature=curvature)

    @property
    def c(self) -> float:
        return self.manifold.c

    def project_to_manifold(self, x: torch.Tensor) -> torch.Tensor:
        """
        Project tensor to the hyperbolic manifold.

        Args:
            x: Input tensor to project

        Returns:
            Tensor projected onto the hyperbolic manifold
        """
        return self.manifold.project(x)

    def distance(self, x: torch.Tensor, y: torch.Tensor) -> torch.Tensor:
        """Compute hyperbolic distance between two points."""
        return self.manifold.distance(x, y)

    def to_tangent(self, x: torch.Tensor) -> torch.Tensor:
        """Map points to the tangent space at the origin."""
        return self.manifold.logmap0(x)

    def from_tangent(self, u: torch.Tensor) -> torch.Tensor:
        """Map tangent vectors at the origin back into the ball."""
        return self.manifold.expmap0(u)

    @abstractmethod
    def hyperbolic_forward(self, x: torch.Tensor, *args, **kwargs):
        """
        Abstract method for hyperbolic forward pass.

        Args:
            x: Input tensor in hyperbolic space, shape (n, dim)
            *args, **kwargs: Additional arguments specific to the layer

        Returns:
            Output tensor in hyperbolic space
        """
        pass

    def forward(self, x: torch.Tensor, *args, **kwargs):
        """
        Forward pass that enforces the ball invariant around hyperbolic_forward.

        Args:
            x: Input tensor of points strictly inside the ball
            *args, **kwargs: Additional arguments

        Returns:
            Output of hyperbolic_forward
        """
        if not bool(torch.isfinite(x).all()):
            raise NumericalInstability(
                f"{self.__class__.__name__} received non-finite input",
                {"nan": int(torch.isnan(x).sum()), "inf": int(torch.isinf(x).sum())}
            )
        self.manifold.check(x, name=f"{self.__class__.__name__} input")

        output = self.hyperbolic_forward(x, *args, **kwargs)

        points = output[0] if isinstance(output, tuple) else output
        if not bool(torch.isfinite(points).all()):
            raise NumericalInstability(
                f"{self.__class__.__name__} produced non-finite values",
                {"nan": int(torch.isnan(points).sum()), "inf": int(torch.isinf(points).sum())}
            )
        return output
