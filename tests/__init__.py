"""
H2GNN Test Suite

This package contains the unit tests for all components of H2GNN. The tests
are organized by module:

- Geometry primitives and manifold operations
- Hyperbolic layers and their ball invariant
- Network training, prediction and export/import
- Configuration, exceptions, metrics and data sources
"""

import sys
import os
import tempfile
import shutil
from pathlib import Path
from typing import List, Optional, Tuple

import torch

# Add the parent directory to the path for importing h2gnn
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))


class TestFixtures:
    """Common test fixtures and utilities."""

    @staticmethod
    def create_temp_dir() -> Path:
        """Create a temporary directory for test files."""
        return Path(tempfile.mkdtemp())

    @staticmethod
    def cleanup_temp_dir(temp_dir: Path) -> None:
        """Clean up temporary directory."""
        if temp_dir.exists():
            shutil.rmtree(temp_dir)

    @staticmethod
    def random_points(n: int, dim: int, max_radius: float = 0.8, seed: int = 0) -> torch.Tensor:
        """Points sampled uniformly inside the ball of the given radius."""
        generator = torch.Generator().manual_seed(seed)
        direction = torch.randn(n, dim, generator=generator)
        direction = direction / direction.norm(dim=-1, keepdim=True)
        radius = max_radius * torch.rand(n, 1, generator=generator)
        return direction * radius

    @staticmethod
    def path_edges(n: int) -> List[Tuple[int, int]]:
        """Edges of the path graph 0 - 1 - ... - (n-1)."""
        return [(i, i + 1) for i in range(n - 1)]

    @staticmethod
    def small_graph(
        n: int = 3,
        dim: int = 8,
        labels: Optional[List[float]] = None,
        seed: int = 0
    ):
        """A small path graph with nodes well inside the ball."""
        from h2gnn.core.types import TrainingData

        points = TestFixtures.random_points(n, dim, max_radius=0.3, seed=seed)
        return TrainingData(
            nodes=[p.tolist() for p in points],
            edges=TestFixtures.path_edges(n),
            labels=labels,
        )
