"""
Data sources for training.

A ``DataSource`` is anything that can supply a list of ``TrainingData``;
``H2GNN.train`` accepts one directly. The synthetic hierarchical dataset
places tree nodes at radii that grow with depth, which is the structure
hyperbolic embeddings are meant to capture.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

import torch

from ..core.math_ops import random_hyperbolic_point
from ..core.types import TrainingData, Vector
from ..exceptions import InvalidInputError


logger = logging.getLogger(__name__)


BASE_RADIUS = 0.1
RADIUS_PER_LEVEL = 0.2
MAX_RADIUS = 0.95


def level_radius(level: int) -> float:
    """Sampling radius of a tree node at the given depth."""
    return min(BASE_RADIUS + RADIUS_PER_LEVEL * level, MAX_RADIUS)


class DataSource(ABC):
    """Something that can supply training data."""

    @abstractmethod
    def get_training_data(self) -> List[TrainingData]:
        """Return the examples to train on."""
        pass


class StaticDataSource(DataSource):
    """Data source over a fixed list of examples."""

    def __init__(self, examples: Sequence[TrainingData]):
        self.examples = list(examples)

    def get_training_data(self) -> List[TrainingData]:
        return list(self.examples)


def create_hierarchical_dataset(
    num_nodes: int,
    hierarchy_depth: int = 3,
    dim: int = 8,
    seed: Optional[int] = None
) -> TrainingData:
    """
    Build a binary tree embedded in the Poincaré ball.

    Node ``i`` has parent ``(i - 1) // 2``. Its depth is capped at
    ``hierarchy_depth``, so nodes beyond a full tree of that depth attach at
    the deepest level. A node at depth ℓ is sampled uniformly from the ball of
    radius ``min(0.1 + 0.2ℓ, 0.95)``, and its label is its depth divided by
    the deepest depth present.

    Args:
        num_nodes: Number of tree nodes
        hierarchy_depth: Maximum depth of the tree
        dim: Dimension of the node vectors
        seed: Optional seed for reproducible sampling

    Returns:
        TrainingData with parent-child edges and normalised depth labels
    """
    if num_nodes <= 0:
        raise InvalidInputError(f"Number of nodes must be positive, got {num_nodes}")
    if hierarchy_depth < 1:
        raise InvalidInputError(f"Hierarchy depth must be at least 1, got {hierarchy_depth}")

    generator = torch.Generator()
    if seed is not None:
        generator.manual_seed(seed)
    else:
        generator.seed()

    depths = [0]
    edges = []
    for i in range(1, num_nodes):
        parent = (i - 1) // 2
        # Past the deepest level, attach to an ancestor one level up instead
        while depths[parent] >= hierarchy_depth and parent > 0:
            parent = (parent - 1) // 2
        depths.append(depths[parent] + 1)
        edges.append((parent, i))

    nodes = [
        Vector.from_tensor(random_hyperbolic_point(dim, level_radius(depth), generator=generator))
        for depth in depths
    ]

    deepest = max(depths)
    labels = [depth / deepest if deepest else 0.0 for depth in depths]

    logger.debug(f"Created hierarchical dataset with {num_nodes} nodes, depth {deepest}")
    return TrainingData(nodes=nodes, edges=edges, labels=labels)


class HierarchicalDataSource(DataSource):
    """
    Data source of synthetic hierarchical graphs.

    Args:
        num_examples: Number of graphs to generate
        num_nodes: Nodes per graph
        hierarchy_depth: Maximum tree depth
        dim: Dimension of the node vectors
        seed: Optional seed; example ``k`` uses ``seed + k``
    """

    def __init__(
        self,
        num_examples: int = 1,
        num_nodes: int = 15,
        hierarchy_depth: int = 3,
        dim: int = 8,
        seed: Optional[int] = None
    ):
        if num_examples <= 0:
            raise InvalidInputError(f"Number of examples must be positive, got {num_examples}")
        self.num_examples = num_examples
        self.num_nodes = num_nodes
        self.hierarchy_depth = hierarchy_depth
        self.dim = dim
        self.seed = seed

    def get_training_data(self) -> List[TrainingData]:
        return [
            create_hierarchical_dataset(
                self.num_nodes,
                hierarchy_depth=self.hierarchy_depth,
                dim=self.dim,
                seed=None if self.seed is None else self.seed + k,
            )
            for k in range(self.num_examples)
        ]
