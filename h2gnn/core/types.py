"""
Data model for H2GNN.

Value objects exchanged with the outside world: immutable ``Vector`` points,
caller-owned ``TrainingData`` graphs, the tensor view of a graph used inside
the training loop, and the records returned by training and prediction.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch

from .math_ops import random_hyperbolic_point
from ..exceptions import (
    EmptyDataError,
    InvalidInputError,
    LabelMismatchError,
    NodeIndexError,
)


@dataclass(frozen=True)
class Vector:
    """
    Immutable point given by its coordinates.

    Every transform returns a new ``Vector``; embeddings returned by the
    network always satisfy ``norm() < 1``.
    """
    data: Tuple[float, ...]

    def __post_init__(self):
        try:
            data = tuple(float(v) for v in self.data)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Vector coordinates must be real numbers: {e}") from e
        if not data:
            raise InvalidInputError("Vector must have at least one coordinate")
        if not all(math.isfinite(v) for v in data):
            raise InvalidInputError("Vector coordinates must be finite", {"data": data})
        object.__setattr__(self, "data", data)

    @property
    def dim(self) -> int:
        return len(self.data)

    def norm(self) -> float:
        return math.sqrt(sum(v * v for v in self.data))

    def is_in_ball(self) -> bool:
        return self.norm() < 1.0

    def to_tensor(self, dtype: Optional[torch.dtype] = None) -> torch.Tensor:
        return torch.tensor(self.data, dtype=dtype or torch.get_default_dtype())

    @classmethod
    def from_tensor(cls, tensor: torch.Tensor) -> "Vector":
        if tensor.dim() != 1:
            raise InvalidInputError(f"Expected a 1-D tensor, got shape {tuple(tensor.shape)}")
        return cls(tuple(tensor.detach().cpu().tolist()))

    @classmethod
    def random(
        cls,
        dim: int,
        max_radius: float = 0.8,
        generator: Optional[torch.Generator] = None
    ) -> "Vector":
        """Sample a point uniformly from the ball of radius ``max_radius``."""
        return cls.from_tensor(random_hyperbolic_point(dim, max_radius, generator=generator))

    def __len__(self) -> int:
        return len(self.data)

    def __iter__(self) -> Iterator[float]:
        return iter(self.data)


NodeLike = Union[Vector, Sequence[float], torch.Tensor]


def _as_vector(node: NodeLike) -> Vector:
    if isinstance(node, Vector):
        return node
    if isinstance(node, torch.Tensor):
        return Vector.from_tensor(node)
    return Vector(tuple(node))


def _as_index(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidInputError(f"Node indices must be integers, got {value!r}")
    return int(value)


@dataclass
class GraphTensors:
    """
    Tensor view of one ``TrainingData`` example.

    Attributes:
        nodes: Node coordinates, shape (n, dim)
        adjacency: Symmetric boolean neighbour mask without self-loops, shape (n, n)
        edge_index: Unique undirected edges (i < j), shape (E, 2)
        labels: Optional node labels, shape (n,)
    """
    nodes: torch.Tensor
    adjacency: torch.Tensor
    edge_index: torch.Tensor
    labels: Optional[torch.Tensor] = None

    @property
    def num_nodes(self) -> int:
        return self.nodes.size(0)


@dataclass
class TrainingData:
    """
    A graph of points to embed.

    Args:
        nodes: Ordered node vectors, all of the same dimension
        edges: Ordered (node_index, node_index) pairs
        labels: Optional numeric label per node
        hyperedges: Optional node-index sets, expanded to cliques for message passing

    Raises:
        EmptyDataError: If there are no nodes
        NodeIndexError: If an edge or hyperedge references a missing node
        LabelMismatchError: If labels are given but their count differs from the node count
        InvalidInputError: If node dimensions are inconsistent or an edge is malformed
    """
    nodes: Sequence[NodeLike]
    edges: Sequence[Sequence[int]] = field(default_factory=list)
    labels: Optional[Sequence[float]] = None
    hyperedges: Optional[Sequence[Sequence[int]]] = None

    def __post_init__(self):
        self.nodes = [_as_vector(node) for node in self.nodes]
        self.edges = [tuple(edge) for edge in self.edges]
        if self.labels is not None:
            self.labels = [float(label) for label in self.labels]
        if self.hyperedges is not None:
            self.hyperedges = [tuple(hyperedge) for hyperedge in self.hyperedges]
        self.validate()

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    @property
    def dim(self) -> int:
        return self.nodes[0].dim

    def _check_index(self, index: Any) -> int:
        index = _as_index(index)
        if not 0 <= index < self.num_nodes:
            raise NodeIndexError(index, self.num_nodes)
        return index

    def validate(self, expected_dim: Optional[int] = None) -> None:
        """
        Check the invariants of the graph.

        Args:
            expected_dim: If given, every node must have this dimension
        """
        if self.num_nodes == 0:
            raise EmptyDataError("Training data contains no nodes")

        dims = {node.dim for node in self.nodes}
        if len(dims) != 1:
            raise InvalidInputError("All nodes must have the same dimension", {"dims": sorted(dims)})
        if expected_dim is not None and self.dim != expected_dim:
            raise InvalidInputError(
                "Node dimension does not match the embedding dimension",
                {"node_dim": self.dim, "embedding_dim": expected_dim}
            )

        for edge in self.edges:
            if len(edge) != 2:
                raise InvalidInputError(f"Edges must be index pairs, got {edge!r}")
            for index in edge:
                self._check_index(index)

        for hyperedge in self.hyperedges or []:
            for index in hyperedge:
                self._check_index(index)

        if self.labels is not None:
            if len(self.labels) != self.num_nodes:
                raise LabelMismatchError(len(self.labels), self.num_nodes)
            if not all(math.isfinite(label) for label in self.labels):
                raise InvalidInputError("Labels must be finite numbers")

    def edge_pairs(self) -> List[Tuple[int, int]]:
        """Unique undirected edges (i < j), including hyperedge cliques, without self-loops."""
        pairs = set()
        for i, j in self.edges:
            if i != j:
                pairs.add((min(i, j), max(i, j)))
        for hyperedge in self.hyperedges or []:
            members = sorted(set(int(i) for i in hyperedge))
            for a, i in enumerate(members):
                for j in members[a + 1:]:
                    pairs.add((i, j))
        return sorted(pairs)

    def adjacency_list(self) -> List[List[int]]:
        """Sorted neighbour list of every node."""
        neighbours = [set() for _ in range(self.num_nodes)]
        for i, j in self.edge_pairs():
            neighbours[i].add(j)
            neighbours[j].add(i)
        return [sorted(n) for n in neighbours]

    def node_tensor(self, dtype: Optional[torch.dtype] = None) -> torch.Tensor:
        dtype = dtype or torch.get_default_dtype()
        return torch.tensor([node.data for node in self.nodes], dtype=dtype)

    def to_graph(self, dtype: Optional[torch.dtype] = None) -> GraphTensors:
        """Build the tensor view used by the layers and the training loop."""
        dtype = dtype or torch.get_default_dtype()
        n = self.num_nodes

        pairs = self.edge_pairs()
        adjacency = torch.zeros(n, n, dtype=torch.bool)
        if pairs:
            edge_index = torch.tensor(pairs, dtype=torch.long)
            adjacency[edge_index[:, 0], edge_index[:, 1]] = True
            adjacency[edge_index[:, 1], edge_index[:, 0]] = True
        else:
            edge_index = torch.zeros(0, 2, dtype=torch.long)

        labels = None
        if self.labels is not None:
            labels = torch.tensor(self.labels, dtype=dtype)

        return GraphTensors(
            nodes=self.node_tensor(dtype),
            adjacency=adjacency,
            edge_index=edge_index,
            labels=labels,
        )


@dataclass
class TrainingHistoryEntry:
    """Summary of one completed training epoch."""
    epoch: int
    loss: float
    geometric_loss: float
    task_loss: float = 0.0
    boundary_loss: float = 0.0
    geodesic_loss: float = 0.0
    curvature_loss: float = 0.0
    accuracy: Optional[float] = None
    validation_loss: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, entry: Dict[str, Any]) -> "TrainingHistoryEntry":
        return cls(**entry)


@dataclass
class TopologicalFeatures:
    """
    Topological summary of an embedded graph.

    Attributes:
        betti_numbers: (b0, b1) of the graph: components and independent cycles
        persistent_homology: (birth, death, dimension) triples of the
            0-dimensional Vietoris-Rips barcode on geodesic distances
    """
    betti_numbers: Tuple[int, int]
    persistent_homology: List[Tuple[float, float, int]]


@dataclass
class GeometricInsights:
    """Geometric summary of a batch of embeddings."""
    curvature: float
    hierarchy_depth: float
    clustering_coefficient: float
    geodesic_distances: np.ndarray
    topological_features: TopologicalFeatures

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation (infinite deaths become None)."""
        return {
            "curvature": self.curvature,
            "hierarchy_depth": self.hierarchy_depth,
            "clustering_coefficient": self.clustering_coefficient,
            "geodesic_distances": self.geodesic_distances.tolist(),
            "topological_features": {
                "betti_numbers": list(self.topological_features.betti_numbers),
                "persistent_homology": [
                    [birth, death if math.isfinite(death) else None, dim]
                    for birth, death, dim in self.topological_features.persistent_homology
                ],
            },
        }


@dataclass
class PredictionResult:
    """Output of ``H2GNN.predict``."""
    embeddings: List[Vector]
    predictions: List[float]
    confidence: List[float]
    geometric_insights: GeometricInsights
