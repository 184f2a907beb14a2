"""
Metrics and geometric insights for hyperbolic embeddings.

This module turns a batch of embeddings into the ``GeometricInsights``
reported by ``H2GNN.predict``: the geodesic distance matrix, hierarchy depth,
a clustering coefficient of the input graph and a topological summary.

The topological summary is deliberately limited: Betti numbers are those of
the input graph (b0 components, b1 independent cycles), and persistent
homology is the 0-dimensional Vietoris-Rips barcode of the embeddings, read
off a minimum spanning tree of the geodesic distance matrix. Loops and voids
of the embedding (dimension >= 1 persistence) are not computed.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch
from scipy.sparse import csr_matrix
from scipy.sparse.csgraph import connected_components, minimum_spanning_tree

from ..core.math_ops import hyperbolic_distance, norm, pairwise_distances
from ..core.types import GeometricInsights, TopologicalFeatures
from ..exceptions import ConfigurationError, InvalidInputError


logger = logging.getLogger(__name__)


# Stand-in weight for coincident points, which sparse graphs would drop
_ZERO_DISTANCE = 1e-12

EdgeList = Union[torch.Tensor, np.ndarray, Sequence[Tuple[int, int]]]


def _edge_array(edges: Optional[EdgeList]) -> np.ndarray:
    if edges is None:
        return np.zeros((0, 2), dtype=np.int64)
    if isinstance(edges, torch.Tensor):
        edges = edges.detach().cpu().numpy()
    array = np.asarray(edges, dtype=np.int64)
    return array.reshape(-1, 2)


def _undirected_adjacency(edges: np.ndarray, num_nodes: int) -> np.ndarray:
    adjacency = np.zeros((num_nodes, num_nodes), dtype=bool)
    if edges.size:
        adjacency[edges[:, 0], edges[:, 1]] = True
        adjacency[edges[:, 1], edges[:, 0]] = True
    np.fill_diagonal(adjacency, False)
    return adjacency


def betti_numbers(adjacency: np.ndarray) -> Tuple[int, int]:
    """
    Betti numbers (b0, b1) of a graph given by its boolean adjacency matrix.

    b0 is the number of connected components and b1 = |E| - |V| + b0 the
    number of independent cycles.
    """
    num_nodes = adjacency.shape[0]
    if num_nodes == 0:
        return (0, 0)
    b0, _ = connected_components(csr_matrix(adjacency.astype(np.int8)), directed=False)
    num_edges = int(np.triu(adjacency, k=1).sum())
    return (int(b0), int(num_edges - num_nodes + b0))


def persistence_barcode(distances: np.ndarray) -> List[Tuple[float, float, int]]:
    """
    0-dimensional persistence barcode of the Vietoris-Rips filtration.

    Every point is born at 0; components merge at the weights of the minimum
    spanning tree edges, and one component survives forever.

    Args:
        distances: Symmetric (n, n) distance matrix

    Returns:
        (birth, death, dimension) triples sorted by death, the infinite bar last
    """
    n = distances.shape[0]
    if n == 0:
        return []

    weights = np.where(distances > 0, distances, _ZERO_DISTANCE)
    np.fill_diagonal(weights, 0.0)
    tree = minimum_spanning_tree(csr_matrix(np.triu(weights))).tocoo()

    deaths = sorted(float(distances[i, j]) for i, j in zip(tree.row, tree.col))
    return [(0.0, death, 0) for death in deaths] + [(0.0, float("inf"), 0)]


class HyperbolicMetrics:
    """
    Geometric insights and statistics for embeddings in the unit Poincaré ball.

    Args:
        curvature: Model curvature reported in the insights (K <= 0)
        clustering_threshold: Two embeddings closer than this geodesic
            distance count as neighbours for the clustering coefficient

    Example:
        >>> metrics = HyperbolicMetrics(curvature=-1.0)
        >>> embeddings = torch.randn(10, 8) * 0.1
        >>> insights = metrics.geometric_insights(embeddings, edges=[(0, 1), (1, 2)])
        >>> stats = metrics.embedding_statistics(embeddings)
    """

    def __init__(self, curvature: float = -1.0, clustering_threshold: float = 1.0):
        if curvature > 0:
            raise ConfigurationError(f"Curvature must not be positive, got {curvature}")
        if clustering_threshold <= 0:
            raise ConfigurationError(
                f"Clustering threshold must be positive, got {clustering_threshold}"
            )
        self.curvature = curvature
        self.clustering_threshold = clustering_threshold

    def pairwise_distances(
        self,
        embeddings: torch.Tensor,
        batch_size: Optional[int] = None
    ) -> torch.Tensor:
        """
        Compute pairwise hyperbolic distances between embeddings.

        Args:
            embeddings: Tensor of embeddings, shape (N, dim)
            batch_size: Optional row-block size for memory-efficient computation

        Returns:
            Pairwise distance matrix, shape (N, N), with an exact zero diagonal
        """
        with torch.no_grad():
            n = embeddings.size(0)
            if batch_size is None or n <= batch_size:
                distances = pairwise_distances(embeddings)
            else:
                distances = torch.cat([
                    hyperbolic_distance(embeddings[i:i + batch_size].unsqueeze(1), embeddings.unsqueeze(0))
                    for i in range(0, n, batch_size)
                ])
            distances.fill_diagonal_(0.0)
        return distances

    def _neighbour_graph(self, distances: np.ndarray, edges: Optional[EdgeList]) -> np.ndarray:
        """Boolean adjacency from ``edges``, or from the distance threshold when no edges are given."""
        n = distances.shape[0]
        if edges is not None:
            edge_array = _edge_array(edges)
            if edge_array.size and (edge_array.min() < 0 or edge_array.max() >= n):
                raise InvalidInputError("Edge index out of range for the embeddings", {"num_nodes": n})
            return _undirected_adjacency(edge_array, n)

        adjacency = distances < self.clustering_threshold
        np.fill_diagonal(adjacency, False)
        return adjacency

    def clustering_coefficient(
        self,
        distances: np.ndarray,
        edges: Optional[EdgeList] = None
    ) -> float:
        """
        Mean local clustering coefficient of the embedded graph.

        Each node's neighbours come from ``edges`` (or, without edges, from the
        distance-threshold graph). A pair of neighbours closes a triangle when
        the two are closer than ``clustering_threshold``. For each node with at
        least two neighbours the fraction of closed pairs is computed; nodes
        with fewer neighbours are skipped. Returns 0 when no node qualifies.
        """
        adjacency = self._neighbour_graph(distances, edges).astype(np.float64)
        close = distances < self.clustering_threshold
        np.fill_diagonal(close, False)

        degree = adjacency.sum(axis=1)
        closed = np.einsum("ij,jk,ki->i", adjacency, close.astype(np.float64), adjacency) / 2.0
        qualifying = degree >= 2
        if not qualifying.any():
            return 0.0
        possible = degree[qualifying] * (degree[qualifying] - 1) / 2.0
        return float(np.mean(closed[qualifying] / possible))

    def topological_features(
        self,
        distances: np.ndarray,
        edges: Optional[EdgeList] = None
    ) -> TopologicalFeatures:
        """
        Topological summary of the embedded graph.

        Betti numbers come from ``edges`` when given, otherwise from the
        distance-threshold graph.
        """
        return TopologicalFeatures(
            betti_numbers=betti_numbers(self._neighbour_graph(distances, edges)),
            persistent_homology=persistence_barcode(distances),
        )

    def geometric_insights(
        self,
        embeddings: torch.Tensor,
        edges: Optional[EdgeList] = None
    ) -> GeometricInsights:
        """
        Compute the geometric insights of a batch of embeddings.

        Args:
            embeddings: Embeddings inside the unit ball, shape (N, dim)
            edges: Optional (i, j) edges of the input graph

        Returns:
            GeometricInsights with the full geodesic distance matrix
        """
        distances = self.pairwise_distances(embeddings).detach().cpu().double().numpy()
        distances = (distances + distances.T) / 2.0

        finite = distances[np.isfinite(distances)]
        hierarchy_depth = float(finite.max()) if finite.size else 0.0

        insights = GeometricInsights(
            curvature=float(self.curvature),
            hierarchy_depth=hierarchy_depth,
            clustering_coefficient=self.clustering_coefficient(distances, edges),
            geodesic_distances=distances,
            topological_features=self.topological_features(distances, edges),
        )
        logger.debug(f"Geometric insights: depth={hierarchy_depth:.4f}, "
                     f"clustering={insights.clustering_coefficient:.4f}, "
                     f"betti={insights.topological_features.betti_numbers}")
        return insights

    def embedding_statistics(self, embeddings: torch.Tensor) -> Dict[str, float]:
        """
        Compute statistics about embeddings in hyperbolic space.

        Args:
            embeddings: Tensor of embeddings, shape (N, dim)

        Returns:
            Dictionary of statistics
        """
        with torch.no_grad():
            norms = norm(embeddings).cpu().double().numpy()
            from_origin = hyperbolic_distance(
                embeddings, torch.zeros_like(embeddings)
            ).cpu().double().numpy()

            distances = self.pairwise_distances(embeddings).cpu().double().numpy()
            off_diagonal = distances[~np.eye(distances.shape[0], dtype=bool)]

        stats = {
            'num_embeddings': int(embeddings.size(0)),
            'embedding_dim': int(embeddings.size(1)),
            'mean_norm': float(norms.mean()),
            'std_norm': float(norms.std()),
            'max_norm': float(norms.max()),
            'min_norm': float(norms.min()),
            'mean_distance_from_origin': float(from_origin.mean()),
            'std_distance_from_origin': float(from_origin.std()),
            'max_distance_from_origin': float(from_origin.max()),
        }
        if off_diagonal.size:
            stats.update({
                'mean_pairwise_distance': float(off_diagonal.mean()),
                'max_pairwise_distance': float(off_diagonal.max()),
                'min_pairwise_distance': float(off_diagonal.min()),
            })
        return stats
