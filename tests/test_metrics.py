"""
Unit tests for geometric insights and embedding statistics.
"""

import math

import numpy as np
import pytest
import torch

from h2gnn.exceptions import ConfigurationError, InvalidInputError
from h2gnn.utils.metrics import HyperbolicMetrics, betti_numbers, persistence_barcode
from tests import TestFixtures


class TestBettiNumbers:
    """Test Betti numbers of graphs."""

    def test_path_graph(self):
        adjacency = np.zeros((4, 4), dtype=bool)
        for i, j in TestFixtures.path_edges(4):
            adjacency[i, j] = adjacency[j, i] = True
        assert betti_numbers(adjacency) == (1, 0)

    def test_cycle_and_isolated_node(self):
        adjacency = np.zeros((4, 4), dtype=bool)
        for i, j in [(0, 1), (1, 2), (2, 0)]:
            adjacency[i, j] = adjacency[j, i] = True
        assert betti_numbers(adjacency) == (2, 1)

    def test_empty_graph(self):
        assert betti_numbers(np.zeros((0, 0), dtype=bool)) == (0, 0)


class TestPersistenceBarcode:
    """Test the 0-dimensional barcode."""

    def test_collinear_points(self):
        distances = np.array([
            [0.0, 1.0, 3.0],
            [1.0, 0.0, 2.0],
            [3.0, 2.0, 0.0],
        ])
        barcode = persistence_barcode(distances)

        assert barcode[:2] == [(0.0, 1.0, 0), (0.0, 2.0, 0)]
        assert barcode[-1][1] == math.inf

    def test_coincident_points(self):
        distances = np.zeros((3, 3))
        barcode = persistence_barcode(distances)

        assert len(barcode) == 3
        assert [bar[1] for bar in barcode[:2]] == [0.0, 0.0]

    def test_single_point(self):
        assert persistence_barcode(np.zeros((1, 1))) == [(0.0, math.inf, 0)]


class TestHyperbolicMetrics:
    """Test HyperbolicMetrics."""

    def setup_method(self):
        self.metrics = HyperbolicMetrics(curvature=-1.0, clustering_threshold=1.0)
        self.embeddings = TestFixtures.random_points(6, 4, max_radius=0.7, seed=0)

    def test_invalid_arguments(self):
        with pytest.raises(ConfigurationError):
            HyperbolicMetrics(curvature=0.5)
        with pytest.raises(ConfigurationError):
            HyperbolicMetrics(clustering_threshold=0.0)

    def test_pairwise_distances_batched(self):
        full = self.metrics.pairwise_distances(self.embeddings)
        batched = self.metrics.pairwise_distances(self.embeddings, batch_size=4)

        assert full.shape == (6, 6)
        assert torch.all(torch.diagonal(full) == 0)
        torch.testing.assert_close(full, batched)

    def test_clustering_coefficient(self):
        # Triangle 0-1-2 plus pendant node 3 attached to 2
        distances = np.full((4, 4), 5.0)
        np.fill_diagonal(distances, 0.0)
        for i, j in [(0, 1), (1, 2), (2, 0), (2, 3)]:
            distances[i, j] = distances[j, i] = 0.5

        # Nodes 0 and 1 score 1, node 2 scores 1/3, node 3 has one neighbour
        expected = (1.0 + 1.0 + 1.0 / 3.0) / 3.0
        assert self.metrics.clustering_coefficient(distances) == pytest.approx(expected)

    def test_clustering_coefficient_without_neighbours(self):
        distances = np.full((3, 3), 5.0)
        np.fill_diagonal(distances, 0.0)
        assert self.metrics.clustering_coefficient(distances) == 0.0

    def test_clustering_uses_graph_neighbours(self):
        # All four points are close, but only the star 0-1, 0-2, 0-3 is in the graph
        distances = np.full((4, 4), 0.5)
        np.fill_diagonal(distances, 0.0)
        distances[2, 3] = distances[3, 2] = 5.0
        star = [(0, 1), (0, 2), (0, 3)]

        # Node 0 has neighbour pairs (1,2), (1,3), (2,3); the last one is far apart
        assert self.metrics.clustering_coefficient(distances, star) == pytest.approx(2.0 / 3.0)

    def test_close_embeddings_without_edges(self):
        close = torch.tensor([[0.10, 0.0], [0.11, 0.01], [0.09, -0.01]])
        insights = self.metrics.geometric_insights(close, edges=[])

        assert insights.geodesic_distances.max() < 0.1
        assert insights.clustering_coefficient == 0.0

    def test_geometric_insights(self):
        insights = self.metrics.geometric_insights(self.embeddings, edges=TestFixtures.path_edges(6))
        distances = insights.geodesic_distances

        assert insights.curvature == -1.0
        assert distances.shape == (6, 6)
        np.testing.assert_array_equal(distances, distances.T)
        np.testing.assert_array_equal(np.diag(distances), np.zeros(6))
        assert insights.hierarchy_depth == pytest.approx(distances.max())
        assert 0.0 <= insights.clustering_coefficient <= 1.0

        topology = insights.topological_features
        assert topology.betti_numbers == (1, 0)
        assert len(topology.persistent_homology) == 6
        assert topology.persistent_homology[-1][1] == math.inf

    def test_insights_to_dict(self):
        insights = self.metrics.geometric_insights(self.embeddings)
        as_dict = insights.to_dict()

        assert as_dict["topological_features"]["persistent_homology"][-1][1] is None
        assert len(as_dict["geodesic_distances"]) == 6

    def test_edges_out_of_range(self):
        with pytest.raises(InvalidInputError):
            self.metrics.geometric_insights(self.embeddings, edges=[(0, 6)])

    def test_embedding_statistics(self):
        stats = self.metrics.embedding_statistics(self.embeddings)

        assert stats['num_embeddings'] == 6
        assert stats['embedding_dim'] == 4
        assert stats['max_norm'] < 0.7 + 1e-6
        assert stats['min_pairwise_distance'] > 0
        assert stats['mean_distance_from_origin'] > 0
