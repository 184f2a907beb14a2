"""
Unit tests for the hyperbolic geometry primitives.

Covers projection, Möbius operations, distances, exponential/logarithmic
maps, parallel transport, the Lorentz model, sampling and triangle
comparison geometry.
"""

import math

import pytest
import torch

from h2gnn.core import math_ops
from h2gnn.core.manifolds import PoincareManifold
from h2gnn.core.math_ops import (
    batch_mobius_add,
    conformal_factor,
    distance,
    exponential_map,
    expmap0,
    from_lorentz,
    hyperbolic_attention_weight,
    hyperbolic_distance,
    logarithmic_map,
    logmap0,
    mobius_add,
    mobius_scalar_mul,
    norm,
    pairwise_distances,
    parallel_transport,
    project,
    random_hyperbolic_point,
    tangent_mean,
    to_lorentz,
    triangle_angles,
    triangle_excess,
    triangle_excess_from_sides,
)
from h2gnn.exceptions import DomainError, GeometryViolation, InvalidInputError
from tests import TestFixtures


def _acosh_distance(u: torch.Tensor, v: torch.Tensor) -> torch.Tensor:
    sq = torch.sum((u - v) ** 2, dim=-1)
    denom = (1 - torch.sum(u * u, dim=-1)) * (1 - torch.sum(v * v, dim=-1))
    return torch.acosh(1 + 2 * sq / denom)


class TestNormAndProjection:
    """Test norm and projection into the ball."""

    def test_norm(self):
        x = torch.tensor([[3.0, 4.0], [0.0, 0.0]])
        norms = norm(x)
        assert norms[0].item() == pytest.approx(5.0)
        assert norms[1].item() < 1e-12

    def test_norm_gradient_finite_at_origin(self):
        x = torch.zeros(3, requires_grad=True)
        norm(x).backward()
        assert torch.isfinite(x.grad).all()

    def test_projection_leaves_inside_points_unchanged(self):
        x = torch.tensor([[0.1, 0.2], [0.3, -0.1], [0.7, 0.7]])
        assert torch.equal(project(x), x)

    def test_projection_of_outside_points(self):
        x = torch.tensor([[2.0, 1.0], [-1.5, 0.8], [1.0, 0.0]])
        projected = project(x)
        norms = torch.linalg.vector_norm(projected, dim=-1)

        assert torch.all(norms < 0.99)
        assert torch.all(norms > 0.98)
        # Direction is preserved
        cosine = torch.sum(projected * x, dim=-1) / (norms * torch.linalg.vector_norm(x, dim=-1))
        torch.testing.assert_close(cosine, torch.ones(3))

    def test_projection_with_curvature(self):
        x = torch.tensor([[1.0, 0.0]])
        projected = project(x, c=4.0)
        assert torch.linalg.vector_norm(projected).item() < 0.5

    def test_is_in_ball_and_check(self):
        x = torch.tensor([[0.5, 0.0], [1.0, 0.0]])
        assert math_ops.is_in_ball(x).tolist() == [True, False]

        with pytest.raises(GeometryViolation):
            math_ops.check_in_ball(x)
        math_ops.check_in_ball(x[:1])


class TestMobiusOperations:
    """Test Möbius addition and scalar multiplication."""

    def setup_method(self):
        self.x = TestFixtures.random_points(20, 4, max_radius=0.9, seed=1).double()
        self.y = TestFixtures.random_points(20, 4, max_radius=0.9, seed=2).double()

    def test_identity(self):
        zero = torch.zeros_like(self.x)
        torch.testing.assert_close(mobius_add(self.x, zero), self.x)
        torch.testing.assert_close(mobius_add(zero, self.x), self.x)

    def test_left_inverse(self):
        result = mobius_add(math_ops.mobius_neg(self.x), self.x)
        torch.testing.assert_close(result, torch.zeros_like(self.x), atol=1e-10, rtol=0)

    def test_result_stays_in_ball(self):
        x = TestFixtures.random_points(100, 3, max_radius=0.999, seed=3)
        y = TestFixtures.random_points(100, 3, max_radius=0.999, seed=4)
        assert torch.all(norm(mobius_add(x, y)) < 1.0)

    def test_out_of_ball_operand_raises(self):
        inside = torch.tensor([0.1, 0.2])
        outside = torch.tensor([1.0, 0.5])

        with pytest.raises(DomainError):
            mobius_add(inside, outside)
        with pytest.raises(GeometryViolation):
            mobius_add(outside, inside)

    def test_scalar_multiplication(self):
        torch.testing.assert_close(mobius_scalar_mul(1.0, self.x), self.x)
        torch.testing.assert_close(
            mobius_scalar_mul(2.0, self.x * 0.5),
            mobius_add(self.x * 0.5, self.x * 0.5)
        )

    def test_batch_mobius_add(self):
        points = TestFixtures.random_points(3, 2, max_radius=0.5, seed=5)
        expected = mobius_add(mobius_add(points[0], points[1]), points[2])
        torch.testing.assert_close(batch_mobius_add(points), expected)

        with pytest.raises(InvalidInputError):
            batch_mobius_add([])


class TestDistance:
    """Test hyperbolic distance computation."""

    def setup_method(self):
        self.u = TestFixtures.random_points(50, 5, max_radius=0.95, seed=6).double()
        self.v = TestFixtures.random_points(50, 5, max_radius=0.95, seed=7).double()

    def test_symmetry(self):
        torch.testing.assert_close(distance(self.u, self.v), distance(self.v, self.u))

    def test_identity(self):
        u = self.u.float()
        assert torch.all(distance(u, u) < 1e-3)
        assert torch.all(distance(self.u, self.u) < 1e-6)

    def test_matches_closed_form(self):
        torch.testing.assert_close(
            hyperbolic_distance(self.u, self.v), _acosh_distance(self.u, self.v),
            atol=1e-6, rtol=1e-6
        )

    def test_distance_from_origin(self):
        x = torch.tensor([0.5, 0.0], dtype=torch.float64)
        d = hyperbolic_distance(torch.zeros_like(x), x)
        assert d.item() == pytest.approx(2 * math.atanh(0.5))

    def test_distance_near_boundary_keeps_growing(self):
        origin = torch.zeros(2, dtype=torch.float64)
        x = torch.tensor([1.0 - 1e-6, 0.0], dtype=torch.float64)
        assert hyperbolic_distance(origin, x).item() == pytest.approx(2 * math.atanh(1.0 - 1e-6), rel=1e-6)

        x32 = x.float()
        d32 = hyperbolic_distance(origin.float(), x32).item()
        assert math.isfinite(d32)
        assert d32 > 13.0

    def test_triangle_inequality(self):
        w = TestFixtures.random_points(50, 5, max_radius=0.95, seed=8).double()
        assert torch.all(distance(self.u, w) <= distance(self.u, self.v) + distance(self.v, w) + 1e-9)

    def test_out_of_ball_raises_domain_error(self):
        with pytest.raises(DomainError):
            distance(torch.tensor([1.0, 0.0]), torch.tensor([0.0, 0.0]))

    def test_gradient_finite_for_coincident_points(self):
        x = torch.tensor([[0.3, -0.2]], requires_grad=True)
        distance(x, x.detach().clone()).sum().backward()
        assert torch.isfinite(x.grad).all()

    def test_pairwise_distances(self):
        x = TestFixtures.random_points(6, 3, seed=9)
        d = pairwise_distances(x)

        assert d.shape == (6, 6)
        torch.testing.assert_close(d, d.T)
        assert torch.all(torch.diagonal(d) < 1e-4)
        torch.testing.assert_close(d[1, 4], distance(x[1], x[4]))

    def test_attention_weight_range(self):
        weights = hyperbolic_attention_weight(self.u, self.v)
        assert torch.all(weights > 0)
        assert torch.all(weights <= 1)


class TestMaps:
    """Test exponential/logarithmic maps and parallel transport."""

    def test_origin_maps_are_inverse(self):
        v = torch.randn(10, 4, generator=torch.Generator().manual_seed(0)).double() * 0.5
        torch.testing.assert_close(logmap0(expmap0(v)), v, atol=1e-8, rtol=1e-6)

        y = TestFixtures.random_points(10, 4, max_radius=0.9, seed=10).double()
        torch.testing.assert_close(expmap0(logmap0(y)), y, atol=1e-8, rtol=1e-6)

    def test_maps_at_base_point_are_inverse(self):
        x = TestFixtures.random_points(10, 3, max_radius=0.5, seed=11).double()
        v = torch.randn(10, 3, generator=torch.Generator().manual_seed(1)).double() * 0.1

        y = exponential_map(v, x)
        torch.testing.assert_close(logarithmic_map(x, y), v, atol=1e-8, rtol=1e-6)

    def test_exponential_map_at_origin(self):
        v = torch.tensor([[0.3, -0.4]], dtype=torch.float64)
        torch.testing.assert_close(exponential_map(v, torch.zeros_like(v)), expmap0(v))

    def test_conformal_factor_at_origin(self):
        assert conformal_factor(torch.zeros(1, 3)).item() == pytest.approx(2.0)

    def test_parallel_transport_preserves_riemannian_norm(self):
        x = TestFixtures.random_points(8, 3, max_radius=0.7, seed=12).double()
        y = TestFixtures.random_points(8, 3, max_radius=0.7, seed=13).double()
        v = torch.randn(8, 3, generator=torch.Generator().manual_seed(2)).double()

        transported = parallel_transport(v, x, y)
        before = conformal_factor(x, keepdim=False) * torch.linalg.vector_norm(v, dim=-1)
        after = conformal_factor(y, keepdim=False) * torch.linalg.vector_norm(transported, dim=-1)
        torch.testing.assert_close(before, after)

    def test_parallel_transport_to_same_point_is_identity(self):
        x = TestFixtures.random_points(4, 3, seed=14).double()
        v = torch.randn(4, 3, generator=torch.Generator().manual_seed(3)).double()
        torch.testing.assert_close(parallel_transport(v, x, x), v)

    def test_tangent_mean(self):
        x = TestFixtures.random_points(1, 4, seed=15).double()
        torch.testing.assert_close(tangent_mean(x), x[0])

        pair = torch.cat([x, -x])
        torch.testing.assert_close(tangent_mean(pair), torch.zeros(4, dtype=torch.float64), atol=1e-10, rtol=0)

        points = TestFixtures.random_points(3, 4, seed=16).double()
        one_hot = torch.tensor([0.0, 1.0, 0.0], dtype=torch.float64)
        torch.testing.assert_close(tangent_mean(points, one_hot), points[1])

    def test_manifold_delegates_to_math_ops(self):
        manifold = PoincareManifold(curvature=1.0)
        x = TestFixtures.random_points(5, 3, seed=17)
        y = TestFixtures.random_points(5, 3, seed=18)
        torch.testing.assert_close(manifold.distance(x, y), hyperbolic_distance(x, y))
        torch.testing.assert_close(manifold.mobius_add(x, y), mobius_add(x, y))


class TestLorentz:
    """Test the conversion to and from the hyperboloid model."""

    def test_points_lie_on_hyperboloid(self):
        x = TestFixtures.random_points(10, 3, max_radius=0.9, seed=19).double()
        h = to_lorentz(x)
        minkowski = -h[:, 0] ** 2 + torch.sum(h[:, 1:] ** 2, dim=-1)
        torch.testing.assert_close(minkowski, -torch.ones(10, dtype=torch.float64))

    def test_round_trip(self):
        x = TestFixtures.random_points(10, 3, max_radius=0.9, seed=20).double()
        torch.testing.assert_close(from_lorentz(to_lorentz(x)), x)


class TestRandomPoints:
    """Test uniform sampling inside the ball."""

    def test_single_point(self):
        point = random_hyperbolic_point(5, max_radius=0.3)
        assert point.shape == (5,)
        assert torch.linalg.vector_norm(point).item() <= 0.3 + 1e-6

    def test_batch_is_reproducible(self):
        a = random_hyperbolic_point(4, 0.5, num_points=100, generator=torch.Generator().manual_seed(0))
        b = random_hyperbolic_point(4, 0.5, num_points=100, generator=torch.Generator().manual_seed(0))
        assert a.shape == (100, 4)
        assert torch.equal(a, b)
        assert torch.all(torch.linalg.vector_norm(a, dim=-1) <= 0.5 + 1e-6)

    def test_invalid_radius_raises(self):
        with pytest.raises(DomainError):
            random_hyperbolic_point(3, max_radius=1.0)
        with pytest.raises(DomainError):
            random_hyperbolic_point(3, max_radius=-0.1)

    def test_invalid_dimension_raises(self):
        with pytest.raises(InvalidInputError):
            random_hyperbolic_point(0)


class TestTriangles:
    """Test comparison triangle geometry."""

    def test_euclidean_equilateral_angles(self):
        one = torch.ones(1, dtype=torch.float64)
        for angle in triangle_angles(one, one, one, curvature=0.0):
            assert angle.item() == pytest.approx(math.pi / 3)

    def test_excess_is_zero_for_flat_geometry(self):
        sides = torch.tensor([1.0, 2.0], dtype=torch.float64)
        assert torch.all(triangle_excess_from_sides(sides, sides, sides, 0.0) == 0)

    def test_excess_is_negative_for_hyperbolic_geometry(self):
        one = torch.ones(1, dtype=torch.float64)
        assert triangle_excess_from_sides(one, one, one, -1.0).item() < 0
        # Stronger curvature, larger defect
        assert (triangle_excess_from_sides(one, one, one, -4.0).item()
                < triangle_excess_from_sides(one, one, one, -1.0).item())

    def test_defect_sign_for_random_triangles(self):
        u = TestFixtures.random_points(30, 3, max_radius=0.9, seed=21)
        v = TestFixtures.random_points(30, 3, max_radius=0.9, seed=22)
        w = TestFixtures.random_points(30, 3, max_radius=0.9, seed=23)
        assert torch.all(triangle_excess(u, v, w) <= 1e-6)

    def test_positive_curvature_rejected(self):
        one = torch.ones(1, dtype=torch.float64)
        with pytest.raises(DomainError):
            triangle_angles(one, one, one, curvature=1.0)
