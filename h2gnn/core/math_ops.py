"""
Mathematical operations for hyperbolic geometry.

This module is the single home of the Poincaré ball arithmetic used across
the package: Möbius operations, exponential/logarithmic maps, distances,
projection, sampling and triangle comparison geometry. Every layer, loss and
metric delegates to these functions rather than re-deriving the formulas.

All operations are batched over leading dimensions; the last dimension holds
the coordinates of a point. ``c`` is the (positive) curvature magnitude of the
ball, which has radius ``1/sqrt(c)``; the default ``c=1`` is the unit ball of
curvature -1.
"""

import math
from typing import Optional, Sequence, Tuple, Union

import torch

from ..exceptions import DomainError, GeometryViolation, InvalidInputError


MIN_NORM = 1e-15
# Projection target is (1 - BALL_EPS) times the ball radius.
BALL_EPS = 1e-2
# Keeps a projected point strictly below its target under float32 rounding.
PROJECTION_MARGIN = 1e-5
# artanh arguments are clamped this many machine epsilons below 1.
ATANH_ULPS = 4.0
COS_CLAMP = 1.0 - 1e-7

Curvature = Union[float, torch.Tensor]


def _as_tensor(x, dtype=None) -> torch.Tensor:
    if isinstance(x, torch.Tensor):
        return x if dtype is None else x.to(dtype)
    return torch.as_tensor(x, dtype=dtype or torch.get_default_dtype())


def ball_radius(c: float = 1.0) -> float:
    """Radius ``1/sqrt(c)`` of the Poincaré ball of curvature ``-c``."""
    return 1.0 / math.sqrt(c)


def dot(x: torch.Tensor, y: torch.Tensor, keepdim: bool = False) -> torch.Tensor:
    """Euclidean inner product over the last dimension."""
    return torch.sum(x * y, dim=-1, keepdim=keepdim)


def norm(x: torch.Tensor, keepdim: bool = False) -> torch.Tensor:
    """
    Euclidean norm over the last dimension.

    The squared norm is clamped at ``MIN_NORM**2`` so that the gradient stays
    finite at the origin; the value differs from the exact norm by at most
    ``MIN_NORM``.
    """
    sq = torch.sum(x * x, dim=-1, keepdim=keepdim)
    return torch.sqrt(torch.clamp_min(sq, MIN_NORM * MIN_NORM))


def _artanh(x: torch.Tensor) -> torch.Tensor:
    bound = 1.0 - ATANH_ULPS * torch.finfo(x.dtype).eps
    return torch.atanh(torch.clamp(x, min=-bound, max=bound))


def is_in_ball(x: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """Boolean mask of the points lying strictly inside the ball."""
    return norm(x) < ball_radius(c)


def check_in_ball(
    x: torch.Tensor,
    c: float = 1.0,
    name: str = "input",
    error: type = GeometryViolation
) -> None:
    """
    Raise ``error`` unless every point of ``x`` lies strictly inside the ball.

    Args:
        x: Points to check
        c: Curvature parameter
        name: Name used in the error message
        error: GeometryViolation subclass to raise
    """
    inside = is_in_ball(x.detach(), c)
    if not bool(torch.all(inside)):
        max_norm = float(norm(x.detach()).max())
        raise error(
            f"{name} has points on or outside the Poincaré ball",
            {"max_norm": round(max_norm, 6), "radius": ball_radius(c)}
        )


def project(x: torch.Tensor, c: float = 1.0, eps: float = BALL_EPS) -> torch.Tensor:
    """
    Project points back inside the Poincaré ball.

    Points whose norm reaches the ball radius are rescaled to norm
    ``(1 - eps) * radius``; points already inside are returned unchanged.

    Args:
        x: Input tensor of points
        c: Curvature parameter
        eps: Relative safety margin from the boundary

    Returns:
        Points strictly inside the ball
    """
    radius = ball_radius(c)
    target = (1.0 - eps) * radius - PROJECTION_MARGIN
    norms = norm(x, keepdim=True)
    return torch.where(norms >= radius, x * (target / norms), x)


def _mobius_add(x: torch.Tensor, y: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    dot_xy = dot(x, y, keepdim=True)
    norm_x_sq = dot(x, x, keepdim=True)
    norm_y_sq = dot(y, y, keepdim=True)

    numerator = (1.0 + 2.0 * c * dot_xy + c * norm_y_sq) * x + (1.0 - c * norm_x_sq) * y
    denominator = 1.0 + 2.0 * c * dot_xy + c * c * norm_x_sq * norm_y_sq

    return numerator / torch.clamp_min(denominator, MIN_NORM)


def mobius_add(x: torch.Tensor, y: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """
    Möbius addition in the Poincaré ball.

    The Möbius addition formula is:
    x ⊕ y = ((1 + 2c⟨x,y⟩ + c||y||²)x + (1 - c||x||²)y) / (1 + 2c⟨x,y⟩ + c²||x||²||y||²)

    Args:
        x, y: Tensors representing points in the Poincaré ball
        c: Curvature parameter (positive for hyperbolic space)

    Returns:
        Tensor representing x ⊕ y, re-projected if rounding reached the boundary

    Raises:
        DomainError: If either operand lies on or outside the ball
    """
    check_in_ball(x, c, "mobius_add left operand", DomainError)
    check_in_ball(y, c, "mobius_add right operand", DomainError)
    return project(_mobius_add(x, y, c), c)


def mobius_neg(x: torch.Tensor) -> torch.Tensor:
    """Möbius negation (the inverse of x under ⊕)."""
    return -x


def mobius_scalar_mul(r: Union[float, torch.Tensor], x: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """
    Möbius scalar multiplication r ⊗ x = tanh(r·artanh(√c||x||)) · x / (√c||x||).

    Args:
        r: Scalar or tensor of scalars broadcastable against ``x[..., :1]``
        x: Points in the Poincaré ball
        c: Curvature parameter

    Returns:
        Tensor representing r ⊗ x
    """
    sqrt_c = math.sqrt(c)
    x_norm = norm(x, keepdim=True)
    scale = torch.tanh(r * _artanh(sqrt_c * x_norm)) / (sqrt_c * x_norm)
    return project(scale * x, c)


def batch_mobius_add(points: Union[torch.Tensor, Sequence[torch.Tensor]], c: float = 1.0) -> torch.Tensor:
    """Left-fold Möbius addition over the first dimension."""
    if len(points) == 0:
        raise InvalidInputError("Cannot add an empty sequence of points")

    result = points[0]
    for point in points[1:]:
        result = mobius_add(result, point, c=c)
    return result


def conformal_factor(x: torch.Tensor, c: float = 1.0, keepdim: bool = True) -> torch.Tensor:
    """Compute the conformal factor λ_x = 2/(1 - c||x||²) at point x."""
    norm_x_sq = dot(x, x, keepdim=keepdim)
    return 2.0 / torch.clamp_min(1.0 - c * norm_x_sq, MIN_NORM)


def expmap0(u: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """Exponential map from the tangent space at the origin into the ball."""
    sqrt_c = math.sqrt(c)
    u_norm = norm(u, keepdim=True)
    return project(torch.tanh(sqrt_c * u_norm) * u / (sqrt_c * u_norm), c)


def logmap0(y: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """Logarithmic map from the ball to the tangent space at the origin."""
    sqrt_c = math.sqrt(c)
    y_norm = norm(y, keepdim=True)
    return _artanh(sqrt_c * y_norm) * y / (sqrt_c * y_norm)


def exponential_map(v: torch.Tensor, x: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """
    Exponential map from tangent space at x to the Poincaré ball.

    Args:
        v: Tangent vector at x
        x: Base point on the manifold
        c: Curvature parameter

    Returns:
        Point on manifold obtained by moving from x in direction v
    """
    sqrt_c = math.sqrt(c)
    v_norm = norm(v, keepdim=True)
    lambda_x = conformal_factor(x, c)

    second = torch.tanh(sqrt_c * lambda_x * v_norm / 2.0) * v / (sqrt_c * v_norm)
    return mobius_add(x, project(second, c), c)


def logarithmic_map(x: torch.Tensor, y: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """
    Logarithmic map from the ball to the tangent space at x.

    Args:
        x: Base point on the manifold
        y: Target point on the manifold
        c: Curvature parameter

    Returns:
        Tangent vector at x pointing towards y
    """
    sqrt_c = math.sqrt(c)
    diff = mobius_add(mobius_neg(x), y, c)
    diff_norm = norm(diff, keepdim=True)
    lambda_x = conformal_factor(x, c)

    return (2.0 / (sqrt_c * lambda_x)) * _artanh(sqrt_c * diff_norm) * diff / diff_norm


def gyration(u: torch.Tensor, v: torch.Tensor, w: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """
    Gyration operator gyr[u, v]w of the Möbius gyrogroup.

    Uses the closed form that is linear in ``w``, so ``w`` may be a tangent vector.
    """
    u_sq = dot(u, u, keepdim=True)
    v_sq = dot(v, v, keepdim=True)
    uv = dot(u, v, keepdim=True)
    uw = dot(u, w, keepdim=True)
    vw = dot(v, w, keepdim=True)
    c2 = c * c

    a = -c2 * uw * v_sq + c * vw + 2.0 * c2 * uv * vw
    b = -c2 * vw * u_sq - c * uw
    d = 1.0 + 2.0 * c * uv + c2 * u_sq * v_sq

    return w + 2.0 * (a * u + b * v) / torch.clamp_min(d, MIN_NORM)


def parallel_transport(v: torch.Tensor, x: torch.Tensor, y: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """
    Parallel transport of tangent vector v from x to y in the Poincaré ball.

    P_{x→y}(v) = (λ_x / λ_y) · gyr[y, -x] v, which preserves the Riemannian norm.
    """
    scale = conformal_factor(x, c) / conformal_factor(y, c)
    return scale * gyration(y, mobius_neg(x), v, c)


def hyperbolic_distance(x: torch.Tensor, y: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """
    Compute hyperbolic distance between points in the Poincaré ball.

    For c = 1 this is acosh(1 + 2||x-y||² / ((1-||x||²)(1-||y||²))). It is
    evaluated through the equivalent form d(x,y) = (2/√c) · artanh(√c ||(-x) ⊕ y||),
    whose gradient stays finite when x == y.

    The artanh argument is clamped a few machine epsilons below 1, so the
    distance saturates at about 15 in float32 and 35 in float64 (for c = 1).

    Args:
        x, y: Points in the Poincaré ball
        c: Curvature parameter

    Returns:
        Hyperbolic distances between x and y

    Raises:
        DomainError: If either point lies on or outside the ball
    """
    check_in_ball(x, c, "distance left operand", DomainError)
    check_in_ball(y, c, "distance right operand", DomainError)

    sqrt_c = math.sqrt(c)
    diff_norm = norm(_mobius_add(mobius_neg(x), y, c))
    return (2.0 / sqrt_c) * _artanh(sqrt_c * diff_norm)


distance = hyperbolic_distance


def pairwise_distances(x: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """Symmetric matrix of hyperbolic distances between the rows of ``x``."""
    return hyperbolic_distance(x.unsqueeze(-2), x.unsqueeze(-3), c=c)


def hyperbolic_attention_weight(query: torch.Tensor, key: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """Unnormalised attention weight exp(-d(q, k))."""
    return torch.exp(-hyperbolic_distance(query, key, c=c))


def tangent_mean(
    points: torch.Tensor,
    weights: Optional[torch.Tensor] = None,
    c: float = 1.0
) -> torch.Tensor:
    """
    Approximate weighted Fréchet mean of points in the ball.

    Points are mapped to the tangent space at the origin, averaged with the
    given weights, and mapped back.

    Args:
        points: Tensor of shape (..., n_points, dim)
        weights: Optional non-negative weights of shape (..., n_points)
        c: Curvature parameter

    Returns:
        Mean point of shape (..., dim)
    """
    tangent = logmap0(points, c)
    if weights is None:
        mean_tangent = tangent.mean(dim=-2)
    else:
        weights = weights / torch.clamp_min(weights.sum(dim=-1, keepdim=True), MIN_NORM)
        mean_tangent = torch.sum(tangent * weights.unsqueeze(-1), dim=-2)
    return expmap0(mean_tangent, c)


def random_hyperbolic_point(
    dim: int,
    max_radius: float = 0.8,
    num_points: Optional[int] = None,
    c: float = 1.0,
    generator: Optional[torch.Generator] = None,
    dtype: Optional[torch.dtype] = None
) -> torch.Tensor:
    """
    Sample points uniformly from the Euclidean ball of radius ``max_radius``.

    Args:
        dim: Dimension of the points
        max_radius: Sampling radius, strictly smaller than the ball radius
        num_points: If given, return a (num_points, dim) batch instead of one point
        c: Curvature parameter
        generator: Optional random generator for reproducibility
        dtype: Data type of the result

    Returns:
        Tensor of shape (dim,) or (num_points, dim)
    """
    if dim <= 0:
        raise InvalidInputError(f"Dimension must be positive, got {dim}")
    if not (0.0 <= max_radius < ball_radius(c)):
        raise DomainError(
            f"Sampling radius must lie in [0, {ball_radius(c)}), got {max_radius}"
        )

    dtype = dtype or torch.get_default_dtype()
    n = 1 if num_points is None else num_points

    direction = torch.randn(n, dim, generator=generator, dtype=dtype)
    direction = direction / norm(direction, keepdim=True)
    # r ~ R * U^(1/dim) gives a uniform density over the ball volume
    u = torch.rand(n, 1, generator=generator, dtype=dtype)
    points = direction * (max_radius * u.pow(1.0 / dim))

    return points[0] if num_points is None else points


def to_lorentz(x: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """Map Poincaré ball points onto the hyperboloid -x₀² + Σxᵢ² = -1/c."""
    norm_x_sq = dot(x, x, keepdim=True)
    denom = torch.clamp_min(1.0 - c * norm_x_sq, MIN_NORM)
    x0 = (1.0 + c * norm_x_sq) / (math.sqrt(c) * denom)
    return torch.cat([x0, 2.0 * x / denom], dim=-1)


def from_lorentz(x: torch.Tensor, c: float = 1.0) -> torch.Tensor:
    """Inverse of :func:`to_lorentz`."""
    if x.size(-1) < 2:
        raise InvalidInputError("Lorentz points need at least 2 coordinates")
    return x[..., 1:] / (1.0 + math.sqrt(c) * x[..., :1])


def triangle_angles(
    d_ab: torch.Tensor,
    d_bc: torch.Tensor,
    d_ca: torch.Tensor,
    curvature: Curvature = -1.0
) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
    """
    Interior angles of the geodesic triangle with the given side lengths
    in a space of constant curvature ``curvature <= 0``.

    Returns the angles at vertices a, b and c.
    """
    if float(curvature) > 0:
        raise DomainError(f"Comparison triangles need curvature <= 0, got {float(curvature)}")

    def _angle(adjacent_1, adjacent_2, opposite):
        if float(curvature) == 0:
            numerator = adjacent_1 ** 2 + adjacent_2 ** 2 - opposite ** 2
            denominator = 2.0 * adjacent_1 * adjacent_2
        else:
            s = torch.sqrt(-_as_tensor(curvature, adjacent_1.dtype))
            numerator = (torch.cosh(s * adjacent_1) * torch.cosh(s * adjacent_2)
                         - torch.cosh(s * opposite))
            denominator = torch.sinh(s * adjacent_1) * torch.sinh(s * adjacent_2)
        cosine = numerator / torch.clamp_min(denominator, 1e-12)
        return torch.acos(torch.clamp(cosine, -COS_CLAMP, COS_CLAMP))

    return (
        _angle(d_ab, d_ca, d_bc),
        _angle(d_ab, d_bc, d_ca),
        _angle(d_bc, d_ca, d_ab),
    )


def triangle_excess_from_sides(
    d_ab: torch.Tensor,
    d_bc: torch.Tensor,
    d_ca: torch.Tensor,
    curvature: Curvature = -1.0
) -> torch.Tensor:
    """
    Angle sum minus π of the comparison triangle at the given curvature.

    By Gauss-Bonnet this equals curvature × area, so it is zero for flat
    geometry and negative for hyperbolic geometry.
    """
    if float(curvature) == 0:
        return torch.zeros_like(d_ab)
    alpha, beta, gamma = triangle_angles(d_ab, d_bc, d_ca, curvature)
    return alpha + beta + gamma - math.pi


def triangle_excess(
    u: torch.Tensor,
    v: torch.Tensor,
    w: torch.Tensor,
    c: float = 1.0
) -> torch.Tensor:
    """Angle sum minus π of the geodesic triangle (u, v, w) in the ball."""
    d_uv = hyperbolic_distance(u, v, c)
    d_vw = hyperbolic_distance(v, w, c)
    d_wu = hyperbolic_distance(w, u, c)
    # Side lengths in a ball of curvature -c describe a curvature -c triangle
    return triangle_excess_from_sides(d_uv.double(), d_vw.double(), d_wu.double(), -c)
