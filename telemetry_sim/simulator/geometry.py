"""Geometry service: containment and boundary queries against a water polygon.

All functions are pure. Polygons are shapely ``Polygon`` objects (holes allowed,
e.g. islands); use :func:`make_polygon` to build and validate one from raw
vertex rings. Points on the boundary count as inside.
"""
from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

import numpy as np
from shapely.geometry import LineString, Point, Polygon, box
from shapely.validation import explain_validity

from ..errors import InvalidGeometry, RetryExhausted

__all__ = [
    "make_polygon",
    "box_polygon",
    "contains",
    "nearest_boundary",
    "segment_inside",
    "reflect_step",
    "random_point",
    "heading_deg",
]

_HIT_TOL = 1e-9


def _check_ring(ring: Sequence[Sequence[float]], label: str) -> np.ndarray:
    arr = np.asarray(ring, dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise InvalidGeometry(f"{label} must be a sequence of (x, y) vertices, got shape {arr.shape}")
    if not np.all(np.isfinite(arr)):
        raise InvalidGeometry(f"{label} contains non-finite coordinates")
    if len(np.unique(arr, axis=0)) < 3:
        raise InvalidGeometry(f"{label} needs at least 3 distinct vertices")
    return arr


def make_polygon(shell, holes: Iterable[Sequence[Sequence[float]]] = ()) -> Polygon:
    """Build a validated polygon from an exterior ring and optional holes.

    Rings may be given open or closed. ``shell`` may also be an existing
    shapely ``Polygon``, which is validated and returned.

    Raises
    ------
    InvalidGeometry
        Fewer than 3 distinct vertices in a ring, self-intersection, zero area
        or any other reason shapely reports the polygon as invalid.
    """
    if isinstance(shell, Polygon):
        poly = shell
    else:
        ext = _check_ring(shell, "Exterior ring")
        interiors = [_check_ring(h, f"Hole {i}") for i, h in enumerate(holes)]
        poly = Polygon(ext, interiors)

    if poly.is_empty or poly.area <= 0:
        raise InvalidGeometry("Polygon has zero area")
    if not poly.is_valid:
        raise InvalidGeometry(f"Polygon is not simple: {explain_validity(poly)}")
    return poly


def box_polygon(xmin: float, ymin: float, xmax: float, ymax: float) -> Polygon:
    return make_polygon(box(xmin, ymin, xmax, ymax))


def contains(point, polygon: Polygon) -> bool:
    """True if ``point`` lies in the polygon or on its boundary."""
    return bool(polygon.covers(Point(point[0], point[1])))


def nearest_boundary(point, polygon: Polygon) -> float:
    """Distance from ``point`` to the closest ring (exterior or hole)."""
    return float(polygon.boundary.distance(Point(point[0], point[1])))


def segment_inside(start, end, polygon: Polygon) -> bool:
    """True if the straight move ``start -> end`` never leaves the polygon."""
    if np.allclose(start, end):
        return contains(end, polygon)
    return bool(polygon.covers(LineString([tuple(start), tuple(end)])))


def heading_deg(vector) -> float:
    """Heading of a 2D vector in degrees, counter-clockwise from the +x axis."""
    return math.degrees(math.atan2(vector[1], vector[0])) % 360.0


def _ring_edges(polygon: Polygon) -> Tuple[np.ndarray, np.ndarray]:
    starts, ends = [], []
    for ring in [polygon.exterior, *polygon.interiors]:
        coords = np.asarray(ring.coords)
        starts.append(coords[:-1])
        ends.append(coords[1:])
    a, b = np.vstack(starts), np.vstack(ends)
    keep = np.any(a != b, axis=1)  # repeated vertices give zero-length edges
    return a[keep], b[keep]


def _nearest_edge(point: np.ndarray, polygon: Polygon) -> Tuple[np.ndarray, np.ndarray]:
    a, b = _ring_edges(polygon)
    ab = b - a
    t = np.einsum("ij,ij->i", point - a, ab) / np.maximum(np.einsum("ij,ij->i", ab, ab), 1e-300)
    t = np.clip(t, 0.0, 1.0)
    proj = a + t[:, None] * ab
    idx = int(np.argmin(np.hypot(*(proj - point).T)))
    return a[idx], b[idx]


def _crossing_points(geom) -> list:
    if geom.is_empty:
        return []
    if hasattr(geom, "geoms"):
        pts = []
        for part in geom.geoms:
            pts.extend(_crossing_points(part))
        return pts
    # Point, or LineString when the move runs along an edge
    return [np.asarray(c, dtype=float) for c in geom.coords]


def reflect_step(start, end, polygon: Polygon) -> Tuple[np.ndarray, np.ndarray, float]:
    """Mirror the move ``start -> end`` off the first boundary edge it crosses.

    Returns ``(hit, reflected_end, heading)`` where ``hit`` is the crossing
    point, ``reflected_end`` is where the remaining travel ends after the bounce
    and ``heading`` (degrees) is the direction of the reflected leg. The
    reflected end may still be outside near corners; callers bound the number
    of successive reflections.
    """
    start = np.asarray(start, dtype=float)
    end = np.asarray(end, dtype=float)
    crossing = LineString([tuple(start), tuple(end)]).intersection(polygon.boundary)
    pts = _crossing_points(crossing)
    if not pts:
        return start, end, heading_deg(end - start)

    dists = [float(np.hypot(*(p - start))) for p in pts]
    beyond = [(d, i) for i, d in enumerate(dists) if d > _HIT_TOL]
    hit = pts[min(beyond)[1]] if beyond else start

    a, b = _nearest_edge(hit, polygon)
    u = (b - a) / np.hypot(*(b - a))
    rest = end - hit
    reflected = 2.0 * np.dot(rest, u) * u - rest
    return hit, hit + reflected, heading_deg(reflected)


def random_point(polygon: Polygon, rng: np.random.Generator, max_attempts: int = 10_000) -> np.ndarray:
    """Uniform random point inside the polygon by rejection from its bounds."""
    xmin, ymin, xmax, ymax = polygon.bounds
    for _ in range(max_attempts):
        candidate = np.array([rng.uniform(xmin, xmax), rng.uniform(ymin, ymax)])
        if contains(candidate, polygon):
            return candidate
    raise RetryExhausted(
        step_index=0,
        attempts=max_attempts,
        position=((xmin + xmax) / 2, (ymin + ymax) / 2),
        polygon=polygon,
        policy="random start",
    )
