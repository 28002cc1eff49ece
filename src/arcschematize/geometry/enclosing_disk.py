"""
Smallest enclosing disk of a point set.

Incremental construction: the disk grows whenever a point falls outside it,
restarting with that point fixed on the boundary (and then with two points
fixed). Expected linear time on shuffled input; the input order is kept here
so results are deterministic.
"""

from arcschematize.geometry.primitives import (
    EPS,
    Circle,
    circle_by_diametric_points,
    circle_by_three_points,
    distance,
    is_approximately,
)


def _dedupe(points):
    unique = []
    for p in points:
        if not any(is_approximately(p, q) for q in unique):
            unique.append(p)
    return unique


def smallest_enclosing_disk(points):
    """
    Compute the smallest circle containing all points.

    Args:
        points: Iterable of (x, y) tuples; approximate duplicates are merged

    Returns:
        Circle, or None for an empty input
    """
    pts = _dedupe(list(points))
    if not pts:
        return None
    if len(pts) == 1:
        return Circle(pts[0], 0.0)
    if len(pts) == 2:
        return circle_by_diametric_points(pts[0], pts[1])

    circ = circle_by_diametric_points(pts[0], pts[1])
    for i in range(2, len(pts)):
        if not circ.contains(pts[i], EPS):
            circ = _with_one_fixed(pts[:i], pts[i])
    return circ


def _with_one_fixed(pts, fixed):
    circ = circle_by_diametric_points(pts[0], fixed)
    for j in range(1, len(pts)):
        if not circ.contains(pts[j], EPS):
            circ = _with_two_fixed(pts[:j], pts[j], fixed)
    return circ


def _with_two_fixed(pts, w, v):
    circ = circle_by_diametric_points(v, w)
    for p in pts:
        if not circ.contains(p, EPS):
            through = circle_by_three_points(v, w, p)
            if through is None:
                through = _diametric_of_farthest(v, w, p)
            circ = through
    return circ


def _diametric_of_farthest(a, b, c):
    pairs = [(a, b), (a, c), (b, c)]
    far = max(pairs, key=lambda pair: distance(pair[0], pair[1]))
    return circle_by_diametric_points(far[0], far[1])
