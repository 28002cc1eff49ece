"""
Intersections between curve pieces, circles and lines.

Every operand is reduced to its carrier (a line or a circle); carrier
intersections are computed in closed form and then filtered by membership on
each operand. Collinear or co-circular operands that share more than a point
produce an Overlap marker instead of points.
"""

import math

from arcschematize.geometry.primitives import (
    EPS,
    Arc,
    Circle,
    FullCircle,
    Line,
    Segment,
    add,
    cross,
    distance,
    dot,
    is_approximately,
    length,
    normalize,
    scale,
    sub,
)


class Overlap:
    """Marker for operands that share a curve piece rather than points."""

    __slots__ = ("first", "second")

    def __init__(self, first, second):
        self.first = first
        self.second = second

    def __repr__(self):
        return f"Overlap({self.first!r}, {self.second!r})"


def is_point(item):
    return isinstance(item, tuple)


def points_only(items):
    return [p for p in items if is_point(p)]


def _is_linear(shape):
    return isinstance(shape, (Segment, Line))


def _line_carrier(shape):
    if isinstance(shape, Line):
        return shape.origin, shape.direction
    return shape.start, sub(shape.end, shape.start)


def _circle_carrier(shape):
    # Circle, Arc and FullCircle all expose center and radius
    return shape.center, shape.radius


def _on_shape(shape, p, eps=EPS):
    if isinstance(shape, (Line, Circle, FullCircle)):
        return True
    if isinstance(shape, Segment):
        d = sub(shape.end, shape.start)
        sq = dot(d, d)
        if sq == 0:
            return is_approximately(p, shape.start, eps)
        t = dot(sub(p, shape.start), d) / sq
        slack = eps / math.sqrt(sq)
        return -slack <= t <= 1 + slack
    return shape.in_sector(p, eps)


def _is_oriented(shape):
    return isinstance(shape, (Segment, Arc, FullCircle))


def _line_line(a, b):
    oa, da = _line_carrier(a)
    ob, db = _line_carrier(b)
    denom = cross(da, db)
    scale_ref = max(length(da) * length(db), EPS)
    if abs(denom) <= EPS * EPS * scale_ref:
        # parallel; collinear when the origin offset is parallel too
        offset = sub(ob, oa)
        if abs(cross(normalize(da), offset)) > EPS:
            return []
        return _collinear_overlap(a, b)
    t = cross(sub(ob, oa), db) / denom
    return [add(oa, scale(da, t))]


def _collinear_overlap(a, b):
    if isinstance(a, Line) or isinstance(b, Line):
        return [Overlap(a, b)]
    origin, direction = _line_carrier(a)
    unit = normalize(direction)
    a0, a1 = sorted((dot(sub(a.start, origin), unit), dot(sub(a.end, origin), unit)))
    b0, b1 = sorted((dot(sub(b.start, origin), unit), dot(sub(b.end, origin), unit)))
    lo = max(a0, b0)
    hi = min(a1, b1)
    if hi < lo - EPS:
        return []
    if hi - lo > EPS:
        return [Overlap(a, b)]
    return [add(origin, scale(unit, (lo + hi) / 2))]


def _line_circle(line, circle):
    origin, direction = _line_carrier(line)
    center, radius = _circle_carrier(circle)
    unit = normalize(direction)
    t = dot(sub(center, origin), unit)
    foot = add(origin, scale(unit, t))
    h = distance(center, foot)
    if h > radius + EPS:
        return []
    if abs(h - radius) <= EPS:
        return [foot]
    half = math.sqrt(max(radius * radius - h * h, 0.0))
    return [add(foot, scale(unit, -half)), add(foot, scale(unit, half))]


def _circle_circle(a, b):
    ca, ra = _circle_carrier(a)
    cb, rb = _circle_carrier(b)
    d = distance(ca, cb)
    if d <= EPS and abs(ra - rb) <= EPS:
        return _cocircular_overlap(a, b)
    if d > ra + rb + EPS or d < abs(ra - rb) - EPS or d == 0:
        return []
    along = (d * d + ra * ra - rb * rb) / (2 * d)
    unit = scale(sub(cb, ca), 1.0 / d)
    base = add(ca, scale(unit, along))
    h_sq = ra * ra - along * along
    if h_sq <= EPS * EPS or abs(d - (ra + rb)) <= EPS or abs(d - abs(ra - rb)) <= EPS:
        return [base]
    h = math.sqrt(h_sq)
    normal = (-unit[1], unit[0])
    return [add(base, scale(normal, h)), add(base, scale(normal, -h))]


def _cocircular_overlap(a, b):
    closed_a = isinstance(a, (Circle, FullCircle))
    closed_b = isinstance(b, (Circle, FullCircle))
    if closed_a or closed_b:
        if a.radius <= EPS:
            return [a.center]
        return [Overlap(a, b)]
    # two arcs on the same circle
    if _strictly_inside(a, b.start) or _strictly_inside(a, b.end):
        return [Overlap(a, b)]
    if _strictly_inside(b, a.start) or _strictly_inside(b, a.end):
        return [Overlap(a, b)]
    if is_approximately(a.start, b.start) and is_approximately(a.end, b.end):
        return [Overlap(a, b)]
    if is_approximately(a.start, b.end) and is_approximately(a.end, b.start):
        if a.clockwise != b.clockwise:
            return [Overlap(a, b)]
    shared = []
    for p in (a.start, a.end):
        if is_approximately(p, b.start) or is_approximately(p, b.end):
            if not any(is_approximately(p, q) for q in shared):
                shared.append(p)
    return shared


def _strictly_inside(arc, p):
    if is_approximately(p, arc.start) or is_approximately(p, arc.end):
        return False
    return arc.in_sector(p, eps=0.0)


def intersect(a, b, closed=True):
    """
    Intersect two shapes.

    Args:
        a, b: Segment, Arc, FullCircle, Circle or Line
        closed: when False, points at endpoints of oriented operands are dropped

    Returns:
        List of points, possibly containing a single Overlap marker
    """
    if _is_linear(a) and _is_linear(b):
        raw = _line_line(a, b)
    elif _is_linear(a):
        raw = _line_circle(a, b)
    elif _is_linear(b):
        raw = _line_circle(b, a)
    else:
        raw = _circle_circle(a, b)

    result = []
    for item in raw:
        if not is_point(item):
            result.append(item)
            continue
        if not (_on_shape(a, item) and _on_shape(b, item)):
            continue
        if not closed and _touches_endpoint(a, b, item):
            continue
        if any(is_point(q) and is_approximately(q, item) for q in result):
            continue
        result.append(item)
    return result


def _touches_endpoint(a, b, p):
    for shape in (a, b):
        if not _is_oriented(shape):
            continue
        if is_approximately(p, shape.start) or is_approximately(p, shape.end):
            return True
    return False


def closest_points(curve, circle):
    """
    Closest pair between a curve piece and a circle boundary.

    Returns:
        (point on curve, point on circle); a shared point when they meet
    """
    hits = intersect(curve, circle, closed=True)
    for item in hits:
        if is_point(item):
            return item, item
        return curve.start, curve.start

    if isinstance(curve, Segment):
        candidates = [curve.closest_point(circle.center), curve.start, curve.end]
    else:
        candidates = [curve.start, curve.end]
        arm = sub(circle.center, curve.center)
        if length(arm) > 0:
            unit = normalize(arm)
            for sign in (1, -1):
                q = add(curve.center, scale(unit, sign * curve.radius))
                if curve.in_sector(q):
                    candidates.append(q)
    best = min(candidates, key=circle.distance_to)
    return best, circle.closest_point(best)
