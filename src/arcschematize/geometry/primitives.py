"""
Planar geometry primitives for arc schematization.

Points are (x, y) float tuples; sampled polylines are (n, 2) arrays. Curve pieces are a small tagged variant:
Segment, Arc and FullCircle, all exposing the same query surface so callers
never need to special-case straight or closed geometry. Circle and Line are
helper shapes used for crossing disks and extension searches.
"""

import math

import numpy as np

EPS = 1e-6


# Point arithmetic

def point(x, y):
    """Create a point as a float tuple."""
    return (float(x), float(y))


def _as_point(v):
    return (float(v[0]), float(v[1]))


def add(a, b):
    return _as_point(np.add(a, b))


def sub(a, b):
    return _as_point(np.subtract(a, b))


def scale(v, s):
    return _as_point(np.multiply(v, s))


def dot(a, b):
    return float(np.dot(a, b))


def cross(a, b):
    """z component of the cross product of two planar vectors."""
    return float(a[0] * b[1] - a[1] * b[0])


def length(v):
    return float(np.linalg.norm(v))


def distance(a, b):
    return float(np.linalg.norm(np.subtract(a, b)))


def normalize(v):
    """Return v scaled to unit length (zero vectors are returned unchanged)."""
    n = length(v)
    if n == 0:
        return v
    return _as_point(np.divide(v, n))


def invert(v):
    return (-v[0], -v[1])


def rotation_matrix(angle):
    c = np.cos(angle)
    s = np.sin(angle)
    return np.array([[c, -s], [s, c]])


def rotate(v, angle):
    """Rotate v counterclockwise by angle radians."""
    return _as_point(rotation_matrix(angle) @ np.asarray(v, dtype=np.float64))


def rotate90_ccw(v):
    return (-v[1], v[0])


def rotate90_cw(v):
    return (v[1], -v[0])


def is_approximately(a, b, eps=EPS):
    return abs(a[0] - b[0]) <= eps and abs(a[1] - b[1]) <= eps


def ccw_angle(a, b):
    """Counterclockwise angle from direction a to direction b, in [0, 2pi)."""
    angle = math.atan2(cross(a, b), dot(a, b))
    if angle < 0:
        angle += 2 * math.pi
    if angle >= 2 * math.pi:
        angle -= 2 * math.pi
    return angle


def cw_angle(a, b):
    """Clockwise angle from direction a to direction b, in [0, 2pi)."""
    angle = ccw_angle(a, b)
    if angle == 0:
        return 0.0
    return 2 * math.pi - angle


def sample_circular(center, start, end, angle, extra):
    """
    Points along a circular piece turning `angle` radians from start to end.

    Returns:
        (extra + 2, 2) array with the exact endpoints first and last
    """
    angles = np.linspace(0.0, angle, extra + 2)
    c = np.cos(angles)
    s = np.sin(angles)
    ax, ay = np.subtract(start, center)
    pts = np.column_stack([center[0] + c * ax - s * ay, center[1] + s * ax + c * ay])
    pts[0] = start
    pts[-1] = end
    return pts


# Helper shapes

class Circle:
    """A circle given by center and radius."""

    __slots__ = ("center", "radius")

    def __init__(self, center, radius):
        self.center = center
        self.radius = radius

    def contains(self, p, eps=EPS):
        return distance(self.center, p) <= self.radius + eps

    def closest_point(self, p):
        d = sub(p, self.center)
        if length(d) == 0:
            return add(self.center, (0.0, self.radius))
        return add(self.center, scale(normalize(d), self.radius))

    def distance_to(self, p):
        """Distance from p to the circle boundary."""
        return abs(distance(self.center, p) - self.radius)

    def __repr__(self):
        return f"Circle({self.center}, r={self.radius:.6g})"


class Line:
    """An infinite line through a point with a direction."""

    __slots__ = ("origin", "direction")

    def __init__(self, origin, direction):
        self.origin = origin
        self.direction = direction

    @classmethod
    def through(cls, a, b):
        return cls(a, sub(b, a))

    @classmethod
    def perpendicular_at(cls, p, direction):
        return cls(p, rotate90_ccw(direction))

    def __repr__(self):
        return f"Line({self.origin}, dir={self.direction})"


# Curve pieces

class Segment:
    """A straight piece from start to end."""

    __slots__ = ("start", "end")

    kind = "segment"
    center = None
    clockwise = False

    def __init__(self, start, end):
        self.start = start
        self.end = end

    @property
    def radius(self):
        return math.inf

    @property
    def central_angle(self):
        return 0.0

    @property
    def perimeter(self):
        return distance(self.start, self.end)

    @property
    def start_tangent(self):
        return sub(self.end, self.start)

    @property
    def end_tangent(self):
        return sub(self.end, self.start)

    def point_at(self, t):
        return add(self.start, scale(sub(self.end, self.start), t))

    def closest_point(self, p):
        d = sub(self.end, self.start)
        sq = dot(d, d)
        if sq == 0:
            return self.start
        t = dot(sub(p, self.start), d) / sq
        t = max(0.0, min(1.0, t))
        return self.point_at(t)

    def distance_to(self, p):
        return distance(p, self.closest_point(p))

    def distance_along(self, p, from_start=True):
        if from_start:
            return distance(self.start, p)
        return distance(p, self.end)

    def with_endpoints(self, start, end):
        return Segment(start, end)

    def reversed(self):
        return Segment(self.end, self.start)

    def sample(self, extra=0):
        """Start, `extra` evenly spaced interior points and end, as an (n, 2) array."""
        t = np.linspace(0.0, 1.0, extra + 2)[:, None]
        start = np.asarray(self.start, dtype=np.float64)
        pts = start + t * (np.asarray(self.end, dtype=np.float64) - start)
        pts[-1] = self.end
        return pts

    def __repr__(self):
        return f"Segment({self.start} -> {self.end})"


class Arc:
    """A circular arc from start to end around center."""

    __slots__ = ("center", "start", "end", "clockwise")

    kind = "arc"

    def __init__(self, center, start, end, clockwise):
        self.center = center
        self.start = start
        self.end = end
        self.clockwise = clockwise

    @property
    def radius(self):
        return distance(self.start, self.center)

    @property
    def central_angle(self):
        a = sub(self.start, self.center)
        b = sub(self.end, self.center)
        if self.clockwise:
            return -cw_angle(a, b)
        return ccw_angle(a, b)

    @property
    def perimeter(self):
        return self.radius * abs(self.central_angle)

    @property
    def start_tangent(self):
        arm = sub(self.start, self.center)
        return rotate90_cw(arm) if self.clockwise else rotate90_ccw(arm)

    @property
    def end_tangent(self):
        arm = sub(self.end, self.center)
        return rotate90_cw(arm) if self.clockwise else rotate90_ccw(arm)

    def point_at(self, t):
        arm = sub(self.start, self.center)
        return add(self.center, rotate(arm, self.central_angle * t))

    def _sweep_to(self, p):
        arm = sub(self.start, self.center)
        v = sub(p, self.center)
        return cw_angle(arm, v) if self.clockwise else ccw_angle(arm, v)

    def in_sector(self, p, eps=EPS):
        """Whether p lies in the angular range swept by the arc."""
        if is_approximately(p, self.start, eps) or is_approximately(p, self.end, eps):
            return True
        r = self.radius
        tolerance = eps / r if r > 0 else 0.0
        return self._sweep_to(p) <= abs(self.central_angle) + tolerance

    def closest_point(self, p):
        v = sub(p, self.center)
        if length(v) == 0:
            return self.start
        if self.in_sector(p, eps=0.0):
            return add(self.center, scale(normalize(v), self.radius))
        if distance(p, self.start) <= distance(p, self.end):
            return self.start
        return self.end

    def distance_to(self, p):
        return distance(p, self.closest_point(p))

    def distance_along(self, p, from_start=True):
        a = sub(self.start, self.center) if from_start else sub(p, self.center)
        b = sub(p, self.center) if from_start else sub(self.end, self.center)
        sweep = cw_angle(a, b) if self.clockwise else ccw_angle(a, b)
        return self.radius * sweep

    def with_endpoints(self, start, end):
        return Arc(self.center, start, end, self.clockwise)

    def reversed(self):
        return Arc(self.center, self.end, self.start, not self.clockwise)

    def sample(self, extra=0):
        return sample_circular(self.center, self.start, self.end, self.central_angle, extra)

    def __repr__(self):
        direction = "cw" if self.clockwise else "ccw"
        return f"Arc({self.start} -> {self.end}, c={self.center}, {direction})"


class FullCircle:
    """A closed circle starting and ending at a single point."""

    __slots__ = ("center", "point", "clockwise")

    kind = "full_circle"

    def __init__(self, center, point, clockwise):
        self.center = center
        self.point = point
        self.clockwise = clockwise

    @property
    def start(self):
        return self.point

    @property
    def end(self):
        return self.point

    @property
    def radius(self):
        return distance(self.point, self.center)

    @property
    def central_angle(self):
        return -2 * math.pi if self.clockwise else 2 * math.pi

    @property
    def perimeter(self):
        return 2 * math.pi * self.radius

    @property
    def start_tangent(self):
        arm = sub(self.point, self.center)
        return rotate90_cw(arm) if self.clockwise else rotate90_ccw(arm)

    @property
    def end_tangent(self):
        return self.start_tangent

    def circle(self):
        return Circle(self.center, self.radius)

    def point_at(self, t):
        arm = sub(self.point, self.center)
        return add(self.center, rotate(arm, self.central_angle * t))

    def in_sector(self, p, eps=EPS):
        return True

    def closest_point(self, p):
        return self.circle().closest_point(p)

    def distance_to(self, p):
        return self.circle().distance_to(p)

    def distance_along(self, p, from_start=True):
        a = sub(self.point, self.center) if from_start else sub(p, self.center)
        b = sub(p, self.center) if from_start else sub(self.point, self.center)
        sweep = cw_angle(a, b) if self.clockwise else ccw_angle(a, b)
        return self.radius * sweep

    def with_endpoints(self, start, end):
        return FullCircle(self.center, start, self.clockwise)

    def reversed(self):
        return FullCircle(self.center, self.point, not self.clockwise)

    def sample(self, extra=0):
        return sample_circular(self.center, self.point, self.point, self.central_angle, extra)

    def __repr__(self):
        direction = "cw" if self.clockwise else "ccw"
        return f"FullCircle(c={self.center}, p={self.point}, {direction})"


CURVE_TYPES = (Segment, Arc, FullCircle)


def is_straight(curve):
    return isinstance(curve, Segment)


def make_curve(start, end, center=None, clockwise=False, full_circle=False):
    """Build the curve variant matching a stored arc description."""
    if full_circle:
        return FullCircle(center, start, clockwise)
    if center is None:
        return Segment(start, end)
    return Arc(center, start, end, clockwise)


# Constructors

def circumcenter(a, b, c):
    """Center of the circle through three points, or None when collinear."""
    d = 2 * (a[0] * (b[1] - c[1]) + b[0] * (c[1] - a[1]) + c[0] * (a[1] - b[1]))
    scale_ref = max(distance(a, b), distance(b, c), distance(a, c), 1.0)
    if abs(d) < EPS * EPS * scale_ref:
        return None
    a2 = dot(a, a)
    b2 = dot(b, b)
    c2 = dot(c, c)
    ux = (a2 * (b[1] - c[1]) + b2 * (c[1] - a[1]) + c2 * (a[1] - b[1])) / d
    uy = (a2 * (c[0] - b[0]) + b2 * (a[0] - c[0]) + c2 * (b[0] - a[0])) / d
    return (ux, uy)


def arc_through_point(start, via, end):
    """
    Arc from start through via to end.

    Falls back to a straight segment when the three points are collinear.
    """
    orientation = cross(sub(via, start), sub(end, via))
    if abs(orientation) < EPS * EPS:
        return Segment(start, end)
    center = circumcenter(start, via, end)
    if center is None:
        return Segment(start, end)
    return Arc(center, start, end, orientation < 0)


def arc_from_start_tangent(start, tangent, end):
    """
    Arc leaving start in the given tangent direction and ending at end.

    A tangent parallel to the chord yields a straight segment.
    """
    chord = sub(end, start)
    normal = rotate90_ccw(normalize(tangent))
    denom = 2 * dot(normal, chord)
    if abs(denom) < EPS * EPS:
        return Segment(start, end)
    lam = dot(chord, chord) / denom
    center = add(start, scale(normal, lam))
    return Arc(center, start, end, lam < 0)


def circle_by_diametric_points(a, b):
    center = scale(add(a, b), 0.5)
    return Circle(center, distance(a, b) / 2)


def circle_by_three_points(a, b, c):
    center = circumcenter(a, b, c)
    if center is None:
        return None
    return Circle(center, distance(center, a))
