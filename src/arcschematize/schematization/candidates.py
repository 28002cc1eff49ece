"""
Candidate replacements for a bend vertex.

Three generators cover the cases a vertex can be in:
- general bends sweep a fixed list of tangent deviations around the chord,
- bends next to a fixed crossing route the arc through (or near) its disk,
- the last bend of a circular stroke closes into a full circle.
Candidates are ranked by their Fréchet distance to the station chain the two
arcs replace, keeping only the best few.
"""

import math

from arcschematize.geometry.intersect import intersect, points_only
from arcschematize.geometry.primitives import (
    EPS,
    Circle,
    FullCircle,
    Line,
    arc_from_start_tangent,
    arc_through_point,
    distance,
    normalize,
    rotate,
    sub,
)
from arcschematize.network.crossing import is_extensible, is_movable
from arcschematize.tracer import Diagnostics

# arc samples per radian of turning
SAMPLES_PER_RADIAN = 80.0 / math.pi


def candidate_angles(steps):
    """
    Symmetric tangent deviations tried for general bends.

    Returns:
        [0, s, -s, 2s, -2s, ...] with s = 1.8 pi / (steps - 1), below 0.95 pi
    """
    if steps < 2:
        return [0.0]
    step = 1.8 * math.pi / (steps - 1)
    angles = [0.0]
    angle = step
    while angle < math.pi * 0.95:
        angles.append(angle)
        angles.append(-angle)
        angle += step
    return angles


def construct_candidate(start, end, angle):
    """Arc from start to end whose start tangent deviates `angle` from the chord."""
    tangent = normalize(rotate(sub(end, start), angle))
    return arc_from_start_tangent(start, tangent, end)


def insert_sorted(best, curve, dist):
    """
    Insert a candidate into a fixed-size list sorted by distance.

    Args:
        best: List of (curve, distance) or None, best first; modified in place
    """
    if best[-1] is not None and dist >= best[-1][1]:
        return
    best[-1] = (curve, dist)
    for i in range(len(best) - 2, -1, -1):
        if best[i] is None:
            best[i] = best[i + 1]
            best[i + 1] = None
        elif best[i + 1][1] < best[i][1]:
            best[i], best[i + 1] = best[i + 1], best[i]
        else:
            break


class CandidateGenerator:
    """
    Ranks replacement curves for bends of one network.

    Args:
        network: StrokeNetwork
        frechet: FrechetDistance engine
        config: SchematizationConfig
        max_cross_dist: Largest allowed displacement of a crossing
        diagnostics: Optional Diagnostics recorder
    """

    def __init__(self, network, frechet, config, max_cross_dist, diagnostics=None):
        self.network = network
        self.frechet = frechet
        self.num_candidates = config.num_candidates
        self.straight_reduction = config.straight_reduction
        self.angles = candidate_angles(config.angle_steps)
        self.max_cross_dist = max_cross_dist
        self.diagnostics = diagnostics or Diagnostics()

    def original_polyline(self, vertex_id):
        """Station positions along both arcs of a vertex, in stroke order."""
        network = self.network
        vertex = network.vertices[vertex_id]
        inc = network.arc_original_positions(vertex.incoming)
        out = network.arc_original_positions(vertex.outgoing)
        return inc + out[1:]

    def compute_distance(self, curve, original):
        """Fréchet distance from the original polyline to a sampled curve."""
        extra = 0
        if curve.center is not None:
            extra = int(math.ceil(SAMPLES_PER_RADIAN * abs(curve.central_angle)))
        dist = self.frechet.compute(original, curve.sample(extra))
        if curve.center is None:
            dist *= self.straight_reduction
        return dist

    def precheck(self, curve, fraction, original, to_beat):
        """Whether some original point is closer than `to_beat` to the curve point at `fraction`."""
        p = curve.point_at(fraction)
        return any(distance(v, p) < to_beat for v in original)

    def make_candidates(self, vertex_id):
        """
        Best replacements for the two arcs at a vertex.

        Returns:
            List of (curve, cost) sorted by cost, or None when the stroke has
            no other vertex
        """
        network = self.network
        vertex = network.vertices[vertex_id]
        start = network.previous_vertex(vertex_id)
        end = network.next_vertex(vertex_id)
        if end == vertex_id:
            return None

        best = [None] * self.num_candidates
        original = self.original_polyline(vertex_id)

        if start == end:
            self.diagnostics.debug("circle candidates")
            self._circle_candidates(vertex_id, start, best, original)
        elif vertex.cross_id is not None and not is_extensible(network, network.crosses[vertex.cross_id]):
            self.diagnostics.debug("cross candidates")
            self._cross_candidates(network.crosses[vertex.cross_id], start, end, best, original)
        else:
            crossed = False
            for arc_id in (vertex.incoming, vertex.outgoing):
                for cross_id in network.arcs[arc_id].virtuals:
                    cross = network.crosses[cross_id]
                    if not is_extensible(network, cross) and not is_movable(cross):
                        crossed = True
                        self._cross_candidates(cross, start, end, best, original)
                if crossed:
                    break
            if not crossed:
                self._angle_candidates(start, end, best, original)

        return [b for b in best if b is not None]

    def _angle_candidates(self, start_id, end_id, best, original):
        start = self.network.vertices[start_id].position
        end = self.network.vertices[end_id].position
        for angle in self.angles:
            curve = construct_candidate(start, end, angle)
            if best[-1] is not None and not self.precheck(curve, 0.5, original, best[-1][1]):
                continue
            insert_sorted(best, curve, self.compute_distance(curve, original))

    def _cross_candidates(self, cross, start_id, end_id, best, original):
        start = self.network.vertices[start_id].position
        end = self.network.vertices[end_id].position
        center = cross.disk_center

        through_center = arc_through_point(start, center, end)
        self.diagnostics.record("cross candidate", through_center)
        insert_sorted(best, through_center, self.compute_distance(through_center, original))

        # offsets to either side are only possible when the crossing is away from both ends
        if distance(center, start) <= self.max_cross_dist or distance(center, end) <= self.max_cross_dist:
            return
        limit = Circle(center, self.max_cross_dist * 0.975)
        if through_center.center is None:
            line = Line.perpendicular_at(center, sub(end, start))
        else:
            line = Line.through(center, through_center.center)
        for via in points_only(intersect(line, limit)):
            curve = arc_through_point(start, via, end)
            self.diagnostics.record("cross candidate", curve)
            insert_sorted(best, curve, self.compute_distance(curve, original))

    def _circle_candidates(self, vertex_id, other_id, best, original):
        network = self.network
        vertex = network.vertices[vertex_id]
        other = network.vertices[other_id]

        # ordered along the stroke: other, incoming arc, vertex, outgoing arc
        constraints = []
        if other.cross_id is not None:
            constraints.append(network.crosses[other.cross_id].disk_center)
        for cross_id in network.arcs[vertex.incoming].virtuals:
            if not is_extensible(network, network.crosses[cross_id]):
                constraints.append(network.crosses[cross_id].disk_center)
        if vertex.cross_id is not None:
            constraints.append(network.crosses[vertex.cross_id].disk_center)
        for cross_id in network.arcs[vertex.outgoing].virtuals:
            if not is_extensible(network, network.crosses[cross_id]):
                constraints.append(network.crosses[cross_id].disk_center)

        if not constraints:
            constraints = [vertex.position, other.position]
        elif len(constraints) == 1:
            constraints.append(vertex.position if other.cross_id is not None else other.position)

        c1, c2 = constraints[0], constraints[1]
        rest = constraints[2:]
        if not rest:
            for angle in self.angles:
                oa = construct_candidate(c1, c2, angle)
                if oa.center is None:
                    # no infinitely large circles
                    continue
                circle = self._full_circle(oa, other.position)
                if best[-1] is not None and not self.precheck(circle, 0.5, original, best[-1][1]):
                    continue
                insert_sorted(best, circle, self.compute_distance(circle, original))
            return

        oa = arc_through_point(c1, c2, rest[0])
        if oa.center is None:
            return
        circle = self._full_circle(oa, other.position)
        for v in rest[1:]:
            if circle.distance_to(v) > self.max_cross_dist - EPS:
                return
        insert_sorted(best, circle, self.compute_distance(circle, original))

    @staticmethod
    def _full_circle(oa, anchor):
        """Full circle on the carrier of `oa`, starting nearest to anchor."""
        carrier = Circle(oa.center, oa.radius)
        return FullCircle(oa.center, carrier.closest_point(anchor), oa.clockwise)
