"""
Extension points for arcs ending at extensible crossings.

When a stroke ends at a crossing with the stroke being simplified, its last
arc must keep touching the simplified stroke after the replacement. The arc
is moved along its own supporting line or circle to where that carrier meets
the replacement. Among the (at most two) carrier intersections the one
nearest the moving end is taken, but never one that would slide past a
crossing the arc already passes through.
"""

from arcschematize.geometry.intersect import intersect, is_point
from arcschematize.geometry.primitives import (
    EPS,
    Circle,
    Line,
    ccw_angle,
    cw_angle,
    dot,
    sub,
)
from arcschematize.network.network import InternalConsistencyError


def _carrier(curve):
    if curve.center is None:
        return Line.through(curve.start, curve.end)
    return Circle(curve.center, curve.radius)


def _carrier_hits(replacement, curve):
    """Up to two carrier intersections with the replacement, or None."""
    hits = intersect(replacement, _carrier(curve), closed=False)
    if not hits or not is_point(hits[0]):
        return None
    if len(hits) > 1 and not is_point(hits[1]):
        return None
    return hits[0], hits[1] if len(hits) > 1 else None


def _crossing_mark(network, arc, cross_id, vertex, replacement, vec0, vec1, from_start):
    """
    Where the arc meets the given crossing after the replacement.

    Crossings shared with the simplified stroke move onto the replacement;
    others stay at the arc's recorded virtual position.
    """
    cross = network.crosses[cross_id]
    mark = cross.virtual_pos.get(arc.stroke_id)
    on_operation = vertex.incoming in cross.virtual.values() or vertex.outgoing in cross.virtual.values()
    if on_operation:
        if vec1 is not None and replacement.distance_along(vec1, from_start) < replacement.distance_along(vec0, from_start):
            mark = vec1
        else:
            mark = vec0
    if mark is None:
        raise InternalConsistencyError(f"Crossing {cross_id} has no position for stroke {arc.stroke_id}")
    return mark


def _measure(curve, at_start):
    """Monotone distance measure from the fixed end towards the moving end."""
    if curve.center is None:
        if at_start:
            origin, direction = curve.end, sub(curve.start, curve.end)
        else:
            origin, direction = curve.start, sub(curve.end, curve.start)
        return lambda p: dot(sub(p, origin), direction)

    ref = sub(curve.end, curve.center) if at_start else sub(curve.start, curve.center)
    # sweeping from the end back to the start runs against the arc direction
    backwards = at_start
    sweep = ccw_angle if curve.clockwise == backwards else cw_angle
    center = curve.center
    return lambda p: sweep(ref, sub(p, center))


def _find_extension(network, arc_id, replacement, vertex_id, at_start):
    arc = network.arcs[arc_id]
    vertex = network.vertices[vertex_id]
    curve = network.arc_geometry(arc_id)
    hits = _carrier_hits(replacement, curve)
    if hits is None:
        return None
    vec0, vec1 = hits

    measure = _measure(curve, at_start)
    lower = EPS
    for cross_id in arc.virtuals:
        mark = _crossing_mark(network, arc, cross_id, vertex, replacement, vec0, vec1, not at_start)
        lower = max(lower, measure(mark) + EPS)

    closest = None
    best = float("inf")
    for p in (vec0, vec1):
        if p is None:
            continue
        m = measure(p)
        if lower < m < best:
            best = m
            closest = p
    return closest


def find_start_extension(network, arc_id, replacement, vertex_id):
    """
    New start point for an arc whose start vertex is extensible.

    Args:
        network: StrokeNetwork
        arc_id: Arc whose start must move
        replacement: Candidate curve of the operation
        vertex_id: Vertex removed by the operation

    Returns:
        Point, or None when no admissible point exists
    """
    return _find_extension(network, arc_id, replacement, vertex_id, at_start=True)


def find_end_extension(network, arc_id, replacement, vertex_id):
    """New end point for an arc whose end vertex is extensible."""
    return _find_extension(network, arc_id, replacement, vertex_id, at_start=False)


def _location(network, cross_id, vertex):
    """-1 on the incoming arc, 0 at the vertex, 1 on the outgoing arc."""
    if cross_id is not None and cross_id == vertex.cross_id:
        return 0
    if cross_id in network.arcs[vertex.incoming].virtuals:
        return -1
    if cross_id in network.arcs[vertex.outgoing].virtuals:
        return 1
    raise InternalConsistencyError(f"Crossing {cross_id} is not on the stroke of vertex {vertex.vertex_id}")


def find_double_extension(network, arc_id, replacement, vertex_id):
    """
    New endpoints for an arc with both ends extensible.

    Both carrier intersections are needed; they are assigned to the arc's
    start and end in the order the crossings occur along the simplified
    stroke. The re-ended arc must still pass through every crossing it
    already passes through.

    Returns:
        (start point, end point), or None
    """
    arc = network.arcs[arc_id]
    vertex = network.vertices[vertex_id]
    curve = network.arc_geometry(arc_id)
    hits = intersect(replacement, _carrier(curve), closed=False)
    if len(hits) <= 1 or not is_point(hits[0]) or not is_point(hits[1]):
        return None
    vec0, vec1 = hits[0], hits[1]
    if replacement.distance_along(vec0, True) < replacement.distance_along(vec1, True):
        first, second = vec0, vec1
    else:
        first, second = vec1, vec0

    start_cross = network.vertices[arc.start].cross_id
    end_cross = network.vertices[arc.end].cross_id
    start_loc = _location(network, start_cross, vertex)
    end_loc = _location(network, end_cross, vertex)

    if start_loc != end_loc:
        start_before_end = start_loc < end_loc
    elif start_loc == 0:
        start_before_end = True
    else:
        along = network.arc_geometry(vertex.incoming if start_loc == -1 else vertex.outgoing)
        pos_start = network.crosses[start_cross].virtual_pos[vertex.stroke_id]
        pos_end = network.crosses[end_cross].virtual_pos[vertex.stroke_id]
        start_before_end = along.distance_along(pos_start, True) < along.distance_along(pos_end, True)

    ends = (first, second) if start_before_end else (second, first)
    moved = curve.with_endpoints(ends[0], ends[1])
    for cross_id in arc.virtuals:
        if moved.distance_to(network.crosses[cross_id].virtual_pos[arc.stroke_id]) > EPS:
            return None
    return ends
