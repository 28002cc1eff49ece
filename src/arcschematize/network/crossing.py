"""
Crossing semantics.

A crossing is where two or more strokes meet. Each participating stroke is
either concrete (one of its vertices sits at the crossing) or virtual (one of
its arcs passes through). The crossing disk is the smallest disk enclosing
every point that witnesses the crossing: pairwise intersections of the
participating arcs, concrete vertex positions, and closest-approach points of
strokes that do not intersect the others here.
"""

from arcschematize.geometry.enclosing_disk import smallest_enclosing_disk
from arcschematize.geometry.intersect import intersect, points_only
from arcschematize.geometry.primitives import EPS, distance
from arcschematize.network.network import InternalConsistencyError


def strokes_of(cross):
    return list(dict.fromkeys(cross.strokes))


def extending_arc(network, cross):
    """
    The arc of a stroke ending at a degree-3 crossing, if any.

    A crossing with exactly two participating strokes where one of them ends
    here can be resolved by extending that stroke's last arc.
    """
    if len(cross.concrete) + len(cross.virtual) != 2:
        return None
    for vid in cross.concrete.values():
        vertex = network.vertices[vid]
        if vertex.incoming is None:
            return vertex.outgoing
        if vertex.outgoing is None:
            return vertex.incoming
    return None


def is_extensible(network, cross):
    return extending_arc(network, cross) is not None


def is_movable(cross):
    """Two strokes, both only passing through: the crossing may drift."""
    return not cross.concrete and len(cross.virtual) == 2


def extensible_vertex(network, cross):
    """The concrete vertex that is a stroke endpoint, if any."""
    for vid in cross.concrete.values():
        if network.vertices[vid].is_endpoint:
            return vid
    return None


def incident_arcs(network, cross):
    """Arcs at concrete vertices followed by arcs passing through."""
    arcs = []
    for vid in cross.concrete.values():
        vertex = network.vertices[vid]
        if vertex.incoming is not None:
            arcs.append(vertex.incoming)
        if vertex.outgoing is not None:
            arcs.append(vertex.outgoing)
    arcs.extend(cross.virtual.values())
    return arcs


def replace_stroke(cross, old_stroke, new_stroke):
    """Move the participation of one stroke over to another."""
    if old_stroke in cross.concrete:
        cross.concrete[new_stroke] = cross.concrete.pop(old_stroke)
    if old_stroke in cross.virtual:
        cross.virtual[new_stroke] = cross.virtual.pop(old_stroke)
    if old_stroke in cross.virtual_pos:
        cross.virtual_pos[new_stroke] = cross.virtual_pos.pop(old_stroke)


def change_stroke(network, cross, stroke_id, arc_id):
    """
    Make a stroke participate virtually through the given arc.

    The disk is recomputed and the stroke's virtual position set to the
    arc's closest point to the new disk center.
    """
    cross.concrete.pop(stroke_id, None)
    cross.virtual[stroke_id] = arc_id
    compute_smallest_disc(network, cross)
    curve = network.arc_geometry(arc_id)
    cross.virtual_pos[stroke_id] = curve.closest_point(cross.disk_center)


def _owned_intersection(network, cross, guess, p, s_curve, t_curve, s_virtuals, t_virtuals):
    """
    Whether an intersection of two arcs witnesses this crossing.

    Endpoint touches never count; a point closer to another crossing that
    both arcs pass through belongs to that crossing instead.
    """
    for curve in (s_curve, t_curve):
        if distance(curve.start, p) <= EPS or distance(curve.end, p) <= EPS:
            return False
    guess_distance = distance(guess, p)
    for other in s_virtuals:
        if other != cross.cross_id and other in t_virtuals:
            if distance(network.crosses[other].disk_center, p) < guess_distance:
                return False
    return True


def compute_smallest_disc(network, cross):
    """Recompute intersections, virtual positions and the disk of a crossing."""
    cross.intersections = []
    arcs = incident_arcs(network, cross)
    remaining = dict.fromkeys(cross.strokes)
    guess = cross.disk_center

    curves = [network.arc_geometry(aid) for aid in arcs]
    for i in range(len(arcs)):
        s = network.arcs[arcs[i]]
        for j in range(i + 1, len(arcs)):
            t = network.arcs[arcs[j]]
            for p in points_only(intersect(curves[i], curves[j], closed=True)):
                if not _owned_intersection(network, cross, guess, p, curves[i], curves[j], s.virtuals, t.virtuals):
                    continue
                cross.intersections.append(p)
                cross.virtual_pos[s.stroke_id] = p
                cross.virtual_pos[t.stroke_id] = p
                remaining.pop(s.stroke_id, None)
                remaining.pop(t.stroke_id, None)

    positions = list(cross.intersections)
    positions.extend(network.vertices[vid].position for vid in cross.concrete.values())
    for stroke_id in cross.concrete:
        remaining.pop(stroke_id, None)
    if not positions:
        positions.append(cross.disk_center)

    for stroke_id in remaining:
        curve = network.arc_geometry(cross.virtual[stroke_id])
        best = _closest_approach(curve, positions)
        cross.virtual_pos[stroke_id] = best
        positions.append(best)

    disk = smallest_enclosing_disk(positions)
    if disk is None:
        raise InternalConsistencyError(f"Crossing {cross.cross_id} has no witnessing points")
    cross.set_disk(disk)
    return disk


def _closest_approach(curve, positions):
    """Point of the curve nearest to any of the positions."""
    best = None
    best_distance = float("inf")
    for v in positions:
        q = curve.closest_point(v)
        d = distance(q, v)
        if d < best_distance:
            best_distance = d
            best = q
    return best


def smallest_disc_after_replacement(network, cross, arc1, arc2, replacement):
    """
    The disk this crossing would get if arc1 and arc2 were replaced.

    Args:
        arc1, arc2: Consecutive arcs of one stroke (ids) about to be merged
        replacement: Curve piece replacing both

    Returns:
        Circle; the crossing itself is not modified
    """
    hyp = {arc1, arc2}
    stroke_id = network.arcs[arc1].stroke_id
    if network.arcs[arc2].stroke_id != stroke_id:
        raise InternalConsistencyError(f"Arcs {arc1} and {arc2} belong to different strokes")

    entries = []
    for aid in incident_arcs(network, cross):
        if aid in hyp:
            continue
        arc = network.arcs[aid]
        entries.append((network.arc_geometry(aid), arc.stroke_id, arc.virtuals))
    merged_virtuals = network.arcs[arc1].virtuals + network.arcs[arc2].virtuals
    entries.append((replacement, stroke_id, merged_virtuals))

    remaining = dict.fromkeys(cross.strokes)
    guess = cross.disk_center
    positions = []
    for i in range(len(entries)):
        s_curve, s_stroke, s_virtuals = entries[i]
        for j in range(i + 1, len(entries)):
            t_curve, t_stroke, t_virtuals = entries[j]
            for p in points_only(intersect(s_curve, t_curve, closed=True)):
                if not _owned_intersection(network, cross, guess, p, s_curve, t_curve, s_virtuals, t_virtuals):
                    continue
                positions.append(p)
                remaining.pop(s_stroke, None)
                remaining.pop(t_stroke, None)

    for other_stroke, vid in cross.concrete.items():
        vertex = network.vertices[vid]
        if vertex.incoming == arc1 and vertex.outgoing == arc2:
            # the vertex disappears; the stroke passes through on the replacement
            continue
        remaining.pop(other_stroke, None)
        positions.append(vertex.position)
    if not positions:
        positions.append(cross.disk_center)

    for other_stroke in remaining:
        aid = cross.virtual.get(other_stroke)
        if other_stroke == stroke_id and (aid is None or aid in hyp):
            curve = replacement
        else:
            curve = network.arc_geometry(aid)
        best = _closest_approach(curve, positions)
        positions.append(best)

    return smallest_enclosing_disk(positions)
