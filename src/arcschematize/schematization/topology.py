"""
Topology checks for candidate operations.

An operation is admissible only if the replacement creates no intersection
that is not a tracked crossing, every crossing it touches stays close to its
disk, and the cyclic order of strokes around each affected crossing is
unchanged. Violations are recorded as block reasons on the operation.
"""

from enum import Enum

from arcschematize.geometry.intersect import intersect, is_point, points_only
from arcschematize.geometry.primitives import (
    EPS,
    Circle,
    ccw_angle,
    distance,
    invert,
    normalize,
    rotate90_ccw,
    rotate90_cw,
    sub,
)
from arcschematize.network.crossing import (
    extending_arc,
    incident_arcs,
    is_extensible,
    is_movable,
    smallest_disc_after_replacement,
)
from arcschematize.schematization.extension import (
    find_double_extension,
    find_end_extension,
    find_start_extension,
)
from arcschematize.tracer import Diagnostics

ORDER_REFERENCE = (0.0, 1.0)


class VirtualType(str, Enum):
    """How an arc endpoint relates to the stroke an operation simplifies."""
    NONE = "none"
    FIXED = "fixed"
    EXTENSIBLE = "extensible"


def same_cyclic_order(first, second):
    """Whether two angularly sorted (arc, direction) lists match up to rotation."""
    n = len(first)
    if n != len(second):
        return False
    if n == 0:
        return True
    ids_first = [arc for arc, _ in first]
    ids_second = [arc for arc, _ in second]
    for shift in range(n):
        if all(ids_first[i] == ids_second[(i + shift) % n] for i in range(n)):
            return True
    return False


def _order_key(pair):
    return ccw_angle(ORDER_REFERENCE, pair[1])


def _direction_pair(arc_id, p, circle):
    return (arc_id, normalize(sub(p, circle.center)))


class TopologyChecker:
    """
    Block-reason bookkeeping for vertex operations on one network.

    Args:
        network: StrokeNetwork being simplified
        max_cross_dist: Largest allowed displacement of a crossing
        diagnostics: Optional Diagnostics recorder
    """

    def __init__(self, network, max_cross_dist, diagnostics=None):
        self.network = network
        self.max_cross_dist = max_cross_dist
        self.diagnostics = diagnostics or Diagnostics()

    def close_enough(self, cross, p):
        return distance(p, cross.disk_center) < self.max_cross_dist

    def virtual_type(self, vertex_id, op):
        network = self.network
        vertex = network.vertices[vertex_id]
        if vertex.cross_id is None:
            return VirtualType.NONE
        cross = network.crosses[vertex.cross_id]
        op_vertex = network.vertices[op.vertex]
        stroke_id = op_vertex.stroke_id
        related = (
            cross.concrete.get(stroke_id) == op.vertex
            or cross.virtual.get(stroke_id) in (op_vertex.incoming, op_vertex.outgoing)
        )
        if not related:
            return VirtualType.NONE
        if is_extensible(network, cross):
            return VirtualType.EXTENSIBLE
        return VirtualType.FIXED

    def recheck_topology(self, op):
        """Recompute every block reason and extension of an operation from scratch."""
        network = self.network
        diagnostics = self.diagnostics
        op.clear()
        vertex = network.vertices[op.vertex]
        diagnostics.focus(vertex.position)
        diagnostics.debug(f"Rechecking topology of vertex {op.vertex}")
        diagnostics.record("replacement", op.replacement)

        for arc in list(network.iter_arcs()):
            self.check_arc_into_operation(arc.arc_id, op)

        inc = network.arcs[vertex.incoming]
        out = network.arcs[vertex.outgoing]
        if vertex.cross_id is not None:
            cross = network.crosses[vertex.cross_id]
            if not is_extensible(network, cross):
                self._check_order(op, cross, inc.arc_id, out.arc_id, None)
        start_cross = network.vertices[inc.start].cross_id
        if start_cross is not None:
            self._check_order(op, network.crosses[start_cross], None, inc.arc_id, None)
        end_cross = network.vertices[out.end].cross_id
        if end_cross is not None:
            self._check_order(op, network.crosses[end_cross], out.arc_id, None, None)
        for arc in (inc, out):
            for cross_id in arc.virtuals:
                cross = network.crosses[cross_id]
                if not is_extensible(network, cross):
                    self._check_order(op, cross, None, None, arc.arc_id)

        diagnostics.debug(f"Vertex {op.vertex} blocked: {op.is_blocked}", **op.block_reasons())

    def check_arc_into_operation(self, arc_id, op):
        """Record how one arc of the network interacts with an operation."""
        network = self.network
        diagnostics = self.diagnostics
        vertex = network.vertices[op.vertex]
        if arc_id in (vertex.incoming, vertex.outgoing):
            return
        arc = network.arcs[arc_id]
        inc_virtuals = network.arcs[vertex.incoming].virtuals
        out_virtuals = network.arcs[vertex.outgoing].virtuals
        cross_ops = [
            cid for cid in arc.virtuals
            if cid == vertex.cross_id or cid in inc_virtuals or cid in out_virtuals
        ]

        vt_start = self.virtual_type(arc.start, op)
        vt_end = self.virtual_type(arc.end, op)
        virtuals = 0
        for vt, extension in ((vt_start, op.start_extension), (vt_end, op.end_extension)):
            if vt == VirtualType.NONE:
                continue
            if vt == VirtualType.EXTENSIBLE:
                extension.add(arc_id)
            else:
                op.fixed_crosses.add(arc_id)
            virtuals += 1

        curve = network.arc_geometry(arc_id)
        if len(cross_ops) + virtuals > 2:
            # two circles meet at most twice
            diagnostics.debug(f"Arc {arc_id} blocks on crossing count")
            diagnostics.record("blocking", curve)
            op.related_arc_blocked.add(arc_id)
        elif vt_start == VirtualType.EXTENSIBLE and vt_end == VirtualType.EXTENSIBLE:
            ends = find_double_extension(network, arc_id, op.replacement, op.vertex)
            if ends is None:
                diagnostics.debug(f"Arc {arc_id} blocks on double extension")
                op.related_arc_blocked.add(arc_id)
            else:
                self.check_arc_extension(arc_id, op, ends[0], True)
                self.check_arc_extension(arc_id, op, ends[1], False)
        elif vt_start == VirtualType.EXTENSIBLE:
            ext = find_start_extension(network, arc_id, op.replacement, op.vertex)
            if ext is None:
                diagnostics.debug(f"Arc {arc_id} blocks on start extension")
                op.related_arc_blocked.add(arc_id)
            else:
                self.check_arc_extension(arc_id, op, ext, True)
        elif vt_end == VirtualType.EXTENSIBLE:
            ext = find_end_extension(network, arc_id, op.replacement, op.vertex)
            if ext is None:
                diagnostics.debug(f"Arc {arc_id} blocks on end extension")
                op.related_arc_blocked.add(arc_id)
            else:
                self.check_arc_extension(arc_id, op, ext, False)
        elif cross_ops or virtuals:
            hits = points_only(intersect(curve, op.replacement, closed=False))
            if len(hits) != len(cross_ops):
                diagnostics.debug(f"Arc {arc_id} meets the replacement {len(hits)} times, expected {len(cross_ops)}")
                diagnostics.record("blocking", curve)
                op.related_arc_blocked.add(arc_id)
                return
            # virtuals are stored in order along the arc
            hits.sort(key=lambda p: curve.distance_along(p, True))
            for p, cross_id in zip(hits, cross_ops):
                cross = network.crosses[cross_id]
                if not is_movable(cross) and not self.close_enough(cross, p):
                    diagnostics.debug(f"Crossing {cross_id} would move too far")
                    op.related_arc_blocked.add(arc_id)
                    break
        elif intersect(curve, op.replacement, closed=False):
            diagnostics.debug(f"Arc {arc_id} intersects the replacement")
            diagnostics.record("blocking", curve)
            op.unrelated_arc_blocked.add(arc_id)

    def check_arc_extension(self, arc_id, op, ext, at_start, exceptions=()):
        """
        Check that lengthening an arc to `ext` crosses nothing.

        Shrinking cannot introduce intersections, so only extensions beyond
        the current end are tested, against every other arc and against the
        other extensions of the same operation.

        Returns:
            True when the extension blocks the operation
        """
        network = self.network
        curve = network.arc_geometry(arc_id)
        if curve.perimeter >= curve.distance_along(ext, not at_start):
            return False

        if at_start:
            piece = curve.with_endpoints(ext, curve.start)
        else:
            piece = curve.with_endpoints(curve.end, ext)
        op.extensions.append(piece)

        vertex = network.vertices[op.vertex]
        skip = {arc_id, vertex.incoming, vertex.outgoing}
        skip.update(exceptions)
        for other in list(network.iter_arcs()):
            if other.arc_id in skip:
                continue
            if intersect(piece, network.arc_geometry(other.arc_id), closed=False):
                self.diagnostics.debug(f"Extension of arc {arc_id} crosses arc {other.arc_id}")
                self.diagnostics.record("extension", piece)
                op.related_arc_blocked.add(other.arc_id)
                return True

        for other_piece in op.extensions:
            if other_piece is piece:
                continue
            if intersect(piece, other_piece, closed=False):
                self.diagnostics.debug(f"Extension of arc {arc_id} crosses another extension")
                op.related_arc_blocked.add(arc_id)
                return True
        return False

    def uncheck_arc_from_operation(self, arc_id, op):
        """
        Forget an arc that is about to change.

        Returns:
            True when the operation must be rechecked from scratch
        """
        recheck = False
        for tracked in (op.start_extension, op.end_extension, op.fixed_crosses, op.related_arc_blocked):
            if arc_id in tracked:
                tracked.discard(arc_id)
                recheck = True
        op.unrelated_arc_blocked.discard(arc_id)
        return recheck

    def compute_disc_after(self, op, cross):
        """Disk of a crossing after the operation, a point for extended crossings."""
        network = self.network
        ext = extending_arc(network, cross)
        if ext is not None:
            at_start = ext in op.start_extension
            at_end = ext in op.end_extension
            center = None
            if at_start and at_end:
                ends = find_double_extension(network, ext, op.replacement, op.vertex)
                if ends is not None:
                    end_vertex = network.vertices[network.arcs[ext].end]
                    center = ends[1] if end_vertex.cross_id == cross.cross_id else ends[0]
            elif at_start:
                center = find_start_extension(network, ext, op.replacement, op.vertex)
            elif at_end:
                center = find_end_extension(network, ext, op.replacement, op.vertex)
            if center is not None:
                return Circle(center, 0.0)

        vertex = network.vertices[op.vertex]
        return smallest_disc_after_replacement(network, cross, vertex.incoming, vertex.outgoing, op.replacement)

    def add_order_pairs(self, pairs, disk, curve, arc_id, expect):
        """
        Append the directions in which a curve leaves a crossing disk.

        A curve ending at the crossing contributes one direction, a curve
        passing through contributes two. Zero-radius disks use tangents.

        Returns:
            False when the curve does not meet the disk as expected
        """
        if disk.radius < EPS:
            tp = curve.closest_point(disk.center)
            if expect == 1:
                if distance(tp, curve.start) < distance(tp, curve.end):
                    pairs.append((arc_id, normalize(curve.start_tangent)))
                else:
                    pairs.append((arc_id, normalize(invert(curve.end_tangent))))
                return True
            if curve.center is None:
                tangent = sub(curve.end, curve.start)
            else:
                arm = sub(tp, curve.center)
                tangent = rotate90_cw(arm) if curve.clockwise else rotate90_ccw(arm)
            tangent = normalize(tangent)
            pairs.append((arc_id, tangent))
            pairs.append((arc_id, invert(tangent)))
            return True

        hits = intersect(curve, disk, closed=True)
        if not hits or not all(is_point(p) for p in hits):
            self.diagnostics.debug("Curve does not cross the crossing disk")
            self.diagnostics.record("order", disk, curve)
            return False
        if len(hits) > expect:
            self.diagnostics.debug("Curve crosses the crossing disk more often than expected")

        first = _direction_pair(arc_id, hits[0], disk)
        pairs.append(first)
        if expect == 2:
            if len(hits) >= 2:
                pairs.append(_direction_pair(arc_id, hits[1], disk))
            else:
                # touching: count the point twice
                pairs.append(first)
        return True

    def _boundary_pairs(self, cross, arc_id, disk):
        """Directions of an unchanged incident arc, or None when it does not fit."""
        network = self.network
        arc = network.arcs[arc_id]
        curve = network.arc_geometry(arc_id)
        ends_here = (
            network.vertices[arc.start].cross_id == cross.cross_id
            or network.vertices[arc.end].cross_id == cross.cross_id
        )
        pairs = []
        if disk.radius < EPS:
            if not self.add_order_pairs(pairs, disk, curve, arc_id, 1 if ends_here else 2):
                return None
            return pairs

        hits = intersect(curve, disk, closed=True)
        if not all(is_point(p) for p in hits):
            return None
        if ends_here:
            if len(hits) != 1:
                return None
            return [_direction_pair(arc_id, hits[0], disk)]
        if not 1 <= len(hits) <= 2:
            return None
        pairs.append(_direction_pair(arc_id, hits[0], disk))
        pairs.append(_direction_pair(arc_id, hits[1 if len(hits) == 2 else 0], disk))
        return pairs

    def order_correct(self, op, cross, in_replace=None, out_replace=None, through=None):
        """
        Whether the operation keeps the cyclic order of strokes at a crossing.

        Args:
            in_replace: Replaced arc ending at the crossing
            out_replace: Replaced arc starting at the crossing
            through: Replaced arc passing through the crossing

        Returns:
            True if the order around the disk is unchanged up to rotation
        """
        network = self.network
        replacement = op.replacement
        before = cross.disk
        after = self.compute_disc_after(op, cross)
        if after is None:
            return False

        original = []
        replaced = []
        if through is not None:
            ok = (
                self.add_order_pairs(original, before, network.arc_geometry(through), through, 2)
                and self.add_order_pairs(replaced, after, replacement, through, 2)
            )
        elif in_replace is not None and out_replace is not None:
            # both halves are attributed to the incoming arc, as is the replacement
            ok = (
                self.add_order_pairs(original, before, network.arc_geometry(in_replace), in_replace, 1)
                and self.add_order_pairs(original, before, network.arc_geometry(out_replace), in_replace, 1)
                and self.add_order_pairs(replaced, after, replacement, in_replace, 2)
            )
        else:
            single = in_replace if in_replace is not None else out_replace
            ok = (
                self.add_order_pairs(original, before, network.arc_geometry(single), single, 1)
                and self.add_order_pairs(replaced, after, replacement, single, 1)
            )
        if not ok:
            return False

        for arc_id in incident_arcs(network, cross):
            if arc_id in (in_replace, out_replace, through):
                continue
            pairs = self._boundary_pairs(cross, arc_id, before)
            if pairs is None:
                self.diagnostics.debug(f"Arc {arc_id} does not meet crossing {cross.cross_id} as expected")
                return False
            original.extend(pairs)
            replaced.extend(pairs)

        original.sort(key=_order_key)
        replaced.sort(key=_order_key)
        if not same_cyclic_order(original, replaced):
            self.diagnostics.debug(f"Wrong order at crossing {cross.cross_id}")
            self.diagnostics.record("order", before, replacement)
            return False
        return True

    def _check_order(self, op, cross, in_replace, out_replace, through):
        if not self.order_correct(op, cross, in_replace, out_replace, through):
            op.cross_blocked.add(cross.cross_id)
