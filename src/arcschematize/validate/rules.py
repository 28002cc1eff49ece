"""
Validation rules for schematized stroke networks.

Checks that the network stayed planar up to tracked crossings, that crossing
bookkeeping is consistent, and that the cyclic order of strokes around every
crossing matches a snapshot taken before simplification.
"""

import math

from shapely.geometry import LineString, box

from arcschematize.geometry.intersect import intersect, is_point, points_only
from arcschematize.geometry.primitives import EPS, Circle, ccw_angle, distance, sub
from arcschematize.models import CheckResult, Severity, ValidationReport
from arcschematize.network.crossing import incident_arcs
from arcschematize.tracer import get_tracer, trace

ORDER_REFERENCE = (0.0, 1.0)


def _tolerance(network):
    min_x, min_y, max_x, max_y = network.bounding_box()
    return max(1e-6 * math.hypot(max_x - min_x, max_y - min_y), EPS)


def _arc_outline(curve, tolerance):
    """Padded bounding box of a sampled arc, for the broad phase."""
    extra = 0 if curve.center is None else 32
    line = LineString(curve.sample(extra))
    min_x, min_y, max_x, max_y = line.bounds
    # sampling cuts corners off the arc; pad by the worst sagitta
    pad = tolerance
    if curve.center is not None:
        pad += curve.radius * (1 - math.cos(abs(curve.central_angle) / (2 * (extra + 1))))
    return box(min_x - pad, min_y - pad, max_x + pad, max_y + pad)


def _crossings_at(network, arc):
    """Crossings an arc takes part in: passed through or met at an endpoint."""
    crossings = set(arc.virtuals)
    for vid in (arc.start, arc.end):
        cross_id = network.vertices[vid].cross_id
        if cross_id is not None:
            crossings.add(cross_id)
    return crossings


def _is_tracked(network, first, second, p, tolerance):
    shared = {first.start, first.end} & {second.start, second.end}
    for vid in shared:
        if distance(network.vertices[vid].position, p) <= tolerance:
            return True
    for cross_id in _crossings_at(network, first) & _crossings_at(network, second):
        cross = network.crosses[cross_id]
        if distance(cross.disk_center, p) <= cross.disk_radius + tolerance:
            return True
    return False


def check_no_untracked_intersections(network, tolerance=None):
    """
    Check that arcs only meet at shared vertices or inside a common crossing disk.
    """
    if tolerance is None:
        tolerance = _tolerance(network)

    arcs = list(network.iter_arcs())
    curves = [network.arc_geometry(arc.arc_id) for arc in arcs]
    outlines = [_arc_outline(curve, tolerance) for curve in curves]

    untracked = []
    for i in range(len(arcs)):
        for j in range(i + 1, len(arcs)):
            if not outlines[i].intersects(outlines[j]):
                continue
            for item in intersect(curves[i], curves[j], closed=True):
                if not is_point(item):
                    untracked.append({"arcs": [arcs[i].arc_id, arcs[j].arc_id], "overlap": True})
                    continue
                if not _is_tracked(network, arcs[i], arcs[j], item, tolerance):
                    untracked.append({"arcs": [arcs[i].arc_id, arcs[j].arc_id], "point": item})

    if untracked:
        return CheckResult(
            rule_id="untracked_intersections",
            severity=Severity.ERROR,
            passed=False,
            message=f"{len(untracked)} arc intersections are not tracked by a crossing",
            evidence={"intersections": untracked[:5]},
        )

    return CheckResult(
        rule_id="untracked_intersections",
        severity=Severity.ERROR,
        passed=True,
        message=f"All intersections among {len(arcs)} arcs are tracked",
        evidence={},
    )


def check_virtual_consistency(network):
    """
    Check that arcs and crossings agree on virtual participation.
    """
    problems = []
    for arc in network.iter_arcs():
        for cross_id in arc.virtuals:
            cross = network.crosses.get(cross_id)
            if cross is None:
                problems.append(f"arc {arc.arc_id} lists missing crossing {cross_id}")
            elif cross.virtual.get(arc.stroke_id) != arc.arc_id:
                problems.append(f"crossing {cross_id} does not list arc {arc.arc_id}")
        if len(set(arc.virtuals)) != len(arc.virtuals):
            problems.append(f"arc {arc.arc_id} lists a crossing twice")

    for cross in network.crosses.values():
        for stroke_id, arc_id in cross.virtual.items():
            arc = network.arcs.get(arc_id)
            if arc is None or cross.cross_id not in arc.virtuals:
                problems.append(f"crossing {cross.cross_id} lists arc {arc_id} that does not pass it")
            if stroke_id not in cross.virtual_pos:
                problems.append(f"crossing {cross.cross_id} has no position for stroke {stroke_id}")
        for stroke_id, vid in cross.concrete.items():
            vertex = network.vertices.get(vid)
            if vertex is None or vertex.cross_id != cross.cross_id:
                problems.append(f"crossing {cross.cross_id} lists vertex {vid} that is not at it")
        if set(cross.concrete) & set(cross.virtual):
            problems.append(f"crossing {cross.cross_id} has a stroke both concrete and virtual")

    if problems:
        return CheckResult(
            rule_id="virtual_consistency",
            severity=Severity.ERROR,
            passed=False,
            message=f"{len(problems)} crossing bookkeeping problems",
            evidence={"problems": problems[:5]},
        )

    return CheckResult(
        rule_id="virtual_consistency",
        severity=Severity.ERROR,
        passed=True,
        message="Arcs and crossings agree on virtual participation",
        evidence={},
    )


def check_crossing_disks(network, tolerance=None):
    """
    Check that every crossing disk contains the points that witness it.
    """
    if tolerance is None:
        tolerance = _tolerance(network)

    outside = []
    for cross in network.crosses.values():
        disk = cross.disk
        witnesses = [network.vertices[vid].position for vid in cross.concrete.values()]
        witnesses.extend(cross.virtual_pos.values())
        for p in witnesses:
            if distance(p, disk.center) > disk.radius + tolerance:
                outside.append({"cross": cross.cross_id, "point": p})

    if outside:
        return CheckResult(
            rule_id="crossing_disks",
            severity=Severity.ERROR,
            passed=False,
            message=f"{len(outside)} crossing points lie outside their disk",
            evidence={"outside": outside[:5]},
        )

    return CheckResult(
        rule_id="crossing_disks",
        severity=Severity.ERROR,
        passed=True,
        message=f"All {len(network.crosses)} crossing disks contain their points",
        evidence={},
    )


def cyclic_order(network, cross):
    """
    Stroke ids in counterclockwise order around a crossing.

    A ring circle slightly larger than the crossing disk is intersected with
    every incident arc; strokes ending at the crossing appear once, strokes
    passing through twice.
    """
    center = cross.disk_center
    arc_ids = incident_arcs(network, cross)
    curves = {aid: network.arc_geometry(aid) for aid in arc_ids}

    far = []
    for curve in curves.values():
        for p in (curve.start, curve.end):
            d = distance(p, center)
            if d > cross.disk_radius + EPS:
                far.append(d)
    if not far:
        return []
    ring = Circle(center, cross.disk_radius + 0.5 * (min(far) - cross.disk_radius))

    entries = []
    for aid in arc_ids:
        for p in points_only(intersect(curves[aid], ring, closed=True)):
            entries.append((ccw_angle(ORDER_REFERENCE, sub(p, center)), network.arcs[aid].stroke_id))
    entries.sort()
    return [stroke_id for _, stroke_id in entries]


def snapshot_cyclic_order(network):
    """Cyclic stroke order around every crossing, keyed by crossing id."""
    return {cross_id: cyclic_order(network, cross) for cross_id, cross in network.crosses.items()}


def _equal_up_to_rotation(first, second):
    if len(first) != len(second):
        return False
    if not first:
        return True
    return any(first == second[shift:] + second[:shift] for shift in range(len(second)))


def check_cyclic_order(network, snapshot):
    """
    Check the cyclic stroke order at surviving crossings against a snapshot.
    """
    changed = []
    for cross_id, before in snapshot.items():
        cross = network.crosses.get(cross_id)
        if cross is None:
            continue
        after = cyclic_order(network, cross)
        if not _equal_up_to_rotation(before, after):
            changed.append({"cross": cross_id, "before": before, "after": after})

    if changed:
        return CheckResult(
            rule_id="cyclic_order",
            severity=Severity.ERROR,
            passed=False,
            message=f"Stroke order changed at {len(changed)} crossings",
            evidence={"changed": changed[:5]},
        )

    return CheckResult(
        rule_id="cyclic_order",
        severity=Severity.ERROR,
        passed=True,
        message=f"Stroke order preserved at {len(snapshot)} crossings",
        evidence={},
    )


@trace(label="run_validation")
def run_validation(network, snapshot=None):
    """
    Run all validation checks on a network.

    Args:
        network: StrokeNetwork
        snapshot: Optional result of snapshot_cyclic_order taken earlier

    Returns:
        ValidationReport with all check results
    """
    tracer = get_tracer()
    tolerance = _tolerance(network)

    checks = [
        check_no_untracked_intersections(network, tolerance),
        check_virtual_consistency(network),
        check_crossing_disks(network, tolerance),
    ]
    if snapshot is not None:
        checks.append(check_cyclic_order(network, snapshot))

    report = ValidationReport(checks=checks)
    tracer.event(f"Validation complete: {report.error_count} errors, {report.warning_count} warnings")
    return report
