"""
Iterative arc schematization engine.

Each step commits the cheapest admissible operation in the whole network:
the two arcs at one vertex are replaced by a single circular arc, segment or
full circle. Only operations near the change are regenerated afterwards;
operations elsewhere are updated incrementally by unchecking the old arcs
and checking the new ones.
"""

import math

from arcschematize.config import FrechetConfig, SchematizationConfig
from arcschematize.frechet.frechet import frechet_from_config
from arcschematize.geometry.intersect import intersect, points_only
from arcschematize.geometry.primitives import FullCircle
from arcschematize.models import ArcKind, EngineState
from arcschematize.network.crossing import change_stroke, compute_smallest_disc, is_extensible
from arcschematize.network.network import InternalConsistencyError
from arcschematize.schematization.candidates import CandidateGenerator
from arcschematize.schematization.extension import (
    find_double_extension,
    find_end_extension,
    find_start_extension,
)
from arcschematize.schematization.history import SchematizationHistory
from arcschematize.schematization.operations import CrossOperation, VertexOperation
from arcschematize.schematization.topology import TopologyChecker
from arcschematize.tracer import Diagnostics, get_tracer, trace

TERMINAL_STATES = (EngineState.STUCK, EngineState.ABORTED)


class IterativeSchematization:
    """
    Greedy, topology-preserving simplification of a stroke network.

    Args:
        config: SchematizationConfig
        frechet: FrechetDistance engine used to rank candidates
        diagnostics: Optional Diagnostics recorder
    """

    def __init__(self, config=None, frechet=None, diagnostics=None):
        self.config = config or SchematizationConfig()
        self.frechet = frechet or frechet_from_config(FrechetConfig())
        self.diagnostics = diagnostics or Diagnostics()
        self.network = None
        self.vertex_operations = {}
        self.complexity = 0
        self.max_cross_dist = 0.0
        self.state = None
        self.history = SchematizationHistory()
        self.candidates = None
        self.topology = None

    def get_complexity(self):
        return self.complexity

    @trace(label="engine_init")
    def init(self, network):
        """
        Take ownership of a network and generate all operations.

        Returns:
            True if at least one admissible operation exists
        """
        tracer = get_tracer()
        network.check_consistency()
        self.network = network
        self.complexity = network.arc_count
        self.history = SchematizationHistory()

        min_x, min_y, max_x, max_y = network.bounding_box()
        self.max_cross_dist = math.hypot(max_x - min_x, max_y - min_y) * self.config.max_cross_dist_frac
        self.topology = TopologyChecker(network, self.max_cross_dist, self.diagnostics)
        self.candidates = CandidateGenerator(
            network, self.frechet, self.config, self.max_cross_dist, self.diagnostics
        )

        self.vertex_operations = {}
        admissible = False
        for vertex in list(network.iter_vertices()):
            ops = self.make_operations(vertex.vertex_id)
            self.vertex_operations[vertex.vertex_id] = ops
            if any(not op.is_blocked for op in ops):
                admissible = True

        self.state = EngineState.INITIALIZED
        tracer.event(
            f"Initialized: complexity={self.complexity}, "
            f"{sum(len(ops) for ops in self.vertex_operations.values())} operations, "
            f"max crossing displacement={self.max_cross_dist:.4g}"
        )
        return admissible

    def make_operations(self, vertex_id):
        """Candidate operations for one vertex, each checked for topology."""
        network = self.network
        vertex = network.vertices[vertex_id]
        if vertex.incoming is None or vertex.outgoing is None:
            return []
        if vertex.cross_id is not None and not self.config.allow_high_degree:
            if not is_extensible(network, network.crosses[vertex.cross_id]):
                return []

        self.diagnostics.focus(vertex.position)
        candidates = self.candidates.make_candidates(vertex_id) or []
        ops = []
        for curve, cost in candidates:
            op = VertexOperation(vertex_id, curve, cost)
            self.topology.recheck_topology(op)
            ops.append(op)
        return ops

    def make_cross_operation(self, cross_id):
        """
        Bundle the best free operation of every concrete vertex at a crossing.

        Returns:
            CrossOperation, or None when some vertex has no free operation or
            two replacements would meet more than once
        """
        cross = self.network.crosses[cross_id]
        bundle = CrossOperation()
        for vid in cross.concrete.values():
            free = [op for op in self.vertex_operations.get(vid, []) if not op.is_blocked]
            if not free:
                return None
            bundle.add(min(free, key=lambda op: op.cost))
        if len(bundle.operations) < 2:
            return None
        for i, first in enumerate(bundle.operations):
            for second in bundle.operations[i + 1:]:
                if len(points_only(intersect(first.replacement, second.replacement, closed=False))) > 1:
                    return None
        return bundle

    def best_operation(self):
        best = None
        for ops in self.vertex_operations.values():
            for op in ops:
                if not op.is_blocked and (best is None or op.cost < best.cost):
                    best = op
        return best

    def step(self, max_complexity=0, max_cost=math.inf):
        """
        Commit the cheapest admissible operation.

        Args:
            max_complexity: Stop once the arc count is at or below this
            max_cost: Stop when the cheapest operation costs more than this

        Returns:
            True if an operation was applied; False once the run has ended,
            with the reason in `state`
        """
        if self.network is None:
            raise RuntimeError("init must be called before step")
        if self.state in TERMINAL_STATES:
            return False

        tracer = get_tracer()
        if self.complexity <= max_complexity:
            self.state = EngineState.COMPLEXITY_REACHED
            tracer.event(f"Complexity reached: {self.complexity}")
            return False

        best = self.best_operation()
        if best is None:
            self.state = EngineState.STUCK
            tracer.event("No admissible operation left", level="WARN")
            return False
        if best.cost > max_cost:
            self.state = EngineState.THRESHOLD_EXCEEDED
            tracer.event(f"Cheapest operation exceeds threshold: {best.cost:.4g} > {max_cost:.4g}")
            return False

        return self.apply(best)

    def apply(self, operation):
        """Commit a vertex or cross operation; consistency failures abort the run."""
        if self.state in TERMINAL_STATES:
            return False
        try:
            self.perform(operation)
        except InternalConsistencyError as e:
            get_tracer().event(f"Schematization aborted: {e}", level="ERROR")
            self.state = EngineState.ABORTED
            return False
        self.state = EngineState.STEP_APPLIED
        return True

    def _extension_points(self, vop):
        """(arc, new start, new end) for every arc the operation extends."""
        network = self.network
        points = []
        for arc_id in sorted(vop.start_extension):
            if arc_id in vop.end_extension:
                ends = find_double_extension(network, arc_id, vop.replacement, vop.vertex)
                if ends is None:
                    raise InternalConsistencyError(f"Arc {arc_id} lost its double extension")
                points.append((arc_id, ends[0], ends[1]))
            else:
                p = find_start_extension(network, arc_id, vop.replacement, vop.vertex)
                if p is None:
                    raise InternalConsistencyError(f"Arc {arc_id} lost its start extension")
                points.append((arc_id, p, None))
        for arc_id in sorted(vop.end_extension - vop.start_extension):
            p = find_end_extension(network, arc_id, vop.replacement, vop.vertex)
            if p is None:
                raise InternalConsistencyError(f"Arc {arc_id} lost its end extension")
            points.append((arc_id, None, p))
        return points

    def _crossings_near(self, vertex_id):
        """Crossings at a vertex, at its two neighbours and along its two arcs."""
        network = self.network
        vertex = network.vertices[vertex_id]
        crossings = set()
        for vid in (vertex_id, network.previous_vertex(vertex_id), network.next_vertex(vertex_id)):
            if vid is not None and network.vertices[vid].cross_id is not None:
                crossings.add(network.vertices[vid].cross_id)
        for arc_id in (vertex.incoming, vertex.outgoing):
            if arc_id is not None:
                crossings.update(network.arcs[arc_id].virtuals)
        return crossings

    def perform(self, operation):
        """
        Apply an operation to the network and update all other operations.

        Operations of the affected neighbourhood are dropped and regenerated;
        everywhere else the replaced arcs are unchecked and the new ones
        checked in, rechecking from scratch only where that is not enough.
        """
        network = self.network
        if isinstance(operation, CrossOperation):
            vops = list(operation.operations)
            kind = "cross"
        else:
            vops = [operation]
            kind = "vertex"

        drop = set()
        regenerate = []
        uncheck = []
        for vop in vops:
            vertex = network.vertices[vop.vertex]
            drop.add(vop.vertex)
            if vertex.cross_id is not None:
                for other in network.crosses[vertex.cross_id].concrete.values():
                    if other != vop.vertex:
                        drop.add(other)
                        if kind == "vertex":
                            regenerate.append(other)
            for neighbour in (network.previous_vertex(vop.vertex), network.next_vertex(vop.vertex)):
                drop.add(neighbour)
                regenerate.append(neighbour)
            for arc_id in vop.start_extension:
                end = network.arcs[arc_id].end
                if not network.vertices[end].is_endpoint:
                    drop.add(end)
                    regenerate.append(end)
            for arc_id in vop.end_extension:
                start = network.arcs[arc_id].start
                if not network.vertices[start].is_endpoint:
                    drop.add(start)
                    regenerate.append(start)
            uncheck.extend([vertex.incoming, vertex.outgoing])
            uncheck.extend(sorted(vop.start_extension | vop.end_extension))

        for vid in drop:
            self.vertex_operations.pop(vid, None)

        recheck = []
        for ops in self.vertex_operations.values():
            for op in ops:
                if any(self.topology.uncheck_arc_from_operation(arc_id, op) for arc_id in uncheck):
                    recheck.append(op)

        self.complexity -= len(vops)
        check = []
        touched = []
        affected = set()
        stations = []
        kinds = []
        for vop in vops:
            mid = network.vertices[vop.vertex]
            inc = network.arcs[mid.incoming]
            out = network.arcs[mid.outgoing]
            start, end = inc.start, out.end
            joint_virtual = list(inc.virtuals)
            if mid.cross_id is not None:
                joint_virtual.append(mid.cross_id)
            joint_virtual.extend(out.virtuals)
            joint_original = inc.original + out.original[1:]
            affected.update(joint_virtual)
            extensions = self._extension_points(vop)

            curve = vop.replacement
            network.delete_arc(inc.arc_id)
            network.delete_arc(out.arc_id)
            if isinstance(curve, FullCircle):
                arc = network.new_arc(
                    mid.stroke_id, start, start, center=curve.center, clockwise=curve.clockwise,
                    full_circle=True, circle_point=curve.point,
                    virtuals=joint_virtual, original=joint_original,
                )
            else:
                arc = network.new_arc(
                    mid.stroke_id, start, end, center=curve.center, clockwise=curve.clockwise,
                    virtuals=joint_virtual, original=joint_original,
                )
            check.append(arc.arc_id)

            for arc_id, new_start, new_end in extensions:
                extended = network.arcs[arc_id]
                if new_start is not None:
                    network.vertices[extended.start].position = new_start
                if new_end is not None:
                    network.vertices[extended.end].position = new_end
                check.append(arc_id)
                affected.update(extended.virtuals)
                for vid in (extended.start, extended.end):
                    if network.vertices[vid].cross_id is not None:
                        affected.add(network.vertices[vid].cross_id)

            for cross_id in arc.virtuals:
                change_stroke(network, network.crosses[cross_id], mid.stroke_id, arc.arc_id)
            network.remove_vertex(mid.vertex_id)

            touched.extend([start, end])
            stations.append(mid.station_id)
            kinds.append(ArcKind(curve.kind))

        for vid in dict.fromkeys(touched):
            cross_id = network.vertices[vid].cross_id
            if cross_id is not None:
                affected.add(cross_id)
                compute_smallest_disc(network, network.crosses[cross_id])

        # operations next to a changed crossing hold stale order verdicts
        pending = {id(op) for op in recheck}
        for vid, ops in self.vertex_operations.items():
            if affected.isdisjoint(self._crossings_near(vid)):
                continue
            for op in ops:
                if id(op) not in pending:
                    pending.add(id(op))
                    recheck.append(op)

        for ops in self.vertex_operations.values():
            for op in ops:
                for arc_id in check:
                    self.topology.check_arc_into_operation(arc_id, op)
        for op in recheck:
            self.topology.recheck_topology(op)
        for vid in dict.fromkeys(regenerate):
            if vid in network.vertices:
                self.vertex_operations[vid] = self.make_operations(vid)

        network.check_consistency()
        self.history.append(kind, stations, operation.cost, self.complexity, kinds)
        get_tracer().event(
            f"Step {len(self.history)}: {kind} at {', '.join(stations)}",
            level="DEBUG",
            cost=operation.cost,
            complexity=self.complexity,
        )
