"""
Stroke network arena.

The network owns every stroke, vertex, arc and crossing, keyed by integer
handles that are never reused within one network. Stations (the original map
points) and their connections live in a networkx graph; arcs remember the
station chain they replace so the engine can measure how far a simplified
arc strays from the original route.
"""

import itertools

import networkx as nx
import numpy as np
from shapely.geometry import MultiPoint

from arcschematize.geometry.intersect import intersect, points_only
from arcschematize.geometry.primitives import (
    Circle,
    Line,
    ccw_angle,
    cw_angle,
    distance,
    make_curve,
    sub,
)
from arcschematize.models import Stroke, StrokeArc, StrokeCross, StrokeVertex


class InternalConsistencyError(RuntimeError):
    """The network violates one of its structural invariants."""


class StrokeNetwork:
    """Owner of all strokes, vertices, arcs and crossings."""

    def __init__(self):
        self.stations = nx.Graph()
        self.strokes = {}
        self.vertices = {}
        self.arcs = {}
        self.crosses = {}
        self._handles = itertools.count(1)

    def _new_handle(self):
        return next(self._handles)

    # Stations

    def add_station(self, station_id, position, label=None, virtual=False):
        station_id = str(station_id)
        self.stations.add_node(
            station_id,
            pos=(float(position[0]), float(position[1])),
            label=label if label is not None else station_id,
            virtual=virtual,
        )
        return station_id

    def add_connection(self, a, b, connection_id=None):
        a = str(a)
        b = str(b)
        if connection_id is None:
            connection_id = f"{a}-{b}"
        self.stations.add_edge(a, b, connection_id=connection_id)
        return connection_id

    def station_position(self, station_id):
        return self.stations.nodes[station_id]["pos"]

    def is_virtual_station(self, station_id):
        return self.stations.nodes[station_id].get("virtual", False)

    # Strokes

    def new_stroke(self, station_ids, circular=False):
        """
        Create a stroke with one vertex per station and straight arcs.

        Args:
            station_ids: Ordered station ids; for a circular stroke the
                closing station is not repeated
            circular: Whether the last vertex connects back to the first

        Returns:
            The new Stroke
        """
        station_ids = [str(s) for s in station_ids]
        if len(station_ids) < 2 and not circular:
            raise ValueError("An open stroke needs at least two stations")

        stroke = Stroke(stroke_id=self._new_handle(), circular=circular)
        self.strokes[stroke.stroke_id] = stroke

        for station_id in station_ids:
            vertex = StrokeVertex(
                vertex_id=self._new_handle(),
                station_id=station_id,
                position=self.station_position(station_id),
                stroke_id=stroke.stroke_id,
            )
            self.vertices[vertex.vertex_id] = vertex
            stroke.vertices.append(vertex.vertex_id)

        count = len(stroke.vertices) if circular else len(stroke.vertices) - 1
        for i in range(count):
            start = self.vertices[stroke.vertices[i]]
            end = self.vertices[stroke.vertices[(i + 1) % len(stroke.vertices)]]
            self.add_connection(start.station_id, end.station_id)
            self.new_arc(
                stroke.stroke_id,
                start.vertex_id,
                end.vertex_id,
                original=[start.station_id, end.station_id],
            )
        return stroke

    def add_stroke(self, stroke):
        self.strokes[stroke.stroke_id] = stroke
        return stroke

    def remove_stroke(self, stroke_id):
        """Remove a stroke with its vertices and arcs, and its crossing participation."""
        stroke = self.strokes.pop(stroke_id)
        for vid in stroke.vertices:
            vertex = self.vertices.pop(vid)
            for aid in (vertex.incoming, vertex.outgoing):
                if aid is not None:
                    self.arcs.pop(aid, None)
        for cross in self.crosses.values():
            cross.concrete.pop(stroke_id, None)
            cross.virtual.pop(stroke_id, None)
            cross.virtual_pos.pop(stroke_id, None)

    def reverse_stroke(self, stroke_id):
        """Reverse the traversal direction of a stroke in place."""
        stroke = self.strokes[stroke_id]
        arc_ids = {self.vertices[v].outgoing for v in stroke.vertices} - {None}
        for aid in arc_ids:
            self.reverse_arc(aid)
        for vid in stroke.vertices:
            vertex = self.vertices[vid]
            vertex.incoming, vertex.outgoing = vertex.outgoing, vertex.incoming
        stroke.vertices.reverse()

    # Vertices

    def vertex_at(self, stroke_id, index):
        return self.vertices[self.strokes[stroke_id].vertices[index]]

    def next_vertex(self, vertex_id):
        vertex = self.vertices[vertex_id]
        if vertex.outgoing is None:
            return None
        return self.arcs[vertex.outgoing].end

    def previous_vertex(self, vertex_id):
        vertex = self.vertices[vertex_id]
        if vertex.incoming is None:
            return None
        return self.arcs[vertex.incoming].start

    def remove_vertex(self, vertex_id):
        vertex = self.vertices.pop(vertex_id)
        self.strokes[vertex.stroke_id].vertices.remove(vertex_id)
        return vertex

    def iter_vertices(self):
        for stroke in self.strokes.values():
            for vid in stroke.vertices:
                yield self.vertices[vid]

    # Arcs

    def new_arc(self, stroke_id, start, end, center=None, clockwise=False,
                full_circle=False, circle_point=None, virtuals=None, original=None):
        """Create an arc between two vertices and wire it into both."""
        arc = StrokeArc(
            arc_id=self._new_handle(),
            stroke_id=stroke_id,
            start=start,
            end=end,
            center=center,
            clockwise=clockwise,
            full_circle=full_circle,
            circle_point=circle_point,
            virtuals=list(virtuals or []),
            original=list(original or []),
        )
        self.arcs[arc.arc_id] = arc
        self.vertices[start].outgoing = arc.arc_id
        self.vertices[end].incoming = arc.arc_id
        return arc

    def delete_arc(self, arc_id):
        return self.arcs.pop(arc_id)

    def arc_of(self, stroke_id, index):
        """The index-th arc of a stroke (the outgoing arc of its index-th vertex)."""
        return self.arcs[self.vertex_at(stroke_id, index).outgoing]

    def iter_arcs(self):
        for stroke in self.strokes.values():
            for i in range(stroke.arc_count):
                yield self.arcs[self.vertices[stroke.vertices[i]].outgoing]

    def arc_geometry(self, arc_id):
        """Curve piece for an arc from the current vertex positions."""
        arc = self.arcs[arc_id]
        start = self.vertices[arc.start].position
        end = self.vertices[arc.end].position
        if arc.full_circle and arc.circle_point is not None:
            start = end = arc.circle_point
        return make_curve(start, end, arc.center, arc.clockwise, arc.full_circle)

    def arc_original_positions(self, arc_id):
        return [self.station_position(s) for s in self.arcs[arc_id].original]

    def reverse_arc(self, arc_id):
        arc = self.arcs[arc_id]
        arc.start, arc.end = arc.end, arc.start
        arc.clockwise = not arc.clockwise
        arc.virtuals.reverse()
        arc.original.reverse()
        return arc

    def extend_arc_to(self, vertex_id, arc_id, target_arc_id):
        """
        Move an endpoint vertex of an arc along the arc's supporting curve
        onto the nearest intersection with another arc.

        Returns:
            True when the vertex was moved
        """
        arc = self.arcs[arc_id]
        if vertex_id not in (arc.start, arc.end):
            raise InternalConsistencyError(f"Vertex {vertex_id} is not an endpoint of arc {arc_id}")
        curve = self.arc_geometry(arc_id)
        target = self.arc_geometry(target_arc_id)
        vertex = self.vertices[vertex_id]

        if curve.center is None:
            carrier = Line.through(curve.start, curve.end)
            hits = points_only(intersect(target, carrier))
            if not hits:
                return False
            best = min(hits, key=lambda p: distance(p, vertex.position))
        else:
            carrier = Circle(curve.center, curve.radius)
            hits = points_only(intersect(target, carrier))
            if not hits:
                return False
            # sweep backwards from the start, forwards from the end
            arm = sub(vertex.position, curve.center)
            measure_cw = (not curve.clockwise) if vertex_id == arc.start else curve.clockwise
            sweep = cw_angle if measure_cw else ccw_angle
            best = min(hits, key=lambda p: sweep(arm, sub(p, curve.center)))
        vertex.position = best
        return True

    @property
    def arc_count(self):
        return sum(stroke.arc_count for stroke in self.strokes.values())

    # Crossings

    def add_cross(self, station_id, position=None):
        station_id = str(station_id)
        if position is None:
            position = self.station_position(station_id)
        cross = StrokeCross(
            cross_id=self._new_handle(),
            station_id=station_id,
            disk_center=(float(position[0]), float(position[1])),
        )
        self.crosses[cross.cross_id] = cross
        return cross

    def remove_cross(self, cross_id):
        cross = self.crosses.pop(cross_id)
        for vid in cross.concrete.values():
            if vid in self.vertices:
                self.vertices[vid].cross_id = None
        for aid in cross.virtual.values():
            if aid in self.arcs and cross_id in self.arcs[aid].virtuals:
                self.arcs[aid].virtuals.remove(cross_id)
        return cross

    # Queries

    def stroke_polyline(self, stroke_id, samples_per_arc=16):
        """Points along a stroke as an (n, 2) array, sampling curved arcs."""
        stroke = self.strokes[stroke_id]
        pieces = []
        for i in range(stroke.arc_count):
            aid = self.vertices[stroke.vertices[i]].outgoing
            curve = self.arc_geometry(aid)
            extra = 0 if curve.kind == "segment" else samples_per_arc
            pts = curve.sample(extra)
            pieces.append(pts if not pieces else pts[1:])
        if not pieces:
            positions = [self.vertices[vid].position for vid in stroke.vertices[:1]]
            return np.array(positions, dtype=np.float64).reshape(-1, 2)
        return np.vstack(pieces)

    def bounding_box(self):
        """(min_x, min_y, max_x, max_y) over stations and current geometry."""
        pieces = [np.array([data["pos"] for _, data in self.stations.nodes(data=True)]).reshape(-1, 2)]
        for stroke_id in self.strokes:
            pieces.append(self.stroke_polyline(stroke_id, samples_per_arc=8))
        pts = np.vstack(pieces)
        if not len(pts):
            return (0.0, 0.0, 0.0, 0.0)
        return MultiPoint(pts).bounds

    def check_consistency(self):
        """
        Verify structural invariants.

        Raises:
            InternalConsistencyError: On the first violation found
        """
        for stroke in self.strokes.values():
            n = len(stroke.vertices)
            for i, vid in enumerate(stroke.vertices):
                vertex = self.vertices.get(vid)
                if vertex is None:
                    raise InternalConsistencyError(f"Stroke {stroke.stroke_id} lists missing vertex {vid}")
                if vertex.stroke_id != stroke.stroke_id:
                    raise InternalConsistencyError(f"Vertex {vid} belongs to stroke {vertex.stroke_id}, listed in {stroke.stroke_id}")
                has_next = stroke.circular or i < n - 1
                if has_next:
                    arc = self.arcs.get(vertex.outgoing)
                    if arc is None:
                        raise InternalConsistencyError(f"Vertex {vid} has no outgoing arc")
                    expected = stroke.vertices[(i + 1) % n]
                    if arc.start != vid or arc.end != expected:
                        raise InternalConsistencyError(f"Arc {arc.arc_id} does not connect {vid} to {expected}")
                    if self.vertices[expected].incoming != arc.arc_id:
                        raise InternalConsistencyError(f"Vertex {expected} does not receive arc {arc.arc_id}")
                    if arc.stroke_id != stroke.stroke_id:
                        raise InternalConsistencyError(f"Arc {arc.arc_id} references a vertex of another stroke")
                elif vertex.outgoing is not None:
                    raise InternalConsistencyError(f"Stroke end vertex {vid} has an outgoing arc")

        for cross in self.crosses.values():
            if len(cross.concrete) + len(cross.virtual) < 2:
                raise InternalConsistencyError(f"Crossing {cross.cross_id} has fewer than two strokes")
            for stroke_id, vid in cross.concrete.items():
                vertex = self.vertices.get(vid)
                if vertex is None or vertex.cross_id != cross.cross_id or vertex.stroke_id != stroke_id:
                    raise InternalConsistencyError(f"Crossing {cross.cross_id} has a stale concrete vertex {vid}")
            for stroke_id, aid in cross.virtual.items():
                arc = self.arcs.get(aid)
                if arc is None or cross.cross_id not in arc.virtuals or arc.stroke_id != stroke_id:
                    raise InternalConsistencyError(f"Crossing {cross.cross_id} has a stale virtual arc {aid}")

        for arc in self.arcs.values():
            for cid in arc.virtuals:
                cross = self.crosses.get(cid)
                if cross is None or cross.virtual.get(arc.stroke_id) != arc.arc_id:
                    raise InternalConsistencyError(f"Arc {arc.arc_id} lists crossing {cid} that does not list it")
