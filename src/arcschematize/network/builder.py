"""
Stroke network construction from explicit lines.

Each line is an ordered sequence of station ids and becomes one stroke.
Connections that cross without sharing a station are planarized by inserting
a virtual station at the crossing point. Every station visited by two or more
strokes becomes a crossing; at virtual stations the strokes are then merged
back into single straight arcs that pass through the crossing virtually.
"""

from arcschematize.geometry.intersect import intersect, is_point
from arcschematize.geometry.primitives import Segment, distance, is_approximately
from arcschematize.network import crossing
from arcschematize.network.network import StrokeNetwork
from arcschematize.tracer import get_tracer, trace


def _split_points(stations, lines):
    """
    Find crossing points between connections that share no station.

    Returns:
        (extra station positions, dict edge -> list of station ids along it)
    """
    tracer = get_tracer()
    edges = []
    for line in lines:
        for a, b in zip(line, line[1:]):
            key = (a, b) if a <= b else (b, a)
            if key not in edges:
                edges.append(key)

    virtual = {}
    along = {edge: [] for edge in edges}

    def station_at(p):
        for sid, pos in list(stations.items()) + list(virtual.items()):
            if is_approximately(pos, p):
                return sid
        sid = f"virt{len(virtual) + 1}"
        virtual[sid] = p
        return sid

    for i, e1 in enumerate(edges):
        seg1 = Segment(stations[e1[0]], stations[e1[1]])
        for e2 in edges[i + 1:]:
            if set(e1) & set(e2):
                continue
            seg2 = Segment(stations[e2[0]], stations[e2[1]])
            for item in intersect(seg1, seg2, closed=True):
                if not is_point(item):
                    tracer.event(f"Overlapping connections {e1} and {e2}, not planarized", level="WARN")
                    continue
                sid = station_at(item)
                for edge in (e1, e2):
                    if sid not in edge and sid not in along[edge]:
                        along[edge].append(sid)

    return virtual, along


def _expand_line(line, stations, along):
    expanded = [line[0]]
    for a, b in zip(line, line[1:]):
        key = (a, b) if a <= b else (b, a)
        inner = sorted(along[key], key=lambda sid: distance(stations[a], stations[sid]))
        expanded.extend(inner)
        expanded.append(b)
    return expanded


@trace(label="build_network")
def build_network(stations, lines):
    """
    Build a planar stroke network.

    Args:
        stations: Dict station id -> (x, y)
        lines: List of station id sequences; a line whose last station equals
            its first is circular

    Returns:
        StrokeNetwork with crossings at shared stations
    """
    tracer = get_tracer()
    stations = {str(k): (float(v[0]), float(v[1])) for k, v in stations.items()}
    lines = [[str(s) for s in line] for line in lines]
    for line in lines:
        if len(line) < 2:
            raise ValueError(f"A line needs at least two stations: {line}")
        body = line[:-1] if line[0] == line[-1] else line
        if len(set(body)) != len(body):
            raise ValueError(f"A line may only revisit its first station: {line}")

    virtual, along = _split_points(stations, lines)
    network = StrokeNetwork()
    for sid, pos in stations.items():
        network.add_station(sid, pos)
    for sid, pos in virtual.items():
        network.add_station(sid, pos, label=f"virtual {sid}", virtual=True)
    positions = dict(stations)
    positions.update(virtual)

    for line in lines:
        expanded = _expand_line(line, positions, along)
        circular = expanded[0] == expanded[-1]
        if circular:
            expanded = expanded[:-1]
        if len(set(expanded)) != len(expanded):
            raise ValueError(f"Line crosses itself, split it into separate lines: {line}")
        network.new_stroke(expanded, circular=circular)

    at_station = {}
    for vertex in network.iter_vertices():
        at_station.setdefault(vertex.station_id, []).append(vertex.vertex_id)

    for sid, vids in at_station.items():
        if len(vids) < 2:
            continue
        cross = network.add_cross(sid)
        for vid in vids:
            vertex = network.vertices[vid]
            vertex.cross_id = cross.cross_id
            cross.concrete[vertex.stroke_id] = vid

    for cross in list(network.crosses.values()):
        if network.is_virtual_station(cross.station_id):
            _collapse_virtual(network, cross)

    tracer.event(
        f"Built {len(network.strokes)} strokes, {network.arc_count} arcs, "
        f"{len(network.crosses)} crossings ({len(virtual)} planarized)"
    )
    network.check_consistency()
    return network


def _collapse_virtual(network, cross):
    """Merge the two arcs at each planarization vertex into one straight arc."""
    for stroke_id, vid in list(cross.concrete.items()):
        vertex = network.vertices[vid]
        inc = network.arcs[vertex.incoming]
        out = network.arcs[vertex.outgoing]
        virtuals = inc.virtuals + [cross.cross_id] + out.virtuals
        original = inc.original + out.original[1:]
        network.delete_arc(inc.arc_id)
        network.delete_arc(out.arc_id)
        merged = network.new_arc(stroke_id, inc.start, out.end, virtuals=virtuals, original=original)
        for cid in virtuals:
            crossing.change_stroke(network, network.crosses[cid], stroke_id, merged.arc_id)
        network.remove_vertex(vid)
