"""Tests for extension points and topology checks of vertex operations."""

import pytest


def bend_vertex(network, station_id):
    """The vertex at a station that has both an incoming and an outgoing arc."""
    for vertex in network.iter_vertices():
        if vertex.station_id == station_id and not vertex.is_endpoint:
            return vertex
    raise LookupError(station_id)


def straight_replacement(network, vertex):
    from arcschematize.geometry.primitives import Segment

    start = network.vertices[network.previous_vertex(vertex.vertex_id)].position
    end = network.vertices[network.next_vertex(vertex.vertex_id)].position
    return Segment(start, end)


class TestExtension:
    """Tests for moving arc ends onto a replacement."""

    def test_end_extension_slides_onto_replacement(self, t_network):
        """Test that an arc ending on the bend is extended down to the chord."""
        from arcschematize.schematization.extension import find_end_extension

        network = t_network
        vertex = bend_vertex(network, "a2")
        cross = network.crosses[vertex.cross_id]
        branch = next(vid for vid in cross.concrete.values() if vid != vertex.vertex_id)
        arc_id = network.vertices[branch].incoming

        ext = find_end_extension(network, arc_id, straight_replacement(network, vertex), vertex.vertex_id)

        assert ext == pytest.approx((0.0, 0.0))

    def test_start_extension_slides_onto_replacement(self):
        """Test the same extension for an arc starting on the bend."""
        from arcschematize.network.builder import build_network
        from arcschematize.schematization.extension import find_start_extension

        stations = {"a1": (-4, 0), "a2": (0, 1), "a3": (4, 0), "b1": (0, 5)}
        network = build_network(stations, [["a1", "a2", "a3"], ["a2", "b1"]])
        vertex = bend_vertex(network, "a2")
        cross = network.crosses[vertex.cross_id]
        branch = next(vid for vid in cross.concrete.values() if vid != vertex.vertex_id)
        arc_id = network.vertices[branch].outgoing

        ext = find_start_extension(network, arc_id, straight_replacement(network, vertex), vertex.vertex_id)

        assert ext == pytest.approx((0.0, 0.0))

    def test_no_extension_when_carrier_misses(self, t_network):
        """Test that a replacement parallel to the branch gives no extension point."""
        from arcschematize.geometry.primitives import Segment
        from arcschematize.schematization.extension import find_end_extension

        network = t_network
        vertex = bend_vertex(network, "a2")
        cross = network.crosses[vertex.cross_id]
        branch = next(vid for vid in cross.concrete.values() if vid != vertex.vertex_id)
        arc_id = network.vertices[branch].incoming

        replacement = Segment((1.0, -1.0), (1.0, 3.0))

        assert find_end_extension(network, arc_id, replacement, vertex.vertex_id) is None


class TestTopologyChecker:
    """Tests for block reasons of vertex operations."""

    def test_unrelated_arc_blocks(self, bar_network, make_engine):
        """Test that cutting through another stroke blocks the operation."""
        from arcschematize.schematization.operations import VertexOperation

        engine = make_engine(bar_network)
        vertex = bend_vertex(bar_network, "a2")
        op = VertexOperation(vertex.vertex_id, straight_replacement(bar_network, vertex), 1.0)

        engine.topology.recheck_topology(op)

        assert op.is_blocked
        assert len(op.unrelated_arc_blocked) == 1
        bar = next(arc for arc in bar_network.iter_arcs() if arc.original == ["c1", "c2"])
        assert bar.arc_id in op.unrelated_arc_blocked
        assert op.block_reasons() == {"related": [], "unrelated": [bar.arc_id], "cross": []}

    def test_block_reasons_traced(self, bar_network, fast_config, frechet, capsys):
        """Test that a focused recheck reports its block reasons at DEBUG."""
        from arcschematize.schematization.engine import IterativeSchematization
        from arcschematize.schematization.operations import VertexOperation
        from arcschematize.tracer import Diagnostics, configure_tracer

        engine = IterativeSchematization(fast_config.schematization, frechet, Diagnostics(enabled=True))
        engine.init(bar_network)
        vertex = bend_vertex(bar_network, "a2")
        op = VertexOperation(vertex.vertex_id, straight_replacement(bar_network, vertex), 1.0)
        capsys.readouterr()

        configure_tracer(enabled=True, level="DEBUG")
        try:
            engine.topology.recheck_topology(op)
        finally:
            configure_tracer(enabled=False)

        err = capsys.readouterr().err
        assert f"Vertex {vertex.vertex_id} blocked: True" in err
        assert "unrelated=list(len=1,first=int)" in err
        assert "cross=list(len=0)" in err

    def test_extension_recorded(self, t_network, make_engine):
        """Test that the branch arc is registered for extension."""
        from arcschematize.schematization.operations import VertexOperation

        engine = make_engine(t_network)
        vertex = bend_vertex(t_network, "a2")
        op = VertexOperation(vertex.vertex_id, straight_replacement(t_network, vertex), 1.0)

        engine.topology.recheck_topology(op)

        assert not op.is_blocked
        assert len(op.end_extension) == 1
        assert not op.start_extension
        assert len(op.extensions) == 1

    def test_uncheck_requests_recheck(self, t_network, make_engine):
        """Test that forgetting an extended arc asks for a full recheck."""
        from arcschematize.schematization.operations import VertexOperation

        engine = make_engine(t_network)
        vertex = bend_vertex(t_network, "a2")
        op = VertexOperation(vertex.vertex_id, straight_replacement(t_network, vertex), 1.0)
        engine.topology.recheck_topology(op)
        arc_id = next(iter(op.end_extension))

        assert engine.topology.uncheck_arc_from_operation(arc_id, op)
        assert not op.end_extension
        assert not engine.topology.uncheck_arc_from_operation(arc_id, op)

    def test_hub_candidates_keep_order(self, hub_network, make_engine):
        """Test that the hub vertex has a free candidate through the crossing."""
        engine = make_engine(hub_network)
        cross = next(iter(hub_network.crosses.values()))

        for vid in cross.concrete.values():
            ops = engine.vertex_operations[vid]
            assert ops
            assert any(not op.is_blocked for op in ops)

    def test_order_swap_blocked(self, hub_network, make_engine):
        """Test that routing a stroke to the other side of the hub is refused."""
        from arcschematize.geometry.primitives import arc_through_point
        from arcschematize.schematization.operations import VertexOperation

        engine = make_engine(hub_network)
        cross = next(iter(hub_network.crosses.values()))
        vid = next(iter(cross.concrete.values()))
        start = hub_network.vertices[hub_network.previous_vertex(vid)].position
        end = hub_network.vertices[hub_network.next_vertex(vid)].position
        # a detour far above the hub passes the crossing on the wrong side
        detour = arc_through_point(start, (0.0, 1.0), end)
        op = VertexOperation(vid, detour, 0.0)

        engine.topology.recheck_topology(op)

        assert op.is_blocked


class TestSameCyclicOrder:
    """Tests for cyclic order comparison."""

    def test_rotation_matches(self):
        """Test that rotated orders are equal."""
        from arcschematize.schematization.topology import same_cyclic_order

        first = [(1, None), (2, None), (3, None)]
        second = [(2, None), (3, None), (1, None)]

        assert same_cyclic_order(first, second)

    def test_reflection_differs(self):
        """Test that a mirrored order is different."""
        from arcschematize.schematization.topology import same_cyclic_order

        first = [(1, None), (2, None), (3, None)]
        second = [(3, None), (2, None), (1, None)]

        assert not same_cyclic_order(first, second)
