"""Tests for the iterative schematization engine."""

import math

import pytest

from conftest import bend_over_bar, three_line_hub


def run_to_end(engine, limit=100):
    steps = 0
    while steps < limit and engine.step():
        steps += 1
    return steps


def geometry_of(network):
    """Comparable description of the current arcs."""
    result = []
    for arc in network.iter_arcs():
        start = network.vertices[arc.start].position
        end = network.vertices[arc.end].position
        center = None if arc.center is None else tuple(round(c, 9) for c in arc.center)
        result.append((
            tuple(round(c, 9) for c in start),
            tuple(round(c, 9) for c in end),
            center,
            arc.clockwise,
            tuple(arc.original),
        ))
    return sorted(result, key=repr)


class TestEngineInit:
    """Tests for engine initialization."""

    def test_step_before_init(self):
        """Test that stepping an engine without a network fails loudly."""
        from arcschematize.schematization.engine import IterativeSchematization

        engine = IterativeSchematization()

        with pytest.raises(RuntimeError):
            engine.step()

    def test_init_counts_arcs(self, wiggly_network, make_engine):
        """Test that the starting complexity is the arc count."""
        from arcschematize.models import EngineState

        engine = make_engine(wiggly_network)

        assert engine.get_complexity() == 5
        assert engine.state == EngineState.INITIALIZED
        assert engine.max_cross_dist == pytest.approx(math.hypot(10.0, 1.0) * 0.0075)

    def test_endpoints_have_no_operations(self, wiggly_network, make_engine):
        """Test that only interior vertices get candidates."""
        engine = make_engine(wiggly_network)
        stroke = next(iter(wiggly_network.strokes.values()))

        assert engine.vertex_operations[stroke.vertices[0]] == []
        assert engine.vertex_operations[stroke.vertices[-1]] == []
        for vid in stroke.vertices[1:-1]:
            ops = engine.vertex_operations[vid]
            assert 0 < len(ops) <= 3
            assert [op.cost for op in ops] == sorted(op.cost for op in ops)

    def test_high_degree_disabled(self, hub_network, fast_config, frechet):
        """Test that fixed crossings get no operations when high degree is off."""
        from arcschematize.schematization.engine import IterativeSchematization

        fast_config.schematization.allow_high_degree = False
        engine = IterativeSchematization(fast_config.schematization, frechet)
        engine.init(hub_network)
        cross = next(iter(hub_network.crosses.values()))

        for vid in cross.concrete.values():
            assert engine.vertex_operations[vid] == []


class TestEngineSteps:
    """Tests for stepping and stop states."""

    def test_single_line_simplifies_to_one_arc(self, wiggly_network, make_engine):
        """Test that an isolated stroke collapses down to a single arc."""
        from arcschematize.models import EngineState

        engine = make_engine(wiggly_network)
        steps = run_to_end(engine)

        assert steps == 4
        assert engine.get_complexity() == 1
        assert wiggly_network.arc_count == 1
        assert engine.state == EngineState.STUCK
        arc = next(wiggly_network.iter_arcs())
        assert arc.original == ["w1", "w2", "w3", "w4", "w5", "w6"]

    def test_complexity_drops_by_one_per_step(self, hub_network, make_engine):
        """Test that every vertex step removes exactly one arc."""
        engine = make_engine(hub_network)
        before = engine.get_complexity()

        steps = run_to_end(engine, limit=50)

        assert steps > 0
        assert engine.history.complexities() == list(range(before - 1, before - 1 - steps, -1))
        assert hub_network.arc_count == engine.get_complexity()

    def test_max_complexity_stops(self, wiggly_network, make_engine):
        """Test that the complexity bound ends the run without latching."""
        from arcschematize.models import EngineState

        engine = make_engine(wiggly_network)

        assert not engine.step(max_complexity=5)
        assert engine.state == EngineState.COMPLEXITY_REACHED
        assert engine.step()
        assert engine.state == EngineState.STEP_APPLIED

    def test_threshold_stops(self, wiggly_network, make_engine):
        """Test that a cost threshold below every candidate stops the run."""
        from arcschematize.models import EngineState

        engine = make_engine(wiggly_network)

        assert not engine.step(max_cost=-1.0)
        assert engine.state == EngineState.THRESHOLD_EXCEEDED
        assert engine.get_complexity() == 5
        assert engine.step()

    def test_stuck_latches(self, bar_network, make_engine):
        """Test that a stuck engine stays stuck."""
        from arcschematize.models import EngineState

        engine = make_engine(bar_network)

        assert engine.step()
        assert not engine.step()
        assert engine.state == EngineState.STUCK
        assert not engine.step(max_complexity=0)
        assert engine.state == EngineState.STUCK

    def test_blocked_bend_avoids_bar(self, bar_network, make_engine):
        """Test that the committed arc does not cut the unrelated bar."""
        from arcschematize.geometry.intersect import intersect

        engine = make_engine(bar_network)
        engine.step()

        arcs = list(bar_network.iter_arcs())
        bar = next(arc for arc in arcs if arc.original == ["c1", "c2"])
        bend = next(arc for arc in arcs if arc.arc_id != bar.arc_id)
        assert intersect(bar_network.arc_geometry(bend.arc_id), bar_network.arc_geometry(bar.arc_id)) == []

    def test_consistency_failure_aborts(self, wiggly_network, make_engine, monkeypatch):
        """Test that a broken invariant aborts the run for good."""
        from arcschematize.models import EngineState
        from arcschematize.network.network import InternalConsistencyError

        engine = make_engine(wiggly_network)

        def broken():
            raise InternalConsistencyError("broken on purpose")

        monkeypatch.setattr(wiggly_network, "check_consistency", broken)

        assert not engine.step()
        assert engine.state == EngineState.ABORTED
        assert not engine.step()
        assert engine.state == EngineState.ABORTED

    def test_deterministic(self, make_engine):
        """Test that two runs on equal input produce the same network."""
        from arcschematize.network.builder import build_network

        first = build_network(*three_line_hub())
        second = build_network(*three_line_hub())
        engine_a = make_engine(first)
        engine_b = make_engine(second)

        run_to_end(engine_a, limit=20)
        run_to_end(engine_b, limit=20)

        assert engine_a.history.complexities() == engine_b.history.complexities()
        assert geometry_of(first) == geometry_of(second)

    def test_history_records_steps(self, wiggly_network, make_engine):
        """Test the step history."""
        engine = make_engine(wiggly_network)
        engine.step()
        engine.step()

        records = list(engine.history)
        assert [r.step for r in records] == [1, 2]
        assert all(r.kind == "vertex" for r in records)
        assert engine.history.max_cost() == max(r.cost for r in records)


class TestExtensionStep:
    """Tests for committing operations that extend other arcs."""

    def test_branch_follows_chord(self, t_network, make_engine):
        """Test that the branch ending at the bend is moved onto the new arc."""
        from arcschematize.geometry.primitives import Segment
        from arcschematize.models import EngineState
        from arcschematize.schematization.operations import VertexOperation
        from arcschematize.validate.rules import run_validation

        network = t_network
        engine = make_engine(network)
        vertex = next(v for v in network.iter_vertices() if v.station_id == "a2" and not v.is_endpoint)
        cross_id = vertex.cross_id
        stroke_id = vertex.stroke_id
        op = VertexOperation(vertex.vertex_id, Segment((-4.0, 0.0), (4.0, 0.0)), 1.0)
        engine.topology.recheck_topology(op)

        assert engine.apply(op)
        assert engine.state == EngineState.STEP_APPLIED

        cross = network.crosses[cross_id]
        assert stroke_id in cross.virtual
        branch = network.vertices[next(iter(cross.concrete.values()))]
        assert branch.position == pytest.approx((0.0, 0.0))
        assert cross.disk_center == pytest.approx((0.0, 0.0))
        assert not run_validation(network).has_errors


class TestCrossOperation:
    """Tests for bundled operations at a crossing."""

    def test_cross_operation_removes_both_vertices(self, plus_network, make_engine):
        """Test that straightening both strokes at once leaves a movable crossing."""
        from arcschematize.network.crossing import is_movable
        from arcschematize.validate.rules import run_validation

        network = plus_network
        engine = make_engine(network)
        cross_id = next(iter(network.crosses))

        bundle = engine.make_cross_operation(cross_id)

        assert bundle is not None
        assert len(bundle.operations) == 2
        assert bundle.cost == pytest.approx(0.0, abs=1e-9)
        assert engine.apply(bundle)
        assert engine.get_complexity() == 6
        assert network.arc_count == 6
        assert is_movable(network.crosses[cross_id])
        record = list(engine.history)[-1]
        assert record.kind == "cross"
        assert record.stations == ["X", "X"]
        assert not run_validation(network).has_errors

    def test_no_bundle_without_crossing_vertices(self, make_engine):
        """Test that a crossing needs free operations at every concrete vertex."""
        from arcschematize.network.builder import build_network

        stations, lines = bend_over_bar()
        stations["d1"] = (-3, 3)
        lines.append(["d1", "a1"])
        network = build_network(stations, lines)
        engine = make_engine(network)
        cross_id = next(iter(network.crosses))

        # the branch vertex is a stroke end and has no operation
        assert engine.make_cross_operation(cross_id) is None
