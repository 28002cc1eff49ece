"""Tests for the tracer module."""

import numpy as np
import pytest


class TestSummarize:
    """Tests for object summarization."""

    def test_numpy_array_summary(self):
        """Test that numpy arrays are summarized with shape and type."""
        from arcschematize.tracer import summarize

        arr = np.zeros((100, 2), dtype=np.float64)
        summary = summarize(arr)

        assert "ndarray" in summary
        assert "100x2" in summary
        assert "float64" in summary

    def test_summary_capped_length(self):
        """Test that summary never exceeds max length."""
        from arcschematize.tracer import summarize

        large_dict = {f"key_{i}": f"value_{i}" for i in range(100)}
        summary = summarize(large_dict, max_len=200)

        assert len(summary) <= 200

    def test_point_summary(self):
        """Test that points are printed compactly."""
        from arcschematize.tracer import summarize

        assert summarize((1.0, 2.5)) == "(1.000,2.500)"

    def test_curve_summary(self):
        """Test that curve pieces use their own representation."""
        from arcschematize.geometry.primitives import Segment
        from arcschematize.tracer import summarize

        summary = summarize(Segment((0.0, 0.0), (1.0, 1.0)))

        assert summary.startswith("Segment(")

    def test_graph_summary(self, wiggly_network):
        """Test station graph summarization."""
        from arcschematize.tracer import summarize

        summary = summarize(wiggly_network.stations)

        assert "nodes=6" in summary
        assert "edges=5" in summary

    def test_geometry_summary(self):
        """Test shapely geometry summarization."""
        from shapely.geometry import box

        from arcschematize.tracer import summarize

        summary = summarize(box(0, 0, 2, 1))

        assert "Polygon" in summary
        assert "bounds=[0.00,0.00,2.00,1.00]" in summary

    def test_pydantic_model_summary(self):
        """Test Pydantic model summarization."""
        from arcschematize.models import StrokeVertex
        from arcschematize.tracer import summarize

        vertex = StrokeVertex(vertex_id=1, station_id="a", position=(0.0, 0.0), stroke_id=2)
        summary = summarize(vertex)

        assert "StrokeVertex" in summary

    def test_none_summary(self):
        """Test None summarization."""
        from arcschematize.tracer import summarize

        assert summarize(None) == "None"


class TestTracerSpan:
    """Tests for tracer span functionality."""

    def test_span_nesting(self, capsys):
        """Test that spans produce proper indentation."""
        from arcschematize.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="INFO")
        tracer = get_tracer()

        with tracer.span("outer", module="test"):
            with tracer.span("inner", module="test"):
                tracer.event("inside")

        captured = capsys.readouterr()
        lines = captured.err.strip().split("\n")

        assert len(lines) >= 5
        assert any("    test:inner  inside" in line for line in lines)

        configure_tracer(enabled=False)

    def test_level_filter(self, capsys):
        """Test that events above the configured level are dropped."""
        from arcschematize.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=True, level="WARN")
        tracer = get_tracer()
        tracer.event("quiet", level="DEBUG")
        tracer.event("loud", level="ERROR")

        captured = capsys.readouterr()
        assert "quiet" not in captured.err
        assert "loud" in captured.err

        configure_tracer(enabled=False)

    def test_tracer_disabled_no_output(self, capsys):
        """Test that disabled tracer produces no output."""
        from arcschematize.tracer import configure_tracer, get_tracer

        configure_tracer(enabled=False)
        tracer = get_tracer()

        with tracer.span("test", module="test"):
            tracer.event("should not appear")

        captured = capsys.readouterr()
        assert captured.err == ""


class TestTraceDecorator:
    """Tests for the @trace decorator."""

    def test_decorator_runs_function(self):
        """Test that decorated function executes normally."""
        from arcschematize.tracer import configure_tracer, trace

        configure_tracer(enabled=False)

        @trace(label="test_func")
        def my_func(x):
            return x * 2

        assert my_func(5) == 10

    def test_decorator_with_exception(self, capsys):
        """Test that failures are logged and re-raised."""
        from arcschematize.tracer import configure_tracer, trace

        configure_tracer(enabled=True, level="INFO")

        @trace(label="failing_func")
        def failing_func():
            raise ValueError("test error")

        with pytest.raises(ValueError):
            failing_func()

        captured = capsys.readouterr()
        assert "failed" in captured.err
        assert "ValueError" in captured.err

        configure_tracer(enabled=False)


class TestDiagnostics:
    """Tests for the geometry diagnostics recorder."""

    def test_disabled_records_nothing(self):
        """Test that a disabled recorder ignores everything."""
        from arcschematize.tracer import Diagnostics

        diagnostics = Diagnostics()

        assert not diagnostics.focus((0.0, 0.0))
        diagnostics.record("label", (0.0, 0.0))
        assert diagnostics.records == []

    def test_region_focus(self):
        """Test that only vertices inside the region are recorded."""
        from arcschematize.tracer import Diagnostics

        diagnostics = Diagnostics(enabled=True, region=[0.0, 0.0, 1.0])

        assert not diagnostics.focus((2.0, 0.0))
        diagnostics.record("outside", (2.0, 0.0))
        assert diagnostics.focus((0.5, 0.5))
        diagnostics.record("inside", (0.5, 0.5))

        assert diagnostics.records == [("inside", (0.5, 0.5))]

    def test_record_limit(self):
        """Test that recording stops at max_records."""
        from arcschematize.tracer import Diagnostics

        diagnostics = Diagnostics(enabled=True, max_records=2)
        diagnostics.focus((0.0, 0.0))
        diagnostics.record("many", (0.0, 0.0), (1.0, 0.0), (2.0, 0.0))

        assert len(diagnostics.records) == 2
        diagnostics.clear()
        assert diagnostics.records == []
        assert not diagnostics.focused

    def test_from_config(self):
        """Test construction from DiagnosticsConfig."""
        from arcschematize.config import DiagnosticsConfig
        from arcschematize.tracer import Diagnostics

        diagnostics = Diagnostics.from_config(DiagnosticsConfig(enabled=True, region=[1.0, 1.0, 0.5]))

        assert diagnostics.enabled
        assert diagnostics.focus((1.2, 1.2))

    def test_engine_records_when_enabled(self, t_network, fast_config, frechet):
        """Test that the engine feeds geometry to an enabled recorder."""
        from arcschematize.schematization.engine import IterativeSchematization
        from arcschematize.tracer import Diagnostics

        diagnostics = Diagnostics(enabled=True)
        engine = IterativeSchematization(fast_config.schematization, frechet, diagnostics)
        engine.init(t_network)

        assert any(label == "replacement" for label, _ in diagnostics.records)
