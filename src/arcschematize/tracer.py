"""
Runtime tracing for the schematization engine.

Spans are timed, nested sections of work; events are single lines attached to
the innermost open span. Both go to stderr and, when configured, to a trace
file, as text or as JSON records. The Diagnostics recorder collects labelled
geometry for the vertices in a region of interest while the engine runs.
"""

import functools
import hashlib
import json
import sys
import time
from contextlib import contextmanager
from datetime import datetime

import networkx as nx
import numpy as np
from pydantic import BaseModel
from shapely.geometry.base import BaseGeometry


LEVELS = ("ERROR", "WARN", "INFO", "DEBUG")

_CURVE_TYPES = ("Segment", "Arc", "FullCircle", "Circle", "Line")


class Tracer:
    """
    Nested span and event logger.

    Disabled by default; `configure` switches it on and opens the trace file.
    """

    def __init__(self):
        self.enabled = False
        self.level = "INFO"
        self.json_output = False
        self.file_path = None
        self._out = None
        self._open_spans = []

    def configure(self, enabled=False, level="INFO", file_path=None, json_output=False):
        self.close()
        self.enabled = enabled
        self.level = level.upper()
        self.json_output = json_output
        self.file_path = file_path
        if enabled and file_path:
            self._out = open(file_path, "w", encoding="utf-8")

    def close(self):
        if self._out is not None:
            self._out.close()
            self._out = None

    def accepts(self, level):
        if not self.enabled:
            return False
        threshold = LEVELS.index(self.level) if self.level in LEVELS else 2
        rank = LEVELS.index(level) if level in LEVELS else 2
        return rank <= threshold

    def _emit(self, line):
        print(line, file=sys.stderr)
        if self._out is not None:
            self._out.write(line + "\n")
            self._out.flush()

    def _log(self, level, module, name, message, meta=None):
        if not self.accepts(level):
            return
        now = datetime.now()
        stamp = f"{now:%H:%M:%S}.{now.microsecond // 1000:03d}"
        depth = len(self._open_spans)
        where = f"{module}:{name}" if name else module
        self._emit(f"{stamp} {level:<5} {'  ' * depth}{where}  {message}")

        if self.json_output:
            self._emit(json.dumps({
                "timestamp": stamp,
                "level": level,
                "depth": depth,
                "module": module,
                "function": name,
                "message": message,
                "meta": {key: summarize(value) for key, value in (meta or {}).items()},
            }))

    @contextmanager
    def span(self, name, module="", **meta):
        """
        Time a section of work.

        An exception escaping the section is logged at ERROR and re-raised.
        """
        if not self.enabled:
            yield
            return

        self._log("INFO", module, name, _with_meta("start", meta))
        self._open_spans.append((module, name))
        began = time.perf_counter()
        try:
            yield
        except Exception as e:
            self._open_spans.pop()
            ms = (time.perf_counter() - began) * 1000
            self._log("ERROR", module, name, f"failed dt={ms:.0f}ms error={type(e).__name__}: {str(e)[:100]}")
            raise
        self._open_spans.pop()
        ms = (time.perf_counter() - began) * 1000
        self._log("INFO", module, name, f"end ok dt={ms:.0f}ms")

    def event(self, message, level="INFO", **meta):
        """Log a single line inside the innermost open span."""
        if not self.accepts(level):
            return
        module, name = self._open_spans[-1] if self._open_spans else ("", "")
        self._log(level, module, name, _with_meta(message, meta), meta)


def _with_meta(message, meta):
    parts = [message] + [f"{key}={summarize(value)}" for key, value in meta.items()]
    return " ".join(parts).strip()


def _short_hash(data):
    return hashlib.md5(data).hexdigest()[:8]


def _summarize_array(arr):
    dims = "x".join(str(n) for n in arr.shape)
    payload = arr.tobytes() if 0 < arr.size < 1000 else str(arr.shape).encode()
    return f"ndarray({arr.dtype},{dims},h={_short_hash(payload)})"


def _summarize_geometry(geom):
    bounds = ",".join(f"{b:.2f}" for b in geom.bounds)
    return f"{type(geom).__name__}(bounds=[{bounds}])"


def _summarize_graph(graph):
    return f"{type(graph).__name__}(nodes={graph.number_of_nodes()},edges={graph.number_of_edges()})"


def _summarize_model(model):
    names = list(type(model).model_fields)[:3]
    return f"{type(model).__name__}(fields={names}...)"


def _summarize_str(text):
    if len(text) > 50:
        return f"str(len={len(text)},h={_short_hash(text.encode())})"
    return repr(text)


def _is_point(obj):
    return isinstance(obj, tuple) and len(obj) == 2 and all(isinstance(c, float) for c in obj)


def _summarize_sequence(seq):
    name = type(seq).__name__
    if not seq:
        return f"{name}(len=0)"
    return f"{name}(len={len(seq)},first={type(seq[0]).__name__})"


def _summarize_dict(mapping):
    keys = ",".join(str(k) for k in list(mapping)[:5])
    return f"dict(len={len(mapping)},keys=[{keys}])"


# first match wins; points must precede general tuples
_SUMMARIZERS = [
    (lambda o: o is None, lambda o: "None"),
    (lambda o: isinstance(o, np.ndarray), _summarize_array),
    (lambda o: isinstance(o, BaseGeometry), _summarize_geometry),
    (lambda o: isinstance(o, nx.Graph), _summarize_graph),
    (lambda o: isinstance(o, BaseModel), _summarize_model),
    (lambda o: type(o).__name__ in _CURVE_TYPES, repr),
    (lambda o: isinstance(o, str), _summarize_str),
    (_is_point, lambda o: f"({o[0]:.3f},{o[1]:.3f})"),
    (lambda o: isinstance(o, (list, tuple)), _summarize_sequence),
    (lambda o: isinstance(o, dict), _summarize_dict),
    (lambda o: isinstance(o, (int, float)), str),
]


def summarize(obj, max_len=200):
    """
    Compact, length-capped description of an object for trace lines.

    Arrays, shapely geometries, station graphs, pydantic models, curve pieces
    and points get their own forms; anything else shows its type name.
    """
    text = f"<{type(obj).__name__}>"
    for matches, describe in _SUMMARIZERS:
        try:
            if matches(obj):
                text = describe(obj)
                break
        except Exception:
            break
    if len(text) > max_len:
        text = text[:max_len - 3] + "..."
    return text


def trace(label=None, arg_names=None):
    """Run the decorated function inside a span named after it."""
    def decorator(func):
        module = (func.__module__ or "").rsplit(".", 1)[-1]

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if not _tracer.enabled:
                return func(*args, **kwargs)
            meta = {name: kwargs[name] for name in arg_names or () if name in kwargs}
            with _tracer.span(label or func.__name__, module=module, **meta):
                return func(*args, **kwargs)

        return wrapper
    return decorator


class Diagnostics:
    """
    Geometry recorder for debugging a region of the network.

    Disabled instances ignore everything. When enabled, `focus` decides
    whether the vertex currently being processed lies in the region of
    interest, and `record` stores (label, geometry) pairs only while focused.
    Messages go to the tracer at DEBUG level.
    """

    def __init__(self, enabled=False, region=None, max_records=500, tracer=None):
        self.enabled = enabled
        self.region = region
        self.max_records = max_records
        self.records = []
        self.focused = False
        self._tracer = tracer or _tracer

    @classmethod
    def from_config(cls, config):
        return cls(enabled=config.enabled, region=config.region, max_records=config.max_records)

    def focus(self, position):
        """Focus on the vertex at position; returns whether it is of interest."""
        if not self.enabled:
            self.focused = False
        elif self.region is None:
            self.focused = True
        else:
            x, y, radius = self.region
            dx = position[0] - x
            dy = position[1] - y
            self.focused = dx * dx + dy * dy <= radius * radius
        return self.focused

    def record(self, label, *geometries):
        if not (self.enabled and self.focused):
            return
        room = max(0, self.max_records - len(self.records))
        self.records.extend((label, geometry) for geometry in geometries[:room])

    def debug(self, message, **meta):
        if self.enabled and self.focused:
            self._tracer.event(message, level="DEBUG", **meta)

    def clear(self):
        self.records = []
        self.focused = False


_tracer = Tracer()


def get_tracer():
    return _tracer


def configure_tracer(enabled=False, level="INFO", file_path=None, json_output=False):
    """Configure the process-wide tracer."""
    _tracer.configure(enabled=enabled, level=level, file_path=file_path, json_output=json_output)
