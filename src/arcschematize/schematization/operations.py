"""
Candidate simplification operations.

An operation replaces the two arcs around a vertex by a single curve piece.
Besides its cost it records how it interacts with the rest of the network:
arcs that would have to be extended to keep meeting the replacement, the
extension pieces themselves, and the reasons it is currently blocked.
"""


class Operation:
    """Cost and topology bookkeeping shared by all operations."""

    def __init__(self, cost=0.0):
        self.cost = cost
        self.start_extension = set()
        self.end_extension = set()
        self.fixed_crosses = set()
        self.extensions = []
        self.related_arc_blocked = set()
        self.unrelated_arc_blocked = set()
        self.cross_blocked = set()

    @property
    def is_blocked(self):
        return bool(self.related_arc_blocked or self.unrelated_arc_blocked or self.cross_blocked)

    def clear(self):
        self.start_extension.clear()
        self.end_extension.clear()
        self.fixed_crosses.clear()
        self.extensions.clear()
        self.related_arc_blocked.clear()
        self.unrelated_arc_blocked.clear()
        self.cross_blocked.clear()

    def block_reasons(self):
        return {
            "related": sorted(self.related_arc_blocked),
            "unrelated": sorted(self.unrelated_arc_blocked),
            "cross": sorted(self.cross_blocked),
        }


class VertexOperation(Operation):
    """Remove one vertex, replacing its two arcs by `replacement`."""

    def __init__(self, vertex, replacement, cost=0.0):
        super().__init__(cost)
        self.vertex = vertex
        self.replacement = replacement

    def __repr__(self):
        state = "blocked" if self.is_blocked else "free"
        return f"VertexOperation(vertex={self.vertex}, cost={self.cost:.4g}, {state})"


class CrossOperation(Operation):
    """
    Several vertex operations committed together.

    The cost is the largest cost among the bundled operations.
    """

    def __init__(self):
        super().__init__(0.0)
        self.operations = []

    def add(self, vertex_operation):
        self.operations.append(vertex_operation)
        self.cost = max(self.cost, vertex_operation.cost)
        self.start_extension |= vertex_operation.start_extension
        self.end_extension |= vertex_operation.end_extension

    @property
    def is_blocked(self):
        return super().is_blocked or any(op.is_blocked for op in self.operations)

    def __repr__(self):
        return f"CrossOperation(vertices={[op.vertex for op in self.operations]}, cost={self.cost:.4g})"
