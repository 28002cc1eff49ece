"""
Pydantic data models for the stroke network and engine results.

Network entities refer to each other through integer handles owned by a
StrokeNetwork, never through object references, so that removing a vertex or
replacing an arc cannot leave dangling pointers behind.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from arcschematize.geometry.primitives import Circle

Point = Tuple[float, float]


class EngineState(str, Enum):
    """State of the iterative schematization engine."""
    INITIALIZED = "initialized"
    STEP_APPLIED = "step_applied"
    COMPLEXITY_REACHED = "complexity_reached"
    THRESHOLD_EXCEEDED = "threshold_exceeded"
    STUCK = "stuck"
    ABORTED = "aborted"


class ArcKind(str, Enum):
    """Geometric kind of a stroke arc."""
    SEGMENT = "segment"
    ARC = "arc"
    FULL_CIRCLE = "full_circle"


class Severity(str, Enum):
    """Severity levels for validation checks."""
    ERROR = "error"
    WARN = "warn"
    INFO = "info"


class Stroke(BaseModel):
    """An ordered chain of vertices; circular strokes close on themselves."""
    stroke_id: int
    vertices: List[int] = Field(default_factory=list)
    circular: bool = False

    model_config = ConfigDict(extra="forbid")

    @property
    def arc_count(self):
        if self.circular:
            return len(self.vertices)
        return max(len(self.vertices) - 1, 0)


class StrokeVertex(BaseModel):
    """A vertex of a stroke, positioned at (or extended away from) a station."""
    vertex_id: int
    station_id: str
    position: Point
    stroke_id: int
    cross_id: Optional[int] = None
    incoming: Optional[int] = None
    outgoing: Optional[int] = None

    model_config = ConfigDict(extra="forbid")

    @property
    def is_endpoint(self):
        return self.incoming is None or self.outgoing is None


class StrokeArc(BaseModel):
    """
    A curve piece between two consecutive vertices of a stroke.

    Geometry is derived from the endpoint positions plus center and
    orientation; full circles additionally keep the point the circle passes
    through. `virtuals` lists the crossings the arc passes through in order
    along the arc, and `original` the station chain it replaces.
    """
    arc_id: int
    stroke_id: int
    start: int
    end: int
    center: Optional[Point] = None
    clockwise: bool = False
    full_circle: bool = False
    circle_point: Optional[Point] = None
    virtuals: List[int] = Field(default_factory=list)
    original: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def kind(self):
        if self.full_circle:
            return ArcKind.FULL_CIRCLE
        if self.center is None:
            return ArcKind.SEGMENT
        return ArcKind.ARC


class StrokeCross(BaseModel):
    """
    A place where two or more strokes meet.

    Strokes participate concretely (a vertex of the stroke sits here) or
    virtually (an arc of the stroke passes through). The disk encloses every
    point that witnesses the crossing.
    """
    cross_id: int
    station_id: str
    concrete: Dict[int, int] = Field(default_factory=dict)
    virtual: Dict[int, int] = Field(default_factory=dict)
    virtual_pos: Dict[int, Point] = Field(default_factory=dict)
    intersections: List[Point] = Field(default_factory=list)
    disk_center: Point
    disk_radius: float = 0.0

    model_config = ConfigDict(extra="forbid")

    @property
    def disk(self):
        return Circle(self.disk_center, self.disk_radius)

    def set_disk(self, circle):
        self.disk_center = circle.center
        self.disk_radius = circle.radius

    @property
    def strokes(self):
        return list(self.concrete.keys()) + list(self.virtual.keys())


class CheckResult(BaseModel):
    """Result of a single validation check."""
    rule_id: str
    severity: Severity
    passed: bool
    message: str
    evidence: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class ValidationReport(BaseModel):
    """Collection of validation check results."""
    checks: List[CheckResult] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def has_errors(self):
        """Check if any errors exist."""
        return any(c.severity == Severity.ERROR and not c.passed for c in self.checks)

    @property
    def error_count(self):
        """Count of failed error-level checks."""
        return sum(1 for c in self.checks if c.severity == Severity.ERROR and not c.passed)

    @property
    def warning_count(self):
        """Count of failed warning-level checks."""
        return sum(1 for c in self.checks if c.severity == Severity.WARN and not c.passed)


class StepRecord(BaseModel):
    """One committed simplification step."""
    step: int
    kind: str  # "vertex" or "cross"
    stations: List[str] = Field(default_factory=list)
    cost: float
    complexity: int
    replacements: List[ArcKind] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class SchematizationResult(BaseModel):
    """Outcome of a schematization run."""
    state: EngineState
    complexity_before: int
    complexity_after: int
    steps: int
    max_cost: float = 0.0
    history: List[StepRecord] = Field(default_factory=list)
    validation: Optional[ValidationReport] = None

    model_config = ConfigDict(extra="forbid")
