"""
ParaSketch - Geometrie-Primitives
Punkte, Linien, Kreise, Bögen als unveränderliche Werte.

Linien, Kreise und Bögen referenzieren Punkte über ihre ID, damit
Endpunkte zwischen Primitiven geteilt werden (Topologie über IDs).
"""

from dataclasses import dataclass
from enum import Enum, auto
import math
from typing import Optional, Tuple, Union

from config.tolerances import Tolerances

from .errors import GeometryError

Vec2 = Tuple[float, float]


class GeometryType(Enum):
    """Geometrie-Typen"""
    POINT = auto()
    LINE = auto()
    CIRCLE = auto()
    ARC = auto()


def _coerce_scalar(value, fallback=0.0) -> float:
    """NumPy-Skalare und Wrapper in native Floats umwandeln."""
    try:
        item_attr = getattr(value, "item", None)
        if callable(item_attr):
            value = item_attr()
        return float(value)
    except (TypeError, ValueError):
        return fallback


@dataclass(frozen=True)
class Point2D:
    """2D-Punkt - Grundbaustein aller Geometrie"""
    x: float = 0.0
    y: float = 0.0
    id: str = ""
    fixed: bool = False

    def __post_init__(self):
        """
        FIREWALL: Wandelt alles sofort in native Python-Floats um.
        Schützt vor NumPy-Skalaren aus dem Solver.
        """
        object.__setattr__(self, "x", _coerce_scalar(self.x))
        object.__setattr__(self, "y", _coerce_scalar(self.y))
        object.__setattr__(self, "fixed", bool(self.fixed))

    @property
    def position(self) -> Vec2:
        return (self.x, self.y)

    def distance_to(self, other: "Point2D") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def __repr__(self):
        flag = " fixed" if self.fixed else ""
        return f"P[{self.id}]({self.x:.3f}, {self.y:.3f}{flag})"


@dataclass(frozen=True)
class Line2D:
    """2D-Linie zwischen zwei Punkt-IDs"""
    p1_id: str
    p2_id: str
    id: str = ""

    def __repr__(self):
        return f"L[{self.id}]({self.p1_id} -> {self.p2_id})"


@dataclass(frozen=True)
class Circle2D:
    """Kreis über Mittelpunkt-ID und Radius"""
    center_id: str
    radius: float = 1.0
    id: str = ""

    def __post_init__(self):
        radius = _coerce_scalar(self.radius, fallback=float("nan"))
        if not math.isfinite(radius) or radius < 0:
            raise GeometryError(f"Kreis-Radius muss >= 0 sein, ist {self.radius!r}")
        object.__setattr__(self, "radius", radius)

    def __repr__(self):
        return f"C[{self.id}]({self.center_id}, r={self.radius:.3f})"


@dataclass(frozen=True)
class Arc2D:
    """
    Kreisbogen über Mittelpunkt-, Start- und End-ID.

    Der Bogen läuft gegen den Uhrzeigersinn von start nach end. Der Radius ist
    abgeleitet (|start - center|); das Feld hält nur den zuletzt bekannten Wert.
    """
    center_id: str
    start_id: str
    end_id: str
    radius: float = 0.0
    id: str = ""

    def __post_init__(self):
        object.__setattr__(self, "radius", abs(_coerce_scalar(self.radius)))

    def __repr__(self):
        return f"A[{self.id}]({self.center_id}: {self.start_id} -> {self.end_id})"


Primitive = Union[Point2D, Line2D, Circle2D, Arc2D]


def primitive_kind(primitive) -> GeometryType:
    """Exhaustive Dispatch über die geschlossene Primitiv-Summe."""
    if isinstance(primitive, Point2D):
        return GeometryType.POINT
    if isinstance(primitive, Line2D):
        return GeometryType.LINE
    if isinstance(primitive, Circle2D):
        return GeometryType.CIRCLE
    if isinstance(primitive, Arc2D):
        return GeometryType.ARC
    raise TypeError(f"Unbekannter Primitiv-Typ: {type(primitive).__name__}")


def referenced_point_ids(primitive) -> Tuple[str, ...]:
    """Alle Punkt-IDs, die ein Primitiv referenziert (Punkt: sich selbst)."""
    kind = primitive_kind(primitive)
    if kind is GeometryType.POINT:
        return (primitive.id,)
    if kind is GeometryType.LINE:
        return (primitive.p1_id, primitive.p2_id)
    if kind is GeometryType.CIRCLE:
        return (primitive.center_id,)
    return (primitive.center_id, primitive.start_id, primitive.end_id)


# =============================================================================
# Geometrie-Helfer auf Koordinaten-Tupeln
# =============================================================================

def distance(a: Vec2, b: Vec2) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def midpoint(a: Vec2, b: Vec2) -> Vec2:
    return ((a[0] + b[0]) / 2, (a[1] + b[1]) / 2)


def segment_parameter(p: Vec2, a: Vec2, b: Vec2) -> Optional[float]:
    """Projektions-Parameter t von p auf a->b (ungeklemmt); None bei Null-Länge."""
    dx, dy = b[0] - a[0], b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq < Tolerances.GEOMETRY_EPSILON:
        return None
    return ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq


def point_segment_distance(p: Vec2, a: Vec2, b: Vec2) -> float:
    """
    Abstand Punkt-Strecke mit geklemmter Projektion.
    Strecke mit Länge 0 → Punkt-Punkt Abstand.
    """
    t = segment_parameter(p, a, b)
    if t is None:
        return distance(p, a)
    t = max(0.0, min(1.0, t))
    proj = (a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1]))
    return distance(p, proj)


def point_line_distance(p: Vec2, a: Vec2, b: Vec2) -> float:
    """Abstand Punkt zur unendlichen Geraden durch a, b."""
    length = distance(a, b)
    if length < Tolerances.GEOMETRY_EPSILON:
        return distance(p, a)
    cross = (b[0] - a[0]) * (p[1] - a[1]) - (b[1] - a[1]) * (p[0] - a[0])
    return abs(cross) / length


def line_line_intersection(a1: Vec2, a2: Vec2, b1: Vec2, b2: Vec2) -> Optional[Tuple[Vec2, float, float]]:
    """
    Schnittpunkt zweier Geraden.

    Returns:
        (punkt, t, u) mit Parametern auf beiden Strecken, None wenn parallel.
    """
    d1 = (a2[0] - a1[0], a2[1] - a1[1])
    d2 = (b2[0] - b1[0], b2[1] - b1[1])
    denom = d1[0] * d2[1] - d1[1] * d2[0]
    if abs(denom) < Tolerances.GEOMETRY_EPSILON:
        return None
    t = ((b1[0] - a1[0]) * d2[1] - (b1[1] - a1[1]) * d2[0]) / denom
    u = ((b1[0] - a1[0]) * d1[1] - (b1[1] - a1[1]) * d1[0]) / denom
    return (a1[0] + t * d1[0], a1[1] + t * d1[1]), t, u


def circle_segment_intersections(center: Vec2, radius: float, a: Vec2, b: Vec2):
    """Schnittpunkte Kreis-Strecke (nur t in [0, 1])."""
    dx, dy = b[0] - a[0], b[1] - a[1]
    fx, fy = a[0] - center[0], a[1] - center[1]
    qa = dx * dx + dy * dy
    if qa < Tolerances.GEOMETRY_EPSILON:
        return []
    qb = 2 * (fx * dx + fy * dy)
    qc = fx * fx + fy * fy - radius * radius
    disc = qb * qb - 4 * qa * qc
    if disc < 0:
        return []
    root = math.sqrt(disc)
    hits = []
    for t in sorted({(-qb - root) / (2 * qa), (-qb + root) / (2 * qa)}):
        if 0.0 <= t <= 1.0:
            hits.append((a[0] + t * dx, a[1] + t * dy))
    return hits


def circumcenter(p1: Vec2, p2: Vec2, p3: Vec2) -> Optional[Vec2]:
    """Umkreismittelpunkt von drei Punkten, None wenn kollinear."""
    x1, y1 = p1
    x2, y2 = p2
    x3, y3 = p3
    d = 2 * (x1 * (y2 - y3) + x2 * (y3 - y1) + x3 * (y1 - y2))
    if abs(d) < Tolerances.GEOMETRY_COLLINEAR:
        return None
    s1, s2, s3 = x1 * x1 + y1 * y1, x2 * x2 + y2 * y2, x3 * x3 + y3 * y3
    ux = (s1 * (y2 - y3) + s2 * (y3 - y1) + s3 * (y1 - y2)) / d
    uy = (s1 * (x3 - x2) + s2 * (x1 - x3) + s3 * (x2 - x1)) / d
    return (ux, uy)


def angle_of(center: Vec2, p: Vec2) -> float:
    return math.atan2(p[1] - center[1], p[0] - center[0])


def ccw_sweep(start_angle: float, end_angle: float) -> float:
    """Sweep gegen den Uhrzeigersinn von start nach end, in (0, 2π]."""
    sweep = (end_angle - start_angle) % (2 * math.pi)
    return sweep if sweep > 0 else 2 * math.pi


def angle_in_ccw_span(angle: float, start_angle: float, end_angle: float) -> bool:
    """Liegt angle auf dem CCW-Bogen von start nach end?"""
    return (angle - start_angle) % (2 * math.pi) <= ccw_sweep(start_angle, end_angle)


def arc_midpoint(center: Vec2, radius: float, start: Vec2, end: Vec2) -> Vec2:
    """Punkt in der Mitte des CCW-Bogens (berücksichtigt den Wrap über ±π)."""
    a0 = angle_of(center, start)
    mid = a0 + ccw_sweep(a0, angle_of(center, end)) / 2
    return (center[0] + radius * math.cos(mid), center[1] + radius * math.sin(mid))
