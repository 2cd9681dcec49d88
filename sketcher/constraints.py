"""
ParaSketch Sketcher - Constraint System
Geometrische Constraints, Anwendbarkeits-Regeln und Selektions-Auflösung.

Ein Constraint referenziert Primitive nur über IDs. Die Auflösung einer
Benutzer-Selektion in konkrete Operanden (resolve_selection) passiert vor dem
Solve und ist deterministisch, unabhängig von der Klick-Reihenfolge.
"""

from dataclasses import dataclass
from enum import Enum
import math
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from .errors import InapplicableSelection, InvalidConstraintValue
from .geometry import GeometryType, point_line_distance, point_segment_distance, primitive_kind


class ConstraintType(Enum):
    """Verfügbare Constraint-Typen"""
    # Linien
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    PARALLEL = "parallel"
    PERPENDICULAR = "perpendicular"

    # Maße (Dimensionen)
    DISTANCE = "distance"
    RADIUS = "radius"
    DIAMETER = "diameter"

    # Punkte
    COINCIDENT = "coincident"
    MIDPOINT = "midpoint"
    POINT_ON_LINE = "pointOnLine"
    POINT_ON_CIRCLE = "pointOnCircle"

    # Kreise / Gleichheit
    EQUAL = "equal"
    TANGENT = "tangent"
    CONCENTRIC = "concentric"


class ConstraintStatus(Enum):
    """Ergebnis der DOF-Klassifikation"""
    UNDER_CONSTRAINED = "under_constrained"
    FULLY_CONSTRAINED = "fully_constrained"
    OVER_CONSTRAINED = "overconstrained"


# Anzahl entfernter Freiheitsgrade pro Constraint
DOF_REMOVED: Dict[ConstraintType, int] = {
    ConstraintType.HORIZONTAL: 1,
    ConstraintType.VERTICAL: 1,
    ConstraintType.DISTANCE: 1,
    ConstraintType.RADIUS: 1,
    ConstraintType.DIAMETER: 1,
    ConstraintType.PARALLEL: 1,
    ConstraintType.PERPENDICULAR: 1,
    ConstraintType.TANGENT: 1,
    ConstraintType.EQUAL: 1,
    ConstraintType.POINT_ON_LINE: 1,
    ConstraintType.POINT_ON_CIRCLE: 1,
    ConstraintType.COINCIDENT: 2,
    ConstraintType.CONCENTRIC: 2,
    ConstraintType.MIDPOINT: 2,
}

DIMENSIONAL_TYPES = frozenset({ConstraintType.DISTANCE, ConstraintType.RADIUS, ConstraintType.DIAMETER})

# Auf Mehrfach-Selektion: ein Constraint pro Primitiv
MULTI_APPLY_TYPES = frozenset({
    ConstraintType.HORIZONTAL, ConstraintType.VERTICAL,
    ConstraintType.RADIUS, ConstraintType.DIAMETER,
})

_CURVES = (GeometryType.CIRCLE, GeometryType.ARC)

_LABELS = {
    ConstraintType.HORIZONTAL: "Horizontal",
    ConstraintType.VERTICAL: "Vertical",
    ConstraintType.DISTANCE: "Distance",
    ConstraintType.RADIUS: "Radius",
    ConstraintType.DIAMETER: "Diameter",
    ConstraintType.COINCIDENT: "Coincident",
    ConstraintType.PARALLEL: "Parallel",
    ConstraintType.PERPENDICULAR: "Perpendicular",
    ConstraintType.EQUAL: "Equal",
    ConstraintType.TANGENT: "Tangent",
    ConstraintType.CONCENTRIC: "Concentric",
    ConstraintType.MIDPOINT: "Midpoint",
    ConstraintType.POINT_ON_LINE: "Point on Line",
    ConstraintType.POINT_ON_CIRCLE: "Point on Circle",
}


@dataclass(frozen=True)
class Constraint:
    """Geometrische Regel über geordnete Primitiv-IDs"""
    type: ConstraintType
    primitive_ids: Tuple[str, ...]
    value: Optional[float] = None  # Für Dimension-Constraints
    driving: bool = True  # True = treibend, False = Referenz (zählt nicht für DOF)
    id: str = ""

    def __post_init__(self):
        object.__setattr__(self, "type", ConstraintType(self.type))
        object.__setattr__(self, "primitive_ids", tuple(self.primitive_ids))
        if self.value is not None:
            object.__setattr__(self, "value", float(self.value))

    @property
    def dof_removed(self) -> int:
        """Entfernte DOF; equal über k Primitive entfernt k-1."""
        if not self.driving:
            return 0
        if self.type is ConstraintType.EQUAL:
            return max(len(self.primitive_ids) - 1, 0)
        return DOF_REMOVED[self.type]

    def __repr__(self):
        value = f"={self.value:g}" if self.value is not None else ""
        return f"{self.type.value}[{self.id}]{self.primitive_ids}{value}"


def requires_value(constraint_type: ConstraintType) -> bool:
    return ConstraintType(constraint_type) in DIMENSIONAL_TYPES


def get_constraint_label(constraint_type: ConstraintType) -> str:
    return _LABELS[ConstraintType(constraint_type)]


def validate_value(constraint_type: ConstraintType, value: Optional[float]) -> Optional[float]:
    """
    Prüft den Wert eines Constraints beim Authoring.

    Raises:
        InvalidConstraintValue: Dimension ohne Wert, mit negativem oder
            nicht-endlichem Wert.
    """
    constraint_type = ConstraintType(constraint_type)
    if constraint_type not in DIMENSIONAL_TYPES:
        return None if value is None else float(value)
    if value is None:
        raise InvalidConstraintValue(f"{constraint_type.value} benötigt einen Wert")
    value = float(value)
    if not math.isfinite(value) or value < 0:
        raise InvalidConstraintValue(f"{constraint_type.value}: Wert muss >= 0 sein, ist {value}")
    return value


# =============================================================================
# Anwendbarkeit
# =============================================================================

def canonical_operands(constraint_type: ConstraintType, primitives: Sequence) -> Tuple[str, ...]:
    """
    Prüft Arity/Typ-Regeln und liefert die Operanden in kanonischer Reihenfolge.

    Kanonisch heißt: Punkt vor Linie (midpoint, pointOnLine), Punkt vor Kurve
    (pointOnCircle), Linie vor Kurve (tangent). Sonst Selektions-Reihenfolge.

    Raises:
        InapplicableSelection
    """
    constraint_type = ConstraintType(constraint_type)
    kinds = [primitive_kind(p) for p in primitives]
    ids = tuple(p.id for p in primitives)
    n = len(kinds)

    def fail():
        names = ", ".join(k.name.lower() for k in kinds) or "nichts"
        raise InapplicableSelection(f"{constraint_type.value} ist nicht anwendbar auf: {names}")

    if constraint_type in (ConstraintType.HORIZONTAL, ConstraintType.VERTICAL):
        if n == 1 and kinds[0] is GeometryType.LINE:
            return ids
        fail()

    if constraint_type is ConstraintType.DISTANCE:
        if n == 1 and kinds[0] is GeometryType.LINE:
            return ids
        if n == 2 and kinds == [GeometryType.POINT, GeometryType.POINT]:
            return ids
        fail()

    if constraint_type in (ConstraintType.RADIUS, ConstraintType.DIAMETER):
        if n == 1 and kinds[0] in _CURVES:
            return ids
        fail()

    if constraint_type is ConstraintType.COINCIDENT:
        if n == 2 and kinds == [GeometryType.POINT, GeometryType.POINT] and ids[0] != ids[1]:
            return ids
        fail()

    if constraint_type is ConstraintType.MIDPOINT:
        if n == 2 and sorted(k.value for k in kinds) == [GeometryType.POINT.value, GeometryType.LINE.value]:
            return ids if kinds[0] is GeometryType.POINT else (ids[1], ids[0])
        fail()

    if constraint_type in (ConstraintType.PARALLEL, ConstraintType.PERPENDICULAR):
        if n == 2 and kinds == [GeometryType.LINE, GeometryType.LINE] and ids[0] != ids[1]:
            return ids
        fail()

    if constraint_type is ConstraintType.EQUAL:
        if n >= 2 and len(set(ids)) == n:
            if all(k is GeometryType.LINE for k in kinds) or all(k in _CURVES for k in kinds):
                return ids
        fail()

    if constraint_type is ConstraintType.TANGENT:
        if n == 2 and ids[0] != ids[1]:
            if kinds[0] is GeometryType.LINE and kinds[1] in _CURVES:
                return ids
            if kinds[1] is GeometryType.LINE and kinds[0] in _CURVES:
                return (ids[1], ids[0])
            if kinds[0] in _CURVES and kinds[1] in _CURVES:
                return ids
        fail()

    if constraint_type is ConstraintType.CONCENTRIC:
        if n == 2 and ids[0] != ids[1] and all(k in _CURVES for k in kinds):
            return ids
        fail()

    if constraint_type is ConstraintType.POINT_ON_LINE:
        if n == 2:
            entity = (GeometryType.POINT, GeometryType.CIRCLE)
            if kinds[0] in entity and kinds[1] is GeometryType.LINE:
                return ids
            if kinds[1] in entity and kinds[0] is GeometryType.LINE:
                return (ids[1], ids[0])
        fail()

    if constraint_type is ConstraintType.POINT_ON_CIRCLE:
        if n == 2:
            if kinds[0] is GeometryType.POINT and kinds[1] in _CURVES:
                return ids
            if kinds[1] is GeometryType.POINT and kinds[0] in _CURVES:
                return (ids[1], ids[0])
        fail()

    raise TypeError(f"Unbekannter Constraint-Typ: {constraint_type!r}")


def is_applicable(constraint_type: ConstraintType, primitives: Sequence) -> bool:
    try:
        canonical_operands(constraint_type, primitives)
    except InapplicableSelection:
        return False
    return True


# =============================================================================
# Selektions-Auflösung
# =============================================================================

def _entity_position(sketch, primitive):
    """Position eines Punkt-artigen Operanden (Kreis: Mittelpunkt)."""
    if primitive_kind(primitive) is GeometryType.POINT:
        return sketch.position(primitive.id)
    return sketch.position(primitive.center_id)


def _resolve_nearest(constraint_type, primitives, sketch) -> Tuple[str, ...]:
    """
    Auflösung für pointOnLine / pointOnCircle / tangent mit mehr als zwei
    selektierten Primitiven: genau ein "Subjekt", der nächstgelegene Partner gewinnt.
    """
    kinds = [primitive_kind(p) for p in primitives]

    if constraint_type is ConstraintType.POINT_ON_LINE:
        subjects = [p for p, k in zip(primitives, kinds) if k in (GeometryType.POINT, GeometryType.CIRCLE)]
        partners = [p for p, k in zip(primitives, kinds) if k is GeometryType.LINE]

        def score(line):
            a, b = sketch.line_endpoints(line.id)
            return point_segment_distance(_entity_position(sketch, subjects[0]), a, b)

    elif constraint_type is ConstraintType.POINT_ON_CIRCLE:
        subjects = [p for p, k in zip(primitives, kinds) if k is GeometryType.POINT]
        partners = [p for p, k in zip(primitives, kinds) if k in _CURVES]

        def score(curve):
            center, radius = sketch.curve_geometry(curve.id)
            p = sketch.position(subjects[0].id)
            return abs(math.hypot(p[0] - center[0], p[1] - center[1]) - radius)

    elif constraint_type is ConstraintType.TANGENT:
        subjects = [p for p, k in zip(primitives, kinds) if k is GeometryType.LINE]
        partners = [p for p, k in zip(primitives, kinds) if k in _CURVES]

        def score(curve):
            a, b = sketch.line_endpoints(subjects[0].id)
            center, radius = sketch.curve_geometry(curve.id)
            return abs(point_line_distance(center, a, b) - radius)

    else:
        raise InapplicableSelection(f"{constraint_type.value} akzeptiert keine Mehrfach-Selektion")

    if len(subjects) != 1 or not partners or len(subjects) + len(partners) != len(primitives):
        raise InapplicableSelection(
            f"{constraint_type.value}: genau ein Subjekt und mindestens ein Partner erwartet"
        )

    # min() ist stabil: bei Gleichstand gewinnt der zuerst selektierte Partner
    best = min(partners, key=score)
    logger.debug(f"[Constraint] {constraint_type.value}: {subjects[0].id} -> nächster Partner {best.id}")
    return canonical_operands(constraint_type, [subjects[0], best])


def resolve_selection(constraint_type: ConstraintType, primitives: Sequence, sketch) -> List[Tuple[str, ...]]:
    """
    Löst eine Benutzer-Selektion in Operanden-Tupel auf (ein Tupel pro Constraint).

    - horizontal/vertical/radius/diameter: ein Constraint pro Primitiv
    - pointOnLine/pointOnCircle/tangent mit > 2 Primitiven: nächster Partner
    - sonst: genau ein Constraint, Arity/Typ geprüft

    Raises:
        InapplicableSelection
    """
    constraint_type = ConstraintType(constraint_type)
    primitives = list(primitives)
    if not primitives:
        raise InapplicableSelection(f"{constraint_type.value}: leere Selektion")

    if constraint_type in MULTI_APPLY_TYPES:
        return [canonical_operands(constraint_type, [p]) for p in primitives]

    if len(primitives) > 2 and constraint_type in (
        ConstraintType.POINT_ON_LINE, ConstraintType.POINT_ON_CIRCLE, ConstraintType.TANGENT
    ):
        return [_resolve_nearest(constraint_type, primitives, sketch)]

    return [canonical_operands(constraint_type, primitives)]


def get_available_constraints(primitives: Sequence, sketch) -> List[ConstraintType]:
    """Alle Constraint-Typen, die auf die Selektion anwendbar sind (Enum-Reihenfolge)."""
    available = []
    for constraint_type in ConstraintType:
        try:
            resolve_selection(constraint_type, primitives, sketch)
        except InapplicableSelection:
            continue
        available.append(constraint_type)
    return available


def get_default_value(constraint_type: ConstraintType, primitives: Sequence, sketch) -> Optional[float]:
    """
    Vorschlagswert für Dimensionen aus der aktuellen Geometrie:
    Länge / Abstand / Radius / Durchmesser. None für nicht-dimensionale Typen.
    """
    constraint_type = ConstraintType(constraint_type)
    if constraint_type not in DIMENSIONAL_TYPES or not primitives:
        return None
    operands = resolve_selection(constraint_type, primitives, sketch)[0]
    if constraint_type is ConstraintType.DISTANCE:
        if len(operands) == 1:
            a, b = sketch.line_endpoints(operands[0])
        else:
            a, b = sketch.position(operands[0]), sketch.position(operands[1])
        return math.hypot(b[0] - a[0], b[1] - a[1])
    _, radius = sketch.curve_geometry(operands[0])
    return radius if constraint_type is ConstraintType.RADIUS else 2 * radius


def get_selection_description(primitives: Sequence) -> str:
    """Kurzbeschreibung wie '2 lines, 1 point'."""
    counts: Dict[str, int] = {}
    for p in primitives:
        name = primitive_kind(p).name.lower()
        counts[name] = counts.get(name, 0) + 1
    return ", ".join(f"{n} {name}{'s' if n > 1 else ''}" for name, n in counts.items()) or "nothing selected"
