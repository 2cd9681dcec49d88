"""
ParaSketch Sketcher - Sketch-Wert und Ebenen-Deskriptor

Ein Sketch ist ein unveränderlicher Wert: jede Operation liefert einen neuen
Sketch, der Eingabe-Sketch bleibt unberührt. `revision` zählt monoton hoch und
dient dazu, veraltete asynchrone Solve-Ergebnisse zu verwerfen.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
import math
from typing import Dict, Optional, Tuple

import numpy as np

from .constraints import Constraint, ConstraintStatus
from .errors import InvalidReference
from .geometry import Arc2D, Circle2D, GeometryType, Line2D, Point2D, Vec2, primitive_kind


class PlaneType(Enum):
    """Die drei kanonischen Skizzen-Ebenen"""
    XY = "XY"
    XZ = "XZ"
    YZ = "YZ"


@dataclass(frozen=True)
class SketchPlane:
    """Ebene im Raum: Ursprung plus orthonormales Achsen-Dreibein."""
    type: PlaneType
    origin: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    normal: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    x_axis: Tuple[float, float, float] = (1.0, 0.0, 0.0)
    y_axis: Tuple[float, float, float] = (0.0, 1.0, 0.0)

    def to_world(self, x: float, y: float) -> Tuple[float, float, float]:
        """Plane-lokale Koordinaten -> Weltkoordinaten."""
        world = np.asarray(self.origin) + x * np.asarray(self.x_axis) + y * np.asarray(self.y_axis)
        return tuple(float(v) for v in world)

    def to_local(self, point: Tuple[float, float, float]) -> Vec2:
        """Weltpunkt auf die Ebene projizieren -> (x, y)."""
        rel = np.asarray(point, dtype=float) - np.asarray(self.origin)
        return float(rel @ np.asarray(self.x_axis)), float(rel @ np.asarray(self.y_axis))


_PLANE_AXES = {
    PlaneType.XY: ((0.0, 0.0, 1.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)),
    PlaneType.XZ: ((0.0, 1.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, 1.0)),
    PlaneType.YZ: ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0)),
}


def create_sketch_plane(plane_type, origin=(0.0, 0.0, 0.0)) -> SketchPlane:
    """Ebene aus Typ ("XY"/"XZ"/"YZ") und optionalem Ursprung."""
    plane_type = PlaneType(plane_type.value if isinstance(plane_type, PlaneType) else str(plane_type).upper())
    normal, x_axis, y_axis = _PLANE_AXES[plane_type]
    return SketchPlane(
        type=plane_type,
        origin=tuple(float(v) for v in origin),
        normal=normal,
        x_axis=x_axis,
        y_axis=y_axis,
    )


@dataclass(frozen=True)
class Sketch:
    """
    Skizze als Wert: Primitive in Einfügereihenfolge, Constraints,
    abgeleitete DOF/Status, Revision und ID-Zähler.
    """
    id: str
    plane: SketchPlane
    primitives: Tuple = ()
    constraints: Tuple[Constraint, ...] = ()
    dof: int = 0
    status: ConstraintStatus = ConstraintStatus.FULLY_CONSTRAINED
    revision: int = 0
    next_id: int = 1
    _index: Dict[str, object] = field(default=None, init=False, repr=False, compare=False)
    _constraint_index: Dict[str, Constraint] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "primitives", tuple(self.primitives))
        object.__setattr__(self, "constraints", tuple(self.constraints))
        object.__setattr__(self, "_index", {p.id: p for p in self.primitives})
        object.__setattr__(self, "_constraint_index", {c.id: c for c in self.constraints})

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def has(self, primitive_id: str) -> bool:
        return primitive_id in self._index

    def get(self, primitive_id: str):
        """Primitiv per ID; InvalidReference wenn unbekannt."""
        try:
            return self._index[primitive_id]
        except KeyError:
            raise InvalidReference(f"Primitiv '{primitive_id}' existiert nicht in Sketch {self.id}") from None

    def get_constraint(self, constraint_id: str) -> Constraint:
        try:
            return self._constraint_index[constraint_id]
        except KeyError:
            raise InvalidReference(f"Constraint '{constraint_id}' existiert nicht in Sketch {self.id}") from None

    def has_constraint(self, constraint_id: str) -> bool:
        return constraint_id in self._constraint_index

    def point(self, point_id: str) -> Point2D:
        primitive = self.get(point_id)
        if primitive_kind(primitive) is not GeometryType.POINT:
            raise InvalidReference(f"'{point_id}' ist kein Punkt")
        return primitive

    def position(self, point_id: str) -> Vec2:
        p = self.point(point_id)
        return (p.x, p.y)

    def line_endpoints(self, line_id: str) -> Tuple[Vec2, Vec2]:
        line = self.get(line_id)
        if not isinstance(line, Line2D):
            raise InvalidReference(f"'{line_id}' ist keine Linie")
        return self.position(line.p1_id), self.position(line.p2_id)

    def curve_geometry(self, curve_id: str) -> Tuple[Vec2, float]:
        """(Mittelpunkt, Radius) eines Kreises oder Bogens. Bogen-Radius ist abgeleitet."""
        curve = self.get(curve_id)
        if isinstance(curve, Circle2D):
            return self.position(curve.center_id), curve.radius
        if isinstance(curve, Arc2D):
            center = self.position(curve.center_id)
            start = self.position(curve.start_id)
            return center, math.hypot(start[0] - center[0], start[1] - center[1])
        raise InvalidReference(f"'{curve_id}' ist weder Kreis noch Bogen")

    def points(self):
        return [p for p in self.primitives if isinstance(p, Point2D)]

    def of_kind(self, kind: GeometryType):
        return [p for p in self.primitives if primitive_kind(p) is kind]

    def find_point_near(self, x: float, y: float, tolerance: float) -> Optional[Point2D]:
        """Nächster Punkt innerhalb tolerance, bei Gleichstand der zuerst eingefügte."""
        best, best_dist = None, tolerance
        for p in self.points():
            d = math.hypot(p.x - x, p.y - y)
            if d <= best_dist and (best is None or d < best_dist):
                best, best_dist = p, d
        return best

    # -------------------------------------------------------------------------
    # Wert-Updates
    # -------------------------------------------------------------------------

    def evolve(self, **changes) -> "Sketch":
        """Neuer Sketch-Wert mit Änderungen (Index wird neu aufgebaut)."""
        return replace(self, **changes)

    def __repr__(self):
        return (
            f"Sketch[{self.id} r{self.revision}]({len(self.primitives)} primitives, "
            f"{len(self.constraints)} constraints, dof={self.dof}, {self.status.value})"
        )
