"""
ParaSketch Sketcher - Residuen-Aufbau

Übersetzt eine Skizze in ein nichtlineares Gleichungssystem R(x) = 0:

- Parameter-Vektor x: (x, y) jedes nicht fixierten Punkts, danach der Radius
  jedes Kreises. Fixierte Punkte sind Anker außerhalb von x.
- Eine Zeile (bzw. zwei) pro treibendem Constraint, dazu pro Bogen die
  implizite Zeile |end - c| - |start - c|.

Die Jacobi-Matrix wird numerisch über zentrale Differenzen gebildet.
"""

from dataclasses import dataclass
import math
from typing import Callable, Dict, List, Tuple

import numpy as np
from loguru import logger

from config.tolerances import Tolerances

from .constraints import Constraint, ConstraintType
from .errors import SketchError
from .geometry import Arc2D, Circle2D, GeometryType, Point2D, primitive_kind

_EPS = 1e-12


def _cross(a: np.ndarray, b: np.ndarray) -> float:
    return a[0] * b[1] - a[1] * b[0]


class ParameterLayout:
    """Zuordnung Punkt-/Kreis-IDs -> Slots im Parameter-Vektor."""

    def __init__(self, sketch):
        self.sketch = sketch
        self.point_slots: Dict[str, int] = {}
        self.radius_slots: Dict[str, int] = {}
        values: List[float] = []
        for p in sketch.primitives:
            if isinstance(p, Point2D) and not p.fixed:
                self.point_slots[p.id] = len(values)
                values.extend((p.x, p.y))
        for p in sketch.primitives:
            if isinstance(p, Circle2D):
                self.radius_slots[p.id] = len(values)
                values.append(p.radius)
        self.x0 = np.asarray(values, dtype=float)

    @property
    def size(self) -> int:
        return len(self.x0)

    def pos(self, x: np.ndarray, point_id: str) -> np.ndarray:
        slot = self.point_slots.get(point_id)
        if slot is None:
            p = self.sketch.point(point_id)
            return np.array([p.x, p.y])
        return x[slot:slot + 2]

    def center(self, x: np.ndarray, curve) -> np.ndarray:
        return self.pos(x, curve.center_id)

    def radius(self, x: np.ndarray, curve) -> float:
        if isinstance(curve, Circle2D):
            return x[self.radius_slots[curve.id]]
        c = self.pos(x, curve.center_id)
        s = self.pos(x, curve.start_id)
        return math.hypot(s[0] - c[0], s[1] - c[1])

    def line(self, x: np.ndarray, line) -> Tuple[np.ndarray, np.ndarray]:
        return self.pos(x, line.p1_id), self.pos(x, line.p2_id)

    def entity_pos(self, x: np.ndarray, primitive) -> np.ndarray:
        """Position eines Punkt-artigen Operanden (Kreis: Mittelpunkt)."""
        if isinstance(primitive, Point2D):
            return self.pos(x, primitive.id)
        return self.pos(x, primitive.center_id)


ResidualFn = Callable[[np.ndarray], List[float]]


@dataclass
class ResidualSystem:
    """R(x), Jacobi-Matrix und Rückweg in die Skizze."""
    layout: ParameterLayout
    rows: List[Tuple[str, ResidualFn]]
    skipped: List[str]

    @property
    def x0(self) -> np.ndarray:
        return self.layout.x0.copy()

    @property
    def n_variables(self) -> int:
        return self.layout.size

    @property
    def n_equations(self) -> int:
        return len(self.residual(self.layout.x0))

    def residual(self, x: np.ndarray) -> np.ndarray:
        values: List[float] = []
        for _, fn in self.rows:
            values.extend(fn(x))
        return np.asarray(values, dtype=float)

    def jacobian(self, x: np.ndarray) -> np.ndarray:
        """Numerische Jacobi-Matrix (zentrale Differenzen)."""
        m = len(self.residual(x))
        n = len(x)
        jac = np.zeros((m, n))
        for j in range(n):
            h = Tolerances.SOLVER_FD_STEP * max(1.0, abs(x[j]))
            xp = x.copy()
            xm = x.copy()
            xp[j] += h
            xm[j] -= h
            jac[:, j] = (self.residual(xp) - self.residual(xm)) / (2 * h)
        return jac


def _constraint_rows(layout: ParameterLayout, c: Constraint) -> ResidualFn:
    """Residuen-Funktion für einen Constraint (exhaustiv über alle Typen)."""
    sketch = layout.sketch
    ops = [sketch.get(pid) for pid in c.primitive_ids]
    t = c.type

    if t is ConstraintType.HORIZONTAL:
        line = ops[0]
        return lambda x: [layout.pos(x, line.p2_id)[1] - layout.pos(x, line.p1_id)[1]]

    if t is ConstraintType.VERTICAL:
        line = ops[0]
        return lambda x: [layout.pos(x, line.p2_id)[0] - layout.pos(x, line.p1_id)[0]]

    if t is ConstraintType.DISTANCE:
        if len(ops) == 1:
            a_id, b_id = ops[0].p1_id, ops[0].p2_id
        else:
            a_id, b_id = ops[0].id, ops[1].id
        value = c.value

        def distance(x):
            d = layout.pos(x, b_id) - layout.pos(x, a_id)
            return [math.hypot(d[0], d[1]) - value]
        return distance

    if t is ConstraintType.RADIUS:
        curve, value = ops[0], c.value
        return lambda x: [layout.radius(x, curve) - value]

    if t is ConstraintType.DIAMETER:
        curve, value = ops[0], c.value
        return lambda x: [2 * layout.radius(x, curve) - value]

    if t is ConstraintType.COINCIDENT:
        a, b = ops
        return lambda x: list(layout.pos(x, a.id) - layout.pos(x, b.id))

    if t is ConstraintType.CONCENTRIC:
        a, b = ops
        return lambda x: list(layout.center(x, a) - layout.center(x, b))

    if t is ConstraintType.MIDPOINT:
        point, line = ops

        def midpoint(x):
            p1, p2 = layout.line(x, line)
            return list(layout.pos(x, point.id) - (p1 + p2) / 2)
        return midpoint

    if t in (ConstraintType.PARALLEL, ConstraintType.PERPENDICULAR):
        l1, l2 = ops

        def angle(x):
            a1, b1 = layout.line(x, l1)
            a2, b2 = layout.line(x, l2)
            d1, d2 = b1 - a1, b2 - a2
            return math.atan2(_cross(d1, d2), float(d1 @ d2))

        # Zielwinkel aus der Startlage (nächste parallele bzw. senkrechte Lage);
        # die Sprungstelle der Winkeldifferenz liegt damit gegenüber vom Start.
        theta0 = angle(layout.x0)
        if t is ConstraintType.PARALLEL:
            target = 0.0 if abs(theta0) <= math.pi / 2 else math.copysign(math.pi, theta0)
        else:
            target = math.pi / 2 if theta0 >= 0 else -math.pi / 2

        def direction(x):
            delta = angle(x) - target
            return [(delta + math.pi) % (2 * math.pi) - math.pi]
        return direction

    if t is ConstraintType.EQUAL:
        if primitive_kind(ops[0]) is GeometryType.LINE:
            def measure(x, prim):
                a, b = layout.line(x, prim)
                return math.hypot(b[0] - a[0], b[1] - a[1])
        else:
            measure = layout.radius
        first, others = ops[0], ops[1:]
        return lambda x: [measure(x, o) - measure(x, first) for o in others]

    if t is ConstraintType.TANGENT:
        first, curve = ops
        if primitive_kind(first) is GeometryType.LINE:
            def line_tangent(x):
                a, b = layout.line(x, first)
                d = b - a
                length = max(math.hypot(d[0], d[1]), _EPS)
                dist = abs(_cross(d, layout.center(x, curve) - a)) / length
                return [dist - layout.radius(x, curve)]
            return line_tangent

        # Kurve-Kurve: innen oder außen, je nach Ausgangslage
        c0 = layout.center(layout.x0, first) - layout.center(layout.x0, curve)
        internal = math.hypot(c0[0], c0[1]) < max(layout.radius(layout.x0, first), layout.radius(layout.x0, curve))

        def curve_tangent(x):
            d = layout.center(x, first) - layout.center(x, curve)
            dist = math.hypot(d[0], d[1])
            r1, r2 = layout.radius(x, first), layout.radius(x, curve)
            return [dist - abs(r1 - r2)] if internal else [dist - (r1 + r2)]
        return curve_tangent

    if t is ConstraintType.POINT_ON_LINE:
        subject, line = ops

        def on_line(x):
            a, b = layout.line(x, line)
            d = b - a
            length = max(math.hypot(d[0], d[1]), _EPS)
            return [_cross(d, layout.entity_pos(x, subject) - a) / length]
        return on_line

    if t is ConstraintType.POINT_ON_CIRCLE:
        point, curve = ops

        def on_circle(x):
            d = layout.pos(x, point.id) - layout.center(x, curve)
            return [math.hypot(d[0], d[1]) - layout.radius(x, curve)]
        return on_circle

    raise TypeError(f"Unbekannter Constraint-Typ: {t!r}")


def build_residual_system(sketch) -> ResidualSystem:
    """
    Baut R(x) für eine Skizze. Constraints mit unauflösbaren Referenzen oder
    fehlendem Wert werden mit Warnung übersprungen.
    """
    layout = ParameterLayout(sketch)
    rows: List[Tuple[str, ResidualFn]] = []
    skipped: List[str] = []

    for c in sketch.constraints:
        if not c.driving:
            continue
        try:
            fn = _constraint_rows(layout, c)
        except SketchError as exc:
            logger.warning(f"[Solver] Constraint {c.id} übersprungen: {exc}")
            skipped.append(c.id)
            continue
        if c.value is None and c.type in (ConstraintType.DISTANCE, ConstraintType.RADIUS, ConstraintType.DIAMETER):
            logger.warning(f"[Solver] Constraint {c.id} ohne Wert übersprungen")
            skipped.append(c.id)
            continue
        rows.append((c.id, fn))

    for p in sketch.primitives:
        if isinstance(p, Arc2D):
            arc = p

            def arc_consistency(x, arc=arc):
                c = layout.center(x, arc)
                s = layout.pos(x, arc.start_id) - c
                e = layout.pos(x, arc.end_id) - c
                return [math.hypot(e[0], e[1]) - math.hypot(s[0], s[1])]
            rows.append((f"{arc.id}:radius", arc_consistency))

    return ResidualSystem(layout=layout, rows=rows, skipped=skipped)
