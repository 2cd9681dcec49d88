"""
ParaSketch Sketcher - Inference Engine

Snap-Kandidaten (Endpunkte, Mittelpunkte, Zentren, Quadranten, Schnittpunkte),
Ausrichtungs-Hilfslinien und automatische Horizontal/Vertikal-Erkennung.
Läuft unabhängig vom Solver auf jeder Cursor-Bewegung.

Kandidaten werden einmal pro Sketch-Revision berechnet (InferenceCache) und
dann nur noch gegen den Cursor abgefragt.
"""

from dataclasses import dataclass
import itertools
import math
from typing import List, Optional, Sequence

from loguru import logger

from config.feature_flags import is_enabled
from config.tolerances import Tolerances

from .constraints import ConstraintType
from .geometry import (
    Arc2D, Circle2D, Line2D, Point2D, Vec2,
    arc_midpoint, circle_segment_intersections, line_line_intersection, midpoint,
)
from .tools import GUIDELINE_COLORS, SNAP_PRIORITY, GuidelineAxis, SnapType


@dataclass(frozen=True)
class SnapCandidate:
    position: Vec2
    kind: SnapType
    owner_id: str

    @property
    def priority(self) -> int:
        return SNAP_PRIORITY[self.kind]


@dataclass(frozen=True)
class Guideline:
    start: Vec2
    end: Vec2
    axis: GuidelineAxis
    color: int
    source_id: str


def find_candidates(sketch) -> List[SnapCandidate]:
    """
    Alle Snap-Kandidaten einer Skizze in stabiler Reihenfolge:
    Primitive in Einfügereihenfolge, danach Schnittpunkte.
    """
    candidates: List[SnapCandidate] = []
    center_ids = {
        p.center_id for p in sketch.primitives if isinstance(p, (Circle2D, Arc2D))
    }
    lines = []
    circles = []

    for primitive in sketch.primitives:
        if isinstance(primitive, Point2D):
            # Mittelpunkte von Kreisen/Bögen erscheinen als CENTER beim Kreis
            if primitive.id not in center_ids:
                candidates.append(SnapCandidate(primitive.position, SnapType.ENDPOINT, primitive.id))
        elif isinstance(primitive, Line2D):
            a, b = sketch.line_endpoints(primitive.id)
            candidates.append(SnapCandidate(midpoint(a, b), SnapType.MIDPOINT, primitive.id))
            lines.append((primitive, a, b))
        elif isinstance(primitive, Circle2D):
            (cx, cy), r = sketch.curve_geometry(primitive.id)
            candidates.append(SnapCandidate((cx, cy), SnapType.CENTER, primitive.id))
            for qx, qy in ((cx + r, cy), (cx, cy + r), (cx - r, cy), (cx, cy - r)):
                candidates.append(SnapCandidate((qx, qy), SnapType.QUADRANT, primitive.id))
            circles.append((primitive, (cx, cy), r))
        elif isinstance(primitive, Arc2D):
            center, r = sketch.curve_geometry(primitive.id)
            candidates.append(SnapCandidate(center, SnapType.CENTER, primitive.id))
            mid = arc_midpoint(center, r, sketch.position(primitive.start_id), sketch.position(primitive.end_id))
            candidates.append(SnapCandidate(mid, SnapType.MIDPOINT, primitive.id))
        else:
            raise TypeError(f"Unbekannter Primitiv-Typ: {type(primitive).__name__}")

    ext = Tolerances.INFERENCE_INTERSECTION_EXTENSION
    for (l1, a1, b1), (l2, a2, b2) in itertools.combinations(lines, 2):
        # Gemeinsame Endpunkte sind bereits ENDPOINT-Kandidaten
        if {l1.p1_id, l1.p2_id} & {l2.p1_id, l2.p2_id}:
            continue
        hit = line_line_intersection(a1, b1, a2, b2)
        if hit is None:
            continue
        point, t, u = hit
        if -ext <= t <= 1 + ext and -ext <= u <= 1 + ext:
            candidates.append(SnapCandidate(point, SnapType.INTERSECTION, f"{l1.id}|{l2.id}"))

    for line, a, b in lines:
        for circle, center, r in circles:
            for point in circle_segment_intersections(center, r, a, b):
                candidates.append(SnapCandidate(point, SnapType.INTERSECTION, f"{line.id}|{circle.id}"))

    if is_enabled("sketch_debug"):
        logger.debug(f"[Inference] {len(candidates)} Kandidaten für {sketch.id} r{sketch.revision}")
    return candidates


def find_nearest_snap(cursor: Vec2, candidates: Sequence[SnapCandidate],
                      radius: float = Tolerances.INFERENCE_SNAP_RADIUS) -> Optional[SnapCandidate]:
    """Nächster Kandidat innerhalb radius; bei Gleichstand gewinnt der erste."""
    best = None
    best_dist = radius
    for candidate in candidates:
        d = math.hypot(candidate.position[0] - cursor[0], candidate.position[1] - cursor[1])
        if d > radius:
            continue
        if best is None or d < best_dist:
            best, best_dist = candidate, d
    return best


def find_guidelines(cursor: Vec2, sketch, chain_origin: Optional[Vec2] = None,
                    tolerance: Optional[float] = None,
                    angle_tolerance: Optional[float] = None) -> List[Guideline]:
    """
    Hilfslinien von existierenden Punkten (und dem Ketten-Ursprung) zum Cursor.

    Existierende Punkte: Koordinaten-Delta (tolerance). Nur der Ketten-Ursprung
    prüft den Winkel der Richtung Ursprung->Cursor zur Achse (angle_tolerance),
    sonst wüchse das Band für weit entfernte Punkte mit dem Abstand.
    """
    if tolerance is None:
        tolerance = Tolerances.INFERENCE_GUIDELINE_DELTA
    if angle_tolerance is None:
        angle_tolerance = Tolerances.INFERENCE_AXIS_ANGLE

    sources = [(p.id, p.position, False) for p in sketch.points()]
    if chain_origin is not None:
        sources.insert(0, ("chain_origin", tuple(chain_origin), True))

    guidelines: List[Guideline] = []
    for source_id, (px, py), angular in sources:
        dx, dy = cursor[0] - px, cursor[1] - py
        if math.hypot(dx, dy) < Tolerances.GEOMETRY_EPSILON:
            continue
        if angular:
            horizontal = math.atan2(abs(dy), abs(dx)) <= angle_tolerance
            vertical = math.atan2(abs(dx), abs(dy)) <= angle_tolerance
        else:
            horizontal = abs(dy) <= tolerance
            vertical = abs(dx) <= tolerance
        if horizontal:
            guidelines.append(Guideline(
                (px, py), (cursor[0], py), GuidelineAxis.HORIZONTAL,
                GUIDELINE_COLORS[GuidelineAxis.HORIZONTAL], source_id,
            ))
        if vertical:
            guidelines.append(Guideline(
                (px, py), (px, cursor[1]), GuidelineAxis.VERTICAL,
                GUIDELINE_COLORS[GuidelineAxis.VERTICAL], source_id,
            ))
    return guidelines


def snap_to_guidelines(cursor: Vec2, guidelines: Sequence[Guideline]) -> Vec2:
    """Cursor auf die exakte Koordinate der nächsten Hilfslinie je Achse setzen."""
    x, y = cursor
    horizontal = [g for g in guidelines if g.axis is GuidelineAxis.HORIZONTAL]
    vertical = [g for g in guidelines if g.axis is GuidelineAxis.VERTICAL]
    if horizontal:
        y = min(horizontal, key=lambda g: abs(g.start[1] - cursor[1])).start[1]
    if vertical:
        x = min(vertical, key=lambda g: abs(g.start[0] - cursor[0])).start[0]
    return (x, y)


def detect_axis_alignment(p1: Vec2, p2: Vec2,
                          tolerance: float = Tolerances.INFERENCE_AXIS_ANGLE) -> Optional[ConstraintType]:
    """
    HORIZONTAL / VERTICAL wenn die Linie p1->p2 innerhalb tolerance (rad) an
    einer Achse liegt; bei beiden gewinnt die kleinere Abweichung.
    """
    dx, dy = abs(p2[0] - p1[0]), abs(p2[1] - p1[1])
    if math.hypot(dx, dy) < Tolerances.SKETCH_MIN_LINE_LENGTH:
        return None
    dev_horizontal = math.atan2(dy, dx)
    dev_vertical = math.pi / 2 - dev_horizontal
    if dev_horizontal <= tolerance and dev_horizontal <= dev_vertical:
        return ConstraintType.HORIZONTAL
    if dev_vertical <= tolerance:
        return ConstraintType.VERTICAL
    return None


class InferenceCache:
    """Kandidaten pro (Sketch-ID, Revision); Neuberechnung nur bei Änderung."""

    def __init__(self):
        self._key = None
        self._candidates: List[SnapCandidate] = []

    def candidates_for(self, sketch) -> List[SnapCandidate]:
        key = (sketch.id, sketch.revision)
        if key != self._key:
            self._candidates = find_candidates(sketch)
            self._key = key
        return self._candidates
