"""
ParaSketch Sketcher - Geschlossene Profile und "Finish Sketch"

Erkennt Flächen aus Linien, Bögen und Kreisen für die Extrusion. Linien und
Bögen werden als Polylinien gesammelt und per shapely polygonize zu Regionen
verschmolzen, jeder Kreis ist ein eigenes Profil. Das Ergebnis geht an den
Profil-zu-Solid Konverter (externer Kollaborateur).
"""

from dataclasses import dataclass
import math
from typing import Callable, List, Optional, Tuple

from loguru import logger
from shapely.geometry import LineString, Polygon
from shapely.ops import polygonize, unary_union

from config.feature_flags import is_enabled

from .geometry import Arc2D, Circle2D, Line2D, Point2D, angle_of, ccw_sweep

CIRCLE_SEGMENTS = 64
MIN_PROFILE_AREA = 1e-6


@dataclass(frozen=True)
class ClosedProfile:
    """Geschlossene Region: beteiligte Primitive plus Polygon in Plane-Koordinaten."""
    primitive_ids: Tuple[str, ...]
    polygon: Polygon

    @property
    def area(self) -> float:
        return self.polygon.area


def _rnd(val: float) -> float:
    return round(val, 6)


def _arc_points(center, radius, start, end) -> List[Tuple[float, float]]:
    a0 = angle_of(center, start)
    sweep = ccw_sweep(a0, angle_of(center, end))
    steps = max(12, int(math.degrees(sweep) / 5))
    pts = [(_rnd(start[0]), _rnd(start[1]))]
    for i in range(1, steps):
        t = a0 + sweep * i / steps
        pts.append((_rnd(center[0] + radius * math.cos(t)), _rnd(center[1] + radius * math.sin(t))))
    pts.append((_rnd(end[0]), _rnd(end[1])))
    return pts


def _circle_polygon(center, radius) -> Polygon:
    return Polygon([
        (center[0] + radius * math.cos(2 * math.pi * i / CIRCLE_SEGMENTS),
         center[1] + radius * math.sin(2 * math.pi * i / CIRCLE_SEGMENTS))
        for i in range(CIRCLE_SEGMENTS)
    ])


def find_closed_profiles(sketch) -> List[ClosedProfile]:
    """
    Alle geschlossenen Profile einer Skizze, kleine Flächen zuerst.
    Offene Ketten liefern kein Profil.
    """
    segments: List[Tuple[str, LineString]] = []
    profiles: List[ClosedProfile] = []

    for primitive in sketch.primitives:
        if isinstance(primitive, Line2D):
            a, b = sketch.line_endpoints(primitive.id)
            if a != b:
                segments.append((primitive.id, LineString([(_rnd(a[0]), _rnd(a[1])), (_rnd(b[0]), _rnd(b[1]))])))
        elif isinstance(primitive, Arc2D):
            center, radius = sketch.curve_geometry(primitive.id)
            pts = _arc_points(center, radius, sketch.position(primitive.start_id), sketch.position(primitive.end_id))
            segments.append((primitive.id, LineString(pts)))
        elif isinstance(primitive, Circle2D):
            center, radius = sketch.curve_geometry(primitive.id)
            if radius > 0:
                profiles.append(ClosedProfile((primitive.id,), _circle_polygon(center, radius)))
        elif not isinstance(primitive, Point2D):
            raise TypeError(f"Unbekannter Primitiv-Typ: {type(primitive).__name__}")

    if segments:
        merged = unary_union([ls for _, ls in segments])
        for poly in polygonize(merged):
            if not poly.is_valid or poly.area <= MIN_PROFILE_AREA:
                continue
            boundary = poly.exterior.buffer(1e-5)
            members = tuple(pid for pid, ls in segments if boundary.contains(ls.interpolate(0.5, normalized=True)))
            profiles.append(ClosedProfile(members, poly))

    profiles.sort(key=lambda p: p.area)
    if is_enabled("sketch_debug"):
        logger.debug(f"[Profile] {len(profiles)} geschlossene Profile in {sketch.id}")
    return profiles


def finish_sketch(sketch, converter: Callable) -> Optional[object]:
    """
    Übergibt die geschlossenen Profile an den Profil-zu-Solid Konverter.

    Args:
        sketch: gelöste Skizze
        converter: converter(sketch, profiles) -> Solid oder leeres Ergebnis

    Returns:
        Ergebnis des Konverters, None wenn kein geschlossenes Profil existiert
        oder der Konverter kein Solid bauen konnte.
    """
    profiles = find_closed_profiles(sketch)
    if not profiles:
        logger.warning(f"[Profile] {sketch.id}: kein geschlossenes Profil, Wire ist offen")
        return None
    try:
        result = converter(sketch, profiles)
    except Exception as e:
        logger.error(f"[Profile] Konvertierung von {sketch.id} fehlgeschlagen: {e}")
        return None
    if not result:
        logger.warning(f"[Profile] Konverter lieferte leeres Ergebnis für {sketch.id}")
        return None
    logger.info(f"[Profile] {sketch.id}: {len(profiles)} Profil(e) übergeben")
    return result
