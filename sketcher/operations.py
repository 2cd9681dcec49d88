"""
ParaSketch Sketcher - Reine Mutations-API

Alle Funktionen nehmen einen Sketch-Wert und geben einen neuen zurück (plus
ggf. erzeugte IDs). Kein Aufruf verändert sein Argument. Jede Mutation erhöht
`revision` und berechnet DOF/Status neu.

Verwendung:
    from sketcher.operations import start_sketch, add_primitive, apply_constraint

    sketch = start_sketch("XY")
    sketch, a = add_primitive(sketch, Point2D(0, 0, fixed=True))
"""

from dataclasses import replace
import itertools
import math
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from config.tolerances import Tolerances

from .constraints import (
    Constraint, ConstraintType, canonical_operands, resolve_selection, validate_value,
)
from .dof import compute_dof
from .errors import DegenerateConstruction, InvalidReference
from .geometry import Arc2D, GeometryType, Point2D, primitive_kind, referenced_point_ids
from .sketch import Sketch, SketchPlane, create_sketch_plane

_ID_PREFIX = {
    GeometryType.POINT: "pt",
    GeometryType.LINE: "ln",
    GeometryType.CIRCLE: "cir",
    GeometryType.ARC: "arc",
}
_CONSTRAINT_PREFIX = "con"

_sketch_counter = itertools.count(1)


def _commit(sketch: Sketch, **changes) -> Sketch:
    """Neuer Sketch-Wert: Änderungen übernehmen, Bogen-Radien synchronisieren, DOF neu."""
    new = sketch.evolve(revision=sketch.revision + 1, **changes)
    primitives = sync_arc_radii(new)
    if primitives is not None:
        new = new.evolve(primitives=primitives)
    dof, status = compute_dof(new)
    return new.evolve(dof=dof, status=status)


def sync_arc_radii(sketch: Sketch) -> Optional[Tuple]:
    """Abgeleitete Bogen-Radien aus |start - center|; None wenn nichts zu tun ist."""
    changed = False
    primitives = []
    for p in sketch.primitives:
        if isinstance(p, Arc2D) and sketch.has(p.center_id) and sketch.has(p.start_id):
            (cx, cy), (sx, sy) = sketch.position(p.center_id), sketch.position(p.start_id)
            radius = math.hypot(sx - cx, sy - cy)
            if abs(radius - p.radius) > Tolerances.GEOMETRY_EPSILON:
                p = replace(p, radius=radius)
                changed = True
        primitives.append(p)
    return tuple(primitives) if changed else None


def _allocate_id(sketch: Sketch, prefix: str, requested: str = "") -> Tuple[str, int]:
    next_id = sketch.next_id
    if requested:
        if sketch.has(requested) or sketch.has_constraint(requested):
            raise InvalidReference(f"ID '{requested}' ist bereits vergeben")
        return requested, next_id
    candidate = f"{prefix}_{next_id}"
    while sketch.has(candidate) or sketch.has_constraint(candidate):
        next_id += 1
        candidate = f"{prefix}_{next_id}"
    return candidate, next_id + 1


# =============================================================================
# Sketch
# =============================================================================

def start_sketch(plane="XY", sketch_id: Optional[str] = None) -> Sketch:
    """Leere Skizze auf einer Ebene (PlaneType, "XY"/"XZ"/"YZ" oder SketchPlane)."""
    if not isinstance(plane, SketchPlane):
        plane = create_sketch_plane(plane)
    sketch_id = sketch_id or f"sketch_{next(_sketch_counter)}"
    logger.debug(f"[Sketch] Neue Skizze {sketch_id} auf Ebene {plane.type.value}")
    return Sketch(id=sketch_id, plane=plane)


# =============================================================================
# Primitive
# =============================================================================

def _check_references(sketch: Sketch, primitive) -> None:
    kind = primitive_kind(primitive)
    if kind is GeometryType.POINT:
        return
    refs = referenced_point_ids(primitive)
    for ref in refs:
        sketch.point(ref)
    if kind is GeometryType.LINE and primitive.p1_id == primitive.p2_id:
        raise DegenerateConstruction(f"Linie mit identischen Endpunkten: {primitive.p1_id}")
    if kind is GeometryType.ARC and len(set(refs)) != 3:
        raise DegenerateConstruction(f"Bogen braucht drei verschiedene Punkte: {refs}")


def add_primitive(sketch: Sketch, primitive) -> Tuple[Sketch, str]:
    """
    Primitiv hinzufügen. Ohne ID wird eine erzeugt (pt_N, ln_N, cir_N, arc_N).

    Raises:
        InvalidReference: Punkt-Referenz existiert nicht oder ID doppelt
        DegenerateConstruction: Linie/Bogen mit zusammenfallenden Punkt-IDs
    """
    kind = primitive_kind(primitive)
    _check_references(sketch, primitive)
    new_id, next_id = _allocate_id(sketch, _ID_PREFIX[kind], primitive.id)
    primitive = replace(primitive, id=new_id)
    new = _commit(sketch, primitives=sketch.primitives + (primitive,), next_id=next_id)
    return new, new_id


def remove_primitive(sketch: Sketch, primitive_id: str) -> Sketch:
    """
    Primitiv entfernen. Kaskadiert: ein Punkt nimmt alle Linien/Kreise/Bögen
    mit, die ihn referenzieren; Constraints auf entfernte Primitive fallen weg.
    """
    target = sketch.get(primitive_id)
    removed = {primitive_id}
    if primitive_kind(target) is GeometryType.POINT:
        for p in sketch.primitives:
            if p.id != primitive_id and primitive_id in referenced_point_ids(p):
                removed.add(p.id)

    constraints = tuple(c for c in sketch.constraints if not removed.intersection(c.primitive_ids))
    dropped = len(sketch.constraints) - len(constraints)
    if len(removed) > 1 or dropped:
        logger.debug(f"[Sketch] Entferne {sorted(removed)} und {dropped} Constraint(s)")
    return _commit(
        sketch,
        primitives=tuple(p for p in sketch.primitives if p.id not in removed),
        constraints=constraints,
    )


def update_primitive(sketch: Sketch, primitive_id: str, **changes) -> Sketch:
    """
    Einzelne Felder eines Primitivs ändern (x/y/fixed, radius, Referenzen).
    Die ID selbst ist unveränderlich.
    """
    if "id" in changes and changes["id"] != primitive_id:
        raise InvalidReference("Die ID eines Primitivs kann nicht geändert werden")
    current = sketch.get(primitive_id)
    updated = replace(current, **changes)
    _check_references(sketch, updated)
    return _commit(sketch, primitives=tuple(updated if p.id == primitive_id else p for p in sketch.primitives))


def move_points(sketch: Sketch, positions: Mapping[str, Tuple[float, float]]) -> Sketch:
    """Mehrere Punkte in einem Schritt verschieben (eine Revision)."""
    for point_id in positions:
        sketch.point(point_id)
    primitives = tuple(
        replace(p, x=positions[p.id][0], y=positions[p.id][1]) if p.id in positions else p
        for p in sketch.primitives
    )
    return _commit(sketch, primitives=primitives)


def set_points_fixed(sketch: Sketch, point_ids: Iterable[str], fixed: bool) -> Sketch:
    """fixed-Flag für mehrere Punkte setzen (Drag-Pinning)."""
    point_ids = set(point_ids)
    for point_id in point_ids:
        sketch.point(point_id)
    primitives = tuple(
        replace(p, fixed=fixed) if p.id in point_ids else p for p in sketch.primitives
    )
    return _commit(sketch, primitives=primitives)


def update_primitives_and_solve(sketch: Sketch, positions: Mapping[str, Tuple[float, float]], options=None):
    """
    Gebündeltes Drag-Update: alle Positionen setzen, dann genau ein Solve.

    Returns:
        SolveResult; bei Fehlschlag enthält result.sketch die verschobene,
        aber ungelöste Skizze.
    """
    from .solver import solve

    return solve(move_points(sketch, positions), options=options)


def get_or_create_point(sketch: Sketch, x: float, y: float,
                        tolerance: float = Tolerances.SKETCH_POINT_MERGE) -> Tuple[Sketch, str]:
    """Existierenden Punkt innerhalb tolerance wiederverwenden, sonst neu anlegen."""
    existing = sketch.find_point_near(x, y, tolerance)
    if existing is not None:
        return sketch, existing.id
    return add_primitive(sketch, Point2D(x, y))


# =============================================================================
# Constraints
# =============================================================================

def add_constraint(sketch: Sketch, constraint: Constraint) -> Tuple[Sketch, str]:
    """
    Constraint hinzufügen. Prüft Wert und Anwendbarkeit, bringt Operanden in
    kanonische Reihenfolge und vergibt eine ID (con_N).

    Raises:
        InvalidConstraintValue, InapplicableSelection, InvalidReference
    """
    value = validate_value(constraint.type, constraint.value)
    primitives = [sketch.get(pid) for pid in constraint.primitive_ids]
    operands = canonical_operands(constraint.type, primitives)
    new_id, next_id = _allocate_id(sketch, _CONSTRAINT_PREFIX, constraint.id)
    constraint = replace(constraint, primitive_ids=operands, value=value, id=new_id)
    logger.debug(f"[Sketch] Constraint {constraint!r}")
    return _commit(sketch, constraints=sketch.constraints + (constraint,), next_id=next_id), new_id


def apply_constraint(sketch: Sketch, constraint_type, selection: Sequence[str],
                     value: Optional[float] = None, driving: bool = True) -> Tuple[Sketch, List[str]]:
    """
    Constraint aus einer Benutzer-Selektion erzeugen.

    horizontal/vertical/radius/diameter erzeugen einen Constraint pro Primitiv,
    pointOnLine/pointOnCircle/tangent wählen bei Mehrfach-Selektion den
    nächstgelegenen Partner. Der Wert wird vor allem anderen geprüft.
    """
    constraint_type = ConstraintType(constraint_type)
    validate_value(constraint_type, value)
    primitives = [sketch.get(pid) for pid in selection]
    operand_sets = resolve_selection(constraint_type, primitives, sketch)

    new_ids = []
    for operands in operand_sets:
        sketch, cid = add_constraint(sketch, Constraint(constraint_type, operands, value=value, driving=driving))
        new_ids.append(cid)
    return sketch, new_ids


def remove_constraint(sketch: Sketch, constraint_id: str) -> Sketch:
    sketch.get_constraint(constraint_id)
    return _commit(sketch, constraints=tuple(c for c in sketch.constraints if c.id != constraint_id))


def update_constraint(sketch: Sketch, constraint_id: str, value: Optional[float] = None,
                      driving: Optional[bool] = None) -> Sketch:
    """Wert und/oder driving-Flag eines Constraints ändern."""
    current = sketch.get_constraint(constraint_id)
    changes: Dict[str, object] = {}
    if value is not None:
        changes["value"] = validate_value(current.type, value)
    if driving is not None:
        changes["driving"] = bool(driving)
    updated = replace(current, **changes)
    return _commit(sketch, constraints=tuple(updated if c.id == constraint_id else c for c in sketch.constraints))


def get_constraints_for_primitive(sketch: Sketch, primitive_id: str) -> List[Constraint]:
    return [c for c in sketch.constraints if primitive_id in c.primitive_ids]
