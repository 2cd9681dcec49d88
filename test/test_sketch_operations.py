"""
Tests für die reine Mutations-API (operations): IDs, Revisionen, Kaskaden.
"""

import pytest

from sketcher.constraints import ConstraintType
from sketcher.errors import DegenerateConstruction, InvalidReference
from sketcher.geometry import Arc2D, Circle2D, GeometryType, Line2D, Point2D
from sketcher.operations import (
    add_primitive, apply_constraint, get_constraints_for_primitive, get_or_create_point,
    move_points, remove_constraint, remove_primitive, set_points_fixed, start_sketch,
    update_constraint, update_primitive, update_primitives_and_solve,
)


def _line_sketch():
    sketch = start_sketch("XY", sketch_id="ops")
    sketch, a = add_primitive(sketch, Point2D(0, 0))
    sketch, b = add_primitive(sketch, Point2D(4, 0))
    sketch, line = add_primitive(sketch, Line2D(a, b))
    return sketch, a, b, line


def test_start_sketch_is_empty():
    sketch = start_sketch("XZ")
    assert sketch.primitives == ()
    assert sketch.constraints == ()
    assert sketch.revision == 0
    assert sketch.plane.type.value == "XZ"


def test_generated_ids_and_revision():
    sketch, a, b, line = _line_sketch()
    assert (a, b, line) == ("pt_1", "pt_2", "ln_3")
    assert sketch.revision == 3
    sketch, cids = apply_constraint(sketch, ConstraintType.HORIZONTAL, [line])
    assert cids == ["con_4"]
    assert sketch.revision == 4


def test_mutation_never_touches_input():
    sketch, a, b, line = _line_sketch()
    moved = move_points(sketch, {b: (7, 1)})
    assert sketch.position(b) == (4.0, 0.0)
    assert moved.position(b) == (7.0, 1.0)
    assert moved.revision == sketch.revision + 1


def test_add_primitive_rejects_missing_reference():
    sketch, a, b, line = _line_sketch()
    with pytest.raises(InvalidReference):
        add_primitive(sketch, Line2D(a, "pt_99"))
    # Linie ist kein Punkt
    with pytest.raises(InvalidReference):
        add_primitive(sketch, Circle2D(line, 2))


def test_add_primitive_rejects_degenerate_references():
    sketch, a, b, line = _line_sketch()
    with pytest.raises(DegenerateConstruction):
        add_primitive(sketch, Line2D(a, a))
    with pytest.raises(DegenerateConstruction):
        add_primitive(sketch, Arc2D(a, b, b))


def test_add_primitive_rejects_duplicate_id():
    sketch, a, b, line = _line_sketch()
    with pytest.raises(InvalidReference):
        add_primitive(sketch, Point2D(1, 1, id=a))


def test_remove_point_cascades_to_lines_and_constraints():
    sketch, a, b, line = _line_sketch()
    sketch, _ = apply_constraint(sketch, ConstraintType.DISTANCE, [line], value=4)
    sketch = remove_primitive(sketch, a)
    assert not sketch.has(a)
    assert not sketch.has(line)
    assert sketch.has(b)
    assert sketch.constraints == ()


def test_remove_line_keeps_points():
    sketch, a, b, line = _line_sketch()
    sketch = remove_primitive(sketch, line)
    assert sketch.has(a) and sketch.has(b)
    assert not sketch.has(line)


def test_update_primitive():
    sketch, a, b, line = _line_sketch()
    sketch = update_primitive(sketch, a, x=1.0, fixed=True)
    assert sketch.point(a).x == 1.0
    assert sketch.point(a).fixed is True
    with pytest.raises(InvalidReference):
        update_primitive(sketch, a, id="other")


def test_set_points_fixed_changes_dof():
    sketch, a, b, line = _line_sketch()
    assert sketch.dof == 4
    pinned = set_points_fixed(sketch, [a, b], True)
    assert pinned.dof == 0


def test_get_or_create_point_reuses_within_tolerance():
    sketch, a, b, line = _line_sketch()
    same, pid = get_or_create_point(sketch, 0.1, -0.1)
    assert pid == a
    assert same is sketch
    grown, new_id = get_or_create_point(sketch, 2, 2)
    assert new_id not in (a, b)
    assert len(grown.points()) == 3


def test_arc_radius_is_derived_from_start_point():
    sketch = start_sketch("XY")
    sketch, c = add_primitive(sketch, Point2D(0, 0))
    sketch, s = add_primitive(sketch, Point2D(3, 0))
    sketch, e = add_primitive(sketch, Point2D(0, 3))
    sketch, arc = add_primitive(sketch, Arc2D(c, s, e))
    assert sketch.get(arc).radius == pytest.approx(3.0)
    sketch = move_points(sketch, {s: (5, 0)})
    assert sketch.get(arc).radius == pytest.approx(5.0)


def test_constraint_update_and_remove():
    sketch, a, b, line = _line_sketch()
    sketch, (cid,) = apply_constraint(sketch, ConstraintType.DISTANCE, [line], value=4)
    assert sketch.dof == 3
    sketch = update_constraint(sketch, cid, value=6, driving=False)
    constraint = sketch.get_constraint(cid)
    assert constraint.value == 6.0
    assert constraint.driving is False
    assert sketch.dof == 4
    assert [c.id for c in get_constraints_for_primitive(sketch, line)] == [cid]
    sketch = remove_constraint(sketch, cid)
    assert sketch.constraints == ()
    with pytest.raises(InvalidReference):
        remove_constraint(sketch, cid)


def test_update_primitives_and_solve_single_solve():
    sketch, a, b, line = _line_sketch()
    sketch = update_primitive(sketch, a, fixed=True)
    sketch, _ = apply_constraint(sketch, ConstraintType.HORIZONTAL, [line])
    result = update_primitives_and_solve(sketch, {b: (6, 2)})
    assert result.success
    assert result.sketch.position(b) == pytest.approx((6, 0), abs=1e-6)
    assert result.sketch.of_kind(GeometryType.LINE)[0].id == line
