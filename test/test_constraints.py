"""
Tests für Constraint-Anwendbarkeit, Wert-Validierung und Selektions-Auflösung.
"""

from itertools import permutations

import pytest

from sketcher.constraints import (
    Constraint, ConstraintType, canonical_operands, get_available_constraints,
    get_constraint_label, get_default_value, get_selection_description, is_applicable,
    requires_value, resolve_selection,
)
from sketcher.errors import InapplicableSelection, InvalidConstraintValue
from sketcher.geometry import Circle2D, Line2D, Point2D
from sketcher.operations import add_primitive, apply_constraint, start_sketch


@pytest.fixture
def scene():
    """Drei Linien, ein freier Punkt, ein Kreis."""
    sketch = start_sketch("XY", sketch_id="scene")
    ids = {}
    for name, (x1, y1, x2, y2) in {
        "top": (0, 10, 10, 10),
        "bottom": (0, 0, 10, 0),
        "side": (20, 0, 20, 10),
    }.items():
        sketch, a = add_primitive(sketch, Point2D(x1, y1))
        sketch, b = add_primitive(sketch, Point2D(x2, y2))
        sketch, ids[name] = add_primitive(sketch, Line2D(a, b))
    sketch, ids["p"] = add_primitive(sketch, Point2D(5, 1))
    sketch, c = add_primitive(sketch, Point2D(30, 5))
    sketch, ids["circle"] = add_primitive(sketch, Circle2D(c, 2))
    return sketch, ids


def _prims(sketch, ids, *names):
    return [sketch.get(ids[n]) for n in names]


def test_constraint_coerces_type_and_operands():
    c = Constraint("horizontal", ["ln_1"], value=3)
    assert c.type is ConstraintType.HORIZONTAL
    assert c.primitive_ids == ("ln_1",)
    assert c.value == 3.0


def test_dof_removed_per_type():
    assert Constraint(ConstraintType.COINCIDENT, ("a", "b")).dof_removed == 2
    assert Constraint(ConstraintType.TANGENT, ("a", "b")).dof_removed == 1
    assert Constraint(ConstraintType.EQUAL, ("a", "b", "c", "d")).dof_removed == 3
    assert Constraint(ConstraintType.DISTANCE, ("a",), 4, driving=False).dof_removed == 0


def test_requires_value_and_labels():
    assert requires_value(ConstraintType.RADIUS)
    assert not requires_value(ConstraintType.PARALLEL)
    assert get_constraint_label(ConstraintType.POINT_ON_LINE) == "Point on Line"


def test_canonical_order(scene):
    sketch, ids = scene
    line, point = _prims(sketch, ids, "bottom", "p")
    circle = sketch.get(ids["circle"])
    assert canonical_operands(ConstraintType.MIDPOINT, [line, point]) == (point.id, line.id)
    assert canonical_operands(ConstraintType.TANGENT, [circle, line]) == (line.id, circle.id)
    assert canonical_operands(ConstraintType.POINT_ON_CIRCLE, [circle, point]) == (point.id, circle.id)


@pytest.mark.parametrize("ctype, names", [
    (ConstraintType.HORIZONTAL, ("p",)),
    (ConstraintType.RADIUS, ("bottom",)),
    (ConstraintType.PARALLEL, ("bottom", "circle")),
    (ConstraintType.COINCIDENT, ("p", "bottom")),
    (ConstraintType.EQUAL, ("bottom", "circle")),
    (ConstraintType.CONCENTRIC, ("circle", "bottom")),
    (ConstraintType.DISTANCE, ("top", "bottom")),
])
def test_inapplicable_selections(scene, ctype, names):
    sketch, ids = scene
    primitives = _prims(sketch, ids, *names)
    assert not is_applicable(ctype, primitives)
    with pytest.raises(InapplicableSelection):
        resolve_selection(ctype, primitives, sketch)


def test_empty_selection_is_inapplicable(scene):
    sketch, _ = scene
    with pytest.raises(InapplicableSelection):
        resolve_selection(ConstraintType.HORIZONTAL, [], sketch)


def test_horizontal_on_three_lines_creates_three_constraints(scene):
    sketch, ids = scene
    selection = [ids["top"], ids["bottom"], ids["side"]]
    new_sketch, cids = apply_constraint(sketch, ConstraintType.HORIZONTAL, selection)
    assert len(cids) == 3
    assert [new_sketch.get_constraint(c).primitive_ids for c in cids] == [(i,) for i in selection]


def test_point_on_line_picks_nearest_line(scene):
    sketch, ids = scene
    # Auswahl-Reihenfolge darf das Ergebnis nicht beeinflussen
    for order in (("top", "p", "bottom"), ("bottom", "top", "p"), ("p", "top", "bottom")):
        operands = resolve_selection(ConstraintType.POINT_ON_LINE, _prims(sketch, ids, *order), sketch)
        assert operands == [(ids["p"], ids["bottom"])]


def test_point_on_line_with_circle_subject_picks_nearest_line(scene):
    sketch, ids = scene
    # Kreismittelpunkt (30, 5): "side" (x=20) liegt am nächsten
    for order in permutations(("circle", "top", "side")):
        operands = resolve_selection(ConstraintType.POINT_ON_LINE, _prims(sketch, ids, *order), sketch)
        assert operands == [(ids["circle"], ids["side"])]


def test_point_on_circle_picks_nearest_circle(scene):
    sketch, ids = scene
    sketch, c = add_primitive(sketch, Point2D(5, 5))
    sketch, ids["near"] = add_primitive(sketch, Circle2D(c, 4))
    # p = (5, 1): liegt genau auf "near", zu "circle" bleibt ein Abstand
    for order in permutations(("p", "circle", "near")):
        operands = resolve_selection(ConstraintType.POINT_ON_CIRCLE, _prims(sketch, ids, *order), sketch)
        assert operands == [(ids["p"], ids["near"])]


def test_tangent_picks_nearest_curve(scene):
    sketch, ids = scene
    sketch, c = add_primitive(sketch, Point2D(5, 3))
    sketch, ids["touching"] = add_primitive(sketch, Circle2D(c, 2.5))
    # "bottom" (y=0): "touching" fehlt 0.5 zur Tangente, "circle" 3
    for order in permutations(("circle", "bottom", "touching")):
        operands = resolve_selection(ConstraintType.TANGENT, _prims(sketch, ids, *order), sketch)
        assert operands == [(ids["bottom"], ids["touching"])]


def test_nearest_resolution_needs_single_subject(scene):
    sketch, ids = scene
    sketch, q = add_primitive(sketch, Point2D(1, 1))
    primitives = _prims(sketch, ids, "p", "top", "bottom") + [sketch.get(q)]
    with pytest.raises(InapplicableSelection):
        resolve_selection(ConstraintType.POINT_ON_LINE, primitives, sketch)


def test_dimension_value_validation(scene):
    sketch, ids = scene
    with pytest.raises(InvalidConstraintValue):
        apply_constraint(sketch, ConstraintType.RADIUS, [ids["circle"]], value=-1)
    with pytest.raises(InvalidConstraintValue):
        apply_constraint(sketch, ConstraintType.DISTANCE, [ids["bottom"]])
    with pytest.raises(InvalidConstraintValue):
        apply_constraint(sketch, ConstraintType.DISTANCE, [ids["bottom"]], value=float("nan"))


def test_value_checked_before_applicability(scene):
    sketch, ids = scene
    # Radius auf Linie mit negativem Wert: Wert-Fehler gewinnt
    with pytest.raises(InvalidConstraintValue):
        apply_constraint(sketch, ConstraintType.RADIUS, [ids["bottom"]], value=-2)


def test_default_values(scene):
    sketch, ids = scene
    assert get_default_value(ConstraintType.DISTANCE, _prims(sketch, ids, "bottom"), sketch) == pytest.approx(10)
    circle = [sketch.get(ids["circle"])]
    assert get_default_value(ConstraintType.RADIUS, circle, sketch) == pytest.approx(2)
    assert get_default_value(ConstraintType.DIAMETER, circle, sketch) == pytest.approx(4)
    assert get_default_value(ConstraintType.PARALLEL, _prims(sketch, ids, "top", "bottom"), sketch) is None


def test_available_constraints_for_two_lines(scene):
    sketch, ids = scene
    available = get_available_constraints(_prims(sketch, ids, "top", "bottom"), sketch)
    assert available == [
        ConstraintType.HORIZONTAL,
        ConstraintType.VERTICAL,
        ConstraintType.PARALLEL,
        ConstraintType.PERPENDICULAR,
        ConstraintType.EQUAL,
    ]


def test_available_constraints_for_point_and_circle(scene):
    sketch, ids = scene
    available = get_available_constraints(_prims(sketch, ids, "p", "circle"), sketch)
    assert available == [ConstraintType.POINT_ON_CIRCLE]


def test_selection_description(scene):
    sketch, ids = scene
    assert get_selection_description(_prims(sketch, ids, "top", "bottom", "p")) == "2 lines, 1 point"
    assert get_selection_description([]) == "nothing selected"
