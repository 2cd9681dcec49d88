"""
Tests für die DOF-Zählung.
"""

import pytest

from sketcher.constraints import ConstraintStatus, ConstraintType
from sketcher.dof import classify_dof, compute_dof
from sketcher.geometry import Line2D, Point2D
from sketcher.operations import add_primitive, apply_constraint, start_sketch


def _two_lines(fixed_first=False):
    sketch = start_sketch("XY")
    ids = []
    for x1, y1, x2, y2 in ((0, 0, 10, 0), (0, 5, 10, 6)):
        sketch, a = add_primitive(sketch, Point2D(x1, y1, fixed=fixed_first and not ids))
        sketch, b = add_primitive(sketch, Point2D(x2, y2))
        sketch, line = add_primitive(sketch, Line2D(a, b))
        ids.append((a, b, line))
    return sketch, ids


@pytest.mark.parametrize("dof, status", [
    (3, ConstraintStatus.UNDER_CONSTRAINED),
    (0, ConstraintStatus.FULLY_CONSTRAINED),
    (-1, ConstraintStatus.OVER_CONSTRAINED),
])
def test_classify_dof(dof, status):
    assert classify_dof(dof) is status


def test_example_a_is_fully_constrained(example_a):
    sketch, _, _, _ = example_a
    assert compute_dof(sketch) == (0, ConstraintStatus.FULLY_CONSTRAINED)
    assert sketch.dof == 0


def test_fixed_points_contribute_nothing():
    sketch, _ = _two_lines(fixed_first=True)
    assert sketch.dof == 6


def test_coincident_removes_two():
    sketch, ids = _two_lines()
    sketch, _ = apply_constraint(sketch, ConstraintType.COINCIDENT, [ids[0][1], ids[1][0]])
    assert sketch.dof == 8 - 2


def test_equal_over_k_primitives_removes_k_minus_one():
    sketch, ids = _two_lines()
    sketch, c = add_primitive(sketch, Point2D(20, 0))
    sketch, d = add_primitive(sketch, Point2D(20, 3))
    sketch, third = add_primitive(sketch, Line2D(c, d))
    sketch, _ = apply_constraint(sketch, ConstraintType.EQUAL, [ids[0][2], ids[1][2], third])
    assert sketch.dof == 12 - 2


def test_reference_constraints_are_ignored():
    sketch, ids = _two_lines()
    sketch, _ = apply_constraint(sketch, ConstraintType.DISTANCE, [ids[0][2]], value=10, driving=False)
    assert sketch.dof == 8


def test_dof_is_order_independent():
    base, ids = _two_lines()
    steps = [
        (ConstraintType.HORIZONTAL, [ids[0][2]], None),
        (ConstraintType.PARALLEL, [ids[0][2], ids[1][2]], None),
        (ConstraintType.DISTANCE, [ids[1][2]], 10),
    ]
    forward, backward = base, base
    for ctype, sel, value in steps:
        forward, _ = apply_constraint(forward, ctype, sel, value)
    for ctype, sel, value in reversed(steps):
        backward, _ = apply_constraint(backward, ctype, sel, value)
    assert compute_dof(forward) == compute_dof(backward)
    assert forward.dof == 8 - 3


def test_negative_dof_is_overconstrained(example_a):
    sketch, _, _, line = example_a
    sketch, _ = apply_constraint(sketch, ConstraintType.DISTANCE, [line], value=7)
    assert sketch.dof == -1
    assert sketch.status is ConstraintStatus.OVER_CONSTRAINED
