"""
Tests für den Adjazenz-Index: Zusammenhangskomponenten und Drag-Anker.
"""

from sketcher.constraints import ConstraintType
from sketcher.dependency_graph import AdjacencyIndex, constraint_anchor_points
from sketcher.geometry import Circle2D, Line2D, Point2D
from sketcher.operations import add_primitive, apply_constraint, start_sketch


def _scene():
    """Zwei verbundene Linien (L-Form), eine separate Linie, ein Kreis."""
    sketch = start_sketch("XY", sketch_id="graph")
    sketch, a = add_primitive(sketch, Point2D(0, 0))
    sketch, b = add_primitive(sketch, Point2D(5, 0))
    sketch, c = add_primitive(sketch, Point2D(5, 5))
    sketch, l1 = add_primitive(sketch, Line2D(a, b))
    sketch, l2 = add_primitive(sketch, Line2D(b, c))
    sketch, d = add_primitive(sketch, Point2D(10, 0))
    sketch, e = add_primitive(sketch, Point2D(10, 5))
    sketch, l3 = add_primitive(sketch, Line2D(d, e))
    sketch, f = add_primitive(sketch, Point2D(20, 0))
    sketch, circle = add_primitive(sketch, Circle2D(f, 2))
    return sketch, dict(a=a, b=b, c=c, d=d, e=e, f=f, l1=l1, l2=l2, l3=l3, circle=circle)


def test_connected_component_bfs():
    sketch, ids = _scene()
    index = AdjacencyIndex.build_from_sketch(sketch)

    component = index.connected_component(ids["l1"])
    assert component[0] == ids["l1"]
    assert set(component) == {ids["l1"], ids["l2"], ids["a"], ids["b"], ids["c"]}
    assert index.component_points(ids["l1"]) == {ids["a"], ids["b"], ids["c"]}
    assert set(index.connected_component(ids["circle"])) == {ids["circle"], ids["f"]}
    assert index.connected_component("missing") == []


def test_constraints_do_not_join_components():
    sketch, ids = _scene()
    sketch, _ = apply_constraint(sketch, ConstraintType.PARALLEL, [ids["l2"], ids["l3"]])
    index = AdjacencyIndex.build_from_sketch(sketch)
    assert ids["l3"] not in index.connected_component(ids["l1"])


def test_anchor_points_follow_constraints_transitively():
    sketch, ids = _scene()
    sketch, _ = apply_constraint(sketch, ConstraintType.PARALLEL, [ids["l2"], ids["l3"]])
    sketch, _ = apply_constraint(sketch, ConstraintType.POINT_ON_LINE, [ids["circle"], ids["l3"]])
    index = AdjacencyIndex.build_from_sketch(sketch)

    moving = index.component_points(ids["l1"])
    anchors = constraint_anchor_points(sketch, index, moving)

    assert anchors == {ids["d"], ids["e"], ids["f"]}


def test_affected_constraints_and_currency():
    sketch, ids = _scene()
    sketch, (cid,) = apply_constraint(sketch, ConstraintType.HORIZONTAL, [ids["l1"]])
    index = AdjacencyIndex.build_from_sketch(sketch)
    assert index.get_affected_constraints([ids["l1"], ids["l3"]]) == {cid}
    assert index.is_current(sketch)
    sketch, _ = add_primitive(sketch, Point2D(50, 50))
    assert not index.is_current(sketch)
