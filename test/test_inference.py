"""
Tests für die Inference Engine: Snap-Kandidaten, Hilfslinien, Achs-Erkennung.
"""

import math

import pytest

from config.feature_flags import set_flag
from sketcher.constraints import ConstraintType
from sketcher.geometry import Arc2D, Circle2D, Line2D, Point2D
from sketcher.inference import (
    InferenceCache, SnapCandidate, detect_axis_alignment, find_candidates, find_guidelines,
    find_nearest_snap, snap_to_guidelines,
)
from sketcher.operations import add_primitive, move_points, start_sketch
from sketcher.tools import GUIDELINE_COLORS, GuidelineAxis, SnapType


def _with_line(sketch, p1, p2):
    sketch, a = add_primitive(sketch, Point2D(*p1))
    sketch, b = add_primitive(sketch, Point2D(*p2))
    sketch, line = add_primitive(sketch, Line2D(a, b))
    return sketch, line


def test_line_candidates():
    sketch, line = _with_line(start_sketch("XY"), (0, 0), (10, 0))
    candidates = find_candidates(sketch)
    assert [(c.kind, c.position) for c in candidates] == [
        (SnapType.ENDPOINT, (0.0, 0.0)),
        (SnapType.ENDPOINT, (10.0, 0.0)),
        (SnapType.MIDPOINT, (5.0, 0.0)),
    ]
    assert candidates[2].owner_id == line


def test_circle_candidates():
    sketch = start_sketch("XY")
    sketch, c = add_primitive(sketch, Point2D(1, 1))
    sketch, circle = add_primitive(sketch, Circle2D(c, 2))
    candidates = find_candidates(sketch)
    # Mittelpunkt nur als CENTER, nicht zusätzlich als ENDPOINT
    assert [c.kind for c in candidates] == [SnapType.CENTER] + [SnapType.QUADRANT] * 4
    assert {c.position for c in candidates[1:]} == {(3, 1), (1, 3), (-1, 1), (1, -1)}
    assert all(c.owner_id == circle for c in candidates)


def test_arc_candidates():
    sketch = start_sketch("XY")
    sketch, c = add_primitive(sketch, Point2D(0, 0))
    sketch, s = add_primitive(sketch, Point2D(2, 0))
    sketch, e = add_primitive(sketch, Point2D(0, 2))
    sketch, arc = add_primitive(sketch, Arc2D(c, s, e))
    by_kind = {(cand.kind, cand.owner_id): cand.position for cand in find_candidates(sketch)}
    assert by_kind[(SnapType.CENTER, arc)] == (0.0, 0.0)
    mid = by_kind[(SnapType.MIDPOINT, arc)]
    assert mid == pytest.approx((math.sqrt(2), math.sqrt(2)))


def test_line_line_intersection_candidate():
    sketch, l1 = _with_line(start_sketch("XY"), (0, 0), (10, 10))
    sketch, l2 = _with_line(sketch, (0, 10), (10, 0))
    hits = [c for c in find_candidates(sketch) if c.kind is SnapType.INTERSECTION]
    assert len(hits) == 1
    assert hits[0].position == pytest.approx((5, 5))
    assert hits[0].owner_id == f"{l1}|{l2}"


def test_intersection_allows_small_extension_only():
    sketch, _ = _with_line(start_sketch("XY"), (0, 0), (10, 0))
    # Endet knapp vor der ersten Linie: Verlängerung um 5 % reicht
    near, _ = _with_line(sketch, (5, 10), (5, 0.5))
    assert any(c.kind is SnapType.INTERSECTION for c in find_candidates(near))
    far, _ = _with_line(sketch, (5, 10), (5, 5))
    assert not any(c.kind is SnapType.INTERSECTION for c in find_candidates(far))


def test_lines_sharing_a_point_have_no_intersection_candidate():
    sketch = start_sketch("XY")
    sketch, a = add_primitive(sketch, Point2D(0, 0))
    sketch, b = add_primitive(sketch, Point2D(10, 0))
    sketch, c = add_primitive(sketch, Point2D(10, 10))
    sketch, _ = add_primitive(sketch, Line2D(a, b))
    sketch, _ = add_primitive(sketch, Line2D(b, c))
    assert not any(c.kind is SnapType.INTERSECTION for c in find_candidates(sketch))


def test_line_circle_intersection_candidates():
    sketch = start_sketch("XY")
    sketch, center = add_primitive(sketch, Point2D(0, 0))
    sketch, _ = add_primitive(sketch, Circle2D(center, 3))
    sketch, _ = _with_line(sketch, (-10, 0), (10, 0))
    hits = sorted(c.position for c in find_candidates(sketch) if c.kind is SnapType.INTERSECTION)
    assert hits == [pytest.approx((-3, 0)), pytest.approx((3, 0))]


def test_nearest_snap_radius_and_ties():
    first = SnapCandidate((1.0, 0.0), SnapType.MIDPOINT, "a")
    second = SnapCandidate((-1.0, 0.0), SnapType.ENDPOINT, "b")
    assert find_nearest_snap((0, 0), [first, second], radius=2) is first
    assert find_nearest_snap((0, 0), [second, first], radius=2) is second
    assert find_nearest_snap((0, 0), [first, second], radius=0.5) is None
    assert find_nearest_snap((0.9, 0), [second, first], radius=2) is first


def test_guidelines_from_existing_points():
    sketch = start_sketch("XY")
    sketch, pid = add_primitive(sketch, Point2D(0, 0))
    guidelines = find_guidelines((5, 0.1), sketch)
    assert len(guidelines) == 1
    g = guidelines[0]
    assert g.axis is GuidelineAxis.HORIZONTAL
    assert g.color == GUIDELINE_COLORS[GuidelineAxis.HORIZONTAL]
    assert g.source_id == pid
    assert g.start == (0.0, 0.0)
    assert g.end == (5, 0.0)
    assert snap_to_guidelines((5, 0.1), guidelines) == (5, 0.0)


def test_guidelines_from_chain_origin_are_angular():
    sketch = start_sketch("XY")
    guidelines = find_guidelines((10, 1), sketch, chain_origin=(0, 0))
    assert [(g.axis, g.source_id) for g in guidelines] == [(GuidelineAxis.HORIZONTAL, "chain_origin")]
    # Ohne Ketten-Ursprung gilt das Koordinaten-Delta
    sketch, _ = add_primitive(sketch, Point2D(0, 0))
    assert find_guidelines((10, 1), sketch) == []


def test_existing_points_use_coordinate_delta_during_chain():
    sketch = start_sketch("XY")
    sketch, _ = add_primitive(sketch, Point2D(0, 0))
    # 4 Einheiten neben der Achse: im Winkel klein, im Delta weit draußen
    assert find_guidelines((30, 4), sketch, chain_origin=(60, 60)) == []

    guidelines = find_guidelines((30, 0.1), sketch, chain_origin=(60, 60))
    assert [g.axis for g in guidelines] == [GuidelineAxis.HORIZONTAL]
    assert guidelines[0].source_id != "chain_origin"


def test_snap_to_both_axes():
    sketch = start_sketch("XY")
    sketch, _ = add_primitive(sketch, Point2D(0, 0))
    sketch, _ = add_primitive(sketch, Point2D(5, 5))
    guidelines = find_guidelines((5.1, 0.1), sketch)
    assert {g.axis for g in guidelines} == {GuidelineAxis.HORIZONTAL, GuidelineAxis.VERTICAL}
    assert snap_to_guidelines((5.1, 0.1), guidelines) == (5.0, 0.0)


@pytest.mark.parametrize("p1, p2, expected", [
    ((0, 0), (10, 0.5), ConstraintType.HORIZONTAL),
    ((0, 0), (-10, -0.5), ConstraintType.HORIZONTAL),
    ((0, 0), (0.5, 10), ConstraintType.VERTICAL),
    ((0, 0), (5, 5), None),
    ((1, 1), (1, 1), None),
])
def test_detect_axis_alignment(p1, p2, expected):
    assert detect_axis_alignment(p1, p2) == expected


def test_detect_axis_alignment_custom_tolerance():
    assert detect_axis_alignment((0, 0), (10, 1), tolerance=0.05) is None
    assert detect_axis_alignment((0, 0), (10, 1), tolerance=0.2) is ConstraintType.HORIZONTAL


def test_inference_cache_per_revision():
    sketch, _ = _with_line(start_sketch("XY"), (0, 0), (10, 0))
    cache = InferenceCache()
    first = cache.candidates_for(sketch)
    assert cache.candidates_for(sketch) is first
    moved = move_points(sketch, {sketch.points()[1].id: (20, 0)})
    refreshed = cache.candidates_for(moved)
    assert refreshed is not first
    assert (20.0, 0.0) in [c.position for c in refreshed]


def test_candidate_logging_behind_debug_flag():
    set_flag("sketch_debug", True)
    sketch, _ = _with_line(start_sketch("XY"), (0, 0), (10, 0))
    assert len(find_candidates(sketch)) == 3
