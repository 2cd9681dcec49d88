"""
ParaSketch - Sketch Handlers
Tool-Handler als Mixin: Linien-Kette, Kreis, 3-Punkt-Bogen, Punkt, Auswahl/Drag.

Jeder Handler arbeitet auf self.sketch (ein Sketch-Wert) und ersetzt ihn nur
über _execute_transaction bzw. _commit_and_solve. Degenerierte Eingaben werden
still verworfen, Solver-Fehler lassen den Zustand vor dem Solve stehen.
"""

from dataclasses import dataclass
import math
from typing import Dict, Optional, Tuple

from loguru import logger

from config.feature_flags import get_flag, is_enabled
from config.tolerances import Tolerances

from .dependency_graph import AdjacencyIndex, constraint_anchor_points
from .errors import ConstraintError, DegenerateConstruction, InvalidReference
from .geometry import (
    Arc2D, Circle2D, Line2D, Point2D, Vec2,
    angle_in_ccw_span, angle_of, circumcenter, distance, point_segment_distance,
)
from .inference import detect_axis_alignment
from .operations import (
    add_primitive, apply_constraint, get_or_create_point, move_points, set_points_fixed,
)


@dataclass(frozen=True)
class Preview:
    """Transiente Vorschau-Geometrie für den Renderer."""
    kind: str  # "line" | "circle" | "arc"
    points: Tuple[Vec2, ...] = ()
    center: Optional[Vec2] = None
    radius: float = 0.0


@dataclass
class DragState:
    primitive_id: str
    origin: Vec2
    originals: Dict[str, Vec2]
    pinned: frozenset
    positions: Dict[str, Vec2]
    last_solve_ms: float = float("-inf")


class SketchHandlersMixin:
    """
    Erwartet vom Host (SketchSession): sketch, tool_step, tool_points,
    selection, preview, last_error, _commit_and_solve(), _reset_tool().
    """

    # =========================================================================
    # Transaktionen
    # =========================================================================

    def _execute_transaction(self, mutate_fn, *, context: str, keep_on_failure: bool = True):
        """
        Führt Mutation + Solve aus:
        - Degenerierte Konstruktion: still verworfen, Sketch unverändert
        - Constraint-Fehler / unbekannte ID: last_error gesetzt, Sketch unverändert
        - Solver-Fehler: Zustand vor dem Solve-Versuch bleibt
        """
        try:
            new_sketch, created = mutate_fn(self.sketch)
        except DegenerateConstruction as exc:
            logger.debug(f"[Session] {context} verworfen: {exc}")
            return None
        except (ConstraintError, InvalidReference) as exc:
            self.last_error = exc
            logger.warning(f"[Session] {context}: {exc}")
            return None
        self.last_error = None
        self._commit_and_solve(new_sketch, keep_on_failure=keep_on_failure)
        return created

    # =========================================================================
    # Linie (Kette)
    # =========================================================================

    def _handle_line(self, pos: Vec2, t_ms: float):
        """
        Klick 1 setzt den Ketten-Anker, jeder weitere Klick erzeugt eine Linie
        vom Anker zum neuen Punkt und verankert neu. Doppelklick beendet.
        """
        if self.tool_step == 0:
            self.tool_points = [pos]
            self._chain_anchor_id = None
            self.tool_step = 1
            self._last_click = (t_ms, pos)
            return

        last_t, last_pos = self._last_click
        if t_ms - last_t <= Tolerances.SKETCH_DOUBLE_CLICK_MS and distance(pos, last_pos) <= Tolerances.SKETCH_POINT_MERGE:
            logger.debug("[Session] Doppelklick: Kette beendet")
            self._reset_tool()
            return
        self._last_click = (t_ms, pos)

        start = self.tool_points[-1]
        anchor_id = self._chain_anchor_id

        def mutate(sketch):
            if distance(start, pos) < Tolerances.SKETCH_MIN_LINE_LENGTH:
                raise DegenerateConstruction("Linie mit Länge 0")
            if anchor_id is not None and sketch.has(anchor_id):
                a = anchor_id
            else:
                sketch, a = get_or_create_point(sketch, *start)
            sketch, b = get_or_create_point(sketch, *pos)
            if a == b:
                raise DegenerateConstruction("Linie mit identischen Endpunkten")
            sketch, line_id = add_primitive(sketch, Line2D(a, b))
            if is_enabled("auto_axis_constraints"):
                axis = detect_axis_alignment(sketch.position(a), sketch.position(b))
                if axis is not None:
                    sketch, _ = apply_constraint(sketch, axis, [line_id])
                    logger.debug(f"[Session] Auto-{axis.value} für {line_id}")
            return sketch, (line_id, b)

        created = self._execute_transaction(mutate, context="Linie")
        if created is None:
            return
        line_id, end_id = created
        self._chain_anchor_id = end_id
        self.tool_points.append(self.sketch.position(end_id) if self.sketch.has(end_id) else pos)
        self.last_created = line_id

    # =========================================================================
    # Kreis
    # =========================================================================

    def _handle_circle_press(self, pos: Vec2):
        self.tool_points = [pos]
        self.tool_step = 1
        self.preview = Preview("circle", center=pos, radius=0.0)

    def _handle_circle_move(self, pos: Vec2):
        center = self.tool_points[0]
        self.preview = Preview("circle", center=center, radius=distance(center, pos))

    def _handle_circle_release(self, pos: Vec2):
        center = self.tool_points[0]
        radius = distance(center, pos)
        self._reset_tool()

        def mutate(sketch):
            if radius <= Tolerances.SKETCH_MIN_CIRCLE_RADIUS:
                raise DegenerateConstruction(f"Kreis-Radius {radius:.4f} zu klein")
            sketch, center_id = get_or_create_point(sketch, *center)
            sketch, circle_id = add_primitive(sketch, Circle2D(center_id, radius))
            return sketch, circle_id

        self.last_created = self._execute_transaction(mutate, context="Kreis") or self.last_created

    # =========================================================================
    # Bogen (3 Punkte)
    # =========================================================================

    def _calc_arc_3point(self, start: Vec2, through: Vec2, end: Vec2):
        """
        Bogen durch start, through, end.

        Returns:
            (center, start, end) so orientiert, dass der CCW-Bogen von start
            nach end den Durchgangspunkt enthält; None wenn kollinear.
        """
        center = circumcenter(start, through, end)
        if center is None:
            return None
        a_start, a_through, a_end = angle_of(center, start), angle_of(center, through), angle_of(center, end)
        if angle_in_ccw_span(a_through, a_start, a_end):
            return center, start, end
        return center, end, start

    def _handle_arc_3point(self, pos: Vec2):
        """
        - Klick 1: Startpunkt
        - Klick 2: Endpunkt
        - Klick 3: Durchgangspunkt (definiert Krümmung)
        """
        if self.tool_points and distance(pos, self.tool_points[-1]) < Tolerances.SKETCH_MIN_LINE_LENGTH:
            return
        self.tool_points.append(pos)
        if len(self.tool_points) < 3:
            self.tool_step = len(self.tool_points)
            return

        start, end, through = self.tool_points
        arc = self._calc_arc_3point(start, through, end)
        if arc is None:
            # Kollinear: gerade Vorschau, Commit verweigert, auf neuen dritten Klick warten
            logger.debug("[Session] 3-Punkt-Bogen kollinear, verworfen")
            self.tool_points.pop()
            self.preview = Preview("line", points=(start, end))
            return

        center, arc_start, arc_end = arc
        self._reset_tool()

        def mutate(sketch):
            sketch, s = get_or_create_point(sketch, *arc_start)
            sketch, e = get_or_create_point(sketch, *arc_end)
            sketch, c = get_or_create_point(sketch, *center)
            if len({s, e, c}) != 3:
                raise DegenerateConstruction("Bogen-Punkte fallen zusammen")
            sketch, arc_id = add_primitive(sketch, Arc2D(c, s, e, radius=distance(center, arc_start)))
            return sketch, arc_id

        self.last_created = self._execute_transaction(mutate, context="Bogen") or self.last_created

    def _update_arc_preview(self, pos: Vec2):
        if len(self.tool_points) == 1:
            self.preview = Preview("line", points=(self.tool_points[0], pos))
        elif len(self.tool_points) == 2:
            start, end = self.tool_points
            arc = self._calc_arc_3point(start, pos, end)
            if arc is None:
                self.preview = Preview("line", points=(start, end))
            else:
                center, s, e = arc
                self.preview = Preview("arc", points=(s, e), center=center, radius=distance(center, s))

    # =========================================================================
    # Punkt
    # =========================================================================

    def _handle_point(self, pos: Vec2):
        def mutate(sketch):
            if sketch.find_point_near(pos[0], pos[1], Tolerances.SKETCH_POINT_MERGE) is not None:
                raise DegenerateConstruction("Punkt existiert bereits")
            return add_primitive(sketch, Point2D(*pos))

        self.last_created = self._execute_transaction(mutate, context="Punkt") or self.last_created

    # =========================================================================
    # Auswahl / Drag
    # =========================================================================

    def _pick(self, pos: Vec2, radius: float = Tolerances.SKETCH_PICK_RADIUS) -> Optional[str]:
        """Nächstes Primitiv unter dem Cursor; Punkte gewinnen bei Gleichstand."""
        sketch = self.sketch
        best, best_dist = None, radius
        for rank in (0, 1):
            for primitive in sketch.primitives:
                is_point = isinstance(primitive, Point2D)
                if (rank == 0) != is_point:
                    continue
                if is_point:
                    d = distance(pos, primitive.position)
                elif isinstance(primitive, Line2D):
                    d = point_segment_distance(pos, *sketch.line_endpoints(primitive.id))
                elif isinstance(primitive, Circle2D):
                    center, r = sketch.curve_geometry(primitive.id)
                    d = abs(distance(pos, center) - r)
                elif isinstance(primitive, Arc2D):
                    center, r = sketch.curve_geometry(primitive.id)
                    on_span = angle_in_ccw_span(
                        angle_of(center, pos),
                        angle_of(center, sketch.position(primitive.start_id)),
                        angle_of(center, sketch.position(primitive.end_id)),
                    )
                    d = abs(distance(pos, center) - r) if on_span else math.inf
                else:
                    raise TypeError(f"Unbekannter Primitiv-Typ: {type(primitive).__name__}")
                if d < best_dist:
                    best, best_dist = primitive.id, d
            if best is not None:
                return best
        return None

    def _handle_select(self, pos: Vec2, additive: bool, t_ms: float):
        hit = self._pick(pos)
        if hit is None:
            if not additive:
                self.selection = []
            return
        if hit in self.selection and not additive:
            self._begin_drag(hit, pos, t_ms)
            return
        if additive:
            if hit in self.selection:
                self.selection.remove(hit)
            else:
                self.selection.append(hit)
        else:
            self.selection = [hit]

    def _adjacency(self) -> AdjacencyIndex:
        if self._adjacency_index is None or not self._adjacency_index.is_current(self.sketch):
            self._adjacency_index = AdjacencyIndex.build_from_sketch(self.sketch)
        return self._adjacency_index

    def _begin_drag(self, primitive_id: str, pos: Vec2, t_ms: float):
        """
        Moving-Set = Punkte der Zusammenhangskomponente (ohne permanent fixierte).
        Punkte außerhalb, die über Constraints daran hängen, werden temporär fixiert.
        """
        index = self._adjacency()
        component = index.component_points(primitive_id)
        moving = {pid for pid in component if not self.sketch.point(pid).fixed}
        anchors = constraint_anchor_points(self.sketch, index, component)
        pinned = frozenset(pid for pid in anchors if not self.sketch.point(pid).fixed)

        if pinned:
            self._replace_sketch(set_points_fixed(self.sketch, pinned, True))
        self._drag = DragState(
            primitive_id=primitive_id,
            origin=pos,
            originals={pid: self.sketch.position(pid) for pid in moving},
            pinned=pinned,
            positions={},
            last_solve_ms=t_ms,
        )
        logger.debug(f"[Session] Drag {primitive_id}: {len(moving)} bewegt, {len(pinned)} fixiert")

    def _handle_drag_move(self, pos: Vec2, t_ms: float, force: bool = False):
        drag = self._drag
        dx, dy = pos[0] - drag.origin[0], pos[1] - drag.origin[1]
        drag.positions = {pid: (x + dx, y + dy) for pid, (x, y) in drag.originals.items()}
        throttle = float(get_flag("sketch_drag_throttle_ms", Tolerances.SKETCH_DRAG_THROTTLE_MS) or 0)
        if force or t_ms - drag.last_solve_ms >= throttle:
            drag.last_solve_ms = t_ms
            self._commit_and_solve(move_points(self.sketch, drag.positions), keep_on_failure=False)

    def _handle_drag_release(self, pos: Vec2, t_ms: float):
        """Letzte Positionen lösen (mit Ankern), dann genau die gesetzten Flags lösen."""
        drag = self._drag
        self._handle_drag_move(pos, t_ms, force=True)
        self.wait_for_solver()
        self._drag = None
        if drag.pinned:
            pinned = [pid for pid in drag.pinned if self.sketch.has(pid)]
            self._commit_and_solve(set_points_fixed(self.sketch, pinned, False), keep_on_failure=True)

    def _abort_drag(self):
        drag = self._drag
        self._drag = None
        self.wait_for_solver()
        sketch = move_points(self.sketch, {pid: p for pid, p in drag.originals.items() if self.sketch.has(pid)})
        pinned = [pid for pid in drag.pinned if sketch.has(pid)]
        if pinned:
            sketch = set_points_fixed(sketch, pinned, False)
        self._replace_sketch(sketch)
