"""
ParaSketch - Authoring Session

Zustandsautomat für das interaktive Zeichnen. Nimmt Cursor-Events in
Plane-Koordinaten entgegen (press/move/release/double_click/cancel), fragt die
Inference Engine für Snapping und ruft nach jeder Änderung den Solver.

Die Session besitzt genau einen Sketch-Wert (single writer). Solves laufen
entweder direkt oder über einen SolveScheduler im Hintergrund; Ergebnisse
werden nur übernommen, wenn der Sketch seitdem nicht ersetzt wurde.

Verwendung:
    session = SketchSession(plane="XY")
    session.set_tool(SketchTool.LINE)
    session.press(0, 0, t_ms=0)
    session.press(5, 0.2, t_ms=500)   # Linie + Auto-Horizontal
    session.cancel()
"""

from threading import RLock
import time
from typing import List, Optional, Sequence

from loguru import logger

from config.feature_flags import is_enabled

from .constraints import ConstraintType, get_available_constraints
from .dof import compute_dof
from .errors import SketchError
from .handlers import Preview, SketchHandlersMixin
from .inference import (
    InferenceCache, find_guidelines, find_nearest_snap, snap_to_guidelines,
)
from .operations import apply_constraint, remove_primitive, start_sketch
from .profiles import finish_sketch
from .sketch import Sketch
from .solve_scheduler import SolveScheduler
from .solver import SolveResult, solve
from .tools import SketchTool


class SketchSession(SketchHandlersMixin):
    """Authoring State Machine über einem Sketch-Wert."""

    def __init__(self, sketch: Optional[Sketch] = None, plane="XY",
                 async_solve: bool = False, solver_options=None):
        self.sketch: Sketch = sketch if sketch is not None else start_sketch(plane)
        self.tool = SketchTool.SELECT
        self.tool_step = 0
        self.tool_points: List = []
        self.preview = None
        self.selection: List[str] = []
        self.snap = None
        self.guidelines = []
        self.last_result: Optional[SolveResult] = None
        self.last_error: Optional[SketchError] = None
        self.last_created: Optional[str] = None

        self._solver_options = solver_options
        self._lock = RLock()
        self._inference = InferenceCache()
        self._adjacency_index = None
        self._chain_anchor_id: Optional[str] = None
        self._last_click = (float("-inf"), (0.0, 0.0))
        self._pre_solve_fallback: Optional[Sketch] = None
        self._drag = None
        self._scheduler = SolveScheduler(on_result=self._on_solver_finished, options=solver_options) if async_solve else None

    # =========================================================================
    # Zustand
    # =========================================================================

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    @property
    def dof(self) -> int:
        return self.sketch.dof

    @property
    def status(self):
        return self.sketch.status

    def _now(self, t_ms: Optional[float]) -> float:
        return time.monotonic() * 1000 if t_ms is None else float(t_ms)

    def _log_input(self, event: str, x: float, y: float):
        if is_enabled("sketch_input_logging"):
            logger.debug(f"[Input] {event} ({x:.3f}, {y:.3f}) tool={self.tool.name} step={self.tool_step}")

    def _replace_sketch(self, sketch: Sketch):
        """Neuer Stand ohne Solve; laufende Solves werden dadurch veraltet."""
        with self._lock:
            self.sketch = sketch
            self._pre_solve_fallback = None
        if self._scheduler is not None:
            self._scheduler.invalidate(sketch)

    def _reset_tool(self):
        self.tool_step = 0
        self.tool_points = []
        self.preview = None
        self.guidelines = []
        self.snap = None
        self._chain_anchor_id = None

    # =========================================================================
    # Solver-Integration
    # =========================================================================

    def _commit_and_solve(self, new_sketch: Sketch, keep_on_failure: bool = True):
        """
        Übernimmt new_sketch und löst ihn.

        keep_on_failure=True: bei Solver-Fehler bleibt new_sketch (z.B. der neue,
        redundante Constraint bleibt sichtbar). False: der vorherige Stand bleibt.
        """
        if self._scheduler is not None:
            with self._lock:
                # Fallback ist der letzte gelöste Stand, nicht ein ungelöster
                # Zwischenstand aus zusammengefassten Requests.
                if keep_on_failure:
                    self._pre_solve_fallback = None
                elif self._pre_solve_fallback is None:
                    self._pre_solve_fallback = self.sketch
                self.sketch = new_sketch
            self._scheduler.request(new_sketch)
            return

        result = solve(new_sketch, options=self._solver_options)
        self.last_result = result
        with self._lock:
            if result.success:
                self.sketch = result.sketch
            elif keep_on_failure:
                self.sketch = new_sketch
            else:
                logger.debug(f"[Session] Solve fehlgeschlagen ({result.failure.value}), vorheriger Stand bleibt")

    def _on_solver_finished(self, result: SolveResult):
        """Callback aus dem Worker-Thread; übernimmt nur passende Revisionen."""
        with self._lock:
            self.last_result = result
            current = self.sketch
            if current.id != result.sketch.id or current.revision != result.source_revision:
                logger.debug(f"[Session] Verwerfe Ergebnis r{result.source_revision}, aktuell r{current.revision}")
                return
            if result.success:
                self.sketch = result.sketch
            elif self._pre_solve_fallback is not None:
                self.sketch = self._pre_solve_fallback
            self._pre_solve_fallback = None

    def wait_for_solver(self, timeout: Optional[float] = None) -> bool:
        if self._scheduler is None:
            return True
        return self._scheduler.wait(timeout)

    def solve(self) -> SolveResult:
        """Expliziter Solve des aktuellen Stands."""
        self.wait_for_solver()
        self._commit_and_solve(self.sketch)
        self.wait_for_solver()
        return self.last_result

    # =========================================================================
    # Inference
    # =========================================================================

    def _infer(self, x: float, y: float):
        """Cursor -> (Position, Snap): Kandidaten-Snap vor Hilfslinien."""
        cursor = (float(x), float(y))
        self.guidelines = []
        self.snap = find_nearest_snap(cursor, self._inference.candidates_for(self.sketch))
        if self.snap is not None:
            return self.snap.position
        if is_enabled("sketch_guidelines"):
            chain_origin = self.tool_points[-1] if self.tool == SketchTool.LINE and self.tool_step == 1 else None
            self.guidelines = find_guidelines(cursor, self.sketch, chain_origin)
            if self.guidelines:
                return snap_to_guidelines(cursor, self.guidelines)
        return cursor

    # =========================================================================
    # Events
    # =========================================================================

    def set_tool(self, tool: SketchTool):
        """Tool-Wechsel bricht laufende Konstruktionen ab."""
        self.cancel()
        if tool != SketchTool.SELECT:
            self.selection = []
        self.tool = tool
        logger.debug(f"[Session] Tool: {tool.name}")

    def cancel(self):
        """Escape: Mehrklick-Konstruktionen und Drags ohne Teil-Commit abbrechen."""
        if self._drag is not None:
            self._abort_drag()
        self._reset_tool()

    def press(self, x: float, y: float, t_ms: Optional[float] = None, additive: bool = False):
        t_ms = self._now(t_ms)
        self._log_input("press", x, y)
        if self.tool == SketchTool.SELECT:
            self._handle_select((float(x), float(y)), additive, t_ms)
            return
        pos = self._infer(x, y)
        if self.tool == SketchTool.LINE:
            self._handle_line(pos, t_ms)
        elif self.tool == SketchTool.CIRCLE:
            self._handle_circle_press(pos)
        elif self.tool == SketchTool.ARC_3POINT:
            self._handle_arc_3point(pos)
        elif self.tool == SketchTool.POINT:
            self._handle_point(pos)

    def move(self, x: float, y: float, t_ms: Optional[float] = None):
        t_ms = self._now(t_ms)
        if self._drag is not None:
            self._handle_drag_move((float(x), float(y)), t_ms)
            return
        if self.tool == SketchTool.SELECT:
            return
        pos = self._infer(x, y)
        if self.tool == SketchTool.LINE and self.tool_step == 1:
            self.preview = Preview("line", points=(self.tool_points[-1], pos))
        elif self.tool == SketchTool.CIRCLE and self.tool_step == 1:
            self._handle_circle_move(pos)
        elif self.tool == SketchTool.ARC_3POINT and self.tool_points:
            self._update_arc_preview(pos)

    def release(self, x: float, y: float, t_ms: Optional[float] = None):
        t_ms = self._now(t_ms)
        self._log_input("release", x, y)
        if self._drag is not None:
            self._handle_drag_release((float(x), float(y)), t_ms)
        elif self.tool == SketchTool.CIRCLE and self.tool_step == 1:
            self._handle_circle_release(self._infer(x, y))

    def double_click(self, x: float, y: float, t_ms: Optional[float] = None):
        """Explizites Doppelklick-Event: beendet eine Linien-Kette."""
        self._log_input("double_click", x, y)
        if self.tool == SketchTool.LINE:
            self._reset_tool()

    # =========================================================================
    # Auswahl und Constraints
    # =========================================================================

    def select_component(self, primitive_id: str):
        """Ganze Zusammenhangskomponente (BFS über geteilte Punkte) selektieren."""
        self.selection = self._adjacency().connected_component(primitive_id)

    def clear_selection(self):
        self.selection = []

    def available_constraints(self) -> List[ConstraintType]:
        primitives = [self.sketch.get(pid) for pid in self.selection if self.sketch.has(pid)]
        return get_available_constraints(primitives, self.sketch) if primitives else []

    def apply_constraint(self, constraint_type, value: Optional[float] = None,
                         selection: Optional[Sequence[str]] = None) -> List[str]:
        """
        Constraint auf die Selektion anwenden und lösen.

        Returns:
            Neue Constraint-IDs; leer bei ConstraintError oder unbekannter ID (siehe last_error).
        """
        ids = list(selection) if selection is not None else list(self.selection)
        self.wait_for_solver()
        created = self._execute_transaction(
            lambda sketch: apply_constraint(sketch, constraint_type, ids, value),
            context=f"Constraint {ConstraintType(constraint_type).value}",
        )
        return created or []

    def delete_selection(self):
        """Selektierte Primitive entfernen (kaskadierend), dann lösen."""
        sketch = self.sketch
        for primitive_id in self.selection:
            if sketch.has(primitive_id):
                sketch = remove_primitive(sketch, primitive_id)
        self.selection = []
        if sketch is not self.sketch:
            self._commit_and_solve(sketch)

    def compute_dof(self):
        return compute_dof(self.sketch)

    def finish_sketch(self, converter):
        """Gelösten Sketch an den Profil-zu-Solid Konverter übergeben."""
        self.cancel()
        self.wait_for_solver()
        return finish_sketch(self.sketch, converter)
