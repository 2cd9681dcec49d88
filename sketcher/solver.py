"""
ParaSketch Sketcher - Constraint Solver

solve(sketch) ist atomar: entweder ein vollständig aktualisierter neuer
Sketch-Wert oder der unveränderte Eingabe-Sketch plus Fehlergrund. Solver-
Fehler sind Ergebnisse, keine Exceptions.

Verwendung:
    result = solve(sketch)
    if result.success:
        sketch = result.sketch
    else:
        print(result.failure, result.message)
"""

from dataclasses import dataclass, replace
from typing import Optional

import numpy as np
from loguru import logger

from .constraints import ConstraintStatus
from .dof import compute_dof
from .errors import SolveFailure
from .geometry import Circle2D, Point2D
from .operations import sync_arc_radii
from .residuals import build_residual_system
from .sketch import Sketch
from .solver_interface import ISolverBackend, SolverOptions, UnifiedConstraintSolver


@dataclass
class SolveResult:
    """Ergebnis eines Solves"""
    success: bool
    sketch: Sketch
    dof: int
    status: ConstraintStatus
    failure: Optional[SolveFailure] = None
    iterations: int = 0
    residual: float = 0.0
    message: str = ""
    backend_used: str = ""
    solve_time_ms: float = 0.0
    source_revision: int = 0

    def __repr__(self):
        state = "OK" if self.success else f"FAIL({self.failure.value})"
        return (
            f"SolveResult({state}, dof={self.dof}, {self.status.value}, "
            f"iter={self.iterations}, |R|={self.residual:.2e}, backend={self.backend_used})"
        )


def _apply_solution(sketch: Sketch, layout, x: np.ndarray) -> Sketch:
    primitives = []
    for p in sketch.primitives:
        if isinstance(p, Point2D) and p.id in layout.point_slots:
            slot = layout.point_slots[p.id]
            p = replace(p, x=x[slot], y=x[slot + 1])
        elif isinstance(p, Circle2D) and p.id in layout.radius_slots:
            # Negative Radien sind eine gültige Lösung von |r| - v; Betrag übernehmen
            p = replace(p, radius=abs(x[layout.radius_slots[p.id]]))
        primitives.append(p)
    solved = sketch.evolve(primitives=tuple(primitives), revision=sketch.revision + 1)
    arcs = sync_arc_radii(solved)
    if arcs is not None:
        solved = solved.evolve(primitives=arcs)
    dof, status = compute_dof(solved)
    return solved.evolve(dof=dof, status=status)


def solve(sketch: Sketch, options: Optional[SolverOptions] = None,
          backend: Optional[ISolverBackend] = None) -> SolveResult:
    """
    Löst alle treibenden Constraints einer Skizze.

    Args:
        sketch: Eingabe (wird nie verändert)
        options: Toleranz, Iterations-Cap, Schrittgrenze
        backend: explizites Backend, sonst über das Flag solver_backend

    Returns:
        SolveResult mit neuem Sketch (Erfolg) oder dem Eingabe-Sketch (Fehler)
    """
    system = build_residual_system(sketch)
    result = UnifiedConstraintSolver(backend).solve(system, options)
    dof, status = compute_dof(sketch)

    if result.success and result.x is not None and np.all(np.isfinite(result.x)):
        solved = _apply_solution(sketch, system.layout, result.x)
        logger.debug(
            f"[Solver] {sketch.id} r{sketch.revision}: konvergiert "
            f"({result.iterations} it, |R|={result.final_error:.2e}, dof={solved.dof}, {result.backend_used})"
        )
        return SolveResult(
            success=True,
            sketch=solved,
            dof=solved.dof,
            status=solved.status,
            iterations=result.iterations,
            residual=result.final_error,
            message=result.message,
            backend_used=result.backend_used,
            solve_time_ms=result.solve_time_ms,
            source_revision=sketch.revision,
        )

    failure = result.failure or SolveFailure.DID_NOT_CONVERGE
    if dof <= 0 or failure is SolveFailure.REDUNDANT:
        status = ConstraintStatus.OVER_CONSTRAINED
    logger.warning(f"[Solver] {sketch.id} r{sketch.revision}: {result.message}")
    return SolveResult(
        success=False,
        sketch=sketch,
        dof=dof,
        status=status,
        failure=failure,
        iterations=result.iterations,
        residual=result.final_error,
        message=result.message,
        backend_used=result.backend_used,
        solve_time_ms=result.solve_time_ms,
        source_revision=sketch.revision,
    )
