"""
Gedämpfter Gauss-Newton Backend (Standard).

Pro Iteration: numerische Jacobi-Matrix, Minimum-Norm Least-Squares Schritt
(funktioniert für rechteckige und rang-defiziente Systeme), Schrittlänge auf
max_step begrenzt, Backtracking Line-Search auf ||R||.
"""

import numpy as np
from loguru import logger

from config.feature_flags import is_enabled
from config.tolerances import Tolerances

from .solver_interface import ISolverBackend, SolverProblem, SolverResult, classify_failure


class NewtonBackend(ISolverBackend):
    """Damped Gauss-Newton mit lstsq-Schritt."""

    @property
    def name(self) -> str:
        return "newton"

    def solve(self, problem: SolverProblem) -> SolverResult:
        system, options = problem.system, problem.options
        x = system.x0
        residual = system.residual(x)
        error = float(np.linalg.norm(residual)) if residual.size else 0.0
        iterations = 0
        debug = is_enabled("solver_debug") or options.verbose

        while error >= options.tolerance and iterations < options.max_iterations and x.size:
            jac = system.jacobian(x)
            if not np.all(np.isfinite(jac)):
                break
            step = np.linalg.lstsq(jac, -residual, rcond=None)[0]
            step_norm = float(np.linalg.norm(step))
            if step_norm > options.max_step:
                step *= options.max_step / step_norm

            # Backtracking: erster Faktor, der ||R|| verkleinert
            alpha = 1.0
            accepted = False
            for _ in range(Tolerances.SOLVER_LINE_SEARCH_STEPS):
                candidate = x + alpha * step
                candidate_residual = system.residual(candidate)
                candidate_error = float(np.linalg.norm(candidate_residual))
                if np.isfinite(candidate_error) and candidate_error < error:
                    accepted = True
                    break
                alpha *= 0.5

            iterations += 1
            if not accepted:
                if debug:
                    logger.debug(f"[Solver] Iteration {iterations}: kein Abstieg mehr (||R||={error:.3e})")
                break

            x, residual, error = candidate, candidate_residual, candidate_error
            if debug:
                logger.debug(f"[Solver] Iteration {iterations}: ||R||={error:.3e}, alpha={alpha:g}")

        if error < options.tolerance:
            return SolverResult(
                success=True,
                iterations=iterations,
                final_error=error,
                x=x,
                message=f"Konvergiert nach {iterations} Iterationen",
            )

        failure = classify_failure(system, x, options.rank_tolerance)
        return SolverResult(
            success=False,
            iterations=iterations,
            final_error=error,
            x=x,
            failure=failure,
            message=f"Nicht konvergiert ({failure.value}), ||R||={error:.3e} nach {iterations} Iterationen",
        )
