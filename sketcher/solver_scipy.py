"""
SciPy Backend: scipy.optimize.least_squares mit Trust-Region-Reflective.

TRF statt LM, weil LM keine unterbestimmten Systeme (m < n) akzeptiert und
Skizzen während des Zeichnens fast immer unterbestimmt sind.
"""

import numpy as np
from scipy.optimize import least_squares

from .solver_interface import ISolverBackend, SolverProblem, SolverResult, classify_failure


class SciPyTRFBackend(ISolverBackend):
    """least_squares(method='trf') mit der numerischen Jacobi-Matrix des Systems."""

    method = "trf"

    @property
    def name(self) -> str:
        return f"scipy_{self.method}"

    def can_solve(self, problem: SolverProblem):
        if problem.system.n_variables == 0:
            return False, "no free parameters"
        return True, ""

    def solve(self, problem: SolverProblem) -> SolverResult:
        system, options = problem.system, problem.options
        x0 = system.x0
        r0 = system.residual(x0)
        if r0.size == 0 or float(np.linalg.norm(r0)) < options.tolerance:
            return SolverResult(success=True, iterations=0, final_error=float(np.linalg.norm(r0)) if r0.size else 0.0, x=x0)

        try:
            opt = least_squares(
                system.residual,
                x0,
                jac=system.jacobian,
                method=self.method,
                ftol=1e-15,
                xtol=1e-15,
                gtol=1e-15,
                max_nfev=max(options.max_iterations, 1) * 4,
            )
        except (ValueError, np.linalg.LinAlgError) as exc:
            failure = classify_failure(system, x0, options.rank_tolerance)
            return SolverResult(
                success=False, iterations=0, final_error=float(np.linalg.norm(r0)),
                x=x0, failure=failure, message=f"least_squares fehlgeschlagen: {exc}",
            )

        x = opt.x
        error = float(np.linalg.norm(system.residual(x)))
        if np.isfinite(error) and error < options.tolerance:
            return SolverResult(success=True, iterations=int(opt.nfev), final_error=error, x=x, message=opt.message)

        failure = classify_failure(system, x, options.rank_tolerance)
        return SolverResult(
            success=False,
            iterations=int(opt.nfev),
            final_error=error,
            x=x,
            failure=failure,
            message=f"Nicht konvergiert ({failure.value}): {opt.message}",
        )
