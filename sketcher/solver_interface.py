"""
Solver abstraction layer.

Provides a unified interface for selectable solver backends while keeping
backend selection and fallback behavior explicit in the returned result.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
import time
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
from loguru import logger

from config.feature_flags import get_flag, is_enabled
from config.tolerances import Tolerances

from .errors import SolveFailure
from .residuals import ResidualSystem


class SolverBackendType(Enum):
    """Available solver backends."""

    NEWTON = "newton"
    SCIPY_TRF = "scipy_trf"


@dataclass
class SolverOptions:
    """Configuration for solver backends."""

    tolerance: float = Tolerances.SOLVER_TOLERANCE
    max_iterations: int = Tolerances.SOLVER_MAX_ITERATIONS
    max_step: float = Tolerances.SOLVER_MAX_STEP
    rank_tolerance: float = Tolerances.SOLVER_RANK_TOLERANCE
    verbose: bool = False


@dataclass
class SolverProblem:
    """Residual system plus options passed to backends."""

    system: ResidualSystem
    options: SolverOptions = field(default_factory=SolverOptions)


@dataclass
class SolverResult:
    """Unified solver result."""

    success: bool
    iterations: int
    final_error: float
    x: Optional[np.ndarray] = None
    failure: Optional[SolveFailure] = None
    message: str = ""
    backend_used: str = ""
    solve_time_ms: float = 0.0
    n_variables: int = 0
    n_constraints: int = 0
    requested_backend: str = ""
    selection_detail: str = ""


class ISolverBackend(ABC):
    """Common backend contract."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name used for diagnostics."""
        ...

    @abstractmethod
    def solve(self, problem: SolverProblem) -> SolverResult:
        """Solve the given problem."""
        ...

    def can_solve(self, problem: SolverProblem) -> Tuple[bool, str]:
        """Return whether this backend can solve the problem."""
        return True, ""


def classify_failure(system: ResidualSystem, x: np.ndarray, rank_tolerance: float) -> SolveFailure:
    """
    Not converged: REDUNDANT if the Jacobian at x is row-rank deficient
    (duplicate/conflicting equations or nothing left to move), else DID_NOT_CONVERGE.
    """
    residual = system.residual(x)
    if not np.all(np.isfinite(residual)) or not np.all(np.isfinite(x)):
        return SolveFailure.DID_NOT_CONVERGE
    m = len(residual)
    if len(x) == 0:
        return SolveFailure.REDUNDANT
    jac = system.jacobian(x)
    if not np.all(np.isfinite(jac)):
        return SolveFailure.DID_NOT_CONVERGE
    singular = np.linalg.svd(jac, compute_uv=False)
    if singular.size == 0 or singular[0] <= 0:
        return SolveFailure.REDUNDANT
    rank = int(np.sum(singular > rank_tolerance * max(singular[0], 1.0)))
    return SolveFailure.REDUNDANT if rank < m else SolveFailure.DID_NOT_CONVERGE


class SolverBackendRegistry:
    """Registry of available solver backends."""

    _backends: Dict[str, ISolverBackend] = {}

    @classmethod
    def register(cls, backend_type: SolverBackendType, backend: ISolverBackend):
        cls._backends[backend_type.value] = backend

    @classmethod
    def get(cls, backend_type: Union[str, SolverBackendType]) -> Optional[ISolverBackend]:
        if isinstance(backend_type, SolverBackendType):
            backend_type = backend_type.value
        return cls._backends.get(backend_type)

    @classmethod
    def get_default(cls) -> ISolverBackend:
        from .solver_newton import NewtonBackend

        return cls._backends.get(SolverBackendType.NEWTON.value) or NewtonBackend()

    @classmethod
    def list_available(cls) -> List[str]:
        return list(cls._backends.keys())


class UnifiedConstraintSolver:
    """Selects the configured solver backend and makes fallbacks explicit."""

    def __init__(self, backend: Optional[ISolverBackend] = None):
        self._backend = backend
        self._fallback_chain = [SolverBackendType.NEWTON]

    def _read_configured_backend_name(self) -> Tuple[str, str]:
        backend_name = str(get_flag("solver_backend", SolverBackendType.NEWTON.value) or "").strip()
        if not backend_name:
            return SolverBackendType.NEWTON.value, "empty solver_backend flag"
        return backend_name, ""

    def _select_backend(self, problem: SolverProblem) -> Tuple[ISolverBackend, str, str]:
        if self._backend is not None:
            return self._backend, self._backend.name, "backend injected explicitly"

        backend_name, config_note = self._read_configured_backend_name()
        selection_notes: List[str] = []
        if config_note:
            selection_notes.append(config_note)

        backend = SolverBackendRegistry.get(backend_name)
        if backend is not None:
            can_solve, reason = backend.can_solve(problem)
            if can_solve:
                return backend, backend_name, "; ".join(selection_notes)
            selection_notes.append(f"requested backend '{backend_name}' cannot solve: {reason}")
            logger.warning(f"[Solver] Backend '{backend_name}' cannot solve: {reason}")
        else:
            selection_notes.append(f"requested backend '{backend_name}' is not registered")
            logger.warning(f"[Solver] Backend '{backend_name}' is not registered")

        if is_enabled("solver_fallback"):
            for fallback_type in self._fallback_chain:
                fallback_name = fallback_type.value
                backend = SolverBackendRegistry.get(fallback_type)
                if backend is None:
                    selection_notes.append(f"fallback backend '{fallback_name}' not registered")
                    continue
                can_solve, reason = backend.can_solve(problem)
                if can_solve:
                    selection_notes.append(f"fell back to '{fallback_name}'")
                    logger.warning(f"[Solver] Falling back to {fallback_name}")
                    return backend, backend_name, "; ".join(selection_notes)
                selection_notes.append(f"fallback backend '{fallback_name}' cannot solve: {reason}")

        default_backend = SolverBackendRegistry.get_default()
        selection_notes.append(f"using default backend '{default_backend.name}'")
        logger.error(f"[Solver] Exhausted backend selection, using default '{default_backend.name}'")
        return default_backend, backend_name, "; ".join(selection_notes)

    def solve(self, system: ResidualSystem, options: Optional[SolverOptions] = None) -> SolverResult:
        problem = SolverProblem(system=system, options=options or SolverOptions())
        backend, requested_backend, selection_detail = self._select_backend(problem)

        start_time = time.perf_counter()
        result = backend.solve(problem)
        result.solve_time_ms = (time.perf_counter() - start_time) * 1000
        result.backend_used = backend.name
        result.requested_backend = requested_backend
        result.selection_detail = selection_detail
        result.n_variables = system.n_variables
        result.n_constraints = len(system.rows)

        if selection_detail:
            base_message = str(result.message or "").strip()
            if selection_detail not in base_message:
                result.message = f"{base_message} | {selection_detail}" if base_message else selection_detail

        return result


def _register_backends():
    """Register all available solver backends."""
    from .solver_newton import NewtonBackend
    from .solver_scipy import SciPyTRFBackend

    SolverBackendRegistry.register(SolverBackendType.NEWTON, NewtonBackend())
    SolverBackendRegistry.register(SolverBackendType.SCIPY_TRF, SciPyTRFBackend())


_register_backends()
