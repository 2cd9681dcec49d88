"""
ParaSketch Sketcher - DOF Accountant

dof = 2 * (#nicht fixierte Punkte) - Σ(entfernte DOF der treibenden Constraints)

Die Zählung ist beratend (UI-Feedback). Maßgeblich für Korrektheit ist das
Konvergenz-Ergebnis des Solvers.
"""

from typing import NamedTuple

from .constraints import ConstraintStatus
from .geometry import Point2D


class DofResult(NamedTuple):
    dof: int
    status: ConstraintStatus


def classify_dof(dof: int) -> ConstraintStatus:
    if dof > 0:
        return ConstraintStatus.UNDER_CONSTRAINED
    if dof == 0:
        return ConstraintStatus.FULLY_CONSTRAINED
    return ConstraintStatus.OVER_CONSTRAINED


def compute_dof(sketch) -> DofResult:
    """DOF und Status einer Skizze. Unabhängig von der Einfügereihenfolge."""
    raw = sum(2 for p in sketch.primitives if isinstance(p, Point2D) and not p.fixed)
    removed = sum(c.dof_removed for c in sketch.constraints)
    dof = raw - removed
    return DofResult(dof, classify_dof(dof))
