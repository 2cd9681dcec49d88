"""
ParaSketch Sketcher Module
"""

from .errors import (
    SketchError, GeometryError, DegenerateConstruction, InvalidReference,
    ConstraintError, InapplicableSelection, InvalidConstraintValue, SolveFailure,
)

from .geometry import (
    Point2D, Line2D, Circle2D, Arc2D, GeometryType,
    primitive_kind, point_segment_distance, circumcenter,
)

from .constraints import (
    Constraint, ConstraintType, ConstraintStatus, DOF_REMOVED,
    get_available_constraints, requires_value, get_default_value, get_constraint_label,
)

from .sketch import Sketch, SketchPlane, PlaneType, create_sketch_plane

from .dof import compute_dof, DofResult

from .operations import (
    start_sketch, add_primitive, remove_primitive, update_primitive,
    add_constraint, apply_constraint, remove_constraint, update_constraint,
    update_primitives_and_solve, get_or_create_point, get_constraints_for_primitive,
)

from .solver import solve, SolveResult
from .solver_interface import SolverOptions

from .inference import (
    SnapCandidate, Guideline, find_candidates, find_nearest_snap,
    find_guidelines, snap_to_guidelines, detect_axis_alignment,
)

from .tools import SketchTool, SnapType, GuidelineAxis

from .profiles import ClosedProfile, find_closed_profiles, finish_sketch

from .session import SketchSession
