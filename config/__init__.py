"""
ParaSketch - Configuration Module
=================================

Zentrale Konfiguration für Toleranzen und Feature-Flags.
"""

from .tolerances import Tolerances, solver_tolerance, sketch_tolerance, snap_radius
from .feature_flags import is_enabled, set_flag, get_flag, get_all_flags, FEATURE_FLAGS
