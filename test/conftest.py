import pytest

from config.feature_flags import FEATURE_FLAGS, set_flag


# Global Feature Flag Defaults - Single Source of Truth for Test Isolation
# ========================================================================
# WICHTIG: Jeder Test muss mit sauberen Feature-Flags starten.
# Diese Defaults müssen mit config/feature_flags.py synchron gehalten werden.
FEATURE_FLAG_DEFAULTS = {
    # Debug-Modi
    "sketch_input_logging": False,
    "sketch_debug": False,
    "solver_debug": False,

    # Solver Configuration
    "solver_backend": "newton",
    "solver_fallback": True,

    # Authoring
    "auto_axis_constraints": True,
    "sketch_guidelines": True,
    "sketch_drag_throttle_ms": 30,
}


@pytest.fixture(autouse=True)
def isolate_feature_flags():
    """Setzt alle Feature-Flags vor und nach jedem Test auf die Defaults zurück."""
    snapshot = dict(FEATURE_FLAGS)
    for flag, value in FEATURE_FLAG_DEFAULTS.items():
        set_flag(flag, value)
    yield
    FEATURE_FLAGS.clear()
    FEATURE_FLAGS.update(snapshot)


@pytest.fixture
def example_a():
    """A(0,0) fixiert, B(3,0), Linie A-B mit horizontal + distance 5."""
    from sketcher import Line2D, Point2D, add_primitive, apply_constraint, start_sketch

    sketch = start_sketch("XY", sketch_id="example_a")
    sketch, a = add_primitive(sketch, Point2D(0, 0, fixed=True))
    sketch, b = add_primitive(sketch, Point2D(3, 0))
    sketch, line = add_primitive(sketch, Line2D(a, b))
    sketch, _ = apply_constraint(sketch, "horizontal", [line])
    sketch, _ = apply_constraint(sketch, "distance", [line], value=5)
    return sketch, a, b, line
