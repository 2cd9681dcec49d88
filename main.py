#!/usr/bin/env python3
"""
ParaSketch - Parametrische 2D-Skizzen mit Constraint-Solver
Einstiegspunkt (Headless-Demo)
"""

import sys

from loguru import logger


def demo_sketcher():
    """Baut ein paar Skizzen, löst sie und gibt das Ergebnis aus."""
    from sketcher import (
        Circle2D, ConstraintType, Line2D, Point2D, SketchSession, SketchTool,
        add_primitive, apply_constraint, solve, start_sketch,
    )

    print("=" * 50)
    print("ParaSketch Sketcher Demo")
    print("=" * 50)

    # Test 1: Linie mit fixiertem Anfang, horizontal, Länge 5
    print("\n[Test 1] Horizontale Linie mit Länge 5")
    sketch = start_sketch("XY")
    sketch, a = add_primitive(sketch, Point2D(0, 0, fixed=True))
    sketch, b = add_primitive(sketch, Point2D(3, 0.4))
    sketch, line = add_primitive(sketch, Line2D(a, b))
    sketch, _ = apply_constraint(sketch, ConstraintType.HORIZONTAL, [line])
    sketch, _ = apply_constraint(sketch, ConstraintType.DISTANCE, [line], value=5)

    result = solve(sketch)
    print(f"  {result!r}")
    print(f"  B = {result.sketch.position(b)}")

    # Test 2: Kreis tangential an eine Linie
    print("\n[Test 2] Kreis tangential an horizontale Linie")
    sketch = start_sketch("XY")
    sketch, p1 = add_primitive(sketch, Point2D(-10, 0, fixed=True))
    sketch, p2 = add_primitive(sketch, Point2D(10, 0, fixed=True))
    sketch, base = add_primitive(sketch, Line2D(p1, p2))
    sketch, c = add_primitive(sketch, Point2D(0, 10))
    sketch, circle = add_primitive(sketch, Circle2D(c, 3))
    sketch, _ = apply_constraint(sketch, ConstraintType.RADIUS, [circle], value=3)
    sketch, _ = apply_constraint(sketch, ConstraintType.TANGENT, [base, circle])

    result = solve(sketch)
    print(f"  {result!r}")
    print(f"  Zentrum = {result.sketch.position(c)}")

    # Test 3: Interaktive Linien-Kette
    print("\n[Test 3] Linien-Kette über die Session")
    session = SketchSession(plane="XY")
    session.set_tool(SketchTool.LINE)
    for t, (x, y) in enumerate([(0, 0), (6, 0.3), (6.2, 4), (0, 4), (0, 0)]):
        session.press(x, y, t_ms=t * 1000)
    session.cancel()
    print(f"  {session.sketch!r}")
    for constraint in session.sketch.constraints:
        print(f"  {constraint!r}")

    print("\n" + "=" * 50)
    print("Demo abgeschlossen!")
    print("=" * 50)


def main():
    """Startet die Demo; --debug aktiviert Sketch-Debug-Logging."""
    from config.feature_flags import set_flag
    from config.version import VERSION_FULL, APP_NAME

    logger.remove()
    if "--debug" in sys.argv:
        set_flag("sketch_debug", True)
        logger.add(sys.stderr, level="DEBUG")
    else:
        logger.add(sys.stderr, level="WARNING")

    print(f"{APP_NAME} {VERSION_FULL}")
    demo_sketcher()


if __name__ == "__main__":
    main()
