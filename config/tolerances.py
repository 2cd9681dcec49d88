"""
ParaSketch - Zentralisierte Toleranz-Konfiguration
==================================================

Alle Toleranzen und Schwellwerte des Sketchers an einem Ort.

Verwendung:
    from config.tolerances import Tolerances

    eps = Tolerances.SOLVER_TOLERANCE

    # Oder via Convenience-Funktionen
    from config.tolerances import snap_radius
    r = snap_radius()
"""


class Tolerances:
    """
    Zentrale Toleranz-Konstanten.

    Kategorien:
    - SOLVER_*: Gauss-Newton / Least-Squares Parameter
    - SKETCH_*: Authoring (Snapping, Merge, Degenerierte Eingaben)
    - INFERENCE_*: Snap-Kandidaten und Hilfslinien
    - GEOMETRY_*: Numerische Vergleiche
    """

    # =========================================================================
    # Solver
    # =========================================================================

    # Konvergenz: ||R|| < SOLVER_TOLERANCE
    SOLVER_TOLERANCE = 1e-6

    # Iterations-Cap pro Solve
    SOLVER_MAX_ITERATIONS = 50

    # Maximale Schrittlänge (Norm des Parameter-Updates)
    # Verhindert, dass ein schlecht konditionierter Schritt die Skizze sprengt
    SOLVER_MAX_STEP = 100.0

    # Relative Singulärwert-Schwelle für Rang-Bestimmung der Jacobi-Matrix
    SOLVER_RANK_TOLERANCE = 1e-8

    # Schrittweite für zentrale Differenzen
    SOLVER_FD_STEP = 1e-7

    # Backtracking Line-Search: Halbierungen pro Iteration
    SOLVER_LINE_SEARCH_STEPS = 12

    # =========================================================================
    # Sketch Authoring
    # =========================================================================

    # Merge-Distanz für getOrCreatePoint (Klick auf existierenden Punkt)
    SKETCH_POINT_MERGE = 0.3

    # Minimaler Kreisradius beim Release
    SKETCH_MIN_CIRCLE_RADIUS = 0.1

    # Minimale Linienlänge (darunter: degeneriert)
    SKETCH_MIN_LINE_LENGTH = 1e-3

    # Doppelklick-Fenster (Kette beenden)
    SKETCH_DOUBLE_CLICK_MS = 300

    # Drag: höchstens ein Solve pro Intervall
    SKETCH_DRAG_THROTTLE_MS = 30

    # Hit-Test Radius für Selektion
    SKETCH_PICK_RADIUS = 0.3

    # =========================================================================
    # Inference
    # =========================================================================

    # Snap-Radius für Kandidaten (Plane-Einheiten)
    INFERENCE_SNAP_RADIUS = 0.4

    # Auto Horizontal/Vertical: Winkel-Abweichung in Radians (~8.6°)
    INFERENCE_AXIS_ANGLE = 0.15

    # Hilfslinien ohne Ketten-Ursprung: Koordinaten-Delta
    INFERENCE_GUIDELINE_DELTA = 0.15

    # Linie-Linie Schnitt: erlaubter Parameterbereich [-x, 1+x]
    INFERENCE_INTERSECTION_EXTENSION = 0.1

    # =========================================================================
    # Geometrie
    # =========================================================================

    # Kollinearitäts-Schwelle für 3-Punkt-Bogen (Determinante)
    GEOMETRY_COLLINEAR = 1e-10

    # Längen-Vergleich
    GEOMETRY_EPSILON = 1e-12


# =============================================================================
# Convenience-Funktionen
# =============================================================================

def solver_tolerance() -> float:
    """Gibt die Konvergenz-Toleranz des Solvers zurück."""
    return Tolerances.SOLVER_TOLERANCE


def sketch_tolerance() -> float:
    """Gibt die Merge-Distanz für Sketch-Punkte zurück."""
    return Tolerances.SKETCH_POINT_MERGE


def snap_radius() -> float:
    """Gibt den Standard-Snap-Radius zurück."""
    return Tolerances.INFERENCE_SNAP_RADIUS


# =============================================================================
# Toleranz-Validierung (für Debugging)
# =============================================================================

def validate_tolerances():
    """
    Validiert dass alle Toleranzen sinnvolle Werte haben.
    Nützlich für Tests und Debugging.
    """
    issues = []

    if not (1e-12 <= Tolerances.SOLVER_TOLERANCE <= 1e-3):
        issues.append(f"SOLVER_TOLERANCE außerhalb sinnvoller Grenzen: {Tolerances.SOLVER_TOLERANCE}")

    # Merge-Distanz muss kleiner als der Snap-Radius sein, sonst gewinnt immer der Merge
    if Tolerances.SKETCH_POINT_MERGE > Tolerances.INFERENCE_SNAP_RADIUS:
        issues.append(
            f"SKETCH_POINT_MERGE ({Tolerances.SKETCH_POINT_MERGE}) größer als "
            f"INFERENCE_SNAP_RADIUS ({Tolerances.INFERENCE_SNAP_RADIUS})"
        )

    if Tolerances.SOLVER_MAX_ITERATIONS < 1:
        issues.append(f"SOLVER_MAX_ITERATIONS < 1: {Tolerances.SOLVER_MAX_ITERATIONS}")

    return issues


# Automatische Validierung beim Import (nur Warnung, kein Fehler)
_validation_issues = validate_tolerances()
if _validation_issues:
    from loguru import logger
    for issue in _validation_issues:
        logger.warning(f"Toleranz-Validierung: {issue}")
