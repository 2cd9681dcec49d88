"""
ParaSketch - Feature Flags
==========================

Feature Flags ermöglichen inkrementelle Rollouts und einfaches Rollback.
Neue Features werden mit Flag=False eingeführt und nach Validierung aktiviert.
Diese Datei enthält Debug-Flags und die Solver-Konfiguration.
"""

from typing import Any, Dict

FEATURE_FLAGS: Dict[str, Any] = {
    # Debug-Modi
    "sketch_input_logging": False,  # Press/Move/Release Events loggen
    "sketch_debug": False,  # [Inference], [Session], [Profile] Debug-Ausgaben
    "solver_debug": False,  # Residual-Norm pro Iteration loggen

    # Solver Configuration
    "solver_backend": "newton",  # "newton" | "scipy_trf"
    "solver_fallback": True,  # Bei Backend-Fehler auf newton zurückfallen

    # Authoring
    "auto_axis_constraints": True,  # Auto Horizontal/Vertical für fast achsparallele Linien
    "sketch_guidelines": True,  # Ausrichtungs-Hilfslinien beim Zeichnen
    "sketch_drag_throttle_ms": 30,  # Drag-Solve höchstens alle N ms
}


def is_enabled(flag: str) -> bool:
    """
    Prüft ob ein Feature-Flag aktiviert ist.

    Args:
        flag: Name des Feature-Flags

    Returns:
        True wenn aktiviert, False wenn nicht aktiviert oder unbekannt
    """
    return bool(FEATURE_FLAGS.get(flag, False))


def get_flag(flag: str, default: Any = None) -> Any:
    """Liefert den Rohwert eines Flags (z.B. solver_backend)."""
    return FEATURE_FLAGS.get(flag, default)


def set_flag(flag: str, value: Any) -> None:
    """
    Setzt ein Feature-Flag zur Laufzeit.
    Nützlich für Tests und Debugging.

    Args:
        flag: Name des Feature-Flags
        value: Neuer Wert
    """
    FEATURE_FLAGS[flag] = value


def get_all_flags() -> Dict[str, Any]:
    """Gibt alle Feature-Flags zurück."""
    return FEATURE_FLAGS.copy()
