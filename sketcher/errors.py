"""
ParaSketch - Fehler-Typen des Sketchers

Authoring-Fehler sind Exceptions (der Aufrufer muss reagieren),
Solver-Fehler sind Ergebnis-Werte (SolveFailure) und werden nie geworfen.
"""

from enum import Enum


class SketchError(Exception):
    """Basis aller Sketcher-Fehler."""


class GeometryError(SketchError):
    """Ungültige Geometrie (negativer Radius, unbekannter Primitiv-Typ)."""


class DegenerateConstruction(GeometryError):
    """
    Degenerierte Eingabe beim Zeichnen: Null-Länge, Radius zu klein,
    kollineare 3-Punkt-Bögen, doppelter Punkt. Handler verwerfen still.
    """


class InvalidReference(SketchError):
    """Eine Primitiv- oder Constraint-ID existiert nicht in der Skizze."""


class ConstraintError(SketchError):
    """Basis für Constraint-Fehler beim Authoring."""


class InapplicableSelection(ConstraintError):
    """Die Selektion passt nicht zur Anwendbarkeits-Tabelle des Constraint-Typs."""


class InvalidConstraintValue(ConstraintError):
    """Dimensionaler Constraint ohne Wert oder mit negativem Wert."""


class SolveFailure(Enum):
    """Warum ein Solve nicht konvergiert ist."""

    DID_NOT_CONVERGE = "did_not_converge"
    REDUNDANT = "redundant"
