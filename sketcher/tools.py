"""
ParaSketch - Sketch Tools Enums
Tool types, snap types and guideline axes for the authoring state machine
"""

from enum import Enum, auto


class SketchTool(Enum):
    """Available sketch tools"""
    SELECT = auto()
    LINE = auto()
    CIRCLE = auto()
    ARC_3POINT = auto()
    POINT = auto()


class SnapType(Enum):
    """Snap point types"""
    ENDPOINT = "endpoint"
    MIDPOINT = "midpoint"
    CENTER = "center"
    QUADRANT = "quadrant"
    INTERSECTION = "intersection"


class GuidelineAxis(Enum):
    """Orientation of an alignment guideline"""
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"


# Render-Farben pro Achse (RGB hex)
GUIDELINE_COLORS = {
    GuidelineAxis.HORIZONTAL: 0x00FFFF,
    GuidelineAxis.VERTICAL: 0x00FF00,
}

# Anzeige-Priorität pro Snap-Typ (kleiner = wichtiger); die Auswahl selbst
# geht nach Abstand, bei Gleichstand nach Listen-Reihenfolge
SNAP_PRIORITY = {
    SnapType.ENDPOINT: 1,
    SnapType.MIDPOINT: 2,
    SnapType.CENTER: 3,
    SnapType.QUADRANT: 4,
    SnapType.INTERSECTION: 5,
}
