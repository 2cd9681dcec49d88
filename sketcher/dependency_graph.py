"""
Dependency Graph für Selektion und Drag

Adjazenz-Index Punkt-ID -> besitzende Primitive, frisch pro Sketch-Revision
aufgebaut (Skizzen sind klein, der Neuaufbau ist billig). Zusammenhangs-
komponenten werden per Breitensuche über "Primitive teilen eine Punkt-ID"
gefunden.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from loguru import logger

from .geometry import referenced_point_ids


@dataclass
class AdjacencyIndex:
    """Punkt-ID -> Primitive, die diesen Punkt referenzieren (inkl. Punkt selbst)."""
    sketch_id: str
    revision: int
    owners: Dict[str, List[str]] = field(default_factory=dict)
    points_of: Dict[str, tuple] = field(default_factory=dict)
    constraints_of: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def build_from_sketch(cls, sketch) -> "AdjacencyIndex":
        index = cls(sketch_id=sketch.id, revision=sketch.revision)
        for primitive in sketch.primitives:
            refs = referenced_point_ids(primitive)
            index.points_of[primitive.id] = refs
            for point_id in refs:
                index.owners.setdefault(point_id, []).append(primitive.id)
        for constraint in sketch.constraints:
            for primitive_id in constraint.primitive_ids:
                index.constraints_of.setdefault(primitive_id, []).append(constraint.id)
        return index

    def is_current(self, sketch) -> bool:
        return self.sketch_id == sketch.id and self.revision == sketch.revision

    def connected_component(self, primitive_id: str) -> List[str]:
        """Alle Primitive, die transitiv Punkte mit primitive_id teilen (BFS-Reihenfolge)."""
        if primitive_id not in self.points_of:
            return []
        seen = {primitive_id}
        order = [primitive_id]
        queue = deque([primitive_id])
        while queue:
            current = queue.popleft()
            for point_id in self.points_of[current]:
                for neighbour in self.owners.get(point_id, ()):
                    if neighbour not in seen:
                        seen.add(neighbour)
                        order.append(neighbour)
                        queue.append(neighbour)
        return order

    def component_points(self, primitive_id: str) -> Set[str]:
        """Punkt-IDs der Zusammenhangskomponente (die Moving-Set beim Drag)."""
        points: Set[str] = set()
        for member in self.connected_component(primitive_id):
            points.update(self.points_of[member])
        return points

    def get_affected_constraints(self, primitive_ids: Iterable[str]) -> Set[str]:
        affected: Set[str] = set()
        for primitive_id in primitive_ids:
            affected.update(self.constraints_of.get(primitive_id, ()))
        return affected


def constraint_anchor_points(sketch, index: AdjacencyIndex, moving_points: Set[str]) -> Set[str]:
    """
    Punkte außerhalb der Moving-Set, die über Constraints transitiv mit ihr
    verbunden sind. Diese werden während eines Drags temporär fixiert.
    """
    moving_primitives = {pid for point_id in moving_points for pid in index.owners.get(point_id, ())}
    constraint_ids = set()
    frontier = deque(moving_primitives)
    visited = set(moving_primitives)
    anchors: Set[str] = set()

    while frontier:
        primitive_id = frontier.popleft()
        for constraint_id in index.constraints_of.get(primitive_id, ()):
            if constraint_id in constraint_ids:
                continue
            constraint_ids.add(constraint_id)
            for other in sketch.get_constraint(constraint_id).primitive_ids:
                if other in visited:
                    continue
                visited.add(other)
                frontier.append(other)
                anchors.update(p for p in index.points_of.get(other, ()) if p not in moving_points)

    logger.debug(f"[Drag] {len(moving_points)} bewegte Punkte, {len(anchors)} Anker über {len(constraint_ids)} Constraints")
    return anchors
