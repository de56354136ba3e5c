"""Assign entities to saved zones"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import structlog

from zonemap.models import GeoEntity, Zone
from zonemap.utils.geometry import find_zone_for_coordinates

logger = structlog.get_logger(__name__)


@dataclass
class ZoneAssignment:
    """entity id -> zone id (None: in no zone) plus change bookkeeping"""

    zones: Dict[str, Optional[str]] = field(default_factory=dict)
    updated: int = 0
    skipped: int = 0

    def members(self, zone_id: str) -> List[str]:
        return [entity_id for entity_id, zid in self.zones.items() if zid == zone_id]

    def counts(self) -> Dict[str, int]:
        result: Dict[str, int] = {}
        for zone_id in self.zones.values():
            if zone_id is not None:
                result[zone_id] = result.get(zone_id, 0) + 1
        return result


class ZoneAssigner:
    """Find, for each located entity, the first zone containing it"""

    def __init__(self, zones: Iterable[Zone]):
        self.zones = list(zones)

    def assign(self, entities: Iterable[GeoEntity],
               current: Optional[Dict[str, Optional[str]]] = None) -> ZoneAssignment:
        """
        Args:
            entities: Entities to place
            current: Previously stored entity -> zone ids; an entity counts
                as updated when its zone differs from this mapping

        Returns:
            ZoneAssignment; entities without a valid position are skipped
        """
        current = current or {}
        assignment = ZoneAssignment()

        for entity in entities:
            if not entity.has_valid_position:
                assignment.skipped += 1
                continue

            zone = find_zone_for_coordinates((entity.lat, entity.lng), self.zones)
            zone_id = zone.id if zone else None
            assignment.zones[entity.id] = zone_id

            if current.get(entity.id) != zone_id:
                assignment.updated += 1

        logger.info(
            "Zone assignment completed",
            zones=len(self.zones),
            assigned=sum(1 for z in assignment.zones.values() if z is not None),
            updated=assignment.updated,
            skipped=assignment.skipped,
        )
        return assignment
