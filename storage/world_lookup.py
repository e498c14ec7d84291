"""World, datacenter and region membership lookups."""
import logging
import threading
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from processor.models import Datacenter, World

logger = logging.getLogger(__name__)

WorldSource = Callable[[], Optional[Iterable[World]]]
DatacenterSource = Callable[[], Optional[Iterable[Datacenter]]]


class WorldLookup:
    """
    Lazily built lookup tables over the host's static world data.

    Each source returns None while game data is unavailable; lookups then
    return empty results and the source is asked again on the next access.
    """

    def __init__(self, world_source: WorldSource, datacenter_source: DatacenterSource):
        """
        Initialize the lookup.

        Args:
            world_source: Host callable returning World rows
            datacenter_source: Host callable returning Datacenter rows
        """
        self.world_source = world_source
        self.datacenter_source = datacenter_source
        self.lock = threading.Lock()
        self._worlds: Optional[Dict[int, World]] = None
        self._datacenters: Optional[Dict[int, Datacenter]] = None

    @property
    def worlds(self) -> Dict[int, World]:
        """World rows keyed by world id (empty if unavailable)."""
        with self.lock:
            if self._worlds is None:
                self._worlds = self._build(self.world_source, lambda w: w.world_id, 'world')
            return self._worlds or {}

    @property
    def datacenters(self) -> Dict[int, Datacenter]:
        """Datacenter rows keyed by datacenter id (empty if unavailable)."""
        with self.lock:
            if self._datacenters is None:
                self._datacenters = self._build(
                    self.datacenter_source, lambda d: d.datacenter_id, 'datacenter'
                )
            return self._datacenters or {}

    def public_worlds(self) -> List[World]:
        return [world for world in self.worlds.values() if world.is_public]

    def get_world(self, world_id: Optional[int]) -> Optional[World]:
        if world_id is None:
            return None
        return self.worlds.get(world_id)

    def get_datacenter(self, datacenter_id: int) -> Optional[Datacenter]:
        return self.datacenters.get(datacenter_id)

    def get_datacenter_world_ids(self, datacenter_id: int) -> FrozenSet[int]:
        """
        Get the ids of all worlds in a datacenter.

        Args:
            datacenter_id: Datacenter identifier

        Returns:
            World ids, empty if the datacenter is unknown or data unavailable
        """
        return frozenset(
            world_id for world_id, world in self.worlds.items()
            if world.datacenter_id == datacenter_id
        )

    def get_region_datacenter_ids(self, region: int) -> FrozenSet[int]:
        """
        Get the ids of all datacenters in a physical region.

        Args:
            region: Region byte value (see WorldDCRegion)

        Returns:
            Datacenter ids, empty if data unavailable
        """
        return frozenset(
            datacenter_id for datacenter_id, datacenter in self.datacenters.items()
            if datacenter.region == region
        )

    def get_region_world_ids(self, region: int) -> FrozenSet[int]:
        """
        Get the ids of all worlds across a region's datacenters.

        Args:
            region: Region byte value (see WorldDCRegion)

        Returns:
            World ids, empty if data unavailable
        """
        datacenter_ids = self.get_region_datacenter_ids(region)
        return frozenset(
            world_id for world_id, world in self.worlds.items()
            if world.datacenter_id in datacenter_ids
        )

    def _build(self, source, key, kind: str):
        """Build a table from a host source, or None if it is unavailable."""
        rows = source()
        if rows is None:
            logger.warning(f"Game data for {kind} table is unavailable")
            return None

        table = {key(row): row for row in rows}
        logger.info(f"Built {kind} table with {len(table)} rows")
        return table
