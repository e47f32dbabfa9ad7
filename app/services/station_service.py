"""
Station Service - administration of jurisdictional offices.

Stations referenced by incidents are never hard-deleted; deleting such a
station deactivates it so historical assignments stay intact.
"""

from typing import Dict, List
import logging

from app.core.clock import Clock, system_clock
from app.core.errors import NotFound
from app.models.station import StationCreate, StationUpdate
from app.services.location_service import STATIONS_COLLECTION
from app.services.report_service import INCIDENTS_COLLECTION
from app.store.base import DocumentStore

logger = logging.getLogger(__name__)


class StationService:

    def __init__(self, store: DocumentStore, clock: Clock = system_clock):
        self.store = store
        self.clock = clock

    def get_station(self, station_id: str) -> Dict:
        station = self.store.get(STATIONS_COLLECTION, station_id)
        if station is None:
            raise NotFound("Police station not found")
        return station

    def list_stations(self, include_inactive: bool = False) -> List[Dict]:
        filters = [] if include_inactive else [("is_active", "==", True)]
        return self.store.find(STATIONS_COLLECTION, filters, order_by="name")

    def create_station(self, data: StationCreate) -> Dict:
        now = self.clock.now()
        station = data.model_dump()
        station.update({"is_active": True, "created_at": now, "updated_at": now})
        station["id"] = self.store.add(STATIONS_COLLECTION, station)
        logger.info(f"Police station created: {station['id']} ({station['name']})")
        return station

    def update_station(self, station_id: str, data: StationUpdate) -> Dict:
        self.get_station(station_id)
        fields = data.model_dump(exclude_unset=True)
        fields["updated_at"] = self.clock.now()
        return self.store.update(STATIONS_COLLECTION, station_id, fields)

    def delete_station(self, station_id: str) -> Dict:
        """
        Delete a station, or deactivate it when incidents reference it.

        Returns:
            Dict with "deactivated" flag
        """
        self.get_station(station_id)
        linked = self.store.find(INCIDENTS_COLLECTION, [("station_id", "==", station_id)], limit=1)

        if linked:
            self.store.update(STATIONS_COLLECTION, station_id, {"is_active": False, "updated_at": self.clock.now()})
            logger.info(f"Police station {station_id} deactivated (has linked incidents)")
            return {"deactivated": True}

        self.store.delete(STATIONS_COLLECTION, station_id)
        logger.info(f"Police station {station_id} deleted")
        return {"deactivated": False}
