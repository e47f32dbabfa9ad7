"""
Location Service - nearest jurisdictional office by great-circle distance.

DESIGN PRINCIPLES:
- Nearest centre point, not polygon containment
- Linear scan over active stations (the set is tens to low hundreds)
- Deterministic ties: candidates are ordered by station id and the first
  station at the minimum distance wins
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
import logging
import math

from app.store.base import DocumentStore

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
STATIONS_COLLECTION = "police_stations"


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometres between two WGS84 points given in degrees."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)
    a = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


@dataclass(frozen=True)
class NearestStation:
    station: Dict
    distance_km: float

    @property
    def station_id(self) -> str:
        return self.station["id"]


def find_nearest(latitude: float, longitude: float, stations: Iterable[Dict]) -> Optional[NearestStation]:
    """
    Scan stations in the given order and return the closest active one.

    Ties keep the first-encountered station. Returns None when no active
    station has a coordinate.
    """
    nearest: Optional[Dict] = None
    min_distance = math.inf

    for station in stations:
        if not station.get("is_active", True):
            continue
        if station.get("latitude") is None or station.get("longitude") is None:
            continue
        distance = haversine_km(latitude, longitude, station["latitude"], station["longitude"])
        if distance < min_distance:
            min_distance = distance
            nearest = station

    if nearest is None:
        return None
    return NearestStation(station=nearest, distance_km=min_distance)


class LocationResolver:
    """Resolves coordinates to the nearest active station held in the store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    def active_stations(self) -> List[Dict]:
        stations = self.store.find(STATIONS_COLLECTION, [("is_active", "==", True)])
        stations.sort(key=lambda s: s["id"])
        return stations

    def resolve(self, latitude: Optional[float], longitude: Optional[float]) -> Optional[NearestStation]:
        if latitude is None or longitude is None:
            return None

        result = find_nearest(latitude, longitude, self.active_stations())
        if result is None:
            logger.warning(f"No active station available for ({latitude}, {longitude})")
        else:
            logger.info(f"Nearest station for ({latitude}, {longitude}): {result.station_id} at {result.distance_km:.2f} km")
        return result
