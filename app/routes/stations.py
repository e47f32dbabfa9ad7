"""
Police station endpoints - public directory and nearest-station lookup.
"""

from fastapi import APIRouter, Query

from app.core.errors import NotFound
from app.models.base import BaseResponse
from app.models.station import StationResponse
from app.services.container import get_services

router = APIRouter(prefix="/stations", tags=["Police Stations"])


@router.get("", response_model=BaseResponse)
def list_stations():
    stations = get_services().stations.list_stations()
    return BaseResponse(data={"stations": [StationResponse(**station) for station in stations]})


@router.get("/nearest", response_model=BaseResponse)
def nearest_station(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
):
    """Nearest active station to a coordinate (great-circle distance)."""
    nearest = get_services().resolver.resolve(lat, lon)
    if nearest is None:
        raise NotFound("No active police stations")
    return BaseResponse(data={
        "station": StationResponse(**nearest.station),
        "distance_km": round(nearest.distance_km, 2),
    })


@router.get("/{station_id}", response_model=BaseResponse)
def get_station(station_id: str):
    station = get_services().stations.get_station(station_id)
    if not station.get("is_active", True):
        raise NotFound("Police station not found")
    return BaseResponse(data={"station": StationResponse(**station)})
