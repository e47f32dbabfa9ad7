"""Shared request helpers for the API tests."""

from app.models.user import Identity
from app.utils.security import create_access_token


def auth_headers(identity: Identity) -> dict:
    return {"Authorization": f"Bearer {create_access_token(identity.id, identity.role)}"}


def incident_payload(**overrides) -> dict:
    payload = {
        "title": "Car collision at SV Road",
        "description": "Two cars collided near the signal, traffic is blocked.",
        "category": "ACCIDENT",
        "latitude": 19.1190,
        "longitude": 72.8460,
        "address": "SV Road signal",
        "city": "Mumbai",
    }
    payload.update(overrides)
    return payload
