"""Service catalog with durations, descriptions and free-text aliases."""

import logging
from typing import Optional, Union

from booking_core.schemas.classification_schema import ServiceType

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_DURATION = 60

SERVICE_CATALOG: dict[ServiceType, dict] = {
    ServiceType.PLUMBING: {
        "name": "Plumbing",
        "description": "Leaks, drains, toilets, taps, pipes and water heaters.",
        "duration_minutes": 90,
        "emergency_available": True,
    },
    ServiceType.ELECTRICAL: {
        "name": "Electrical",
        "description": "Outlets, switches, breakers, wiring and lighting.",
        "duration_minutes": 120,
        "emergency_available": True,
    },
    ServiceType.HVAC: {
        "name": "HVAC & Heating/Cooling",
        "description": "Furnaces, air conditioning, thermostats and ventilation.",
        "duration_minutes": 120,
        "emergency_available": True,
    },
    ServiceType.PAINTING: {
        "name": "Painting",
        "description": "Interior and exterior walls, ceilings and trim.",
        "duration_minutes": 240,
        "emergency_available": False,
    },
    ServiceType.LOCKSMITH: {
        "name": "Locksmith",
        "description": "Lockouts, rekeying, deadbolts and key duplication.",
        "duration_minutes": 60,
        "emergency_available": True,
    },
    ServiceType.GLAZIER: {
        "name": "Glazier",
        "description": "Broken, cracked or fogged window glass and panes.",
        "duration_minutes": 120,
        "emergency_available": True,
    },
    ServiceType.ROOFING: {
        "name": "Roofing",
        "description": "Roof leaks, shingles, gutters and inspections.",
        "duration_minutes": 240,
        "emergency_available": True,
    },
    ServiceType.CLEANING: {
        "name": "Cleaning",
        "description": "Carpet, steam and deep cleaning, mold and odor treatment.",
        "duration_minutes": 120,
        "emergency_available": False,
    },
    ServiceType.PEST_CONTROL: {
        "name": "Pest Control",
        "description": "Termites, rodents, ants and infestation treatment.",
        "duration_minutes": 90,
        "emergency_available": False,
    },
    ServiceType.APPLIANCE_REPAIR: {
        "name": "Appliance Repair",
        "description": "Dishwashers, washers, dryers, ovens and refrigerators.",
        "duration_minutes": 90,
        "emergency_available": False,
    },
    ServiceType.GARAGE_DOOR: {
        "name": "Garage Door",
        "description": "Openers, springs, tracks and stuck doors.",
        "duration_minutes": 90,
        "emergency_available": True,
    },
    ServiceType.HANDYMAN: {
        "name": "Handyman",
        "description": "Drywall patches, small repairs and odd jobs.",
        "duration_minutes": 60,
        "emergency_available": False,
    },
    ServiceType.GENERAL_MAINTENANCE: {
        "name": "General Maintenance",
        "description": "Anything that doesn't fit another category.",
        "duration_minutes": 60,
        "emergency_available": False,
    },
}

SERVICE_ALIASES: dict[str, ServiceType] = {
    "plumber": ServiceType.PLUMBING, "pipes": ServiceType.PLUMBING,
    "water heater": ServiceType.PLUMBING, "drain": ServiceType.PLUMBING,
    "electrician": ServiceType.ELECTRICAL, "wiring": ServiceType.ELECTRICAL,
    "heating": ServiceType.HVAC, "air conditioning": ServiceType.HVAC,
    "aircon": ServiceType.HVAC, "furnace": ServiceType.HVAC,
    "painter": ServiceType.PAINTING, "locksmith": ServiceType.LOCKSMITH,
    "locked out": ServiceType.LOCKSMITH, "window": ServiceType.GLAZIER,
    "glass": ServiceType.GLAZIER, "roofer": ServiceType.ROOFING,
    "gutter": ServiceType.ROOFING, "cleaner": ServiceType.CLEANING,
    "exterminator": ServiceType.PEST_CONTROL, "pests": ServiceType.PEST_CONTROL,
    "pest control": ServiceType.PEST_CONTROL, "appliance": ServiceType.APPLIANCE_REPAIR,
    "garage": ServiceType.GARAGE_DOOR, "odd jobs": ServiceType.HANDYMAN,
    "maintenance": ServiceType.GENERAL_MAINTENANCE,
}


def resolve_service(service_type: Union[ServiceType, str]) -> Optional[ServiceType]:
    """Exact catalog lookup by enum or id ("pest control" and "pest-control" both resolve)."""
    if isinstance(service_type, ServiceType):
        return service_type
    normalized = service_type.lower().strip().replace("-", "_").replace(" ", "_")
    try:
        return ServiceType(normalized)
    except ValueError:
        return None


def get_valid_service_terms() -> list[str]:
    """Return all recognized service terms (catalog IDs + alias keys)."""
    return [s.value for s in SERVICE_CATALOG] + list(SERVICE_ALIASES.keys())


def get_all_services() -> list[dict]:
    """Return all services with basic info."""
    return [
        {"id": sid.value, "name": info["name"], "duration_minutes": info["duration_minutes"]}
        for sid, info in SERVICE_CATALOG.items()
    ]


def get_service_details(service_id: Union[ServiceType, str]) -> Optional[dict]:
    """Get full details for a specific service."""
    sid = resolve_service(service_id)
    if sid is None:
        return None
    return {"id": sid.value, **SERVICE_CATALOG[sid]}


def service_exists(service_id: Union[ServiceType, str]) -> bool:
    return resolve_service(service_id) is not None


def get_service_duration(service_id: Union[ServiceType, str]) -> int:
    """Default appointment length in minutes; unknown services get the default."""
    sid = resolve_service(service_id)
    if sid is None:
        return DEFAULT_SERVICE_DURATION
    return SERVICE_CATALOG[sid]["duration_minutes"]


def match_service(query: str) -> Optional[ServiceType]:
    """Match a user query to a service type by alias or ID. Returns None if no match."""
    normalized = query.lower().strip()
    direct = resolve_service(normalized)
    if direct is not None:
        return direct
    for alias, service_id in SERVICE_ALIASES.items():
        if alias in normalized:
            return service_id
    for sid in SERVICE_CATALOG:
        if sid.value.replace("_", " ") in normalized:
            return sid
    return None
