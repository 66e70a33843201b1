"""Per-service setup/cleanup buffers placed around every appointment."""

from typing import Union

from booking_core.schemas.classification_schema import ServiceType
from booking_core.schemas.scheduling_schema import BufferConfig

DEFAULT_BUFFER = BufferConfig(before_minutes=15, after_minutes=15)

BUFFER_TABLE: dict[str, BufferConfig] = {
    ServiceType.PLUMBING.value: BufferConfig(before_minutes=15, after_minutes=30),
    ServiceType.ELECTRICAL.value: BufferConfig(before_minutes=15, after_minutes=30),
    ServiceType.HVAC.value: BufferConfig(before_minutes=30, after_minutes=30),
    ServiceType.ROOFING.value: BufferConfig(before_minutes=30, after_minutes=45),
    ServiceType.PAINTING.value: BufferConfig(before_minutes=15, after_minutes=30),
    ServiceType.LOCKSMITH.value: BufferConfig(before_minutes=0, after_minutes=15),
    ServiceType.GLAZIER.value: BufferConfig(before_minutes=15, after_minutes=30),
    ServiceType.CLEANING.value: BufferConfig(before_minutes=15, after_minutes=15),
    ServiceType.PEST_CONTROL.value: BufferConfig(before_minutes=15, after_minutes=30),
    ServiceType.APPLIANCE_REPAIR.value: BufferConfig(before_minutes=15, after_minutes=30),
    ServiceType.GARAGE_DOOR.value: BufferConfig(before_minutes=15, after_minutes=30),
    ServiceType.HANDYMAN.value: BufferConfig(before_minutes=15, after_minutes=15),
}


def get_buffer(service_type: Union[ServiceType, str, None]) -> BufferConfig:
    """Look up the buffer for a service. Unknown or missing types get 15/15."""
    if service_type is None:
        return DEFAULT_BUFFER
    key = service_type.value if isinstance(service_type, ServiceType) else str(service_type)
    return BUFFER_TABLE.get(key.lower().strip(), DEFAULT_BUFFER)


# Widest buffers in the table; store reads widen their window by these so
# neighbours whose own buffers reach into the window are not missed
MAX_BEFORE_MINUTES = max(
    [b.before_minutes for b in BUFFER_TABLE.values()] + [DEFAULT_BUFFER.before_minutes]
)
MAX_AFTER_MINUTES = max(
    [b.after_minutes for b in BUFFER_TABLE.values()] + [DEFAULT_BUFFER.after_minutes]
)
