"""
Technician directory port.

In production this is backed by the personnel system (or the technicians
table of ``SqlBookingStore``). The in-memory directory serves tests and the
CLI demo.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

AVAILABLE = "available"


class TechnicianDirectory(Protocol):
    def get_status(self, technician_id: str) -> Optional[str]:
        """Availability status, or None if the technician does not exist."""
        ...

    def list_available(self, skill: Optional[str] = None) -> list[str]:
        """Available technicians; with ``skill``, only those who take that service."""
        ...


@dataclass
class TechnicianRecord:
    id: str
    name: str
    status: str = AVAILABLE
    # empty means the technician takes any job
    skills: list[str] = field(default_factory=list)


class InMemoryTechnicianDirectory:
    """Technician roster held in a dict, scoped to the instance."""

    def __init__(self, technicians: Optional[list[TechnicianRecord]] = None) -> None:
        self._technicians: dict[str, TechnicianRecord] = {
            t.id: t for t in (technicians or [])
        }

    def add(self, record: TechnicianRecord) -> None:
        self._technicians[record.id] = record
        logger.debug("Technician registered: %s (%s)", record.id, record.status)

    def set_status(self, technician_id: str, status: str) -> None:
        self._technicians[technician_id].status = status

    def get(self, technician_id: str) -> Optional[TechnicianRecord]:
        return self._technicians.get(technician_id)

    def get_status(self, technician_id: str) -> Optional[str]:
        record = self._technicians.get(technician_id)
        return record.status if record else None

    def list_available(self, skill: Optional[str] = None) -> list[str]:
        return [
            t.id
            for t in self._technicians.values()
            if t.status == AVAILABLE and (skill is None or not t.skills or skill in t.skills)
        ]
