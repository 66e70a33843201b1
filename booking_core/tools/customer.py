"""
Customer lookup used to recognize returning customers.

In production this would query the CRM. The in-memory directory is scoped
to its instance so tests never share customer records.
"""

import logging
from typing import Optional, TypedDict

from booking_core.utils import normalize_phone

logger = logging.getLogger(__name__)


class CustomerRecord(TypedDict):
    """Customer record stored in the system."""

    name: str
    phone: str
    email: str
    address: str
    previous_bookings: int


class CustomerDirectory:
    """Phone-keyed customer records."""

    def __init__(self, customers: Optional[list[CustomerRecord]] = None) -> None:
        self._customers: dict[str, CustomerRecord] = {
            normalize_phone(c["phone"]): c for c in (customers or [])
        }

    def lookup_customer(self, phone: str) -> Optional[CustomerRecord]:
        """Look up a customer by phone number. Returns None if not found."""
        result = self._customers.get(normalize_phone(phone))
        if result:
            logger.debug("Returning customer found: %s", result["name"])
        return result

    def create_customer(
        self, name: str, phone: str, email: Optional[str] = None, address: Optional[str] = None
    ) -> CustomerRecord:
        """Create a new customer record."""
        cleaned = normalize_phone(phone)
        customer: CustomerRecord = {
            "name": name,
            "phone": cleaned,
            "email": email or "",
            "address": address or "",
            "previous_bookings": 0,
        }
        self._customers[cleaned] = customer
        logger.info("New customer created: %s (%s)", name, cleaned)
        return customer

    def record_booking(self, phone: str) -> None:
        customer = self.lookup_customer(phone)
        if customer is not None:
            customer["previous_bookings"] += 1

    def has_contact_on_file(self, phone: Optional[str]) -> bool:
        """True when name, phone and address are already known for this caller."""
        if not phone:
            return False
        customer = self.lookup_customer(phone)
        return bool(customer and customer["name"] and customer["address"])
